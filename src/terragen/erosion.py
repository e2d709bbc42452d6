"""Deterministic erosion: D8 flow-driven hydraulic pass and thermal smoothing.

Flow accumulation visits cells in one fixed, stable order (descending
height, ties by row-major index) and routes flow sequentially, so the
result is bit-identical across runs.
"""

import math
from dataclasses import dataclass

import numpy as np
import structlog
from numpy.typing import NDArray
from structlog.typing import FilteringBoundLogger

from .config import TerrainConfig
from .noise import normalize
from .rng import LCG

logger = structlog.get_logger()

# D8 neighbor visit order: row by row, dy then dx from -1 to 1
D8_DY = np.array([-1, -1, -1, 0, 0, 1, 1, 1], dtype=np.int64)
D8_DX = np.array([-1, 0, 1, -1, 1, -1, 0, 1], dtype=np.int64)

NO_RECEIVER = -1

# Scales sqrt(normalized flow) * strength into a per-iteration height loss
EROSION_RATE = 0.01


@dataclass(frozen=True)
class ErosionReport:
    """Outcome of the erosion phase."""

    iterations: int
    thermal_iterations: int
    droplets: int
    max_flow: float
    height_range: tuple[float, float]


def compute_receivers(heights: NDArray[np.float64]) -> NDArray[np.int64]:
    """Flat index of each cell's strictly lowest D8 neighbor.

    Ties between equally low neighbors go to the first in visit order.

    Returns:
        Array of shape (height, width) with flat indices or NO_RECEIVER.
    """
    height, width = heights.shape
    padded = np.pad(heights, 1, mode="constant", constant_values=np.inf)

    neighbors = np.empty((8, height, width), dtype=np.float64)
    for d in range(8):
        dy, dx = D8_DY[d], D8_DX[d]
        neighbors[d] = padded[1 + dy : 1 + dy + height, 1 + dx : 1 + dx + width]

    # argmin returns the first minimum, matching the visit order
    best = np.argmin(neighbors, axis=0)
    lowest = np.take_along_axis(neighbors, best[np.newaxis], axis=0)[0]

    ys, xs = np.indices((height, width))
    target = (ys + D8_DY[best]) * width + (xs + D8_DX[best])
    return np.where(lowest < heights, target, NO_RECEIVER)


def flow_accumulation(
    heights: NDArray[np.float64],
    rainfall: NDArray[np.float64] | None = None,
) -> NDArray[np.float64]:
    """Accumulate D8 flow from high to low cells.

    Args:
        heights: Height field.
        rainfall: Optional extra initial flow per cell.

    Returns:
        Flow per cell (at least 1.0).
    """
    flow = np.ones(heights.size, dtype=np.float64)
    if rainfall is not None:
        flow += rainfall.ravel()

    receivers = compute_receivers(heights).ravel().tolist()
    # Stable sort on the negated field: descending height, ties by index
    order = np.argsort(-heights.ravel(), kind="stable").tolist()

    accumulated = flow.tolist()
    for idx in order:
        receiver = receivers[idx]
        if receiver != NO_RECEIVER:
            accumulated[receiver] += accumulated[idx]

    return np.array(accumulated, dtype=np.float64).reshape(heights.shape)


def hydraulic_erosion(
    heights: NDArray[np.float64],
    iterations: int,
    strength: float,
    rainfall: NDArray[np.float64] | None = None,
) -> NDArray[np.float64]:
    """Erode a normalized field in place, renormalizing after each pass.

    Returns:
        Flow field from the last iteration.
    """
    flow = np.ones_like(heights)
    for _ in range(iterations):
        flow = flow_accumulation(heights, rainfall)
        normalized_flow = flow / flow.max()
        heights -= np.sqrt(normalized_flow) * strength * EROSION_RATE
        normalize(heights)
    return flow


def thermal_erosion(
    heights: NDArray[np.float64],
    iterations: int = 3,
    threshold: float = 0.05,
) -> NDArray[np.float64]:
    """Smooth steep drops toward the 4-connected neighbors, in place.

    Each sweep reads only the previous sweep's heights. Border cells are
    left untouched.
    """
    for _ in range(iterations):
        center = heights[1:-1, 1:-1]
        total = np.zeros_like(center)
        count = np.zeros_like(center)

        for neighbor in (
            heights[1:-1, :-2],
            heights[1:-1, 2:],
            heights[:-2, 1:-1],
            heights[2:, 1:-1],
        ):
            diff = center - neighbor
            steep = diff > threshold
            total += np.where(steep, diff, 0.0)
            count += steep

        loss = np.divide(total, count, out=np.zeros_like(total), where=count > 0) * 0.25
        heights[1:-1, 1:-1] = center - loss

    return heights


def stratified_rainfall(
    width: int,
    height: int,
    droplet_count: int,
    rng: LCG,
) -> NDArray[np.float64]:
    """Drop rainfall at jittered positions on a stratified grid.

    Returns:
        Droplet count per cell, shape (height, width).
    """
    rainfall = np.zeros((height, width), dtype=np.float64)
    if droplet_count <= 0:
        return rainfall

    grid_size = math.ceil(math.sqrt(droplet_count))
    stratum_width = width / grid_size
    stratum_height = height / grid_size

    dropped = 0
    for gy in range(grid_size):
        for gx in range(grid_size):
            if dropped >= droplet_count:
                return rainfall
            x = min(width - 1, int((gx + rng.next()) * stratum_width))
            y = min(height - 1, int((gy + rng.next()) * stratum_height))
            rainfall[y, x] += 1.0
            dropped += 1

    return rainfall


def apply_erosion(
    heights: NDArray[np.float64],
    config: TerrainConfig,
    rng: LCG,
    log: FilteringBoundLogger | None = None,
) -> ErosionReport:
    """Erode a height field in meters, in place.

    The field is normalized for the hydraulic and thermal passes and then
    mapped back onto its original meter range.

    Args:
        heights: Heights in meters. Modified in place.
        config: Generation configuration.
        rng: Erosion stream (rainfall droplets).
        log: Optional structlog logger.

    Returns:
        ErosionReport for the phase.
    """
    log = log or logger
    low, high = float(heights.min()), float(heights.max())

    if config.erosion_iterations <= 0:
        return ErosionReport(0, 0, 0, 0.0, (low, high))

    height, width = heights.shape
    work = heights.copy()
    normalize(work)

    rainfall = stratified_rainfall(width, height, config.erosion_droplet_count, rng)
    flow = hydraulic_erosion(
        work, config.erosion_iterations, config.erosion_strength, rainfall
    )
    thermal_erosion(work, config.thermal_iterations, config.thermal_threshold)

    heights[...] = np.clip(low + work * (high - low), low, high)

    report = ErosionReport(
        iterations=config.erosion_iterations,
        thermal_iterations=config.thermal_iterations,
        droplets=int(rainfall.sum()),
        max_flow=float(flow.max()),
        height_range=(float(heights.min()), float(heights.max())),
    )
    log.info(
        "erosion_applied",
        iterations=report.iterations,
        droplets=report.droplets,
        max_flow=report.max_flow,
    )
    return report
