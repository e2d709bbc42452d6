"""Lake carving: organic basins at Poisson-spaced centers.

Lakes are carved into the normalized height field before erosion and
before the exact sea level is known, so their depth targets only the
configured sea level estimate.
"""

import math
from dataclasses import dataclass

import numpy as np
import structlog
from numpy.typing import NDArray
from structlog.typing import FilteringBoundLogger

from .config import TerrainConfig
from .poisson import poisson_disk_sample
from .rng import LCG

logger = structlog.get_logger()

SIZE_VARIATION_MIN = 0.7
SIZE_VARIATION_RANGE = 0.6


@dataclass(frozen=True)
class Lake:
    """A single carved basin, in cell coordinates and normalized depth."""

    cx: int
    cy: int
    radius_x: float
    radius_y: float
    depth: float


@dataclass(frozen=True)
class LakeReport:
    """Outcome of the lake carving phase."""

    target_cells: int
    estimated_count: int
    centers_sampled: int
    lakes: tuple[Lake, ...]
    cells_carved: int

    @property
    def count(self) -> int:
        return len(self.lakes)


def estimate_lake_count(target_cells: int, min_spacing: float) -> int:
    """Lakes needed if each covers a disc of diameter ``min_spacing``."""
    average_area = math.pi * (min_spacing / 2) ** 2
    return math.ceil(target_cells / average_area)


def carve_lakes(
    elevation: NDArray[np.float64],
    rng: LCG,
    config: TerrainConfig,
    log: FilteringBoundLogger | None = None,
) -> LakeReport:
    """Carve lakes into a normalized height field in place.

    Args:
        elevation: Normalized heights, shape (height, width). Modified in place.
        rng: Lakes stream.
        config: Generation configuration.
        log: Optional structlog logger.

    Returns:
        LakeReport describing the carved basins.
    """
    log = log or logger
    height, width = elevation.shape

    if config.water_percentage <= 0:
        return LakeReport(0, 0, 0, (), 0)

    target_cells = math.floor(config.water_percentage / 100 * elevation.size)
    estimated = estimate_lake_count(target_cells, config.lake_min_spacing)

    centers = poisson_disk_sample(
        width,
        height,
        config.lake_min_spacing,
        rng,
        config.poisson_max_attempts,
    )

    if not centers or estimated == 0:
        log.warning("no_lake_centers", target_cells=target_cells)
        return LakeReport(target_cells, estimated, len(centers), (), 0)

    centers_sampled = len(centers)
    if centers_sampled > estimated:
        # Spread the chosen subset over the whole map
        rng.shuffle(centers)
        centers = centers[:estimated]

    cells_per_lake = target_cells // len(centers)
    average_radius = math.sqrt(cells_per_lake / math.pi)
    if average_radius <= 0:
        return LakeReport(target_cells, estimated, centers_sampled, (), 0)

    depth_range = config.lake_depth_max - config.lake_depth_min
    lakes: list[Lake] = []
    cells_carved = 0

    for center in centers:
        size = SIZE_VARIATION_MIN + rng.next() * SIZE_VARIATION_RANGE
        depth = config.lake_depth_min + rng.next() * depth_range
        lake = Lake(
            cx=int(center.x),
            cy=int(center.y),
            radius_x=average_radius * size,
            radius_y=average_radius * size,
            depth=depth,
        )
        cells_carved += carve_lake(
            elevation,
            lake,
            squareness=config.lake_shape_squareness,
            sea_level_estimate=config.sea_level_estimate,
            edge_noise_amp=config.lake_edge_noise_amp,
            rng=rng,
        )
        lakes.append(lake)

    log.info(
        "lakes_carved",
        lakes=len(lakes),
        centers_sampled=centers_sampled,
        cells_carved=cells_carved,
        target_cells=target_cells,
    )
    return LakeReport(target_cells, estimated, centers_sampled, tuple(lakes), cells_carved)


def superellipse_distance(
    dx: NDArray[np.float64],
    dy: NDArray[np.float64],
    radius_x: float,
    radius_y: float,
    exponent: float,
) -> NDArray[np.float64]:
    """Normalized superellipse distance; 1.0 on the boundary.

    ``exponent`` 2 gives an ellipse, larger values approach a rounded
    rectangle.
    """
    return (
        np.abs(dx / radius_x) ** exponent + np.abs(dy / radius_y) ** exponent
    ) ** (1.0 / exponent)


def carve_lake(
    elevation: NDArray[np.float64],
    lake: Lake,
    squareness: float,
    sea_level_estimate: float,
    edge_noise_amp: float,
    rng: LCG,
) -> int:
    """Lower cells inside one lake basin. Never raises a cell.

    Edge noise is drawn once per cell inside the basin in row-major order.

    Returns:
        Number of cells lowered.
    """
    height, width = elevation.shape

    y_min = max(0, math.floor(lake.cy - lake.radius_y * 2))
    y_max = min(height - 1, math.ceil(lake.cy + lake.radius_y * 2))
    x_min = max(0, math.floor(lake.cx - lake.radius_x * 2))
    x_max = min(width - 1, math.ceil(lake.cx + lake.radius_x * 2))
    if y_min > y_max or x_min > x_max:
        return 0

    ys, xs = np.mgrid[y_min : y_max + 1, x_min : x_max + 1]
    dist = superellipse_distance(
        (xs - lake.cx).astype(np.float64),
        (ys - lake.cy).astype(np.float64),
        lake.radius_x,
        lake.radius_y,
        squareness,
    )

    inside = dist < 1.0
    count = int(inside.sum())
    if count == 0:
        return 0

    # 1.0 at the center, 0.0 at the shore
    falloff = np.cos(dist[inside] * math.pi / 2)
    edge_noise = (rng.next_array(count) - 0.5) * edge_noise_amp
    depth_below = lake.depth * np.maximum(0.0, falloff + edge_noise)
    target = np.maximum(0.0, sea_level_estimate - depth_below)

    window = elevation[y_min : y_max + 1, x_min : x_max + 1]
    current = window[inside]
    lower = current > target
    current[lower] = target[lower]
    window[inside] = current

    return int(lower.sum())
