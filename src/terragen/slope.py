"""Slope, aspect and placement suitability derived from a height field."""

import math
from dataclasses import dataclass

import numpy as np
import structlog
from numpy.typing import NDArray
from scipy import ndimage
from structlog.typing import FilteringBoundLogger

logger = structlog.get_logger()

# Aspect of cells whose gradient magnitude is below FLAT_GRADIENT
FLAT_ASPECT = -1.0
FLAT_GRADIENT = 0.001


def _gradient(
    elevation: NDArray[np.float64], cell_size: float
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Central differences; a missing border neighbor is the cell itself."""
    padded = np.pad(elevation, 1, mode="edge")
    dzdx = (padded[1:-1, 2:] - padded[1:-1, :-2]) / (2 * cell_size)
    dzdy = (padded[2:, 1:-1] - padded[:-2, 1:-1]) / (2 * cell_size)
    return dzdx, dzdy


def compute_slopes(elevation: NDArray[np.float64], cell_size: float = 1.0) -> NDArray[np.float64]:
    """Slope in degrees for each cell.

    Args:
        elevation: Heights in meters.
        cell_size: Cell size in meters.

    Returns:
        Slope array, same shape as ``elevation``.
    """
    dzdx, dzdy = _gradient(elevation, cell_size)
    return np.degrees(np.arctan(np.hypot(dzdx, dzdy)))


def compute_aspects(elevation: NDArray[np.float64], cell_size: float = 1.0) -> NDArray[np.float64]:
    """Compass bearing of the gradient (0 = north, 90 = east).

    Near-flat cells get FLAT_ASPECT.
    """
    dzdx, dzdy = _gradient(elevation, cell_size)
    aspect = np.mod(90.0 - np.degrees(np.arctan2(dzdy, dzdx)), 360.0)
    return np.where(np.hypot(dzdx, dzdy) < FLAT_GRADIENT, FLAT_ASPECT, aspect)


def compute_curvature(elevation: NDArray[np.float64], cell_size: float = 1.0) -> NDArray[np.float64]:
    """Laplacian of the height field. Positive on hills, negative in valleys.

    Border cells are 0.
    """
    curvature = np.zeros_like(elevation)
    center = elevation[1:-1, 1:-1]
    d2x = elevation[1:-1, 2:] - 2 * center + elevation[1:-1, :-2]
    d2y = elevation[2:, 1:-1] - 2 * center + elevation[:-2, 1:-1]
    curvature[1:-1, 1:-1] = (d2x + d2y) / (cell_size * cell_size)
    return curvature


def find_flat_areas(
    slopes: NDArray[np.float64],
    max_slope: float = 5.0,
    min_area: int = 9,
) -> list[NDArray[np.int64]]:
    """Find 4-connected regions flatter than ``max_slope``.

    Returns:
        One array of flat cell indices per region with at least
        ``min_area`` cells, in label order.
    """
    labels, count = ndimage.label(slopes < max_slope)
    if count == 0:
        return []

    flat_labels = labels.ravel()
    sizes = np.bincount(flat_labels, minlength=count + 1)
    order = np.argsort(flat_labels, kind="stable")
    starts = np.concatenate(([0], np.cumsum(sizes)))

    regions = []
    for label in range(1, count + 1):
        if sizes[label] >= min_area:
            regions.append(order[starts[label] : starts[label + 1]])
    return regions


def slope_statistics(slopes: NDArray[np.float64]) -> dict:
    """Min, max, mean and a 1-degree histogram over [0, 90]."""
    bins = np.minimum(90, np.floor(slopes.ravel()).astype(np.int64))
    return {
        "min": float(slopes.min()),
        "max": float(slopes.max()),
        "mean": float(slopes.mean()),
        "histogram": np.bincount(bins, minlength=91).tolist(),
    }


@dataclass(frozen=True)
class SuitabilityConstraints:
    """Thresholds for placing an object on a cell.

    Attributes:
        beach_buffer: Meters a cell must sit above sea level.
        max_height: Heights at or above this are rejected (meters).
        max_slope: Slopes at or above this are rejected (degrees).
    """

    beach_buffer: float
    max_height: float
    max_slope: float


@dataclass(frozen=True)
class SuitabilityMask:
    """Boolean grid of suitable cells plus per-constraint rejection counts.

    Rejections are counted once per cell in precedence order: too low,
    then too high, then too steep.
    """

    mask: NDArray[np.bool_]
    constraints: SuitabilityConstraints
    cell_size: float = 1.0
    too_low: int = 0
    too_high: int = 0
    too_steep: int = 0
    relaxed: bool = False

    @classmethod
    def build(
        cls,
        elevation: NDArray[np.float64],
        slopes: NDArray[np.float64],
        sea_level: float,
        constraints: SuitabilityConstraints,
        cell_size: float = 1.0,
        relaxed: bool = False,
    ) -> "SuitabilityMask":
        above_beach = elevation > sea_level + constraints.beach_buffer
        below_max = elevation < constraints.max_height
        gentle = slopes < constraints.max_slope

        too_low = ~above_beach
        too_high = above_beach & ~below_max
        too_steep = above_beach & below_max & ~gentle

        return cls(
            mask=above_beach & below_max & gentle,
            constraints=constraints,
            cell_size=cell_size,
            too_low=int(np.count_nonzero(too_low)),
            too_high=int(np.count_nonzero(too_high)),
            too_steep=int(np.count_nonzero(too_steep)),
            relaxed=relaxed,
        )

    @property
    def suitable_cells(self) -> int:
        return int(np.count_nonzero(self.mask))

    @property
    def percentage(self) -> float:
        return self.suitable_cells / self.mask.size * 100

    def is_suitable(self, x: float, y: float) -> bool:
        """Check a world-space position against the cell containing it."""
        gx = math.floor(x / self.cell_size)
        gy = math.floor(y / self.cell_size)
        height, width = self.mask.shape
        if gx < 0 or gx >= width or gy < 0 or gy >= height:
            return False
        return bool(self.mask[gy, gx])


def build_suitability(
    elevation: NDArray[np.float64],
    slopes: NDArray[np.float64],
    sea_level: float,
    strict: SuitabilityConstraints,
    relaxed: SuitabilityConstraints,
    cell_size: float = 1.0,
    log: FilteringBoundLogger | None = None,
) -> SuitabilityMask:
    """Build the strict mask, relaxing once if no cell qualifies.

    Returns:
        The strict mask, or the relaxed mask (``relaxed=True``) when the
        strict one is empty. The relaxed mask may itself be empty.
    """
    log = log or logger
    mask = SuitabilityMask.build(elevation, slopes, sea_level, strict, cell_size)
    log.info(
        "suitability_built",
        suitable=mask.suitable_cells,
        too_low=mask.too_low,
        too_high=mask.too_high,
        too_steep=mask.too_steep,
    )
    if mask.suitable_cells > 0:
        return mask

    mask = SuitabilityMask.build(elevation, slopes, sea_level, relaxed, cell_size, relaxed=True)
    log.warning(
        "suitability_relaxed",
        suitable=mask.suitable_cells,
        beach_buffer=relaxed.beach_buffer,
        max_slope=relaxed.max_slope,
        max_height=relaxed.max_height,
    )
    return mask
