"""Sea level solving for exact water coverage.

The sea level is the ``p/100`` quantile of the height distribution, so
coverage is a closed-form property of the field rather than the result of
an iterative search.
"""

from dataclasses import dataclass
from enum import Enum

import numpy as np
import structlog
from numpy.typing import NDArray
from structlog.typing import FilteringBoundLogger

from .exceptions import InvalidFieldError

logger = structlog.get_logger()

# Heights within this distance of sea level count as water when validating
AT_SEA_LEVEL_TOLERANCE = 0.001


class SolveMethod(str, Enum):
    """Branch taken by the sea level solver."""

    ZERO_RAISE = "zero_raise"
    FULL_COVER = "full_cover"
    QUANTILE = "quantile"


@dataclass(frozen=True)
class SeaLevelResult:
    sea_level: float
    actual_percentage: float
    cells_below: int
    raised: int
    method: SolveMethod


@dataclass(frozen=True)
class CoverageValidation:
    """Re-measured water coverage against a target."""

    passed: bool
    target_percentage: float
    actual_percentage: float
    error: float
    tolerance: float
    cells_below: int
    cells_at: int
    total_water_cells: int
    total_cells: int


@dataclass(frozen=True)
class HeightHistogram:
    bins: NDArray[np.int64]
    cdf_percent: NDArray[np.float64]
    bin_width: float
    min_height: float
    max_height: float

    @property
    def bin_count(self) -> int:
        return len(self.bins)


@dataclass(frozen=True)
class TerrainStats:
    min: float
    max: float
    mean: float
    std: float
    variance: float
    range: float


def _check_field(elevation: NDArray[np.float64]) -> None:
    if elevation.size == 0:
        raise InvalidFieldError("Height field is empty")
    if not np.all(np.isfinite(elevation)):
        raise InvalidFieldError("Height field contains non-finite values")


def find_quantile(data: NDArray[np.float64], q: float) -> float:
    """Quantile by linear interpolation between order statistics.

    Args:
        data: Values in any shape.
        q: Quantile in [0, 1].

    Returns:
        The interpolated value, or 0.0 for empty data.

    Raises:
        ValueError: If ``q`` is outside [0, 1].
    """
    if q < 0 or q > 1:
        raise ValueError(f"Quantile must be between 0 and 1, got {q}")
    if data.size == 0:
        return 0.0

    ordered = np.sort(data, axis=None)
    if q == 0:
        return float(ordered[0])
    if q == 1:
        return float(ordered[-1])

    position = q * (ordered.size - 1)
    lower = int(np.floor(position))
    upper = int(np.ceil(position))
    weight = position - lower
    return float(ordered[lower] * (1 - weight) + ordered[upper] * weight)


def solve_sea_level(
    elevation: NDArray[np.float64],
    percentage: float,
    epsilon: float = 0.01,
    log: FilteringBoundLogger | None = None,
) -> SeaLevelResult:
    """Solve the sea level giving ``percentage`` water coverage.

    For a 0% target every cell below ``min + epsilon`` is raised to that
    floor in place, so no cell sits at or below the returned sea level.

    Args:
        elevation: Heights in meters. Modified in place for a 0% target.
        percentage: Target water coverage in [0, 100].
        epsilon: Margin in meters for the 0% and 100% branches.
        log: Optional structlog logger.

    Returns:
        SeaLevelResult with the solved level and the branch taken.

    Raises:
        InvalidFieldError: If the field is empty or not finite.
    """
    log = log or logger
    _check_field(elevation)
    total = elevation.size

    if percentage <= 0:
        low = float(elevation.min())
        raised = raise_terrain_above(elevation, low, epsilon)
        result = SeaLevelResult(low - epsilon, 0.0, 0, raised, SolveMethod.ZERO_RAISE)
        log.info(
            "sea_level_solved",
            method=result.method.value,
            sea_level=result.sea_level,
            raised=raised,
        )
        return result

    if percentage >= 100:
        result = SeaLevelResult(
            float(elevation.max()) + epsilon, 100.0, total, 0, SolveMethod.FULL_COVER
        )
        log.info("sea_level_solved", method=result.method.value, sea_level=result.sea_level)
        return result

    sea_level = find_quantile(elevation, percentage / 100)
    cells_below = int(np.count_nonzero(elevation <= sea_level))
    result = SeaLevelResult(
        sea_level=sea_level,
        actual_percentage=cells_below / total * 100,
        cells_below=cells_below,
        raised=0,
        method=SolveMethod.QUANTILE,
    )
    log.info(
        "sea_level_solved",
        method=result.method.value,
        sea_level=sea_level,
        target=percentage,
        actual=result.actual_percentage,
    )
    return result


def validate_water_coverage(
    elevation: NDArray[np.float64],
    sea_level: float,
    target: float,
    tolerance: float = 0.1,
) -> CoverageValidation:
    """Re-measure coverage: cells strictly below plus cells at sea level."""
    below = elevation < sea_level
    at = ~below & (np.abs(elevation - sea_level) < AT_SEA_LEVEL_TOLERANCE)

    cells_below = int(np.count_nonzero(below))
    cells_at = int(np.count_nonzero(at))
    water = cells_below + cells_at
    actual = water / elevation.size * 100 if elevation.size else 0.0
    error = abs(actual - target)

    return CoverageValidation(
        passed=error <= tolerance,
        target_percentage=target,
        actual_percentage=actual,
        error=error,
        tolerance=tolerance,
        cells_below=cells_below,
        cells_at=cells_at,
        total_water_cells=water,
        total_cells=int(elevation.size),
    )


def raise_terrain_above(
    elevation: NDArray[np.float64],
    sea_level: float,
    epsilon: float = 0.01,
) -> int:
    """Raise every cell below ``sea_level + epsilon`` to that height, in place.

    Returns:
        Number of cells raised.
    """
    floor = sea_level + epsilon
    low = elevation < floor
    elevation[low] = floor
    return int(np.count_nonzero(low))


def height_histogram(
    elevation: NDArray[np.float64],
    bins: int = 100,
    min_height: float | None = None,
    max_height: float | None = None,
) -> HeightHistogram:
    """Histogram and cumulative percentage of heights.

    Values at the top edge fall into the last bin.
    """
    _check_field(elevation)
    low = float(elevation.min()) if min_height is None else min_height
    high = float(elevation.max()) if max_height is None else max_height
    bin_width = (high - low) / bins

    if bin_width > 0:
        index = np.floor((elevation.ravel() - low) / bin_width).astype(np.int64)
    else:
        index = np.zeros(elevation.size, dtype=np.int64)
    index = np.clip(index, 0, bins - 1)

    counts = np.bincount(index, minlength=bins).astype(np.int64)
    cdf_percent = np.cumsum(counts) / elevation.size * 100

    return HeightHistogram(counts, cdf_percent, bin_width, low, high)


def sea_level_from_histogram(histogram: HeightHistogram, percentage: float) -> float:
    """Approximate sea level from a histogram, interpolating within a bin.

    Cheaper than an exact solve when many targets are queried against one
    field.
    """
    reached = np.nonzero(histogram.cdf_percent >= percentage)[0]
    if reached.size == 0:
        return histogram.max_height

    i = int(reached[0])
    bin_start = histogram.min_height + i * histogram.bin_width
    if i == 0:
        return bin_start

    previous = float(histogram.cdf_percent[i - 1])
    span = float(histogram.cdf_percent[i]) - previous
    weight = (percentage - previous) / span if span > 0 else 0.0
    return bin_start + weight * histogram.bin_width


def terrain_stats(elevation: NDArray[np.float64]) -> TerrainStats:
    _check_field(elevation)
    low = float(elevation.min())
    high = float(elevation.max())
    variance = float(elevation.var())
    return TerrainStats(
        min=low,
        max=high,
        mean=float(elevation.mean()),
        std=float(np.sqrt(variance)),
        variance=variance,
        range=high - low,
    )
