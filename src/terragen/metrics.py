"""Post-generation metrics and invariant checks.

Each check produces an immutable MetricsReport. Reports from separate
phases are merged rather than accumulated into shared state, and a failed
invariant is reported, not raised, unless the caller asks for it.
"""

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np
import structlog
from scipy.spatial import cKDTree
from structlog.typing import FilteringBoundLogger

from .config import TerrainConfig
from .exceptions import InvariantViolationError
from .sea_level import terrain_stats, validate_water_coverage
from .slope import SuitabilityConstraints, compute_slopes
from .trees import TreePlacement, sample_heights, strict_constraints

if TYPE_CHECKING:
    from .generator import TerrainData

logger = structlog.get_logger()

# Floating point slack for spacing checks
SPACING_TOLERANCE = 1e-3


@dataclass(frozen=True)
class MetricsReport:
    """Measured values plus named boolean invariants."""

    metrics: dict[str, float] = field(default_factory=dict)
    invariants: dict[str, bool] = field(default_factory=dict)

    @property
    def passed(self) -> bool:
        return all(self.invariants.values())

    @property
    def failed(self) -> list[str]:
        return [name for name, ok in self.invariants.items() if not ok]

    def merged(self, other: "MetricsReport") -> "MetricsReport":
        """New report with both reports' entries; ``other`` wins on name clashes."""
        return MetricsReport(
            metrics={**self.metrics, **other.metrics},
            invariants={**self.invariants, **other.invariants},
        )

    def raise_for_violations(self) -> None:
        """Raise InvariantViolationError if any invariant failed."""
        failed = self.failed
        if failed:
            raise InvariantViolationError(failed)


def validate_terrain(
    elevation: np.ndarray,
    sea_level: float,
    config: TerrainConfig,
    log: FilteringBoundLogger | None = None,
) -> MetricsReport:
    """Measure water coverage and height statistics of a generated field.

    Args:
        elevation: Final heights in meters.
        sea_level: Solved sea level in meters.
        config: Generation configuration.
        log: Optional structlog logger.

    Returns:
        MetricsReport with water and height metrics and the
        ``water_coverage_within_tolerance``, ``heights_within_bounds`` and
        ``sea_level_within_bounds`` invariants.
    """
    log = log or logger
    coverage = validate_water_coverage(
        elevation, sea_level, config.water_percentage, config.water_tolerance
    )
    stats = terrain_stats(elevation)
    scale = config.elevation_scale

    report = MetricsReport(
        metrics={
            "water_target": config.water_percentage,
            "water_actual": coverage.actual_percentage,
            "water_error": coverage.error,
            "water_tolerance": config.water_tolerance,
            "height_min": stats.min,
            "height_max": stats.max,
            "height_mean": stats.mean,
            "height_variance": stats.variance,
            "height_std": stats.std,
            "sea_level": sea_level,
        },
        invariants={
            "water_coverage_within_tolerance": coverage.passed,
            "heights_within_bounds": stats.min >= 0 and stats.max <= scale,
            "sea_level_within_bounds": 0 <= sea_level <= scale,
        },
    )

    if report.passed:
        log.info("terrain_validated", water_actual=coverage.actual_percentage)
    else:
        log.warning("terrain_invariants_failed", failed=report.failed)
    return report


def tree_metrics(
    placements: list[TreePlacement],
    width: int,
    height: int,
    cells_per_tree: float = 3,
) -> dict[str, float]:
    """Count, coverage, mean height and nearest-neighbor spacing of trees.

    Coverage assumes each tree covers ``cells_per_tree`` cells.
    """
    if not placements:
        return {"count": 0, "coverage": 0.0, "mean_height": 0.0, "min_spacing": 0.0}

    coords = np.array([(p.x, p.z) for p in placements], dtype=np.float64)
    if len(placements) > 1:
        distances, _ = cKDTree(coords).query(coords, k=2)
        min_spacing = float(distances[:, 1].min())
    else:
        min_spacing = 0.0

    return {
        "count": len(placements),
        "coverage": len(placements) * cells_per_tree / (width * height) * 100,
        "mean_height": float(np.mean([p.height for p in placements])),
        "min_spacing": min_spacing,
    }


def validate_forest(
    placements: list[TreePlacement],
    terrain: "TerrainData",
    config: TerrainConfig,
    constraints: SuitabilityConstraints | None = None,
    log: FilteringBoundLogger | None = None,
) -> MetricsReport:
    """Check tree placements against the placement constraints.

    Args:
        placements: Placed trees.
        terrain: Terrain the trees were placed on.
        config: Generation configuration.
        constraints: Constraints to check against. Defaults to the strict
            tree constraints from ``config``; pass the relaxed ones when the
            placement ran relaxed.
        log: Optional structlog logger.

    Returns:
        MetricsReport with ``tree_*`` metrics and the ``trees_above_beach``,
        ``trees_below_max_height``, ``trees_on_gentle_slopes`` and
        ``trees_min_spacing`` invariants.
    """
    log = log or logger
    constraints = constraints or strict_constraints(config)
    stats = tree_metrics(placements, terrain.width, terrain.height, config.tree_cells_per_tree)
    metrics = {f"tree_{name}": float(value) for name, value in stats.items()}

    if not placements:
        return MetricsReport(
            metrics=metrics,
            invariants={
                "trees_above_beach": True,
                "trees_below_max_height": True,
                "trees_on_gentle_slopes": True,
                "trees_min_spacing": True,
            },
        )

    cell_size = terrain.cell_size
    xs = np.array([p.x for p in placements])
    zs = np.array([p.z for p in placements])
    heights = sample_heights(terrain.elevation, xs, zs, cell_size)

    slopes = compute_slopes(terrain.elevation, cell_size)
    rows, cols = slopes.shape
    gx = np.clip(np.floor(xs / cell_size).astype(np.int64), 0, cols - 1)
    gz = np.clip(np.floor(zs / cell_size).astype(np.int64), 0, rows - 1)

    min_spacing = stats["min_spacing"] if len(placements) > 1 else math.inf
    report = MetricsReport(
        metrics=metrics,
        invariants={
            "trees_above_beach": bool(
                np.all(heights > terrain.sea_level + constraints.beach_buffer)
            ),
            "trees_below_max_height": bool(np.all(heights < constraints.max_height)),
            "trees_on_gentle_slopes": bool(np.all(slopes[gz, gx] < constraints.max_slope)),
            "trees_min_spacing": min_spacing >= config.tree_min_spacing - SPACING_TOLERANCE,
        },
    )

    if not report.passed:
        log.warning("forest_invariants_failed", failed=report.failed)
    return report
