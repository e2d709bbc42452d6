"""Tree placement: Poisson candidates on suitable land, scored and trimmed
to an exact count.
"""

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
import structlog
from numpy.typing import NDArray
from scipy.ndimage import map_coordinates
from structlog.typing import FilteringBoundLogger

from .config import TerrainConfig
from .poisson import poisson_disk_sample
from .rng import LCG
from .slope import SuitabilityConstraints, SuitabilityMask, build_suitability, compute_slopes

if TYPE_CHECKING:
    from .generator import TerrainData

logger = structlog.get_logger()

HEIGHT_SCORE_WEIGHT = 0.7
RANDOM_SCORE_WEIGHT = 0.3


@dataclass(frozen=True)
class TreePlacement:
    """A tree at world position (x, z) with its sampled terrain height."""

    x: float
    z: float
    height: float


@dataclass(frozen=True)
class SafetyFilterResult:
    kept: list[TreePlacement]
    removed_water: int = 0
    removed_beach: int = 0
    removed_high: int = 0

    @property
    def removed(self) -> int:
        return self.removed_water + self.removed_beach + self.removed_high


@dataclass(frozen=True)
class PlacementReport:
    """Outcome of one tree placement run."""

    placements: list[TreePlacement]
    target_count: int = 0
    candidates: int = 0
    suitable_cells: int = 0
    relaxed: bool = False
    sampler_invoked: bool = False
    removed_water: int = 0
    removed_beach: int = 0
    removed_high: int = 0
    constraints: SuitabilityConstraints | None = None

    @property
    def count(self) -> int:
        return len(self.placements)


def strict_constraints(config: TerrainConfig) -> SuitabilityConstraints:
    return SuitabilityConstraints(
        beach_buffer=config.tree_beach_buffer,
        max_height=config.tree_max_height,
        max_slope=config.tree_max_slope,
    )


def relaxed_constraints(config: TerrainConfig) -> SuitabilityConstraints:
    """Wider bounds used once when the strict mask is empty.

    The relaxed thresholds never tighten the strict ones.
    """
    return SuitabilityConstraints(
        beach_buffer=min(config.tree_beach_buffer, config.tree_relaxed_beach_buffer),
        max_height=config.tree_max_height,
        max_slope=max(config.tree_max_slope, config.tree_relaxed_max_slope),
    )


def sample_heights(
    elevation: NDArray[np.float64],
    xs: NDArray[np.float64],
    zs: NDArray[np.float64],
    cell_size: float = 1.0,
) -> NDArray[np.float64]:
    """Bilinear height at world positions, clamped to the grid edges."""
    coords = np.vstack([np.asarray(zs, dtype=np.float64), np.asarray(xs, dtype=np.float64)])
    return map_coordinates(elevation, coords / cell_size, order=1, mode="nearest")


def validate_tree_positions(
    placements: list[TreePlacement],
    elevation: NDArray[np.float64],
    sea_level: float,
    beach_buffer: float,
    max_height: float,
    cell_size: float = 1.0,
) -> SafetyFilterResult:
    """Drop placements in water, in the beach band, or at the alpine limit.

    Heights are re-sampled from ``elevation``; kept placements carry the
    re-sampled value. Placements are never moved.
    """
    if not placements:
        return SafetyFilterResult([])

    xs = np.array([p.x for p in placements])
    zs = np.array([p.z for p in placements])
    heights = sample_heights(elevation, xs, zs, cell_size)

    kept = []
    removed_water = removed_beach = removed_high = 0
    for placement, h in zip(placements, heights.tolist()):
        if h <= sea_level:
            removed_water += 1
        elif h <= sea_level + beach_buffer:
            removed_beach += 1
        elif h >= max_height:
            removed_high += 1
        else:
            kept.append(TreePlacement(placement.x, placement.z, h))

    return SafetyFilterResult(kept, removed_water, removed_beach, removed_high)


def _rank_candidates(
    heights: NDArray[np.float64],
    rng: LCG,
    preferred_height: float,
) -> NDArray[np.int64]:
    """Candidate indices, best score first. Equal scores fall back to the random term."""
    random_term = rng.next_array(len(heights))
    height_term = 1.0 - np.abs(heights - preferred_height) / preferred_height
    score = HEIGHT_SCORE_WEIGHT * height_term + RANDOM_SCORE_WEIGHT * random_term
    return np.lexsort((-random_term, -score))


def select_tree_positions(
    terrain: "TerrainData",
    config: TerrainConfig,
    rng: LCG,
    log: FilteringBoundLogger | None = None,
) -> PlacementReport:
    """Select tree positions on a generated terrain.

    Args:
        terrain: Generated terrain (elevation, sea level, cell size).
        config: Generation configuration.
        rng: Trees stream. Must not be shared with the terrain run.
        log: Optional structlog logger.

    Returns:
        PlacementReport with the final placements and diagnostics.
    """
    log = log or logger

    if config.forest_percentage <= 0:
        log.info("trees_skipped", reason="no_forest")
        return PlacementReport([])

    elevation = terrain.elevation
    cell_size = terrain.cell_size
    height, width = elevation.shape

    slopes = compute_slopes(elevation, cell_size)
    mask: SuitabilityMask = build_suitability(
        elevation,
        slopes,
        terrain.sea_level,
        strict_constraints(config),
        relaxed_constraints(config),
        cell_size=cell_size,
        log=log,
    )
    suitable = mask.suitable_cells
    if suitable == 0:
        log.warning("no_suitable_land", relaxed=mask.relaxed)
        return PlacementReport([], relaxed=mask.relaxed, constraints=mask.constraints)

    target = math.floor(suitable * config.forest_percentage / 100 / config.tree_cells_per_tree)
    if target == 0:
        log.info("trees_skipped", reason="zero_target", suitable=suitable)
        return PlacementReport(
            [], suitable_cells=suitable, relaxed=mask.relaxed, constraints=mask.constraints
        )

    candidates = poisson_disk_sample(
        width * cell_size,
        height * cell_size,
        config.tree_min_spacing,
        rng,
        config.poisson_max_attempts,
        mask,
    )
    if not candidates:
        log.warning("no_tree_candidates", target=target)
        return PlacementReport(
            [],
            target_count=target,
            suitable_cells=suitable,
            relaxed=mask.relaxed,
            sampler_invoked=True,
            constraints=mask.constraints,
        )

    xs = np.array([c.x for c in candidates])
    zs = np.array([c.y for c in candidates])
    heights = sample_heights(elevation, xs, zs, cell_size)

    if len(candidates) <= target:
        chosen = np.arange(len(candidates))
    else:
        chosen = _rank_candidates(heights, rng, config.tree_preferred_height)[:target]

    selected = [
        TreePlacement(float(xs[i]), float(zs[i]), float(heights[i])) for i in chosen.tolist()
    ]
    safety = validate_tree_positions(
        selected,
        elevation,
        terrain.sea_level,
        mask.constraints.beach_buffer,
        mask.constraints.max_height,
        cell_size,
    )

    report = PlacementReport(
        placements=safety.kept,
        target_count=target,
        candidates=len(candidates),
        suitable_cells=suitable,
        relaxed=mask.relaxed,
        sampler_invoked=True,
        removed_water=safety.removed_water,
        removed_beach=safety.removed_beach,
        removed_high=safety.removed_high,
        constraints=mask.constraints,
    )
    log.info(
        "trees_placed",
        count=report.count,
        target=target,
        candidates=report.candidates,
        removed=safety.removed,
        relaxed=mask.relaxed,
    )
    return report


def place_trees(
    terrain: "TerrainData",
    config: TerrainConfig,
    rng: LCG,
    log: FilteringBoundLogger | None = None,
) -> list[TreePlacement]:
    """Tree positions for a generated terrain. See select_tree_positions."""
    return select_tree_positions(terrain, config, rng, log).placements
