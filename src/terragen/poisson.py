"""Poisson disk sampling (Bridson) for blue-noise point sets."""

import math
from collections.abc import Callable
from typing import NamedTuple, Protocol

import numpy as np
from scipy.spatial import cKDTree

# Initial point draws before falling back to the domain center
INITIAL_POINT_ATTEMPTS = 100


class Point(NamedTuple):
    x: float
    y: float


class SuitabilityPredicate(Protocol):
    """Anything that can say whether a location accepts a sample."""

    def is_suitable(self, x: float, y: float) -> bool: ...


class _OffsetPredicate:
    """Shifts local stratum coordinates into the parent domain."""

    def __init__(self, inner: SuitabilityPredicate, offset_x: float, offset_y: float):
        self.inner = inner
        self.offset_x = offset_x
        self.offset_y = offset_y

    def is_suitable(self, x: float, y: float) -> bool:
        return self.inner.is_suitable(x + self.offset_x, y + self.offset_y)


def poisson_disk_sample(
    width: float,
    height: float,
    min_distance: float,
    rng: Callable[[], float],
    max_attempts: int = 30,
    suitability: SuitabilityPredicate | None = None,
) -> list[Point]:
    """Generate points with a guaranteed minimum spacing.

    Args:
        width: Domain width.
        height: Domain height.
        min_distance: Minimum distance between any two points.
        rng: Function returning values in [0, 1).
        max_attempts: Candidates tried around each active point.
        suitability: Optional predicate a point must satisfy.

    Returns:
        Points in acceptance order. Empty if no suitable start point exists.
    """
    if min_distance <= 0:
        raise ValueError(f"min_distance must be positive, got {min_distance}")

    cell_size = min_distance / math.sqrt(2)
    grid_width = math.ceil(width / cell_size)
    grid_height = math.ceil(height / cell_size)

    # One point per background cell at most
    grid: list[Point | None] = [None] * (grid_width * grid_height)
    samples: list[Point] = []
    active: list[Point] = []
    min_distance_sq = min_distance * min_distance

    def accepts(x: float, y: float) -> bool:
        return suitability is None or suitability.is_suitable(x, y)

    def is_valid(x: float, y: float) -> bool:
        if x < 0 or x >= width or y < 0 or y >= height:
            return False
        if not accepts(x, y):
            return False

        gx = int(x / cell_size)
        gy = int(y / cell_size)
        for ny in range(max(0, gy - 2), min(grid_height, gy + 3)):
            row = ny * grid_width
            for nx in range(max(0, gx - 2), min(grid_width, gx + 3)):
                neighbor = grid[row + nx]
                if neighbor is not None:
                    dx = x - neighbor.x
                    dy = y - neighbor.y
                    if dx * dx + dy * dy < min_distance_sq:
                        return False
        return True

    def add_point(x: float, y: float) -> None:
        point = Point(x, y)
        samples.append(point)
        active.append(point)
        gx = int(x / cell_size)
        gy = int(y / cell_size)
        if 0 <= gx < grid_width and 0 <= gy < grid_height:
            grid[gy * grid_width + gx] = point

    for _ in range(INITIAL_POINT_ATTEMPTS):
        start_x = rng() * width
        start_y = rng() * height
        if accepts(start_x, start_y):
            break
    else:
        start_x = width / 2
        start_y = height / 2
        if not accepts(start_x, start_y):
            return []

    add_point(start_x, start_y)

    while active:
        index = int(rng() * len(active))
        point = active[index]
        found = False

        for _ in range(max_attempts):
            angle = rng() * math.pi * 2
            radius = min_distance + rng() * min_distance
            new_x = point.x + math.cos(angle) * radius
            new_y = point.y + math.sin(angle) * radius

            if is_valid(new_x, new_y):
                add_point(new_x, new_y)
                found = True

        if not found:
            active.pop(index)

    return samples


def stratified_poisson_sample(
    width: float,
    height: float,
    min_distance: float,
    rng: Callable[[], float],
    strata: int = 3,
    suitability: SuitabilityPredicate | None = None,
    max_attempts: int = 30,
) -> list[Point]:
    """Sample each cell of a ``strata`` x ``strata`` grid independently.

    Gives more uniform coverage on large domains. Spacing is only
    guaranteed within a stratum; points on either side of a stratum
    boundary may be closer than ``min_distance``.
    """
    strata_width = width / strata
    strata_height = height / strata
    points: list[Point] = []

    for sy in range(strata):
        for sx in range(strata):
            offset_x = sx * strata_width
            offset_y = sy * strata_height
            local = (
                _OffsetPredicate(suitability, offset_x, offset_y)
                if suitability is not None
                else None
            )
            for p in poisson_disk_sample(
                strata_width, strata_height, min_distance, rng, max_attempts, local
            ):
                points.append(Point(p.x + offset_x, p.y + offset_y))

    return points


def validate_poisson_distribution(
    points: list[Point],
    min_distance: float,
    width: float,
    height: float,
) -> dict[str, float]:
    """Measure spacing and density of a point set.

    Returns:
        Dict with count, min_observed_distance, violations, density,
        theoretical_max_density and efficiency.
    """
    density = len(points) / (width * height)
    theoretical_max = 1.0 / (math.pi * (min_distance / 2) ** 2)

    if len(points) < 2:
        min_observed = math.inf
        violations = 0
    else:
        coords = np.asarray(points, dtype=np.float64)
        tree = cKDTree(coords)
        distances, _ = tree.query(coords, k=2)
        min_observed = float(distances[:, 1].min())
        # Small tolerance for floating point
        violations = len(tree.query_pairs(min_distance - 0.001))

    return {
        "count": len(points),
        "min_observed_distance": min_observed,
        "violations": violations,
        "density": density,
        "theoretical_max_density": theoretical_max,
        "efficiency": density / theoretical_max,
    }
