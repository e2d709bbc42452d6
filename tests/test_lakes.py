"""Tests for lake carving."""

import numpy as np
import pytest

from terragen.config import TerrainConfig
from terragen.lakes import (
    Lake,
    carve_lake,
    carve_lakes,
    estimate_lake_count,
    superellipse_distance,
)
from terragen.rng import LCG


def _lake_config(**overrides) -> TerrainConfig:
    return TerrainConfig(map_width=64, map_height=64, **overrides)


class TestEstimateLakeCount:
    """Tests for the lake count estimate."""

    def test_rounds_up(self) -> None:
        """Partial lakes count as a whole lake."""
        assert estimate_lake_count(100, 10.0) == 2

    def test_zero_target(self) -> None:
        """No water needs no lakes."""
        assert estimate_lake_count(0, 10.0) == 0


class TestSuperellipseDistance:
    """Tests for the shape metric."""

    def test_boundary_is_one(self) -> None:
        """Points on an axis at the radius are on the boundary."""
        d = superellipse_distance(np.array([4.0, 0.0]), np.array([0.0, 2.0]), 4.0, 2.0, 2.0)
        np.testing.assert_allclose(d, [1.0, 1.0])

    def test_high_exponent_is_squarer(self) -> None:
        """A diagonal point outside the ellipse is inside the squarer shape."""
        dx = np.array([0.9 * 5])
        dy = np.array([0.9 * 5])
        assert superellipse_distance(dx, dy, 5.0, 5.0, 2.0)[0] > 1.0
        assert superellipse_distance(dx, dy, 5.0, 5.0, 8.0)[0] < 1.0


class TestCarveLake:
    """Tests for a single basin."""

    def test_center_depth(self) -> None:
        """Without edge noise the center sits a full depth below the estimate."""
        elevation = np.ones((21, 21))
        lake = Lake(cx=10, cy=10, radius_x=5.0, radius_y=5.0, depth=0.1)
        carve_lake(elevation, lake, 2.0, 0.35, 0.0, LCG(1))
        assert elevation[10, 10] == pytest.approx(0.25)

    def test_outside_untouched(self) -> None:
        """Cells beyond the radius keep their height."""
        elevation = np.ones((21, 21))
        lake = Lake(cx=10, cy=10, radius_x=5.0, radius_y=5.0, depth=0.1)
        carve_lake(elevation, lake, 2.0, 0.35, 0.0, LCG(1))
        assert elevation[10, 16] == 1.0
        assert elevation[0, 0] == 1.0

    def test_never_raises(self) -> None:
        """Cells already below the basin floor are not raised."""
        elevation = np.zeros((21, 21))
        lake = Lake(cx=10, cy=10, radius_x=5.0, radius_y=5.0, depth=0.1)
        lowered = carve_lake(elevation, lake, 2.0, 0.35, 0.15, LCG(1))
        assert lowered == 0
        np.testing.assert_array_equal(elevation, 0.0)

    def test_clipped_at_border(self) -> None:
        """A lake at the map corner carves only in-bounds cells."""
        elevation = np.ones((10, 10))
        lake = Lake(cx=0, cy=0, radius_x=4.0, radius_y=4.0, depth=0.1)
        lowered = carve_lake(elevation, lake, 2.0, 0.35, 0.0, LCG(1))
        assert lowered > 0
        assert elevation[0, 0] < 0.35


class TestCarveLakes:
    """Tests for the lake carving phase."""

    def test_no_water_no_change(self) -> None:
        """A 0% water target leaves the field alone."""
        elevation = np.full((64, 64), 0.8)
        report = carve_lakes(elevation, LCG(1), _lake_config(water_percentage=0))
        assert report.count == 0
        np.testing.assert_array_equal(elevation, 0.8)

    def test_only_lowers(self) -> None:
        """Carving never raises a cell and never goes below zero."""
        rng = np.random.default_rng(0)
        elevation = rng.uniform(0.3, 1.0, size=(64, 64))
        before = elevation.copy()
        carve_lakes(elevation, LCG(2), _lake_config())
        assert np.all(elevation <= before)
        assert elevation.min() >= 0.0

    def test_carves_below_estimate(self) -> None:
        """Carved basins drop below the sea level estimate."""
        elevation = np.full((64, 64), 0.8)
        report = carve_lakes(elevation, LCG(3), _lake_config())
        assert report.count > 0
        assert report.cells_carved > 0
        assert (elevation < 0.35).any()

    def test_count_capped_by_estimate(self) -> None:
        """No more lakes than the estimate are carved."""
        elevation = np.full((64, 64), 0.8)
        report = carve_lakes(elevation, LCG(4), _lake_config())
        assert report.count <= report.estimated_count
        assert report.centers_sampled >= report.count

    def test_depths_in_range(self) -> None:
        """Lake depths fall inside the configured range."""
        config = _lake_config(lake_depth_min=0.05, lake_depth_max=0.1)
        report = carve_lakes(np.full((64, 64), 0.8), LCG(5), config)
        for lake in report.lakes:
            assert 0.05 <= lake.depth <= 0.1

    def test_deterministic(self) -> None:
        """Same stream seed carves the same lakes."""
        a = np.full((64, 64), 0.8)
        b = np.full((64, 64), 0.8)
        carve_lakes(a, LCG(6), _lake_config())
        carve_lakes(b, LCG(6), _lake_config())
        np.testing.assert_array_equal(a, b)
