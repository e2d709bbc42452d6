"""Tests for tree placement."""

import math

import numpy as np
import pytest
from structlog.testing import capture_logs

from terragen import TerrainConfig, TerrainData, tree_stream
from terragen.rng import LCG
from terragen.slope import compute_slopes
from terragen.trees import (
    TreePlacement,
    place_trees,
    relaxed_constraints,
    sample_heights,
    select_tree_positions,
    strict_constraints,
    validate_tree_positions,
)


class TestSampleHeights:
    """Tests for bilinear height sampling."""

    def test_bilinear(self) -> None:
        elevation = np.array([[0.0, 1.0], [2.0, 3.0]])
        heights = sample_heights(elevation, np.array([0.5, 1.0]), np.array([0.5, 0.0]))
        np.testing.assert_allclose(heights, [1.5, 1.0])

    def test_clamped(self) -> None:
        """Positions past the grid edge take the edge value."""
        elevation = np.array([[0.0, 1.0], [2.0, 3.0]])
        heights = sample_heights(elevation, np.array([5.0, -1.0]), np.array([5.0, -1.0]))
        np.testing.assert_allclose(heights, [3.0, 0.0])

    def test_cell_size(self) -> None:
        """World coordinates are divided by the cell size."""
        elevation = np.array([[0.0, 4.0]])
        heights = sample_heights(elevation, np.array([1.0]), np.array([0.0]), cell_size=2.0)
        np.testing.assert_allclose(heights, [2.0])


class TestValidateTreePositions:
    """Tests for the post-placement safety filter."""

    def test_removes_unsafe(self) -> None:
        """Water, beach and alpine placements are dropped and counted."""
        elevation = np.tile([0.0, 1.0, 10.0, 70.0], (4, 1))
        placements = [TreePlacement(float(x), 1.0, 0.0) for x in range(4)]
        result = validate_tree_positions(placements, elevation, 0.0, 2.0, 60.0)
        assert result.removed_water == 1
        assert result.removed_beach == 1
        assert result.removed_high == 1
        assert result.kept == [TreePlacement(2.0, 1.0, 10.0)]

    def test_never_moves(self) -> None:
        """Kept placements keep their coordinates."""
        elevation = np.full((5, 5), 20.0)
        placements = [TreePlacement(1.25, 3.5, 0.0)]
        result = validate_tree_positions(placements, elevation, 0.0, 2.0, 60.0)
        assert (result.kept[0].x, result.kept[0].z) == (1.25, 3.5)

    def test_empty(self) -> None:
        assert validate_tree_positions([], np.ones((2, 2)), 0.0, 2.0, 60.0).kept == []


class TestConstraints:
    """Tests for the strict and relaxed thresholds."""

    def test_relaxed_is_wider(self) -> None:
        config = TerrainConfig()
        strict, relaxed = strict_constraints(config), relaxed_constraints(config)
        assert relaxed.beach_buffer == 1.0
        assert relaxed.max_slope == 45.0
        assert relaxed.beach_buffer <= strict.beach_buffer
        assert relaxed.max_slope >= strict.max_slope

    def test_relaxed_never_tightens(self) -> None:
        config = TerrainConfig(tree_beach_buffer=0.5, tree_max_slope=60.0)
        relaxed = relaxed_constraints(config)
        assert relaxed.beach_buffer == 0.5
        assert relaxed.max_slope == 60.0


class TestSelectTreePositions:
    """Tests for selection on synthetic terrain."""

    def test_zero_forest_skips_sampler(self, plateau, monkeypatch) -> None:
        """A 0% forest returns nothing without sampling."""

        def fail(*args, **kwargs):
            raise AssertionError("sampler invoked")

        monkeypatch.setattr("terragen.trees.poisson_disk_sample", fail)
        config = TerrainConfig(forest_percentage=0)
        report = select_tree_positions(plateau, config, LCG(1))
        assert report.placements == []
        assert not report.sampler_invoked
        assert place_trees(plateau, config, LCG(1)) == []

    def test_target_count(self, plateau) -> None:
        """Target is suitable cells times forest share over cells per tree."""
        config = TerrainConfig(forest_percentage=25)
        report = select_tree_positions(plateau, config, LCG(2))
        assert report.suitable_cells == 1600
        assert report.target_count == math.floor(1600 * 25 / 100 / 3)
        assert report.count <= report.target_count

    def test_trims_to_exact_target(self, plateau) -> None:
        """Surplus candidates are trimmed to exactly the target."""
        config = TerrainConfig(forest_percentage=5)
        report = select_tree_positions(plateau, config, LCG(3))
        assert report.candidates > report.target_count
        assert report.count == report.target_count == 26

    def test_spacing(self, plateau) -> None:
        """Placements keep the minimum spacing."""
        config = TerrainConfig(forest_percentage=50, tree_min_spacing=3.0)
        placements = place_trees(plateau, config, LCG(4))
        coords = np.array([(p.x, p.z) for p in placements])
        diff = coords[:, None, :] - coords[None, :, :]
        dist = np.sqrt((diff**2).sum(axis=-1))
        np.fill_diagonal(dist, np.inf)
        assert dist.min() >= 3.0 - 1e-9

    def test_deterministic(self, plateau) -> None:
        config = TerrainConfig(forest_percentage=10)
        assert place_trees(plateau, config, LCG(5)) == place_trees(plateau, config, LCG(5))

    def test_relaxation_runs(self, make_plateau) -> None:
        """Land too low for the strict buffer gets one relaxed pass."""
        terrain = make_plateau(1.5)
        config = TerrainConfig(forest_percentage=25)
        with capture_logs() as logs:
            report = select_tree_positions(terrain, config, LCG(6))
        assert report.relaxed
        assert report.constraints.beach_buffer == 1.0
        assert report.constraints.max_slope == 45.0
        assert report.count > 0
        assert "suitability_relaxed" in [entry["event"] for entry in logs]

    def test_relaxation_still_empty(self, make_plateau) -> None:
        """When even the relaxed mask is empty, nothing is placed."""
        terrain = make_plateau(0.5)
        report = select_tree_positions(terrain, TerrainConfig(), LCG(7))
        assert report.relaxed
        assert report.placements == []
        assert not report.sampler_invoked


class TestPlaceTreesOnGeneratedTerrain:
    """Tests on the default generated terrain."""

    @pytest.fixture(scope="class")
    def report(self, default_terrain: TerrainData, default_config: TerrainConfig):
        return select_tree_positions(default_terrain, default_config, tree_stream(default_config))

    def test_places_trees(self, report) -> None:
        assert report.count > 0
        assert report.count <= report.target_count

    def test_constraints_hold(self, report, default_terrain: TerrainData) -> None:
        """Every tree is above the beach band, below the alpine limit, on a gentle slope."""
        constraints = report.constraints
        slopes = compute_slopes(default_terrain.elevation, default_terrain.cell_size)
        for tree in report.placements:
            assert tree.height > default_terrain.sea_level + constraints.beach_buffer
            assert tree.height < constraints.max_height
            size = default_terrain.cell_size
            cell = slopes[int(tree.z // size), int(tree.x // size)]
            assert cell < constraints.max_slope

    def test_reproducible(self, report, default_terrain, default_config) -> None:
        again = select_tree_positions(default_terrain, default_config, tree_stream(default_config))
        assert again.placements == report.placements
