"""Shared test fixtures for terrain generation tests."""

from collections.abc import Callable
from types import SimpleNamespace

import numpy as np
import pytest

from terragen import TerrainConfig, TerrainData, generate


@pytest.fixture
def small_config() -> TerrainConfig:
    """48x48 map with light erosion, fast enough for per-test generation."""
    return TerrainConfig(
        seed=42,
        map_width=48,
        map_height=48,
        erosion_iterations=3,
        erosion_droplet_count=200,
    )


@pytest.fixture(scope="session")
def default_config() -> TerrainConfig:
    """SEED=12345, 128x128, 15% water."""
    return TerrainConfig()


@pytest.fixture(scope="session")
def default_terrain(default_config: TerrainConfig) -> TerrainData:
    """Terrain generated once per session from the default config."""
    return generate(default_config)


def _plateau(height_m: float, size: int = 40, sea_level: float = 0.0) -> SimpleNamespace:
    """Flat terrain at ``height_m`` meters, shaped like TerrainData."""
    return SimpleNamespace(
        elevation=np.full((size, size), height_m, dtype=np.float64),
        sea_level=sea_level,
        cell_size=1.0,
        width=size,
        height=size,
    )


@pytest.fixture
def make_plateau() -> Callable[..., SimpleNamespace]:
    """Factory for flat terrain at a given height in meters."""
    return _plateau


@pytest.fixture
def plateau() -> SimpleNamespace:
    """40x40 plateau at 20 m, sea level 0 m. Every cell suits trees."""
    return _plateau(20.0)
