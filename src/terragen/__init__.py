"""Deterministic procedural terrain generation.

Seeded noise elevation with lakes, erosion and an exactly solved sea
level, plus constrained tree placement and post-generation metrics.
"""

from .biomes import BiomeType
from .config import NoiseBandConfig, TerrainConfig, load_config
from .exceptions import InvalidFieldError, InvariantViolationError, TerrainError
from .generator import TerrainData, generate, tree_stream
from .metrics import MetricsReport, validate_forest, validate_terrain
from .rng import LCG, SeedStreams, hash_seed
from .sea_level import SeaLevelResult, solve_sea_level
from .trees import PlacementReport, TreePlacement, place_trees, select_tree_positions

__all__ = [
    "BiomeType",
    "InvalidFieldError",
    "InvariantViolationError",
    "LCG",
    "MetricsReport",
    "NoiseBandConfig",
    "PlacementReport",
    "SeaLevelResult",
    "SeedStreams",
    "TerrainConfig",
    "TerrainData",
    "TerrainError",
    "TreePlacement",
    "generate",
    "hash_seed",
    "load_config",
    "place_trees",
    "select_tree_positions",
    "solve_sea_level",
    "tree_stream",
    "validate_forest",
    "validate_terrain",
]
