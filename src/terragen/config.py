"""Terrain generation configuration models."""

import tomllib
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, model_validator


class NoiseBandConfig(BaseModel):
    """Noise parameters for a single fBm band."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    octaves: int = Field(default=3, ge=1, description="Number of octaves")
    frequency: float = Field(default=0.01, gt=0, description="Base frequency per cell")
    gain: float = Field(default=0.4, ge=0, description="Amplitude multiplier per octave")
    lacunarity: float = Field(default=2.0, gt=0, description="Frequency multiplier per octave")
    amplitude: float = Field(default=1.0, ge=0, description="Weight of this band in the sum")


class TerrainConfig(BaseModel):
    """Complete terrain generation configuration.

    Field names are snake_case; the upper-case names used by map files
    (``SEED``, ``MAP_WIDTH``, ...) are accepted as aliases.
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        allow_inf_nan=False,
        extra="ignore",
    )

    seed: int = Field(default=12345, alias="SEED", description="Master seed")
    map_width: int = Field(default=128, gt=0, alias="MAP_WIDTH", description="Width in cells")
    map_height: int = Field(default=128, gt=0, alias="MAP_HEIGHT", description="Height in cells")
    cell_size: float = Field(default=1.0, gt=0, alias="CELL_SIZE", description="Cell size in meters")

    # Elevation
    elevation_scale: float = Field(
        default=80.0, gt=0, alias="ELEVATION_SCALE", description="Peak height in meters"
    )
    elevation_curve: str = Field(
        default="SHARP_ALPS", alias="ELEVATION_CURVE", description="Elevation curve preset"
    )
    contrast_exponent: float = Field(
        default=0.9, gt=0, alias="CONTRAST_EXPONENT", description="Power applied before the curve"
    )
    noise_macro: NoiseBandConfig = Field(
        default_factory=lambda: NoiseBandConfig(
            octaves=2, frequency=0.003, gain=0.6, lacunarity=2.0, amplitude=0.45
        ),
        alias="NOISE_MACRO",
    )
    noise_meso: NoiseBandConfig = Field(
        default_factory=lambda: NoiseBandConfig(
            octaves=3, frequency=0.01, gain=0.4, lacunarity=2.0, amplitude=0.45
        ),
        alias="NOISE_MESO",
    )
    noise_micro: NoiseBandConfig = Field(
        default_factory=lambda: NoiseBandConfig(
            octaves=4, frequency=0.04, gain=0.35, lacunarity=2.0, amplitude=0.20
        ),
        alias="NOISE_MICRO",
    )

    # Water
    sea_level_estimate: float = Field(
        default=0.35,
        ge=0,
        le=1,
        alias="SEA_LEVEL",
        description="Normalized sea level estimate used before the exact solve",
    )
    water_percentage: float = Field(
        default=15.0, ge=0, le=100, alias="WATER_PERCENTAGE", description="Target water coverage"
    )
    water_epsilon: float = Field(
        default=0.01, gt=0, alias="WATER_EPSILON", description="Meters around sea level for 0%/100%"
    )
    water_tolerance: float = Field(
        default=0.1, ge=0, alias="WATER_TOLERANCE", description="Allowed error in percentage points"
    )

    # Lakes
    lake_min_spacing: float = Field(
        default=15.0, gt=0, alias="LAKE_MIN_SPACING", description="Min distance between lake centers"
    )
    lake_depth_min: float = Field(
        default=0.05, ge=0, alias="LAKE_DEPTH_MIN", description="Min normalized depth below sea level"
    )
    lake_depth_max: float = Field(
        default=0.15, ge=0, alias="LAKE_DEPTH_MAX", description="Max normalized depth below sea level"
    )
    lake_shape_squareness: float = Field(
        default=2.0, gt=0, alias="LAKE_SHAPE_SQUARENESS", description="Superellipse exponent"
    )
    lake_edge_noise_amp: float = Field(
        default=0.15, ge=0, alias="LAKE_EDGE_NOISE_AMP", description="Shoreline noise amplitude"
    )

    # Erosion
    erosion_iterations: int = Field(default=20, ge=0, alias="EROSION_ITERATIONS")
    erosion_strength: float = Field(default=0.15, ge=0, alias="EROSION_STRENGTH")
    erosion_droplet_count: int = Field(
        default=5000, ge=0, alias="EROSION_DROPLET_COUNT", description="Stratified rainfall droplets"
    )
    thermal_iterations: int = Field(default=3, ge=0, alias="THERMAL_ITERATIONS")
    thermal_threshold: float = Field(
        default=0.05, gt=0, alias="THERMAL_THRESHOLD", description="Normalized talus threshold"
    )

    # Forest
    forest_percentage: float = Field(
        default=25.0, ge=0, le=100, alias="FOREST_PERCENTAGE", description="Share of suitable land"
    )
    tree_min_spacing: float = Field(
        default=3.0, gt=0, alias="TREE_MIN_SPACING", description="Min distance between trees (m)"
    )
    tree_max_height: float = Field(
        default=60.0, alias="TREE_MAX_HEIGHT", description="Alpine limit in meters"
    )
    tree_max_slope: float = Field(
        default=35.0, gt=0, alias="TREE_MAX_SLOPE", description="Max slope in degrees"
    )
    tree_beach_buffer: float = Field(
        default=2.0, ge=0, alias="TREE_BEACH_BUFFER", description="Meters above sea level"
    )
    tree_cells_per_tree: float = Field(
        default=3.0, gt=0, alias="TREE_CELLS_PER_TREE", description="Cells covered by one tree"
    )
    tree_preferred_height: float = Field(
        default=25.0, gt=0, alias="TREE_PREFERRED_HEIGHT", description="Favoured elevation (m)"
    )
    tree_relaxed_beach_buffer: float = Field(
        default=1.0, ge=0, alias="TREE_RELAXED_BEACH_BUFFER"
    )
    tree_relaxed_max_slope: float = Field(default=45.0, gt=0, alias="TREE_RELAXED_MAX_SLOPE")
    poisson_max_attempts: int = Field(default=30, ge=1, alias="POISSON_MAX_ATTEMPTS")

    # Climate
    noise_moisture: NoiseBandConfig = Field(
        default_factory=lambda: NoiseBandConfig(
            octaves=2, frequency=0.015, gain=0.3, lacunarity=2.0
        ),
        alias="NOISE_MOIST",
    )
    noise_temperature: NoiseBandConfig = Field(
        default_factory=lambda: NoiseBandConfig(
            octaves=2, frequency=0.008, gain=0.4, lacunarity=2.0
        ),
        alias="NOISE_TEMP",
    )
    temp_lapse_rate: float = Field(
        default=-0.006, alias="TEMP_LAPSE_RATE", description="Temperature change per meter"
    )
    temp_latitude_effect: float = Field(
        default=0.3, ge=0, alias="TEMP_LATITUDE_EFFECT", description="North-south gradient"
    )

    @model_validator(mode="after")
    def _check_ranges(self) -> "TerrainConfig":
        if self.lake_depth_min > self.lake_depth_max:
            raise ValueError(
                f"lake_depth_min ({self.lake_depth_min}) exceeds "
                f"lake_depth_max ({self.lake_depth_max})"
            )
        return self

    @property
    def noise_bands(self) -> tuple[NoiseBandConfig, NoiseBandConfig, NoiseBandConfig]:
        """Terrain bands in composition order (macro, meso, micro)."""
        return (self.noise_macro, self.noise_meso, self.noise_micro)

    @property
    def world_width(self) -> float:
        return self.map_width * self.cell_size

    @property
    def world_height(self) -> float:
        return self.map_height * self.cell_size


def load_config(config_path: Path) -> TerrainConfig:
    """Load terrain configuration from a TOML file.

    Both snake_case keys and the upper-case map spec names are accepted.

    Args:
        config_path: Path to the TOML config file.

    Returns:
        Validated TerrainConfig.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        tomllib.TOMLDecodeError: If TOML is malformed.
        pydantic.ValidationError: If a value is out of range or non-finite.
    """
    with open(config_path, "rb") as f:
        data = tomllib.load(f)
    return TerrainConfig.model_validate(data)
