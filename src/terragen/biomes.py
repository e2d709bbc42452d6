"""Biome classification and texture splat weights."""

from enum import Enum

import numpy as np
from numpy.typing import NDArray

from .config import NoiseBandConfig
from .noise import noise_field, normalize
from .rng import LCG

BEACH_BAND = 0.05
HIGH_ELEVATION = 0.8
COLD = 0.3
HOT = 0.7
DRY = 0.4
WET = 0.7
WETLAND_MAX_ELEVATION = 0.55

# Gradient (rise over run) at which a slope counts as fully steep
STEEP_GRADIENT = 0.5


class BiomeType(str, Enum):
    """Biome categories."""

    OCEAN = "ocean"
    BEACH = "beach"
    GRASSLAND = "grassland"
    FOREST = "forest"
    DESERT = "desert"
    TUNDRA = "tundra"
    MOUNTAIN = "mountain"
    SNOW = "snow"
    WETLAND = "wetland"

    @property
    def code(self) -> int:
        """Compact uint8 value used in biome grids."""
        return _BIOME_CODES[self]


_BIOME_CODES = {biome: i for i, biome in enumerate(BiomeType)}
_CODE_TO_BIOME = {i: biome for biome, i in _BIOME_CODES.items()}


def biome_from_code(code: int) -> BiomeType:
    """Convert a uint8 grid value back to BiomeType."""
    return _CODE_TO_BIOME[int(code)]


def moisture_field(width: int, height: int, rng: LCG, band: NoiseBandConfig) -> NDArray[np.float64]:
    """Moisture in [0, 1] from the moisture stream."""
    return noise_field(width, height, rng.next_int(0, 1_000_000), band)


def temperature_field(
    elevation: NDArray[np.float64],
    sea_level: float,
    rng: LCG,
    band: NoiseBandConfig,
    lapse_rate: float = -0.006,
    latitude_effect: float = 0.3,
) -> NDArray[np.float64]:
    """Temperature from noise, cooled with altitude and toward the map edges.

    Args:
        elevation: Heights in meters.
        sea_level: Sea level in meters.
        rng: Temperature stream.
        band: Temperature noise band.
        lapse_rate: Temperature change per meter above sea level.
        latitude_effect: Cooling at the north and south edges.

    Returns:
        Temperature normalized to [0, 1].
    """
    height, width = elevation.shape
    temperature = noise_field(width, height, rng.next_int(0, 1_000_000), band)
    temperature += np.maximum(0.0, elevation - sea_level) * lapse_rate

    if latitude_effect > 0:
        # 0 at the center row, 1 at the edges
        latitude = np.abs(np.arange(height) / height - 0.5) * 2
        temperature -= (latitude * latitude_effect)[:, np.newaxis]

    return normalize(temperature)


def classify_biomes(
    elevation: NDArray[np.float64],
    moisture: NDArray[np.float64],
    temperature: NDArray[np.float64],
    sea_level: float,
) -> NDArray[np.uint8]:
    """Classify each cell into a biome.

    Args:
        elevation: Normalized elevation [0, 1].
        moisture: Moisture [0, 1].
        temperature: Temperature [0, 1].
        sea_level: Sea level on the same normalized scale as ``elevation``.

    Returns:
        Array of BiomeType codes as uint8.
    """
    cold = temperature < COLD
    rules = [
        (elevation < sea_level, BiomeType.OCEAN),
        (elevation < sea_level + BEACH_BAND, BiomeType.BEACH),
        ((elevation > HIGH_ELEVATION) & cold, BiomeType.SNOW),
        (elevation > HIGH_ELEVATION, BiomeType.MOUNTAIN),
        (cold, BiomeType.TUNDRA),
        ((temperature > HOT) & (moisture < DRY), BiomeType.DESERT),
        ((moisture > WET) & (elevation < WETLAND_MAX_ELEVATION), BiomeType.WETLAND),
        (moisture > WET, BiomeType.FOREST),
        (moisture > DRY, BiomeType.FOREST),
    ]
    # First matching rule wins
    biomes = np.select(
        [condition for condition, _ in rules],
        [biome.code for _, biome in rules],
        default=BiomeType.GRASSLAND.code,
    )
    return biomes.astype(np.uint8)


SPLAT_LAYERS = ("grass", "rock", "sand", "snow")

# (base, change per unit steepness) for each layer
_SPLAT_TABLE: dict[BiomeType, dict[str, tuple[float, float]]] = {
    BiomeType.OCEAN: {"sand": (1.0, 0.0)},
    BiomeType.BEACH: {"sand": (1.0, 0.0)},
    BiomeType.DESERT: {"sand": (0.8, -0.3), "rock": (0.2, 0.3)},
    BiomeType.SNOW: {"snow": (1.0, -0.4), "rock": (0.0, 0.4)},
    BiomeType.MOUNTAIN: {"rock": (0.6, 0.4), "grass": (0.4, -0.4)},
    BiomeType.TUNDRA: {"snow": (0.4, 0.0), "grass": (0.3, -0.2), "rock": (0.3, 0.2)},
    BiomeType.GRASSLAND: {"grass": (0.9, -0.5), "rock": (0.1, 0.5)},
    BiomeType.FOREST: {"grass": (0.8, -0.4), "rock": (0.2, 0.4)},
    BiomeType.WETLAND: {"grass": (0.7, 0.0), "sand": (0.3, 0.0)},
}


def splat_weights(
    biomes: NDArray[np.uint8],
    slopes: NDArray[np.float64],
) -> dict[str, NDArray[np.float64]]:
    """Texture blend weights per cell. Weights sum to 1 for every biome.

    Args:
        biomes: Biome codes from classify_biomes.
        slopes: Slope in degrees.

    Returns:
        Dict of layer name to weight array.
    """
    steepness = np.minimum(np.tan(np.radians(slopes)) / STEEP_GRADIENT, 1.0)
    weights = {layer: np.zeros(biomes.shape, dtype=np.float64) for layer in SPLAT_LAYERS}

    for biome in BiomeType:
        cells = biomes == biome.code
        if not cells.any():
            continue
        for layer, (base, per_steepness) in _SPLAT_TABLE[biome].items():
            weights[layer][cells] = base + per_steepness * steepness[cells]

    return weights
