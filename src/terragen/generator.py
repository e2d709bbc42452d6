"""Main terrain generation orchestration."""

from collections.abc import Mapping
from dataclasses import dataclass

import numpy as np
import structlog
from numpy.typing import NDArray
from structlog.typing import FilteringBoundLogger

from .biomes import classify_biomes, moisture_field, splat_weights, temperature_field
from .config import TerrainConfig
from .curves import check_curve, get_preset
from .erosion import ErosionReport, apply_erosion
from .lakes import LakeReport, carve_lakes
from .metrics import MetricsReport, validate_terrain
from .noise import apply_contrast, compose_bands
from .rng import LCG, SeedStreams, hash_seed
from .sea_level import SeaLevelResult, solve_sea_level
from .slope import compute_slopes

logger = structlog.get_logger()

TREES_STREAM = "trees"


@dataclass
class TerrainData:
    """Result of one generation run. The caller owns every array."""

    elevation: NDArray[np.float64]
    sea_level: float
    sea_level_normalized: float
    width: int
    height: int
    cell_size: float
    metrics: MetricsReport
    sub_seeds: dict[str, int]
    stream_states: dict[str, int]
    moisture: NDArray[np.float64]
    temperature: NDArray[np.float64]
    biomes: NDArray[np.uint8]
    splat_weights: dict[str, NDArray[np.float64]]
    lakes: LakeReport
    sea_level_result: SeaLevelResult
    erosion: ErosionReport | None = None


def _phase_metrics(lakes: LakeReport, erosion: ErosionReport, sea: SeaLevelResult) -> MetricsReport:
    return MetricsReport(
        metrics={
            "lake_count": lakes.count,
            "lake_target_cells": lakes.target_cells,
            "lake_cells_carved": lakes.cells_carved,
            "erosion_iterations": erosion.iterations,
            "erosion_max_flow": erosion.max_flow,
            "sea_level_cells_raised": sea.raised,
        }
    )


def generate(
    config: TerrainConfig | Mapping,
    log: FilteringBoundLogger | None = None,
) -> TerrainData:
    """Generate a terrain from configuration.

    Phases run in a fixed order and hand the height array from one to the
    next: noise bands, contrast, elevation curve, lakes, scale to meters,
    erosion, sea level, climate and biomes, splat weights, metrics. Each
    phase draws only from its own named stream.

    Args:
        config: TerrainConfig, or a mapping of config fields (snake_case or
            upper-case names) to validate.
        log: Optional structlog logger.

    Returns:
        TerrainData for the run.

    Raises:
        pydantic.ValidationError: If a mapping fails validation.
    """
    if not isinstance(config, TerrainConfig):
        config = TerrainConfig.model_validate(config)

    log = (log or logger).bind(seed=config.seed)
    width, height = config.map_width, config.map_height
    scale = config.elevation_scale
    streams = SeedStreams(config.seed)

    log.info("generation_started", width=width, height=height)

    # Base field, normalized
    field_norm = compose_bands(width, height, streams.stream("terrain"), config.noise_bands)
    apply_contrast(field_norm, config.contrast_exponent)

    curve = get_preset(config.elevation_curve, log)
    check_curve(curve, log)
    curve.apply(field_norm, out=field_norm)

    lakes = carve_lakes(field_norm, streams.stream("lakes"), config, log)

    elevation = field_norm * scale

    erosion = apply_erosion(elevation, config, streams.stream("erosion"), log)
    sea = solve_sea_level(elevation, config.water_percentage, config.water_epsilon, log)

    moisture = moisture_field(width, height, streams.stream("moisture"), config.noise_moisture)
    temperature = temperature_field(
        elevation,
        sea.sea_level,
        streams.stream("temperature"),
        config.noise_temperature,
        config.temp_lapse_rate,
        config.temp_latitude_effect,
    )
    biomes = classify_biomes(elevation / scale, moisture, temperature, sea.sea_level / scale)
    splats = splat_weights(biomes, compute_slopes(elevation, config.cell_size))

    metrics = validate_terrain(elevation, sea.sea_level, config, log).merged(
        _phase_metrics(lakes, erosion, sea)
    )

    sub_seeds = streams.sub_seeds
    sub_seeds[TREES_STREAM] = hash_seed(config.seed, TREES_STREAM)

    log.info(
        "generation_finished",
        sea_level=sea.sea_level,
        water_actual=metrics.metrics["water_actual"],
        passed=metrics.passed,
    )

    return TerrainData(
        elevation=elevation,
        sea_level=sea.sea_level,
        sea_level_normalized=sea.sea_level / scale,
        width=width,
        height=height,
        cell_size=config.cell_size,
        metrics=metrics,
        sub_seeds=sub_seeds,
        stream_states=streams.stream_states(),
        moisture=moisture,
        temperature=temperature,
        biomes=biomes,
        splat_weights=splats,
        lakes=lakes,
        sea_level_result=sea,
        erosion=erosion,
    )


def tree_stream(config: TerrainConfig) -> LCG:
    """Fresh trees stream for ``config``'s seed, independent of any terrain run."""
    return SeedStreams(config.seed).stream(TREES_STREAM)
