"""Noise generation for terrain elevation.

Provides a seeded 2D simplex primitive, fractal Brownian motion over it,
and the multi-band composition used for the base height field.
"""

import math
from collections.abc import Iterable

import numpy as np
from numpy.typing import NDArray

from .config import NoiseBandConfig
from .rng import LCG

_F2 = 0.5 * (math.sqrt(3.0) - 1.0)
_G2 = (3.0 - math.sqrt(3.0)) / 6.0

# 12 gradient directions for 2D simplex noise
_GRAD_X = np.array([1, -1, 1, -1, 1, -1, 1, -1, 0, 0, 0, 0], dtype=np.float64)
_GRAD_Y = np.array([1, 1, -1, -1, 0, 0, 0, 0, 1, -1, 1, -1], dtype=np.float64)


class SimplexNoise:
    """Seeded 2D simplex noise (Gustavson), vectorized over numpy arrays."""

    def __init__(self, seed: int = 0):
        self.seed = seed
        self.perm = self._build_permutation(seed)

    @staticmethod
    def _build_permutation(seed: int) -> NDArray[np.int64]:
        rng = LCG(seed)
        perm = list(range(256))
        for i in range(255, 0, -1):
            j = int(rng.next() * (i + 1))
            perm[i], perm[j] = perm[j], perm[i]

        # Doubled to avoid index wrapping
        return np.array(perm + perm, dtype=np.int64)

    def noise2d(
        self,
        x: NDArray[np.float64] | float,
        y: NDArray[np.float64] | float,
    ) -> NDArray[np.float64]:
        """Evaluate noise at the given coordinates.

        Returns:
            Noise values roughly in [-1, 1], same shape as the inputs.
        """
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        perm = self.perm

        # Skew input space to find the simplex cell
        s = (x + y) * _F2
        i = np.floor(x + s).astype(np.int64)
        j = np.floor(y + s).astype(np.int64)

        t = (i + j) * _G2
        x0 = x - (i - t)
        y0 = y - (j - t)

        # Lower or upper triangle
        i1 = (x0 > y0).astype(np.int64)
        j1 = 1 - i1

        x1 = x0 - i1 + _G2
        y1 = y0 - j1 + _G2
        x2 = x0 - 1.0 + 2.0 * _G2
        y2 = y0 - 1.0 + 2.0 * _G2

        ii = i & 255
        jj = j & 255

        gi0 = perm[ii + perm[jj]] % 12
        gi1 = perm[ii + i1 + perm[jj + j1]] % 12
        gi2 = perm[ii + 1 + perm[jj + 1]] % 12

        n0 = _corner(x0, y0, gi0)
        n1 = _corner(x1, y1, gi1)
        n2 = _corner(x2, y2, gi2)

        return 70.0 * (n0 + n1 + n2)


def _corner(
    x: NDArray[np.float64],
    y: NDArray[np.float64],
    gi: NDArray[np.int64],
) -> NDArray[np.float64]:
    """Contribution of one simplex corner."""
    t = 0.5 - x * x - y * y
    t2 = t * t
    grad = _GRAD_X[gi] * x + _GRAD_Y[gi] * y
    return np.where(t >= 0, t2 * t2 * grad, 0.0)


def fbm(
    noise: SimplexNoise,
    xs: NDArray[np.float64],
    ys: NDArray[np.float64],
    band: NoiseBandConfig,
) -> NDArray[np.float64]:
    """Fractal Brownian motion over a simplex primitive.

    Args:
        noise: Noise primitive.
        xs: X sample coordinates.
        ys: Y sample coordinates.
        band: Octaves, base frequency, gain and lacunarity.

    Returns:
        Values roughly in [-1, 1], normalized by total amplitude.
    """
    value = np.zeros(np.broadcast(xs, ys).shape, dtype=np.float64)
    amplitude = 1.0
    frequency = band.frequency
    max_amplitude = 0.0

    for _ in range(band.octaves):
        value += noise.noise2d(xs * frequency, ys * frequency) * amplitude
        max_amplitude += amplitude
        amplitude *= band.gain
        frequency *= band.lacunarity

    return value / max_amplitude


def noise_field(
    width: int,
    height: int,
    seed: int,
    band: NoiseBandConfig,
) -> NDArray[np.float64]:
    """Generate a 2D fBm field sampled at integer cell coordinates.

    Args:
        width: Output width in cells.
        height: Output height in cells.
        seed: Noise permutation seed.
        band: Band parameters.

    Returns:
        Array of shape (height, width) with values in [0, 1].
    """
    noise = SimplexNoise(seed)
    ys, xs = np.mgrid[0:height, 0:width].astype(np.float64)
    value = fbm(noise, xs, ys, band)
    return (value + 1.0) * 0.5


def normalize(field: NDArray[np.float64]) -> NDArray[np.float64]:
    """Min-max normalize a field to [0, 1] in place.

    Constant fields are left unchanged.
    """
    low = field.min()
    span = field.max() - low
    if span > 0:
        field -= low
        field /= span
    return field


def compose_bands(
    width: int,
    height: int,
    rng: LCG,
    bands: Iterable[NoiseBandConfig],
) -> NDArray[np.float64]:
    """Sum independently seeded noise bands into one normalized field.

    Each band with a positive amplitude draws its own noise seed from
    ``rng`` in iteration order.

    Args:
        width: Output width in cells.
        height: Output height in cells.
        rng: Terrain stream.
        bands: Bands in composition order (macro, meso, micro).

    Returns:
        Array of shape (height, width) normalized to [0, 1].
    """
    field = np.zeros((height, width), dtype=np.float64)

    for band in bands:
        if band.amplitude <= 0:
            continue
        band_seed = rng.next_int(0, 1_000_000)
        field += noise_field(width, height, band_seed, band) * band.amplitude

    return normalize(field)


def apply_contrast(field: NDArray[np.float64], exponent: float) -> NDArray[np.float64]:
    """Power contrast curve; exponent < 1 lifts mid-highs. Modifies in place."""
    np.power(field, exponent, out=field)
    np.clip(field, 0.0, 1.0, out=field)
    return field
