"""Elevation curves: remap normalized noise to a desired elevation profile."""

from collections.abc import Iterable, Mapping

import numpy as np
import structlog
from numpy.typing import NDArray
from structlog.typing import FilteringBoundLogger

logger = structlog.get_logger()


class PiecewiseLinearCurve:
    """Monotonic-in-x piecewise linear curve over [0, 1].

    Control points are sorted by x. Inputs are clamped to [0, 1] before
    evaluation, so a curve that does not span the unit interval still
    evaluates; it just holds its end values.
    """

    def __init__(self, points: Iterable[tuple[float, float]]):
        self.points: tuple[tuple[float, float], ...] = tuple(
            sorted(((float(x), float(y)) for x, y in points), key=lambda p: p[0])
        )
        if len(self.points) < 2:
            raise ValueError("A curve needs at least two control points")
        self._xs = np.array([p[0] for p in self.points], dtype=np.float64)
        self._ys = np.array([p[1] for p in self.points], dtype=np.float64)

    @property
    def spans_unit_interval(self) -> bool:
        return self.points[0][0] == 0.0 and self.points[-1][0] == 1.0

    def evaluate(self, x: float) -> float:
        x = min(1.0, max(0.0, x))
        for (x0, y0), (x1, y1) in zip(self.points, self.points[1:]):
            if x0 <= x <= x1:
                if x1 == x0:
                    return y0
                t = (x - x0) / (x1 - x0)
                return y0 + t * (y1 - y0)
        # x falls outside the control points
        return self.points[-1][1] if x > self.points[-1][0] else self.points[0][1]

    def apply(
        self,
        values: NDArray[np.float64],
        out: NDArray[np.float64] | None = None,
    ) -> NDArray[np.float64]:
        """Evaluate the curve over an array (vectorized)."""
        remapped = np.interp(np.clip(values, 0.0, 1.0), self._xs, self._ys)
        if out is None:
            return remapped
        out[...] = remapped
        return out

    def preview(self, samples: int = 100) -> list[tuple[float, float]]:
        """Evenly spaced (x, y) samples for plotting."""
        return [(i / samples, self.evaluate(i / samples)) for i in range(samples + 1)]

    def to_dict(self) -> dict:
        return {
            "type": "piecewise_linear",
            "points": [{"x": x, "y": y} for x, y in self.points],
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> "PiecewiseLinearCurve":
        if data.get("type") != "piecewise_linear":
            raise ValueError(f"Unknown curve type: {data.get('type')}")
        return cls((p["x"], p["y"]) for p in data["points"])

    def __repr__(self) -> str:
        return f"PiecewiseLinearCurve({list(self.points)!r})"


ELEVATION_PRESETS: dict[str, PiecewiseLinearCurve] = {
    # Distinct flat zones at different elevations
    "TERRACED_RTS": PiecewiseLinearCurve(
        [(0.0, 0.0), (0.4, 0.2), (0.6, 0.4), (0.8, 0.7), (1.0, 1.0)]
    ),
    "ROLLING_HILLS": PiecewiseLinearCurve(
        [(0.0, 0.1), (0.3, 0.3), (0.7, 0.6), (1.0, 0.95)]
    ),
    # Steep gain in the upper ranges
    "SHARP_ALPS": PiecewiseLinearCurve(
        [(0.0, 0.0), (0.5, 0.3), (0.7, 0.5), (0.9, 0.8), (1.0, 1.0)]
    ),
    "FLATLANDS": PiecewiseLinearCurve(
        [(0.0, 0.25), (0.7, 0.35), (0.9, 0.5), (1.0, 0.7)]
    ),
    # Coastal cliffs, flat interior, central peak
    "VOLCANIC": PiecewiseLinearCurve(
        [(0.0, 0.0), (0.3, 0.1), (0.4, 0.4), (0.7, 0.5), (0.9, 0.7), (1.0, 1.0)]
    ),
    # Deep valleys and high mesas
    "CANYONS": PiecewiseLinearCurve(
        [(0.0, 0.0), (0.2, 0.05), (0.3, 0.5), (0.8, 0.55), (1.0, 0.6)]
    ),
    "LINEAR": PiecewiseLinearCurve([(0.0, 0.0), (1.0, 1.0)]),
}

PRESET_INFO: dict[str, dict[str, str]] = {
    "TERRACED_RTS": {
        "name": "Terraced RTS",
        "description": "Distinct flat zones at different elevations",
        "style": "stepped",
    },
    "ROLLING_HILLS": {
        "name": "Rolling Hills",
        "description": "Gentle curves with smooth transitions",
        "style": "smooth",
    },
    "SHARP_ALPS": {
        "name": "Sharp Alps",
        "description": "Steep mountains with dramatic elevation changes",
        "style": "mountainous",
    },
    "FLATLANDS": {
        "name": "Flatlands",
        "description": "Mostly flat terrain with occasional hills",
        "style": "flat",
    },
    "VOLCANIC": {
        "name": "Volcanic Islands",
        "description": "Steep coastal cliffs with flat interior plateaus",
        "style": "island",
    },
    "CANYONS": {
        "name": "Canyon Lands",
        "description": "Deep valleys with high flat mesas",
        "style": "canyon",
    },
    "LINEAR": {
        "name": "Linear",
        "description": "Direct noise output without remapping",
        "style": "raw",
    },
}


def get_preset(name: str, log: FilteringBoundLogger | None = None) -> PiecewiseLinearCurve:
    """Look up a preset curve, falling back to LINEAR for unknown names."""
    log = log or logger
    curve = ELEVATION_PRESETS.get(name)
    if curve is None:
        log.warning("unknown_curve_preset", preset=name, fallback="LINEAR")
        return ELEVATION_PRESETS["LINEAR"]
    return curve


def check_curve(curve: PiecewiseLinearCurve, log: FilteringBoundLogger | None = None) -> bool:
    """Log a configuration warning if the curve does not span [0, 1].

    Returns:
        True if the curve starts at x=0 and ends at x=1.
    """
    if curve.spans_unit_interval:
        return True
    (log or logger).warning(
        "curve_not_unit_span",
        first_x=curve.points[0][0],
        last_x=curve.points[-1][0],
    )
    return False
