"""Tests for elevation curves."""

import numpy as np
import pytest
from structlog.testing import capture_logs

from terragen.curves import (
    ELEVATION_PRESETS,
    PRESET_INFO,
    PiecewiseLinearCurve,
    check_curve,
    get_preset,
)


class TestPiecewiseLinearCurve:
    """Tests for curve evaluation."""

    def test_control_points_exact(self) -> None:
        """Curve passes through its control points."""
        curve = ELEVATION_PRESETS["SHARP_ALPS"]
        for x, y in curve.points:
            assert curve.evaluate(x) == pytest.approx(y)

    def test_interpolates(self) -> None:
        """Values between control points are linear."""
        curve = ELEVATION_PRESETS["SHARP_ALPS"]
        assert curve.evaluate(0.6) == pytest.approx(0.4)

    def test_clamps_input(self) -> None:
        """Inputs outside [0, 1] hold the end values."""
        curve = ELEVATION_PRESETS["ROLLING_HILLS"]
        assert curve.evaluate(-1.0) == pytest.approx(0.1)
        assert curve.evaluate(2.0) == pytest.approx(0.95)

    def test_apply_matches_evaluate(self) -> None:
        """Vectorized apply agrees with scalar evaluation."""
        curve = ELEVATION_PRESETS["CANYONS"]
        xs = np.linspace(-0.2, 1.2, 57)
        expected = [curve.evaluate(float(x)) for x in xs]
        np.testing.assert_allclose(curve.apply(xs), expected)

    def test_apply_out(self) -> None:
        """apply writes into ``out`` when given."""
        curve = ELEVATION_PRESETS["LINEAR"]
        values = np.array([0.2, 0.7])
        result = curve.apply(values, out=values)
        assert result is values
        np.testing.assert_allclose(values, [0.2, 0.7])

    def test_points_sorted(self) -> None:
        """Control points are sorted by x."""
        curve = PiecewiseLinearCurve([(1.0, 1.0), (0.0, 0.0), (0.5, 0.2)])
        assert [x for x, _ in curve.points] == [0.0, 0.5, 1.0]

    def test_needs_two_points(self) -> None:
        """A single control point is rejected."""
        with pytest.raises(ValueError):
            PiecewiseLinearCurve([(0.0, 0.0)])

    def test_dict_round_trip(self) -> None:
        """to_dict and from_dict preserve the points."""
        curve = ELEVATION_PRESETS["VOLCANIC"]
        assert PiecewiseLinearCurve.from_dict(curve.to_dict()).points == curve.points

    def test_from_dict_unknown_type(self) -> None:
        """Unknown curve types are rejected."""
        with pytest.raises(ValueError):
            PiecewiseLinearCurve.from_dict({"type": "bezier", "points": []})

    def test_preview_endpoints(self) -> None:
        """Preview samples cover [0, 1] inclusive."""
        preview = ELEVATION_PRESETS["FLATLANDS"].preview(10)
        assert len(preview) == 11
        assert preview[0] == (0.0, pytest.approx(0.25))
        assert preview[-1] == (1.0, pytest.approx(0.7))


class TestPresets:
    """Tests for the preset table."""

    def test_presets_span_unit_interval(self) -> None:
        """Every preset starts at x=0 and ends at x=1."""
        for curve in ELEVATION_PRESETS.values():
            assert curve.spans_unit_interval

    def test_presets_monotonic(self) -> None:
        """Preset outputs never decrease."""
        xs = np.linspace(0, 1, 101)
        for curve in ELEVATION_PRESETS.values():
            assert np.all(np.diff(curve.apply(xs)) >= 0)

    def test_info_for_every_preset(self) -> None:
        """Each preset has display info."""
        assert set(PRESET_INFO) == set(ELEVATION_PRESETS)

    def test_unknown_preset_falls_back(self) -> None:
        """Unknown names fall back to LINEAR with a warning."""
        with capture_logs() as logs:
            curve = get_preset("NOT_A_PRESET")
        assert curve is ELEVATION_PRESETS["LINEAR"]
        assert logs[0]["event"] == "unknown_curve_preset"
        assert logs[0]["log_level"] == "warning"


class TestCheckCurve:
    """Tests for the unit-span configuration warning."""

    def test_spanning_curve_silent(self) -> None:
        """A spanning curve passes without logging."""
        with capture_logs() as logs:
            assert check_curve(ELEVATION_PRESETS["LINEAR"])
        assert logs == []

    def test_partial_curve_warns(self) -> None:
        """A curve not spanning [0, 1] warns but still evaluates."""
        curve = PiecewiseLinearCurve([(0.2, 0.1), (0.8, 0.9)])
        with capture_logs() as logs:
            assert not check_curve(curve)
        assert logs[0]["event"] == "curve_not_unit_span"
        assert curve.evaluate(0.0) == pytest.approx(0.1)
        assert curve.evaluate(1.0) == pytest.approx(0.9)
