import logging
from types import SimpleNamespace

import numpy as np
import pytest

from echem_cv.config import AnalysisConfig
from echem_cv.processing.derivative import (
    calculate_derivative,
    count_zero_crossings,
    derivative_norm,
    derivative_quality_warnings,
    estimate_derivative_noise,
    potential_spacing,
)
from echem_cv.processing.smoothing import (
    SmoothingQuality,
    apply_smoothing,
    count_artifacts,
    quality_warnings,
)

from conftest import gaussian


def test_smoothing_reduces_noise(samples_factory):
    rng = np.random.default_rng(0)
    e = np.linspace(-0.5, 0.5, 200)
    clean = 1e-6 * gaussian(e, 0.0, 0.1)
    noisy = clean + rng.normal(0, 5e-8, e.size)

    result = apply_smoothing(samples_factory(e, noisy), AnalysisConfig(smoothing_window=11))

    assert result.success
    assert result.window_size == 11
    assert np.std(result.current - clean) < np.std(noisy - clean)
    assert result.quality is not None
    assert 0 < result.quality.amplitude_ratio <= 1.2


def test_smoothing_carries_optional_fields(samples_factory):
    e = np.linspace(0, 1, 20)
    samples = samples_factory(e, e ** 2, time=np.arange(20) * 0.5, applied=e + 0.01)

    result = apply_smoothing(samples, AnalysisConfig(smoothing_window=5))

    assert len(result.samples) == 20
    for original, smoothed in zip(samples, result.samples):
        assert smoothed.potential == original.potential
        assert smoothed.time == original.time
        assert smoothed.applied_potential == original.applied_potential


def test_smoothing_preserves_quadratic_interior(samples_factory):
    e = np.linspace(-1, 1, 41)
    samples = samples_factory(e, 3 * e ** 2 - e + 0.5)
    result = apply_smoothing(samples, AnalysisConfig(smoothing_window=9))
    assert np.allclose(result.current[4:-4], (3 * e ** 2 - e + 0.5)[4:-4])


def test_short_data_warns(samples_factory):
    samples = samples_factory([0.0, 0.1, 0.2], [1.0, 2.0, 1.0])
    result = apply_smoothing(samples, AnalysisConfig(smoothing_window=9))
    assert result.success
    assert any("smaller than smoothing window" in w for w in result.warnings)


@pytest.mark.parametrize("bad", [[], (), "abc", None])
def test_smoothing_rejects_empty_or_non_sequence(bad):
    with pytest.raises(ValueError):
        apply_smoothing(bad, AnalysisConfig())


def test_count_artifacts_ignores_short_arrays():
    assert count_artifacts(np.ones(4), np.ones(4)) == 0


def test_derivative_of_line_is_its_slope(samples_factory):
    e = np.linspace(-0.5, 0.5, 101)
    result = calculate_derivative(samples_factory(e, 2.5 * e + 1.0), AnalysisConfig(smoothing_window=9))

    assert result.success
    assert result.potential_spacing == pytest.approx(0.01)
    assert np.allclose(result.slope[4:-4], 2.5)
    assert result.statistics.max_slope == pytest.approx(2.5, rel=1e-6)


def test_derivative_sign_follows_scan_spacing(samples_factory):
    # Slope is taken along the sweep, so a decreasing scan flips the sign
    e = np.linspace(0.5, -0.5, 101)
    result = calculate_derivative(samples_factory(e, 2.0 * e), AnalysisConfig(smoothing_window=5))
    assert np.allclose(result.slope[2:-2], -2.0)


def test_derivative_zero_crossings_at_peak(samples_factory):
    e = np.linspace(-0.5, 0.5, 201)
    result = calculate_derivative(samples_factory(e, gaussian(e, 0.1, 0.05)), AnalysisConfig())
    assert result.statistics.zero_crossings >= 1
    crossing = np.flatnonzero(np.diff(np.sign(result.slope[10:-10])) < 0)[0] + 10
    assert e[crossing] == pytest.approx(0.1, abs=0.01)


def test_potential_spacing_ignores_repeated_points():
    assert potential_spacing(np.array([0.0, 0.0, 0.1, 0.2, 0.2, 0.3])) == pytest.approx(0.1)
    assert potential_spacing(np.array([0.4, 0.4, 0.4])) == 1.0
    assert potential_spacing(np.array([0.4])) == 1.0


def test_derivative_norm():
    assert derivative_norm(2) == 10
    assert derivative_norm(4) == 60


def test_count_zero_crossings_skips_non_finite():
    assert count_zero_crossings(np.array([1.0, -1.0, np.nan, 1.0, 2.0])) == 1


def test_derivative_rejects_empty():
    with pytest.raises(ValueError):
        calculate_derivative([], AnalysisConfig())


# Quality warnings

HEAVY = "Heavy smoothing detected - peaks may be significantly flattened"
MINIMAL = "Minimal smoothing detected - noise may still be present"
DISTORTED = "Smoothing may have distorted peak amplitudes"


def test_alternating_noise_is_flagged_as_heavy_smoothing(samples_factory):
    # The 21-point kernel passes only 221/3059 of a sign-alternating signal
    e = np.linspace(0, 1, 60)
    current = np.where(np.arange(60) % 2 == 0, 1.0, -1.0)

    result = apply_smoothing(samples_factory(e, current), AnalysisConfig(smoothing_window=21))

    assert result.quality.noise_reduction > 0.9
    assert HEAVY in result.warnings
    assert DISTORTED in result.warnings
    assert MINIMAL not in result.warnings


def test_smooth_signal_is_flagged_as_minimal_smoothing(samples_factory):
    e = np.linspace(-1, 1, 41)
    result = apply_smoothing(samples_factory(e, 3 * e ** 2 - e + 0.5), AnalysisConfig())

    assert result.quality.noise_reduction < 0.1
    assert MINIMAL in result.warnings
    assert HEAVY not in result.warnings


def test_isolated_spike_reports_artifacts_and_distortion(samples_factory):
    current = np.zeros(50)
    current[25] = 1.0

    result = apply_smoothing(samples_factory(np.linspace(0, 1, 50), current), AnalysisConfig())

    assert result.quality.artifact_count > 0
    assert f"Detected {result.quality.artifact_count} potential smoothing artifacts" in result.warnings
    assert result.quality.amplitude_ratio < 0.8
    assert DISTORTED in result.warnings


@pytest.mark.parametrize(
    "quality, expected",
    [
        (SmoothingQuality(0.5, 0, 1.0), []),
        (SmoothingQuality(0.95, 0, 1.0), [HEAVY]),
        (SmoothingQuality(0.05, 0, 1.0), [MINIMAL]),
        (SmoothingQuality(0.5, 0, 0.75), [DISTORTED]),
        (SmoothingQuality(0.5, 0, 1.25), [DISTORTED]),
        (SmoothingQuality(0.5, 2, 1.0), ["Detected 2 potential smoothing artifacts"]),
    ],
)
def test_quality_warning_thresholds(quality, expected):
    assert quality_warnings(quality) == expected


def test_smoothing_failure_returns_unsmoothed_input(samples_factory, caplog):
    samples = samples_factory(np.linspace(0, 1, 20), np.linspace(1, 2, 20))

    with caplog.at_level(logging.WARNING, logger="echem_cv.processing.smoothing"):
        result = apply_smoothing(samples, SimpleNamespace(smoothing_window=7))

    assert not result.success
    assert "Unsupported window size 7" in result.error
    assert result.samples == samples
    assert np.array_equal(result.current, np.linspace(1, 2, 20))
    assert result.coefficients == []
    assert result.quality is None
    assert any(w.startswith("Smoothing failed:") for w in result.warnings)
    assert "Smoothing failed" in caplog.text


def test_steep_slope_is_flagged_as_extreme(samples_factory):
    e = np.linspace(-0.5, 0.5, 101)
    result = calculate_derivative(samples_factory(e, 2e6 * e), AnalysisConfig())
    assert result.statistics.max_slope > 1e6
    assert "Extreme derivative values detected - may indicate numerical instability" in result.warnings


def test_constant_current_is_flagged_as_flat(samples_factory):
    e = np.linspace(-0.5, 0.5, 101)
    result = calculate_derivative(samples_factory(e, np.full(101, 1e-6)), AnalysisConfig())
    assert np.allclose(result.slope, 0.0, atol=1e-12)
    assert "Derivative is nearly constant - data may be too smooth or linear" in result.warnings


def test_tiny_potential_spacing_is_flagged(samples_factory):
    e = np.arange(50) * 1e-7
    result = calculate_derivative(samples_factory(e, np.sin(np.arange(50) / 5)), AnalysisConfig())
    assert result.potential_spacing == pytest.approx(1e-7)
    assert "Very small potential spacing - derivative scaling may be inaccurate" in result.warnings


def test_oscillating_slope_is_flagged_as_noisy():
    # Each 5-point mean is -x/5, so the residual is 1.2 on a range of 2
    slope = np.tile([1.0, 1.0, -1.0, -1.0], 10)
    assert estimate_derivative_noise(slope) == pytest.approx(0.6)
    assert derivative_quality_warnings(slope, 0.01) == [
        "High noise level in derivative - consider increasing smoothing window"
    ]


def test_derivative_noise_defaults():
    assert estimate_derivative_noise(np.ones(5)) == 0.1
    assert estimate_derivative_noise(np.linspace(0, 1, 20)) == pytest.approx(0.0, abs=1e-12)
    assert derivative_quality_warnings(np.array([]), 0.01) == ["Derivative array is empty"]


def test_derivative_failure_returns_zero_slope(samples_factory):
    samples = samples_factory(np.linspace(0, 1, 20), np.linspace(1, 2, 20))

    result = calculate_derivative(samples, SimpleNamespace(smoothing_window=7))

    assert not result.success
    assert "Unsupported window size 7" in result.error
    assert np.array_equal(result.slope, np.zeros(20))
    assert result.statistics.zero_crossings == 0
    assert result.statistics.max_slope == 0.0
    assert any(w.startswith("Derivative calculation failed:") for w in result.warnings)
