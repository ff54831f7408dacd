import dataclasses
import json

import numpy as np
import pytest

from echem_cv.analysis.cv import analyze_cycle, analyze_scan, ir_drop, pair_parameters
from echem_cv.config import AnalysisConfig
from echem_cv.scans import split_cycles
from echem_cv.types import PeakKind, ScanDirection

from conftest import gaussian


def test_triangular_sweep_pair_parameters(cv_cycle):
    analysis = analyze_cycle(cv_cycle, AnalysisConfig())

    assert analysis.pair is not None
    assert analysis.pair.delta_ep == pytest.approx(0.1, abs=0.01)
    assert analysis.pair.half_wave_potential == pytest.approx(0.0, abs=1e-3)
    assert analysis.pair.peak_current_ratio == pytest.approx(4 / 3, rel=0.02)


@pytest.mark.parametrize("method", ["rubberband", "linear", "asls"])
def test_drifting_sweep_with_offset_peaks(samples_factory, method):
    # 200-point sweep -0.5 -> 0.5 -> -0.5 V on a 1e-6 A/V drift
    forward_e = np.linspace(-0.5, 0.5, 100)
    reverse_e = np.linspace(0.5, -0.5, 100)
    forward_i = 1e-6 * forward_e + 2e-5 * gaussian(forward_e, 0.2, 0.03)
    reverse_i = 1e-6 * reverse_e - 1.5e-5 * gaussian(reverse_e, 0.1, 0.03)
    potential = np.concatenate([forward_e, reverse_e])
    current = np.concatenate([forward_i, reverse_i])

    split = split_cycles(samples_factory(potential, current, time=np.arange(200) * 0.1))
    assert len(split.cycles) == 1

    analysis = analyze_cycle(split.selected.data, AnalysisConfig(baseline_method=method))

    assert len(analysis.forward.peaks) == 1
    assert len(analysis.reverse.peaks) == 1
    anodic, cathodic = analysis.forward.peaks[0], analysis.reverse.peaks[0]
    assert anodic.kind is PeakKind.OXIDATION
    assert cathodic.kind is PeakKind.REDUCTION
    assert anodic.potential == pytest.approx(0.2, abs=0.01)
    assert cathodic.potential == pytest.approx(0.1, abs=0.01)
    assert analysis.pair.delta_ep == pytest.approx(0.1, abs=0.01)
    assert analysis.pair.peak_current_ratio == pytest.approx(4 / 3, rel=0.1)
    assert anodic.charge_unit == "C"


def test_triangular_sweep_peaks(cv_cycle):
    analysis = analyze_cycle(cv_cycle, AnalysisConfig())

    anodic = analysis.forward.most_prominent_peak()
    cathodic = analysis.reverse.most_prominent_peak()
    assert anodic.kind is PeakKind.OXIDATION
    assert cathodic.kind is PeakKind.REDUCTION
    assert anodic.potential == pytest.approx(0.05, abs=0.006)
    assert cathodic.potential == pytest.approx(-0.05, abs=0.006)
    assert anodic.charge_unit == "C"
    assert anodic.area > 0
    assert anodic.raw_current == cv_cycle.forward[anodic.index].current


def test_ir_drop_from_applied_potential(cv_cycle):
    analysis = analyze_cycle(cv_cycle)
    assert analysis.ir_drop is not None
    assert analysis.ir_drop.mean == pytest.approx(0.002)
    assert analysis.ir_drop.max == pytest.approx(0.002)
    assert analysis.ir_drop.n_points == 202


def test_ir_drop_requires_applied_potential(samples_factory):
    assert ir_drop(samples_factory([0.0, 0.1], [1.0, 2.0])) is None


def test_result_stages_are_aligned(cv_cycle):
    result = analyze_scan(cv_cycle.forward, AnalysisConfig(), "forward")

    n = len(cv_cycle.forward)
    assert len(result.smoothed) == len(result.baseline) == n
    assert result.derivative.shape == result.corrected.shape == (n,)
    assert result.baseline_method == "rubberband"
    expected = [s.current - b.current for s, b in zip(result.smoothed, result.baseline)]
    assert np.allclose(result.corrected, expected)


@pytest.mark.parametrize("method", ["rubberband", "linear", "asls"])
def test_every_baseline_method_finds_the_pair(cv_cycle, method):
    analysis = analyze_cycle(cv_cycle, AnalysisConfig(baseline_method=method))
    assert analysis.pair is not None
    assert analysis.pair.delta_ep == pytest.approx(0.1, abs=0.015)


def test_smoothing_disabled_uses_raw_samples(cv_cycle):
    result = analyze_scan(cv_cycle.forward, AnalysisConfig(smoothing_enabled=False))
    assert result.smoothed == cv_cycle.forward


def test_empty_scan_gives_empty_result():
    result = analyze_scan([], AnalysisConfig(), "reverse")
    assert result.is_empty
    assert result.direction is ScanDirection.REVERSE
    assert result.peaks == []
    assert result.warnings == []
    assert result.most_prominent_peak() is None


def test_flat_scan_reports_missing_peaks(samples_factory):
    samples = samples_factory(np.linspace(-0.5, 0.5, 50), np.zeros(50))

    forward = analyze_scan(samples, AnalysisConfig(), "forward")
    reverse = analyze_scan(samples[::-1], AnalysisConfig(), "reverse")

    assert forward.peaks == []
    assert "No oxidation peaks detected" in forward.warnings
    assert "No reduction peaks detected" in reverse.warnings


def _boom(*args, **kwargs):
    raise RuntimeError("stage exploded")


def test_smoothing_failure_falls_back_to_raw(cv_cycle, monkeypatch):
    monkeypatch.setattr("echem_cv.analysis.cv.apply_smoothing", _boom)
    result = analyze_scan(cv_cycle.forward, AnalysisConfig())
    assert result.smoothed == cv_cycle.forward
    assert "Smoothing failed, using raw data" in result.warnings
    assert result.peaks


def test_derivative_failure_falls_back_to_zeros(cv_cycle, monkeypatch):
    monkeypatch.setattr("echem_cv.analysis.cv.calculate_derivative", _boom)
    result = analyze_scan(cv_cycle.forward, AnalysisConfig())
    assert np.all(result.derivative == 0)
    assert "Derivative calculation failed" in result.warnings
    assert result.peaks


def test_baseline_failure_falls_back_to_endpoint_line(cv_cycle, monkeypatch):
    monkeypatch.setattr("echem_cv.analysis.cv.compute_baseline", _boom)
    result = analyze_scan(cv_cycle.forward, AnalysisConfig())
    assert result.baseline_method == "endpoint"
    assert "Baseline fitting failed, using endpoint interpolation" in result.warnings
    assert result.baseline[0].current == pytest.approx(result.smoothed[0].current)
    assert result.baseline[-1].current == pytest.approx(result.smoothed[-1].current)


def test_peak_detection_failure_gives_no_peaks(cv_cycle, monkeypatch):
    monkeypatch.setattr("echem_cv.analysis.cv.find_peaks", _boom)
    result = analyze_scan(cv_cycle.forward, AnalysisConfig())
    assert result.peaks == []
    assert any("Peak detection failed" in w for w in result.warnings)


def test_pair_parameters_need_both_directions(cv_cycle):
    analysis = analyze_cycle(cv_cycle)
    assert pair_parameters(analysis.forward.peaks, []) is None
    assert pair_parameters([], analysis.reverse.peaks) is None


def test_pair_ratio_is_zero_without_cathodic_current(cv_cycle):
    analysis = analyze_cycle(cv_cycle)
    flat = [dataclasses.replace(p, height=0.0) for p in analysis.reverse.peaks]
    assert pair_parameters(analysis.forward.peaks, flat).peak_current_ratio == 0.0


def test_cycle_warnings_are_prefixed(cv_cycle):
    analysis = analyze_cycle(cv_cycle)
    assert all(w.startswith(("forward: ", "reverse: ")) for w in analysis.warnings)


def test_result_to_dict_is_json_serializable(cv_cycle):
    result = analyze_scan(cv_cycle.reverse, AnalysisConfig(), "reverse")
    payload = json.loads(json.dumps(result.to_dict()))
    assert payload["direction"] == "reverse"
    assert len(payload["corrected_A"]) == len(cv_cycle.reverse)
    assert payload["peaks"][0]["kind"] == "reduction"


def test_input_is_not_mutated(cv_cycle):
    before = [dataclasses.astuple(s) for s in cv_cycle.forward]
    analyze_scan(cv_cycle.forward, AnalysisConfig(baseline_method="asls"))
    assert [dataclasses.astuple(s) for s in cv_cycle.forward] == before
