"""Cyclic Voltammetry (CV) analysis.

Single entry point per scan direction, ``analyze_scan``, running
smoothing -> derivative -> baseline -> peak detection on the corrected
signal. Every stage degrades to a fallback with a warning instead of
aborting the scan.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np

from ..baseline import build_endpoint_baseline, compute_baseline
from ..config import DEFAULT_CONFIG, AnalysisConfig
from ..processing.derivative import DerivativeStatistics, calculate_derivative
from ..processing.smoothing import apply_smoothing
from ..scans import CycleData
from ..types import Sample, ScanDirection
from .peaks import PeakRecord, find_peaks

logger = logging.getLogger(__name__)


@dataclass
class ScanAnalysisResult:
    """Analysis of one scan direction."""
    direction: ScanDirection
    raw: tuple[Sample, ...] = ()
    smoothed: tuple[Sample, ...] = ()
    derivative: np.ndarray = field(default_factory=lambda: np.zeros(0))  # dI/dE (A/V)
    derivative_statistics: DerivativeStatistics = field(default_factory=DerivativeStatistics)
    baseline: tuple[Sample, ...] = ()
    corrected: np.ndarray = field(default_factory=lambda: np.zeros(0))
    baseline_method: Optional[str] = None
    peaks: list[PeakRecord] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return len(self.raw) == 0

    def most_prominent_peak(self) -> Optional[PeakRecord]:
        """Peak with the largest prominence (first in potential order on ties)."""
        if not self.peaks:
            return None
        return max(self.peaks, key=lambda p: p.prominence)

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        return {
            "direction": self.direction.value,
            "potential_V": [s.potential for s in self.smoothed],
            "current_raw_A": [s.current for s in self.raw],
            "current_smoothed_A": [s.current for s in self.smoothed],
            "derivative_A_per_V": self.derivative.tolist(),
            "baseline_A": [s.current for s in self.baseline],
            "corrected_A": self.corrected.tolist(),
            "baseline_method": self.baseline_method,
            "derivative_statistics": self.derivative_statistics.to_dict(),
            "peaks": [p.to_dict() for p in self.peaks],
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True)
class CVPairParameters:
    """Paired oxidation/reduction peak parameters."""
    delta_ep: float  # Epa - Epc (V)
    half_wave_potential: float  # (Epa + Epc) / 2 (V)
    peak_current_ratio: float  # |Ipa / Ipc|, 0 when Ipc is 0

    def to_dict(self) -> dict:
        return {
            "delta_ep_V": float(self.delta_ep),
            "half_wave_potential_V": float(self.half_wave_potential),
            "peak_current_ratio": float(self.peak_current_ratio),
        }


@dataclass(frozen=True)
class IRDrop:
    """Applied-vs-measured potential difference statistics (V)."""
    mean: float
    max: float
    n_points: int


@dataclass
class CycleAnalysis:
    forward: ScanAnalysisResult
    reverse: ScanAnalysisResult
    pair: Optional[CVPairParameters] = None
    ir_drop: Optional[IRDrop] = None

    @property
    def warnings(self) -> list[str]:
        return [f"forward: {w}" for w in self.forward.warnings] + [
            f"reverse: {w}" for w in self.reverse.warnings
        ]


def analyze_scan(
    scan: Sequence[Sample],
    config: AnalysisConfig = DEFAULT_CONFIG,
    direction: ScanDirection | str = ScanDirection.FORWARD,
) -> ScanAnalysisResult:
    """Analyze a single CV scan direction.

    Args:
        scan: Samples of one monotonic half-cycle
        config: Analysis configuration
        direction: 'forward' (oxidation peaks) or 'reverse' (reduction peaks)

    Returns:
        ScanAnalysisResult; empty scans give an empty result
    """
    direction = ScanDirection(direction)
    scan = tuple(scan)
    warnings = []

    if not scan:
        return ScanAnalysisResult(direction=direction)

    # Smoothing (optional)
    smoothed = scan
    if config.smoothing_enabled:
        try:
            smoothing = apply_smoothing(scan, config)
            smoothed = smoothing.samples
            warnings.extend(smoothing.warnings)
        except Exception as e:
            logger.warning("Smoothing failed for %s scan: %s", direction.value, e)
            warnings.append("Smoothing failed, using raw data")

    # Derivative (dI/dE)
    try:
        derivative_result = calculate_derivative(smoothed, config)
        derivative = derivative_result.slope
        statistics = derivative_result.statistics
        warnings.extend(derivative_result.warnings)
    except Exception as e:
        logger.warning("Derivative failed for %s scan: %s", direction.value, e)
        derivative = np.zeros(len(smoothed))
        statistics = DerivativeStatistics()
        warnings.append("Derivative calculation failed")

    # Baseline
    try:
        baseline_result = compute_baseline(smoothed, direction, config)
        baseline = baseline_result.samples
        baseline_method = baseline_result.method
        warnings.extend(baseline_result.warnings)
    except Exception as e:
        logger.warning("Baseline failed for %s scan: %s", direction.value, e)
        baseline = build_endpoint_baseline(smoothed)
        baseline_method = "endpoint"
        warnings.append("Baseline fitting failed, using endpoint interpolation")

    corrected = np.array([s.current - b.current for s, b in zip(smoothed, baseline)], dtype=float)

    # Peaks on the corrected signal
    try:
        peaks = find_peaks(
            smoothed, baseline, direction, config.peak_prominence_threshold, raw=scan
        )
    except Exception as e:
        logger.warning("Peak detection failed for %s scan: %s", direction.value, e)
        peaks = []
        warnings.append(f"Peak detection failed: {e}")
    else:
        if not peaks:
            warnings.append(f"No {direction.peak_kind.value} peaks detected")

    logger.debug(
        "%s scan: %d samples, %d peaks, %d warnings",
        direction.value, len(scan), len(peaks), len(warnings),
    )

    return ScanAnalysisResult(
        direction=direction,
        raw=scan,
        smoothed=tuple(smoothed),
        derivative=derivative,
        derivative_statistics=statistics,
        baseline=tuple(baseline),
        corrected=corrected,
        baseline_method=baseline_method,
        peaks=peaks,
        warnings=warnings,
    )


def pair_parameters(
    forward_peaks: Sequence[PeakRecord],
    reverse_peaks: Sequence[PeakRecord],
) -> Optional[CVPairParameters]:
    """ΔEp, E½ and |Ipa/Ipc| from the most prominent peak of each direction.

    Returns:
        CVPairParameters, or None if either direction has no peaks
    """
    if not forward_peaks or not reverse_peaks:
        return None

    anodic = max(forward_peaks, key=lambda p: p.prominence)
    cathodic = max(reverse_peaks, key=lambda p: p.prominence)
    epa, epc = anodic.potential, cathodic.potential
    ipa, ipc = anodic.height, cathodic.height

    return CVPairParameters(
        delta_ep=epa - epc,
        half_wave_potential=(epa + epc) / 2,
        peak_current_ratio=abs(ipa / ipc) if ipc != 0 else 0.0,
    )


def ir_drop(samples: Sequence[Sample]) -> Optional[IRDrop]:
    """Mean and max |applied - measured| potential.

    Returns:
        IRDrop, or None if no sample carries an applied potential
    """
    drops = [
        abs(s.applied_potential - s.potential) for s in samples if s.has_applied_potential
    ]
    if not drops:
        return None
    return IRDrop(mean=float(np.mean(drops)), max=float(np.max(drops)), n_points=len(drops))


def analyze_cycle(cycle: CycleData, config: AnalysisConfig = DEFAULT_CONFIG) -> CycleAnalysis:
    """Analyze both legs of a cycle and derive the pair parameters."""
    forward_result = analyze_scan(cycle.forward, config, ScanDirection.FORWARD)
    reverse_result = analyze_scan(cycle.reverse, config, ScanDirection.REVERSE)
    return CycleAnalysis(
        forward=forward_result,
        reverse=reverse_result,
        pair=pair_parameters(forward_result.peaks, reverse_result.peaks),
        ir_drop=ir_drop(tuple(cycle.forward) + tuple(cycle.reverse)),
    )
