"""Analysis functions for cyclic voltammetry data."""

from .peaks import (
    PeakRecord,
    find_peaks,
    compute_prominence,
    merge_peaks,
    find_peak_boundaries,
    interpolate_peak_potential,
)
from .cv import (
    ScanAnalysisResult,
    CycleAnalysis,
    CVPairParameters,
    IRDrop,
    analyze_scan,
    analyze_cycle,
    pair_parameters,
    ir_drop,
)


__all__ = [
    # Peaks
    "PeakRecord",
    "find_peaks",
    "compute_prominence",
    "merge_peaks",
    "find_peak_boundaries",
    "interpolate_peak_potential",
    # CV
    "ScanAnalysisResult",
    "CycleAnalysis",
    "CVPairParameters",
    "IRDrop",
    "analyze_scan",
    "analyze_cycle",
    "pair_parameters",
    "ir_drop",
]
