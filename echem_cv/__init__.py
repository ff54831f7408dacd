"""
echem_cv - Cyclic voltammetry analysis library

Turns raw potential/current traces from Gamry and text-export
potentiostat files into smoothed signals, derivatives, baselines and
peak parameters (potential, current, charge, ΔEp, E½, Ipa/Ipc).
Designed as a backend for various frontends.
"""

__version__ = "0.1.0"

# Types
from .types import EchemDataset, Sample, ScanDirection, PeakKind

# Configuration
from .config import AnalysisConfig, DEFAULT_CONFIG

# Parsers
from .parsers import load_file, load_file_bytes

# Scans
from .scans import samples_from_dataset, split_cycles, detect_scan_rate

# Analysis
from .analysis import (
    PeakRecord,
    ScanAnalysisResult,
    CycleAnalysis,
    CVPairParameters,
    analyze_scan,
    analyze_cycle,
    pair_parameters,
    ir_drop,
)

# Export
from .export import csv_export, peaks_to_frame, scan_result_to_frame

__all__ = [
    "__version__",
    "EchemDataset",
    "Sample",
    "ScanDirection",
    "PeakKind",
    # Config
    "AnalysisConfig",
    "DEFAULT_CONFIG",
    # Parsers
    "load_file",
    "load_file_bytes",
    # Scans
    "samples_from_dataset",
    "split_cycles",
    "detect_scan_rate",
    # Analysis
    "PeakRecord",
    "ScanAnalysisResult",
    "CycleAnalysis",
    "CVPairParameters",
    "analyze_scan",
    "analyze_cycle",
    "pair_parameters",
    "ir_drop",
    # Export
    "csv_export",
    "peaks_to_frame",
    "scan_result_to_frame",
]
