"""
Signal processing for CV traces.

Provides:
- 1D convolution with mirror/constant/extend edges
- Savitzky-Golay kernel table
- Smoothing and first-derivative stages
- Trapezoidal and Simpson integration
"""

from .convolution import convolve, ConvolutionResult, EDGE_MODES
from .kernels import (
    SG_KERNELS,
    SUPPORTED_WINDOWS,
    UnsupportedWindowError,
    get_kernel_set,
    get_smoothing_kernel,
    get_derivative_kernel,
)
from .smoothing import apply_smoothing, SmoothingResult, SmoothingQuality
from .derivative import (
    calculate_derivative,
    DerivativeResult,
    DerivativeStatistics,
    potential_spacing,
)
from .integration import trapezoidal, simpsons, IntegrationResult

__all__ = [
    # Convolution
    "convolve",
    "ConvolutionResult",
    "EDGE_MODES",
    # Kernels
    "SG_KERNELS",
    "SUPPORTED_WINDOWS",
    "UnsupportedWindowError",
    "get_kernel_set",
    "get_smoothing_kernel",
    "get_derivative_kernel",
    # Smoothing
    "apply_smoothing",
    "SmoothingResult",
    "SmoothingQuality",
    # Derivative
    "calculate_derivative",
    "DerivativeResult",
    "DerivativeStatistics",
    "potential_spacing",
    # Integration
    "trapezoidal",
    "simpsons",
    "IntegrationResult",
]
