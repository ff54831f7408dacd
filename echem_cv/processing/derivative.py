"""Savitzky-Golay first derivative (dI/dE) of CV current traces."""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional, Sequence

import numpy as np

from ..types import Sample
from .convolution import convolve
from .kernels import get_derivative_kernel
from .smoothing import _validate_samples, current_array, potential_array

if TYPE_CHECKING:
    from ..config import AnalysisConfig

logger = logging.getLogger(__name__)


@dataclass
class DerivativeStatistics:
    max_slope: float = 0.0
    min_slope: float = 0.0
    mean_slope: float = 0.0
    zero_crossings: int = 0

    def to_dict(self) -> dict:
        return {
            "max_slope": float(self.max_slope),
            "min_slope": float(self.min_slope),
            "mean_slope": float(self.mean_slope),
            "zero_crossings": int(self.zero_crossings),
        }


@dataclass
class DerivativeResult:
    """Result of the derivative stage.

    On failure ``success`` is False and ``slope`` is all zeros.
    """
    slope: np.ndarray  # dI/dE in A/V, aligned with the input samples
    potential_spacing: float
    window_size: int
    coefficients: list[int]
    statistics: DerivativeStatistics
    warnings: list[str] = field(default_factory=list)
    success: bool = True
    error: Optional[str] = None


def potential_spacing(potential: np.ndarray) -> float:
    """Median absolute spacing between consecutive potentials.

    Zero spacings (repeated points at switching potentials) are excluded.
    Returns 1.0 when no positive spacing exists.
    """
    if len(potential) < 2:
        return 1.0
    spacings = np.abs(np.diff(potential))
    spacings = spacings[np.isfinite(spacings) & (spacings > 0)]
    if spacings.size == 0:
        return 1.0
    return float(np.median(spacings))


def derivative_norm(half_width: int) -> int:
    """SG first-derivative normalization, 2 * sum(i^2) for i = 1..m."""
    return 2 * sum(i * i for i in range(1, half_width + 1))


def calculate_derivative(samples: Sequence[Sample], config: "AnalysisConfig") -> DerivativeResult:
    """Calculate the calibrated slope dI/dE of a (typically smoothed) scan.

    Args:
        samples: Scan samples
        config: Analysis configuration (uses smoothing_window)

    Returns:
        DerivativeResult; falls back to a zero slope when the calculation fails

    Raises:
        ValueError: If samples is empty or not a sequence
    """
    _validate_samples(samples)
    window = config.smoothing_window
    warnings = []

    if len(samples) < window:
        warnings.append(
            f"Data length ({len(samples)}) is smaller than derivative window ({window}). "
            "Results may be unreliable."
        )

    current = current_array(samples)
    invalid = int((~np.isfinite(current)).sum())
    if invalid:
        warnings.append(
            f"Found {invalid} invalid current values, they will be ignored in derivative calculation"
        )

    spacing = 1.0
    try:
        kernel = get_derivative_kernel(window)
        convolution = convolve(current, kernel, "mirror")
        warnings.extend(convolution.warnings)

        spacing = potential_spacing(potential_array(samples))
        scale = derivative_norm(len(kernel) // 2) * spacing
        if scale > 0:
            slope = convolution.result / scale
        else:
            slope = np.zeros(len(samples))

        warnings.extend(derivative_quality_warnings(slope, spacing))
        return DerivativeResult(
            slope=slope,
            potential_spacing=spacing,
            window_size=window,
            coefficients=kernel,
            statistics=derivative_statistics(slope),
            warnings=warnings,
        )
    except Exception as e:
        logger.warning("Derivative calculation failed, returning zeros: %s", e)
        warnings.append(f"Derivative calculation failed: {e}")
        return DerivativeResult(
            slope=np.zeros(len(samples)),
            potential_spacing=spacing,
            window_size=window,
            coefficients=[],
            statistics=DerivativeStatistics(),
            warnings=warnings,
            success=False,
            error=str(e),
        )


def count_zero_crossings(values: np.ndarray) -> int:
    """Count sign changes between consecutive finite values."""
    if len(values) < 2:
        return 0
    prev, curr = values[:-1], values[1:]
    both_finite = np.isfinite(prev) & np.isfinite(curr)
    changed = (prev >= 0) != (curr >= 0)
    return int(np.sum(changed & both_finite))


def derivative_statistics(slope: np.ndarray) -> DerivativeStatistics:
    valid = slope[np.isfinite(slope)]
    if valid.size == 0:
        return DerivativeStatistics()
    return DerivativeStatistics(
        max_slope=float(valid.max()),
        min_slope=float(valid.min()),
        mean_slope=float(valid.mean()),
        zero_crossings=count_zero_crossings(slope),
    )


def estimate_derivative_noise(slope: np.ndarray) -> float:
    """Mean high-frequency residual relative to the slope range.

    The residual at each interior point is its distance from the 5-point
    local mean.
    """
    if len(slope) < 10:
        return 0.1
    local_mean = convolve(slope, [0.2] * 5, "mirror").result[2:-2]
    residual = np.abs(slope[2:-2] - local_mean)
    residual = residual[np.isfinite(residual)]
    if residual.size == 0:
        return 0.1
    valid = slope[np.isfinite(slope)]
    amplitude = float(valid.max() - valid.min())
    return float(residual.mean()) / amplitude if amplitude > 0 else 0.0


def derivative_quality_warnings(slope: np.ndarray, spacing: float) -> list[str]:
    warnings = []
    if len(slope) == 0:
        return ["Derivative array is empty"]

    valid = slope[np.isfinite(slope)]
    if valid.size and (abs(valid.max()) > 1e6 or abs(valid.min()) > 1e6):
        warnings.append("Extreme derivative values detected - may indicate numerical instability")

    if valid.size == 0 or float(np.std(valid)) < 1e-10:
        warnings.append("Derivative is nearly constant - data may be too smooth or linear")

    if spacing < 1e-6:
        warnings.append("Very small potential spacing - derivative scaling may be inaccurate")

    if estimate_derivative_noise(slope) > 0.5:
        warnings.append("High noise level in derivative - consider increasing smoothing window")

    return warnings
