"""Savitzky-Golay smoothing of CV current traces."""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional, Sequence

import numpy as np

from ..types import Sample
from .convolution import convolve
from .kernels import get_smoothing_kernel

if TYPE_CHECKING:
    from ..config import AnalysisConfig

logger = logging.getLogger(__name__)


@dataclass
class SmoothingQuality:
    """Advisory metrics comparing smoothed to original current."""
    noise_reduction: float  # (std_original - std_smoothed) / std_original
    artifact_count: int
    amplitude_ratio: float  # smoothed range / original range


@dataclass
class SmoothingResult:
    """Result of the smoothing stage.

    On failure ``success`` is False, ``error`` describes the problem and
    ``samples`` holds the unsmoothed input.
    """
    samples: tuple[Sample, ...]
    current: np.ndarray
    window_size: int
    coefficients: list[float]
    warnings: list[str] = field(default_factory=list)
    quality: Optional[SmoothingQuality] = None
    success: bool = True
    error: Optional[str] = None


def current_array(samples: Sequence[Sample]) -> np.ndarray:
    return np.array([s.current for s in samples], dtype=float)


def potential_array(samples: Sequence[Sample]) -> np.ndarray:
    return np.array([s.potential for s in samples], dtype=float)


def _validate_samples(samples) -> None:
    if isinstance(samples, (str, bytes)) or not isinstance(samples, Sequence):
        raise ValueError("Data must be a non-empty sequence of samples")
    if len(samples) == 0:
        raise ValueError("Data must be a non-empty sequence of samples")


def apply_smoothing(samples: Sequence[Sample], config: "AnalysisConfig") -> SmoothingResult:
    """Apply Savitzky-Golay smoothing to the current of a scan.

    Potential, time, applied potential and cycle are carried over unchanged.

    Args:
        samples: Scan samples
        config: Analysis configuration (uses smoothing_window)

    Returns:
        SmoothingResult; falls back to the input data when smoothing fails

    Raises:
        ValueError: If samples is empty or not a sequence
    """
    _validate_samples(samples)
    window = config.smoothing_window
    warnings = []

    if len(samples) < window:
        warnings.append(
            f"Data length ({len(samples)}) is smaller than smoothing window ({window}). "
            "Results may be unreliable."
        )

    current = current_array(samples)
    invalid = int((~np.isfinite(current)).sum())
    if invalid:
        warnings.append(f"Found {invalid} invalid current values, they will be ignored in smoothing")

    try:
        kernel = get_smoothing_kernel(window)
        convolution = convolve(current, kernel, "mirror")
        smoothed = convolution.result
        warnings.extend(convolution.warnings)

        quality = smoothing_quality(current, smoothed)
        warnings.extend(quality_warnings(quality))

        return SmoothingResult(
            samples=tuple(s.with_current(c) for s, c in zip(samples, smoothed)),
            current=smoothed,
            window_size=window,
            coefficients=kernel,
            warnings=warnings,
            quality=quality,
        )
    except Exception as e:
        logger.warning("Smoothing failed, returning unsmoothed data: %s", e)
        warnings.append(f"Smoothing failed: {e}")
        return SmoothingResult(
            samples=tuple(samples),
            current=current,
            window_size=window,
            coefficients=[],
            warnings=warnings,
            success=False,
            error=str(e),
        )


def _finite_std(values: np.ndarray) -> float:
    valid = values[np.isfinite(values)]
    if valid.size == 0:
        return 0.0
    return float(np.std(valid))


def _finite_range(values: np.ndarray) -> float:
    valid = values[np.isfinite(values)]
    if valid.size == 0:
        return 0.0
    return float(valid.max() - valid.min())


def count_artifacts(original: np.ndarray, smoothed: np.ndarray) -> int:
    """Count interior points where the smoothed step exceeds 3x the original step."""
    if len(original) < 5:
        return 0
    original_change = np.abs(np.diff(original))[1:-2]
    smoothed_change = np.abs(np.diff(smoothed))[1:-2]
    return int(np.sum(smoothed_change > 3 * original_change))


def smoothing_quality(original: np.ndarray, smoothed: np.ndarray) -> SmoothingQuality:
    """Compute noise reduction, artifact count and amplitude preservation."""
    original_std = _finite_std(original)
    smoothed_std = _finite_std(smoothed)
    noise_reduction = (original_std - smoothed_std) / original_std if original_std > 0 else 0.0

    original_range = _finite_range(original)
    amplitude_ratio = _finite_range(smoothed) / original_range if original_range > 0 else 1.0

    return SmoothingQuality(
        noise_reduction=noise_reduction,
        artifact_count=count_artifacts(original, smoothed),
        amplitude_ratio=amplitude_ratio,
    )


def quality_warnings(quality: SmoothingQuality) -> list[str]:
    warnings = []
    if quality.noise_reduction > 0.9:
        warnings.append("Heavy smoothing detected - peaks may be significantly flattened")
    if quality.noise_reduction < 0.1:
        warnings.append("Minimal smoothing detected - noise may still be present")
    if quality.artifact_count > 0:
        warnings.append(f"Detected {quality.artifact_count} potential smoothing artifacts")
    if quality.amplitude_ratio < 0.8 or quality.amplitude_ratio > 1.2:
        warnings.append("Smoothing may have distorted peak amplitudes")
    return warnings
