"""
Baseline (background current) estimation for CV scans.

Provides:
- Rubberband baseline (iterative morphological opening)
- Linear baseline (least squares over the scan ends)
- ASLS baseline (asymmetric least squares, banded Cholesky solve)
- A dispatcher selecting one of the three from the analysis configuration
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional, Sequence

import numpy as np

from ..types import Sample, ScanDirection
from .asls import asls_baseline, fit_asls, solve_pentadiagonal, second_difference_bands
from .linear import linear_baseline, fit_linear, least_squares_line, anchor_count
from .rubberband import rubberband_baseline, rubberband_envelope, rubberband_half_window

if TYPE_CHECKING:
    from ..config import AnalysisConfig

logger = logging.getLogger(__name__)


@dataclass
class BaselineResult:
    """Baseline aligned 1:1 with the scan, plus diagnostics.

    On failure ``success`` is False and ``samples`` holds the endpoint line.
    """
    samples: tuple[Sample, ...]
    method: str
    warnings: list[str] = field(default_factory=list)
    success: bool = True
    error: Optional[str] = None

    @property
    def current(self) -> np.ndarray:
        return np.array([s.current for s in self.samples], dtype=float)


def build_endpoint_baseline(samples: Sequence[Sample]) -> tuple[Sample, ...]:
    """Straight line through the first and last samples.

    Horizontal at their mean when the potential span is negligible; zeros
    for fewer than 2 samples.
    """
    if len(samples) < 2:
        return tuple(s.with_current(0.0) for s in samples)

    first, last = samples[0], samples[-1]
    span = last.potential - first.potential
    if abs(span) < 1e-10:
        average = (first.current + last.current) / 2
        return tuple(s.with_current(average) for s in samples)

    slope = (last.current - first.current) / span
    intercept = first.current - slope * first.potential
    return tuple(s.with_current(slope * s.potential + intercept) for s in samples)


def _rubberband(samples, direction, config, warnings) -> tuple[Sample, ...]:
    configured = config.rubberband_window_size // 2
    half = rubberband_half_window(len(samples), config.rubberband_window_size)
    if len(samples) >= 3 and half < configured:
        warnings.append(
            f"Rubberband half-window reduced from {configured} to {half} points "
            f"for a scan of {len(samples)} samples"
        )
    return rubberband_baseline(
        samples, direction, config.rubberband_iterations, config.rubberband_window_size
    )


def _linear(samples, config, warnings) -> tuple[Sample, ...]:
    if len(samples) >= 3:
        potential = np.array([s.potential for s in samples], dtype=float)
        current = np.array([s.current for s in samples], dtype=float)
        if fit_linear(potential, current, config.linear_anchor_fraction).degenerate:
            warnings.append("Linear baseline anchors are degenerate, using a horizontal line")
    return linear_baseline(samples, config.linear_anchor_fraction)


def _asls(samples, direction, config, warnings) -> tuple[Sample, ...]:
    current = np.array([s.current for s in samples], dtype=float)
    fit = fit_asls(
        current,
        direction,
        lam=config.asls_lambda,
        p=config.asls_p,
        max_iterations=config.asls_max_iterations,
        tolerance=config.asls_tolerance,
    )
    if fit.clamped_pivots:
        warnings.append(
            f"ASLS system is ill-conditioned: {fit.clamped_pivots} pivots clamped during factorization"
        )
    if not fit.converged:
        warnings.append(f"ASLS baseline did not converge in {fit.iterations} iterations")
    return tuple(s.with_current(v) for s, v in zip(samples, fit.baseline))


def compute_baseline(
    samples: Sequence[Sample],
    direction: ScanDirection | str,
    config: "AnalysisConfig",
) -> BaselineResult:
    """Compute the baseline selected by ``config.baseline_method``.

    Unknown methods fall back to rubberband. Failures fall back to the
    endpoint line.
    """
    direction = ScanDirection(direction)
    method = str(config.baseline_method).lower()
    warnings = []

    if method not in ("rubberband", "linear", "asls"):
        warnings.append(f"Unknown baseline method '{config.baseline_method}', using rubberband")
        method = "rubberband"

    try:
        if method == "linear":
            baseline = _linear(samples, config, warnings)
        elif method == "asls":
            baseline = _asls(samples, direction, config, warnings)
        else:
            baseline = _rubberband(samples, direction, config, warnings)
    except Exception as e:
        logger.warning("%s baseline failed, using endpoint interpolation: %s", method, e)
        warnings.append("Baseline fitting failed, using endpoint interpolation")
        return BaselineResult(
            samples=build_endpoint_baseline(samples),
            method="endpoint",
            warnings=warnings,
            success=False,
            error=str(e),
        )

    for warning in warnings:
        logger.debug("%s baseline (%s): %s", method, direction.value, warning)
    return BaselineResult(samples=baseline, method=method, warnings=warnings)


__all__ = [
    "BaselineResult",
    "compute_baseline",
    "build_endpoint_baseline",
    # Rubberband
    "rubberband_baseline",
    "rubberband_envelope",
    "rubberband_half_window",
    # Linear
    "linear_baseline",
    "fit_linear",
    "least_squares_line",
    "anchor_count",
    # ASLS
    "asls_baseline",
    "fit_asls",
    "solve_pentadiagonal",
    "second_difference_bands",
]
