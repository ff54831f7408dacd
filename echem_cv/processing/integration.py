"""Numerical integration for electrochemical charge.

Trapezoidal and Simpson's 1/3 rule over discrete points, with a
Richardson-extrapolation error estimate for the trapezoidal rule.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np


@dataclass(frozen=True)
class IntegrationResult:
    area: float
    error: Optional[float] = None


def _as_points(x, y) -> tuple[np.ndarray, np.ndarray]:
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if x.shape != y.shape or x.ndim != 1:
        raise ValueError(f"x and y must be 1D arrays of equal length, got {x.shape} and {y.shape}")
    return x, y


def _trapezoid_sum(x: np.ndarray, y: np.ndarray) -> float:
    return float(np.sum(np.diff(x) * (y[:-1] + y[1:]) / 2))


def trapezoidal(x: Sequence[float], y: Sequence[float]) -> IntegrationResult:
    """Trapezoidal rule with a Richardson error estimate.

    The error is |coarse - full| / 3, where the coarse integral uses every
    other point. It is only reported for 4 or more points.
    """
    x, y = _as_points(x, y)
    if len(x) < 2:
        return IntegrationResult(area=0.0)

    area = _trapezoid_sum(x, y)
    error = None
    if len(x) >= 4:
        coarse = _trapezoid_sum(x[::2], y[::2])
        error = abs(coarse - area) / 3
    return IntegrationResult(area=area, error=error)


def simpsons(x: Sequence[float], y: Sequence[float]) -> IntegrationResult:
    """Simpson's 1/3 rule.

    Requires an odd number of points (at least 3); falls back to the
    trapezoidal rule otherwise. Each group of three points uses the spacing
    of its first pair.
    """
    x, y = _as_points(x, y)
    n = len(x)
    if n < 3 or n % 2 == 0:
        return trapezoidal(x, y)

    h = x[1:-1:2] - x[0:-2:2]
    area = float(np.sum(h / 3 * (y[0:-2:2] + 4 * y[1:-1:2] + y[2::2])))
    return IntegrationResult(area=area, error=None)
