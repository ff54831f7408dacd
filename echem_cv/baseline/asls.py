"""Asymmetric least squares (ASLS) baseline.

Reference:
    P.H.C. Eilers & H.F.M. Boelens, "Baseline Correction with Asymmetric
    Least Squares Smoothing" (2005).

Minimizes sum(w_i (y_i - z_i)^2) + lam * sum((D2 z)_i^2), where D2 is the
second-difference operator. Weights are small where the data sit on the
peak side of the baseline, which pushes the fit under (forward) or over
(reverse) the peaks. Each iteration solves the pentadiagonal system
(W + lam D2'D2) z = W y with a banded Cholesky factorization in O(n).
"""

import logging
import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from ..types import Sample, ScanDirection

logger = logging.getLogger(__name__)

DEFAULT_LAMBDA = 1e6
DEFAULT_P = 0.01
DEFAULT_MAX_ITERATIONS = 20
DEFAULT_TOLERANCE = 1e-6

PIVOT_FLOOR = 1e-30


@dataclass
class AslsFit:
    baseline: np.ndarray
    weights: np.ndarray
    iterations: int
    converged: bool
    clamped_pivots: int  # Cholesky pivots raised to PIVOT_FLOOR over all iterations


def second_difference_bands(n: int) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Bands of D2'D2 for an n-point second-difference operator.

    Returns (diagonal, first off-diagonal, second off-diagonal). For n >= 5
    these are {1, 5, 6, ..., 6, 5, 1}, {-2, -4, ..., -4, -2} and {1, ..., 1}.
    """
    diag = np.zeros(n)
    off1 = np.zeros(max(n - 1, 0))
    off2 = np.ones(max(n - 2, 0))
    diag[:-2] += 1
    diag[1:-1] += 4
    diag[2:] += 1
    off1[:-1] -= 2
    off1[1:] -= 2
    return diag, off1, off2


def _banded_cholesky(diag: list, off1: list, off2: list) -> int:
    """Factor a symmetric pentadiagonal matrix in place as L L'.

    On return diag, off1 and off2 hold L[i][i], L[i+1][i] and L[i+2][i].
    Returns the number of pivots clamped to PIVOT_FLOOR.
    """
    n = len(diag)
    clamped = 0
    for j in range(n):
        pivot = diag[j]
        if j >= 1:
            pivot -= off1[j - 1] * off1[j - 1]
        if j >= 2:
            pivot -= off2[j - 2] * off2[j - 2]
        if pivot < PIVOT_FLOOR:
            pivot = PIVOT_FLOOR
            clamped += 1
        diag[j] = math.sqrt(pivot)

        if j < n - 1:
            if j >= 1:
                off1[j] -= off1[j - 1] * off2[j - 1]
            off1[j] /= diag[j]
        if j < n - 2:
            off2[j] /= diag[j]
    return clamped


def solve_pentadiagonal(
    y: Sequence[float], w: Sequence[float], lam: float
) -> tuple[np.ndarray, int]:
    """Solve (diag(w) + lam * D2'D2) z = diag(w) y.

    Returns:
        Tuple of (z, number of clamped pivots)
    """
    y = np.asarray(y, dtype=float)
    w = np.asarray(w, dtype=float)
    n = len(y)
    d0, d1, d2 = second_difference_bands(n)

    diag = (w + lam * d0).tolist()
    off1 = (lam * d1).tolist()
    off2 = (lam * d2).tolist()
    clamped = _banded_cholesky(diag, off1, off2)

    rhs = (w * y).tolist()

    # Forward substitution: L g = W y
    g = [0.0] * n
    for i in range(n):
        value = rhs[i]
        if i >= 1:
            value -= off1[i - 1] * g[i - 1]
        if i >= 2:
            value -= off2[i - 2] * g[i - 2]
        g[i] = value / diag[i]

    # Back substitution: L' z = g
    z = [0.0] * n
    for i in range(n - 1, -1, -1):
        value = g[i]
        if i + 1 < n:
            value -= off1[i] * z[i + 1]
        if i + 2 < n:
            value -= off2[i] * z[i + 2]
        z[i] = value / diag[i]

    return np.array(z), clamped


def fit_asls(
    y: Sequence[float],
    direction: ScanDirection | str,
    lam: float = DEFAULT_LAMBDA,
    p: float = DEFAULT_P,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
    tolerance: float = DEFAULT_TOLERANCE,
) -> AslsFit:
    """Iteratively reweighted ASLS fit of a current array.

    Forward scans weight points above the baseline with p and the rest with
    1 - p; reverse scans swap the two so the baseline hugs above the data.
    Fewer than 5 points are returned unchanged.
    """
    if not 0 < p < 1:
        raise ValueError(f"p must be in (0, 1), got {p}")

    y = np.asarray(y, dtype=float)
    n = len(y)
    if n < 5:
        return AslsFit(y.copy(), np.ones(n), 0, True, 0)

    p_above = p if ScanDirection(direction) is ScanDirection.FORWARD else 1 - p
    p_below = 1 - p_above

    w = np.ones(n)
    z = y.copy()
    clamped = 0
    converged = False
    iterations = 0
    for iterations in range(1, max_iterations + 1):
        z, clamped_now = solve_pentadiagonal(y, w, lam)
        clamped += clamped_now

        new_w = np.where(y > z, p_above, p_below)
        max_change = float(np.max(np.abs(new_w - w)))
        w = new_w
        if max_change < tolerance:
            converged = True
            break

    if not converged:
        logger.debug("ASLS did not converge in %d iterations", max_iterations)

    return AslsFit(baseline=z, weights=w, iterations=iterations, converged=converged, clamped_pivots=clamped)


def asls_baseline(
    samples: Sequence[Sample],
    direction: ScanDirection | str,
    lam: float = DEFAULT_LAMBDA,
    p: float = DEFAULT_P,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
    tolerance: float = DEFAULT_TOLERANCE,
) -> tuple[Sample, ...]:
    """ASLS baseline aligned 1:1 with the samples."""
    current = np.array([s.current for s in samples], dtype=float)
    fit = fit_asls(current, direction, lam, p, max_iterations, tolerance)
    return tuple(s.with_current(v) for s, v in zip(samples, fit.baseline))
