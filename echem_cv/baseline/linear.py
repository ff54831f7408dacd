"""Linear baseline fitted to the peak-free ends of a scan."""

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from ..types import Sample

DEFAULT_ANCHOR_FRACTION = 0.1


@dataclass(frozen=True)
class LineFit:
    slope: float
    intercept: float
    degenerate: bool = False  # True when the fit fell back to a horizontal line


def least_squares_line(x: np.ndarray, y: np.ndarray) -> LineFit:
    """Ordinary least squares for y = slope * x + intercept.

    Falls back to a horizontal line at mean(y) when the normal equations
    are degenerate (all x equal).
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    n = len(x)
    sum_x, sum_y = float(x.sum()), float(y.sum())
    sum_xy, sum_x2 = float((x * y).sum()), float((x * x).sum())

    denom = n * sum_x2 - sum_x * sum_x
    if abs(denom) < 1e-15:
        return LineFit(slope=0.0, intercept=sum_y / n, degenerate=True)

    slope = (n * sum_xy - sum_x * sum_y) / denom
    return LineFit(slope=slope, intercept=(sum_y - slope * sum_x) / n)


def anchor_count(n: int, anchor_fraction: float) -> int:
    return max(2, int(n * anchor_fraction))


def fit_linear(
    potential: np.ndarray, current: np.ndarray, anchor_fraction: float = DEFAULT_ANCHOR_FRACTION
) -> LineFit:
    """Fit a line through the first and last anchor_fraction of the scan."""
    count = anchor_count(len(potential), anchor_fraction)
    x = np.concatenate((potential[:count], potential[-count:]))
    y = np.concatenate((current[:count], current[-count:]))
    return least_squares_line(x, y)


def linear_baseline(
    samples: Sequence[Sample], anchor_fraction: float = DEFAULT_ANCHOR_FRACTION
) -> tuple[Sample, ...]:
    """Least-squares linear baseline aligned 1:1 with the samples.

    Fewer than 3 samples are returned unchanged.
    """
    if len(samples) < 3:
        return tuple(samples)

    potential = np.array([s.potential for s in samples], dtype=float)
    current = np.array([s.current for s in samples], dtype=float)
    fit = fit_linear(potential, current, anchor_fraction)
    line = fit.slope * potential + fit.intercept
    return tuple(s.with_current(v) for s, v in zip(samples, line))
