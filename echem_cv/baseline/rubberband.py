"""Rubberband baseline via iterative morphological opening.

Each iteration erodes the envelope (moving minimum for forward scans,
moving maximum for reverse scans), dilates it back with the opposite
operator and smooths the staircase with a moving average. The result is
finally clamped so it never crosses the data on the peak side.
"""

from typing import Sequence

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from ..types import Sample, ScanDirection

DEFAULT_ITERATIONS = 40
DEFAULT_WINDOW_SIZE = 80


def rubberband_half_window(n: int, window_size: int) -> int:
    """Half-width used for erosion, dilation and smoothing.

    Scales with the data length (5% of n) and is capped by half the
    configured window, never below 2.
    """
    return max(2, min(int(n * 0.05), window_size // 2))


def _moving_extremum(values: np.ndarray, half: int, use_max: bool) -> np.ndarray:
    fill = -np.inf if use_max else np.inf
    padded = np.pad(values, half, mode="constant", constant_values=fill)
    windows = sliding_window_view(padded, 2 * half + 1)
    return windows.max(axis=1) if use_max else windows.min(axis=1)


def moving_average(values: np.ndarray, half: int) -> np.ndarray:
    """Centered moving average; windows are truncated at the edges."""
    n = len(values)
    cumulative = np.concatenate(([0.0], np.cumsum(values)))
    idx = np.arange(n)
    lo = np.maximum(0, idx - half)
    hi = np.minimum(n - 1, idx + half)
    return (cumulative[hi + 1] - cumulative[lo]) / (hi - lo + 1)


def rubberband_envelope(
    current: np.ndarray,
    direction: ScanDirection | str,
    iterations: int = DEFAULT_ITERATIONS,
    window_size: int = DEFAULT_WINDOW_SIZE,
) -> np.ndarray:
    """Compute the rubberband background for a current array."""
    current = np.asarray(current, dtype=float)
    n = len(current)
    if n < 3:
        return current.copy()

    forward = ScanDirection(direction) is ScanDirection.FORWARD
    half = rubberband_half_window(n, window_size)

    envelope = current.copy()
    for _ in range(iterations):
        eroded = _moving_extremum(envelope, half, use_max=not forward)
        dilated = _moving_extremum(eroded, half, use_max=forward)
        envelope = moving_average(dilated, half)

    if forward:
        return np.minimum(envelope, current)
    return np.maximum(envelope, current)


def rubberband_baseline(
    samples: Sequence[Sample],
    direction: ScanDirection | str,
    iterations: int = DEFAULT_ITERATIONS,
    window_size: int = DEFAULT_WINDOW_SIZE,
) -> tuple[Sample, ...]:
    """Rubberband baseline aligned 1:1 with the samples.

    Forward scans: baseline stays at or below the data (oxidation peaks up).
    Reverse scans: baseline stays at or above the data (reduction peaks down).
    Fewer than 3 samples are returned unchanged.
    """
    current = np.array([s.current for s in samples], dtype=float)
    envelope = rubberband_envelope(current, direction, iterations, window_size)
    return tuple(s.with_current(v) for s, v in zip(samples, envelope))
