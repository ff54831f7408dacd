"""1D convolution with configurable edge handling.

Used by the smoothing and derivative stages. The kernel is applied as a
sliding dot product centered on each sample, so output[i] is
sum(kernel[j] * data[i - half + j]).
"""

from dataclasses import dataclass, field
from typing import Sequence

import numpy as np

EDGE_MODES = ("mirror", "constant", "extend")


@dataclass
class ConvolutionResult:
    """Result of convolving a data array with a kernel."""
    result: np.ndarray
    edge: str
    warnings: list[str] = field(default_factory=list)


def edge_indices(indices: np.ndarray, n: int, edge: str) -> np.ndarray:
    """Map (possibly out-of-range) indices onto valid positions of an n-array.

    mirror: reflect across the boundary, clamped to the valid range.
    constant/extend: clamp to the nearest edge sample.
    """
    if edge == "mirror":
        low = np.minimum(np.abs(indices), n - 1)
        high = np.maximum(0, 2 * n - indices - 2)
        mapped = np.where(indices < 0, low, indices)
        return np.where(indices >= n, high, mapped)
    if edge in ("constant", "extend"):
        return np.clip(indices, 0, n - 1)
    raise ValueError(f"Unknown edge mode: {edge}, expected one of {EDGE_MODES}")


def convolve(
    data: Sequence[float] | np.ndarray,
    kernel: Sequence[float] | np.ndarray,
    edge: str = "mirror",
) -> ConvolutionResult:
    """Convolve data with an odd-length kernel.

    Args:
        data: Input samples
        kernel: Kernel coefficients (odd length)
        edge: 'mirror', 'constant' or 'extend'

    Returns:
        ConvolutionResult with an output array the same length as data

    Raises:
        ValueError: If data or kernel is empty, the kernel has even length
            or contains non-finite values, or the edge mode is unknown
    """
    data = np.asarray(data, dtype=float)
    kernel = np.asarray(kernel, dtype=float)
    warnings = []

    if data.ndim != 1 or data.size == 0:
        raise ValueError("Data must be a non-empty 1D array")
    if kernel.ndim != 1 or kernel.size == 0:
        raise ValueError("Kernel must be a non-empty 1D array")
    if kernel.size % 2 == 0:
        raise ValueError(f"Kernel length must be odd, got {kernel.size}")
    if not np.all(np.isfinite(kernel)):
        raise ValueError("Kernel contains NaN or infinite values")
    if edge not in EDGE_MODES:
        raise ValueError(f"Unknown edge mode: {edge}, expected one of {EDGE_MODES}")

    n = data.size
    if kernel.size > n:
        warnings.append("Kernel is larger than data array, results may be unreliable")

    finite = np.isfinite(data)
    if not np.all(finite):
        warnings.append(
            f"Data contains {int((~finite).sum())} NaN or infinite values, skipped in convolution"
        )
    clean = np.where(finite, data, 0.0)

    half = kernel.size // 2
    offsets = np.arange(kernel.size) - half
    window = edge_indices(np.arange(n)[:, None] + offsets[None, :], n, edge)
    result = clean[window] @ kernel

    return ConvolutionResult(result=result, edge=edge, warnings=warnings)
