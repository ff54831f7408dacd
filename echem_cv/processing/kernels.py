"""Savitzky-Golay kernel table.

Integer coefficients for quadratic (order 2) least-squares fits over the
window, as tabulated by Savitzky & Golay. Smoothing kernels are normalized
on retrieval; derivative kernels are returned raw and scaled by the
derivative stage.
"""

from dataclasses import dataclass
from types import MappingProxyType

POLYNOMIAL_ORDER = 2


class UnsupportedWindowError(ValueError):
    """Raised when no kernel is tabulated for a window size."""


@dataclass(frozen=True)
class SGKernel:
    coefficients: tuple[int, ...]
    window_size: int
    kind: str  # 'smoothing' or 'derivative'
    polynomial_order: int = POLYNOMIAL_ORDER


@dataclass(frozen=True)
class SGKernelSet:
    smoothing: SGKernel
    derivative: SGKernel


def _kernel_set(window_size: int, smoothing: tuple[int, ...]) -> SGKernelSet:
    half = window_size // 2
    return SGKernelSet(
        smoothing=SGKernel(smoothing, window_size, "smoothing"),
        derivative=SGKernel(tuple(range(-half, half + 1)), window_size, "derivative"),
    )


SG_KERNELS = MappingProxyType({
    5: _kernel_set(5, (-3, 12, 17, 12, -3)),
    9: _kernel_set(9, (-21, 14, 39, 54, 59, 54, 39, 14, -21)),
    11: _kernel_set(11, (-36, 9, 44, 69, 84, 89, 84, 69, 44, 9, -36)),
    15: _kernel_set(
        15, (-78, -13, 42, 87, 122, 147, 162, 167, 162, 147, 122, 87, 42, -13, -78)
    ),
    21: _kernel_set(
        21,
        (
            -171, -76, 9, 84, 149, 204, 249, 284, 309, 324, 329,
            324, 309, 284, 249, 204, 149, 84, 9, -76, -171,
        ),
    ),
})

SUPPORTED_WINDOWS = tuple(sorted(SG_KERNELS))


def get_kernel_set(window_size: int) -> SGKernelSet:
    """Look up the kernel pair for a window size."""
    try:
        return SG_KERNELS[window_size]
    except (KeyError, TypeError):
        raise UnsupportedWindowError(
            f"Unsupported window size {window_size!r}, expected one of {list(SUPPORTED_WINDOWS)}"
        ) from None


def get_smoothing_kernel(window_size: int) -> list[float]:
    """Smoothing coefficients normalized to sum to 1."""
    coefficients = get_kernel_set(window_size).smoothing.coefficients
    total = sum(coefficients)
    return [c / total for c in coefficients]


def get_derivative_kernel(window_size: int) -> list[int]:
    """Raw integer first-derivative coefficients (not normalized)."""
    return list(get_kernel_set(window_size).derivative.coefficients)
