import numpy as np
import pytest
from scipy.signal import savgol_coeffs

from echem_cv.processing.derivative import derivative_norm
from echem_cv.processing.kernels import (
    SG_KERNELS,
    SUPPORTED_WINDOWS,
    UnsupportedWindowError,
    get_derivative_kernel,
    get_kernel_set,
    get_smoothing_kernel,
)


def test_supported_windows():
    assert SUPPORTED_WINDOWS == (5, 9, 11, 15, 21)


@pytest.mark.parametrize("window", SUPPORTED_WINDOWS)
def test_smoothing_kernel_is_normalized_and_symmetric(window):
    kernel = get_smoothing_kernel(window)
    assert len(kernel) == window
    assert sum(kernel) == pytest.approx(1.0, abs=1e-12)
    assert kernel == pytest.approx(kernel[::-1])


@pytest.mark.parametrize("window", SUPPORTED_WINDOWS)
def test_derivative_kernel_is_antisymmetric(window):
    kernel = get_derivative_kernel(window)
    assert len(kernel) == window
    assert sum(kernel) == 0
    assert kernel == [-c for c in kernel[::-1]]
    assert kernel[window // 2] == 0


@pytest.mark.parametrize("window", SUPPORTED_WINDOWS)
def test_smoothing_kernel_matches_least_squares_quadratic(window):
    assert np.allclose(get_smoothing_kernel(window), savgol_coeffs(window, 2))


@pytest.mark.parametrize("window", SUPPORTED_WINDOWS)
def test_scaled_derivative_kernel_matches_least_squares_slope(window):
    scaled = np.array(get_derivative_kernel(window)) / derivative_norm(window // 2)
    assert np.allclose(scaled, savgol_coeffs(window, 2, deriv=1, use="dot"))


@pytest.mark.parametrize("window", [0, 3, 7, 10, 25, None])
def test_unsupported_window_raises(window):
    with pytest.raises(UnsupportedWindowError):
        get_kernel_set(window)


def test_unsupported_window_error_is_value_error():
    with pytest.raises(ValueError):
        get_smoothing_kernel(7)


def test_kernel_table_is_read_only():
    with pytest.raises(TypeError):
        SG_KERNELS[7] = SG_KERNELS[5]


def test_kernel_set_carries_metadata():
    kernels = get_kernel_set(11)
    assert kernels.smoothing.kind == "smoothing"
    assert kernels.derivative.kind == "derivative"
    assert kernels.smoothing.window_size == kernels.derivative.window_size == 11
    assert kernels.smoothing.polynomial_order == 2
