import numpy as np
import pytest

from echem_cv.processing.convolution import EDGE_MODES, convolve, edge_indices
from echem_cv.processing.kernels import get_smoothing_kernel


@pytest.mark.parametrize("edge", EDGE_MODES)
@pytest.mark.parametrize("window", [5, 9, 21])
def test_constant_signal_is_preserved(edge, window):
    data = np.full(30, 3.5)
    result = convolve(data, get_smoothing_kernel(window), edge)
    assert result.result.shape == data.shape
    assert np.allclose(result.result, 3.5)
    assert result.warnings == []


def test_identity_kernel_returns_input():
    data = np.array([1.0, -2.0, 4.0, 0.5])
    assert np.array_equal(convolve(data, [1.0]).result, data)


def test_kernel_applied_as_centered_dot_product():
    data = np.array([0.0, 1.0, 2.0, 3.0, 4.0])
    result = convolve(data, [1.0, 0.0, -1.0], "extend").result
    # output[i] = data[i - 1] - data[i + 1]
    assert result[2] == pytest.approx(-2.0)
    assert result[0] == pytest.approx(0.0 - 1.0)
    assert result[4] == pytest.approx(3.0 - 4.0)


def test_mirror_indices_reflect_at_both_edges():
    mapped = edge_indices(np.array([-2, -1, 0, 4, 5, 6]), 5, "mirror")
    assert mapped.tolist() == [2, 1, 0, 4, 3, 2]


def test_extend_indices_clamp_to_edges():
    mapped = edge_indices(np.array([-3, 0, 7]), 5, "extend")
    assert mapped.tolist() == [0, 0, 4]


def test_mirror_indices_stay_in_range_for_tiny_arrays():
    mapped = edge_indices(np.arange(-4, 6), 2, "mirror")
    assert mapped.min() >= 0
    assert mapped.max() <= 1


def test_kernel_longer_than_data_warns():
    result = convolve([1.0, 2.0, 3.0], get_smoothing_kernel(9))
    assert len(result.result) == 3
    assert any("larger than data" in w for w in result.warnings)


def test_non_finite_data_is_skipped_with_warning():
    data = np.array([1.0, 1.0, np.nan, 1.0, 1.0])
    result = convolve(data, [1.0])
    assert np.all(np.isfinite(result.result))
    assert result.result[2] == 0.0
    assert any("1 NaN" in w for w in result.warnings)


@pytest.mark.parametrize(
    "data,kernel,edge",
    [
        ([], [1.0], "mirror"),
        ([1.0, 2.0], [], "mirror"),
        ([1.0, 2.0], [0.5, 0.5], "mirror"),
        ([1.0, 2.0], [np.nan], "mirror"),
        ([1.0, 2.0], [1.0], "wrap"),
    ],
)
def test_invalid_input_raises(data, kernel, edge):
    with pytest.raises(ValueError):
        convolve(data, kernel, edge)
