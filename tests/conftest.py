import numpy as np
import pytest

from echem_cv.scans import CycleData
from echem_cv.types import Sample


def gaussian(x, center, width):
    return np.exp(-0.5 * ((x - center) / width) ** 2)


def make_samples(potential, current, time=None, applied=None, cycle=None):
    n = len(potential)
    time = [None] * n if time is None else time
    applied = [None] * n if applied is None else applied
    return tuple(
        Sample(
            potential=float(e),
            current=float(i),
            time=None if t is None else float(t),
            applied_potential=None if a is None else float(a),
            cycle=cycle,
        )
        for e, i, t, a in zip(potential, current, time, applied)
    )


@pytest.fixture
def samples_factory():
    return make_samples


@pytest.fixture
def cv_cycle():
    """Triangular sweep -0.5 V -> 0.5 V -> -0.5 V at ~0.1 V/s.

    Anodic peak at +0.05 V (4 uA), cathodic peak at -0.05 V (3 uA), both
    3 samples wide and centered on a sample, on a +/-0.1 uA charging current.
    """
    forward_e = np.linspace(-0.5, 0.5, 101)
    reverse_e = np.linspace(0.5, -0.5, 101)
    width = 3 * (forward_e[1] - forward_e[0])

    forward_i = 1e-7 + 4e-6 * gaussian(forward_e, 0.05, width)
    reverse_i = -1e-7 - 3e-6 * gaussian(reverse_e, -0.05, width)

    forward_t = np.arange(101) * 0.1
    reverse_t = 10.1 + np.arange(101) * 0.1

    return CycleData(
        forward=make_samples(forward_e, forward_i, forward_t, forward_e + 0.002),
        reverse=make_samples(reverse_e, reverse_i, reverse_t, reverse_e - 0.002),
    )
