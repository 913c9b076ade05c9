import sys
import math
import numpy as np
import pytest

from multireg.optimizer.scales import sinus_scales


if sys.version_info < (3, 8):
    pytest.skip("Requires Python 3.8+ for package code", allow_module_level=True)


def test_sinus_scales_quarter_period_values():
    s = np.asarray(sinus_scales(2.0, 1.0, 4))
    assert s.shape == (4,)
    assert s == pytest.approx([1.0, 2.0, 1.0, 0.5], rel=1e-5)


@pytest.mark.parametrize("amp,freq,n", [(2.0, 1.0, 7), (0.3, 2.5, 16), (10.0, 0.25, 33), (1.5, 3.0, 1)])
def test_sinus_scales_positive_and_start_at_one(amp, freq, n):
    s = np.asarray(sinus_scales(amp, freq, n))
    assert s.shape == (n,)
    assert np.all(s > 0.0)
    assert s[0] == pytest.approx(1.0)
    lo, hi = min(amp, 1.0 / amp), max(amp, 1.0 / amp)
    assert s.min() >= lo * (1 - 1e-5)
    assert s.max() <= hi * (1 + 1e-5)


def test_sinus_scales_periodic_in_index():
    n, freq = 24, 3.0
    period = int(n / freq)
    s = np.asarray(sinus_scales(3.0, freq, n))
    assert s[:period] == pytest.approx(s[period:2 * period], rel=1e-4)


def test_sinus_scales_unit_amplitude_is_constant():
    s = np.asarray(sinus_scales(1.0, 5.0, 10))
    assert np.allclose(s, 1.0)


def test_sinus_scales_empty():
    s = sinus_scales(2.0, 1.0, 0)
    assert s.shape == (0,)


@pytest.mark.parametrize("amp,freq,n", [(0.0, 1.0, 4), (-2.0, 1.0, 4), (2.0, 0.0, 4), (2.0, 1.0, -1), (math.inf, 1.0, 4)])
def test_sinus_scales_rejects_invalid(amp, freq, n):
    with pytest.raises(ValueError):
        sinus_scales(amp, freq, n)
