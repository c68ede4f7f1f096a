from __future__ import annotations

import numpy as np
import pytest

from stagerank.core.utils import check_offset, offset_log_ratio, offset_ratio


def test_offset_log_ratio_zero_over_zero():
    out = offset_log_ratio(0.0, 0.0, 0.001)
    assert np.isfinite(out)
    assert out == 0.0


def test_offset_applied_to_both_sides():
    assert np.isclose(offset_ratio(1.0, 0.0, 0.001), 1.001 / 0.001)
    assert np.isclose(offset_log_ratio(99.999, 9.999, 0.001, base=10.0), 1.0)


def test_offset_must_be_positive():
    for bad in (0.0, -1.0, float("nan")):
        with pytest.raises(ValueError):
            check_offset(bad)
