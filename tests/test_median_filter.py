import numpy as np
import pytest

from headtrack.median_filter import MedianFilter


def _filled(samples, size=None):
    f = MedianFilter(size or len(samples))
    for s in samples:
        f.add_sample(s)
    return f


def test_returns_sample_with_median_norm():
    samples = [[10.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 3.0], [0.0, 20.0, 0.0], [2.0, 0.0, 0.0]]
    f = _filled(samples)
    result = f.filtered_data()
    norms = sorted(np.linalg.norm(s) for s in samples)
    assert np.linalg.norm(result) == norms[2]
    assert any(np.array_equal(result, s) for s in samples)


def test_median_ignores_outlier():
    f = _filled([[1.0, 0.0, 0.0], [100.0, 0.0, 0.0], [1.0, 1.0, 0.0]])
    assert np.array_equal(f.filtered_data(), np.array([1.0, 1.0, 0.0]))


def test_equal_norms_returns_oldest_match():
    f = _filled([[0.0, 2.0, 0.0], [2.0, 0.0, 0.0], [0.0, 0.0, 2.0]])
    assert np.array_equal(f.filtered_data(), np.array([0.0, 2.0, 0.0]))


def test_oldest_sample_dropped():
    f = _filled([[50.0, 0.0, 0.0], [1.0, 0.0, 0.0], [2.0, 0.0, 0.0], [3.0, 0.0, 0.0]], size=3)
    assert f.is_valid()
    assert np.array_equal(f.filtered_data(), np.array([2.0, 0.0, 0.0]))


def test_not_full_raises():
    f = MedianFilter(3)
    f.add_sample([1.0, 0.0, 0.0])
    assert not f.is_valid()
    with pytest.raises(ValueError):
        f.filtered_data()


def test_reset_empties_window():
    f = _filled([[1.0, 0.0, 0.0], [2.0, 0.0, 0.0]])
    assert f.is_valid()
    f.reset()
    assert not f.is_valid()
    with pytest.raises(ValueError):
        f.filtered_data()


def test_invalid_size_raises():
    with pytest.raises(ValueError):
        MedianFilter(0)