"""Fixed-window FIFO median filter over 3-vectors, ranked by norm."""

from __future__ import annotations

from collections import deque

import numpy as np


def _as_vector(value) -> np.ndarray:
    vector = np.array(value, dtype=float)
    if vector.shape != (3,):
        raise ValueError(f"expected a 3-component vector, got shape {vector.shape}")
    return vector


class MedianFilter:
    """Keeps the last ``filter_size`` samples and reports the median-norm one."""

    def __init__(self, filter_size: int) -> None:
        if filter_size < 1:
            raise ValueError("filter_size must be at least 1")
        self._filter_size = filter_size
        self._buffer: deque[np.ndarray] = deque(maxlen=filter_size)
        self._norms: deque[float] = deque(maxlen=filter_size)

    def add_sample(self, sample) -> None:
        """Append a sample, dropping the oldest when the window is full."""
        vector = _as_vector(sample)
        self._buffer.append(vector)
        self._norms.append(float(np.linalg.norm(vector)))

    def is_valid(self) -> bool:
        """True when the window holds ``filter_size`` samples."""
        return len(self._buffer) == self._filter_size

    def filtered_data(self) -> np.ndarray:
        """The oldest stored sample whose norm is the median norm.

        Raises ValueError until the window is full.
        """
        if not self.is_valid():
            raise ValueError("median filter window is not full")
        median_norm = sorted(self._norms)[self._filter_size // 2]
        for sample, norm in zip(self._buffer, self._norms):
            if norm == median_norm:
                return sample.copy()
        raise AssertionError("median norm not found in buffer")

    def reset(self) -> None:
        """Remove all stored samples."""
        self._buffer.clear()
        self._norms.clear()