"""Fixed-window FIFO mean filter over 3-vectors."""

from __future__ import annotations

from collections import deque

import numpy as np


def _as_vector(value) -> np.ndarray:
    vector = np.array(value, dtype=float)
    if vector.shape != (3,):
        raise ValueError(f"expected a 3-component vector, got shape {vector.shape}")
    return vector


class MeanFilter:
    """Keeps the last ``filter_size`` samples and reports their mean."""

    def __init__(self, filter_size: int) -> None:
        if filter_size < 1:
            raise ValueError("filter_size must be at least 1")
        self._filter_size = filter_size
        self._buffer: deque[np.ndarray] = deque(maxlen=filter_size)

    def add_sample(self, sample) -> None:
        """Append a sample, dropping the oldest when the window is full."""
        self._buffer.append(_as_vector(sample))

    def is_valid(self) -> bool:
        """True when the window holds ``filter_size`` samples."""
        return len(self._buffer) == self._filter_size

    def filtered_data(self) -> np.ndarray:
        """Sum of the stored samples divided by the window size."""
        total = sum(self._buffer, np.zeros(3))
        return total / float(self._filter_size)