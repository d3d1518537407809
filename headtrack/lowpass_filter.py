"""First-order IIR low-pass filter over 3-vectors."""

from __future__ import annotations

import math

import numpy as np

_SECONDS_FROM_NANOSECONDS = 1.0e-9
# Bounds on the time step between samples: 1000 Hz and 1 Hz.
_MIN_TIMESTEP_S = float(np.float32(0.001))
_MAX_TIMESTEP_S = 1.0


def _as_vector(value) -> np.ndarray:
    vector = np.array(value, dtype=float)
    if vector.shape != (3,):
        raise ValueError(f"expected a 3-component vector, got shape {vector.shape}")
    return vector


class LowpassFilter:
    """IIR first-order low-pass filter with a cutoff frequency in Hz.

    Samples with non-monotonic timestamps, or whose time step from the
    previous sample is at most 1 ms or above 1 s, are ignored.
    """

    def __init__(self, cutoff_freq_hz: float) -> None:
        self._cutoff_time_constant = 1.0 / (2.0 * math.pi * cutoff_freq_hz)
        self._timestamp_ns = 0
        self._initialized = False
        self._filtered = np.zeros(3)

    def add_sample(self, sample, timestamp_ns: int) -> None:
        """Update the filter with a sample of weight 1."""
        self.add_weighted_sample(sample, timestamp_ns, 1.0)

    def add_weighted_sample(self, sample, timestamp_ns: int, weight: float) -> None:
        """Update the filter with a weighted sample; weight 0 is a no-op."""
        sample = _as_vector(sample)
        if not self._initialized:
            self._filtered = sample
            self._timestamp_ns = timestamp_ns
            self._initialized = True
            return

        if timestamp_ns < self._timestamp_ns:
            self._timestamp_ns = timestamp_ns
            return

        delta_s = (timestamp_ns - self._timestamp_ns) * _SECONDS_FROM_NANOSECONDS
        if delta_s <= _MIN_TIMESTEP_S or delta_s > _MAX_TIMESTEP_S:
            self._timestamp_ns = timestamp_ns
            return

        weighted_delta_s = weight * delta_s
        alpha = weighted_delta_s / (self._cutoff_time_constant + weighted_delta_s)
        self._filtered = (1.0 - alpha) * self._filtered + alpha * sample
        self._timestamp_ns = timestamp_ns

    @property
    def filtered_data(self) -> np.ndarray:
        """The filtered value; zeros if no sample has been added."""
        return self._filtered.copy()

    @property
    def most_recent_timestamp_ns(self) -> int:
        return self._timestamp_ns

    @property
    def initialized(self) -> bool:
        return self._initialized

    def reset(self) -> None:
        """Forget the filter state."""
        self._initialized = False
        self._filtered = np.zeros(3)