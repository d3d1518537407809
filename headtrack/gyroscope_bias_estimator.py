"""Estimation of the gyroscope bias while the device is held still."""

from __future__ import annotations

import numpy as np

from headtrack.lowpass_filter import LowpassFilter
from headtrack.mean_filter import MeanFilter
from headtrack.median_filter import MedianFilter
from headtrack.pose import Rotation

# Cutoff frequencies in Hz of the signal filters (single-precision values).
_ACCELEROMETER_LOWPASS_CUTOFF_HZ = float(np.float32(1.0))
_SIMULATED_GYROSCOPE_LOWPASS_CUTOFF_HZ = float(np.float32(0.15))
_GYROSCOPE_LOWPASS_CUTOFF_HZ = float(np.float32(1.0))
_GYROSCOPE_BIAS_LOWPASS_CUTOFF_HZ = float(np.float32(0.15))

_EPSILON = 1.0e-8
# Window size of the mean and median filters.
_FILTER_WINDOW_SIZE = 5
# Ratio used to compare accelerometer-derived rotation with the bias.
_RATIO_BETWEEN_GYRO_BIAS_AND_ACCEL = 1.5
# Sum of weights required before an estimate is trusted.
_MIN_SUM_OF_WEIGHTS = float(np.float32(25.0))
# Allowed change of the smoothed accelerometer (m/s^3) for a static device.
_ACCELEROMETER_DELTA_STATIC_THRESHOLD = 0.5
# Allowed change of the smoothed gyroscope (rad/s^2) for a static device.
_GYROSCOPE_DELTA_STATIC_THRESHOLD = 0.03
# Gyroscope magnitude (rad/s) at or above which the bias is not updated.
_GYROSCOPE_FOR_BIAS_THRESHOLD = float(np.float32(0.30))
# Consecutive static frames needed before a signal counts as static.
_STATIC_FRAME_DETECTION_THRESHOLD = 50
# Minimum time step (ns) between accelerometer samples.
_MIN_TIMESTEP = 1.0


def _as_vector(value) -> np.ndarray:
    vector = np.array(value, dtype=float)
    if vector.shape != (3,):
        raise ValueError(f"expected a 3-component vector, got shape {vector.shape}")
    return vector


class _StaticCounter:
    """Tracks whether a signal has been static for enough consecutive frames."""

    def __init__(self, min_static_frames: int) -> None:
        self._min_static_frames = min_static_frames
        self._consecutive = 0

    def append_frame(self, is_static: bool) -> None:
        self._consecutive = self._consecutive + 1 if is_static else 0

    def is_recently_static(self) -> bool:
        return self._consecutive >= self._min_static_frames

    def reset(self) -> None:
        self._consecutive = 0


class GyroscopeBiasEstimator:
    """Estimates gyroscope bias by averaging gyroscope values while static.

    Feed every gyroscope and accelerometer sample (at 10 Hz or faster) to
    ``process_gyroscope`` and ``process_accelerometer``. Not thread-safe.
    """

    def __init__(self) -> None:
        self._accelerometer_lowpass = LowpassFilter(_ACCELEROMETER_LOWPASS_CUTOFF_HZ)
        self._simulated_gyroscope_lowpass = LowpassFilter(_SIMULATED_GYROSCOPE_LOWPASS_CUTOFF_HZ)
        self._gyroscope_lowpass = LowpassFilter(_GYROSCOPE_LOWPASS_CUTOFF_HZ)
        self._gyroscope_bias_lowpass = LowpassFilter(_GYROSCOPE_BIAS_LOWPASS_CUTOFF_HZ)
        self._accelerometer_static = _StaticCounter(_STATIC_FRAME_DETECTION_THRESHOLD)
        self._gyroscope_static = _StaticCounter(_STATIC_FRAME_DETECTION_THRESHOLD)
        self._accumulated_weights = 0.0
        self._mean_filter = MeanFilter(_FILTER_WINDOW_SIZE)
        self._median_filter = MedianFilter(_FILTER_WINDOW_SIZE)
        self._last_mean_filtered_accelerometer = np.zeros(3)
        self.reset()

    def reset(self) -> None:
        """Reset the low-pass filters and static detection."""
        self._accelerometer_lowpass.reset()
        self._gyroscope_lowpass.reset()
        self._gyroscope_bias_lowpass.reset()
        self._accelerometer_static.reset()
        self._gyroscope_static.reset()

    def process_gyroscope(self, gyroscope_sample, timestamp_ns: int) -> None:
        """Update the estimator with a gyroscope reading in rad/s."""
        sample = _as_vector(gyroscope_sample)
        self._gyroscope_lowpass.add_sample(sample, timestamp_ns)

        delta = sample - self._gyroscope_lowpass.filtered_data
        self._gyroscope_static.append_frame(
            float(np.linalg.norm(delta)) < _GYROSCOPE_DELTA_STATIC_THRESHOLD
        )

        if self._both_static():
            if not self._update_gyroscope_bias(sample, timestamp_ns):
                # Motion too large for a bias update.
                self._gyroscope_static.append_frame(False)
        else:
            self._accumulated_weights = 0.0

    def process_accelerometer(self, accelerometer_sample, timestamp_ns: int) -> None:
        """Update the estimator with an accelerometer reading in m/s^2."""
        sample = _as_vector(accelerometer_sample)
        previous_timestamp_ns = self._accelerometer_lowpass.most_recent_timestamp_ns
        was_initialized = self._accelerometer_lowpass.initialized

        self._accelerometer_lowpass.add_sample(sample, timestamp_ns)
        filtered = self._accelerometer_lowpass.filtered_data

        self._accelerometer_static.append_frame(
            float(np.linalg.norm(sample - filtered)) < _ACCELEROMETER_DELTA_STATIC_THRESHOLD
        )

        # A rotation cannot be differentiated from a single sample.
        if not was_initialized:
            self._simulated_gyroscope_lowpass.add_sample(np.zeros(3), timestamp_ns)
            return

        if not self._accelerometer_static.is_recently_static():
            return

        self._median_filter.add_sample(filtered)

        if not self._median_filter.is_valid():
            self._mean_filter.add_sample(filtered)
            self._last_mean_filtered_accelerometer = filtered
            return

        self._mean_filter.add_sample(self._median_filter.filtered_data())

        timestep = float(timestamp_ns - previous_timestamp_ns)
        self._simulated_gyroscope_lowpass.add_sample(
            self._angular_velocity_from_latest_accelerometer(timestep), timestamp_ns
        )
        self._last_mean_filtered_accelerometer = self._mean_filter.filtered_data()

    def gyroscope_bias(self) -> np.ndarray:
        """The estimated bias; zeros if nothing has been estimated yet."""
        return self._gyroscope_bias_lowpass.filtered_data

    def is_current_estimate_valid(self) -> bool:
        """True when the device is static and the estimate can be trusted."""
        gravity = self._last_mean_filtered_accelerometer
        gravity_norm = float(np.linalg.norm(gravity))
        gravity_dir = gravity / gravity_norm if gravity_norm > 0.0 else np.zeros(3)
        bias = self._gyroscope_bias_lowpass.filtered_data

        # Bias along gravity cannot be observed from the accelerometer.
        off_gravity_bias = bias - gravity_dir * float(np.dot(bias, gravity_dir))

        gyro_from_accel = self._simulated_gyroscope_lowpass.filtered_data
        correlated = (
            float(np.linalg.norm(gyro_from_accel)) * _RATIO_BETWEEN_GYRO_BIAS_AND_ACCEL
            > float(np.linalg.norm(off_gravity_bias)) + _EPSILON
        )
        enough_samples = self._accumulated_weights > _MIN_SUM_OF_WEIGHTS
        return enough_samples and self._both_static() and not correlated

    def _both_static(self) -> bool:
        return (
            self._gyroscope_static.is_recently_static()
            and self._accelerometer_static.is_recently_static()
        )

    def _angular_velocity_from_latest_accelerometer(self, timestep: float) -> np.ndarray:
        if timestep < _MIN_TIMESTEP:
            return np.zeros(3)
        mean_of_median = self._mean_filter.filtered_data()
        incremental = Rotation.rotate_into(self._last_mean_filtered_accelerometer, mean_of_median)
        axis, angle = incremental.axis_and_angle()
        velocity = axis * (angle / timestep)
        return velocity.astype(np.float32).astype(float)

    def _update_gyroscope_bias(self, sample: np.ndarray, timestamp_ns: int) -> bool:
        norm = float(np.float32(np.linalg.norm(sample)))
        if norm >= _GYROSCOPE_FOR_BIAS_THRESHOLD:
            return False
        weight = max(0.0, 1.0 - norm / _GYROSCOPE_FOR_BIAS_THRESHOLD)
        weight *= weight
        self._gyroscope_bias_lowpass.add_weighted_sample(
            self._gyroscope_lowpass.filtered_data, timestamp_ns, weight
        )
        self._accumulated_weights += weight
        return True