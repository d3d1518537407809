"""Extended Kalman filter fusing gyroscope and accelerometer into a rotation."""

from __future__ import annotations

import dataclasses

import numpy as np

from headtrack.gyroscope_bias_estimator import GyroscopeBiasEstimator
from headtrack.pose import PoseState, Rotation, rotation_from_gyroscope
from headtrack.samples import AccelerometerData, GyroscopeData

_FINITE_DIFFERENCING_EPSILON = 1.0e-7
_EPSILON = 1.0e-15
# Default gyroscope time step (100 Hz), single precision.
_DEFAULT_GYROSCOPE_TIMESTEP_S = float(np.float32(0.01))
# Gyroscope sample gap above which the integration step is limited.
_MAXIMUM_GYROSCOPE_SAMPLE_DELAY_S = float(np.float32(0.04))
# Exponential moving average factor for accelerometer norm changes.
_SMOOTHING_FACTOR = 0.5
# Bounds of the accelerometer noise sigma.
_MIN_ACCEL_NOISE_SIGMA = 0.75
_MAX_ACCEL_NOISE_SIGMA = 7.0
# Initial diagonal values of the covariance matrices.
_INITIAL_STATE_COVARIANCE_VALUE = 25.0
_INITIAL_PROCESS_COVARIANCE_VALUE = 1.0
# Accelerometer norm change at which the noise sigma reaches its maximum.
_MAX_ACCEL_NORM_CHANGE = 0.15
# Gyroscope time step IIR coefficient and minimum sample count.
_TIMESTEP_FILTER_COEFF = 0.95
_TIMESTEP_FILTER_MIN_SAMPLES = 10

_CANONICAL_Z_DIRECTION = np.array([0.0, 0.0, 1.0])


def _rotation_from_vector(a: np.ndarray) -> Rotation:
    """Axis-angle rotation with angle |a| about a/|a|; identity for a zero vector."""
    norm_a = float(np.linalg.norm(a))
    if norm_a < _EPSILON:
        return Rotation.identity()
    return Rotation.from_axis_and_angle(a / norm_a, norm_a)


class SensorFusionEkf:
    """Estimates a 3D rotation from gyroscope and accelerometer samples.

    The only state is the pose; no velocity or acceleration is estimated.
    """

    def __init__(self) -> None:
        self._execute_reset_with_next_accelerometer_sample = False
        self._bias_estimation_enabled = True
        self._gyroscope_bias_estimator = GyroscopeBiasEstimator()
        self._gyroscope_bias_estimate = np.zeros(3)
        self._current_state = PoseState()
        self._reset_state()

    def reset(self) -> None:
        """Reset with the next accelerometer sample; drop gyroscope samples until then."""
        self._execute_reset_with_next_accelerometer_sample = True

    def _reset_state(self) -> None:
        self._current_state.sensor_from_start_rotation = Rotation.identity()
        self._current_state.sensor_from_start_rotation_velocity = np.zeros(3)

        self._current_gyroscope_sensor_timestamp_ns = 0
        self._current_accelerometer_sensor_timestamp_ns = 0

        identity = np.identity(3)
        self._state_covariance = identity * _INITIAL_STATE_COVARIANCE_VALUE
        self._process_covariance = identity * _INITIAL_PROCESS_COVARIANCE_VALUE
        self._accelerometer_measurement_covariance = (
            identity * _MIN_ACCEL_NOISE_SIGMA * _MIN_ACCEL_NOISE_SIGMA
        )
        self._innovation_covariance = identity.copy()

        self._accelerometer_measurement_jacobian = np.zeros((3, 3))
        self._kalman_gain = np.zeros((3, 3))
        self._innovation = np.zeros(3)
        self._accelerometer_measurement = np.zeros(3)
        self._state_update = np.zeros(3)

        self._filtered_gyroscope_timestep_s = 0.0
        self._num_gyroscope_timestep_samples = 0
        self._previous_accelerometer_norm = 0.0
        self._moving_average_accelerometer_norm_change = 0.0

        self._is_timestep_filter_initialized = False
        self._is_gyroscope_filter_valid = False
        self._is_aligned_with_gravity = False

        self._gyroscope_bias_estimator.reset()
        self._gyroscope_bias_estimate = np.zeros(3)

    def latest_pose_state(self) -> PoseState:
        """A copy of the latest pose and its derivatives."""
        return dataclasses.replace(self._current_state)

    def process_gyroscope_sample(self, sample: GyroscopeData) -> None:
        """Integrate one gyroscope sample into the pose."""
        if self._execute_reset_with_next_accelerometer_sample:
            return

        if self._current_gyroscope_sensor_timestamp_ns >= sample.sensor_timestamp_ns:
            self._current_gyroscope_sensor_timestamp_ns = sample.sensor_timestamp_ns
            return

        if self._current_gyroscope_sensor_timestamp_ns != 0:
            timestep_s = (
                sample.sensor_timestamp_ns - self._current_gyroscope_sensor_timestamp_ns
            ) * 1.0e-9
            if timestep_s > _MAXIMUM_GYROSCOPE_SAMPLE_DELAY_S:
                if self._is_gyroscope_filter_valid:
                    timestep_s = self._filtered_gyroscope_timestep_s
                else:
                    timestep_s = _DEFAULT_GYROSCOPE_TIMESTEP_S
            else:
                self._filter_gyroscope_timestep(timestep_s)

            if self._bias_estimation_enabled:
                self._gyroscope_bias_estimator.process_gyroscope(
                    sample.data, sample.sensor_timestamp_ns
                )
                if self._gyroscope_bias_estimator.is_current_estimate_valid():
                    self._gyroscope_bias_estimate = self._gyroscope_bias_estimator.gyroscope_bias()

            # Integrate only once aligned with gravity.
            if self._is_aligned_with_gravity:
                rotation = rotation_from_gyroscope(
                    sample.data - self._gyroscope_bias_estimate, timestep_s
                )
                self._current_state.sensor_from_start_rotation = (
                    rotation * self._current_state.sensor_from_start_rotation
                )
                self._update_state_covariance(rotation.matrix())
                self._state_covariance = (
                    self._state_covariance
                    + (timestep_s * timestep_s) * self._process_covariance
                )

        self._current_state.timestamp = sample.system_timestamp
        self._current_gyroscope_sensor_timestamp_ns = sample.sensor_timestamp_ns
        self._current_state.sensor_from_start_rotation_velocity = (
            sample.data - self._gyroscope_bias_estimate
        )

    def _compute_innovation(self, pose: Rotation) -> np.ndarray:
        predicted_down_direction = pose * _CANONICAL_Z_DIRECTION
        rotation = Rotation.rotate_into(predicted_down_direction, self._accelerometer_measurement)
        axis, angle = rotation.axis_and_angle()
        return axis * angle

    def _compute_measurement_jacobian(self) -> None:
        for dof in range(3):
            delta = np.zeros(3)
            delta[dof] = _FINITE_DIFFERENCING_EPSILON
            epsilon_rotation = _rotation_from_vector(delta)
            delta_rotation = self._compute_innovation(
                epsilon_rotation * self._current_state.sensor_from_start_rotation
            )
            self._accelerometer_measurement_jacobian[:, dof] = (
                self._innovation - delta_rotation
            ) / _FINITE_DIFFERENCING_EPSILON

    def process_accelerometer_sample(self, sample: AccelerometerData) -> None:
        """Correct the pose toward the measured gravity direction."""
        if self._current_accelerometer_sensor_timestamp_ns >= sample.sensor_timestamp_ns:
            self._current_accelerometer_sensor_timestamp_ns = sample.sensor_timestamp_ns
            return

        if self._execute_reset_with_next_accelerometer_sample:
            self._execute_reset_with_next_accelerometer_sample = False
            self._reset_state()

        self._accelerometer_measurement = sample.data.copy()
        self._current_accelerometer_sensor_timestamp_ns = sample.sensor_timestamp_ns

        if self._bias_estimation_enabled:
            self._gyroscope_bias_estimator.process_accelerometer(
                sample.data, sample.sensor_timestamp_ns
            )

        if not self._is_aligned_with_gravity:
            # The first measurement initializes the orientation.
            self._current_state.sensor_from_start_rotation = Rotation.rotate_into(
                _CANONICAL_Z_DIRECTION, self._accelerometer_measurement
            )
            self._is_aligned_with_gravity = True
            self._previous_accelerometer_norm = float(
                np.linalg.norm(self._accelerometer_measurement)
            )
            return

        self._update_measurement_covariance()

        self._innovation = self._compute_innovation(self._current_state.sensor_from_start_rotation)
        self._compute_measurement_jacobian()

        h = self._accelerometer_measurement_jacobian
        p = self._state_covariance
        # S = H P H' + R
        self._innovation_covariance = h @ p @ h.T + self._accelerometer_measurement_covariance
        # K = P H' S^-1
        self._kalman_gain = p @ h.T @ np.linalg.inv(self._innovation_covariance)
        self._state_update = self._kalman_gain @ self._innovation
        # P = (I - K H) P
        self._state_covariance = (np.identity(3) - self._kalman_gain @ h) @ p

        rotation = _rotation_from_vector(self._state_update)
        self._current_state.sensor_from_start_rotation = (
            rotation * self._current_state.sensor_from_start_rotation
        )
        self._update_state_covariance(rotation.matrix())

    def _update_state_covariance(self, motion_update: np.ndarray) -> None:
        self._state_covariance = motion_update @ self._state_covariance @ motion_update.T

    def _filter_gyroscope_timestep(self, gyroscope_timestep_s: float) -> None:
        if not self._is_timestep_filter_initialized:
            self._filtered_gyroscope_timestep_s = gyroscope_timestep_s
            self._num_gyroscope_timestep_samples = 1
            self._is_timestep_filter_initialized = True
            return

        self._filtered_gyroscope_timestep_s = (
            _TIMESTEP_FILTER_COEFF * self._filtered_gyroscope_timestep_s
            + (1 - _TIMESTEP_FILTER_COEFF) * gyroscope_timestep_s
        )
        self._num_gyroscope_timestep_samples += 1
        if self._num_gyroscope_timestep_samples > _TIMESTEP_FILTER_MIN_SAMPLES:
            self._is_gyroscope_filter_valid = True

    def _update_measurement_covariance(self) -> None:
        norm = float(np.linalg.norm(self._accelerometer_measurement))
        norm_change = abs(norm - self._previous_accelerometer_norm)
        self._previous_accelerometer_norm = norm

        self._moving_average_accelerometer_norm_change = (
            _SMOOTHING_FACTOR * norm_change
            + (1 - _SMOOTHING_FACTOR) * self._moving_average_accelerometer_norm_change
        )

        ratio = self._moving_average_accelerometer_norm_change / _MAX_ACCEL_NORM_CHANGE
        sigma = min(
            _MAX_ACCEL_NOISE_SIGMA,
            _MIN_ACCEL_NOISE_SIGMA + ratio * (_MAX_ACCEL_NOISE_SIGMA - _MIN_ACCEL_NOISE_SIGMA),
        )
        self._accelerometer_measurement_covariance = np.identity(3) * sigma * sigma

    @property
    def bias_estimation_enabled(self) -> bool:
        """Whether drift correction by gyroscope bias estimation is on."""
        return self._bias_estimation_enabled

    @bias_estimation_enabled.setter
    def bias_estimation_enabled(self, enable: bool) -> None:
        if self._bias_estimation_enabled != enable:
            self._bias_estimation_enabled = bool(enable)
            self._gyroscope_bias_estimate = np.zeros(3)
            self._gyroscope_bias_estimator.reset()

    @property
    def gyroscope_bias(self) -> np.ndarray:
        """The current gyroscope bias estimate in rad/s."""
        return self._gyroscope_bias_estimate.copy()

    @property
    def is_fully_initialized(self) -> bool:
        """True after the first accelerometer measurement."""
        return self._is_aligned_with_gravity