"""Rotations, head pose state and gyroscope-based pose prediction."""

from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass, field

import numpy as np

_log = logging.getLogger(__name__)

_EPSILON = 1.0e-15
_PARALLEL_EPSILON = 1.0e-12


def _as_vector(value) -> np.ndarray:
    vector = np.array(value, dtype=float)
    if vector.shape != (3,):
        raise ValueError(f"expected a 3-component vector, got shape {vector.shape}")
    return vector


class PoseStateFlag(enum.IntFlag):
    INVALID = 1 << 0
    INITIALIZING = 1 << 1
    HAS_6DOF = 1 << 2


@dataclass(frozen=True)
class Rotation:
    """A 3D rotation stored as a unit quaternion (x, y, z, w)."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    w: float = 1.0

    def __post_init__(self) -> None:
        norm = math.sqrt(self.x**2 + self.y**2 + self.z**2 + self.w**2)
        if norm < _EPSILON:
            raise ValueError("rotation quaternion must not be zero")
        for name in ("x", "y", "z", "w"):
            object.__setattr__(self, name, float(getattr(self, name)) / norm)

    @classmethod
    def identity(cls) -> Rotation:
        return cls(0.0, 0.0, 0.0, 1.0)

    @classmethod
    def from_axis_and_angle(cls, axis, angle: float) -> Rotation:
        """Rotation of ``angle`` radians about ``axis`` (normalized here)."""
        axis = _as_vector(axis)
        length = np.linalg.norm(axis)
        if length < _EPSILON:
            return cls.identity()
        axis = axis / length
        s = math.sin(angle / 2.0)
        return cls(axis[0] * s, axis[1] * s, axis[2] * s, math.cos(angle / 2.0))

    @classmethod
    def rotate_into(cls, from_vector, to_vector) -> Rotation:
        """The shortest rotation taking the direction of one vector onto another."""
        a = _as_vector(from_vector)
        b = _as_vector(to_vector)
        na, nb = np.linalg.norm(a), np.linalg.norm(b)
        if na < _EPSILON or nb < _EPSILON:
            return cls.identity()
        a, b = a / na, b / nb
        d = float(np.dot(a, b))
        if d >= 1.0 - _PARALLEL_EPSILON:
            return cls.identity()
        if d <= -1.0 + _PARALLEL_EPSILON:
            helper = np.array([1.0, 0.0, 0.0]) if abs(a[0]) < 0.9 else np.array([0.0, 1.0, 0.0])
            return cls.from_axis_and_angle(np.cross(a, helper), math.pi)
        c = np.cross(a, b)
        return cls(c[0], c[1], c[2], 1.0 + d)

    def axis_and_angle(self) -> tuple[np.ndarray, float]:
        """Unit axis and angle in radians; (x axis, 0) for the identity."""
        vec = np.array([self.x, self.y, self.z])
        length = np.linalg.norm(vec)
        if length < _EPSILON:
            return np.array([1.0, 0.0, 0.0]), 0.0
        angle = 2.0 * math.acos(max(-1.0, min(1.0, self.w)))
        return vec / length, angle

    def matrix(self) -> np.ndarray:
        """The equivalent 3x3 rotation matrix."""
        x, y, z, w = self.x, self.y, self.z, self.w
        return np.array(
            [
                [1 - 2 * (y * y + z * z), 2 * (x * y - z * w), 2 * (x * z + y * w)],
                [2 * (x * y + z * w), 1 - 2 * (x * x + z * z), 2 * (y * z - x * w)],
                [2 * (x * z - y * w), 2 * (y * z + x * w), 1 - 2 * (x * x + y * y)],
            ]
        )

    def rotate(self, vector) -> np.ndarray:
        v = _as_vector(vector)
        u = np.array([self.x, self.y, self.z])
        t = 2.0 * np.cross(u, v)
        return v + self.w * t + np.cross(u, t)

    def __mul__(self, other):
        if isinstance(other, Rotation):
            x1, y1, z1, w1 = self.x, self.y, self.z, self.w
            x2, y2, z2, w2 = other.x, other.y, other.z, other.w
            return Rotation(
                w1 * x2 + x1 * w2 + y1 * z2 - z1 * y2,
                w1 * y2 - x1 * z2 + y1 * w2 + z1 * x2,
                w1 * z2 + x1 * y2 - y1 * x2 + z1 * w2,
                w1 * w2 - x1 * x2 - y1 * y2 - z1 * z2,
            )
        try:
            vector = _as_vector(other)
        except (TypeError, ValueError):
            return NotImplemented
        return self.rotate(vector)

    def __neg__(self) -> Rotation:
        """The inverse rotation."""
        return Rotation(-self.x, -self.y, -self.z, self.w)


@dataclass(eq=False)
class PoseState:
    """A head pose plus its derivatives, usable for prediction."""

    timestamp: int = 0
    sensor_from_start_rotation: Rotation = field(default_factory=Rotation.identity)
    sensor_from_start_rotation_velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    bias: np.ndarray = field(default_factory=lambda: np.zeros(3))
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    flags: PoseStateFlag = PoseStateFlag(0)

    def __post_init__(self) -> None:
        self.sensor_from_start_rotation_velocity = _as_vector(self.sensor_from_start_rotation_velocity)
        self.bias = _as_vector(self.bias)
        self.position = _as_vector(self.position)
        self.velocity = _as_vector(self.velocity)
        self.flags = PoseStateFlag(self.flags)


def rotation_from_gyroscope(gyroscope_value, timestep_s: float) -> Rotation:
    """Integrate a gyroscope reading over ``timestep_s`` seconds (start to sensor)."""
    gyro = _as_vector(gyroscope_value)
    velocity = float(np.linalg.norm(gyro))
    if velocity < _EPSILON:
        _log.info("velocity really small, returning identity rotation")
        return Rotation.identity()
    # The gyroscope gives start-from-sensor motion; negate for sensor-from-start.
    return Rotation.from_axis_and_angle(gyro / velocity, -timestep_s * velocity)


def _update(requested_pose_timestamp: int, current_state: PoseState) -> Rotation:
    timestep_s = (requested_pose_timestamp - current_state.timestamp) * 1.0e-9
    return rotation_from_gyroscope(current_state.sensor_from_start_rotation_velocity, timestep_s)


def predict_pose(requested_pose_timestamp: int, current_state: PoseState) -> Rotation:
    """Linearly extrapolate the start-to-sensor pose to the requested time."""
    return _update(requested_pose_timestamp, current_state) * current_state.sensor_from_start_rotation


def predict_pose_inv(requested_pose_timestamp: int, current_state: PoseState) -> Rotation:
    """Like predict_pose, for poses relative to start space."""
    return current_state.sensor_from_start_rotation * (-_update(requested_pose_timestamp, current_state))