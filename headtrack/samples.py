"""Timestamped inertial sensor samples."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np


def _as_vector(value) -> np.ndarray:
    vector = np.array(value, dtype=float)
    if vector.shape != (3,):
        raise ValueError(f"expected a 3-component vector, got shape {vector.shape}")
    return vector


def _check_timestamp(name: str, value: int) -> None:
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {value}")


@dataclass(eq=False)
class AccelerometerData:
    """Acceleration along x, y, z in m/s^2 (Android sensor axes)."""

    system_timestamp: int = 0
    sensor_timestamp_ns: int = 0
    data: np.ndarray = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self) -> None:
        _check_timestamp("system_timestamp", self.system_timestamp)
        _check_timestamp("sensor_timestamp_ns", self.sensor_timestamp_ns)
        self.data = _as_vector(self.data)


@dataclass(eq=False)
class GyroscopeData:
    """Rate of rotation around x, y, z in rad/s (Android sensor axes)."""

    system_timestamp: int = 0
    sensor_timestamp_ns: int = 0
    data: np.ndarray = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self) -> None:
        _check_timestamp("system_timestamp", self.system_timestamp)
        _check_timestamp("sensor_timestamp_ns", self.sensor_timestamp_ns)
        self.data = _as_vector(self.data)