import math

import numpy as np
import pytest

from headtrack.pose import (
    PoseState,
    PoseStateFlag,
    Rotation,
    predict_pose,
    predict_pose_inv,
    rotation_from_gyroscope,
)


def test_pose_state_carries_combined_flags():
    state = PoseState(flags=PoseStateFlag.INVALID | PoseStateFlag.HAS_6DOF)
    assert state.flags == 5
    assert state.flags & PoseStateFlag.INVALID
    assert not state.flags & PoseStateFlag.INITIALIZING
    assert PoseStateFlag(2) == PoseStateFlag.INITIALIZING


def test_identity_leaves_vector_unchanged():
    v = np.array([1.0, -2.0, 3.0])
    assert np.allclose(Rotation.identity() * v, v)


def test_quarter_turn_about_z_maps_x_to_y():
    r = Rotation.from_axis_and_angle([0.0, 0.0, 2.0], math.pi / 2)
    assert np.allclose(r * [1.0, 0.0, 0.0], [0.0, 1.0, 0.0])


def test_zero_quaternion_raises():
    with pytest.raises(ValueError):
        Rotation(0.0, 0.0, 0.0, 0.0)


def test_matrix_is_orthonormal_and_matches_rotate():
    r = Rotation.from_axis_and_angle([1.0, 2.0, -0.5], 1.1)
    m = r.matrix()
    assert np.allclose(m @ m.T, np.eye(3))
    assert math.isclose(np.linalg.det(m), 1.0)
    v = np.array([0.3, -1.2, 2.0])
    assert np.allclose(m @ v, r.rotate(v))


def test_axis_and_angle_round_trip():
    axis = np.array([1.0, -1.0, 2.0]) / math.sqrt(6.0)
    out_axis, out_angle = Rotation.from_axis_and_angle(axis, 0.7).axis_and_angle()
    assert np.allclose(out_axis, axis)
    assert math.isclose(out_angle, 0.7)


def test_identity_axis_and_angle():
    axis, angle = Rotation.identity().axis_and_angle()
    assert angle == 0.0
    assert np.array_equal(axis, np.array([1.0, 0.0, 0.0]))


@pytest.mark.parametrize(
    "src,dst",
    [
        ([0.0, 0.0, 1.0], [1.0, 2.0, 3.0]),
        ([1.0, 0.0, 0.0], [-3.0, 0.0, 0.0]),
        ([0.5, 0.5, 0.0], [1.0, 1.0, 0.0]),
    ],
)
def test_rotate_into_maps_direction(src, dst):
    r = Rotation.rotate_into(src, dst)
    result = r * src
    assert np.allclose(result / np.linalg.norm(result), np.array(dst) / np.linalg.norm(dst))


def test_inverse_composes_to_identity():
    r = Rotation.from_axis_and_angle([0.2, 0.3, 0.9], 2.0)
    assert np.allclose((r * (-r)).matrix(), np.eye(3), atol=1e-9)
    assert np.allclose(((-r) * r).matrix(), np.eye(3), atol=1e-9)


def test_composition_matches_matrix_product():
    a = Rotation.from_axis_and_angle([1.0, 0.0, 0.0], 0.4)
    b = Rotation.from_axis_and_angle([0.0, 1.0, 1.0], -1.3)
    assert np.allclose((a * b).matrix(), a.matrix() @ b.matrix())


def test_multiplying_by_unsupported_type_raises():
    with pytest.raises(TypeError):
        Rotation.identity() * "abc"


def test_rotation_from_zero_gyroscope_is_identity():
    result = rotation_from_gyroscope([0.0, 0.0, 0.0], 0.5)
    assert np.allclose(result.matrix(), np.eye(3), atol=1e-9)


def test_rotation_from_gyroscope_angle_and_axis():
    gyro = np.array([0.0, 0.0, 2.0])
    axis, angle = rotation_from_gyroscope(gyro, 0.25).axis_and_angle()
    assert math.isclose(angle, 0.5)
    assert np.allclose(axis, -gyro / np.linalg.norm(gyro))


def test_pose_state_defaults():
    state = PoseState()
    assert state.timestamp == 0
    assert np.allclose(state.sensor_from_start_rotation.matrix(), np.eye(3), atol=1e-9)
    assert np.array_equal(state.position, np.zeros(3))
    assert state.flags == 0


def test_predict_with_zero_velocity_keeps_rotation():
    rot = Rotation.from_axis_and_angle([1.0, 1.0, 0.0], 0.6)
    state = PoseState(timestamp=1000, sensor_from_start_rotation=rot)
    assert np.allclose(predict_pose(5_000_000, state).matrix(), rot.matrix(), atol=1e-9)
    assert np.allclose(predict_pose_inv(5_000_000, state).matrix(), rot.matrix(), atol=1e-9)


def test_predict_pose_applies_gyroscope_update():
    rot = Rotation.from_axis_and_angle([0.0, 1.0, 0.0], 0.3)
    velocity = np.array([0.1, -0.4, 0.2])
    state = PoseState(timestamp=10_000_000, sensor_from_start_rotation=rot,
                      sensor_from_start_rotation_velocity=velocity)
    requested = 30_000_000
    update = rotation_from_gyroscope(velocity, (requested - state.timestamp) * 1.0e-9)
    predicted = predict_pose(requested, state)
    assert np.allclose(predicted.matrix(), (update * rot).matrix(), atol=1e-9)
    assert not np.allclose(predicted.matrix(), rot.matrix(), atol=1e-9)
    predicted_inv = predict_pose_inv(requested, state)
    assert np.allclose((predicted_inv * update).matrix(), rot.matrix(), atol=1e-9)


def test_predict_into_the_past_uses_negative_step():
    velocity = np.array([0.0, 0.0, 1.0])
    state = PoseState(timestamp=20_000_000, sensor_from_start_rotation_velocity=velocity)
    forward = predict_pose(30_000_000, state)
    backward = predict_pose(10_000_000, state)
    assert np.allclose((forward * backward).matrix(), np.eye(3), atol=1e-9)
    _, angle = backward.axis_and_angle()
    assert math.isclose(angle, 0.01, rel_tol=1e-6)