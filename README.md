# headtrack

Estimate the orientation of a head-mounted device from raw gyroscope and
accelerometer samples.

At its core is `SensorFusionEkf`, an extended Kalman filter. It integrates
gyroscope rates and corrects drift against the gravity direction that the
accelerometer measures. While the device is held still, a gyroscope bias
estimator runs alongside it, and the filter subtracts the bias it learns from
later gyroscope readings.

## Installation

```
pip install .
```

To install with the test dependencies:

```
pip install .[test]
```

## Usage

```python
from headtrack.samples import AccelerometerData, GyroscopeData
from headtrack.sensor_fusion_ekf import SensorFusionEkf
from headtrack.pose import predict_pose

fusion = SensorFusionEkf()

# Start with one accelerometer sample, in m/s^2. It aligns the filter with gravity.
fusion.process_accelerometer_sample(
    AccelerometerData(system_timestamp=0, sensor_timestamp_ns=1_000_000, data=(0.0, 0.0, 9.81))
)

# Gyroscope samples in rad/s, with timestamps in nanoseconds.
fusion.process_gyroscope_sample(
    GyroscopeData(system_timestamp=10_000_000, sensor_timestamp_ns=10_000_000, data=(0.0, 0.1, 0.0))
)

state = fusion.latest_pose_state()
print(state.sensor_from_start_rotation.matrix())

# Extrapolate the pose 20 ms ahead, for example to the time of the next rendered frame.
future = predict_pose(state.timestamp + 20_000_000, state)
print(future.axis_and_angle())
```

`SensorFusionEkf` also offers these members:

- `reset()`: the state is reset when the next accelerometer sample arrives. Gyroscope samples are ignored until then.
- `is_fully_initialized`: true once the first accelerometer sample has been processed.
- `gyroscope_bias`: the bias estimate currently in use, in rad/s.
- `bias_estimation_enabled`: a property that can be read and set. Setting it to a new value clears the current bias estimate.

Samples whose sensor timestamps do not increase are discarded.

## What the package contains

- `headtrack.samples`: the `AccelerometerData` and `GyroscopeData` records. Each holds a system timestamp, a sensor timestamp in nanoseconds and a 3-vector. Negative timestamps and vectors that are not 3-vectors raise `ValueError`.
- `headtrack.lowpass_filter.LowpassFilter`: a first-order IIR low-pass filter for 3-vectors. It ignores a sample whose timestamp goes backwards. It also ignores a sample that arrives 1 ms or less, or more than 1 s, after the previous one.
- `headtrack.mean_filter.MeanFilter`: a fixed-window filter for 3-vectors that reports the mean of the window.
- `headtrack.median_filter.MedianFilter`: a fixed-window filter for 3-vectors that reports the sample with the median norm. `filtered_data()` raises `ValueError` until the window is full.
- `headtrack.pose`: the `Rotation` unit-quaternion type, `PoseState`, the `PoseStateFlag` flags, and the prediction helpers `rotation_from_gyroscope`, `predict_pose` and `predict_pose_inv`.
  - `Rotation` supports `*` to compose two rotations or to rotate a vector, and unary `-` to invert.
- `headtrack.gyroscope_bias_estimator.GyroscopeBiasEstimator`: estimates gyroscope bias while the device is static.
  - `is_current_estimate_valid()` tells whether the estimate can be trusted.
- `headtrack.sensor_fusion_ekf.SensorFusionEkf`: the orientation filter.

## What it does not do

This is a library only. It has no command-line tool. It does not read sensors or talk to any device: the caller supplies samples that have already been converted to m/s^2 and rad/s. Only orientation is estimated. The `position` and `velocity` fields of `PoseState` are never updated by the filter.

## Running the tests

```
pytest
```