"""Head orientation tracking: sample records, filters, rotations, gyroscope bias estimation and an EKF."""

__version__ = "0.1.0"

__all__ = [
    "gyroscope_bias_estimator",
    "lowpass_filter",
    "mean_filter",
    "median_filter",
    "pose",
    "samples",
    "sensor_fusion_ekf",
]