"""Attitude estimation components for the DCM IMU filter."""

from .attitude_ekf import AttitudeEKF, MeasurementUpdate
from .accel_bias import AccelerationBiasEstimator, AccelerationBiasKF
from .heading import HeadingCorrector
from .motion import MotionIntegrator
from .dcm_imu import DcmImu, run_series

__all__ = [
    "AttitudeEKF",
    "MeasurementUpdate",
    "AccelerationBiasEstimator",
    "AccelerationBiasKF",
    "HeadingCorrector",
    "MotionIntegrator",
    "DcmImu",
    "run_series",
]
