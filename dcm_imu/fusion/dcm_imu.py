"""DCM based attitude, heading and motion estimator.

Main interface combining:
- AttitudeEKF for the DCM bottom row and gyro bias
- AccelerationBiasEstimator for the adaptive measurement noise
- HeadingCorrector for magnetometer yaw correction
- MotionIntegrator for earth-frame acceleration, velocity and position

Based on H. Hyyti and A. Visala, "A DCM Based Attitude Estimation Algorithm
for Low-Cost MEMS IMUs", International Journal of Navigation and
Observation, 2015.
"""

import copy
import logging
from typing import Any, Dict, Optional, Union
import numpy as np
from numpy.typing import ArrayLike, NDArray

from ..core.config import Config
from ..core.exceptions import NumericalDegeneracyError
from ..core.quaternion import QuaternionOps, skew
from ..core.types import EstimatorOutput, EulerAngles, Quaternion
from ..core.validation import SampleValidator, as_vector3
from .accel_bias import AccelerationBiasEstimator, AccelerationBiasKF
from .attitude_ekf import AttitudeEKF, MIN_DCM_ROW_NORM
from .heading import HeadingCorrector
from .motion import MotionIntegrator

logger = logging.getLogger(__name__)


class DcmImu:
    """Per-sample attitude estimator for gyroscope, accelerometer and magnetometer.

    Usage:
        imu = DcmImu(gravity=9.81, heading_mode="compose")

        while True:
            gyro, accel, mag, dt = source.read()
            out = imu.update(gyro, accel, mag, dt)
            print(out.yaw, out.pitch, out.roll)
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        accel_bias_estimator: Optional[AccelerationBiasEstimator] = None,
        **options: Any
    ):
        """Initialize estimator.

        Args:
            config: Full configuration. If None, uses defaults.
            accel_bias_estimator: Accelerometer bias filter. If None, an
                `AccelerationBiasKF` is created from `config.accel_bias`.
            **options: Flat named options applied on top of `config`,
                e.g. gravity=9.81, measurement_variance=0.3, Beta=0.5.

        Raises:
            ConfigurationError: If an option is unknown or invalid.
        """
        if config is None:
            config = Config()
        config = config.with_options(**options).validate()
        self._config = config

        if accel_bias_estimator is None:
            accel_bias_estimator = AccelerationBiasKF(config.accel_bias)

        self.g = float(config.filter.gravity)
        self.ekf = AttitudeEKF(config.filter)
        self.accel_bias = accel_bias_estimator
        self.heading = HeadingCorrector(config.heading)
        self.motion = MotionIntegrator(self.g)
        self._validator = SampleValidator()

        self._quaternion = Quaternion.identity()
        self._dcm = np.eye(3)
        self._first_row = np.array([1.0, 0.0, 0.0])
        self._euler = EulerAngles(roll=0.0, pitch=0.0, yaw=0.0)
        self._accel_bias_estimate = np.zeros(3)
        self._measurement_noise = 0.0
        self._heading_corrected = False
        self._iteration = 0

        logger.info(
            "DcmImu initialized: g=%.3f, r_acc2=%.3g, r_a2=%.3g, heading mode=%s",
            self.g,
            config.filter.measurement_variance,
            config.filter.measurement_variance_variable_gain,
            config.heading.mode,
        )

    @property
    def config(self) -> Config:
        """Configuration in use."""
        return self._config

    def update(self, gyro: ArrayLike, accel: ArrayLike, mag: ArrayLike, dt: float) -> EstimatorOutput:
        """Process one sample.

        Args:
            gyro: Angular rate [rad/s], row or column 3-vector.
            accel: Specific force in g units.
            mag: Magnetic field, any unit. All zeros disables the heading
                correction for this sample.
            dt: Sample period in seconds.

        Returns:
            Snapshot of the estimate after this sample.

        Raises:
            ValueError: If the sample is malformed or non-finite, or dt <= 0.
            NumericalDegeneracyError: If the attitude cannot be normalized.
                The filter state and the bias filter are restored to their
                values before the call.
        """
        u = as_vector3(gyro, "gyro")
        acc = as_vector3(accel, "accel")
        mag = as_vector3(mag, "mag")

        validation = self._validator.validate_sample(u, acc, mag, dt)
        if not validation.is_valid:
            raise ValueError("Invalid sample: " + "; ".join(validation.errors))
        for warning in validation.warnings:
            logger.debug(warning)
        dt = float(dt)

        z = acc * self.g

        # Restored if the cycle degenerates, so a failed sample changes nothing
        ekf_state, ekf_P, ekf_last_update = self.ekf.state, self.ekf.P, self.ekf.last_update
        accel_bias = copy.deepcopy(self.accel_bias)
        try:
            self.ekf.predict(u, dt)

            # Residual against the state before prediction, as seen by the bias filter
            bias_state = np.asarray(self.accel_bias.update(self.ekf.gravity_residual(z), dt))
            accel_bias_estimate = bias_state[3:6].copy()
            z = z - accel_bias_estimate

            R = self.ekf.adaptive_measurement_noise(self.ekf.gravity_residual(z))
            self.ekf.correct_and_normalize(z, R)

            dcm = self._integrate_rotation(u, dt)
        except NumericalDegeneracyError:
            self.ekf.state, self.ekf.P, self.ekf.last_update = ekf_state, ekf_P, ekf_last_update
            self.accel_bias = accel_bias
            raise

        self._accel_bias_estimate = accel_bias_estimate
        self._measurement_noise = float(R[0, 0])

        q = QuaternionOps.from_rotation_matrix(dcm)
        q, self._heading_corrected = self.heading.correct(q, mag, dt)
        if not self._heading_corrected:
            logger.debug("Heading correction skipped at iteration %d", self._iteration)

        q_check = self._validator.validate_quaternion(q)
        for warning in q_check.warnings:
            logger.debug(warning)

        self._quaternion = q.normalized()
        self._dcm = QuaternionOps.to_rotation_matrix(self._quaternion)
        self._euler = QuaternionOps.to_euler(self._quaternion)
        self._first_row = self._dcm[0, :].copy()

        self.motion.update(self._dcm, z, dt)
        self._iteration += 1

        return self.output

    def _integrate_rotation(self, u: NDArray[np.float64], dt: float) -> NDArray[np.float64]:
        """Rebuild the full DCM from the carried first row and the updated bottom row."""
        x = self.ekf.x
        c3 = x[0:3]
        UX = skew(u - x[3:6])

        # Rotate the first row by the bias-corrected rate
        x1 = self._first_row - dt * UX @ self._first_row
        x1 = x1 / np.linalg.norm(x1)
        x2 = np.cross(c3, x1)

        # Remove the component along the bottom row
        x1 = np.cross(x2, c3)
        x1_len = float(np.linalg.norm(x1))
        if x1_len < MIN_DCM_ROW_NORM:
            logger.error("First DCM row collapsed onto the bottom row (norm=%r)", x1_len)
            raise NumericalDegeneracyError("DCM first row", x1_len)
        x1 = x1 / x1_len
        x2 = np.cross(c3, x1)

        return np.vstack([x1, x2, c3])

    @property
    def output(self) -> EstimatorOutput:
        """Snapshot of the current estimate."""
        return EstimatorOutput(
            quaternion=self._quaternion,
            euler=self._euler,
            dcm=self._dcm.copy(),
            acceleration=self.motion.acceleration.copy(),
            velocity=self.motion.velocity.copy(),
            position=self.motion.position.copy(),
            gyro_bias=self.ekf.get_bias(),
            covariance=self.ekf.get_covariance(),
            measurement_noise=self._measurement_noise,
            heading_corrected=self._heading_corrected,
            iteration=self._iteration,
        )

    @property
    def quaternion(self) -> Quaternion:
        """Current attitude quaternion."""
        return self._quaternion

    @property
    def euler(self) -> EulerAngles:
        """Current Euler angles."""
        return self._euler

    @property
    def yaw(self) -> float:
        """Yaw angle in radians."""
        return self._euler.yaw

    @property
    def pitch(self) -> float:
        """Pitch angle in radians."""
        return self._euler.pitch

    @property
    def roll(self) -> float:
        """Roll angle in radians."""
        return self._euler.roll

    @property
    def dcm(self) -> NDArray[np.float64]:
        """Current body-to-earth rotation matrix."""
        return self._dcm.copy()

    @property
    def state(self) -> NDArray[np.float64]:
        """Filter state [C31, C32, C33, bx, by, bz]."""
        return self.ekf.x.copy()

    @property
    def covariance(self) -> NDArray[np.float64]:
        """Filter covariance (6x6)."""
        return self.ekf.get_covariance()

    @property
    def gyro_bias(self) -> NDArray[np.float64]:
        """Gyro bias estimate [rad/s]."""
        return self.ekf.get_bias()

    @property
    def accel_bias_estimate(self) -> NDArray[np.float64]:
        """Accelerometer bias used in the last update [m/s^2]."""
        return self._accel_bias_estimate.copy()

    @property
    def acceleration(self) -> NDArray[np.float64]:
        """Earth-frame acceleration with gravity removed [m/s^2]."""
        return self.motion.acceleration.copy()

    @property
    def velocity(self) -> NDArray[np.float64]:
        """Earth-frame velocity [m/s]."""
        return self.motion.velocity.copy()

    @property
    def position(self) -> NDArray[np.float64]:
        """Earth-frame position relative to the start [m]."""
        return self.motion.position.copy()

    @property
    def first_row(self) -> NDArray[np.float64]:
        """First DCM row carried to the next cycle."""
        return self._first_row.copy()

    @property
    def update_count(self) -> int:
        """Number of processed samples."""
        return self._iteration


def run_series(
    estimator: DcmImu,
    gyro: ArrayLike,
    accel: ArrayLike,
    mag: ArrayLike,
    dt: Union[float, ArrayLike],
) -> Dict[str, NDArray[np.float64]]:
    """Feed sample arrays through an estimator one row at a time.

    Args:
        estimator: Estimator to update in place.
        gyro: N x 3 angular rates [rad/s].
        accel: N x 3 specific force [g].
        mag: N x 3 magnetic field.
        dt: Sample period, scalar or length N.

    Returns:
        Dict of stacked outputs: quaternion (N x 4, [w, x, y, z]),
        euler (N x 3, [roll, pitch, yaw]), acceleration, velocity, position
        and gyro_bias (N x 3).

    Raises:
        ValueError: If the inputs do not have matching N x 3 shapes.
    """
    gyro = np.atleast_2d(np.asarray(gyro, dtype=np.float64))
    accel = np.atleast_2d(np.asarray(accel, dtype=np.float64))
    mag = np.atleast_2d(np.asarray(mag, dtype=np.float64))

    n = gyro.shape[0]
    for name, arr in (("gyro", gyro), ("accel", accel), ("mag", mag)):
        if arr.shape != (n, 3):
            raise ValueError(f"{name} must have shape ({n}, 3), got {arr.shape}")

    dts = np.broadcast_to(np.asarray(dt, dtype=np.float64), (n,))

    result = {
        "quaternion": np.empty((n, 4)),
        "euler": np.empty((n, 3)),
        "acceleration": np.empty((n, 3)),
        "velocity": np.empty((n, 3)),
        "position": np.empty((n, 3)),
        "gyro_bias": np.empty((n, 3)),
    }

    for i in range(n):
        out = estimator.update(gyro[i], accel[i], mag[i], dts[i])
        result["quaternion"][i] = out.quaternion.to_array()
        result["euler"][i] = (out.roll, out.pitch, out.yaw)
        result["acceleration"][i] = out.acceleration
        result["velocity"][i] = out.velocity
        result["position"][i] = out.position
        result["gyro_bias"][i] = out.gyro_bias

    return result
