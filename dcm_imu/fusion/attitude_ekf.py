"""Extended Kalman Filter for the DCM bottom row and gyro bias.

State vector: [C31, C32, C33, bx, by, bz] (6 dimensions)

The first three states are the bottom row of the body-to-earth rotation
matrix, i.e. the earth vertical seen from the body frame. The accelerometer
observes it scaled by gravity. The last three are the gyroscope bias, which
becomes observable through the coupling of the bias with the rotation of the
DCM row.
"""

import logging
from dataclasses import dataclass
from typing import Optional
import numpy as np
from numpy.typing import NDArray

from ..core.config import FilterConfig
from ..core.exceptions import NumericalDegeneracyError
from ..core.quaternion import skew
from ..core.types import EstimatorState

logger = logging.getLogger(__name__)

# Smallest DCM row length that can still be normalized
MIN_DCM_ROW_NORM = 1e-9


@dataclass(frozen=True)
class MeasurementUpdate:
    """Diagnostics of one measurement update."""
    R: NDArray[np.float64]           # adaptive measurement covariance (3x3)
    K: NDArray[np.float64]           # Kalman gain (6x3)
    S: NDArray[np.float64]           # innovation covariance (3x3)
    innovation: NDArray[np.float64]  # z - H x_predict


class AttitudeEKF:
    """EKF on the DCM bottom row with gyro bias estimation.

    Process model:
    - DCM row: C3' = C3 x (u - b), explicit Euler step
    - Bias: random walk

    Measurement model:
    - Accelerometer: z = g * C3 + v, with R scaled by the estimated
      non-gravitational acceleration
    """

    def __init__(self, config: Optional[FilterConfig] = None):
        """Initialize EKF.

        Args:
            config: Filter configuration. If None, uses defaults. The initial
                DCM row is normalized.
        """
        if config is None:
            config = FilterConfig()
        self._config = config
        self.g = float(config.gravity)

        x = config.initial_state()
        x[0:3] = x[0:3] / np.linalg.norm(x[0:3])
        self.state = EstimatorState(x=x)

        self.P = config.initial_covariance()
        self.H = np.hstack([np.eye(3) * self.g, np.zeros((3, 3))])
        self.Q = config.process_noise()

        self._x_predict: Optional[NDArray[np.float64]] = None
        self._P_predict: Optional[NDArray[np.float64]] = None
        self.last_update: Optional[MeasurementUpdate] = None

    @property
    def x(self) -> NDArray[np.float64]:
        """Current state vector (view)."""
        return self.state.x

    def predict(self, u: NDArray[np.float64], dt: float) -> None:
        """Prediction step using the gyroscope as control input.

        Args:
            u: Raw gyro reading [gx, gy, gz] in rad/s.
            dt: Time step in seconds.
        """
        x = self.state.x
        C3X = skew(x[0:3])
        UX = skew(u - x[3:6])

        F = np.eye(6)
        F[0:3, 0:3] -= dt * UX
        F[0:3, 3:6] -= dt * C3X

        # x(k+1) = x(k) + x'(k) * dt, the bias term is -C3X @ b
        x_predict = x.copy()
        x_predict[0:3] += dt * (C3X @ u - C3X @ x[3:6])

        self._x_predict = x_predict
        self._P_predict = F @ self.P @ F.T + dt ** 2 * self.Q

    def adaptive_measurement_noise(self, a_est: NDArray[np.float64]) -> NDArray[np.float64]:
        """Measurement covariance inflated by the non-gravitational acceleration.

        Args:
            a_est: Estimated non-gravitational acceleration in the body frame
                [m/s^2], with the accelerometer bias already removed.

        Returns:
            3x3 measurement covariance.
        """
        cfg = self._config
        a_len = float(np.linalg.norm(a_est))
        return (a_len * cfg.measurement_variance_variable_gain + cfg.measurement_variance) * np.eye(3)

    def gravity_residual(self, z: NDArray[np.float64]) -> NDArray[np.float64]:
        """Measured minus expected specific force for the current state [m/s^2]."""
        return z - self.state.x[0:3] * self.g

    def correct_and_normalize(self, z: NDArray[np.float64], R: NDArray[np.float64]) -> MeasurementUpdate:
        """Kalman update followed by renormalization of the DCM row.

        Args:
            z: Accelerometer reading in m/s^2, bias removed.
            R: Measurement covariance from `adaptive_measurement_noise`.

        Returns:
            Diagnostics of the update.

        Raises:
            RuntimeError: If called without a preceding `predict`.
            NumericalDegeneracyError: If the updated DCM row has (near) zero
                length. The state is left unchanged and the prediction is
                discarded.
        """
        if self._x_predict is None or self._P_predict is None:
            raise RuntimeError("correct_and_normalize() requires a preceding predict()")

        x_predict = self._x_predict
        P_predict = self._P_predict
        H = self.H

        y = z - H @ x_predict
        PHt = P_predict @ H.T
        S = H @ PHt + R
        K = np.linalg.solve(S, PHt.T).T

        x = x_predict + K @ y

        # Joseph form, valid for any K
        IKH = np.eye(6) - K @ H
        P = IKH @ P_predict @ IKH.T + K @ R @ K.T

        dcm_len = float(np.linalg.norm(x[0:3]))
        if not np.isfinite(dcm_len) or dcm_len < MIN_DCM_ROW_NORM:
            logger.error("DCM row degenerated after update (norm=%r)", dcm_len)
            self._x_predict = None
            self._P_predict = None
            raise NumericalDegeneracyError("DCM row", dcm_len)

        # First-order propagation of P through x -> x / |x| on the DCM block
        c = x[0:3]
        J = np.eye(6)
        J[0:3, 0:3] = (dcm_len ** 2 * np.eye(3) - np.outer(c, c)) / dcm_len ** 3
        P = J @ P @ J.T

        x[0:3] = c / dcm_len
        self.state = EstimatorState(x=x)
        self.P = 0.5 * (P + P.T)
        self._x_predict = None
        self._P_predict = None

        self.last_update = MeasurementUpdate(R=R, K=K, S=S, innovation=y)
        return self.last_update

    def get_dcm_row(self) -> NDArray[np.float64]:
        """Get current bottom row of the DCM."""
        return self.state.dcm_row.copy()

    def get_bias(self) -> NDArray[np.float64]:
        """Get current gyro bias estimate [bx, by, bz] in rad/s."""
        return self.state.gyro_bias.copy()

    def get_covariance(self) -> NDArray[np.float64]:
        """Get current state covariance matrix."""
        return self.P.copy()

    def get_bias_uncertainty(self) -> NDArray[np.float64]:
        """Get bias uncertainty (standard deviation per axis)."""
        return np.sqrt(np.diag(self.P[3:6, 3:6]))
