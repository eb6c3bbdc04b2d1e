"""Accelerometer bias estimation.

The attitude filter only needs a collaborator that, fed the residual between
the measured specific force and the predicted gravity, reports a slowly
varying accelerometer bias in components 3..5 of its state. Any object that
satisfies `AccelerationBiasEstimator` can be plugged in.
"""

from typing import Optional, Protocol
import numpy as np
from numpy.typing import NDArray

from ..core.config import AccelBiasConfig


class AccelerationBiasEstimator(Protocol):
    """Call contract of the accelerometer bias filter."""

    def update(self, residual: NDArray[np.float64], dt: float) -> NDArray[np.float64]:
        """Process one residual [m/s^2] and return the 6-state; state[3:6] is the bias."""
        ...


class AccelerationBiasKF:
    """Linear Kalman filter separating motion from accelerometer bias.

    State: [a(3), b(3)]
    - a: non-gravitational acceleration, zero-mean white process
    - b: accelerometer bias, slow random walk

    Measurement model: residual = a + b + v
    """

    def __init__(self, config: Optional[AccelBiasConfig] = None):
        """Initialize filter.

        Args:
            config: Noise parameters. If None, uses defaults.
        """
        if config is None:
            config = AccelBiasConfig()
        self._config = config

        self.state = np.zeros(6)
        self.P = np.diag([config.acceleration_variance] * 3 + [config.initial_bias_variance] * 3)
        self.H = np.hstack([np.eye(3), np.eye(3)])
        self.R = np.eye(3) * config.measurement_variance

    def update(self, residual: NDArray[np.float64], dt: float) -> NDArray[np.float64]:
        """Predict and correct with one residual.

        Args:
            residual: Measured minus predicted specific force [m/s^2].
            dt: Time step in seconds.

        Returns:
            Copy of the updated state [a, b].
        """
        cfg = self._config

        # Prediction: acceleration has no memory, bias random walk
        F = np.diag([0.0] * 3 + [1.0] * 3)
        Q = np.diag([cfg.acceleration_variance] * 3 + [cfg.bias_variance * dt] * 3)
        x = F @ self.state
        P = F @ self.P @ F.T + Q

        # Correction
        y = np.asarray(residual, dtype=np.float64) - self.H @ x
        S = self.H @ P @ self.H.T + self.R
        K = np.linalg.solve(S, self.H @ P).T

        self.state = x + K @ y
        IKH = np.eye(6) - K @ self.H
        self.P = IKH @ P @ IKH.T + K @ self.R @ K.T

        return self.state.copy()

    @property
    def bias(self) -> NDArray[np.float64]:
        """Current accelerometer bias estimate [m/s^2]."""
        return self.state[3:6].copy()

    @property
    def acceleration(self) -> NDArray[np.float64]:
        """Current non-gravitational acceleration estimate [m/s^2]."""
        return self.state[0:3].copy()
