"""Earth-frame acceleration, velocity and position from the attitude."""

import numpy as np
from numpy.typing import NDArray


class MotionIntegrator:
    """Dead-reckoning of linear motion by explicit Euler integration.

    Velocity and position are pure integrals and drift without bound; no
    correction is attempted here.
    """

    def __init__(self, gravity: float = 9.8):
        """Initialize integrator at rest at the origin.

        Args:
            gravity: Gravity magnitude in m/s^2.
        """
        self.gravity_vector = np.array([0.0, 0.0, gravity])
        self.acceleration = np.zeros(3)
        self.velocity = np.zeros(3)
        self.position = np.zeros(3)

    def update(self, dcm: NDArray[np.float64], specific_force: NDArray[np.float64], dt: float) -> NDArray[np.float64]:
        """Integrate one sample.

        Args:
            dcm: Body-to-earth rotation matrix.
            specific_force: Accelerometer reading in m/s^2 (body frame).
            dt: Time step in seconds.

        Returns:
            Earth-frame acceleration with gravity removed [m/s^2].
        """
        self.acceleration = dcm @ specific_force - self.gravity_vector
        self.velocity = self.velocity + self.acceleration * dt
        self.position = self.position + self.velocity * dt + 0.5 * self.acceleration * dt ** 2
        return self.acceleration.copy()

    def reset(self) -> None:
        """Zero acceleration, velocity and position."""
        self.acceleration = np.zeros(3)
        self.velocity = np.zeros(3)
        self.position = np.zeros(3)
