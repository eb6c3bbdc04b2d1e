"""Magnetometer heading correction.

A proportional-integral complementary filter pulls the yaw of the attitude
quaternion towards the reference magnetic direction. Only the horizontal
projection of the measured field is used, so inclination and field strength
do not matter and tilt stays with the attitude EKF.
"""

import logging
from typing import Optional, Tuple
import numpy as np
from numpy.typing import NDArray

from ..core.config import HeadingConfig
from ..core.quaternion import QuaternionOps
from ..core.types import Quaternion

logger = logging.getLogger(__name__)

# Corrections are small-angle; keep the scalar part of the correction real
MAX_CORRECTION_NORM = 0.999

MIN_HORIZONTAL_FIELD = 1e-9


class HeadingCorrector:
    """Complementary filter correcting yaw from a magnetometer.

    The heading error is the cross product of the measured (earth frame,
    horizontal) field direction with the reference direction. It is rotated
    back to the body frame and blended as Kp * e + Ki * integral(e).

    The correction dq is applied as dq^-1 * q * dq ("sandwich", default) or
    as q * dq ("compose"). The sandwich form is a similarity transform and
    leaves the yaw of a level body unchanged; compose turns the estimate
    towards the reference heading.
    """

    def __init__(self, config: Optional[HeadingConfig] = None):
        """Initialize heading corrector.

        Args:
            config: Gains, reference vector and correction mode.
                If None, uses defaults.
        """
        if config is None:
            config = HeadingConfig()
        self._config = config

        ref = np.asarray(config.mag_reference, dtype=np.float64).reshape(3)
        self._mag_reference = ref / np.linalg.norm(ref)
        self._mag_reference.flags.writeable = False

        self.error_integral = np.zeros(3)

    @property
    def mag_reference(self) -> NDArray[np.float64]:
        """Expected earth-frame magnetic direction (unit, read-only)."""
        return self._mag_reference

    def heading_error(self, q: Quaternion, mag: NDArray[np.float64]) -> Optional[NDArray[np.float64]]:
        """Heading error axis in the body frame.

        Args:
            q: Current attitude quaternion.
            mag: Magnetometer reading in the body frame.

        Returns:
            Body-frame error vector, or None if the reading carries no
            horizontal direction.
        """
        mag_e = QuaternionOps.rotate(q, mag)
        mag_e = mag_e / np.linalg.norm(mag_e)
        mag_e[2] = 0.0
        if np.linalg.norm(mag_e) < MIN_HORIZONTAL_FIELD:
            return None

        err_e = np.cross(mag_e, self._mag_reference)
        return QuaternionOps.rotate_inverse(q, err_e)

    def correct(self, q: Quaternion, mag: NDArray[np.float64], dt: float) -> Tuple[Quaternion, bool]:
        """Apply one heading correction step.

        Args:
            q: Current attitude quaternion.
            mag: Magnetometer reading, any unit.
            dt: Time step in seconds.

        Returns:
            Tuple of (corrected quaternion, whether a correction was applied).
            A zero reading returns the input quaternion unchanged and leaves
            the integral untouched.
        """
        if not np.any(mag):
            return q, False

        err_b = self.heading_error(q, mag)
        if err_b is None:
            logger.debug("Magnetometer reading is vertical, heading correction skipped")
            return q, False

        cfg = self._config
        self.error_integral = self.error_integral + cfg.ki * err_b * dt
        change = cfg.beta * (self.error_integral + cfg.kp * err_b)

        change_norm = float(np.linalg.norm(change))
        if change_norm >= 1.0:
            logger.warning(
                "Heading correction %.3f exceeds small-angle range, clipped to %.3f",
                change_norm, MAX_CORRECTION_NORM
            )
            change = change * (MAX_CORRECTION_NORM / change_norm)
            change_norm = MAX_CORRECTION_NORM

        dq = Quaternion(
            w=float(np.sqrt(1.0 - change_norm ** 2)),
            x=float(change[0]),
            y=float(change[1]),
            z=float(change[2]),
        )

        if cfg.mode == "sandwich":
            tmp = QuaternionOps.multiply(QuaternionOps.conjugate(dq), q)
            q_new = QuaternionOps.multiply(tmp, dq)
        else:
            q_new = QuaternionOps.multiply(q, dq)

        return q_new.normalized(), True
