"""Input validation for sensor samples."""

from typing import Any
import numpy as np
from numpy.typing import NDArray

from .types import Quaternion, ValidationResult


def as_vector3(value: Any, name: str) -> NDArray[np.float64]:
    """Normalize a row or column 3-vector to a flat float array.

    Args:
        value: Array-like of shape (3,), (3, 1) or (1, 3).
        name: Input name used in error messages.

    Returns:
        Copy of the vector with shape (3,).

    Raises:
        ValueError: If the input is not a 3-vector.
    """
    arr = np.array(value, dtype=np.float64)
    if arr.shape not in ((3,), (3, 1), (1, 3)):
        raise ValueError(f"{name} must be a 3-vector (row or column), got shape {arr.shape}")
    return arr.reshape(3)


def validate_dt(dt: float) -> ValidationResult:
    """Validate time step for a filter update.

    Args:
        dt: Time step in seconds.

    Returns:
        ValidationResult with status.
    """
    result = ValidationResult(is_valid=True)

    try:
        dt = float(dt)
    except (TypeError, ValueError):
        result.add_error(f"dt is not a number: {dt!r}")
        return result

    if not np.isfinite(dt):
        result.add_error(f"Non-finite dt: {dt}")
    elif dt <= 0:
        result.add_error(f"Non-positive dt: {dt}")

    return result


class SampleValidator:
    """Checks one sample for hard errors and soft plausibility warnings."""

    def __init__(self, gravity_tolerance: float = 0.5, quaternion_tolerance: float = 1e-6):
        """Initialize validator.

        Args:
            gravity_tolerance: Allowed deviation of |accel| from 1 g (in g)
                before a warning is raised.
            quaternion_tolerance: Allowed deviation of the attitude
                quaternion norm from 1.
        """
        self._gravity_tolerance = gravity_tolerance
        self._quaternion_tolerance = quaternion_tolerance

    def validate_sample(
        self,
        gyro: NDArray[np.float64],
        accel: NDArray[np.float64],
        mag: NDArray[np.float64],
        dt: float,
    ) -> ValidationResult:
        """Validate a normalized sample.

        Args:
            gyro: Angular rate [rad/s].
            accel: Specific force in g units.
            mag: Magnetic field, any unit.
            dt: Sample period in seconds.

        Returns:
            ValidationResult with validation status and any errors/warnings.
        """
        result = validate_dt(dt)

        for name, vec in (("gyro", gyro), ("accel", accel), ("mag", mag)):
            if not np.all(np.isfinite(vec)):
                result.add_error(f"Non-finite value in {name}: {vec}")

        if result.is_valid:
            acc_norm = float(np.linalg.norm(accel))
            if abs(acc_norm - 1.0) > self._gravity_tolerance:
                result.add_warning(
                    f"Acceleration magnitude {acc_norm:.2f} g deviates from 1 g "
                    f"+/- {self._gravity_tolerance:.2f} g"
                )

        return result

    def validate_quaternion(self, q: Quaternion) -> ValidationResult:
        """Validate attitude quaternion.

        Args:
            q: Quaternion to validate.

        Returns:
            ValidationResult with status and any issues.
        """
        result = ValidationResult(is_valid=True)

        if not q._is_finite():
            result.add_error("Quaternion contains non-finite values")
            return result

        if abs(q.norm - 1.0) > self._quaternion_tolerance:
            result.add_warning(f"Quaternion norm drift: {q.norm:.12f}")

        return result
