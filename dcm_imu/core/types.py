"""Data types for DCM attitude estimation."""

from dataclasses import dataclass, field
import numpy as np
from numpy.typing import NDArray


@dataclass
class Quaternion:
    """Unit quaternion representing orientation.

    Convention: [w, x, y, z] where w is the scalar component. The rotation
    maps body-frame vectors to the earth frame.
    """
    w: float
    x: float
    y: float
    z: float

    @classmethod
    def identity(cls) -> "Quaternion":
        """Return identity quaternion (no rotation)."""
        return cls(w=1.0, x=0.0, y=0.0, z=0.0)

    @classmethod
    def from_array(cls, arr: NDArray[np.float64]) -> "Quaternion":
        """Create from numpy array [w, x, y, z]."""
        return cls(w=float(arr[0]), x=float(arr[1]),
                   y=float(arr[2]), z=float(arr[3]))

    @classmethod
    def pure(cls, v: NDArray[np.float64]) -> "Quaternion":
        """Create a pure quaternion [0, v] from a 3-vector."""
        return cls(w=0.0, x=float(v[0]), y=float(v[1]), z=float(v[2]))

    def to_array(self) -> NDArray[np.float64]:
        """Convert to numpy array [w, x, y, z]."""
        return np.array([self.w, self.x, self.y, self.z], dtype=np.float64)

    @property
    def vector(self) -> NDArray[np.float64]:
        """Vector part [x, y, z]."""
        return np.array([self.x, self.y, self.z], dtype=np.float64)

    @property
    def norm(self) -> float:
        """Euclidean norm of quaternion."""
        return float(np.sqrt(self.w**2 + self.x**2 + self.y**2 + self.z**2))

    def is_valid(self, tolerance: float = 1e-6) -> bool:
        """Check if quaternion is unit quaternion within tolerance."""
        return abs(self.norm - 1.0) <= tolerance and self._is_finite()

    def _is_finite(self) -> bool:
        """Check all components are finite."""
        return bool(np.all(np.isfinite([self.w, self.x, self.y, self.z])))

    def normalized(self) -> "Quaternion":
        """Return normalized copy."""
        n = self.norm
        if n < 1e-10:
            return Quaternion.identity()
        return Quaternion(w=self.w/n, x=self.x/n, y=self.y/n, z=self.z/n)


@dataclass(frozen=True)
class EulerAngles:
    """Euler angles in radians.

    Convention: ZYX (yaw-pitch-roll) intrinsic rotations.
    """
    roll: float   # Rotation about X axis
    pitch: float  # Rotation about Y axis
    yaw: float    # Rotation about Z axis

    @property
    def roll_deg(self) -> float:
        """Roll angle in degrees."""
        return float(np.rad2deg(self.roll))

    @property
    def pitch_deg(self) -> float:
        """Pitch angle in degrees."""
        return float(np.rad2deg(self.pitch))

    @property
    def yaw_deg(self) -> float:
        """Yaw angle in degrees."""
        return float(np.rad2deg(self.yaw))


@dataclass
class EstimatorState:
    """Filter state: bottom row of the body-to-earth DCM and gyro bias.

    Stored as a single 6-vector [C31, C32, C33, bx, by, bz].
    """
    x: NDArray[np.float64]

    @property
    def dcm_row(self) -> NDArray[np.float64]:
        """Bottom row of the DCM (gravity direction in the body frame)."""
        return self.x[0:3]

    @property
    def gyro_bias(self) -> NDArray[np.float64]:
        """Gyroscope bias [bx, by, bz] in rad/s."""
        return self.x[3:6]


@dataclass(frozen=True)
class EstimatorOutput:
    """Snapshot of the estimator after one update cycle."""
    quaternion: Quaternion
    euler: EulerAngles
    dcm: NDArray[np.float64]
    acceleration: NDArray[np.float64]  # m/s^2, earth frame, gravity removed
    velocity: NDArray[np.float64]
    position: NDArray[np.float64]
    gyro_bias: NDArray[np.float64]
    covariance: NDArray[np.float64]
    measurement_noise: float  # diagonal of the adaptive R
    heading_corrected: bool
    iteration: int

    @property
    def yaw(self) -> float:
        """Yaw angle in radians."""
        return self.euler.yaw

    @property
    def pitch(self) -> float:
        """Pitch angle in radians."""
        return self.euler.pitch

    @property
    def roll(self) -> float:
        """Roll angle in radians."""
        return self.euler.roll

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "qw": self.quaternion.w,
            "qx": self.quaternion.x,
            "qy": self.quaternion.y,
            "qz": self.quaternion.z,
            "roll": self.euler.roll_deg,
            "pitch": self.euler.pitch_deg,
            "yaw": self.euler.yaw_deg,
            "acceleration": self.acceleration.tolist(),
            "velocity": self.velocity.tolist(),
            "position": self.position.tolist(),
            "gyro_bias": self.gyro_bias.tolist(),
            "measurement_noise": self.measurement_noise,
            "heading_corrected": self.heading_corrected,
            "iteration": self.iteration,
        }


@dataclass
class ValidationResult:
    """Result of sensor data validation."""
    is_valid: bool
    errors: list = field(default_factory=list)
    warnings: list = field(default_factory=list)

    def add_error(self, message: str) -> None:
        """Add validation error."""
        self.is_valid = False
        self.errors.append(message)

    def add_warning(self, message: str) -> None:
        """Add validation warning."""
        self.warnings.append(message)
