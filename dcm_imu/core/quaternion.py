"""Rotation representation: DCM, quaternion and Euler angle conversions."""

import numpy as np
from numpy.typing import NDArray

from .types import Quaternion, EulerAngles

# Below this scalar part the trace-based extraction loses precision (rotation near 180 deg)
Q0_BRANCH_THRESHOLD = 1e-4


def skew(v: NDArray[np.float64]) -> NDArray[np.float64]:
    """Cross-product matrix, skew(a) @ b == cross(a, b)."""
    return np.array([
        [0.0, -v[2], v[1]],
        [v[2], 0.0, -v[0]],
        [-v[1], v[0], 0.0],
    ])


class QuaternionOps:
    """Static methods for quaternion operations."""

    @staticmethod
    def from_rotation_matrix(dcm: NDArray[np.float64]) -> Quaternion:
        """Convert rotation matrix to quaternion.

        The scalar part is taken from the trace and is always non-negative.
        Near a half turn it becomes too small to divide by, so the vector part
        is recovered from the diagonal instead. The sign of its dominant
        component comes from the matching pair of off-diagonal elements and
        the remaining signs from the symmetric off-diagonal sums, which stay
        informative at exactly 180 degrees.

        Args:
            dcm: 3x3 body-to-earth rotation matrix.

        Returns:
            Unit quaternion representing the same rotation.
        """
        R = np.asarray(dcm, dtype=np.float64)
        q0sq = (1.0 + R[0, 0] + R[1, 1] + R[2, 2]) * 0.25
        w = np.sqrt(abs(q0sq))

        if w > Q0_BRANCH_THRESHOLD:
            tmp = 0.25 / w
            x = (R[2, 1] - R[1, 2]) * tmp
            y = (R[0, 2] - R[2, 0]) * tmp
            z = (R[1, 0] - R[0, 1]) * tmp
        else:
            v = np.sqrt(np.abs(0.5 + 0.5 * np.diag(R) - q0sq))
            # R[j, k] - R[k, j] = 4 * w * q_i carries the sign of q_i relative to w >= 0
            antisym = np.array([R[2, 1] - R[1, 2], R[0, 2] - R[2, 0], R[1, 0] - R[0, 1]])
            # R[i, j] + R[j, i] = 4 * q_i * q_j
            sym = R + R.T
            i = int(np.argmax(v))
            if antisym[i] < 0:
                v[i] = -v[i]
            for j in range(3):
                if j != i:
                    v[j] = np.copysign(v[j], sym[i, j] * v[i])
            x, y, z = v

        q = Quaternion(w=float(w), x=float(x), y=float(y), z=float(z))
        return q.normalized()

    @staticmethod
    def to_rotation_matrix(q: Quaternion) -> NDArray[np.float64]:
        """Convert quaternion to rotation matrix.

        Args:
            q: Unit quaternion.

        Returns:
            3x3 body-to-earth rotation matrix.
        """
        w, x, y, z = q.w, q.x, q.y, q.z
        return np.array([
            [2.0 * (w * w + x * x) - 1.0, 2.0 * (x * y - w * z), 2.0 * (x * z + w * y)],
            [2.0 * (x * y + w * z), 2.0 * (w * w + y * y) - 1.0, 2.0 * (y * z - w * x)],
            [2.0 * (x * z - w * y), 2.0 * (y * z + w * x), 2.0 * (w * w + z * z) - 1.0],
        ])

    @staticmethod
    def to_euler(q: Quaternion) -> EulerAngles:
        """Convert quaternion to Euler angles (ZYX convention).

        Args:
            q: Unit quaternion.

        Returns:
            Euler angles in radians.
        """
        w, x, y, z = q.w, q.x, q.y, q.z

        sinr_cosp = 2.0 * (w * x + y * z)
        cosr_cosp = 1.0 - 2.0 * (x * x + y * y)
        roll = np.arctan2(sinr_cosp, cosr_cosp)

        sinp = 2.0 * (w * y - z * x)
        if abs(sinp) >= 1:
            pitch = np.copysign(np.pi / 2, sinp)
        else:
            pitch = np.arcsin(sinp)

        siny_cosp = 2.0 * (w * z + x * y)
        cosy_cosp = 1.0 - 2.0 * (y * y + z * z)
        yaw = np.arctan2(siny_cosp, cosy_cosp)

        return EulerAngles(roll=float(roll), pitch=float(pitch), yaw=float(yaw))

    @staticmethod
    def multiply(q1: Quaternion, q2: Quaternion) -> Quaternion:
        """Multiply two quaternions (Hamilton product).

        Args:
            q1: First quaternion.
            q2: Second quaternion.

        Returns:
            Product quaternion q1 * q2.
        """
        w = q1.w * q2.w - q1.x * q2.x - q1.y * q2.y - q1.z * q2.z
        x = q1.w * q2.x + q1.x * q2.w + q1.y * q2.z - q1.z * q2.y
        y = q1.w * q2.y - q1.x * q2.z + q1.y * q2.w + q1.z * q2.x
        z = q1.w * q2.z + q1.x * q2.y - q1.y * q2.x + q1.z * q2.w
        return Quaternion(w=w, x=x, y=y, z=z)

    @staticmethod
    def conjugate(q: Quaternion) -> Quaternion:
        """Compute quaternion conjugate.

        Args:
            q: Input quaternion.

        Returns:
            Conjugate quaternion.
        """
        return Quaternion(w=q.w, x=-q.x, y=-q.y, z=-q.z)

    @staticmethod
    def rotate(q: Quaternion, v: NDArray[np.float64]) -> NDArray[np.float64]:
        """Rotate a body-frame vector into the earth frame: q * v * q^-1."""
        tmp = QuaternionOps.multiply(q, Quaternion.pure(v))
        return QuaternionOps.multiply(tmp, QuaternionOps.conjugate(q)).vector

    @staticmethod
    def rotate_inverse(q: Quaternion, v: NDArray[np.float64]) -> NDArray[np.float64]:
        """Rotate an earth-frame vector into the body frame: q^-1 * v * q."""
        tmp = QuaternionOps.multiply(QuaternionOps.conjugate(q), Quaternion.pure(v))
        return QuaternionOps.multiply(tmp, q).vector
