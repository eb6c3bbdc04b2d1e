"""Pytest fixtures for DCM attitude estimator tests."""

import sys
from pathlib import Path
import pytest
import numpy as np
from numpy.typing import NDArray

repo_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(repo_root))

from dcm_imu.core.config import Config, FilterConfig, HeadingConfig
from dcm_imu.core.types import Quaternion
from dcm_imu.fusion.dcm_imu import DcmImu

DT = 0.01


def yaw_quaternion(angle: float) -> Quaternion:
    """Rotation about the vertical axis."""
    return Quaternion(w=np.cos(angle / 2), x=0.0, y=0.0, z=np.sin(angle / 2))


def mag_for_heading(yaw: float) -> NDArray[np.float64]:
    """Body-frame field of a level body at `yaw`, reference along earth X."""
    return np.array([np.cos(yaw), -np.sin(yaw), 0.0])


@pytest.fixture
def config() -> Config:
    """Create default configuration for tests."""
    return Config()


@pytest.fixture
def filter_config() -> FilterConfig:
    """Create default attitude filter configuration."""
    return FilterConfig()


@pytest.fixture
def heading_config() -> HeadingConfig:
    """Create default heading correction configuration."""
    return HeadingConfig()


@pytest.fixture
def estimator() -> DcmImu:
    """Create an estimator with default options."""
    return DcmImu()


@pytest.fixture
def level_sample():
    """Stationary level sample: no rotation, 1 g down, field along earth X."""
    return (
        np.zeros(3),
        np.array([0.0, 0.0, 1.0]),
        np.array([1.0, 0.0, 0.0]),
        DT,
    )


@pytest.fixture
def identity_quaternion() -> Quaternion:
    """Create identity quaternion (no rotation)."""
    return Quaternion.identity()


@pytest.fixture
def sample_quaternion() -> Quaternion:
    """Create a sample non-identity quaternion.

    Represents a 30 degree rotation about Z axis.
    """
    return yaw_quaternion(np.deg2rad(30))


@pytest.fixture
def noisy_motion():
    """Seeded gyro/accel/mag series with rotation and noise (500 samples)."""
    rng = np.random.default_rng(42)
    n = 500
    t = np.arange(n) * DT
    gyro = np.column_stack([
        0.5 * np.sin(2 * np.pi * 0.5 * t),
        0.3 * np.cos(2 * np.pi * 0.3 * t),
        0.2 * np.ones(n),
    ]) + rng.normal(0, 0.01, (n, 3))
    accel = np.tile([0.0, 0.0, 1.0], (n, 1)) + rng.normal(0, 0.05, (n, 3))
    mag = np.tile([0.4, 0.1, 0.8], (n, 1)) + rng.normal(0, 0.02, (n, 3))
    return gyro, accel, mag
