"""Core module for DCM attitude estimation."""

from .types import (
    Quaternion,
    EulerAngles,
    EstimatorState,
    EstimatorOutput,
    ValidationResult,
)
from .exceptions import DcmImuError, ConfigurationError, NumericalDegeneracyError
from .validation import SampleValidator, as_vector3, validate_dt
from .quaternion import QuaternionOps, skew
from .config import (
    Config,
    FilterConfig,
    HeadingConfig,
    AccelBiasConfig,
    config_from_dict,
    load_config,
)

__all__ = [
    "Quaternion",
    "EulerAngles",
    "EstimatorState",
    "EstimatorOutput",
    "ValidationResult",
    "DcmImuError",
    "ConfigurationError",
    "NumericalDegeneracyError",
    "SampleValidator",
    "as_vector3",
    "validate_dt",
    "QuaternionOps",
    "skew",
    "Config",
    "FilterConfig",
    "HeadingConfig",
    "AccelBiasConfig",
    "config_from_dict",
    "load_config",
]
