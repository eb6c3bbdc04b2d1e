"""DCM based attitude estimation for low-cost MEMS IMUs."""

from .core import (
    Config,
    FilterConfig,
    HeadingConfig,
    AccelBiasConfig,
    load_config,
    config_from_dict,
    Quaternion,
    EulerAngles,
    EstimatorState,
    EstimatorOutput,
    DcmImuError,
    ConfigurationError,
    NumericalDegeneracyError,
)
from .fusion import (
    DcmImu,
    run_series,
    AttitudeEKF,
    AccelerationBiasEstimator,
    AccelerationBiasKF,
    HeadingCorrector,
    MotionIntegrator,
)

__version__ = "0.1.0"

__all__ = [
    "DcmImu",
    "run_series",
    "AttitudeEKF",
    "AccelerationBiasEstimator",
    "AccelerationBiasKF",
    "HeadingCorrector",
    "MotionIntegrator",
    "Config",
    "FilterConfig",
    "HeadingConfig",
    "AccelBiasConfig",
    "load_config",
    "config_from_dict",
    "Quaternion",
    "EulerAngles",
    "EstimatorState",
    "EstimatorOutput",
    "DcmImuError",
    "ConfigurationError",
    "NumericalDegeneracyError",
    "__version__",
]
