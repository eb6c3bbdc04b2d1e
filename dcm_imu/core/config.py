"""Configuration management for the DCM attitude estimator."""

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple
import os

import numpy as np
import yaml

from .exceptions import ConfigurationError

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "default.yaml"
CONFIG_PATH_ENV = "DCM_IMU_CONFIG_PATH"

HEADING_MODES = ("compose", "sandwich")


@dataclass
class FilterConfig:
    """Attitude EKF configuration.

    Variances are per second; they are scaled by the squared sample period
    when the process noise is applied.
    """
    gravity: float = 9.8
    state: Optional[Sequence[float]] = None  # [C31, C32, C33, bx, by, bz]
    covariance: Optional[Sequence[Sequence[float]]] = None  # 6x6, overrides the derived default
    dcm_variance: float = 0.00003
    bias_variance: float = 0.000001
    initial_dcm_variance: float = 1.0
    initial_bias_variance: float = 0.01
    measurement_variance: float = 0.25
    measurement_variance_variable_gain: float = 100.0

    def initial_state(self) -> np.ndarray:
        """Initial 6-state as an array."""
        if self.state is None:
            return np.array([0.0, 0.0, 1.0, 0.0, 0.0, 0.0])
        return np.asarray(self.state, dtype=np.float64).reshape(-1).copy()

    def initial_covariance(self) -> np.ndarray:
        """Initial 6x6 covariance, derived from the variances unless given."""
        if self.covariance is not None:
            return np.asarray(self.covariance, dtype=np.float64).copy()
        return np.diag([self.initial_dcm_variance] * 3 + [self.initial_bias_variance] * 3)

    def process_noise(self) -> np.ndarray:
        """Static part of the 6x6 process noise covariance."""
        return np.diag([self.dcm_variance] * 3 + [self.bias_variance] * 3)


@dataclass
class HeadingConfig:
    """Magnetometer heading correction (complementary filter) configuration."""
    beta: float = 1.0
    ki: float = 0.001
    kp: float = 0.01
    mag_reference: Sequence[float] = (1.0, 0.0, 0.0)
    mode: str = "sandwich"


@dataclass
class AccelBiasConfig:
    """Default accelerometer bias filter configuration (m/s^2 units)."""
    acceleration_variance: float = 1.0
    bias_variance: float = 1e-8
    initial_bias_variance: float = 1e-4
    measurement_variance: float = 0.01


@dataclass
class Config:
    """Complete configuration for the estimator."""
    filter: FilterConfig = field(default_factory=FilterConfig)
    heading: HeadingConfig = field(default_factory=HeadingConfig)
    accel_bias: AccelBiasConfig = field(default_factory=AccelBiasConfig)

    def validate(self) -> "Config":
        """Check every option and return self.

        Raises:
            ConfigurationError: If any option is unusable.
        """
        _validate_filter(self.filter)
        _validate_heading(self.heading)
        _validate_accel_bias(self.accel_bias)
        return self

    def with_options(self, **options: Any) -> "Config":
        """Return a copy with flat named options applied.

        Accepts the names of `OPTION_FIELDS` and their `OPTION_ALIASES`.

        Raises:
            ConfigurationError: If an option name is unknown.
        """
        sections: Dict[str, Dict[str, Any]] = {}
        for name, value in options.items():
            key = OPTION_ALIASES.get(name, name)
            if key not in OPTION_FIELDS:
                raise ConfigurationError(f"Unknown option: {name!r}")
            section, attr = OPTION_FIELDS[key]
            sections.setdefault(section, {})[attr] = value

        updated = {
            section: replace(getattr(self, section), **values)
            for section, values in sections.items()
        }
        return replace(self, **updated)


#: Flat option name -> (config section, field)
OPTION_FIELDS: Dict[str, Tuple[str, str]] = {
    **{f.name: ("filter", f.name) for f in fields(FilterConfig)},
    "beta": ("heading", "beta"),
    "ki": ("heading", "ki"),
    "kp": ("heading", "kp"),
    "mag_reference": ("heading", "mag_reference"),
    "heading_mode": ("heading", "mode"),
}

#: CamelCase spellings accepted for the filter options
OPTION_ALIASES: Dict[str, str] = {
    "Gravity": "gravity",
    "State": "state",
    "Covariance": "covariance",
    "DCMVariance": "dcm_variance",
    "BiasVariance": "bias_variance",
    "InitialDCMVariance": "initial_dcm_variance",
    "InitialBiasVariance": "initial_bias_variance",
    "MeasurementVariance": "measurement_variance",
    "MeasurementVarianceVariableGain": "measurement_variance_variable_gain",
    "Beta": "beta",
}


def _require_positive(section: str, name: str, value: Any) -> None:
    try:
        ok = float(value) > 0.0 and np.isfinite(float(value))
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{section}.{name} must be a number, got {value!r}") from e
    if not ok:
        raise ConfigurationError(f"{section}.{name} must be positive and finite, got {value!r}")


def _validate_filter(cfg: FilterConfig) -> None:
    for name in (
        "gravity",
        "dcm_variance",
        "bias_variance",
        "initial_dcm_variance",
        "initial_bias_variance",
        "measurement_variance",
        "measurement_variance_variable_gain",
    ):
        _require_positive("filter", name, getattr(cfg, name))

    state = np.asarray(cfg.initial_state(), dtype=np.float64)
    if state.shape != (6,) or not np.all(np.isfinite(state)):
        raise ConfigurationError(f"filter.state must be 6 finite values, got shape {state.shape}")
    if np.linalg.norm(state[0:3]) < 1e-9:
        raise ConfigurationError("filter.state DCM part [C31, C32, C33] must not be zero")

    if cfg.covariance is not None:
        P = np.asarray(cfg.covariance, dtype=np.float64)
        if P.shape != (6, 6) or not np.all(np.isfinite(P)):
            raise ConfigurationError(f"filter.covariance must be a finite 6x6 matrix, got shape {P.shape}")
        if not np.allclose(P, P.T):
            raise ConfigurationError("filter.covariance must be symmetric")
        if np.min(np.linalg.eigvalsh(P)) < -1e-12:
            raise ConfigurationError("filter.covariance must be positive semi-definite")


def _validate_heading(cfg: HeadingConfig) -> None:
    for name in ("beta", "ki", "kp"):
        value = getattr(cfg, name)
        if not isinstance(value, (int, float)) or not np.isfinite(value) or value < 0.0:
            raise ConfigurationError(f"heading.{name} must be non-negative, got {value!r}")

    ref = np.asarray(cfg.mag_reference, dtype=np.float64)
    if ref.shape != (3,) or not np.all(np.isfinite(ref)):
        raise ConfigurationError(f"heading.mag_reference must be 3 finite values, got shape {ref.shape}")
    if np.linalg.norm(ref) < 1e-9:
        raise ConfigurationError("heading.mag_reference must not be the zero vector")

    if cfg.mode not in HEADING_MODES:
        raise ConfigurationError(f"heading.mode must be one of {HEADING_MODES}, got {cfg.mode!r}")


def _validate_accel_bias(cfg: AccelBiasConfig) -> None:
    for f in fields(AccelBiasConfig):
        _require_positive("accel_bias", f.name, getattr(cfg, f.name))


def _dict_to_dataclass(data: Mapping[str, Any], cls: type, path: str) -> Any:
    """Convert a mapping to a dataclass, rejecting unknown keys."""
    field_types = {f.name: f.type for f in fields(cls)}
    kwargs = {}

    for key, value in data.items():
        if key not in field_types:
            raise ConfigurationError(f"Unknown option: {path}{key!r}")
        field_type = field_types[key]
        if hasattr(field_type, "__dataclass_fields__"):
            if not isinstance(value, Mapping):
                raise ConfigurationError(f"Section {path}{key!r} must be a mapping")
            kwargs[key] = _dict_to_dataclass(value, field_type, f"{path}{key}.")
        else:
            kwargs[key] = value

    return cls(**kwargs)


def config_from_dict(data: Optional[Mapping[str, Any]]) -> Config:
    """Build and validate a Config from a nested mapping.

    Raises:
        ConfigurationError: On unknown keys or invalid values.
    """
    if data is None:
        return Config().validate()
    if not isinstance(data, Mapping):
        raise ConfigurationError("Configuration root must be a mapping")
    return _dict_to_dataclass(data, Config, "").validate()


def load_config(config_path: Optional[str] = None) -> Config:
    """Load configuration from YAML file.

    Args:
        config_path: Path to configuration file. If None, the path in
            DCM_IMU_CONFIG_PATH is used, then the packaged default.

    Returns:
        Validated configuration object.

    Raises:
        FileNotFoundError: If specified config file doesn't exist.
        ConfigurationError: If the file contains unknown or invalid options.
    """
    if config_path is None:
        env_path = os.environ.get(CONFIG_PATH_ENV)
        if env_path:
            config_path = env_path
        elif DEFAULT_CONFIG_PATH.exists():
            config_path = str(DEFAULT_CONFIG_PATH)
        else:
            return Config().validate()

    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    return config_from_dict(data)
