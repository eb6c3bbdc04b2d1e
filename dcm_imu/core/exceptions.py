"""Exceptions raised by the DCM attitude estimator."""


class DcmImuError(Exception):
    """Base class for all estimator errors."""


class ConfigurationError(DcmImuError, ValueError):
    """An option is unknown or its value is not usable by the filter."""


class NumericalDegeneracyError(DcmImuError, ArithmeticError):
    """The filter state collapsed to a value that cannot be normalized."""

    def __init__(self, quantity: str, value: float) -> None:
        self.quantity = quantity
        self.value = value
        super().__init__()

    def __str__(self) -> str:
        """Return a string representation of the error."""
        return (
            f"Cannot normalize {self.quantity}: norm is {self.value!r}. "
            "The DCM part of the filter state degenerated; re-create the estimator."
        )
