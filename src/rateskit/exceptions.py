"""
Exception taxonomy for rateskit.

- InvalidNameError: identifier fails the allowed-character pattern
- CalibrationError: bootstrap ordering, arbitrage or convergence failure
- ModelMismatchError: volatility family used where another family is required
- ConversionError: FX rate missing for a requested currency pair
- PricingError: failure inside a pricing step, wrapped with its context

Each error carries enough context to identify the offending input; none of
them is retried by the library since every computation is deterministic.
"""

from typing import Optional


class RatesKitError(Exception):
    """Base class for all rateskit errors."""


class InvalidNameError(RatesKitError, ValueError):
    """Raised when a name contains characters outside the allowed set."""

    def __init__(self, message: str, name: Optional[str] = None):
        super().__init__(message)
        self.name = name


class CalibrationError(RatesKitError):
    """
    Raised when a curve cannot be calibrated.

    Attributes:
        instrument: Label of the instrument being solved when it failed
    """

    def __init__(self, message: str, instrument: Optional[str] = None):
        super().__init__(message)
        self.instrument = instrument


class ModelMismatchError(RatesKitError, TypeError):
    """Raised when volatility model families are mixed."""


class ConversionError(RatesKitError, KeyError):
    """Raised when an FX rate is not available for a currency pair."""

    def __init__(self, base: str, counter: str):
        self.base = base
        self.counter = counter
        super().__init__(f"No FX rate found for {base}/{counter}")

    def __str__(self) -> str:
        return f"No FX rate found for {self.base}/{self.counter}"


class PricingError(RatesKitError):
    """
    Raised when a pricing step fails.

    Attributes:
        step: Short description of the step that failed
    """

    def __init__(self, message: str, step: Optional[str] = None):
        super().__init__(message)
        self.step = step


__all__ = [
    "RatesKitError",
    "InvalidNameError",
    "CalibrationError",
    "ModelMismatchError",
    "ConversionError",
    "PricingError",
]
