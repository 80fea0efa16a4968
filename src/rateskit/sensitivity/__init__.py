"""
Sensitivity accumulation.

- point: tagged point sensitivities and their immutable/mutable collections
- parameter: bucketed sensitivities to curve and surface parameters
"""

from .point import (
    PointSensitivityBuilder,
    PointSensitivity,
    ZeroRateSensitivity,
    CreditCurveZeroRateSensitivity,
    SabrParameterType,
    SwaptionSabrSensitivity,
    IborCapFloorSensitivity,
    PointSensitivities,
    MutablePointSensitivities,
)
from .parameter import (
    ONE_BP,
    CurrencyParameterSensitivity,
    CurrencyParameterSensitivities,
)

__all__ = [
    "PointSensitivityBuilder",
    "PointSensitivity",
    "ZeroRateSensitivity",
    "CreditCurveZeroRateSensitivity",
    "SabrParameterType",
    "SwaptionSabrSensitivity",
    "IborCapFloorSensitivity",
    "PointSensitivities",
    "MutablePointSensitivities",
    "ONE_BP",
    "CurrencyParameterSensitivity",
    "CurrencyParameterSensitivities",
]
