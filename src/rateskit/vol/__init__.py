"""
Volatility module - SABR model and volatility surfaces.

Provides:
- SABR stochastic volatility model (Hagan implied volatility)
- SABR swaption volatilities on an expiry/tenor grid
- Black and normal Ibor cap/floor volatilities on an expiry/strike grid
"""

from .grid import VolatilityType, bilinear_weights
from .sabr import SabrParams, SabrModel, hagan_black_vol, parameter_bump
from .swaption_vols import SabrSwaptionVolatilities, require_sabr
from .capfloor_vols import (
    IborCapFloorVolatilities,
    BlackIborCapFloorVolatilities,
    NormalIborCapFloorVolatilities,
    flat_capfloor_volatilities,
)

__all__ = [
    "VolatilityType",
    "bilinear_weights",
    "SabrParams",
    "SabrModel",
    "hagan_black_vol",
    "parameter_bump",
    "SabrSwaptionVolatilities",
    "require_sabr",
    "IborCapFloorVolatilities",
    "BlackIborCapFloorVolatilities",
    "NormalIborCapFloorVolatilities",
    "flat_capfloor_volatilities",
]
