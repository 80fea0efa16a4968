"""
Curves package - yield and credit curve construction.

Provides:
- Curve / CreditCurve: immutable zero-rate and hazard-rate curves
- IsdaYieldCurveCalibrator / IsdaCreditCurveCalibrator: sequential bootstrap
- IsdaCdsModel: ISDA standard CDS analytics used by the credit bootstrap
- Par-rate inputs and curve group configuration
"""

from .curve import Curve, CreditCurve, create_flat_curve, create_flat_credit_curve
from .interpolation import (
    Interpolator,
    LinearInterpolator,
    CubicSplineInterpolator,
    LogLinearInterpolator,
    create_interpolator,
)
from .isda_model import CdsAnalytic, CdsCoupon, IsdaCdsModel, CURVE_DAY_COUNT
from .instruments import (
    CurveInstrument,
    MoneyMarketInstrument,
    IsdaSwapInstrument,
    CdsInstrument,
    instrument_from_tag,
)
from .bootstrap import (
    ArbitrageHandling,
    BootstrapResult,
    IsdaYieldCurveCalibrator,
    IsdaCreditCurveCalibrator,
    bootstrap_from_quotes,
)
from .par_rates import IsdaYieldCurveParRates, IsdaCreditCurveParRates
from .curve_group import CurveGroupEntry, calibrate_curve_group

__all__ = [
    "Curve",
    "CreditCurve",
    "create_flat_curve",
    "create_flat_credit_curve",
    "Interpolator",
    "LinearInterpolator",
    "CubicSplineInterpolator",
    "LogLinearInterpolator",
    "create_interpolator",
    "CdsAnalytic",
    "CdsCoupon",
    "IsdaCdsModel",
    "CURVE_DAY_COUNT",
    "CurveInstrument",
    "MoneyMarketInstrument",
    "IsdaSwapInstrument",
    "CdsInstrument",
    "instrument_from_tag",
    "ArbitrageHandling",
    "BootstrapResult",
    "IsdaYieldCurveCalibrator",
    "IsdaCreditCurveCalibrator",
    "bootstrap_from_quotes",
    "IsdaYieldCurveParRates",
    "IsdaCreditCurveParRates",
    "CurveGroupEntry",
    "calibrate_curve_group",
]
