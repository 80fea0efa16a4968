"""
RatesKit: Curve Calibration & Sensitivity Analytics Library

A modular library for:
- Bootstrapping ISDA yield curves and ISDA credit curves from par rates
- Pricing swaps, CMS products (SABR replication), Ibor caps/floors and CDS
- Accumulating point sensitivities and mapping them to bucketed PV01
- Multi-currency amounts, explain trees and a named measure registry

Scope: deterministic pricing and first-order risk; no trade booking or
market-data sourcing.
"""

__version__ = "0.1.0"

# Core modules
from .conventions import (
    DayCount,
    BusinessDayConvention,
    StubConvention,
    PayReceive,
    BuySell,
    PutCall,
    IsdaYieldCurveConvention,
    CdsConvention,
    year_fraction,
)
from .dates import DateUtils
from .config import settings, get_settings, configure_logging
from .exceptions import (
    RatesKitError,
    InvalidNameError,
    CalibrationError,
    ModelMismatchError,
    ConversionError,
    PricingError,
)
from .currency import CurrencyAmount, MultiCurrencyAmount, MultiCurrencyAmountArray, FxMatrix
from .measures import Measure, Measures, StandardMeasures
from .explain import ExplainKey, ExplainMap, ExplainMapBuilder
from .indices import IborIndex, SwapIndex

# Sensitivities
from .sensitivity import (
    PointSensitivities,
    MutablePointSensitivities,
    CurrencyParameterSensitivity,
    CurrencyParameterSensitivities,
)

# Curves
from .curves import (
    Curve,
    CreditCurve,
    BootstrapResult,
    IsdaYieldCurveCalibrator,
    IsdaCreditCurveCalibrator,
    IsdaYieldCurveParRates,
    IsdaCreditCurveParRates,
    IsdaCdsModel,
)

# Volatility (SABR, cap/floor)
from .vol import (
    SabrParams,
    SabrModel,
    SabrSwaptionVolatilities,
    BlackIborCapFloorVolatilities,
    NormalIborCapFloorVolatilities,
)

# Market state
from .market_state import MarketState

# Products
from .products import Swap, SwapLeg, Cms, CmsLeg, IborCapFloor, IborCapFloorLeg, Cds

# Pricers
from .pricers import (
    DiscountingSwapLegPricer,
    DiscountingSwapProductPricer,
    SabrExtrapolationReplicationCmsProductPricer,
    VolatilityIborCapFloorProductPricer,
    IsdaCdsProductPricer,
    IsdaCdsPricer,
    CalculationRunner,
    PortfolioAggregator,
)

__all__ = [
    # Version
    "__version__",
    # Conventions
    "DayCount",
    "BusinessDayConvention",
    "StubConvention",
    "PayReceive",
    "BuySell",
    "PutCall",
    "IsdaYieldCurveConvention",
    "CdsConvention",
    "year_fraction",
    # Dates
    "DateUtils",
    # Config
    "settings",
    "get_settings",
    "configure_logging",
    # Errors
    "RatesKitError",
    "InvalidNameError",
    "CalibrationError",
    "ModelMismatchError",
    "ConversionError",
    "PricingError",
    # Amounts
    "CurrencyAmount",
    "MultiCurrencyAmount",
    "MultiCurrencyAmountArray",
    "FxMatrix",
    # Measures and explain
    "Measure",
    "Measures",
    "StandardMeasures",
    "ExplainKey",
    "ExplainMap",
    "ExplainMapBuilder",
    # Indices
    "IborIndex",
    "SwapIndex",
    # Sensitivities
    "PointSensitivities",
    "MutablePointSensitivities",
    "CurrencyParameterSensitivity",
    "CurrencyParameterSensitivities",
    # Curves
    "Curve",
    "CreditCurve",
    "BootstrapResult",
    "IsdaYieldCurveCalibrator",
    "IsdaCreditCurveCalibrator",
    "IsdaYieldCurveParRates",
    "IsdaCreditCurveParRates",
    "IsdaCdsModel",
    # Volatility
    "SabrParams",
    "SabrModel",
    "SabrSwaptionVolatilities",
    "BlackIborCapFloorVolatilities",
    "NormalIborCapFloorVolatilities",
    # Market state
    "MarketState",
    # Products
    "Swap",
    "SwapLeg",
    "Cms",
    "CmsLeg",
    "IborCapFloor",
    "IborCapFloorLeg",
    "Cds",
    # Pricers
    "DiscountingSwapLegPricer",
    "DiscountingSwapProductPricer",
    "SabrExtrapolationReplicationCmsProductPricer",
    "VolatilityIborCapFloorProductPricer",
    "IsdaCdsProductPricer",
    "IsdaCdsPricer",
    "CalculationRunner",
    "PortfolioAggregator",
]
