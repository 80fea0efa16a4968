"""
Pricers package - product pricing and risk.

Provides pricing engines for:
- Fixed and Ibor swap legs, discounted on the currency curve
- CMS coupons, caplets and floorlets by SABR replication with a right tail
- Ibor caps/floors under Black or Bachelier volatilities
- CDS in the ISDA standard model
- Measure dispatch and portfolio aggregation
"""

from .swaps import DiscountingSwapLegPricer, DiscountingSwapProductPricer
from .cms import (
    SabrExtrapolationRightFunction,
    SabrExtrapolationReplicationCmsPeriodPricer,
    SabrExtrapolationReplicationCmsLegPricer,
    SabrExtrapolationReplicationCmsProductPricer,
)
from .capfloor import (
    VolatilityIborCapletFloorletPeriodPricer,
    BlackIborCapletFloorletPeriodPricer,
    NormalIborCapletFloorletPeriodPricer,
    VolatilityIborCapFloorLegPricer,
    VolatilityIborCapFloorProductPricer,
)
from .cds import IsdaCdsProductPricer, IsdaCdsPricer
from .dispatcher import ProductPricers, CalculationResult, CalculationRunner
from .aggregation import TradeResult, PortfolioResult, PortfolioAggregator

__all__ = [
    "DiscountingSwapLegPricer",
    "DiscountingSwapProductPricer",
    "SabrExtrapolationRightFunction",
    "SabrExtrapolationReplicationCmsPeriodPricer",
    "SabrExtrapolationReplicationCmsLegPricer",
    "SabrExtrapolationReplicationCmsProductPricer",
    "VolatilityIborCapletFloorletPeriodPricer",
    "BlackIborCapletFloorletPeriodPricer",
    "NormalIborCapletFloorletPeriodPricer",
    "VolatilityIborCapFloorLegPricer",
    "VolatilityIborCapFloorProductPricer",
    "IsdaCdsProductPricer",
    "IsdaCdsPricer",
    "ProductPricers",
    "CalculationResult",
    "CalculationRunner",
    "TradeResult",
    "PortfolioResult",
    "PortfolioAggregator",
]
