"""
Product definitions: swaps, CMS, Ibor caps/floors and CDS.
"""

from .swap import RatePaymentPeriod, Swap, SwapLeg, SwapLegType, swap_from_index
from .cms import Cms, CmsLeg, CmsPeriod, CmsPeriodType
from .capfloor import IborCapFloor, IborCapFloorLeg, IborCapletFloorletPeriod
from .cds import Cds, Payment

__all__ = [
    "SwapLegType",
    "RatePaymentPeriod",
    "SwapLeg",
    "Swap",
    "swap_from_index",
    "CmsPeriodType",
    "CmsPeriod",
    "CmsLeg",
    "Cms",
    "IborCapletFloorletPeriod",
    "IborCapFloorLeg",
    "IborCapFloor",
    "Payment",
    "Cds",
]
