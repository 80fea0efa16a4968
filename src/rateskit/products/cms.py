"""
Constant maturity swap (CMS) products.

A CmsPeriod pays, on its payment date, an amount based on a swap index
fixing: the rate itself (coupon), the excess over a strike (caplet) or the
shortfall under a strike (floorlet). A CmsLeg is a sequence of such
periods; a Cms product is a CMS leg optionally paired with a plain swap
leg.
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional, Tuple

from ..conventions import (
    BusinessDayConvention,
    DayCount,
    PayReceive,
    StubConvention,
    add_business_days,
)
from ..dates import generate_periods
from ..indices import SwapIndex
from .swap import Swap, SwapLeg, swap_from_index


class CmsPeriodType(Enum):
    COUPON = "Coupon"
    CAPLET = "Caplet"
    FLOORLET = "Floorlet"


@dataclass(frozen=True)
class CmsPeriod:
    """
    One CMS coupon, caplet or floorlet.

    Attributes:
        currency: Payment currency
        notional: Signed notional (negative when paid)
        start_date: Accrual start
        end_date: Accrual end
        payment_date: Payment date
        year_fraction: Accrual fraction
        fixing_date: Swap index fixing date
        index: Swap index
        period_type: Coupon, caplet or floorlet
        strike: Strike for caplets and floorlets
    """
    currency: str
    notional: float
    start_date: date
    end_date: date
    payment_date: date
    year_fraction: float
    fixing_date: date
    index: SwapIndex
    period_type: CmsPeriodType = CmsPeriodType.COUPON
    strike: Optional[float] = None

    def __post_init__(self):
        if self.period_type == CmsPeriodType.COUPON:
            if self.strike is not None:
                raise ValueError("A CMS coupon has no strike")
        elif self.strike is None:
            raise ValueError(f"A CMS {self.period_type.value.lower()} needs a strike")

    def underlying_swap(self) -> Swap:
        return swap_from_index(self.index, self.fixing_date)

    def payoff(self, rate: float) -> float:
        """Undiscounted payoff rate for an index fixing."""
        if self.period_type == CmsPeriodType.CAPLET:
            return max(rate - self.strike, 0.0)
        if self.period_type == CmsPeriodType.FLOORLET:
            return max(self.strike - rate, 0.0)
        return rate


@dataclass(frozen=True)
class CmsLeg:
    """
    A leg of CMS periods on one swap index.

    Attributes:
        pay_receive: Direction of the leg
        index: Swap index
        periods: Periods in date order
    """
    pay_receive: PayReceive
    index: SwapIndex
    periods: Tuple[CmsPeriod, ...]

    def __post_init__(self):
        object.__setattr__(self, "periods", tuple(self.periods))
        if not self.periods:
            raise ValueError("A CMS leg needs at least one period")

    @property
    def currency(self) -> str:
        return self.index.currency

    @property
    def start_date(self) -> date:
        return self.periods[0].start_date

    @property
    def end_date(self) -> date:
        return self.periods[-1].end_date

    @classmethod
    def of(
        cls,
        index: SwapIndex,
        start: date,
        end: date,
        notional: float,
        pay_receive: PayReceive,
        payment_frequency: int = 1,
        day_count: Optional[DayCount] = None,
        cap: Optional[float] = None,
        floor: Optional[float] = None,
        business_day: BusinessDayConvention = BusinessDayConvention.FOLLOWING,
        stub: StubConvention = StubConvention.SHORT_INITIAL
    ) -> "CmsLeg":
        """
        CMS leg fixing in advance on a regular schedule.

        A cap turns every period into a caplet, a floor into a floorlet;
        with neither, periods are plain coupons.

        Raises:
            ValueError: If both cap and floor are given
        """
        if cap is not None and floor is not None:
            raise ValueError("A CMS leg has either a cap or a floor, not both")
        if cap is not None:
            period_type, strike = CmsPeriodType.CAPLET, cap
        elif floor is not None:
            period_type, strike = CmsPeriodType.FLOORLET, floor
        else:
            period_type, strike = CmsPeriodType.COUPON, None

        day_count = day_count or index.fixed_leg.day_count
        signed = notional * pay_receive.sign
        periods = [
            CmsPeriod(
                currency=index.currency,
                notional=signed,
                start_date=p.start,
                end_date=p.end,
                payment_date=p.payment_date,
                year_fraction=p.year_fraction,
                fixing_date=add_business_days(p.start, -index.fixed_leg.settlement_days),
                index=index,
                period_type=period_type,
                strike=strike,
            )
            for p in generate_periods(start, end, payment_frequency, day_count, business_day, stub)
        ]
        return cls(pay_receive, index, periods)


@dataclass(frozen=True)
class Cms:
    """
    CMS product: a CMS leg and an optional swap leg paid against it.
    """
    cms_leg: CmsLeg
    pay_leg: Optional[SwapLeg] = None

    def __post_init__(self):
        if self.pay_leg is not None and self.pay_leg.currency != self.cms_leg.currency:
            raise ValueError("CMS leg and pay leg must share a currency")

    @classmethod
    def of(cls, cms_leg: CmsLeg, pay_leg: Optional[SwapLeg] = None) -> "Cms":
        return cls(cms_leg, pay_leg)


__all__ = [
    "CmsPeriodType",
    "CmsPeriod",
    "CmsLeg",
    "Cms",
]
