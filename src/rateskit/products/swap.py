"""
Swap products.

A SwapLeg is a sequence of RatePaymentPeriods paying either a fixed rate
or an Ibor fixing plus spread. Notionals are signed: positive when the
leg is received, negative when it is paid. A Swap is an ordered tuple of
legs.
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional, Tuple

from ..conventions import BusinessDayConvention, DayCount, PayReceive, StubConvention
from ..dates import generate_periods
from ..indices import IborIndex, SwapIndex


class SwapLegType(Enum):
    FIXED = "Fixed"
    IBOR = "Ibor"


@dataclass(frozen=True)
class RatePaymentPeriod:
    """
    One accrual period of a swap leg, paid at its payment date.

    Attributes:
        payment_date: Payment date
        start_date: Accrual start
        end_date: Accrual end
        year_fraction: Accrual fraction
        notional: Signed notional (negative when paid)
        currency: Payment currency
        fixed_rate: Rate for fixed periods
        index: Index for floating periods
        fixing_date: Fixing date for floating periods
        spread: Spread over the index
    """
    payment_date: date
    start_date: date
    end_date: date
    year_fraction: float
    notional: float
    currency: str
    fixed_rate: Optional[float] = None
    index: Optional[IborIndex] = None
    fixing_date: Optional[date] = None
    spread: float = 0.0

    def __post_init__(self):
        if (self.fixed_rate is None) == (self.index is None):
            raise ValueError("A rate period needs either a fixed rate or an index")
        if self.index is not None and self.fixing_date is None:
            raise ValueError(f"Floating period on {self.index.name} needs a fixing date")

    @property
    def is_fixed(self) -> bool:
        return self.fixed_rate is not None


@dataclass(frozen=True)
class SwapLeg:
    """
    A leg of a swap.

    Attributes:
        leg_type: Fixed or Ibor
        pay_receive: Direction of the leg
        currency: Leg currency
        periods: Payment periods in date order
    """
    leg_type: SwapLegType
    pay_receive: PayReceive
    currency: str
    periods: Tuple[RatePaymentPeriod, ...]

    def __post_init__(self):
        object.__setattr__(self, "periods", tuple(self.periods))
        if not self.periods:
            raise ValueError("A swap leg needs at least one period")

    @property
    def start_date(self) -> date:
        return self.periods[0].start_date

    @property
    def end_date(self) -> date:
        return self.periods[-1].end_date

    @classmethod
    def fixed(
        cls,
        start: date,
        end: date,
        notional: float,
        fixed_rate: float,
        pay_receive: PayReceive,
        currency: str,
        payment_frequency: int = 1,
        day_count: DayCount = DayCount.THIRTY_E_360,
        business_day: BusinessDayConvention = BusinessDayConvention.MODIFIED_FOLLOWING,
        stub: StubConvention = StubConvention.SHORT_INITIAL
    ) -> "SwapLeg":
        """Fixed-rate leg on a regular schedule."""
        signed = notional * pay_receive.sign
        periods = [
            RatePaymentPeriod(
                payment_date=p.payment_date,
                start_date=p.start,
                end_date=p.end,
                year_fraction=p.year_fraction,
                notional=signed,
                currency=currency,
                fixed_rate=fixed_rate,
            )
            for p in generate_periods(start, end, payment_frequency, day_count, business_day, stub)
        ]
        return cls(SwapLegType.FIXED, pay_receive, currency, periods)

    @classmethod
    def ibor(
        cls,
        start: date,
        end: date,
        notional: float,
        index: IborIndex,
        pay_receive: PayReceive,
        spread: float = 0.0,
        payment_frequency: Optional[int] = None,
        business_day: BusinessDayConvention = BusinessDayConvention.MODIFIED_FOLLOWING,
        stub: StubConvention = StubConvention.SHORT_INITIAL
    ) -> "SwapLeg":
        """Ibor leg, fixing in advance, paying at the end of each period."""
        signed = notional * pay_receive.sign
        frequency = payment_frequency or index.payment_frequency
        periods = [
            RatePaymentPeriod(
                payment_date=p.payment_date,
                start_date=p.start,
                end_date=p.end,
                year_fraction=p.year_fraction,
                notional=signed,
                currency=index.currency,
                index=index,
                fixing_date=index.fixing_date(p.start),
                spread=spread,
            )
            for p in generate_periods(start, end, frequency, index.day_count, business_day, stub)
        ]
        return cls(SwapLegType.IBOR, pay_receive, index.currency, periods)


@dataclass(frozen=True)
class Swap:
    """A swap: one or more legs, in order."""
    legs: Tuple[SwapLeg, ...]

    def __post_init__(self):
        object.__setattr__(self, "legs", tuple(self.legs))
        if not self.legs:
            raise ValueError("A swap needs at least one leg")

    @classmethod
    def of(cls, *legs: SwapLeg) -> "Swap":
        return cls(legs)

    def legs_of_type(self, leg_type: SwapLegType) -> Tuple[SwapLeg, ...]:
        return tuple(leg for leg in self.legs if leg.leg_type == leg_type)


def swap_from_index(index: SwapIndex, fixing_date: date, fixed_rate: float = 0.0, notional: float = 1.0) -> Swap:
    """
    Underlying swap of a swap index fixing: receive fixed, pay Ibor.

    The swap starts on the index effective date for fixing_date.
    """
    start = index.effective_date(fixing_date)
    end = index.maturity_date(fixing_date)
    conv = index.fixed_leg
    fixed = SwapLeg.fixed(
        start, end, notional, fixed_rate, PayReceive.RECEIVE, index.currency,
        conv.payment_frequency, conv.day_count, conv.business_day,
    )
    floating = SwapLeg.ibor(start, end, notional, index.ibor_index, PayReceive.PAY)
    return Swap.of(fixed, floating)


__all__ = [
    "SwapLegType",
    "RatePaymentPeriod",
    "SwapLeg",
    "Swap",
    "swap_from_index",
]
