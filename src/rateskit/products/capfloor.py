"""
Ibor cap/floor products.

An IborCapletFloorletPeriod is an option on one Ibor fixing paying at the
end of its accrual period: a caplet (call on the rate) or a floorlet (put
on the rate). An IborCapFloorLeg strings periods on a regular schedule;
an IborCapFloor product adds an optional premium leg.
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional, Tuple

from ..conventions import BusinessDayConvention, PayReceive, PutCall, StubConvention
from ..dates import generate_periods
from ..indices import IborIndex
from .swap import SwapLeg


@dataclass(frozen=True)
class IborCapletFloorletPeriod:
    """
    One caplet or floorlet.

    Attributes:
        currency: Payment currency
        notional: Signed notional (negative when sold)
        start_date: Accrual start
        end_date: Accrual end
        payment_date: Payment date
        year_fraction: Accrual fraction
        fixing_date: Ibor fixing date (option expiry)
        index: Ibor index
        strike: Strike rate
        put_call: CALL for a caplet, PUT for a floorlet
    """
    currency: str
    notional: float
    start_date: date
    end_date: date
    payment_date: date
    year_fraction: float
    fixing_date: date
    index: IborIndex
    strike: float
    put_call: PutCall = PutCall.CALL

    def payoff(self, rate: float) -> float:
        if self.put_call == PutCall.CALL:
            return max(rate - self.strike, 0.0)
        return max(self.strike - rate, 0.0)


@dataclass(frozen=True)
class IborCapFloorLeg:
    """
    Sequence of caplets or floorlets on one Ibor index.

    Attributes:
        pay_receive: RECEIVE when the options are bought
        index: Ibor index
        periods: Periods in date order
    """
    pay_receive: PayReceive
    index: IborIndex
    periods: Tuple[IborCapletFloorletPeriod, ...]

    def __post_init__(self):
        object.__setattr__(self, "periods", tuple(self.periods))
        if not self.periods:
            raise ValueError("A cap/floor leg needs at least one period")

    @property
    def currency(self) -> str:
        return self.index.currency

    @classmethod
    def of(
        cls,
        index: IborIndex,
        start: date,
        end: date,
        strike: float,
        notional: float,
        put_call: PutCall = PutCall.CALL,
        pay_receive: PayReceive = PayReceive.RECEIVE,
        business_day: BusinessDayConvention = BusinessDayConvention.MODIFIED_FOLLOWING,
        stub: StubConvention = StubConvention.SHORT_INITIAL
    ) -> "IborCapFloorLeg":
        """Cap (put_call=CALL) or floor (PUT) with one period per index tenor."""
        signed = notional * pay_receive.sign
        periods = [
            IborCapletFloorletPeriod(
                currency=index.currency,
                notional=signed,
                start_date=p.start,
                end_date=p.end,
                payment_date=p.payment_date,
                year_fraction=p.year_fraction,
                fixing_date=index.fixing_date(p.start),
                index=index,
                strike=strike,
                put_call=put_call,
            )
            for p in generate_periods(start, end, index.payment_frequency, index.day_count, business_day, stub)
        ]
        return cls(pay_receive, index, periods)


@dataclass(frozen=True)
class IborCapFloor:
    """Cap/floor product: the option leg and an optional premium leg."""
    cap_floor_leg: IborCapFloorLeg
    pay_leg: Optional[SwapLeg] = None

    @classmethod
    def of(cls, cap_floor_leg: IborCapFloorLeg, pay_leg: Optional[SwapLeg] = None) -> "IborCapFloor":
        return cls(cap_floor_leg, pay_leg)


__all__ = [
    "IborCapletFloorletPeriod",
    "IborCapFloorLeg",
    "IborCapFloor",
]
