"""
Rate indices.

- IborIndex: term deposit rate fixed a few business days before its
  effective date (EURIBOR, LIBOR)
- SwapIndex: par rate of a standard fixed/float swap of a given tenor,
  the underlying of CMS coupons and swaptions

Only weekend calendars are used for date adjustment.
"""

from dataclasses import dataclass
from datetime import date
from typing import Dict

from .conventions import (
    BusinessDayConvention,
    Conventions,
    DayCount,
    add_business_days,
    adjust_business_day,
)
from .dates import DateUtils


@dataclass(frozen=True)
class IborIndex:
    """
    Interbank offered rate index.

    Attributes:
        name: Index name (e.g. "EUR-EURIBOR-6M")
        currency: Index currency
        tenor_months: Deposit tenor in months
        day_count: Accrual day count of the deposit
        fixing_days: Business days between fixing and effective date
        business_day: Adjustment of the deposit maturity
    """
    name: str
    currency: str
    tenor_months: int
    day_count: DayCount = DayCount.ACT_360
    fixing_days: int = 2
    business_day: BusinessDayConvention = BusinessDayConvention.MODIFIED_FOLLOWING

    @property
    def payment_frequency(self) -> int:
        return 12 // self.tenor_months

    def effective_date(self, fixing_date: date) -> date:
        return add_business_days(fixing_date, self.fixing_days)

    def maturity_date(self, fixing_date: date) -> date:
        return adjust_business_day(
            DateUtils.add_months(self.effective_date(fixing_date), self.tenor_months),
            self.business_day,
        )

    def fixing_date(self, effective_date: date) -> date:
        """Fixing date of a deposit starting on effective_date."""
        return add_business_days(effective_date, -self.fixing_days)

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class SwapIndex:
    """
    Swap rate index.

    Attributes:
        name: Index name (e.g. "EUR-EURIBOR-1100-5Y")
        tenor: Underlying swap tenor
        fixed_leg: Fixed-leg conventions of the underlying swap
        ibor_index: Floating-leg index of the underlying swap
    """
    name: str
    tenor: str
    fixed_leg: Conventions
    ibor_index: IborIndex

    @property
    def currency(self) -> str:
        return self.ibor_index.currency

    @property
    def tenor_years(self) -> float:
        return DateUtils.tenor_to_years(self.tenor)

    def effective_date(self, fixing_date: date) -> date:
        return add_business_days(fixing_date, self.fixed_leg.settlement_days)

    def maturity_date(self, fixing_date: date) -> date:
        return DateUtils.add_tenor(self.effective_date(fixing_date), self.tenor)

    def __str__(self) -> str:
        return self.name


EUR_EURIBOR_3M = IborIndex("EUR-EURIBOR-3M", "EUR", 3)
EUR_EURIBOR_6M = IborIndex("EUR-EURIBOR-6M", "EUR", 6)
USD_LIBOR_3M = IborIndex("USD-LIBOR-3M", "USD", 3)
GBP_LIBOR_3M = IborIndex("GBP-LIBOR-3M", "GBP", 3, day_count=DayCount.ACT_365F, fixing_days=0)

# 11:00 Frankfurt fixing against 6M EURIBOR
EUR_EURIBOR_1100_5Y = SwapIndex("EUR-EURIBOR-1100-5Y", "5Y", Conventions.eur_fixed_leg(), EUR_EURIBOR_6M)
EUR_EURIBOR_1100_10Y = SwapIndex("EUR-EURIBOR-1100-10Y", "10Y", Conventions.eur_fixed_leg(), EUR_EURIBOR_6M)
USD_LIBOR_1100_10Y = SwapIndex("USD-LIBOR-1100-10Y", "10Y", Conventions.usd_fixed_leg(), USD_LIBOR_3M)

IBOR_INDICES: Dict[str, IborIndex] = {
    i.name: i for i in (EUR_EURIBOR_3M, EUR_EURIBOR_6M, USD_LIBOR_3M, GBP_LIBOR_3M)
}
SWAP_INDICES: Dict[str, SwapIndex] = {
    i.name: i for i in (EUR_EURIBOR_1100_5Y, EUR_EURIBOR_1100_10Y, USD_LIBOR_1100_10Y)
}


__all__ = [
    "IborIndex",
    "SwapIndex",
    "EUR_EURIBOR_3M",
    "EUR_EURIBOR_6M",
    "USD_LIBOR_3M",
    "GBP_LIBOR_3M",
    "EUR_EURIBOR_1100_5Y",
    "EUR_EURIBOR_1100_10Y",
    "USD_LIBOR_1100_10Y",
    "IBOR_INDICES",
    "SWAP_INDICES",
]
