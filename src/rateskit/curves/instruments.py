"""
Curve instruments for calibration.

Defines the instruments used to build ISDA curves:
- MoneyMarketInstrument: simple-interest deposit from spot (tag "MoneyMarket")
- IsdaSwapInstrument: fixed leg of a par swap from spot (tag "Swap")
- CdsInstrument: standard CDS quoted as a par spread (tag "Cds")

Each instrument knows how to:
1. Calculate its maturity date
2. Compute its par rate against a curve
3. Report its pricing error (par rate minus quote)

The swap instrument only looks at the fixed leg: the floating leg is
assumed to price at par, so the par rate is (P(spot) - P(T)) / annuity.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from typing import ClassVar, Dict, List, Tuple, Type

from ..conventions import (
    CdsConvention,
    IsdaYieldCurveConvention,
    adjust_business_day,
    year_fraction,
)
from ..dates import DateUtils
from .isda_model import CURVE_DAY_COUNT, CdsAnalytic, IsdaCdsModel


@dataclass(frozen=True)
class CurveInstrument(ABC):
    """
    Abstract base for calibration instruments.

    Attributes:
        tenor: Instrument tenor (e.g., "3M", "2Y")
        quote: Quoted par rate or par spread (decimal)
    """
    tenor: str
    quote: float

    instrument_type: ClassVar[str] = ""

    @property
    def label(self) -> str:
        return f"{self.instrument_type}-{self.tenor}"

    @abstractmethod
    def maturity_date(self, valuation_date: date, convention) -> date:
        """Calculate the maturity date."""
        pass


@dataclass(frozen=True)
class MoneyMarketInstrument(CurveInstrument):
    """
    Money-market deposit starting at spot.

    Pricing: P(T) / P(spot) = 1 / (1 + R * tau)
    where tau uses the convention's money-market day count.
    """
    instrument_type: ClassVar[str] = "MoneyMarket"

    def maturity_date(self, valuation_date: date, convention: IsdaYieldCurveConvention) -> date:
        spot = convention.spot_date(valuation_date)
        return adjust_business_day(DateUtils.add_tenor(spot, self.tenor), convention.business_day)

    def accrual_fraction(self, valuation_date: date, convention: IsdaYieldCurveConvention) -> float:
        spot = convention.spot_date(valuation_date)
        return year_fraction(spot, self.maturity_date(valuation_date, convention), convention.mm_day_count)

    def par_rate(self, curve, valuation_date: date, convention: IsdaYieldCurveConvention) -> float:
        spot = convention.spot_date(valuation_date)
        mat = self.maturity_date(valuation_date, convention)
        tau = self.accrual_fraction(valuation_date, convention)
        return (curve.discount_factor(spot) / curve.discount_factor(mat) - 1.0) / tau

    def pricing_error(self, curve, valuation_date: date, convention: IsdaYieldCurveConvention) -> float:
        return self.par_rate(curve, valuation_date, convention) - self.quote


@dataclass(frozen=True)
class IsdaSwapInstrument(CurveInstrument):
    """
    Par swap from spot, fixed leg only.

    Par rate: R = (P(spot) - P(Tn)) / sum(delta_i * P(Ti))
    """
    instrument_type: ClassVar[str] = "Swap"

    def fixed_schedule(self, valuation_date: date, convention: IsdaYieldCurveConvention) -> List[Tuple[date, float]]:
        """
        Fixed-leg payment dates and accrual fractions.

        Dates roll forward from spot without a stub and are adjusted with the
        convention's bad-day rule.
        """
        spot = convention.spot_date(valuation_date)
        months = 12 // convention.fixed_payment_frequency
        n_payments = int(round(DateUtils.tenor_to_years(self.tenor) * convention.fixed_payment_frequency))
        if n_payments < 1:
            raise ValueError(f"Swap tenor {self.tenor} is shorter than one fixed period")

        schedule = []
        prev = spot
        for j in range(1, n_payments + 1):
            pay = adjust_business_day(DateUtils.add_months(spot, j * months), convention.business_day)
            schedule.append((pay, year_fraction(prev, pay, convention.fixed_day_count)))
            prev = pay
        return schedule

    def maturity_date(self, valuation_date: date, convention: IsdaYieldCurveConvention) -> date:
        return self.fixed_schedule(valuation_date, convention)[-1][0]

    def par_rate(self, curve, valuation_date: date, convention: IsdaYieldCurveConvention) -> float:
        spot = convention.spot_date(valuation_date)
        schedule = self.fixed_schedule(valuation_date, convention)
        annuity = sum(tau * curve.discount_factor(pay) for pay, tau in schedule)
        return (curve.discount_factor(spot) - curve.discount_factor(schedule[-1][0])) / annuity

    def pricing_error(self, curve, valuation_date: date, convention: IsdaYieldCurveConvention) -> float:
        return self.par_rate(curve, valuation_date, convention) - self.quote


@dataclass(frozen=True)
class CdsInstrument(CurveInstrument):
    """
    Standard CDS quoted as a par spread.

    The CDS steps in one calendar day after valuation, accrues from the
    previous IMM date and matures on the standard IMM date for its tenor.
    """
    instrument_type: ClassVar[str] = "Cds"

    def maturity_date(self, valuation_date: date, convention: CdsConvention) -> date:
        return convention.unadjusted_maturity_date(valuation_date, self.tenor)

    def analytic(
        self,
        valuation_date: date,
        convention: CdsConvention,
        recovery_rate: float,
        protect_start: bool = True
    ) -> CdsAnalytic:
        return CdsAnalytic.of(
            trade_date=valuation_date,
            step_in_date=convention.unadjusted_step_in_date(valuation_date),
            cash_settle_date=convention.adjusted_settle_date(valuation_date),
            accrual_start=convention.adjusted_start_date(valuation_date),
            end_date=self.maturity_date(valuation_date, convention),
            pay_accrued_on_default=convention.pay_accrued_on_default,
            payment_interval_months=convention.payment_interval_months,
            stub=convention.stub_convention,
            protect_start=protect_start,
            recovery_rate=recovery_rate,
            business_day=convention.business_day,
            accrual_day_count=convention.day_count,
            curve_day_count=CURVE_DAY_COUNT,
        )

    def par_rate(
        self,
        credit_curve,
        yield_curve,
        valuation_date: date,
        convention: CdsConvention,
        recovery_rate: float,
        protect_start: bool = True
    ) -> float:
        cds = self.analytic(valuation_date, convention, recovery_rate, protect_start)
        return IsdaCdsModel().par_spread(cds, yield_curve, credit_curve)

    def pricing_error(self, credit_curve, yield_curve, valuation_date, convention, recovery_rate,
                      protect_start: bool = True) -> float:
        return self.par_rate(
            credit_curve, yield_curve, valuation_date, convention, recovery_rate, protect_start
        ) - self.quote


INSTRUMENT_TYPES: Dict[str, Type[CurveInstrument]] = {
    MoneyMarketInstrument.instrument_type: MoneyMarketInstrument,
    IsdaSwapInstrument.instrument_type: IsdaSwapInstrument,
    CdsInstrument.instrument_type: CdsInstrument,
}


def instrument_from_tag(instrument_type: str, tenor: str, quote: float) -> CurveInstrument:
    """
    Create an instrument from its type tag.

    Raises:
        ValueError: If the tag is unknown
    """
    try:
        cls = INSTRUMENT_TYPES[instrument_type]
    except KeyError:
        raise ValueError(
            f"Unexpected instrument type {instrument_type!r}, expected one of {sorted(INSTRUMENT_TYPES)}"
        ) from None
    return cls(tenor=tenor, quote=float(quote))


__all__ = [
    "CurveInstrument",
    "MoneyMarketInstrument",
    "IsdaSwapInstrument",
    "CdsInstrument",
    "INSTRUMENT_TYPES",
    "instrument_from_tag",
]
