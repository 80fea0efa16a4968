"""
Day count conventions, business day adjustments and convention bundles.

Supported Day Counts:
- ACT/360: Actual days / 360 (money markets)
- ACT/365F: Actual days / 365 fixed (ISDA curve time, CDS model)
- ACT/ACT: ISDA actual/actual
- 30/360: US 30/360 bond basis
- 30E/360: Eurobond basis (swap fixed legs, ISDA "30/360 ISDA" translation)

Business Day Conventions:
- Modified Following: Move to next business day, unless it falls in next month (then previous)
- Following: Move to next business day
- Preceding: Move to previous business day

Convention bundles:
- IsdaYieldCurveConvention: money-market and swap legs used to build an ISDA yield curve
- CdsConvention: standard CDS step-in, settlement, accrual and stub rules
"""

from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Optional
import calendar


class DayCount(Enum):
    """Day count convention enumeration."""
    ACT_360 = "Act/360"
    ACT_365F = "Act/365F"
    ACT_ACT = "Act/Act ISDA"
    THIRTY_360 = "30/360"
    THIRTY_E_360 = "30E/360"

    @classmethod
    def from_string(cls, s: str) -> "DayCount":
        """Parse day count from string representation."""
        mapping = {
            "ACT/360": cls.ACT_360,
            "ACT360": cls.ACT_360,
            "ACT/365": cls.ACT_365F,
            "ACT/365F": cls.ACT_365F,
            "ACT365F": cls.ACT_365F,
            "ACT/ACT": cls.ACT_ACT,
            "ACT/ACTISDA": cls.ACT_ACT,
            "30/360": cls.THIRTY_360,
            "30360": cls.THIRTY_360,
            "30E/360": cls.THIRTY_E_360,
            "30/360ISDA": cls.THIRTY_E_360,
        }
        key = s.upper().replace(" ", "")
        if key in mapping:
            return mapping[key]
        raise ValueError(f"Unknown day count convention: {s}")


class BusinessDayConvention(Enum):
    """Business day adjustment convention."""
    MODIFIED_FOLLOWING = "ModifiedFollowing"
    FOLLOWING = "Following"
    PRECEDING = "Preceding"
    UNADJUSTED = "Unadjusted"


class CompoundingConvention(Enum):
    """Interest rate compounding convention."""
    CONTINUOUS = "Continuous"
    ANNUAL = "Annual"
    SEMI_ANNUAL = "SemiAnnual"
    QUARTERLY = "Quarterly"
    SIMPLE = "Simple"


class StubConvention(Enum):
    """Position of the short stub period in a schedule."""
    SHORT_INITIAL = "ShortInitial"
    SHORT_FINAL = "ShortFinal"

    @classmethod
    def from_string(cls, s: str) -> "StubConvention":
        key = s.upper().replace("_", "").replace(" ", "")
        if key in ("SHORTINITIAL", "FRONTSHORT"):
            return cls.SHORT_INITIAL
        if key in ("SHORTFINAL", "BACKSHORT"):
            return cls.SHORT_FINAL
        raise ValueError(f"Unknown stub convention: {s}")


class PayReceive(Enum):
    """Direction of a leg."""
    PAY = "Pay"
    RECEIVE = "Receive"

    @property
    def sign(self) -> int:
        return -1 if self is PayReceive.PAY else 1


class BuySell(Enum):
    """Buy or sell protection."""
    BUY = "Buy"
    SELL = "Sell"

    @property
    def sign(self) -> int:
        return 1 if self is BuySell.BUY else -1


class PutCall(Enum):
    """Option flavour."""
    CALL = "Call"
    PUT = "Put"


@dataclass(frozen=True)
class Conventions:
    """
    Container for instrument conventions.

    Attributes:
        day_count: Day count convention for accrual
        business_day: Business day adjustment rule
        compounding: Rate compounding convention
        payment_frequency: Number of payments per year (1=annual, 2=semi, 4=quarterly)
        settlement_days: Days to settle from trade date
    """
    day_count: DayCount = DayCount.ACT_360
    business_day: BusinessDayConvention = BusinessDayConvention.MODIFIED_FOLLOWING
    compounding: CompoundingConvention = CompoundingConvention.CONTINUOUS
    payment_frequency: int = 1
    settlement_days: int = 2

    @classmethod
    def eur_fixed_leg(cls) -> "Conventions":
        """EUR swap fixed leg: annual 30E/360."""
        return cls(
            day_count=DayCount.THIRTY_E_360,
            business_day=BusinessDayConvention.MODIFIED_FOLLOWING,
            compounding=CompoundingConvention.ANNUAL,
            payment_frequency=1,
            settlement_days=2
        )

    @classmethod
    def usd_fixed_leg(cls) -> "Conventions":
        """USD swap fixed leg: semi-annual 30/360."""
        return cls(
            day_count=DayCount.THIRTY_360,
            business_day=BusinessDayConvention.MODIFIED_FOLLOWING,
            compounding=CompoundingConvention.SEMI_ANNUAL,
            payment_frequency=2,
            settlement_days=2
        )


@dataclass(frozen=True)
class IsdaYieldCurveConvention:
    """
    Conventions for the instruments of an ISDA yield curve.

    The swap instruments only use the fixed leg: the floating leg is
    assumed to price at par.

    Attributes:
        currency: Curve currency
        mm_day_count: Money-market accrual day count
        fixed_day_count: Swap fixed-leg accrual day count
        fixed_payment_frequency: Fixed-leg payments per year
        business_day: Bad-day convention for payment dates
        spot_days: Business days from valuation to spot
    """
    currency: str = "USD"
    mm_day_count: DayCount = DayCount.ACT_360
    fixed_day_count: DayCount = DayCount.THIRTY_360
    fixed_payment_frequency: int = 2
    business_day: BusinessDayConvention = BusinessDayConvention.MODIFIED_FOLLOWING
    spot_days: int = 2

    def spot_date(self, valuation_date: date) -> date:
        """Spot date: valuation plus spot days (weekend calendar)."""
        return add_business_days(valuation_date, self.spot_days)

    @classmethod
    def usd_isda(cls) -> "IsdaYieldCurveConvention":
        return cls()

    @classmethod
    def eur_isda(cls) -> "IsdaYieldCurveConvention":
        return cls(
            currency="EUR",
            mm_day_count=DayCount.ACT_360,
            fixed_day_count=DayCount.THIRTY_E_360,
            fixed_payment_frequency=1,
        )


@dataclass(frozen=True)
class CdsConvention:
    """
    Standard CDS conventions.

    Attributes:
        currency: Trade currency
        payment_frequency: Premium payments per year
        day_count: Premium accrual day count
        business_day: Payment date adjustment
        stub_convention: Stub placement for the premium schedule
        pay_accrued_on_default: Whether accrued premium is paid on default
        step_in_days: Calendar days from valuation to step-in (unadjusted)
        settle_days: Business days from valuation to cash settlement
    """
    currency: str = "USD"
    payment_frequency: int = 4
    day_count: DayCount = DayCount.ACT_360
    business_day: BusinessDayConvention = BusinessDayConvention.FOLLOWING
    stub_convention: StubConvention = StubConvention.SHORT_INITIAL
    pay_accrued_on_default: bool = True
    step_in_days: int = 1
    settle_days: int = 3

    @property
    def payment_interval_months(self) -> int:
        return 12 // self.payment_frequency

    def unadjusted_step_in_date(self, valuation_date: date) -> date:
        return valuation_date + timedelta(days=self.step_in_days)

    def adjusted_settle_date(self, valuation_date: date) -> date:
        return add_business_days(valuation_date, self.settle_days)

    def adjusted_start_date(self, valuation_date: date) -> date:
        """Accrual start: the IMM date on or before the step-in date, adjusted."""
        from .dates import DateUtils

        step_in = self.unadjusted_step_in_date(valuation_date)
        return adjust_business_day(DateUtils.previous_imm_date(step_in), self.business_day)

    def unadjusted_maturity_date(self, valuation_date: date, tenor: str) -> date:
        """Standard maturity: the IMM date after step-in, rolled forward by the tenor."""
        from .dates import DateUtils

        step_in = self.unadjusted_step_in_date(valuation_date)
        return DateUtils.add_tenor(DateUtils.next_imm_date(step_in), tenor)

    @classmethod
    def usd_standard(cls) -> "CdsConvention":
        return cls()

    @classmethod
    def eur_standard(cls) -> "CdsConvention":
        return cls(currency="EUR")


def year_fraction(start: date, end: date, day_count: DayCount) -> float:
    """
    Calculate year fraction between two dates using specified day count convention.

    Args:
        start: Start date
        end: End date
        day_count: Day count convention

    Returns:
        Year fraction as float; negative when end is before start
    """
    if start == end:
        return 0.0
    if end < start:
        return -year_fraction(end, start, day_count)

    actual_days = (end - start).days

    if day_count == DayCount.ACT_360:
        return actual_days / 360.0

    elif day_count == DayCount.ACT_365F:
        return actual_days / 365.0

    elif day_count == DayCount.ACT_ACT:
        if start.year == end.year:
            days_in_year = 366 if calendar.isleap(start.year) else 365
            return actual_days / days_in_year
        first = (date(start.year + 1, 1, 1) - start).days / (366 if calendar.isleap(start.year) else 365)
        last = (end - date(end.year, 1, 1)).days / (366 if calendar.isleap(end.year) else 365)
        return first + (end.year - start.year - 1) + last

    elif day_count == DayCount.THIRTY_360:
        # 30/360 US convention
        d1 = 30 if start.day == 31 else start.day
        d2 = 30 if (end.day == 31 and d1 == 30) else end.day
        return (360 * (end.year - start.year) + 30 * (end.month - start.month) + (d2 - d1)) / 360.0

    elif day_count == DayCount.THIRTY_E_360:
        d1 = min(start.day, 30)
        d2 = min(end.day, 30)
        return (360 * (end.year - start.year) + 30 * (end.month - start.month) + (d2 - d1)) / 360.0

    raise ValueError(f"Unknown day count: {day_count}")


def is_business_day(d: date, holidays: Optional[set] = None) -> bool:
    """
    Check if a date is a business day.

    Uses weekend-only calendar by default (Saturday/Sunday are non-business days).

    Args:
        d: Date to check
        holidays: Optional set of holiday dates

    Returns:
        True if business day, False otherwise
    """
    if d.weekday() >= 5:
        return False
    if holidays and d in holidays:
        return False
    return True


def adjust_business_day(
    d: date,
    convention: BusinessDayConvention,
    holidays: Optional[set] = None
) -> date:
    """
    Adjust a date according to business day convention.

    Args:
        d: Date to adjust
        convention: Business day adjustment rule
        holidays: Optional set of holiday dates

    Returns:
        Adjusted date
    """
    if convention == BusinessDayConvention.UNADJUSTED or is_business_day(d, holidays):
        return d

    if convention == BusinessDayConvention.FOLLOWING:
        adjusted = d
        while not is_business_day(adjusted, holidays):
            adjusted += timedelta(days=1)
        return adjusted

    elif convention == BusinessDayConvention.PRECEDING:
        adjusted = d
        while not is_business_day(adjusted, holidays):
            adjusted -= timedelta(days=1)
        return adjusted

    elif convention == BusinessDayConvention.MODIFIED_FOLLOWING:
        adjusted = d
        while not is_business_day(adjusted, holidays):
            adjusted += timedelta(days=1)

        # If we crossed into next month, go preceding instead
        if adjusted.month != d.month:
            adjusted = d
            while not is_business_day(adjusted, holidays):
                adjusted -= timedelta(days=1)
        return adjusted

    return d


def add_business_days(d: date, days: int, holidays: Optional[set] = None) -> date:
    """Move forward (or back, for negative days) by a number of business days."""
    step = timedelta(days=1 if days >= 0 else -1)
    result = d
    remaining = abs(days)
    while remaining > 0:
        result += step
        if is_business_day(result, holidays):
            remaining -= 1
    return result


__all__ = [
    "DayCount",
    "BusinessDayConvention",
    "CompoundingConvention",
    "StubConvention",
    "PayReceive",
    "BuySell",
    "PutCall",
    "Conventions",
    "IsdaYieldCurveConvention",
    "CdsConvention",
    "year_fraction",
    "is_business_day",
    "adjust_business_day",
    "add_business_days",
]
