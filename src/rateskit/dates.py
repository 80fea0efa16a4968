"""
Date utilities for rates and credit calculations.

Provides:
- Tenor parsing and date arithmetic
- Periodic schedules with short front or back stubs
- IMM date logic for standard CDS schedules
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import List, Optional, Tuple
import re

from .conventions import (
    BusinessDayConvention,
    DayCount,
    StubConvention,
    adjust_business_day,
    is_business_day,
    year_fraction
)

IMM_MONTHS = (3, 6, 9, 12)
IMM_DAY = 20


class DateUtils:
    """Utility class for date manipulation in rates contexts."""

    # Tenor regex pattern: number + unit (D/W/M/Y)
    TENOR_PATTERN = re.compile(r'^(\d+)([DWMY])$', re.IGNORECASE)

    @staticmethod
    def parse_tenor(tenor: str) -> Tuple[int, str]:
        """
        Parse a tenor string into (amount, unit).

        Args:
            tenor: Tenor string like "1D", "3M", "2Y"

        Returns:
            Tuple of (amount, unit) where unit is D/W/M/Y

        Raises:
            ValueError: If tenor format is invalid
        """
        match = DateUtils.TENOR_PATTERN.match(tenor.upper().strip())
        if not match:
            raise ValueError(f"Invalid tenor format: {tenor}. Expected format like '3M', '2Y'")

        return int(match.group(1)), match.group(2).upper()

    @staticmethod
    def add_months(start: date, months: int) -> date:
        """Add calendar months, clipping the day to the month end."""
        year = start.year + (start.month + months - 1) // 12
        month = (start.month + months - 1) % 12 + 1
        day = min(start.day, _days_in_month(year, month))
        return date(year, month, day)

    @staticmethod
    def add_tenor(start: date, tenor: str, holidays: Optional[set] = None) -> date:
        """
        Add a tenor to a date.

        Day tenors count business days; other units are calendar based.

        Args:
            start: Starting date
            tenor: Tenor string (e.g., "1D", "3M", "2Y")
            holidays: Optional holiday calendar

        Returns:
            End date
        """
        amount, unit = DateUtils.parse_tenor(tenor)

        if unit == 'D':
            result = start
            days_added = 0
            while days_added < amount:
                result += timedelta(days=1)
                if is_business_day(result, holidays):
                    days_added += 1
            return result
        elif unit == 'W':
            return start + timedelta(weeks=amount)
        elif unit == 'M':
            return DateUtils.add_months(start, amount)
        elif unit == 'Y':
            return DateUtils.add_months(start, 12 * amount)

        raise ValueError(f"Unknown tenor unit: {unit}")

    @staticmethod
    def tenor_to_years(tenor: str) -> float:
        """
        Convert tenor to approximate year fraction.

        Args:
            tenor: Tenor string

        Returns:
            Approximate years as float
        """
        amount, unit = DateUtils.parse_tenor(tenor)

        if unit == 'D':
            return amount / 365.0
        elif unit == 'W':
            return amount * 7 / 365.0
        elif unit == 'M':
            return amount / 12.0
        elif unit == 'Y':
            return float(amount)
        raise ValueError(f"Unknown tenor unit: {unit}")

    @staticmethod
    def generate_schedule(
        start: date,
        end: date,
        months_per_period: int,
        stub: StubConvention = StubConvention.SHORT_INITIAL
    ) -> List[date]:
        """
        Generate unadjusted schedule dates from start to end inclusive.

        SHORT_INITIAL rolls backward from the end date so any stub sits at
        the front; SHORT_FINAL rolls forward from the start date.

        Args:
            start: First accrual start
            end: Final accrual end
            months_per_period: Period length in months
            stub: Stub placement

        Returns:
            Sorted list of dates starting with start and ending with end
        """
        if months_per_period <= 0:
            raise ValueError("Period length must be positive")
        if end <= start:
            raise ValueError(f"Schedule end {end} must be after start {start}")

        dates = []
        if stub == StubConvention.SHORT_INITIAL:
            n = 1
            current = DateUtils.add_months(end, -months_per_period)
            while current > start:
                dates.insert(0, current)
                n += 1
                current = DateUtils.add_months(end, -n * months_per_period)
            return [start] + dates + [end]

        n = 1
        current = DateUtils.add_months(start, months_per_period)
        while current < end:
            dates.append(current)
            n += 1
            current = DateUtils.add_months(start, n * months_per_period)
        return [start] + dates + [end]

    @staticmethod
    def is_imm_date(d: date) -> bool:
        return d.day == IMM_DAY and d.month in IMM_MONTHS

    @staticmethod
    def next_imm_date(d: date) -> date:
        """First IMM date (20th of Mar/Jun/Sep/Dec) strictly after d."""
        for month in IMM_MONTHS:
            candidate = date(d.year, month, IMM_DAY)
            if candidate > d:
                return candidate
        return date(d.year + 1, IMM_MONTHS[0], IMM_DAY)

    @staticmethod
    def previous_imm_date(d: date) -> date:
        """Last IMM date on or before d."""
        for month in reversed(IMM_MONTHS):
            candidate = date(d.year, month, IMM_DAY)
            if candidate <= d:
                return candidate
        return date(d.year - 1, IMM_MONTHS[-1], IMM_DAY)


@dataclass(frozen=True)
class SchedulePeriod:
    """One accrual period of a schedule."""
    unadjusted_start: date
    unadjusted_end: date
    start: date
    end: date
    payment_date: date
    year_fraction: float


def generate_periods(
    start: date,
    end: date,
    payment_frequency: int,
    day_count: DayCount,
    business_day: BusinessDayConvention = BusinessDayConvention.MODIFIED_FOLLOWING,
    stub: StubConvention = StubConvention.SHORT_INITIAL,
    holidays: Optional[set] = None
) -> List[SchedulePeriod]:
    """
    Build accrual periods between two dates.

    Accrual boundaries and payment dates are business-day adjusted; the
    year fraction is measured between adjusted boundaries.

    Args:
        start: Accrual start
        end: Accrual end (maturity)
        payment_frequency: Periods per year (1, 2, 4 or 12)
        day_count: Accrual day count
        business_day: Adjustment for boundaries and payments
        stub: Stub placement
        holidays: Holiday calendar

    Returns:
        List of SchedulePeriod in date order
    """
    if payment_frequency <= 0 or 12 % payment_frequency != 0:
        raise ValueError(f"Unsupported payment frequency: {payment_frequency}")

    unadjusted = DateUtils.generate_schedule(start, end, 12 // payment_frequency, stub)
    adjusted = [adjust_business_day(d, business_day, holidays) for d in unadjusted]

    periods = []
    for i in range(len(unadjusted) - 1):
        periods.append(SchedulePeriod(
            unadjusted_start=unadjusted[i],
            unadjusted_end=unadjusted[i + 1],
            start=adjusted[i],
            end=adjusted[i + 1],
            payment_date=adjusted[i + 1],
            year_fraction=year_fraction(adjusted[i], adjusted[i + 1], day_count)
        ))
    return periods


def _days_in_month(year: int, month: int) -> int:
    """Return number of days in a month."""
    if month in (1, 3, 5, 7, 8, 10, 12):
        return 31
    elif month in (4, 6, 9, 11):
        return 30
    elif month == 2:
        if (year % 4 == 0 and year % 100 != 0) or (year % 400 == 0):
            return 29
        return 28
    raise ValueError(f"Invalid month: {month}")


__all__ = [
    "DateUtils",
    "SchedulePeriod",
    "generate_periods",
    "IMM_MONTHS",
]
