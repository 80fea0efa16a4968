"""
ISDA standard CDS model.

Provides:
- CdsAnalytic: a CDS reduced to the times and fractions the model needs
- IsdaCdsModel: protection leg, premium leg (RPV01) with accrual on
  default, present value and par spread against a yield curve and a
  credit curve

All model times are ACT/365F year fractions from the trade date. Both
curves are read through r(t) * t, which is piecewise linear between the
knots of either curve, so the legs are integrated exactly over the merged
knot set.

Protection from the start of day moves every effective date one day
earlier, except the final accrual end which is pushed one day later first,
adding one day of protection.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import List, Optional, Tuple
import logging
import math

import numpy as np

from ..conventions import (
    BusinessDayConvention,
    DayCount,
    StubConvention,
    adjust_business_day,
    year_fraction,
)
from ..dates import DateUtils

logger = logging.getLogger(__name__)

CURVE_DAY_COUNT = DayCount.ACT_365F
HALF_DAY = 1.0 / 730.0
SMALL = 1e-5


@dataclass(frozen=True)
class CdsCoupon:
    """One premium period, in model time."""
    accrual_start: date
    accrual_end: date
    payment_date: date
    payment_time: float
    effective_start: float
    effective_end: float
    year_fraction: float
    yc_ratio: float


@dataclass(frozen=True)
class CdsAnalytic:
    """
    Analytic description of a CDS.

    Attributes:
        acc_start_time: Accrual start
        effective_protection_start: Start of protection
        protection_end: End of protection
        cash_settle_time: Time of cash settlement
        lgd: Loss given default (1 - recovery)
        coupons: Remaining premium periods
        pay_accrued_on_default: Whether accrued premium is paid on default
        accrued_year_fraction: Premium accrued to the step-in date
        accrued_days: Days accrued to the step-in date
    """
    acc_start_time: float
    effective_protection_start: float
    protection_end: float
    cash_settle_time: float
    lgd: float
    coupons: Tuple[CdsCoupon, ...]
    pay_accrued_on_default: bool
    accrued_year_fraction: float
    accrued_days: int

    @classmethod
    def of(
        cls,
        trade_date: date,
        step_in_date: date,
        cash_settle_date: date,
        accrual_start: date,
        end_date: date,
        pay_accrued_on_default: bool,
        payment_interval_months: int,
        stub: StubConvention,
        protect_start: bool,
        recovery_rate: float,
        business_day: BusinessDayConvention = BusinessDayConvention.FOLLOWING,
        accrual_day_count: DayCount = DayCount.ACT_360,
        curve_day_count: DayCount = CURVE_DAY_COUNT,
        holidays: Optional[set] = None
    ) -> "CdsAnalytic":
        """
        Build the analytic form of a CDS.

        Raises:
            ValueError: On inconsistent dates or a recovery outside [0, 1]
        """
        if end_date <= accrual_start:
            raise ValueError(f"CDS end {end_date} must be after accrual start {accrual_start}")
        if step_in_date < trade_date:
            raise ValueError("Step-in date cannot be before trade date")
        if not 0.0 <= recovery_rate <= 1.0:
            raise ValueError(f"Recovery rate must be in [0, 1], got {recovery_rate}")

        def t(d: date) -> float:
            return year_fraction(trade_date, d, curve_day_count)

        protection_from = max(step_in_date, accrual_start)
        if protect_start:
            protection_from -= timedelta(days=1)

        schedule = premium_schedule(
            accrual_start, end_date, payment_interval_months, stub, business_day, protect_start, holidays
        )
        remaining = [p for p in schedule if p[1] > step_in_date]

        coupons = []
        for acc_start, acc_end, pay_date in remaining:
            eff_start = acc_start - timedelta(days=1) if protect_start else acc_start
            eff_end = acc_end - timedelta(days=1) if protect_start else acc_end
            yf = year_fraction(acc_start, acc_end, accrual_day_count)
            coupons.append(CdsCoupon(
                accrual_start=acc_start,
                accrual_end=acc_end,
                payment_date=pay_date,
                payment_time=t(pay_date),
                effective_start=t(eff_start),
                effective_end=t(eff_end),
                year_fraction=yf,
                yc_ratio=yf / year_fraction(acc_start, acc_end, curve_day_count),
            ))

        if remaining:
            first_start = remaining[0][0]
            accrued_days = max((step_in_date - first_start).days, 0)
            accrued = (
                year_fraction(first_start, step_in_date, accrual_day_count)
                if first_start < step_in_date else 0.0
            )
        else:
            accrued_days = 0
            accrued = 0.0

        return cls(
            acc_start_time=t(accrual_start),
            effective_protection_start=t(protection_from),
            protection_end=t(end_date),
            cash_settle_time=t(cash_settle_date),
            lgd=1.0 - recovery_rate,
            coupons=tuple(coupons),
            pay_accrued_on_default=pay_accrued_on_default,
            accrued_year_fraction=accrued,
            accrued_days=accrued_days,
        )


def premium_schedule(
    accrual_start: date,
    end_date: date,
    payment_interval_months: int,
    stub: StubConvention,
    business_day: BusinessDayConvention,
    protect_start: bool,
    holidays: Optional[set] = None
) -> List[Tuple[date, date, date]]:
    """
    ISDA premium leg schedule.

    Returns:
        List of (accrual start, accrual end, payment date). Accrual starts
        after the first are adjusted; the final accrual end is the
        unadjusted maturity (plus one day when protection starts at the
        start of day) and its payment date the adjusted maturity.
    """
    unadjusted = DateUtils.generate_schedule(accrual_start, end_date, payment_interval_months, stub)
    periods = []
    n = len(unadjusted) - 1
    for i in range(n):
        start = accrual_start if i == 0 else adjust_business_day(unadjusted[i], business_day, holidays)
        if i == n - 1:
            end = end_date + timedelta(days=1) if protect_start else end_date
            pay = adjust_business_day(end_date, business_day, holidays)
        else:
            end = adjust_business_day(unadjusted[i + 1], business_day, holidays)
            pay = end
        periods.append((start, end, pay))
    return periods


def _epsilon(x: float) -> float:
    """(1 - exp(-x)) / x with its series near zero."""
    if abs(x) < SMALL:
        return 1.0 - x / 2.0 + x * x / 6.0 - x ** 3 / 24.0
    return -math.expm1(-x) / x


def _epsilon_p(x: float) -> float:
    """(1 - exp(-x) (1 + x)) / x^2 with its series near zero."""
    if abs(x) < SMALL:
        return 0.5 - x / 3.0 + x * x / 8.0 - x ** 3 / 30.0
    return (-math.expm1(-x) - x * math.exp(-x)) / (x * x)


def rt(curve, t: float) -> float:
    """r(t) * t for a zero-rate curve; linear in t between knots."""
    return curve.zero_rate(t) * t


def integration_points(start: float, end: float, *curves) -> np.ndarray:
    """Sorted knots of all curves strictly inside (start, end), plus both ends."""
    knots = [start, end]
    for curve in curves:
        knots.extend(k for k in curve.get_node_times() if start < k < end)
    return np.unique(np.array(knots, dtype=np.float64))


class IsdaCdsModel:
    """
    Analytic CDS pricing in the ISDA standard model.

    Values are per unit notional and rolled to the cash settle time.
    Accrual on default uses the original ISDA formula, which accrues from
    half a day before the effective start.
    """

    def __init__(self, omega: float = HALF_DAY):
        self.omega = omega

    def protection_leg(self, cds: CdsAnalytic, yield_curve, credit_curve) -> float:
        """
        Protection leg value: LGD * integral of P(u) dQ(u).

        Args:
            cds: Analytic CDS
            yield_curve: Discount curve
            credit_curve: Credit (hazard) curve

        Returns:
            Protection leg PV per unit notional
        """
        if cds.protection_end <= 0.0:
            return 0.0
        start = max(cds.effective_protection_start, 0.0)
        if start >= cds.protection_end:
            return 0.0

        knots = integration_points(start, cds.protection_end, yield_curve, credit_curve)
        ht0 = rt(credit_curve, knots[0])
        rt0 = rt(yield_curve, knots[0])
        b0 = math.exp(-ht0 - rt0)

        pv = 0.0
        for k in knots[1:]:
            ht1 = rt(credit_curve, k)
            rt1 = rt(yield_curve, k)
            b1 = math.exp(-ht1 - rt1)
            dht = ht1 - ht0
            dhrt = dht + rt1 - rt0
            pv += dht * b0 * _epsilon(dhrt)
            ht0, rt0, b0 = ht1, rt1, b1

        return cds.lgd * pv / yield_curve.discount_factor(cds.cash_settle_time)

    def _accrual_on_default(
        self,
        coupon: CdsCoupon,
        cds: CdsAnalytic,
        yield_curve,
        credit_curve,
        knots: np.ndarray
    ) -> float:
        start = max(coupon.effective_start, cds.effective_protection_start, 0.0)
        if start >= coupon.effective_end:
            return 0.0

        points = [start] + [k for k in knots if start < k < coupon.effective_end] + [coupon.effective_end]
        ht0 = rt(credit_curve, points[0])
        rt0 = rt(yield_curve, points[0])
        b0 = math.exp(-ht0 - rt0)
        t0 = points[0] - coupon.effective_start + self.omega

        pv = 0.0
        for j in range(1, len(points)):
            ht1 = rt(credit_curve, points[j])
            rt1 = rt(yield_curve, points[j])
            b1 = math.exp(-ht1 - rt1)
            dt = points[j] - points[j - 1]
            dht = ht1 - ht0
            dhrt = dht + rt1 - rt0
            pv += dht * b0 * (t0 * _epsilon(dhrt) + dt * _epsilon_p(dhrt))
            t0 += dt
            ht0, rt0, b0 = ht1, rt1, b1

        return coupon.yc_ratio * pv

    def rpv01(self, cds: CdsAnalytic, yield_curve, credit_curve, clean: bool = True) -> float:
        """
        Risky PV of one unit of spread (the premium leg annuity).

        Args:
            cds: Analytic CDS
            yield_curve: Discount curve
            credit_curve: Credit curve
            clean: Subtract premium accrued to the step-in date

        Returns:
            RPV01 per unit notional
        """
        pv = 0.0
        for c in cds.coupons:
            q = credit_curve.discount_factor(c.effective_end)
            p = yield_curve.discount_factor(c.payment_time)
            pv += c.year_fraction * p * q

        if cds.pay_accrued_on_default and cds.coupons:
            knots = integration_points(
                max(cds.effective_protection_start, 0.0), cds.protection_end, yield_curve, credit_curve
            )
            pv += sum(
                self._accrual_on_default(c, cds, yield_curve, credit_curve, knots) for c in cds.coupons
            )

        pv /= yield_curve.discount_factor(cds.cash_settle_time)
        if clean:
            pv -= cds.accrued_year_fraction
        return pv

    def pv(
        self,
        cds: CdsAnalytic,
        yield_curve,
        credit_curve,
        coupon: float,
        clean: bool = False
    ) -> float:
        """Protection buyer's PV per unit notional: protection - coupon * RPV01."""
        if cds.protection_end <= 0.0:
            return 0.0
        return (
            self.protection_leg(cds, yield_curve, credit_curve)
            - coupon * self.rpv01(cds, yield_curve, credit_curve, clean)
        )

    def par_spread(self, cds: CdsAnalytic, yield_curve, credit_curve) -> float:
        """Spread making the clean PV zero."""
        annuity = self.rpv01(cds, yield_curve, credit_curve, clean=True)
        if annuity <= 0.0:
            raise ValueError("Non-positive risky annuity; CDS has no remaining premium")
        return self.protection_leg(cds, yield_curve, credit_curve) / annuity


__all__ = [
    "CURVE_DAY_COUNT",
    "CdsCoupon",
    "CdsAnalytic",
    "IsdaCdsModel",
    "premium_schedule",
    "integration_points",
]
