"""
Single-name credit default swap.

The protection buyer pays a running coupon on the notional until maturity
or default; the seller pays the loss given default. An optional upfront
fee settles the difference between the running coupon and the par spread
and is always expressed as payable by the protection buyer (a negative
amount when the seller pays).
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from ..conventions import BuySell, CdsConvention
from ..curves.isda_model import CURVE_DAY_COUNT, CdsAnalytic


@dataclass(frozen=True)
class Payment:
    """A single cash amount paid on a date."""
    currency: str
    amount: float
    payment_date: date


@dataclass(frozen=True)
class Cds:
    """
    Credit default swap on one reference entity.

    Attributes:
        buy_sell: BUY for protection bought
        currency: Trade currency
        notional: Unsigned notional
        start_date: Premium accrual start
        end_date: Protection end (unadjusted maturity)
        coupon: Running coupon as a decimal (0.01 = 100bp)
        convention: Schedule and accrual conventions
        reference: Reference entity name
        upfront_fee: Optional upfront payment, payable by the buyer
    """
    buy_sell: BuySell
    currency: str
    notional: float
    start_date: date
    end_date: date
    coupon: float
    convention: CdsConvention
    reference: str = ""
    upfront_fee: Optional[Payment] = None

    def __post_init__(self):
        if self.end_date <= self.start_date:
            raise ValueError(f"CDS end {self.end_date} must be after start {self.start_date}")
        if self.notional < 0:
            raise ValueError(f"CDS notional must not be negative, got {self.notional}")
        if self.upfront_fee is not None and self.upfront_fee.currency != self.currency:
            raise ValueError(
                f"Upfront fee currency {self.upfront_fee.currency} differs from trade currency {self.currency}"
            )

    @property
    def sign(self) -> int:
        return self.buy_sell.sign

    @classmethod
    def standard(
        cls,
        buy_sell: BuySell,
        trade_date: date,
        tenor: str,
        notional: float,
        coupon: float,
        convention: Optional[CdsConvention] = None,
        reference: str = "",
        upfront_fee: Optional[Payment] = None
    ) -> "Cds":
        """
        Standard CDS: accrues from the IMM date before step-in and matures
        on the IMM date for the tenor.
        """
        convention = convention or CdsConvention.usd_standard()
        return cls(
            buy_sell=buy_sell,
            currency=convention.currency,
            notional=notional,
            start_date=convention.adjusted_start_date(trade_date),
            end_date=convention.unadjusted_maturity_date(trade_date, tenor),
            coupon=coupon,
            convention=convention,
            reference=reference,
            upfront_fee=upfront_fee,
        )

    def analytic(self, valuation_date: date, recovery_rate: float, protect_start: bool = True) -> CdsAnalytic:
        """
        Analytic form as seen on valuation_date.

        Steps in one calendar day after valuation; values are rolled to the
        valuation date itself.
        """
        conv = self.convention
        return CdsAnalytic.of(
            trade_date=valuation_date,
            step_in_date=valuation_date + timedelta(days=1),
            cash_settle_date=valuation_date,
            accrual_start=self.start_date,
            end_date=self.end_date,
            pay_accrued_on_default=conv.pay_accrued_on_default,
            payment_interval_months=conv.payment_interval_months,
            stub=conv.stub_convention,
            protect_start=protect_start,
            recovery_rate=recovery_rate,
            business_day=conv.business_day,
            accrual_day_count=conv.day_count,
            curve_day_count=CURVE_DAY_COUNT,
        )


__all__ = [
    "Payment",
    "Cds",
]
