"""
Swap pricing by discounting.

Each rate payment period pays N * tau * rate at its payment date, where
the rate is either fixed or an Ibor fixing plus spread. Ibor rates come
from the time series once fixed and from the index forward curve
otherwise; every amount is discounted on the currency discount curve.

    PV_period = N * tau * rate * DF(payment)
    PVBP_leg  = sum(N * tau * DF(payment))

Periods paying before the valuation date are worth zero. A period paying
on the valuation date is still included in the present value (with a
discount factor of one) and is reported as current cash.

Par rate of a swap:
    R = -PV(other legs) / PVBP(fixed leg)
"""

from datetime import date
from typing import List
import logging

import pandas as pd

from ..currency import CurrencyAmount, MultiCurrencyAmount
from ..explain import ExplainKey, ExplainMap, ExplainMapBuilder
from ..indices import SwapIndex
from ..market_state import MarketState
from ..products.swap import RatePaymentPeriod, Swap, SwapLeg, SwapLegType, swap_from_index
from ..sensitivity import MutablePointSensitivities

logger = logging.getLogger(__name__)


class DiscountingSwapLegPricer:
    """
    Prices swap legs of fixed and Ibor rate periods.

    Stateless: one instance can be shared by any number of pricing calls.
    """

    # ------------------------------------------------------------------
    # Period level

    def rate(self, period: RatePaymentPeriod, market: MarketState) -> float:
        """Fixed rate, or observed/forecast Ibor rate plus spread."""
        if period.is_fixed:
            return period.fixed_rate
        return market.ibor_rate(period.index, period.fixing_date) + period.spread

    def rate_sensitivity(self, period: RatePaymentPeriod, market: MarketState) -> MutablePointSensitivities:
        if period.is_fixed:
            return MutablePointSensitivities()
        return market.ibor_rate_point_sensitivity(period.index, period.fixing_date)

    def _is_paid(self, period: RatePaymentPeriod, market: MarketState) -> bool:
        return period.payment_date < market.valuation_date

    def period_forecast_value(self, period: RatePaymentPeriod, market: MarketState) -> float:
        if self._is_paid(period, market):
            return 0.0
        return period.notional * period.year_fraction * self.rate(period, market)

    def period_present_value(self, period: RatePaymentPeriod, market: MarketState) -> float:
        if self._is_paid(period, market):
            return 0.0
        df = market.discount_factor(period.currency, period.payment_date)
        return self.period_forecast_value(period, market) * df

    def period_present_value_sensitivity(
        self,
        period: RatePaymentPeriod,
        market: MarketState
    ) -> MutablePointSensitivities:
        """d PV / d zero rates of the discount and forward curves."""
        result = MutablePointSensitivities()
        if self._is_paid(period, market):
            return result
        amount = period.notional * period.year_fraction
        rate = self.rate(period, market)
        df = market.discount_factor(period.currency, period.payment_date)
        df_point = market.discount_factor_point_sensitivity(period.currency, period.payment_date)
        result.add(df_point.multiplied_by(amount * rate))
        result.add(self.rate_sensitivity(period, market).multiplied_by(amount * df))
        return result

    # ------------------------------------------------------------------
    # Leg level

    def present_value(self, leg: SwapLeg, market: MarketState) -> CurrencyAmount:
        pv = sum(self.period_present_value(p, market) for p in leg.periods)
        return CurrencyAmount(leg.currency, pv)

    def forecast_value(self, leg: SwapLeg, market: MarketState) -> CurrencyAmount:
        fv = sum(self.period_forecast_value(p, market) for p in leg.periods)
        return CurrencyAmount(leg.currency, fv)

    def present_value_sensitivity(self, leg: SwapLeg, market: MarketState) -> MutablePointSensitivities:
        result = MutablePointSensitivities()
        for period in leg.periods:
            result.add(self.period_present_value_sensitivity(period, market))
        return result

    def pvbp(self, leg: SwapLeg, market: MarketState) -> float:
        """
        Present value of one unit of rate on the leg: sum(N * tau * DF).

        The sign follows the notional, so a paid leg has a negative PVBP.
        """
        return sum(
            p.notional * p.year_fraction * market.discount_factor(p.currency, p.payment_date)
            for p in leg.periods if not self._is_paid(p, market)
        )

    def pvbp_sensitivity(self, leg: SwapLeg, market: MarketState) -> MutablePointSensitivities:
        result = MutablePointSensitivities()
        for p in leg.periods:
            if self._is_paid(p, market):
                continue
            point = market.discount_factor_point_sensitivity(p.currency, p.payment_date)
            result.add(point.multiplied_by(p.notional * p.year_fraction))
        return result

    def current_cash(self, leg: SwapLeg, market: MarketState) -> CurrencyAmount:
        """Amounts of the periods paying on the valuation date."""
        cash = sum(
            self.period_forecast_value(p, market)
            for p in leg.periods if p.payment_date == market.valuation_date
        )
        return CurrencyAmount(leg.currency, cash)

    def currency_exposure(self, leg: SwapLeg, market: MarketState) -> MultiCurrencyAmount:
        return MultiCurrencyAmount.of(self.present_value(leg, market))

    def accrued_interest(self, leg: SwapLeg, market: MarketState) -> CurrencyAmount:
        """
        Interest accrued in the period spanning the valuation date,
        pro rata by calendar days.
        """
        valuation = market.valuation_date
        accrued = 0.0
        for p in leg.periods:
            if p.start_date < valuation < p.end_date:
                share = (valuation - p.start_date).days / (p.end_date - p.start_date).days
                accrued += p.notional * p.year_fraction * share * self.rate(p, market)
        return CurrencyAmount(leg.currency, accrued)

    def explain_present_value(self, leg: SwapLeg, market: MarketState) -> ExplainMap:
        builder = ExplainMapBuilder()
        builder.put(ExplainKey.ENTRY_TYPE, "Leg")
        builder.put(ExplainKey.LEG_TYPE, leg.leg_type.value)
        builder.put(ExplainKey.PAY_RECEIVE, leg.pay_receive.value)
        for i, period in enumerate(leg.periods):
            builder.add_list_entry(
                ExplainKey.PAYMENT_PERIODS,
                lambda child, i=i, period=period: self._explain_period(child, i, period, market),
            )
        builder.put(ExplainKey.PRESENT_VALUE, self.present_value(leg, market))
        return builder.build()

    def _explain_period(
        self,
        builder: ExplainMapBuilder,
        entry_index: int,
        period: RatePaymentPeriod,
        market: MarketState
    ) -> None:
        builder.put(ExplainKey.ENTRY_TYPE, "RatePaymentPeriod")
        builder.put(ExplainKey.ENTRY_INDEX, entry_index)
        builder.put(ExplainKey.PAYMENT_DATE, period.payment_date)
        builder.put(ExplainKey.START_DATE, period.start_date)
        builder.put(ExplainKey.END_DATE, period.end_date)
        builder.put(ExplainKey.ACCRUAL_YEAR_FRACTION, period.year_fraction)
        builder.put(ExplainKey.NOTIONAL, CurrencyAmount(period.currency, period.notional))
        builder.put(ExplainKey.CURRENCY, period.currency)
        if self._is_paid(period, market):
            builder.put(ExplainKey.COMPLETED, True)
            builder.put(ExplainKey.FORECAST_VALUE, CurrencyAmount.zero(period.currency))
            builder.put(ExplainKey.PRESENT_VALUE, CurrencyAmount.zero(period.currency))
            return
        if period.is_fixed:
            builder.put(ExplainKey.FIXED_RATE, period.fixed_rate)
        else:
            builder.put(ExplainKey.INDEX, period.index.name)
            builder.put(ExplainKey.FIXING_DATE, period.fixing_date)
            rate = market.ibor_rate(period.index, period.fixing_date)
            key = (
                ExplainKey.OBSERVED_RATE
                if market.is_fixed(period.index.name, period.fixing_date)
                else ExplainKey.FORWARD_RATE
            )
            builder.put(key, rate)
        builder.put(ExplainKey.DISCOUNT_FACTOR, market.discount_factor(period.currency, period.payment_date))
        builder.put(ExplainKey.FORECAST_VALUE,
                    CurrencyAmount(period.currency, self.period_forecast_value(period, market)))
        builder.put(ExplainKey.PRESENT_VALUE,
                    CurrencyAmount(period.currency, self.period_present_value(period, market)))

    def cash_flows(self, leg: SwapLeg, market: MarketState) -> pd.DataFrame:
        """Unpaid cash flows of the leg as a DataFrame, one row per period."""
        rows = []
        for p in leg.periods:
            if self._is_paid(p, market):
                continue
            rows.append({
                "payment_date": p.payment_date,
                "start_date": p.start_date,
                "end_date": p.end_date,
                "year_fraction": p.year_fraction,
                "notional": p.notional,
                "rate": self.rate(p, market),
                "forecast_value": self.period_forecast_value(p, market),
                "discount_factor": market.discount_factor(p.currency, p.payment_date),
                "present_value": self.period_present_value(p, market),
                "currency": p.currency,
            })
        return pd.DataFrame(rows, columns=[
            "payment_date", "start_date", "end_date", "year_fraction", "notional", "rate",
            "forecast_value", "discount_factor", "present_value", "currency",
        ])


class DiscountingSwapProductPricer:
    """
    Prices swaps as the sum of their legs.

    Attributes:
        leg_pricer: Pricer used for every leg
    """

    def __init__(self, leg_pricer: DiscountingSwapLegPricer = None):
        self.leg_pricer = leg_pricer or DiscountingSwapLegPricer()

    def present_value(self, swap: Swap, market: MarketState) -> MultiCurrencyAmount:
        return MultiCurrencyAmount.total(self.leg_pricer.present_value(leg, market) for leg in swap.legs)

    def forecast_value(self, swap: Swap, market: MarketState) -> MultiCurrencyAmount:
        return MultiCurrencyAmount.total(self.leg_pricer.forecast_value(leg, market) for leg in swap.legs)

    def present_value_sensitivity(self, swap: Swap, market: MarketState) -> MutablePointSensitivities:
        result = MutablePointSensitivities()
        for leg in swap.legs:
            result.add(self.leg_pricer.present_value_sensitivity(leg, market))
        return result

    def leg_present_values(self, swap: Swap, market: MarketState) -> List[CurrencyAmount]:
        return [self.leg_pricer.present_value(leg, market) for leg in swap.legs]

    def current_cash(self, swap: Swap, market: MarketState) -> MultiCurrencyAmount:
        return MultiCurrencyAmount.total(self.leg_pricer.current_cash(leg, market) for leg in swap.legs)

    def currency_exposure(self, swap: Swap, market: MarketState) -> MultiCurrencyAmount:
        return self.present_value(swap, market)

    def accrued_interest(self, swap: Swap, market: MarketState) -> MultiCurrencyAmount:
        return MultiCurrencyAmount.total(self.leg_pricer.accrued_interest(leg, market) for leg in swap.legs)

    def _split_legs(self, swap: Swap):
        fixed = swap.legs_of_type(SwapLegType.FIXED)
        if len(fixed) != 1:
            raise ValueError(f"Par rate needs exactly one fixed leg, found {len(fixed)}")
        fixed_leg = fixed[0]
        others = [leg for leg in swap.legs if leg is not fixed_leg]
        for leg in others:
            if leg.currency != fixed_leg.currency:
                raise ValueError("Par rate needs all legs in the fixed leg currency")
        return fixed_leg, others

    def par_rate(self, swap: Swap, market: MarketState) -> float:
        """
        Fixed rate that makes the swap PV zero.

        Raises:
            ValueError: If the swap does not have exactly one fixed leg, or
                legs in different currencies
        """
        fixed_leg, others = self._split_legs(swap)
        pv_other = sum(self.leg_pricer.present_value(leg, market).amount for leg in others)
        pvbp = self.leg_pricer.pvbp(fixed_leg, market)
        if pvbp == 0.0:
            raise ValueError("Fixed leg has no remaining payments")
        return -pv_other / pvbp

    def par_rate_sensitivity(self, swap: Swap, market: MarketState) -> MutablePointSensitivities:
        fixed_leg, others = self._split_legs(swap)
        pv_other = sum(self.leg_pricer.present_value(leg, market).amount for leg in others)
        pvbp = self.leg_pricer.pvbp(fixed_leg, market)
        result = MutablePointSensitivities()
        for leg in others:
            result.add(self.leg_pricer.present_value_sensitivity(leg, market).multiplied_by(-1.0 / pvbp))
        result.add(self.leg_pricer.pvbp_sensitivity(fixed_leg, market).multiplied_by(pv_other / (pvbp * pvbp)))
        return result

    def forward_swap_rate(self, index: SwapIndex, fixing_date: date, market: MarketState) -> float:
        """Par rate of the underlying swap of a swap index fixing."""
        return self.par_rate(swap_from_index(index, fixing_date), market)

    def forward_swap_rate_sensitivity(
        self,
        index: SwapIndex,
        fixing_date: date,
        market: MarketState
    ) -> MutablePointSensitivities:
        return self.par_rate_sensitivity(swap_from_index(index, fixing_date), market)

    def cash_flows(self, swap: Swap, market: MarketState) -> pd.DataFrame:
        frames = []
        for i, leg in enumerate(swap.legs):
            frame = self.leg_pricer.cash_flows(leg, market)
            frame.insert(0, "leg", i)
            frames.append(frame)
        return pd.concat(frames, ignore_index=True)

    def explain_present_value(self, swap: Swap, market: MarketState) -> ExplainMap:
        builder = ExplainMapBuilder()
        builder.put(ExplainKey.ENTRY_TYPE, "Swap")
        builder.add_list_entries(
            ExplainKey.LEGS, [self.leg_pricer.explain_present_value(leg, market) for leg in swap.legs]
        )
        builder.put(ExplainKey.PRESENT_VALUE, self.present_value(swap, market))
        logger.debug("Explained swap with %d legs", len(swap.legs))
        return builder.build()


__all__ = [
    "DiscountingSwapLegPricer",
    "DiscountingSwapProductPricer",
]
