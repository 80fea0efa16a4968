"""
CDS pricing in the ISDA standard model.

Two entry points:
- IsdaCdsProductPricer prices a Cds from already calibrated yield and
  credit curves (held in a MarketState or passed directly)
- IsdaCdsPricer starts from par rates: it calibrates the ISDA yield curve,
  then the credit curve against it, then prices. A failure in any of
  these steps is re-raised as PricingError naming the step.

Sign conventions:
    PV = dirty PV per unit * notional * sign + upfront fee * sign
    sign = +1 when protection is bought, -1 when sold

The upfront fee is always expressed as payable by the buyer. It counts
only when its amount is non-zero and it is paid strictly after the
valuation date, discounted on the yield curve with ACT/365F time.

Risk by bump and recalibration:
- CS01: change in PV for a 1bp rise in the credit par spreads
- IR01: change in PV for a 1bp rise in the yield par rates, with the
  credit curve recalibrated to unchanged spreads
"""

from datetime import date
from typing import Callable, List, Optional, Sequence
import logging

import numpy as np

from ..conventions import year_fraction
from ..currency import CurrencyAmount, MultiCurrencyAmount
from ..curves.bootstrap import IsdaCreditCurveCalibrator, IsdaYieldCurveCalibrator
from ..curves.curve import CreditCurve, Curve
from ..curves.isda_model import CURVE_DAY_COUNT, CdsAnalytic, IsdaCdsModel, premium_schedule
from ..curves.par_rates import IsdaCreditCurveParRates, IsdaYieldCurveParRates
from ..exceptions import PricingError
from ..explain import ExplainKey, ExplainMap, ExplainMapBuilder
from ..market_state import MarketState
from ..products.cds import Cds
from ..sensitivity import ONE_BP, CurrencyParameterSensitivities, CurrencyParameterSensitivity

logger = logging.getLogger(__name__)

NODE_SHIFT = 1e-6


class IsdaCdsProductPricer:
    """
    Prices CDS from calibrated curves.

    Attributes:
        model: ISDA analytic model
        protect_start: Protection from the start of day
    """

    def __init__(self, model: Optional[IsdaCdsModel] = None, protect_start: bool = True):
        self.model = model or IsdaCdsModel()
        self.protect_start = protect_start

    def analytic(self, cds: Cds, valuation_date: date, recovery_rate: float) -> CdsAnalytic:
        return cds.analytic(valuation_date, recovery_rate, self.protect_start)

    def upfront_fee_value(self, cds: Cds, valuation_date: date, yield_curve: Curve) -> float:
        """Discounted fee as payable by the buyer, before the trade sign."""
        fee = cds.upfront_fee
        if fee is None or fee.amount == 0.0:
            return 0.0
        if not fee.payment_date > valuation_date:
            return 0.0
        t = year_fraction(valuation_date, fee.payment_date, CURVE_DAY_COUNT)
        return yield_curve.discount_factor(t) * fee.amount

    def present_value_from_curves(
        self,
        cds: Cds,
        valuation_date: date,
        yield_curve: Curve,
        credit_curve: CreditCurve,
        recovery_rate: float
    ) -> CurrencyAmount:
        """
        Dirty present value including the upfront fee.

        Args:
            cds: The trade
            valuation_date: Valuation date (also the curve anchor)
            yield_curve: ISDA discount curve
            credit_curve: ISDA credit curve
            recovery_rate: Recovery of the reference entity

        Returns:
            PV in the trade currency
        """
        analytic = self.analytic(cds, valuation_date, recovery_rate)
        return self._present_value(cds, analytic, valuation_date, yield_curve, credit_curve)

    def _present_value(
        self,
        cds: Cds,
        analytic: CdsAnalytic,
        valuation_date: date,
        yield_curve: Curve,
        credit_curve: CreditCurve
    ) -> CurrencyAmount:
        pv = self.model.pv(analytic, yield_curve, credit_curve, cds.coupon, clean=False)
        fee = self.upfront_fee_value(cds, valuation_date, yield_curve)
        total = pv * cds.notional * cds.sign + fee * cds.sign
        logger.debug("CDS %s: unit dirty PV %.10f, fee %.2f", cds.reference, pv, fee)
        return CurrencyAmount(cds.currency, total)

    def _market_curves(self, cds: Cds, market: MarketState):
        return (
            market.discount_curve(cds.currency),
            market.credit_curve(cds.reference),
            market.recovery_rate(cds.reference),
        )

    def present_value(self, cds: Cds, market: MarketState) -> CurrencyAmount:
        yield_curve, credit_curve, recovery = self._market_curves(cds, market)
        return self.present_value_from_curves(cds, market.valuation_date, yield_curve, credit_curve, recovery)

    def currency_exposure(self, cds: Cds, market: MarketState) -> MultiCurrencyAmount:
        return MultiCurrencyAmount.of(self.present_value(cds, market))

    def par_spread(self, cds: Cds, market: MarketState) -> float:
        """Running coupon that makes the clean PV zero."""
        yield_curve, credit_curve, recovery = self._market_curves(cds, market)
        analytic = self.analytic(cds, market.valuation_date, recovery)
        return self.model.par_spread(analytic, yield_curve, credit_curve)

    def risky_annuity(self, cds: Cds, market: MarketState) -> float:
        """Clean RPV01 per unit notional."""
        yield_curve, credit_curve, recovery = self._market_curves(cds, market)
        analytic = self.analytic(cds, market.valuation_date, recovery)
        return self.model.rpv01(analytic, yield_curve, credit_curve, clean=True)

    def accrued_premium(self, cds: Cds, valuation_date: date) -> CurrencyAmount:
        """
        Premium accrued to the step-in date, positive for the protection
        seller who receives it.
        """
        analytic = cds.analytic(valuation_date, 0.0, self.protect_start)
        amount = cds.notional * cds.coupon * analytic.accrued_year_fraction
        return CurrencyAmount(cds.currency, -cds.sign * amount)

    def current_cash(self, cds: Cds, market: MarketState) -> CurrencyAmount:
        """Premium payments and upfront fee settling on the valuation date."""
        valuation = market.valuation_date
        conv = cds.convention
        premium = 0.0
        for start, end, pay in premium_schedule(
            cds.start_date, cds.end_date, conv.payment_interval_months, conv.stub_convention,
            conv.business_day, self.protect_start,
        ):
            if pay == valuation:
                premium += cds.notional * cds.coupon * year_fraction(start, end, conv.day_count)
        cash = -cds.sign * premium
        fee = cds.upfront_fee
        if fee is not None and fee.payment_date == valuation:
            cash += cds.sign * fee.amount
        return CurrencyAmount(cds.currency, cash)

    def _bumped_node_sensitivity(
        self,
        curve: Curve,
        price: Callable[[Curve], float],
        currency: str
    ) -> CurrencyParameterSensitivity:
        values = np.zeros(curve.node_count)
        rates = curve.get_node_rates()
        for i in range(curve.node_count):
            up = price(curve.with_parameter(i, rates[i] + NODE_SHIFT))
            down = price(curve.with_parameter(i, rates[i] - NODE_SHIFT))
            values[i] = (up - down) / (2.0 * NODE_SHIFT)
        return CurrencyParameterSensitivity(curve.name, currency, curve.labels, values)

    def present_value_sensitivity(self, cds: Cds, market: MarketState) -> CurrencyParameterSensitivities:
        """
        Node-level sensitivities of the PV to the zero rates of the yield
        curve and the credit curve, by central differences.
        """
        yield_curve, credit_curve, recovery = self._market_curves(cds, market)
        analytic = self.analytic(cds, market.valuation_date, recovery)
        valuation = market.valuation_date

        def with_yield(curve: Curve) -> float:
            return self._present_value(cds, analytic, valuation, curve, credit_curve).amount

        def with_credit(curve: CreditCurve) -> float:
            return self._present_value(cds, analytic, valuation, yield_curve, curve).amount

        return CurrencyParameterSensitivities.of(
            self._bumped_node_sensitivity(yield_curve, with_yield, cds.currency),
            self._bumped_node_sensitivity(credit_curve, with_credit, cds.currency),
        )

    def explain_present_value(self, cds: Cds, market: MarketState) -> ExplainMap:
        yield_curve, credit_curve, recovery = self._market_curves(cds, market)
        valuation = market.valuation_date
        analytic = self.analytic(cds, valuation, recovery)
        protection = self.model.protection_leg(analytic, yield_curve, credit_curve)
        rpv01 = self.model.rpv01(analytic, yield_curve, credit_curve, clean=False)
        scale = cds.notional * cds.sign

        builder = ExplainMapBuilder()
        builder.put(ExplainKey.ENTRY_TYPE, "Cds")
        builder.put(ExplainKey.BUY_SELL, cds.buy_sell.value)
        builder.put(ExplainKey.CURRENCY, cds.currency)
        builder.put(ExplainKey.NOTIONAL, CurrencyAmount(cds.currency, cds.notional))
        builder.put(ExplainKey.START_DATE, cds.start_date)
        builder.put(ExplainKey.END_DATE, cds.end_date)
        builder.put(ExplainKey.FIXED_RATE, cds.coupon)
        builder.put(ExplainKey.SURVIVAL_PROBABILITY,
                    credit_curve.survival_probability(analytic.protection_end))
        builder.put(ExplainKey.PROTECTION_LEG, CurrencyAmount(cds.currency, protection * scale))
        builder.put(ExplainKey.PREMIUM_LEG, CurrencyAmount(cds.currency, -cds.coupon * rpv01 * scale))
        builder.put(ExplainKey.ACCRUED_PREMIUM, self.accrued_premium(cds, valuation))
        builder.put(ExplainKey.UPFRONT_FEE, CurrencyAmount(
            cds.currency, self.upfront_fee_value(cds, valuation, yield_curve) * cds.sign
        ))
        builder.put(ExplainKey.PRESENT_VALUE, self.present_value(cds, market))
        return builder.build()


class IsdaCdsPricer:
    """
    Prices CDS from yield and credit par rates, calibrating both curves on
    the valuation date.

    Attributes:
        product_pricer: Pricer used once the curves are built
        yield_calibrator: ISDA yield curve bootstrapper
        credit_calibrator: ISDA credit curve bootstrapper
    """

    def __init__(
        self,
        product_pricer: Optional[IsdaCdsProductPricer] = None,
        yield_calibrator: Optional[IsdaYieldCurveCalibrator] = None,
        credit_calibrator: Optional[IsdaCreditCurveCalibrator] = None
    ):
        self.product_pricer = product_pricer or IsdaCdsProductPricer()
        self.yield_calibrator = yield_calibrator or IsdaYieldCurveCalibrator()
        self.credit_calibrator = credit_calibrator or IsdaCreditCurveCalibrator(
            protect_start=self.product_pricer.protect_start
        )

    def yield_curve(self, valuation_date: date, par_rates: IsdaYieldCurveParRates) -> Curve:
        """
        Raises:
            PricingError: If the yield curve cannot be calibrated
        """
        try:
            return self.yield_calibrator.calibrate(
                valuation_date, par_rates.to_instruments(), par_rates.convention, par_rates.name
            ).curve
        except Exception as e:
            raise PricingError(
                f"Error converting the Isda Discount Curve: {e}", step="Isda Discount Curve"
            ) from e

    def credit_curve(
        self,
        valuation_date: date,
        par_rates: IsdaCreditCurveParRates,
        yield_curve: Curve,
        recovery_rate: float
    ) -> CreditCurve:
        """
        Raises:
            PricingError: If the credit curve cannot be calibrated
        """
        try:
            return self.credit_calibrator.calibrate(
                valuation_date, par_rates.to_instruments(), yield_curve, recovery_rate,
                par_rates.convention, par_rates.name,
            ).curve
        except Exception as e:
            raise PricingError(
                f"Error converting the Isda Credit Curve: {e}", step="Isda Credit Curve"
            ) from e

    def _analytic(self, cds: Cds, valuation_date: date, recovery_rate: float) -> CdsAnalytic:
        try:
            return self.product_pricer.analytic(cds, valuation_date, recovery_rate)
        except Exception as e:
            raise PricingError(
                f"Error converting the trade to an analytic: {e}", step="Analytic"
            ) from e

    def _price_amount(
        self,
        valuation_date: date,
        cds: Cds,
        yield_par_rates: IsdaYieldCurveParRates,
        credit_par_rates: IsdaCreditCurveParRates,
        recovery_rate: float
    ) -> float:
        analytic = self._analytic(cds, valuation_date, recovery_rate)
        yield_curve = self.yield_curve(valuation_date, yield_par_rates)
        credit_curve = self.credit_curve(valuation_date, credit_par_rates, yield_curve, recovery_rate)
        return self.product_pricer._present_value(
            cds, analytic, valuation_date, yield_curve, credit_curve
        ).amount

    def price(
        self,
        valuation_date: date,
        cds: Cds,
        yield_par_rates: IsdaYieldCurveParRates,
        credit_par_rates: IsdaCreditCurveParRates,
        recovery_rate: float
    ) -> MultiCurrencyAmount:
        """
        Present value on valuation_date, with curves calibrated on that date.

        Raises:
            PricingError: If the trade or either curve cannot be converted
        """
        pv = self._price_amount(valuation_date, cds, yield_par_rates, credit_par_rates, recovery_rate)
        return MultiCurrencyAmount.of(CurrencyAmount(cds.currency, pv))

    def par_spread(
        self,
        valuation_date: date,
        cds: Cds,
        yield_par_rates: IsdaYieldCurveParRates,
        credit_par_rates: IsdaCreditCurveParRates,
        recovery_rate: float
    ) -> float:
        analytic = self._analytic(cds, valuation_date, recovery_rate)
        yield_curve = self.yield_curve(valuation_date, yield_par_rates)
        credit_curve = self.credit_curve(valuation_date, credit_par_rates, yield_curve, recovery_rate)
        return self.product_pricer.model.par_spread(analytic, yield_curve, credit_curve)

    def _bucketed(
        self,
        name: str,
        currency: str,
        labels: Sequence[str],
        rates: Sequence[float],
        base: float,
        reprice: Callable[[List[float]], float],
        bp: float
    ) -> CurrencyParameterSensitivity:
        values = []
        for i in range(len(rates)):
            bumped = list(rates)
            bumped[i] += bp * ONE_BP
            values.append(reprice(bumped) - base)
        return CurrencyParameterSensitivity(name, currency, list(labels), np.array(values))

    def cs01_parallel(
        self,
        valuation_date: date,
        cds: Cds,
        yield_par_rates: IsdaYieldCurveParRates,
        credit_par_rates: IsdaCreditCurveParRates,
        recovery_rate: float,
        bp: float = 1.0
    ) -> CurrencyAmount:
        """PV change for a parallel shift of every credit par spread by bp."""
        base = self._price_amount(valuation_date, cds, yield_par_rates, credit_par_rates, recovery_rate)
        bumped = self._price_amount(
            valuation_date, cds, yield_par_rates, credit_par_rates.bumped(bp), recovery_rate
        )
        return CurrencyAmount(cds.currency, bumped - base)

    def cs01_bucketed(
        self,
        valuation_date: date,
        cds: Cds,
        yield_par_rates: IsdaYieldCurveParRates,
        credit_par_rates: IsdaCreditCurveParRates,
        recovery_rate: float,
        bp: float = 1.0
    ) -> CurrencyParameterSensitivity:
        """PV change for each credit par spread bumped alone, labelled by tenor."""
        base = self._price_amount(valuation_date, cds, yield_par_rates, credit_par_rates, recovery_rate)
        return self._bucketed(
            credit_par_rates.name, cds.currency, credit_par_rates.tenors, credit_par_rates.par_rates, base,
            lambda rates: self._price_amount(
                valuation_date, cds, yield_par_rates, credit_par_rates.with_par_rates(rates), recovery_rate
            ),
            bp,
        )

    def ir01_parallel(
        self,
        valuation_date: date,
        cds: Cds,
        yield_par_rates: IsdaYieldCurveParRates,
        credit_par_rates: IsdaCreditCurveParRates,
        recovery_rate: float,
        bp: float = 1.0
    ) -> CurrencyAmount:
        """PV change for a parallel shift of every yield par rate by bp."""
        base = self._price_amount(valuation_date, cds, yield_par_rates, credit_par_rates, recovery_rate)
        bumped = self._price_amount(
            valuation_date, cds, yield_par_rates.bumped(bp), credit_par_rates, recovery_rate
        )
        return CurrencyAmount(cds.currency, bumped - base)

    def ir01_bucketed(
        self,
        valuation_date: date,
        cds: Cds,
        yield_par_rates: IsdaYieldCurveParRates,
        credit_par_rates: IsdaCreditCurveParRates,
        recovery_rate: float,
        bp: float = 1.0
    ) -> CurrencyParameterSensitivity:
        base = self._price_amount(valuation_date, cds, yield_par_rates, credit_par_rates, recovery_rate)
        return self._bucketed(
            yield_par_rates.name, cds.currency, yield_par_rates.tenors, yield_par_rates.par_rates, base,
            lambda rates: self._price_amount(
                valuation_date, cds, yield_par_rates.with_par_rates(rates), credit_par_rates, recovery_rate
            ),
            bp,
        )


__all__ = [
    "IsdaCdsProductPricer",
    "IsdaCdsPricer",
]
