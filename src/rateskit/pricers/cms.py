"""
CMS pricing by static replication on the SABR smile.

A payment of the swap rate S at a date other than the natural annuity
payment needs a convexity adjustment. With the annuity approximated by the
flat-rate formula

    G(x) = sum_{i=1..n} tau / (1 + tau x)^i
    h(x) = (1 + tau x)^(-delta)
    k(x) = h(x) / G(x)

(tau the fixed accrual, n the number of fixed periods, delta the fixed
day-count fraction from swap start to CMS payment) the caplet value is

    df / k(F) * [ k(K) C(K) + int_K^inf (k''(x)(x - K) + 2 k'(x)) C(x) dx ]

and the floorlet value

    df / k(F) * [ k(K) P(K) + int_{-shift}^K (k''(x)(K - x) - 2 k'(x)) P(x) dx ]

where C and P are undiscounted swaption prices from the SABR smile. A
coupon is a caplet struck at -shift less df * shift.

Above a cut-off strike the SABR prices are replaced by the tail

    C(K) = K^(-mu) exp(a + b/K + c/K^2)

fitted to price, slope and curvature at the cut-off (K in shifted terms),
which keeps the replication integral finite.

Sensitivities to the forward rate, SABR parameters and strike are central
differences of the replication value.
"""

from typing import List, Optional, Tuple
import logging
import math

import numpy as np
from scipy.integrate import quad

from ..config import settings
from ..conventions import PutCall, year_fraction
from ..currency import CurrencyAmount, MultiCurrencyAmount
from ..explain import ExplainKey, ExplainMap, ExplainMapBuilder
from ..market_state import MarketState
from ..options.base_models import black_price
from ..products.cms import Cms, CmsLeg, CmsPeriod, CmsPeriodType
from ..sensitivity import MutablePointSensitivities, SabrParameterType, SwaptionSabrSensitivity
from ..vol.sabr import SabrModel, SabrParams, parameter_bump
from ..vol.swaption_vols import SabrSwaptionVolatilities, require_sabr
from .swaps import DiscountingSwapLegPricer, DiscountingSwapProductPricer

logger = logging.getLogger(__name__)

# Integration controls
INTEGRATION_ABS_TOL = 1e-12
INTEGRATION_REL_TOL = 1e-10
INTEGRATION_MAX_DOUBLINGS = 10
INTEGRATION_LIMIT = 200
# Finite-difference steps
FORWARD_STEP = 1e-7
STRIKE_STEP = 1e-7
TAIL_FIT_RELATIVE_STEP = 1e-4

_ENTRY_TYPES = {
    CmsPeriodType.COUPON: "CmsCouponPeriod",
    CmsPeriodType.CAPLET: "CmsCapletPeriod",
    CmsPeriodType.FLOORLET: "CmsFloorletPeriod",
}


class SabrExtrapolationRightFunction:
    """
    Undiscounted option prices on the SABR smile with a power-law tail
    to the right of a cut-off strike.

    Attributes:
        forward: Forward rate
        expiry: Time to expiry
        params: SABR parameters (including shift)
        cut_off_strike: Strike above which the tail is used
        mu: Tail exponent
    """

    def __init__(
        self,
        forward: float,
        expiry: float,
        params: SabrParams,
        cut_off_strike: float,
        mu: float,
        model: Optional[SabrModel] = None
    ):
        self.forward = forward
        self.expiry = expiry
        self.params = params
        self.cut_off_strike = cut_off_strike
        self.mu = mu
        self.model = model or SabrModel()
        self.a, self.b, self.c = self._fit_tail()

    @property
    def shift(self) -> float:
        return self.params.shift

    def _sabr_price(self, strike: float, put_call: PutCall) -> float:
        vol = self.model.implied_vol_black(self.forward, strike, self.expiry, self.params)
        return black_price(self.forward, strike, self.expiry, vol, put_call, self.shift)

    def _fit_tail(self) -> Tuple[float, float, float]:
        """
        Solve a, b, c so the tail matches the SABR call price and its
        first two strike derivatives at the cut-off.

        Returns (-inf, 0, 0), a zero tail, when the cut-off call is worthless.
        """
        kc = self.cut_off_strike + self.shift
        h = TAIL_FIT_RELATIVE_STEP * kc
        p = self._sabr_price(self.cut_off_strike, PutCall.CALL)
        if p <= 0.0:
            return -math.inf, 0.0, 0.0
        p_up = self._sabr_price(self.cut_off_strike + h, PutCall.CALL)
        p_down = self._sabr_price(self.cut_off_strike - h, PutCall.CALL)
        dp = (p_up - p_down) / (2.0 * h)
        d2p = (p_up - 2.0 * p + p_down) / (h * h)

        q = math.log(p) + self.mu * math.log(kc)
        dq = dp / p + self.mu / kc
        d2q = d2p / p - (dp / p) ** 2 - self.mu / (kc * kc)
        c = kc ** 4 * (d2q + 2.0 * dq / kc) / 2.0
        b = -kc * kc * dq - 2.0 * c / kc
        a = q - b / kc - c / (kc * kc)
        return a, b, c

    def price(self, strike: float, put_call: PutCall) -> float:
        """Undiscounted price of an option struck at strike."""
        ks = strike + self.shift
        fs = self.forward + self.shift
        if ks <= 0.0:
            return fs - ks if put_call == PutCall.CALL else 0.0
        if strike <= self.cut_off_strike:
            return self._sabr_price(strike, put_call)
        if self.a == -math.inf:
            call = 0.0
        else:
            call = ks ** (-self.mu) * math.exp(self.a + self.b / ks + self.c / (ks * ks))
        if put_call == PutCall.CALL:
            return call
        return call - (fs - ks)


class _AnnuityRatio:
    """k(x) = h(x) / G(x) and its first two derivatives."""

    def __init__(self, tau: float, n: int, delta: float):
        self.tau = tau
        self.delta = delta
        self._i = np.arange(1, n + 1, dtype=np.float64)

    def derivatives(self, x: float) -> Tuple[float, float, float]:
        tau, delta, i = self.tau, self.delta, self._i
        p = 1.0 + tau * x
        g = float(np.sum(tau * p ** -i))
        dg = float(np.sum(-i * tau ** 2 * p ** (-i - 1)))
        d2g = float(np.sum(i * (i + 1) * tau ** 3 * p ** (-i - 2)))
        h = p ** -delta
        dh = -delta * tau * p ** (-delta - 1)
        d2h = delta * (delta + 1) * tau ** 2 * p ** (-delta - 2)

        k = h / g
        dk = (dh * g - h * dg) / (g * g)
        d2k = (d2h * g - h * d2g) / (g * g) - 2.0 * dg * (dh * g - h * dg) / g ** 3
        return k, dk, d2k

    def k(self, x: float) -> float:
        return self.derivatives(x)[0]


class SabrExtrapolationReplicationCmsPeriodPricer:
    """
    Prices CMS coupons, caplets and floorlets by replication.

    Attributes:
        cut_off_strike: Strike above which the SABR smile is extrapolated
        mu: Tail exponent; larger values make the tail decay faster
        swap_pricer: Pricer for the forward swap rate
    """

    def __init__(
        self,
        cut_off_strike: Optional[float] = None,
        mu: Optional[float] = None,
        swap_pricer: Optional[DiscountingSwapProductPricer] = None
    ):
        self.cut_off_strike = settings.cms_cut_off_strike if cut_off_strike is None else cut_off_strike
        self.mu = settings.cms_mu if mu is None else mu
        if self.mu <= 0.0:
            raise ValueError(f"mu must be positive, got {self.mu}")
        self.swap_pricer = swap_pricer or DiscountingSwapProductPricer()

    # ------------------------------------------------------------------
    # Inputs

    def _volatilities(
        self,
        period: CmsPeriod,
        market: MarketState,
        volatilities: Optional[SabrSwaptionVolatilities]
    ) -> SabrSwaptionVolatilities:
        if volatilities is None:
            volatilities = market.swaption_volatility(period.index.name)
        return require_sabr(volatilities)

    def _is_fixed(self, period: CmsPeriod, market: MarketState) -> bool:
        return market.is_fixed(period.index.name, period.fixing_date)

    def _annuity_ratio(self, period: CmsPeriod) -> _AnnuityRatio:
        index = period.index
        conv = index.fixed_leg
        n = int(round(index.tenor_years * conv.payment_frequency))
        delta = year_fraction(index.effective_date(period.fixing_date), period.payment_date, conv.day_count)
        return _AnnuityRatio(1.0 / conv.payment_frequency, n, delta)

    # ------------------------------------------------------------------
    # Replication

    def _integrate(self, fn, lower: float, upper: float) -> float:
        points = [self.cut_off_strike] if lower < self.cut_off_strike < upper else None
        value, _ = quad(
            fn, lower, upper, points=points, limit=INTEGRATION_LIMIT,
            epsabs=INTEGRATION_ABS_TOL, epsrel=INTEGRATION_REL_TOL,
        )
        return value

    def _integrate_call(self, integrand, smile: SabrExtrapolationRightFunction, strike: float) -> float:
        """Integral from strike to infinity, extended by doubling until the remainder is negligible."""
        shift = smile.shift
        vol = smile.model.implied_vol_black(smile.forward, smile.forward, smile.expiry, smile.params)
        wide = (smile.forward + shift) * math.exp(6.0 * vol * math.sqrt(smile.expiry)) - shift
        upper = min(max(wide, self.cut_off_strike, 2.0 * strike), 1.0)
        if upper <= strike:
            upper = strike + 1.0
        total = self._integrate(integrand, strike, upper)
        for _ in range(INTEGRATION_MAX_DOUBLINGS):
            remainder = integrand(upper) * upper
            if total == 0.0 or abs(remainder / total) <= INTEGRATION_REL_TOL:
                break
            total += self._integrate(integrand, upper, 2.0 * upper)
            upper *= 2.0
        return total

    def _replication_value(
        self,
        period: CmsPeriod,
        forward: float,
        expiry: float,
        params: SabrParams,
        strike: Optional[float] = None
    ) -> float:
        """
        Undiscounted value of one unit of CMS payoff, in units of the
        payment-date discount factor.
        """
        strike = period.strike if strike is None else strike
        if expiry <= 0.0:
            return _payoff(period.period_type, forward, strike)

        ratio = self._annuity_ratio(period)
        smile = SabrExtrapolationRightFunction(forward, expiry, params, self.cut_off_strike, self.mu)
        factor = 1.0 / ratio.k(forward)
        shift = params.shift

        if period.period_type == CmsPeriodType.FLOORLET:
            def put_integrand(x: float) -> float:
                _, dk, d2k = ratio.derivatives(x)
                return (d2k * (strike - x) - 2.0 * dk) * smile.price(x, PutCall.PUT)

            integral = self._integrate(put_integrand, -shift, strike) if strike > -shift else 0.0
            return factor * (ratio.k(strike) * smile.price(strike, PutCall.PUT) + integral)

        call_strike = -shift if period.period_type == CmsPeriodType.COUPON else strike

        def call_integrand(x: float) -> float:
            _, dk, d2k = ratio.derivatives(x)
            return (d2k * (x - call_strike) + 2.0 * dk) * smile.price(x, PutCall.CALL)

        integral = self._integrate_call(call_integrand, smile, call_strike)
        value = factor * (ratio.k(call_strike) * smile.price(call_strike, PutCall.CALL) + integral)
        if period.period_type == CmsPeriodType.COUPON:
            value -= shift
        return value

    def _market_inputs(
        self,
        period: CmsPeriod,
        market: MarketState,
        volatilities: SabrSwaptionVolatilities
    ) -> Tuple[float, float, float, SabrParams]:
        forward = self.swap_pricer.forward_swap_rate(period.index, period.fixing_date, market)
        expiry = volatilities.relative_time(period.fixing_date)
        tenor = period.index.tenor_years
        return forward, expiry, tenor, volatilities.parameters(expiry, tenor)

    # ------------------------------------------------------------------
    # Measures

    def present_value(
        self,
        period: CmsPeriod,
        market: MarketState,
        volatilities: Optional[SabrSwaptionVolatilities] = None
    ) -> CurrencyAmount:
        """
        Present value of a CMS period.

        Periods paying before the valuation date are worth zero; periods
        whose fixing is observed pay the fixed payoff.

        Raises:
            ModelMismatchError: If the volatilities are not SABR
            ValueError: If a past fixing is missing
        """
        if period.payment_date < market.valuation_date:
            return CurrencyAmount.zero(period.currency)
        amount = period.notional * period.year_fraction
        df = market.discount_factor(period.currency, period.payment_date)
        if self._is_fixed(period, market):
            rate = market.fixing(period.index.name, period.fixing_date)
            return CurrencyAmount(period.currency, amount * period.payoff(rate) * df)
        vols = self._volatilities(period, market, volatilities)
        forward, expiry, _, params = self._market_inputs(period, market, vols)
        value = self._replication_value(period, forward, expiry, params)
        logger.debug("CMS %s fixing %s: forward %.6f, value %.8f",
                     period.period_type.value, period.fixing_date, forward, value)
        return CurrencyAmount(period.currency, amount * value * df)

    def present_value_sensitivity(
        self,
        period: CmsPeriod,
        market: MarketState,
        volatilities: Optional[SabrSwaptionVolatilities] = None
    ) -> MutablePointSensitivities:
        """Sensitivity to the discount curve and, through the forward swap rate, the forward curve."""
        result = MutablePointSensitivities()
        if period.payment_date < market.valuation_date:
            return result
        amount = period.notional * period.year_fraction
        df_point = market.discount_factor_point_sensitivity(period.currency, period.payment_date)
        if self._is_fixed(period, market):
            rate = market.fixing(period.index.name, period.fixing_date)
            return result.add(df_point.multiplied_by(amount * period.payoff(rate)))

        vols = self._volatilities(period, market, volatilities)
        forward, expiry, _, params = self._market_inputs(period, market, vols)
        df = market.discount_factor(period.currency, period.payment_date)
        value = self._replication_value(period, forward, expiry, params)
        value_up = self._replication_value(period, forward + FORWARD_STEP, expiry, params)
        value_down = self._replication_value(period, forward - FORWARD_STEP, expiry, params)
        dvalue_dforward = (value_up - value_down) / (2.0 * FORWARD_STEP)

        result.add(df_point.multiplied_by(amount * value))
        forward_sensitivity = self.swap_pricer.forward_swap_rate_sensitivity(
            period.index, period.fixing_date, market
        )
        result.add(forward_sensitivity.multiplied_by(amount * df * dvalue_dforward))
        return result

    def present_value_sensitivity_sabr_parameter(
        self,
        period: CmsPeriod,
        market: MarketState,
        volatilities: Optional[SabrSwaptionVolatilities] = None
    ) -> MutablePointSensitivities:
        """One SwaptionSabrSensitivity per SABR parameter; empty once fixed or paid."""
        result = MutablePointSensitivities()
        if period.payment_date < market.valuation_date or self._is_fixed(period, market):
            return result
        vols = self._volatilities(period, market, volatilities)
        forward, expiry, tenor, params = self._market_inputs(period, market, vols)
        scale = period.notional * period.year_fraction * market.discount_factor(period.currency, period.payment_date)
        for parameter in SabrParameterType:
            up, down = parameter_bump(params, parameter)
            value_up = self._replication_value(period, forward, expiry, params.with_value(parameter, up))
            value_down = self._replication_value(period, forward, expiry, params.with_value(parameter, down))
            result.add(SwaptionSabrSensitivity(
                convention=vols.convention,
                expiry=expiry,
                tenor=tenor,
                sensitivity_type=parameter,
                currency=period.currency,
                sensitivity=scale * (value_up - value_down) / (up - down),
            ))
        return result

    def present_value_sensitivity_strike(
        self,
        period: CmsPeriod,
        market: MarketState,
        volatilities: Optional[SabrSwaptionVolatilities] = None
    ) -> float:
        """d PV / d strike; zero for coupons."""
        if period.period_type == CmsPeriodType.COUPON or period.payment_date < market.valuation_date:
            return 0.0
        scale = period.notional * period.year_fraction * market.discount_factor(period.currency, period.payment_date)
        if self._is_fixed(period, market):
            rate = market.fixing(period.index.name, period.fixing_date)
            if period.period_type == CmsPeriodType.CAPLET:
                return -scale if rate > period.strike else 0.0
            return scale if period.strike > rate else 0.0
        vols = self._volatilities(period, market, volatilities)
        forward, expiry, _, params = self._market_inputs(period, market, vols)
        value_up = self._replication_value(period, forward, expiry, params, period.strike + STRIKE_STEP)
        value_down = self._replication_value(period, forward, expiry, params, period.strike - STRIKE_STEP)
        return scale * (value_up - value_down) / (2.0 * STRIKE_STEP)

    def current_cash(
        self,
        period: CmsPeriod,
        market: MarketState,
        volatilities: Optional[SabrSwaptionVolatilities] = None
    ) -> CurrencyAmount:
        """The period amount when it pays on the valuation date, otherwise zero."""
        if period.payment_date != market.valuation_date:
            return CurrencyAmount.zero(period.currency)
        return self.present_value(period, market, volatilities)

    def explain_present_value(
        self,
        period: CmsPeriod,
        market: MarketState,
        builder: ExplainMapBuilder,
        volatilities: Optional[SabrSwaptionVolatilities] = None
    ) -> None:
        builder.put(ExplainKey.ENTRY_TYPE, _ENTRY_TYPES[period.period_type])
        builder.put(ExplainKey.PAYMENT_DATE, period.payment_date)
        builder.put(ExplainKey.START_DATE, period.start_date)
        builder.put(ExplainKey.END_DATE, period.end_date)
        builder.put(ExplainKey.FIXING_DATE, period.fixing_date)
        builder.put(ExplainKey.ACCRUAL_YEAR_FRACTION, period.year_fraction)
        builder.put(ExplainKey.NOTIONAL, CurrencyAmount(period.currency, period.notional))
        builder.put(ExplainKey.INDEX, period.index.name)
        if period.strike is not None:
            builder.put(ExplainKey.STRIKE_VALUE, period.strike)
        if period.payment_date < market.valuation_date:
            builder.put(ExplainKey.COMPLETED, True)
            builder.put(ExplainKey.PRESENT_VALUE, CurrencyAmount.zero(period.currency))
            return
        builder.put(ExplainKey.DISCOUNT_FACTOR, market.discount_factor(period.currency, period.payment_date))
        if self._is_fixed(period, market):
            builder.put(ExplainKey.OBSERVED_RATE, market.fixing(period.index.name, period.fixing_date))
        else:
            builder.put(ExplainKey.FORWARD_RATE,
                        self.swap_pricer.forward_swap_rate(period.index, period.fixing_date, market))
        builder.put(ExplainKey.PRESENT_VALUE, self.present_value(period, market, volatilities))


def _payoff(period_type: CmsPeriodType, rate: float, strike: Optional[float]) -> float:
    if period_type == CmsPeriodType.CAPLET:
        return max(rate - strike, 0.0)
    if period_type == CmsPeriodType.FLOORLET:
        return max(strike - rate, 0.0)
    return rate


class SabrExtrapolationReplicationCmsLegPricer:
    """Prices a CMS leg as the sum of its periods."""

    def __init__(self, period_pricer: Optional[SabrExtrapolationReplicationCmsPeriodPricer] = None):
        self.period_pricer = period_pricer or SabrExtrapolationReplicationCmsPeriodPricer()

    def present_value(self, leg: CmsLeg, market: MarketState, volatilities=None) -> CurrencyAmount:
        total = CurrencyAmount.zero(leg.currency)
        for period in leg.periods:
            total = total.plus(self.period_pricer.present_value(period, market, volatilities))
        return total

    def present_value_sensitivity(self, leg: CmsLeg, market: MarketState, volatilities=None) -> MutablePointSensitivities:
        result = MutablePointSensitivities()
        for period in leg.periods:
            result.add(self.period_pricer.present_value_sensitivity(period, market, volatilities))
        return result

    def present_value_sensitivity_sabr_parameter(
        self,
        leg: CmsLeg,
        market: MarketState,
        volatilities=None
    ) -> MutablePointSensitivities:
        result = MutablePointSensitivities()
        for period in leg.periods:
            result.add(self.period_pricer.present_value_sensitivity_sabr_parameter(period, market, volatilities))
        return result

    def present_value_sensitivity_strike(self, leg: CmsLeg, market: MarketState, volatilities=None) -> float:
        return sum(
            self.period_pricer.present_value_sensitivity_strike(p, market, volatilities) for p in leg.periods
        )

    def current_cash(self, leg: CmsLeg, market: MarketState, volatilities=None) -> CurrencyAmount:
        total = CurrencyAmount.zero(leg.currency)
        for period in leg.periods:
            total = total.plus(self.period_pricer.current_cash(period, market, volatilities))
        return total

    def explain_present_value(self, leg: CmsLeg, market: MarketState, volatilities=None) -> ExplainMap:
        builder = ExplainMapBuilder()
        builder.put(ExplainKey.ENTRY_TYPE, "CmsLeg")
        builder.put(ExplainKey.PAY_RECEIVE, leg.pay_receive.value)
        for i, period in enumerate(leg.periods):
            def explain_period(child, i=i, period=period):
                child.put(ExplainKey.ENTRY_INDEX, i)
                self.period_pricer.explain_present_value(period, market, child, volatilities)
            builder.add_list_entry(ExplainKey.PAYMENT_PERIODS, explain_period)
        builder.put(ExplainKey.PRESENT_VALUE, self.present_value(leg, market, volatilities))
        return builder.build()


class SabrExtrapolationReplicationCmsProductPricer:
    """
    Prices a CMS product: the CMS leg plus the optional pay leg.

    Every measure is the exact sum of the leg measures.
    """

    def __init__(
        self,
        cms_leg_pricer: Optional[SabrExtrapolationReplicationCmsLegPricer] = None,
        swap_leg_pricer: Optional[DiscountingSwapLegPricer] = None
    ):
        self.cms_leg_pricer = cms_leg_pricer or SabrExtrapolationReplicationCmsLegPricer()
        self.swap_leg_pricer = swap_leg_pricer or DiscountingSwapLegPricer()

    def present_value(self, cms: Cms, market: MarketState, volatilities=None) -> MultiCurrencyAmount:
        pv = MultiCurrencyAmount.of(self.cms_leg_pricer.present_value(cms.cms_leg, market, volatilities))
        if cms.pay_leg is not None:
            pv = pv.plus(self.swap_leg_pricer.present_value(cms.pay_leg, market))
        return pv

    def present_value_sensitivity(self, cms: Cms, market: MarketState, volatilities=None) -> MutablePointSensitivities:
        result = self.cms_leg_pricer.present_value_sensitivity(cms.cms_leg, market, volatilities)
        if cms.pay_leg is not None:
            result.add(self.swap_leg_pricer.present_value_sensitivity(cms.pay_leg, market))
        return result

    def present_value_sensitivity_sabr_parameter(
        self,
        cms: Cms,
        market: MarketState,
        volatilities=None
    ) -> MutablePointSensitivities:
        return self.cms_leg_pricer.present_value_sensitivity_sabr_parameter(cms.cms_leg, market, volatilities)

    def present_value_sensitivity_strike(self, cms: Cms, market: MarketState, volatilities=None) -> float:
        return self.cms_leg_pricer.present_value_sensitivity_strike(cms.cms_leg, market, volatilities)

    def current_cash(self, cms: Cms, market: MarketState, volatilities=None) -> MultiCurrencyAmount:
        cash = MultiCurrencyAmount.of(self.cms_leg_pricer.current_cash(cms.cms_leg, market, volatilities))
        if cms.pay_leg is not None:
            cash = cash.plus(self.swap_leg_pricer.current_cash(cms.pay_leg, market))
        return cash

    def currency_exposure(self, cms: Cms, market: MarketState, volatilities=None) -> MultiCurrencyAmount:
        return self.present_value(cms, market, volatilities)

    def explain_present_value(self, cms: Cms, market: MarketState, volatilities=None) -> ExplainMap:
        legs: List[ExplainMap] = [self.cms_leg_pricer.explain_present_value(cms.cms_leg, market, volatilities)]
        if cms.pay_leg is not None:
            legs.append(self.swap_leg_pricer.explain_present_value(cms.pay_leg, market))
        builder = ExplainMapBuilder()
        builder.put(ExplainKey.ENTRY_TYPE, "CmsSwap")
        builder.add_list_entries(ExplainKey.LEGS, legs)
        builder.put(ExplainKey.PRESENT_VALUE, self.present_value(cms, market, volatilities))
        return builder.build()


__all__ = [
    "SabrExtrapolationRightFunction",
    "SabrExtrapolationReplicationCmsPeriodPricer",
    "SabrExtrapolationReplicationCmsLegPricer",
    "SabrExtrapolationReplicationCmsProductPricer",
]
