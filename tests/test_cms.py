"""
Tests for CMS pricing by replication.
"""

from datetime import date

import numpy as np
import pytest

from rateskit.conventions import PayReceive, PutCall
from rateskit.curves import create_flat_curve
from rateskit.exceptions import ModelMismatchError
from rateskit.explain import ExplainKey
from rateskit.indices import EUR_EURIBOR_1100_10Y, EUR_EURIBOR_6M
from rateskit.market_state import MarketState, fixing_series
from rateskit.pricers.cms import (
    SabrExtrapolationReplicationCmsLegPricer,
    SabrExtrapolationReplicationCmsPeriodPricer,
    SabrExtrapolationReplicationCmsProductPricer,
    SabrExtrapolationRightFunction,
)
from rateskit.pricers.swaps import DiscountingSwapLegPricer, DiscountingSwapProductPricer
from rateskit.products.cms import Cms, CmsLeg, CmsPeriodType
from rateskit.products.swap import SwapLeg
from rateskit.vol import SabrParams, SabrSwaptionVolatilities
from rateskit.vol.capfloor_vols import NormalIborCapFloorVolatilities

VAL = date(2024, 1, 15)
NOTIONAL = 1_000_000.0
START = date(2025, 1, 20)
END = date(2027, 1, 20)
PARAMS = SabrParams(alpha=0.04, beta=0.5, rho=-0.2, nu=0.3, shift=0.01)


@pytest.fixture
def surface():
    return SabrSwaptionVolatilities.flat(
        "EUR-SABR", EUR_EURIBOR_1100_10Y.name, "EUR", VAL, PARAMS,
        expiries=(1.0, 5.0), tenors=(10.0,),
    )


@pytest.fixture
def market(surface):
    curve = create_flat_curve(VAL, 0.03, currency="EUR")
    base = MarketState.from_curves(VAL, {"EUR": curve}, {EUR_EURIBOR_6M.name: curve})
    return base.with_swaption_volatilities(EUR_EURIBOR_1100_10Y.name, surface)


def cms_leg(**kwargs):
    return CmsLeg.of(EUR_EURIBOR_1100_10Y, START, END, NOTIONAL, PayReceive.RECEIVE, **kwargs)


class TestCmsProducts:
    """Tests for CMS leg construction."""

    def test_leg_schedule(self):
        leg = cms_leg()
        assert len(leg.periods) == 2
        assert leg.periods[0].fixing_date == date(2025, 1, 16)
        assert leg.periods[0].period_type == CmsPeriodType.COUPON
        assert leg.currency == "EUR"

    def test_cap_and_floor(self):
        assert cms_leg(cap=0.04).periods[0].period_type == CmsPeriodType.CAPLET
        assert cms_leg(floor=0.01).periods[1].strike == 0.01
        with pytest.raises(ValueError):
            cms_leg(cap=0.04, floor=0.01)

    def test_pay_leg_currency(self):
        usd = SwapLeg.fixed(START, END, NOTIONAL, 0.03, PayReceive.PAY, "USD")
        with pytest.raises(ValueError):
            Cms.of(cms_leg(), usd)

    def test_underlying_swap(self, market):
        period = cms_leg().periods[0]
        pricer = DiscountingSwapProductPricer()
        forward = pricer.forward_swap_rate(period.index, period.fixing_date, market)
        assert pricer.par_rate(period.underlying_swap(), market) == forward

    def test_payoffs(self):
        caplet = cms_leg(cap=0.03).periods[0]
        assert caplet.payoff(0.035) == pytest.approx(0.005)
        assert caplet.payoff(0.025) == 0.0
        floorlet = cms_leg(floor=0.03).periods[0]
        assert floorlet.payoff(0.025) == pytest.approx(0.005)


class TestSabrExtrapolation:
    """Tests for the right-tail extrapolation of SABR prices."""

    def test_call_prices_decrease_with_strike(self):
        smile = SabrExtrapolationRightFunction(0.03, 2.0, PARAMS, 0.10, 2.5)
        assert smile.price(0.05, PutCall.CALL) > smile.price(0.06, PutCall.CALL) > 0

    def test_tail_matches_price_at_cut_off(self):
        smile = SabrExtrapolationRightFunction(0.03, 2.0, PARAMS, 0.10, 2.5)
        sabr = smile.price(0.10, PutCall.CALL)
        kc = 0.10 + PARAMS.shift
        tail = kc ** -2.5 * np.exp(smile.a + smile.b / kc + smile.c / kc ** 2)
        assert abs(tail - sabr) < 1e-10 * sabr

    def test_tail_decays(self):
        smile = SabrExtrapolationRightFunction(0.03, 2.0, PARAMS, 0.10, 2.5)
        assert smile.price(0.5, PutCall.CALL) < smile.price(0.2, PutCall.CALL) < smile.price(0.12, PutCall.CALL)

    def test_put_from_parity_in_tail(self):
        smile = SabrExtrapolationRightFunction(0.03, 2.0, PARAMS, 0.10, 2.5)
        call = smile.price(0.2, PutCall.CALL)
        put = smile.price(0.2, PutCall.PUT)
        assert abs(call - put - (0.03 - 0.2)) < 1e-14


class TestCmsPeriodPricer:
    """Tests for CMS coupon, caplet and floorlet values."""

    def test_coupon_convexity_adjustment(self, market):
        pricer = SabrExtrapolationReplicationCmsPeriodPricer()
        period = cms_leg().periods[0]
        forward = DiscountingSwapProductPricer().forward_swap_rate(period.index, period.fixing_date, market)
        df = market.discount_factor("EUR", period.payment_date)
        plain = NOTIONAL * period.year_fraction * forward * df
        pv = pricer.present_value(period, market).amount
        assert plain < pv < plain * 1.05

    def test_caplet_decreasing_in_strike(self, market):
        pricer = SabrExtrapolationReplicationCmsPeriodPricer()
        low = pricer.present_value(cms_leg(cap=0.02).periods[1], market).amount
        high = pricer.present_value(cms_leg(cap=0.04).periods[1], market).amount
        assert low > high > 0

    def test_floorlet_positive(self, market):
        pricer = SabrExtrapolationReplicationCmsPeriodPricer()
        assert pricer.present_value(cms_leg(floor=0.03).periods[0], market).amount > 0

    def test_strike_sensitivity_matches_bump(self, market):
        pricer = SabrExtrapolationReplicationCmsPeriodPricer()
        period = cms_leg(cap=0.035).periods[0]
        eps = 1e-4
        up = pricer.present_value(cms_leg(cap=0.035 + eps).periods[0], market).amount
        down = pricer.present_value(cms_leg(cap=0.035 - eps).periods[0], market).amount
        sens = pricer.present_value_sensitivity_strike(period, market)
        assert sens < 0
        assert sens == pytest.approx((up - down) / (2 * eps), rel=1e-3)
        assert pricer.present_value_sensitivity_strike(cms_leg().periods[0], market) == 0.0

    def test_curve_sensitivity_matches_parallel_bump(self, market):
        pricer = SabrExtrapolationReplicationCmsPeriodPricer()
        period = cms_leg(cap=0.03).periods[0]
        points = pricer.present_value_sensitivity(period, market).build()
        total = market.parameter_sensitivity(points).total().get_amount("EUR").amount
        curve = market.discount_curve("EUR")
        up = pricer.present_value(period, market.with_curve(curve.name, curve.bump_parallel(1.0))).amount
        down = pricer.present_value(period, market.with_curve(curve.name, curve.bump_parallel(-1.0))).amount
        assert total == pytest.approx((up - down) / 2e-4, rel=2e-3)

    def test_sabr_sensitivity(self, market, surface):
        pricer = SabrExtrapolationReplicationCmsPeriodPricer()
        period = cms_leg(cap=0.035).periods[0]
        points = pricer.present_value_sensitivity_sabr_parameter(period, market).build()
        assert points.size() == 4
        mapped = surface.parameter_sensitivity(points)
        alpha = mapped.get_sensitivity("EUR-SABR-ALPHA", "EUR")
        assert alpha.sensitivity.sum() > 0

    def test_explicit_volatilities_win(self, market, surface):
        pricer = SabrExtrapolationReplicationCmsPeriodPricer()
        period = cms_leg().periods[0]
        bare = MarketState.from_curves(VAL, market.discount_curves, market.forward_curves)
        with pytest.raises(ValueError):
            pricer.present_value(period, bare)
        assert pricer.present_value(period, bare, surface) == pricer.present_value(period, market)

    def test_non_sabr_volatilities(self, market):
        normal = NormalIborCapFloorVolatilities("N", "EUR-EURIBOR-6M", "EUR", VAL, [1.0], [0.0], [[0.008]])
        pricer = SabrExtrapolationReplicationCmsPeriodPricer()
        with pytest.raises(ModelMismatchError):
            pricer.present_value(cms_leg().periods[0], market, normal)

    def test_invalid_mu(self):
        with pytest.raises(ValueError):
            SabrExtrapolationReplicationCmsPeriodPricer(mu=0.0)


class TestCmsProductPricer:
    """Tests for leg and product aggregation."""

    @pytest.fixture
    def product(self):
        pay = SwapLeg.fixed(START, END, NOTIONAL, 0.03, PayReceive.PAY, "EUR")
        return Cms.of(cms_leg(), pay)

    def test_present_value_is_sum_of_legs(self, market, product):
        pricer = SabrExtrapolationReplicationCmsProductPricer()
        cms_pv = SabrExtrapolationReplicationCmsLegPricer().present_value(product.cms_leg, market)
        pay_pv = DiscountingSwapLegPricer().present_value(product.pay_leg, market)
        pv = pricer.present_value(product, market).get_amount("EUR").amount
        assert pv == cms_pv.amount + pay_pv.amount

    def test_sensitivity_is_sum_of_legs(self, market, product):
        pricer = SabrExtrapolationReplicationCmsProductPricer()
        total = pricer.present_value_sensitivity(product, market).build().normalized()
        cms_part = SabrExtrapolationReplicationCmsLegPricer().present_value_sensitivity(product.cms_leg, market)
        pay_part = DiscountingSwapLegPricer().present_value_sensitivity(product.pay_leg, market)
        assert total.equal_with_tolerance(cms_part.build().plus(pay_part.build()), 1e-9)

    def test_explain(self, market, product):
        pricer = SabrExtrapolationReplicationCmsProductPricer()
        explain = pricer.explain_present_value(product, market)
        assert explain.get(ExplainKey.ENTRY_TYPE) == "CmsSwap"
        legs = explain.get(ExplainKey.LEGS)
        assert len(legs) == 2
        assert legs[0].get(ExplainKey.ENTRY_TYPE) == "CmsLeg"
        periods = legs[0].get(ExplainKey.PAYMENT_PERIODS)
        assert periods[0].get(ExplainKey.ENTRY_TYPE) == "CmsCouponPeriod"
        assert periods[1].get(ExplainKey.ENTRY_INDEX) == 1
        assert ExplainKey.FORWARD_RATE in periods[0]

        single = pricer.explain_present_value(Cms.of(product.cms_leg), market)
        assert len(single.get(ExplainKey.LEGS)) == 1

    def test_current_cash(self):
        leg = CmsLeg.of(EUR_EURIBOR_1100_10Y, date(2023, 1, 17), date(2025, 1, 17), NOTIONAL, PayReceive.RECEIVE)
        fixings = {EUR_EURIBOR_1100_10Y.name: fixing_series([
            (date(2023, 1, 13), 0.025),
            (date(2024, 1, 15), 0.027),
        ])}
        pay_day = date(2024, 1, 17)
        curve = create_flat_curve(pay_day, 0.03, currency="EUR")
        market = MarketState.from_curves(pay_day, {"EUR": curve}, fixings=fixings)
        pricer = SabrExtrapolationReplicationCmsProductPricer()
        cash = pricer.current_cash(Cms.of(leg), market).get_amount("EUR").amount
        assert cash == pytest.approx(NOTIONAL * leg.periods[0].year_fraction * 0.025)

        pv = pricer.present_value(Cms.of(leg), market).get_amount("EUR").amount
        second = leg.periods[1]
        expected = cash + NOTIONAL * second.year_fraction * 0.027 * market.discount_factor("EUR", second.payment_date)
        assert pv == pytest.approx(expected)

        next_day = market.with_valuation_date(date(2024, 1, 18))
        assert pricer.current_cash(Cms.of(leg), next_day).get_amount_or_zero("EUR").amount == 0.0
