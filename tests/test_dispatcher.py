"""
Tests for measure dispatch across product types.
"""

from datetime import date

import pandas as pd
import pytest

from rateskit.config import settings
from rateskit.conventions import BuySell, IsdaYieldCurveConvention, PayReceive
from rateskit.currency import CurrencyAmount, FxMatrix, MultiCurrencyAmount
from rateskit.curves import CurveGroupEntry, IsdaYieldCurveParRates, calibrate_curve_group, create_flat_curve
from rateskit.curves.curve import CreditCurve
from rateskit.exceptions import InvalidNameError, PricingError
from rateskit.explain import ExplainKey
from rateskit.indices import EUR_EURIBOR_6M, USD_LIBOR_3M
from rateskit.market_state import MarketState
from rateskit.measures import StandardMeasures
from rateskit.pricers.dispatcher import CalculationRunner, ProductPricers
from rateskit.products.cds import Cds
from rateskit.products.swap import Swap, SwapLeg
from rateskit.sensitivity import ONE_BP

VAL = date(2024, 1, 15)
NOTIONAL = 1_000_000.0


@pytest.fixture
def market():
    eur = create_flat_curve(VAL, 0.03, currency="EUR")
    usd = create_flat_curve(VAL, 0.04, currency="USD")
    return MarketState(
        valuation_date=VAL,
        discount_curves={"EUR": eur, "USD": usd},
        forward_curves={EUR_EURIBOR_6M.name: eur},
        credit_curves={"ACME": CreditCurve(VAL, [1.0, 3.0, 5.0, 7.0], [0.02] * 4, name="ACME-USD")},
        recovery_rates={"ACME": 0.4},
        fx_matrix=FxMatrix.of("EUR", "USD", 1.1),
    )


@pytest.fixture
def swap():
    start, end = date(2024, 1, 17), date(2029, 1, 17)
    return Swap.of(
        SwapLeg.fixed(start, end, NOTIONAL, 0.035, PayReceive.RECEIVE, "EUR"),
        SwapLeg.ibor(start, end, NOTIONAL, EUR_EURIBOR_6M, PayReceive.PAY),
    )


@pytest.fixture
def cds():
    return Cds.standard(BuySell.BUY, VAL, "5Y", 10_000_000.0, 0.01, reference="ACME")


class TestDispatch:
    """Tests for routing products and measures to pricers."""

    def test_unsupported_product(self, market):
        with pytest.raises(PricingError) as exc:
            CalculationRunner(market).calculate_one("not a product", StandardMeasures.PRESENT_VALUE)
        assert exc.value.step == "Dispatch"

    def test_unsupported_measure(self, market, swap):
        with pytest.raises(PricingError) as exc:
            CalculationRunner(market).calculate_one(swap, StandardMeasures.FORWARD_FX_RATE)
        assert exc.value.step == "ForwardFxRate"

    def test_swap_measure_rejected_for_cds(self, market, cds):
        with pytest.raises(PricingError):
            CalculationRunner(market).calculate_one(cds, StandardMeasures.PAR_RATE)

    def test_measure_names(self, market, swap):
        runner = CalculationRunner(market)
        assert runner.calculate_one(swap, "ParRate") == runner.calculate_one(swap, StandardMeasures.PAR_RATE)
        with pytest.raises(KeyError):
            runner.calculate_one(swap, "NotAMeasure")
        with pytest.raises(InvalidNameError):
            runner.calculate_one(swap, "Present Value")

    def test_calculate_all(self, market, swap, cds):
        results = CalculationRunner(market).calculate_all([swap, cds], ["PresentValue"])
        assert [r.product_type for r in results] == ["Swap", "Cds"]

    def test_pricers_by_type(self, swap, cds):
        pricers = ProductPricers()
        assert pricers.for_product(swap) is pricers.swap_pricer
        assert pricers.for_product(cds) is pricers.cds_pricer


class TestSwapMeasures:
    """Tests for measures computed on a swap."""

    def test_calculate(self, market, swap):
        measures = [
            StandardMeasures.PRESENT_VALUE,
            StandardMeasures.PAR_RATE,
            StandardMeasures.CASH_FLOWS,
            StandardMeasures.LEG_PRESENT_VALUE,
            StandardMeasures.LEG_INITIAL_NOTIONAL,
            StandardMeasures.EXPLAIN_PRESENT_VALUE,
        ]
        result = CalculationRunner(market).calculate(swap, measures)
        assert result.product_type == "Swap"
        pv = result.get(StandardMeasures.PRESENT_VALUE)
        assert isinstance(pv, MultiCurrencyAmount)
        assert pv.currencies == ["EUR"]
        legs = result.get("LegPresentValue")
        assert sum(leg.amount for leg in legs) == pytest.approx(pv.get_amount("EUR").amount)
        assert result.get("LegInitialNotional") == [CurrencyAmount("EUR", NOTIONAL)] * 2
        assert isinstance(result.get("CashFlows"), pd.DataFrame)
        assert result.get("ExplainPresentValue").get(ExplainKey.ENTRY_TYPE) == "Swap"
        assert set(result.to_dict()) == {"product_type"} | {m.name for m in measures}

    def test_pv01_calibrated(self, market, swap):
        runner = CalculationRunner(market)
        bucketed = runner.calculate_one(swap, StandardMeasures.PV01_CALIBRATED_BUCKETED)
        total = runner.calculate_one(swap, StandardMeasures.PV01_CALIBRATED_SUM)
        assert total == bucketed.total()
        curve = market.discount_curve("EUR")
        up = CalculationRunner(market.with_curve(curve.name, curve.bump_parallel(1.0))).calculate_one(
            swap, StandardMeasures.PRESENT_VALUE
        ).get_amount("EUR").amount
        down = CalculationRunner(market.with_curve(curve.name, curve.bump_parallel(-1.0))).calculate_one(
            swap, StandardMeasures.PRESENT_VALUE
        ).get_amount("EUR").amount
        assert total.get_amount("EUR").amount == pytest.approx((up - down) / 2.0, rel=1e-4)

    def test_semi_parallel_gamma(self, market, swap):
        runner = CalculationRunner(market)
        gamma = runner.calculate_one(swap, StandardMeasures.PV01_SEMI_PARALLEL_GAMMA_BUCKETED)
        curve = market.discount_curve("EUR")
        sens = gamma.get_sensitivity(curve.name, "EUR")
        assert sens.parameter_labels == curve.labels

        i = 3
        rates = curve.get_node_rates()

        def pv(m):
            return runner.pricers.swap_pricer.present_value(swap, m).get_amount("EUR").amount

        up = pv(market.with_curve(curve.name, curve.with_parameter(i, rates[i] + ONE_BP)))
        down = pv(market.with_curve(curve.name, curve.with_parameter(i, rates[i] - ONE_BP)))
        assert sens.sensitivity[i] == pytest.approx(up + down - 2.0 * pv(market), abs=1e-9)

    def test_market_quote_pv01(self):
        par_rates = IsdaYieldCurveParRates.of(
            "USD-DSC",
            [("MoneyMarket", "3M", 0.0535), ("MoneyMarket", "1Y", 0.050), ("Swap", "2Y", 0.046),
             ("Swap", "5Y", 0.040), ("Swap", "10Y", 0.0395)],
            IsdaYieldCurveConvention.usd_isda(),
        )
        entry = CurveGroupEntry(par_rates, {"USD"}, {USD_LIBOR_3M.name})
        results = calibrate_curve_group(VAL, [entry])
        market = MarketState.from_curve_group(VAL, [entry], results)
        start, end = date(2024, 1, 17), date(2029, 1, 17)
        swap = Swap.of(
            SwapLeg.fixed(start, end, NOTIONAL, 0.04, PayReceive.RECEIVE, "USD"),
            SwapLeg.ibor(start, end, NOTIONAL, USD_LIBOR_3M, PayReceive.PAY),
        )
        runner = CalculationRunner(market, calibrations=results)
        calibrated = runner.calculate_one(swap, StandardMeasures.PV01_CALIBRATED_BUCKETED)
        quotes = runner.calculate_one(swap, StandardMeasures.PV01_MARKET_QUOTE_BUCKETED)
        sens = quotes.get_sensitivity("USD-DSC", "USD")
        assert sens.parameter_labels == results["USD-DSC"].instrument_labels
        expected = results["USD-DSC"].market_quote_sensitivity(calibrated.get_sensitivity("USD-DSC", "USD"))
        assert sens == expected

        total = runner.calculate_one(swap, StandardMeasures.PV01_MARKET_QUOTE_SUM).get_amount("USD").amount
        assert total < 0
        assert total * calibrated.total().get_amount("USD").amount > 0

        # Without calibrations the node sensitivities are reported unchanged
        plain = CalculationRunner(market).calculate_one(swap, StandardMeasures.PV01_MARKET_QUOTE_BUCKETED)
        assert plain == calibrated


class TestCdsMeasures:
    """Tests for measures computed on a CDS."""

    def test_cds_measures(self, market, cds):
        runner = CalculationRunner(market)
        result = runner.calculate(cds, ["PresentValue", "ParSpread", "AccruedInterest", "CurrentCash"])
        assert result.product_type == "Cds"
        assert result.get("PresentValue").currencies == ["USD"]
        assert abs(result.get("ParSpread") - 0.012) < 5e-4
        accrued = result.get("AccruedInterest").get_amount("USD").amount
        assert accrued == pytest.approx(-10_000_000.0 * 0.01 * 27 / 360.0)
        assert result.get("CurrentCash").get_amount_or_zero("USD").amount == 0.0

    def test_pv01_includes_credit_curve(self, market, cds):
        bucketed = CalculationRunner(market).calculate_one(cds, StandardMeasures.PV01_CALIBRATED_BUCKETED)
        assert bucketed.find_sensitivity("ACME-USD", "USD") is not None
        assert bucketed.find_sensitivity("USD-DSC", "USD") is not None

    def test_semi_parallel_gamma_covers_both_curves(self, market, cds):
        gamma = CalculationRunner(market).calculate_one(cds, StandardMeasures.PV01_SEMI_PARALLEL_GAMMA_BUCKETED)
        assert gamma.find_sensitivity("ACME-USD", "USD") is not None
        assert gamma.find_sensitivity("USD-DSC", "USD") is not None


class TestReportingCurrency:
    """Tests for conversion of results to a reporting currency."""

    def test_convertible_measures(self, market, cds):
        native = CalculationRunner(market).calculate_one(cds, StandardMeasures.PRESENT_VALUE)
        runner = CalculationRunner(market, reporting_currency="EUR")
        converted = runner.calculate_one(cds, StandardMeasures.PRESENT_VALUE)
        assert converted.currency == "EUR"
        assert converted.amount == pytest.approx(native.get_amount("USD").amount / 1.1)

        pv01 = runner.calculate_one(cds, StandardMeasures.PV01_CALIBRATED_BUCKETED)
        assert all(s.currency == "EUR" for s in pv01)

    def test_non_convertible_measures(self, market, cds):
        runner = CalculationRunner(market, reporting_currency="EUR")
        multi = runner.calculate_one(cds, StandardMeasures.PRESENT_VALUE_MULTI_CCY)
        assert multi.currencies == ["USD"]
        exposure = runner.calculate_one(cds, StandardMeasures.CURRENCY_EXPOSURE)
        assert exposure.currencies == ["USD"]

    def test_default_from_settings(self, market, cds, monkeypatch):
        monkeypatch.setattr(settings, "reporting_currency", "EUR")
        runner = CalculationRunner(market)
        assert runner.reporting_currency == "EUR"
        assert runner.calculate_one(cds, StandardMeasures.PRESENT_VALUE).currency == "EUR"
