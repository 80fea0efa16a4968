"""
Unit tests for ISDA yield and credit curve calibration.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import date
import numpy as np
import pytest

from rateskit.config import settings
from rateskit.conventions import CdsConvention, IsdaYieldCurveConvention
from rateskit.curves import (
    ArbitrageHandling,
    CdsInstrument,
    CreditCurve,
    CurveGroupEntry,
    IsdaCreditCurveCalibrator,
    IsdaCreditCurveParRates,
    IsdaSwapInstrument,
    IsdaYieldCurveCalibrator,
    IsdaYieldCurveParRates,
    MoneyMarketInstrument,
    bootstrap_from_quotes,
    calibrate_curve_group,
    instrument_from_tag,
)
from rateskit.exceptions import CalibrationError
from rateskit.sensitivity import CurrencyParameterSensitivity

VALUATION = date(2024, 1, 15)

USD_POINTS = [
    ("MoneyMarket", "1M", 0.0530),
    ("MoneyMarket", "3M", 0.0535),
    ("MoneyMarket", "6M", 0.0530),
    ("MoneyMarket", "1Y", 0.0500),
    ("Swap", "2Y", 0.0460),
    ("Swap", "3Y", 0.0430),
    ("Swap", "5Y", 0.0400),
    ("Swap", "7Y", 0.0395),
    ("Swap", "10Y", 0.0395),
]

CDS_POINTS = [("1Y", 0.0050), ("3Y", 0.0070), ("5Y", 0.0090), ("7Y", 0.0100), ("10Y", 0.0110)]


@pytest.fixture(scope="module")
def usd_par_rates():
    return IsdaYieldCurveParRates.of("USD-DSC", USD_POINTS, IsdaYieldCurveConvention.usd_isda())


@pytest.fixture(scope="module")
def usd_result(usd_par_rates):
    p = usd_par_rates
    return IsdaYieldCurveCalibrator().calibrate(VALUATION, p.to_instruments(), p.convention, p.name)


@pytest.fixture(scope="module")
def credit_instruments():
    return [CdsInstrument(tenor=t, quote=q) for t, q in CDS_POINTS]


class TestYieldCurveCalibration:
    """Tests for the ISDA yield curve bootstrap."""

    def test_reprices_inputs(self, usd_result):
        assert usd_result.max_repricing_error < 1e-10
        assert set(usd_result.repricing_errors) == {f"{t}-{n}" for t, n, _ in USD_POINTS}

    def test_curve_layout(self, usd_result):
        curve = usd_result.curve
        assert curve.name == "USD-DSC"
        assert curve.anchor_date == VALUATION
        assert curve.node_count == len(USD_POINTS)
        assert curve.labels == tuple(n for _, n, _ in USD_POINTS)
        assert np.all(np.diff(curve.get_node_times()) > 0)

    def test_money_market_closed_form(self, usd_result):
        convention = IsdaYieldCurveConvention.usd_isda()
        inst = MoneyMarketInstrument(tenor="3M", quote=0.0535)
        spot = convention.spot_date(VALUATION)
        mat = inst.maturity_date(VALUATION, convention)
        tau = inst.accrual_fraction(VALUATION, convention)
        curve = usd_result.curve
        ratio = curve.discount_factor(spot) / curve.discount_factor(mat)
        assert abs(ratio - (1.0 + 0.0535 * tau)) < 1e-13

    def test_jacobian_inverts_par_rate_sensitivity(self, usd_par_rates, usd_result):
        """Chaining dpar/dnode through the Jacobian gives unit quote sensitivities."""
        curve = usd_result.curve
        convention = usd_par_rates.convention
        instruments = usd_par_rates.to_instruments()
        rates = curve.get_node_rates()
        k = 6
        eps = 1e-7
        grad = np.zeros(curve.node_count)
        for j in range(curve.node_count):
            up = curve.with_parameter(j, rates[j] + eps)
            down = curve.with_parameter(j, rates[j] - eps)
            grad[j] = (
                instruments[k].par_rate(up, VALUATION, convention)
                - instruments[k].par_rate(down, VALUATION, convention)
            ) / (2 * eps)
        sens = CurrencyParameterSensitivity(curve.name, "USD", curve.labels, grad)
        quote_sens = usd_result.market_quote_sensitivity(sens)
        expected = np.zeros(curve.node_count)
        expected[k] = 1.0
        np.testing.assert_allclose(quote_sens.sensitivity, expected, atol=1e-6)
        assert quote_sens.parameter_labels == usd_result.instrument_labels

    def test_market_quote_sensitivity_wrong_curve(self, usd_result):
        sens = CurrencyParameterSensitivity("EUR-DSC", "EUR", usd_result.curve.labels,
                                            np.zeros(usd_result.curve.node_count))
        with pytest.raises(ValueError):
            usd_result.market_quote_sensitivity(sens)

    def test_non_increasing_maturities(self):
        instruments = [
            MoneyMarketInstrument(tenor="6M", quote=0.05),
            MoneyMarketInstrument(tenor="3M", quote=0.05),
        ]
        with pytest.raises(CalibrationError) as exc:
            IsdaYieldCurveCalibrator().calibrate(VALUATION, instruments, IsdaYieldCurveConvention.usd_isda())
        assert exc.value.instrument == "MoneyMarket-3M"

    def test_unsupported_instrument(self):
        with pytest.raises(CalibrationError):
            IsdaYieldCurveCalibrator().calibrate(
                VALUATION, [CdsInstrument(tenor="5Y", quote=0.01)], IsdaYieldCurveConvention.usd_isda()
            )

    def test_no_instruments(self):
        with pytest.raises(CalibrationError):
            IsdaYieldCurveCalibrator().calibrate(VALUATION, [], IsdaYieldCurveConvention.usd_isda())

    def test_iteration_bound(self):
        instruments = [IsdaSwapInstrument(tenor="2Y", quote=0.04)]
        calibrator = IsdaYieldCurveCalibrator(max_iterations=1)
        with pytest.raises(CalibrationError) as exc:
            calibrator.calibrate(VALUATION, instruments, IsdaYieldCurveConvention.usd_isda())
        assert exc.value.instrument == "Swap-2Y"

    def test_default_settings(self):
        calibrator = IsdaYieldCurveCalibrator()
        assert calibrator.max_iterations == settings.solver_max_iterations
        assert calibrator.tolerance == settings.solver_tolerance
        assert calibrator.arbitrage_handling == ArbitrageHandling.IGNORE

    @pytest.mark.parametrize("cls", [IsdaYieldCurveCalibrator, IsdaCreditCurveCalibrator])
    def test_explicit_solver_bounds(self, cls):
        calibrator = cls(max_iterations=7, tolerance=1e-14)
        assert calibrator.max_iterations == 7
        assert calibrator.tolerance == 1e-14
        with pytest.raises(ValueError):
            cls(max_iterations=0)
        with pytest.raises(ValueError):
            cls(tolerance=0.0)

    def test_bootstrap_from_quotes(self):
        quotes = [{"instrument_type": t, "tenor": n, "quote": q} for t, n, q in USD_POINTS]
        curve = bootstrap_from_quotes(VALUATION, quotes, name="USD-DSC")
        assert curve.node_count == len(USD_POINTS)


class TestCreditCurveCalibration:
    """Tests for the ISDA credit curve bootstrap."""

    def test_reprices_spreads(self, usd_result, credit_instruments):
        result = IsdaCreditCurveCalibrator(arbitrage_handling=ArbitrageHandling.FAIL).calibrate(
            VALUATION, credit_instruments, usd_result.curve, 0.4, CdsConvention.usd_standard(), "ACME-USD"
        )
        assert isinstance(result.curve, CreditCurve)
        assert result.curve.name == "ACME-USD"
        assert result.max_repricing_error < 1e-9
        assert result.instrument_labels == tuple(f"Cds-{t}" for t, _ in CDS_POINTS)
        assert result.jacobian.shape == (5, 5)

    def test_survival_decreasing(self, usd_result, credit_instruments):
        curve = IsdaCreditCurveCalibrator().calibrate(
            VALUATION, credit_instruments, usd_result.curve, 0.4, CdsConvention.usd_standard()
        ).curve
        probs = [curve.survival_probability(t) for t in (0.5, 1.0, 3.0, 5.0, 10.0)]
        assert all(b < a for a, b in zip(probs, probs[1:]))

    def test_protect_start_changes_curve(self, usd_result, credit_instruments):
        args = (VALUATION, credit_instruments, usd_result.curve, 0.4, CdsConvention.usd_standard())
        with_start = IsdaCreditCurveCalibrator(protect_start=True).calibrate(*args)
        without = IsdaCreditCurveCalibrator(protect_start=False).calibrate(*args)
        assert without.max_repricing_error < 1e-9
        assert not np.allclose(with_start.curve.get_node_rates(), without.curve.get_node_rates(), atol=1e-12)

    def test_negative_forward_hazard_fails(self, usd_result):
        instruments = [CdsInstrument(tenor="1Y", quote=0.0300), CdsInstrument(tenor="3Y", quote=0.0040)]
        calibrator = IsdaCreditCurveCalibrator(arbitrage_handling=ArbitrageHandling.FAIL)
        with pytest.raises(CalibrationError) as exc:
            calibrator.calibrate(VALUATION, instruments, usd_result.curve, 0.4, CdsConvention.usd_standard())
        assert exc.value.instrument == "Cds-3Y"

    def test_negative_forward_hazard_clamped(self, usd_result):
        instruments = [CdsInstrument(tenor="1Y", quote=0.0300), CdsInstrument(tenor="3Y", quote=0.0040)]
        calibrator = IsdaCreditCurveCalibrator(arbitrage_handling=ArbitrageHandling.ZERO_CLAMP)
        curve = calibrator.calibrate(
            VALUATION, instruments, usd_result.curve, 0.4, CdsConvention.usd_standard()
        ).curve
        t = curve.get_node_times()
        h = curve.get_node_rates()
        assert abs(h[1] * t[1] - h[0] * t[0]) < 1e-14

    def test_default_arbitrage_from_settings(self):
        expected = ArbitrageHandling.from_string(settings.credit_arbitrage_handling)
        assert IsdaCreditCurveCalibrator().arbitrage_handling == expected

    def test_unsupported_instrument(self, usd_result):
        with pytest.raises(CalibrationError):
            IsdaCreditCurveCalibrator().calibrate(
                VALUATION, [MoneyMarketInstrument(tenor="3M", quote=0.01)], usd_result.curve, 0.4,
                CdsConvention.usd_standard(),
            )


class TestArbitrageHandling:
    """Tests for arbitrage policy parsing."""

    @pytest.mark.parametrize("text,expected", [
        ("FAIL", ArbitrageHandling.FAIL),
        ("ignore", ArbitrageHandling.IGNORE),
        ("ZeroClamp", ArbitrageHandling.ZERO_CLAMP),
        ("zero-clamp", ArbitrageHandling.ZERO_CLAMP),
    ])
    def test_from_string(self, text, expected):
        assert ArbitrageHandling.from_string(text) == expected

    def test_unknown(self):
        with pytest.raises(ValueError):
            ArbitrageHandling.from_string("Maybe")


class TestParRates:
    """Tests for par-rate inputs."""

    def test_instruments_in_node_order(self, usd_par_rates):
        instruments = usd_par_rates.to_instruments()
        assert [i.tenor for i in instruments] == [n for _, n, _ in USD_POINTS]
        assert isinstance(instruments[0], MoneyMarketInstrument)
        assert isinstance(instruments[-1], IsdaSwapInstrument)

    def test_dict_round_trip(self, usd_par_rates):
        restored = IsdaYieldCurveParRates.from_dict(usd_par_rates.to_dict())
        assert restored == usd_par_rates

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            IsdaYieldCurveParRates.of("USD-DSC", [("Future", "3M", 0.05)], IsdaYieldCurveConvention.usd_isda())
        with pytest.raises(ValueError):
            instrument_from_tag("Future", "3M", 0.05)

    def test_length_mismatch(self):
        with pytest.raises(ValueError):
            IsdaCreditCurveParRates("ACME", ("1Y", "5Y"), (0.01,), CdsConvention.usd_standard())

    def test_bumped(self, usd_par_rates):
        bumped = usd_par_rates.bumped(1.0)
        np.testing.assert_allclose(np.subtract(bumped.par_rates, usd_par_rates.par_rates), 1e-4)

    def test_credit_end_dates(self):
        par = IsdaCreditCurveParRates("ACME", ("1Y", "5Y"), (0.01, 0.02), CdsConvention.usd_standard())
        assert par.credit_curve_end_date_points(VALUATION) == [date(2025, 3, 20), date(2029, 3, 20)]

    def test_credit_dict_round_trip(self):
        par = IsdaCreditCurveParRates("ACME", ("1Y", "5Y"), (0.01, 0.02), CdsConvention.eur_standard())
        assert IsdaCreditCurveParRates.from_dict(par.to_dict()) == par


class TestCurveGroup:
    """Tests for curve group calibration."""

    @pytest.fixture
    def entries(self, usd_par_rates):
        eur = IsdaYieldCurveParRates.of(
            "EUR-DSC",
            [("MoneyMarket", "3M", 0.0390), ("MoneyMarket", "6M", 0.0385),
             ("Swap", "2Y", 0.0320), ("Swap", "5Y", 0.0280), ("Swap", "10Y", 0.0275)],
            IsdaYieldCurveConvention.eur_isda(),
        )
        return [
            CurveGroupEntry(usd_par_rates, discount_currencies={"USD"}),
            CurveGroupEntry(eur, discount_currencies={"EUR"}, index_names={"EUR-EURIBOR-6M"}),
        ]

    def test_entry_needs_a_key(self, usd_par_rates):
        with pytest.raises(ValueError):
            CurveGroupEntry(usd_par_rates)

    def test_concurrent_matches_serial(self, entries):
        serial = calibrate_curve_group(VALUATION, entries)
        with ThreadPoolExecutor(max_workers=2) as pool:
            parallel = calibrate_curve_group(VALUATION, entries, executor=pool)
        assert list(serial) == ["USD-DSC", "EUR-DSC"]
        for name in serial:
            np.testing.assert_array_equal(
                serial[name].curve.get_node_rates(), parallel[name].curve.get_node_rates()
            )

    def test_duplicate_names(self, entries):
        with pytest.raises(ValueError):
            calibrate_curve_group(VALUATION, [entries[0], entries[0]])
