"""
Unit tests for point and parameter sensitivities.
"""

import numpy as np
import pandas as pd
import pytest

from rateskit.currency import FxMatrix, MultiCurrencyAmount
from rateskit.sensitivity import (
    CreditCurveZeroRateSensitivity,
    CurrencyParameterSensitivities,
    CurrencyParameterSensitivity,
    IborCapFloorSensitivity,
    MutablePointSensitivities,
    PointSensitivities,
    SabrParameterType,
    SwaptionSabrSensitivity,
    ZeroRateSensitivity,
)


def zr(curve, t, ccy, value):
    return ZeroRateSensitivity(curve, t, ccy, value)


class TestPointSensitivityOrdering:
    """Tests for compare_key."""

    def test_currency_first(self):
        a = zr("Z-DSC", 5.0, "EUR", 1.0)
        b = zr("A-DSC", 1.0, "USD", 1.0)
        assert a.compare_key(b) < 0
        assert b.compare_key(a) > 0

    def test_same_key_different_value(self):
        assert zr("EUR-DSC", 1.0, "EUR", 1.0).compare_key(zr("EUR-DSC", 1.0, "EUR", 2.0)) == 0

    def test_types_compare_by_name(self):
        credit = CreditCurveZeroRateSensitivity("ACME", 1.0, "EUR", 1.0)
        rate = zr("EUR-DSC", 1.0, "EUR", 1.0)
        assert credit.compare_key(rate) < 0

    def test_sabr_parameter_order(self):
        alpha = SwaptionSabrSensitivity("EUR-6M", 1.0, 5.0, SabrParameterType.ALPHA, "EUR", 1.0)
        nu = SwaptionSabrSensitivity("EUR-6M", 1.0, 5.0, SabrParameterType.NU, "EUR", 1.0)
        assert alpha.compare_key(nu) < 0


class TestPointSensitivities:
    """Tests for immutable point sensitivity collections."""

    def test_normalized_merges_and_sorts(self):
        sens = PointSensitivities.of(
            zr("EUR-DSC", 2.0, "EUR", 1.0),
            zr("EUR-DSC", 1.0, "EUR", 3.0),
            zr("EUR-DSC", 2.0, "EUR", 4.0),
        ).normalized()
        assert [s.year_fraction for s in sens] == [1.0, 2.0]
        assert sens.sensitivities[1].sensitivity == 5.0

    def test_normalized_drops_exact_zeros(self):
        sens = PointSensitivities.of(
            zr("EUR-DSC", 1.0, "EUR", 1.0),
            zr("EUR-DSC", 1.0, "EUR", -1.0),
        ).normalized()
        assert sens.size() == 0

    def test_plus_is_normalized(self):
        a = PointSensitivities.of(zr("EUR-DSC", 2.0, "EUR", 1.0))
        b = PointSensitivities.of(zr("EUR-DSC", 1.0, "EUR", 1.0), zr("EUR-DSC", 2.0, "EUR", 1.0))
        total = a.plus(b)
        assert total == total.normalized()
        assert total.size() == 2

    def test_plus_is_commutative(self):
        a = PointSensitivities.of(zr("EUR-DSC", 2.0, "EUR", 1.0), zr("USD-DSC", 1.0, "USD", 2.0))
        b = PointSensitivities.of(
            IborCapFloorSensitivity("EUR-EURIBOR-6M", 1.0, 0.02, 0.025, "EUR", 7.0),
        )
        assert a.plus(b) == b.plus(a)

    def test_multiplied_by(self):
        sens = PointSensitivities.of(zr("EUR-DSC", 1.0, "EUR", 2.0)).multiplied_by(1e-4)
        assert sens.sensitivities[0].sensitivity == pytest.approx(2e-4)

    def test_converted_to(self):
        fx = FxMatrix.of("EUR", "USD", 1.2)
        sens = PointSensitivities.of(
            zr("EUR-DSC", 1.0, "EUR", 10.0),
            zr("EUR-DSC", 1.0, "USD", 1.0),
        ).converted_to("USD", fx)
        assert sens.size() == 1
        assert sens.sensitivities[0].currency == "USD"
        assert sens.sensitivities[0].sensitivity == pytest.approx(13.0)

    def test_equal_with_tolerance(self):
        a = PointSensitivities.of(zr("EUR-DSC", 1.0, "EUR", 1.0))
        b = PointSensitivities.of(zr("EUR-DSC", 1.0, "EUR", 1.0 + 1e-12), zr("EUR-DSC", 2.0, "EUR", 1e-13))
        assert a.equal_with_tolerance(b, 1e-10)
        assert not a.equal_with_tolerance(b.multiplied_by(2.0), 1e-10)

    def test_to_frame(self):
        frame = PointSensitivities.of(zr("EUR-DSC", 1.0, "EUR", 1.0)).to_frame()
        assert isinstance(frame, pd.DataFrame)
        assert frame.loc[0, "curve"] == "EUR-DSC"


class TestMutablePointSensitivities:
    """Tests for the pricing-time accumulator."""

    def test_add_and_build(self):
        acc = MutablePointSensitivities()
        acc.add(zr("EUR-DSC", 1.0, "EUR", 1.0))
        acc.add(PointSensitivities.of(zr("EUR-DSC", 2.0, "EUR", 1.0)))
        acc.add(MutablePointSensitivities([zr("EUR-DSC", 3.0, "EUR", 1.0)]))
        assert acc.build().size() == 3

    def test_add_rejects_other_types(self):
        with pytest.raises(TypeError):
            MutablePointSensitivities().add(1.0)

    def test_combined_builders_equal_plus(self):
        leg_a = MutablePointSensitivities([zr("EUR-DSC", 1.0, "EUR", 1.0)])
        leg_b = MutablePointSensitivities([zr("EUR-DSC", 1.0, "EUR", 2.0), zr("EUR-DSC", 2.0, "EUR", 1.0)])
        combined = leg_a.cloned().combined_with(leg_b).build().normalized()
        assert combined == leg_a.build().plus(leg_b.build())

    def test_cloned_is_independent(self):
        acc = MutablePointSensitivities([zr("EUR-DSC", 1.0, "EUR", 1.0)])
        clone = acc.cloned().multiplied_by(2.0)
        assert acc.build().sensitivities[0].sensitivity == 1.0
        assert clone.build().sensitivities[0].sensitivity == 2.0

    def test_with_currency(self):
        acc = MutablePointSensitivities([zr("EUR-DSC", 1.0, "EUR", 1.0)]).with_currency("USD")
        assert acc.build().sensitivities[0].currency == "USD"


class TestCurrencyParameterSensitivities:
    """Tests for bucketed sensitivities."""

    @pytest.fixture
    def eur(self):
        return CurrencyParameterSensitivity("EUR-DSC", "EUR", ("1Y", "5Y"), np.array([1.0, 2.0]))

    def test_label_count_checked(self):
        with pytest.raises(ValueError):
            CurrencyParameterSensitivity("EUR-DSC", "EUR", ("1Y",), np.array([1.0, 2.0]))

    def test_same_key_is_merged(self, eur):
        sens = CurrencyParameterSensitivities.of(eur, eur)
        assert sens.size() == 1
        np.testing.assert_allclose(sens.get_sensitivity("EUR-DSC", "EUR").sensitivity, [2.0, 4.0])

    def test_sorted_by_key(self, eur):
        usd = CurrencyParameterSensitivity("ACME-USD", "USD", ("5Y",), np.array([3.0]))
        sens = CurrencyParameterSensitivities.of(eur, usd)
        assert [s.market_data_name for s in sens] == ["ACME-USD", "EUR-DSC"]

    def test_total(self, eur):
        usd = CurrencyParameterSensitivity("USD-DSC", "USD", ("5Y",), np.array([3.0]))
        total = CurrencyParameterSensitivities.of(eur, usd).total()
        assert isinstance(total, MultiCurrencyAmount)
        assert total.to_dict() == {"EUR": 3.0, "USD": 3.0}

    def test_total_in_currency(self, eur):
        fx = FxMatrix.of("EUR", "USD", 1.1)
        total = CurrencyParameterSensitivities.of(eur).total("USD", fx)
        assert total.amount == pytest.approx(3.3)

    def test_converted_to(self, eur):
        fx = FxMatrix.of("EUR", "USD", 1.1)
        converted = CurrencyParameterSensitivities.of(eur).converted_to("USD", fx)
        np.testing.assert_allclose(converted.get_sensitivity("EUR-DSC", "USD").sensitivity, [1.1, 2.2])

    def test_missing_sensitivity(self, eur):
        with pytest.raises(KeyError):
            CurrencyParameterSensitivities.of(eur).get_sensitivity("EUR-DSC", "USD")

    def test_equal_with_tolerance(self, eur):
        a = CurrencyParameterSensitivities.of(eur)
        b = CurrencyParameterSensitivities.of(eur.with_sensitivity(np.array([1.0, 2.0 + 1e-12])))
        assert a.equal_with_tolerance(b, 1e-10)
        assert not a.equal_with_tolerance(CurrencyParameterSensitivities.empty(), 1e-10)

    def test_to_frame(self, eur):
        frame = CurrencyParameterSensitivities.of(eur).to_frame()
        assert list(frame["label"]) == ["1Y", "5Y"]
        assert frame["sensitivity"].sum() == 3.0
