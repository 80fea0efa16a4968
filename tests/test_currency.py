"""
Unit tests for currency amounts and FX conversion.
"""

import numpy as np
import pytest

from rateskit.currency import CurrencyAmount, FxMatrix, MultiCurrencyAmount, MultiCurrencyAmountArray
from rateskit.exceptions import ConversionError, RatesKitError


@pytest.fixture
def fx():
    return FxMatrix({("EUR", "USD"): 1.10, ("GBP", "USD"): 1.25})


class TestFxMatrix:
    """Tests for FX rates."""

    def test_identity(self, fx):
        assert fx.fx_rate("EUR", "EUR") == 1.0

    def test_direct_and_inverse(self, fx):
        assert fx.fx_rate("EUR", "USD") == 1.10
        assert abs(fx.fx_rate("USD", "EUR") - 1 / 1.10) < 1e-15

    def test_triangulation(self, fx):
        assert abs(fx.fx_rate("EUR", "GBP") - 1.10 / 1.25) < 1e-15

    def test_round_trip_is_identity(self, fx):
        there = fx.convert(1_000_000.0, "EUR", "GBP")
        back = fx.convert(there, "GBP", "EUR")
        assert abs(back - 1_000_000.0) < 1e-6

    def test_missing_pair(self, fx):
        with pytest.raises(ConversionError) as exc:
            fx.fx_rate("EUR", "JPY")
        assert isinstance(exc.value, KeyError)
        assert isinstance(exc.value, RatesKitError)
        assert "EUR/JPY" in str(exc.value)

    def test_invalid_rate(self):
        with pytest.raises(ValueError):
            FxMatrix.of("EUR", "USD", 0.0)

    def test_with_rate_leaves_original(self, fx):
        new = fx.with_rate("USD", "JPY", 150.0)
        assert new.fx_rate("USD", "JPY") == 150.0
        with pytest.raises(ConversionError):
            fx.fx_rate("USD", "JPY")


class TestCurrencyAmount:
    """Tests for single-currency amounts."""

    def test_plus_same_currency(self):
        assert CurrencyAmount("EUR", 1.5).plus(CurrencyAmount("EUR", 2.0)) == CurrencyAmount("EUR", 3.5)

    def test_plus_mismatch(self):
        with pytest.raises(ValueError):
            CurrencyAmount("EUR", 1.0).plus(CurrencyAmount("USD", 1.0))

    def test_invalid_code(self):
        with pytest.raises(ValueError):
            CurrencyAmount("eur", 1.0)

    def test_converted_to(self, fx):
        converted = CurrencyAmount("EUR", 100.0).converted_to("USD", fx)
        assert converted.currency == "USD"
        assert abs(converted.amount - 110.0) < 1e-12

    def test_negated_and_multiplied(self):
        amount = CurrencyAmount("GBP", 4.0)
        assert amount.negated() == CurrencyAmount("GBP", -4.0)
        assert amount.multiplied_by(0.5) == CurrencyAmount("GBP", 2.0)


class TestMultiCurrencyAmount:
    """Tests for multi-currency sums."""

    def test_of_sums_duplicates(self):
        mca = MultiCurrencyAmount.of(CurrencyAmount("EUR", 1.0), CurrencyAmount("EUR", 2.0))
        assert mca.get_amount("EUR").amount == 3.0

    def test_plus_keeps_all_currencies(self):
        a = MultiCurrencyAmount.of(CurrencyAmount("EUR", 1.0))
        b = MultiCurrencyAmount.of(CurrencyAmount("USD", 2.0))
        assert a.plus(b).currencies == ["EUR", "USD"]

    def test_zero_entries_kept(self):
        a = MultiCurrencyAmount.of(CurrencyAmount("EUR", 1.0))
        result = a.minus(CurrencyAmount("EUR", 1.0))
        assert result.contains("EUR")
        assert result.get_amount("EUR").amount == 0.0

    def test_total(self):
        total = MultiCurrencyAmount.total([
            CurrencyAmount("EUR", 1.0),
            MultiCurrencyAmount.of(CurrencyAmount("USD", 2.0), CurrencyAmount("EUR", 0.5)),
        ])
        assert total.to_dict() == {"EUR": 1.5, "USD": 2.0}

    def test_converted_to_sums(self, fx):
        mca = MultiCurrencyAmount.of(CurrencyAmount("EUR", 100.0), CurrencyAmount("USD", 10.0))
        assert abs(mca.converted_to("USD", fx).amount - 120.0) < 1e-12

    def test_missing_currency(self):
        with pytest.raises(ValueError):
            MultiCurrencyAmount.empty().get_amount("EUR")
        assert MultiCurrencyAmount.empty().get_amount_or_zero("EUR") == CurrencyAmount("EUR", 0.0)

    def test_equality_and_hash(self):
        a = MultiCurrencyAmount({"USD": 1.0, "EUR": 2.0})
        b = MultiCurrencyAmount({"EUR": 2.0, "USD": 1.0})
        assert a == b
        assert hash(a) == hash(b)


class TestMultiCurrencyAmountArray:
    """Tests for scenario arrays."""

    def test_of_list_fills_missing_with_zero(self):
        arr = MultiCurrencyAmountArray.of([
            MultiCurrencyAmount.of(CurrencyAmount("EUR", 1.0)),
            MultiCurrencyAmount.of(CurrencyAmount("USD", 2.0)),
        ])
        assert arr.size() == 2
        np.testing.assert_array_equal(arr.get_values("EUR"), [1.0, 0.0])
        np.testing.assert_array_equal(arr.get_values("USD"), [0.0, 2.0])

    def test_get(self):
        arr = MultiCurrencyAmountArray({"EUR": [1.0, 2.0]})
        assert arr.get(1) == MultiCurrencyAmount({"EUR": 2.0})
        with pytest.raises(IndexError):
            arr.get(2)

    def test_size_mismatch(self):
        with pytest.raises(ValueError):
            MultiCurrencyAmountArray({"EUR": [1.0, 2.0], "USD": [1.0]})

    def test_plus_and_minus(self):
        a = MultiCurrencyAmountArray({"EUR": [1.0, 2.0]})
        b = MultiCurrencyAmountArray({"USD": [3.0, 4.0]})
        total = a.plus(b)
        assert total.currencies == ["EUR", "USD"]
        assert total.minus(b).get(0).get_amount("EUR").amount == 1.0

    def test_converted_to(self, fx):
        arr = MultiCurrencyAmountArray({"EUR": [100.0, 200.0], "USD": [1.0, 2.0]})
        np.testing.assert_allclose(arr.converted_to("USD", fx), [111.0, 222.0])
