"""
Tests for cap/floor volatilities and grid interpolation.
"""

from datetime import date

import numpy as np
import pytest

from rateskit.exceptions import ModelMismatchError
from rateskit.sensitivity import IborCapFloorSensitivity, PointSensitivities
from rateskit.vol import (
    BlackIborCapFloorVolatilities,
    IborCapFloorVolatilities,
    NormalIborCapFloorVolatilities,
    VolatilityType,
    bilinear_weights,
    flat_capfloor_volatilities,
)

VAL = date(2024, 1, 15)


@pytest.fixture
def normal_vols():
    return NormalIborCapFloorVolatilities(
        "EUR-CAP-NORMAL", "EUR-EURIBOR-6M", "EUR", VAL,
        [1.0, 2.0, 5.0], [0.01, 0.03],
        [[0.0080, 0.0090], [0.0085, 0.0095], [0.0090, 0.0100]],
    )


class TestGrid:
    """Tests for bilinear weights."""

    def test_weights_sum_to_one(self):
        w = bilinear_weights(np.array([1.0, 2.0, 5.0]), np.array([0.01, 0.03]), 3.2, 0.015)
        assert w.shape == (3, 2)
        assert abs(w.sum() - 1.0) < 1e-15

    def test_flat_outside(self):
        w = bilinear_weights(np.array([1.0, 2.0]), np.array([0.01, 0.03]), 10.0, 0.0)
        np.testing.assert_array_equal(w, [[0.0, 0.0], [1.0, 0.0]])


class TestCapFloorVolatilities:
    """Tests for Black and normal cap/floor surfaces."""

    def test_family(self, normal_vols):
        assert normal_vols.volatility_type == VolatilityType.NORMAL
        black = BlackIborCapFloorVolatilities(
            "B", "EUR-EURIBOR-6M", "EUR", VAL, [1.0], [0.0], [[0.25]], shift=0.01
        )
        assert black.volatility_type == VolatilityType.BLACK
        assert black.shift == 0.01

    def test_base_class_cannot_be_built(self):
        with pytest.raises(TypeError):
            IborCapFloorVolatilities("X", "EUR-EURIBOR-6M", "EUR", VAL, [1.0], [0.0], [[0.01]])

    def test_interpolation(self, normal_vols):
        assert abs(normal_vols.volatility(1.5, 0.02, 0.025) - 0.00875) < 1e-15
        assert normal_vols.volatility(0.5, 0.0, 0.025) == 0.0080

    def test_with_parameter_keeps_family(self, normal_vols):
        bumped = normal_vols.with_parameter(3, 0.02)
        assert isinstance(bumped, NormalIborCapFloorVolatilities)
        assert bumped.volatilities[1, 1] == 0.02
        assert normal_vols.volatilities[1, 1] == 0.0095
        with pytest.raises(IndexError):
            normal_vols.with_parameter(6, 0.01)

    def test_with_perturbation_keeps_shift(self):
        black = BlackIborCapFloorVolatilities(
            "B", "EUR-EURIBOR-6M", "EUR", VAL, [1.0, 2.0], [0.0], [[0.25], [0.30]], shift=0.02
        )
        bumped = black.with_perturbation(lambda i, v: v + 0.01)
        assert isinstance(bumped, BlackIborCapFloorVolatilities)
        assert bumped.shift == 0.02
        np.testing.assert_allclose(bumped.volatilities.ravel(), [0.26, 0.31])

    def test_negative_vol_rejected(self):
        with pytest.raises(ValueError):
            NormalIborCapFloorVolatilities("N", "I", "EUR", VAL, [1.0], [0.0], [[-0.01]])

    def test_parameter_sensitivity(self, normal_vols):
        points = PointSensitivities.of(
            IborCapFloorSensitivity("EUR-EURIBOR-6M", 1.5, 0.01, 0.02, "EUR", 10.0),
            IborCapFloorSensitivity("USD-LIBOR-3M", 1.5, 0.01, 0.02, "USD", 10.0),
        )
        sens = normal_vols.parameter_sensitivity(points)
        assert sens.size() == 1
        vega = sens.get_sensitivity("EUR-CAP-NORMAL", "EUR")
        np.testing.assert_allclose(vega.sensitivity, [5.0, 0.0, 5.0, 0.0, 0.0, 0.0])
        assert vega.parameter_labels[0] == "1Yx0.01"

    def test_flat_factory(self):
        black = flat_capfloor_volatilities(VolatilityType.BLACK, "B", "I", "EUR", VAL, 0.3, shift=0.01)
        assert isinstance(black, BlackIborCapFloorVolatilities)
        normal = flat_capfloor_volatilities(VolatilityType.NORMAL, "N", "I", "EUR", VAL, 0.007)
        assert normal.volatility(3.0, 0.05, 0.02) == 0.007
        with pytest.raises(ModelMismatchError):
            flat_capfloor_volatilities(VolatilityType.NORMAL, "N", "I", "EUR", VAL, 0.007, shift=0.01)
        with pytest.raises(ModelMismatchError):
            flat_capfloor_volatilities(VolatilityType.SABR, "S", "I", "EUR", VAL, 0.03)
