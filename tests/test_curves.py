"""
Unit tests for curves module.
"""

from datetime import date
import numpy as np
import pandas as pd
import pytest

from rateskit.curves import (
    CreditCurve,
    CubicSplineInterpolator,
    Curve,
    LinearInterpolator,
    LogLinearInterpolator,
    create_flat_credit_curve,
    create_flat_curve,
    create_interpolator,
)
from rateskit.sensitivity import ZeroRateSensitivity


class TestInterpolators:
    """Tests for interpolation methods."""

    @pytest.fixture
    def sample_data(self):
        """Sample interpolation data."""
        x = np.array([0.25, 0.5, 1.0, 2.0, 5.0, 10.0])
        y = np.array([0.051, 0.052, 0.053, 0.050, 0.048, 0.045])
        return x, y

    def test_linear_interpolator(self, sample_data):
        x, y = sample_data
        interp = LinearInterpolator()
        interp.fit(x, y)

        assert abs(interp(1.0) - 0.053) < 1e-12
        assert abs(interp(0.75) - 0.0525) < 1e-12
        # Flat extrapolation
        assert interp(0.1) == 0.051
        assert interp(30.0) == 0.045

    def test_cubic_spline_passes_through_nodes(self, sample_data):
        x, y = sample_data
        interp = CubicSplineInterpolator()
        interp.fit(x, y)
        for xi, yi in zip(x, y):
            assert abs(interp(xi) - yi) < 1e-12

    def test_log_linear_piecewise_constant_forward(self, sample_data):
        """r(t) t is linear between nodes."""
        x, y = sample_data
        interp = LogLinearInterpolator()
        interp.fit(x, y)

        f1 = interp.forward(2.5)
        f2 = interp.forward(4.5)
        assert abs(f1 - f2) < 1e-14
        expected = (y[4] * x[4] - y[3] * x[3]) / (x[4] - x[3])
        assert abs(f1 - expected) < 1e-14

    def test_log_linear_short_end_flat(self, sample_data):
        x, y = sample_data
        interp = LogLinearInterpolator()
        interp.fit(x, y)
        assert interp(0.1) == y[0]

    @pytest.mark.parametrize("cls", [LinearInterpolator, CubicSplineInterpolator, LogLinearInterpolator])
    def test_node_weights_match_refit(self, cls, sample_data):
        """Weights are the derivative of the interpolated value in each node."""
        x, y = sample_data
        interp = cls()
        interp.fit(x, y)
        t = 3.3
        weights = interp.node_weights(t)
        eps = 1e-6
        for i in range(len(x)):
            bumped = y.copy()
            bumped[i] += eps
            probe = cls()
            probe.fit(x, bumped)
            fd = (probe(t) - interp(t)) / eps
            assert abs(weights[i] - fd) < 1e-6

    def test_unsorted_times_rejected(self):
        with pytest.raises(ValueError):
            LinearInterpolator().fit(np.array([1.0, 0.5]), np.array([0.01, 0.02]))

    def test_factory(self):
        assert isinstance(create_interpolator("log-linear"), LogLinearInterpolator)
        assert isinstance(create_interpolator("spline"), CubicSplineInterpolator)
        with pytest.raises(ValueError):
            create_interpolator("akima")


class TestCurve:
    """Tests for Curve class."""

    @pytest.fixture
    def anchor(self):
        return date(2024, 1, 15)

    @pytest.fixture
    def curve(self, anchor):
        return Curve(
            anchor,
            [0.5, 1.0, 2.0, 5.0, 10.0],
            [0.030, 0.032, 0.034, 0.036, 0.038],
            name="USD-DSC",
            currency="USD",
            labels=["6M", "1Y", "2Y", "5Y", "10Y"],
        )

    def test_discount_factor_at_anchor(self, curve, anchor):
        assert curve.discount_factor(0.0) == 1.0
        assert curve.discount_factor(anchor) == 1.0

    def test_discount_factor_at_node(self, curve):
        assert abs(curve.discount_factor(5.0) - np.exp(-0.036 * 5.0)) < 1e-15

    def test_flat_curve(self, anchor):
        curve = create_flat_curve(anchor, 0.04)
        for t in (0.1, 1.0, 7.5, 30.0, 40.0):
            assert abs(curve.discount_factor(t) - np.exp(-0.04 * t)) < 1e-14
        assert curve.name == "USD-DSC"

    def test_forward_rate(self, curve):
        fwd = curve.forward_rate(1.0, 2.0)
        expected = curve.discount_factor(1.0) / curve.discount_factor(2.0) - 1.0
        assert abs(fwd - expected) < 1e-15
        with pytest.raises(ValueError):
            curve.forward_rate(2.0, 1.0)

    def test_instantaneous_forward_between_nodes(self, curve):
        expected = (0.036 * 5.0 - 0.034 * 2.0) / 3.0
        assert abs(curve.instantaneous_forward(3.0) - expected) < 1e-12

    def test_nodes_are_read_only(self, curve):
        with pytest.raises(ValueError):
            curve.get_node_rates()[0] = 0.0

    def test_with_parameter_returns_new_curve(self, curve):
        bumped = curve.with_parameter(2, 0.040)
        assert bumped.get_node_rates()[2] == 0.040
        assert curve.get_node_rates()[2] == 0.034
        assert bumped.name == curve.name
        assert bumped.labels == curve.labels
        with pytest.raises(IndexError):
            curve.with_parameter(5, 0.0)

    def test_bump_parallel(self, curve):
        bumped = curve.bump_parallel(1.0)
        np.testing.assert_allclose(bumped.get_node_rates() - curve.get_node_rates(), 1e-4)

    def test_bump_node(self, curve):
        bumped = curve.bump_node(3, 5.0)
        np.testing.assert_allclose(
            bumped.get_node_rates() - curve.get_node_rates(), [0.0, 0.0, 0.0, 5e-4, 0.0], atol=1e-15
        )
        with pytest.raises(IndexError):
            curve.bump_node(-1, 1.0)

    def test_with_node(self, curve):
        extended = curve.with_node(3.0, 0.035, "3Y")
        assert extended.node_count == 6
        assert extended.labels[3] == "3Y"
        replaced = curve.with_node(5.0, 0.037, "5Y")
        assert replaced.node_count == 5
        assert replaced.get_node_rates()[3] == 0.037

    def test_zero_rate_point_sensitivity(self, curve):
        point = curve.zero_rate_point_sensitivity(3.0)
        assert isinstance(point, ZeroRateSensitivity)
        assert point.curve_name == "USD-DSC"
        assert abs(point.sensitivity + 3.0 * curve.discount_factor(3.0)) < 1e-15

    def test_parameter_sensitivity_matches_bump(self, curve):
        """Node sensitivities of a discount factor agree with finite differences."""
        t = 3.0
        point = curve.zero_rate_point_sensitivity(t)
        param = curve.parameter_sensitivity(point)
        assert param.parameter_labels == curve.labels
        eps = 1e-7
        for i in range(curve.node_count):
            rates = curve.get_node_rates()
            up = curve.with_parameter(i, rates[i] + eps).discount_factor(t)
            down = curve.with_parameter(i, rates[i] - eps).discount_factor(t)
            assert abs(param.sensitivity[i] - (up - down) / (2 * eps)) < 1e-8

    def test_parameter_sensitivity_other_curve(self, curve):
        point = ZeroRateSensitivity("EUR-DSC", 1.0, "EUR", 1.0)
        with pytest.raises(ValueError):
            curve.parameter_sensitivity(point)

    def test_invalid_construction(self, anchor):
        with pytest.raises(ValueError):
            Curve(anchor, [], [])
        with pytest.raises(ValueError):
            Curve(anchor, [0.0, 1.0], [0.01, 0.02])
        with pytest.raises(ValueError):
            Curve(anchor, [1.0, 0.5], [0.01, 0.02])
        with pytest.raises(ValueError):
            Curve(anchor, [1.0], [np.nan])
        with pytest.raises(ValueError):
            Curve(anchor, [1.0, 2.0], [0.01, 0.02], labels=["1Y"])

    def test_to_frame(self, curve):
        frame = curve.to_frame()
        assert isinstance(frame, pd.DataFrame)
        assert list(frame.index) == list(curve.labels)
        assert abs(frame.loc["5Y", "zero_rate"] - 0.036) < 1e-15


class TestCreditCurve:
    """Tests for hazard-rate curves."""

    def test_survival_probability(self):
        curve = create_flat_credit_curve(date(2024, 1, 15), 0.02, name="ACME-USD")
        assert abs(curve.survival_probability(5.0) - np.exp(-0.1)) < 1e-15
        assert abs(curve.hazard_rate(5.0) - 0.02) < 1e-15
        assert curve.survival_probability(0.0) == 1.0

    def test_default_name(self):
        curve = CreditCurve(date(2024, 1, 15), [1.0, 5.0], [0.01, 0.02], currency="EUR")
        assert curve.name == "EUR-CREDIT"

    def test_forward_hazard(self):
        curve = CreditCurve(date(2024, 1, 15), [1.0, 5.0], [0.01, 0.02])
        assert abs(curve.forward_hazard_rate(1.0, 5.0) - (0.1 - 0.01) / 4.0) < 1e-12

    def test_with_parameter_keeps_type(self):
        curve = CreditCurve(date(2024, 1, 15), [1.0, 5.0], [0.01, 0.02])
        assert isinstance(curve.with_parameter(0, 0.015), CreditCurve)

    def test_point_sensitivity_type(self):
        curve = CreditCurve(date(2024, 1, 15), [1.0, 5.0], [0.01, 0.02], name="ACME-USD")
        point = curve.zero_rate_point_sensitivity(2.0)
        assert type(point).__name__ == "CreditCurveZeroRateSensitivity"
        param = curve.parameter_sensitivity(point)
        assert param.market_data_name == "ACME-USD"
