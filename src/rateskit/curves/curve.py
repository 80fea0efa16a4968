"""
Yield and credit curve representation.

The Curve class provides:
- Discount factor P(0,t)
- Zero rate z(t)
- Forward rate f(t1, t2)
- Instantaneous forward rate f(t)
- Node sensitivities dz(t)/dz_i and point sensitivities dP/dz

Curves are immutable: the node arrays are read-only and every bump or
perturbation returns a new instance. A curve is built once per valuation
date and shared read-only across pricing calls.

Internal representation uses year fractions from the anchor date and
continuously compounded zero rates at the nodes. There is no node at t=0;
the discount factor at t <= 0 is 1.
"""

from datetime import date
from typing import Callable, List, Optional, Sequence, Tuple, Union
import logging

import numpy as np

from ..conventions import DayCount, year_fraction, CompoundingConvention
from ..sensitivity import (
    CreditCurveZeroRateSensitivity,
    CurrencyParameterSensitivity,
    ZeroRateSensitivity,
)
from .interpolation import Interpolator, create_interpolator

logger = logging.getLogger(__name__)

TimeLike = Union[float, date]


class Curve:
    """
    Zero-rate curve with interpolation.

    Attributes:
        anchor_date: Curve date (time 0)
        name: Curve name used to tag sensitivities
        currency: Currency code
        day_count: Day count for date to time conversion
        interpolation_method: Name of interpolation method
        labels: One label per node (usually the calibrating tenor)

    Conventions:
        - Zero rates are continuously compounded
        - Times are year fractions from anchor date
        - Discount factor at t=0 is 1.0
    """

    def __init__(
        self,
        anchor_date: date,
        times: Sequence[float],
        zero_rates: Sequence[float],
        name: Optional[str] = None,
        currency: str = "USD",
        day_count: DayCount = DayCount.ACT_365F,
        interpolation_method: str = "log_linear",
        labels: Optional[Sequence[str]] = None
    ):
        times = np.array(times, dtype=np.float64)
        zero_rates = np.array(zero_rates, dtype=np.float64)
        if times.ndim != 1 or len(times) == 0:
            raise ValueError("Curve needs at least one node")
        if len(times) != len(zero_rates):
            raise ValueError(f"{len(times)} node times but {len(zero_rates)} zero rates")
        if times[0] <= 0:
            raise ValueError(f"Node times must be positive, got {times[0]}")
        if np.any(np.diff(times) <= 0):
            raise ValueError("Node times must be strictly increasing")
        if not np.all(np.isfinite(zero_rates)):
            raise ValueError("Zero rates must be finite")

        times.setflags(write=False)
        zero_rates.setflags(write=False)

        self.anchor_date = anchor_date
        self.currency = currency
        self.name = name or f"{currency}-{self._default_suffix()}"
        self.day_count = day_count
        self.interpolation_method = interpolation_method
        self._times = times
        self._rates = zero_rates
        self.labels: Tuple[str, ...] = (
            tuple(labels) if labels is not None else tuple(f"{t:.4f}Y" for t in times)
        )
        if len(self.labels) != len(times):
            raise ValueError("One label per node is required")

        self._interpolator: Interpolator = create_interpolator(interpolation_method)
        self._interpolator.fit(times, zero_rates)

    @staticmethod
    def _default_suffix() -> str:
        return "DSC"

    def _new(self, times: Sequence[float], zero_rates: Sequence[float], labels=None) -> "Curve":
        return type(self)(
            anchor_date=self.anchor_date,
            times=times,
            zero_rates=zero_rates,
            name=self.name,
            currency=self.currency,
            day_count=self.day_count,
            interpolation_method=self.interpolation_method,
            labels=self.labels if labels is None else labels,
        )

    def year_fraction(self, d: date) -> float:
        """Curve time of a date."""
        return year_fraction(self.anchor_date, d, self.day_count)

    def _time(self, t: TimeLike) -> float:
        if isinstance(t, date):
            return self.year_fraction(t)
        return float(t)

    @property
    def node_count(self) -> int:
        return len(self._times)

    def discount_factor(self, t: TimeLike) -> float:
        """
        Get discount factor P(0,t).

        Args:
            t: Year fraction or date

        Returns:
            Discount factor
        """
        t = self._time(t)
        if t <= 0:
            return 1.0
        return float(np.exp(-self._interpolator.interpolate(t) * t))

    def zero_rate(
        self,
        t: TimeLike,
        compounding: CompoundingConvention = CompoundingConvention.CONTINUOUS
    ) -> float:
        """
        Get zero rate z(t).

        Args:
            t: Year fraction or date
            compounding: Compounding convention for output

        Returns:
            Zero rate (default continuously compounded)
        """
        t = self._time(t)
        zr_cont = self._interpolator.interpolate(max(t, 0.0))

        if compounding == CompoundingConvention.CONTINUOUS:
            return zr_cont
        elif compounding == CompoundingConvention.ANNUAL:
            return float(np.exp(zr_cont) - 1)
        elif compounding == CompoundingConvention.SEMI_ANNUAL:
            return float(2 * (np.exp(zr_cont / 2) - 1))
        elif compounding == CompoundingConvention.QUARTERLY:
            return float(4 * (np.exp(zr_cont / 4) - 1))
        elif compounding == CompoundingConvention.SIMPLE:
            if t <= 0:
                return zr_cont
            return float((np.exp(zr_cont * t) - 1) / t)
        raise ValueError(f"Unsupported compounding: {compounding}")

    def forward_rate(
        self,
        t1: TimeLike,
        t2: TimeLike,
        compounding: CompoundingConvention = CompoundingConvention.SIMPLE
    ) -> float:
        """
        Get forward rate f(t1, t2).

        Args:
            t1: Start time (year fraction or date)
            t2: End time (year fraction or date)
            compounding: SIMPLE or CONTINUOUS

        Returns:
            Forward rate between t1 and t2
        """
        t1 = self._time(t1)
        t2 = self._time(t2)
        if t2 <= t1:
            raise ValueError("t2 must be greater than t1")

        df1 = self.discount_factor(t1)
        df2 = self.discount_factor(t2)
        delta = t2 - t1

        if compounding == CompoundingConvention.CONTINUOUS:
            return float(-np.log(df2 / df1) / delta)
        return (df1 / df2 - 1) / delta

    def instantaneous_forward(self, t: TimeLike) -> float:
        """
        Get instantaneous forward rate f(t).

        f(t) = -d/dt [log P(0,t)]
             = z(t) + t * dz/dt
        """
        t = max(self._time(t), 0.0)
        return self._interpolator.interpolate(t) + t * self._interpolator.derivative(t)

    def zero_rate_node_sensitivity(self, t: TimeLike) -> np.ndarray:
        """
        Derivative of z(t) with respect to each node zero rate.

        Returns:
            Array of length node_count
        """
        return self._interpolator.node_weights(max(self._time(t), 0.0))

    def zero_rate_point_sensitivity(
        self,
        t: TimeLike,
        currency: Optional[str] = None
    ) -> ZeroRateSensitivity:
        """
        Point sensitivity of the discount factor at t to the zero rate at t.

        The value is dP(t)/dz(t) = -t * P(t); multiply by an amount to get
        the sensitivity of a discounted cash flow.
        """
        t = self._time(t)
        return ZeroRateSensitivity(
            curve_name=self.name,
            year_fraction=t,
            currency=currency or self.currency,
            sensitivity=-t * self.discount_factor(t),
        )

    def parameter_sensitivity(self, point: ZeroRateSensitivity) -> CurrencyParameterSensitivity:
        """
        Map a point sensitivity on this curve to node-level sensitivities.

        Raises:
            ValueError: If the point refers to another curve
        """
        if point.curve_name != self.name:
            raise ValueError(f"Sensitivity on {point.curve_name} cannot be mapped onto {self.name}")
        return CurrencyParameterSensitivity(
            self.name,
            point.currency,
            self.labels,
            point.sensitivity * self.zero_rate_node_sensitivity(point.year_fraction),
        )

    def get_node_times(self) -> np.ndarray:
        """Get array of node times."""
        return self._times

    def get_node_dfs(self) -> np.ndarray:
        """Get array of node discount factors."""
        return np.exp(-self._rates * self._times)

    def get_node_rates(self) -> np.ndarray:
        """Get array of node zero rates."""
        return self._rates

    def with_parameter(self, index: int, value: float) -> "Curve":
        """New curve with node `index` set to zero rate `value`."""
        if index < 0 or index >= self.node_count:
            raise IndexError(f"Invalid node index: {index}")
        rates = self._rates.copy()
        rates[index] = value
        return self._new(self._times, rates)

    def with_perturbation(self, fn: Callable[[int, float], float]) -> "Curve":
        """New curve with each node rate replaced by fn(index, rate)."""
        rates = np.array([fn(i, float(r)) for i, r in enumerate(self._rates)])
        return self._new(self._times, rates)

    def with_node(self, time: float, zero_rate: float, label: Optional[str] = None) -> "Curve":
        """
        New curve with a node added, or replaced if one exists at `time`.
        """
        times = list(self._times)
        rates = list(self._rates)
        labels = list(self.labels)
        label = label or f"{time:.4f}Y"
        for i, t in enumerate(times):
            if abs(t - time) < 1e-12:
                rates[i] = zero_rate
                labels[i] = label
                return self._new(times, rates, labels)
        idx = int(np.searchsorted(self._times, time))
        times.insert(idx, time)
        rates.insert(idx, zero_rate)
        labels.insert(idx, label)
        return self._new(times, rates, labels)

    def bump_parallel(self, bp: float) -> "Curve":
        """
        Create a new curve with parallel bump.

        Args:
            bp: Bump size in basis points

        Returns:
            New bumped curve
        """
        bump = bp / 10000.0
        return self._new(self._times, self._rates + bump)

    def bump_node(self, node_index: int, bp: float) -> "Curve":
        """
        Create a new curve with a single node bumped.

        Raises:
            IndexError: If node_index is out of range
        """
        if node_index < 0 or node_index >= self.node_count:
            raise IndexError(f"Invalid node index: {node_index}")
        return self.with_parameter(node_index, float(self._rates[node_index]) + bp / 10000.0)

    def copy(self) -> "Curve":
        """Curves are immutable; the copy is the curve itself."""
        return self

    def to_frame(self):
        """Nodes as a pandas DataFrame indexed by label."""
        import pandas as pd

        return pd.DataFrame(
            {
                "time": self._times,
                "zero_rate": self._rates,
                "discount_factor": self.get_node_dfs(),
            },
            index=pd.Index(self.labels, name="label"),
        )

    def __repr__(self) -> str:
        return (f"{type(self).__name__}(name={self.name}, anchor={self.anchor_date}, "
                f"currency={self.currency}, nodes={self.node_count}, "
                f"method={self.interpolation_method})")


class CreditCurve(Curve):
    """
    Hazard-rate curve.

    The node values are integrated hazard rates h(t) with survival
    probability Q(t) = exp(-h(t) t), interpolated exactly like a zero-rate
    curve.
    """

    @staticmethod
    def _default_suffix() -> str:
        return "CREDIT"

    def survival_probability(self, t: TimeLike) -> float:
        return self.discount_factor(t)

    def hazard_rate(self, t: TimeLike) -> float:
        """Average (integrated) hazard rate to t."""
        return self.zero_rate(t)

    def forward_hazard_rate(self, t1: TimeLike, t2: TimeLike) -> float:
        return self.forward_rate(t1, t2, CompoundingConvention.CONTINUOUS)

    def zero_rate_point_sensitivity(
        self,
        t: TimeLike,
        currency: Optional[str] = None
    ) -> CreditCurveZeroRateSensitivity:
        t = self._time(t)
        return CreditCurveZeroRateSensitivity(
            curve_name=self.name,
            year_fraction=t,
            currency=currency or self.currency,
            sensitivity=-t * self.discount_factor(t),
        )

    def parameter_sensitivity(self, point: CreditCurveZeroRateSensitivity) -> CurrencyParameterSensitivity:
        if point.curve_name != self.name:
            raise ValueError(f"Sensitivity on {point.curve_name} cannot be mapped onto {self.name}")
        return CurrencyParameterSensitivity(
            self.name,
            point.currency,
            self.labels,
            point.sensitivity * self.zero_rate_node_sensitivity(point.year_fraction),
        )


def create_flat_curve(
    anchor_date: date,
    rate: float,
    max_tenor_years: float = 30.0,
    currency: str = "USD",
    name: Optional[str] = None,
    interpolation_method: str = "log_linear"
) -> Curve:
    """
    Create a flat yield curve.

    Args:
        anchor_date: Curve date
        rate: Flat continuously compounded rate
        max_tenor_years: Maximum node tenor in years
        currency: Currency code
        name: Curve name

    Returns:
        Flat curve
    """
    times = [t for t in (0.25, 0.5, 1, 2, 5, 10, 20) if t < max_tenor_years] + [max_tenor_years]
    return Curve(
        anchor_date,
        times,
        [rate] * len(times),
        name=name,
        currency=currency,
        interpolation_method=interpolation_method,
    )


def create_flat_credit_curve(
    anchor_date: date,
    hazard_rate: float,
    currency: str = "USD",
    name: Optional[str] = None
) -> CreditCurve:
    """Single-node flat hazard curve."""
    return CreditCurve(anchor_date, [10.0], [hazard_rate], name=name, currency=currency)


__all__ = [
    "Curve",
    "CreditCurve",
    "create_flat_curve",
    "create_flat_credit_curve",
]
