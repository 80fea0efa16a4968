"""
Interpolation methods for zero-rate curves.

Provides:
- LinearInterpolator: Linear in zero rate, flat extrapolation
- CubicSplineInterpolator: Natural cubic spline on zero rates
- LogLinearInterpolator: Linear in r(t) * t (piecewise constant forwards),
  the ISDA curve interpolation

All interpolators work with year fractions as x-coordinates and
continuously compounded zero rates as y-coordinates. Every interpolator is
linear in the node values, so node_weights(t) gives the exact derivative of
the interpolated value with respect to each node.
"""

from abc import ABC, abstractmethod
from typing import Optional
import numpy as np


class Interpolator(ABC):
    """Abstract base class for curve interpolation."""

    def __init__(self):
        self.times: Optional[np.ndarray] = None
        self.values: Optional[np.ndarray] = None

    def fit(self, times: np.ndarray, values: np.ndarray) -> None:
        """
        Fit the interpolator to data points.

        Args:
            times: Array of year fractions (strictly increasing)
            values: Array of zero rates
        """
        times = np.asarray(times, dtype=np.float64)
        values = np.asarray(values, dtype=np.float64)
        if len(times) != len(values):
            raise ValueError("Times and values must have same length")
        if len(times) < 1:
            raise ValueError("Need at least 1 point for interpolation")
        if np.any(np.diff(times) <= 0):
            raise ValueError("Times must be strictly increasing")
        self.times = times
        self.values = values
        self._fit()

    def _fit(self) -> None:
        pass

    def _check_fitted(self) -> None:
        if self.times is None:
            raise RuntimeError("Interpolator not fitted")

    def _bracket(self, t: float) -> int:
        idx = np.searchsorted(self.times, t, side='right') - 1
        return int(max(0, min(idx, len(self.times) - 2)))

    @abstractmethod
    def interpolate(self, t: float) -> float:
        """
        Interpolate at a single point.

        Args:
            t: Year fraction

        Returns:
            Interpolated zero rate
        """
        pass

    def __call__(self, t: float) -> float:
        """Convenience method to call interpolate."""
        return self.interpolate(t)

    @abstractmethod
    def derivative(self, t: float) -> float:
        """
        Return the first derivative in t at point t.

        Useful for computing instantaneous forward rates.
        """
        pass

    def node_weights(self, t: float) -> np.ndarray:
        """
        Derivative of the interpolated value at t with respect to each node value.

        The default refits on unit vectors; subclasses with a local closed
        form override it.
        """
        self._check_fitted()
        n = len(self.times)
        weights = np.zeros(n)
        for i in range(n):
            unit = np.zeros(n)
            unit[i] = 1.0
            probe = type(self)()
            probe.fit(self.times, unit)
            weights[i] = probe.interpolate(t)
        return weights


class LinearInterpolator(Interpolator):
    """
    Linear interpolation.

    Simple linear interpolation between knot points.
    Extrapolates flat beyond boundaries.
    """

    def interpolate(self, t: float) -> float:
        """Linear interpolation with flat extrapolation."""
        self._check_fitted()

        if t <= self.times[0] or len(self.times) == 1:
            return float(self.values[0])
        if t >= self.times[-1]:
            return float(self.values[-1])

        idx = self._bracket(t)
        t0, t1 = self.times[idx], self.times[idx + 1]
        v0, v1 = self.values[idx], self.values[idx + 1]

        w = (t - t0) / (t1 - t0)
        return float(v0 + w * (v1 - v0))

    def derivative(self, t: float) -> float:
        """Derivative of linear interpolation (piecewise constant)."""
        self._check_fitted()

        if len(self.times) == 1 or t <= self.times[0] or t >= self.times[-1]:
            return 0.0

        idx = self._bracket(t)
        t0, t1 = self.times[idx], self.times[idx + 1]
        v0, v1 = self.values[idx], self.values[idx + 1]
        return float((v1 - v0) / (t1 - t0))

    def node_weights(self, t: float) -> np.ndarray:
        self._check_fitted()
        weights = np.zeros(len(self.times))
        if t <= self.times[0] or len(self.times) == 1:
            weights[0] = 1.0
            return weights
        if t >= self.times[-1]:
            weights[-1] = 1.0
            return weights
        idx = self._bracket(t)
        w = (t - self.times[idx]) / (self.times[idx + 1] - self.times[idx])
        weights[idx] = 1.0 - w
        weights[idx + 1] = w
        return weights


class CubicSplineInterpolator(Interpolator):
    """
    Cubic spline interpolation.

    Uses natural cubic splines (second derivative = 0 at boundaries).
    Provides smooth first and second derivatives.
    """

    def __init__(self):
        super().__init__()
        self.coefficients: Optional[np.ndarray] = None  # Shape: (n-1, 4) for [a, b, c, d]

    def _fit(self) -> None:
        """
        Fit natural cubic spline.

        Solves tridiagonal system for second derivatives,
        then computes polynomial coefficients for each interval.
        """
        n = len(self.times)
        if n == 1:
            self.coefficients = np.array([[self.values[0], 0.0, 0.0, 0.0]])
            return
        if n == 2:
            # Degenerate to linear
            h = self.times[1] - self.times[0]
            slope = (self.values[1] - self.values[0]) / h
            self.coefficients = np.array([[self.values[0], slope, 0.0, 0.0]])
            return

        h = np.diff(self.times)

        # Natural spline: M[0] = M[n-1] = 0
        A = np.zeros((n, n))
        b = np.zeros(n)
        A[0, 0] = 1.0
        A[n-1, n-1] = 1.0

        for i in range(1, n-1):
            A[i, i-1] = h[i-1]
            A[i, i] = 2 * (h[i-1] + h[i])
            A[i, i+1] = h[i]
            b[i] = 6 * ((self.values[i+1] - self.values[i]) / h[i] -
                        (self.values[i] - self.values[i-1]) / h[i-1])

        M = np.linalg.solve(A, b)

        # S_i(x) = a_i + b_i*(x-x_i) + c_i*(x-x_i)^2 + d_i*(x-x_i)^3
        self.coefficients = np.zeros((n-1, 4))
        for i in range(n-1):
            self.coefficients[i, 0] = self.values[i]
            self.coefficients[i, 1] = (self.values[i+1] - self.values[i]) / h[i] - h[i] * (M[i+1] + 2*M[i]) / 6
            self.coefficients[i, 2] = M[i] / 2
            self.coefficients[i, 3] = (M[i+1] - M[i]) / (6 * h[i])

    def _segment(self, t: float):
        idx = max(0, min(self._bracket(t), len(self.coefficients) - 1))
        return t - self.times[idx], self.coefficients[idx]

    def interpolate(self, t: float) -> float:
        """Evaluate cubic spline at point t."""
        self._check_fitted()

        if t <= self.times[0] or len(self.times) == 1:
            return float(self.values[0])
        if t >= self.times[-1]:
            return float(self.values[-1])

        dx, (a, b, c, d) = self._segment(t)
        return float(a + b*dx + c*dx**2 + d*dx**3)

    def derivative(self, t: float) -> float:
        """First derivative of cubic spline at point t."""
        self._check_fitted()

        if len(self.times) == 1 or t <= self.times[0] or t >= self.times[-1]:
            return 0.0

        dx, (_, b, c, d) = self._segment(t)
        return float(b + 2*c*dx + 3*d*dx**2)


class LogLinearInterpolator(Interpolator):
    """
    Linear interpolation of r(t) * t.

    Equivalent to log-linear interpolation of discount factors, giving
    piecewise constant forward rates. Left of the first node the zero rate
    is flat; right of the last node the last forward rate continues.
    """

    def _fit(self) -> None:
        self.rt = self.times * self.values

    def _right_slope(self) -> float:
        if len(self.times) == 1:
            return float(self.values[0])
        return float((self.rt[-1] - self.rt[-2]) / (self.times[-1] - self.times[-2]))

    def interpolate(self, t: float) -> float:
        self._check_fitted()

        if t <= self.times[0]:
            return float(self.values[0])
        if t >= self.times[-1]:
            rt = self.rt[-1] + self._right_slope() * (t - self.times[-1])
            return float(rt / t)

        idx = self._bracket(t)
        t0, t1 = self.times[idx], self.times[idx + 1]
        w = (t - t0) / (t1 - t0)
        rt = self.rt[idx] + w * (self.rt[idx + 1] - self.rt[idx])
        return float(rt / t)

    def forward(self, t: float) -> float:
        """Instantaneous forward rate d(r t)/dt at t."""
        self._check_fitted()

        if t <= self.times[0]:
            return float(self.values[0])
        if t >= self.times[-1]:
            return self._right_slope()
        idx = self._bracket(t)
        return float((self.rt[idx + 1] - self.rt[idx]) / (self.times[idx + 1] - self.times[idx]))

    def derivative(self, t: float) -> float:
        """dz/dt = (f(t) - z(t)) / t."""
        self._check_fitted()

        if t <= self.times[0]:
            return 0.0
        return float((self.forward(t) - self.interpolate(t)) / t)

    def node_weights(self, t: float) -> np.ndarray:
        self._check_fitted()
        n = len(self.times)
        weights = np.zeros(n)
        if t <= self.times[0] or n == 1:
            weights[0] = 1.0
            return weights
        if t >= self.times[-1]:
            s = (t - self.times[-1]) / (self.times[-1] - self.times[-2])
            weights[-1] = self.times[-1] * (1.0 + s) / t
            weights[-2] = -self.times[-2] * s / t
            return weights
        idx = self._bracket(t)
        t0, t1 = self.times[idx], self.times[idx + 1]
        w = (t - t0) / (t1 - t0)
        weights[idx] = t0 * (1.0 - w) / t
        weights[idx + 1] = t1 * w / t
        return weights


def create_interpolator(method: str) -> Interpolator:
    """
    Factory function to create an interpolator by name.

    Args:
        method: One of "linear", "cubic_spline", "log_linear"

    Returns:
        Interpolator instance
    """
    method = method.lower().replace("-", "_").replace(" ", "_")

    if method in ("linear", "lin"):
        return LinearInterpolator()
    elif method in ("cubic_spline", "cubic", "spline"):
        return CubicSplineInterpolator()
    elif method in ("log_linear", "loglinear", "product_linear"):
        return LogLinearInterpolator()
    else:
        raise ValueError(f"Unknown interpolation method: {method}")


__all__ = [
    "Interpolator",
    "LinearInterpolator",
    "CubicSplineInterpolator",
    "LogLinearInterpolator",
    "create_interpolator",
]
