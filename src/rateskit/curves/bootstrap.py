"""
Curve bootstrapping engine.

Implements sequential bootstrap for ISDA yield and credit curves:
1. Check that instrument maturities are strictly increasing
2. Solve one node per instrument, holding earlier nodes fixed
3. Apply the arbitrage policy to each new forward
4. Verify repricing and compute the calibration Jacobian

Money-market nodes are solved in closed form; swap and CDS nodes are
solved with scipy's brentq under an iteration bound. Any failure raises
CalibrationError and no partial curve is returned.

The yield curve is anchored at the valuation date. Instruments start at
spot and are priced through ratios P(t) / P(spot), so the short end
before the first node carries the flat zero rate of that node.
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple
import logging
import math

import numpy as np
from scipy.optimize import brentq

from ..config import settings
from ..conventions import CdsConvention, DayCount, IsdaYieldCurveConvention, year_fraction
from ..exceptions import CalibrationError
from ..sensitivity import CurrencyParameterSensitivity
from .curve import CreditCurve, Curve
from .instruments import (
    CdsInstrument,
    CurveInstrument,
    IsdaSwapInstrument,
    MoneyMarketInstrument,
    instrument_from_tag,
)
from .isda_model import CURVE_DAY_COUNT, IsdaCdsModel

logger = logging.getLogger(__name__)

JACOBIAN_SHIFT = 1e-7


class ArbitrageHandling(Enum):
    """What to do when a bootstrapped forward rate or hazard rate is negative."""
    IGNORE = "Ignore"
    FAIL = "Fail"
    ZERO_CLAMP = "ZeroClamp"

    @classmethod
    def from_string(cls, s: str) -> "ArbitrageHandling":
        key = s.upper().replace("-", "_").replace(" ", "_")
        for member in cls:
            if key in (member.name, member.value.upper()):
                return member
        raise ValueError(f"Unknown arbitrage handling: {s}")


@dataclass
class BootstrapResult:
    """
    Result of curve bootstrap.

    Attributes:
        curve: Calibrated curve
        repricing_errors: Par rate minus quote, by instrument label
        jacobian: d node / d quote, rows are nodes and columns quotes
        instrument_labels: Labels of the quotes, in node order
        message: Summary of the calibration
    """
    curve: Curve
    repricing_errors: Dict[str, float]
    jacobian: np.ndarray
    instrument_labels: Tuple[str, ...]
    message: str = "Bootstrap successful"

    @property
    def max_repricing_error(self) -> float:
        if not self.repricing_errors:
            return 0.0
        return max(abs(e) for e in self.repricing_errors.values())

    def market_quote_sensitivity(
        self,
        parameter_sensitivity: CurrencyParameterSensitivity
    ) -> CurrencyParameterSensitivity:
        """
        Chain node sensitivities through the Jacobian to quote sensitivities.

        Args:
            parameter_sensitivity: dV / d node for this curve

        Returns:
            dV / d quote labelled by instrument
        """
        if parameter_sensitivity.market_data_name != self.curve.name:
            raise ValueError(
                f"Sensitivity to {parameter_sensitivity.market_data_name} "
                f"does not belong to curve {self.curve.name}"
            )
        values = parameter_sensitivity.sensitivity @ self.jacobian
        return CurrencyParameterSensitivity(
            self.curve.name, parameter_sensitivity.currency, self.instrument_labels, values
        )


def _solve_node(
    objective: Callable[[float], float],
    guess: float,
    label: str,
    max_iterations: int,
    tolerance: float
) -> float:
    """
    Find the node value zeroing objective with brentq.

    The bracket starts around the guess and widens a few times before
    giving up.
    """
    lo, hi = guess - 0.05, guess + 0.05
    f_lo, f_hi = objective(lo), objective(hi)
    width = 0.05
    expansions = 0
    while f_lo * f_hi > 0:
        if expansions >= 8:
            raise CalibrationError(
                f"Could not bracket a root for {label} in [{lo:.4f}, {hi:.4f}]", instrument=label
            )
        width *= 2.0
        lo, hi = guess - width, guess + width
        f_lo, f_hi = objective(lo), objective(hi)
        expansions += 1

    if f_lo == 0.0:
        return lo
    if f_hi == 0.0:
        return hi

    root, result = brentq(
        objective, lo, hi, xtol=tolerance, maxiter=max_iterations, full_output=True, disp=False
    )
    if not result.converged:
        raise CalibrationError(
            f"Root finding for {label} did not converge in {max_iterations} iterations "
            f"({result.flag})",
            instrument=label,
        )
    logger.debug("Solved %s in %d iterations", label, result.iterations)
    return float(root)


def _solver_bounds(max_iterations: Optional[int], tolerance: Optional[float]) -> Tuple[int, float]:
    """Explicit solver bounds, falling back to the settings when omitted."""
    max_iterations = max_iterations if max_iterations is not None else settings.solver_max_iterations
    tolerance = tolerance if tolerance is not None else settings.solver_tolerance
    if max_iterations < 1:
        raise ValueError(f"max_iterations must be at least 1, got {max_iterations}")
    if tolerance <= 0:
        raise ValueError(f"tolerance must be positive, got {tolerance}")
    return max_iterations, tolerance


def _check_increasing(maturities: Sequence[date], labels: Sequence[str]) -> None:
    for i in range(1, len(maturities)):
        if maturities[i] <= maturities[i - 1]:
            raise CalibrationError(
                f"Instrument maturities must be strictly increasing: {labels[i]} matures on "
                f"{maturities[i]}, not after {labels[i - 1]} on {maturities[i - 1]}",
                instrument=labels[i],
            )


def _apply_arbitrage_policy(
    policy: ArbitrageHandling,
    prev_time: float,
    prev_value: float,
    time: float,
    value: float,
    label: str,
    what: str
) -> float:
    forward = (value * time - prev_value * prev_time) / (time - prev_time)
    if forward >= 0.0 or policy == ArbitrageHandling.IGNORE:
        return value
    if policy == ArbitrageHandling.FAIL:
        raise CalibrationError(
            f"Negative forward {what} {forward:.6e} ending at {label}", instrument=label
        )
    logger.warning("Clamping negative forward %s %.6e at %s to zero", what, forward, label)
    return prev_value * prev_time / time


def _jacobian(
    par_rate: Callable[[Curve, int], float],
    curve: Curve
) -> np.ndarray:
    """Inverse of d par_rate / d node by central differences."""
    n = curve.node_count
    rates = curve.get_node_rates()
    d = np.zeros((n, n))
    for j in range(n):
        up = curve.with_parameter(j, float(rates[j]) + JACOBIAN_SHIFT)
        down = curve.with_parameter(j, float(rates[j]) - JACOBIAN_SHIFT)
        for i in range(n):
            d[i, j] = (par_rate(up, i) - par_rate(down, i)) / (2 * JACOBIAN_SHIFT)
    try:
        return np.linalg.inv(d)
    except np.linalg.LinAlgError as e:
        raise CalibrationError(f"Calibration Jacobian is singular for {curve.name}: {e}") from e


class IsdaYieldCurveCalibrator:
    """
    Bootstrap an ISDA yield curve from money-market and swap par rates.

    The curve interpolates linearly in r(t) * t with ACT/365F node times.
    The swap branch only uses the fixed leg: the floating leg is assumed
    to price at par, which is part of the ISDA model.

    Attributes:
        max_iterations: brentq iteration bound per node
        tolerance: brentq xtol per node
        arbitrage_handling: Policy for negative forward rates
        interpolation_method: Node interpolation
        curve_day_count: Day count for node times
    """

    def __init__(
        self,
        max_iterations: Optional[int] = None,
        tolerance: Optional[float] = None,
        arbitrage_handling: ArbitrageHandling = ArbitrageHandling.IGNORE,
        interpolation_method: str = "log_linear",
        curve_day_count: DayCount = CURVE_DAY_COUNT
    ):
        self.max_iterations, self.tolerance = _solver_bounds(max_iterations, tolerance)
        self.arbitrage_handling = arbitrage_handling
        self.interpolation_method = interpolation_method
        self.curve_day_count = curve_day_count

    def calibrate(
        self,
        valuation_date: date,
        instruments: Sequence[CurveInstrument],
        convention: IsdaYieldCurveConvention,
        name: Optional[str] = None
    ) -> BootstrapResult:
        """
        Bootstrap the curve.

        Args:
            valuation_date: Curve anchor date
            instruments: Money-market and swap instruments in maturity order
            convention: Instrument conventions
            name: Curve name (default "<CCY>-ISDA")

        Returns:
            BootstrapResult with curve, repricing errors and Jacobian

        Raises:
            CalibrationError: On ordering, arbitrage or convergence failure
        """
        if not instruments:
            raise CalibrationError("No instruments provided")
        for inst in instruments:
            if not isinstance(inst, (MoneyMarketInstrument, IsdaSwapInstrument)):
                raise CalibrationError(
                    f"Unexpected instrument type {inst.instrument_type or type(inst).__name__}, "
                    f"only MoneyMarket and Swap supported",
                    instrument=inst.label,
                )

        name = name or f"{convention.currency}-ISDA"
        labels = [inst.label for inst in instruments]
        maturities = [inst.maturity_date(valuation_date, convention) for inst in instruments]
        _check_increasing(maturities, labels)

        spot = convention.spot_date(valuation_date)
        spot_time = year_fraction(valuation_date, spot, self.curve_day_count)
        times = [year_fraction(valuation_date, m, self.curve_day_count) for m in maturities]
        if times[0] <= spot_time:
            raise CalibrationError(
                f"{labels[0]} matures on {maturities[0]}, not after spot {spot}", instrument=labels[0]
            )

        def make_curve(ts, zs, ls) -> Curve:
            return Curve(
                valuation_date, ts, zs, name=name, currency=convention.currency,
                day_count=self.curve_day_count, interpolation_method=self.interpolation_method,
                labels=ls,
            )

        node_times: List[float] = []
        node_rates: List[float] = []
        curve: Optional[Curve] = None

        for k, inst in enumerate(instruments):
            t_k = times[k]
            label = labels[k]

            if isinstance(inst, MoneyMarketInstrument):
                growth = 1.0 + inst.quote * inst.accrual_fraction(valuation_date, convention)
                if growth <= 0:
                    raise CalibrationError(f"Money-market quote {inst.quote} gives a non-positive growth factor",
                                           instrument=label)
                if curve is None:
                    z = math.log(growth) / (t_k - spot_time)
                else:
                    z = (math.log(growth) - math.log(curve.discount_factor(spot))) / t_k
            else:
                base_times, base_rates, base_labels = list(node_times), list(node_rates), list(tenor_labels(instruments[:k]))

                def objective(z_new: float) -> float:
                    trial = make_curve(base_times + [t_k], base_rates + [z_new], base_labels + [inst.tenor])
                    return inst.pricing_error(trial, valuation_date, convention)

                guess = node_rates[-1] if node_rates else inst.quote
                z = _solve_node(objective, guess, label, self.max_iterations, self.tolerance)

            prev_time = node_times[-1] if node_times else 0.0
            prev_rate = node_rates[-1] if node_rates else 0.0
            z = _apply_arbitrage_policy(
                self.arbitrage_handling, prev_time, prev_rate, t_k, z, label, "rate"
            )
            logger.debug("Node %s: t=%.6f z=%.10f", label, t_k, z)

            node_times.append(t_k)
            node_rates.append(z)
            curve = make_curve(node_times, node_rates, tenor_labels(instruments[:k + 1]))

        errors = {
            label: inst.pricing_error(curve, valuation_date, convention)
            for label, inst in zip(labels, instruments)
        }
        jacobian = _jacobian(
            lambda c, i: instruments[i].par_rate(c, valuation_date, convention), curve
        )
        logger.info("Calibrated %s with %d nodes, max repricing error %.2e",
                    name, curve.node_count, max(abs(e) for e in errors.values()))
        return BootstrapResult(curve, errors, jacobian, tuple(labels))


class IsdaCreditCurveCalibrator:
    """
    Bootstrap an ISDA credit curve from CDS par spreads.

    Each standard CDS adds a hazard node at its protection end. The node is
    solved so that the clean PV at the quoted spread is zero, with the yield
    curve held fixed.

    Attributes:
        max_iterations: brentq iteration bound per node
        tolerance: brentq xtol per node
        arbitrage_handling: Policy for negative forward hazard rates
        protect_start: Protection from the start of the day
    """

    def __init__(
        self,
        max_iterations: Optional[int] = None,
        tolerance: Optional[float] = None,
        arbitrage_handling: Optional[ArbitrageHandling] = None,
        protect_start: bool = True
    ):
        self.max_iterations, self.tolerance = _solver_bounds(max_iterations, tolerance)
        self.arbitrage_handling = (
            arbitrage_handling
            if arbitrage_handling is not None
            else ArbitrageHandling.from_string(settings.credit_arbitrage_handling)
        )
        self.protect_start = protect_start
        self.model = IsdaCdsModel()

    def calibrate(
        self,
        valuation_date: date,
        instruments: Sequence[CdsInstrument],
        yield_curve: Curve,
        recovery_rate: float,
        convention: CdsConvention,
        name: Optional[str] = None
    ) -> BootstrapResult:
        """
        Bootstrap the credit curve.

        Args:
            valuation_date: Trade date of the calibrating CDSs
            instruments: CDS instruments in maturity order
            yield_curve: Calibrated discount curve
            recovery_rate: Recovery rate of the reference entity
            convention: Standard CDS convention
            name: Curve name (default "<CCY>-CREDIT")

        Returns:
            BootstrapResult holding a CreditCurve

        Raises:
            CalibrationError: On ordering, arbitrage or convergence failure
        """
        if not instruments:
            raise CalibrationError("No instruments provided")
        for inst in instruments:
            if not isinstance(inst, CdsInstrument):
                raise CalibrationError(
                    f"Unexpected instrument type {inst.instrument_type}, only Cds supported",
                    instrument=inst.label,
                )

        name = name or f"{convention.currency}-CREDIT"
        labels = [inst.label for inst in instruments]
        maturities = [inst.maturity_date(valuation_date, convention) for inst in instruments]
        _check_increasing(maturities, labels)

        analytics = [
            inst.analytic(valuation_date, convention, recovery_rate, self.protect_start)
            for inst in instruments
        ]
        times = [cds.protection_end for cds in analytics]
        if times[0] <= 0:
            raise CalibrationError(f"{labels[0]} has already expired", instrument=labels[0])

        def make_curve(ts, hs, ls) -> CreditCurve:
            return CreditCurve(valuation_date, ts, hs, name=name, currency=convention.currency, labels=ls)

        node_times: List[float] = []
        node_hazards: List[float] = []
        curve: Optional[CreditCurve] = None

        for k, (inst, cds) in enumerate(zip(instruments, analytics)):
            t_k = times[k]
            label = labels[k]
            base_times, base_hazards = list(node_times), list(node_hazards)
            base_labels = list(tenor_labels(instruments[:k]))

            def objective(h: float) -> float:
                trial = make_curve(base_times + [t_k], base_hazards + [h], base_labels + [inst.tenor])
                return self.model.pv(cds, yield_curve, trial, inst.quote, clean=True)

            guess = node_hazards[-1] if node_hazards else inst.quote / cds.lgd
            h = _solve_node(objective, guess, label, self.max_iterations, self.tolerance)

            prev_time = node_times[-1] if node_times else 0.0
            prev_hazard = node_hazards[-1] if node_hazards else 0.0
            h = _apply_arbitrage_policy(
                self.arbitrage_handling, prev_time, prev_hazard, t_k, h, label, "hazard rate"
            )
            logger.debug("Node %s: t=%.6f h=%.10f", label, t_k, h)

            node_times.append(t_k)
            node_hazards.append(h)
            curve = make_curve(node_times, node_hazards, tenor_labels(instruments[:k + 1]))

        def par_spread(c: Curve, i: int) -> float:
            return self.model.par_spread(analytics[i], yield_curve, c)

        errors = {label: par_spread(curve, i) - inst.quote
                  for i, (label, inst) in enumerate(zip(labels, instruments))}
        jacobian = _jacobian(par_spread, curve)
        logger.info("Calibrated %s with %d nodes, max repricing error %.2e",
                    name, curve.node_count, max(abs(e) for e in errors.values()))
        return BootstrapResult(curve, errors, jacobian, tuple(labels))


def tenor_labels(instruments: Sequence[CurveInstrument]) -> List[str]:
    return [inst.tenor for inst in instruments]


def bootstrap_from_quotes(
    valuation_date: date,
    quotes: List[Dict],
    convention: Optional[IsdaYieldCurveConvention] = None,
    name: Optional[str] = None
) -> Curve:
    """
    Convenience function to bootstrap an ISDA yield curve from quote dictionaries.

    Args:
        valuation_date: Valuation date
        quotes: List of dicts with keys instrument_type, tenor, quote
        convention: Instrument conventions (default USD ISDA)
        name: Curve name

    Returns:
        Bootstrapped curve

    Example quote format:
        {"instrument_type": "MoneyMarket", "tenor": "3M", "quote": 0.0025}
        {"instrument_type": "Swap", "tenor": "5Y", "quote": 0.0150}
    """
    instruments = [
        instrument_from_tag(q["instrument_type"], q["tenor"], q["quote"]) for q in quotes
    ]
    result = IsdaYieldCurveCalibrator().calibrate(
        valuation_date, instruments, convention or IsdaYieldCurveConvention.usd_isda(), name
    )
    return result.curve


__all__ = [
    "ArbitrageHandling",
    "BootstrapResult",
    "IsdaYieldCurveCalibrator",
    "IsdaCreditCurveCalibrator",
    "bootstrap_from_quotes",
]
