"""
Market state abstraction layer.

MarketState is the single source of market data for pricing:
- Discount curves by currency
- Forward curves by Ibor index name
- Credit curves and recovery rates by reference entity
- Swaption and cap/floor volatilities by index name
- Historic fixings as pandas time series
- FX rates

It is built once per valuation date and shared read-only by every pricing
call. Scenario variants (bumped curves, perturbed volatilities) are new
instances made with the with_* methods.

Point sensitivities produced by pricers refer to market data by name;
parameter_sensitivity maps them back onto curve nodes and surface grid
points.
"""

from dataclasses import dataclass, field, replace
from datetime import date
from typing import Dict, Iterable, Mapping, Optional, Sequence
import logging

import pandas as pd

from .currency import FxMatrix
from .curves.curve import CreditCurve, Curve
from .curves.bootstrap import BootstrapResult
from .curves.curve_group import CurveGroupEntry
from .conventions import year_fraction
from .indices import IborIndex
from .sensitivity import (
    CreditCurveZeroRateSensitivity,
    CurrencyParameterSensitivities,
    IborCapFloorSensitivity,
    MutablePointSensitivities,
    PointSensitivities,
    SwaptionSabrSensitivity,
    ZeroRateSensitivity,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class MarketState:
    """
    Combined market state: curves, volatilities, fixings and FX.

    Attributes:
        valuation_date: Market valuation date
        discount_curves: Discount curve per currency
        forward_curves: Forward curve per Ibor index name
        credit_curves: Credit curve per reference entity
        recovery_rates: Recovery rate per reference entity
        swaption_volatilities: Swaption volatilities per swap index name
        capfloor_volatilities: Cap/floor volatilities per Ibor index name
        fixings: Historic fixings per index name (date-indexed Series)
        fx_matrix: FX rates
        metadata: Additional market metadata
    """
    valuation_date: date
    discount_curves: Mapping[str, Curve] = field(default_factory=dict)
    forward_curves: Mapping[str, Curve] = field(default_factory=dict)
    credit_curves: Mapping[str, CreditCurve] = field(default_factory=dict)
    recovery_rates: Mapping[str, float] = field(default_factory=dict)
    swaption_volatilities: Mapping[str, object] = field(default_factory=dict)
    capfloor_volatilities: Mapping[str, object] = field(default_factory=dict)
    fixings: Mapping[str, pd.Series] = field(default_factory=dict)
    fx_matrix: FxMatrix = field(default_factory=FxMatrix.empty)
    metadata: Dict = field(default_factory=dict)

    # ------------------------------------------------------------------
    # Curves

    def discount_curve(self, currency: str) -> Curve:
        try:
            return self.discount_curves[currency]
        except KeyError:
            raise ValueError(f"Unable to find discount curve for {currency}") from None

    def forward_curve(self, index: IborIndex) -> Curve:
        try:
            return self.forward_curves[index.name]
        except KeyError:
            raise ValueError(f"Unable to find forward curve for {index.name}") from None

    def credit_curve(self, reference: str) -> CreditCurve:
        try:
            return self.credit_curves[reference]
        except KeyError:
            raise ValueError(f"Unable to find credit curve for {reference}") from None

    def recovery_rate(self, reference: str) -> float:
        try:
            return self.recovery_rates[reference]
        except KeyError:
            raise ValueError(f"Unable to find recovery rate for {reference}") from None

    def discount_factor(self, currency: str, d: date) -> float:
        """Discount factor to d; 1 on or before the valuation date."""
        return self.discount_curve(currency).discount_factor(d)

    def discount_factor_point_sensitivity(self, currency: str, d: date) -> ZeroRateSensitivity:
        """Sensitivity of the discount factor to d with respect to the zero rate at d."""
        return self.discount_curve(currency).zero_rate_point_sensitivity(d, currency)

    # ------------------------------------------------------------------
    # Fixings and forecasts

    def time_series(self, index_name: str) -> pd.Series:
        return self.fixings.get(index_name, pd.Series(dtype=float, index=pd.DatetimeIndex([])))

    def fixing(self, index_name: str, fixing_date: date) -> Optional[float]:
        """Observed fixing on fixing_date, or None."""
        series = self.time_series(index_name)
        key = pd.Timestamp(fixing_date)
        if key in series.index:
            return float(series.loc[key])
        return None

    def is_fixed(self, index_name: str, fixing_date: date) -> bool:
        """
        Whether a rate is taken from fixings rather than forecast.

        Fixings before the valuation date must exist; a fixing on the
        valuation date is used when available.

        Raises:
            ValueError: If a past fixing is missing
        """
        if fixing_date > self.valuation_date:
            return False
        if self.fixing(index_name, fixing_date) is not None:
            return True
        if fixing_date < self.valuation_date:
            raise ValueError(f"Unable to get fixing for {index_name} on date {fixing_date}")
        return False

    def ibor_rate(self, index: IborIndex, fixing_date: date) -> float:
        """Fixed or forecast Ibor rate for a fixing date."""
        if self.is_fixed(index.name, fixing_date):
            return self.fixing(index.name, fixing_date)
        curve = self.forward_curve(index)
        start = index.effective_date(fixing_date)
        end = index.maturity_date(fixing_date)
        tau = year_fraction(start, end, index.day_count)
        return (curve.discount_factor(start) / curve.discount_factor(end) - 1.0) / tau

    def ibor_rate_point_sensitivity(self, index: IborIndex, fixing_date: date) -> MutablePointSensitivities:
        """
        Sensitivity of the forecast Ibor rate to the forward curve.

        Empty once the rate is fixed.
        """
        result = MutablePointSensitivities()
        if self.is_fixed(index.name, fixing_date):
            return result
        curve = self.forward_curve(index)
        start = index.effective_date(fixing_date)
        end = index.maturity_date(fixing_date)
        tau = year_fraction(start, end, index.day_count)
        df_start = curve.discount_factor(start)
        df_end = curve.discount_factor(end)
        result.add(curve.zero_rate_point_sensitivity(start, index.currency).multiplied_by(1.0 / (tau * df_end)))
        result.add(curve.zero_rate_point_sensitivity(end, index.currency).multiplied_by(
            -df_start / (tau * df_end * df_end)
        ))
        return result

    # ------------------------------------------------------------------
    # Volatilities and FX

    def swaption_volatility(self, index_name: str):
        try:
            return self.swaption_volatilities[index_name]
        except KeyError:
            raise ValueError(f"Unable to find swaption volatilities for {index_name}") from None

    def capfloor_volatility(self, index_name: str):
        try:
            return self.capfloor_volatilities[index_name]
        except KeyError:
            raise ValueError(f"Unable to find cap/floor volatilities for {index_name}") from None

    def fx_rate(self, base: str, counter: str) -> float:
        return self.fx_matrix.fx_rate(base, counter)

    # ------------------------------------------------------------------
    # Sensitivity mapping

    def _curves_by_name(self) -> Dict[str, Curve]:
        curves: Dict[str, Curve] = {}
        for group in (self.discount_curves, self.forward_curves, self.credit_curves):
            for curve in group.values():
                curves[curve.name] = curve
        return curves

    def curve_by_name(self, name: str) -> Curve:
        try:
            return self._curves_by_name()[name]
        except KeyError:
            raise ValueError(f"Unable to find curve {name}") from None

    def parameter_sensitivity(self, points: PointSensitivities) -> CurrencyParameterSensitivities:
        """
        Map point sensitivities onto curve nodes and volatility grid points.

        Raises:
            ValueError: If a point refers to a curve not in this market state
        """
        curves = self._curves_by_name()
        result = CurrencyParameterSensitivities.empty()
        vol_points = []
        for point in points:
            if isinstance(point, (ZeroRateSensitivity, CreditCurveZeroRateSensitivity)):
                curve = curves.get(point.curve_name)
                if curve is None:
                    raise ValueError(f"Unable to find curve {point.curve_name}")
                result = result.plus(curve.parameter_sensitivity(point))
            elif isinstance(point, (SwaptionSabrSensitivity, IborCapFloorSensitivity)):
                vol_points.append(point)
        if vol_points:
            vol_sensitivities = PointSensitivities(vol_points)
            for surface in list(self.swaption_volatilities.values()) + list(self.capfloor_volatilities.values()):
                result = result.plus(surface.parameter_sensitivity(vol_sensitivities))
        return result

    # ------------------------------------------------------------------
    # Scenario variants

    def with_discount_curve(self, currency: str, curve: Curve) -> "MarketState":
        return replace(self, discount_curves={**self.discount_curves, currency: curve})

    def with_forward_curve(self, index_name: str, curve: Curve) -> "MarketState":
        return replace(self, forward_curves={**self.forward_curves, index_name: curve})

    def with_credit_curve(self, reference: str, curve: CreditCurve) -> "MarketState":
        return replace(self, credit_curves={**self.credit_curves, reference: curve})

    def with_recovery_rate(self, reference: str, recovery_rate: float) -> "MarketState":
        return replace(self, recovery_rates={**self.recovery_rates, reference: recovery_rate})

    def with_curve(self, name: str, curve: Curve) -> "MarketState":
        """Replace every use of the curve called name, wherever it is keyed."""
        def swap(group):
            return {k: (curve if c.name == name else c) for k, c in group.items()}
        return replace(
            self,
            discount_curves=swap(self.discount_curves),
            forward_curves=swap(self.forward_curves),
            credit_curves=swap(self.credit_curves),
        )

    def with_swaption_volatilities(self, index_name: str, volatilities) -> "MarketState":
        return replace(self, swaption_volatilities={**self.swaption_volatilities, index_name: volatilities})

    def with_capfloor_volatilities(self, index_name: str, volatilities) -> "MarketState":
        return replace(self, capfloor_volatilities={**self.capfloor_volatilities, index_name: volatilities})

    def with_valuation_date(self, valuation_date: date) -> "MarketState":
        return replace(self, valuation_date=valuation_date)

    def to_dict(self) -> Dict:
        """Summary of the market data held."""
        return {
            'valuation_date': self.valuation_date.isoformat(),
            'discount_curves': {k: c.name for k, c in self.discount_curves.items()},
            'forward_curves': {k: c.name for k, c in self.forward_curves.items()},
            'credit_curves': {k: c.name for k, c in self.credit_curves.items()},
            'swaption_volatilities': sorted(self.swaption_volatilities),
            'capfloor_volatilities': sorted(self.capfloor_volatilities),
            'fixings': {k: len(v) for k, v in self.fixings.items()},
            'metadata': self.metadata,
        }

    @classmethod
    def from_curves(
        cls,
        valuation_date: date,
        discount_curves: Mapping[str, Curve],
        forward_curves: Optional[Mapping[str, Curve]] = None,
        fixings: Optional[Mapping[str, pd.Series]] = None,
        fx_matrix: Optional[FxMatrix] = None
    ) -> "MarketState":
        """
        Create MarketState from curves only (no volatilities).

        Args:
            valuation_date: Valuation date
            discount_curves: Discount curve per currency
            forward_curves: Forward curve per index name
            fixings: Historic fixings per index name
            fx_matrix: FX rates

        Returns:
            MarketState with curves only
        """
        return cls(
            valuation_date=valuation_date,
            discount_curves=dict(discount_curves),
            forward_curves=dict(forward_curves or {}),
            fixings=dict(fixings or {}),
            fx_matrix=fx_matrix or FxMatrix.empty(),
        )

    @classmethod
    def from_curve_group(
        cls,
        valuation_date: date,
        entries: Sequence[CurveGroupEntry],
        results: Mapping[str, BootstrapResult],
        fixings: Optional[Mapping[str, pd.Series]] = None,
        fx_matrix: Optional[FxMatrix] = None
    ) -> "MarketState":
        """
        Create MarketState from a calibrated curve group.

        Each entry's curve is installed as the discount curve of its
        currencies and the forward curve of its indices.

        Raises:
            ValueError: If a currency or index is claimed by two curves
        """
        discount: Dict[str, Curve] = {}
        forward: Dict[str, Curve] = {}
        for entry in entries:
            curve = results[entry.curve_name].curve
            for ccy in entry.discount_currencies:
                if ccy in discount:
                    raise ValueError(f"Currency {ccy} is discounted on more than one curve")
                discount[ccy] = curve
            for index_name in entry.index_names:
                if index_name in forward:
                    raise ValueError(f"Index {index_name} is forecast from more than one curve")
                forward[index_name] = curve
        logger.debug("Market state with %d discount and %d forward curves", len(discount), len(forward))
        return cls.from_curves(valuation_date, discount, forward, fixings, fx_matrix)


def fixing_series(fixings: Iterable) -> pd.Series:
    """Build a fixing time series from (date, value) pairs."""
    pairs = list(fixings)
    return pd.Series(
        [float(v) for _, v in pairs],
        index=pd.DatetimeIndex([pd.Timestamp(d) for d, _ in pairs]),
        dtype=float,
    )


__all__ = [
    "MarketState",
    "fixing_series",
]
