"""
Ibor cap/floor volatilities.

Volatilities on an expiry by strike grid, interpolated bilinearly with
flat extrapolation. Two families exist:
- BlackIborCapFloorVolatilities: shifted lognormal (Black) volatilities
- NormalIborCapFloorVolatilities: normal (Bachelier) volatilities

The family is part of the type. with_parameter and with_perturbation keep
it, and pricers check it through volatility_type before choosing a
formula.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import date
from typing import Callable, List

import numpy as np

from ..conventions import DayCount, year_fraction
from ..exceptions import ModelMismatchError
from ..sensitivity import (
    CurrencyParameterSensitivities,
    CurrencyParameterSensitivity,
    IborCapFloorSensitivity,
    PointSensitivities,
)
from .grid import VolatilityType, bilinear, bilinear_weights, check_axis, check_grid


@dataclass(frozen=True, eq=False)
class IborCapFloorVolatilities(ABC):
    """
    Caplet volatilities for one Ibor index.

    Attributes:
        name: Surface name
        index: Ibor index name
        currency: Currency of the index
        valuation_date: Date the expiry times are measured from
        expiries: Expiry axis in years
        strikes: Strike axis
        volatilities: Grid of shape (expiries, strikes)
        day_count: Day count for expiry times
    """
    name: str
    index: str
    currency: str
    valuation_date: date
    expiries: np.ndarray
    strikes: np.ndarray
    volatilities: np.ndarray
    day_count: DayCount = DayCount.ACT_365F

    def __post_init__(self):
        expiries = check_axis("expiries", self.expiries)
        strikes = check_axis("strikes", self.strikes)
        object.__setattr__(self, "expiries", expiries)
        object.__setattr__(self, "strikes", strikes)
        vols = check_grid("volatilities", self.volatilities, (len(expiries), len(strikes)))
        if np.any(vols < 0):
            raise ValueError("volatilities must be non-negative")
        object.__setattr__(self, "volatilities", vols)

    @property
    @abstractmethod
    def volatility_type(self) -> VolatilityType:
        """Black or normal, fixed by the subclass."""

    @property
    def parameter_count(self) -> int:
        return self.volatilities.size

    def relative_time(self, d: date) -> float:
        return year_fraction(self.valuation_date, d, self.day_count)

    def volatility(self, expiry: float, strike: float, forward: float) -> float:
        return bilinear(self.expiries, self.strikes, self.volatilities, expiry, strike)

    def parameter_value(self, index: int) -> float:
        return float(self.volatilities.ravel()[index])

    def with_parameter(self, index: int, value: float):
        if not 0 <= index < self.parameter_count:
            raise IndexError(f"Parameter index {index} out of range 0..{self.parameter_count - 1}")
        return self.with_perturbation(lambda i, v: value if i == index else v)

    def with_perturbation(self, fn: Callable[[int, float], float]):
        """New surface of the same family with each node replaced by fn(index, value)."""
        values = [fn(i, float(v)) for i, v in enumerate(self.volatilities.ravel())]
        return replace(self, volatilities=np.array(values).reshape(self.volatilities.shape))

    def node_labels(self) -> List[str]:
        return [f"{e:g}Yx{k:g}" for e in self.expiries for k in self.strikes]

    def parameter_sensitivity(self, points: PointSensitivities) -> CurrencyParameterSensitivities:
        """Map vega points of this index onto the volatility grid."""
        labels = self.node_labels()
        result = CurrencyParameterSensitivities.empty()
        for point in points:
            if not isinstance(point, IborCapFloorSensitivity) or point.index != self.index:
                continue
            weights = bilinear_weights(self.expiries, self.strikes, point.expiry, point.strike)
            result = result.plus(CurrencyParameterSensitivity(
                self.name, point.currency, labels, point.sensitivity * weights.ravel()
            ))
        return result


@dataclass(frozen=True, eq=False)
class BlackIborCapFloorVolatilities(IborCapFloorVolatilities):
    """Black volatilities of the rate shifted by shift."""
    shift: float = 0.0

    @property
    def volatility_type(self) -> VolatilityType:
        return VolatilityType.BLACK


@dataclass(frozen=True, eq=False)
class NormalIborCapFloorVolatilities(IborCapFloorVolatilities):
    """Normal (Bachelier) volatilities."""

    @property
    def volatility_type(self) -> VolatilityType:
        return VolatilityType.NORMAL


def flat_capfloor_volatilities(
    volatility_type: VolatilityType,
    name: str,
    index: str,
    currency: str,
    valuation_date: date,
    volatility: float,
    shift: float = 0.0
) -> IborCapFloorVolatilities:
    """Single-node surface of the requested family."""
    if volatility_type == VolatilityType.BLACK:
        return BlackIborCapFloorVolatilities(
            name, index, currency, valuation_date, [1.0], [0.0], [[volatility]], shift=shift
        )
    if volatility_type == VolatilityType.NORMAL:
        if shift != 0.0:
            raise ModelMismatchError("Normal volatilities do not take a shift")
        return NormalIborCapFloorVolatilities(
            name, index, currency, valuation_date, [1.0], [0.0], [[volatility]]
        )
    raise ModelMismatchError(f"{volatility_type.name} is not a cap/floor volatility family")


__all__ = [
    "IborCapFloorVolatilities",
    "BlackIborCapFloorVolatilities",
    "NormalIborCapFloorVolatilities",
    "flat_capfloor_volatilities",
]
