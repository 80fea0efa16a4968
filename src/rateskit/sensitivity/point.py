"""
Point sensitivities.

A point sensitivity is one tagged partial derivative of a present value:
the risk factor it refers to (a curve point, a SABR parameter at an
expiry/tenor, a cap/floor volatility point), the currency it is expressed
in and its value.

Point sensitivities are immutable. They are combined into
PointSensitivities (immutable, canonical order) or accumulated in a
MutablePointSensitivities during a single pricing pass. A mutable
accumulator belongs to one pricing call and must not be shared across
threads; merge finished results with PointSensitivities.plus instead.

Ordering:
    compare_key is a total order. Two sensitivities of the same type
    compare by currency first and then by their factor fields; sensitivities
    of different types compare by type name.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from enum import Enum
from functools import cmp_to_key
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from ..currency import FxMatrix


def _cmp(a: Any, b: Any) -> int:
    return (a > b) - (a < b)


class PointSensitivityBuilder(ABC):
    """
    Something that can be turned into point sensitivities.

    Implemented by single PointSensitivity entries and by the mutable
    accumulator so pricers can return either.
    """

    @abstractmethod
    def build_into(self, combination: "MutablePointSensitivities") -> "MutablePointSensitivities":
        """Add this builder's entries to a mutable accumulator and return it."""

    def build(self) -> "PointSensitivities":
        return self.build_into(MutablePointSensitivities()).build()

    def combined_with(self, other: "PointSensitivityBuilder") -> "PointSensitivityBuilder":
        combination = MutablePointSensitivities()
        self.build_into(combination)
        other.build_into(combination)
        return combination

    @abstractmethod
    def with_currency(self, currency: str) -> "PointSensitivityBuilder":
        pass

    @abstractmethod
    def multiplied_by(self, factor: float) -> "PointSensitivityBuilder":
        pass

    @abstractmethod
    def map_sensitivity(self, fn: Callable[[float], float]) -> "PointSensitivityBuilder":
        pass

    @abstractmethod
    def normalize(self) -> "PointSensitivityBuilder":
        pass

    @abstractmethod
    def cloned(self) -> "PointSensitivityBuilder":
        pass


class PointSensitivity(PointSensitivityBuilder):
    """
    Base for a single immutable sensitivity entry.

    Subclasses are frozen dataclasses with `currency` and `sensitivity`
    fields plus the fields identifying their risk factor.
    """

    currency: str
    sensitivity: float

    @abstractmethod
    def _key(self) -> Tuple:
        """Ordering key: currency first, then the factor fields."""

    def key(self) -> Tuple:
        """Identity of the risk factor, independent of the value."""
        return (type(self).__name__,) + self._key()

    def compare_key(self, other: "PointSensitivity") -> int:
        """
        Compare the risk-factor key of two sensitivities.

        Returns:
            Negative, zero or positive as this key sorts before, equal to or after other
        """
        if type(self) is type(other):
            return _cmp(self._key(), other._key())
        return _cmp(type(self).__name__, type(other).__name__)

    def with_currency(self, currency: str) -> "PointSensitivity":
        if currency == self.currency:
            return self
        return replace(self, currency=currency)

    def with_sensitivity(self, sensitivity: float) -> "PointSensitivity":
        return replace(self, sensitivity=sensitivity)

    def converted_to(self, currency: str, fx: FxMatrix) -> "PointSensitivity":
        """Express in another currency using fx; returns self if unchanged."""
        if currency == self.currency:
            return self
        rate = fx.fx_rate(self.currency, currency)
        return replace(self, currency=currency, sensitivity=self.sensitivity * rate)

    def multiplied_by(self, factor: float) -> "PointSensitivity":
        return replace(self, sensitivity=self.sensitivity * factor)

    def map_sensitivity(self, fn: Callable[[float], float]) -> "PointSensitivity":
        return replace(self, sensitivity=fn(self.sensitivity))

    def normalize(self) -> "PointSensitivity":
        return self

    def cloned(self) -> "PointSensitivity":
        return self

    def build_into(self, combination: "MutablePointSensitivities") -> "MutablePointSensitivities":
        return combination.add(self)

    def describe(self) -> dict:
        """Flat description used for tabular output."""
        return {"type": type(self).__name__, "currency": self.currency, "sensitivity": self.sensitivity}


@dataclass(frozen=True)
class ZeroRateSensitivity(PointSensitivity):
    """
    Sensitivity to the continuously compounded zero rate of a discount or
    forward curve at a year fraction from the curve anchor.
    """
    curve_name: str
    year_fraction: float
    currency: str
    sensitivity: float

    def _key(self) -> Tuple:
        return (self.currency, self.curve_name, self.year_fraction)

    def describe(self) -> dict:
        out = super().describe()
        out.update({"curve": self.curve_name, "year_fraction": self.year_fraction})
        return out


@dataclass(frozen=True)
class CreditCurveZeroRateSensitivity(PointSensitivity):
    """Sensitivity to the integrated hazard rate of a credit curve."""
    curve_name: str
    year_fraction: float
    currency: str
    sensitivity: float

    def _key(self) -> Tuple:
        return (self.currency, self.curve_name, self.year_fraction)

    def describe(self) -> dict:
        out = super().describe()
        out.update({"curve": self.curve_name, "year_fraction": self.year_fraction})
        return out


class SabrParameterType(Enum):
    """SABR parameter a sensitivity refers to, in canonical order."""
    ALPHA = 0
    BETA = 1
    RHO = 2
    NU = 3


@dataclass(frozen=True)
class SwaptionSabrSensitivity(PointSensitivity):
    """
    Sensitivity to one SABR parameter of a swaption volatility surface at
    an expiry and tenor.

    Attributes:
        convention: Name of the swap convention of the surface
        expiry: Time to expiry in years
        tenor: Underlying swap tenor in years
        sensitivity_type: Which SABR parameter
    """
    convention: str
    expiry: float
    tenor: float
    sensitivity_type: SabrParameterType
    currency: str
    sensitivity: float

    def _key(self) -> Tuple:
        return (self.currency, self.expiry, self.tenor, self.sensitivity_type.value, self.convention)

    def describe(self) -> dict:
        out = super().describe()
        out.update({
            "convention": self.convention,
            "expiry": self.expiry,
            "tenor": self.tenor,
            "parameter": self.sensitivity_type.name,
        })
        return out


@dataclass(frozen=True)
class IborCapFloorSensitivity(PointSensitivity):
    """
    Sensitivity to the volatility of an Ibor caplet/floorlet.

    Attributes:
        index: Ibor index name
        expiry: Time to expiry in years
        strike: Option strike
        forward: Forward rate of the underlying
    """
    index: str
    expiry: float
    strike: float
    forward: float
    currency: str
    sensitivity: float

    def _key(self) -> Tuple:
        return (self.currency, self.index, self.expiry, self.strike, self.forward)

    def describe(self) -> dict:
        out = super().describe()
        out.update({
            "index": self.index,
            "expiry": self.expiry,
            "strike": self.strike,
            "forward": self.forward,
        })
        return out


def _sort_and_merge(entries: Sequence[PointSensitivity], drop_zeros: bool) -> List[PointSensitivity]:
    ordered = sorted(entries, key=cmp_to_key(lambda a, b: a.compare_key(b)))
    merged: List[PointSensitivity] = []
    for entry in ordered:
        if merged and merged[-1].compare_key(entry) == 0:
            last = merged[-1]
            merged[-1] = last.with_sensitivity(last.sensitivity + entry.sensitivity)
        else:
            merged.append(entry)
    if drop_zeros:
        merged = [e for e in merged if e.sensitivity != 0.0]
    return merged


class PointSensitivities:
    """
    Immutable collection of point sensitivities.

    normalized() merges identical keys by summation, drops exact zeros and
    sorts entries by compare_key. plus() always returns a normalized
    collection.
    """

    __slots__ = ("_sensitivities",)

    def __init__(self, sensitivities: Iterable[PointSensitivity] = ()):
        self._sensitivities: Tuple[PointSensitivity, ...] = tuple(sensitivities)

    @classmethod
    def of(cls, *sensitivities: Union[PointSensitivity, Iterable[PointSensitivity]]) -> "PointSensitivities":
        entries: List[PointSensitivity] = []
        for s in sensitivities:
            if isinstance(s, PointSensitivity):
                entries.append(s)
            else:
                entries.extend(s)
        return cls(entries)

    @classmethod
    def empty(cls) -> "PointSensitivities":
        return cls()

    @property
    def sensitivities(self) -> Tuple[PointSensitivity, ...]:
        return self._sensitivities

    def size(self) -> int:
        return len(self._sensitivities)

    def __len__(self) -> int:
        return len(self._sensitivities)

    def __iter__(self):
        return iter(self._sensitivities)

    def plus(self, other: Union["PointSensitivities", PointSensitivityBuilder]) -> "PointSensitivities":
        """Union of both collections with values summed for identical keys."""
        if isinstance(other, PointSensitivityBuilder):
            other = other.build()
        return PointSensitivities(self._sensitivities + other._sensitivities).normalized()

    def __add__(self, other):
        return self.plus(other)

    def multiplied_by(self, factor: float) -> "PointSensitivities":
        return PointSensitivities(s.multiplied_by(factor) for s in self._sensitivities)

    def map_sensitivities(self, fn: Callable[[float], float]) -> "PointSensitivities":
        return PointSensitivities(s.map_sensitivity(fn) for s in self._sensitivities)

    def converted_to(self, currency: str, fx: FxMatrix) -> "PointSensitivities":
        converted = [s.converted_to(currency, fx) for s in self._sensitivities]
        if all(c is s for c, s in zip(converted, self._sensitivities)):
            return self
        return PointSensitivities(converted).normalized()

    def normalized(self) -> "PointSensitivities":
        return PointSensitivities(_sort_and_merge(self._sensitivities, drop_zeros=True))

    def to_mutable(self) -> "MutablePointSensitivities":
        return MutablePointSensitivities(self._sensitivities)

    def of_type(self, cls: type) -> "PointSensitivities":
        return PointSensitivities(s for s in self._sensitivities if isinstance(s, cls))

    def equal_with_tolerance(self, other: "PointSensitivities", tolerance: float) -> bool:
        """Compare normalized collections key by key within an absolute tolerance."""
        mine = self.normalized()._sensitivities
        theirs = other.normalized()._sensitivities
        i = j = 0
        while i < len(mine) or j < len(theirs):
            if j >= len(theirs) or (i < len(mine) and mine[i].compare_key(theirs[j]) < 0):
                if abs(mine[i].sensitivity) > tolerance:
                    return False
                i += 1
            elif i >= len(mine) or mine[i].compare_key(theirs[j]) > 0:
                if abs(theirs[j].sensitivity) > tolerance:
                    return False
                j += 1
            else:
                if abs(mine[i].sensitivity - theirs[j].sensitivity) > tolerance:
                    return False
                i += 1
                j += 1
        return True

    def to_frame(self):
        """Tabular view, one row per sensitivity."""
        import pandas as pd

        return pd.DataFrame([s.describe() for s in self._sensitivities])

    def __eq__(self, other) -> bool:
        if not isinstance(other, PointSensitivities):
            return NotImplemented
        return self._sensitivities == other._sensitivities

    def __hash__(self) -> int:
        return hash(self._sensitivities)

    def __repr__(self) -> str:
        return f"PointSensitivities({list(self._sensitivities)})"


class MutablePointSensitivities(PointSensitivityBuilder):
    """
    Mutable accumulator used while pricing.

    Owned by a single pricing call. Convert with build() before handing the
    result to other threads.
    """

    def __init__(self, sensitivities: Iterable[PointSensitivity] = ()):
        self._sensitivities: List[PointSensitivity] = list(sensitivities)

    @property
    def sensitivities(self) -> List[PointSensitivity]:
        return list(self._sensitivities)

    def size(self) -> int:
        return len(self._sensitivities)

    def __len__(self) -> int:
        return len(self._sensitivities)

    def add(
        self,
        item: Union[PointSensitivity, PointSensitivities, PointSensitivityBuilder]
    ) -> "MutablePointSensitivities":
        if isinstance(item, PointSensitivity):
            self._sensitivities.append(item)
        elif isinstance(item, PointSensitivities):
            self._sensitivities.extend(item.sensitivities)
        elif isinstance(item, PointSensitivityBuilder):
            item.build_into(self)
        else:
            raise TypeError(f"Cannot add {type(item).__name__} to point sensitivities")
        return self

    def add_all(self, items: Iterable) -> "MutablePointSensitivities":
        for item in items:
            self.add(item)
        return self

    def build_into(self, combination: "MutablePointSensitivities") -> "MutablePointSensitivities":
        if combination is self:
            return self
        combination._sensitivities.extend(self._sensitivities)
        return combination

    def build(self) -> PointSensitivities:
        return PointSensitivities(self._sensitivities)

    def combined_with(self, other: PointSensitivityBuilder) -> "MutablePointSensitivities":
        return self.add(other)

    def with_currency(self, currency: str) -> "MutablePointSensitivities":
        self._sensitivities = [s.with_currency(currency) for s in self._sensitivities]
        return self

    def multiplied_by(self, factor: float) -> "MutablePointSensitivities":
        self._sensitivities = [s.multiplied_by(factor) for s in self._sensitivities]
        return self

    def map_sensitivity(self, fn: Callable[[float], float]) -> "MutablePointSensitivities":
        self._sensitivities = [s.map_sensitivity(fn) for s in self._sensitivities]
        return self

    def normalize(self) -> "MutablePointSensitivities":
        self._sensitivities = _sort_and_merge(self._sensitivities, drop_zeros=True)
        return self

    def cloned(self) -> "MutablePointSensitivities":
        return MutablePointSensitivities(self._sensitivities)

    def __eq__(self, other) -> bool:
        if not isinstance(other, MutablePointSensitivities):
            return NotImplemented
        return self._sensitivities == other._sensitivities

    def __repr__(self) -> str:
        return f"MutablePointSensitivities({self._sensitivities})"


__all__ = [
    "PointSensitivityBuilder",
    "PointSensitivity",
    "ZeroRateSensitivity",
    "CreditCurveZeroRateSensitivity",
    "SabrParameterType",
    "SwaptionSabrSensitivity",
    "IborCapFloorSensitivity",
    "PointSensitivities",
    "MutablePointSensitivities",
]
