"""
Par-rate curve inputs.

IsdaYieldCurveParRates and IsdaCreditCurveParRates hold the quotes a curve
is calibrated from, in node order, together with their conventions. They
convert to calibration instruments and to plain dictionaries; a round trip
through to_dict/from_dict keeps node order and instrument tags exactly.
"""

from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Sequence, Tuple

from ..conventions import (
    BusinessDayConvention,
    CdsConvention,
    DayCount,
    IsdaYieldCurveConvention,
    StubConvention,
)
from .instruments import CdsInstrument, CurveInstrument, instrument_from_tag


def _yield_convention_to_dict(c: IsdaYieldCurveConvention) -> Dict[str, Any]:
    return {
        "currency": c.currency,
        "mm_day_count": c.mm_day_count.name,
        "fixed_day_count": c.fixed_day_count.name,
        "fixed_payment_frequency": c.fixed_payment_frequency,
        "business_day": c.business_day.name,
        "spot_days": c.spot_days,
    }


def _yield_convention_from_dict(d: Dict[str, Any]) -> IsdaYieldCurveConvention:
    return IsdaYieldCurveConvention(
        currency=d["currency"],
        mm_day_count=DayCount[d["mm_day_count"]],
        fixed_day_count=DayCount[d["fixed_day_count"]],
        fixed_payment_frequency=int(d["fixed_payment_frequency"]),
        business_day=BusinessDayConvention[d["business_day"]],
        spot_days=int(d["spot_days"]),
    )


def _cds_convention_to_dict(c: CdsConvention) -> Dict[str, Any]:
    return {
        "currency": c.currency,
        "payment_frequency": c.payment_frequency,
        "day_count": c.day_count.name,
        "business_day": c.business_day.name,
        "stub_convention": c.stub_convention.name,
        "pay_accrued_on_default": c.pay_accrued_on_default,
        "step_in_days": c.step_in_days,
        "settle_days": c.settle_days,
    }


def _cds_convention_from_dict(d: Dict[str, Any]) -> CdsConvention:
    return CdsConvention(
        currency=d["currency"],
        payment_frequency=int(d["payment_frequency"]),
        day_count=DayCount[d["day_count"]],
        business_day=BusinessDayConvention[d["business_day"]],
        stub_convention=StubConvention[d["stub_convention"]],
        pay_accrued_on_default=bool(d["pay_accrued_on_default"]),
        step_in_days=int(d["step_in_days"]),
        settle_days=int(d["settle_days"]),
    )


@dataclass(frozen=True)
class IsdaYieldCurveParRates:
    """
    Par rates of an ISDA yield curve.

    Attributes:
        name: Curve name
        instrument_types: Tag per node ("MoneyMarket" or "Swap")
        tenors: Tenor per node
        par_rates: Quote per node
        convention: Instrument conventions
    """
    name: str
    instrument_types: Tuple[str, ...]
    tenors: Tuple[str, ...]
    par_rates: Tuple[float, ...]
    convention: IsdaYieldCurveConvention

    def __post_init__(self):
        object.__setattr__(self, "instrument_types", tuple(self.instrument_types))
        object.__setattr__(self, "tenors", tuple(self.tenors))
        object.__setattr__(self, "par_rates", tuple(float(r) for r in self.par_rates))
        n = len(self.tenors)
        if len(self.instrument_types) != n or len(self.par_rates) != n:
            raise ValueError(
                f"{self.name}: {len(self.instrument_types)} types, {n} tenors and "
                f"{len(self.par_rates)} rates must have the same length"
            )
        for tag in self.instrument_types:
            if tag not in ("MoneyMarket", "Swap"):
                raise ValueError(f"Unexpected underlying type {tag!r}, only MoneyMarket and Swap supported")

    @classmethod
    def of(
        cls,
        name: str,
        points: Sequence[Tuple[str, str, float]],
        convention: IsdaYieldCurveConvention
    ) -> "IsdaYieldCurveParRates":
        """Create from (instrument type, tenor, par rate) triples."""
        return cls(
            name,
            tuple(p[0] for p in points),
            tuple(p[1] for p in points),
            tuple(p[2] for p in points),
            convention,
        )

    def to_instruments(self) -> List[CurveInstrument]:
        return [
            instrument_from_tag(tag, tenor, rate)
            for tag, tenor, rate in zip(self.instrument_types, self.tenors, self.par_rates)
        ]

    def with_par_rates(self, par_rates: Sequence[float]) -> "IsdaYieldCurveParRates":
        return IsdaYieldCurveParRates(
            self.name, self.instrument_types, self.tenors, tuple(par_rates), self.convention
        )

    def bumped(self, bp: float) -> "IsdaYieldCurveParRates":
        """Parallel shift of every quote by bp basis points."""
        return self.with_par_rates([r + bp / 10000.0 for r in self.par_rates])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "points": [
                {"instrument_type": tag, "tenor": tenor, "par_rate": rate}
                for tag, tenor, rate in zip(self.instrument_types, self.tenors, self.par_rates)
            ],
            "convention": _yield_convention_to_dict(self.convention),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "IsdaYieldCurveParRates":
        points = d["points"]
        return cls(
            d["name"],
            tuple(p["instrument_type"] for p in points),
            tuple(p["tenor"] for p in points),
            tuple(float(p["par_rate"]) for p in points),
            _yield_convention_from_dict(d["convention"]),
        )


@dataclass(frozen=True)
class IsdaCreditCurveParRates:
    """
    Par spreads of an ISDA credit curve.

    Attributes:
        name: Curve name
        tenors: Standard CDS tenor per node
        par_rates: Par spread per node
        convention: Standard CDS convention
    """
    name: str
    tenors: Tuple[str, ...]
    par_rates: Tuple[float, ...]
    convention: CdsConvention

    def __post_init__(self):
        object.__setattr__(self, "tenors", tuple(self.tenors))
        object.__setattr__(self, "par_rates", tuple(float(r) for r in self.par_rates))
        if len(self.tenors) != len(self.par_rates):
            raise ValueError(
                f"{self.name}: {len(self.tenors)} tenors but {len(self.par_rates)} par rates"
            )

    def credit_curve_end_date_points(self, valuation_date: date) -> List[date]:
        """Standard maturity of each calibrating CDS."""
        return [self.convention.unadjusted_maturity_date(valuation_date, t) for t in self.tenors]

    def to_instruments(self) -> List[CdsInstrument]:
        return [CdsInstrument(tenor=t, quote=r) for t, r in zip(self.tenors, self.par_rates)]

    def with_par_rates(self, par_rates: Sequence[float]) -> "IsdaCreditCurveParRates":
        return IsdaCreditCurveParRates(self.name, self.tenors, tuple(par_rates), self.convention)

    def bumped(self, bp: float) -> "IsdaCreditCurveParRates":
        return self.with_par_rates([r + bp / 10000.0 for r in self.par_rates])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "points": [
                {"instrument_type": CdsInstrument.instrument_type, "tenor": t, "par_rate": r}
                for t, r in zip(self.tenors, self.par_rates)
            ],
            "convention": _cds_convention_to_dict(self.convention),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "IsdaCreditCurveParRates":
        points = d["points"]
        for p in points:
            if p.get("instrument_type", CdsInstrument.instrument_type) != CdsInstrument.instrument_type:
                raise ValueError(f"Unexpected instrument type {p['instrument_type']!r} in credit curve")
        return cls(
            d["name"],
            tuple(p["tenor"] for p in points),
            tuple(float(p["par_rate"]) for p in points),
            _cds_convention_from_dict(d["convention"]),
        )


__all__ = [
    "IsdaYieldCurveParRates",
    "IsdaCreditCurveParRates",
]
