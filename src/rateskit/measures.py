"""
Measure registry.

A measure names a calculation (present value, PV01, ...) and says whether
its result may be converted automatically to a reporting currency.

Names are restricted to the characters A-Z, a-z, 0-9 and '-'. Anything else
is rejected at construction with InvalidNameError.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, List

from .exceptions import InvalidNameError

logger = logging.getLogger(__name__)

NAME_PATTERN = re.compile(r"[A-Za-z0-9-]+")


@dataclass(frozen=True)
class Measure:
    """
    A named calculation.

    Attributes:
        name: Measure name, matching [A-Za-z0-9-]+
        currency_convertible: Whether results convert to a reporting currency
    """
    name: str
    currency_convertible: bool = True

    def __post_init__(self):
        if not isinstance(self.name, str) or not NAME_PATTERN.fullmatch(self.name):
            raise InvalidNameError(
                "Measure name must only contain the characters A-Z, a-z, 0-9 and -",
                name=self.name,
            )

    def __str__(self) -> str:
        return self.name


class Measures:
    """Registry of measures by name."""

    _registry: Dict[str, Measure] = {}

    @classmethod
    def register(cls, measure: Measure) -> Measure:
        existing = cls._registry.get(measure.name)
        if existing is not None and existing != measure:
            raise ValueError(f"Measure {measure.name} is already registered with different settings")
        cls._registry[measure.name] = measure
        logger.debug("Registered measure %s", measure.name)
        return measure

    @classmethod
    def of(cls, name: str) -> Measure:
        """
        Look up a measure by name.

        Raises:
            InvalidNameError: If the name has disallowed characters
            KeyError: If no measure is registered under the name
        """
        if not isinstance(name, str) or not NAME_PATTERN.fullmatch(name):
            raise InvalidNameError(
                "Measure name must only contain the characters A-Z, a-z, 0-9 and -",
                name=name,
            )
        try:
            return cls._registry[name]
        except KeyError:
            raise KeyError(f"Unknown measure: {name}") from None

    @classmethod
    def names(cls) -> List[str]:
        return sorted(cls._registry)


def _standard(name: str, currency_convertible: bool = True) -> Measure:
    return Measures.register(Measure(name, currency_convertible))


class StandardMeasures:
    """The standard set of measures."""
    PRESENT_VALUE = _standard("PresentValue")
    PRESENT_VALUE_MULTI_CCY = _standard("PresentValueMultiCurrency", False)
    EXPLAIN_PRESENT_VALUE = _standard("ExplainPresentValue", False)
    PV01_CALIBRATED_SUM = _standard("PV01CalibratedSum")
    PV01_CALIBRATED_BUCKETED = _standard("PV01CalibratedBucketed")
    PV01_MARKET_QUOTE_SUM = _standard("PV01MarketQuoteSum")
    PV01_MARKET_QUOTE_BUCKETED = _standard("PV01MarketQuoteBucketed")
    ACCRUED_INTEREST = _standard("AccruedInterest")
    CASH_FLOWS = _standard("CashFlows")
    CURRENCY_EXPOSURE = _standard("CurrencyExposure", False)
    CURRENT_CASH = _standard("CurrentCash")
    FORWARD_FX_RATE = _standard("ForwardFxRate", False)
    LEG_PRESENT_VALUE = _standard("LegPresentValue")
    LEG_INITIAL_NOTIONAL = _standard("LegInitialNotional")
    PAR_RATE = _standard("ParRate", False)
    PAR_SPREAD = _standard("ParSpread", False)
    PV01_SEMI_PARALLEL_GAMMA_BUCKETED = _standard("PV01SemiParallelGammaBucketed")


__all__ = [
    "Measure",
    "Measures",
    "StandardMeasures",
    "NAME_PATTERN",
]
