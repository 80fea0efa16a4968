"""
Curve group configuration.

A CurveGroupEntry pairs the par rates of one curve with the keys that say
how the curve is used: as the discount curve of some currencies, as the
forward curve of some indices, or both. Every entry needs at least one key.

Independent curves in a group can be calibrated concurrently; each curve's
own bootstrap stays sequential.
"""

from concurrent.futures import Executor
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, FrozenSet, Iterable, Optional, Sequence
import logging

from .bootstrap import BootstrapResult, IsdaYieldCurveCalibrator
from .par_rates import IsdaYieldCurveParRates

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CurveGroupEntry:
    """
    One curve of a group and the keys identifying how it is used.

    Attributes:
        par_rates: Calibration inputs of the curve
        discount_currencies: Currencies discounted on this curve
        index_names: Indices forecast from this curve
    """
    par_rates: IsdaYieldCurveParRates
    discount_currencies: FrozenSet[str] = field(default_factory=frozenset)
    index_names: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self):
        object.__setattr__(self, "discount_currencies", frozenset(self.discount_currencies))
        object.__setattr__(self, "index_names", frozenset(self.index_names))
        if not self.discount_currencies and not self.index_names:
            raise ValueError(f"Curve {self.par_rates.name} must be associated with at least one key")

    @property
    def curve_name(self) -> str:
        return self.par_rates.name


def calibrate_curve_group(
    valuation_date: date,
    entries: Sequence[CurveGroupEntry],
    calibrator: Optional[IsdaYieldCurveCalibrator] = None,
    executor: Optional[Executor] = None
) -> Dict[str, BootstrapResult]:
    """
    Calibrate every curve of a group.

    Args:
        valuation_date: Valuation date
        entries: Group entries with distinct curve names
        calibrator: Calibrator to use (default settings)
        executor: Optional executor to calibrate curves concurrently

    Returns:
        Bootstrap results by curve name, in entry order

    Raises:
        ValueError: If two entries share a curve name
        CalibrationError: If any curve fails to calibrate
    """
    names = [e.curve_name for e in entries]
    if len(set(names)) != len(names):
        raise ValueError(f"Duplicate curve names in group: {names}")
    calibrator = calibrator or IsdaYieldCurveCalibrator()

    def run(entry: CurveGroupEntry) -> BootstrapResult:
        p = entry.par_rates
        return calibrator.calibrate(valuation_date, p.to_instruments(), p.convention, p.name)

    if executor is None:
        results = [run(e) for e in entries]
    else:
        results = list(executor.map(run, entries))
    logger.info("Calibrated curve group of %d curves", len(results))
    return dict(zip(names, results))


__all__ = [
    "CurveGroupEntry",
    "calibrate_curve_group",
]
