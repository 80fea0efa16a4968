"""
Portfolio aggregation.

Trades are priced independently, optionally on a concurrent.futures
executor. Every task builds its own point sensitivity accumulator; finished
results are merged with the immutable plus operations, in trade order, so
the totals do not depend on how tasks were scheduled.
"""

from concurrent.futures import Executor
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Tuple
import logging

from ..currency import MultiCurrencyAmount
from ..market_state import MarketState
from ..products import Cds
from ..sensitivity import CurrencyParameterSensitivities, PointSensitivities
from .dispatcher import ProductPricers

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TradeResult:
    """
    Pricing output of one trade.

    Attributes:
        present_value: PV by currency
        current_cash: Cash settling on the valuation date
        point_sensitivities: Curve point sensitivities (empty for CDS)
        parameter_sensitivities: Node sensitivities computed directly (CDS)
    """
    present_value: MultiCurrencyAmount
    current_cash: MultiCurrencyAmount
    point_sensitivities: PointSensitivities = field(default_factory=PointSensitivities.empty)
    parameter_sensitivities: CurrencyParameterSensitivities = field(
        default_factory=CurrencyParameterSensitivities.empty
    )


@dataclass(frozen=True)
class PortfolioResult:
    """Totals over a portfolio plus the per-trade results in input order."""
    present_value: MultiCurrencyAmount
    current_cash: MultiCurrencyAmount
    point_sensitivities: PointSensitivities
    parameter_sensitivities: CurrencyParameterSensitivities
    trades: Tuple[TradeResult, ...]

    def pv01(self) -> MultiCurrencyAmount:
        """Sum of the node sensitivities per currency (per unit rate move)."""
        return self.parameter_sensitivities.total()


class PortfolioAggregator:
    """
    Prices a list of products and sums the results.

    Attributes:
        pricers: Product pricers, shared read-only by every task
    """

    def __init__(self, pricers: Optional[ProductPricers] = None):
        self.pricers = pricers or ProductPricers()

    def price_trade(self, product: Any, market: MarketState) -> TradeResult:
        pricer = self.pricers.for_product(product)
        pv = pricer.present_value(product, market)
        cash = pricer.current_cash(product, market)
        if not isinstance(pv, MultiCurrencyAmount):
            pv = MultiCurrencyAmount.of(pv)
        if not isinstance(cash, MultiCurrencyAmount):
            cash = MultiCurrencyAmount.of(cash)
        if isinstance(product, Cds):
            return TradeResult(pv, cash, parameter_sensitivities=pricer.present_value_sensitivity(product, market))
        points = pricer.present_value_sensitivity(product, market).build()
        return TradeResult(pv, cash, point_sensitivities=points)

    def aggregate(
        self,
        products: Sequence[Any],
        market: MarketState,
        executor: Optional[Executor] = None
    ) -> PortfolioResult:
        """
        Price every product and merge the results.

        Args:
            products: Swaps, CMS products, caps/floors or CDS
            market: Market state shared by every trade
            executor: Optional executor; trades are priced in the caller's
                thread when None

        Returns:
            PortfolioResult with totals and per-trade results
        """
        if executor is None:
            trades: List[TradeResult] = [self.price_trade(p, market) for p in products]
        else:
            trades = list(executor.map(lambda p: self.price_trade(p, market), products))

        pv = MultiCurrencyAmount.empty()
        cash = MultiCurrencyAmount.empty()
        points = PointSensitivities.empty()
        direct = CurrencyParameterSensitivities.empty()
        for trade in trades:
            pv = pv.plus(trade.present_value)
            cash = cash.plus(trade.current_cash)
            points = points.plus(trade.point_sensitivities)
            direct = direct.plus(trade.parameter_sensitivities)

        parameter = market.parameter_sensitivity(points).plus(direct)
        logger.info("Aggregated %d trades: PV %s", len(trades), pv)
        return PortfolioResult(pv, cash, points, parameter, tuple(trades))


__all__ = [
    "TradeResult",
    "PortfolioResult",
    "PortfolioAggregator",
]
