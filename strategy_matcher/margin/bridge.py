"""
Margin Bridge

Totals margin over a match result using a pluggable margin model. Every
instance is margined as a whole structure and every residual leg on its own,
so a covered call whose calls and shares were matched together carries only
the underlying margin.

Usage:
    from strategy_matcher.margin import MarginBridge, MarketPrices

    bridge = MarginBridge()
    total = bridge.total_margin(result, MarketPrices({'GOOG': 145.0}))
    table = bridge.breakdown(result, prices)
"""

import logging
from typing import Optional

import pandas as pd

from strategy_matcher.matching.result import MatchResult
from strategy_matcher.margin.model import (
    MarginError,
    MarginModel,
    MarketPrices,
    StrategyMarginModel,
)

# Configure module logger
logger = logging.getLogger(__name__)


class MarginBridge:
    """
    Adapts a match result to a margin model.

    Attributes:
        model (MarginModel): Model mapping instances and residuals to margin
    """

    def __init__(self, model: Optional[MarginModel] = None) -> None:
        if model is None:
            model = StrategyMarginModel()
        if not isinstance(model, MarginModel):
            raise MarginError(
                f"{type(model).__name__} does not implement instance_margin/residual_margin"
            )
        self.model = model

    def total_margin(self, result: MatchResult, prices: MarketPrices) -> float:
        """
        Total margin requirement of a match result.

        Args:
            result: Match result
            prices: Market prices

        Returns:
            Sum of instance and residual margins
        """
        total = sum(self.model.instance_margin(i, prices) for i in result.instances)
        total += sum(self.model.residual_margin(r, prices) for r in result.residuals)
        logger.debug(f"Total margin {total:,.2f} over {len(result.instances)} instances")
        return float(total)

    def breakdown(self, result: MatchResult, prices: MarketPrices) -> pd.DataFrame:
        """
        Per-item margin table.

        Returns:
            DataFrame with columns underlying, item, name, quantity, margin.
            `item` is 'strategy' or 'residual'.
        """
        rows = []
        for instance in result.instances:
            rows.append({
                'underlying': instance.underlying,
                'item': 'strategy',
                'name': instance.template_name,
                'quantity': instance.quantity,
                'margin': self.model.instance_margin(instance, prices),
            })
        for residual in result.residuals:
            rows.append({
                'underlying': residual.underlying,
                'item': 'residual',
                'name': residual.position.symbol,
                'quantity': residual.quantity,
                'margin': self.model.residual_margin(residual, prices),
            })
        columns = ['underlying', 'item', 'name', 'quantity', 'margin']
        return pd.DataFrame(rows, columns=columns)
