"""
Margin Module

Strategy-aware margin on top of match results.

Components:
    - model: MarginModel protocol, MarketPrices and StrategyMarginModel
    - bridge: MarginBridge, totals margin over a MatchResult
"""

from strategy_matcher.margin.model import (
    # Exceptions
    MarginError,
    MissingPriceError,
    # Constants
    DEFAULT_EQUITY_MARGIN_RATE,
    DEFAULT_NAKED_OPTION_MARGIN_FACTOR,
    DEFAULT_NAKED_OPTION_MINIMUM_FACTOR,
    # Model
    MarketPrices,
    MarginModel,
    StrategyMarginModel,
)

from strategy_matcher.margin.bridge import MarginBridge

__all__ = [
    # Exceptions
    "MarginError",
    "MissingPriceError",
    # Constants
    "DEFAULT_EQUITY_MARGIN_RATE",
    "DEFAULT_NAKED_OPTION_MARGIN_FACTOR",
    "DEFAULT_NAKED_OPTION_MINIMUM_FACTOR",
    # Model
    "MarketPrices",
    "MarginModel",
    "StrategyMarginModel",
    # Bridge
    "MarginBridge",
]
