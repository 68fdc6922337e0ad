"""
PositionBook Class for Live Position Tracking

This module provides the PositionBook class that accumulates fills into net
holdings per instrument and hands immutable snapshots to the strategy
matcher. The book is the only mutable object in the matching flow: every
search runs against a snapshot, so the live book can keep changing while a
previous result is still being inspected.

Key Features:
    - Net quantity per instrument (contract key)
    - Fill history tracking
    - Snapshot to Position tuple / Inventory
    - One-call match and margin evaluation

Usage:
    from strategy_matcher.engine.position_book import PositionBook
    from strategy_matcher.core.position import create_call, create_equity

    book = PositionBook()
    book.apply_fill(create_call('GOOG', 150.0, expiry, -5))
    book.apply_fill(create_equity('GOOG', 500))

    result = book.match()
    result.total_quantity('Covered Call')   # 5
"""

import logging
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Tuple

import pandas as pd

from strategy_matcher.core.inventory import Inventory
from strategy_matcher.core.position import Position
from strategy_matcher.matching.result import MatchResult
from strategy_matcher.matching.search import StrategySearchEngine
from strategy_matcher.margin.bridge import MarginBridge
from strategy_matcher.margin.model import MarketPrices

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================

class PositionBookError(Exception):
    """Base exception for PositionBook errors."""
    pass


class PositionNotFoundError(PositionBookError):
    """Exception raised when an instrument is not held."""
    pass


# =============================================================================
# PositionBook
# =============================================================================

class PositionBook:
    """
    Net holdings per instrument, fed by fills.

    Attributes:
        holdings (Dict[tuple, Position]): Net position per contract key, in
            first-fill order. Flat instruments are removed.

    Example:
        >>> book = PositionBook()
        >>> book.apply_fill(create_equity('GOOG', 500))
        >>> book.apply_fill(create_equity('GOOG', -200))
        >>> book.net_quantity(create_equity('GOOG', 0).contract_key)
        300
    """

    __slots__ = (
        '_holdings',
        '_fill_history',
        '_engine',
    )

    def __init__(self, engine: Optional[StrategySearchEngine] = None) -> None:
        """
        Initialize the PositionBook.

        Args:
            engine: Search engine used by match(). Defaults to an engine
                    over the canonical template library.
        """
        # Net positions indexed by contract key
        self._holdings: Dict[Tuple[Any, ...], Position] = {}

        # Every fill applied, for audit
        self._fill_history: List[Dict[str, Any]] = []

        self._engine = engine or StrategySearchEngine()

        logger.debug("PositionBook initialized")

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def num_positions(self) -> int:
        """Get number of instruments with a non-zero holding."""
        return len(self._holdings)

    @property
    def underlyings(self) -> List[str]:
        return sorted({p.underlying for p in self._holdings.values()})

    @property
    def engine(self) -> StrategySearchEngine:
        return self._engine

    # =========================================================================
    # Fill Management
    # =========================================================================

    def apply_fill(self, fill: Position, timestamp: Optional[datetime] = None) -> Position:
        """
        Apply a fill to the book.

        The fill's quantity is added to the net holding of its instrument.
        A holding that reaches zero is removed.

        Args:
            fill: Position describing the instrument and signed fill quantity
            timestamp: When the fill happened. Defaults to now.

        Returns:
            The new net position (quantity 0 if the instrument went flat)

        Raises:
            InvalidPositionError: If the fill is malformed
        """
        fill.validate()
        key = fill.contract_key
        current = self._holdings.get(key)
        net = fill.quantity + (current.quantity if current is not None else 0)
        updated = fill.with_quantity(net)

        if net == 0:
            self._holdings.pop(key, None)
        else:
            self._holdings[key] = updated

        self._fill_history.append({
            'timestamp': timestamp or datetime.now(),
            'symbol': fill.symbol,
            'fill_quantity': fill.quantity,
            'net_quantity': net,
        })

        logger.debug(f"Fill {fill.symbol} {fill.quantity:+d}, net {net}")
        return updated

    def set_position(self, position: Position) -> None:
        """
        Overwrite the net holding of an instrument.

        Args:
            position: Target net position; quantity 0 removes the holding
        """
        position.validate()
        if position.quantity == 0:
            self._holdings.pop(position.contract_key, None)
        else:
            self._holdings[position.contract_key] = position

    def close(self, contract_key: Tuple[Any, ...]) -> Position:
        """
        Flatten an instrument.

        Returns:
            The position that was removed

        Raises:
            PositionNotFoundError: If the instrument is not held
        """
        if contract_key not in self._holdings:
            raise PositionNotFoundError(f"No holding for {contract_key}")
        position = self._holdings.pop(contract_key)
        logger.debug(f"Closed {position.symbol}")
        return position

    def net_quantity(self, contract_key: Tuple[Any, ...]) -> int:
        """Get the net quantity held in an instrument (0 if flat)."""
        position = self._holdings.get(contract_key)
        return position.quantity if position is not None else 0

    # =========================================================================
    # Snapshots
    # =========================================================================

    def snapshot(self) -> Tuple[Position, ...]:
        """Get an immutable snapshot of every non-zero holding."""
        return tuple(self._holdings.values())

    def inventory(self) -> Inventory:
        """Build an Inventory from the current snapshot."""
        return Inventory.build(self.snapshot())

    def match(self, engine: Optional[StrategySearchEngine] = None) -> MatchResult:
        """
        Run the strategy search over the current snapshot.

        Args:
            engine: Engine to use instead of the book's own

        Returns:
            MatchResult for the current holdings
        """
        engine = engine or self._engine
        return engine.search(self.inventory())

    def calculate_total_margin(
        self,
        prices: MarketPrices,
        bridge: Optional[MarginBridge] = None
    ) -> float:
        """
        Strategy-aware margin of the current holdings.

        Args:
            prices: Market prices
            bridge: Margin bridge. Defaults to the reference model.

        Returns:
            Total margin requirement in dollars
        """
        bridge = bridge or MarginBridge()
        return bridge.total_margin(self.match(), prices)

    def get_position_summary(self) -> pd.DataFrame:
        """Get a summary DataFrame of all holdings."""
        return self.inventory().to_dataframe()

    def get_history(self) -> List[Dict[str, Any]]:
        """Get the fill history."""
        return self._fill_history.copy()

    def clear(self) -> None:
        """Remove all holdings and history."""
        self._holdings.clear()
        self._fill_history.clear()
        logger.info("PositionBook cleared")

    # =========================================================================
    # Iterator Protocol
    # =========================================================================

    def __iter__(self) -> Iterator[Position]:
        return iter(self.snapshot())

    def __len__(self) -> int:
        return self.num_positions

    def __contains__(self, contract_key: object) -> bool:
        return contract_key in self._holdings

    def __repr__(self) -> str:
        return (
            f"PositionBook("
            f"positions={self.num_positions}, "
            f"underlyings={len(self.underlyings)}, "
            f"fills={len(self._fill_history)}"
            f")"
        )
