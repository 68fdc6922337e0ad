"""
Position Inventory for Option Strategy Matching

This module provides the Inventory class: a normalized, per-underlying,
read-only view of held option and equity quantities. An inventory is built
fresh from a position snapshot for every match request and discarded after
the match completes.

Key Features:
    - Grouping by underlying identifier
    - Silent removal of closed (zero-quantity) lots
    - Eager validation of every lot at build time
    - Snapshot copies, one per input lot, so repeated lots stay distinct
    - Deterministic ordering: equity first, then options by
      (expiry ascending, strike ascending, call before put), then input order

Usage:
    from strategy_matcher.core import Inventory, create_call, create_equity

    inventory = Inventory.build([
        create_call('GOOG', 150.0, date(2024, 1, 19), -5),
        create_equity('GOOG', 500),
    ])

    for underlying in inventory.underlyings:
        for position in inventory.positions_for(underlying):
            print(position)
"""

import logging
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Tuple

import pandas as pd

from strategy_matcher.core.position import (
    Position,
    InvalidPositionError,
)

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Inventory Class
# =============================================================================

class Inventory:
    """
    Read-only, per-underlying view of held positions.

    Instances should be created through Inventory.build() (or
    build_inventory()), which validates and orders the snapshot.

    Attributes:
        underlyings (Tuple[str, ...]): Underlying identifiers, sorted
        positions (Tuple[Position, ...]): All positions in iteration order

    Example:
        >>> inventory = Inventory.build(positions)
        >>> inventory.positions_for('GOOG')
        (Position(underlying='GOOG', kind='equity', quantity=500), ...)
    """

    __slots__ = ('_groups', '_dropped')

    def __init__(self, groups: Mapping[str, Tuple[Position, ...]], dropped: int = 0) -> None:
        """
        Initialize an Inventory from already ordered groups.

        Args:
            groups: Mapping of underlying to ordered position tuples
            dropped: Number of zero-quantity lots removed at build time
        """
        self._groups: Dict[str, Tuple[Position, ...]] = {
            underlying: tuple(groups[underlying]) for underlying in sorted(groups)
        }
        self._dropped = dropped

    # =========================================================================
    # Construction
    # =========================================================================

    @classmethod
    def build(cls, positions: Iterable[Position]) -> 'Inventory':
        """
        Build an inventory from a snapshot of positions.

        Args:
            positions: Held lots, in any order

        Returns:
            Inventory grouped by underlying and deterministically ordered

        Raises:
            InvalidPositionError: If any lot is malformed
        """
        buckets: Dict[str, List[Tuple[Tuple[Any, ...], int, Position]]] = {}
        dropped = 0

        for sequence, position in enumerate(positions):
            if not isinstance(position, Position):
                raise InvalidPositionError(
                    f"expected Position, got {type(position).__name__}"
                )
            position.validate()

            # Closed lots are not an error
            if position.quantity == 0:
                dropped += 1
                continue

            # Each slot holds its own copy so results can tell repeated lots apart
            buckets.setdefault(position.underlying, []).append(
                (position.sort_key, sequence, position.with_quantity(position.quantity))
            )

        groups = {
            underlying: tuple(entry[2] for entry in sorted(entries, key=lambda e: (e[0], e[1])))
            for underlying, entries in buckets.items()
        }

        inventory = cls(groups, dropped=dropped)
        logger.debug(
            f"Built inventory: {len(inventory)} positions across "
            f"{len(groups)} underlyings ({dropped} closed lots dropped)"
        )
        return inventory

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def underlyings(self) -> Tuple[str, ...]:
        """Get underlying identifiers in sorted order."""
        return tuple(self._groups)

    @property
    def positions(self) -> Tuple[Position, ...]:
        """Get all positions, grouped by underlying in iteration order."""
        return tuple(p for group in self._groups.values() for p in group)

    @property
    def dropped_count(self) -> int:
        """Get number of zero-quantity lots removed at build time."""
        return self._dropped

    @property
    def is_empty(self) -> bool:
        return not self._groups

    # =========================================================================
    # Accessors
    # =========================================================================

    def positions_for(self, underlying: str) -> Tuple[Position, ...]:
        """
        Get the ordered positions held on one underlying.

        Args:
            underlying: Underlying identifier (case-insensitive)

        Returns:
            Ordered tuple of positions; empty if the underlying is not held
        """
        return self._groups.get(underlying.upper().strip(), ())

    def groups(self) -> Iterator[Tuple[str, Tuple[Position, ...]]]:
        """Iterate over (underlying, positions) pairs in sorted order."""
        return iter(self._groups.items())

    def net_quantity(self, contract_key: Tuple[Any, ...]) -> int:
        """
        Get the net signed quantity held in one instrument.

        Args:
            contract_key: Position.contract_key of the instrument

        Returns:
            Sum of quantities across all lots of that instrument
        """
        underlying = contract_key[0]
        return sum(
            p.quantity for p in self._groups.get(underlying, ())
            if p.contract_key == contract_key
        )

    def to_dataframe(self) -> pd.DataFrame:
        """
        Convert the inventory to a DataFrame, one row per lot.

        Returns:
            DataFrame with position fields in iteration order
        """
        columns = ['underlying', 'kind', 'right', 'strike', 'expiry',
                   'quantity', 'multiplier', 'symbol']
        return pd.DataFrame([p.to_dict() for p in self.positions], columns=columns)

    # =========================================================================
    # Special Methods
    # =========================================================================

    def __iter__(self) -> Iterator[Position]:
        return iter(self.positions)

    def __len__(self) -> int:
        return sum(len(group) for group in self._groups.values())

    def __contains__(self, underlying: object) -> bool:
        if not isinstance(underlying, str):
            return False
        return underlying.upper().strip() in self._groups

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Inventory):
            return NotImplemented
        return self._groups == other._groups

    def __repr__(self) -> str:
        return (
            f"Inventory(underlyings={list(self._groups)}, "
            f"positions={len(self)})"
        )


# =============================================================================
# Convenience Functions
# =============================================================================

def build_inventory(positions: Iterable[Position]) -> Inventory:
    """Build an Inventory from a position snapshot."""
    return Inventory.build(positions)
