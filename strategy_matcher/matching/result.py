"""
Match Result Model

This module defines the output of a strategy search: strategy instances
(templates realized against concrete positions with a unit multiplier k) and
residual legs (quantity no instance consumed). The margin model consumes
both; the quantity-conservation check guarantees it never double- or
under-counts a position.

Key Classes:
    - BoundLeg: One template leg bound to a concrete position
    - StrategyInstance: A realized template with quantity k >= 1
    - ResidualLeg: Leftover signed quantity of a position
    - UnderlyingMatch: Instances and residuals of one underlying
    - MatchResult: Aggregate over all underlyings

Usage:
    result = search(inventory)

    for instance in result.instances:
        print(instance.template_name, instance.quantity)

    for residual in result.residuals:
        print(residual.position.symbol, residual.quantity)

    result.check_conservation(inventory)
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from strategy_matcher.core.inventory import Inventory
from strategy_matcher.core.position import Position

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================

class MatchingError(Exception):
    """Base exception for strategy matching errors."""
    pass


class InconsistentInventoryError(MatchingError):
    """
    Internal invariant violation during matching.

    Raised when quantity would be created, destroyed or double-counted. This
    indicates a matcher or template-definition bug, never a data error, and
    must not be retried or masked.

    Attributes:
        underlying: Underlying being searched
        template_name: Template being instantiated, if any
        bindings: Description of the legs bound at the time of failure
        remaining: Remaining quantity per position at the time of failure
    """

    def __init__(
        self,
        message: str,
        underlying: Optional[str] = None,
        template_name: Optional[str] = None,
        bindings: Optional[List[str]] = None,
        remaining: Optional[Dict[str, int]] = None
    ):
        self.underlying = underlying
        self.template_name = template_name
        self.bindings = bindings or []
        self.remaining = remaining or {}
        super().__init__(self._render(message))

    def _render(self, message: str) -> str:
        lines = [message]
        if self.underlying is not None:
            lines.append(f"  underlying: {self.underlying}")
        if self.template_name is not None:
            lines.append(f"  template: {self.template_name}")
        for binding in self.bindings:
            lines.append(f"  bound: {binding}")
        for symbol, quantity in self.remaining.items():
            lines.append(f"  remaining: {symbol} = {quantity}")
        return "\n".join(lines)


# =============================================================================
# Result Types
# =============================================================================

@dataclass(frozen=True)
class BoundLeg:
    """
    A template leg bound to a concrete position.

    Attributes:
        leg_index: Index of the leg in the template
        position: Snapshot of the bound position
        unit_quantity: Signed quantity consumed per template unit
    """

    leg_index: int
    position: Position
    unit_quantity: int

    def consumed(self, k: int) -> int:
        """Signed quantity consumed by k units."""
        return self.unit_quantity * k


@dataclass(frozen=True)
class StrategyInstance:
    """
    A realized strategy template.

    Attributes:
        template_name: Name of the matched template
        underlying: Underlying identifier
        quantity: Number of template units covered (k >= 1)
        legs: Bound legs in template declaration order
    """

    template_name: str
    underlying: str
    quantity: int
    legs: Tuple[BoundLeg, ...]

    @property
    def name(self) -> str:
        return self.template_name

    @property
    def positions(self) -> Tuple[Position, ...]:
        return tuple(leg.position for leg in self.legs)

    def consumption(self) -> List[Tuple[Position, int]]:
        """Get (position, signed consumed quantity) for every bound leg."""
        return [(leg.position, leg.consumed(self.quantity)) for leg in self.legs]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'template_name': self.template_name,
            'underlying': self.underlying,
            'quantity': self.quantity,
            'legs': [
                {
                    'leg_index': leg.leg_index,
                    'symbol': leg.position.symbol,
                    'unit_quantity': leg.unit_quantity,
                    'consumed': leg.consumed(self.quantity),
                }
                for leg in self.legs
            ],
        }

    def __str__(self) -> str:
        legs = ", ".join(
            f"{leg.position.symbol} x {leg.consumed(self.quantity)}" for leg in self.legs
        )
        return f"{self.template_name} x{self.quantity} on {self.underlying} [{legs}]"


@dataclass(frozen=True)
class ResidualLeg:
    """
    Quantity of a position not consumed by any strategy instance.

    Attributes:
        position: Snapshot of the position
        quantity: Signed leftover quantity (same sign as the position)
    """

    position: Position
    quantity: int

    @property
    def underlying(self) -> str:
        return self.position.underlying

    @property
    def is_naked(self) -> bool:
        """Short option residuals carry naked-option risk."""
        return self.position.is_option and self.quantity < 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'underlying': self.position.underlying,
            'symbol': self.position.symbol,
            'quantity': self.quantity,
        }

    def __str__(self) -> str:
        return f"{self.position.symbol} x {self.quantity}"


@dataclass(frozen=True)
class UnderlyingMatch:
    """Instances and residuals of one underlying."""

    underlying: str
    instances: Tuple[StrategyInstance, ...]
    residuals: Tuple[ResidualLeg, ...]


# =============================================================================
# MatchResult
# =============================================================================

@dataclass(frozen=True)
class MatchResult:
    """
    Partition of an inventory into strategy instances and residual legs.

    Equality is structural, so two searches over the same inventory compare
    equal when they agree on every instance, multiplier and residual in the
    same order.

    Attributes:
        instances: Strategy instances, grouped by underlying in search order
        residuals: Residual legs, grouped by underlying in inventory order
    """

    instances: Tuple[StrategyInstance, ...] = ()
    residuals: Tuple[ResidualLeg, ...] = ()

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def is_empty(self) -> bool:
        return not self.instances and not self.residuals

    @property
    def underlyings(self) -> Tuple[str, ...]:
        seen = {i.underlying for i in self.instances}
        seen.update(r.underlying for r in self.residuals)
        return tuple(sorted(seen))

    # =========================================================================
    # Queries
    # =========================================================================

    def by_underlying(self) -> Dict[str, UnderlyingMatch]:
        """
        Group the result per underlying.

        Returns:
            Dictionary of underlying to UnderlyingMatch, in sorted order
        """
        return {
            underlying: UnderlyingMatch(
                underlying=underlying,
                instances=tuple(i for i in self.instances if i.underlying == underlying),
                residuals=tuple(r for r in self.residuals if r.underlying == underlying),
            )
            for underlying in self.underlyings
        }

    def instances_named(
        self,
        name: str,
        underlying: Optional[str] = None
    ) -> Tuple[StrategyInstance, ...]:
        """Get instances of one template, optionally on one underlying."""
        if underlying is not None:
            underlying = underlying.upper().strip()
        return tuple(
            i for i in self.instances
            if i.template_name == name and (underlying is None or i.underlying == underlying)
        )

    def total_quantity(self, name: str, underlying: Optional[str] = None) -> int:
        """Get the summed multiplier k of every instance of one template."""
        return sum(i.quantity for i in self.instances_named(name, underlying))

    def strategy_names(self) -> List[str]:
        """Get distinct matched template names in first-seen order."""
        names: List[str] = []
        for instance in self.instances:
            if instance.template_name not in names:
                names.append(instance.template_name)
        return names

    def consumed_quantity(self, position: Position) -> int:
        """
        Get the signed quantity of a position consumed by instances.

        Lots are identified by object identity so that two lots of the same
        instrument are not conflated. Pass lots taken from the searched
        Inventory, which holds its own copy of every input lot.
        """
        total = 0
        for instance in self.instances:
            for leg in instance.legs:
                if leg.position is position:
                    total += leg.consumed(instance.quantity)
        return total

    def residual_quantity(self, position: Position) -> int:
        return sum(r.quantity for r in self.residuals if r.position is position)

    # =========================================================================
    # Invariants
    # =========================================================================

    def check_conservation(self, inventory: Inventory) -> None:
        """
        Verify that no quantity was created, destroyed or double-counted.

        For every position of the inventory, consumed plus residual quantity
        must equal the original signed quantity, and every consumed or
        residual amount must carry the position's own sign.

        Args:
            inventory: Inventory the result was computed from

        Raises:
            InconsistentInventoryError: If the invariant does not hold
        """
        # One pass over the result; lots are keyed by identity
        consumed_by_lot: Dict[int, int] = {}
        for instance in self.instances:
            for leg in instance.legs:
                key = id(leg.position)
                consumed_by_lot[key] = consumed_by_lot.get(key, 0) + leg.consumed(instance.quantity)

        residual_by_lot: Dict[int, int] = {}
        for residual_leg in self.residuals:
            key = id(residual_leg.position)
            residual_by_lot[key] = residual_by_lot.get(key, 0) + residual_leg.quantity

        for underlying, positions in inventory.groups():
            # A lot object repeated across slots is checked against its summed holding
            held_by_lot: Dict[int, Tuple[Position, int]] = {}
            for position in positions:
                key = id(position)
                held = held_by_lot.get(key, (position, 0))[1]
                held_by_lot[key] = (position, held + position.quantity)

            for key, (position, held) in held_by_lot.items():
                consumed = consumed_by_lot.get(key, 0)
                residual = residual_by_lot.get(key, 0)
                if consumed + residual != held or consumed * held < 0:
                    raise InconsistentInventoryError(
                        f"Quantity not conserved for {position.symbol}: "
                        f"held {held}, consumed {consumed}, "
                        f"residual {residual}",
                        underlying=underlying,
                        bindings=[str(i) for i in self.instances if i.underlying == underlying],
                    )

    # =========================================================================
    # Export
    # =========================================================================

    def to_dict(self) -> Dict[str, Any]:
        return {
            'instances': [i.to_dict() for i in self.instances],
            'residuals': [r.to_dict() for r in self.residuals],
        }

    def to_dataframe(self) -> pd.DataFrame:
        """
        Flatten the result, one row per consumed or residual quantity.

        Returns:
            DataFrame with columns underlying, strategy, quantity, leg_index,
            symbol and consumed. Residual rows carry strategy None.
        """
        rows = []
        for instance in self.instances:
            for leg in instance.legs:
                rows.append({
                    'underlying': instance.underlying,
                    'strategy': instance.template_name,
                    'quantity': instance.quantity,
                    'leg_index': leg.leg_index,
                    'symbol': leg.position.symbol,
                    'consumed': leg.consumed(instance.quantity),
                })
        for residual in self.residuals:
            rows.append({
                'underlying': residual.underlying,
                'strategy': None,
                'quantity': None,
                'leg_index': None,
                'symbol': residual.position.symbol,
                'consumed': residual.quantity,
            })
        columns = ['underlying', 'strategy', 'quantity', 'leg_index', 'symbol', 'consumed']
        return pd.DataFrame(rows, columns=columns)

    def summary(self) -> str:
        """Get a human-readable multi-line summary."""
        lines = []
        for underlying, match in self.by_underlying().items():
            lines.append(f"{underlying}:")
            for instance in match.instances:
                lines.append(f"  {instance.template_name} x{instance.quantity}")
            for residual in match.residuals:
                lines.append(f"  residual {residual}")
        return "\n".join(lines) if lines else "(no positions)"

    def __str__(self) -> str:
        return self.summary()
