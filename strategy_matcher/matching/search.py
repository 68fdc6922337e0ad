"""
Strategy Search Engine

Partitions an inventory into strategy instances and residual legs.

Algorithm (per underlying, independently):
    1. Initialize a remaining-quantity list to every position's quantity.
    2. Walk templates in library priority order. For each template, bind its
       legs in declaration order with the LegMatcher (greedy, first feasible
       candidate, no backtracking across legs).
    3. When every leg binds, k = min(units available per bound leg). Record
       the instance, decrement each bound leg by unit x k, and retry the same
       template until it no longer binds.
    4. Leftover quantity becomes residual legs.
    5. Aggregate instances and residuals over underlyings in sorted order.

Templates are tried in a fixed order and legs are bound in a fixed inventory
order, so the same inventory always yields the same result. Higher-priority
templates consume quantity first and are never undone by a later template;
the partition is a policy, not a margin-minimizing optimum.

Usage:
    from strategy_matcher.matching.search import StrategySearchEngine

    engine = StrategySearchEngine()
    result = engine.search(inventory)
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Sequence, Tuple

from strategy_matcher.core.inventory import Inventory
from strategy_matcher.core.position import Position
from strategy_matcher.templates.definitions import StrategyTemplate
from strategy_matcher.templates.library import TemplateLibrary, DEFAULT_LIBRARY
from strategy_matcher.matching.leg_matcher import LegMatcher
from strategy_matcher.matching.result import (
    BoundLeg,
    StrategyInstance,
    ResidualLeg,
    MatchResult,
    InconsistentInventoryError,
)

# Configure module logger
logger = logging.getLogger(__name__)


class StrategySearchEngine:
    """
    Greedy, priority-ordered strategy search.

    The engine holds only the immutable template library and a stateless leg
    matcher, so one engine may serve concurrent searches on different
    inventories.

    Attributes:
        library (TemplateLibrary): Templates searched, in priority order
        max_workers (Optional[int]): Thread fan-out across underlyings.
            None or 1 searches sequentially.

    Example:
        >>> engine = StrategySearchEngine()
        >>> result = engine.search(Inventory.build(positions))
        >>> result.total_quantity('Covered Call')
        5
    """

    def __init__(
        self,
        library: Optional[TemplateLibrary] = None,
        max_workers: Optional[int] = None,
        verify: bool = True
    ) -> None:
        """
        Initialize the engine.

        Args:
            library: Template library. Defaults to the canonical catalog.
            max_workers: Threads used to search underlyings in parallel
            verify: Check quantity conservation after every search
        """
        if max_workers is not None and max_workers < 1:
            raise ValueError(f"max_workers must be positive, got {max_workers}")
        self._library = library if library is not None else DEFAULT_LIBRARY
        self._max_workers = max_workers
        self._verify = verify
        self._leg_matcher = LegMatcher()

    @property
    def library(self) -> TemplateLibrary:
        return self._library

    @property
    def max_workers(self) -> Optional[int]:
        return self._max_workers

    # =========================================================================
    # Search
    # =========================================================================

    def search(self, inventory: Inventory) -> MatchResult:
        """
        Search an inventory for strategy instances.

        Args:
            inventory: Position inventory snapshot

        Returns:
            MatchResult with instances and residual legs

        Raises:
            InconsistentInventoryError: If an internal invariant is violated
        """
        groups = list(inventory.groups())

        if self._max_workers and self._max_workers > 1 and len(groups) > 1:
            with ThreadPoolExecutor(max_workers=self._max_workers) as executor:
                partials = list(executor.map(lambda g: self.search_underlying(*g), groups))
        else:
            partials = [self.search_underlying(u, positions) for u, positions in groups]

        instances: List[StrategyInstance] = []
        residuals: List[ResidualLeg] = []
        for group_instances, group_residuals in partials:
            instances.extend(group_instances)
            residuals.extend(group_residuals)

        result = MatchResult(instances=tuple(instances), residuals=tuple(residuals))

        if self._verify:
            result.check_conservation(inventory)

        logger.debug(
            f"Search complete: {len(result.instances)} instances, "
            f"{len(result.residuals)} residual legs over {len(groups)} underlyings"
        )
        return result

    def search_underlying(
        self,
        underlying: str,
        positions: Sequence[Position]
    ) -> Tuple[List[StrategyInstance], List[ResidualLeg]]:
        """
        Search the positions of a single underlying.

        Args:
            underlying: Underlying identifier
            positions: Positions in inventory order

        Returns:
            Tuple of (instances, residual legs)
        """
        remaining = [p.quantity for p in positions]
        instances: List[StrategyInstance] = []

        for template in self._library.templates():
            while True:
                instance = self._instantiate(template, underlying, positions, remaining)
                if instance is None:
                    break
                instances.append(instance)

        residuals = [
            ResidualLeg(position=position, quantity=left)
            for position, left in zip(positions, remaining)
            if left != 0
        ]
        return instances, residuals

    def _instantiate(
        self,
        template: StrategyTemplate,
        underlying: str,
        positions: Sequence[Position],
        remaining: List[int]
    ) -> Optional[StrategyInstance]:
        """Bind one instance of a template and consume its quantity."""
        bound: List[BoundLeg] = []
        indices: List[int] = []
        units: List[int] = []

        for leg_index, leg in enumerate(template.legs):
            match = self._leg_matcher.match(leg, positions, remaining, bound, indices)
            if match is None:
                return None
            bound.append(BoundLeg(
                leg_index=leg_index,
                position=match.position,
                unit_quantity=match.unit_quantity,
            ))
            indices.append(match.index)
            units.append(match.available_units)

        k = min(units)
        if k < 1:
            raise InconsistentInventoryError(
                f"Template bound with multiplier {k}",
                underlying=underlying,
                template_name=template.name,
                bindings=self._describe(bound),
                remaining=self._snapshot(positions, remaining),
            )

        for index, leg in zip(indices, bound):
            before = remaining[index]
            after = before - leg.consumed(k)
            # Consumption may shrink a lot toward zero, never past it
            if after * before < 0 or abs(after) > abs(before):
                raise InconsistentInventoryError(
                    f"Remaining quantity of {positions[index].symbol} would go "
                    f"from {before} to {after}",
                    underlying=underlying,
                    template_name=template.name,
                    bindings=self._describe(bound),
                    remaining=self._snapshot(positions, remaining),
                )
            remaining[index] = after

        instance = StrategyInstance(
            template_name=template.name,
            underlying=underlying,
            quantity=k,
            legs=tuple(bound),
        )
        logger.debug(f"Matched {instance}")
        return instance

    # =========================================================================
    # Diagnostics
    # =========================================================================

    @staticmethod
    def _describe(bound: Sequence[BoundLeg]) -> List[str]:
        return [
            f"leg {b.leg_index}: {b.position.symbol} unit {b.unit_quantity}"
            for b in bound
        ]

    @staticmethod
    def _snapshot(positions: Sequence[Position], remaining: Sequence[int]) -> Dict[str, int]:
        return {
            f"{i}:{p.symbol}": left
            for i, (p, left) in enumerate(zip(positions, remaining))
        }


# =============================================================================
# Convenience Functions
# =============================================================================

def search(inventory: Inventory, library: Optional[TemplateLibrary] = None) -> MatchResult:
    """Search an inventory with a fresh engine over `library`."""
    return StrategySearchEngine(library=library).search(inventory)
