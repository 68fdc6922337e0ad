"""
Leg Matcher

Binds one leg specification of a template to a concrete position. The
matcher scans candidates in inventory order and returns the first one that
fits structurally (kind, right, direction, relative constraints against the
legs already bound in the attempt) and whose remaining quantity covers at
least one template unit.

Returning None is the normal "no match" signal; it is never an error.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from strategy_matcher.core.position import Position
from strategy_matcher.templates.legs import LegSpecification
from strategy_matcher.matching.result import BoundLeg

# Configure module logger
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LegMatch:
    """
    A successful leg binding.

    Attributes:
        index: Index of the candidate in the searched sequence
        position: The bound position
        unit_quantity: Signed quantity consumed per template unit
        available_units: Whole template units the remaining quantity covers
    """

    index: int
    position: Position
    unit_quantity: int
    available_units: int


class LegMatcher:
    """
    Matches concrete positions against leg specifications.

    The matcher is stateless; one instance may be shared by every search.
    """

    def match(
        self,
        leg: LegSpecification,
        candidates: Sequence[Position],
        remaining: Sequence[int],
        bound: Sequence[BoundLeg] = (),
        bound_indices: Sequence[int] = ()
    ) -> Optional[LegMatch]:
        """
        Find the first candidate that can fill a leg.

        Args:
            leg: Leg specification to fill
            candidates: Same-underlying positions in inventory order
            remaining: Signed remaining quantity per candidate (parallel to
                       candidates)
            bound: Legs already bound in the current attempt, by leg index
            bound_indices: Candidate indices already bound in the attempt

        Returns:
            LegMatch for the first qualifying candidate, or None
        """
        bound_positions = [b.position for b in bound]
        multiplier = self._attempt_multiplier(bound_positions)

        if leg.is_equity and multiplier is None:
            # Equity legs size from the option legs bound before them
            return None

        for index, candidate in enumerate(candidates):
            left = remaining[index]
            if left == 0 or index in bound_indices:
                continue
            if not leg.direction.accepts(left):
                continue
            if leg.is_option and multiplier is not None and candidate.multiplier != multiplier:
                continue
            if not leg.accepts(candidate, bound_positions):
                continue

            unit = leg.unit_quantity(multiplier if leg.is_equity else 1)
            units = abs(left) // abs(unit)
            if units < 1:
                continue

            return LegMatch(
                index=index,
                position=candidate,
                unit_quantity=unit,
                available_units=units,
            )

        return None

    @staticmethod
    def _attempt_multiplier(bound: Sequence[Position]) -> Optional[int]:
        """Contract multiplier shared by the option legs bound so far."""
        for position in bound:
            if position.is_option:
                return position.multiplier
        return None
