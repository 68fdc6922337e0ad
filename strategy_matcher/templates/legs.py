"""
Leg Specifications for Strategy Templates

This module defines the building blocks of strategy templates: a leg
specification states the instrument kind, option right, direction, quantity
ratio and the relative strike/expiry constraints a position must satisfy
against legs bound earlier in the same template.

Constraint kinds are a closed enumeration. Each constraint references one
or two earlier legs by index:

    STRIKE_ABOVE(i)            candidate.strike >  legs[i].strike
    STRIKE_BELOW(i)            candidate.strike <  legs[i].strike
    SAME_STRIKE(i)             candidate.strike == legs[i].strike
    SAME_EXPIRY(i)             candidate.expiry == legs[i].expiry
    EXPIRY_AFTER(i)            candidate.expiry >  legs[i].expiry
    EXPIRY_BEFORE(i)           candidate.expiry <  legs[i].expiry
    EQUAL_STRIKE_SPACING(a, b) candidate.strike - legs[b].strike
                               == legs[b].strike - legs[a].strike

Usage:
    from strategy_matcher.templates.legs import call, put, strike_above, same_expiry

    # Bull call spread: long lower call, short higher call, same expiry
    legs = (
        call(LONG),
        call(SHORT, strike_above(0), same_expiry(0)),
    )
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple

from strategy_matcher.core.position import (
    Position,
    SecurityKind,
    OptionRight,
)

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Relative tolerance when comparing strikes computed from float arithmetic
STRIKE_TOLERANCE = 1e-9


# =============================================================================
# Enumerations
# =============================================================================

class Direction(str, Enum):
    """Required position direction of a leg."""

    LONG = "long"
    SHORT = "short"

    @property
    def sign(self) -> int:
        """+1 for long, -1 for short."""
        return 1 if self is Direction.LONG else -1

    def flipped(self) -> 'Direction':
        return Direction.SHORT if self is Direction.LONG else Direction.LONG

    def accepts(self, quantity: int) -> bool:
        """Check whether a signed quantity has this direction."""
        return quantity * self.sign > 0


class ConstraintKind(str, Enum):
    """Relative strike/expiry constraint variants."""

    STRIKE_ABOVE = "strike_above"
    STRIKE_BELOW = "strike_below"
    SAME_STRIKE = "same_strike"
    SAME_EXPIRY = "same_expiry"
    EXPIRY_AFTER = "expiry_after"
    EXPIRY_BEFORE = "expiry_before"
    EQUAL_STRIKE_SPACING = "equal_strike_spacing"

    @property
    def arity(self) -> int:
        """Number of referenced legs."""
        return 2 if self is ConstraintKind.EQUAL_STRIKE_SPACING else 1


# =============================================================================
# Leg Constraint
# =============================================================================

def _strikes_equal(a: float, b: float) -> bool:
    return math.isclose(a, b, rel_tol=STRIKE_TOLERANCE, abs_tol=STRIKE_TOLERANCE)


@dataclass(frozen=True)
class LegConstraint:
    """
    A relative constraint between a candidate and earlier bound legs.

    Attributes:
        kind: Constraint variant
        legs: Indices of the referenced legs (one, or two for spacing)
    """

    kind: ConstraintKind
    legs: Tuple[int, ...]

    def is_satisfied(self, candidate: Position, bound: Sequence[Position]) -> bool:
        """
        Evaluate the constraint.

        Args:
            candidate: Position being considered for the leg
            bound: Positions bound to the earlier legs, by leg index

        Returns:
            True if the candidate satisfies the constraint
        """
        refs = [bound[i] for i in self.legs]
        ref = refs[0]
        kind = self.kind

        if kind is ConstraintKind.STRIKE_ABOVE:
            return candidate.strike > ref.strike and not _strikes_equal(candidate.strike, ref.strike)
        if kind is ConstraintKind.STRIKE_BELOW:
            return candidate.strike < ref.strike and not _strikes_equal(candidate.strike, ref.strike)
        if kind is ConstraintKind.SAME_STRIKE:
            return _strikes_equal(candidate.strike, ref.strike)
        if kind is ConstraintKind.SAME_EXPIRY:
            return candidate.expiry == ref.expiry
        if kind is ConstraintKind.EXPIRY_AFTER:
            return candidate.expiry > ref.expiry
        if kind is ConstraintKind.EXPIRY_BEFORE:
            return candidate.expiry < ref.expiry
        if kind is ConstraintKind.EQUAL_STRIKE_SPACING:
            middle = refs[1]
            return _strikes_equal(
                candidate.strike - middle.strike,
                middle.strike - ref.strike,
            )
        raise ValueError(f"Unknown constraint kind: {kind}")

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.kind.value, 'legs': list(self.legs)}

    def __str__(self) -> str:
        return f"{self.kind.value}({', '.join(str(i) for i in self.legs)})"


def strike_above(leg: int) -> LegConstraint:
    """Candidate strike must be above the strike of leg `leg`."""
    return LegConstraint(ConstraintKind.STRIKE_ABOVE, (leg,))


def strike_below(leg: int) -> LegConstraint:
    """Candidate strike must be below the strike of leg `leg`."""
    return LegConstraint(ConstraintKind.STRIKE_BELOW, (leg,))


def same_strike(leg: int) -> LegConstraint:
    """Candidate strike must equal the strike of leg `leg`."""
    return LegConstraint(ConstraintKind.SAME_STRIKE, (leg,))


def same_expiry(leg: int) -> LegConstraint:
    """Candidate must expire with leg `leg`."""
    return LegConstraint(ConstraintKind.SAME_EXPIRY, (leg,))


def expiry_after(leg: int) -> LegConstraint:
    """Candidate must expire after leg `leg`."""
    return LegConstraint(ConstraintKind.EXPIRY_AFTER, (leg,))


def expiry_before(leg: int) -> LegConstraint:
    """Candidate must expire before leg `leg`."""
    return LegConstraint(ConstraintKind.EXPIRY_BEFORE, (leg,))


def equal_strike_spacing(first: int, middle: int) -> LegConstraint:
    """Candidate strike must sit as far above `middle` as `middle` sits above `first`."""
    return LegConstraint(ConstraintKind.EQUAL_STRIKE_SPACING, (first, middle))


# =============================================================================
# Leg Specification
# =============================================================================

@dataclass(frozen=True)
class LegSpecification:
    """
    Shape of one leg within a strategy template.

    Attributes:
        kind: EQUITY or OPTION
        direction: LONG or SHORT
        ratio: Quantity per template unit. Contracts for options, lots of
               `multiplier` shares for equity.
        right: CALL or PUT for option legs, None for equity
        constraints: Relative constraints against earlier legs
    """

    kind: SecurityKind
    direction: Direction
    ratio: int = 1
    right: Optional[OptionRight] = None
    constraints: Tuple[LegConstraint, ...] = field(default_factory=tuple)

    @property
    def is_equity(self) -> bool:
        return self.kind is SecurityKind.EQUITY

    @property
    def is_option(self) -> bool:
        return self.kind is SecurityKind.OPTION

    def accepts(self, candidate: Position, bound: Sequence[Position]) -> bool:
        """
        Check the structural fit of a candidate, ignoring quantity.

        Args:
            candidate: Position to check
            bound: Positions bound to the earlier legs

        Returns:
            True if kind, right and all relative constraints match
        """
        if candidate.kind is not self.kind:
            return False
        if self.is_option and candidate.right is not self.right:
            return False
        return all(c.is_satisfied(candidate, bound) for c in self.constraints)

    def unit_quantity(self, multiplier: int) -> int:
        """
        Signed quantity this leg consumes for one template unit.

        Args:
            multiplier: Contract multiplier of the bound option legs

        Returns:
            ratio (options) or ratio * multiplier (equity), signed by direction
        """
        size = self.ratio * multiplier if self.is_equity else self.ratio
        return size * self.direction.sign

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'kind': self.kind.value,
            'direction': self.direction.value,
            'ratio': self.ratio,
        }
        if self.right is not None:
            data['right'] = self.right.value
        if self.constraints:
            data['constraints'] = [c.to_dict() for c in self.constraints]
        return data

    def __str__(self) -> str:
        if self.is_equity:
            label = f"{self.direction.value} {self.ratio} lot underlying"
        else:
            label = f"{self.direction.value} {self.ratio} {self.right.value}"
        if self.constraints:
            label += f" [{', '.join(str(c) for c in self.constraints)}]"
        return label


# =============================================================================
# Factory Functions
# =============================================================================

def call(direction: Direction, *constraints: LegConstraint, ratio: int = 1) -> LegSpecification:
    """Create a call option leg."""
    return LegSpecification(
        kind=SecurityKind.OPTION,
        direction=direction,
        ratio=ratio,
        right=OptionRight.CALL,
        constraints=tuple(constraints),
    )


def put(direction: Direction, *constraints: LegConstraint, ratio: int = 1) -> LegSpecification:
    """Create a put option leg."""
    return LegSpecification(
        kind=SecurityKind.OPTION,
        direction=direction,
        ratio=ratio,
        right=OptionRight.PUT,
        constraints=tuple(constraints),
    )


def underlying(direction: Direction, lots: int = 1) -> LegSpecification:
    """Create an underlying equity leg of `lots` contract multiples."""
    return LegSpecification(
        kind=SecurityKind.EQUITY,
        direction=direction,
        ratio=lots,
    )
