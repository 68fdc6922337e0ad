"""
Option Strategy Definitions

This module defines StrategyTemplate, a named and immutable sequence of leg
specifications, and the catalog of canonical option strategies the matcher
recognizes.

Leg declaration order matters: the search engine binds legs greedily in the
order they are declared, and constraints may only reference earlier legs.
Equity legs size themselves from the contract multiplier of the option legs
already bound, so every equity leg follows at least one option leg.

Catalog:
    1 leg:  Naked Call, Naked Put
    2 legs: Covered Call, Covered Put, Protective Call, Protective Put,
            Bull/Bear Call Spread, Bull/Bear Put Spread, (Short) Straddle,
            (Short) Strangle, (Short) Call/Put Calendar Spread
    3 legs: Protective Collar, Conversion, Reverse Conversion,
            (Short) Butterfly Call/Put, Bull/Bear Call Ladder,
            Bull/Bear Put Ladder
    4 legs: (Short) Iron Condor, (Short) Iron Butterfly, (Short) Box Spread,
            (Short) Jelly Roll

Usage:
    from strategy_matcher.templates.definitions import OptionStrategyDefinitions

    template = OptionStrategyDefinitions.COVERED_CALL
    print(template.name, template.leg_count)   # Covered Call 2
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from strategy_matcher.templates.legs import (
    Direction,
    LegSpecification,
    call,
    put,
    underlying,
    strike_above,
    same_strike,
    same_expiry,
    expiry_after,
    equal_strike_spacing,
)

# Configure module logger
logger = logging.getLogger(__name__)

LONG = Direction.LONG
SHORT = Direction.SHORT


# =============================================================================
# Exceptions
# =============================================================================

class TemplateDefinitionError(Exception):
    """Exception raised when a strategy template is malformed."""
    pass


# =============================================================================
# Strategy Template
# =============================================================================

@dataclass(frozen=True)
class StrategyTemplate:
    """
    Named, statically defined strategy shape.

    Attributes:
        name: Strategy name reported in match results (e.g., 'Covered Call')
        legs: Ordered leg specifications
        description: Free-form description for listings
    """

    name: str
    legs: Tuple[LegSpecification, ...]
    description: str = ""

    @property
    def leg_count(self) -> int:
        return len(self.legs)

    @property
    def has_underlying(self) -> bool:
        return any(leg.is_equity for leg in self.legs)

    @property
    def priority_key(self) -> Tuple[int, str]:
        """Sort key: more legs first, then lexical name."""
        return (-self.leg_count, self.name)

    def validate(self) -> None:
        """
        Check the template definition.

        Raises:
            TemplateDefinitionError: If the name is empty, there are no legs,
                a ratio is not a positive integer, a constraint references
                itself or a later leg, a constraint is attached to an equity
                leg, or an equity leg precedes every option leg
        """
        if not self.name or not isinstance(self.name, str):
            raise TemplateDefinitionError("template name must be a non-empty string")
        if not self.legs:
            raise TemplateDefinitionError(f"{self.name}: template has no legs")

        seen_option = False
        for index, leg in enumerate(self.legs):
            if not isinstance(leg, LegSpecification):
                raise TemplateDefinitionError(
                    f"{self.name}: leg {index} is not a LegSpecification"
                )
            if not isinstance(leg.ratio, int) or isinstance(leg.ratio, bool) or leg.ratio < 1:
                raise TemplateDefinitionError(
                    f"{self.name}: leg {index} ratio must be a positive integer, "
                    f"got {leg.ratio!r}"
                )

            if leg.is_equity:
                if leg.right is not None:
                    raise TemplateDefinitionError(
                        f"{self.name}: equity leg {index} cannot have a right"
                    )
                if leg.constraints:
                    raise TemplateDefinitionError(
                        f"{self.name}: equity leg {index} cannot have constraints"
                    )
                if not seen_option:
                    raise TemplateDefinitionError(
                        f"{self.name}: equity leg {index} must follow an option leg"
                    )
                continue

            if leg.right is None:
                raise TemplateDefinitionError(
                    f"{self.name}: option leg {index} needs a right"
                )
            seen_option = True

            for constraint in leg.constraints:
                if len(constraint.legs) != constraint.kind.arity:
                    raise TemplateDefinitionError(
                        f"{self.name}: leg {index} constraint {constraint} expects "
                        f"{constraint.kind.arity} leg reference(s)"
                    )
                for ref in constraint.legs:
                    if not isinstance(ref, int) or ref < 0 or ref >= index:
                        raise TemplateDefinitionError(
                            f"{self.name}: leg {index} constraint {constraint} must "
                            f"reference an earlier leg"
                        )
                    if self.legs[ref].is_equity:
                        raise TemplateDefinitionError(
                            f"{self.name}: leg {index} constraint {constraint} "
                            f"references equity leg {ref}"
                        )

    def inverted(self, name: str, description: str = "") -> 'StrategyTemplate':
        """Return the same shape with every direction flipped."""
        legs = tuple(
            LegSpecification(
                kind=leg.kind,
                direction=leg.direction.flipped(),
                ratio=leg.ratio,
                right=leg.right,
                constraints=leg.constraints,
            )
            for leg in self.legs
        )
        return StrategyTemplate(name=name, legs=legs, description=description)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'description': self.description,
            'legs': [leg.to_dict() for leg in self.legs],
        }

    def __str__(self) -> str:
        return f"{self.name} ({self.leg_count} legs)"


# =============================================================================
# Catalog
# =============================================================================

class OptionStrategyDefinitions:
    """
    Canonical option strategy templates.

    Each attribute is a StrategyTemplate; all() returns the full catalog in
    declaration order (the library imposes priority order).
    """

    # -------------------------------------------------------------------------
    # Single leg
    # -------------------------------------------------------------------------

    NAKED_CALL = StrategyTemplate(
        "Naked Call",
        (call(SHORT),),
        "Short call without covering stock",
    )

    NAKED_PUT = StrategyTemplate(
        "Naked Put",
        (put(SHORT),),
        "Short put without covering stock",
    )

    # -------------------------------------------------------------------------
    # Option plus underlying
    # -------------------------------------------------------------------------

    COVERED_CALL = StrategyTemplate(
        "Covered Call",
        (call(SHORT), underlying(LONG)),
        "Short call covered by one lot of long stock",
    )

    COVERED_PUT = StrategyTemplate(
        "Covered Put",
        (put(SHORT), underlying(SHORT)),
        "Short put covered by one lot of short stock",
    )

    PROTECTIVE_CALL = StrategyTemplate(
        "Protective Call",
        (call(LONG), underlying(SHORT)),
        "Long call hedging one lot of short stock",
    )

    PROTECTIVE_PUT = StrategyTemplate(
        "Protective Put",
        (put(LONG), underlying(LONG)),
        "Long put hedging one lot of long stock",
    )

    PROTECTIVE_COLLAR = StrategyTemplate(
        "Protective Collar",
        (
            put(LONG),
            call(SHORT, strike_above(0), same_expiry(0)),
            underlying(LONG),
        ),
        "Long stock, long put, short higher call",
    )

    CONVERSION = StrategyTemplate(
        "Conversion",
        (
            put(LONG),
            call(SHORT, same_strike(0), same_expiry(0)),
            underlying(LONG),
        ),
        "Long stock, long put and short call at the same strike",
    )

    REVERSE_CONVERSION = StrategyTemplate(
        "Reverse Conversion",
        (
            put(SHORT),
            call(LONG, same_strike(0), same_expiry(0)),
            underlying(SHORT),
        ),
        "Short stock, short put and long call at the same strike",
    )

    # -------------------------------------------------------------------------
    # Verticals
    # -------------------------------------------------------------------------

    BULL_CALL_SPREAD = StrategyTemplate(
        "Bull Call Spread",
        (call(LONG), call(SHORT, strike_above(0), same_expiry(0))),
        "Long lower call, short higher call",
    )

    BEAR_CALL_SPREAD = StrategyTemplate(
        "Bear Call Spread",
        (call(SHORT), call(LONG, strike_above(0), same_expiry(0))),
        "Short lower call, long higher call",
    )

    BULL_PUT_SPREAD = StrategyTemplate(
        "Bull Put Spread",
        (put(LONG), put(SHORT, strike_above(0), same_expiry(0))),
        "Long lower put, short higher put",
    )

    BEAR_PUT_SPREAD = StrategyTemplate(
        "Bear Put Spread",
        (put(SHORT), put(LONG, strike_above(0), same_expiry(0))),
        "Short lower put, long higher put",
    )

    # -------------------------------------------------------------------------
    # Straddles and strangles
    # -------------------------------------------------------------------------

    STRADDLE = StrategyTemplate(
        "Straddle",
        (call(LONG), put(LONG, same_strike(0), same_expiry(0))),
        "Long call and long put at the same strike",
    )

    SHORT_STRADDLE = STRADDLE.inverted(
        "Short Straddle", "Short call and short put at the same strike"
    )

    STRANGLE = StrategyTemplate(
        "Strangle",
        (put(LONG), call(LONG, strike_above(0), same_expiry(0))),
        "Long put and long higher call",
    )

    SHORT_STRANGLE = STRANGLE.inverted(
        "Short Strangle", "Short put and short higher call"
    )

    # -------------------------------------------------------------------------
    # Calendars
    # -------------------------------------------------------------------------

    CALL_CALENDAR_SPREAD = StrategyTemplate(
        "Call Calendar Spread",
        (call(SHORT), call(LONG, same_strike(0), expiry_after(0))),
        "Short near call, long far call at the same strike",
    )

    SHORT_CALL_CALENDAR_SPREAD = CALL_CALENDAR_SPREAD.inverted(
        "Short Call Calendar Spread", "Long near call, short far call at the same strike"
    )

    PUT_CALENDAR_SPREAD = StrategyTemplate(
        "Put Calendar Spread",
        (put(SHORT), put(LONG, same_strike(0), expiry_after(0))),
        "Short near put, long far put at the same strike",
    )

    SHORT_PUT_CALENDAR_SPREAD = PUT_CALENDAR_SPREAD.inverted(
        "Short Put Calendar Spread", "Long near put, short far put at the same strike"
    )

    # -------------------------------------------------------------------------
    # Butterflies and ladders
    # -------------------------------------------------------------------------

    BUTTERFLY_CALL = StrategyTemplate(
        "Butterfly Call",
        (
            call(LONG),
            call(SHORT, strike_above(0), same_expiry(0), ratio=2),
            call(LONG, strike_above(1), same_expiry(0), equal_strike_spacing(0, 1)),
        ),
        "Long wing calls around two short body calls, equal spacing",
    )

    SHORT_BUTTERFLY_CALL = BUTTERFLY_CALL.inverted(
        "Short Butterfly Call", "Short wing calls around two long body calls"
    )

    BUTTERFLY_PUT = StrategyTemplate(
        "Butterfly Put",
        (
            put(LONG),
            put(SHORT, strike_above(0), same_expiry(0), ratio=2),
            put(LONG, strike_above(1), same_expiry(0), equal_strike_spacing(0, 1)),
        ),
        "Long wing puts around two short body puts, equal spacing",
    )

    SHORT_BUTTERFLY_PUT = BUTTERFLY_PUT.inverted(
        "Short Butterfly Put", "Short wing puts around two long body puts"
    )

    BULL_CALL_LADDER = StrategyTemplate(
        "Bull Call Ladder",
        (
            call(LONG),
            call(SHORT, strike_above(0), same_expiry(0)),
            call(SHORT, strike_above(1), same_expiry(0)),
        ),
        "Long lower call, short two higher calls",
    )

    BEAR_CALL_LADDER = BULL_CALL_LADDER.inverted(
        "Bear Call Ladder", "Short lower call, long two higher calls"
    )

    BULL_PUT_LADDER = StrategyTemplate(
        "Bull Put Ladder",
        (
            put(LONG),
            put(LONG, strike_above(0), same_expiry(0)),
            put(SHORT, strike_above(1), same_expiry(0)),
        ),
        "Long two lower puts, short highest put",
    )

    BEAR_PUT_LADDER = BULL_PUT_LADDER.inverted(
        "Bear Put Ladder", "Short two lower puts, long highest put"
    )

    # -------------------------------------------------------------------------
    # Four legs
    # -------------------------------------------------------------------------

    IRON_CONDOR = StrategyTemplate(
        "Iron Condor",
        (
            put(LONG),
            put(SHORT, strike_above(0), same_expiry(0)),
            call(SHORT, strike_above(1), same_expiry(0)),
            call(LONG, strike_above(2), same_expiry(0)),
        ),
        "Bull put spread below a bear call spread",
    )

    SHORT_IRON_CONDOR = IRON_CONDOR.inverted(
        "Short Iron Condor", "Bear put spread below a bull call spread"
    )

    IRON_BUTTERFLY = StrategyTemplate(
        "Iron Butterfly",
        (
            put(LONG),
            put(SHORT, strike_above(0), same_expiry(0)),
            call(SHORT, same_strike(1), same_expiry(0)),
            call(LONG, strike_above(2), same_expiry(0), equal_strike_spacing(0, 2)),
        ),
        "Short straddle with equidistant long wings",
    )

    SHORT_IRON_BUTTERFLY = IRON_BUTTERFLY.inverted(
        "Short Iron Butterfly", "Long straddle with equidistant short wings"
    )

    BOX_SPREAD = StrategyTemplate(
        "Box Spread",
        (
            call(LONG),
            call(SHORT, strike_above(0), same_expiry(0)),
            put(LONG, same_strike(1), same_expiry(0)),
            put(SHORT, same_strike(0), same_expiry(0)),
        ),
        "Bull call spread plus bear put spread on the same strikes",
    )

    SHORT_BOX_SPREAD = BOX_SPREAD.inverted(
        "Short Box Spread", "Bear call spread plus bull put spread on the same strikes"
    )

    JELLY_ROLL = StrategyTemplate(
        "Jelly Roll",
        (
            call(SHORT),
            call(LONG, same_strike(0), expiry_after(0)),
            put(LONG, same_strike(0), same_expiry(0)),
            put(SHORT, same_strike(0), same_expiry(1)),
        ),
        "Long call calendar plus short put calendar at one strike",
    )

    SHORT_JELLY_ROLL = JELLY_ROLL.inverted(
        "Short Jelly Roll", "Short call calendar plus long put calendar at one strike"
    )

    @classmethod
    def all(cls) -> Tuple[StrategyTemplate, ...]:
        """Get every definition in declaration order."""
        return tuple(
            value for value in vars(cls).values()
            if isinstance(value, StrategyTemplate)
        )

    @classmethod
    def names(cls) -> List[str]:
        return [template.name for template in cls.all()]
