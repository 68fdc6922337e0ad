"""
Strategy Templates Module

Immutable catalog of named option strategy shapes.

Components:
    - legs: Leg specifications, directions and relative constraints
    - definitions: StrategyTemplate and the canonical strategy catalog
    - library: TemplateLibrary, the priority-ordered collection searched by
      the matcher

Usage:
    from strategy_matcher.templates import TemplateLibrary, templates

    library = TemplateLibrary.default()
    print(library.names()[:3])
"""

from strategy_matcher.templates.legs import (
    # Enums
    Direction,
    ConstraintKind,
    # Classes
    LegConstraint,
    LegSpecification,
    # Constraint factories
    strike_above,
    strike_below,
    same_strike,
    same_expiry,
    expiry_after,
    expiry_before,
    equal_strike_spacing,
    # Leg factories
    call,
    put,
    underlying,
)

from strategy_matcher.templates.definitions import (
    StrategyTemplate,
    TemplateDefinitionError,
    OptionStrategyDefinitions,
)

from strategy_matcher.templates.library import (
    TemplateLibrary,
    DEFAULT_LIBRARY,
    templates,
)

__all__ = [
    # Legs
    "Direction",
    "ConstraintKind",
    "LegConstraint",
    "LegSpecification",
    "strike_above",
    "strike_below",
    "same_strike",
    "same_expiry",
    "expiry_after",
    "expiry_before",
    "equal_strike_spacing",
    "call",
    "put",
    "underlying",
    # Definitions
    "StrategyTemplate",
    "TemplateDefinitionError",
    "OptionStrategyDefinitions",
    # Library
    "TemplateLibrary",
    "DEFAULT_LIBRARY",
    "templates",
]
