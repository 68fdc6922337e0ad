"""
Matching Module

Strategy search over position inventories.

Components:
    - leg_matcher: Binds one leg specification to a concrete position
    - search: StrategySearchEngine, the greedy priority-ordered search
    - result: MatchResult, StrategyInstance, ResidualLeg and error types
    - inspection: Assertion-style helpers over match results

Usage:
    from strategy_matcher.core import Inventory
    from strategy_matcher.matching import search, assert_strategy_present

    result = search(Inventory.build(positions))
    assert_strategy_present(result, 'Covered Call', 5)
"""

from strategy_matcher.matching.result import (
    # Exceptions
    MatchingError,
    InconsistentInventoryError,
    # Result types
    BoundLeg,
    StrategyInstance,
    ResidualLeg,
    UnderlyingMatch,
    MatchResult,
)

from strategy_matcher.matching.leg_matcher import (
    LegMatch,
    LegMatcher,
)

from strategy_matcher.matching.search import (
    StrategySearchEngine,
    search,
)

from strategy_matcher.matching.inspection import (
    StrategyAssertionError,
    StrategyMismatch,
    find_strategy_mismatches,
    assert_strategy_present,
)

__all__ = [
    # Exceptions
    "MatchingError",
    "InconsistentInventoryError",
    # Result types
    "BoundLeg",
    "StrategyInstance",
    "ResidualLeg",
    "UnderlyingMatch",
    "MatchResult",
    # Leg matching
    "LegMatch",
    "LegMatcher",
    # Search
    "StrategySearchEngine",
    "search",
    # Inspection
    "StrategyAssertionError",
    "StrategyMismatch",
    "find_strategy_mismatches",
    "assert_strategy_present",
]
