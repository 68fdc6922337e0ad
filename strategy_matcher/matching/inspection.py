"""
Inspection API for Match Results

Assertion-style helpers used by tests and tools to check that a strategy is
present in a match result. Failures describe what was expected and what was
actually found, so regression failures are diagnosable without a debugger.

Usage:
    from strategy_matcher.matching.inspection import assert_strategy_present

    assert_strategy_present(result, 'Covered Call', 5)

    # Non-raising variant
    issues = find_strategy_mismatches(result, 'Covered Call', 5)
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from strategy_matcher.matching.result import MatchResult

# Configure module logger
logger = logging.getLogger(__name__)


class StrategyAssertionError(AssertionError):
    """Raised when an expected strategy is not present in a match result."""

    def __init__(self, message: str, issues: Optional[List['StrategyMismatch']] = None):
        self.issues = issues or []
        super().__init__(message)


@dataclass(frozen=True)
class StrategyMismatch:
    """
    One discrepancy between an expectation and a match result.

    Attributes:
        code: Machine-readable mismatch code
        message: Human-readable description
    """

    code: str
    message: str

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


def _describe_found(result: MatchResult, underlying: Optional[str]) -> str:
    instances = [
        i for i in result.instances
        if underlying is None or i.underlying == underlying
    ]
    if not instances:
        return "no strategies"
    return ", ".join(f"{i.template_name} x{i.quantity} ({i.underlying})" for i in instances)


def find_strategy_mismatches(
    result: MatchResult,
    name: str,
    quantity: int = 1,
    underlying: Optional[str] = None,
    exact: bool = False
) -> List[StrategyMismatch]:
    """
    Compare a match result with an expected strategy.

    Args:
        result: Match result to inspect
        name: Expected template name
        quantity: Expected multiplier k
        underlying: Restrict the check to one underlying
        exact: Require the summed k over all instances of `name` to equal
               `quantity`. By default one instance with k >= quantity passes.

    Returns:
        List of mismatches; empty when the expectation holds
    """
    if underlying is not None:
        underlying = underlying.upper().strip()

    instances = result.instances_named(name, underlying)
    where = f" on {underlying}" if underlying else ""
    found = _describe_found(result, underlying)

    if not instances:
        return [StrategyMismatch(
            code="STRATEGY_MISSING",
            message=f"expected '{name}' x{quantity}{where}, found {found}",
        )]

    if exact:
        total = sum(i.quantity for i in instances)
        if total != quantity:
            return [StrategyMismatch(
                code="QUANTITY_MISMATCH",
                message=(
                    f"expected '{name}' total quantity {quantity}{where}, "
                    f"found {total} across {len(instances)} instance(s): {found}"
                ),
            )]
        return []

    if not any(i.quantity >= quantity for i in instances):
        largest = max(i.quantity for i in instances)
        return [StrategyMismatch(
            code="QUANTITY_TOO_LOW",
            message=(
                f"expected '{name}' with quantity >= {quantity}{where}, "
                f"largest instance has {largest}: {found}"
            ),
        )]
    return []


def assert_strategy_present(
    result: MatchResult,
    name: str,
    quantity: int = 1,
    underlying: Optional[str] = None,
    exact: bool = False
) -> None:
    """
    Assert that a strategy is present in a match result.

    Args:
        result: Match result to inspect
        name: Expected template name
        quantity: Expected multiplier k
        underlying: Restrict the check to one underlying
        exact: Require the summed k to equal `quantity`

    Raises:
        StrategyAssertionError: Describing expected vs found strategies
    """
    issues = find_strategy_mismatches(result, name, quantity, underlying, exact)
    if issues:
        logger.debug(f"Strategy assertion failed: {issues[0]}")
        raise StrategyAssertionError("; ".join(i.message for i in issues), issues=issues)
