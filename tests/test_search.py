"""
Tests for StrategySearchEngine

This module tests the greedy priority-ordered strategy search.

Test Categories:
    1. Reference Scenarios
        - Naked call, covered call, partially covered call
        - Iron condor with an extra short put

    2. Strategy Shapes
        - Butterflies, calendars, collars, boxes, mini contracts

    3. Invariants
        - Quantity conservation
        - Determinism and idempotent re-match
        - Priority of larger templates
        - Parallel search equals sequential search

    4. Failure Handling
        - InconsistentInventoryError on invariant violations
"""

import random
import time
from datetime import date

import pytest

from strategy_matcher.core.inventory import Inventory
from strategy_matcher.core.position import create_call, create_equity, create_put
from strategy_matcher.matching.leg_matcher import LegMatch, LegMatcher
from strategy_matcher.matching.result import (
    InconsistentInventoryError,
    MatchingError,
    MatchResult,
    ResidualLeg,
)
from strategy_matcher.matching.search import StrategySearchEngine, search
from strategy_matcher.templates.library import TemplateLibrary

JAN = date(2024, 1, 19)
FEB = date(2024, 2, 16)


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def engine():
    return StrategySearchEngine()


@pytest.fixture
def iron_condor_positions():
    return [
        create_put('SPY', 90, JAN, 1),
        create_put('SPY', 95, JAN, -1),
        create_call('SPY', 105, JAN, -1),
        create_call('SPY', 110, JAN, 1),
    ]


@pytest.fixture
def multi_underlying_positions():
    return [
        create_call('GOOG', 150, JAN, -5),
        create_equity('GOOG', 500),
        create_put('SPY', 90, JAN, 2),
        create_put('SPY', 95, JAN, -2),
        create_call('SPY', 105, JAN, -2),
        create_call('SPY', 110, JAN, 2),
        create_call('AAPL', 180, JAN, 1),
        create_put('AAPL', 180, JAN, 1),
        create_equity('MSFT', -300),
        create_call('QQQ', 400, JAN, -3),
    ]


def _run(positions, library=None):
    return StrategySearchEngine(library=library).search(Inventory.build(positions))


# =============================================================================
# Reference Scenarios
# =============================================================================

class TestReferenceScenarios:

    def test_naked_calls_only(self):
        result = _run([create_call('GOOG', 150, JAN, -5)])
        assert len(result.instances) == 1
        instance = result.instances[0]
        assert instance.template_name == 'Naked Call'
        assert instance.quantity == 5
        assert result.residuals == ()

    def test_covered_call(self):
        result = _run([create_call('GOOG', 150, JAN, -5), create_equity('GOOG', 500)])
        assert [(i.template_name, i.quantity) for i in result.instances] == [('Covered Call', 5)]
        assert result.residuals == ()

    def test_covered_call_limited_by_calls(self):
        shares = create_equity('GOOG', 500)
        result = _run([create_call('GOOG', 150, JAN, -3), shares])
        assert [(i.template_name, i.quantity) for i in result.instances] == [('Covered Call', 3)]
        assert result.residuals == (ResidualLeg(position=shares, quantity=200),)

    def test_covered_call_limited_by_shares(self):
        calls = create_call('GOOG', 150, JAN, -5)
        result = _run([calls, create_equity('GOOG', 300)])
        assert result.total_quantity('Covered Call') == 3
        assert result.total_quantity('Naked Call') == 2
        assert result.residuals == ()

    def test_iron_condor_with_extra_put_no_naked_templates(self, iron_condor_positions):
        extra = create_put('SPY', 80, JAN, -1)
        library = TemplateLibrary.default(exclude=['Naked Call', 'Naked Put'])
        result = _run(iron_condor_positions + [extra], library)

        assert [(i.template_name, i.quantity) for i in result.instances] == [('Iron Condor', 1)]
        assert len(result.residuals) == 1
        residual = result.residuals[0]
        assert residual.position == extra
        assert residual.quantity == -1
        assert residual.is_naked

    def test_iron_condor_with_extra_put_default_catalog(self, iron_condor_positions):
        extra = create_put('SPY', 80, JAN, -1)
        result = _run(iron_condor_positions + [extra])

        assert [(i.template_name, i.quantity) for i in result.instances] == [
            ('Iron Condor', 1),
            ('Naked Put', 1),
        ]
        assert result.instances[1].positions == (extra,)
        assert result.residuals == ()


# =============================================================================
# Strategy Shape Tests
# =============================================================================

class TestStrategyShapes:

    def test_iron_condor_beats_two_verticals(self, iron_condor_positions):
        result = _run(iron_condor_positions)
        assert result.strategy_names() == ['Iron Condor']

    def test_butterfly_call(self):
        result = _run([
            create_call('SPY', 100, JAN, 1),
            create_call('SPY', 105, JAN, -2),
            create_call('SPY', 110, JAN, 1),
        ])
        assert [(i.template_name, i.quantity) for i in result.instances] == [('Butterfly Call', 1)]
        body = result.instances[0].consumption()[1]
        assert body[1] == -2

    def test_unequal_wings_are_not_a_butterfly(self):
        result = _run([
            create_call('SPY', 100, JAN, 1),
            create_call('SPY', 105, JAN, -2),
            create_call('SPY', 115, JAN, 1),
        ])
        assert 'Butterfly Call' not in result.strategy_names()
        assert [(i.template_name, i.quantity) for i in result.instances] == [
            ('Bear Call Spread', 1),
            ('Bull Call Spread', 1),
        ]

    def test_protective_collar_beats_covered_call(self):
        result = _run([
            create_equity('SPY', 100),
            create_put('SPY', 95, JAN, 1),
            create_call('SPY', 105, JAN, -1),
        ])
        assert result.strategy_names() == ['Protective Collar']

    def test_conversion(self):
        result = _run([
            create_equity('SPY', 200),
            create_put('SPY', 100, JAN, 2),
            create_call('SPY', 100, JAN, -2),
        ])
        assert [(i.template_name, i.quantity) for i in result.instances] == [('Conversion', 2)]

    def test_call_calendar_spread(self):
        result = _run([
            create_call('SPY', 100, JAN, -1),
            create_call('SPY', 100, FEB, 1),
        ])
        assert result.strategy_names() == ['Call Calendar Spread']

    def test_box_spread(self):
        result = _run([
            create_call('SPY', 100, JAN, 1),
            create_call('SPY', 110, JAN, -1),
            create_put('SPY', 110, JAN, 1),
            create_put('SPY', 100, JAN, -1),
        ])
        assert result.strategy_names() == ['Box Spread']

    def test_short_straddle(self):
        result = _run([create_call('SPY', 100, JAN, -4), create_put('SPY', 100, JAN, -4)])
        assert [(i.template_name, i.quantity) for i in result.instances] == [('Short Straddle', 4)]

    def test_covered_put(self):
        result = _run([create_put('SPY', 100, JAN, -2), create_equity('SPY', -200)])
        assert [(i.template_name, i.quantity) for i in result.instances] == [('Covered Put', 2)]

    def test_mini_contracts_cover_with_fewer_shares(self):
        result = _run([
            create_call('SPY', 100, JAN, -5, multiplier=10),
            create_equity('SPY', 50),
        ])
        assert [(i.template_name, i.quantity) for i in result.instances] == [('Covered Call', 5)]
        assert result.instances[0].consumption()[1][1] == 50

    def test_long_options_stay_residual(self):
        result = _run([create_call('SPY', 100, JAN, 2)])
        assert result.instances == ()
        assert result.residuals[0].quantity == 2
        assert not result.residuals[0].is_naked

    def test_equity_only_stays_residual(self):
        result = _run([create_equity('SPY', 100)])
        assert result.instances == ()
        assert result.residuals[0].quantity == 100

    def test_repeats_template_across_different_lots(self):
        result = _run([
            create_call('SPY', 100, JAN, -1),
            create_call('SPY', 105, JAN, -2),
            create_equity('SPY', 300),
        ])
        assert [(i.template_name, i.quantity) for i in result.instances] == [
            ('Covered Call', 1),
            ('Covered Call', 2),
        ]
        assert result.total_quantity('Covered Call') == 3


# =============================================================================
# Policy Tests
# =============================================================================

class TestSearchPolicy:

    def test_lower_priority_templates_use_leftovers(self):
        result = _run([
            create_equity('SPY', 500),
            create_put('SPY', 95, JAN, 2),
            create_call('SPY', 105, JAN, -3),
        ])
        assert [(i.template_name, i.quantity) for i in result.instances] == [
            ('Protective Collar', 2),
            ('Covered Call', 1),
        ]
        assert [(r.position.symbol, r.quantity) for r in result.residuals] == [('SPY', 200)]

    def test_first_anchor_only_no_backtracking(self):
        # The Jan call anchors the bull call spread; the Feb call is never tried
        result = _run([
            create_call('SPY', 100, JAN, 1),
            create_call('SPY', 100, FEB, 1),
            create_call('SPY', 105, FEB, -1),
        ])
        assert result.strategy_names() == ['Naked Call']
        assert sorted(r.quantity for r in result.residuals) == [1, 1]

    def test_module_level_search(self, iron_condor_positions):
        result = search(Inventory.build(iron_condor_positions))
        assert result.strategy_names() == ['Iron Condor']

    def test_custom_library(self):
        library = TemplateLibrary.default().without(['Covered Call'])
        result = _run([create_call('GOOG', 150, JAN, -5), create_equity('GOOG', 500)], library)
        assert result.strategy_names() == ['Naked Call']


# =============================================================================
# Invariant Tests
# =============================================================================

class TestSearchInvariants:

    def test_conservation(self, multi_underlying_positions):
        inventory = Inventory.build(multi_underlying_positions)
        result = StrategySearchEngine(verify=False).search(inventory)
        result.check_conservation(inventory)
        for position in inventory:
            consumed = result.consumed_quantity(position)
            residual = result.residual_quantity(position)
            assert consumed + residual == position.quantity

    def test_no_over_consumption(self, multi_underlying_positions):
        result = _run(multi_underlying_positions)
        for instance in result.instances:
            assert instance.quantity >= 1
            for position, consumed in instance.consumption():
                assert abs(consumed) <= abs(position.quantity)
                assert consumed * position.quantity > 0

    def test_deterministic(self, multi_underlying_positions):
        expected = _run(multi_underlying_positions)
        shuffled = list(multi_underlying_positions)
        random.Random(7).shuffle(shuffled)
        assert _run(shuffled) == expected
        assert _run(multi_underlying_positions) == expected

    def test_idempotent_after_zero_quantity_change(self, multi_underlying_positions):
        expected = _run(multi_underlying_positions)
        noisy = multi_underlying_positions + [create_put('SPY', 50, JAN, 0)]
        assert _run(noisy) == expected

    def test_results_grouped_by_sorted_underlying(self, multi_underlying_positions):
        result = _run(multi_underlying_positions)
        underlyings = [i.underlying for i in result.instances]
        assert underlyings == sorted(underlyings)
        assert result.underlyings == ('AAPL', 'GOOG', 'MSFT', 'QQQ', 'SPY')

    def test_multi_underlying_result(self, multi_underlying_positions):
        result = _run(multi_underlying_positions)
        assert result.total_quantity('Straddle', 'AAPL') == 1
        assert result.total_quantity('Covered Call', 'GOOG') == 5
        assert result.total_quantity('Naked Call', 'QQQ') == 3
        assert result.total_quantity('Iron Condor', 'SPY') == 2
        assert [(r.underlying, r.quantity) for r in result.residuals] == [('MSFT', -300)]

    def test_parallel_matches_sequential(self, multi_underlying_positions):
        inventory = Inventory.build(multi_underlying_positions)
        sequential = StrategySearchEngine().search(inventory)
        parallel = StrategySearchEngine(max_workers=4).search(inventory)
        assert parallel == sequential

    def test_repeated_lot_object(self, engine):
        lot = create_call('GOOG', 150.0, JAN, -5)
        result = engine.search(Inventory.build([lot, lot]))
        assert result.strategy_names() == ['Naked Call']
        assert result.total_quantity('Naked Call') == 10
        assert result.residuals == ()

    def test_conservation_with_shared_lot_across_slots(self):
        lot = create_call('GOOG', 150.0, JAN, -5)
        inventory = Inventory({'GOOG': (lot, lot)})
        result = StrategySearchEngine().search(inventory)
        assert result.total_quantity('Naked Call') == 10
        assert result.consumed_quantity(lot) == -10

    def test_conservation_check_scales_linearly(self):
        positions = []
        for i in range(2000):
            underlying = f"U{i:04d}"
            positions.append(create_call(underlying, 100, JAN, -2))
            positions.append(create_equity(underlying, 100))
        inventory = Inventory.build(positions)
        result = StrategySearchEngine(verify=False).search(inventory)
        assert result.total_quantity('Covered Call') == 2000

        start = time.time()
        result.check_conservation(inventory)
        elapsed = time.time() - start
        assert elapsed < 0.5, f"Conservation check took {elapsed:.3f}s"

    def test_empty_inventory(self, engine):
        result = engine.search(Inventory.build([]))
        assert result.is_empty
        assert result == MatchResult()

    def test_invalid_max_workers(self):
        with pytest.raises(ValueError):
            StrategySearchEngine(max_workers=0)


# =============================================================================
# Failure Handling Tests
# =============================================================================

class _ZeroUnitMatcher(LegMatcher):
    """Reports a binding that covers no template unit."""

    def match(self, leg, candidates, remaining, bound=(), bound_indices=()):
        found = super().match(leg, candidates, remaining, bound, bound_indices)
        if found is None:
            return None
        return LegMatch(found.index, found.position, found.unit_quantity, 0)


class _OverclaimingMatcher(LegMatcher):
    """Claims more units than the remaining quantity holds."""

    def match(self, leg, candidates, remaining, bound=(), bound_indices=()):
        found = super().match(leg, candidates, remaining, bound, bound_indices)
        if found is None:
            return None
        return LegMatch(found.index, found.position, found.unit_quantity, found.available_units + 1)


class TestInconsistentInventory:

    def test_zero_multiplier_raises(self, engine):
        engine._leg_matcher = _ZeroUnitMatcher()
        with pytest.raises(InconsistentInventoryError) as exc_info:
            engine.search(Inventory.build([create_call('GOOG', 150, JAN, -5)]))
        error = exc_info.value
        assert error.underlying == 'GOOG'
        assert error.template_name == 'Naked Call'
        assert error.bindings
        assert 'GOOG  240119C00150000' in str(error)

    def test_sign_flip_raises(self, engine):
        engine._leg_matcher = _OverclaimingMatcher()
        with pytest.raises(InconsistentInventoryError, match="would go from -5 to 1"):
            engine.search(Inventory.build([create_call('GOOG', 150, JAN, -5)]))

    def test_conservation_failure_raises(self):
        inventory = Inventory.build([create_call('GOOG', 150, JAN, -5)])
        calls = inventory.positions[0]
        broken = MatchResult(residuals=(ResidualLeg(position=calls, quantity=-4),))
        with pytest.raises(InconsistentInventoryError, match="not conserved"):
            broken.check_conservation(inventory)

    def test_error_hierarchy(self):
        assert issubclass(InconsistentInventoryError, MatchingError)

    def test_error_renders_state(self):
        error = InconsistentInventoryError(
            "boom",
            underlying='SPY',
            template_name='Iron Condor',
            bindings=['leg 0: SPY'],
            remaining={'0:SPY': 3},
        )
        text = str(error)
        assert text.splitlines()[0] == "boom"
        assert "underlying: SPY" in text
        assert "template: Iron Condor" in text
        assert "remaining: 0:SPY = 3" in text
