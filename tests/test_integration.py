"""
Integration Tests for the Option Strategy Matcher

End-to-end flows through the whole system: fills into a live PositionBook,
snapshot into an Inventory, search against the template library, inspection
of the result and strategy-aware margin.

Test Categories:
    1. Covered Call Regression: selling calls against shares must re-margin
    2. Book Workflow: fills, partial closes and re-matching
    3. File Workflow: positions, catalog and prices loaded from disk
    4. Multi-Underlying Portfolio: independent groups, one margin total

Run Tests:
    pytest tests/test_integration.py -v --tb=short
"""

import pytest
import yaml
from datetime import date

from strategy_matcher import (
    Inventory,
    MarginBridge,
    MarketPrices,
    PositionBook,
    StrategySearchEngine,
    TemplateLibrary,
    assert_strategy_present,
    create_call,
    create_equity,
    create_put,
    load_positions,
    load_template_catalog,
    search,
)
from strategy_matcher.cli.config_loader import load_prices

JAN = date(2024, 1, 19)
FEB = date(2024, 2, 16)


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def goog_prices():
    return MarketPrices(underlying_prices={'GOOG': 145.0})


@pytest.fixture
def portfolio():
    """Positions on four underlyings with one leftover leg each on two."""
    return [
        # GOOG: covered call with 200 spare shares
        create_call('GOOG', 150, JAN, -3),
        create_equity('GOOG', 500),
        # SPY: iron condor plus a stray short put
        create_put('SPY', 390, JAN, 2),
        create_put('SPY', 395, JAN, -2),
        create_call('SPY', 405, JAN, -2),
        create_call('SPY', 410, JAN, 2),
        create_put('SPY', 380, JAN, -1),
        # AAPL: long call calendar
        create_call('AAPL', 180, JAN, -4),
        create_call('AAPL', 180, FEB, 4),
        # QQQ: short strangle
        create_put('QQQ', 380, JAN, -1),
        create_call('QQQ', 420, JAN, -1),
    ]


# =============================================================================
# Covered Call Regression
# =============================================================================

class TestCoveredCallRegression:
    """Adding shares to naked calls must turn them into a covered call."""

    def test_selling_calls_then_buying_shares(self, goog_prices):
        book = PositionBook()
        book.apply_fill(create_call('GOOG', 150, JAN, -5))

        before = book.match()
        assert_strategy_present(before, 'Naked Call', 5)
        naked_margin = MarginBridge().total_margin(before, goog_prices)
        # max(0.2 x 145 - 5, 0.1 x 145) x 100 x 5
        assert naked_margin == pytest.approx(12000.0)

        book.apply_fill(create_equity('GOOG', 500))

        after = book.match()
        assert_strategy_present(after, 'Covered Call', 5, exact=True)
        assert 'Naked Call' not in after.strategy_names()
        assert after.residuals == ()
        assert book.calculate_total_margin(goog_prices) == pytest.approx(500 * 145.0 * 0.5)

    def test_selling_shares_uncovers_calls(self, goog_prices):
        book = PositionBook()
        book.apply_fill(create_call('GOOG', 150, JAN, -5))
        book.apply_fill(create_equity('GOOG', 500))
        book.apply_fill(create_equity('GOOG', -300))

        result = book.match()
        assert result.total_quantity('Covered Call') == 2
        assert result.total_quantity('Naked Call') == 3

    def test_result_survives_book_changes(self):
        book = PositionBook()
        book.apply_fill(create_call('GOOG', 150, JAN, -5))
        book.apply_fill(create_equity('GOOG', 500))
        result = book.match()

        book.clear()

        assert result.total_quantity('Covered Call') == 5
        assert len(book) == 0


# =============================================================================
# Multi-Underlying Portfolio
# =============================================================================

class TestPortfolio:

    def test_portfolio_partition(self, portfolio):
        result = search(Inventory.build(portfolio))

        assert_strategy_present(result, 'Covered Call', 3, underlying='GOOG')
        assert_strategy_present(result, 'Iron Condor', 2, underlying='SPY')
        assert_strategy_present(result, 'Naked Put', 1, underlying='SPY')
        assert_strategy_present(result, 'Call Calendar Spread', 4, underlying='AAPL')
        assert_strategy_present(result, 'Short Strangle', 1, underlying='QQQ')
        assert [(r.underlying, r.quantity) for r in result.residuals] == [('GOOG', 200)]

    def test_portfolio_margin(self, portfolio):
        result = search(Inventory.build(portfolio))
        prices = MarketPrices({'GOOG': 145.0, 'SPY': 400.0, 'AAPL': 180.0, 'QQQ': 400.0})
        breakdown = MarginBridge().breakdown(result, prices)

        by_name = breakdown.groupby('name')['margin'].sum()
        assert by_name['Covered Call'] == pytest.approx(300 * 145.0 * 0.5)
        assert by_name['GOOG'] == pytest.approx(200 * 145.0 * 0.5)
        assert by_name['Iron Condor'] == pytest.approx(2 * 5 * 100)
        assert by_name['Call Calendar Spread'] == 0.0
        # Both strangle sides are 20 OTM: max(80 - 20, 40 or 38) x 100
        assert by_name['Short Strangle'] == pytest.approx(6000.0)
        assert MarginBridge().total_margin(result, prices) == pytest.approx(breakdown['margin'].sum())

    def test_parallel_portfolio_search(self, portfolio):
        inventory = Inventory.build(portfolio)
        assert StrategySearchEngine(max_workers=4).search(inventory) == search(inventory)

    def test_excluding_naked_templates_leaves_residuals(self, portfolio):
        library = TemplateLibrary.default(exclude=['Naked Call', 'Naked Put'])
        result = search(Inventory.build(portfolio), library)
        naked = [r for r in result.residuals if r.is_naked]
        assert [(r.underlying, r.quantity) for r in naked] == [('SPY', -1)]


# =============================================================================
# File Workflow
# =============================================================================

class TestFileWorkflow:

    def test_files_to_margin(self, tmp_path):
        positions_path = tmp_path / 'positions.csv'
        positions_path.write_text(
            "underlying,kind,right,strike,expiry,quantity\n"
            "GOOG,option,call,150,2024-01-19,-5\n"
            "GOOG,equity,,,,500\n"
        )
        prices_path = tmp_path / 'prices.yaml'
        with open(prices_path, 'w') as f:
            yaml.dump({'underlying': {'GOOG': 145.0}}, f)

        result = search(Inventory.build(load_positions(positions_path)))
        total = MarginBridge().total_margin(result, load_prices(prices_path))

        assert result.strategy_names() == ['Covered Call']
        assert total == pytest.approx(36250.0)

    def test_custom_catalog_changes_partition(self, tmp_path):
        catalog_path = tmp_path / 'catalog.yaml'
        with open(catalog_path, 'w') as f:
            yaml.dump({
                'exclude': ['Covered Call'],
                'templates': [{
                    'name': 'Buy Write',
                    'legs': [
                        {'kind': 'option', 'right': 'call', 'direction': 'short'},
                        {'kind': 'equity', 'direction': 'long'},
                    ],
                }],
            }, f)

        library = load_template_catalog(catalog_path)
        result = search(
            Inventory.build([create_call('GOOG', 150, JAN, -5), create_equity('GOOG', 500)]),
            library,
        )
        assert result.strategy_names() == ['Buy Write']
