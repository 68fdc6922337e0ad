#!/usr/bin/env python3
"""
Example 2: Portfolio Strategy Breakdown

Matches a multi-underlying book, excludes the single-leg naked templates so
that uncovered shorts surface as residual legs, and prints a per-item margin
table.

What this example demonstrates:
    - Building an Inventory from position snapshots
    - Restricting the template library
    - Parallel search across underlyings
    - Margin breakdown as a pandas DataFrame

Difficulty: Intermediate
Time to run: < 1 second
"""

from datetime import date

import pandas as pd

from strategy_matcher import (
    Inventory,
    MarginBridge,
    MarketPrices,
    StrategySearchEngine,
    TemplateLibrary,
    create_call,
    create_equity,
    create_put,
)


def build_portfolio():
    jan = date(2024, 1, 19)
    feb = date(2024, 2, 16)
    return [
        create_call('GOOG', 150, jan, -3),
        create_equity('GOOG', 500),
        create_put('SPY', 390, jan, 2),
        create_put('SPY', 395, jan, -2),
        create_call('SPY', 405, jan, -2),
        create_call('SPY', 410, jan, 2),
        create_put('SPY', 380, jan, -1),
        create_call('AAPL', 180, jan, -4),
        create_call('AAPL', 180, feb, 4),
    ]


def main():
    """Run the portfolio breakdown example."""

    print("=" * 70)
    print("Option Strategy Matcher - Example 2: Portfolio Breakdown")
    print("=" * 70)
    print()

    inventory = Inventory.build(build_portfolio())
    library = TemplateLibrary.default(exclude=['Naked Call', 'Naked Put'])
    engine = StrategySearchEngine(library=library, max_workers=4)

    result = engine.search(inventory)
    print(result.summary())
    print()

    naked = [r for r in result.residuals if r.is_naked]
    if naked:
        print("Uncovered short options:")
        for residual in naked:
            print(f"  {residual}")
        print()

    prices = MarketPrices({'GOOG': 145.0, 'SPY': 400.0, 'AAPL': 180.0})
    breakdown = MarginBridge().breakdown(result, prices)

    with pd.option_context('display.width', 120):
        print(breakdown.to_string(index=False))
    print()
    print(f"Total margin: ${breakdown['margin'].sum():,.2f}")


if __name__ == "__main__":
    main()
