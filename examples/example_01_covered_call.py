#!/usr/bin/env python3
"""
Example 1: Covered Call Margin

Shows why strategy-aware matching matters: five short calls margined on
their own carry naked-option margin, but once 500 shares are added the same
calls form a covered call and only the share margin remains.

What this example demonstrates:
    - Feeding fills into a PositionBook
    - Matching the book against the built-in template catalog
    - Margining the match result with the reference margin model

Difficulty: Beginner
Time to run: < 1 second
"""

from datetime import date

from strategy_matcher import MarketPrices, MarginBridge, PositionBook, create_call, create_equity


def print_result(title, result, prices):
    bridge = MarginBridge()
    print(title)
    print(result.summary())
    print(f"  Total margin: ${bridge.total_margin(result, prices):,.2f}")
    print()


def main():
    """Run the covered call example."""

    print("=" * 70)
    print("Option Strategy Matcher - Example 1: Covered Call Margin")
    print("=" * 70)
    print()

    expiry = date(2024, 1, 19)
    prices = MarketPrices(underlying_prices={'GOOG': 145.0})
    book = PositionBook()

    # Step 1: sell calls with no stock
    book.apply_fill(create_call('GOOG', 150.0, expiry, -5))
    print_result("Step 1: Short 5 GOOG 150 calls", book.match(), prices)

    # Step 2: buy the stock that covers them
    book.apply_fill(create_equity('GOOG', 500))
    print_result("Step 2: Bought 500 GOOG shares", book.match(), prices)

    # Step 3: sell part of the stock again
    book.apply_fill(create_equity('GOOG', -200))
    print_result("Step 3: Sold 200 GOOG shares", book.match(), prices)


if __name__ == "__main__":
    main()
