"""
Core Module for Option Strategy Matching

This module provides the position snapshot model the matcher operates on.

Components:
    - position: Position class, instrument enums and factory functions
    - inventory: Inventory class grouping positions per underlying

Usage:
    from datetime import date
    from strategy_matcher.core import Inventory, create_call, create_equity

    inventory = Inventory.build([
        create_call('GOOG', 150.0, date(2024, 1, 19), -5),
        create_equity('GOOG', 500),
    ])
"""

from strategy_matcher.core.position import (
    # Main class
    Position,
    # Enums
    SecurityKind,
    OptionRight,
    # Exceptions
    PositionError,
    InvalidPositionError,
    # Factory functions
    create_equity,
    create_call,
    create_put,
    # Constants
    CONTRACT_MULTIPLIER,
)

from strategy_matcher.core.inventory import (
    Inventory,
    build_inventory,
)

__all__ = [
    # Position
    "Position",
    "SecurityKind",
    "OptionRight",
    "PositionError",
    "InvalidPositionError",
    "create_equity",
    "create_call",
    "create_put",
    "CONTRACT_MULTIPLIER",
    # Inventory
    "Inventory",
    "build_inventory",
]
