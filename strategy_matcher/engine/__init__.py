"""
Engine Module

Mutable position tracking that feeds the strategy matcher.

Components:
    - position_book: PositionBook, net holdings per instrument
"""

from strategy_matcher.engine.position_book import (
    PositionBook,
    PositionBookError,
    PositionNotFoundError,
)

__all__ = [
    "PositionBook",
    "PositionBookError",
    "PositionNotFoundError",
]
