"""
Position Snapshot for Option Strategy Matching

This module provides the Position class representing one held lot of either
an equity or an option on a given underlying. Positions are immutable
snapshots: the matcher reads them, it never mutates live portfolio state.

Key Features:
    - Signed quantity (positive = long, negative = short)
    - Contract multiplier (shares per contract)
    - Deterministic ordering key used by the inventory
    - OCC-style symbol rendering for display and price lookups

Usage:
    from datetime import date
    from strategy_matcher.core.position import create_call, create_equity

    # 5 short calls and 500 long shares on the same underlying
    call = create_call('GOOG', strike=150.0, expiry=date(2024, 1, 19), quantity=-5)
    shares = create_equity('GOOG', quantity=500)

    print(call.symbol)    # GOOG  240119C00150000
    print(call.is_short)  # True

Quantity Conventions:
    - Options: quantity in contracts, multiplier defaults to 100
    - Equity: quantity in shares, multiplier is always 1
    - Zero quantity represents a closed lot; the inventory drops it
"""

import logging
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

import numpy as np

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Default contract multiplier (shares per contract)
CONTRACT_MULTIPLIER = 100

# Accepted spellings when kinds and rights are given as strings
_KIND_ALIASES = {
    'equity': 'equity',
    'stock': 'equity',
    'underlying': 'equity',
    'option': 'option',
    'opt': 'option',
}

_RIGHT_ALIASES = {
    'call': 'call',
    'c': 'call',
    'put': 'put',
    'p': 'put',
}


# =============================================================================
# Exceptions
# =============================================================================

class PositionError(Exception):
    """Base exception for Position errors."""
    pass


class InvalidPositionError(PositionError):
    """Exception raised when a position snapshot is malformed."""
    pass


# =============================================================================
# Enumerations
# =============================================================================

class SecurityKind(str, Enum):
    """Instrument kind of a held lot."""

    EQUITY = "equity"
    OPTION = "option"

    @classmethod
    def parse(cls, value: Union[str, 'SecurityKind']) -> 'SecurityKind':
        """Convert a string or enum member into a SecurityKind."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise InvalidPositionError(f"kind must be a string, got {type(value)}")
        normalized = _KIND_ALIASES.get(value.lower().strip())
        if normalized is None:
            raise InvalidPositionError(
                f"kind must be 'equity' or 'option', got '{value}'"
            )
        return cls(normalized)


class OptionRight(str, Enum):
    """Option right. Declaration order is the inventory sort order."""

    CALL = "call"
    PUT = "put"

    @property
    def sort_rank(self) -> int:
        return 0 if self is OptionRight.CALL else 1

    @property
    def code(self) -> str:
        return 'C' if self is OptionRight.CALL else 'P'

    @classmethod
    def parse(cls, value: Union[str, 'OptionRight', None]) -> Optional['OptionRight']:
        """Convert a string or enum member into an OptionRight."""
        if value is None or isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise InvalidPositionError(f"right must be a string, got {type(value)}")
        normalized = _RIGHT_ALIASES.get(value.lower().strip())
        if normalized is None:
            raise InvalidPositionError(
                f"right must be 'call' or 'put', got '{value}'"
            )
        return cls(normalized)


# =============================================================================
# Position Class
# =============================================================================

class Position:
    """
    Immutable snapshot of one held lot.

    Construction normalizes inputs (strings to enums, datetimes to dates,
    upper-case underlying) but leaves completeness checks to validate(),
    which the inventory calls at build time so that malformed snapshots fail
    at the boundary.

    Attributes:
        underlying (str): Underlying identifier (e.g., 'GOOG')
        kind (SecurityKind): EQUITY or OPTION
        right (Optional[OptionRight]): CALL or PUT for options
        strike (Optional[float]): Strike price for options
        expiry (Optional[date]): Expiration date for options
        quantity (int): Signed quantity (contracts or shares)
        multiplier (int): Shares per contract (1 for equity)

    Example:
        >>> from datetime import date
        >>> pos = Position('goog', 'option', right='call', strike=150.0,
        ...                expiry=date(2024, 1, 19), quantity=-5)
        >>> print(pos)
        SHORT 5 GOOG 150.0 CALL exp 2024-01-19
    """

    __slots__ = (
        '_underlying',
        '_kind',
        '_right',
        '_strike',
        '_expiry',
        '_quantity',
        '_multiplier',
    )

    def __init__(
        self,
        underlying: str,
        kind: Union[str, SecurityKind],
        right: Union[str, OptionRight, None] = None,
        strike: Optional[float] = None,
        expiry: Union[date, datetime, None] = None,
        quantity: int = 0,
        multiplier: Optional[int] = None
    ) -> None:
        """
        Initialize a Position snapshot.

        Args:
            underlying: Underlying identifier
            kind: 'equity' or 'option' (or SecurityKind)
            right: 'call' or 'put' for options, None for equity
            strike: Strike price for options
            expiry: Expiration date for options
            quantity: Signed quantity; positive long, negative short
            multiplier: Shares per contract. Defaults to 100 for options
                        and 1 for equity.

        Raises:
            InvalidPositionError: If a field cannot be normalized
        """
        if not underlying or not isinstance(underlying, str):
            raise InvalidPositionError("underlying must be a non-empty string")
        self._underlying = underlying.upper().strip()

        self._kind = SecurityKind.parse(kind)
        self._right = OptionRight.parse(right)

        try:
            self._strike = float(strike) if strike is not None else None
        except (TypeError, ValueError) as e:
            raise InvalidPositionError(
                f"{self._underlying}: strike must be numeric, got {strike!r}"
            ) from e

        # datetime is a date subclass; keep the calendar day only
        if isinstance(expiry, datetime):
            expiry = expiry.date()
        self._expiry = expiry

        if isinstance(quantity, (np.integer, np.floating)):
            quantity = quantity.item()
        self._quantity = quantity

        if multiplier is None:
            multiplier = CONTRACT_MULTIPLIER if self._kind is SecurityKind.OPTION else 1
        self._multiplier = multiplier

    # =========================================================================
    # Validation
    # =========================================================================

    def validate(self) -> None:
        """
        Check that the snapshot is complete and consistent.

        Raises:
            InvalidPositionError: If option fields are missing, an equity lot
                carries option fields, or numeric fields are invalid
        """
        if not isinstance(self._quantity, int) or isinstance(self._quantity, bool):
            raise InvalidPositionError(
                f"{self._underlying}: quantity must be an integer, "
                f"got {self._quantity!r}"
            )
        if not isinstance(self._multiplier, int) or self._multiplier <= 0:
            raise InvalidPositionError(
                f"{self._underlying}: multiplier must be a positive integer, "
                f"got {self._multiplier!r}"
            )

        if self._kind is SecurityKind.EQUITY:
            if self._right is not None or self._strike is not None or self._expiry is not None:
                raise InvalidPositionError(
                    f"{self._underlying}: equity position cannot carry "
                    f"right/strike/expiry"
                )
            if self._multiplier != 1:
                raise InvalidPositionError(
                    f"{self._underlying}: equity multiplier must be 1, "
                    f"got {self._multiplier}"
                )
            return

        missing = [
            name for name, value in (
                ('right', self._right),
                ('strike', self._strike),
                ('expiry', self._expiry),
            )
            if value is None
        ]
        if missing:
            raise InvalidPositionError(
                f"{self._underlying}: option position missing {', '.join(missing)}"
            )
        if not np.isfinite(self._strike) or self._strike <= 0:
            raise InvalidPositionError(
                f"{self._underlying}: strike must be positive and finite, "
                f"got {self._strike}"
            )
        if not isinstance(self._expiry, date):
            raise InvalidPositionError(
                f"{self._underlying}: expiry must be a date, got {type(self._expiry)}"
            )

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def underlying(self) -> str:
        return self._underlying

    @property
    def kind(self) -> SecurityKind:
        return self._kind

    @property
    def right(self) -> Optional[OptionRight]:
        return self._right

    @property
    def strike(self) -> Optional[float]:
        return self._strike

    @property
    def expiry(self) -> Optional[date]:
        return self._expiry

    @property
    def quantity(self) -> int:
        return self._quantity

    @property
    def multiplier(self) -> int:
        return self._multiplier

    @property
    def is_option(self) -> bool:
        return self._kind is SecurityKind.OPTION

    @property
    def is_equity(self) -> bool:
        return self._kind is SecurityKind.EQUITY

    @property
    def is_call(self) -> bool:
        return self._right is OptionRight.CALL

    @property
    def is_put(self) -> bool:
        return self._right is OptionRight.PUT

    @property
    def is_long(self) -> bool:
        return self._quantity > 0

    @property
    def is_short(self) -> bool:
        return self._quantity < 0

    @property
    def contract_key(self) -> Tuple[Any, ...]:
        """
        Identity of the instrument, independent of the held quantity.

        Two lots with the same contract key are the same instrument.
        """
        return (
            self._underlying,
            self._kind.value,
            self._right.value if self._right else None,
            self._strike,
            self._expiry,
            self._multiplier,
        )

    @property
    def sort_key(self) -> Tuple[Any, ...]:
        """
        Deterministic ordering within an underlying.

        Equity sorts first, then options by (expiry, strike, right).
        """
        if self.is_equity:
            return (0, date.min, 0.0, 0)
        return (1, self._expiry, self._strike, self._right.sort_rank)

    @property
    def symbol(self) -> str:
        """
        Display symbol.

        Equity renders as its ticker, options in OCC format
        (root padded to 6, YYMMDD, right, strike x 1000 padded to 8).
        """
        if self.is_equity or self._expiry is None or self._strike is None or self._right is None:
            return self._underlying
        return (
            f"{self._underlying:<6}{self._expiry:%y%m%d}"
            f"{self._right.code}{int(round(self._strike * 1000)):08d}"
        )

    # =========================================================================
    # Methods
    # =========================================================================

    def with_quantity(self, quantity: int) -> 'Position':
        """Return a copy of this position holding a different quantity."""
        return Position(
            underlying=self._underlying,
            kind=self._kind,
            right=self._right,
            strike=self._strike,
            expiry=self._expiry,
            quantity=quantity,
            multiplier=self._multiplier,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            'underlying': self._underlying,
            'kind': self._kind.value,
            'right': self._right.value if self._right else None,
            'strike': self._strike,
            'expiry': self._expiry.isoformat() if isinstance(self._expiry, date) else None,
            'quantity': self._quantity,
            'multiplier': self._multiplier,
            'symbol': self.symbol,
        }

    def __repr__(self) -> str:
        """Return detailed string representation."""
        if self.is_equity:
            return (
                f"Position(underlying={self._underlying!r}, kind='equity', "
                f"quantity={self._quantity})"
            )
        right = self._right.value if self._right else None
        return (
            f"Position("
            f"underlying={self._underlying!r}, "
            f"kind='option', "
            f"right={right!r}, "
            f"strike={self._strike}, "
            f"expiry={self._expiry}, "
            f"quantity={self._quantity}, "
            f"multiplier={self._multiplier}"
            f")"
        )

    def __str__(self) -> str:
        """Return human-readable string."""
        side = "LONG" if self._quantity >= 0 else "SHORT"
        if self.is_equity:
            return f"{side} {abs(self._quantity)} {self._underlying} SHARES"
        right = self._right.value.upper() if self._right else "?"
        return (
            f"{side} {abs(self._quantity)} {self._underlying} {self._strike} "
            f"{right} exp {self._expiry}"
        )

    def __eq__(self, other: object) -> bool:
        """Check equality based on instrument and quantity."""
        if not isinstance(other, Position):
            return NotImplemented
        return (
            self.contract_key == other.contract_key and
            self._quantity == other._quantity
        )

    def __hash__(self) -> int:
        """Return hash based on instrument and quantity."""
        return hash((self.contract_key, self._quantity))


# =============================================================================
# Factory Functions
# =============================================================================

def create_equity(underlying: str, quantity: int) -> Position:
    """
    Factory function to create an equity position.

    Args:
        underlying: Ticker symbol
        quantity: Signed number of shares

    Returns:
        Position instance configured as equity

    Example:
        >>> shares = create_equity('GOOG', 500)
    """
    return Position(underlying=underlying, kind=SecurityKind.EQUITY, quantity=quantity)


def create_call(
    underlying: str,
    strike: float,
    expiry: Union[date, datetime],
    quantity: int,
    multiplier: int = CONTRACT_MULTIPLIER
) -> Position:
    """
    Factory function to create a call option position.

    Args:
        underlying: Ticker symbol
        strike: Strike price
        expiry: Expiration date
        quantity: Signed number of contracts (negative = short)
        multiplier: Shares per contract

    Returns:
        Position instance configured as a call
    """
    return Position(
        underlying=underlying,
        kind=SecurityKind.OPTION,
        right=OptionRight.CALL,
        strike=strike,
        expiry=expiry,
        quantity=quantity,
        multiplier=multiplier,
    )


def create_put(
    underlying: str,
    strike: float,
    expiry: Union[date, datetime],
    quantity: int,
    multiplier: int = CONTRACT_MULTIPLIER
) -> Position:
    """
    Factory function to create a put option position.

    Args:
        underlying: Ticker symbol
        strike: Strike price
        expiry: Expiration date
        quantity: Signed number of contracts (negative = short)
        multiplier: Shares per contract

    Returns:
        Position instance configured as a put
    """
    return Position(
        underlying=underlying,
        kind=SecurityKind.OPTION,
        right=OptionRight.PUT,
        strike=strike,
        expiry=expiry,
        quantity=quantity,
        multiplier=multiplier,
    )
