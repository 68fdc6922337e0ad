"""
Strategy-Aware Margin Model

This module defines the contract the margin bridge expects from a margin
model, and StrategyMarginModel, a reference Reg-T style approximation that
margins matched strategies as combined structures rather than leg by leg.

Reference Rules:
    Covered structures (any instance with an underlying leg):
        Underlying margin only, e.g. covered call margin = margin of the
        consumed shares.

    All-short instances (naked call, naked put, short straddle/strangle):
        Naked short option = max(20% underlying - OTM amount,
                                 10% of underlying (call) or strike (put))
                             x multiplier x contracts + premium
        Short call and put together: greater naked side + other premium.

    Same-expiry option structures:
        Maximum loss at expiry from the piecewise-linear payoff, evaluated
        at zero and at every strike. Defined-risk credit structures margin
        at their width, debit structures at zero. Structures with unbounded
        loss fall back to the naked margin of their short legs.

    Multi-expiry structures (calendars, jelly rolls):
        A short leg is covered by a long leg of the same right and strike
        expiring no earlier; uncovered short quantity is margined as naked.

    Residual legs:
        Equity at the equity margin rate, long options at premium, short
        options as naked.

This is a backtesting approximation, not a broker-legal implementation.

Usage:
    from strategy_matcher.margin import MarketPrices, StrategyMarginModel

    prices = MarketPrices(underlying_prices={'GOOG': 145.0})
    model = StrategyMarginModel()
    margin = model.instance_margin(instance, prices)
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Protocol, Tuple, runtime_checkable

import numpy as np

from strategy_matcher.core.position import Position
from strategy_matcher.matching.result import StrategyInstance, ResidualLeg

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Initial margin rate for equity (Reg-T 50%)
DEFAULT_EQUITY_MARGIN_RATE = 0.50

# Naked short option base rate (20% of underlying)
DEFAULT_NAKED_OPTION_MARGIN_FACTOR = 0.20

# Naked short option floor rate (10% of underlying or strike)
DEFAULT_NAKED_OPTION_MINIMUM_FACTOR = 0.10


# =============================================================================
# Exceptions
# =============================================================================

class MarginError(Exception):
    """Base exception for margin calculation errors."""
    pass


class MissingPriceError(MarginError):
    """Exception raised when a required price is not available."""
    pass


# =============================================================================
# Market Prices
# =============================================================================

@dataclass(frozen=True)
class MarketPrices:
    """
    Prices needed to evaluate margin formulas.

    Attributes:
        underlying_prices: Spot price per underlying identifier
        option_prices: Option premium per share, keyed by Position.symbol.
                       Missing options are priced at zero.
    """

    underlying_prices: Mapping[str, float]
    option_prices: Mapping[str, float] = field(default_factory=dict)

    def underlying_price(self, underlying: str) -> float:
        """
        Get the spot price of an underlying.

        Raises:
            MissingPriceError: If the underlying is not priced
        """
        price = self.underlying_prices.get(underlying)
        if price is None:
            price = self.underlying_prices.get(underlying.upper())
        if price is None:
            raise MissingPriceError(f"No underlying price for {underlying}")
        return float(price)

    def option_price(self, position: Position) -> float:
        """Get the per-share premium of an option (0.0 when unknown)."""
        return float(self.option_prices.get(position.symbol, 0.0))


# =============================================================================
# Margin Model Protocol
# =============================================================================

@runtime_checkable
class MarginModel(Protocol):
    """
    Contract between the margin bridge and a margin model.

    Implementations map each strategy instance to its combined requirement
    and each residual leg to its standalone requirement.
    """

    def instance_margin(self, instance: StrategyInstance, prices: MarketPrices) -> float:
        """Return the margin requirement of a strategy instance."""
        ...

    def residual_margin(self, residual: ResidualLeg, prices: MarketPrices) -> float:
        """Return the margin requirement of a residual leg."""
        ...


# =============================================================================
# Reference Model
# =============================================================================

class StrategyMarginModel:
    """
    Reference Reg-T style margin model for matched option strategies.

    Attributes:
        equity_margin_rate (float): Initial margin rate for stock
        naked_factor (float): Base rate of underlying for naked shorts
        naked_minimum_factor (float): Floor rate for naked shorts

    Example:
        >>> model = StrategyMarginModel()
        >>> prices = MarketPrices({'GOOG': 100.0})
        >>> model.equity_margin(500, 'GOOG', prices)
        25000.0
    """

    def __init__(
        self,
        equity_margin_rate: float = DEFAULT_EQUITY_MARGIN_RATE,
        naked_factor: float = DEFAULT_NAKED_OPTION_MARGIN_FACTOR,
        naked_minimum_factor: float = DEFAULT_NAKED_OPTION_MINIMUM_FACTOR
    ) -> None:
        for label, value in (
            ('equity_margin_rate', equity_margin_rate),
            ('naked_factor', naked_factor),
            ('naked_minimum_factor', naked_minimum_factor),
        ):
            if value < 0 or not np.isfinite(value):
                raise ValueError(f"{label} must be non-negative and finite, got {value}")
        self.equity_margin_rate = equity_margin_rate
        self.naked_factor = naked_factor
        self.naked_minimum_factor = naked_minimum_factor

    # =========================================================================
    # Building Blocks
    # =========================================================================

    def equity_margin(self, shares: int, underlying: str, prices: MarketPrices) -> float:
        """Margin of holding `shares` (signed) of an underlying."""
        return abs(shares) * prices.underlying_price(underlying) * self.equity_margin_rate

    def premium(self, position: Position, contracts: int, prices: MarketPrices) -> float:
        """Premium value of `contracts` contracts."""
        return abs(contracts) * position.multiplier * prices.option_price(position)

    def naked_option_margin(self, position: Position, contracts: int, prices: MarketPrices) -> float:
        """
        Margin of `contracts` uncovered short contracts.

        Args:
            position: Option position (right, strike, multiplier)
            contracts: Number of short contracts (sign ignored)
            prices: Market prices

        Returns:
            Reg-T naked option requirement including premium
        """
        spot = prices.underlying_price(position.underlying)
        strike = position.strike
        if position.is_call:
            out_of_money = max(strike - spot, 0.0)
            floor = self.naked_minimum_factor * spot
        else:
            out_of_money = max(spot - strike, 0.0)
            floor = self.naked_minimum_factor * strike

        per_share = max(self.naked_factor * spot - out_of_money, floor)
        return per_share * position.multiplier * abs(contracts) + self.premium(position, contracts, prices)

    # =========================================================================
    # MarginModel Interface
    # =========================================================================

    def instance_margin(self, instance: StrategyInstance, prices: MarketPrices) -> float:
        """
        Margin of a strategy instance.

        Args:
            instance: Matched strategy instance
            prices: Market prices

        Returns:
            Combined margin requirement in dollars
        """
        consumption = instance.consumption()
        equity = [(p, q) for p, q in consumption if p.is_equity]
        options = [(p, q) for p, q in consumption if p.is_option]

        if equity:
            margin = sum(self.equity_margin(q, p.underlying, prices) for p, q in equity)
        elif all(q < 0 for _, q in options):
            margin = self._short_options_margin(options, prices)
        elif len({p.expiry for p, _ in options}) > 1:
            margin = self._calendar_margin(options, prices)
        else:
            margin = self._defined_risk_margin(options, prices)

        logger.debug(f"Margin for {instance.template_name} x{instance.quantity}: {margin:,.2f}")
        return margin

    def residual_margin(self, residual: ResidualLeg, prices: MarketPrices) -> float:
        """
        Standalone margin of a residual leg.

        Args:
            residual: Residual leg
            prices: Market prices

        Returns:
            Margin requirement in dollars
        """
        position = residual.position
        if position.is_equity:
            return self.equity_margin(residual.quantity, position.underlying, prices)
        if residual.quantity > 0:
            return self.premium(position, residual.quantity, prices)
        return self.naked_option_margin(position, residual.quantity, prices)

    # =========================================================================
    # Structure Rules
    # =========================================================================

    def _short_options_margin(
        self,
        options: List[Tuple[Position, int]],
        prices: MarketPrices
    ) -> float:
        """Naked shorts; call and put sides together use the greater side."""
        calls = [(p, q) for p, q in options if p.is_call]
        puts = [(p, q) for p, q in options if p.is_put]
        if not calls or not puts:
            return sum(self.naked_option_margin(p, q, prices) for p, q in options)

        call_margin = sum(self.naked_option_margin(p, q, prices) for p, q in calls)
        put_margin = sum(self.naked_option_margin(p, q, prices) for p, q in puts)
        if call_margin >= put_margin:
            return call_margin + sum(self.premium(p, q, prices) for p, q in puts)
        return put_margin + sum(self.premium(p, q, prices) for p, q in calls)

    def _calendar_margin(
        self,
        options: List[Tuple[Position, int]],
        prices: MarketPrices
    ) -> float:
        """Shorts covered by same-strike longs expiring no earlier are free."""
        longs: Dict[Tuple, List[List]] = {}
        for position, quantity in options:
            if quantity > 0:
                key = (position.right, position.strike)
                longs.setdefault(key, []).append([position.expiry, quantity])

        margin = 0.0
        for position, quantity in options:
            if quantity >= 0:
                continue
            uncovered = -quantity
            for cover in longs.get((position.right, position.strike), []):
                if cover[0] >= position.expiry and cover[1] > 0:
                    used = min(cover[1], uncovered)
                    cover[1] -= used
                    uncovered -= used
                if uncovered == 0:
                    break
            if uncovered:
                margin += self.naked_option_margin(position, uncovered, prices)
        return margin

    def _defined_risk_margin(
        self,
        options: List[Tuple[Position, int]],
        prices: MarketPrices
    ) -> float:
        """Maximum loss at expiry; unbounded structures margin their shorts naked."""
        strikes = np.array([p.strike for p, _ in options], dtype=float)
        is_call = np.array([p.is_call for p, _ in options])
        shares = np.array([q * p.multiplier for p, q in options], dtype=float)

        # Slope of the payoff beyond the highest strike
        upside_slope = float(np.sum(shares[is_call]))
        if upside_slope < 0:
            return sum(self.naked_option_margin(p, q, prices) for p, q in options if q < 0)

        spots = np.concatenate(([0.0], np.unique(strikes)))
        intrinsic = np.where(
            is_call[None, :],
            np.maximum(spots[:, None] - strikes[None, :], 0.0),
            np.maximum(strikes[None, :] - spots[:, None], 0.0),
        )
        payoff = intrinsic @ shares
        return float(max(0.0, -payoff.min()))
