"""
Configuration Schema for Catalogs, Positions and Prices

Defines the schema for YAML/JSON template catalog files, position files and
price files, including validation logic. Validation collects every problem
before reporting so that a bad file is fixed in one pass.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from typing import Any, Dict, List, Optional, Union
import logging

from strategy_matcher.core.position import (
    InvalidPositionError,
    OptionRight,
    Position,
    SecurityKind,
)
from strategy_matcher.templates.definitions import (
    StrategyTemplate,
    TemplateDefinitionError,
)
from strategy_matcher.templates.legs import (
    ConstraintKind,
    Direction,
    LegConstraint,
    LegSpecification,
)

logger = logging.getLogger(__name__)


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors = errors or []
        super().__init__(message)


# =============================================================================
# Catalog Schema
# =============================================================================

@dataclass
class ConstraintConfig:
    """Configuration for a relative leg constraint."""

    type: str
    legs: List[int] = field(default_factory=list)


@dataclass
class LegConfig:
    """Configuration for one template leg."""

    kind: str
    direction: str
    right: Optional[str] = None
    ratio: int = 1
    constraints: List[ConstraintConfig] = field(default_factory=list)


@dataclass
class TemplateConfig:
    """Configuration for one strategy template."""

    name: str
    legs: List[LegConfig] = field(default_factory=list)
    description: str = ""


@dataclass
class CatalogConfig:
    """Complete template catalog configuration."""

    name: str = "custom"
    include_defaults: bool = True
    exclude: List[str] = field(default_factory=list)
    templates: List[TemplateConfig] = field(default_factory=list)


# =============================================================================
# Position and Price Schema
# =============================================================================

@dataclass
class PositionConfig:
    """Configuration for one held lot."""

    underlying: str
    kind: str
    quantity: Any
    right: Optional[str] = None
    strike: Optional[float] = None
    expiry: Optional[Union[str, date, datetime]] = None
    multiplier: Optional[int] = None


@dataclass
class PricesConfig:
    """Underlying spot prices and optional option premiums by symbol."""

    underlying: Dict[str, float] = field(default_factory=dict)
    options: Dict[str, float] = field(default_factory=dict)


# =============================================================================
# Validator
# =============================================================================

class ConfigValidator:
    """Validates catalog, position and price configuration."""

    @classmethod
    def validate_catalog(cls, config: CatalogConfig) -> List[str]:
        """
        Validate a catalog configuration.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []

        if not config.include_defaults and not config.templates:
            errors.append("Catalog defines no templates and does not include the defaults")

        seen = set()
        for i, template in enumerate(config.templates):
            prefix = f"Template [{i}]"
            if not template.name:
                errors.append(f"{prefix}: name is required")
            elif template.name in seen:
                errors.append(f"{prefix}: duplicate template name '{template.name}'")
            else:
                seen.add(template.name)
            errors.extend(cls._validate_template(template, prefix))

        return errors

    @classmethod
    def _validate_template(cls, template: TemplateConfig, prefix: str) -> List[str]:
        """Validate one template; structural rules come from StrategyTemplate."""
        errors = []

        if not template.legs:
            errors.append(f"{prefix}: at least one leg is required")
            return errors

        for j, leg in enumerate(template.legs):
            errors.extend(cls._validate_leg(leg, f"{prefix} leg [{j}]"))

        if errors:
            return errors

        try:
            build_template(template).validate()
        except TemplateDefinitionError as e:
            errors.append(f"{prefix}: {e}")

        return errors

    @classmethod
    def _validate_leg(cls, leg: LegConfig, prefix: str) -> List[str]:
        """Validate the enumerated fields of a leg."""
        errors = []

        try:
            kind = SecurityKind.parse(leg.kind)
        except (InvalidPositionError, ValueError):
            errors.append(f"{prefix}: unknown kind '{leg.kind}'")
            kind = None

        if str(leg.direction).lower() not in {d.value for d in Direction}:
            errors.append(f"{prefix}: direction must be 'long' or 'short', got '{leg.direction}'")

        if kind is SecurityKind.OPTION:
            try:
                if OptionRight.parse(leg.right) is None:
                    errors.append(f"{prefix}: option leg requires 'right'")
            except (InvalidPositionError, ValueError):
                errors.append(f"{prefix}: unknown right '{leg.right}'")

        if not isinstance(leg.ratio, int) or isinstance(leg.ratio, bool) or leg.ratio < 1:
            errors.append(f"{prefix}: ratio must be a positive integer, got {leg.ratio!r}")

        valid_types = {k.value for k in ConstraintKind}
        for constraint in leg.constraints:
            if constraint.type not in valid_types:
                errors.append(f"{prefix}: unknown constraint type '{constraint.type}'")
            elif not all(isinstance(ref, int) for ref in constraint.legs):
                errors.append(f"{prefix}: constraint '{constraint.type}' legs must be integers")

        return errors

    @classmethod
    def validate_positions(cls, positions: List[PositionConfig]) -> List[str]:
        """
        Validate position records.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []
        for i, record in enumerate(positions):
            errors.extend(cls.validate_position(record, f"Position [{i}]"))
        return errors

    @classmethod
    def validate_position(cls, record: PositionConfig, prefix: str) -> List[str]:
        """Validate a single position record."""
        if record.expiry is not None and cls._parse_date(record.expiry) is None:
            return [f"{prefix}: invalid expiry format: {record.expiry}"]
        try:
            build_position(record).validate()
        except (InvalidPositionError, ValueError, TypeError) as e:
            return [f"{prefix}: {e}"]
        return []

    @classmethod
    def validate_prices(cls, prices: PricesConfig) -> List[str]:
        """Validate price records."""
        errors = []

        for underlying, price in prices.underlying.items():
            if not isinstance(price, (int, float)) or isinstance(price, bool) or price <= 0:
                errors.append(f"Underlying price for {underlying} must be positive, got {price!r}")

        for symbol, price in prices.options.items():
            if not isinstance(price, (int, float)) or isinstance(price, bool) or price < 0:
                errors.append(f"Option price for '{symbol}' cannot be negative, got {price!r}")

        return errors

    @staticmethod
    def _parse_date(date_value: Union[str, date, datetime]) -> Optional[date]:
        """Parse various date formats."""
        if isinstance(date_value, datetime):
            return date_value.date()
        if isinstance(date_value, date):
            return date_value
        if isinstance(date_value, str):
            for fmt in ("%Y-%m-%d", "%Y/%m/%d", "%m/%d/%Y", "%Y%m%d"):
                try:
                    return datetime.strptime(date_value.strip(), fmt).date()
                except ValueError:
                    continue
        return None


# =============================================================================
# Conversion
# =============================================================================

def build_template(config: TemplateConfig) -> StrategyTemplate:
    """Convert a validated TemplateConfig into a StrategyTemplate."""
    legs = []
    for leg in config.legs:
        kind = SecurityKind.parse(leg.kind)
        legs.append(LegSpecification(
            kind=kind,
            direction=Direction(str(leg.direction).lower()),
            ratio=leg.ratio,
            right=OptionRight.parse(leg.right) if kind is SecurityKind.OPTION else None,
            constraints=tuple(
                LegConstraint(ConstraintKind(c.type), tuple(c.legs))
                for c in leg.constraints
            ),
        ))
    return StrategyTemplate(name=config.name, legs=tuple(legs), description=config.description)


def build_position(config: PositionConfig) -> Position:
    """Convert a PositionConfig into a Position snapshot."""
    expiry = config.expiry
    if expiry is not None:
        expiry = ConfigValidator._parse_date(expiry)
    return Position(
        underlying=config.underlying,
        kind=config.kind,
        right=config.right,
        strike=config.strike,
        expiry=expiry,
        quantity=config.quantity,
        multiplier=config.multiplier,
    )


def validate_catalog(config: CatalogConfig) -> None:
    """
    Validate a catalog and raise if invalid.

    Raises:
        ConfigValidationError: If validation fails
    """
    errors = ConfigValidator.validate_catalog(config)
    if errors:
        raise ConfigValidationError(
            f"Catalog validation failed with {len(errors)} error(s)",
            errors=errors,
        )
