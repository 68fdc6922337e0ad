"""
Configuration Loader for Catalogs, Positions and Prices

Loads template catalogs, position snapshots and market prices from YAML and
JSON files (positions also from CSV), validates them, and converts them to
TemplateLibrary, Position and MarketPrices objects.

Catalog file (YAML):
    name: desk-catalog
    include_defaults: true
    exclude: [Naked Call, Naked Put]
    templates:
      - name: Risk Reversal
        legs:
          - {kind: option, right: put, direction: short}
          - kind: option
            right: call
            direction: long
            constraints:
              - {type: strike_above, legs: [0]}
              - {type: same_expiry, legs: [0]}

Positions file (YAML):
    positions:
      - {underlying: GOOG, kind: option, right: call, strike: 150,
         expiry: 2024-01-19, quantity: -5}
      - {underlying: GOOG, kind: equity, quantity: 500}

Prices file (YAML):
    underlying: {GOOG: 145.0}
    options: {"GOOG  240119C00150000": 2.5}
"""

import json
import math
from pathlib import Path
from typing import Any, Dict, List, Union
import logging

import pandas as pd
import yaml

from strategy_matcher.cli.config_schema import (
    CatalogConfig,
    ConfigValidationError,
    ConfigValidator,
    ConstraintConfig,
    LegConfig,
    PositionConfig,
    PricesConfig,
    TemplateConfig,
    build_position,
    build_template,
)
from strategy_matcher.core.position import Position
from strategy_matcher.margin.model import MarketPrices
from strategy_matcher.templates.library import TemplateLibrary

logger = logging.getLogger(__name__)


class ConfigLoader:
    """Loads and parses catalog, position and price files."""

    # =========================================================================
    # Catalogs
    # =========================================================================

    @classmethod
    def load_catalog(cls, path: Union[str, Path]) -> TemplateLibrary:
        """
        Load a template catalog from file.

        Args:
            path: Path to YAML or JSON catalog file

        Returns:
            TemplateLibrary with the catalog templates (merged with the
            defaults unless include_defaults is false)

        Raises:
            FileNotFoundError: If the file doesn't exist
            ConfigValidationError: If the catalog is invalid
            ValueError: If the file format is unsupported
        """
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"Catalog file not found: {path}")

        config = cls.parse_catalog(cls._load_file(path))
        library = cls._build_library(config, source=str(path))

        logger.info(f"Loaded catalog '{config.name}' from {path} ({len(library)} templates)")
        return library

    @classmethod
    def load_catalog_from_string(cls, content: str, format: str = "yaml") -> TemplateLibrary:
        """
        Load a template catalog from string content.

        Args:
            content: YAML or JSON string
            format: "yaml" or "json"
        """
        config = cls.parse_catalog(cls._load_string(content, format))
        return cls._build_library(config, source="string")

    @classmethod
    def parse_catalog(cls, data: Any) -> CatalogConfig:
        """Parse a raw dictionary into CatalogConfig."""
        if not isinstance(data, dict):
            raise ConfigValidationError(
                "Catalog must be a mapping", errors=["Top-level catalog content is not a mapping"]
            )

        templates = [cls._parse_template(t) for t in data.get("templates") or []]

        exclude = data.get("exclude") or []
        if isinstance(exclude, str):
            exclude = [exclude]

        return CatalogConfig(
            name=data.get("name", "custom"),
            include_defaults=bool(data.get("include_defaults", True)),
            exclude=list(exclude),
            templates=templates,
        )

    @classmethod
    def _parse_template(cls, data: Dict[str, Any]) -> TemplateConfig:
        """Parse a single template."""
        return TemplateConfig(
            name=data.get("name", ""),
            legs=[cls._parse_leg(leg) for leg in data.get("legs") or []],
            description=data.get("description", ""),
        )

    @classmethod
    def _parse_leg(cls, data: Dict[str, Any]) -> LegConfig:
        """Parse a single leg."""
        constraints = [
            ConstraintConfig(type=c.get("type", ""), legs=list(c.get("legs") or []))
            for c in data.get("constraints") or []
        ]
        return LegConfig(
            kind=data.get("kind", "option"),
            direction=data.get("direction", ""),
            right=data.get("right"),
            ratio=data.get("ratio", 1),
            constraints=constraints,
        )

    @classmethod
    def _build_library(cls, config: CatalogConfig, source: str) -> TemplateLibrary:
        errors = ConfigValidator.validate_catalog(config)

        base = TemplateLibrary.default() if config.include_defaults else TemplateLibrary(())
        unknown = [name for name in config.exclude if name not in base]
        errors.extend(f"Cannot exclude unknown template '{name}'" for name in unknown)

        clashes = [t.name for t in config.templates if t.name in base and t.name not in config.exclude]
        errors.extend(f"Template '{name}' already exists in the catalog" for name in clashes)

        if errors:
            raise ConfigValidationError(f"Catalog validation failed: {source}", errors=errors)

        library = base.without(config.exclude) if config.exclude else base
        return library.extended(build_template(t) for t in config.templates)

    # =========================================================================
    # Positions
    # =========================================================================

    @classmethod
    def load_positions(cls, path: Union[str, Path]) -> List[Position]:
        """
        Load position snapshots from file.

        Args:
            path: Path to YAML, JSON or CSV positions file

        Returns:
            List of Position objects in file order

        Raises:
            FileNotFoundError: If the file doesn't exist
            ConfigValidationError: If any record is invalid
        """
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"Positions file not found: {path}")

        if path.suffix.lower() == ".csv":
            records = cls._load_csv_records(path)
        else:
            data = cls._load_file(path)
            if isinstance(data, dict):
                data = data.get("positions")
            if not isinstance(data, list):
                raise ConfigValidationError(
                    f"Positions validation failed: {path}",
                    errors=["Expected a list of positions or a 'positions' key"],
                )
            records = data

        positions = cls.parse_positions(records, source=str(path))
        logger.info(f"Loaded {len(positions)} positions from {path}")
        return positions

    @classmethod
    def parse_positions(cls, records: List[Dict[str, Any]], source: str = "records") -> List[Position]:
        """Validate raw position records and convert them to Position objects."""
        configs = []
        errors = []
        for i, record in enumerate(records):
            if not isinstance(record, dict):
                errors.append(f"Position [{i}]: expected a mapping, got {type(record).__name__}")
                continue
            config = PositionConfig(
                underlying=record.get("underlying", ""),
                kind=record.get("kind", "option" if record.get("right") else "equity"),
                quantity=cls._as_int(record.get("quantity", 0)),
                right=record.get("right"),
                strike=record.get("strike"),
                expiry=record.get("expiry"),
                multiplier=cls._as_int(record.get("multiplier")),
            )
            errors.extend(ConfigValidator.validate_position(config, f"Position [{i}]"))
            configs.append(config)

        if errors:
            raise ConfigValidationError(f"Positions validation failed: {source}", errors=errors)

        return [build_position(c) for c in configs]

    @classmethod
    def _load_csv_records(cls, path: Path) -> List[Dict[str, Any]]:
        """Read CSV rows; empty cells become None."""
        frame = pd.read_csv(path, dtype={"expiry": str})
        frame = frame.astype(object).where(pd.notna(frame), None)
        return frame.to_dict(orient="records")

    @staticmethod
    def _as_int(value: Any) -> Any:
        """Integral floats (CSV columns with gaps) become ints; anything else passes through."""
        if isinstance(value, float) and math.isfinite(value) and value.is_integer():
            return int(value)
        return value

    # =========================================================================
    # Prices
    # =========================================================================

    @classmethod
    def load_prices(cls, path: Union[str, Path]) -> MarketPrices:
        """
        Load market prices from file.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ConfigValidationError: If a price is invalid
        """
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"Prices file not found: {path}")

        data = cls._load_file(path) or {}
        config = PricesConfig(
            underlying={str(k).upper(): v for k, v in (data.get("underlying") or {}).items()},
            options=dict(data.get("options") or {}),
        )

        errors = ConfigValidator.validate_prices(config)
        if errors:
            raise ConfigValidationError(f"Prices validation failed: {path}", errors=errors)

        logger.info(f"Loaded prices for {len(config.underlying)} underlyings from {path}")
        return MarketPrices(underlying_prices=config.underlying, option_prices=config.options)

    # =========================================================================
    # File Access
    # =========================================================================

    @classmethod
    def _load_file(cls, path: Path) -> Any:
        """Load raw data from file."""
        suffix = path.suffix.lower()

        with open(path, "r") as f:
            if suffix in (".yaml", ".yml"):
                return yaml.safe_load(f)
            elif suffix == ".json":
                return json.load(f)
            else:
                raise ValueError(f"Unsupported file format: {suffix}")

    @staticmethod
    def _load_string(content: str, format: str) -> Any:
        if format.lower() == "yaml":
            return yaml.safe_load(content)
        elif format.lower() == "json":
            return json.loads(content)
        raise ValueError(f"Unsupported format: {format}")


def load_template_catalog(path: Union[str, Path]) -> TemplateLibrary:
    """
    Convenience function to load a template catalog.

    Args:
        path: Path to YAML or JSON catalog file

    Returns:
        Validated TemplateLibrary
    """
    return ConfigLoader.load_catalog(path)


def load_positions(path: Union[str, Path]) -> List[Position]:
    """
    Convenience function to load position snapshots.

    Args:
        path: Path to YAML, JSON or CSV positions file

    Returns:
        List of validated Position objects
    """
    return ConfigLoader.load_positions(path)


def load_prices(path: Union[str, Path]) -> MarketPrices:
    """Convenience function to load market prices."""
    return ConfigLoader.load_prices(path)
