"""
CLI Package for the Strategy Matcher

Provides command-line tools for matching position files, asserting expected
strategies, validating catalogs and managing environments.

Usage:
    # Match a positions file
    strategy-matcher match --positions book.yaml

    # Validate a catalog
    strategy-matcher validate --catalog catalog.yaml

    # List available templates
    strategy-matcher list templates
"""

from strategy_matcher.cli.config_schema import (
    # Config Classes
    ConstraintConfig,
    LegConfig,
    TemplateConfig,
    CatalogConfig,
    PositionConfig,
    PricesConfig,
    # Validation
    ConfigValidator,
    ConfigValidationError,
    validate_catalog,
    build_template,
    build_position,
)

from strategy_matcher.cli.config_loader import (
    ConfigLoader,
    load_template_catalog,
    load_positions,
    load_prices,
)

from strategy_matcher.cli.environment import (
    Environment,
    EnvironmentSettings,
    EnvironmentManager,
    get_environment,
    get_settings,
    set_environment,
    configure_logging,
)

__all__ = [
    # Config Classes
    "ConstraintConfig",
    "LegConfig",
    "TemplateConfig",
    "CatalogConfig",
    "PositionConfig",
    "PricesConfig",
    # Validation
    "ConfigValidator",
    "ConfigValidationError",
    "validate_catalog",
    "build_template",
    "build_position",
    # Loader
    "ConfigLoader",
    "load_template_catalog",
    "load_positions",
    "load_prices",
    # Environment
    "Environment",
    "EnvironmentSettings",
    "EnvironmentManager",
    "get_environment",
    "get_settings",
    "set_environment",
    "configure_logging",
]
