"""
Option Strategy Matcher Package

Partitions a portfolio of equity and option positions into recognized
multi-leg option strategies (covered calls, spreads, condors, butterflies,
...) plus residual legs, so that margin can be computed per strategy rather
than per leg.

Modules:
    core: Position snapshots and the per-underlying inventory
    templates: Leg specifications, strategy templates and the catalog
    matching: Leg matcher, search engine, match results and inspection
    margin: Margin model protocol, reference model and margin bridge
    engine: PositionBook, the mutable holder that feeds the matcher
    cli: Command-line interface and configuration management
"""

__version__ = "1.0.0"
__author__ = "Option Strategy Matcher Team"

from strategy_matcher.core import (
    Position,
    Inventory,
    create_equity,
    create_call,
    create_put,
)
from strategy_matcher.templates import (
    StrategyTemplate,
    TemplateLibrary,
)
from strategy_matcher.matching import (
    MatchResult,
    StrategySearchEngine,
    search,
    assert_strategy_present,
)
from strategy_matcher.margin import (
    MarketPrices,
    MarginBridge,
    StrategyMarginModel,
)
from strategy_matcher.engine import PositionBook
from strategy_matcher.cli import (
    load_template_catalog,
    load_positions,
    Environment,
    get_environment,
    set_environment,
)

__all__ = [
    "__version__",
    "__author__",
    # Core
    "Position",
    "Inventory",
    "create_equity",
    "create_call",
    "create_put",
    # Templates
    "StrategyTemplate",
    "TemplateLibrary",
    # Matching
    "MatchResult",
    "StrategySearchEngine",
    "search",
    "assert_strategy_present",
    # Margin
    "MarketPrices",
    "MarginBridge",
    "StrategyMarginModel",
    # Engine
    "PositionBook",
    # Configuration
    "load_template_catalog",
    "load_positions",
    "Environment",
    "get_environment",
    "set_environment",
]
