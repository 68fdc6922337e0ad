"""
Command-Line Interface for the Strategy Matcher

Provides CLI commands for matching position files against the strategy
catalog, asserting expected strategies, validating catalog files and
inspecting the environment.

Usage:
    strategy-matcher match --positions book.yaml --prices prices.yaml
    strategy-matcher assert --positions book.yaml --strategy "Covered Call" --quantity 5
    strategy-matcher validate --catalog catalog.yaml
    strategy-matcher list templates -v
    strategy-matcher env
"""

import json
import sys
from pathlib import Path
from typing import Optional, Tuple

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from strategy_matcher import __version__
from strategy_matcher.cli.config_loader import (
    load_positions,
    load_prices,
    load_template_catalog,
)
from strategy_matcher.cli.config_schema import ConfigValidationError
from strategy_matcher.cli.environment import (
    Environment,
    configure_logging,
    get_settings,
    set_environment,
)
from strategy_matcher.core.inventory import Inventory
from strategy_matcher.core.position import PositionError
from strategy_matcher.margin.bridge import MarginBridge
from strategy_matcher.margin.model import MarginError, MarketPrices
from strategy_matcher.matching.inspection import find_strategy_mismatches
from strategy_matcher.matching.result import MatchingError, MatchResult
from strategy_matcher.matching.search import StrategySearchEngine
from strategy_matcher.templates.definitions import TemplateDefinitionError
from strategy_matcher.templates.library import TemplateLibrary

console = Console()
err_console = Console(stderr=True)

# Errors reported as "Error: ..." with exit code 1
HANDLED_ERRORS = (
    FileNotFoundError,
    PositionError,
    MatchingError,
    MarginError,
    TemplateDefinitionError,
    KeyError,
    ValueError,
)


def echo(message: str, style: Optional[str] = None, err: bool = False) -> None:
    """Output message through rich."""
    if err:
        err_console.print(message, style=style)
    else:
        console.print(message, style=style)


def echo_error(message: str) -> None:
    """Output error message."""
    echo(f"[red]Error:[/red] {escape(message)}", err=True)


def echo_success(message: str) -> None:
    """Output success message."""
    echo(f"[green]{escape(message)}[/green]")


def echo_warning(message: str) -> None:
    """Output warning message."""
    echo(f"[yellow]Warning:[/yellow] {escape(message)}")


def _fail_config(error: ConfigValidationError) -> None:
    echo_error(str(error))
    for item in error.errors:
        echo(f"  - {escape(item)}", err=True)
    sys.exit(1)


def _error_text(error: Exception) -> str:
    # KeyError wraps its message in quotes
    if isinstance(error, KeyError) and error.args:
        return str(error.args[0])
    return str(error)


@click.group()
@click.option(
    "--env",
    "-e",
    type=click.Choice([e.value for e in Environment]),
    default="development",
    help="Environment to use",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.version_option(version=__version__, prog_name="Option Strategy Matcher")
@click.pass_context
def cli(ctx: click.Context, env: str, verbose: bool, quiet: bool) -> None:
    """Option Strategy Matcher CLI - Group positions into option strategies."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet

    set_environment(Environment(env))
    if verbose:
        configure_logging()


# =============================================================================
# Commands
# =============================================================================

@cli.command()
@click.option(
    "--positions",
    "-p",
    type=click.Path(exists=True, path_type=Path),
    required=True,
    help="Positions file (YAML, JSON or CSV)",
)
@click.option(
    "--catalog",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Template catalog file (YAML or JSON)",
)
@click.option(
    "--prices",
    type=click.Path(exists=True, path_type=Path),
    help="Prices file; enables the margin breakdown",
)
@click.option(
    "--output-format",
    "-f",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format",
)
@click.option("--exclude", "-x", multiple=True, help="Template name to leave out (repeatable)")
@click.option("--workers", type=click.IntRange(min=1), help="Threads used across underlyings")
@click.pass_context
def match(
    ctx: click.Context,
    positions: Path,
    catalog: Optional[Path],
    prices: Optional[Path],
    output_format: str,
    exclude: Tuple[str, ...],
    workers: Optional[int],
) -> None:
    """Match a positions file against the strategy catalog."""
    verbose = ctx.obj.get("verbose", False)
    quiet = ctx.obj.get("quiet", False)

    try:
        library = _resolve_library(catalog, exclude)
        engine = _build_engine(library, workers)

        if not quiet and output_format == "table":
            echo(f"Loading positions from [cyan]{escape(str(positions))}[/cyan]...")

        inventory = Inventory.build(load_positions(positions))
        result = engine.search(inventory)

        market_prices = load_prices(prices) if prices else None

        if output_format == "json":
            payload = result.to_dict()
            if market_prices is not None:
                payload["total_margin"] = MarginBridge().total_margin(result, market_prices)
            click.echo(json.dumps(payload, indent=2))
            return

        _display_result(result, verbose=verbose)
        if market_prices is not None:
            _display_margin(result, market_prices)

    except ConfigValidationError as e:
        _fail_config(e)
    except HANDLED_ERRORS as e:
        echo_error(_error_text(e))
        sys.exit(1)


@cli.command(name="assert")
@click.option(
    "--positions",
    "-p",
    type=click.Path(exists=True, path_type=Path),
    required=True,
    help="Positions file (YAML, JSON or CSV)",
)
@click.option("--strategy", "-s", required=True, help="Expected template name")
@click.option("--quantity", "-n", type=click.IntRange(min=1), default=1, help="Expected multiplier")
@click.option("--underlying", "-u", help="Restrict the check to one underlying")
@click.option("--exact", is_flag=True, help="Require the total multiplier to equal --quantity")
@click.option(
    "--catalog",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Template catalog file (YAML or JSON)",
)
@click.option("--exclude", "-x", multiple=True, help="Template name to leave out (repeatable)")
def assert_strategy(
    positions: Path,
    strategy: str,
    quantity: int,
    underlying: Optional[str],
    exact: bool,
    catalog: Optional[Path],
    exclude: Tuple[str, ...],
) -> None:
    """Check that a strategy is present in a positions file."""
    try:
        library = _resolve_library(catalog, exclude)
        result = _build_engine(library, None).search(Inventory.build(load_positions(positions)))

        issues = find_strategy_mismatches(result, strategy, quantity, underlying, exact)
        if issues:
            for issue in issues:
                echo_error(str(issue))
            sys.exit(1)

        echo_success(f"Found '{strategy}' with quantity {result.total_quantity(strategy, underlying)}")

    except ConfigValidationError as e:
        _fail_config(e)
    except HANDLED_ERRORS as e:
        echo_error(_error_text(e))
        sys.exit(1)


@cli.command()
@click.option(
    "--catalog",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Template catalog file to validate",
)
@click.option(
    "--positions",
    "-p",
    type=click.Path(exists=True, path_type=Path),
    help="Positions file to validate",
)
@click.pass_context
def validate(ctx: click.Context, catalog: Optional[Path], positions: Optional[Path]) -> None:
    """Validate a catalog and/or positions file."""
    verbose = ctx.obj.get("verbose", False)

    if catalog is None and positions is None:
        echo_error("Nothing to validate: pass --catalog and/or --positions")
        sys.exit(1)

    try:
        if catalog is not None:
            echo(f"Validating [cyan]{escape(str(catalog))}[/cyan]...")
            library = load_template_catalog(catalog)
            echo_success(f"Catalog is valid ({len(library)} templates)")
            if verbose:
                _display_templates(library, verbose=False)

        if positions is not None:
            echo(f"Validating [cyan]{escape(str(positions))}[/cyan]...")
            inventory = Inventory.build(load_positions(positions))
            echo_success(
                f"Positions are valid ({len(inventory)} lots on "
                f"{len(inventory.underlyings)} underlyings)"
            )
            if inventory.dropped_count:
                echo_warning(f"{inventory.dropped_count} zero-quantity lot(s) ignored")

    except ConfigValidationError as e:
        _fail_config(e)
    except HANDLED_ERRORS as e:
        echo_error(_error_text(e))
        sys.exit(1)


@cli.group(name="list")
def list_group() -> None:
    """List available resources."""
    pass


@list_group.command(name="templates")
@click.option("--verbose", "-v", is_flag=True, help="Show leg details")
@click.option(
    "--catalog",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Template catalog file (YAML or JSON)",
)
def list_templates(verbose: bool, catalog: Optional[Path]) -> None:
    """List strategy templates in search priority order."""
    try:
        library = _resolve_library(catalog, ())
    except ConfigValidationError as e:
        _fail_config(e)
        return
    _display_templates(library, verbose=verbose)


@cli.command()
def env() -> None:
    """Show current environment configuration."""
    settings = get_settings()

    table = Table(title=f"Environment: {settings.name.value}")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("Log Level", settings.log_level)
    table.add_row("Log File", settings.log_file or "Not set")
    table.add_row("Catalog", settings.catalog_path or "Built-in")
    table.add_row("Parallel Execution", str(settings.parallel_execution))
    table.add_row("Max Workers", str(settings.max_workers))
    table.add_row("Verify Conservation", str(settings.verify_conservation))

    console.print(table)


# =============================================================================
# Helpers
# =============================================================================

def _resolve_library(catalog: Optional[Path], exclude: Tuple[str, ...]) -> TemplateLibrary:
    """Pick the catalog: --catalog, then the environment's catalog_path, then built-in."""
    settings = get_settings()
    if catalog is not None:
        library = load_template_catalog(catalog)
    elif settings.catalog_path:
        library = load_template_catalog(settings.catalog_path)
    else:
        library = TemplateLibrary.default()

    if exclude:
        library = library.without(exclude)
    return library


def _build_engine(library: TemplateLibrary, workers: Optional[int]) -> StrategySearchEngine:
    settings = get_settings()
    if workers is None and settings.parallel_execution:
        workers = settings.max_workers
    return StrategySearchEngine(
        library=library,
        max_workers=workers,
        verify=settings.verify_conservation,
    )


def _display_result(result: MatchResult, verbose: bool = False) -> None:
    """Display strategy instances and residual legs."""
    if result.is_empty:
        echo_warning("No positions to match")
        return

    table = Table(title="Strategies")
    table.add_column("Underlying", style="cyan")
    table.add_column("Strategy", style="white")
    table.add_column("Quantity", justify="right")
    if verbose:
        table.add_column("Legs")

    for instance in result.instances:
        row = [instance.underlying, instance.template_name, str(instance.quantity)]
        if verbose:
            row.append("\n".join(
                f"{escape(leg.position.symbol)} x {leg.consumed(instance.quantity)}"
                for leg in instance.legs
            ))
        table.add_row(*row)
    console.print(table)

    if result.residuals:
        residuals = Table(title="Residual Legs")
        residuals.add_column("Underlying", style="cyan")
        residuals.add_column("Symbol")
        residuals.add_column("Quantity", justify="right")
        for residual in result.residuals:
            residuals.add_row(
                residual.underlying,
                escape(residual.position.symbol),
                str(residual.quantity),
            )
        console.print(residuals)


def _display_margin(result: MatchResult, prices: MarketPrices) -> None:
    """Display the per-item margin breakdown."""
    bridge = MarginBridge()
    breakdown = bridge.breakdown(result, prices)

    table = Table(title="Margin")
    table.add_column("Underlying", style="cyan")
    table.add_column("Item")
    table.add_column("Name")
    table.add_column("Quantity", justify="right")
    table.add_column("Margin", justify="right")

    for row in breakdown.itertuples(index=False):
        table.add_row(row.underlying, row.item, escape(row.name), str(row.quantity), f"${row.margin:,.2f}")
    console.print(table)

    console.print(Panel(f"[bold]Total Margin: ${breakdown['margin'].sum():,.2f}[/bold]"))


def _display_templates(library: TemplateLibrary, verbose: bool = False) -> None:
    table = Table(title="Strategy Templates (priority order)")
    table.add_column("Name", style="cyan")
    table.add_column("Legs", justify="right")
    table.add_column("Description" if not verbose else "Shape", style="white")

    for template in library:
        if verbose:
            detail = "\n".join(f"{i}: {escape(str(leg))}" for i, leg in enumerate(template.legs))
        else:
            detail = template.description
        table.add_row(template.name, str(template.leg_count), detail)

    console.print(table)


def main() -> None:
    """Main entry point for CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
