"""Click-based CLI for stockiq-sync.

Thin wrapper around SyncEngine. Zero business logic: every command
delegates to the range cache or the catalyst aggregator.
"""

from __future__ import annotations

import asyncio
import json
import logging

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

console = Console(stderr=True)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run_async(coro):
    """Run an async coroutine from synchronous Click code."""
    return asyncio.run(coro)


def _load_config(ctx: click.Context):
    """Load config lazily, caching on first call."""
    if "config" not in ctx.obj:
        from stockiq_sync.core import ConfigError, load_config

        try:
            ctx.obj["config"] = load_config(config_path=ctx.obj.get("config_path"))
        except ConfigError as e:
            raise click.ClickException(f"Invalid configuration: {e}") from e
    return ctx.obj["config"]


async def _create_engine_async(config):
    """Create the sync engine (and its cache store) from config."""
    from stockiq_sync.engine import SyncEngine

    return await SyncEngine.create(config)


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    handlers: list[logging.Handler] = []
    if verbose:
        handlers.append(RichHandler(console=console, show_path=False))
    logging.basicConfig(
        level=level,
        format="%(name)s: %(message)s" if verbose else "%(levelname)s %(name)s: %(message)s",
        handlers=handlers or None,
        force=True,
    )


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    envvar="STOCKIQ_SYNC_CONFIG",
    default=None,
    help="Path to stockiq-sync.yml config file.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Enable verbose output.",
)
@click.version_option(package_name="stockiq-sync")
@click.pass_context
def cli(ctx: click.Context, config: str | None, verbose: bool) -> None:
    """StockIQ Sync: incremental price and catalyst synchronization."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose
    ctx.obj["console"] = console
    _configure_logging(verbose)


# ---------------------------------------------------------------------------
# history
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("symbol")
@click.option("--days", "-d", type=click.IntRange(min=1), default=90, help="Lookback in calendar days.")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format.",
)
@click.pass_context
def history(ctx: click.Context, symbol: str, days: int, output_format: str) -> None:
    """Show daily bars for SYMBOL, fetching only what the cache is missing."""
    config = _load_config(ctx)

    async def _run():
        engine = await _create_engine_async(config)
        try:
            return await engine.get_historical_data(symbol, days)
        finally:
            await engine.close()

    bars = _run_async(_run())

    if output_format == "json":
        click.echo(json.dumps([b.model_dump(mode="json") for b in bars], indent=2))
        return

    if not bars:
        console.print(f"[yellow]No bars available for {symbol.upper()}.[/yellow]")
        return

    table = Table(title=f"{symbol.upper()}: last {days} days")
    table.add_column("Date", style="bold")
    for name in ("Open", "High", "Low", "Close"):
        table.add_column(name, justify="right")
    table.add_column("Volume", justify="right")
    for b in bars:
        table.add_row(
            str(b.date),
            f"{b.open:.3f}",
            f"{b.high:.3f}",
            f"{b.low:.3f}",
            f"{b.close:.3f}",
            f"{b.volume:,}",
        )
    console.print(table)


# ---------------------------------------------------------------------------
# catalysts
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("symbol")
@click.option("--industry", "-i", type=str, default="Unknown", help="Issuer industry label.")
@click.option("--company", type=str, default="", help="Issuer name (used for the trials registry).")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format.",
)
@click.pass_context
def catalysts(
    ctx: click.Context,
    symbol: str,
    industry: str,
    company: str,
    output_format: str,
) -> None:
    """Show catalyst events for SYMBOL from filings and the trials registry."""
    config = _load_config(ctx)

    async def _run():
        engine = await _create_engine_async(config)
        try:
            return await engine.get_catalyst_events(symbol, company, industry)
        finally:
            await engine.close()

    events = _run_async(_run())

    if output_format == "json":
        click.echo(json.dumps([e.model_dump(mode="json") for e in events], indent=2))
        return

    if not events:
        console.print(f"[yellow]No catalyst events for {symbol.upper()}.[/yellow]")
        return

    table = Table(title=f"{symbol.upper()} catalysts")
    table.add_column("Date", style="bold")
    table.add_column("Type")
    table.add_column("Title")
    table.add_column("Source")
    for e in events:
        table.add_row(
            f"{e.date}{' (est.)' if e.is_estimate else ''}",
            e.event_type.value,
            e.title,
            e.source.value,
        )
    console.print(table)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
