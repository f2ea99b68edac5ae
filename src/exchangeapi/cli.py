"""Typer-based CLI for querying exchanges through the common interface."""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .exchanges.decoder import encode
from .exchanges.errors import NotSupportedError
from .exchanges.protocol import ExchangeTrade

if TYPE_CHECKING:
    from .di import AppContainer
    from .exchanges.base import BaseExchangeClient


def _load_settings(config_path: Optional[Path] = None):
    from .config import load_settings
    return load_settings(config_path)


def _build_container(settings):
    from .di import build_container
    return build_container(settings)


app = typer.Typer(help="Unified exchange REST API CLI")
console = Console()
logger = logging.getLogger(__name__)


def run_cli(argv: list[str] | None = None) -> None:
    """Run CLI with optional argv parameter."""
    app(argv)


def init_components(config_path: Optional[Path] = None) -> "AppContainer":
    """Load settings and build the container."""
    settings = _load_settings(config_path)
    return _build_container(settings)


def _get_client(container: "AppContainer", exchange: str) -> "BaseExchangeClient":
    client = container.registry.lookup(exchange)
    if client is None:
        known = ", ".join(container.registry.names())
        console.print(f"[red]Error:[/red] Unknown exchange '{exchange}'. Known exchanges: {known}")
        raise typer.Exit(1)
    return client


def _run(coro) -> None:
    """Run an async command body with uniform error reporting."""
    try:
        asyncio.run(coro)
    except typer.Exit:
        raise
    except NotSupportedError as e:
        console.print(f"[yellow]Not supported:[/yellow] {e}")
        raise typer.Exit(1)
    except Exception as e:
        logger.error("Command failed: %s", e, exc_info=True)
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


@app.command("exchanges")
def exchanges_list(
    config: Optional[Path] = typer.Option(None, help="Path to config file"),
) -> None:
    """List registered exchanges."""
    container = init_components(config)

    table = Table(title="Exchanges")
    table.add_column("Name", style="cyan")
    table.add_column("Base URL", style="blue")
    table.add_column("Rate limit", style="yellow")
    table.add_column("Credentials", style="green")

    for name, client in container.registry.list_all().items():
        gate = client.rate_limit
        table.add_row(
            name,
            client.base_url,
            f"{gate.max_requests} / {gate.window_seconds:g}s",
            "yes" if client.has_credentials else "no",
        )

    console.print(table)


@app.command()
def symbols(
    exchange: str = typer.Argument(..., help="Exchange name"),
    config: Optional[Path] = typer.Option(None, help="Path to config file"),
) -> None:
    """List tradable symbols."""
    _run(_symbols_async(exchange, config))


async def _symbols_async(exchange: str, config: Optional[Path]) -> None:
    container = init_components(config)
    async with _get_client(container, exchange) as client:
        names = await client.list_symbols()

    if not names:
        console.print(f"[yellow]No symbols returned by {exchange}[/yellow]")
        return
    console.print(", ".join(sorted(names)))
    console.print(f"\n[bold]Total symbols:[/bold] {len(names)}")


@app.command()
def ticker(
    exchange: str = typer.Argument(..., help="Exchange name"),
    symbol: str = typer.Argument(..., help="Symbol in the exchange's notation"),
    config: Optional[Path] = typer.Option(None, help="Path to config file"),
) -> None:
    """Show the ticker for a symbol."""
    _run(_ticker_async(exchange, symbol, config))


async def _ticker_async(exchange: str, symbol: str, config: Optional[Path]) -> None:
    container = init_components(config)
    async with _get_client(container, exchange) as client:
        result = await client.get_ticker(symbol)

    if result is None:
        console.print(f"[red]✗ No ticker for {symbol} on {exchange}[/red]")
        raise typer.Exit(1)

    console.print(Panel.fit(
        f"Bid: [green]{result.bid}[/green]\n"
        f"Ask: [red]{result.ask}[/red]\n"
        f"Last: [bold]{result.last}[/bold]\n"
        f"Volume: {result.volume.quantity_amount:g} {result.volume.quantity_symbol}",
        title=f"{exchange} {symbol}",
    ))


@app.command()
def book(
    exchange: str = typer.Argument(..., help="Exchange name"),
    symbol: str = typer.Argument(..., help="Symbol in the exchange's notation"),
    depth: int = typer.Option(10, min=1, help="Levels per side"),
    config: Optional[Path] = typer.Option(None, help="Path to config file"),
) -> None:
    """Show the order book for a symbol."""
    _run(_book_async(exchange, symbol, depth, config))


async def _book_async(exchange: str, symbol: str, depth: int, config: Optional[Path]) -> None:
    container = init_components(config)
    async with _get_client(container, exchange) as client:
        order_book = await client.get_order_book(symbol, depth)

    if order_book is None:
        console.print(f"[red]✗ No order book for {symbol} on {exchange}[/red]")
        raise typer.Exit(1)

    table = Table(title=f"{exchange} {symbol} order book")
    table.add_column("Bid size", style="green", justify="right")
    table.add_column("Bid", style="green", justify="right")
    table.add_column("Ask", style="red", justify="right")
    table.add_column("Ask size", style="red", justify="right")

    bids, asks = order_book.bids[:depth], order_book.asks[:depth]
    for i in range(max(len(bids), len(asks))):
        bid = bids[i] if i < len(bids) else None
        ask = asks[i] if i < len(asks) else None
        table.add_row(
            f"{bid.amount:g}" if bid else "",
            f"{bid.price:g}" if bid else "",
            f"{ask.price:g}" if ask else "",
            f"{ask.amount:g}" if ask else "",
        )

    console.print(table)


@app.command()
def trades(
    exchange: str = typer.Argument(..., help="Exchange name"),
    symbol: str = typer.Argument(..., help="Symbol in the exchange's notation"),
    since: Optional[datetime] = typer.Option(None, help="Start time (UTC); omit for recent trades"),
    limit: int = typer.Option(50, min=1, help="Maximum trades to show"),
    format_type: str = typer.Option("table", help="Output format (table/json)"),
    config: Optional[Path] = typer.Option(None, help="Path to config file"),
) -> None:
    """Show recent or historical trades."""
    _run(_trades_async(exchange, symbol, since, limit, format_type, config))


async def _trades_async(
    exchange: str,
    symbol: str,
    since: Optional[datetime],
    limit: int,
    format_type: str,
    config: Optional[Path],
) -> None:
    container = init_components(config)
    rows: list[ExchangeTrade] = []
    async with _get_client(container, exchange) as client:
        iterator = client.get_historical_trades(symbol, since) if since else client.get_recent_trades(symbol)
        async for trade in iterator:
            rows.append(trade)
            if len(rows) >= limit:
                break

    if not rows:
        console.print(f"[yellow]No trades found for {symbol} on {exchange}[/yellow]")
        return

    if format_type == "json":
        console.print_json(json.dumps(encode(rows, list[ExchangeTrade])))
        return

    table = Table(title=f"{exchange} {symbol} trades")
    table.add_column("Time", style="dim")
    table.add_column("Id", style="cyan")
    table.add_column("Side")
    table.add_column("Price", style="yellow", justify="right")
    table.add_column("Amount", style="magenta", justify="right")

    for trade in rows:
        side = "[green]BUY[/green]" if trade.is_buy else "[red]SELL[/red]"
        table.add_row(
            trade.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            str(trade.id),
            side,
            f"{trade.price:g}",
            f"{trade.amount:g}",
        )

    console.print(table)
    console.print(f"\n[bold]Total records:[/bold] {len(rows)}")


@app.command()
def balances(
    exchange: str = typer.Argument(..., help="Exchange name"),
    show_zero: bool = typer.Option(False, help="Include zero balances"),
    config: Optional[Path] = typer.Option(None, help="Path to config file"),
) -> None:
    """Show balances available to trade."""
    _run(_balances_async(exchange, show_zero, config))


async def _balances_async(exchange: str, show_zero: bool, config: Optional[Path]) -> None:
    container = init_components(config)
    async with _get_client(container, exchange) as client:
        amounts = await client.get_available_balances()

    rows = {k: v for k, v in amounts.items() if show_zero or v > 0}
    if not rows:
        console.print(f"[yellow]No balances on {exchange}[/yellow]")
        return

    table = Table(title=f"{exchange} balances")
    table.add_column("Currency", style="cyan")
    table.add_column("Available", style="green", justify="right")
    for currency, amount in sorted(rows.items()):
        table.add_row(currency, f"{amount:.8f}")

    console.print(table)
    logger.info("Balance check: %s, %d currencies", exchange, len(rows))


def main():
    """CLI main entry point."""
    app()


if __name__ == "__main__":
    main()
