"""Prediction ledger CLI commands."""

import asyncio
import sys

import click
from rich.console import Console
from rich.table import Table

from cli.utils import get_components

console = Console()


@click.command()
@click.argument("user")
def stats(user: str):
    """Show a user's prediction stats."""
    from ledger import StorageFailure

    c = get_components()
    try:
        result = c["ledger"].get_stats(user)
    except ValueError as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(2)

    if isinstance(result, StorageFailure):
        console.print(f"[red]Storage unavailable:[/] {result.detail}")
        sys.exit(1)

    table = Table(show_header=True, title=f"Stats for {user.lower()}")
    table.add_column("Total", justify="right")
    table.add_column("Correct", justify="right", style="green")
    table.add_column("Win rate", justify="right")
    table.add_column("Streak", justify="right", style="cyan")
    table.add_column("Best", justify="right", style="magenta")
    table.add_row(
        str(result.total_predictions),
        str(result.correct_predictions),
        f"{result.win_rate:.1f}%",
        str(result.current_streak),
        str(result.best_streak),
    )
    console.print(table)


@click.command()
def sweep():
    """Run one maintenance pass: drop stale predictions, prune histories."""
    from ledger import StorageFailure, SweepScheduler
    from observability import log_run_summary

    c = get_components()
    result = SweepScheduler(c["ledger"]).run_now()

    if isinstance(result, StorageFailure):
        console.print(f"[red]Sweep failed:[/] {result.detail}")
        sys.exit(1)

    console.print(f"[green]Swept[/] ({c['store'].name})")
    console.print(f"  Predictions removed: {result.predictions_removed}")
    console.print(f"  Histories pruned:    {result.histories_pruned}")
    console.print(f"  Histories removed:   {result.histories_removed}")
    console.print(f"  Expired purged:      {result.expired_purged}")
    log_run_summary()


@click.command()
def price():
    """Fetch the current reference price."""
    from oracle import OracleError

    c = get_components()
    try:
        quote = asyncio.run(c["oracle"].fetch_price())
    except OracleError as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(1)

    change = f" ({quote.change_24h:+.2f}% 24h)" if quote.change_24h is not None else ""
    console.print(f"{quote.asset.upper()}: [bold]{quote.price:.4f}[/] {quote.currency.upper()}{change}")
