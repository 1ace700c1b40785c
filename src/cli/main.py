"""CLI entry point for celo-predict."""

import sys
from pathlib import Path

import click

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from cli.commands import price, serve, show_config, stats, sweep
from cli.config import load_config_model
from cli.logging_config import setup_logging


@click.group()
@click.version_option(version="0.1.0")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option("--json-logs", is_flag=True, help="Emit JSON log lines")
def cli(verbose: bool, json_logs: bool):
    """CELO price prediction game - ledger service."""
    try:
        log_config = load_config_model().logging
        level, json_mode = log_config.level, log_config.json_logs
    except ValueError:
        # Reported properly by the command itself
        level, json_mode = "INFO", False
    setup_logging(json_mode=json_mode or json_logs, level="DEBUG" if verbose else level)


cli.add_command(serve)
cli.add_command(sweep)
cli.add_command(stats)
cli.add_command(price)
cli.add_command(show_config)


if __name__ == "__main__":
    cli()
