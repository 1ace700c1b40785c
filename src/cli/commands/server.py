"""Server and config CLI commands."""

import click
import yaml
from rich.console import Console
from rich.syntax import Syntax

from cli.utils import get_components

console = Console()


@click.command()
@click.option("--host", default=None, help="Bind address (default from config)")
@click.option("--port", default=None, type=int, help="Port (default from config)")
def serve(host: str | None, port: int | None):
    """Run the HTTP API under uvicorn."""
    import uvicorn

    config = get_components()["config"]
    uvicorn.run(
        "web.app:app",
        host=host or config.web.host,
        port=port or config.web.port,
        log_config=None,
    )


@click.command("config")
def show_config():
    """Print the effective configuration."""
    config = get_components()["config"]
    data = config.to_dict()
    if data["oracle"].get("api_key"):
        data["oracle"]["api_key"] = "***"
    console.print(Syntax(yaml.safe_dump(data, sort_keys=False), "yaml"))
