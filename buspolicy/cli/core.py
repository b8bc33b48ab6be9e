"""Shared CLI application context and setup helpers."""

from __future__ import annotations

import typer
from rich.console import Console

from buspolicy import __logo__, __version__

app = typer.Typer(
    name="buspolicy",
    help=f"{__logo__} buspolicy - message bus access policy loader",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool) -> None:
    if value:
        console.print(f"{__logo__} buspolicy v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(None, "--version", "-v", callback=version_callback, is_eager=True),
) -> None:
    """buspolicy - message bus access policy loader."""


def make_sources_config():
    """Create source locations config from the environment."""
    from pydantic import ValidationError

    from buspolicy.config.schema import PolicySourcesConfig

    try:
        return PolicySourcesConfig()
    except ValidationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1)
