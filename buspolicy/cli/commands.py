"""Policy CLI commands."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.markup import escape
from rich.table import Table

from .core import app, console, make_sources_config


@app.command("paths")
def paths_cmd() -> None:
    """Show policy source locations in load order."""
    config = make_sources_config()

    table = Table(title="Policy sources")
    table.add_column("Source", style="cyan")
    table.add_column("Path")
    table.add_column("Present", justify="center")

    for label, path in (
        ("base", config.base_file),
        ("local", config.local_file),
        (f"drop-in (*{config.dropin_suffix})", config.dropin_path),
    ):
        present = "[green]✓[/green]" if path.exists() else "[dim]—[/dim]"
        table.add_row(label, escape(str(path)), present)

    console.print(table)


@app.command("check")
def check_cmd(
    files: list[Path] = typer.Argument(..., help="Policy documents to validate"),
) -> None:
    """Parse policy documents and report their rule counts."""
    from buspolicy.policy.loader import load_file
    from buspolicy.policy.parser import PolicyLoadError
    from buspolicy.policy.store import PolicyStore, free_policy

    for path in files:
        store = PolicyStore()
        try:
            count = load_file(store, path)
        except PolicyLoadError as e:
            console.print(f"[red]✗[/red] {escape(str(e))}")
            raise typer.Exit(1)
        finally:
            free_policy(store)

        if count is None:
            console.print(f"[red]✗[/red] {escape(str(path))}: no such file")
            raise typer.Exit(1)
        console.print(f"[green]✓[/green] {escape(str(path))}: {count} rule(s)")


@app.command("dump")
def dump_cmd() -> None:
    """Load the full policy and print every rule."""
    from buspolicy.policy.dump import dump_policy
    from buspolicy.policy.loader import load_policy
    from buspolicy.policy.parser import PolicyLoadError
    from buspolicy.policy.store import PolicyStore

    config = make_sources_config()
    store = PolicyStore()
    try:
        load_policy(store, config)
    except PolicyLoadError as e:
        console.print(f"[red]Policy load error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    dump_policy(store, console=console)
    raise typer.Exit()
