"""Config commands for grenpkg settings.

Provides set, get, and list operations for the settings stored in
``~/.grenpkg/config.toml``.
"""

import typer
from rich import box
from rich.markup import escape
from rich.table import Table

from grenpkg.cli._console import get_console
from grenpkg.config.settings import (
    VALID_KEYS,
    SettingsError,
    get_setting_value,
    list_settings,
    resolve_key,
    set_setting_value,
)


def _resolve_or_exit(key: str) -> str:
    internal_key = resolve_key(key)
    if internal_key is None:
        console = get_console()
        console.print(f"[red]Unknown config key: '{escape(key)}'[/red]")
        console.print(f"[dim]Valid keys: {', '.join(VALID_KEYS)}[/dim]")
        raise typer.Exit(code=1)
    return internal_key


def do_config_set(key: str, value: str) -> None:
    """Set a configuration value.

    Args:
        key: The CLI key name (e.g. "cache-root", "lock-attempts").
        value: The value to store.
    """
    console = get_console()
    internal_key = _resolve_or_exit(key)

    try:
        set_setting_value(internal_key, value)
    except SettingsError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc
    console.print(f"[green]Set '{escape(key)}' = '{escape(value.strip())}'[/green]")


def do_config_get(key: str) -> None:
    """Get a configuration value and display it with its source.

    Args:
        key: The CLI key name (e.g. "cache-root").
    """
    console = get_console()
    internal_key = _resolve_or_exit(key)

    try:
        entry = get_setting_value(internal_key)
    except SettingsError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc
    console.print(f"[bold]{escape(key)}[/bold] = {escape(entry.value)}  [dim](source: {entry.source})[/dim]")


def do_config_list() -> None:
    """List all configuration values with their sources."""
    console = get_console()

    try:
        entries = list_settings()
    except SettingsError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc

    table = Table(title="grenpkg configuration", box=box.ROUNDED, show_header=True)
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    table.add_column("Source", style="dim")

    for entry in entries:
        table.add_row(escape(entry.cli_key), escape(entry.value), str(entry.source))

    console.print(table)
