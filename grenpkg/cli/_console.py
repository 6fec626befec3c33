import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from grenpkg.config.settings import SettingsError, get_cache_root

_console: Console | None = None


def get_console() -> Console:
    """Return the shared Rich console instance for CLI output."""
    global _console  # noqa: PLW0603
    if _console is None:
        _console = Console(stderr=True)
    return _console


def configure_logging(verbose: bool) -> None:
    """Route library logging to the console through Rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=get_console(), show_path=False)],
        force=True,
    )


def resolve_directory(directory: Path | None) -> Path:
    """Resolve the --directory option to an existing directory path.

    Args:
        directory: User-provided directory path, or None for current directory.

    Returns:
        Resolved absolute path to the directory.

    Raises:
        typer.Exit: If the path does not exist or is not a directory.
    """
    if directory is None:
        return Path.cwd().resolve()

    resolved = Path(directory).resolve()
    if not resolved.exists():
        console = get_console()
        console.print(f"[red]Directory not found: {escape(str(resolved))}[/red]")
        raise typer.Exit(code=1)
    if not resolved.is_dir():
        console = get_console()
        console.print(f"[red]Not a directory: {escape(str(resolved))}[/red]")
        raise typer.Exit(code=1)
    return resolved


def resolve_cache_root(cache_root: Path | None) -> Path:
    """Resolve the --cache-root option, falling back to the configured cache root.

    Raises:
        typer.Exit: If the configuration cannot be read.
    """
    if cache_root is not None:
        return cache_root
    try:
        return get_cache_root()
    except SettingsError as exc:
        console = get_console()
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc
