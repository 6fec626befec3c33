"""Cache commands: list, store, and remove packages in the shared cache.

Every command that writes beneath the cache root holds the cache lock for the
duration of the write, so concurrent grenpkg runs (parallel CI jobs) never
interleave their changes.
"""

import asyncio
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

import typer
from rich import box
from rich.markup import escape
from rich.table import Table

from grenpkg.cache_lock.driver import CacheLock
from grenpkg.cli._console import get_console, resolve_cache_root, resolve_directory
from grenpkg.config.settings import SettingsError, get_retry_policy
from grenpkg.package.discovery import load_outline
from grenpkg.package.exceptions import CacheLockError, OutlineError, PackageCacheError
from grenpkg.package.outline import OUTLINE_FILENAME, PackageOutline
from grenpkg.package.package_cache import list_cached_packages, remove_cached_package, store_in_cache
from grenpkg.package.package_name import PackageName, PackageNameError
from grenpkg.package.semver import parse_version

T = TypeVar("T")


def _run_locked(cache_root: Path, operation: Callable[[], T]) -> T:
    """Run a blocking cache write while holding the lock on ``cache_root``.

    The write runs in a worker thread so the event loop keeps touching the
    lock marker while it is in progress.
    """
    console = get_console()
    try:
        retry = get_retry_policy()
    except SettingsError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc

    try:
        cache_root.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        console.print(f"[red]Could not create cache root {escape(str(cache_root))}: {escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc

    lock = CacheLock(retry=retry)

    async def _execute() -> T:
        async with lock.hold(cache_root):
            return await asyncio.to_thread(operation)

    try:
        return asyncio.run(_execute())
    except CacheLockError as exc:
        console.print(f"[red]{escape(exc.message)}[/red]")
        raise typer.Exit(code=1) from exc
    except PackageCacheError as exc:
        console.print(f"[red]{escape(exc.message)}[/red]")
        raise typer.Exit(code=1) from exc


def do_cache_list(cache_root: Path | None = None) -> None:
    """Display every cached package and its versions."""
    console = get_console()
    root = resolve_cache_root(cache_root)

    cached = list_cached_packages(root)
    if not cached:
        console.print(f"[dim]Cache at {escape(str(root))} is empty.[/dim]")
        return

    table = Table(title=f"Cached packages ({escape(str(root))})", box=box.ROUNDED, show_header=True)
    table.add_column("Package", style="cyan")
    table.add_column("Versions")
    for package_name, versions in cached.items():
        table.add_row(package_name, ", ".join(str(version) for version in versions))
    console.print(table)


def do_cache_store(source: Path, cache_root: Path | None = None) -> None:
    """Copy a package directory (with a package gren.json) into the cache.

    Args:
        source: The package directory to store.
        cache_root: Package cache root (defaults to the configured one).
    """
    console = get_console()
    source_dir = resolve_directory(source)

    try:
        outline = load_outline(source_dir / OUTLINE_FILENAME)
    except OutlineError as exc:
        console.print(f"[red]Could not read {OUTLINE_FILENAME} in {escape(str(source_dir))}: {escape(exc.message)}[/red]")
        raise typer.Exit(code=1) from exc
    if not isinstance(outline, PackageOutline):
        console.print(f"[red]{escape(str(source_dir))} is an application; only packages can be cached.[/red]")
        raise typer.Exit(code=1)

    root = resolve_cache_root(cache_root)
    package_name = outline.name.full_name

    def _store() -> Path:
        return store_in_cache(source_dir, package_name, outline.version, root)

    cached_path = _run_locked(root, _store)
    console.print(f"[green]Stored {escape(package_name)}@{escape(outline.version)} at {escape(str(cached_path))}.[/green]")


def do_cache_remove(package: str, version: str, cache_root: Path | None = None) -> None:
    """Remove one cached package version.

    Args:
        package: Package name (``author/name``).
        version: Exact version to remove.
        cache_root: Package cache root (defaults to the configured one).
    """
    console = get_console()
    try:
        package_name = PackageName.parse(package).full_name
    except PackageNameError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc
    if parse_version(version) is None:
        console.print(f"[red]Invalid version '{escape(version)}'. Must be MAJOR.MINOR.PATCH.[/red]")
        raise typer.Exit(code=1)

    root = resolve_cache_root(cache_root)

    def _remove() -> bool:
        return remove_cached_package(package_name, version, root)

    if _run_locked(root, _remove):
        console.print(f"[green]Removed {escape(package_name)}@{escape(version)} from the cache.[/green]")
    else:
        console.print(f"[yellow]{escape(package_name)}@{escape(version)} is not cached.[/yellow]")
