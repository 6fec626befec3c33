"""grenpkg CLI.

Locates and inspects gren.json outlines, solves dependencies against the
shared package cache, manages that cache under the cross-process lock, and
edits configuration.
"""

from pathlib import Path
from typing import Annotated

import typer

from grenpkg.cli._console import configure_logging
from grenpkg.cli.commands.cache_cmd import do_cache_list, do_cache_remove, do_cache_store
from grenpkg.cli.commands.config_cmd import do_config_get, do_config_list, do_config_set
from grenpkg.cli.commands.outline_cmd import do_find, do_show
from grenpkg.cli.commands.solve_cmd import do_solve

app = typer.Typer(
    name="grenpkg",
    no_args_is_help=True,
    help="grenpkg: solve Gren dependencies and manage the shared package cache.",
)


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging"),
    ] = False,
) -> None:
    configure_logging(verbose)


# ── Top-level commands ───────────────────────────────────────────────


@app.command("find", help="Print the path of the nearest gren.json")
def find_cmd(
    directory: Annotated[
        Path | None,
        typer.Option("--directory", "-d", help="Directory to search from (defaults to current directory)"),
    ] = None,
) -> None:
    """Walk up to the nearest gren.json."""
    do_find(directory=directory)


@app.command("show", help="Display the nearest gren.json")
def show_cmd(
    directory: Annotated[
        Path | None,
        typer.Option("--directory", "-d", help="Directory to search from (defaults to current directory)"),
    ] = None,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the parsed outline as gren.json on stdout"),
    ] = False,
) -> None:
    """Show the parsed project outline."""
    do_show(directory=directory, as_json=as_json)


@app.command("solve", help="Solve the project's dependencies against the package cache")
def solve_cmd(
    directory: Annotated[
        Path | None,
        typer.Option("--directory", "-d", help="Project directory (defaults to current directory)"),
    ] = None,
    cache_root: Annotated[
        Path | None,
        typer.Option("--cache-root", help="Package cache root (defaults to the configured one)"),
    ] = None,
) -> None:
    """Report accepted ranges, or the first missing package or conflict."""
    do_solve(directory=directory, cache_root=cache_root)


# ── Cache subcommand group ───────────────────────────────────────────
cache_app = typer.Typer(
    name="cache",
    no_args_is_help=True,
    help="Inspect and modify the shared package cache.",
)
app.add_typer(cache_app, name="cache")


@cache_app.command("list", help="List cached packages and versions")
def cache_list_cmd(
    cache_root: Annotated[
        Path | None,
        typer.Option("--cache-root", help="Package cache root (defaults to the configured one)"),
    ] = None,
) -> None:
    do_cache_list(cache_root=cache_root)


@cache_app.command("store", help="Copy a package directory into the cache")
def cache_store_cmd(
    source: Annotated[
        Path,
        typer.Argument(help="Package directory containing a package gren.json"),
    ],
    cache_root: Annotated[
        Path | None,
        typer.Option("--cache-root", help="Package cache root (defaults to the configured one)"),
    ] = None,
) -> None:
    do_cache_store(source=source, cache_root=cache_root)


@cache_app.command("remove", help="Remove a package version from the cache")
def cache_remove_cmd(
    package: Annotated[
        str,
        typer.Argument(help="Package name (e.g. 'gren-lang/core')"),
    ],
    version: Annotated[
        str,
        typer.Argument(help="Exact version (e.g. '5.0.0')"),
    ],
    cache_root: Annotated[
        Path | None,
        typer.Option("--cache-root", help="Package cache root (defaults to the configured one)"),
    ] = None,
) -> None:
    do_cache_remove(package=package, version=version, cache_root=cache_root)


# ── Config subcommand group ──────────────────────────────────────────
config_app = typer.Typer(
    name="config",
    no_args_is_help=True,
    help="Manage grenpkg configuration.",
)
app.add_typer(config_app, name="config")


@config_app.command("set", help="Set a configuration value")
def config_set_cmd(
    key: Annotated[
        str,
        typer.Argument(help="Configuration key (e.g. 'cache-root', 'lock-attempts', 'lock-retry-ms')"),
    ],
    value: Annotated[
        str,
        typer.Argument(help="Value to set"),
    ],
) -> None:
    do_config_set(key=key, value=value)


@config_app.command("get", help="Get a configuration value")
def config_get_cmd(
    key: Annotated[
        str,
        typer.Argument(help="Configuration key (e.g. 'cache-root', 'lock-attempts', 'lock-retry-ms')"),
    ],
) -> None:
    do_config_get(key=key)


@config_app.command("list", help="List all configuration values")
def config_list_cmd() -> None:
    do_config_list()
