import json
from pathlib import Path

import typer
from rich import box
from rich.markup import escape
from rich.table import Table

from grenpkg.cli._console import get_console, resolve_directory
from grenpkg.package.discovery import find_outline_path, load_outline
from grenpkg.package.exceptions import OutlineError
from grenpkg.package.outline import OUTLINE_FILENAME, ApplicationOutline, PackageOutline, dump_outline


def _find_or_exit(directory: Path | None) -> Path:
    cwd = resolve_directory(directory)
    outline_path = find_outline_path(cwd)
    if outline_path is None:
        console = get_console()
        console.print(f"[red]No {OUTLINE_FILENAME} found in {escape(str(cwd))} or its parent directories.[/red]")
        raise typer.Exit(code=1)
    return outline_path


def load_outline_or_exit(directory: Path | None) -> PackageOutline | ApplicationOutline:
    """Find and parse the nearest gren.json, or exit with an error message."""
    outline_path = _find_or_exit(directory)
    try:
        return load_outline(outline_path)
    except OutlineError as exc:
        console = get_console()
        console.print(f"[red]Could not parse {escape(str(outline_path))}: {escape(exc.message)}[/red]")
        raise typer.Exit(code=1) from exc


def do_find(directory: Path | None = None) -> None:
    """Print the path of the nearest gren.json on stdout."""
    typer.echo(str(_find_or_exit(directory)))


def do_show(directory: Path | None = None, as_json: bool = False) -> None:
    """Display the nearest gren.json.

    Args:
        directory: Project directory (defaults to current directory)
        as_json: Print the parsed outline re-encoded as gren.json on stdout instead of tables
    """
    console = get_console()
    outline = load_outline_or_exit(directory)

    if as_json:
        typer.echo(json.dumps(dump_outline(outline), indent=4))
        return

    info_table = Table(title=OUTLINE_FILENAME, box=box.ROUNDED, show_header=True)
    info_table.add_column("Field", style="cyan")
    info_table.add_column("Value")
    info_table.add_row("Type", outline.type)
    info_table.add_row("Platform", str(outline.platform))
    info_table.add_row("Gren Version", outline.gren_version)

    match outline:
        case PackageOutline():
            info_table.add_row("Name", outline.name.full_name)
            info_table.add_row("Version", outline.version)
            info_table.add_row("Summary", escape(outline.summary))
            info_table.add_row("License", outline.license)
        case ApplicationOutline():
            info_table.add_row("Source Directories", ", ".join(outline.source_directories))
    console.print(info_table)

    requirements = outline.root_requirements()
    local_dependencies = outline.local_dependencies()
    if requirements or local_dependencies:
        console.print()
        deps_table = Table(title="Dependencies", box=box.ROUNDED, show_header=True)
        deps_table.add_column("Package", style="cyan")
        deps_table.add_column("Constraint")
        for requirement in requirements:
            deps_table.add_row(requirement.name, str(requirement.version))
        for dep_name, local_path in local_dependencies.items():
            deps_table.add_row(dep_name, f"[dim]local:[/dim] {escape(local_path)}")
        console.print(deps_table)
