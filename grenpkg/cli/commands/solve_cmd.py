from pathlib import Path

import typer
from rich import box
from rich.markup import escape
from rich.table import Table

from grenpkg.cli._console import get_console, resolve_cache_root
from grenpkg.cli.commands.outline_cmd import load_outline_or_exit
from grenpkg.package.outline import PackageOutline
from grenpkg.package.package_cache import load_cached_outlines
from grenpkg.package.solver import SolutionComplete, SolutionConflict, SolutionMissing, solve


def do_solve(directory: Path | None = None, cache_root: Path | None = None) -> None:
    """Solve the project's dependencies against the packages in the local cache.

    Args:
        directory: Project directory (defaults to current directory)
        cache_root: Package cache root (defaults to the configured one)
    """
    console = get_console()
    outline = load_outline_or_exit(directory)
    root = resolve_cache_root(cache_root)

    loaded = load_cached_outlines(root)
    if isinstance(outline, PackageOutline):
        # The project's own outline takes precedence over any cached copy of it
        loaded[outline.name.full_name] = outline.to_simplified()

    solution = solve(outline.root_requirements(), loaded)

    match solution:
        case SolutionComplete(packages=packages):
            if not packages:
                console.print("[dim]No dependencies to solve.[/dim]")
                return
            table = Table(title="Solved dependencies", box=box.ROUNDED, show_header=True)
            table.add_column("Package", style="cyan")
            table.add_column("Accepted range")
            for package_name, version_range in packages.items():
                table.add_row(package_name, str(version_range))
            console.print(table)
            console.print(f"[green]Solved {len(packages)} package(s).[/green]")
        case SolutionMissing(name=name, version=version):
            console.print(f"[red]Package '{escape(name)}' ({version}) is not in the cache at {escape(str(root))}.[/red]")
            console.print("Add it with [bold]grenpkg cache store <package-dir>[/bold].")
            raise typer.Exit(code=1)
        case SolutionConflict(name=name, version1=version1, version2=version2):
            console.print(f"[red]Conflicting requirements on '{escape(name)}': {version1} and {version2} do not overlap.[/red]")
            raise typer.Exit(code=1)
