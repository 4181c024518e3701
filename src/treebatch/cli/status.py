# Copyright (c) Syntropy Systems
"""treebatch status command."""

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from treebatch.config import BatchConfigError, check_subfolder, load_config
from treebatch.discovery import discover_units, find_input_dir
from treebatch.outcome import is_complete

console = Console()


def _display_path(path: Path, base: Path) -> str:
    try:
        return escape(str(path.relative_to(base)))
    except ValueError:
        return escape(str(path))


def status(
    base_path: Path = typer.Argument(
        Path(),
        help="Directory containing one subdirectory per unit (default: current directory)",
    ),
    subfolder: str = typer.Argument(
        "",
        help="Subfolder inside each unit holding the fasta files (default: auto-detect)",
    ),
) -> None:
    """
    Show which units are done, pending or missing input.

    Read-only: nothing is run and no log file is written.
    """
    base = base_path.resolve()
    try:
        config = load_config(base)
        align_subfolder = check_subfolder(subfolder or config.align_subfolder)
        units = discover_units(base)
    except BatchConfigError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    if not units:
        console.print("[dim]No units found[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Unit")
    table.add_column("State")
    table.add_column("Input directory", style="dim")

    counts = {"done": 0, "pending": 0, "no input": 0}
    for unit in units:
        input_dir = find_input_dir(unit.path, align_subfolder or None, config.fasta_extensions)
        if input_dir is None:
            state = "no input"
        elif is_complete(unit.output_prefix):
            state = "done"
        else:
            state = "pending"
        counts[state] += 1

        state_style = {
            "done": "green",
            "pending": "yellow",
            "no input": "red",
        }[state]

        table.add_row(
            escape(unit.name),
            f"[{state_style}]{state}[/{state_style}]",
            _display_path(input_dir, base) if input_dir is not None else "-",
        )

    console.print(table)
    console.print(
        f"{counts['done']} done, {counts['pending']} pending, "
        f"{counts['no input']} without input"
    )
