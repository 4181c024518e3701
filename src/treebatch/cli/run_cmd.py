# Copyright (c) Syntropy Systems
"""treebatch run command."""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from treebatch.batch import run_batch
from treebatch.config import BatchConfigError, load_config, parse_threads

console = Console()


def _echo_line(line: str) -> None:
    console.print(line, markup=False, highlight=False, soft_wrap=True)


def run(
    base_path: Path = typer.Argument(
        Path(),
        help="Directory containing one subdirectory per unit (default: current directory)",
    ),
    subfolder: str = typer.Argument(
        "",
        help="Subfolder inside each unit holding the fasta files (default: auto-detect)",
    ),
    config_path: Optional[Path] = typer.Option(
        None,
        "--config", "-c",
        help="YAML config file (default: <base>/treebatch.yaml, then ~/.treebatch/config.yaml)",
    ),
    email_to: Optional[str] = typer.Option(
        None,
        "--email-to", "-e",
        envvar="TREEBATCH_EMAIL_TO",
        help="Address to notify when the batch finishes",
    ),
    tool: Optional[str] = typer.Option(
        None,
        "--tool",
        help="Tool executable (default: iqtree2)",
    ),
    threads: Optional[str] = typer.Option(
        None,
        "--threads", "-T",
        help="Threads per invocation, a number or AUTO",
    ),
    bootstrap: Optional[int] = typer.Option(
        None,
        "--bootstrap", "-B",
        min=1,
        help="Ultrafast bootstrap replicates",
    ),
    alrt: Optional[int] = typer.Option(
        None,
        "--alrt",
        min=0,
        help="SH-aLRT replicates",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet", "-q",
        help="Only write the log file, print nothing",
    ),
) -> None:
    """Run the tool once per unit and report a summary.

    Units whose treefile already exists are skipped, so an interrupted
    batch can be restarted with the same command. Failed units do not
    change the exit code.

    Examples:

        treebatch run /data/genera

        treebatch run /data/genera alignments --threads 16
    """
    base = base_path.resolve()
    try:
        config = load_config(base, config_path)
    except BatchConfigError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    if subfolder:
        config.align_subfolder = subfolder
    if email_to:
        config.email_to = email_to
    if tool:
        config.tool = tool
    if threads:
        parsed = parse_threads(threads)
        if parsed is None:
            raise typer.BadParameter("must be a positive integer or AUTO", param_hint="--threads")
        config.threads = parsed
    if bootstrap is not None:
        config.bootstrap = bootstrap
    if alrt is not None:
        config.alrt = alrt

    try:
        summary = run_batch(config, echo=None if quiet else _echo_line)
    except BatchConfigError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    if not quiet:
        style = "green" if summary.fail == 0 else "yellow"
        console.print(
            f"[{style}]{summary.success} ok, {summary.fail} failed, "
            f"{summary.skip} skipped[/{style}]"
        )
