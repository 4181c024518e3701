# Copyright (c) Syntropy Systems
"""treebatch doctor command."""

import shutil
import subprocess
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from treebatch.config import BatchConfigError, find_config_file, load_config
from treebatch.notify import default_senders

console = Console()


def doctor(
    base_path: Path = typer.Argument(
        Path(),
        help="Base directory whose config should be checked (default: current directory)",
    ),
    config_path: Optional[Path] = typer.Option(
        None,
        "--config", "-c",
        help="YAML config file to check",
    ),
) -> None:
    """Check treebatch setup and diagnose issues.

    Verifies:
    - config file parses
    - tool executable is on PATH
    - a notification sender is available
    """
    issues: list[str] = []
    warnings: list[str] = []

    base = base_path.resolve()
    try:
        config_file = find_config_file(base, config_path)
        config = load_config(base, config_path)
    except BatchConfigError as e:
        console.print(f"[red]\u2717[/red] Config: {e}")
        raise typer.Exit(1)

    if config_file is not None:
        console.print(f"[green]\u2713[/green] Config: {config_file}")
    else:
        console.print("[dim]\u2022[/dim] Config: defaults (no config file found)")

    # Check the analysis tool
    tool_path = shutil.which(config.tool)
    if tool_path is None:
        console.print(f"[red]\u2717[/red] {config.tool} not found on PATH")
        issues.append(f"{config.tool} missing")
    else:
        try:
            result = subprocess.run(  # noqa: S603
                [tool_path, "--version"],
                capture_output=True,
                text=True,
                timeout=10,
                check=False,
            )
            lines = (result.stdout or result.stderr).strip().splitlines()
            version = next((line.strip() for line in lines if line.strip()), "unknown version")
            console.print(f"[green]\u2713[/green] {config.tool}: {tool_path} ({escape(version)})")
        except subprocess.TimeoutExpired:
            console.print(f"[yellow]\u26a0[/yellow] {config.tool} --version timed out")
            warnings.append(f"{config.tool} --version timed out")
        except OSError as e:
            console.print(f"[red]\u2717[/red] {config.tool} could not be run: {e}")
            issues.append(f"{config.tool} not runnable")

    # Check notification senders
    if not config.email_to:
        console.print("[yellow]\u26a0[/yellow] No email_to configured; notifications disabled")
        warnings.append("No notification recipient")
    else:
        available = [s.name for s in default_senders(config.email_to) if s.available()]
        if available:
            console.print(f"[green]\u2713[/green] Notifications to {config.email_to} via {available[0]}")
        else:
            console.print("[yellow]\u26a0[/yellow] Neither mail nor sendmail found")
            warnings.append("No notification sender")

    # Summary
    console.print()
    if issues:
        console.print(f"[red]Found {len(issues)} issue(s)[/red]")
        for issue in issues:
            console.print(f"  - {issue}")
    elif warnings:
        console.print(f"[yellow]Found {len(warnings)} warning(s)[/yellow]")
        for warning in warnings:
            console.print(f"  - {warning}")
    else:
        console.print("[green]All checks passed[/green]")
