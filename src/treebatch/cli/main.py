# Copyright (c) Syntropy Systems
"""Main CLI entry point for treebatch."""

import typer

from treebatch.cli.doctor import doctor
from treebatch.cli.run_cmd import run
from treebatch.cli.status import status

app = typer.Typer(
    name="treebatch",
    help=(
        "Batch phylogenetic inference. Run IQ-TREE once per unit directory, "
        "skip finished work, get one summary."
    ),
    no_args_is_help=True,
    add_completion=False,
)

# Register commands
_ = app.command()(run)
_ = app.command()(status)
_ = app.command()(doctor)


if __name__ == "__main__":
    app()
