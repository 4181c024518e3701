# Copyright (c) Syntropy Systems
"""Sequential batch loop over all units of a base directory."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from treebatch.accountant import RunAccountant
from treebatch.config import check_subfolder
from treebatch.discovery import discover_units, find_input_dir
from treebatch.models import Outcome, RunSummary, Unit
from treebatch.notify import NO_SENDER_WARNING, Sender, default_senders, notify
from treebatch.outcome import classify, is_complete
from treebatch.runner import IqtreeRunner, ToolRunner

if TYPE_CHECKING:
    from collections.abc import Sequence

    from treebatch.config import BatchConfig

logger = logging.getLogger(__name__)

NO_INPUT_REASON = "no alignment directory with fasta files found."


def process_unit(
    unit: Unit,
    config: BatchConfig,
    runner: ToolRunner,
    accountant: RunAccountant,
) -> Unit:
    """Take one unit from pending to a terminal outcome and record it.

    Filesystem errors inside the unit (an unwritable output directory, for
    example) fail this unit only.
    """
    unit.input_dir = find_input_dir(
        unit.path,
        config.align_subfolder or None,
        config.fasta_extensions,
    )
    if unit.input_dir is None:
        unit.resolve(Outcome.SKIP, reason=NO_INPUT_REASON)
        accountant.record(unit)
        return unit

    try:
        unit.output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        return _fail(unit, accountant, e)

    if is_complete(unit.output_prefix):
        unit.resolve(Outcome.SKIP, reason=f"existing tree found: {unit.treefile}")
        accountant.record(unit)
        return unit

    accountant.log(f"[{unit.name}] RUN: aln_dir={unit.input_dir}")
    try:
        result = runner.invoke(
            unit.input_dir,
            unit.output_prefix,
            config.options,
            accountant.open(),
        )
    except OSError as e:
        return _fail(unit, accountant, e)
    accountant.write_output(result.output)

    started_at = result.started_at if config.require_fresh_artifact else None
    outcome, reason = classify(result.exit_code, unit.output_prefix, started_at)
    unit.resolve(outcome, reason=reason, exit_code=result.exit_code)
    accountant.record(unit)
    return unit


def _fail(unit: Unit, accountant: RunAccountant, error: OSError) -> Unit:
    logger.warning("Unit %s failed: %s", unit.name, error)
    unit.resolve(Outcome.FAIL, reason=str(error))
    accountant.record(unit)
    return unit


def run_batch(
    config: BatchConfig,
    runner: ToolRunner | None = None,
    senders: Sequence[Sender] | None = None,
    echo: Callable[[str], None] | None = None,
) -> RunSummary:
    """Process every unit under config.base_path, then send a summary.

    Units are handled one at a time in discovery order. A unit's failure
    never stops the loop.

    Raises:
        BatchConfigError: If the base directory is missing or not a directory,
            or align_subfolder is absolute or contains "..". Raised before any
            log is written.

    """
    base_path = config.base_path
    if config.align_subfolder:
        _ = check_subfolder(config.align_subfolder)
    units = discover_units(base_path)

    if runner is None:
        runner = IqtreeRunner(config.tool)
    if senders is None:
        senders = default_senders(config.email_to)

    with RunAccountant(base_path, echo=echo, tool_name=config.tool_name) as accountant:
        accountant.banner(config.align_subfolder)

        for unit in units:
            _ = process_unit(unit, config, runner, accountant)

        summary = accountant.finish(config.align_subfolder)

        if not notify(summary.subject(config.tool_name), summary.render(config.tool_name), senders):
            accountant.log(f"WARN: {NO_SENDER_WARNING}")

        accountant.log("=== All done ===")

    logger.info(
        "Batch finished: %d ok, %d failed, %d skipped",
        summary.success,
        summary.fail,
        summary.skip,
    )
    return summary
