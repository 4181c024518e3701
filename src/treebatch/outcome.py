# Copyright (c) Syntropy Systems
"""Completion checks and outcome classification."""
from __future__ import annotations

from typing import TYPE_CHECKING

from treebatch.models import Outcome, treefile_for

if TYPE_CHECKING:
    from pathlib import Path

# Filesystems with coarse mtimes can stamp a fresh file slightly before start
MTIME_TOLERANCE = 1.0


def is_complete(prefix: Path) -> bool:
    """Check whether ``<prefix>.treefile`` exists and is non-empty."""
    treefile = treefile_for(prefix)
    try:
        return treefile.is_file() and treefile.stat().st_size > 0
    except OSError:
        return False


def is_stale(prefix: Path, started_at: float) -> bool:
    """Check whether the treefile predates an invocation started at started_at."""
    try:
        mtime = treefile_for(prefix).stat().st_mtime
    except OSError:
        return False
    return mtime < started_at - MTIME_TOLERANCE


def classify(
    exit_code: int,
    prefix: Path,
    started_at: float | None = None,
) -> tuple[Outcome, str | None]:
    """Classify a finished invocation.

    Success requires a zero exit code and a non-empty treefile. When
    started_at is given the treefile must also have been written after
    the invocation started.

    Returns:
        The outcome and, for failures, a short reason.

    """
    if exit_code != 0:
        return Outcome.FAIL, None
    if not is_complete(prefix):
        return Outcome.FAIL, "no treefile written"
    if started_at is not None and is_stale(prefix, started_at):
        return Outcome.FAIL, "stale treefile"
    return Outcome.SUCCESS, None
