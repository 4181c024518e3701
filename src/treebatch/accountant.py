# Copyright (c) Syntropy Systems
"""Per-run counters and the append-only run log."""
from __future__ import annotations

from datetime import datetime
from typing import IO, TYPE_CHECKING, Callable

from typing_extensions import Self

from treebatch.models import Outcome, RunSummary

if TYPE_CHECKING:
    from pathlib import Path
    from types import TracebackType

    from treebatch.models import Unit

LOG_PREFIX = "iqtree_batch_"
TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
DISPLAY_FORMAT = "%a %b %d %H:%M:%S %Y"


def log_path_for(base_path: Path, started_at: datetime) -> Path:
    """Pick a log file name under base_path that no other run is using."""
    stem = f"{LOG_PREFIX}{started_at.strftime(TIMESTAMP_FORMAT)}"
    candidate = base_path / f"{stem}.log"
    suffix = 1
    while candidate.exists():
        candidate = base_path / f"{stem}_{suffix}.log"
        suffix += 1
    return candidate


def format_time(moment: datetime) -> str:
    return moment.strftime(DISPLAY_FORMAT)


class RunAccountant:
    """Tracks outcomes for one run and writes its log.

    Counters only ever increase, one increment per unit. The log path is
    chosen once at construction and every line is appended to it.
    """

    base_path: Path
    started_at: datetime
    log_path: Path
    tool_name: str
    success: int
    fail: int
    skip: int
    _echo: Callable[[str], None] | None
    _log_file: IO[str] | None
    _summary: RunSummary | None

    def __init__(
        self,
        base_path: Path,
        started_at: datetime | None = None,
        echo: Callable[[str], None] | None = None,
        tool_name: str = "IQ-TREE",
    ) -> None:
        """Initialize an accountant.

        Args:
            base_path: Base directory of the run; the log is written here
            started_at: Run start time (default: now)
            echo: Called with every line written to the log, except tool output
            tool_name: Display name of the tool used in banners and summaries

        """
        self.base_path = base_path
        self.started_at = started_at or datetime.now()
        self.log_path = log_path_for(base_path, self.started_at)
        self.tool_name = tool_name
        self.success = 0
        self.fail = 0
        self.skip = 0
        self._echo = echo
        self._log_file = None
        self._summary = None

    def __enter__(self) -> Self:
        _ = self.open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def open(self) -> IO[str]:
        """Open the log for appending, reusing the handle if already open."""
        if self._log_file is None:
            self._log_file = self.log_path.open("a", encoding="utf-8")
        return self._log_file

    def close(self) -> None:
        if self._log_file is not None:
            self._log_file.close()
            self._log_file = None

    def _write(self, text: str) -> None:
        log_file = self.open()
        _ = log_file.write(text)
        log_file.flush()

    @property
    def total(self) -> int:
        return self.success + self.fail + self.skip

    def log(self, line: str = "") -> None:
        """Append a line to the log and echo it."""
        self._write(line + "\n")
        if self._echo is not None:
            self._echo(line)

    def write_output(self, text: str) -> None:
        """Append captured tool output to the log verbatim."""
        if not text:
            return
        self._write(text if text.endswith("\n") else text + "\n")

    def banner(self, subfolder: str | None = None) -> None:
        self.log(f"=== {self.tool_name} batch started: {format_time(self.started_at)} ===")
        self.log(f"Base directory : {self.base_path}")
        self.log(f"Align subfolder: {subfolder or '<auto-detect>'}")
        self.log(f"Log file       : {self.log_path}")
        self.log()

    def record(self, unit: Unit) -> None:
        """Count a unit's terminal outcome and log its result line.

        Raises:
            ValueError: If the unit is still pending.

        """
        if unit.outcome is Outcome.SKIP:
            self.skip += 1
            self.log(f"[{unit.name}] SKIP: {unit.reason}")
        elif unit.outcome is Outcome.SUCCESS:
            self.success += 1
            self.log(f"[{unit.name}] DONE: {unit.treefile}")
        elif unit.outcome is Outcome.FAIL:
            self.fail += 1
            code = "-" if unit.exit_code is None else unit.exit_code
            line = f"[{unit.name}] FAIL: exit_code={code} (see log)"
            self.log(f"{line} {unit.reason}" if unit.reason else line)
        else:
            msg = f"Unit {unit.name!r} has no terminal outcome"
            raise ValueError(msg)

    def finish(self, subfolder: str | None = None) -> RunSummary:
        """Freeze the counters into a summary and write it to the log."""
        if self._summary is not None:
            return self._summary

        self._summary = RunSummary(
            started_at=format_time(self.started_at),
            finished_at=format_time(datetime.now()),
            base_path=str(self.base_path),
            subfolder=subfolder or None,
            success=self.success,
            fail=self.fail,
            skip=self.skip,
            log_path=str(self.log_path),
        )
        self.log()
        for line in self._summary.render(self.tool_name).splitlines():
            self.log(line)
        return self._summary
