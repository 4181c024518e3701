# Copyright (c) Syntropy Systems
"""Data models for batch runs."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import ClassVar

from pydantic import BaseModel, ConfigDict

OUTPUT_DIRNAME = "iqtree_out"
TREEFILE_SUFFIX = ".treefile"


class Outcome(str, Enum):
    """Lifecycle state of a unit within one run."""

    PENDING = "pending"
    SKIP = "skip"
    SUCCESS = "success"
    FAIL = "fail"


@dataclass
class Unit:
    """One subdirectory of the base path, processed once per run."""

    name: str
    path: Path
    input_dir: Path | None = None
    outcome: Outcome = Outcome.PENDING
    reason: str | None = None
    exit_code: int | None = None

    @classmethod
    def from_path(cls, path: Path) -> Unit:
        return cls(name=path.name, path=path)

    @property
    def output_dir(self) -> Path:
        return self.path / OUTPUT_DIRNAME

    @property
    def output_prefix(self) -> Path:
        """Path stem the tool uses for every artifact of this unit."""
        return self.output_dir / f"{self.name}_concat_ML"

    @property
    def treefile(self) -> Path:
        return treefile_for(self.output_prefix)

    def resolve(
        self,
        outcome: Outcome,
        reason: str | None = None,
        exit_code: int | None = None,
    ) -> None:
        """Move the unit from pending to a terminal outcome.

        Raises:
            RuntimeError: If the unit already has a terminal outcome.
            ValueError: If ``outcome`` is ``PENDING``.

        """
        if self.outcome is not Outcome.PENDING:
            msg = f"Unit {self.name!r} already resolved as {self.outcome.value}"
            raise RuntimeError(msg)
        if outcome is Outcome.PENDING:
            msg = "Cannot resolve a unit back to pending"
            raise ValueError(msg)
        self.outcome = outcome
        self.reason = reason
        self.exit_code = exit_code


def treefile_for(prefix: Path) -> Path:
    return prefix.with_name(prefix.name + TREEFILE_SUFFIX)


@dataclass(frozen=True)
class InvocationOptions:
    """Fixed option set passed to every tool invocation."""

    bootstrap: int = 1000
    alrt: int = 1000
    threads: int | str = "AUTO"
    model: str = "MFP+MERGE"


@dataclass(frozen=True)
class InvocationResult:
    """Exit status and combined output of one tool invocation."""

    exit_code: int
    output: str = ""
    started_at: float | None = None


class RunSummary(BaseModel):
    """Immutable end-of-run record."""

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True)

    started_at: str
    finished_at: str
    base_path: str
    subfolder: str | None = None
    success: int = 0
    fail: int = 0
    skip: int = 0
    log_path: str

    @property
    def total(self) -> int:
        return self.success + self.fail + self.skip

    def subject(self, tool_name: str = "IQ-TREE") -> str:
        return f"{tool_name} batch finished ({self.success} ok, {self.fail} failed)"

    def render(self, tool_name: str = "IQ-TREE") -> str:
        """Human-readable summary block used for the log and notifications."""
        return "\n".join(
            [
                f"{tool_name} batch finished.",
                "",
                f"Start : {self.started_at}",
                f"End   : {self.finished_at}",
                f"Base  : {self.base_path}",
                "",
                f"Success: {self.success}",
                f"Fail   : {self.fail}",
                f"Skip   : {self.skip}",
                "",
                "Log file:",
                self.log_path,
            ]
        )
