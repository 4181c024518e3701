# Copyright (c) Syntropy Systems
"""Tool runner with orphan prevention."""
from __future__ import annotations

import ctypes
import logging
import os
import signal
import subprocess
import sys
import time
from typing import IO, TYPE_CHECKING, Protocol

from treebatch.models import InvocationOptions, InvocationResult

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

# Shell convention for "command not found"
EXIT_NOT_FOUND = 127


def setup_pdeathsig() -> None:
    """Set PDEATHSIG so child dies when parent dies.

    This prevents orphan processes when the orchestrator is killed.
    Only works on Linux.
    """
    if sys.platform != "linux":
        return
    try:
        libc = ctypes.CDLL("libc.so.6", use_errno=True)
        pr_set_pdeathsig = 1
        libc.prctl(pr_set_pdeathsig, signal.SIGKILL)
    except (AttributeError, OSError):
        # Can't set PDEATHSIG, continue without it
        return


def build_argv(
    tool: str,
    input_dir: Path,
    output_prefix: Path,
    options: InvocationOptions,
) -> list[str]:
    """Build the tool command line for one unit."""
    return [
        tool,
        "-p", str(input_dir),
        "-m", options.model,
        "-B", str(options.bootstrap),
        "-alrt", str(options.alrt),
        "-T", str(options.threads),
        "--prefix", str(output_prefix),
    ]


class ToolRunner(Protocol):
    """Anything that can run the analysis tool for one unit.

    When log_file is given, tool output goes straight into it and the
    result's output is empty.
    """

    def invoke(
        self,
        input_dir: Path,
        output_prefix: Path,
        options: InvocationOptions,
        log_file: IO[str] | None = None,
    ) -> InvocationResult:
        ...


class IqtreeRunner:
    """Runs the analysis tool as a child process.

    Features:
    - No shell; argv is passed as a list
    - Uses start_new_session=True so the child has its own process group
    - Sets PDEATHSIG on Linux to prevent orphans
    - Merges stderr into stdout, streamed to a log file or captured
    - Waits without a timeout
    """

    tool: str
    env: dict[str, str]

    def __init__(self, tool: str = "iqtree2", env: dict[str, str] | None = None) -> None:
        """Initialize a tool runner.

        Args:
            tool: Executable name or path of the analysis tool
            env: Additional environment variables

        """
        self.tool = tool

        # Merge environment
        self.env = os.environ.copy()
        if env:
            self.env.update(env)

    def invoke(
        self,
        input_dir: Path,
        output_prefix: Path,
        options: InvocationOptions,
        log_file: IO[str] | None = None,
    ) -> InvocationResult:
        """Run the tool to completion and return its exit code.

        Args:
            input_dir: Directory with the unit's sequence files
            output_prefix: Prefix for every file the tool writes
            options: Tool options shared by all units
            log_file: Open file the tool's stdout and stderr are written to
                while it runs. Without one the output is captured and
                returned in the result.

        Raises:
            OSError: If the output directory cannot be created.

        """
        output_prefix.parent.mkdir(parents=True, exist_ok=True)
        argv = build_argv(self.tool, input_dir, output_prefix, options)
        started_at = time.time()
        logger.debug("Running %s", " ".join(argv))

        if log_file is not None:
            # Anything buffered must land before the child's first byte
            log_file.flush()

        try:
            process = subprocess.Popen(  # noqa: S603
                argv,
                stdout=log_file if log_file is not None else subprocess.PIPE,
                stderr=subprocess.STDOUT,
                stdin=subprocess.DEVNULL,
                env=self.env,
                text=True,
                errors="replace",
                start_new_session=True,
                preexec_fn=setup_pdeathsig if sys.platform == "linux" else None,  # noqa: PLW1509
            )
        except OSError as e:
            logger.warning("Could not start %s: %s", self.tool, e)
            message = f"{self.tool}: {e}\n"
            if log_file is not None:
                _ = log_file.write(message)
                log_file.flush()
                message = ""
            return InvocationResult(
                exit_code=EXIT_NOT_FOUND,
                output=message,
                started_at=started_at,
            )

        if log_file is not None:
            return InvocationResult(
                exit_code=process.wait(),
                started_at=started_at,
            )

        output, _ = process.communicate()
        return InvocationResult(
            exit_code=process.returncode,
            output=output or "",
            started_at=started_at,
        )
