# Copyright (c) Syntropy Systems
"""Pytest fixtures for treebatch tests."""

from __future__ import annotations

import os
import stat
import sys
import tempfile
import time
from collections.abc import Generator
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO

import pytest

from treebatch.config import BatchConfig
from treebatch.models import InvocationOptions, InvocationResult

TREE = "((A:0.1,B:0.2):0.05,C:0.3);\n"

# Minimal stand-in for iqtree2; a MODE file in the input directory picks
# "ok" (default), "silent" (exit 0, no treefile), "peek" (exit 0 only if its
# own output is already in the file named by FAKE_LOG) or anything else (exit 3)
FAKE_TOOL = """\
import os
import sys
from pathlib import Path

args = sys.argv[1:]
prefix = Path(args[args.index("--prefix") + 1])
print("fake iqtree " + " ".join(args))
print("warning on stderr", file=sys.stderr)
mode = Path(args[args.index("-p") + 1]).joinpath("MODE")
mode = mode.read_text().strip() if mode.exists() else "ok"
if mode == "ok":
    prefix.with_name(prefix.name + ".treefile").write_text("(A,B);\\n")
    sys.exit(0)
if mode == "silent":
    sys.exit(0)
if mode == "peek":
    sys.stdout.flush()
    sys.exit(0 if "fake iqtree" in Path(os.environ["FAKE_LOG"]).read_text() else 4)
sys.exit(3)
"""

# Store original cwd at module load time
_original_cwd = Path.cwd()


@dataclass
class Script:
    """Scripted behaviour of the stub tool for one unit."""

    exit_code: int = 0
    write_tree: bool = True
    tree: str = TREE
    output: str = "stub output\n"


@dataclass
class StubRunner:
    """ToolRunner that records calls and fakes the tool's effects."""

    scripts: dict[str, Script] = field(default_factory=dict)
    default: Script = field(default_factory=Script)
    calls: list[tuple[Path, Path, InvocationOptions]] = field(default_factory=list)

    def invoke(
        self,
        input_dir: Path,
        output_prefix: Path,
        options: InvocationOptions,
        log_file: IO[str] | None = None,
    ) -> InvocationResult:
        self.calls.append((input_dir, output_prefix, options))
        started_at = time.time()
        unit_name = output_prefix.parent.parent.name
        script = self.scripts.get(unit_name, self.default)
        if script.write_tree:
            output_prefix.parent.mkdir(parents=True, exist_ok=True)
            treefile = output_prefix.with_name(output_prefix.name + ".treefile")
            treefile.write_text(script.tree)
        output = script.output
        if log_file is not None:
            _ = log_file.write(output)
            output = ""
        return InvocationResult(
            exit_code=script.exit_code,
            output=output,
            started_at=started_at,
        )

    @property
    def invoked_units(self) -> list[str]:
        return [prefix.parent.parent.name for _, prefix, _ in self.calls]


def make_unit(
    base: Path,
    name: str,
    files: tuple[str, ...] = (),
    done: bool = False,
) -> Path:
    """Create a unit directory with the given relative files."""
    unit = base / name
    unit.mkdir(parents=True, exist_ok=True)
    for rel in files:
        path = unit / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(">seq1\nACGT\n")
    if done:
        out = unit / "iqtree_out"
        out.mkdir(exist_ok=True)
        (out / f"{name}_concat_ML.treefile").write_text(TREE)
    return unit


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


def write_fake_tool(directory: Path) -> Path:
    """Write an executable script that behaves like a tiny iqtree2."""
    script = directory / "fake_iqtree2"
    _ = script.write_text(f"#!{sys.executable}\n{FAKE_TOOL}")
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return script


@pytest.fixture(autouse=True)
def isolated_home(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """Keep ~/.treebatch/config.yaml of the developer out of the tests."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv("TREEBATCH_EMAIL_TO", raising=False)
    return home


@pytest.fixture
def base_dir(temp_dir: Path) -> Generator[Path, None, None]:
    """Create an empty base directory and change into it."""
    base = temp_dir / "genera"
    base.mkdir()
    os.chdir(base)

    yield base

    # Always return to original cwd
    os.chdir(_original_cwd)


@pytest.fixture
def stub_runner() -> StubRunner:
    return StubRunner()


@pytest.fixture
def config(base_dir: Path) -> BatchConfig:
    return BatchConfig(base_path=base_dir)


def log_lines(log_path: str | Path | None) -> list[str]:
    assert log_path is not None
    return Path(log_path).read_text().splitlines()
