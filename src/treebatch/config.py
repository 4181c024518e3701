# Copyright (c) Syntropy Systems
"""Configuration management for treebatch."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path, PurePath
from typing import cast

import yaml

from treebatch.models import InvocationOptions

CONFIG_FILENAME = "treebatch.yaml"

FASTA_EXTENSIONS = (".fa", ".fasta", ".fas", ".fna", ".faa")


class BatchConfigError(RuntimeError):
    """Fatal configuration problem detected before any unit is processed."""


@dataclass
class BatchConfig:
    """Configuration for a batch run."""

    # Directory whose immediate subdirectories are the units
    base_path: Path = field(default_factory=Path.cwd)

    # Subfolder inside each unit holding the input files; empty means auto-detect
    align_subfolder: str = ""

    # Recipient of the end-of-run notification
    email_to: str | None = None

    # Executable and display name of the analysis tool
    tool: str = "iqtree2"
    tool_name: str = "IQ-TREE"

    bootstrap: int = 1000
    alrt: int = 1000
    threads: int | str = "AUTO"
    model: str = "MFP+MERGE"

    fasta_extensions: tuple[str, ...] = FASTA_EXTENSIONS

    # Reject a treefile older than the invocation that should have written it
    require_fresh_artifact: bool = True

    @property
    def options(self) -> InvocationOptions:
        return InvocationOptions(
            bootstrap=self.bootstrap,
            alrt=self.alrt,
            threads=self.threads,
            model=self.model,
        )


def get_global_config_dir() -> Path:
    """Get the global treebatch config directory (~/.treebatch)."""
    return Path.home() / ".treebatch"


def find_config_file(base_path: Path, config_path: Path | None = None) -> Path | None:
    """Locate the config file to use, or None for defaults.

    Looks for config in:
    1. Provided config_path
    2. <base_path>/treebatch.yaml
    3. ~/.treebatch/config.yaml
    """
    if config_path is not None:
        if not config_path.is_file():
            msg = f"Config file not found: {config_path}"
            raise BatchConfigError(msg)
        return config_path

    local = base_path / CONFIG_FILENAME
    if local.is_file():
        return local

    global_config = get_global_config_dir() / "config.yaml"
    if global_config.is_file():
        return global_config

    return None


def check_subfolder(subfolder: str) -> str:
    """Validate an input subfolder name taken relative to each unit.

    Raises:
        BatchConfigError: If the subfolder is absolute or climbs out of the
            unit with ``..``.

    """
    path = PurePath(subfolder)
    if path.is_absolute() or path.anchor:
        msg = f"Align subfolder must be relative to each unit, got absolute path: {subfolder}"
        raise BatchConfigError(msg)
    if ".." in path.parts:
        msg = f"Align subfolder must stay inside each unit: {subfolder}"
        raise BatchConfigError(msg)
    return subfolder


def parse_threads(value: object) -> int | str | None:
    """Accept a positive thread count or AUTO; None for anything else."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int) and value > 0:
        return value
    if isinstance(value, str):
        if value.upper() == "AUTO":
            return "AUTO"
        if value.isdigit() and int(value) > 0:
            return int(value)
    return None


def _parse_extensions(value: object) -> tuple[str, ...] | None:
    if not isinstance(value, list) or not value:
        return None
    extensions: list[str] = []
    for item in cast("list[object]", value):
        if not isinstance(item, str) or not item.strip():
            return None
        ext = item.strip().lower()
        extensions.append(ext if ext.startswith(".") else f".{ext}")
    return tuple(extensions)


def load_config(base_path: Path | None = None, config_path: Path | None = None) -> BatchConfig:
    """Load configuration from a YAML file or defaults.

    Values with the wrong type are ignored and the default is kept.

    Raises:
        BatchConfigError: If an explicit config file is missing, a file
            does not contain a mapping, or align_subfolder leaves the unit.

    """
    config = BatchConfig()
    if base_path is not None:
        config.base_path = base_path

    path = find_config_file(config.base_path, config_path)
    if path is None:
        return config

    try:
        with path.open() as f:
            loaded = yaml.safe_load(f)
    except yaml.YAMLError as e:
        msg = f"Invalid YAML in {path}: {e}"
        raise BatchConfigError(msg) from e

    if loaded is None:
        return config
    if not isinstance(loaded, dict):
        msg = f"Config file {path} must contain a mapping"
        raise BatchConfigError(msg)
    data = cast("dict[str, object]", loaded)

    email_to = data.get("email_to")
    if isinstance(email_to, str) and email_to.strip():
        config.email_to = email_to.strip()
    align_subfolder = data.get("align_subfolder")
    if isinstance(align_subfolder, str):
        config.align_subfolder = check_subfolder(align_subfolder.strip())
    tool = data.get("tool")
    if isinstance(tool, str) and tool.strip():
        config.tool = tool.strip()
    tool_name = data.get("tool_name")
    if isinstance(tool_name, str) and tool_name.strip():
        config.tool_name = tool_name.strip()
    model = data.get("model")
    if isinstance(model, str) and model.strip():
        config.model = model.strip()

    bootstrap = data.get("bootstrap")
    if isinstance(bootstrap, int) and not isinstance(bootstrap, bool):
        config.bootstrap = bootstrap
    alrt = data.get("alrt")
    if isinstance(alrt, int) and not isinstance(alrt, bool):
        config.alrt = alrt

    threads = parse_threads(data.get("threads"))
    if threads is not None:
        config.threads = threads

    extensions = _parse_extensions(data.get("fasta_extensions"))
    if extensions is not None:
        config.fasta_extensions = extensions

    require_fresh = data.get("require_fresh_artifact")
    if isinstance(require_fresh, bool):
        config.require_fresh_artifact = require_fresh

    return config
