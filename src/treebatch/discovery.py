# Copyright (c) Syntropy Systems
"""Unit discovery and input directory detection."""
from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

from treebatch.config import FASTA_EXTENSIONS, BatchConfigError, check_subfolder
from treebatch.models import Unit

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator


def discover_units(base_path: Path) -> list[Unit]:
    """List the immediate subdirectories of base_path as units.

    Symlinks to directories count as units. Plain files and hidden
    directories (names starting with ".") do not. Order is whatever the
    filesystem yields.

    Raises:
        BatchConfigError: If base_path does not exist or is not a directory.

    """
    if not base_path.exists():
        msg = f"Base directory does not exist: {base_path}"
        raise BatchConfigError(msg)
    if not base_path.is_dir():
        msg = f"Base path is not a directory: {base_path}"
        raise BatchConfigError(msg)

    return [
        Unit.from_path(child)
        for child in base_path.iterdir()
        if child.is_dir() and not child.name.startswith(".")
    ]


def _has_extension(name: str, extensions: Iterable[str]) -> bool:
    lowered = name.lower()
    return any(lowered.endswith(ext) for ext in extensions)


def _files_in(directory: Path) -> Iterator[Path]:
    try:
        entries = list(os.scandir(directory))
    except OSError:
        return
    for entry in entries:
        if entry.is_file():
            yield Path(entry.path)


def _subdirs_in(directory: Path) -> Iterator[Path]:
    try:
        entries = list(os.scandir(directory))
    except OSError:
        return
    for entry in entries:
        if entry.is_dir():
            yield Path(entry.path)


def find_input_dir(
    unit_path: Path,
    subfolder: str | None = None,
    extensions: Iterable[str] = FASTA_EXTENSIONS,
) -> Path | None:
    """Find the directory holding a unit's sequence files.

    An explicit subfolder wins whenever ``<unit>/<subfolder>`` is a
    directory; its contents are not checked. Otherwise the unit directory
    and its immediate subdirectories are searched, shallowest first, and the
    directory containing the first sequence file is returned.

    Returns None when nothing suitable is found.

    Raises:
        BatchConfigError: If subfolder is absolute or contains "..".

    """
    if subfolder:
        override = unit_path / check_subfolder(subfolder)
        if override.is_dir():
            return override

    extensions = tuple(ext.lower() for ext in extensions)

    for path in _files_in(unit_path):
        if _has_extension(path.name, extensions):
            return path.parent

    for subdir in _subdirs_in(unit_path):
        for path in _files_in(subdir):
            if _has_extension(path.name, extensions):
                return path.parent

    return None
