"""I/O utilities for devserve.

This package provides safe, atomic file operations:
- Core: atomic writes, directory management
- JSON: read/write of small state records
- YAML: configuration reads
"""
from __future__ import annotations

from .core import (
    PathLike,
    atomic_write,
    ensure_directory,
    ensure_parent_dir,
    remove_if_present,
)
from .json import (
    read_json,
    write_json_atomic,
)
from .yaml import (
    read_yaml,
)

__all__ = [
    # core
    "PathLike",
    "ensure_parent_dir",
    "ensure_directory",
    "atomic_write",
    "remove_if_present",
    # json
    "read_json",
    "write_json_atomic",
    # yaml
    "read_yaml",
]
