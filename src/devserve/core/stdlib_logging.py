from __future__ import annotations

import logging
import sys
from pathlib import Path

from devserve.core.utils.io import ensure_directory

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_CONFIGURED_LOG_PATH: str | None = None
_FILE_HANDLER: logging.Handler | None = None
_STDERR_HANDLER: logging.Handler | None = None


def _level_from_name(name: str) -> int:
    level = logging.getLevelName(str(name).upper())
    return level if isinstance(level, int) else logging.INFO


def _drop_handler(root: logging.Logger, handler: logging.Handler | None) -> None:
    if handler is None:
        return
    root.removeHandler(handler)
    handler.close()


def configure_stdlib_logging(*, log_path: Path, level: str = "INFO", verbose: bool = False) -> None:
    """Send devserve logs to ``log_path``; with ``verbose`` also to stderr.

    Never writes to stdout, so ``--json`` output stays machine-readable.
    Idempotent per-process: if already configured for the same file, only the
    stderr handler is adjusted.
    """
    global _CONFIGURED_LOG_PATH, _FILE_HANDLER, _STDERR_HANDLER

    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else _level_from_name(level))

    resolved = str(Path(log_path).resolve())
    if _CONFIGURED_LOG_PATH != resolved or _FILE_HANDLER is None:
        ensure_directory(Path(resolved).parent)
        _drop_handler(root, _FILE_HANDLER)
        fh = logging.FileHandler(resolved, encoding="utf-8")
        fh.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(fh)
        _FILE_HANDLER = fh
        _CONFIGURED_LOG_PATH = resolved
    _FILE_HANDLER.setLevel(logging.DEBUG if verbose else _level_from_name(level))

    if verbose and _STDERR_HANDLER is None:
        sh = logging.StreamHandler(sys.stderr)
        sh.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        root.addHandler(sh)
        _STDERR_HANDLER = sh
    elif not verbose and _STDERR_HANDLER is not None:
        _drop_handler(root, _STDERR_HANDLER)
        _STDERR_HANDLER = None


def reset_stdlib_logging_for_tests() -> None:
    """Test-only: remove the handlers installed by ``configure_stdlib_logging``."""
    global _CONFIGURED_LOG_PATH, _FILE_HANDLER, _STDERR_HANDLER
    root = logging.getLogger()
    _drop_handler(root, _FILE_HANDLER)
    _drop_handler(root, _STDERR_HANDLER)
    _CONFIGURED_LOG_PATH = None
    _FILE_HANDLER = None
    _STDERR_HANDLER = None


__all__ = ["configure_stdlib_logging", "reset_stdlib_logging_for_tests"]
