"""Process identity and liveness helpers.

psutil is a required dependency: it provides process names, liveness and
signal delivery on every supported platform.
"""
from __future__ import annotations

import logging
import re

import psutil

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def normalize_process_name(name: str | None) -> str:
    """Normalize a process image name for comparison (all whitespace removed)."""
    return _WHITESPACE.sub("", str(name or ""))


def process_name(pid: int) -> str | None:
    """Return the normalized image name for ``pid`` or None if it is gone.

    Raises:
        psutil.AccessDenied: when the name cannot be read.
    """
    try:
        return normalize_process_name(psutil.Process(pid).name())
    except (psutil.NoSuchProcess, psutil.ZombieProcess):
        return None


def is_process_alive(pid: int) -> bool:
    """Check if a process is alive by PID.

    Zombies count as dead: they no longer hold sockets or run code, they only
    wait for their parent to reap them.
    """
    if pid <= 0:
        return False
    try:
        proc = psutil.Process(pid)
        return proc.status() != psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return False
    except psutil.AccessDenied:
        # Permission denied implies the process exists but is protected
        return True


def process_create_time(pid: int) -> float | None:
    try:
        return psutil.Process(pid).create_time()
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return None


__all__ = [
    "normalize_process_name",
    "process_name",
    "is_process_alive",
    "process_create_time",
]
