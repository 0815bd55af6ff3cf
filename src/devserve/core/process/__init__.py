"""Process utilities for devserve.

This package provides process inspection utilities:
- Port-to-process resolution (PortProbe with ordered backends)
- Process identity and liveness checks
"""
from __future__ import annotations

from .inspector import (
    is_process_alive,
    normalize_process_name,
    process_create_time,
    process_name,
)
from .ports import (
    BackendUnavailable,
    LsofBackend,
    PortListeners,
    PortProbe,
    PortProbeBackend,
    PsutilBackend,
    SsBackend,
    default_backends,
)

__all__ = [
    "is_process_alive",
    "normalize_process_name",
    "process_create_time",
    "process_name",
    "BackendUnavailable",
    "LsofBackend",
    "PortListeners",
    "PortProbe",
    "PortProbeBackend",
    "PsutilBackend",
    "SsBackend",
    "default_backends",
]
