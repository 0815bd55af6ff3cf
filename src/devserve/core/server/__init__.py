"""Dev server lifecycle: launch, readiness, persisted state and shutdown."""
from __future__ import annotations

from .launcher import DEFAULT_ADDRESS_ENV, ProcessLauncher, build_argv, follow_lines, terminate_process_group
from .models import (
    ForceStopReport,
    LifecyclePhase,
    LifecycleTracker,
    PersistedRuntimeState,
    ProcessHandle,
    ReadinessSignal,
    ServerAddress,
    StopOutcome,
    StopReport,
    TargetOutcome,
)
from .readiness import is_http_responsive, wait_healthy
from .shutdown import DEFAULT_GRACE_SECONDS, ShutdownController, force_stop
from .state import STATE_SCHEMA, StateStore

__all__ = [
    "DEFAULT_ADDRESS_ENV",
    "DEFAULT_GRACE_SECONDS",
    "ForceStopReport",
    "LifecyclePhase",
    "LifecycleTracker",
    "PersistedRuntimeState",
    "ProcessHandle",
    "ProcessLauncher",
    "ReadinessSignal",
    "STATE_SCHEMA",
    "ServerAddress",
    "ShutdownController",
    "StateStore",
    "StopOutcome",
    "StopReport",
    "TargetOutcome",
    "build_argv",
    "follow_lines",
    "force_stop",
    "is_http_responsive",
    "terminate_process_group",
    "wait_healthy",
]
