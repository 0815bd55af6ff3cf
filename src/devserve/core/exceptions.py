from __future__ import annotations

from typing import Any, Dict, Mapping


class DevserveError(Exception):
    """Base exception for devserve.

    ``exit_code`` is the process exit status the CLI reports for this kind.
    """

    exit_code: int = 1
    kind: str = "Error"
    context: Dict[str, Any]

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        if context is not None:
            # Store a shallow copy to avoid accidental mutation.
            self.context = dict(context)
        else:
            self.context = {}

    def to_json_error(self) -> Dict[str, Any]:
        """Return a JSON-serializable error payload."""
        return {
            "message": str(self),
            "code": self.kind,
            "context": self.context,
        }


class ConfigurationError(DevserveError, ValueError):
    """Raised before any side effect when required inputs are missing or invalid."""

    exit_code = 2
    kind = "ConfigurationError"

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        DevserveError.__init__(self, message, context=context)
        ValueError.__init__(self, message)


class PortConflictError(DevserveError):
    """Raised when the target port already has a listener at start time."""

    exit_code = 3
    kind = "PortConflict"


class LaunchFailedError(DevserveError, RuntimeError):
    """Raised when the server could not be spawned or died before becoming ready."""

    exit_code = 4
    kind = "LaunchFailed"

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        DevserveError.__init__(self, message, context=context)
        RuntimeError.__init__(self, message)


class ReadinessTimeoutError(DevserveError, TimeoutError):
    """Raised after the spawned server was terminated for not becoming ready in time."""

    exit_code = 5
    kind = "ReadinessTimeout"

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        DevserveError.__init__(self, message, context=context)
        TimeoutError.__init__(self, message)


class ProbeUnavailableError(DevserveError, RuntimeError):
    """Raised when no port inspection backend works on this host."""

    exit_code = 6
    kind = "ProbeUnavailable"

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        DevserveError.__init__(self, message, context=context)
        RuntimeError.__init__(self, message)


class StateUnavailableError(DevserveError):
    """Raised when the persisted runtime state cannot be read."""

    exit_code = 7
    kind = "StateUnavailable"


class StateNotFoundError(StateUnavailableError, FileNotFoundError):
    """Raised when no runtime state has been persisted."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        StateUnavailableError.__init__(self, message, context=context)
        FileNotFoundError.__init__(self, message)


class StillAliveError(DevserveError):
    """Raised when targeted processes survive forced termination."""

    exit_code = 8
    kind = "StillAlive"


__all__ = [
    "DevserveError",
    "ConfigurationError",
    "PortConflictError",
    "LaunchFailedError",
    "ReadinessTimeoutError",
    "ProbeUnavailableError",
    "StateUnavailableError",
    "StateNotFoundError",
    "StillAliveError",
]
