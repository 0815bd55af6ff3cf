"""Persisted runtime state shared between start and stop invocations.

The state file is the only channel between the invocation that started the
server and the one that stops it. It is written once (atomically, fsync'd)
when a start succeeds and removed after a successful stop.
"""
from __future__ import annotations

import logging
from pathlib import Path

from devserve.core.exceptions import ConfigurationError, StateNotFoundError, StateUnavailableError
from devserve.core.schemas import validate_payload_safe
from devserve.core.utils.io import read_json, remove_if_present, write_json_atomic

from .models import PersistedRuntimeState, ServerAddress

logger = logging.getLogger(__name__)

STATE_SCHEMA = "server-state"


class StateStore:
    """Save/load/clear the runtime state record at an injected path."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def save(self, state: PersistedRuntimeState) -> None:
        payload = state.to_dict()
        errors = validate_payload_safe(payload, STATE_SCHEMA)
        if errors:
            raise ValueError(f"refusing to persist invalid runtime state: {'; '.join(errors)}")
        write_json_atomic(self.path, payload)
        logger.info("saved runtime state for %s to %s", state.address, self.path)

    def load(self) -> PersistedRuntimeState:
        try:
            raw = read_json(self.path)
        except FileNotFoundError:
            raise StateNotFoundError(
                f"no runtime state at {self.path}",
                context={"path": str(self.path)},
            ) from None
        except (OSError, ValueError) as exc:
            raise StateUnavailableError(
                f"runtime state at {self.path} is unreadable: {exc}",
                context={"path": str(self.path)},
            ) from exc

        errors = validate_payload_safe(raw, STATE_SCHEMA)
        if errors:
            raise StateUnavailableError(
                f"runtime state at {self.path} is invalid: {'; '.join(errors)}",
                context={"path": str(self.path), "errors": errors},
            )
        state = PersistedRuntimeState.from_dict(raw)
        try:
            ServerAddress.parse(state.address)
        except ConfigurationError as exc:
            raise StateUnavailableError(
                f"runtime state at {self.path} has an unusable address: {exc}",
                context={"path": str(self.path), "address": state.address},
            ) from exc
        return state

    def clear(self) -> bool:
        removed = remove_if_present(self.path)
        if removed:
            logger.info("cleared runtime state %s", self.path)
        return removed


__all__ = ["StateStore", "STATE_SCHEMA"]
