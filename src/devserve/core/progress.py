"""Background progress indicator.

Purpose: show that a long wait (server build + startup) is still alive.

Design goals:
- stderr-only (never pollute stdout/JSON)
- purely decorative: never affects the outcome of the operation it decorates
- cancellable: bound to a ``threading.Event`` and stopped on every exit path
  of the ``progress_indicator`` context manager
"""

from __future__ import annotations

import os
import sys
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, TextIO

SPINNER_FRAMES = "⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏"


@dataclass(frozen=True)
class ProgressConfig:
    enabled: bool = True
    interval_seconds: float = 0.1
    frames: str = SPINNER_FRAMES


def _parse_bool(value: Any) -> bool | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        s = value.strip().lower()
        if s in {"1", "true", "yes", "on"}:
            return True
        if s in {"0", "false", "no", "off"}:
            return False
    return None


def load_progress_config(*, enabled: bool | None = None) -> ProgressConfig:
    """Resolve progress settings (explicit value first, then DEVSERVE_PROGRESS)."""
    env_enabled = _parse_bool(os.environ.get("DEVSERVE_PROGRESS"))
    if enabled is None:
        enabled = True if env_enabled is None else env_enabled
    return ProgressConfig(enabled=enabled)


class ProgressIndicator:
    """Spinner drawn by a daemon thread until cancelled.

    On a non-interactive stream the message is printed once instead of being
    animated.
    """

    def __init__(
        self,
        message: str,
        *,
        stream: TextIO | None = None,
        config: ProgressConfig | None = None,
    ) -> None:
        self.message = message
        self.stream = stream if stream is not None else sys.stderr
        self.config = config or ProgressConfig()
        self._cancel = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def _interactive(self) -> bool:
        isatty = getattr(self.stream, "isatty", None)
        try:
            return bool(isatty and isatty())
        except ValueError:
            # Closed stream.
            return False

    def _spin(self) -> None:
        frames = self.config.frames or SPINNER_FRAMES
        interval = max(0.01, float(self.config.interval_seconds))
        i = 0
        while not self._cancel.is_set():
            self.stream.write(f"\r{frames[i % len(frames)]} {self.message}")
            self.stream.flush()
            i += 1
            self._cancel.wait(timeout=interval)

    def start(self) -> ProgressIndicator:
        if not self.config.enabled or self._thread is not None:
            return self
        if not self._interactive():
            print(f"{self.message}", file=self.stream, flush=True)
            return self
        self._thread = threading.Thread(target=self._spin, name="devserve-progress", daemon=True)
        self._thread.start()
        return self

    def cancel(self) -> None:
        """Stop the spinner and clear its line. Safe to call more than once."""
        self._cancel.set()
        thread = self._thread
        if thread is None:
            return
        thread.join(timeout=1.0)
        self._thread = None
        try:
            self.stream.write("\r" + " " * (len(self.message) + 2) + "\r")
            self.stream.flush()
        except ValueError:
            pass

    def __enter__(self) -> ProgressIndicator:
        return self.start()

    def __exit__(self, *exc: object) -> None:
        self.cancel()


@contextmanager
def progress_indicator(
    message: str,
    *,
    enabled: bool | None = None,
    stream: TextIO | None = None,
) -> Iterator[ProgressIndicator]:
    """Run a spinner for the duration of the ``with`` block."""
    indicator = ProgressIndicator(message, stream=stream, config=load_progress_config(enabled=enabled))
    indicator.start()
    try:
        yield indicator
    finally:
        indicator.cancel()


__all__ = ["ProgressConfig", "ProgressIndicator", "load_progress_config", "progress_indicator", "SPINNER_FRAMES"]
