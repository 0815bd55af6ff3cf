"""Interrupt handling for long waits.

``InterruptGuard`` turns termination signals delivered to this process into
``KeyboardInterrupt`` for the duration of a ``with`` block, and runs the
cleanup callbacks registered on it when the block is left by an exception
(interrupt, timeout, error). The previous signal handlers are restored on
exit.
"""
from __future__ import annotations

import logging
import signal
import threading
from types import FrameType
from typing import Any, Callable, Iterable

logger = logging.getLogger(__name__)

DEFAULT_SIGNALS: tuple[str, ...] = ("SIGINT", "SIGTERM", "SIGHUP")


class InterruptGuard:
    def __init__(self, signals: Iterable[str] = DEFAULT_SIGNALS) -> None:
        self._signal_names = tuple(signals)
        self._previous: dict[signal.Signals, Any] = {}
        self._cleanups: list[Callable[[], None]] = []
        self.received: signal.Signals | None = None

    def add_cleanup(self, fn: Callable[[], None]) -> None:
        """Register ``fn`` to run (LIFO) if the guarded block does not complete."""
        self._cleanups.append(fn)

    def _handle(self, signum: int, frame: FrameType | None) -> None:
        self.received = signal.Signals(signum)
        raise KeyboardInterrupt(f"received {self.received.name}")

    def _record(self, signum: int, frame: FrameType | None) -> None:
        logger.warning("ignoring %s while cleaning up", signal.Signals(signum).name)

    def _mask(self) -> None:
        for sig in self._previous:
            signal.signal(sig, self._record)

    def _install(self) -> None:
        # Signal handlers can only be installed from the main thread.
        if threading.current_thread() is not threading.main_thread():
            return
        for name in self._signal_names:
            sig = getattr(signal, name, None)
            if sig is None:
                continue
            self._previous[sig] = signal.signal(sig, self._handle)

    def _restore(self) -> None:
        for sig, handler in self._previous.items():
            signal.signal(sig, handler)
        self._previous.clear()

    def _run_cleanups(self) -> None:
        while self._cleanups:
            fn = self._cleanups.pop()
            try:
                fn()
            except Exception:
                logger.exception("cleanup handler %r failed", fn)

    def __enter__(self) -> InterruptGuard:
        self._install()
        return self

    def __exit__(self, exc_type: type[BaseException] | None, exc: BaseException | None, tb: object) -> None:
        try:
            if exc_type is not None:
                self._mask()
                self._run_cleanups()
            else:
                self._cleanups.clear()
        finally:
            self._restore()


__all__ = ["InterruptGuard", "DEFAULT_SIGNALS"]
