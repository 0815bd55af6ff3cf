"""Spawn a dev server and wait until it is ready.

The server runs in its own session/process group with its combined
stdout+stderr redirected to a log file, so it keeps running (and logging)
after the invocation that started it exits. Readiness is detected by
following that log file for a marker substring, or alternatively by polling
an HTTP URL.
"""
from __future__ import annotations

import logging
import os
import re
import shlex
import signal
import subprocess
import time
from collections.abc import Callable, Iterator, Mapping, Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from devserve.core.exceptions import (
    ConfigurationError,
    LaunchFailedError,
    PortConflictError,
    ReadinessTimeoutError,
)
from devserve.core.process import PortProbe, process_create_time
from devserve.core.progress import progress_indicator
from devserve.core.utils.io import ensure_parent_dir
from devserve.core.utils.signals import InterruptGuard

from .models import (
    LifecyclePhase,
    LifecycleTracker,
    PersistedRuntimeState,
    ProcessHandle,
    ReadinessSignal,
    ServerAddress,
)
from .readiness import DEFAULT_ATTEMPT_TIMEOUT_SECONDS, wait_healthy
from .state import StateStore

logger = logging.getLogger(__name__)

DEFAULT_ADDRESS_ENV = "DEVSERVE_SITE_ADDR"
_PLACEHOLDER = re.compile(r"\{(host|port|address|url)\}")
MAX_LINE_CHARS = 64 * 1024


def _popen_kwargs() -> dict[str, Any]:
    if os.name == "posix":
        return {"start_new_session": True}
    if os.name == "nt":
        creationflags = getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", None)
        if isinstance(creationflags, int):
            return {"creationflags": creationflags}
    return {}


def _format_map(address: ServerAddress) -> dict[str, str]:
    return {
        "host": address.host,
        "port": str(address.port),
        "address": str(address),
        "url": address.url(),
    }


def build_argv(command: str | Sequence[str], args: Sequence[str], address: ServerAddress) -> list[str]:
    """Split ``command``, append ``args`` and substitute address placeholders."""
    base = shlex.split(command) if isinstance(command, str) else [str(part) for part in command]
    fmt = _format_map(address)
    return [_PLACEHOLDER.sub(lambda m: fmt[m.group(1)], part) for part in [*base, *args]]


def follow_lines(
    path: Path,
    *,
    deadline: float,
    is_alive: Callable[[], bool],
    poll_interval: float = 0.05,
) -> Iterator[str]:
    """Yield lines appended to ``path`` as they are written.

    Stops at ``deadline`` (``time.monotonic()`` based) or once the writer is
    gone and the file has been drained.
    """
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        pending = ""
        while True:
            if time.monotonic() >= deadline:
                return
            chunk = f.readline(MAX_LINE_CHARS)
            if chunk:
                pending += chunk
                # Overlong lines are yielded in pieces.
                if pending.endswith("\n") or len(pending) >= MAX_LINE_CHARS:
                    yield pending
                    pending = ""
                continue
            if not is_alive():
                rest = pending + f.read()
                yield from rest.splitlines(keepends=True)
                return
            time.sleep(poll_interval)


def _tail(path: Path, lines: int = 10) -> list[str]:
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return []
    return text.splitlines()[-lines:]


def terminate_process_group(proc: subprocess.Popen[Any], *, grace_seconds: float) -> None:
    """SIGTERM the child's process group, escalate to SIGKILL, then reap it."""
    if proc.poll() is not None:
        return

    def _send(sig: int) -> None:
        if os.name == "posix":
            try:
                os.killpg(proc.pid, sig)
                return
            except ProcessLookupError:
                return
            except PermissionError as exc:
                logger.warning("killpg(%s, %s) denied: %s", proc.pid, sig, exc)
        try:
            proc.send_signal(sig)
        except ProcessLookupError:
            pass

    _send(signal.SIGTERM)
    try:
        proc.wait(timeout=max(0.1, float(grace_seconds)))
        return
    except subprocess.TimeoutExpired:
        logger.warning("server pid %s ignored SIGTERM for %.1fs, killing", proc.pid, grace_seconds)

    _send(getattr(signal, "SIGKILL", signal.SIGTERM))
    try:
        proc.wait(timeout=5.0)
    except subprocess.TimeoutExpired:
        logger.error("server pid %s did not exit after SIGKILL", proc.pid)


class ProcessLauncher:
    """Start one server bound to ``address`` and persist its identity."""

    def __init__(
        self,
        address: ServerAddress,
        process_name: str,
        *,
        state_store: StateStore,
        log_path: Path,
        probe: PortProbe | None = None,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        address_env: str | None = DEFAULT_ADDRESS_ENV,
        readiness_url: str | None = None,
        poll_interval_seconds: float = 0.05,
        probe_timeout_seconds: float = DEFAULT_ATTEMPT_TIMEOUT_SECONDS,
        terminate_grace_seconds: float = 2.0,
        progress: bool | None = None,
    ) -> None:
        if not str(process_name or "").strip():
            raise ConfigurationError("expected process name is missing or empty")
        self.address = address
        self.process_name = process_name.strip()
        self.state_store = state_store
        self.log_path = Path(log_path)
        self.probe = probe or PortProbe()
        self.cwd = cwd
        self.env = dict(env or {})
        self.address_env = address_env
        self.readiness_url = readiness_url
        self.poll_interval_seconds = poll_interval_seconds
        self.probe_timeout_seconds = probe_timeout_seconds
        self.terminate_grace_seconds = terminate_grace_seconds
        self.progress = progress
        self.tracker = LifecycleTracker()

    def _context(self, **extra: Any) -> dict[str, Any]:
        ctx: dict[str, Any] = {
            "address": str(self.address),
            "port": self.address.port,
            "phase": self.tracker.phase.value,
        }
        ctx.update(extra)
        return ctx

    def _child_env(self) -> dict[str, str]:
        env = dict(os.environ)
        env.update({str(k): str(v) for k, v in self.env.items()})
        if self.address_env:
            env[self.address_env] = str(self.address)
        return env

    def _spawn(self, argv: list[str]) -> subprocess.Popen[bytes]:
        ensure_parent_dir(self.log_path)
        with open(self.log_path, "wb") as log_fh:
            try:
                return subprocess.Popen(  # noqa: S603
                    argv,
                    cwd=str(self.cwd) if self.cwd else None,
                    env=self._child_env(),
                    stdin=subprocess.DEVNULL,
                    stdout=log_fh,
                    stderr=subprocess.STDOUT,
                    **_popen_kwargs(),
                )
            except OSError as exc:
                raise LaunchFailedError(
                    f"could not spawn {argv[0]!r}: {exc}",
                    context=self._context(command=argv),
                ) from exc

    def _await_readiness(
        self,
        proc: subprocess.Popen[bytes],
        readiness_pattern: str | None,
        deadline: float,
    ) -> ReadinessSignal | None:
        def alive() -> bool:
            return proc.poll() is None

        if self.readiness_url:
            remaining = max(0.0, deadline - time.monotonic())
            ok = wait_healthy(
                self.readiness_url,
                self.poll_interval_seconds,
                remaining,
                attempt_timeout=self.probe_timeout_seconds,
                should_abort=lambda: not alive(),
            )
            return ReadinessSignal(kind="http", detail=self.readiness_url) if ok else None

        if not readiness_pattern:
            raise ConfigurationError(
                "a readiness pattern or readiness URL is required", context=self._context()
            )
        for line in follow_lines(
            self.log_path,
            deadline=deadline,
            is_alive=alive,
            poll_interval=self.poll_interval_seconds,
        ):
            if readiness_pattern in line:
                return ReadinessSignal(kind="log_line", detail=line.rstrip("\r\n"))
        return None

    def start(
        self,
        command: str | Sequence[str],
        args: Sequence[str] = (),
        readiness_pattern: str | None = None,
        timeout: float = 30.0,
    ) -> ProcessHandle:
        """Spawn the server and block until it is ready or ``timeout`` expires.

        Raises:
            ConfigurationError: empty command or no readiness criterion.
            PortConflictError: the port already has a listener (nothing spawned).
            ProbeUnavailableError: the port table cannot be inspected.
            LaunchFailedError: spawning failed or the server exited early.
            ReadinessTimeoutError: not ready in time; the server was terminated.
        """
        argv = build_argv(command, args, self.address)
        if not argv:
            raise ConfigurationError("server command is empty", context=self._context())
        if not readiness_pattern and not self.readiness_url:
            raise ConfigurationError(
                "a readiness pattern or readiness URL is required", context=self._context()
            )
        if float(timeout) <= 0:
            raise ConfigurationError(f"startup timeout must be positive, got {timeout}")

        try:
            return self._start(argv, readiness_pattern, float(timeout))
        except BaseException:
            self.tracker.fail()
            raise

    def _start(self, argv: list[str], readiness_pattern: str | None, timeout: float) -> ProcessHandle:
        self.tracker.advance(LifecyclePhase.PORT_CHECK)
        listeners = self.probe.inspect(self.address.port)
        if listeners.bound:
            raise PortConflictError(
                f"port {self.address.port} is already in use"
                + (f" by pid(s) {', '.join(map(str, sorted(listeners.pids)))}" if listeners.pids else ""),
                context=self._context(pids=sorted(listeners.pids), backend=listeners.backend),
            )

        self.tracker.advance(LifecyclePhase.LAUNCHING)
        logger.info("launching %s for %s (log: %s)", shlex.join(argv), self.address, self.log_path)
        with InterruptGuard() as guard:
            proc = self._spawn(argv)
            guard.add_cleanup(
                lambda: terminate_process_group(proc, grace_seconds=self.terminate_grace_seconds)
            )
            started_at = process_create_time(proc.pid) or time.time()
            deadline = time.monotonic() + timeout

            self.tracker.advance(LifecyclePhase.AWAITING_READINESS)
            with progress_indicator(
                f"Starting server on {self.address}, please wait...",
                enabled=self.progress,
            ):
                readiness = self._await_readiness(proc, readiness_pattern, deadline)

            if readiness is None:
                code = proc.poll()
                if code is not None:
                    raise LaunchFailedError(
                        f"server exited with code {code} before becoming ready",
                        context=self._context(pid=proc.pid, exit_code=code, log_tail=_tail(self.log_path)),
                    )
                logger.warning("server pid %s not ready after %.1fs, terminating it", proc.pid, timeout)
                raise ReadinessTimeoutError(
                    f"server on {self.address} did not become ready within {timeout:g}s",
                    context=self._context(pid=proc.pid, timeout=timeout, log_tail=_tail(self.log_path)),
                )

            self.state_store.save(
                PersistedRuntimeState(
                    address=str(self.address),
                    process_name=self.process_name,
                    pid=proc.pid,
                    started_at=datetime.fromtimestamp(started_at, tz=timezone.utc).isoformat(),
                    log_path=str(self.log_path),
                )
            )

        self.tracker.advance(LifecyclePhase.RUNNING)
        logger.info("server pid %s ready on %s (%s)", proc.pid, self.address, readiness.detail)
        return ProcessHandle(
            pid=proc.pid,
            started_at=started_at,
            address=self.address,
            log_path=self.log_path,
            readiness=readiness,
        )


__all__ = [
    "ProcessLauncher",
    "build_argv",
    "follow_lines",
    "terminate_process_group",
    "DEFAULT_ADDRESS_ENV",
]
