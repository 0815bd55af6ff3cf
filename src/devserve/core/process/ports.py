"""Port-to-process inspection.

``PortProbe`` asks an ordered list of backends which processes hold a
listening TCP socket on a port. The first backend that is usable on this host
answers; callers never branch on which mechanism is present.

Backends, in default order:
- ``psutil``: ``psutil.net_connections`` (no external tools)
- ``lsof``: ``lsof -nP -t -iTCP:<port> -sTCP:LISTEN``
- ``ss``: ``ss -H -ltnp 'sport = :<port>'`` (iproute2)
"""
from __future__ import annotations

import logging
import re
import shutil
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Sequence

import psutil

from devserve.core.exceptions import ProbeUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT_SECONDS = 5.0


class BackendUnavailable(Exception):
    """A probe backend cannot answer on this host."""


@dataclass(frozen=True)
class PortListeners:
    """Listening sockets found on one port.

    ``unattributed`` is set when a listener exists whose owning process the
    backend could not see (typically another user's process).
    """

    port: int
    pids: frozenset[int] = field(default_factory=frozenset)
    unattributed: bool = False
    backend: str = ""

    @property
    def bound(self) -> bool:
        return bool(self.pids) or self.unattributed


class PortProbeBackend(ABC):
    name: str = "backend"

    @abstractmethod
    def listeners(self, port: int) -> PortListeners:
        """Return listeners on ``port`` or raise ``BackendUnavailable``."""


class PsutilBackend(PortProbeBackend):
    name = "psutil"

    def listeners(self, port: int) -> PortListeners:
        try:
            conns = psutil.net_connections(kind="inet")
        except psutil.AccessDenied as exc:
            raise BackendUnavailable(f"psutil.net_connections denied: {exc}") from exc
        except (OSError, NotImplementedError) as exc:
            raise BackendUnavailable(f"psutil.net_connections failed: {exc}") from exc

        pids: set[int] = set()
        unattributed = False
        for conn in conns:
            if conn.status != psutil.CONN_LISTEN or not conn.laddr:
                continue
            if conn.laddr.port != port:
                continue
            if conn.pid is None:
                unattributed = True
            else:
                pids.add(conn.pid)
        return PortListeners(port=port, pids=frozenset(pids), unattributed=unattributed, backend=self.name)


class _CommandBackend(PortProbeBackend):
    executable: str = ""

    def __init__(self, *, timeout_seconds: float = DEFAULT_PROBE_TIMEOUT_SECONDS) -> None:
        self.timeout_seconds = timeout_seconds

    def _argv(self, port: int) -> list[str]:
        raise NotImplementedError

    def _run(self, port: int) -> subprocess.CompletedProcess[str]:
        exe = shutil.which(self.executable)
        if exe is None:
            raise BackendUnavailable(f"{self.executable} not found on PATH")
        argv = [exe, *self._argv(port)]
        try:
            return subprocess.run(  # noqa: S603
                argv,
                capture_output=True,
                text=True,
                timeout=max(0.1, float(self.timeout_seconds)),
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise BackendUnavailable(f"{self.executable} timed out after {exc.timeout}s") from exc
        except OSError as exc:
            raise BackendUnavailable(f"{self.executable} failed to run: {exc}") from exc


class LsofBackend(_CommandBackend):
    name = "lsof"
    executable = "lsof"

    def _argv(self, port: int) -> list[str]:
        return ["-nP", "-t", f"-iTCP:{port}", "-sTCP:LISTEN"]

    def listeners(self, port: int) -> PortListeners:
        result = self._run(port)
        stdout = (result.stdout or "").strip()
        # lsof exits 1 when nothing matches.
        if result.returncode not in (0, 1):
            raise BackendUnavailable(f"lsof exit={result.returncode}: {(result.stderr or '').strip()}")
        pids = {int(tok) for tok in stdout.split() if tok.isdigit()}
        return PortListeners(port=port, pids=frozenset(pids), backend=self.name)


_SS_PID = re.compile(r"pid=(\d+)")


class SsBackend(_CommandBackend):
    name = "ss"
    executable = "ss"

    def _argv(self, port: int) -> list[str]:
        return ["-H", "-ltnp", f"sport = :{port}"]

    def listeners(self, port: int) -> PortListeners:
        result = self._run(port)
        if result.returncode != 0:
            raise BackendUnavailable(f"ss exit={result.returncode}: {(result.stderr or '').strip()}")
        pids: set[int] = set()
        unattributed = False
        for line in (result.stdout or "").splitlines():
            if not line.strip():
                continue
            found = [int(m) for m in _SS_PID.findall(line)]
            if found:
                pids.update(found)
            else:
                unattributed = True
        return PortListeners(port=port, pids=frozenset(pids), unattributed=unattributed, backend=self.name)


def default_backends(*, timeout_seconds: float = DEFAULT_PROBE_TIMEOUT_SECONDS) -> list[PortProbeBackend]:
    return [
        PsutilBackend(),
        LsofBackend(timeout_seconds=timeout_seconds),
        SsBackend(timeout_seconds=timeout_seconds),
    ]


class PortProbe:
    """Resolve which processes listen on a TCP port."""

    def __init__(self, backends: Sequence[PortProbeBackend] | None = None) -> None:
        self.backends: list[PortProbeBackend] = list(backends) if backends is not None else default_backends()

    def inspect(self, port: int) -> PortListeners:
        if not 1 <= int(port) <= 65535:
            raise ValueError(f"port out of range: {port}")

        reasons: list[str] = []
        for backend in self.backends:
            try:
                found = backend.listeners(int(port))
            except BackendUnavailable as exc:
                logger.debug("port probe backend %s unavailable: %s", backend.name, exc)
                reasons.append(f"{backend.name}: {exc}")
                continue
            if found.unattributed:
                logger.warning(
                    "port %s has a listener the %s backend cannot attribute to a process",
                    port,
                    backend.name,
                )
            return found

        raise ProbeUnavailableError(
            "no port inspection mechanism is available (" + "; ".join(reasons or ["no backends configured"]) + ")",
            context={"port": int(port), "backends": [b.name for b in self.backends]},
        )

    def list_listening_pids(self, port: int) -> set[int]:
        return set(self.inspect(port).pids)

    def is_port_bound(self, port: int) -> bool:
        return self.inspect(port).bound


__all__ = [
    "BackendUnavailable",
    "PortListeners",
    "PortProbeBackend",
    "PsutilBackend",
    "LsofBackend",
    "SsBackend",
    "PortProbe",
    "default_backends",
]
