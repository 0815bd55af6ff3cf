from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Literal

from devserve.core.exceptions import ConfigurationError

_WILDCARD_HOSTS = {"0.0.0.0": "127.0.0.1", "::": "::1", "": "127.0.0.1"}


@dataclass(frozen=True)
class ServerAddress:
    """Host and TCP port the managed server binds to."""

    host: str
    port: int

    def __post_init__(self) -> None:
        if not isinstance(self.port, int) or isinstance(self.port, bool) or not 1 <= self.port <= 65535:
            raise ConfigurationError(
                f"port must be an integer in [1, 65535], got {self.port!r}",
                context={"port": self.port},
            )

    @classmethod
    def parse(cls, raw: str | None) -> ServerAddress:
        """Parse ``host:port`` (IPv6 hosts in brackets, e.g. ``[::1]:3000``)."""
        text = str(raw or "").strip()
        if not text:
            raise ConfigurationError("server address is missing or empty")

        host, sep, port_raw = text.rpartition(":")
        if not sep or not host:
            raise ConfigurationError(
                f"server address must look like host:port, got {text!r}",
                context={"address": text},
            )
        if host.startswith("[") and host.endswith("]"):
            host = host[1:-1]
        elif ":" in host:
            raise ConfigurationError(
                f"IPv6 hosts must be bracketed (e.g. [::1]:3000), got {text!r}",
                context={"address": text},
            )
        try:
            port = int(port_raw)
        except ValueError:
            raise ConfigurationError(
                f"server port is not an integer: {port_raw!r}",
                context={"address": text},
            ) from None
        return cls(host=host, port=port)

    @property
    def connect_host(self) -> str:
        """Host to dial when probing (wildcard binds map to loopback)."""
        return _WILDCARD_HOSTS.get(self.host, self.host)

    def url(self, path: str = "/") -> str:
        host = self.connect_host
        if ":" in host:
            host = f"[{host}]"
        return f"http://{host}:{self.port}{path if path.startswith('/') else '/' + path}"

    def __str__(self) -> str:
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"


class LifecyclePhase(str, Enum):
    IDLE = "idle"
    PORT_CHECK = "port_check"
    LAUNCHING = "launching"
    AWAITING_READINESS = "awaiting_readiness"
    RUNNING = "running"
    STOPPING = "stopping"
    FORCE_STOPPING = "force_stopping"
    STOPPED = "stopped"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (LifecyclePhase.STOPPED, LifecyclePhase.FAILED)


_TRANSITIONS: dict[LifecyclePhase, frozenset[LifecyclePhase]] = {
    LifecyclePhase.IDLE: frozenset(
        {LifecyclePhase.PORT_CHECK, LifecyclePhase.STOPPING, LifecyclePhase.FORCE_STOPPING}
    ),
    LifecyclePhase.PORT_CHECK: frozenset({LifecyclePhase.LAUNCHING}),
    LifecyclePhase.LAUNCHING: frozenset({LifecyclePhase.AWAITING_READINESS}),
    LifecyclePhase.AWAITING_READINESS: frozenset({LifecyclePhase.RUNNING}),
    LifecyclePhase.RUNNING: frozenset({LifecyclePhase.STOPPING}),
    LifecyclePhase.STOPPING: frozenset({LifecyclePhase.FORCE_STOPPING, LifecyclePhase.STOPPED}),
    LifecyclePhase.FORCE_STOPPING: frozenset({LifecyclePhase.STOPPED}),
    LifecyclePhase.STOPPED: frozenset(),
    LifecyclePhase.FAILED: frozenset(),
}


class LifecycleTracker:
    """Tracks the lifecycle phase of one controller operation.

    Any non-terminal phase may move to FAILED; other moves must follow the
    documented lifecycle.
    """

    def __init__(self, phase: LifecyclePhase = LifecyclePhase.IDLE) -> None:
        self._phase = phase
        self.history: list[LifecyclePhase] = [phase]

    @property
    def phase(self) -> LifecyclePhase:
        return self._phase

    def advance(self, target: LifecyclePhase) -> LifecyclePhase:
        current = self._phase
        failing = target is LifecyclePhase.FAILED and not current.is_terminal
        if not failing and target not in _TRANSITIONS[current]:
            raise RuntimeError(f"illegal lifecycle transition: {current.value} -> {target.value}")
        self._phase = target
        self.history.append(target)
        return target

    def fail(self) -> None:
        if not self._phase.is_terminal:
            self.advance(LifecyclePhase.FAILED)


ReadinessKind = Literal["log_line", "http"]


@dataclass(frozen=True)
class ReadinessSignal:
    kind: ReadinessKind
    detail: str
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class ProcessHandle:
    """A server process spawned by this invocation.

    Only meaningful inside the invocation that created it; later invocations
    re-derive identity from the port table and the persisted process name.
    """

    pid: int
    started_at: float
    address: ServerAddress
    log_path: Path | None = None
    readiness: ReadinessSignal | None = None


@dataclass(frozen=True)
class PersistedRuntimeState:
    """Durable record written when a start succeeds."""

    address: str
    process_name: str
    pid: int | None = None
    started_at: str | None = None
    log_path: str | None = None

    @property
    def server_address(self) -> ServerAddress:
        return ServerAddress.parse(self.address)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> PersistedRuntimeState:
        return cls(
            address=str(raw["address"]),
            process_name=str(raw["process_name"]),
            pid=raw.get("pid"),
            started_at=raw.get("started_at"),
            log_path=raw.get("log_path"),
        )


class StopOutcome(str, Enum):
    STOPPED = "stopped"
    NOT_FOUND = "not_found"
    STILL_ALIVE = "still_alive"


@dataclass(frozen=True)
class TargetOutcome:
    pid: int
    name: str
    graceful: bool
    forced: bool
    alive: bool


@dataclass(frozen=True)
class StopReport:
    outcome: StopOutcome
    address: str
    targets: tuple[TargetOutcome, ...] = ()
    skipped: tuple[int, ...] = ()
    elapsed_seconds: float = 0.0

    @property
    def still_alive(self) -> list[int]:
        return [t.pid for t in self.targets if t.alive]

    def to_dict(self) -> dict[str, Any]:
        return {
            "outcome": self.outcome.value,
            "address": self.address,
            "targets": [asdict(t) for t in self.targets],
            "skipped": list(self.skipped),
            "elapsed_seconds": round(self.elapsed_seconds, 3),
        }


@dataclass(frozen=True)
class ForceStopReport:
    port: int
    pids: tuple[int, ...] = ()
    failed: tuple[int, ...] = ()

    @property
    def count(self) -> int:
        return len(self.pids)

    def to_dict(self) -> dict[str, Any]:
        return {"port": self.port, "count": self.count, "pids": list(self.pids), "failed": list(self.failed)}


__all__ = [
    "ServerAddress",
    "LifecyclePhase",
    "LifecycleTracker",
    "ProcessHandle",
    "ReadinessKind",
    "ReadinessSignal",
    "PersistedRuntimeState",
    "StopOutcome",
    "TargetOutcome",
    "StopReport",
    "ForceStopReport",
]
