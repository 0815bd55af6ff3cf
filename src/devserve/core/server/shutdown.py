"""Stop the managed server from an independent invocation.

Identity is re-derived at stop time: the pids listening on the recorded port
are filtered by their process image name, so an unrelated process that
happens to hold the port is never signalled. ``force_stop`` is the emergency
path used when no identity is available.
"""
from __future__ import annotations

import logging
import time

import psutil

from devserve.core.process import PortProbe, is_process_alive, normalize_process_name, process_name

from .models import (
    ForceStopReport,
    LifecyclePhase,
    LifecycleTracker,
    StopOutcome,
    StopReport,
    TargetOutcome,
)
from .state import StateStore

logger = logging.getLogger(__name__)

DEFAULT_GRACE_SECONDS = 1.0
DEFAULT_KILL_WAIT_SECONDS = 1.0


def _resolve_targets(pids: set[int], expected: str) -> tuple[dict[int, psutil.Process], list[int]]:
    targets: dict[int, psutil.Process] = {}
    skipped: list[int] = []
    for pid in sorted(pids):
        try:
            name = process_name(pid)
        except psutil.AccessDenied:
            logger.warning("cannot read the name of pid %s on the port; not touching it", pid)
            skipped.append(pid)
            continue
        if name is None:
            continue
        if name != expected:
            logger.info("pid %s (%s) holds the port but is not %s; not touching it", pid, name, expected)
            skipped.append(pid)
            continue
        try:
            targets[pid] = psutil.Process(pid)
        except psutil.NoSuchProcess:
            continue
    return targets, skipped


class ShutdownController:
    """Gracefully stop the server recorded in ``state_store``."""

    def __init__(
        self,
        state_store: StateStore,
        *,
        probe: PortProbe | None = None,
        kill_wait_seconds: float = DEFAULT_KILL_WAIT_SECONDS,
    ) -> None:
        self.state_store = state_store
        self.probe = probe or PortProbe()
        self.kill_wait_seconds = kill_wait_seconds
        self.tracker = LifecycleTracker()

    def stop(self, grace_window: float = DEFAULT_GRACE_SECONDS) -> StopReport:
        """SIGTERM the matching listeners, SIGKILL whatever outlives ``grace_window``.

        Raises:
            StateUnavailableError: no usable runtime state (callers may force-stop).
            ProbeUnavailableError: the port table cannot be inspected.
        """
        try:
            return self._stop(max(0.0, float(grace_window)))
        except BaseException:
            self.tracker.fail()
            raise

    def _stop(self, grace_window: float) -> StopReport:
        self.tracker.advance(LifecyclePhase.STOPPING)
        state = self.state_store.load()
        address = state.server_address
        expected = normalize_process_name(state.process_name)
        began = time.monotonic()

        targets, skipped = _resolve_targets(self.probe.list_listening_pids(address.port), expected)
        if not targets:
            self.tracker.advance(LifecyclePhase.STOPPED)
            logger.info("no %s process listening on %s", expected, address)
            return StopReport(
                outcome=StopOutcome.NOT_FOUND,
                address=str(address),
                skipped=tuple(skipped),
                elapsed_seconds=time.monotonic() - began,
            )

        for pid, proc in targets.items():
            logger.info("sending SIGTERM to pid %s (%s)", pid, expected)
            try:
                proc.terminate()
            except psutil.NoSuchProcess:
                pass
            except psutil.AccessDenied as exc:
                logger.warning("not allowed to send SIGTERM to pid %s: %s", pid, exc)
        _, survivors = psutil.wait_procs(list(targets.values()), timeout=grace_window)
        survivors = [p for p in survivors if is_process_alive(p.pid)]

        forced: set[int] = set()
        if survivors:
            self.tracker.advance(LifecyclePhase.FORCE_STOPPING)
            for proc in survivors:
                logger.warning("pid %s still alive after %.1fs, sending SIGKILL", proc.pid, grace_window)
                try:
                    proc.kill()
                    forced.add(proc.pid)
                except psutil.NoSuchProcess:
                    pass
                except psutil.AccessDenied as exc:
                    logger.error("not allowed to send SIGKILL to pid %s: %s", proc.pid, exc)
            psutil.wait_procs(survivors, timeout=self.kill_wait_seconds)

        outcomes = []
        for pid in targets:
            alive = is_process_alive(pid)
            outcomes.append(
                TargetOutcome(
                    pid=pid,
                    name=expected,
                    graceful=pid not in forced and not alive,
                    forced=pid in forced,
                    alive=alive,
                )
            )

        still_alive = [o.pid for o in outcomes if o.alive]
        if still_alive:
            self.tracker.fail()
            logger.error("pid(s) %s survived SIGKILL; keeping runtime state", still_alive)
            outcome = StopOutcome.STILL_ALIVE
        else:
            self.tracker.advance(LifecyclePhase.STOPPED)
            self.state_store.clear()
            outcome = StopOutcome.STOPPED

        return StopReport(
            outcome=outcome,
            address=str(address),
            targets=tuple(outcomes),
            skipped=tuple(skipped),
            elapsed_seconds=time.monotonic() - began,
        )


def force_stop(port: int, *, probe: PortProbe | None = None) -> ForceStopReport:
    """SIGKILL every process listening on ``port``, without any identity check."""
    probe = probe or PortProbe()
    killed: list[int] = []
    failed: list[int] = []
    for pid in sorted(probe.list_listening_pids(port)):
        try:
            psutil.Process(pid).kill()
        except psutil.NoSuchProcess:
            continue
        except psutil.AccessDenied as exc:
            logger.warning("not allowed to kill pid %s on port %s: %s", pid, port, exc)
            failed.append(pid)
            continue
        logger.info("killed pid %s listening on port %s", pid, port)
        killed.append(pid)
    return ForceStopReport(port=int(port), pids=tuple(killed), failed=tuple(failed))


__all__ = ["ShutdownController", "force_stop", "DEFAULT_GRACE_SECONDS", "DEFAULT_KILL_WAIT_SECONDS"]
