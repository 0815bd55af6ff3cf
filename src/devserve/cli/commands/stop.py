"""devserve stop command.

SUMMARY: Gracefully stop the server recorded by `devserve start`

Falls back to `force-stop` on the configured port when the runtime state is
missing or unreadable (disable with --no-fallback).
"""

from __future__ import annotations

import argparse
import logging
import sys

from devserve.cli import OutputFormatter, add_standard_flags, load_settings
from devserve.core.exceptions import StateUnavailableError, StillAliveError
from devserve.core.process import PortProbe
from devserve.core.server import ShutdownController, StateStore, StopOutcome, force_stop

SUMMARY = "Gracefully stop the server recorded by `devserve start`"

logger = logging.getLogger(__name__)


def register_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--grace", type=float, help="Seconds to wait after SIGTERM before SIGKILL (default: 1)")
    parser.add_argument(
        "--no-fallback",
        action="store_true",
        help="Fail instead of force-stopping the port when no runtime state is available",
    )
    add_standard_flags(parser, process_name=False)


def _fallback(formatter: OutputFormatter, store: StateStore, port: int, reason: str) -> int:
    logger.warning("falling back to force-stop on port %s: %s", port, reason)
    if not formatter.json_mode:
        print(f"Warning: {reason}; force-stopping port {port}", file=sys.stderr)
    report = force_stop(port, probe=PortProbe())
    if report.failed:
        raise StillAliveError(
            f"could not kill pid(s) {', '.join(map(str, report.failed))} on port {port}",
            context=report.to_dict(),
        )
    store.clear()
    data = {"outcome": "stopped" if report.count else "not_found", "fallback": True, **report.to_dict()}
    if report.count:
        formatter.success(data, f"Force-stopped {report.count} process(es) on port {port}", status="stopped")
    else:
        formatter.success(data, f"No server running on port {port}", status="not_found")
    return 0


def main(args: argparse.Namespace) -> int:
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))
    settings = load_settings(args)
    store = StateStore(settings.state_file)
    controller = ShutdownController(store, probe=PortProbe(), kill_wait_seconds=settings.kill_wait_seconds)
    grace = args.grace if getattr(args, "grace", None) is not None else settings.grace_seconds

    try:
        report = controller.stop(grace)
    except StateUnavailableError as e:
        if getattr(args, "no_fallback", False):
            raise
        return _fallback(formatter, store, settings.address.port, str(e))

    if report.outcome is StopOutcome.STILL_ALIVE:
        raise StillAliveError(
            f"pid(s) {', '.join(map(str, report.still_alive))} on {report.address} survived SIGKILL",
            context=report.to_dict(),
        )
    if report.outcome is StopOutcome.NOT_FOUND:
        formatter.success(report.to_dict(), f"No server running on {report.address}", status="not_found")
        return 0

    pids = ", ".join(str(t.pid) for t in report.targets)
    formatter.success(report.to_dict(), f"Stopped server on {report.address} (pid {pids})", status="stopped")
    return 0
