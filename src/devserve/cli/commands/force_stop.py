"""devserve force-stop command.

SUMMARY: Kill every process listening on the configured port (no identity check)
"""

from __future__ import annotations

import argparse

from devserve.cli import OutputFormatter, add_standard_flags, load_settings
from devserve.core.exceptions import StillAliveError
from devserve.core.process import PortProbe
from devserve.core.server import StateStore, force_stop

SUMMARY = "Kill every process listening on the configured port (no identity check)"


def register_args(parser: argparse.ArgumentParser) -> None:
    add_standard_flags(parser, process_name=False)


def main(args: argparse.Namespace) -> int:
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))
    settings = load_settings(args)
    port = settings.address.port

    report = force_stop(port, probe=PortProbe())
    if report.failed:
        raise StillAliveError(
            f"could not kill pid(s) {', '.join(map(str, report.failed))} on port {port}",
            context=report.to_dict(),
        )
    StateStore(settings.state_file).clear()

    if report.count:
        formatter.success(
            report.to_dict(),
            f"Killed {report.count} process(es) on port {port}: {', '.join(map(str, report.pids))}",
        )
    else:
        formatter.success(report.to_dict(), f"Nothing listening on port {port}", status="not_found")
    return 0
