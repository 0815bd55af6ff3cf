"""devserve start command.

SUMMARY: Start the dev server and wait until it is ready
"""

from __future__ import annotations

import argparse

from devserve.cli import OutputFormatter, add_standard_flags, resolve_settings, setup_logging
from devserve.core.process import PortProbe
from devserve.core.server import ProcessLauncher, StateStore

SUMMARY = "Start the dev server and wait until it is ready"


def register_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "server_command",
        nargs=argparse.REMAINDER,
        help="Server command (use `--` before it); defaults to server.command from the config file",
    )
    parser.add_argument(
        "--pattern",
        dest="readiness_pattern",
        help="Substring of the server output that signals readiness (e.g. 'listening on')",
    )
    parser.add_argument(
        "--readiness-url",
        dest="readiness_url",
        help="Poll this URL for readiness instead of scanning the output",
    )
    parser.add_argument("--timeout", type=float, help="Startup timeout in seconds (default: 30)")
    parser.add_argument("--interval", type=float, help="Readiness poll interval in seconds")
    parser.add_argument("--log-file", dest="log_file", help="Server output log (default: .devserve/logs/server.log)")
    parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Do not show the progress indicator",
    )
    add_standard_flags(parser)


def main(args: argparse.Namespace) -> int:
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))

    argv = list(getattr(args, "server_command", None) or [])
    if argv and argv[0] == "--":
        argv = argv[1:]

    settings = resolve_settings(
        args,
        command=argv or None,
        readiness_pattern=getattr(args, "readiness_pattern", None),
        readiness_url=getattr(args, "readiness_url", None),
        startup_timeout_seconds=getattr(args, "timeout", None),
        poll_interval_seconds=getattr(args, "interval", None),
        log_file=getattr(args, "log_file", None),
        progress=False if getattr(args, "no_progress", False) else None,
    )
    process_name = settings.require_process_name()
    command = settings.require_command()
    settings.require_readiness()
    setup_logging(args, settings)

    launcher = ProcessLauncher(
        settings.address,
        process_name,
        state_store=StateStore(settings.state_file),
        log_path=settings.log_file,
        probe=PortProbe(),
        cwd=settings.cwd,
        env=settings.env,
        address_env=settings.address_env,
        readiness_url=settings.readiness_url,
        poll_interval_seconds=settings.poll_interval_seconds,
        probe_timeout_seconds=settings.probe_timeout_seconds,
        terminate_grace_seconds=settings.grace_seconds,
        progress=settings.progress,
    )
    handle = launcher.start(
        command,
        readiness_pattern=settings.readiness_pattern,
        timeout=settings.startup_timeout_seconds,
    )

    readiness = handle.readiness
    formatter.success(
        {
            "pid": handle.pid,
            "address": str(handle.address),
            "log_path": str(handle.log_path),
            "state_file": str(settings.state_file),
            "readiness": {"kind": readiness.kind, "detail": readiness.detail} if readiness else None,
        },
        f"Server ready on {handle.address} (pid {handle.pid}, log: {handle.log_path})",
        status="running",
    )
    return 0
