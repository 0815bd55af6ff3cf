"""devserve health-check command.

SUMMARY: Wait until the server answers HTTP requests
"""

from __future__ import annotations

import argparse

from devserve.cli import OutputFormatter, add_standard_flags, load_settings
from devserve.core.exceptions import ReadinessTimeoutError
from devserve.core.server import wait_healthy

SUMMARY = "Wait until the server answers HTTP requests"


def register_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--url", help="URL to poll (default: readiness URL or http://<address>/)")
    parser.add_argument("--interval", type=float, help="Seconds between attempts")
    parser.add_argument("--timeout", type=float, help="Overall timeout in seconds (default: 30)")
    add_standard_flags(parser, process_name=False)


def main(args: argparse.Namespace) -> int:
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))
    settings = load_settings(
        args,
        poll_interval_seconds=getattr(args, "interval", None),
        startup_timeout_seconds=getattr(args, "timeout", None),
    )
    url = getattr(args, "url", None) or settings.readiness_url or settings.address.url()
    timeout = settings.startup_timeout_seconds

    healthy = wait_healthy(
        url,
        settings.poll_interval_seconds,
        timeout,
        attempt_timeout=settings.probe_timeout_seconds,
    )
    if not healthy:
        raise ReadinessTimeoutError(
            f"{url} did not respond within {timeout:g}s",
            context={"url": url, "timeout": timeout, "address": str(settings.address)},
        )
    formatter.success({"url": url, "healthy": True}, f"{url} is responding")
    return 0
