"""Common CLI argument registration utilities."""
from __future__ import annotations

import argparse


def add_json_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output as JSON",
    )


def add_verbose_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Also log to stderr",
    )


def add_server_flags(parser: argparse.ArgumentParser, *, process_name: bool = True) -> None:
    """Add the flags that identify the managed server.

    Args:
        parser: ArgumentParser to add the flags to
        process_name: Whether to add --process-name
    """
    parser.add_argument(
        "--addr",
        "--address",
        dest="address",
        help="Server address host:port (default: DEVSERVE_SITE_ADDR or server.address)",
    )
    if process_name:
        parser.add_argument(
            "--process-name",
            dest="process_name",
            help="Expected process image name (default: DEVSERVE_PROCESS_NAME or server.process_name)",
        )
    parser.add_argument(
        "--config",
        dest="config",
        help="Config file (default: DEVSERVE_CONFIG or .devserve/config.yml)",
    )
    parser.add_argument(
        "--state-file",
        dest="state_file",
        help="Runtime state file (default: .devserve/state/server.json)",
    )


def add_standard_flags(parser: argparse.ArgumentParser, *, process_name: bool = True) -> None:
    """Add server identity flags plus --json and --verbose."""
    add_server_flags(parser, process_name=process_name)
    add_json_flag(parser)
    add_verbose_flag(parser)


__all__ = ["add_json_flag", "add_verbose_flag", "add_server_flags", "add_standard_flags"]
