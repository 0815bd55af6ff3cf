"""devserve status command.

SUMMARY: Show the recorded server, the port's listeners and whether it is alive
"""

from __future__ import annotations

import argparse
from typing import Any, Dict, Optional

import psutil

from devserve.cli import OutputFormatter, add_standard_flags, load_settings
from devserve.core.exceptions import StateNotFoundError
from devserve.core.process import PortProbe, is_process_alive, process_name
from devserve.core.server import StateStore

SUMMARY = "Show the recorded server, the port's listeners and whether it is alive"


def _name(pid: int) -> Optional[str]:
    try:
        return process_name(pid)
    except psutil.AccessDenied:
        return None


def register_args(parser: argparse.ArgumentParser) -> None:
    add_standard_flags(parser, process_name=False)


def main(args: argparse.Namespace) -> int:
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))
    settings = load_settings(args)
    store = StateStore(settings.state_file)

    try:
        state = store.load()
    except StateNotFoundError:
        state = None

    address = state.server_address if state else settings.address
    listeners = PortProbe().inspect(address.port)
    pid_alive = bool(state and state.pid and is_process_alive(state.pid))

    data: Dict[str, Any] = {
        "address": str(address),
        "state_file": str(settings.state_file),
        "state": state.to_dict() if state else None,
        "listeners": [{"pid": pid, "name": _name(pid)} for pid in sorted(listeners.pids)],
        "port_bound": listeners.bound,
        "pid_alive": pid_alive,
    }
    if formatter.json_mode:
        formatter.json_output(data)
        return 0

    formatter.text(f"Address:    {address}")
    formatter.text(f"State file: {settings.state_file}" + ("" if state else " (none)"))
    if state:
        formatter.text_kv("process_name", state.process_name)
        formatter.text_kv("pid", f"{state.pid} ({'alive' if pid_alive else 'gone'})")
        formatter.text_kv("started_at", state.started_at)
        formatter.text_kv("log_path", state.log_path)
    if listeners.bound:
        formatter.text(f"Port {address.port} listeners:")
        for item in data["listeners"]:
            formatter.text_kv(str(item["pid"]), item["name"] or "?")
        if listeners.unattributed:
            formatter.text_kv("?", "listener owned by a process that cannot be inspected")
    else:
        formatter.text(f"Port {address.port}: free")
    return 0
