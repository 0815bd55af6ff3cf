"""
End-to-end tests for the devserve CLI, run in-process through the dispatcher.
"""
from __future__ import annotations

import json
import sys

import pytest

from devserve.cli._dispatcher import build_parser, main
from devserve.core.process import is_process_alive
from helpers.servers import STUB_SERVER, DelayedHttpServer


@pytest.fixture
def project(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return tmp_path


def _json_out(capsys) -> dict:
    return json.loads(capsys.readouterr().out)


def _start_argv(port: int, name: str, *extra: str) -> list[str]:
    return [
        "start",
        "--addr",
        f"127.0.0.1:{port}",
        "--process-name",
        name,
        "--pattern",
        "listening on",
        "--timeout",
        "15",
        *extra,
        "--",
        sys.executable,
        str(STUB_SERVER),
        "--port",
        "{port}",
    ]


def test_root_commands_are_discovered():
    parser = build_parser()
    choices = parser._subparsers._group_actions[0].choices
    for name in ("start", "stop", "force-stop", "health-check", "status"):
        assert name in choices


def test_version_flag(capsys):
    with pytest.raises(SystemExit) as exc_info:
        main(["--version"])
    assert exc_info.value.code == 0
    assert "devserve" in capsys.readouterr().out


def test_no_command_prints_help(capsys):
    assert main([]) == 0
    assert "start" in capsys.readouterr().out


class TestConfigurationErrors:
    def test_start_without_process_name(self, project, port, capsys):
        code = main(["start", "--addr", f"127.0.0.1:{port}", "--pattern", "x", "--", "srv"])
        assert code == 2
        assert "process name" in capsys.readouterr().err
        assert not (project / ".devserve").exists()

    def test_start_without_readiness_criterion(self, project, port, capsys):
        code = main(["start", "--addr", f"127.0.0.1:{port}", "--process-name", "srv", "--", "srv"])
        assert code == 2
        assert "readiness" in capsys.readouterr().err
        assert not (project / ".devserve").exists()

    def test_missing_address(self, project, capsys):
        assert main(["force-stop"]) == 2
        assert "address" in capsys.readouterr().err

    def test_json_error_payload(self, project, capsys):
        assert main(["status", "--json"]) == 2
        payload = json.loads(capsys.readouterr().err)
        assert payload["code"] == "ConfigurationError"


class TestLifecycle:
    def test_start_status_stop_stop(self, project, port, interpreter_name, spawned, capsys):
        assert main(_start_argv(port, interpreter_name, "--json")) == 0
        started = _json_out(capsys)
        spawned.append(started["pid"])
        assert started["status"] == "running"
        assert started["readiness"]["kind"] == "log_line"
        assert (project / ".devserve" / "state" / "server.json").exists()
        assert (project / ".devserve" / "logs" / "server.log").exists()

        assert main(["status", "--addr", f"127.0.0.1:{port}", "--json"]) == 0
        status = _json_out(capsys)
        assert status["pid_alive"] is True
        assert started["pid"] in [item["pid"] for item in status["listeners"]]

        assert main(["stop", "--addr", f"127.0.0.1:{port}", "--json"]) == 0
        stopped = _json_out(capsys)
        assert stopped["status"] == "stopped"
        assert not is_process_alive(started["pid"])
        assert not (project / ".devserve" / "state" / "server.json").exists()

        # No state left: falls back to force-stop, which finds nothing.
        assert main(["stop", "--addr", f"127.0.0.1:{port}", "--json"]) == 0
        again = _json_out(capsys)
        assert again["status"] == "not_found"
        assert again["fallback"] is True

    def test_start_on_bound_port_is_port_conflict(self, project, port, interpreter_name, listening_socket, capsys):
        assert main(_start_argv(port, interpreter_name)) == 3
        assert "already in use" in capsys.readouterr().err
        assert not (project / ".devserve" / "state" / "server.json").exists()

    @pytest.mark.parametrize(
        "content",
        [
            b'{"address": "127.0.0.1:0", "process_name": "srv"}',
            b'{"address": "127.0.0.1:3000", "process_name": "\xff\xfe"}',
        ],
    )
    def test_stop_with_unusable_state_falls_back_to_force_stop(self, project, port, content, capsys):
        state_file = project / ".devserve" / "state" / "server.json"
        state_file.parent.mkdir(parents=True)
        state_file.write_bytes(content)

        assert main(["stop", "--addr", f"127.0.0.1:{port}", "--json"]) == 0
        result = _json_out(capsys)
        assert result["fallback"] is True
        assert result["status"] == "not_found"
        assert not state_file.exists()

    def test_stop_without_state_and_no_fallback(self, project, port, capsys):
        assert main(["stop", "--addr", f"127.0.0.1:{port}", "--no-fallback"]) == 7

    def test_force_stop_with_nothing_listening(self, project, port, capsys):
        assert main(["force-stop", "--addr", f"127.0.0.1:{port}"]) == 0
        assert f"Nothing listening on port {port}" in capsys.readouterr().out


class TestHealthCheck:
    def test_healthy_server(self, project, port, capsys):
        with DelayedHttpServer(port, delay=0.2):
            code = main(["health-check", "--addr", f"127.0.0.1:{port}", "--interval", "0.05", "--timeout", "5"])
        assert code == 0
        assert "is responding" in capsys.readouterr().out

    def test_unreachable_server_times_out(self, project, port, capsys):
        code = main(["health-check", "--addr", f"127.0.0.1:{port}", "--interval", "0.05", "--timeout", "0.3"])
        assert code == 5
        assert "did not respond" in capsys.readouterr().err
