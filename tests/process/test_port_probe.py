"""
Tests for PortProbe and its backends.

Backend ordering is exercised with small in-memory backends; the default
probe is exercised against real listening sockets.
"""
from __future__ import annotations

import os
import subprocess

import pytest

from devserve.core.exceptions import ProbeUnavailableError
from devserve.core.process import (
    BackendUnavailable,
    LsofBackend,
    PortListeners,
    PortProbe,
    PortProbeBackend,
    SsBackend,
)


class StaticBackend(PortProbeBackend):
    def __init__(self, name, pids=(), *, unattributed=False):
        self.name = name
        self.pids = frozenset(pids)
        self.unattributed = unattributed
        self.calls = 0

    def listeners(self, port):
        self.calls += 1
        return PortListeners(port=port, pids=self.pids, unattributed=self.unattributed, backend=self.name)


class BrokenBackend(PortProbeBackend):
    name = "broken"

    def listeners(self, port):
        raise BackendUnavailable("not on this host")


class TestBackendOrdering:
    def test_first_available_backend_answers(self):
        second = StaticBackend("second", [42])
        third = StaticBackend("third", [7])
        probe = PortProbe([BrokenBackend(), second, third])

        found = probe.inspect(3000)

        assert found.pids == {42}
        assert found.backend == "second"
        assert third.calls == 0

    def test_no_working_backend_is_probe_unavailable(self):
        probe = PortProbe([BrokenBackend(), BrokenBackend()])
        with pytest.raises(ProbeUnavailableError) as exc_info:
            probe.list_listening_pids(3000)
        assert exc_info.value.context["port"] == 3000

    def test_no_backends_is_probe_unavailable(self):
        with pytest.raises(ProbeUnavailableError):
            PortProbe([]).is_port_bound(3000)

    def test_unattributed_listener_counts_as_bound(self):
        probe = PortProbe([StaticBackend("psutil", unattributed=True)])
        assert probe.is_port_bound(3000)
        assert probe.list_listening_pids(3000) == set()

    def test_free_port_is_not_bound(self):
        assert not PortProbe([StaticBackend("empty")]).is_port_bound(3000)

    @pytest.mark.parametrize("bad_port", [0, 65536])
    def test_port_out_of_range(self, bad_port):
        with pytest.raises(ValueError):
            PortProbe([StaticBackend("empty")]).inspect(bad_port)


class _CannedRun:
    """Replace a command backend's subprocess call with a canned result."""

    def __init__(self, backend, returncode, stdout="", stderr=""):
        self.result = subprocess.CompletedProcess(["x"], returncode, stdout, stderr)
        backend._run = self

    def __call__(self, port):
        return self.result


class TestCommandBackends:
    def test_lsof_parses_pid_lines(self):
        backend = LsofBackend()
        _CannedRun(backend, 0, "123\n456\n")
        assert backend.listeners(3000).pids == {123, 456}

    def test_lsof_no_match_is_empty(self):
        backend = LsofBackend()
        _CannedRun(backend, 1, "")
        assert not backend.listeners(3000).bound

    def test_lsof_error_is_unavailable(self):
        backend = LsofBackend()
        _CannedRun(backend, 2, "", "lsof: bad option")
        with pytest.raises(BackendUnavailable):
            backend.listeners(3000)

    def test_ss_parses_users_column(self):
        backend = SsBackend()
        _CannedRun(
            backend,
            0,
            'LISTEN 0 128 127.0.0.1:3000 0.0.0.0:* users:(("server-bin",pid=555,fd=9))\n',
        )
        found = backend.listeners(3000)
        assert found.pids == {555}
        assert not found.unattributed

    def test_ss_line_without_pid_is_unattributed(self):
        backend = SsBackend()
        _CannedRun(backend, 0, "LISTEN 0 128 0.0.0.0:3000 0.0.0.0:*\n")
        found = backend.listeners(3000)
        assert found.pids == frozenset()
        assert found.bound

    def test_missing_executable_is_unavailable(self):
        backend = LsofBackend()
        backend.executable = "definitely-not-a-real-tool-xyz"
        with pytest.raises(BackendUnavailable):
            backend.listeners(3000)


class TestDefaultProbe:
    def test_sees_this_process_listening(self, port, listening_socket):
        probe = PortProbe()
        assert probe.is_port_bound(port)
        assert os.getpid() in probe.list_listening_pids(port)

    def test_free_port_is_not_bound(self, port):
        assert not PortProbe().is_port_bound(port)
