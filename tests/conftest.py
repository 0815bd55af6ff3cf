import os
import socket
import subprocess
import sys
from pathlib import Path

import psutil
import pytest

# Keep the repository free of Python bytecode and __pycache__ artifacts during tests.
sys.dont_write_bytecode = True

TESTS_ROOT = Path(__file__).resolve().parent
REPO_ROOT = TESTS_ROOT.parent
SRC_ROOT = REPO_ROOT / "src"

# Make src/ importable as 'devserve'
for p in (SRC_ROOT, TESTS_ROOT):
    if str(p) not in sys.path:
        sys.path.insert(0, str(p))


from devserve.core.process import normalize_process_name  # noqa: E402
from devserve.core.stdlib_logging import reset_stdlib_logging_for_tests  # noqa: E402
from helpers.servers import STUB_SERVER, free_port  # noqa: E402

# Environment variables that change how settings resolve. Tests set them
# explicitly through monkeypatch when they need them.
_DEVSERVE_ENV_PREFIX = "DEVSERVE_"


@pytest.fixture(autouse=True)
def _isolate_devserve_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith(_DEVSERVE_ENV_PREFIX):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("DEVSERVE_PROGRESS", "0")
    yield
    reset_stdlib_logging_for_tests()


@pytest.fixture
def port() -> int:
    """A TCP port that nothing listens on right now."""
    return free_port()


@pytest.fixture(scope="session")
def interpreter_name() -> str:
    """Normalized image name of a process started from ``sys.executable``.

    Can differ from this test process's own name (e.g. when pytest runs as a
    console script).
    """
    proc = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(10)"])
    try:
        # Popen returns only after exec, so the name is already the child's.
        return normalize_process_name(psutil.Process(proc.pid).name())
    finally:
        proc.kill()
        proc.wait()


@pytest.fixture
def stub_server_cmd():
    """Build a command line running the stub dev server script."""

    def _build(*args: str) -> list[str]:
        return [sys.executable, str(STUB_SERVER), *args]

    return _build


@pytest.fixture
def spawned():
    """Track processes started by a test and kill any survivors afterwards."""
    procs: list[int] = []
    yield procs
    for pid in procs:
        try:
            p = psutil.Process(pid)
            p.kill()
            p.wait(timeout=5)
        except (psutil.NoSuchProcess, psutil.TimeoutExpired, ChildProcessError):
            pass


@pytest.fixture
def listening_socket(port):
    """Bind and listen on ``port`` from this process (an unrelated listener)."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    sock.bind(("127.0.0.1", port))
    sock.listen(1)
    try:
        yield sock
    finally:
        sock.close()
