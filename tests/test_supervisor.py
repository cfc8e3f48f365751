"""Tests for the service supervisor and process helpers."""

import subprocess
import sys
import textwrap
import time

import psutil
import pytest

from conftest import free_port
from viewport_core import supervisor as supervisor_module
from viewport_core.errors import HealthTimeout, ServiceNotRunning, SpawnFailed
from viewport_core.models import ServiceState
from viewport_core.process import is_port_open, terminate_process
from viewport_core.supervisor import ServiceSupervisor

# Minimal stand-in for the capture server: answers GET / with a fixed status
RESPONDER = textwrap.dedent('''
    import sys
    from http.server import BaseHTTPRequestHandler, HTTPServer

    status = int(sys.argv[1])
    port = int(sys.argv[sys.argv.index("--port") + 1])

    class Handler(BaseHTTPRequestHandler):
        def do_GET(self):
            self.send_response(status)
            self.send_header("Content-Type", "application/json")
            self.end_headers()
            self.wfile.write(b"{}")

        def log_message(self, *args):
            pass

    HTTPServer(("127.0.0.1", port), Handler).serve_forever()
''')

SLEEPER = "import time; time.sleep(60)"
STUBBORN = "import signal, time; signal.signal(signal.SIGTERM, signal.SIG_IGN); time.sleep(60)"


def _alive(proc):
    try:
        return proc.is_running() and proc.status() != psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return False


def spy_spawns(supervisor):
    spawned = []
    original = supervisor._spawn

    def _spawn():
        process = original()
        spawned.append(process)
        return process

    supervisor._spawn = _spawn
    return spawned


def make_supervisor(port, command, **kwargs):
    kwargs.setdefault("probe_timeout", 0.5)
    kwargs.setdefault("poll_interval", 0.1)
    kwargs.setdefault("max_attempts", 50)
    kwargs.setdefault("grace_period", 2.0)
    return ServiceSupervisor(port, host="127.0.0.1", command=command, **kwargs)


class TestEnsureRunning:

    def test_already_running_does_not_spawn(self, monkeypatch):
        supervisor = ServiceSupervisor(3001, command=["viewport-server"])
        monkeypatch.setattr(supervisor, "probe", lambda: 200)

        def no_spawn(*args, **kwargs):
            raise AssertionError("must not spawn")

        monkeypatch.setattr(supervisor_module.subprocess, "Popen", no_spawn)

        assert supervisor.ensure_running() == "http://localhost:3001"
        assert supervisor.ensure_running() == "http://localhost:3001"
        assert supervisor.state == ServiceState.RUNNING
        assert supervisor.handle.process is None

    def test_degraded_service_counts_as_reachable(self, monkeypatch):
        supervisor = ServiceSupervisor(3001, command=["viewport-server"])
        monkeypatch.setattr(supervisor, "probe", lambda: 503)

        assert supervisor.ensure_running() == "http://localhost:3001"

    def test_other_status_is_not_reachable(self, monkeypatch):
        supervisor = ServiceSupervisor(3001, command=["viewport-server"])
        monkeypatch.setattr(supervisor, "probe", lambda: 500)

        assert supervisor.is_running() is False

    def test_no_auto_start(self, monkeypatch):
        supervisor = ServiceSupervisor(3001, command=["viewport-server"])
        monkeypatch.setattr(supervisor, "probe", lambda: None)

        with pytest.raises(ServiceNotRunning):
            supervisor.ensure_running(auto_start=False)

    def test_probe_unreachable_port(self):
        supervisor = make_supervisor(free_port(), [sys.executable])
        assert supervisor.probe() is None

    def test_spawn_failure(self):
        supervisor = make_supervisor(free_port(), ["/nonexistent/viewport-server"])

        with pytest.raises(SpawnFailed):
            supervisor.ensure_running()

        assert supervisor.state == ServiceState.START_FAILED

    def test_spawns_and_waits_for_health(self):
        port = free_port()
        supervisor = make_supervisor(port, [sys.executable, "-c", RESPONDER, "200"])
        spawned = spy_spawns(supervisor)

        try:
            url = supervisor.ensure_running()
            assert url == f"http://127.0.0.1:{port}"
            assert supervisor.state == ServiceState.RUNNING

            # Re-entrant: a second call reuses the healthy instance
            assert supervisor.ensure_running() == url
            assert len(spawned) == 1
        finally:
            supervisor.stop()

        assert spawned[0].poll() is not None
        assert supervisor.state == ServiceState.STOPPED

    def test_spawned_degraded_service_is_ready(self):
        port = free_port()
        supervisor = make_supervisor(port, [sys.executable, "-c", RESPONDER, "503"])

        with supervisor:
            assert supervisor.ensure_running() == f"http://127.0.0.1:{port}"
            assert supervisor.probe() == 503

    def test_health_timeout_kills_process(self):
        supervisor = make_supervisor(
            free_port(), [sys.executable, "-c", SLEEPER], max_attempts=3, poll_interval=0.05, probe_timeout=0.2,
        )
        spawned = spy_spawns(supervisor)

        with pytest.raises(HealthTimeout):
            supervisor.ensure_running()

        assert spawned[0].poll() is not None
        assert supervisor.handle.process is None
        assert supervisor.state == ServiceState.START_FAILED

    def test_early_exit_fails_fast(self):
        supervisor = make_supervisor(free_port(), [sys.executable, "-c", "import sys; sys.exit(3)"])

        start = time.monotonic()
        with pytest.raises(SpawnFailed) as exc_info:
            supervisor.ensure_running()

        assert exc_info.value.context["exit_code"] == 3
        assert time.monotonic() - start < 4


class TestStop:

    def test_stop_without_spawn_is_noop(self):
        supervisor = ServiceSupervisor(3001, command=["viewport-server"])
        assert supervisor.stop() is None

    def test_stop_escalates_to_kill(self):
        supervisor = make_supervisor(free_port(), [sys.executable], grace_period=0.5)
        process = subprocess.Popen([sys.executable, "-c", STUBBORN])
        time.sleep(0.3)
        supervisor.handle.process = process

        start = time.monotonic()
        supervisor.stop()

        assert process.poll() is not None
        assert time.monotonic() - start < 0.5 + 2.0 + 1.0
        assert supervisor.state == ServiceState.STOPPED


class TestProcessHelpers:

    def test_terminate_graceful(self):
        process = subprocess.Popen([sys.executable, "-c", SLEEPER])

        terminate_process(process, grace_period=5.0)

        assert process.poll() is not None

    def test_terminate_already_exited(self):
        process = subprocess.Popen([sys.executable, "-c", "pass"])
        process.wait()

        assert terminate_process(process) == 0

    def test_terminate_kills_leftover_children(self):
        parent_code = (
            "import subprocess, sys, time; "
            f"subprocess.Popen([sys.executable, '-c', {SLEEPER!r}]); "
            "print('ready', flush=True); time.sleep(60)"
        )
        process = subprocess.Popen([sys.executable, "-c", parent_code], stdout=subprocess.PIPE, text=True)
        process.stdout.readline()

        children = psutil.Process(process.pid).children(recursive=True)
        assert children

        terminate_process(process, grace_period=1.0)

        psutil.wait_procs(children, timeout=3)
        assert all(not _alive(child) for child in children)
        process.stdout.close()

    def test_is_port_open(self, listening_port):
        assert is_port_open("127.0.0.1", listening_port, timeout=1.0)
        assert not is_port_open("127.0.0.1", free_port(), timeout=1.0)
