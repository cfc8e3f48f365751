"""
Service supervisor - start, health-check and stop the capture server.

The supervisor first probes ``GET /`` on the target port. Both 200 (ready)
and 503 (up, but browser failed to initialise) count as reachable, so a
degraded server is reused instead of being respawned over and over. Only
when nothing answers does it spawn the server as a detached child and poll
the probe until it answers or the attempt budget runs out.

Usage:
    with ServiceSupervisor(3001) as supervisor:
        url = supervisor.ensure_running()
        ...
"""

import logging
import subprocess
import threading
import time
from typing import List, Optional

import requests

from .config import config
from .errors import HealthTimeout, ServiceNotRunning, SpawnFailed
from .models import ServiceHandle, ServiceState
from .process import is_process_alive, terminate_process

logger = logging.getLogger(__name__)

REACHABLE_STATUS_CODES = (200, 503)


class ServiceSupervisor:
    """Owns at most one spawned capture server process"""

    def __init__(
        self,
        port: Optional[int] = None,
        host: str = "localhost",
        command: Optional[List[str]] = None,
        probe_timeout: Optional[float] = None,
        poll_interval: Optional[float] = None,
        max_attempts: Optional[int] = None,
        grace_period: Optional[float] = None,
        verbose: bool = False,
    ):
        self.port = port or config.server_port
        self.host = host
        self.command = list(command) if command else list(config.server_command)
        self.probe_timeout = probe_timeout if probe_timeout is not None else config.health_probe_timeout
        self.poll_interval = poll_interval if poll_interval is not None else config.health_poll_interval
        self.max_attempts = max_attempts or config.health_max_attempts
        self.grace_period = grace_period if grace_period is not None else config.shutdown_grace_period
        self.verbose = verbose

        self.handle = ServiceHandle(port=self.port)
        self._lock = threading.Lock()

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"

    @property
    def state(self) -> ServiceState:
        return self.handle.state

    def probe(self) -> Optional[int]:
        """Single bounded health probe; returns the HTTP status or None if unreachable"""
        try:
            resp = requests.get(f"{self.url}/", timeout=self.probe_timeout)
        except requests.RequestException:
            return None
        return resp.status_code

    def is_running(self) -> bool:
        status = self.probe()
        if status == 503:
            logger.warning(f"Capture server on port {self.port} is up but degraded (browser not ready)")
        return status in REACHABLE_STATUS_CODES

    def _spawn_command(self) -> List[str]:
        return [*self.command, "--port", str(self.port)]

    def _spawn(self) -> subprocess.Popen:
        cmd = self._spawn_command()
        logger.info(f"Spawning capture server: {' '.join(cmd)}")
        output = None if self.verbose else subprocess.DEVNULL
        try:
            return subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=output,
                stderr=output,
                start_new_session=True,
            )
        except OSError as e:
            raise SpawnFailed(f"Failed to start capture server: {e}", port=self.port, command=cmd) from e

    def _wait_until_healthy(self, process: subprocess.Popen) -> None:
        for attempt in range(1, self.max_attempts + 1):
            if self.is_running():
                logger.info(f"Capture server ready on {self.url} (attempt {attempt})")
                return
            if process.poll() is not None:
                raise SpawnFailed(
                    f"Capture server exited with code {process.returncode} before becoming healthy",
                    port=self.port, exit_code=process.returncode,
                )
            time.sleep(self.poll_interval)
        budget = self.max_attempts * self.poll_interval
        raise HealthTimeout(
            f"Capture server failed health check after {budget:.0f} seconds",
            port=self.port, attempts=self.max_attempts,
        )

    def ensure_running(self, auto_start: bool = True) -> str:
        """
        Make sure a capture server answers on the configured port.

        Returns the service URL. Calling it again while the server is
        healthy is a no-op and never spawns a second instance.

        Raises:
            ServiceNotRunning: nothing answers and auto_start is False
            SpawnFailed: the server process could not be started
            HealthTimeout: the spawned server never became reachable
        """
        with self._lock:
            self.handle.state = ServiceState.CHECKING
            if self.is_running():
                logger.info(f"Capture server already running on {self.url}")
                self.handle.state = ServiceState.RUNNING
                return self.url

            if not auto_start:
                self.handle.state = ServiceState.START_FAILED
                raise ServiceNotRunning(f"Capture server is not running on port {self.port}", port=self.port)

            self.handle.state = ServiceState.STARTING
            try:
                process = self._spawn()
            except SpawnFailed:
                self.handle.state = ServiceState.START_FAILED
                raise
            self.handle.process = process

            self.handle.state = ServiceState.HEALTH_POLLING
            try:
                self._wait_until_healthy(process)
            except (SpawnFailed, HealthTimeout):
                self.handle.state = ServiceState.START_FAILED
                terminate_process(process, grace_period=0)
                self.handle.process = None
                raise

            self.handle.state = ServiceState.RUNNING
            return self.url

    def stop(self) -> Optional[int]:
        """Gracefully stop the spawned server, killing it after the grace period"""
        with self._lock:
            process = self.handle.process
            if process is None:
                return None
            self.handle.state = ServiceState.STOPPING
            if is_process_alive(process):
                logger.info(f"Stopping capture server (PID: {process.pid})")
            exit_code = terminate_process(process, grace_period=self.grace_period)
            self.handle.process = None
            self.handle.state = ServiceState.STOPPED
            logger.info(f"Capture server stopped (exit code: {exit_code})")
            return exit_code

    def __enter__(self) -> "ServiceSupervisor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
