"""
Tunnel bridge - exposes a local port through a cloudflared quick tunnel.

cloudflared has no machine-readable output, so the public URL is scraped
from its combined stdout/stderr. A format change shows up as a timeout,
never as a crash.
"""

import logging
import queue
import re
import shutil
import signal
import subprocess
import threading
import time
from typing import List, Optional

from .config import config
from .errors import BinaryNotFound, PortNotAccessible, SpawnFailed, UrlExtractionTimeout
from .models import TunnelHandle, TunnelState
from .process import is_port_open, is_process_alive, terminate_process

logger = logging.getLogger(__name__)

TUNNEL_URL_PATTERN = re.compile(r"https://[a-zA-Z0-9\-]+\.trycloudflare\.com")
READY_MARKERS = ("Tunnel credentials", "Your quick tunnel")
INSTALL_HINT = (
    "cloudflared not installed. Please install it from "
    "https://developers.cloudflare.com/cloudflare-one/connections/connect-networks/downloads/"
)

_EOF = object()


def extract_tunnel_url(line: str, pattern: re.Pattern = TUNNEL_URL_PATTERN) -> Optional[str]:
    match = pattern.search(line)
    return match.group(0) if match else None


class TunnelBridge:
    """Spawns and owns a single tunnel process"""

    def __init__(
        self,
        binary: Optional[str] = None,
        startup_timeout: Optional[float] = None,
        settle_delay: float = 1.0,
        grace_period: Optional[float] = None,
        url_pattern: re.Pattern = TUNNEL_URL_PATTERN,
        port_check_timeout: float = 2.0,
    ):
        self.binary = binary or config.tunnel_binary
        self.startup_timeout = startup_timeout if startup_timeout is not None else config.tunnel_startup_timeout
        self.settle_delay = settle_delay
        self.grace_period = grace_period if grace_period is not None else config.shutdown_grace_period
        self.url_pattern = url_pattern
        self.port_check_timeout = port_check_timeout

        self.handle: Optional[TunnelHandle] = None
        self._lines: "queue.Queue" = queue.Queue()
        self._reader: Optional[threading.Thread] = None

    @property
    def public_url(self) -> Optional[str]:
        return self.handle.public_url if self.handle else None

    def command(self, local_port: int) -> List[str]:
        return [self.binary, "tunnel", "--url", f"http://127.0.0.1:{local_port}", "--no-tls-verify"]

    def _check_port(self, local_port: int) -> None:
        for host in ("127.0.0.1", "localhost"):
            if is_port_open(host, local_port, timeout=self.port_check_timeout):
                return
        raise PortNotAccessible(f"local port {local_port} is not accessible", port=local_port)

    def _pump(self, stream, lines: "queue.Queue") -> None:
        # Keeps draining after startup so the tunnel never blocks on a full pipe
        try:
            for line in iter(stream.readline, ""):
                line = line.rstrip()
                logger.debug(f"[tunnel] {line}")
                lines.put(line)
        except (OSError, ValueError) as e:
            logger.warning(f"Tunnel output reader stopped: {e}")
        finally:
            stream.close()
            lines.put(_EOF)

    def _next_line(self, deadline: float):
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise queue.Empty
        return self._lines.get(timeout=remaining)

    def _drain_for_url(self) -> Optional[str]:
        while True:
            try:
                line = self._lines.get_nowait()
            except queue.Empty:
                return None
            if line is _EOF:
                self._lines.put(_EOF)
                return None
            url = extract_tunnel_url(line, self.url_pattern)
            if url:
                return url

    def _scan_for_url(self, local_port: int) -> str:
        deadline = time.monotonic() + self.startup_timeout
        while True:
            try:
                line = self._next_line(deadline)
            except queue.Empty:
                raise UrlExtractionTimeout(
                    f"timeout waiting for tunnel URL after {self.startup_timeout}s", port=local_port
                )
            if line is _EOF:
                raise UrlExtractionTimeout(
                    "tunnel process exited before publishing a URL", port=local_port
                )

            url = extract_tunnel_url(line, self.url_pattern)
            if url:
                return url

            if any(marker in line for marker in READY_MARKERS):
                # The URL is usually printed right around the ready banner
                time.sleep(self.settle_delay)
                url = self._drain_for_url()
                if url:
                    return url

    def start(self, local_port: int) -> str:
        """
        Start a tunnel to ``local_port`` and return its public URL.

        Raises:
            PortNotAccessible: nothing listens on the local port
            BinaryNotFound: the tunnel binary is not on PATH
            UrlExtractionTimeout: no URL appeared before the startup timeout
        """
        if self.handle is not None and is_process_alive(self.handle.process):
            logger.info("Tunnel already running, restarting it")
            self.stop()

        self._check_port(local_port)

        executable = shutil.which(self.binary)
        if executable is None:
            raise BinaryNotFound(INSTALL_HINT, binary=self.binary)

        self.handle = TunnelHandle(local_port=local_port, state=TunnelState.STARTING)
        cmd = self.command(local_port)
        cmd[0] = executable
        logger.info(f"Starting tunnel: {' '.join(cmd)}")
        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except OSError as e:
            self.handle.state = TunnelState.FAILED
            raise SpawnFailed(f"failed to start {self.binary}: {e}", port=local_port) from e
        self.handle.process = process

        self._lines = queue.Queue()
        self._reader = threading.Thread(target=self._pump, args=(process.stdout, self._lines), name="tunnel-output", daemon=True)
        self._reader.start()

        try:
            url = self._scan_for_url(local_port)
        except UrlExtractionTimeout:
            self.handle.state = TunnelState.FAILED
            terminate_process(process, grace_period=0)
            raise

        self.handle.public_url = url
        self.handle.state = TunnelState.READY
        logger.info(f"Tunnel created: {url}")
        return url

    def stop(self) -> Optional[int]:
        """Interrupt the tunnel, killing it after the grace period"""
        if self.handle is None or self.handle.process is None:
            return None
        self.handle.state = TunnelState.STOPPING
        exit_code = terminate_process(
            self.handle.process,
            grace_period=self.grace_period,
            graceful_signal=signal.SIGINT,
        )
        if self._reader is not None:
            self._reader.join(timeout=1.0)
        self.handle.process = None
        self.handle.state = TunnelState.STOPPED
        logger.info("Tunnel stopped")
        return exit_code

    def __enter__(self) -> "TunnelBridge":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
