"""
Process helpers shared by the service supervisor and the tunnel bridge.

Usage:
    from viewport_core.process import terminate_process, is_port_open

    terminate_process(popen, grace_period=5.0)               # SIGTERM, then SIGKILL
    terminate_process(popen, graceful_signal=signal.SIGINT)  # Ctrl+C style
"""

import logging
import signal
import socket
import subprocess
from typing import List, Optional, Union

import psutil

logger = logging.getLogger(__name__)


def _reap(process: Union[subprocess.Popen, int], timeout: float = 1.0) -> Optional[int]:
    """Collect the exit status of a Popen child so it does not linger as a zombie"""
    if not isinstance(process, subprocess.Popen):
        return None
    try:
        return process.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        return None


def _descendants(proc: psutil.Process) -> List[psutil.Process]:
    try:
        return proc.children(recursive=True)
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return []


def _kill_all(procs: List[psutil.Process], timeout: float) -> List[psutil.Process]:
    for p in procs:
        try:
            p.kill()
        except psutil.NoSuchProcess:
            pass
    _, alive = psutil.wait_procs(procs, timeout=timeout)
    return alive


def terminate_process(
    process: Union[subprocess.Popen, int],
    grace_period: float = 5.0,
    graceful_signal: int = signal.SIGTERM,
    kill_timeout: float = 2.0,
) -> Optional[int]:
    """
    Stop a process in two phases: graceful signal, then forced kill.

    The process gets ``grace_period`` seconds to exit after ``graceful_signal``.
    If it is still alive it is killed. Descendants (e.g. browser helper
    processes) that survive their parent are killed as well.

    Args:
        process: Popen object or PID
        grace_period: Seconds to wait after the graceful signal
        graceful_signal: Signal for the first phase (SIGTERM or SIGINT)
        kill_timeout: Seconds to wait for the forced kill to take effect

    Returns:
        Exit code when known, otherwise None
    """
    pid = process.pid if isinstance(process, subprocess.Popen) else int(process)

    if isinstance(process, subprocess.Popen) and process.poll() is not None:
        return process.returncode

    try:
        proc = psutil.Process(pid)
    except psutil.NoSuchProcess:
        return _reap(process)

    children = _descendants(proc)

    try:
        proc.send_signal(graceful_signal)
    except psutil.NoSuchProcess:
        return _reap(process)

    gone, alive = psutil.wait_procs([proc], timeout=grace_period)
    if alive:
        logger.warning(f"Process {pid} did not exit within {grace_period}s, force killing")
        if _kill_all([proc], kill_timeout):
            logger.error(f"Process {pid} survived SIGKILL")

    leftovers = [c for c in children if c.is_running()]
    if leftovers:
        logger.info(f"Killing {len(leftovers)} leftover child process(es) of {pid}")
        _kill_all(leftovers, kill_timeout)

    # psutil reaps its own children while waiting, so prefer the code it recorded
    exit_code = getattr(gone[0], "returncode", None) if gone else None
    reaped = _reap(process, timeout=kill_timeout)
    return exit_code if exit_code is not None else reaped


def is_process_alive(process: Optional[subprocess.Popen]) -> bool:
    return process is not None and process.poll() is None


def is_port_open(host: str, port: int, timeout: float = 2.0) -> bool:
    """Direct TCP dial; True if something accepts connections on host:port"""
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False
