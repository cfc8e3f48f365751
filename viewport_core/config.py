#!/usr/bin/env python3
"""Application configuration for viewport capture"""

import os
import shlex
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from dotenv import load_dotenv

load_dotenv()


def _csv(value: str) -> List[str]:
    return [v.strip().lower() for v in value.split(",") if v.strip()]


def _default_server_command() -> List[str]:
    raw = os.getenv("VIEWPORT_SERVER_COMMAND", "")
    if raw.strip():
        return shlex.split(raw)
    return [sys.executable, "-m", "viewport_server"]


@dataclass
class Config:
    """Application configuration"""
    server_host: str = os.getenv("VIEWPORT_SERVER_HOST", "127.0.0.1")
    server_port: int = int(os.getenv("VIEWPORT_SERVER_PORT", "3001"))
    default_viewports: List[str] = field(
        default_factory=lambda: _csv(os.getenv("VIEWPORT_DEFAULT_VIEWPORTS", "mobile,tablet,desktop"))
    )
    output_dir: Path = Path(os.getenv("VIEWPORT_OUTPUT_DIR", "./viewport-results"))
    timeout_seconds: float = float(os.getenv("VIEWPORT_TIMEOUT", "180"))

    # Capture orchestrator
    max_concurrent_captures: int = int(os.getenv("VIEWPORT_MAX_CONCURRENT", "3"))
    navigation_timeout_ms: int = int(os.getenv("VIEWPORT_NAVIGATION_TIMEOUT_MS", "30000"))
    slot_wait_timeout: float = float(os.getenv("VIEWPORT_SLOT_WAIT_TIMEOUT", "120"))
    headless: bool = os.getenv("VIEWPORT_HEADLESS", "true").lower() in ["true", "1", "yes"]

    # Process supervisor
    health_probe_timeout: float = float(os.getenv("VIEWPORT_HEALTH_PROBE_TIMEOUT", "2.0"))
    health_poll_interval: float = float(os.getenv("VIEWPORT_HEALTH_POLL_INTERVAL", "0.5"))
    health_max_attempts: int = int(os.getenv("VIEWPORT_HEALTH_MAX_ATTEMPTS", "30"))
    shutdown_grace_period: float = float(os.getenv("VIEWPORT_SHUTDOWN_GRACE", "5.0"))
    server_command: List[str] = field(default_factory=_default_server_command)

    # Tunnel bridge
    tunnel_binary: str = os.getenv("VIEWPORT_TUNNEL_BINARY", "cloudflared")
    tunnel_startup_timeout: float = float(os.getenv("VIEWPORT_TUNNEL_TIMEOUT", "15.0"))

    log_level: str = os.getenv("VIEWPORT_LOG_LEVEL", "INFO").upper()


# Global config instance
config = Config()
