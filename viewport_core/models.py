"""
Data structures for captures, scans and supervised processes
"""

import base64
import subprocess
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class ViewportSpec:
    """Named width x height pair simulating a class of screen"""
    name: str
    width: int
    height: int

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Viewport {self.name} must have positive dimensions")

    @property
    def dimensions(self) -> Dict[str, int]:
        return {"width": self.width, "height": self.height}


@dataclass
class CaptureRequest:
    """One render-and-screenshot request"""
    target_url: str
    device: str
    full_page: bool = True


class ScanStatus(Enum):
    """Aggregate outcome of a scan"""
    COMPLETE = "complete"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass
class CaptureResult:
    """Outcome of one device capture within a scan"""
    device: str
    width: int = 0
    height: int = 0
    image_bytes: bytes = b""
    error: Optional[str] = None
    error_code: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and len(self.image_bytes) > 0

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "device": self.device,
            "dimensions": {"width": self.width, "height": self.height},
            "imageBase64": base64.b64encode(self.image_bytes).decode("ascii"),
        }
        if self.error is not None:
            data["error"] = self.error
            data["errorCode"] = self.error_code
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CaptureResult":
        dims = data.get("dimensions") or {}
        encoded = data.get("imageBase64") or ""
        return cls(
            device=data.get("device", ""),
            width=int(dims.get("width", 0)),
            height=int(dims.get("height", 0)),
            image_bytes=base64.b64decode(encoded) if encoded else b"",
            error=data.get("error"),
            error_code=data.get("errorCode"),
        )


def new_scan_id() -> str:
    """Timestamp-derived scan id, suffixed so concurrent scans never collide"""
    millis = int(datetime.now(timezone.utc).timestamp() * 1000)
    return f"scan-{millis}-{uuid.uuid4().hex[:6]}"


@dataclass
class ScanResult:
    """Aggregated captures of one target across several viewports"""
    scan_id: str = field(default_factory=new_scan_id)
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    status: ScanStatus = ScanStatus.COMPLETE
    target_url: str = ""
    results: List[CaptureResult] = field(default_factory=list)

    @staticmethod
    def status_for(results: List[CaptureResult]) -> ScanStatus:
        succeeded = sum(1 for r in results if r.ok)
        if succeeded == 0:
            return ScanStatus.FAILED
        if succeeded < len(results):
            return ScanStatus.PARTIAL
        return ScanStatus.COMPLETE

    def finalize(self, results: List[CaptureResult]) -> "ScanResult":
        self.results = list(results)
        self.status = self.status_for(self.results)
        return self

    @property
    def succeeded(self) -> List[CaptureResult]:
        return [r for r in self.results if r.ok]

    @property
    def failed(self) -> List[CaptureResult]:
        return [r for r in self.results if not r.ok]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scanId": self.scan_id,
            "timestamp": self.timestamp,
            "status": self.status.value,
            "targetUrl": self.target_url,
            "results": [r.to_dict() for r in self.results],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScanResult":
        return cls(
            scan_id=data.get("scanId") or new_scan_id(),
            timestamp=data.get("timestamp", ""),
            status=ScanStatus(data.get("status", ScanStatus.FAILED.value)),
            target_url=data.get("targetUrl", ""),
            results=[CaptureResult.from_dict(r) for r in data.get("results", [])],
        )


class ServiceState(Enum):
    """Lifecycle of the supervised capture service"""
    UNKNOWN = "unknown"
    CHECKING = "checking"
    STARTING = "starting"
    HEALTH_POLLING = "health_polling"
    RUNNING = "running"
    START_FAILED = "start_failed"
    STOPPING = "stopping"
    STOPPED = "stopped"


@dataclass
class ServiceHandle:
    port: int
    process: Optional[subprocess.Popen] = None
    state: ServiceState = ServiceState.UNKNOWN


class TunnelState(Enum):
    """Lifecycle of a tunnel process"""
    IDLE = "idle"
    STARTING = "starting"
    READY = "ready"
    FAILED = "failed"
    STOPPING = "stopping"
    STOPPED = "stopped"


@dataclass
class TunnelHandle:
    local_port: int
    process: Optional[subprocess.Popen] = None
    public_url: Optional[str] = None
    state: TunnelState = TunnelState.IDLE
