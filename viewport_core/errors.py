"""
Error taxonomy for capture, service and process lifecycle failures.

Every error carries a stable ``code`` (used as the per-device ``error``
prefix and as ``errorCode`` in HTTP payloads) and a ``context`` dict with
whatever identifies the failing operation (target URL, port, viewports).
"""

from typing import Any, Dict, Optional


class ViewportError(Exception):
    """Base class for all viewport errors"""

    code = "ViewportError"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = {k: v for k, v in context.items() if v is not None}

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"error": str(self), "errorCode": self.code}
        if self.context:
            data["context"] = self.context
        return data


# Client errors - rejected immediately, never retried

class ClientError(ViewportError):
    code = "ClientError"


class UnknownDevice(ClientError):
    code = "UnknownDevice"

    def __init__(self, device: str, known: Optional[list] = None):
        super().__init__(f"Unknown device: {device}", device=device, known=known)
        self.device = device


class MissingField(ClientError):
    code = "MissingField"

    def __init__(self, field: str, message: Optional[str] = None):
        super().__init__(message or f"{field} required", field=field)
        self.field = field


class InvalidField(ClientError):
    code = "InvalidField"

    def __init__(self, field: str, message: str):
        super().__init__(message, field=field)
        self.field = field


# Capture errors - isolated to one device within a scan

class CaptureError(ViewportError):
    code = "CaptureFailed"


class NavigationTimeout(CaptureError):
    code = "NavigationTimeout"


class NavigationFailed(CaptureError):
    code = "NavigationFailed"


class EmptyCapture(CaptureError):
    code = "EmptyCapture"


class SlotTimeout(CaptureError):
    code = "SlotTimeout"


# Service errors

class ServiceUnavailable(ViewportError):
    code = "ServiceUnavailable"


class BrowserUnavailable(ServiceUnavailable):
    code = "BrowserUnavailable"

    help = (
        "The headless browser could not be started. "
        "Install it with: python -m playwright install --with-deps chromium"
    )


class ScanTimeout(ViewportError):
    code = "ScanTimeout"


# Process lifecycle errors - fatal to the calling operation

class ProcessLifecycleError(ViewportError):
    code = "ProcessLifecycleError"


class SpawnFailed(ProcessLifecycleError):
    code = "SpawnFailed"


class HealthTimeout(ProcessLifecycleError):
    code = "HealthTimeout"


class ServiceNotRunning(ProcessLifecycleError):
    code = "ServiceNotRunning"


class BinaryNotFound(ProcessLifecycleError):
    code = "BinaryNotFound"


class PortNotAccessible(ProcessLifecycleError):
    code = "PortNotAccessible"


class UrlExtractionTimeout(ProcessLifecycleError):
    code = "UrlExtractionTimeout"


class ServiceRequestError(ViewportError):
    """Capture service answered with a non-success status"""

    code = "ServiceRequestError"

    def __init__(self, message: str, status_code: Optional[int] = None, help: Optional[str] = None, **context: Any):
        super().__init__(message, status_code=status_code, **context)
        self.status_code = status_code
        self.help = help
