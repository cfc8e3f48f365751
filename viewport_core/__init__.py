"""
viewport_core - multi-viewport screenshot capture and worker process orchestration
"""

from viewport_core.config import Config, config
from viewport_core.errors import (
    BinaryNotFound,
    BrowserUnavailable,
    CaptureError,
    ClientError,
    EmptyCapture,
    HealthTimeout,
    InvalidField,
    NavigationTimeout,
    PortNotAccessible,
    ProcessLifecycleError,
    ScanTimeout,
    ServiceNotRunning,
    ServiceRequestError,
    ServiceUnavailable,
    SpawnFailed,
    UnknownDevice,
    UrlExtractionTimeout,
    ViewportError,
)
from viewport_core.models import (
    CaptureRequest,
    CaptureResult,
    ScanResult,
    ScanStatus,
    ServiceHandle,
    ServiceState,
    TunnelHandle,
    TunnelState,
    ViewportSpec,
)
from viewport_core.viewports import DEFAULT_VIEWPORTS, ViewportRegistry, default_registry
from viewport_core.capture import CaptureOrchestrator
from viewport_core.process import is_port_open, terminate_process
from viewport_core.supervisor import ServiceSupervisor
from viewport_core.tunnel import TunnelBridge
from viewport_core.client import ViewportClient
from viewport_core.results import save_scan_result

__all__ = [
    'Config', 'config',
    'ViewportError', 'ClientError', 'UnknownDevice', 'InvalidField', 'CaptureError', 'NavigationTimeout',
    'EmptyCapture', 'ServiceUnavailable', 'BrowserUnavailable', 'ScanTimeout',
    'ProcessLifecycleError', 'SpawnFailed', 'HealthTimeout', 'ServiceNotRunning',
    'BinaryNotFound', 'PortNotAccessible', 'UrlExtractionTimeout', 'ServiceRequestError',
    'ViewportSpec', 'CaptureRequest', 'CaptureResult', 'ScanResult', 'ScanStatus',
    'ServiceHandle', 'ServiceState', 'TunnelHandle', 'TunnelState',
    'DEFAULT_VIEWPORTS', 'ViewportRegistry', 'default_registry',
    'CaptureOrchestrator', 'terminate_process', 'is_port_open',
    'ServiceSupervisor', 'TunnelBridge', 'ViewportClient', 'save_scan_result',
]
