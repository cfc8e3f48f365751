"""Routes module for Flask endpoints"""

from viewport_server.routes.health import health_bp
from viewport_server.routes.scan import scan_bp
from viewport_server.routes.screenshot import screenshot_bp

__all__ = ['health_bp', 'scan_bp', 'screenshot_bp']
