"""Flask application setup for the capture server"""

import logging
from typing import Optional

from flask import Flask, jsonify
from flask_cors import CORS

from viewport_core.capture import CaptureOrchestrator
from viewport_core.config import config
from viewport_server.routes import health_bp, scan_bp, screenshot_bp
from viewport_server.routes.common import ORCHESTRATOR_KEY

logger = logging.getLogger(__name__)


def create_app(orchestrator: Optional[CaptureOrchestrator] = None) -> Flask:
    """Build the capture server around ``orchestrator`` (a default one if omitted)"""
    app = Flask(__name__)
    CORS(app)

    app.config['DEFAULT_VIEWPORTS'] = list(config.default_viewports)
    app.config['SCAN_TIMEOUT'] = config.timeout_seconds
    app.extensions[ORCHESTRATOR_KEY] = orchestrator or CaptureOrchestrator()

    # Register blueprints
    app.register_blueprint(health_bp)
    app.register_blueprint(scan_bp)
    app.register_blueprint(screenshot_bp)

    @app.errorhandler(404)
    def not_found(_error):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(_error):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(500)
    def internal_error(error):
        original = getattr(error, "original_exception", None) or error
        logger.error(f"Unhandled server error: {original}")
        return jsonify({"error": "Internal server error"}), 500

    return app
