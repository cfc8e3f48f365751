"""Health check endpoint"""

from flask import Blueprint, jsonify

from viewport_server.routes.common import get_orchestrator

health_bp = Blueprint('health', __name__)


@health_bp.route('/', methods=['GET'])
def health_check():
    """200 when the browser is ready, 503 when the server is up but degraded"""
    orchestrator = get_orchestrator()
    if not orchestrator.init_attempted:
        orchestrator.start()

    data = orchestrator.health()
    ready = data["browserReady"]
    data.update({
        "status": "ok" if ready else "degraded",
        "service": "viewport-server",
    })
    return jsonify(data), 200 if ready else 503
