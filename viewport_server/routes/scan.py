"""Scan endpoint - fans a target out over several viewports"""

import logging

from flask import Blueprint, current_app, jsonify

from viewport_core.errors import ViewportError
from viewport_server.routes.common import (
    error_response,
    get_body,
    get_flag,
    get_options,
    get_orchestrator,
    require_list,
    require_target,
)

logger = logging.getLogger(__name__)

scan_bp = Blueprint('scan', __name__)


@scan_bp.route('/scan', methods=['POST'])
def scan():
    """Capture every requested viewport; per-device failures yield a partial result"""
    data = get_body()
    try:
        target = require_target(data)
        if data.get("viewports") is None:
            viewports = list(current_app.config["DEFAULT_VIEWPORTS"])
        else:
            viewports = require_list(data, "viewports")
        full_page = get_flag(get_options(data), "fullPage")

        result = get_orchestrator().scan(
            target,
            viewports,
            full_page=full_page,
            timeout=current_app.config["SCAN_TIMEOUT"],
        )
    except ViewportError as e:
        logger.error(f"/scan failed: {e}")
        return error_response(e)

    return jsonify(result.to_dict())
