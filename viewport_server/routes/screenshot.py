"""Single and batch screenshot endpoints"""

import base64
import logging

from flask import Blueprint, jsonify

from viewport_core.errors import MissingField, ViewportError
from viewport_core.models import CaptureRequest
from viewport_server.routes.common import (
    error_response,
    get_body,
    get_flag,
    get_orchestrator,
    require_list,
    require_target,
)

logger = logging.getLogger(__name__)

screenshot_bp = Blueprint('screenshot', __name__)


@screenshot_bp.route('/screenshot', methods=['POST'])
def screenshot():
    data = get_body()
    orchestrator = get_orchestrator()
    try:
        target = require_target(data)
        device = data.get("device")
        if not device:
            raise MissingField("device")
        spec = orchestrator.registry.lookup(device)
        capture = CaptureRequest(target_url=target, device=spec.name, full_page=get_flag(data, "fullPage"))
        image = orchestrator.capture(capture.target_url, capture.device, full_page=capture.full_page)
    except ViewportError as e:
        logger.error(f"/screenshot failed: {e}")
        return error_response(e)

    return jsonify({
        "success": True,
        "device": spec.name,
        "dimensions": spec.dimensions,
        "imageBase64": base64.b64encode(image).decode("ascii"),
    })


@screenshot_bp.route('/screenshots', methods=['POST'])
def screenshots():
    data = get_body()
    try:
        target = require_target(data)
        devices = require_list(data, "devices")
        full_page = get_flag(data, "fullPage")
    except ViewportError as e:
        return error_response(e)

    results = get_orchestrator().capture_many(target, devices, full_page=full_page)
    payload = []
    for r in results:
        item = r.to_dict()
        item["success"] = r.ok
        if r.ok:
            item.pop("error", None)
        else:
            item.pop("imageBase64", None)
        payload.append(item)

    return jsonify({"targetUrl": target, "results": payload})
