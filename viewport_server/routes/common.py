"""Helpers shared by the capture server routes"""

import logging
from typing import Any, Dict, List

from flask import current_app, jsonify, request

from viewport_core.capture import CaptureOrchestrator
from viewport_core.errors import (
    ClientError,
    InvalidField,
    MissingField,
    ScanTimeout,
    ServiceUnavailable,
    ViewportError,
)

logger = logging.getLogger(__name__)

ORCHESTRATOR_KEY = "viewport_orchestrator"


def get_orchestrator() -> CaptureOrchestrator:
    return current_app.extensions[ORCHESTRATOR_KEY]


def get_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def require_target(data: Dict[str, Any]) -> str:
    target = data.get("targetUrl")
    if not target or not isinstance(target, str):
        raise MissingField("targetUrl")
    return target


def require_list(data: Dict[str, Any], key: str) -> List[str]:
    value = data.get(key)
    if not isinstance(value, list):
        raise MissingField(key, f"{key} must be an array")
    return [str(v) for v in value]


def get_options(data: Dict[str, Any]) -> Dict[str, Any]:
    options = data.get("options")
    if options is None:
        return {}
    if not isinstance(options, dict):
        raise InvalidField("options", "options must be an object")
    return options


def get_flag(data: Dict[str, Any], key: str, default: bool = True) -> bool:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise InvalidField(key, f"{key} must be a boolean")
    return value


def status_for(error: ViewportError) -> int:
    if isinstance(error, ClientError):
        return 400
    if isinstance(error, ServiceUnavailable):
        return 503
    if isinstance(error, ScanTimeout):
        return 504
    return 500


def error_response(error: ViewportError):
    payload = error.to_dict()
    help_text = getattr(error, "help", None)
    if help_text:
        payload["help"] = help_text
    return jsonify(payload), status_for(error)
