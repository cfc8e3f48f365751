"""HTTP client for the capture server"""

import logging
from typing import Any, Dict, List, Optional

import requests

from .config import config
from .errors import ScanTimeout, ServiceRequestError
from .models import ScanResult

logger = logging.getLogger(__name__)


class ViewportClient:
    """Talks to a running capture server"""

    def __init__(self, base_url: str, timeout: Optional[float] = None, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout or config.timeout_seconds
        self.session = session or requests.Session()

    def _raise_for_status(self, resp: requests.Response, action: str) -> None:
        if resp.ok:
            return
        try:
            body = resp.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("error"):
            raise ServiceRequestError(body["error"], status_code=resp.status_code, help=body.get("help"))
        raise ServiceRequestError(f"{action} failed: HTTP {resp.status_code}\n{resp.text}", status_code=resp.status_code)

    def health(self) -> Dict[str, Any]:
        try:
            resp = self.session.get(f"{self.base_url}/", timeout=self.timeout)
        except requests.RequestException as e:
            raise ServiceRequestError(f"health check failed: {e}", url=self.base_url) from e
        self._raise_for_status(resp, "health check")
        return resp.json()

    def scan(self, target_url: str, viewports: List[str], full_page: bool = True) -> ScanResult:
        payload = {
            "targetUrl": target_url,
            "viewports": list(viewports),
            "options": {"fullPage": full_page},
        }
        logger.info(f"Requesting scan of {target_url} ({', '.join(viewports)}) from {self.base_url}")
        try:
            resp = self.session.post(f"{self.base_url}/scan", json=payload, timeout=self.timeout)
        except requests.Timeout as e:
            raise ScanTimeout(
                f"Scan did not finish within {self.timeout}s",
                target=target_url, viewports=list(viewports),
            ) from e
        except requests.RequestException as e:
            raise ServiceRequestError(f"request failed: {e}", target=target_url, url=self.base_url) from e
        self._raise_for_status(resp, "scan")
        return ScanResult.from_dict(resp.json())
