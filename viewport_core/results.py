"""
Results writer - persists a finished scan under a caller-provided directory.

Layout:
    output_dir/
    └── scan-1700000000000-ab12cd/
        ├── metadata.json
        ├── mobile.png
        └── desktop.png
"""

import json
import logging
from pathlib import Path
from typing import Union

from .models import ScanResult

logger = logging.getLogger(__name__)


def save_scan_result(result: ScanResult, output_dir: Union[str, Path]) -> Path:
    """Write metadata.json and one PNG per successful capture. Returns the scan directory."""
    scan_dir = Path(output_dir) / result.scan_id
    scan_dir.mkdir(parents=True, exist_ok=True)

    entries = []
    for capture in result.results:
        entry = {
            "device": capture.device,
            "dimensions": {"width": capture.width, "height": capture.height},
        }
        if capture.ok:
            filename = f"{capture.device}.png"
            (scan_dir / filename).write_bytes(capture.image_bytes)
            entry["file"] = filename
        else:
            entry["error"] = capture.error
            entry["errorCode"] = capture.error_code
        entries.append(entry)

    metadata = {
        "scanId": result.scan_id,
        "timestamp": result.timestamp,
        "status": result.status.value,
        "targetUrl": result.target_url,
        "results": entries,
    }
    (scan_dir / "metadata.json").write_text(json.dumps(metadata, indent=2), encoding="utf-8")
    logger.info(f"Saved scan {result.scan_id} to {scan_dir}")
    return scan_dir
