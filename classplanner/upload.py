"""
Temporary image hosting for the rendered calendar.

The calendar SVG is uploaded to a file host that keeps it for a limited
number of hours and returns a direct link. Upload problems are never fatal:
callers get None and fall back to text output.
"""

from __future__ import annotations

import logging
from typing import Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_UPLOAD_URL = "https://tempfile.org/api/upload/local"
DEFAULT_EXPIRY_HOURS = 24
DEFAULT_TIMEOUT = 30.0


def upload_svg(
    svg: str,
    url: str = DEFAULT_UPLOAD_URL,
    expiry_hours: int = DEFAULT_EXPIRY_HOURS,
    timeout: float = DEFAULT_TIMEOUT,
    filename: str = "schedule.svg",
) -> Optional[str]:
    """
    Upload an SVG document and return its download URL, or None on failure.
    """
    files = {"files": (filename, svg.encode("utf-8"), "image/svg+xml")}
    data = {"expiryHours": str(expiry_hours)}

    try:
        resp = requests.post(url, files=files, data=data, timeout=timeout)
        resp.raise_for_status()
        payload = resp.json()
    # JSONDecodeError is a RequestException, so it must come first
    except requests.exceptions.JSONDecodeError:
        logger.warning("SVG upload returned non-JSON response (HTTP %s)", resp.status_code)
        return None
    except requests.RequestException as e:
        logger.warning("SVG upload failed: %s", e)
        return None

    if not isinstance(payload, dict):
        logger.warning("SVG upload returned unexpected payload: %r", payload)
        return None

    uploaded = payload.get("files")
    if payload.get("success") and isinstance(uploaded, list) and uploaded:
        first = uploaded[0]
        base_url = first.get("url") if isinstance(first, dict) else None
        if base_url:
            return f"{base_url}download"

    logger.warning("SVG upload rejected: %r", payload)
    return None
