"""
Runtime settings.

Every field defaults from an environment variable, so the MCP server and the
CLI can be configured without code changes. CLI flags override --db / --user.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from classplanner.upload import DEFAULT_EXPIRY_HOURS, DEFAULT_TIMEOUT, DEFAULT_UPLOAD_URL


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() not in ("0", "false", "no", "off", "")


def _env_path(name: str) -> Optional[Path]:
    value = os.getenv(name)
    return Path(value) if value else None


@dataclass
class Settings:
    db_path: Optional[Path] = field(default_factory=lambda: _env_path("CLASSPLANNER_DB"))
    user_id: str = field(default_factory=lambda: os.getenv("CLASSPLANNER_USER_ID", "local"))

    upload_url: str = field(default_factory=lambda: os.getenv("CLASSPLANNER_UPLOAD_URL", DEFAULT_UPLOAD_URL))
    upload_expiry_hours: int = field(
        default_factory=lambda: int(os.getenv("CLASSPLANNER_UPLOAD_EXPIRY_HOURS", str(DEFAULT_EXPIRY_HOURS)))
    )
    upload_timeout: float = field(
        default_factory=lambda: float(os.getenv("CLASSPLANNER_UPLOAD_TIMEOUT", str(DEFAULT_TIMEOUT)))
    )

    # require lecture + discussion/lab sections to be chosen together
    enforce_sections: bool = field(default_factory=lambda: _env_bool("CLASSPLANNER_ENFORCE_SECTIONS", True))

    log_level: str = field(default_factory=lambda: os.getenv("CLASSPLANNER_LOG_LEVEL", "WARNING"))
