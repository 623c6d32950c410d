"""
Runtime settings.

Settings come from an optional JSON file and are overridden by environment
variables. API keys are never stored in the file: the JSON names the env var
to read them from (``api_key_env``), the same way mail passwords are handled
elsewhere. The 15-day expiry window is a fixed policy and is not configurable.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from datetime import tzinfo
from pathlib import Path
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


ENV_PREFIX = "REGTRACK_"


@dataclass
class Settings:
    """Resolved settings.

    Attributes:
        db_url: SQLAlchemy URL of the local tracker database.
        output_dir: Directory exported reports are written to.
        actor: Name recorded as ``approved_by`` when none is given.
        timezone: IANA zone used to render dates in reports.
        pdf_font: Optional TTF font registered for PDF output.
        pdf_bold_font: Optional bold TTF for the PDF table header.
        api_url: Base URL of a REST backend; when set it replaces the local database.
        api_key: Key for the REST backend (resolved from ``api_key_env``).
    """

    db_url: str = "sqlite:///registrations.db"
    output_dir: str = "reports"
    actor: str = "admin"
    timezone: str = "Asia/Kolkata"
    pdf_font: Optional[str] = None
    pdf_bold_font: Optional[str] = None
    api_url: Optional[str] = None
    api_key: str = ""

    @property
    def tz(self) -> tzinfo:
        try:
            return ZoneInfo(self.timezone)
        except ZoneInfoNotFoundError:
            raise ValueError(f"Unknown timezone '{self.timezone}'.")


def load_settings(config_path: Optional[str | Path] = None) -> Settings:
    """Load Settings from a JSON file (optional) and the environment.

    Args:
        config_path: Path to a JSON settings file.

    Returns:
        A populated Settings instance.

    Raises:
        FileNotFoundError: If config_path is given but does not exist.
        json.JSONDecodeError: If the JSON is malformed.
    """
    raw: dict[str, Any] = {}
    if config_path is not None:
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Settings file not found: {path}")
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)

    api_key_env = os.environ.get(f"{ENV_PREFIX}API_KEY_ENV", raw.get("api_key_env", ""))
    api_key = os.environ.get(api_key_env, "") if api_key_env else ""

    defaults = Settings()
    return Settings(
        db_url=_pick("DB_URL", raw, "db_url", defaults.db_url),
        output_dir=_pick("OUTPUT_DIR", raw, "output_dir", defaults.output_dir),
        actor=_pick("ACTOR", raw, "actor", defaults.actor),
        timezone=_pick("TIMEZONE", raw, "timezone", defaults.timezone),
        pdf_font=_pick("PDF_FONT", raw, "pdf_font", None),
        pdf_bold_font=_pick("PDF_BOLD_FONT", raw, "pdf_bold_font", None),
        api_url=_pick("API_URL", raw, "api_url", None),
        api_key=api_key,
    )


def _pick(env_name: str, raw: dict[str, Any], key: str, default: Any) -> Any:
    value = os.environ.get(f"{ENV_PREFIX}{env_name}")
    if value:
        return value
    return raw.get(key, default)
