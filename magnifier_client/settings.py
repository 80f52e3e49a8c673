"""User settings loader for the magnifier client."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

SETTINGS_ENV_VAR = "MODERN_MAGNIFIER_SETTINGS"
DEBUG_ENV_VAR = "MODERN_MAGNIFIER_DEBUG"
SETTINGS_FILENAME = "settings.json"

MIN_IMAGE_SIZE_DEFAULT = 20.0
WHEEL_SENSITIVITY_DEFAULT = 0.002
FETCH_TIMEOUT_DEFAULT = 10.0
LOG_RETENTION_DEFAULT = 5
LOG_RETENTION_MIN = 1
LOG_RETENTION_MAX = 20


@dataclass(frozen=True)
class MagnifierSettings:
    min_image_size: float = MIN_IMAGE_SIZE_DEFAULT
    wheel_sensitivity: float = WHEEL_SENSITIVITY_DEFAULT
    fetch_timeout: float = FETCH_TIMEOUT_DEFAULT
    user_agent: Optional[str] = None
    downloads_dir: Optional[Path] = None
    log_retention: int = LOG_RETENTION_DEFAULT

    def resolved_downloads_dir(self) -> Path:
        if self.downloads_dir is not None:
            return self.downloads_dir
        return Path.home() / "Downloads"


def is_debug_enabled(environ: Optional[Mapping[str, str]] = None) -> bool:
    env = os.environ if environ is None else environ
    value = env.get(DEBUG_ENV_VAR)
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def default_settings_path(environ: Optional[Mapping[str, str]] = None) -> Path:
    env = os.environ if environ is None else environ
    override = env.get(SETTINGS_ENV_VAR)
    if override:
        return Path(override).expanduser()
    config_home = Path(env.get("XDG_CONFIG_HOME") or Path.home() / ".config")
    return config_home / "ModernMagnifier" / SETTINGS_FILENAME


def _coerce_float(value: Any, fallback: float, *, minimum: float) -> float:
    if value is None or isinstance(value, bool):
        return fallback
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    if number != number or number < minimum:
        return fallback
    return number


def _coerce_retention(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return LOG_RETENTION_DEFAULT
    try:
        numeric = int(value)
    except (TypeError, ValueError):
        return LOG_RETENTION_DEFAULT
    return max(LOG_RETENTION_MIN, min(LOG_RETENTION_MAX, numeric))


def _coerce_text(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    text = value.strip()
    return text or None


def settings_from_mapping(data: Mapping[str, Any]) -> MagnifierSettings:
    downloads = _coerce_text(data.get("downloads_dir"))
    return MagnifierSettings(
        min_image_size=_coerce_float(data.get("min_image_size"), MIN_IMAGE_SIZE_DEFAULT, minimum=1.0),
        wheel_sensitivity=_coerce_float(data.get("wheel_sensitivity"), WHEEL_SENSITIVITY_DEFAULT, minimum=1e-6),
        fetch_timeout=_coerce_float(data.get("fetch_timeout"), FETCH_TIMEOUT_DEFAULT, minimum=0.5),
        user_agent=_coerce_text(data.get("user_agent")),
        downloads_dir=Path(downloads).expanduser() if downloads else None,
        log_retention=_coerce_retention(data.get("log_retention")),
    )


def load_settings(path: Optional[Path] = None) -> MagnifierSettings:
    """Read settings.json; missing or malformed files yield the defaults."""

    target = path or default_settings_path()
    try:
        raw_text = target.read_text(encoding="utf-8")
        data = json.loads(raw_text)
    except (FileNotFoundError, OSError, json.JSONDecodeError):
        data = {}
    if not isinstance(data, dict):
        data = {}
    return settings_from_mapping(data)
