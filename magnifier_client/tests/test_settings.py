from __future__ import annotations

import json
from pathlib import Path

import pytest

from magnifier_client import settings as module


def test_missing_file_returns_defaults(tmp_path):
    cfg = module.load_settings(tmp_path / "settings.json")
    assert cfg == module.MagnifierSettings()
    assert cfg.min_image_size == 20.0
    assert cfg.wheel_sensitivity == 0.002


def test_reads_values_from_file(tmp_path):
    path = tmp_path / "settings.json"
    payload = {
        "min_image_size": 48,
        "wheel_sensitivity": 0.004,
        "fetch_timeout": 2.5,
        "user_agent": "  Tester/2  ",
        "downloads_dir": str(tmp_path / "saved"),
        "log_retention": 9,
    }
    path.write_text(json.dumps(payload), encoding="utf-8")

    cfg = module.load_settings(path)

    assert cfg.min_image_size == 48.0
    assert cfg.wheel_sensitivity == 0.004
    assert cfg.fetch_timeout == 2.5
    assert cfg.user_agent == "Tester/2"
    assert cfg.resolved_downloads_dir() == tmp_path / "saved"
    assert cfg.log_retention == 9


def test_malformed_file_returns_defaults(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")
    assert module.load_settings(path) == module.MagnifierSettings()

    path.write_text(json.dumps(["a", "list"]), encoding="utf-8")
    assert module.load_settings(path) == module.MagnifierSettings()


@pytest.mark.parametrize(
    "payload, field, expected",
    [
        ({"min_image_size": "big"}, "min_image_size", 20.0),
        ({"min_image_size": 0}, "min_image_size", 20.0),
        ({"wheel_sensitivity": True}, "wheel_sensitivity", 0.002),
        ({"fetch_timeout": 0.1}, "fetch_timeout", 10.0),
        ({"log_retention": 500}, "log_retention", 20),
        ({"log_retention": -3}, "log_retention", 1),
        ({"log_retention": "many"}, "log_retention", 5),
        ({"user_agent": 42}, "user_agent", None),
        ({"downloads_dir": "   "}, "downloads_dir", None),
    ],
)
def test_invalid_values_fall_back(payload, field, expected):
    cfg = module.settings_from_mapping(payload)
    assert getattr(cfg, field) == expected


def test_default_downloads_dir_is_under_home():
    assert module.MagnifierSettings().resolved_downloads_dir() == Path.home() / "Downloads"


def test_settings_path_env_override(tmp_path):
    env = {module.SETTINGS_ENV_VAR: str(tmp_path / "custom.json")}
    assert module.default_settings_path(env) == tmp_path / "custom.json"

    xdg = {"XDG_CONFIG_HOME": str(tmp_path)}
    assert module.default_settings_path(xdg) == tmp_path / "ModernMagnifier" / "settings.json"


@pytest.mark.parametrize(
    "value, expected",
    [("1", True), ("Yes", True), ("on", True), ("0", False), ("", False), (None, False)],
)
def test_debug_env_flag(value, expected):
    env = {} if value is None else {module.DEBUG_ENV_VAR: value}
    assert module.is_debug_enabled(env) is expected
