from __future__ import annotations

import base64
import json
import logging
import os

import pytest
from PyQt6.QtCore import QBuffer, QByteArray, QIODevice
from PyQt6.QtGui import QColor, QImage
from PyQt6.QtWidgets import QApplication

from magnifier_client import cli
from magnifier_client.logging_utils import LOG_DIR_ENV_VAR, ROOT_LOGGER_NAME
from magnifier_export.raster_surface import PNG_SIGNATURE

BLOB_URL = "blob:https://chat.example/7"


@pytest.fixture(scope="module")
def qt_app():
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
    app = QApplication.instance()
    if app is None:
        app = QApplication([])
    return app


@pytest.fixture(autouse=True)
def isolated_logging(monkeypatch, tmp_path):
    monkeypatch.setenv(LOG_DIR_ENV_VAR, str(tmp_path / "logs"))
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    saved_handlers = list(logger.handlers)
    saved_level = logger.level
    logger.handlers = []
    yield
    for handler in logger.handlers:
        handler.close()
    logger.handlers = saved_handlers
    logger.setLevel(saved_level)


def _bmp_bytes() -> bytes:
    image = QImage(5, 5, QImage.Format.Format_ARGB32)
    image.fill(QColor("yellow"))
    payload = QByteArray()
    buffer = QBuffer(payload)
    buffer.open(QIODevice.OpenModeFlag.WriteOnly)
    image.save(buffer, "BMP")
    buffer.close()
    return bytes(payload.data())


def _write_snapshot(tmp_path, blob: bytes = b"") -> str:
    payload = {
        "page_url": "https://chat.example/room/1",
        "blobs": {BLOB_URL: base64.b64encode(blob).decode("ascii")} if blob else {},
        "root": {
            "id": "body",
            "rect": [0, 0, 800, 600],
            "children": [
                {"id": "thumb", "kind": "image", "rect": [10, 10, 40, 40], "src": "data:image/gif;base64,R0lGOD=="},
                {"id": "photo", "kind": "image", "rect": [10, 10, 300, 200], "src": BLOB_URL},
            ],
        },
    }
    path = tmp_path / "page.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return str(path)


def _settings_args(tmp_path):
    return ["--settings", str(tmp_path / "settings.json")]


def test_resolve_prints_best_url(tmp_path, capsys):
    snapshot = _write_snapshot(tmp_path)

    code = cli.main([*_settings_args(tmp_path), "resolve", snapshot, "20", "20"])

    assert code == 0
    assert capsys.readouterr().out.strip() == BLOB_URL


def test_resolve_json_lists_ranked_candidates(tmp_path, capsys):
    snapshot = _write_snapshot(tmp_path)

    code = cli.main([*_settings_args(tmp_path), "resolve", snapshot, "20", "20", "--json"])

    assert code == 0
    ranked = json.loads(capsys.readouterr().out)
    assert [entry["url"] for entry in ranked] == [BLOB_URL, "data:image/gif;base64,R0lGOD=="]
    assert ranked[0]["node"] == "photo"


def test_resolve_without_candidate_fails(tmp_path, capsys):
    snapshot = _write_snapshot(tmp_path)

    code = cli.main([*_settings_args(tmp_path), "resolve", snapshot, "5000", "5000"])

    assert code == 1
    assert "No image found" in capsys.readouterr().err


def test_missing_snapshot_is_reported(tmp_path, capsys):
    code = cli.main([*_settings_args(tmp_path), "resolve", str(tmp_path / "nope.json"), "1", "1"])

    assert code == 1
    assert "ERROR" in capsys.readouterr().err


def test_export_writes_png(qt_app, tmp_path, capsys):
    snapshot = _write_snapshot(tmp_path, blob=_bmp_bytes())
    output = tmp_path / "out.png"

    code = cli.main([*_settings_args(tmp_path), "--debug", "export", snapshot, "20", "20", "-o", str(output)])

    assert code == 0
    assert output.read_bytes().startswith(PNG_SIGNATURE)
    assert "tier 1" in capsys.readouterr().err
    assert (tmp_path / "logs" / "modern-magnifier.log").exists()


def test_export_reports_unloadable_image(qt_app, tmp_path, capsys):
    snapshot = _write_snapshot(tmp_path)
    output = tmp_path / "out.png"

    code = cli.main([*_settings_args(tmp_path), "export", snapshot, "20", "20", "-o", str(output)])

    assert code == 1
    assert "image_not_ready" in capsys.readouterr().err
    assert not output.exists()


def test_export_without_candidate_reports_failure_kind(qt_app, tmp_path, capsys):
    snapshot = _write_snapshot(tmp_path)
    output = tmp_path / "out.png"

    code = cli.main([*_settings_args(tmp_path), "export", snapshot, "5000", "5000", "-o", str(output)])

    assert code == 1
    assert "no_candidate_found" in capsys.readouterr().err
    assert not output.exists()
