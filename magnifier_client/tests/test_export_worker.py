from __future__ import annotations

import logging
import os

import pytest
from PyQt6.QtWidgets import QApplication

from magnifier_client.export_worker import ExportWorker


@pytest.fixture(scope="module")
def qt_app():
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
    app = QApplication.instance()
    if app is None:
        app = QApplication([])
    return app


def test_submit_runs_coroutine_on_worker_loop(qt_app):
    worker = ExportWorker()
    worker.start()
    try:
        async def _job():
            return "done"

        future = worker.submit(_job)
        assert future is not None
        assert future.result(timeout=5) == "done"
    finally:
        worker.stop()


def test_failed_job_is_logged(qt_app, caplog):
    caplog.set_level(logging.ERROR, logger="ModernMagnifier.Client.ExportWorker")
    worker = ExportWorker()
    worker.start()
    try:
        async def _job():
            raise RuntimeError("encoder crashed")

        assert worker.submit(_job).result(timeout=5) is None
    finally:
        worker.stop()
    assert "Export task failed" in caplog.text


def test_submit_without_running_loop_drops_request(qt_app, caplog):
    worker = ExportWorker()

    async def _job():
        return None

    assert worker.submit(_job) is None
    assert "not running" in caplog.text


def test_put_png_emits_payload_signal(qt_app):
    worker = ExportWorker()
    received = []
    worker.clipboard_payload.connect(received.append)

    assert worker.put_png(b"png") is True
    assert worker.put_png(b"") is False
    assert received == [b"png"]
