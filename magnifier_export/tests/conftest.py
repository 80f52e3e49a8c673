from __future__ import annotations

import os
from typing import Dict, Optional, Union

import pytest
import requests
from PyQt6.QtCore import QBuffer, QByteArray, QIODevice
from PyQt6.QtGui import QColor, QImage
from PyQt6.QtWidgets import QApplication


@pytest.fixture(scope="module")
def qt_app():
    # Force Qt to run headless for CI/CLI test runs.
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
    app = QApplication.instance()
    if app is None:
        app = QApplication([])
    return app


def encode_image(image: QImage, fmt: str) -> bytes:
    payload = QByteArray()
    buffer = QBuffer(payload)
    buffer.open(QIODevice.OpenModeFlag.WriteOnly)
    image.save(buffer, fmt)
    buffer.close()
    return bytes(payload.data())


def solid_image(width: int = 4, height: int = 3, color: str = "red") -> QImage:
    image = QImage(width, height, QImage.Format.Format_ARGB32)
    image.fill(QColor(color))
    return image


class FakeResponse:
    def __init__(self, content: bytes = b"", headers: Optional[Dict[str, str]] = None, status: int = 200) -> None:
        self.content = content
        self.headers = headers or {}
        self.status_code = status
        self.closed = False

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")

    def close(self) -> None:
        self.closed = True


class FakeSession:
    """Stands in for requests.Session; replies from a URL table."""

    def __init__(self, replies: Dict[str, Union[FakeResponse, Exception]]) -> None:
        self.replies = replies
        self.requests = []
        self.closed = False

    def get(self, url, headers=None, timeout=None):
        self.requests.append({"url": url, "headers": dict(headers or {}), "timeout": timeout})
        reply = self.replies.get(url)
        if reply is None:
            return FakeResponse(status=404)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def png_bytes(qt_app) -> bytes:
    return encode_image(solid_image(), "PNG")


@pytest.fixture
def bmp_bytes(qt_app) -> bytes:
    return encode_image(solid_image(color="blue"), "BMP")


@pytest.fixture
def fake_response():
    return FakeResponse


@pytest.fixture
def fake_session():
    return FakeSession


@pytest.fixture
def image_factory(qt_app):
    return solid_image


@pytest.fixture
def image_encoder(qt_app):
    return encode_image
