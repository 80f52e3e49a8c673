from __future__ import annotations

import asyncio
import base64

import pytest

from magnifier_export.fetcher import ImageFetcher
from magnifier_export.pixel_exporter import (
    NOTICE_CLIPBOARD_UNAVAILABLE,
    NOTICE_COPIED,
    NOTICE_COPY_BLOCKED,
    NOTICE_DOWNLOAD_FAILED,
    NOTICE_DOWNLOADING,
    NOTICE_NOT_READY,
    NOTICE_SAVE_BLOCKED,
    PixelExporter,
    png_data_url,
)
from magnifier_export.raster_surface import PNG_SIGNATURE, DisplayedImage, decode_image
from magnifier_export.results import ExportFailure

PAGE = "https://chat.example/room/1"


class _RecordingClipboard:
    def __init__(self, accept: bool = True) -> None:
        self.accept = accept
        self.payloads = []

    def put_png(self, data: bytes) -> bool:
        self.payloads.append(data)
        return self.accept


class _RecordingDownloads:
    def __init__(self, accept: bool = True) -> None:
        self.accept = accept
        self.requests = []

    def request_download(self, request) -> bool:
        self.requests.append(request)
        return self.accept


def _build_exporter(fetcher=None, *, clipboard_accepts=True, downloads_accept=True):
    notices = []
    clipboard = _RecordingClipboard(clipboard_accepts)
    downloads = _RecordingDownloads(downloads_accept)
    exporter = PixelExporter(
        fetcher or ImageFetcher(page_url=PAGE),
        clipboard=clipboard,
        download_sink=downloads,
        notify=notices.append,
    )
    return exporter, clipboard, downloads, notices


def test_tier_one_reads_back_displayed_pixels(image_factory):
    exporter, _, _, _ = _build_exporter()
    displayed = DisplayedImage(url="blob:https://chat.example/42", image=image_factory(8, 6))

    result = asyncio.run(exporter.export_pixels(displayed))

    assert result.ok
    assert result.tier == 1
    assert result.data.startswith(PNG_SIGNATURE)
    assert decode_image(result.data).size().width() == 8


def test_tainted_surface_falls_back_to_refetch(fake_session, fake_response, image_factory, png_bytes):
    session = fake_session(
        {"https://cdn.example/a.png": fake_response(png_bytes, {"Access-Control-Allow-Origin": "*"})}
    )
    exporter, _, _, _ = _build_exporter(ImageFetcher(session=session, page_url=PAGE))
    displayed = DisplayedImage(url="https://cdn.example/a.png", image=image_factory(), tainted=True)

    result = asyncio.run(exporter.export_pixels(displayed))

    assert result.ok
    assert result.tier == 2
    assert result.data == png_bytes


def test_refetched_non_png_is_reencoded(fake_session, fake_response, image_factory, bmp_bytes):
    session = fake_session({"https://chat.example/a.bmp": fake_response(bmp_bytes)})
    exporter, _, _, _ = _build_exporter(ImageFetcher(session=session, page_url=PAGE))
    displayed = DisplayedImage(url="https://chat.example/a.bmp", image=image_factory(), tainted=True)

    result = asyncio.run(exporter.export_pixels(displayed))

    assert result.ok
    assert result.data.startswith(PNG_SIGNATURE)


def test_both_tiers_blocked(fake_session, fake_response, image_factory):
    session = fake_session({"https://cdn.example/a.png": fake_response(b"whatever")})
    exporter, _, _, _ = _build_exporter(ImageFetcher(session=session, page_url=PAGE))
    displayed = DisplayedImage(url="https://cdn.example/a.png", image=image_factory(), tainted=True)

    result = asyncio.run(exporter.export_pixels(displayed))

    assert result.failure is ExportFailure.FETCH_BLOCKED
    assert result.tier == 2


def test_undecodable_refetch_is_extraction_failure(fake_session, fake_response, image_factory):
    session = fake_session({"https://chat.example/a.png": fake_response(b"<html>login</html>")})
    exporter, _, _, _ = _build_exporter(ImageFetcher(session=session, page_url=PAGE))
    displayed = DisplayedImage(url="https://chat.example/a.png", image=image_factory(), tainted=True)

    result = asyncio.run(exporter.export_pixels(displayed))

    assert result.failure is ExportFailure.EXTRACTION_FAILED


def test_image_not_ready_stops_without_fetching(fake_session, qt_app):
    session = fake_session({})
    exporter, _, _, _ = _build_exporter(ImageFetcher(session=session, page_url=PAGE))

    result = asyncio.run(exporter.export_pixels(DisplayedImage(url="https://chat.example/a.png")))

    assert result.failure is ExportFailure.IMAGE_NOT_READY
    assert session.requests == []


def test_failure_kinds_that_allow_fallback():
    assert ExportFailure.SURFACE_TAINTED.retryable
    assert ExportFailure.EXTRACTION_FAILED.retryable
    assert not ExportFailure.IMAGE_NOT_READY.retryable
    assert not ExportFailure.FETCH_BLOCKED.retryable


def test_copy_places_png_on_clipboard(image_factory):
    exporter, clipboard, _, notices = _build_exporter()
    displayed = DisplayedImage(url="blob:https://chat.example/42", image=image_factory())

    assert asyncio.run(exporter.copy(displayed)) is True

    assert len(clipboard.payloads) == 1
    assert clipboard.payloads[0].startswith(PNG_SIGNATURE)
    assert notices == [NOTICE_COPIED]


def test_copy_blocked_reports_notice(fake_session, image_factory):
    exporter, clipboard, _, notices = _build_exporter(ImageFetcher(session=fake_session({}), page_url=PAGE))
    displayed = DisplayedImage(url="https://cdn.example/a.png", image=image_factory(), tainted=True)

    assert asyncio.run(exporter.copy(displayed)) is False

    assert clipboard.payloads == []
    assert notices == [NOTICE_COPY_BLOCKED]


def test_copy_before_image_loads(qt_app):
    exporter, _, _, notices = _build_exporter()

    assert asyncio.run(exporter.copy(DisplayedImage(url="blob:x"))) is False
    assert notices == [NOTICE_NOT_READY]


def test_copy_with_unavailable_clipboard(image_factory):
    exporter, _, _, notices = _build_exporter(clipboard_accepts=False)
    displayed = DisplayedImage(url="blob:x", image=image_factory())

    assert asyncio.run(exporter.copy(displayed)) is False
    assert notices == [NOTICE_CLIPBOARD_UNAVAILABLE]


def test_save_blob_hands_over_png_data_url(image_factory):
    exporter, _, downloads, notices = _build_exporter()
    displayed = DisplayedImage(url="blob:https://chat.example/9f1c", image=image_factory())

    assert asyncio.run(exporter.save(displayed)) is True

    request = downloads.requests[0]
    assert request.url.startswith("data:image/png;base64,")
    assert base64.b64decode(request.url.split(",", 1)[1]).startswith(PNG_SIGNATURE)
    assert request.filename == "image.png"
    assert request.save_as
    assert notices == [NOTICE_DOWNLOADING]


def test_save_blob_that_cannot_be_exported(image_factory):
    exporter, _, downloads, notices = _build_exporter()
    displayed = DisplayedImage(url="blob:https://chat.example/9f1c", image=image_factory(), tainted=True)

    assert asyncio.run(exporter.save(displayed)) is False

    assert downloads.requests == []
    assert notices == [NOTICE_SAVE_BLOCKED]


def test_save_network_url_passes_absolute_url_and_name(qt_app):
    exporter, _, downloads, notices = _build_exporter(downloads_accept=False)

    assert asyncio.run(exporter.save(DisplayedImage(url="/media/photo%20one.jpg?size=large"))) is False

    request = downloads.requests[0]
    assert request.url == "https://chat.example/media/photo%20one.jpg?size=large"
    assert request.filename == "photo one.jpg"
    assert notices == [NOTICE_DOWNLOAD_FAILED]


@pytest.mark.parametrize("payload", [b"\x89PNG", b"abc"])
def test_png_data_url(payload):
    assert png_data_url(payload) == "data:image/png;base64," + base64.b64encode(payload).decode("ascii")
