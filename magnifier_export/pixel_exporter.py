"""Copy and save for the image shown in the magnifier.

Exports try two tiers in order:

1. Read back the pixels the overlay already decoded (works for blob: and most
   cross-origin images, unless the decoded copy is tainted).
2. Re-fetch the original URL and re-encode it (works for same-origin and
   CORS-permitting assets).

Only exhausting both tiers is reported to the user, as a short notice.
"""
from __future__ import annotations

import asyncio
import base64
import logging
from typing import Callable, Optional

from magnifier_export.fetcher import FetchBlockedError, ImageFetcher
from magnifier_export.filenames import suggest_filename, with_png_extension
from magnifier_export.raster_surface import (
    PNG_MIME,
    DisplayedImage,
    decode_image,
    extract_png,
    is_png,
)
from magnifier_export.results import ExportFailure, ExportResult
from magnifier_export.sinks import ClipboardSink, DownloadRequest, DownloadSink

_LOGGER = logging.getLogger("ModernMagnifier.Export")

NOTICE_COPIED = "Copied to clipboard"
NOTICE_COPY_BLOCKED = "Cannot copy — image blocked by cross-origin policy"
NOTICE_CLIPBOARD_UNAVAILABLE = "Cannot copy — clipboard unavailable"
NOTICE_DOWNLOADING = "Downloading…"
NOTICE_DOWNLOAD_FAILED = "Download failed"
NOTICE_SAVE_BLOCKED = "Cannot save — image blocked by cross-origin policy"
NOTICE_NOT_READY = "Image is still loading"

NotifyFn = Callable[[str], None]


def _log_notice(message: str) -> None:
    _LOGGER.info("Notice: %s", message)


def png_data_url(data: bytes) -> str:
    return f"data:{PNG_MIME};base64,{base64.b64encode(data).decode('ascii')}"


class PixelExporter:
    def __init__(
        self,
        fetcher: ImageFetcher,
        *,
        clipboard: ClipboardSink,
        download_sink: DownloadSink,
        notify: Optional[NotifyFn] = None,
    ) -> None:
        self._fetcher = fetcher
        self._clipboard = clipboard
        self._download_sink = download_sink
        self._notify = notify or _log_notice

    async def export_pixels(self, displayed: DisplayedImage) -> ExportResult:
        """Lossless PNG bytes for the displayed image, or the terminal failure."""
        first = self.capture_displayed(displayed)
        if first.ok:
            return first
        failure = first.failure
        if failure is None or not failure.retryable:
            _LOGGER.debug("Export stopped at tier 1: %s (%s)", failure.value if failure else "empty", first.detail)
            return first
        _LOGGER.debug("Tier 1 export failed (%s); re-fetching %s", failure.value, displayed.url[:96])
        second = await self.refetch_and_encode(displayed.url)
        if not second.ok:
            _LOGGER.info(
                "Export exhausted: tier1=%s tier2=%s (%s)",
                failure.value,
                second.failure.value if second.failure else "empty",
                second.detail,
            )
        return second

    def capture_displayed(self, displayed: DisplayedImage) -> ExportResult:
        return extract_png(displayed.image, tainted=displayed.tainted, tier=1)

    async def refetch_and_encode(self, url: str) -> ExportResult:
        try:
            fetched = await self._fetcher.fetch_async(url)
        except FetchBlockedError as exc:
            return ExportResult.failed(ExportFailure.FETCH_BLOCKED, str(exc), tier=2)
        image = decode_image(fetched.data)
        if image is None:
            return ExportResult.failed(
                ExportFailure.EXTRACTION_FAILED, "fetched bytes are not a decodable image", tier=2
            )
        if is_png(fetched.data):
            return ExportResult.success(fetched.data, tier=2)
        return extract_png(image, tier=2)

    # Callers ----------------------------------------------------------------

    async def copy(self, displayed: DisplayedImage) -> bool:
        result = await self.export_pixels(displayed)
        if not result.ok:
            self._notify(self._failure_notice(result, NOTICE_COPY_BLOCKED))
            return False
        if not self._clipboard.put_png(result.data or b""):
            self._notify(NOTICE_CLIPBOARD_UNAVAILABLE)
            return False
        self._notify(NOTICE_COPIED)
        return True

    async def save(self, displayed: DisplayedImage) -> bool:
        url = displayed.url
        if not url:
            return False
        filename = suggest_filename(url, self._fetcher.page_url)
        if url.startswith("blob:"):
            # The download process cannot dereference this page's blob handles.
            result = await self.export_pixels(displayed)
            if not result.ok:
                self._notify(self._failure_notice(result, NOTICE_SAVE_BLOCKED))
                return False
            request = DownloadRequest(url=png_data_url(result.data or b""), filename=with_png_extension(filename))
        else:
            request = DownloadRequest(url=self._fetcher.absolute_url(url), filename=filename)
        acknowledged = await asyncio.to_thread(self._download_sink.request_download, request)
        self._notify(NOTICE_DOWNLOADING if acknowledged else NOTICE_DOWNLOAD_FAILED)
        return bool(acknowledged)

    @staticmethod
    def _failure_notice(result: ExportResult, blocked_notice: str) -> str:
        if result.failure is ExportFailure.IMAGE_NOT_READY:
            return NOTICE_NOT_READY
        return blocked_notice
