"""Boundaries the exporter hands finished images to."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Protocol

from PyQt6.QtCore import QMimeData
from PyQt6.QtGui import QClipboard, QGuiApplication

from magnifier_export.fetcher import FetchBlockedError, ImageFetcher
from magnifier_export.raster_surface import PNG_MIME

_LOGGER = logging.getLogger("ModernMagnifier.Export.Sinks")


@dataclass(frozen=True)
class DownloadRequest:
    url: str
    filename: str
    save_as: bool = True


class DownloadSink(Protocol):
    def request_download(self, request: DownloadRequest) -> bool: ...


class ClipboardSink(Protocol):
    def put_png(self, data: bytes) -> bool: ...


class DirectoryDownloadSink:
    """Fulfils download requests by writing into a directory, never overwriting."""

    def __init__(self, directory: Path, fetcher: ImageFetcher) -> None:
        self._directory = directory
        self._fetcher = fetcher

    def request_download(self, request: DownloadRequest) -> bool:
        try:
            fetched = self._fetcher.fetch(request.url, enforce_cors=False)
        except FetchBlockedError as exc:
            _LOGGER.warning("Download of %s failed: %s", request.filename, exc)
            return False
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            target = self._unique_path(request.filename)
            target.write_bytes(fetched.data)
        except OSError as exc:
            _LOGGER.warning("Unable to write download %s: %s", request.filename, exc)
            return False
        _LOGGER.info("Saved %s (%d bytes)", target, len(fetched.data))
        return True

    def _unique_path(self, filename: str) -> Path:
        candidate = self._directory / (Path(filename).name or "image.png")
        if not candidate.exists():
            return candidate
        stem, suffix = candidate.stem, candidate.suffix
        index = 1
        while True:
            candidate = self._directory / f"{stem} ({index}){suffix}"
            if not candidate.exists():
                return candidate
            index += 1


class QtClipboardSink:
    """Places a single image/png payload on the system clipboard."""

    def __init__(self, clipboard_fn: Optional[Callable[[], Optional[QClipboard]]] = None) -> None:
        self._clipboard_fn = clipboard_fn or QGuiApplication.clipboard

    def put_png(self, data: bytes) -> bool:
        if not data:
            return False
        clipboard = self._clipboard_fn()
        if clipboard is None:
            _LOGGER.warning("No clipboard available; is a QGuiApplication running?")
            return False
        mime = QMimeData()
        mime.setData(PNG_MIME, data)
        clipboard.setMimeData(mime)
        return True
