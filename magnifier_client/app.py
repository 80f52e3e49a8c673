"""Wires resolution, the magnifier controller, the overlay view and exports together."""
from __future__ import annotations

import concurrent.futures
import logging
from typing import Callable, List, Optional

import requests

from image_resolver.candidate_resolver import Candidate, CandidateResolver
from image_resolver.geometry_probe import PageSnapshot, SnapshotProbe
from magnifier_controller.controller import MagnifierController
from magnifier_export.fetcher import ImageFetcher, load_displayed_image_async
from magnifier_export.pixel_exporter import PixelExporter
from magnifier_export.raster_surface import DisplayedImage
from magnifier_export.sinks import ClipboardSink, DirectoryDownloadSink, DownloadSink, QtClipboardSink

from magnifier_client.export_worker import ExportWorker
from magnifier_client.settings import MagnifierSettings

_LOGGER = logging.getLogger("ModernMagnifier.Client")

ViewFactory = Callable[[MagnifierController, DisplayedImage], object]


class MagnifierSession:
    """One page snapshot and the single magnifier overlay that can open over it."""

    def __init__(
        self,
        snapshot: PageSnapshot,
        settings: Optional[MagnifierSettings] = None,
        *,
        clipboard: Optional[ClipboardSink] = None,
        download_sink: Optional[DownloadSink] = None,
        notify: Optional[Callable[[str], None]] = None,
        view_factory: Optional[ViewFactory] = None,
        worker: Optional[ExportWorker] = None,
        http_session: Optional[requests.Session] = None,
    ) -> None:
        self._settings = settings or MagnifierSettings()
        self._snapshot = snapshot
        self._probe = SnapshotProbe(snapshot.root)
        self._resolver = CandidateResolver(self._probe, min_size=self._settings.min_image_size)
        self._owns_worker = worker is None
        self._worker = worker or ExportWorker()
        self._pending_load: Optional[concurrent.futures.Future] = None
        self._fetcher = ImageFetcher(
            session=http_session,
            blobs=snapshot.blobs,
            page_url=snapshot.page_url,
            timeout=self._settings.fetch_timeout,
            user_agent=self._settings.user_agent,
        )
        self._notices: List[str] = []
        self._notify_fn = notify
        self._view_factory = view_factory
        self._view: Optional[object] = None
        self._displayed: Optional[DisplayedImage] = None
        self.scroll_suspended = False
        self._controller = MagnifierController(
            suspend_scrolling_fn=self._suspend_scrolling,
            restore_scrolling_fn=self._restore_scrolling,
            teardown_fn=self._release_view,
            attach_drag_listeners_fn=self._attach_drag_listeners,
            detach_drag_listeners_fn=self._detach_drag_listeners,
            wheel_sensitivity=self._settings.wheel_sensitivity,
        )
        self._exporter = PixelExporter(
            self._fetcher,
            clipboard=clipboard or QtClipboardSink(),
            download_sink=download_sink
            or DirectoryDownloadSink(self._settings.resolved_downloads_dir(), self._fetcher),
            notify=self.notify,
        )

    @property
    def controller(self) -> MagnifierController:
        return self._controller

    @property
    def resolver(self) -> CandidateResolver:
        return self._resolver

    @property
    def fetcher(self) -> ImageFetcher:
        return self._fetcher

    @property
    def exporter(self) -> PixelExporter:
        return self._exporter

    @property
    def displayed(self) -> Optional[DisplayedImage]:
        return self._displayed

    @property
    def view(self) -> Optional[object]:
        return self._view

    @property
    def notices(self) -> List[str]:
        return list(self._notices)

    def notify(self, message: str) -> None:
        self._notices.append(message)
        _LOGGER.info("Notice: %s", message)
        if self._notify_fn is not None:
            self._notify_fn(message)

    # Resolution -------------------------------------------------------------

    def rank_at(self, x: float, y: float) -> List[Candidate]:
        return self._resolver.rank(self._probe.nodes_at(x, y))

    def resolve_at(self, x: float, y: float) -> Optional[str]:
        return self._resolver.resolve_at(x, y)

    def open_at(self, x: float, y: float) -> bool:
        if self._controller.is_open:
            return False
        url = self.resolve_at(x, y)
        if not url:
            _LOGGER.debug("No image under (%.0f, %.0f); magnifier stays closed", x, y)
            return False
        return self.open_url(url)

    def open_url(self, url: str) -> bool:
        """Open the overlay at once; the image is decoded on the worker loop and bound when ready."""
        if not self._controller.open(url):
            return False
        self._displayed = DisplayedImage(url=url)
        if self._view_factory is not None:
            self._view = self._view_factory(self._controller, self._displayed)
        self._worker.start()
        self._pending_load = self._worker.submit(self.load_displayed)
        return True

    async def load_displayed(self) -> Optional[DisplayedImage]:
        pending = self._displayed
        if pending is None:
            return None
        loaded = await load_displayed_image_async(pending.url, self._fetcher)
        if self._displayed is not pending:
            _LOGGER.debug("Overlay closed or reopened before %s finished loading", pending.url[:96])
            return None
        self._displayed = loaded
        self._worker.image_loaded.emit(loaded.image)
        return loaded

    def wait_for_image(self, timeout: Optional[float] = None) -> Optional[DisplayedImage]:
        """Block until the pending load settles; for callers without an event loop of their own."""
        pending = self._pending_load
        if pending is not None:
            try:
                pending.result(timeout=timeout)
            except concurrent.futures.TimeoutError:
                _LOGGER.warning("Image still loading after %.1fs", timeout or 0.0)
        return self._displayed

    def close(self, reason: str = "") -> bool:
        return self._controller.close(reason=reason)

    # Exports ----------------------------------------------------------------

    async def copy_current(self) -> bool:
        if self._displayed is None or not self._controller.is_open:
            return False
        return await self._exporter.copy(self._displayed)

    async def save_current(self) -> bool:
        if self._displayed is None or not self._controller.is_open:
            return False
        return await self._exporter.save(self._displayed)

    def shutdown(self) -> None:
        self._controller.close(reason="shutdown")
        if self._owns_worker:
            self._worker.stop()
        self._fetcher.close()

    # Controller hooks -------------------------------------------------------

    def _suspend_scrolling(self) -> None:
        self.scroll_suspended = True

    def _restore_scrolling(self) -> None:
        self.scroll_suspended = False

    def _release_view(self) -> None:
        view = self._view
        self._view = None
        self._displayed = None
        release = getattr(view, "release", None)
        if callable(release):
            release()

    def _attach_drag_listeners(self) -> None:
        attach = getattr(self._view, "attach_drag_listeners", None)
        if callable(attach):
            attach()

    def _detach_drag_listeners(self) -> None:
        detach = getattr(self._view, "detach_drag_listeners", None)
        if callable(detach):
            detach()
