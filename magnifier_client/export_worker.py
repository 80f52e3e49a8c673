"""Background asyncio loop for image loads and copy/save exports, reporting back to the Qt thread."""
from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from typing import Any, Awaitable, Callable, Optional

from PyQt6.QtCore import QObject, pyqtSignal

_LOGGER = logging.getLogger("ModernMagnifier.Client.ExportWorker")


class ExportWorker(QObject):
    """Runs image loads and export coroutines off the Qt thread.

    Clipboard writes, notices and decoded images are emitted as signals so
    they are delivered on the thread that owns the widgets.
    """

    notice = pyqtSignal(str)
    clipboard_payload = pyqtSignal(bytes)
    image_loaded = pyqtSignal(object)

    def __init__(self) -> None:
        super().__init__()
        self._thread: Optional[threading.Thread] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._ready = threading.Event()

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._ready.clear()
        self._thread = threading.Thread(target=self._thread_main, name="ModernMagnifier-Export", daemon=True)
        self._thread.start()
        self._ready.wait(timeout=5.0)

    def stop(self) -> None:
        loop = self._loop
        if loop is not None and loop.is_running():
            loop.call_soon_threadsafe(loop.stop)
        if self._thread:
            self._thread.join(timeout=5.0)
        self._thread = None
        self._loop = None

    def submit(self, factory: Callable[[], Awaitable[Any]]) -> Optional[concurrent.futures.Future]:
        loop = self._loop
        if loop is None or not loop.is_running():
            _LOGGER.warning("Export worker is not running; dropping request")
            return None
        future = asyncio.run_coroutine_threadsafe(self._guard(factory), loop)
        return future

    def put_png(self, data: bytes) -> bool:
        """ClipboardSink implementation: hand the payload to the Qt thread."""
        if not data:
            return False
        self.clipboard_payload.emit(data)
        return True

    async def _guard(self, factory: Callable[[], Awaitable[Any]]) -> Any:
        try:
            return await factory()
        except Exception:
            _LOGGER.exception("Export task failed")
            return None

    def _thread_main(self) -> None:
        loop = asyncio.new_event_loop()
        self._loop = loop
        asyncio.set_event_loop(loop)
        loop.call_soon(self._ready.set)
        try:
            loop.run_forever()
        finally:
            pending = asyncio.all_tasks(loop)
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()
