"""Off-screen raster surface: draw decoded pixels and read them back as PNG.

The first export tier relies on pixels the rendering layer has already
decoded (``DisplayedImage.image``). A surface drawn from a tainted image
refuses read-back, mirroring how a browser canvas behaves for cross-origin
content loaded without permission.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from PyQt6.QtCore import QBuffer, QByteArray, QIODevice, Qt
from PyQt6.QtGui import QImage, QPainter

from magnifier_export.results import ExportFailure, ExportResult

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
PNG_MIME = "image/png"


@dataclass(frozen=True)
class DisplayedImage:
    """Handle to the image currently shown in the overlay."""

    url: str
    image: Optional[QImage] = None
    tainted: bool = False

    @property
    def is_ready(self) -> bool:
        return self.image is not None and not self.image.isNull() and self.image.width() > 0

    @property
    def natural_size(self) -> tuple[int, int]:
        if not self.is_ready:
            return 0, 0
        return self.image.width(), self.image.height()  # type: ignore[union-attr]


def is_png(data: bytes) -> bool:
    return data.startswith(PNG_SIGNATURE)


def decode_image(data: bytes) -> Optional[QImage]:
    image = QImage.fromData(data)
    if image.isNull():
        return None
    return image


def draw_to_surface(image: QImage) -> QImage:
    """Paint ``image`` onto a fresh surface sized to its natural dimensions."""
    surface = QImage(image.width(), image.height(), QImage.Format.Format_ARGB32)
    surface.fill(Qt.GlobalColor.transparent)
    painter = QPainter(surface)
    try:
        painter.drawImage(0, 0, image)
    finally:
        painter.end()
    return surface


def encode_png(surface: QImage) -> Optional[bytes]:
    payload = QByteArray()
    buffer = QBuffer(payload)
    if not buffer.open(QIODevice.OpenModeFlag.WriteOnly):
        return None
    try:
        saved = surface.save(buffer, "PNG")
    finally:
        buffer.close()
    if not saved:
        return None
    data = bytes(payload.data())
    return data or None


def extract_png(image: Optional[QImage], *, tainted: bool = False, tier: int = 1) -> ExportResult:
    """Draw then encode; the shared body of both export tiers."""
    if image is None or image.isNull() or image.width() <= 0 or image.height() <= 0:
        return ExportResult.failed(ExportFailure.IMAGE_NOT_READY, "image has no decoded pixels", tier=tier)
    if tainted:
        return ExportResult.failed(
            ExportFailure.SURFACE_TAINTED, "surface holds cross-origin pixels", tier=tier
        )
    data = encode_png(draw_to_surface(image))
    if not data:
        return ExportResult.failed(ExportFailure.EXTRACTION_FAILED, "PNG encoder returned no data", tier=tier)
    return ExportResult.success(data, tier=tier)
