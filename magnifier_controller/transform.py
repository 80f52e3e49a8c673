"""Overlay image placement: translate(pan) followed by scale(zoom)."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from PyQt6.QtGui import QTransform


@dataclass(frozen=True)
class OverlayTransform:
    """Maps image content coordinates (relative to the image centre) to overlay pixels.

    Translation is expressed in unscaled overlay pixels and applied before the
    scale, so ``map_point(p) == p * zoom + pan`` and pan amounts do not depend
    on the zoom level.
    """

    pan_x: float = 0.0
    pan_y: float = 0.0
    zoom: float = 1.0

    def map_point(self, x: float, y: float) -> Tuple[float, float]:
        return x * self.zoom + self.pan_x, y * self.zoom + self.pan_y

    def content_point(self, x: float, y: float) -> Tuple[float, float]:
        """Inverse of ``map_point``: which content point sits under overlay point (x, y)."""
        return (x - self.pan_x) / self.zoom, (y - self.pan_y) / self.zoom

    def to_css(self) -> str:
        return f"translate({self.pan_x:g}px, {self.pan_y:g}px) scale({self.zoom:g})"

    def to_qtransform(self) -> QTransform:
        transform = QTransform()
        transform.translate(self.pan_x, self.pan_y)
        transform.scale(self.zoom, self.zoom)
        return transform
