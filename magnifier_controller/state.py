from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Tuple

ZOOM_LADDER: Tuple[float, ...] = (0.5, 1.0, 2.0, 4.0, 8.0)
MIN_ZOOM = ZOOM_LADDER[0]
MAX_ZOOM = ZOOM_LADDER[-1]
DEFAULT_ZOOM = 1.0


def clamp_zoom(value: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return DEFAULT_ZOOM
    if math.isnan(number):
        return DEFAULT_ZOOM
    return max(MIN_ZOOM, min(MAX_ZOOM, number))


@dataclass(frozen=True)
class MagnifierState:
    """Snapshot of the magnifier overlay; replaced wholesale on every change."""

    image_url: Optional[str] = None
    zoom: float = DEFAULT_ZOOM
    pan_x: float = 0.0
    pan_y: float = 0.0
    is_open: bool = False
    is_panning: bool = False

    def __post_init__(self) -> None:
        if self.is_open != (self.image_url is not None):
            raise ValueError("is_open must be true exactly when image_url is set")
        if self.is_panning and not self.is_open:
            raise ValueError("a closed magnifier cannot be panning")
        if not MIN_ZOOM <= self.zoom <= MAX_ZOOM:
            raise ValueError(f"zoom {self.zoom!r} outside [{MIN_ZOOM}, {MAX_ZOOM}]")

    @property
    def pan(self) -> Tuple[float, float]:
        return self.pan_x, self.pan_y


CLOSED_STATE = MagnifierState()
