from .controller import MagnifierController
from .state import CLOSED_STATE, MAX_ZOOM, MIN_ZOOM, ZOOM_LADDER, MagnifierState
from .transform import OverlayTransform

__all__ = [
    "CLOSED_STATE",
    "MAX_ZOOM",
    "MIN_ZOOM",
    "MagnifierController",
    "MagnifierState",
    "OverlayTransform",
    "ZOOM_LADDER",
]
