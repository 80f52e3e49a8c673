from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, List, Optional, Tuple

from magnifier_controller.state import (
    CLOSED_STATE,
    DEFAULT_ZOOM,
    MagnifierState,
    ZOOM_LADDER,
    clamp_zoom,
)
from magnifier_controller.transform import OverlayTransform

_LOGGER = logging.getLogger("ModernMagnifier.Controller")

DEFAULT_WHEEL_SENSITIVITY = 0.002

HookFn = Callable[[], None]
StateListener = Callable[[MagnifierState], None]


def _noop() -> None:
    return None


class MagnifierController:
    """Owns the single magnifier overlay: open/close, zoom, and drag panning.

    Host side effects are injected as callables: page scroll suspension, view
    teardown on close, and registration of the global pointer listeners that
    exist only while a drag is in progress.
    """

    def __init__(
        self,
        *,
        suspend_scrolling_fn: HookFn = _noop,
        restore_scrolling_fn: HookFn = _noop,
        teardown_fn: HookFn = _noop,
        attach_drag_listeners_fn: HookFn = _noop,
        detach_drag_listeners_fn: HookFn = _noop,
        wheel_sensitivity: float = DEFAULT_WHEEL_SENSITIVITY,
    ) -> None:
        self._suspend_scrolling = suspend_scrolling_fn
        self._restore_scrolling = restore_scrolling_fn
        self._teardown = teardown_fn
        self._attach_drag_listeners = attach_drag_listeners_fn
        self._detach_drag_listeners = detach_drag_listeners_fn
        self._wheel_sensitivity = float(wheel_sensitivity)
        self._state: MagnifierState = CLOSED_STATE
        self._drag_offset: Tuple[float, float] = (0.0, 0.0)
        self._listeners: List[StateListener] = []

    @property
    def state(self) -> MagnifierState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state.is_open

    def add_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: StateListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    # Open / close -----------------------------------------------------------

    def open(self, image_url: str) -> bool:
        if self._state.is_open:
            _LOGGER.debug("Ignoring open request; overlay already showing %s", self._state.image_url)
            return False
        if not image_url:
            _LOGGER.debug("Ignoring open request without an image URL")
            return False
        self._drag_offset = (0.0, 0.0)
        self._commit(MagnifierState(image_url=image_url, zoom=DEFAULT_ZOOM, is_open=True))
        self._suspend_scrolling()
        _LOGGER.debug("Magnifier opened")
        return True

    def close(self, *, reason: str = "") -> bool:
        if not self._state.is_open:
            return False
        if self._state.is_panning:
            self._finish_drag()
        self._state = CLOSED_STATE
        self._drag_offset = (0.0, 0.0)
        try:
            self._teardown()
        finally:
            self._restore_scrolling()
        _LOGGER.debug("Magnifier closed (reason=%s)", reason or "unspecified")
        self._notify()
        return True

    # Zoom -------------------------------------------------------------------

    def step_zoom(self, direction: int) -> float:
        """Move one ladder position up (direction > 0) or down."""
        if not self._state.is_open:
            return self._state.zoom
        zoom = self._state.zoom
        last = len(ZOOM_LADDER) - 1
        current_index = next((index for index, level in enumerate(ZOOM_LADDER) if level >= zoom), -1)
        if direction > 0:
            next_index = last if current_index == -1 else min(current_index + 1, last)
        else:
            index = 1 if current_index <= 0 else current_index
            next_index = index - 1
        return self.zoom_to(ZOOM_LADDER[next_index])

    def wheel_zoom(self, delta: float, cursor_x: float, cursor_y: float) -> float:
        """Zoom by a wheel delta, keeping the content under the cursor in place.

        ``cursor_x``/``cursor_y`` are relative to the image's visual centre.
        """
        state = self._state
        if not state.is_open:
            return state.zoom
        zoom_factor = 1.0 + (-delta) * self._wheel_sensitivity
        proposed = state.zoom * zoom_factor
        scale_change = clamp_zoom(proposed) / state.zoom
        pan_x = cursor_x - scale_change * (cursor_x - state.pan_x)
        pan_y = cursor_y - scale_change * (cursor_y - state.pan_y)
        return self.zoom_to(proposed, pan=(pan_x, pan_y))

    def zoom_to(self, zoom: float, *, pan: Optional[Tuple[float, float]] = None) -> float:
        state = self._state
        if not state.is_open:
            return state.zoom
        new_zoom = clamp_zoom(zoom)
        pan_x, pan_y = pan if pan is not None else state.pan
        if new_zoom <= 1.0:
            pan_x, pan_y = 0.0, 0.0
        self._commit(replace(state, zoom=new_zoom, pan_x=pan_x, pan_y=pan_y))
        return new_zoom

    # Pan drag ---------------------------------------------------------------

    def pan_start(self, pointer_x: float, pointer_y: float) -> bool:
        state = self._state
        if not state.is_open or state.is_panning or state.zoom <= 1.0:
            return False
        self._drag_offset = (pointer_x - state.pan_x, pointer_y - state.pan_y)
        self._commit(replace(state, is_panning=True))
        self._attach_drag_listeners()
        return True

    def pan_move(self, pointer_x: float, pointer_y: float) -> bool:
        state = self._state
        if not state.is_panning:
            return False
        offset_x, offset_y = self._drag_offset
        self._commit(replace(state, pan_x=pointer_x - offset_x, pan_y=pointer_y - offset_y))
        return True

    def pan_end(self) -> bool:
        if not self._state.is_panning:
            return False
        self._finish_drag()
        self._notify()
        return True

    def pan_cancel(self, reason: str = "") -> bool:
        """End a drag that lost its pointer (left the window, focus lost)."""
        if not self._state.is_panning:
            return False
        _LOGGER.debug("Pan drag cancelled (reason=%s)", reason or "unspecified")
        return self.pan_end()

    def _finish_drag(self) -> None:
        self._state = replace(self._state, is_panning=False)
        self._detach_drag_listeners()

    # Presentation -----------------------------------------------------------

    def transform(self) -> OverlayTransform:
        state = self._state
        return OverlayTransform(pan_x=state.pan_x, pan_y=state.pan_y, zoom=state.zoom)

    def zoom_label(self) -> str:
        return f"{self._state.zoom:.1f}x"

    def cursor_hint(self) -> str:
        if self._state.is_panning:
            return "grabbing"
        return "grab" if self._state.zoom > 1.0 else "default"

    # Internals --------------------------------------------------------------

    def _commit(self, state: MagnifierState) -> None:
        self._state = state
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                _LOGGER.exception("Magnifier state listener failed")
