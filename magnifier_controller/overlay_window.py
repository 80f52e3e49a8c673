"""Full-window Qt view bound to a MagnifierController."""
from __future__ import annotations

import logging
from typing import Optional

from PyQt6.QtCore import QPointF, QRectF, Qt, pyqtSignal
from PyQt6.QtGui import QColor, QCursor, QImage, QPainter, QPixmap
from PyQt6.QtWidgets import QHBoxLayout, QLabel, QPushButton, QWidget

from magnifier_controller.controller import MagnifierController
from magnifier_controller.state import MagnifierState

_LOGGER = logging.getLogger("ModernMagnifier.Controller.Overlay")

BACKDROP_COLOR = QColor(0, 0, 0, 216)
FIT_FRACTION = 0.9
# Qt reports one wheel notch as 120 units; browsers report roughly 100 pixels.
WHEEL_UNITS_PER_PIXEL = 1.2

_CURSOR_SHAPES = {
    "grabbing": Qt.CursorShape.ClosedHandCursor,
    "grab": Qt.CursorShape.OpenHandCursor,
    "default": Qt.CursorShape.ArrowCursor,
}


class MagnifierOverlay(QWidget):
    """Backdrop, toolbar and the transformed image for one open magnifier."""

    copy_requested = pyqtSignal()
    save_requested = pyqtSignal()

    def __init__(self, controller: MagnifierController, image: Optional[QImage], parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._controller = controller
        self._pixmap: Optional[QPixmap] = None
        self._releasing = False
        self.set_image(image)

        self.setWindowFlag(Qt.WindowType.FramelessWindowHint, True)
        self.setWindowFlag(Qt.WindowType.WindowStaysOnTopHint, True)
        self.setAttribute(Qt.WidgetAttribute.WA_TranslucentBackground, True)
        self.setAttribute(Qt.WidgetAttribute.WA_DeleteOnClose, True)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setMouseTracking(True)

        self._toolbar = QWidget(self)
        layout = QHBoxLayout(self._toolbar)
        layout.setContentsMargins(8, 4, 8, 4)
        self._zoom_out_button = QPushButton("−", self._toolbar)
        self._zoom_out_button.setToolTip("Zoom out")
        self._zoom_label = QLabel(controller.zoom_label(), self._toolbar)
        self._zoom_in_button = QPushButton("+", self._toolbar)
        self._zoom_in_button.setToolTip("Zoom in")
        self._copy_button = QPushButton("Copy", self._toolbar)
        self._copy_button.setToolTip("Copy image")
        self._save_button = QPushButton("Save", self._toolbar)
        self._save_button.setToolTip("Save image")
        self._close_button = QPushButton("✕", self._toolbar)
        self._close_button.setToolTip("Close (Esc)")
        self._notice_label = QLabel("", self._toolbar)
        for widget in (
            self._zoom_out_button,
            self._zoom_label,
            self._zoom_in_button,
            self._copy_button,
            self._save_button,
            self._close_button,
            self._notice_label,
        ):
            layout.addWidget(widget)

        self._zoom_out_button.clicked.connect(lambda: controller.step_zoom(-1))
        self._zoom_in_button.clicked.connect(lambda: controller.step_zoom(1))
        self._copy_button.clicked.connect(self.copy_requested.emit)
        self._save_button.clicked.connect(self.save_requested.emit)
        self._close_button.clicked.connect(lambda: controller.close(reason="close_button"))

        controller.add_listener(self._on_state_changed)
        self._on_state_changed(controller.state)

    # Geometry ---------------------------------------------------------------

    def image_center(self) -> QPointF:
        return QRectF(self.rect()).center()

    def base_image_rect(self) -> QRectF:
        """Untransformed image rectangle, centred on the origin and fitted to the window."""
        if self._pixmap is None:
            return QRectF()
        width = float(self._pixmap.width())
        height = float(self._pixmap.height())
        max_width = max(1.0, self.width() * FIT_FRACTION)
        max_height = max(1.0, self.height() * FIT_FRACTION)
        fit = min(1.0, max_width / width if width else 1.0, max_height / height if height else 1.0)
        width *= fit
        height *= fit
        return QRectF(-width / 2.0, -height / 2.0, width, height)

    def image_contains(self, position: QPointF) -> bool:
        center = self.image_center()
        content_x, content_y = self._controller.transform().content_point(
            position.x() - center.x(), position.y() - center.y()
        )
        return self.base_image_rect().contains(QPointF(content_x, content_y))

    # Controller hooks -------------------------------------------------------

    def attach_drag_listeners(self) -> None:
        self.grabMouse()

    def detach_drag_listeners(self) -> None:
        self.releaseMouse()

    def set_image(self, image: Optional[QImage]) -> None:
        """Bind decoded pixels; the overlay opens before its image has loaded."""
        if image is None or image.isNull():
            self._pixmap = None
        else:
            self._pixmap = QPixmap.fromImage(image)
        self.update()

    def show_notice(self, message: str) -> None:
        self._notice_label.setText(message)
        self._place_toolbar()

    def release(self) -> None:
        """Drop the view entirely; a later open builds a fresh one."""
        self._releasing = True
        self._controller.remove_listener(self._on_state_changed)
        self.close()

    def _on_state_changed(self, state: MagnifierState) -> None:
        if not state.is_open:
            return
        self._zoom_label.setText(self._controller.zoom_label())
        self.setCursor(QCursor(_CURSOR_SHAPES.get(self._controller.cursor_hint(), Qt.CursorShape.ArrowCursor)))
        self.update()

    # Qt events --------------------------------------------------------------

    def resizeEvent(self, event) -> None:  # type: ignore[override]
        QWidget.resizeEvent(self, event)
        self._place_toolbar()

    def _place_toolbar(self) -> None:
        hint = self._toolbar.sizeHint()
        self._toolbar.setGeometry(
            int((self.width() - hint.width()) / 2),
            12,
            hint.width(),
            hint.height(),
        )

    def paintEvent(self, event) -> None:  # type: ignore[override]
        painter = QPainter(self)
        try:
            painter.fillRect(self.rect(), BACKDROP_COLOR)
            if self._pixmap is None:
                return
            painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform, True)
            center = self.image_center()
            painter.translate(center)
            painter.setTransform(self._controller.transform().to_qtransform(), True)
            painter.drawPixmap(self.base_image_rect(), self._pixmap, QRectF(self._pixmap.rect()))
        finally:
            painter.end()

    def wheelEvent(self, event) -> None:  # type: ignore[override]
        delta = -event.angleDelta().y() / WHEEL_UNITS_PER_PIXEL
        if not delta:
            event.ignore()
            return
        center = self.image_center()
        position = event.position()
        self._controller.wheel_zoom(delta, position.x() - center.x(), position.y() - center.y())
        event.accept()

    def mousePressEvent(self, event) -> None:  # type: ignore[override]
        if event.button() != Qt.MouseButton.LeftButton:
            QWidget.mousePressEvent(self, event)
            return
        if self.image_contains(event.position()):
            global_position = event.globalPosition()
            self._controller.pan_start(global_position.x(), global_position.y())
        else:
            self._controller.close(reason="backdrop")
        event.accept()

    def mouseMoveEvent(self, event) -> None:  # type: ignore[override]
        global_position = event.globalPosition()
        if self._controller.pan_move(global_position.x(), global_position.y()):
            event.accept()
            return
        QWidget.mouseMoveEvent(self, event)

    def mouseReleaseEvent(self, event) -> None:  # type: ignore[override]
        if event.button() == Qt.MouseButton.LeftButton and self._controller.pan_end():
            event.accept()
            return
        QWidget.mouseReleaseEvent(self, event)

    def leaveEvent(self, event) -> None:  # type: ignore[override]
        self._controller.pan_cancel("pointer_left")
        QWidget.leaveEvent(self, event)

    def focusOutEvent(self, event) -> None:  # type: ignore[override]
        self._controller.pan_cancel("focus_lost")
        QWidget.focusOutEvent(self, event)

    def keyPressEvent(self, event) -> None:  # type: ignore[override]
        if event.key() == Qt.Key.Key_Escape:
            self._controller.close(reason="escape")
            event.accept()
            return
        QWidget.keyPressEvent(self, event)

    def closeEvent(self, event) -> None:  # type: ignore[override]
        if not self._releasing and self._controller.is_open:
            _LOGGER.debug("Overlay window closed externally; closing magnifier")
            self._controller.close(reason="window_closed")
        QWidget.closeEvent(self, event)
