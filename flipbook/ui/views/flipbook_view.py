"""Flipbook reading surface: page spread, flip animation and viewer toolbar."""

from __future__ import annotations

import logging
from typing import Dict, Optional

from PySide6.QtCore import QPointF, QRectF, QSize, Qt, QVariantAnimation, Signal
from PySide6.QtGui import QColor, QIcon, QImage, QKeyEvent, QLinearGradient, QMouseEvent, QPainter, QPixmap
from PySide6.QtWidgets import (
    QLabel,
    QListWidget,
    QListWidgetItem,
    QPushButton,
    QSizePolicy,
    QStackedWidget,
    QToolBar,
    QVBoxLayout,
    QWidget,
)

from ...models.bitmap import Bitmap
from ...models.flip_state import FlipState
from ...models.layout import ContainerSize, DisplayMode, DisplayTransform, LayoutDimensions
from ...pipeline.layout import CHROME_PADDING
from ..services.async_tasks import spawn
from ..services.viewer_session import SessionStatus, ViewerSession
from ..theme import tokens

logger = logging.getLogger(__name__)

# Qt key -> key name understood by the flip controller
_KEY_NAMES = {
    Qt.Key.Key_Right: "ArrowRight",
    Qt.Key.Key_Left: "ArrowLeft",
    Qt.Key.Key_PageDown: "PageDown",
    Qt.Key.Key_PageUp: "PageUp",
    Qt.Key.Key_Space: "Space",
    Qt.Key.Key_Home: "Home",
    Qt.Key.Key_End: "End",
}


def bitmap_to_qimage(bitmap: Bitmap) -> QImage:
    """Copy an RGB bitmap into a QImage."""
    image = QImage(bitmap.samples, bitmap.width, bitmap.height, bitmap.stride, QImage.Format.Format_RGB888)
    return image.copy()


class _SpreadCanvas(QWidget):
    """Paints the rendered pages of the session's surfaces with the display transform."""

    swiped = Signal(float)

    def __init__(self, session: ViewerSession, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.session = session
        self.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Expanding)
        self.setFocusPolicy(Qt.FocusPolicy.NoFocus)
        self._images: Dict[str, QImage] = {}
        self._generations: Dict[str, int] = {}
        self._flip_progress = 0.0
        self._flip_forward = True
        self._press_x: Optional[float] = None

    def set_flip_progress(self, progress: float, forward: bool) -> None:
        self._flip_progress = progress
        self._flip_forward = forward
        self.update()

    def _image(self, slot: str) -> Optional[QImage]:
        surface = self.session.surfaces[slot]
        if surface.bitmap is None:
            self._images.pop(slot, None)
            return None
        if self._generations.get(slot) != surface.generation:
            self._images[slot] = bitmap_to_qimage(surface.bitmap)
            self._generations[slot] = surface.generation
        return self._images.get(slot)

    def paintEvent(self, event) -> None:
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform)
        painter.fillRect(self.rect(), QColor("#e2e8f0"))

        layout = self.session.layout.current
        transform = self.session.layout.transform
        pages = self.session.visible_pages()
        if layout.is_empty or not pages:
            painter.end()
            return

        page_w = layout.page_width * transform.zoom
        page_h = layout.page_height * transform.zoom
        top = transform.offset_y
        left = transform.offset_x
        if len(pages) == 1 and layout.pages_visible == 2:
            # cover or trailing page: keep it on its own side of the spine
            if pages[0] == 0:
                left += page_w

        for slot_index, slot in enumerate(("left", "right")[:len(pages)]):
            target = QRectF(left + slot_index * page_w, top, page_w, page_h)
            image = self._image(slot)
            if image is not None:
                painter.drawImage(target, image)
            else:
                painter.fillRect(target, QColor("#ffffff"))
                painter.setPen(QColor("#dc2626") if self.session.surfaces[slot].failed else QColor("#64748b"))
                text = "Page could not be rendered" if self.session.surfaces[slot].failed else "Loading..."
                painter.drawText(target, Qt.AlignmentFlag.AlignCenter, text)

        if 0.0 < self._flip_progress < 1.0:
            self._paint_flip_shadow(painter, layout, transform)
        painter.end()

    def _paint_flip_shadow(self, painter: QPainter, layout: LayoutDimensions, transform: DisplayTransform) -> None:
        spread_w = transform.content_width
        progress = self._flip_progress if self._flip_forward else 1.0 - self._flip_progress
        x = transform.offset_x + spread_w * (1.0 - progress)
        gradient = QLinearGradient(QPointF(x - 40, 0), QPointF(x + 40, 0))
        gradient.setColorAt(0.0, QColor(0, 0, 0, 0))
        gradient.setColorAt(0.5, QColor(0, 0, 0, 70))
        gradient.setColorAt(1.0, QColor(0, 0, 0, 0))
        painter.fillRect(QRectF(x - 40, transform.offset_y, 80, transform.content_height), gradient)

    def mousePressEvent(self, event: QMouseEvent) -> None:
        self._press_x = event.position().x()
        super().mousePressEvent(event)

    def mouseReleaseEvent(self, event: QMouseEvent) -> None:
        if self._press_x is not None:
            dx = event.position().x() - self._press_x
            self._press_x = None
            if abs(dx) > 5:
                self.swiped.emit(dx)
            else:
                # click on the right half turns forward, left half back
                self.swiped.emit(-1000.0 if event.position().x() > self.width() / 2 else 1000.0)
        super().mouseReleaseEvent(event)


class FlipbookView(QWidget):
    """Flipbook viewer with toolbar (prev/next, page indicator, zoom, thumbnails, sound, fullscreen).

    Owns nothing but widgets; all state lives in the ViewerSession.
    """

    heightChanged = Signal(dict)
    fullscreenRequested = Signal(bool)

    def __init__(self, session: ViewerSession, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.session = session
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self._flip_from = 0

        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)

        toolbar = QToolBar()
        toolbar.setObjectName("flipbook_toolbar")
        self._prev_btn = QPushButton("Previous")
        self._prev_btn.setObjectName("flipbook_prev")
        self._next_btn = QPushButton("Next")
        self._next_btn.setObjectName("flipbook_next")
        self._page_label = QLabel("")
        self._page_label.setObjectName("flipbook_page_indicator")
        zoom_out_btn = QPushButton("-")
        zoom_out_btn.setObjectName("flipbook_zoom_out")
        self._zoom_label = QLabel("100%")
        zoom_in_btn = QPushButton("+")
        zoom_in_btn.setObjectName("flipbook_zoom_in")
        self._thumbs_btn = QPushButton("Pages")
        self._thumbs_btn.setCheckable(True)
        self._sound_btn = QPushButton("Sound on" if not session.sound.muted else "Sound off")
        self._sound_btn.setObjectName("flipbook_sound")
        self._fullscreen_btn = QPushButton("Fullscreen")
        self._fullscreen_btn.setCheckable(True)

        toolbar.addWidget(self._prev_btn)
        toolbar.addWidget(self._page_label)
        toolbar.addWidget(self._next_btn)
        toolbar.addSeparator()
        toolbar.addWidget(zoom_out_btn)
        toolbar.addWidget(self._zoom_label)
        toolbar.addWidget(zoom_in_btn)
        toolbar.addSeparator()
        toolbar.addWidget(self._thumbs_btn)
        toolbar.addWidget(self._sound_btn)
        toolbar.addWidget(self._fullscreen_btn)

        self._stack = QStackedWidget()
        self._loading_label = QLabel("Loading magazine...")
        self._loading_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self._error_label = QLabel("")
        self._error_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self._error_label.setObjectName("flipbook_error")
        self._error_label.setWordWrap(True)
        self._canvas = _SpreadCanvas(session)
        self._thumbs = QListWidget()
        self._thumbs.setViewMode(QListWidget.ViewMode.IconMode)
        self._thumbs.setIconSize(QSize(120, 170))
        self._thumbs.setResizeMode(QListWidget.ResizeMode.Adjust)
        for widget in (self._loading_label, self._error_label, self._canvas, self._thumbs):
            self._stack.addWidget(widget)

        layout.addWidget(toolbar)
        layout.addWidget(self._stack)

        self._animation = QVariantAnimation(self)
        self._animation.setStartValue(0.0)
        self._animation.setEndValue(1.0)
        self._animation.setDuration(int(session.flip.duration * 1000))
        self._animation.valueChanged.connect(self._on_animation_value)

        self._prev_btn.clicked.connect(lambda: spawn(self.session.prev_page()))
        self._next_btn.clicked.connect(lambda: spawn(self.session.next_page()))
        zoom_in_btn.clicked.connect(self._zoom_in)
        zoom_out_btn.clicked.connect(self._zoom_out)
        self._thumbs_btn.toggled.connect(self._toggle_thumbnails)
        self._thumbs.itemClicked.connect(self._on_thumbnail_clicked)
        self._sound_btn.clicked.connect(self._toggle_sound)
        self._fullscreen_btn.toggled.connect(self._toggle_fullscreen)
        self._canvas.swiped.connect(lambda dx: spawn(self.session.flip.handle_swipe(dx)))

        self._unsubscribe = [
            session.subscribe_status(self._on_status),
            session.flip.subscribe(self._on_flip),
            session.layout.subscribe(self._on_layout),
        ]
        self._on_status(session.status, session.error)

    # Public

    async def open(self, url: str) -> bool:
        """Open a PDF and render its first spread."""
        self._thumbs_btn.setChecked(False)
        self._thumbs.clear()
        if not self.session.sound.has_sample:
            spawn(self.session.sound.load_sample())
        opened = await self.session.open(url)
        if opened:
            self._notify_resize()
            await self._render()
        return opened

    def close_document(self) -> None:
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []
        self.session.close()

    # Session listeners

    def _on_status(self, status: SessionStatus, error: Optional[str]) -> None:
        if status == SessionStatus.LOADING:
            self._stack.setCurrentWidget(self._loading_label)
        elif status == SessionStatus.ERROR:
            self._error_label.setText(f"This magazine could not be opened.\n{error or ''}")
            self._stack.setCurrentWidget(self._error_label)
        elif status == SessionStatus.READY:
            self._stack.setCurrentWidget(self._canvas)
        self._update_controls()

    def _on_flip(self, state: FlipState) -> None:
        if state.is_animating:
            self._flip_from = state.current_page_index
            forward = (state.target_page_index or 0) > state.current_page_index
            self._animation.stop()
            self._animation.setProperty("forward", forward)
            self._animation.start()
        else:
            self._canvas.set_flip_progress(0.0, True)
            spawn(self._render())
        self._update_controls()

    def _on_layout(self, layout: LayoutDimensions, transform: DisplayTransform) -> None:
        self._zoom_label.setText(f"{round(transform.zoom * 100)}%")
        pad_y = CHROME_PADDING[layout.display_mode][1]
        self.heightChanged.emit(self.session.height_message(layout.page_height + pad_y))
        spawn(self._render())

    def _on_animation_value(self, value) -> None:
        self._canvas.set_flip_progress(float(value), bool(self._animation.property("forward")))

    # Rendering

    async def _render(self) -> None:
        await self.session.render_visible()
        self._canvas.update()

    async def _load_thumbnails(self) -> None:
        self._thumbs.clear()
        async for index, bitmap in self.session.render_thumbnails():
            if bitmap is not None:
                pixmap = QPixmap.fromImage(bitmap_to_qimage(bitmap))
            else:
                pixmap = QPixmap(self._thumbs.iconSize())
                pixmap.fill(QColor(tokens.colors["cover_placeholder"]))
            item = QListWidgetItem(QIcon(pixmap), str(index + 1))
            item.setData(Qt.ItemDataRole.UserRole, index)
            self._thumbs.addItem(item)

    # Controls

    def _update_controls(self) -> None:
        state = self.session.flip.state
        ready = self.session.status == SessionStatus.READY and state.total_pages > 0
        self._prev_btn.setEnabled(ready and not state.is_first)
        self._next_btn.setEnabled(ready and not state.is_last)
        if not ready:
            self._page_label.setText("")
            return
        pages = self.session.visible_pages()
        shown = " - ".join(str(index + 1) for index in pages)
        self._page_label.setText(f"{shown} / {state.total_pages}")

    def _zoom_in(self) -> None:
        self.session.layout.zoom_in()

    def _zoom_out(self) -> None:
        self.session.layout.zoom_out()

    def _toggle_thumbnails(self, checked: bool) -> None:
        if self.session.status != SessionStatus.READY:
            return
        if checked:
            self._stack.setCurrentWidget(self._thumbs)
            if self._thumbs.count() == 0:
                spawn(self._load_thumbnails())
        else:
            self._stack.setCurrentWidget(self._canvas)

    def _on_thumbnail_clicked(self, item: QListWidgetItem) -> None:
        index = item.data(Qt.ItemDataRole.UserRole)
        self._thumbs_btn.setChecked(False)
        spawn(self.session.go_to_page(int(index)))

    def _toggle_sound(self) -> None:
        enabled = self.session.toggle_sound()
        self._sound_btn.setText("Sound on" if enabled else "Sound off")

    def _toggle_fullscreen(self, checked: bool) -> None:
        self.session.layout.set_display_mode(DisplayMode.FULLSCREEN if checked else DisplayMode.INLINE)
        self.fullscreenRequested.emit(checked)

    # Qt events

    def _notify_resize(self) -> None:
        size = self._stack.size()
        window = self.window()
        self.session.layout.notify_resize(
            ContainerSize(float(size.width()), float(size.height())),
            viewport_width=float(window.width()) if window is not None else None,
        )

    def resizeEvent(self, event) -> None:
        super().resizeEvent(event)
        self._notify_resize()

    def keyPressEvent(self, event: QKeyEvent) -> None:
        name = _KEY_NAMES.get(Qt.Key(event.key()))
        if name is None:
            super().keyPressEvent(event)
            return
        if name in ("Home", "End") and self._thumbs_btn.isChecked():
            self._thumbs_btn.setChecked(False)
        spawn(self.session.handle_key(name))
        event.accept()

    def closeEvent(self, event) -> None:
        self.close_document()
        super().closeEvent(event)
