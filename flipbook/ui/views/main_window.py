"""Main window: a client's magazine page with the latest issue inline and the archive below."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from PySide6.QtCore import Qt
from PySide6.QtGui import QAction, QKeySequence
from PySide6.QtWidgets import (
    QDialog,
    QFileDialog,
    QLabel,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QScrollArea,
    QStackedWidget,
    QToolBar,
    QVBoxLayout,
    QWidget,
)

from ...api.client import MagazineAPIClient
from ...api.models import Magazine
from ...config.profile_loader import ViewerProfile
from ...config.profile_manager import get_profile
from ...config.settings import get_app_name, get_app_version, get_sound_url
from ...models.layout import DisplayMode
from ...pipeline.cover_cache import CoverCache
from ...pipeline.sound import SoundEngine
from ..services.async_tasks import spawn
from ..services.catalog import MagazineCatalog
from ..services.viewer_session import ViewerSession
from .admin_dialog import AdminDialog
from .flipbook_view import FlipbookView
from .gallery import MagazineGallery
from .login_dialog import LoginDialog

logger = logging.getLogger(__name__)

INLINE_MIN_HEIGHT = 420


class LightboxDialog(QDialog):
    """Modal flipbook for one magazine; the document is released on close."""

    def __init__(self, session: ViewerSession, title: str, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.setWindowTitle(title)
        self.resize(1200, 800)
        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        self.view = FlipbookView(session)
        self.view.fullscreenRequested.connect(self._set_fullscreen)
        layout.addWidget(self.view)

    def _set_fullscreen(self, enabled: bool) -> None:
        if enabled:
            self.showFullScreen()
        else:
            self.showNormal()
            self.view.session.layout.set_display_mode(DisplayMode.MODAL)

    def done(self, result: int) -> None:
        self.view.close_document()
        super().done(result)


class MainWindow(QMainWindow):
    """Client magazine page."""

    def __init__(
        self,
        client: MagazineAPIClient,
        client_slug: str,
        profile: Optional[ViewerProfile] = None,
    ):
        super().__init__()
        self.client = client
        self.client_slug = client_slug
        self.profile = profile or get_profile()
        self.catalog = MagazineCatalog(client, client_slug)
        self.cover_cache = CoverCache(self.profile.cover_cache_capacity)
        self.sound = SoundEngine(
            sample_url=self.profile.sound_url or get_sound_url(),
            enabled=self.profile.sound_enabled,
        )
        self._lightbox: Optional[LightboxDialog] = None

        self.setWindowTitle(f"{get_app_name()} - {client_slug}")
        self.resize(1280, 900)

        self.setup_menu_bar()
        self.setup_ui()

    def _new_session(self, display_mode: DisplayMode) -> ViewerSession:
        return ViewerSession(
            profile=self.profile, cover_cache=self.cover_cache, sound=self.sound, display_mode=display_mode
        )

    def setup_menu_bar(self):
        menubar = self.menuBar()
        file_menu = menubar.addMenu("File")
        open_action = file_menu.addAction("Open PDF...")
        open_action.setShortcut(QKeySequence.StandardKey.Open)
        open_action.triggered.connect(self.open_local_pdf)

        help_menu = menubar.addMenu("Help")
        about_action = help_menu.addAction(f"About {get_app_name()}...")
        about_action.triggered.connect(self.open_about)

    def setup_ui(self):
        """Toolbar, then stacked empty state | magazine page."""
        toolbar = QToolBar()
        toolbar.setObjectName("main_toolbar")
        self.addToolBar(toolbar)

        refresh_action = QAction("Refresh", self)
        refresh_action.setShortcut(QKeySequence.StandardKey.Refresh)
        refresh_action.triggered.connect(lambda: spawn(self.reload()))
        toolbar.addAction(refresh_action)

        admin_action = QAction("Manage", self)
        admin_action.setShortcut(QKeySequence("Ctrl+M"))
        admin_action.triggered.connect(self.open_admin)
        toolbar.addAction(admin_action)

        self.stacked = QStackedWidget()
        self.setCentralWidget(self.stacked)

        # Empty state: nothing published or API unreachable
        empty_widget = QWidget()
        empty_layout = QVBoxLayout(empty_widget)
        empty_layout.addStretch()
        self.empty_label = QLabel("No magazines published yet.")
        self.empty_label.setObjectName("muted_label")
        self.empty_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.empty_label.setWordWrap(True)
        empty_layout.addWidget(self.empty_label)
        retry_btn = QPushButton("Try again")
        retry_btn.setMinimumHeight(44)
        retry_btn.clicked.connect(lambda: spawn(self.reload()))
        empty_layout.addWidget(retry_btn, alignment=Qt.AlignmentFlag.AlignCenter)
        empty_layout.addStretch()
        self.stacked.addWidget(empty_widget)

        # Content: latest issue inline, archive gallery below
        scroll = QScrollArea()
        scroll.setWidgetResizable(True)
        page = QWidget()
        page_layout = QVBoxLayout(page)
        self.latest_title = QLabel("")
        self.latest_title.setObjectName("page_title")
        page_layout.addWidget(self.latest_title)

        self.inline_view = FlipbookView(self._new_session(DisplayMode.INLINE))
        self.inline_view.setMinimumHeight(INLINE_MIN_HEIGHT)
        self.inline_view.heightChanged.connect(self._on_inline_height)
        self.inline_view.fullscreenRequested.connect(self._on_inline_fullscreen)
        page_layout.addWidget(self.inline_view)

        self.gallery = MagazineGallery(self._new_session(DisplayMode.INLINE))
        self.gallery.magazineSelected.connect(self.open_lightbox)
        page_layout.addWidget(self.gallery)
        scroll.setWidget(page)
        self.stacked.addWidget(scroll)

        self.statusBar().showMessage("Ready")

    # Loading

    async def reload(self) -> None:
        """Refresh the catalogue and show the latest issue."""
        self.statusBar().showMessage("Loading magazines...")
        ok = await asyncio.to_thread(self.catalog.refresh)
        latest = self.catalog.latest
        if latest is None:
            self.empty_label.setText(
                f"Magazines could not be loaded.\n{self.catalog.error}" if not ok
                else "No magazines published yet."
            )
            self.stacked.setCurrentIndex(0)
            self.statusBar().showMessage("")
            return

        self.stacked.setCurrentIndex(1)
        self.latest_title.setText(latest.title)
        self.gallery.set_magazines(self.catalog.gallery)
        self.statusBar().showMessage(f"{len(self.catalog.magazines)} magazines")
        await self.inline_view.open(latest.pdf_url)

    def _on_inline_height(self, message: dict) -> None:
        height = ViewerSession.parse_height_message(message)
        if height is not None:
            self.inline_view.setMinimumHeight(max(INLINE_MIN_HEIGHT, height))

    def _on_inline_fullscreen(self, enabled: bool) -> None:
        if enabled:
            self.showFullScreen()
        else:
            self.showNormal()

    # Actions

    def open_lightbox(self, magazine: Magazine) -> None:
        logger.info(f"Opening magazine {magazine.id} in lightbox")
        self._open_in_lightbox(magazine.pdf_url, magazine.title)

    def open_local_pdf(self) -> None:
        path, _ = QFileDialog.getOpenFileName(self, "Open PDF", "", "PDF files (*.pdf)")
        if path:
            self._open_in_lightbox(path, path)

    def _open_in_lightbox(self, url: str, title: str) -> None:
        if self._lightbox is not None:
            self._lightbox.close()
        self._lightbox = LightboxDialog(self._new_session(DisplayMode.MODAL), title, self)
        self._lightbox.finished.connect(self._on_lightbox_closed)
        self._lightbox.show()
        spawn(self._lightbox.view.open(url))

    def _on_lightbox_closed(self, result: int) -> None:
        self._lightbox = None

    def open_admin(self) -> None:
        if not self.client.is_authenticated:
            login = LoginDialog(self.client, self)
            login.accepted.connect(self._show_admin)
            login.open()
            return
        self._show_admin()

    def _show_admin(self) -> None:
        dialog = AdminDialog(self.client, self.client_slug, self)
        dialog.magazinesChanged.connect(lambda: spawn(self.reload()))
        dialog.open()

    def open_about(self) -> None:
        QMessageBox.about(
            self,
            get_app_name(),
            f"{get_app_name()} {get_app_version()}\n\nMulti-client PDF flipbook viewer.",
        )

    def closeEvent(self, event) -> None:
        if self._lightbox is not None:
            self._lightbox.close()
        self.inline_view.close_document()
        self.gallery.cover_session.close()
        super().closeEvent(event)
