"""Gallery of older issues: cover cards grouped by year."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from PySide6.QtCore import QSize, Qt, Signal
from PySide6.QtGui import QColor, QIcon, QPixmap
from PySide6.QtWidgets import QComboBox, QGridLayout, QHBoxLayout, QLabel, QToolButton, QVBoxLayout, QWidget

from ...api.models import Magazine
from ...models.bitmap import Bitmap
from ...models.layout import PAGE_RATIO
from ...pipeline.loader import LoadError
from ...pipeline.rasterizer import RenderError
from ..services.async_tasks import spawn
from ..services.catalog import available_years, filter_by_year
from ..services.viewer_session import COVER_WIDTH, ViewerSession
from ..theme import tokens
from .flipbook_view import bitmap_to_qimage

logger = logging.getLogger(__name__)

COLUMNS = 4
CARD_ICON_WIDTH = 160


class MagazineGallery(QWidget):
    """Grid of cover cards with a year filter; emits magazineSelected on click."""

    magazineSelected = Signal(object)

    def __init__(self, cover_session: ViewerSession, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.cover_session = cover_session
        self._magazines: List[Magazine] = []
        self._cards: Dict[str, QToolButton] = {}

        layout = QVBoxLayout(self)
        header = QHBoxLayout()
        title = QLabel("Archive")
        title.setObjectName("section_title")
        self._year_combo = QComboBox()
        self._year_combo.setObjectName("gallery_year_filter")
        self._year_combo.currentIndexChanged.connect(self._rebuild)
        header.addWidget(title)
        header.addStretch()
        header.addWidget(QLabel("Year:"))
        header.addWidget(self._year_combo)
        layout.addLayout(header)

        self._empty_label = QLabel("No older issues yet.")
        self._empty_label.setObjectName("muted_label")
        layout.addWidget(self._empty_label)

        self._grid = QGridLayout()
        layout.addLayout(self._grid)
        layout.addStretch()

    @property
    def selected_year(self) -> Optional[int]:
        return self._year_combo.currentData()

    def set_magazines(self, magazines: List[Magazine]) -> None:
        """Replace the gallery contents and reset the year filter."""
        self._magazines = list(magazines)
        self._year_combo.blockSignals(True)
        self._year_combo.clear()
        self._year_combo.addItem("All years", None)
        for year in available_years(self._magazines):
            self._year_combo.addItem(str(year), year)
        self._year_combo.blockSignals(False)
        self._rebuild()

    def _rebuild(self) -> None:
        while self._grid.count():
            item = self._grid.takeAt(0)
            if item.widget() is not None:
                item.widget().deleteLater()
        self._cards = {}

        shown = filter_by_year(self._magazines, self.selected_year)
        self._empty_label.setVisible(not shown)
        for position, magazine in enumerate(shown):
            card = self._make_card(magazine)
            self._cards[magazine.id] = card
            self._grid.addWidget(card, position // COLUMNS, position % COLUMNS)
            spawn(self._load_cover(magazine))

    def _make_card(self, magazine: Magazine) -> QToolButton:
        card = QToolButton()
        card.setObjectName("cover_card")
        card.setToolButtonStyle(Qt.ToolButtonStyle.ToolButtonTextUnderIcon)
        card.setText(magazine.title)
        card.setToolTip(magazine.title)
        icon_size = QSize(CARD_ICON_WIDTH, round(CARD_ICON_WIDTH * PAGE_RATIO))
        card.setIconSize(icon_size)
        placeholder = QPixmap(icon_size)
        placeholder.fill(QColor(tokens.colors["cover_placeholder"]))
        card.setIcon(QIcon(placeholder))
        card.clicked.connect(lambda checked=False, m=magazine: self.magazineSelected.emit(m))
        return card

    async def _load_cover(self, magazine: Magazine) -> None:
        try:
            outcome = await self.cover_session.render_cover(magazine, COVER_WIDTH)
        except (LoadError, RenderError) as e:
            logger.warning(f"Cover for {magazine.id} unavailable: {e}")
            return
        card = self._cards.get(magazine.id)
        if card is None or not isinstance(outcome, Bitmap):
            return
        card.setIcon(QIcon(QPixmap.fromImage(bitmap_to_qimage(outcome))))
