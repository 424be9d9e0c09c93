"""Admin dialog: upload, publish/unpublish, reorder and delete magazines."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

from PySide6.QtCore import Qt, Signal
from PySide6.QtWidgets import (
    QAbstractItemView,
    QDialog,
    QFileDialog,
    QHBoxLayout,
    QInputDialog,
    QLabel,
    QMessageBox,
    QPushButton,
    QTableWidget,
    QTableWidgetItem,
    QVBoxLayout,
    QWidget,
)

from ...api.client import APIClientError, MagazineAPIClient
from ...api.models import Magazine
from ..services.async_tasks import spawn

logger = logging.getLogger(__name__)

COLUMNS = ["Title", "Status", "Pages", "Uploaded"]


class AdminDialog(QDialog):
    """Manage the magazines of one client. Emits magazinesChanged after any edit."""

    magazinesChanged = Signal()

    def __init__(self, client: MagazineAPIClient, client_slug: str, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.client = client
        self.client_slug = client_slug
        self._magazines: List[Magazine] = []
        self.setWindowTitle(f"Manage magazines: {client_slug}")
        self.resize(760, 480)

        layout = QVBoxLayout(self)

        self._table = QTableWidget(0, len(COLUMNS))
        self._table.setHorizontalHeaderLabels(COLUMNS)
        self._table.setSelectionBehavior(QAbstractItemView.SelectionBehavior.SelectRows)
        self._table.setSelectionMode(QAbstractItemView.SelectionMode.SingleSelection)
        self._table.setEditTriggers(QAbstractItemView.EditTrigger.NoEditTriggers)
        self._table.horizontalHeader().setStretchLastSection(True)
        layout.addWidget(self._table)

        self._status = QLabel("")
        self._status.setObjectName("muted_label")
        layout.addWidget(self._status)

        buttons = QHBoxLayout()
        upload_btn = QPushButton("Upload PDF...")
        upload_btn.setObjectName("primary_button")
        publish_btn = QPushButton("Publish / Unpublish")
        up_btn = QPushButton("Move up")
        down_btn = QPushButton("Move down")
        delete_btn = QPushButton("Delete")
        close_btn = QPushButton("Close")
        for button in (upload_btn, publish_btn, up_btn, down_btn, delete_btn):
            buttons.addWidget(button)
        buttons.addStretch()
        buttons.addWidget(close_btn)
        layout.addLayout(buttons)

        upload_btn.clicked.connect(self._choose_upload)
        publish_btn.clicked.connect(lambda: spawn(self._toggle_published()))
        up_btn.clicked.connect(lambda: spawn(self._move(-1)))
        down_btn.clicked.connect(lambda: spawn(self._move(1)))
        delete_btn.clicked.connect(self._confirm_delete)
        close_btn.clicked.connect(self.accept)

        spawn(self.refresh())

    async def refresh(self) -> None:
        """Reload all magazines of the client, published or not."""
        try:
            magazines = await asyncio.to_thread(self.client.list_all_magazines, self.client_slug)
        except APIClientError as e:
            self._show_error("Could not load magazines", e)
            return
        self._magazines = sorted(magazines, key=lambda m: (m.sort_order, m.created_at or ""))
        self._populate()

    def _populate(self) -> None:
        self._table.setRowCount(len(self._magazines))
        for row, magazine in enumerate(self._magazines):
            values = [
                magazine.title,
                "Published" if magazine.is_published else "Draft",
                str(magazine.page_count),
                (magazine.created_at or "")[:10],
            ]
            for column, value in enumerate(values):
                item = QTableWidgetItem(value)
                if column == 0:
                    item.setData(Qt.ItemDataRole.UserRole, magazine.id)
                self._table.setItem(row, column, item)
        self._status.setText(f"{len(self._magazines)} magazines")

    def _selected_row(self) -> Optional[int]:
        rows = self._table.selectionModel().selectedRows()
        return rows[0].row() if rows else None

    def _selected(self) -> Optional[Magazine]:
        row = self._selected_row()
        return self._magazines[row] if row is not None else None

    def _show_error(self, title: str, error: Exception) -> None:
        logger.warning(f"{title}: {error}")
        QMessageBox.warning(self, title, str(error))

    # Actions

    def _choose_upload(self) -> None:
        path, _ = QFileDialog.getOpenFileName(self, "Choose magazine PDF", "", "PDF files (*.pdf)")
        if not path:
            return
        title, ok = QInputDialog.getText(self, "Magazine title", "Title:", text=Path(path).stem)
        if not ok or not title.strip():
            return
        spawn(self._upload(Path(path), title.strip()))

    async def _upload(self, path: Path, title: str) -> None:
        self._status.setText(f"Uploading {path.name}...")
        try:
            magazine = await asyncio.to_thread(self.client.upload_magazine, path, title, self.client_slug)
        except (APIClientError, OSError) as e:
            self._show_error("Upload failed", e)
            self._status.setText("")
            return
        logger.info(f"Uploaded {magazine.title} ({magazine.page_count} pages)")
        await self._changed()

    async def _toggle_published(self) -> None:
        magazine = self._selected()
        if magazine is None:
            return
        try:
            await asyncio.to_thread(
                self.client.update_magazine, magazine.id, None, not magazine.is_published
            )
        except APIClientError as e:
            self._show_error("Update failed", e)
            return
        await self._changed()

    async def _move(self, offset: int) -> None:
        row = self._selected_row()
        if row is None:
            return
        other = row + offset
        if other < 0 or other >= len(self._magazines):
            return
        ordered = list(self._magazines)
        ordered[row], ordered[other] = ordered[other], ordered[row]
        try:
            await asyncio.to_thread(
                self.client.reorder_magazines, [(m.id, index) for index, m in enumerate(ordered)]
            )
        except APIClientError as e:
            self._show_error("Reorder failed", e)
            return
        await self._changed()
        self._table.selectRow(other)

    def _confirm_delete(self) -> None:
        magazine = self._selected()
        if magazine is None:
            return
        answer = QMessageBox.question(
            self,
            "Delete magazine",
            f"Delete \"{magazine.title}\"? The PDF and cover are removed as well.",
        )
        if answer == QMessageBox.StandardButton.Yes:
            spawn(self._delete(magazine))

    async def _delete(self, magazine: Magazine) -> None:
        try:
            await asyncio.to_thread(self.client.delete_magazine, magazine.id)
        except APIClientError as e:
            self._show_error("Delete failed", e)
            return
        logger.info(f"Deleted magazine {magazine.id}")
        await self._changed()

    async def _changed(self) -> None:
        await self.refresh()
        self.magazinesChanged.emit()
