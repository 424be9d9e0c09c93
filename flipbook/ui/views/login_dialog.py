"""Admin sign-in dialog."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from PySide6.QtWidgets import QDialog, QFormLayout, QHBoxLayout, QLabel, QLineEdit, QPushButton, QVBoxLayout, QWidget

from ...api.client import APIClientError, MagazineAPIClient
from ...api.models import UserPublic
from ..services.async_tasks import spawn

logger = logging.getLogger(__name__)


class LoginDialog(QDialog):
    """Email/password form; accepts once the API has issued a token."""

    def __init__(self, client: MagazineAPIClient, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.client = client
        self.user: Optional[UserPublic] = None
        self.setWindowTitle("Admin sign in")
        self.setMinimumWidth(360)

        layout = QVBoxLayout(self)
        form = QFormLayout()
        self._email = QLineEdit()
        self._email.setPlaceholderText("admin@example.com")
        self._password = QLineEdit()
        self._password.setEchoMode(QLineEdit.EchoMode.Password)
        form.addRow("Email:", self._email)
        form.addRow("Password:", self._password)
        layout.addLayout(form)

        self._error = QLabel("")
        self._error.setObjectName("form_error")
        self._error.setWordWrap(True)
        layout.addWidget(self._error)

        buttons = QHBoxLayout()
        buttons.addStretch()
        cancel_btn = QPushButton("Cancel")
        cancel_btn.clicked.connect(self.reject)
        self._login_btn = QPushButton("Sign in")
        self._login_btn.setObjectName("primary_button")
        self._login_btn.setDefault(True)
        self._login_btn.clicked.connect(lambda: spawn(self._submit()))
        buttons.addWidget(cancel_btn)
        buttons.addWidget(self._login_btn)
        layout.addLayout(buttons)

    async def _submit(self) -> None:
        email = self._email.text().strip()
        password = self._password.text()
        if not email or not password:
            self._error.setText("Enter both email and password.")
            return

        self._login_btn.setEnabled(False)
        self._error.setText("")
        try:
            self.user = await asyncio.to_thread(self.client.login, email, password)
        except APIClientError as e:
            logger.info(f"Sign in failed for {email}: {e}")
            self._error.setText(str(e))
            return
        finally:
            self._login_btn.setEnabled(True)
        logger.info(f"Signed in as {self.user.email}")
        self.accept()
