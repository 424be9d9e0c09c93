"""Apply global theme to QApplication: load QSS and set default font."""

from pathlib import Path
from string import Template
from typing import TYPE_CHECKING

from . import tokens

if TYPE_CHECKING:
    from PySide6.QtWidgets import QApplication


def load_stylesheet() -> str:
    """Read app_style.qss and substitute $token placeholders; empty if missing."""
    qss_path = Path(__file__).resolve().parent / "app_style.qss"
    if not qss_path.exists():
        return ""
    with open(qss_path, "r", encoding="utf-8") as f:
        template = Template(f.read())
    values = {**tokens.colors, **{k: str(v) for k, v in tokens.radius.items()}}
    return template.safe_substitute(values)


def apply_theme(app: "QApplication") -> None:
    """Set app stylesheet and default font from tokens."""
    qss = load_stylesheet()
    if qss:
        app.setStyleSheet(qss)

    from PySide6.QtGui import QFont

    family = tokens.typography.get("font_family", "Segoe UI")
    size = tokens.typography.get("font_size_base", 10)
    app.setFont(QFont(family, size))
