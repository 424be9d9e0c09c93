"""UI Entry point."""
import logging
import sys
from typing import Optional

from PySide6 import QtAsyncio
from PySide6.QtWidgets import QApplication

from ..api.client import MagazineAPIClient
from ..config.settings import get_api_url, get_app_name, get_client_slug
from .theme.apply_theme import apply_theme
from .views.main_window import MainWindow

logger = logging.getLogger(__name__)


def main(client_slug: Optional[str] = None, api_url: Optional[str] = None) -> int:
    """Open the magazine page of ``client_slug`` (default: FLIPBOOK_CLIENT_SLUG)."""
    slug = client_slug or get_client_slug()
    if not slug:
        logger.error("No client given; pass --view SLUG or set FLIPBOOK_CLIENT_SLUG")
        return 2

    app = QApplication.instance() or QApplication(sys.argv)
    app.setApplicationName(get_app_name())
    apply_theme(app)

    window = MainWindow(MagazineAPIClient(api_url or get_api_url()), slug)
    window.show()
    QtAsyncio.run(window.reload(), keep_running=True, quit_qapp=True, handle_sigint=True)
    return 0


if __name__ == "__main__":
    sys.exit(main())
