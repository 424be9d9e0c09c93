"""Tenant magazine catalogue: latest issue plus the gallery of older issues."""

import logging
from typing import List, Optional

from ...api.client import APIClientError, MagazineAPIClient
from ...api.models import Magazine

logger = logging.getLogger(__name__)


def available_years(magazines: List[Magazine]) -> List[int]:
    """Distinct years of the given magazines, newest first."""
    return sorted({m.year for m in magazines if m.year is not None}, reverse=True)


def filter_by_year(magazines: List[Magazine], year: Optional[int]) -> List[Magazine]:
    """Magazines from ``year``; None means all years."""
    if year is None:
        return list(magazines)
    return [m for m in magazines if m.year == year]


class MagazineCatalog:
    """Published magazines of one client, in display order.

    The first magazine is shown inline as the latest issue; the rest form the
    gallery.
    """

    def __init__(self, client: MagazineAPIClient, client_slug: str):
        self.client = client
        self.client_slug = client_slug
        self.magazines: List[Magazine] = []
        self.error: Optional[str] = None

    @property
    def latest(self) -> Optional[Magazine]:
        return self.magazines[0] if self.magazines else None

    @property
    def gallery(self) -> List[Magazine]:
        return self.magazines[1:]

    def refresh(self) -> bool:
        """Reload the magazine list.

        Returns:
            True on success; on failure the previous list is kept and
            ``error`` holds the message
        """
        try:
            magazines, total = self.client.list_magazines(self.client_slug)
        except APIClientError as e:
            logger.warning(f"Could not load magazines for {self.client_slug}: {e}")
            self.error = str(e)
            return False
        self.magazines = magazines
        self.error = None
        logger.info(f"Loaded {len(magazines)} of {total} magazines for {self.client_slug}")
        return True
