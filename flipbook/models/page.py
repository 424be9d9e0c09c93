"""Page handle data model referencing a single page of a Document."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .document import Document


@dataclass(frozen=True)
class PageHandle:
    """Reference to page N of a Document.

    Handles are stateless and cheap; the loader creates a new one on every
    request and never caches them.

    Attributes:
        page_number: Page number (starts at 1)
        document: Reference to parent Document
        width: Native page width in points (scale 1)
        height: Native page height in points (scale 1)
    """

    page_number: int
    document: Document
    width: float
    height: float

    def __post_init__(self):
        """Validate page number is positive."""
        if self.page_number < 1:
            raise ValueError(f"Page number must be >= 1, got {self.page_number}")

    @property
    def index(self) -> int:
        """0-based page index (PyMuPDF numbering)."""
        return self.page_number - 1
