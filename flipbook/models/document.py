"""Document data model representing an opened PDF issue."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class Document:
    """Represents a loaded PDF document.

    Owned by exactly one viewer session. ``close()`` releases the underlying
    PyMuPDF handle; a closed document must not be used for page access.

    Attributes:
        source_url: URL or filesystem path the document was opened from
        page_count: Number of pages in document (>= 0)
        metadata: PDF metadata dictionary (title, author, ...)
        handle: Underlying fitz.Document (None once closed)
    """

    source_url: str
    page_count: int
    metadata: Dict[str, Any] = field(default_factory=dict)
    handle: Optional[Any] = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        """Validate page count is non-negative."""
        if self.page_count < 0:
            raise ValueError(f"Page count must be >= 0, got {self.page_count}")

    @property
    def is_closed(self) -> bool:
        return self.handle is None

    def close(self) -> None:
        """Release the PDF handle. Safe to call more than once."""
        if self.handle is not None:
            try:
                self.handle.close()
            finally:
                self.handle = None
