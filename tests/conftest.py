"""Shared fixtures: small PDFs built with pymupdf."""

from pathlib import Path
from typing import Optional, Sequence, Tuple

import fitz
import pytest


def _make_pdf(
    path: Path,
    pages: int = 1,
    size: Tuple[float, float] = (595, 842),
    red_top_left: bool = False,
    sizes: Optional[Sequence[Tuple[float, float]]] = None,
) -> Path:
    """Write a PDF with blank pages; optionally paint the top-left quadrant red."""
    doc = fitz.open()
    for number in range(pages):
        width, height = sizes[number] if sizes else size
        page = doc.new_page(width=width, height=height)
        page.insert_text((40, height - 40), f"Page {number + 1}")
        if red_top_left:
            page.draw_rect(fitz.Rect(0, 0, width / 2, height / 2), color=(1, 0, 0), fill=(1, 0, 0))
    doc.set_metadata({"title": "Test Magazine", "author": "Flipbook Tests"})
    doc.save(str(path))
    doc.close()
    return path


@pytest.fixture
def make_pdf(tmp_path):
    """Factory: make_pdf(name, pages=1, ...) -> path of a new PDF in tmp_path."""
    def factory(name: str = "magazine.pdf", **kwargs) -> Path:
        return _make_pdf(tmp_path / name, **kwargs)
    return factory


@pytest.fixture
def pdf_path(make_pdf):
    """A five-page A4 PDF."""
    return make_pdf("five_pages.pdf", pages=5)


@pytest.fixture
def pdf_bytes(pdf_path):
    return pdf_path.read_bytes()
