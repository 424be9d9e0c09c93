"""Unit tests for Document, PageHandle and Bitmap models."""

import pytest

from flipbook.models.bitmap import Bitmap
from flipbook.models.document import Document
from flipbook.models.page import PageHandle


class _Handle:
    def __init__(self):
        self.closed = 0

    def close(self):
        self.closed += 1


def test_document_creation():
    """Test Document creation with metadata."""
    doc = Document(source_url="https://cdn.example.com/a.pdf", page_count=12, metadata={"title": "A"})

    assert doc.source_url == "https://cdn.example.com/a.pdf"
    assert doc.page_count == 12
    assert doc.metadata["title"] == "A"
    assert doc.is_closed  # no handle attached


def test_document_negative_page_count():
    with pytest.raises(ValueError, match="Page count must be >= 0"):
        Document(source_url="a.pdf", page_count=-1)


def test_document_close_is_idempotent():
    """close() releases the handle once; further calls are no-ops."""
    handle = _Handle()
    doc = Document(source_url="a.pdf", page_count=1, handle=handle)

    assert not doc.is_closed
    doc.close()
    doc.close()

    assert doc.is_closed
    assert handle.closed == 1


def test_page_handle_index():
    doc = Document(source_url="a.pdf", page_count=3)
    page = PageHandle(page_number=3, document=doc, width=595.0, height=842.0)

    assert page.index == 2
    assert page.document is doc


def test_page_handle_rejects_zero():
    doc = Document(source_url="a.pdf", page_count=3)
    with pytest.raises(ValueError, match="Page number must be >= 1"):
        PageHandle(page_number=0, document=doc, width=595.0, height=842.0)


class TestBitmap:
    """Test Bitmap dataclass."""

    def test_pixel_access(self):
        samples = bytes([255, 0, 0, 0, 255, 0, 0, 0, 255, 10, 20, 30])
        bitmap = Bitmap(width=2, height=2, samples=samples)

        assert bitmap.stride == 6
        assert bitmap.pixel_count == 4
        assert bitmap.pixel(0, 0) == (255, 0, 0)
        assert bitmap.pixel(1, 0) == (0, 255, 0)
        assert bitmap.pixel(1, 1) == (10, 20, 30)

    def test_sample_size_mismatch(self):
        with pytest.raises(ValueError, match="Sample buffer size mismatch"):
            Bitmap(width=2, height=2, samples=b"\x00" * 5)

    def test_encode_png(self):
        bitmap = Bitmap(width=3, height=2, samples=b"\xff" * 18)
        png = bitmap.to_png()

        assert png.startswith(b"\x89PNG")
        image = bitmap.to_image()
        assert image.size == (3, 2)
        assert image.mode == "RGB"
