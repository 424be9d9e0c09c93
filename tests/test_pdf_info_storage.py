"""Unit tests for upload inspection and file storage."""

import io

import pytest
from PIL import Image

from flipbook.api.pdf_info import PDFInfoError, generate_cover_image, read_pdf_metadata, validate_pdf
from flipbook.api.storage import FileStorage, StorageError


class TestPdfInfo:
    """Test PDF validation, metadata and covers."""

    def test_validate_pdf(self, pdf_bytes):
        assert validate_pdf(pdf_bytes)
        assert not validate_pdf(b"GIF89a")
        assert not validate_pdf(b"%PDF-1.7 truncated garbage")

    def test_read_metadata(self, pdf_bytes):
        metadata = read_pdf_metadata(pdf_bytes)

        assert metadata.page_count == 5
        assert metadata.page_width == pytest.approx(595)
        assert metadata.page_height == pytest.approx(842)

    def test_read_metadata_failure(self):
        with pytest.raises(PDFInfoError):
            read_pdf_metadata(b"not a pdf")

    def test_cover_from_first_page(self, make_pdf):
        data = make_pdf("red.pdf", red_top_left=True).read_bytes()

        with Image.open(io.BytesIO(generate_cover_image(data, width=200))) as cover:
            assert cover.format == "JPEG"
            assert cover.width == 200
            red, green, blue = cover.getpixel((10, 10))
            assert red > 200 and green < 60 and blue < 60

    def test_cover_placeholder(self):
        """Unrenderable data still produces an A4-shaped placeholder."""
        with Image.open(io.BytesIO(generate_cover_image(b"broken", width=100))) as cover:
            assert cover.size == (100, 141)


class TestFileStorage:
    """Test local file storage."""

    def test_upload_and_delete(self, tmp_path):
        storage = FileStorage(tmp_path / "files", "/files/")

        key, url = storage.upload(b"data", "Issue.PDF", folder="magazines/acme")

        assert key.startswith("magazines/acme/") and key.endswith(".pdf")
        assert url == f"/files/{key}"
        assert storage.path_for(key).read_bytes() == b"data"
        assert storage.key_from_url(url) == key
        assert storage.delete(key)
        assert not storage.delete(key)

    def test_foreign_url_has_no_key(self, tmp_path):
        storage = FileStorage(tmp_path, "/files")
        assert storage.key_from_url("https://cdn.example.com/a.pdf") is None
        assert storage.key_from_url(None) is None

    @pytest.mark.parametrize("key", ["../secret.txt", "covers/../../etc/passwd"])
    def test_path_traversal_rejected(self, tmp_path, key):
        storage = FileStorage(tmp_path / "files", "/files")
        with pytest.raises(StorageError):
            storage.path_for(key)
