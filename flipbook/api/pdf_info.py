"""Uploaded PDF inspection: validation, metadata and cover image generation."""

import io
import logging
from dataclasses import dataclass

import fitz  # pymupdf
import pdfplumber
from PIL import Image

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF-"
COVER_WIDTH = 400
COVER_QUALITY = 90
# Placeholder colour for covers that cannot be rendered (slate-100)
PLACEHOLDER_COLOR = (241, 245, 249)


class PDFInfoError(Exception):
    """Raised when PDF metadata cannot be read."""
    pass


@dataclass
class PdfMetadata:
    """Basic facts about an uploaded PDF.

    Attributes:
        page_count: Number of pages
        page_width: Width of the first page in points
        page_height: Height of the first page in points
    """
    page_count: int
    page_width: float = 0.0
    page_height: float = 0.0


def validate_pdf(data: bytes) -> bool:
    """Check that ``data`` is a parseable PDF.

    Args:
        data: Raw file content

    Returns:
        True if the magic bytes match and pdfplumber can open the file
    """
    if not data.startswith(PDF_MAGIC):
        return False
    try:
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            page_count = len(pdf.pages)
    except Exception as e:
        logger.warning(f"PDF validation failed: {e}")
        return False
    logger.debug(f"Validated PDF ({page_count} pages)")
    return True


def read_pdf_metadata(data: bytes) -> PdfMetadata:
    """Read page count and first page size.

    Raises:
        PDFInfoError: If the PDF cannot be parsed
    """
    try:
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            pages = pdf.pages
            if not pages:
                return PdfMetadata(page_count=0)
            first = pages[0]
            return PdfMetadata(
                page_count=len(pages),
                page_width=float(first.width),
                page_height=float(first.height),
            )
    except Exception as e:
        raise PDFInfoError(f"Failed to read PDF metadata: {e}") from e


def generate_cover_image(data: bytes, width: int = COVER_WIDTH) -> bytes:
    """Render the first page as a JPEG cover ``width`` pixels wide.

    Falls back to a plain A4-proportioned placeholder when the page cannot be
    rendered, so an upload never fails because of its cover.

    Returns:
        JPEG bytes
    """
    try:
        with fitz.open(stream=data, filetype="pdf") as doc:
            page = doc[0]
            zoom = width / page.rect.width
            pix = page.get_pixmap(matrix=fitz.Matrix(zoom, zoom), alpha=False)
            image = Image.frombytes("RGB", (pix.width, pix.height), pix.samples)
    except Exception as e:
        logger.warning(f"Cover rendering failed, using placeholder: {e}")
        image = Image.new("RGB", (width, round(width * 1.414)), PLACEHOLDER_COLOR)

    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=COVER_QUALITY)
    return buffer.getvalue()
