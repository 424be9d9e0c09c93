"""PDF document loading from URLs and local paths using PyMuPDF.

The loader is the sole gateway to the PDF bytes. Remote documents are fetched
with requests; when range requests are enabled the file is downloaded in
``Range`` chunks (falls back to a single GET when the server does not
advertise ``Accept-Ranges: bytes``). Range requests are a loader-wide
configuration flag, not a per-call choice, since some CDNs break CORS-style
proxies on partial responses.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse

import fitz  # pymupdf
import requests

from ..models.document import Document
from ..models.page import PageHandle

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF-"
DEFAULT_LOAD_TIMEOUT = 30.0
DEFAULT_CHUNK_SIZE = 1024 * 1024


class LoadError(Exception):
    """Raised when a document cannot be opened (network, missing file, corrupt PDF)."""
    pass


class PageRangeError(IndexError):
    """Raised when a page number is outside [1, page_count]."""

    def __init__(self, page_number: int, page_count: int):
        self.page_number = page_number
        self.page_count = page_count
        super().__init__(f"Page {page_number} outside valid range [1, {page_count}]")


class DocumentLoader:
    """Opens PDF documents and hands out page handles."""

    def __init__(
        self,
        range_requests: bool = False,
        timeout: float = DEFAULT_LOAD_TIMEOUT,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        session: Optional[requests.Session] = None,
    ):
        """Initialize loader.

        Args:
            range_requests: Download remote PDFs in ranged chunks
            timeout: Upper bound in seconds for network requests and open_async
            chunk_size: Bytes per ranged request
            session: Optional requests session (shared connection pool)
        """
        self.range_requests = range_requests
        self.timeout = timeout
        self.chunk_size = chunk_size
        self.session = session or requests.Session()

    def open(self, url: str) -> Document:
        """Open a PDF by URL or path.

        Args:
            url: http(s) URL, file:// URL or filesystem path

        Returns:
            Document with page_count and metadata populated

        Raises:
            LoadError: If fetching, validating or parsing the PDF fails
        """
        data = self._read_bytes(url)
        if not data.startswith(PDF_MAGIC):
            raise LoadError(f"Not a PDF document: {url}")

        try:
            handle = fitz.open(stream=data, filetype="pdf")
        except Exception as e:
            raise LoadError(f"Failed to parse PDF {url}: {e}") from e

        if handle.needs_pass:
            handle.close()
            raise LoadError(f"PDF is encrypted: {url}")

        doc = Document(
            source_url=url,
            page_count=handle.page_count,
            metadata=dict(handle.metadata or {}),
            handle=handle,
        )
        logger.info(f"Loaded PDF: {url} ({doc.page_count} pages)")
        return doc

    async def open_async(self, url: str) -> Document:
        """Open a PDF without blocking the event loop.

        Raises:
            LoadError: On failure, or when opening exceeds ``timeout`` seconds
        """
        try:
            return await asyncio.wait_for(asyncio.to_thread(self.open, url), self.timeout)
        except asyncio.TimeoutError as e:
            raise LoadError(f"Timed out after {self.timeout}s opening {url}") from e

    def get_page(self, doc: Document, page_number: int) -> PageHandle:
        """Return a handle to page ``page_number`` (1-indexed)."""
        return get_page(doc, page_number)

    def _read_bytes(self, url: str) -> bytes:
        parsed = urlparse(url)
        if parsed.scheme in ("http", "https"):
            if self.range_requests:
                return self._fetch_ranged(url)
            return self._fetch(url)
        if parsed.scheme == "file":
            path = Path(unquote(parsed.path))
        else:
            path = Path(url)

        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise LoadError(f"PDF file not found: {path}") from e
        except OSError as e:
            raise LoadError(f"Failed to read PDF {path}: {e}") from e

    def _fetch(self, url: str) -> bytes:
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
            return response.content
        except requests.exceptions.Timeout as e:
            raise LoadError(f"Request to {url} timed out after {self.timeout}s") from e
        except requests.exceptions.RequestException as e:
            raise LoadError(f"Failed to fetch {url}: {e}") from e

    def _fetch_ranged(self, url: str) -> bytes:
        try:
            head = self.session.head(url, timeout=self.timeout, allow_redirects=True)
            head.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise LoadError(f"Failed to fetch {url}: {e}") from e

        length = head.headers.get("Content-Length")
        if head.headers.get("Accept-Ranges", "").lower() != "bytes" or not length:
            logger.debug(f"Server does not support ranges for {url}, using single request")
            return self._fetch(url)

        total = int(length)
        chunks = []
        start = 0
        while start < total:
            end = min(start + self.chunk_size, total) - 1
            try:
                response = self.session.get(
                    url,
                    headers={"Range": f"bytes={start}-{end}"},
                    timeout=self.timeout,
                )
                response.raise_for_status()
            except requests.exceptions.Timeout as e:
                raise LoadError(f"Request to {url} timed out after {self.timeout}s") from e
            except requests.exceptions.RequestException as e:
                raise LoadError(f"Failed to fetch {url} (bytes {start}-{end}): {e}") from e

            if response.status_code != 206:
                # Server ignored the Range header and sent the whole body
                return response.content
            chunks.append(response.content)
            start = end + 1

        logger.debug(f"Fetched {url} in {len(chunks)} ranged chunks")
        return b"".join(chunks)


def open_document(url: str, range_requests: bool = False, timeout: float = DEFAULT_LOAD_TIMEOUT) -> Document:
    """Open a PDF with a one-off loader."""
    return DocumentLoader(range_requests=range_requests, timeout=timeout).open(url)


def get_page(doc: Document, page_number: int) -> PageHandle:
    """Return a handle to page ``page_number`` (1-indexed) of ``doc``.

    Raises:
        PageRangeError: If page_number is outside [1, page_count]
        LoadError: If the document has been closed
    """
    if not 1 <= page_number <= doc.page_count:
        raise PageRangeError(page_number, doc.page_count)
    if doc.is_closed:
        raise LoadError(f"Document is closed: {doc.source_url}")

    rect = doc.handle[page_number - 1].rect
    return PageHandle(
        page_number=page_number,
        document=doc,
        width=float(rect.width),
        height=float(rect.height),
    )
