"""CLI interface: inspect and render PDFs, run the magazine API, open the viewer."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

# Fix encoding for Windows console
if sys.platform == "win32":
    try:
        sys.stdout.reconfigure(encoding='utf-8')
    except (AttributeError, ValueError):
        pass

from ..config import (
    get_admin_credentials,
    get_app_name,
    get_app_version,
    get_data_dir,
    get_load_timeout,
    get_range_requests_enabled,
    get_render_timeout,
)
from ..config.profile_manager import get_profile, set_profile
from ..models.bitmap import Bitmap
from ..models.document import Document
from ..models.layout import PAGE_RATIO
from ..pipeline.loader import DocumentLoader, LoadError, get_page
from ..pipeline.rasterizer import PageRasterizer, RenderError

logger = logging.getLogger(__name__)

DEFAULT_RENDER_WIDTH = 800


def parse_page_ranges(spec: Optional[str], page_count: int) -> List[int]:
    """Parse a page selection like "1,3-5" into sorted 1-indexed page numbers.

    Args:
        spec: Comma-separated pages and inclusive ranges; None or "" means all pages
        page_count: Number of pages in the document

    Returns:
        Sorted, de-duplicated page numbers

    Raises:
        ValueError: If the selection is malformed or out of range
    """
    if not spec or not spec.strip():
        return list(range(1, page_count + 1))

    pages = set()
    for part in spec.split(","):
        part = part.strip()
        if not part:
            continue
        if "-" in part:
            start_text, end_text = part.split("-", 1)
            start, end = int(start_text), int(end_text)
            if start > end:
                raise ValueError(f"Invalid page range: {part}")
        else:
            start = end = int(part)
        if start < 1 or end > page_count:
            raise ValueError(f"Pages {part} out of range (document has {page_count} pages)")
        pages.update(range(start, end + 1))
    if not pages:
        raise ValueError(f"No pages selected: {spec!r}")
    return sorted(pages)


def describe_document(doc: Document) -> str:
    """Human-readable summary of a document: page count, metadata, page sizes."""
    lines = [f"Source: {doc.source_url}", f"Pages: {doc.page_count}"]
    for key in ("title", "author", "producer", "creationDate"):
        value = doc.metadata.get(key)
        if value:
            lines.append(f"{key.capitalize()}: {value}")
    for number in range(1, doc.page_count + 1):
        page = get_page(doc, number)
        lines.append(f"  Page {number}: {page.width:.0f} x {page.height:.0f} pt")
    return "\n".join(lines)


async def render_pages(
    doc: Document,
    pages: List[int],
    output_dir: Path,
    width: float,
    height: Optional[float] = None,
    quality: Optional[float] = None,
) -> List[Path]:
    """Rasterize ``pages`` of ``doc`` into PNG files in ``output_dir``.

    Returns:
        Paths of the written files, in page order

    Raises:
        RenderError: If a page cannot be rendered
    """
    profile = get_profile()
    rasterizer = PageRasterizer(
        quality_multiplier=quality if quality is not None else profile.quality_multiplier,
        max_canvas_pixels=profile.max_canvas_pixels,
        timeout=get_render_timeout(),
    )
    target_height = height if height is not None else width * PAGE_RATIO
    output_dir.mkdir(parents=True, exist_ok=True)
    stem = Path(doc.source_url).stem or "page"

    written = []
    for number in pages:
        outcome = await rasterizer.render(get_page(doc, number), width, target_height)
        if not isinstance(outcome, Bitmap):
            raise RenderError(f"Rendering page {number} was cancelled")
        path = output_dir / f"{stem}_p{number:03d}.png"
        path.write_bytes(outcome.to_png())
        logger.info(f"Page {number}: {outcome.width}x{outcome.height}px -> {path}")
        written.append(path)
    return written


def _handle_serve(args: argparse.Namespace) -> int:
    import uvicorn

    from ..api.main import create_app

    admin_email, admin_password = get_admin_credentials()
    app = create_app(
        data_dir=Path(args.data_dir) if args.data_dir else get_data_dir(),
        admin_email=admin_email,
        admin_password=admin_password,
    )
    print(f"Serving magazine API on http://{args.host}:{args.port}")
    uvicorn.run(app, host=args.host, port=args.port, log_level="debug" if args.verbose else "info")
    return 0


def _handle_view(args: argparse.Namespace) -> int:
    # Qt is only needed for the viewer window
    from ..ui.app import main as run_viewer

    return run_viewer(client_slug=args.view, api_url=args.api_url)


def _handle_document(args: argparse.Namespace) -> int:
    loader = DocumentLoader(range_requests=get_range_requests_enabled(), timeout=get_load_timeout())
    doc = loader.open(args.input)
    try:
        if args.info or not args.output:
            print(describe_document(doc))
            if not args.output:
                return 0

        pages = parse_page_ranges(args.pages, doc.page_count)
        written = asyncio.run(
            render_pages(doc, pages, Path(args.output), args.width, args.height, args.quality)
        )
        print(f"\nDone: {len(written)} page(s) written to {args.output}")
        return 0
    finally:
        doc.close()


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description=f"{get_app_name()} - PDF magazine flipbook viewer"
    )

    parser.add_argument(
        "--input",
        required=False,
        help="PDF file path or URL to inspect or render"
    )

    parser.add_argument(
        "--info",
        action="store_true",
        help="Print page count, metadata and page sizes of --input"
    )

    parser.add_argument(
        "--output",
        required=False,
        help="Directory to write rendered PNG pages to"
    )

    parser.add_argument(
        "--pages",
        type=str,
        help="Pages to render, e.g. 1,3-5 (default: all)"
    )

    parser.add_argument(
        "--width",
        type=float,
        default=DEFAULT_RENDER_WIDTH,
        help=f"Target page width in logical pixels (default: {DEFAULT_RENDER_WIDTH})"
    )

    parser.add_argument(
        "--height",
        type=float,
        help="Target page height in logical pixels (default: width * 1.414)"
    )

    parser.add_argument(
        "--quality",
        type=float,
        help="Render quality multiplier 1-3 (default: from profile)"
    )

    parser.add_argument(
        "--serve",
        action="store_true",
        help="Run the magazine API server"
    )

    parser.add_argument("--host", default="127.0.0.1", help="API server host (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="API server port (default: 8000)")
    parser.add_argument("--data-dir", help="API data directory (default: FLIPBOOK_DATA_DIR)")

    parser.add_argument(
        "--view",
        metavar="SLUG",
        help="Open the viewer window for a client's magazines"
    )

    parser.add_argument("--api-url", help="Magazine API URL for --view (default: FLIPBOOK_API_URL)")

    parser.add_argument(
        "--profile",
        type=str,
        default="default",
        help="Viewer profile name (default: default)"
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose debug output"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {get_app_version()}"
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s" if args.verbose else "%(message)s",
    )

    try:
        set_profile(args.profile)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    if args.quality is not None and not 1.0 <= args.quality <= 3.0:
        parser.error("--quality must be between 1 and 3")

    if args.serve:
        return _handle_serve(args)
    if args.view:
        return _handle_view(args)
    if not args.input:
        parser.error("--input is required (unless using --serve or --view)")

    try:
        return _handle_document(args)
    except (LoadError, RenderError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
