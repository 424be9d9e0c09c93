"""Toolkit-independent viewer state: one open magazine and everything needed to show it.

The session wires the Document Loader, Page Rasterizer, Layout Engine, Flip
Controller and Sound Engine together. Widgets only forward input to it and
paint the bitmaps it leaves on its render surfaces.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from ...api.models import Magazine
from ...config.profile_loader import ViewerProfile
from ...config.profile_manager import get_profile
from ...config.settings import get_load_timeout, get_range_requests_enabled, get_render_timeout, get_sound_url
from ...models.bitmap import Bitmap
from ...models.document import Document
from ...models.flip_state import FlipState
from ...models.layout import PAGE_RATIO, DisplayMode, DisplayTransform, LayoutDimensions
from ...pipeline.cover_cache import CoverCache, cover_cache_key
from ...pipeline.flip_controller import FlipController
from ...pipeline.layout import LayoutEngine
from ...pipeline.loader import DocumentLoader, LoadError, get_page
from ...pipeline.rasterizer import PageRasterizer, RenderError, RenderOutcome, RenderSurface
from ...pipeline.sound import SoundEngine

logger = logging.getLogger(__name__)

HEIGHT_MESSAGE_TYPE = "FLIPBOOK_HEIGHT"
LEGACY_HEIGHT_MESSAGE_TYPE = "iframeHeight"
COVER_WIDTH = 240
SLOTS = ("left", "right")


class SessionStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


StatusListener = Callable[["SessionStatus", Optional[str]], None]


class ViewerSession:
    """State of one flipbook viewer instance."""

    def __init__(
        self,
        profile: Optional[ViewerProfile] = None,
        cover_cache: Optional[CoverCache] = None,
        loader: Optional[DocumentLoader] = None,
        rasterizer: Optional[PageRasterizer] = None,
        sound: Optional[SoundEngine] = None,
        display_mode: Optional[DisplayMode] = None,
        show_cover: bool = True,
        auto_render: bool = False,
    ):
        """Initialize session.

        Args:
            profile: Viewer profile (default: the active profile)
            cover_cache: Shared cover cache; a private one is created if None
            loader: Document loader (default: configured from environment)
            rasterizer: Page rasterizer (default: configured from profile)
            sound: Sound engine (default: configured from profile)
            display_mode: Overrides the profile's display mode
            show_cover: Show page 1 alone, as a cover, in spread layouts
            auto_render: Re-render visible pages after flips and relayouts
        """
        self.profile = profile or get_profile()
        self.show_cover = show_cover
        self.auto_render = auto_render
        self.loader = loader or DocumentLoader(
            range_requests=get_range_requests_enabled(),
            timeout=get_load_timeout(),
        )
        self.rasterizer = rasterizer or PageRasterizer(
            quality_multiplier=self.profile.quality_multiplier,
            max_canvas_pixels=self.profile.max_canvas_pixels,
            timeout=get_render_timeout(),
        )
        self.sound = sound or SoundEngine(
            sample_url=self.profile.sound_url or get_sound_url(),
            enabled=self.profile.sound_enabled,
        )
        self.layout = LayoutEngine(
            display_mode=display_mode or self.profile.display_mode,
            debounce=self.profile.resize_debounce,
            mobile_breakpoint=self.profile.mobile_breakpoint,
        )
        self.flip = FlipController(
            total_pages=0,
            sound=self.sound,
            duration=self.profile.flip_duration,
            pages_per_flip=self.profile.pages_per_flip,
        )
        self.cover_cache = cover_cache if cover_cache is not None else CoverCache(self.profile.cover_cache_capacity)
        self.surfaces: Dict[str, RenderSurface] = {slot: RenderSurface(slot) for slot in SLOTS}

        self.status = SessionStatus.IDLE
        self.error: Optional[str] = None
        self.document: Optional[Document] = None
        self._open_generation = 0
        self._render_task: Optional[asyncio.Task] = None
        self._status_listeners: List[StatusListener] = []

        self._sync_flip_step(self.layout.current)
        self.layout.subscribe(self._on_layout)
        self.flip.subscribe(self._on_flip)

    # Status

    def subscribe_status(self, listener: StatusListener) -> Callable[[], None]:
        self._status_listeners.append(listener)

        def unsubscribe():
            if listener in self._status_listeners:
                self._status_listeners.remove(listener)

        return unsubscribe

    def _set_status(self, status: SessionStatus, error: Optional[str] = None) -> None:
        self.status = status
        self.error = error
        for listener in list(self._status_listeners):
            listener(status, error)

    # Document

    async def open(self, url: str) -> bool:
        """Open the PDF at ``url``.

        Status goes to LOADING, then READY or ERROR. A document is only
        exposed once fully opened; a newer open() supersedes an older one.

        Returns:
            True if the document is now open
        """
        self._open_generation += 1
        generation = self._open_generation
        self._close_document()
        self._set_status(SessionStatus.LOADING)

        try:
            doc = await self.loader.open_async(url)
        except LoadError as e:
            if generation == self._open_generation:
                logger.warning(f"Failed to open {url}: {e}")
                self._set_status(SessionStatus.ERROR, str(e))
            return False

        if generation != self._open_generation:
            doc.close()
            return False

        self.document = doc
        self.flip.reset(doc.page_count)
        self._set_status(SessionStatus.READY)
        return True

    async def open_magazine(self, magazine: Magazine) -> bool:
        return await self.open(magazine.pdf_url)

    def _close_document(self) -> None:
        if self._render_task is not None and not self._render_task.done():
            self._render_task.cancel()
        self._render_task = None
        for surface in self.surfaces.values():
            surface.clear()
        if self.document is not None:
            self.document.close()
            self.document = None
        self.flip.reset(0)

    def close(self) -> None:
        """Release the document and stop listening for layout changes."""
        self._open_generation += 1
        self._close_document()
        self.layout.close()
        self._set_status(SessionStatus.IDLE)

    # Pages

    @property
    def page_count(self) -> int:
        return self.document.page_count if self.document is not None else 0

    @property
    def is_spread(self) -> bool:
        return self.layout.current.pages_visible == 2

    def visible_pages(self) -> Tuple[int, ...]:
        """0-based indices of the pages currently on screen.

        Spread layouts pair pages (1, 2), (3, 4), ... when the cover is shown
        alone, and (0, 1), (2, 3), ... otherwise. A trailing unpaired page is
        shown by itself.
        """
        total = self.page_count
        if total == 0:
            return ()
        current = self.flip.current_page_index
        if not self.is_spread:
            return (current,)

        if self.show_cover:
            if current == 0:
                return (0,)
            left = current if current % 2 == 1 else current - 1
        else:
            left = current - current % 2
        if left + 1 < total:
            return (left, left + 1)
        return (left,)

    async def render_visible(self) -> Dict[str, Optional[RenderOutcome]]:
        """Render the visible pages onto the slot surfaces.

        A failing page marks only its own surface as failed.

        Returns:
            slot name -> Bitmap, RENDER_CANCELLED, or None on failure
        """
        layout = self.layout.current
        doc = self.document
        if doc is None or layout.is_empty:
            return {}

        pages = self.visible_pages()
        slots = SLOTS[:len(pages)]
        for slot in SLOTS[len(pages):]:
            self.surfaces[slot].clear()

        outcomes = await asyncio.gather(*(
            self._render_slot(slot, get_page(doc, index + 1), layout)
            for slot, index in zip(slots, pages)
        ))
        return dict(zip(slots, outcomes))

    async def _render_slot(self, slot: str, page, layout: LayoutDimensions) -> Optional[RenderOutcome]:
        try:
            return await self.rasterizer.render(
                page, layout.page_width, layout.page_height, surface=self.surfaces[slot]
            )
        except RenderError as e:
            logger.warning(f"Page {page.page_number} could not be rendered: {e}")
            return None

    async def render_thumbnails(self):
        """Yield (page index, bitmap) for every page of the open document.

        A page that fails to render yields None in place of its bitmap.
        Iteration stops as soon as the session closes or opens another
        document.
        """
        doc = self.document
        if doc is None:
            return
        for index in range(doc.page_count):
            if self.document is not doc:
                break
            try:
                outcome = await self.rasterizer.render_thumbnail(
                    get_page(doc, index + 1), scale=self.profile.thumbnail_scale
                )
            except RenderError as e:
                if self.document is not doc:
                    break
                logger.warning(f"Thumbnail for page {index + 1} could not be rendered: {e}")
                yield index, None
                continue
            if self.document is not doc:
                break
            if isinstance(outcome, Bitmap):
                yield index, outcome

    async def render_cover(self, magazine: Magazine, width: float = COVER_WIDTH) -> RenderOutcome:
        """Render the first page of ``magazine`` through the cover cache.

        Raises:
            LoadError: If the magazine PDF cannot be opened
            RenderError: If the cover cannot be rendered
        """
        key = cover_cache_key(magazine.id, magazine.pdf_url)

        async def render():
            doc = await self.loader.open_async(magazine.pdf_url)
            try:
                if doc.page_count == 0:
                    raise RenderError(f"Magazine {magazine.id} has no pages")
                return await self.rasterizer.render(get_page(doc, 1), width, width * PAGE_RATIO)
            finally:
                doc.close()

        return await self.cover_cache.get_or_render(key, render)

    # Input

    async def next_page(self) -> bool:
        return await self.flip.flip_next()

    async def prev_page(self) -> bool:
        return await self.flip.flip_prev()

    async def go_to_page(self, page_index: int) -> bool:
        return await self.flip.flip_to(page_index)

    async def handle_key(self, key: str) -> bool:
        return await self.flip.handle_key(key)

    def toggle_sound(self) -> bool:
        """Toggle sound; returns True when sound is now on."""
        return not self.sound.toggle_mute()

    # Embedding

    @staticmethod
    def height_message(height: float, legacy: bool = False) -> Dict[str, object]:
        """Message telling an embedding page how tall the viewer wants to be."""
        return {
            "type": LEGACY_HEIGHT_MESSAGE_TYPE if legacy else HEIGHT_MESSAGE_TYPE,
            "height": int(round(height)),
        }

    @staticmethod
    def parse_height_message(message: Dict[str, object]) -> Optional[int]:
        """Extract a positive height from either message type; None otherwise."""
        if not isinstance(message, dict):
            return None
        if message.get("type") not in (HEIGHT_MESSAGE_TYPE, LEGACY_HEIGHT_MESSAGE_TYPE):
            return None
        height = message.get("height")
        if isinstance(height, bool) or not isinstance(height, (int, float)) or height <= 0:
            return None
        return int(height)

    # Listeners

    def _sync_flip_step(self, layout: LayoutDimensions) -> None:
        # spreads turn a whole leaf
        self.flip.pages_per_flip = 2 if layout.pages_visible == 2 else self.profile.pages_per_flip

    def _on_layout(self, layout: LayoutDimensions, transform: DisplayTransform) -> None:
        self._sync_flip_step(layout)
        self._schedule_render()

    def _on_flip(self, state: FlipState) -> None:
        if not state.is_animating:
            self._schedule_render()

    def _schedule_render(self) -> None:
        if not self.auto_render or self.document is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._render_task = loop.create_task(self.render_visible())
