"""Page rasterization with quality scaling, a pixel budget and cooperative cancellation.

A page is rendered at ``min(target_w / native_w, target_h / native_h) * quality``
pixels per point into an offscreen RGB pixmap that is cleared to white first,
so transparent PDF regions never show through. The offscreen pixmap is filled
band by band; between bands the render yields to the event loop and checks its
cancellation flag. Only a complete bitmap is swapped onto the destination
surface, and only while the task is still the surface's active task, so a
superseded render can never overwrite a newer one.

Stored bitmap resolution is independent of the on-screen size: the viewer
displays the bitmap at ``target_w x target_h`` and lets the toolkit downsample.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import math
from typing import Optional, Union

import fitz  # pymupdf

from ..models.bitmap import Bitmap
from ..models.page import PageHandle
from .loader import PageRangeError

logger = logging.getLogger(__name__)

DEFAULT_QUALITY_MULTIPLIER = 2.0
# 4096 x 4096, the smallest canvas area limit among mainstream browsers/GPUs
MAX_CANVAS_PIXELS = 16_777_216
DEFAULT_BAND_HEIGHT = 256
DEFAULT_RENDER_TIMEOUT = 30.0
THUMBNAIL_SCALE = 0.3


class RenderError(Exception):
    """Raised when rasterization fails for a reason other than cancellation."""
    pass


class RenderCancelled:
    """Outcome of a cancelled or superseded render.

    Cancellation is expected under rapid navigation and is not an error; the
    single instance ``RENDER_CANCELLED`` is returned instead of a Bitmap.
    """

    _instance: Optional["RenderCancelled"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "RENDER_CANCELLED"


RENDER_CANCELLED = RenderCancelled()

RenderOutcome = Union[Bitmap, RenderCancelled]


def compute_render_scale(
    native_width: float,
    native_height: float,
    target_width: float,
    target_height: float,
    quality: float = DEFAULT_QUALITY_MULTIPLIER,
    max_pixels: int = MAX_CANVAS_PIXELS,
) -> float:
    """Compute the rasterization scale for a page.

    Args:
        native_width: Page width at scale 1 (points)
        native_height: Page height at scale 1 (points)
        target_width: On-screen width the page is displayed at
        target_height: On-screen height the page is displayed at
        quality: Oversampling multiplier (1.5-3 for retina sharpness)
        max_pixels: Upper bound for width * height of the rendered bitmap,
            measured in whole pixels after rounding up

    Returns:
        Scale in pixels per point; 0.0 when the target is empty
    """
    if native_width <= 0 or native_height <= 0:
        raise ValueError(f"Invalid native page size {native_width}x{native_height}")
    if target_width <= 0 or target_height <= 0 or quality <= 0:
        return 0.0

    scale = min(target_width / native_width, target_height / native_height) * quality
    if (native_width * scale) * (native_height * scale) > max_pixels:
        scale = math.sqrt(max_pixels / (native_width * native_height))
    # the pixmap is sized by rounding up; shrink until whole pixels fit
    while math.ceil(native_width * scale) * math.ceil(native_height * scale) > max_pixels:
        scale = min(
            (math.ceil(native_width * scale) - 1) / native_width,
            (math.ceil(native_height * scale) - 1) / native_height,
        ) * (1 - 1e-9)
    return scale


class RenderSurface:
    """Destination for rendered bitmaps (the viewer's canvas for one page slot).

    At most one RenderTask is active per surface. ``bitmap`` only ever changes
    through an atomic swap of a fully rendered bitmap.
    """

    def __init__(self, name: str = ""):
        self.name = name
        self.bitmap: Optional[Bitmap] = None
        self.generation = 0
        self.failed = False
        self._active_task: Optional[RenderTask] = None

    @property
    def active_task(self) -> Optional["RenderTask"]:
        return self._active_task

    def claim(self, task: "RenderTask") -> Optional["RenderTask"]:
        """Make ``task`` the active task and return the one it replaces."""
        previous = self._active_task
        self._active_task = task
        return previous

    def swap(self, task: "RenderTask", bitmap: Bitmap) -> bool:
        """Replace the displayed bitmap if ``task`` is still current."""
        if task is not self._active_task or task.cancelled:
            return False
        self.bitmap = bitmap
        self.generation += 1
        self.failed = False
        return True

    def mark_failed(self, task: "RenderTask") -> None:
        if task is self._active_task:
            self.failed = True

    def clear(self) -> None:
        if self._active_task is not None:
            self._active_task.cancel()
        self._active_task = None
        self.bitmap = None
        self.failed = False
        self.generation += 1

    def __repr__(self) -> str:
        return f"RenderSurface({self.name!r}, generation={self.generation})"


class RenderTask:
    """One in-flight rasterization of (page, scale) onto a surface. Never reused."""

    _ids = itertools.count(1)

    def __init__(self, page: PageHandle, scale: float, surface: Optional[RenderSurface] = None):
        self.task_id = next(self._ids)
        self.page = page
        self.scale = scale
        self.surface = surface
        self.cancelled = False
        self._done = asyncio.Event()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def cancel(self) -> None:
        self.cancelled = True

    async def wait(self) -> None:
        await self._done.wait()

    def finish(self) -> None:
        self._done.set()

    def __repr__(self) -> str:
        return (
            f"RenderTask(#{self.task_id}, page={self.page.page_number}, "
            f"scale={self.scale:.3f}, cancelled={self.cancelled})"
        )


class PageRasterizer:
    """Renders page handles to bitmaps."""

    def __init__(
        self,
        quality_multiplier: float = DEFAULT_QUALITY_MULTIPLIER,
        max_canvas_pixels: int = MAX_CANVAS_PIXELS,
        band_height: int = DEFAULT_BAND_HEIGHT,
        timeout: float = DEFAULT_RENDER_TIMEOUT,
    ):
        """Initialize rasterizer.

        Args:
            quality_multiplier: Default oversampling multiplier
            max_canvas_pixels: Pixel budget per rendered bitmap
            band_height: Rows rendered between cancellation checks
            timeout: Seconds before a render fails with RenderError
        """
        self.quality_multiplier = quality_multiplier
        self.max_canvas_pixels = max_canvas_pixels
        self.band_height = max(1, band_height)
        self.timeout = timeout

    async def render(
        self,
        page: PageHandle,
        target_width: float,
        target_height: float,
        quality: Optional[float] = None,
        surface: Optional[RenderSurface] = None,
    ) -> RenderOutcome:
        """Rasterize ``page`` for display at target_width x target_height.

        When ``surface`` is given, any render already active on it is
        cancelled and awaited first, and the result is swapped onto the
        surface if this task is still current when it completes.

        Returns:
            Bitmap, or RENDER_CANCELLED if the render was superseded

        Raises:
            PageRangeError: If the handle's page number is out of bounds
            RenderError: If rasterization fails or exceeds the timeout
        """
        self._check_range(page)
        if quality is None:
            quality = self.quality_multiplier
        scale = compute_render_scale(
            page.width, page.height, target_width, target_height,
            quality=quality, max_pixels=self.max_canvas_pixels,
        )
        if scale <= 0:
            raise RenderError(
                f"Cannot render page {page.page_number} into {target_width}x{target_height}"
            )
        return await self._run(RenderTask(page, scale, surface))

    async def render_thumbnail(self, page: PageHandle, scale: float = THUMBNAIL_SCALE) -> RenderOutcome:
        """Rasterize ``page`` at a fixed scale (thumbnail grid, gallery covers)."""
        self._check_range(page)
        return await self._run(RenderTask(page, scale))

    async def _run(self, task: RenderTask) -> RenderOutcome:
        surface = task.surface
        try:
            if surface is not None:
                previous = surface.claim(task)
                if previous is not None and not previous.done:
                    previous.cancel()
                    await asyncio.wait_for(previous.wait(), self.timeout)
            outcome = await asyncio.wait_for(self._rasterize(task), self.timeout)
        except asyncio.TimeoutError as e:
            if surface is not None:
                surface.mark_failed(task)
            raise RenderError(
                f"Rendering page {task.page.page_number} timed out after {self.timeout}s"
            ) from e
        except RenderError:
            if surface is not None:
                surface.mark_failed(task)
            raise
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            task.finish()

        if outcome is RENDER_CANCELLED:
            logger.debug(f"Render cancelled: {task!r}")
            return RENDER_CANCELLED

        if surface is not None and not surface.swap(task, outcome):
            logger.debug(f"Discarding stale render: {task!r}")
            return RENDER_CANCELLED
        return outcome

    async def _rasterize(self, task: RenderTask) -> RenderOutcome:
        page = task.page
        handle = page.document.handle
        if handle is None:
            raise RenderError(f"Document closed before rendering page {page.page_number}")

        await asyncio.sleep(0)
        if task.cancelled:
            return RENDER_CANCELLED

        try:
            fitz_page = handle[page.index]
            rect = fitz_page.rect
            matrix = fitz.Matrix(task.scale, task.scale)
            target = fitz.Pixmap(fitz.csRGB, (rect * matrix).irect, False)
            target.clear_with(255)
        except Exception as e:
            raise RenderError(f"Failed to prepare page {page.page_number}: {e}") from e

        band = self.band_height / task.scale
        # one pixel of overlap hides rounding seams between bands
        overlap = 1.0 / task.scale
        y = rect.y0
        while y < rect.y1:
            if task.cancelled:
                return RENDER_CANCELLED
            clip = fitz.Rect(rect.x0, y, rect.x1, min(y + band + overlap, rect.y1))
            try:
                pix = fitz_page.get_pixmap(matrix=matrix, clip=clip, alpha=False)
                target.copy(pix, pix.irect)
            except Exception as e:
                raise RenderError(f"Failed to render page {page.page_number}: {e}") from e
            y += band
            await asyncio.sleep(0)

        if task.cancelled:
            return RENDER_CANCELLED

        return Bitmap(
            width=target.width,
            height=target.height,
            samples=bytes(target.samples),
            scale=task.scale,
            page_number=page.page_number,
        )

    @staticmethod
    def _check_range(page: PageHandle) -> None:
        count = page.document.page_count
        if not 1 <= page.page_number <= count:
            raise PageRangeError(page.page_number, count)
