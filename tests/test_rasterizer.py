"""Unit tests for page rasterization."""

import asyncio
import math

import pytest

from flipbook.models.bitmap import Bitmap
from flipbook.models.page import PageHandle
from flipbook.pipeline.loader import PageRangeError, get_page, open_document
from flipbook.pipeline.rasterizer import (
    MAX_CANVAS_PIXELS,
    RENDER_CANCELLED,
    PageRasterizer,
    RenderCancelled,
    RenderError,
    RenderSurface,
    RenderTask,
    compute_render_scale,
)


@pytest.fixture
def document(pdf_path):
    doc = open_document(str(pdf_path))
    yield doc
    doc.close()


@pytest.fixture
def red_document(make_pdf):
    doc = open_document(str(make_pdf("red.pdf", pages=1, red_top_left=True)))
    yield doc
    doc.close()


class TestComputeRenderScale:
    """Test scale computation."""

    def test_fits_smaller_ratio_times_quality(self):
        scale = compute_render_scale(595, 842, 400, 565.6, quality=2.0)
        expected = min(400 / 595, 565.6 / 842) * 2.0
        assert scale == pytest.approx(expected)

    def test_quality_one_matches_target(self):
        scale = compute_render_scale(500, 1000, 250, 500, quality=1.0)
        assert scale == pytest.approx(0.5)

    def test_clamped_to_pixel_budget(self):
        scale = compute_render_scale(595, 842, 5000, 7070, quality=3.0)
        assert scale == pytest.approx(math.sqrt(MAX_CANVAS_PIXELS / (595 * 842)), rel=1e-2)
        assert math.ceil(595 * scale) * math.ceil(842 * scale) <= MAX_CANVAS_PIXELS

    @pytest.mark.parametrize("max_pixels", [10_000, 12_345, 99_999])
    def test_whole_pixel_area_within_budget(self, max_pixels):
        """Rounding the scaled size up to whole pixels never exceeds the budget."""
        scale = compute_render_scale(595, 842, 1000, 1414, quality=3.0, max_pixels=max_pixels)
        assert math.ceil(595 * scale) * math.ceil(842 * scale) <= max_pixels
        assert scale > 0

    def test_empty_target(self):
        assert compute_render_scale(595, 842, 0, 0) == 0.0

    def test_invalid_native_size(self):
        with pytest.raises(ValueError):
            compute_render_scale(0, 842, 100, 100)


def test_render_cancelled_is_singleton_and_falsy():
    assert RenderCancelled() is RENDER_CANCELLED
    assert not RENDER_CANCELLED


class TestPageRasterizer:
    """Test rendering real pages."""

    def test_render_size_follows_target_and_quality(self, document):
        rasterizer = PageRasterizer(quality_multiplier=1.0)
        bitmap = asyncio.run(rasterizer.render(get_page(document, 1), 100, 141.4))

        assert isinstance(bitmap, Bitmap)
        assert abs(bitmap.width - 100) <= 1
        assert abs(bitmap.height - 141) <= 1
        assert bitmap.page_number == 1

        sharp = asyncio.run(rasterizer.render(get_page(document, 1), 100, 141.4, quality=2.0))
        assert abs(sharp.width - 200) <= 1
        assert sharp.scale == pytest.approx(bitmap.scale * 2)

    def test_background_is_white(self, document):
        bitmap = asyncio.run(PageRasterizer(quality_multiplier=1.0).render(get_page(document, 2), 120, 170))
        assert bitmap.pixel(bitmap.width - 2, 1) == (255, 255, 255)

    def test_banded_render_has_no_seams(self, red_document):
        """Content spanning many bands renders continuously."""
        rasterizer = PageRasterizer(quality_multiplier=1.0, band_height=8)
        bitmap = asyncio.run(rasterizer.render(get_page(red_document, 1), 200, 283))

        column = bitmap.width // 4
        for y in range(1, bitmap.height // 2 - 2):
            assert bitmap.pixel(column, y) == (255, 0, 0), f"row {y}"
        assert bitmap.pixel(bitmap.width * 3 // 4, bitmap.height // 4) == (255, 255, 255)

    def test_pixel_budget_respected(self, document):
        rasterizer = PageRasterizer(quality_multiplier=3.0, max_canvas_pixels=10_000)
        bitmap = asyncio.run(rasterizer.render(get_page(document, 1), 1000, 1414))

        assert bitmap.width * bitmap.height <= 10_000
        assert bitmap.scale == pytest.approx(math.sqrt(10_000 / (595 * 842)), rel=2e-2)

    def test_thumbnail_scale(self, document):
        bitmap = asyncio.run(PageRasterizer().render_thumbnail(get_page(document, 3), scale=0.3))
        assert abs(bitmap.width - round(595 * 0.3)) <= 1
        assert bitmap.page_number == 3

    def test_empty_target_is_error(self, document):
        with pytest.raises(RenderError):
            asyncio.run(PageRasterizer().render(get_page(document, 1), 0, 0))

    def test_out_of_range_handle(self, document):
        handle = PageHandle(page_number=9, document=document, width=595, height=842)
        with pytest.raises(PageRangeError):
            asyncio.run(PageRasterizer().render(handle, 100, 141))

    def test_closed_document(self, pdf_path):
        doc = open_document(str(pdf_path))
        page = get_page(doc, 1)
        doc.close()
        with pytest.raises(RenderError, match="closed"):
            asyncio.run(PageRasterizer().render(page, 100, 141))

    def test_timeout_marks_surface_failed(self, document):
        rasterizer = PageRasterizer(timeout=0)
        surface = RenderSurface("left")

        with pytest.raises(RenderError, match="timed out"):
            asyncio.run(rasterizer.render(get_page(document, 1), 100, 141, surface=surface))
        assert surface.failed
        assert surface.bitmap is None


class TestRenderSurface:
    """Test surface ownership and stale-render discarding."""

    def test_newer_render_supersedes_older(self, document):
        rasterizer = PageRasterizer(quality_multiplier=1.0, band_height=4)
        surface = RenderSurface("left")

        async def run():
            first = asyncio.create_task(rasterizer.render(get_page(document, 1), 300, 424, surface=surface))
            await asyncio.sleep(0)
            second = await rasterizer.render(get_page(document, 2), 300, 424, surface=surface)
            return await first, second

        first, second = asyncio.run(run())

        assert first is RENDER_CANCELLED
        assert isinstance(second, Bitmap)
        assert surface.bitmap is second
        assert surface.bitmap.page_number == 2
        assert surface.generation == 1

    def test_cancelled_waiter_does_not_block_surface(self, document):
        """A render cancelled while waiting for its predecessor leaves the surface usable."""
        rasterizer = PageRasterizer(quality_multiplier=1.0)
        surface = RenderSurface("left")

        async def run():
            # predecessor that only settles when told to
            blocker = RenderTask(get_page(document, 1), 1.0, surface)
            surface.claim(blocker)
            waiting = asyncio.create_task(rasterizer.render(get_page(document, 2), 300, 424, surface=surface))
            await asyncio.sleep(0)
            await asyncio.sleep(0)
            assert blocker.cancelled
            waiting.cancel()
            with pytest.raises(asyncio.CancelledError):
                await waiting
            return await asyncio.wait_for(
                rasterizer.render(get_page(document, 3), 300, 424, surface=surface), 5
            )

        third = asyncio.run(run())

        assert isinstance(third, Bitmap)
        assert surface.bitmap is third
        assert surface.bitmap.page_number == 3

    def test_swap_rejects_inactive_task(self, document):
        surface = RenderSurface()
        page = get_page(document, 1)
        bitmap = Bitmap(width=1, height=1, samples=b"\xff\xff\xff")

        async def run():
            old = RenderTask(page, 1.0, surface)
            new = RenderTask(page, 1.0, surface)
            surface.claim(old)
            assert surface.claim(new) is old
            return surface.swap(old, bitmap), surface.swap(new, bitmap)

        stale, current = asyncio.run(run())
        assert stale is False
        assert current is True
        assert surface.bitmap is bitmap

    def test_clear_cancels_active_task(self, document):
        surface = RenderSurface()

        async def run():
            task = RenderTask(get_page(document, 1), 1.0, surface)
            surface.claim(task)
            surface.clear()
            return task

        task = asyncio.run(run())
        assert task.cancelled
        assert surface.active_task is None
        assert surface.bitmap is None
