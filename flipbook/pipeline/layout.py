"""Layout computation for the flipbook viewer.

Page width follows from the container size minus the chrome each display
mode reserves (toolbar, margins, modal padding). Page height is always
``page_width * PAGE_RATIO``. Desktop shows a two-page spread, mobile a single
page capped at ``MOBILE_MAX_PAGE_WIDTH``.

Zoom never changes the computed dimensions or the rasterization target; it is
a display transform applied around the container centre.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, List, Optional, Tuple

from ..models.layout import (
    PAGE_RATIO,
    ContainerSize,
    DeviceClass,
    DisplayMode,
    DisplayTransform,
    LayoutDimensions,
)

logger = logging.getLogger(__name__)

MOBILE_BREAKPOINT = 768
MOBILE_MAX_PAGE_WIDTH = 500
MIN_ZOOM = 1.0
MAX_ZOOM = 3.0
ZOOM_STEP = 0.2
DEFAULT_DEBOUNCE = 0.12

# (horizontal, vertical) space reserved by surrounding chrome
CHROME_PADDING: Dict[DisplayMode, Tuple[float, float]] = {
    DisplayMode.INLINE: (80.0, 160.0),
    DisplayMode.MODAL: (80.0, 120.0),
    DisplayMode.FULLSCREEN: (40.0, 100.0),
}

LayoutListener = Callable[[LayoutDimensions, DisplayTransform], None]


def classify_device(viewport_width: float, breakpoint: int = MOBILE_BREAKPOINT) -> DeviceClass:
    """Return MOBILE when the viewport is narrower than ``breakpoint``."""
    return DeviceClass.MOBILE if viewport_width < breakpoint else DeviceClass.DESKTOP


def clamp_zoom(zoom: float) -> float:
    return max(MIN_ZOOM, min(MAX_ZOOM, zoom))


def step_zoom(zoom: float, steps: int = 1) -> float:
    """Move ``zoom`` by ``steps`` toolbar increments, clamped to the zoom range."""
    return clamp_zoom(round(zoom + steps * ZOOM_STEP, 6))


def compute_layout(
    container: ContainerSize,
    display_mode: DisplayMode = DisplayMode.INLINE,
    device_class: DeviceClass = DeviceClass.DESKTOP,
    zoom: float = 1.0,
) -> LayoutDimensions:
    """Compute page dimensions for a container.

    Pure function of its inputs.

    Args:
        container: Available container size
        display_mode: Inline, modal or fullscreen presentation
        device_class: Mobile (single page) or desktop (spread)
        zoom: Display zoom, recorded on the result and clamped to [1, 3]

    Returns:
        LayoutDimensions; zero-sized when no space is available
    """
    pad_x, pad_y = CHROME_PADDING[DisplayMode(display_mode)]
    avail_w = container.width - pad_x
    avail_h = container.height - pad_y
    device_class = DeviceClass(device_class)
    pages_visible = 1 if device_class == DeviceClass.MOBILE else 2

    if avail_w <= 0 or avail_h <= 0:
        return LayoutDimensions(
            page_width=0.0,
            page_height=0.0,
            device_class=device_class,
            display_mode=DisplayMode(display_mode),
            pages_visible=pages_visible,
            zoom=clamp_zoom(zoom),
        )

    if device_class == DeviceClass.MOBILE:
        width = min(avail_w, MOBILE_MAX_PAGE_WIDTH, avail_h / PAGE_RATIO)
    else:
        width = min(avail_w / 2, avail_h / PAGE_RATIO)

    return LayoutDimensions(
        page_width=width,
        page_height=width * PAGE_RATIO,
        device_class=device_class,
        display_mode=DisplayMode(display_mode),
        pages_visible=pages_visible,
        zoom=clamp_zoom(zoom),
    )


def compute_display_transform(
    layout: LayoutDimensions, container: ContainerSize, zoom: Optional[float] = None
) -> DisplayTransform:
    """Place the zoomed spread so its centre stays at the container centre."""
    zoom = clamp_zoom(layout.zoom if zoom is None else zoom)
    content_w = layout.spread_width * zoom
    content_h = layout.page_height * zoom
    return DisplayTransform(
        zoom=zoom,
        offset_x=(container.width - content_w) / 2,
        offset_y=(container.height - content_h) / 2,
        content_width=content_w,
        content_height=content_h,
    )


class LayoutEngine:
    """Stateful wrapper around compute_layout with debounced resize handling.

    Resize notifications arriving within ``debounce`` seconds of each other
    are coalesced into a single recomputation using the last container size.
    Listeners are called with (layout, transform) only when either changes.
    """

    def __init__(
        self,
        display_mode: DisplayMode = DisplayMode.INLINE,
        debounce: float = DEFAULT_DEBOUNCE,
        mobile_breakpoint: int = MOBILE_BREAKPOINT,
    ):
        self.display_mode = DisplayMode(display_mode)
        self.debounce = debounce
        self.mobile_breakpoint = mobile_breakpoint
        self.zoom = MIN_ZOOM
        self.container = ContainerSize(0.0, 0.0)
        self.viewport_width = 0.0
        self.recompute_count = 0
        self._layout = compute_layout(self.container, self.display_mode)
        self._transform = compute_display_transform(self._layout, self.container)
        self._listeners: List[LayoutListener] = []
        self._pending: Optional[asyncio.TimerHandle] = None

    @property
    def current(self) -> LayoutDimensions:
        return self._layout

    @property
    def transform(self) -> DisplayTransform:
        return self._transform

    @property
    def device_class(self) -> DeviceClass:
        return classify_device(self.viewport_width, self.mobile_breakpoint)

    def subscribe(self, listener: LayoutListener) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def notify_resize(self, container: ContainerSize, viewport_width: Optional[float] = None) -> None:
        """Record a container resize; recomputation is debounced.

        Without a running event loop the layout is recomputed immediately.
        """
        self.container = container
        self.viewport_width = container.width if viewport_width is None else viewport_width

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._recompute()
            return

        if self._pending is not None:
            self._pending.cancel()
        self._pending = loop.call_later(self.debounce, self._fire_pending)

    def set_display_mode(self, mode: DisplayMode) -> None:
        self.display_mode = DisplayMode(mode)
        self._recompute()

    def set_zoom(self, zoom: float) -> float:
        """Set display zoom (clamped). Returns the applied value."""
        self.zoom = clamp_zoom(zoom)
        self._recompute()
        return self.zoom

    def zoom_in(self) -> float:
        return self.set_zoom(step_zoom(self.zoom, 1))

    def zoom_out(self) -> float:
        return self.set_zoom(step_zoom(self.zoom, -1))

    def flush(self) -> None:
        """Apply a pending debounced resize now."""
        if self._pending is not None:
            self._pending.cancel()
            self._fire_pending()

    def close(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        self._listeners.clear()

    def _fire_pending(self) -> None:
        self._pending = None
        self._recompute()

    def _recompute(self) -> None:
        self.recompute_count += 1
        layout = compute_layout(self.container, self.display_mode, self.device_class, self.zoom)
        transform = compute_display_transform(layout, self.container)
        if layout == self._layout and transform == self._transform:
            return

        self._layout = layout
        self._transform = transform
        logger.debug(
            f"Layout: {layout.page_width:.1f}x{layout.page_height:.1f} "
            f"({layout.device_class.value}, {layout.display_mode.value}, zoom {layout.zoom:.1f})"
        )
        for listener in list(self._listeners):
            listener(layout, transform)
