"""Layout data models: container geometry, display context and page dimensions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

# Fixed page aspect ratio (height / width), approximately A4
PAGE_RATIO = 1.414


class DeviceClass(str, Enum):
    """Layout mode chosen from the viewport width."""

    MOBILE = "mobile"
    DESKTOP = "desktop"


class DisplayMode(str, Enum):
    """Presentation context; determines how much space surrounding chrome reserves."""

    INLINE = "inline"
    MODAL = "modal"
    FULLSCREEN = "fullscreen"


@dataclass(frozen=True)
class ContainerSize:
    """Available container size in logical pixels."""

    width: float
    height: float


@dataclass(frozen=True)
class LayoutDimensions:
    """Computed page dimensions for one layout pass.

    Attributes:
        page_width: Width of a single page in logical pixels
        page_height: Height of a single page (always page_width * PAGE_RATIO)
        device_class: Device class the layout was computed for
        display_mode: Display mode the layout was computed for
        pages_visible: 2 for a desktop spread, 1 on mobile
        zoom: Display zoom the layout is shown at (does not change page size)
    """

    page_width: float
    page_height: float
    device_class: DeviceClass = DeviceClass.DESKTOP
    display_mode: DisplayMode = DisplayMode.INLINE
    pages_visible: int = 2
    zoom: float = 1.0

    @property
    def spread_width(self) -> float:
        return self.page_width * self.pages_visible

    @property
    def is_empty(self) -> bool:
        return self.page_width <= 0 or self.page_height <= 0


@dataclass(frozen=True)
class DisplayTransform:
    """Display-only zoom transform, anchored at the container centre.

    Attributes:
        zoom: Uniform scale applied on top of the computed layout
        offset_x: Left edge of the zoomed content relative to the container
        offset_y: Top edge of the zoomed content relative to the container
        content_width: Zoomed content width
        content_height: Zoomed content height
    """

    zoom: float
    offset_x: float
    offset_y: float
    content_width: float
    content_height: float
