"""Flip state data model for the page-turn state machine."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class FlipPhase(str, Enum):
    IDLE = "idle"
    TRANSITIONING = "transitioning"


@dataclass(frozen=True)
class FlipState:
    """Snapshot of the flip controller.

    Attributes:
        current_page_index: 0-based index of the page at rest (the "from"
            page while a transition runs)
        total_pages: Number of pages in the open document
        is_animating: True only inside a bounded transition window
        target_page_index: Destination index while transitioning, else None
    """

    current_page_index: int = 0
    total_pages: int = 0
    is_animating: bool = False
    target_page_index: Optional[int] = None

    def __post_init__(self):
        if self.total_pages < 0:
            raise ValueError(f"total_pages must be >= 0, got {self.total_pages}")
        upper = max(self.total_pages - 1, 0)
        if not 0 <= self.current_page_index <= upper:
            raise ValueError(
                f"current_page_index {self.current_page_index} outside [0, {upper}]"
            )

    @property
    def phase(self) -> FlipPhase:
        return FlipPhase.TRANSITIONING if self.is_animating else FlipPhase.IDLE

    @property
    def is_first(self) -> bool:
        return self.current_page_index == 0

    @property
    def is_last(self) -> bool:
        return self.current_page_index >= self.total_pages - 1
