"""Page-turn state machine.

The controller is either Idle at a page or Transitioning between two pages.
A flip is accepted only from Idle; requests arriving while a transition runs
are dropped rather than queued. The check and the state change happen before
the first await, so under cooperative scheduling two flips can never both be
accepted.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional

from ..models.flip_state import FlipState

logger = logging.getLogger(__name__)

DEFAULT_FLIP_DURATION = 0.6
SWIPE_THRESHOLD = 50

NEXT_KEYS = {"ArrowRight", "PageDown", "Space", " "}
PREV_KEYS = {"ArrowLeft", "PageUp"}

FlipListener = Callable[[FlipState], None]


class FlipController:
    """Owns the current page index and serializes page turns."""

    def __init__(
        self,
        total_pages: int = 0,
        sound=None,
        duration: float = DEFAULT_FLIP_DURATION,
        pages_per_flip: int = 1,
    ):
        """Initialize controller.

        Args:
            total_pages: Page count of the open document
            sound: Object with a ``play_turn()`` method, or None for silence
            duration: Transition time in seconds
            pages_per_flip: Pages advanced by next/prev (2 for spread stepping)
        """
        if pages_per_flip < 1:
            raise ValueError(f"pages_per_flip must be >= 1, got {pages_per_flip}")
        self.sound = sound
        self.duration = duration
        self.pages_per_flip = pages_per_flip
        self._state = FlipState(current_page_index=0, total_pages=total_pages)
        self._listeners: List[FlipListener] = []
        self._generation = 0

    @property
    def state(self) -> FlipState:
        return self._state

    @property
    def current_page_index(self) -> int:
        return self._state.current_page_index

    @property
    def total_pages(self) -> int:
        return self._state.total_pages

    @property
    def is_animating(self) -> bool:
        return self._state.is_animating

    def subscribe(self, listener: FlipListener) -> Callable[[], None]:
        """Register a state listener; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def reset(self, total_pages: int) -> None:
        """Return to page 0 for a newly opened document.

        A transition still running for the previous document settles silently.
        """
        self._generation += 1
        self._set_state(FlipState(current_page_index=0, total_pages=total_pages))

    async def flip_next(self) -> bool:
        state = self._state
        if state.is_animating or state.total_pages == 0 or state.is_last:
            return False
        target = min(state.current_page_index + self.pages_per_flip, state.total_pages - 1)
        return await self._transition(target)

    async def flip_prev(self) -> bool:
        state = self._state
        if state.is_animating or state.total_pages == 0 or state.is_first:
            return False
        target = max(state.current_page_index - self.pages_per_flip, 0)
        return await self._transition(target)

    async def flip_to(self, page_index: int) -> bool:
        """Jump to ``page_index`` (0-based), clamped to the document.

        Returns:
            True if the flip was accepted; False when dropped or a no-op
        """
        state = self._state
        if state.is_animating or state.total_pages == 0:
            return False
        target = max(0, min(page_index, state.total_pages - 1))
        if target == state.current_page_index:
            return False
        return await self._transition(target)

    async def handle_key(self, key: str) -> bool:
        """Map a key name to a flip. Unknown keys are ignored."""
        if key in NEXT_KEYS:
            return await self.flip_next()
        if key in PREV_KEYS:
            return await self.flip_prev()
        if key == "Home":
            return await self.flip_to(0)
        if key == "End":
            return await self.flip_to(self._state.total_pages - 1)
        return False

    async def handle_swipe(self, dx: float, threshold: float = SWIPE_THRESHOLD) -> bool:
        """Leftward swipe (negative dx) turns forward, rightward turns back."""
        if dx <= -threshold:
            return await self.flip_next()
        if dx >= threshold:
            return await self.flip_prev()
        return False

    async def _transition(self, target: int) -> bool:
        start = self._state.current_page_index
        total = self._state.total_pages
        generation = self._generation
        self._set_state(
            FlipState(
                current_page_index=start,
                total_pages=total,
                is_animating=True,
                target_page_index=target,
            )
        )
        logger.debug(f"Flip {start} -> {target}")
        if self.sound is not None:
            self.sound.play_turn()

        try:
            await asyncio.sleep(self.duration)
        finally:
            if generation == self._generation:
                self._set_state(FlipState(current_page_index=target, total_pages=total))
        return True

    def _set_state(self, state: FlipState) -> None:
        self._state = state
        for listener in list(self._listeners):
            listener(state)
