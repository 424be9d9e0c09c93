"""Unit tests for the page-turn state machine."""

import asyncio

import pytest

from flipbook.models.flip_state import FlipPhase, FlipState
from flipbook.pipeline.flip_controller import FlipController

FAST = 0.01


class _CountingSound:
    def __init__(self):
        self.plays = 0

    def play_turn(self):
        self.plays += 1
        return True


def _run(coro):
    return asyncio.run(coro)


class TestFlipState:
    """Test FlipState validation."""

    def test_defaults(self):
        state = FlipState()
        assert state.phase == FlipPhase.IDLE
        assert state.is_first
        assert state.is_last

    def test_index_out_of_range(self):
        with pytest.raises(ValueError):
            FlipState(current_page_index=5, total_pages=5)

    def test_negative_total(self):
        with pytest.raises(ValueError):
            FlipState(total_pages=-1)


class TestFlipController:
    """Test page turning."""

    def test_next_and_prev(self):
        sound = _CountingSound()
        controller = FlipController(total_pages=5, sound=sound, duration=FAST)

        async def run():
            assert await controller.flip_next()
            assert await controller.flip_next()
            assert controller.current_page_index == 2
            assert await controller.flip_prev()
            return controller.current_page_index

        assert _run(run()) == 1
        assert sound.plays == 3
        assert not controller.is_animating

    def test_bounds_are_noops(self):
        sound = _CountingSound()
        controller = FlipController(total_pages=2, sound=sound, duration=FAST)

        async def run():
            assert not await controller.flip_prev()
            assert await controller.flip_next()
            assert not await controller.flip_next()

        _run(run())
        assert controller.current_page_index == 1
        assert sound.plays == 1

    def test_empty_document(self):
        controller = FlipController(total_pages=0, duration=FAST)
        assert not _run(controller.flip_next())
        assert not _run(controller.flip_to(3))

    def test_flip_while_animating_is_dropped(self):
        """Concurrent requests during a transition are dropped, not queued."""
        sound = _CountingSound()
        controller = FlipController(total_pages=10, sound=sound, duration=0.05)

        async def run():
            first = asyncio.create_task(controller.flip_next())
            await asyncio.sleep(0)
            assert controller.is_animating
            dropped = await asyncio.gather(controller.flip_next(), controller.flip_prev(), controller.flip_to(7))
            return await first, dropped

        accepted, dropped = _run(run())
        assert accepted is True
        assert dropped == [False, False, False]
        assert controller.current_page_index == 1
        assert sound.plays == 1

    def test_states_observed(self):
        controller = FlipController(total_pages=3, duration=FAST)
        states = []
        controller.subscribe(states.append)

        _run(controller.flip_next())

        assert [s.phase for s in states] == [FlipPhase.TRANSITIONING, FlipPhase.IDLE]
        assert states[0].current_page_index == 0
        assert states[0].target_page_index == 1
        assert states[1].current_page_index == 1
        assert states[1].target_page_index is None

    def test_flip_to_clamps(self):
        controller = FlipController(total_pages=6, duration=FAST)

        assert _run(controller.flip_to(99))
        assert controller.current_page_index == 5
        assert _run(controller.flip_to(-4))
        assert controller.current_page_index == 0
        assert not _run(controller.flip_to(0))

    def test_pages_per_flip(self):
        controller = FlipController(total_pages=6, duration=FAST, pages_per_flip=2)

        async def run():
            await controller.flip_next()
            await controller.flip_next()
            await controller.flip_next()

        _run(run())
        # 0 -> 2 -> 4 -> 5 (clamped)
        assert controller.current_page_index == 5

    def test_invalid_pages_per_flip(self):
        with pytest.raises(ValueError):
            FlipController(total_pages=3, pages_per_flip=0)

    @pytest.mark.parametrize("key,expected", [
        ("ArrowRight", 3),
        ("PageDown", 3),
        ("Space", 3),
        (" ", 3),
        ("ArrowLeft", 1),
        ("PageUp", 1),
        ("Home", 0),
        ("End", 7),
        ("Escape", 2),
    ])
    def test_keys(self, key, expected):
        controller = FlipController(total_pages=8, duration=FAST)
        _run(controller.flip_to(2))
        _run(controller.handle_key(key))
        assert controller.current_page_index == expected

    def test_swipe(self):
        controller = FlipController(total_pages=4, duration=FAST)

        assert _run(controller.handle_swipe(-80))
        assert controller.current_page_index == 1
        assert not _run(controller.handle_swipe(20))
        assert _run(controller.handle_swipe(120))
        assert controller.current_page_index == 0

    def test_reset_during_transition(self):
        """A document switch mid-flip leaves the controller idle at page 0."""
        controller = FlipController(total_pages=10, duration=0.05)

        async def run():
            flip = asyncio.create_task(controller.flip_next())
            await asyncio.sleep(0)
            controller.reset(4)
            await flip

        _run(run())
        assert controller.current_page_index == 0
        assert controller.total_pages == 4
        assert not controller.is_animating

    def test_cancelled_transition_settles(self):
        controller = FlipController(total_pages=5, duration=1.0)

        async def run():
            flip = asyncio.create_task(controller.flip_next())
            await asyncio.sleep(0)
            flip.cancel()
            with pytest.raises(asyncio.CancelledError):
                await flip

        _run(run())
        assert not controller.is_animating
        assert controller.current_page_index == 1

    def test_broken_sound_does_not_block(self):
        class _Broken:
            def play_turn(self):
                return False

        controller = FlipController(total_pages=3, sound=_Broken(), duration=FAST)
        assert _run(controller.flip_next())
