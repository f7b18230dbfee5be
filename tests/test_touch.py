"""
Tests for TouchHandler - vertical swipes, taps and long press.
"""
import time
import pytest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from studio.handlers.touch import TouchHandler

CARD_HEIGHT = 800


class TestSwipeDetection:
    """Tests for swipe gesture detection."""

    def test_swipe_up_goes_to_next(self):
        """Finger moving toward the top advances the feed."""
        handler = TouchHandler(CARD_HEIGHT)

        handler.on_down((240, 600))
        handler.on_move((240, 450))
        action, velocity = handler.on_up((240, 300))

        assert action == 'next'
        assert velocity > 0

    def test_swipe_down_goes_to_previous(self):
        handler = TouchHandler(CARD_HEIGHT)

        handler.on_down((240, 200))
        action, velocity = handler.on_up((240, 500))

        assert action == 'previous'
        assert velocity < 0

    def test_tap_detected(self):
        """Tap (no significant movement) is detected."""
        handler = TouchHandler(CARD_HEIGHT)

        handler.on_down((240, 400))
        action, velocity = handler.on_up((240, 410))

        assert action == 'tap'
        assert velocity == 0.0

    def test_fast_flick_counts_as_swipe(self):
        """A short but quick flick passes on velocity alone."""
        handler = TouchHandler(CARD_HEIGHT)

        handler.on_down((240, 400))
        action, _ = handler.on_up((240, 370))

        assert action == 'next'

    def test_slow_short_drag_is_tap(self):
        handler = TouchHandler(CARD_HEIGHT)

        handler.on_down((240, 400))
        handler.start_time -= 0.5
        action, _ = handler.on_up((240, 360))

        assert action == 'tap'

    def test_horizontal_swipe_ignored(self):
        handler = TouchHandler(CARD_HEIGHT)

        handler.on_down((50, 400))
        action, _ = handler.on_up((350, 420))

        assert action is None

    def test_velocity_is_clamped(self):
        handler = TouchHandler(CARD_HEIGHT)

        handler.on_down((240, 5000))
        _, velocity = handler.on_up((240, 0))

        assert velocity == 5.0

    def test_up_without_down(self):
        handler = TouchHandler(CARD_HEIGHT)
        assert handler.on_up((240, 100)) == (None, 0.0)


class TestDrag:
    """Tests for drag tracking."""

    def test_drag_in_card_heights(self):
        handler = TouchHandler(CARD_HEIGHT)
        handler.on_down((240, 600))

        assert handler.on_move((240, 200)) == pytest.approx(0.5)
        assert handler.is_swiping

    def test_small_move_is_not_a_drag(self):
        handler = TouchHandler(CARD_HEIGHT)
        handler.on_down((240, 600))
        handler.on_move((240, 590))
        assert not handler.is_swiping

    def test_move_without_down(self):
        assert TouchHandler(CARD_HEIGHT).on_move((0, 0)) == 0.0


class TestLongPress:
    """Tests for long press detection."""

    def test_long_press_fires_once(self):
        handler = TouchHandler(CARD_HEIGHT)
        handler.on_down((240, 400))
        assert not handler.check_long_press()

        handler.start_time = time.time() - 1.0
        assert handler.check_long_press()
        assert not handler.check_long_press()

    def test_long_press_swallows_release(self):
        handler = TouchHandler(CARD_HEIGHT)
        handler.on_down((240, 400))
        handler.start_time = time.time() - 1.0
        handler.check_long_press()

        assert handler.on_up((240, 400)) == (None, 0.0)

    def test_drag_cancels_long_press(self):
        handler = TouchHandler(CARD_HEIGHT)
        handler.on_down((240, 400))
        handler.on_move((240, 300))
        handler.start_time = time.time() - 1.0

        assert not handler.check_long_press()
