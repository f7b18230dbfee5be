"""
Touch Handler - Vertical swipe gestures for the reel list.
"""
import time
import logging
from typing import Tuple, Optional

from ..config import SWIPE_THRESHOLD, SWIPE_VELOCITY, LONG_PRESS_TIME

logger = logging.getLogger(__name__)


class TouchHandler:
    """Turns pointer down/move/up into 'next', 'previous', 'tap' and long presses.

    Swiping up (finger moves toward the top) advances to the next reel.
    """

    # Movement before a press counts as a drag instead of a hold
    DRAG_START_THRESHOLD = 15

    def __init__(self, card_height: int):
        self.card_height = card_height
        self.start_x = 0
        self.start_y = 0
        self.start_time = 0.0
        self.dragging = False
        self.drag_offset = 0
        self.long_press_fired = False
        self.is_swiping = False

    def on_down(self, pos: Tuple[int, int]):
        self.start_x, self.start_y = pos
        self.start_time = time.time()
        self.dragging = True
        self.drag_offset = 0
        self.long_press_fired = False
        self.is_swiping = False

    def on_move(self, pos: Tuple[int, int]) -> float:
        """Returns the drag in card heights (positive = dragged up)."""
        if not self.dragging:
            return 0.0
        self.drag_offset = self.start_y - pos[1]
        if not self.is_swiping and abs(self.drag_offset) > self.DRAG_START_THRESHOLD:
            self.is_swiping = True
            logger.debug(f'Drag started, offset={self.drag_offset}px')
        return self.drag_offset / self.card_height

    def check_long_press(self) -> bool:
        """True once when the pointer is held in place long enough."""
        if not self.dragging or self.long_press_fired or self.is_swiping:
            return False
        if time.time() - self.start_time >= LONG_PRESS_TIME:
            self.long_press_fired = True
            logger.debug(f'Long press at ({self.start_x}, {self.start_y})')
            return True
        return False

    def on_up(self, pos: Tuple[int, int]) -> Tuple[Optional[str], float]:
        """
        Returns:
            (action, velocity) where action is 'next', 'previous', 'tap' or None.
            Velocity is in pixels/ms, positive when moving up.
        """
        if not self.dragging:
            return (None, 0.0)

        self.dragging = False
        self.drag_offset = 0
        dy = self.start_y - pos[1]
        dx = pos[0] - self.start_x
        dt = max(50.0, (time.time() - self.start_time) * 1000)

        if self.long_press_fired:
            return (None, 0.0)

        velocity = max(-5.0, min(5.0, dy / dt))

        if abs(dx) > abs(dy) * 1.5 and abs(dx) >= SWIPE_THRESHOLD:
            logger.debug(f'Horizontal swipe ignored, dx={dx}')
            return (None, 0.0)

        if abs(dy) >= SWIPE_THRESHOLD or abs(velocity) >= SWIPE_VELOCITY:
            action = 'next' if dy > 0 else 'previous'
            logger.debug(f'Swipe {action}, dy={dy}px, velocity={velocity:.2f}px/ms')
            return (action, velocity)

        return ('tap', 0.0)
