"""
Snap Scroller - Vertical snap scrolling for the reel list.
"""
import math
from typing import Dict

from ..config import SNAP_DECAY_RATE


class SnapScroller:
    """One reel per viewport. Items follow the finger, then ease to the snap target.

    Positions are in item units: scroll_y == 2.0 means card 2 fills the viewport.
    """

    SNAP_THRESHOLD = 0.005

    def __init__(self, decay_rate: float = SNAP_DECAY_RATE):
        self.decay_rate = decay_rate
        self.scroll_y = 0.0
        self.target_index = 0
        self.settled = True
        self.max_index = 0

    def set_target(self, index: int):
        self.target_index = max(0, min(index, self.max_index))
        self.settled = False

    def step(self, direction: int):
        """Snap one card up (-1) or down (+1)."""
        self.set_target(self.target_index + direction)

    def drag_to(self, position: float):
        """Follow a drag; position may overshoot by less than one card."""
        self.scroll_y = max(-0.5, min(position, self.max_index + 0.5))
        self.settled = True

    def update(self, dt: float) -> bool:
        """Advance easing. Returns True if the position changed."""
        if self.settled:
            return False

        target = float(self.target_index)
        diff = target - self.scroll_y
        # Frame-rate independent exponential easing
        self.scroll_y += diff * (1 - math.exp(-self.decay_rate * dt))

        if abs(target - self.scroll_y) < self.SNAP_THRESHOLD:
            self.scroll_y = target
            self.settled = True
        return True

    def get_offset(self, item_index: int) -> float:
        """Offset of a card from the viewport in card heights."""
        return item_index - self.scroll_y

    def visibility(self, count: int) -> Dict[int, float]:
        """Visible fraction of each card (what an intersection observer reports)."""
        ratios = {}
        first = max(0, int(math.floor(self.scroll_y)) - 1)
        last = min(count - 1, int(math.ceil(self.scroll_y)) + 1)
        for index in range(first, last + 1):
            ratios[index] = max(0.0, 1.0 - abs(self.get_offset(index)))
        return ratios
