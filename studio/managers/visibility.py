"""
Visibility Tracker - Derives the single active reel from visibility ratios.
"""
import logging
from typing import Optional, Dict, Callable, Literal

from ..config import DESKTOP_VISIBILITY, MOBILE_VISIBILITY

logger = logging.getLogger(__name__)

Mode = Literal['desktop', 'mobile']


class VisibilityTracker:
    """Intersection-observer style tracker.

    Desktop needs a card fully in view; mobile (snap scrolling) needs 60%.
    The most visible qualifying card is active, ties go to the lower index,
    and the previous card stays active while nothing qualifies.
    """

    def __init__(self, mode: Mode = 'mobile', on_change: Optional[Callable[[int], None]] = None):
        if mode not in ('desktop', 'mobile'):
            raise ValueError(f'Unknown mode: {mode}')
        self.mode = mode
        self.threshold = DESKTOP_VISIBILITY if mode == 'desktop' else MOBILE_VISIBILITY
        self.on_change = on_change
        self.ratios: Dict[int, float] = {}
        self.active_index: Optional[int] = None

    def update(self, entries: Dict[int, float], complete: bool = False) -> Optional[int]:
        """Merge observer entries (index -> ratio) and return the active index.

        With `complete`, the entries cover every visible card and replace
        the previous ratios.
        """
        if complete:
            self.ratios.clear()
        for index, ratio in entries.items():
            if ratio <= 0:
                self.ratios.pop(index, None)
            else:
                self.ratios[index] = min(1.0, ratio)

        candidates = [(ratio, -index) for index, ratio in self.ratios.items() if ratio >= self.threshold]
        if candidates:
            _, neg_index = max(candidates)
            self._set_active(-neg_index)
        return self.active_index

    def reset(self):
        self.ratios.clear()
        self.active_index = None

    def _set_active(self, index: int):
        if index == self.active_index:
            return
        logger.debug(f'Active card: {self.active_index} -> {index} ({self.mode})')
        self.active_index = index
        if self.on_change:
            self.on_change(index)
