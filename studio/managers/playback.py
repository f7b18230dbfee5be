"""
Playback Controller - One playing reel at a time, driven by the active index.

Card states:
    inactive-paused        not the active card, paused at position 0
    active-playing         the active card, playing
    active-paused-by-user  the active card, paused by a tap
"""
import logging
from typing import Optional, Dict, Callable, List

from ..config import OUTRO_DURATION
from ..errors import AutoplayBlocked, MediaError
from ..media import VideoElement
from ..models import INACTIVE_PAUSED, ACTIVE_PLAYING, ACTIVE_PAUSED_BY_USER
from .positions import PositionStore

logger = logging.getLogger(__name__)


class PlaybackController:
    """Visibility-driven playback state machine."""

    def __init__(self, mode: str = 'mobile', positions: Optional[PositionStore] = None,
                 on_view: Optional[Callable[[str], None]] = None, notices=None):
        self.mode = mode
        self.positions = positions
        self.on_view = on_view
        self.notices = notices
        # Mobile starts with sound, desktop stays muted until toggled
        self.sound_on = mode == 'mobile'
        self.elements: Dict[int, VideoElement] = {}
        self.states: Dict[int, str] = {}
        self.active_index: Optional[int] = None
        self.outro_remaining = 0.0

    # ============================================
    # ELEMENTS
    # ============================================

    def attach(self, index: int, element: VideoElement):
        """Register the element for a card. Starts it if the card is already active."""
        self.elements[index] = element
        element.pause()
        element.muted = True
        if index == self.active_index:
            self._start(index)
        else:
            self.states[index] = INACTIVE_PAUSED

    def detach(self, index: int):
        element = self.elements.pop(index, None)
        if element is not None:
            self._save_position(element)
            element.pause()
        self.states.pop(index, None)

    def state(self, index: int) -> str:
        return self.states.get(index, INACTIVE_PAUSED)

    @property
    def active_element(self) -> Optional[VideoElement]:
        if self.active_index is None:
            return None
        return self.elements.get(self.active_index)

    @property
    def playing_indices(self) -> List[int]:
        return [i for i, el in self.elements.items() if el.playing]

    @property
    def is_audible(self) -> bool:
        element = self.active_element
        if element is None:
            return self.sound_on
        return not element.muted

    @property
    def in_outro(self) -> bool:
        return self.outro_remaining > 0

    # ============================================
    # TRANSITIONS
    # ============================================

    def activate(self, index: int) -> str:
        """Make `index` the active card. Every other card is paused and rewound."""
        if index == self.active_index:
            return self.state(index)

        for other, element in self.elements.items():
            if other == index:
                continue
            if element.playing or self.states.get(other) != INACTIVE_PAUSED:
                self._save_position(element)
            element.pause()
            element.seek(0)
            self.states[other] = INACTIVE_PAUSED

        logger.debug(f'Playback: active {self.active_index} -> {index}')
        self.active_index = index
        self.outro_remaining = 0.0
        if index in self.elements:
            self._start(index)
        return self.state(index)

    def toggle_pause(self) -> Optional[str]:
        """Tap on the active card: pause or resume without changing the active card."""
        index = self.active_index
        element = self.active_element
        if element is None:
            return None

        element.user_gesture = True
        if self.states.get(index) == ACTIVE_PLAYING:
            element.pause()
            self._save_position(element)
            self.states[index] = ACTIVE_PAUSED_BY_USER
            self.outro_remaining = 0.0
        else:
            self._play(index, element)
        return self.states.get(index)

    def toggle_mute(self) -> bool:
        """Flip sound for the session. Returns True if sound is now on.

        Follows what the active card is actually doing, so a card that fell
        back to muted autoplay is unmuted by the first toggle.
        """
        element = self.active_element
        self.sound_on = element.muted if element is not None else not self.sound_on
        if element is not None:
            element.user_gesture = True
            element.muted = not self.sound_on
        logger.info(f'Sound {"on" if self.sound_on else "off"}')
        return self.sound_on

    def tick(self, dt: float):
        """Advance the active element; loop it after the outro."""
        element = self.active_element
        if element is None:
            return

        if self.outro_remaining > 0:
            self.outro_remaining -= dt
            if self.outro_remaining <= 0:
                self.outro_remaining = 0.0
                if self.states.get(self.active_index) == ACTIVE_PLAYING:
                    element.seek(0)
                    element.play()
            return

        if element.tick(dt):
            logger.debug(f'Ended: {element.video_id}')
            if self.positions:
                self.positions.clear(element.video_id)
            self.outro_remaining = OUTRO_DURATION

    # ============================================
    # INTERNALS
    # ============================================

    def _start(self, index: int):
        element = self.elements[index]
        if self.positions:
            saved = self.positions.get(element.video_id)
            if 0 < saved < element.duration:
                element.seek(saved)
        self._play(index, element)

    def _play(self, index: int, element: VideoElement):
        element.muted = not self.sound_on
        try:
            try:
                element.play()
            except AutoplayBlocked as e:
                logger.info(f'{e}; falling back to muted playback')
                element.muted = True
                element.play()
        except MediaError as e:
            logger.warning(f'Playback failed for {element.video_id}: {e}')
            self.states[index] = ACTIVE_PAUSED_BY_USER
            if self.notices:
                self.notices.error('Could not play this video')
            return

        self.states[index] = ACTIVE_PLAYING
        if self.on_view:
            self.on_view(element.video_id)

    def _save_position(self, element: VideoElement):
        if self.positions and element.current_time > 0 and not element.ended:
            self.positions.save(element.video_id, element.current_time)
