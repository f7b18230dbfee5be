"""
Media Elements - Clock-driven stand-ins for video elements.

The playback controller only talks to this surface (play/pause/seek/muted),
so a real decoder can be swapped in without touching the state machine.
"""
import logging
from typing import Optional

from .config import DEFAULT_VIDEO_DURATION
from .errors import AutoplayBlocked

logger = logging.getLogger(__name__)


class VideoElement:
    """A video whose position advances with `tick(dt)` while playing."""

    def __init__(self, video_id: str, src: str = '', duration: Optional[float] = None,
                 allow_unmuted_autoplay: bool = True):
        self.video_id = video_id
        self.src = src
        self.duration = float(duration or DEFAULT_VIDEO_DURATION)
        self.allow_unmuted_autoplay = allow_unmuted_autoplay
        self.current_time = 0.0
        self.paused = True
        self.muted = True
        self.ended = False
        self.user_gesture = False  # Set once the user interacted (unlocks sound)

    @property
    def playing(self) -> bool:
        return not self.paused and not self.ended

    @property
    def progress(self) -> float:
        """Playback progress as 0.0-1.0."""
        if self.duration <= 0:
            return 0.0
        return min(1.0, self.current_time / self.duration)

    def play(self):
        """Start playback. Raises AutoplayBlocked for unmuted autoplay without a gesture."""
        if not self.muted and not self.allow_unmuted_autoplay and not self.user_gesture:
            raise AutoplayBlocked(f'Unmuted autoplay blocked for {self.video_id}')
        if self.ended:
            self.current_time = 0.0
            self.ended = False
        self.paused = False

    def pause(self):
        self.paused = True

    def seek(self, position: float):
        self.current_time = max(0.0, min(float(position), self.duration))
        self.ended = self.current_time >= self.duration and self.duration > 0

    def tick(self, dt: float) -> bool:
        """Advance playback. Returns True when the video just ended."""
        if not self.playing:
            return False
        self.current_time += dt
        if self.current_time >= self.duration:
            self.current_time = self.duration
            self.ended = True
            self.paused = True
            return True
        return False
