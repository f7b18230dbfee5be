"""
Render Context - Bundles all state needed for rendering.
"""
from dataclasses import dataclass, field
from typing import Optional, List, Dict

from ..models import Video, Notice


@dataclass
class RenderContext:
    """All state needed to render a frame."""
    videos: List[Video]
    scroll_y: float
    active_index: Optional[int]
    progress: Dict[int, float]         # card index -> playback progress 0-1
    card_states: Dict[int, str]        # card index -> playback state
    liked: set
    subscribed: set
    subscriber_counts: Dict[str, int]
    sound_on: bool
    in_outro: bool
    end_of_feed: bool
    is_loading: bool
    category: str
    sort: str
    notices: List[Notice] = field(default_factory=list)
    unread_notifications: int = 0
    recording_seconds: Optional[float] = None  # None when not recording
