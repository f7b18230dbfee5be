"""
Studio Managers - Feed-side state machines.
"""
from .carousel import SnapScroller
from .visibility import VisibilityTracker
from .prefetch import PrefetchQueue, PrefetchTrigger
from .positions import PositionStore
from .playback import PlaybackController
from .engagement import EngagementManager
from .notices import NoticeBoard
from .notifications import NotificationCenter

__all__ = [
    'SnapScroller', 'VisibilityTracker', 'PrefetchQueue', 'PrefetchTrigger',
    'PositionStore', 'PlaybackController', 'EngagementManager', 'NoticeBoard',
    'NotificationCenter',
]
