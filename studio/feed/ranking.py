"""
Feed Ranking - Newest-first and engagement ordering.
"""
from datetime import datetime, timedelta
from typing import List, Optional

from ..config import ENGAGEMENT_WINDOW_DAYS
from ..models import Video, utcnow

_EPOCH = datetime.min.replace(tzinfo=utcnow().tzinfo)


def sort_newest(videos: List[Video]) -> List[Video]:
    return sorted(videos, key=lambda v: v.created or _EPOCH, reverse=True)


def rank_by_engagement(videos: List[Video], window_days: float = ENGAGEMENT_WINDOW_DAYS,
                       now: Optional[datetime] = None) -> List[Video]:
    """Order by composite engagement score within a sliding recent window.

    Reels created inside the window rank ahead of older ones; each group is
    ordered by score, then recency.
    """
    cutoff = (now or utcnow()) - timedelta(days=window_days)

    def key(video: Video):
        created = video.created or _EPOCH
        return (created >= cutoff, video.engagement_score, created)

    return sorted(videos, key=key, reverse=True)


def move_to_front(videos: List[Video], video_id: Optional[str]) -> List[Video]:
    """Put the highlighted reel first (deep links)."""
    if not video_id:
        return videos
    for i, video in enumerate(videos):
        if video.id == str(video_id):
            return [video] + videos[:i] + videos[i + 1:]
    return videos
