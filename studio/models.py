"""
Studio Data Models - Core data structures.
"""
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, List, Literal

from .config import SCORE_WEIGHTS, NOTICE_DURATION
from .utils import public_url, parse_timestamp


# Playback card states
INACTIVE_PAUSED = 'inactive-paused'
ACTIVE_PLAYING = 'active-playing'
ACTIVE_PAUSED_BY_USER = 'active-paused-by-user'

CardState = Literal['inactive-paused', 'active-playing', 'active-paused-by-user']


@dataclass
class Creator:
    """Author of a reel (row from `users`)."""
    id: Optional[str] = None
    name: str = ''
    avatar_url: Optional[str] = None


@dataclass
class Channel:
    """A studio channel (row from `studio_channels`)."""
    id: str
    name: str = ''
    user_id: Optional[str] = None
    description: str = ''
    subscriber_count: int = 0


@dataclass
class Video:
    """A reel in the feed (row from `studio_videos` plus enrichment)."""
    id: str
    video_url: str = ''
    title: str = ''
    description: str = ''
    user_id: Optional[str] = None
    channel_id: Optional[str] = None
    thumbnail_url: Optional[str] = None
    categories: List[str] = field(default_factory=list)
    created_at: Optional[str] = None
    duration: Optional[float] = None
    views: int = 0
    likes_count: int = 0
    comments_count: int = 0
    shares_count: int = 0
    # Enrichment
    creator: Creator = field(default_factory=Creator)
    channel_name: str = ''
    subscriber_count: int = 0
    enriched: bool = False

    @classmethod
    def from_row(cls, row: dict) -> 'Video':
        """Build a Video from a raw `studio_videos` row."""
        src = row.get('video_url') or row.get('url') or row.get('src') or ''
        return cls(
            id=str(row['id']),
            video_url=public_url(src),
            title=row.get('title') or '',
            description=row.get('description') or '',
            user_id=row.get('user_id'),
            channel_id=row.get('channel_id'),
            thumbnail_url=row.get('thumbnail_url'),
            categories=list(row.get('categories') or []),
            created_at=row.get('created_at'),
            duration=row.get('duration'),
            views=row.get('views') or 0,
            likes_count=row.get('likes') or row.get('likes_count') or 0,
            comments_count=row.get('comments_count') or 0,
            shares_count=row.get('shares') or row.get('shares_count') or 0,
        )

    @property
    def engagement_score(self) -> int:
        """Composite engagement: views + 3*likes + 6*comments + 4*shares."""
        return (
            SCORE_WEIGHTS['views'] * self.views
            + SCORE_WEIGHTS['likes'] * self.likes_count
            + SCORE_WEIGHTS['comments'] * self.comments_count
            + SCORE_WEIGHTS['shares'] * self.shares_count
        )

    @property
    def created(self) -> Optional[datetime]:
        return parse_timestamp(self.created_at)


@dataclass
class Comment:
    id: str
    video_id: str
    user_id: Optional[str]
    content: str
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict) -> 'Comment':
        return cls(
            id=str(row.get('id')),
            video_id=str(row.get('video_id')),
            user_id=row.get('user_id'),
            content=row.get('comment') or row.get('content') or '',
            created_at=row.get('created_at'),
        )


@dataclass
class Notification:
    """A row from `notifications`."""
    id: str
    user_id: str
    type: str
    actor_id: Optional[str] = None
    title: Optional[str] = None
    message: Optional[str] = None
    data: dict = field(default_factory=dict)
    is_read: bool = False
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict) -> 'Notification':
        return cls(
            id=str(row.get('id')),
            user_id=str(row.get('user_id')),
            type=row.get('type') or 'generic',
            actor_id=row.get('actor_id'),
            title=row.get('title'),
            message=row.get('message'),
            data=row.get('data') or {},
            is_read=bool(row.get('is_read', row.get('read', False))),
            created_at=row.get('created_at'),
        )


@dataclass
class FeedPage:
    """One fetched page of the reel feed."""
    number: int
    videos: List[Video]
    next_page: Optional[int]


@dataclass
class Notice:
    """Transient toast message."""
    message: str
    level: Literal['info', 'error'] = 'info'
    created: float = field(default_factory=time.time)
    duration: float = NOTICE_DURATION

    @property
    def expired(self) -> bool:
        return time.time() - self.created >= self.duration


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
