"""
Engagement Manager - Likes, views, subscriptions, shares and comments.

Mutations are optimistic: local state flips first, the remote write follows,
and a failed write reverts the flip and posts an error notice.
"""
import logging
import threading
from typing import Optional, Set, Dict, List, Iterable

from ..errors import RemoteError
from ..feed.enrichment import Enricher
from ..models import Video, Comment
from ..utils import share_link

logger = logging.getLogger(__name__)

LIKES_TABLE = 'studio_video_likes'
VIEWS_TABLE = 'studio_video_views'
SUBSCRIBERS_TABLE = 'studio_channel_subscribers'
SHARES_TABLE = 'studio_video_shares'
COMMENTS_TABLE = 'studio_video_comments'

DUPLICATE_KEY = '23505'


class EngagementManager:
    """Per-user engagement state plus the remote writes that back it."""

    def __init__(self, store, user_id: Optional[str], notices=None, server=None):
        self.store = store
        self.user_id = user_id
        self.notices = notices
        self.server = server
        self.liked: Set[str] = set()
        self.viewed: Set[str] = set()
        self.subscribed: Set[str] = set()
        self.subscriber_counts: Dict[str, int] = {}
        self._pending_views: Set[str] = set()
        self._lock = threading.Lock()
        self._key_locks: Dict[str, threading.Lock] = {}

    def _key_lock(self, key: str) -> threading.Lock:
        """Lock serializing toggles on one video or channel."""
        with self._lock:
            return self._key_locks.setdefault(key, threading.Lock())

    def _notify_error(self, message: str):
        if self.notices:
            self.notices.error(message)

    def _user_filter(self, **extra) -> Dict[str, str]:
        filters = {'user_id': f'eq.{self.user_id}'}
        filters.update({k: f'eq.{v}' for k, v in extra.items()})
        return filters

    # ============================================
    # LOAD
    # ============================================

    def load(self, videos: Iterable[Video] = ()) -> bool:
        """Fetch the user's likes, views, subscriptions and channel subscriber counts."""
        complete = True
        if self.user_id:
            for table, column, target in (
                (LIKES_TABLE, 'video_id', self.liked),
                (VIEWS_TABLE, 'video_id', self.viewed),
                (SUBSCRIBERS_TABLE, 'channel_id', self.subscribed),
            ):
                try:
                    rows = self.store.select(table, column, filters=self._user_filter())
                except RemoteError as e:
                    logger.warning(f'Could not load {table}: {e}')
                    complete = False
                    continue
                with self._lock:
                    target.update(str(r[column]) for r in rows if r.get(column))

        channel_ids = {v.channel_id for v in videos if v.channel_id}
        counts = Enricher(self.store).subscriber_counts(channel_ids)
        if counts is None:
            complete = False
        else:
            with self._lock:
                self.subscriber_counts.update(counts)

        logger.info(f'Engagement loaded: {len(self.liked)} likes, {len(self.viewed)} views, '
                    f'{len(self.subscribed)} subscriptions')
        return complete

    def is_liked(self, video_id: str) -> bool:
        return video_id in self.liked

    def is_subscribed(self, channel_id: Optional[str]) -> bool:
        return bool(channel_id) and channel_id in self.subscribed

    # ============================================
    # LIKES
    # ============================================

    def toggle_like(self, video: Video) -> bool:
        """Flip the like on a video. Returns the resulting liked state.

        Toggles on the same video are serialized.
        """
        if not self.user_id:
            if self.notices:
                self.notices.info('Sign in to like videos')
            return False

        with self._key_lock(f'like:{video.id}'):
            return self._toggle_like(video)

    def _toggle_like(self, video: Video) -> bool:
        with self._lock:
            was_liked = video.id in self.liked
            if was_liked:
                self.liked.discard(video.id)
                video.likes_count = max(0, video.likes_count - 1)
            else:
                self.liked.add(video.id)
                video.likes_count += 1

        try:
            if was_liked:
                self.store.delete(LIKES_TABLE, self._user_filter(video_id=video.id))
            else:
                try:
                    self.store.insert(LIKES_TABLE, {'user_id': self.user_id, 'video_id': video.id})
                except RemoteError as e:
                    if e.code != DUPLICATE_KEY:
                        raise
                    # Already counted remotely
                    logger.debug(f'Like already stored for {video.id}')
                    with self._lock:
                        video.likes_count = max(0, video.likes_count - 1)
                    return True
        except RemoteError as e:
                    if e.code != DUPLICATE_KEY:
                        raise
                    logger.debug(f'Like already stored for {video.id}')
                    return True
        except RemoteError as e:
            logger.warning(f'Like toggle failed for {video.id}: {e}')
            with self._lock:
                if was_liked:
                    self.liked.add(video.id)
                    video.likes_count += 1
                else:
                    self.liked.discard(video.id)
                    video.likes_count = max(0, video.likes_count - 1)
            self._notify_error('Failed to update like')
            return was_liked

        # Counter column drifts if this fails; enrichment recounts rows
        rpc = 'decrement_video_likes' if was_liked else 'increment_video_likes'
        try:
            self.store.rpc(rpc, {'video_id': video.id})
        except RemoteError as e:
            logger.warning(f'{rpc} failed for {video.id}: {e}')
        return not was_liked

    # ============================================
    # VIEWS
    # ============================================

    def record_view(self, video: Video) -> bool:
        """Count a view once per user. Returns True if a new view was stored."""
        if not self.user_id:
            return False

        with self._lock:
            if video.id in self.viewed or video.id in self._pending_views:
                return False
            self._pending_views.add(video.id)
            self.viewed.add(video.id)
            video.views += 1

        try:
            existing = self.store.maybe_single(VIEWS_TABLE, 'id', filters=self._user_filter(video_id=video.id))
            if existing:
                logger.debug(f'View already stored for {video.id}')
                with self._lock:
                    video.views = max(0, video.views - 1)
                return False
            self.store.insert(VIEWS_TABLE, {'user_id': self.user_id, 'video_id': video.id})
        except RemoteError as e:
            if e.code == DUPLICATE_KEY:
                with self._lock:
                    video.views = max(0, video.views - 1)
                return False
            logger.warning(f'Recording view failed for {video.id}: {e}')
            with self._lock:
                self.viewed.discard(video.id)
                video.views = max(0, video.views - 1)
            self._notify_error('Failed to record view')
            return False
        finally:
            with self._lock:
                self._pending_views.discard(video.id)

        try:
            self.store.rpc('increment_video_views', {'video_id': video.id})
        except RemoteError as e:
            logger.warning(f'increment_video_views failed for {video.id}: {e}')
        logger.debug(f'View recorded: {video.id}')
        return True

    # ============================================
    # SUBSCRIPTIONS
    # ============================================

    def toggle_subscribe(self, channel_id: str) -> bool:
        """Flip the subscription to a channel. Returns the resulting state."""
        if not self.user_id or not channel_id:
            if self.notices:
                self.notices.info('Sign in to subscribe')
            return False

        with self._key_lock(f'subscribe:{channel_id}'):
            return self._toggle_subscribe(channel_id)

    def _toggle_subscribe(self, channel_id: str) -> bool:
        with self._lock:
            was_subscribed = channel_id in self.subscribed
            delta = -1 if was_subscribed else 1
            if was_subscribed:
                self.subscribed.discard(channel_id)
            else:
                self.subscribed.add(channel_id)
            self.subscriber_counts[channel_id] = max(0, self.subscriber_counts.get(channel_id, 0) + delta)

        try:
            if was_subscribed:
                self.store.delete(SUBSCRIBERS_TABLE, self._user_filter(channel_id=channel_id))
            else:
                self.store.insert(SUBSCRIBERS_TABLE, {'user_id': self.user_id, 'channel_id': channel_id})
        except RemoteError as e:
            if e.code == DUPLICATE_KEY and not was_subscribed:
                with self._lock:
                    self.subscriber_counts[channel_id] = max(0, self.subscriber_counts.get(channel_id, 0) - 1)
                return True
            logger.warning(f'Subscription toggle failed for {channel_id}: {e}')
            with self._lock:
                if was_subscribed:
                    self.subscribed.add(channel_id)
                else:
                    self.subscribed.discard(channel_id)
                self.subscriber_counts[channel_id] = max(0, self.subscriber_counts.get(channel_id, 0) - delta)
            self._notify_error('Failed to update subscription')
            return was_subscribed
        return not was_subscribed

    # ============================================
    # SHARES
    # ============================================

    def share(self, video: Video) -> str:
        """Record a share and return the link to hand out."""
        link = share_link(video.id)
        if not self.user_id:
            return link

        with self._lock:
            video.shares_count += 1
        try:
            self.store.insert(SHARES_TABLE, {'user_id': self.user_id, 'video_id': video.id})
        except RemoteError as e:
            logger.warning(f'Share failed for {video.id}: {e}')
            with self._lock:
                video.shares_count = max(0, video.shares_count - 1)
            self._notify_error('Failed to record share')
        return link

    # ============================================
    # COMMENTS
    # ============================================

    def fetch_comments(self, video_id: str, limit: int = 50) -> List[Comment]:
        try:
            rows = self.store.select(
                COMMENTS_TABLE, filters={'video_id': f'eq.{video_id}'},
                order='created_at', desc=True, limit=limit,
            )
        except RemoteError as e:
            logger.warning(f'Could not load comments for {video_id}: {e}')
            self._notify_error('Failed to load comments')
            return []
        return [Comment.from_row(r) for r in rows]

    def post_comment(self, video: Video, text: str) -> Optional[Comment]:
        """Post a comment and notify the video owner. None if nothing was posted."""
        text = (text or '').strip()
        if not text or not self.user_id:
            return None

        if self.server:
            verdict = self.server.moderate(text)
            if verdict and verdict.get('flagged'):
                logger.info(f'Comment on {video.id} flagged by moderation')
                self._notify_error('Comment was flagged')
                return None

        try:
            row = self.store.insert(COMMENTS_TABLE, {
                'user_id': self.user_id,
                'video_id': video.id,
                'comment': text,
            })
        except RemoteError as e:
            logger.warning(f'Posting comment failed for {video.id}: {e}')
            self._notify_error('Failed to post comment')
            return None

        comment = Comment.from_row(row)
        with self._lock:
            video.comments_count += 1

        owner = video.user_id
        if self.server and owner and str(owner) != str(self.user_id):
            self.server.create_notification({
                'user_id': owner,
                'actor_id': self.user_id,
                'type': 'comment',
                'title': 'New comment',
                'message': text[:240],
                'action_id': comment.id,
                'target_table': COMMENTS_TABLE,
                'data': {'comment_id': comment.id, 'video_id': video.id, 'commenter_id': self.user_id},
            })
        return comment
