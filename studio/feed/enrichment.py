"""
Enrichment - Joins creator, channel and engagement counts onto feed rows.

Every lookup is batched per page and isolated: a failed lookup leaves the
affected fields at their raw-row values instead of failing the page.
"""
import logging
from collections import Counter
from typing import List, Dict, Iterable, Optional

from ..errors import RemoteError
from ..models import Video, Creator

logger = logging.getLogger(__name__)


def _in(values: Iterable[str]) -> str:
    return 'in.({})'.format(','.join(f'"{v}"' for v in values))


class Enricher:
    """Batch metadata lookups for a list of videos (mutated in place)."""

    COUNT_TABLES = {
        'likes_count': 'studio_video_likes',
        'comments_count': 'studio_video_comments',
        'shares_count': 'studio_video_shares',
    }

    def __init__(self, store):
        self.store = store

    def enrich(self, videos: List[Video]) -> bool:
        """Enrich videos. Returns False if any lookup failed (partial enrichment)."""
        if not videos:
            return True

        complete = True
        complete &= self._attach_creators(videos)
        complete &= self._attach_channels(videos)
        complete &= self._attach_counts(videos)
        complete &= self._attach_subscribers(videos)

        for video in videos:
            video.enriched = True
        if not complete:
            logger.info(f'Partial enrichment for {len(videos)} videos')
        return complete

    def _attach_creators(self, videos: List[Video]) -> bool:
        user_ids = {v.user_id for v in videos if v.user_id}
        if not user_ids:
            return True
        try:
            rows = self.store.select('users', 'id,username,avatar_url', filters={'id': _in(user_ids)})
        except RemoteError as e:
            logger.warning(f'Creator lookup failed: {e}')
            return False

        creators = {
            str(r['id']): Creator(id=str(r['id']), name=r.get('username') or '', avatar_url=r.get('avatar_url'))
            for r in rows
        }
        for video in videos:
            if video.user_id in creators:
                video.creator = creators[video.user_id]
        return True

    def _attach_channels(self, videos: List[Video]) -> bool:
        channel_ids = {v.channel_id for v in videos if v.channel_id}
        if not channel_ids:
            return True
        try:
            rows = self.store.select('studio_channels', 'id,name', filters={'id': _in(channel_ids)})
        except RemoteError as e:
            logger.warning(f'Channel lookup failed: {e}')
            return False

        names = {str(r['id']): r.get('name') or '' for r in rows}
        for video in videos:
            if video.channel_id in names:
                video.channel_name = names[video.channel_id]
        return True

    def _attach_counts(self, videos: List[Video]) -> bool:
        ids = [v.id for v in videos]
        complete = True
        for attr, table in self.COUNT_TABLES.items():
            try:
                rows = self.store.select(table, 'video_id', filters={'video_id': _in(ids)})
            except RemoteError as e:
                logger.warning(f'{table} count lookup failed: {e}')
                complete = False
                continue
            counts = Counter(str(r.get('video_id')) for r in rows)
            for video in videos:
                setattr(video, attr, counts.get(video.id, 0))
        return complete

    def _attach_subscribers(self, videos: List[Video]) -> bool:
        counts = self.subscriber_counts({v.channel_id for v in videos if v.channel_id})
        if counts is None:
            return False
        for video in videos:
            if video.channel_id:
                video.subscriber_count = counts.get(video.channel_id, 0)
        return True

    def subscriber_counts(self, channel_ids) -> Optional[Dict[str, int]]:
        """channel_id -> subscriber count, or None if the lookup failed."""
        channel_ids = set(channel_ids)
        if not channel_ids:
            return {}
        try:
            rows = self.store.select(
                'studio_channel_subscribers', 'channel_id',
                filters={'channel_id': _in(channel_ids)},
            )
        except RemoteError as e:
            logger.warning(f'Subscriber lookup failed: {e}')
            return None
        counts = Counter(str(r.get('channel_id')) for r in rows)
        return {cid: counts.get(cid, 0) for cid in channel_ids}
