"""
Sidebar - Trending, most viewed and newest channels.
"""
import logging
from datetime import timedelta
from typing import Dict, List

from ..config import ENGAGEMENT_WINDOW_DAYS
from ..errors import RemoteError
from ..models import Video, Channel, utcnow

logger = logging.getLogger(__name__)


def load_sidebar(store, limit: int = 5) -> Dict[str, List]:
    """Load the desktop sidebar lists. A failed list comes back empty."""
    since = (utcnow() - timedelta(days=ENGAGEMENT_WINDOW_DAYS)).isoformat()
    result = {'trending': [], 'most_viewed': [], 'top_creators': []}

    try:
        rows = store.select('studio_videos', '*', filters={'created_at': f'gt.{since}'},
                            order='likes', limit=limit)
        result['trending'] = [Video.from_row(r) for r in rows]
    except RemoteError as e:
        logger.warning(f'Trending lookup failed: {e}')

    try:
        rows = store.select('studio_videos', '*', order='views', limit=limit)
        result['most_viewed'] = [Video.from_row(r) for r in rows]
    except RemoteError as e:
        logger.warning(f'Most viewed lookup failed: {e}')

    try:
        rows = store.select('studio_channels', '*', order='created_at', limit=limit)
        result['top_creators'] = [
            Channel(id=str(r['id']), name=r.get('name') or '', user_id=r.get('user_id'),
                    description=r.get('description') or '')
            for r in rows
        ]
    except RemoteError as e:
        logger.warning(f'Top creators lookup failed: {e}')

    return result
