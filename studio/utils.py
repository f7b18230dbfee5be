"""
Studio Utilities - Shared helper functions.
"""
import re
import logging
import threading
from datetime import datetime, timezone
from typing import Optional

from .config import SUPABASE_URL, VIDEO_BUCKET, APP_URL

logger = logging.getLogger(__name__)

# Python < 3.11 fromisoformat only takes 3 or 6 fractional digits
_FRACTION = re.compile(r'\.(\d+)')


def run_async(fn, *args):
    """Fire-and-forget async execution in daemon thread.

    Wraps function to catch and log exceptions.
    """
    def wrapper():
        try:
            fn(*args)
        except Exception as e:
            logger.warning(f'Async task {getattr(fn, "__name__", fn)} failed: {e}', exc_info=True)

    threading.Thread(target=wrapper, daemon=True).start()


def run_sync(fn, *args):
    """Drop-in for run_async that runs inline (mock mode, tests)."""
    try:
        fn(*args)
    except Exception as e:
        logger.warning(f'Task {getattr(fn, "__name__", fn)} failed: {e}', exc_info=True)


def public_url(path: str, bucket: str = VIDEO_BUCKET) -> str:
    """Resolve a storage object path to its public URL. Absolute URLs pass through."""
    if not path:
        return ''
    if path.startswith('http'):
        return path
    return f'{SUPABASE_URL}/storage/v1/object/public/{bucket}/{path.lstrip("/")}'


def share_link(video_id: str) -> str:
    return f'{APP_URL}/studio?highlight={video_id}'


def parse_timestamp(value) -> Optional[datetime]:
    """Parse an ISO timestamp from the store. Naive values are taken as UTC."""
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            text = str(value).replace('Z', '+00:00')
            text = _FRACTION.sub(lambda m: '.' + m.group(1)[:6].ljust(6, '0'), text, count=1)
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_count(count: int) -> str:
    """1234 -> '1.2K', 2500000 -> '2.5M'."""
    if count < 1000:
        return str(count)
    if count < 1000000:
        return f'{count / 1000:.1f}K'
    return f'{count / 1000000:.1f}M'
