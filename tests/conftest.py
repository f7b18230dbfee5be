"""
Pytest configuration and shared fixtures for Studio tests.
"""
import pytest
from datetime import timedelta
from pathlib import Path
from tempfile import TemporaryDirectory

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from studio.api.memory import MemoryStore
from studio.managers.notices import NoticeBoard
from studio.models import utcnow


def make_rows(count, start=0, categories=None, hours_apart=5):
    """Raw `studio_videos` rows, newest first by index."""
    now = utcnow()
    rows = []
    for i in range(start, start + count):
        rows.append({
            'id': f'video-{i}',
            'title': f'Reel {i}',
            'video_url': f'reels/{i}.mp4',
            'user_id': f'user-{i % 3}',
            'channel_id': f'channel-{i % 3}',
            'categories': categories[i % len(categories)] if categories else ['Tech'],
            'created_at': (now - timedelta(hours=i * hours_apart)).isoformat(),
            'duration': 10.0,
            'views': 100 + i,
            'likes': 0,
        })
    return rows


def make_store(video_count=25, **kwargs):
    """Store with users, channels and `video_count` reels."""
    return MemoryStore({
        'users': [{'id': f'user-{i}', 'username': f'creator{i}', 'avatar_url': None} for i in range(3)],
        'studio_channels': [
            {'id': f'channel-{i}', 'user_id': f'user-{i}', 'name': f'Channel {i}'} for i in range(3)
        ],
        'studio_videos': make_rows(video_count, **kwargs),
    })


@pytest.fixture
def temp_dir():
    """Provide a temporary directory that's cleaned up after each test."""
    with TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def store():
    """A store holding 25 reels across three creators."""
    return make_store()


@pytest.fixture
def notices():
    return NoticeBoard()


@pytest.fixture
def deferred():
    """Background runner that queues work until the test runs it."""
    class Deferred:
        def __init__(self):
            self.jobs = []

        def __call__(self, fn, *args):
            self.jobs.append((fn, args))

        def run_all(self):
            jobs, self.jobs = self.jobs, []
            for fn, args in jobs:
                fn(*args)
            return len(jobs)

    return Deferred()
