"""
Tests for EngagementManager - optimistic likes, views, subscriptions, shares and comments.
"""
import threading
import pytest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from studio.api.memory import MemoryStore
from studio.api.server import NullServerAPI
from studio.managers.engagement import (
    EngagementManager, LIKES_TABLE, VIEWS_TABLE, SUBSCRIBERS_TABLE, SHARES_TABLE, COMMENTS_TABLE,
)
from studio.models import Video

from conftest import make_store

USER = 'viewer-1'


class GatedStore(MemoryStore):
    """Store whose first `gated` call blocks until the test releases it."""

    def __init__(self, tables, gated):
        super().__init__(tables)
        self.gated = gated
        self.entered = threading.Event()
        self.release = threading.Event()

    def _gate(self, operation):
        if operation == self.gated and not self.entered.is_set():
            self.entered.set()
            self.release.wait(5)

    def insert(self, table, row):
        self._gate('insert')
        return super().insert(table, row)

    def maybe_single(self, table, columns='*', filters=None):
        self._gate('maybe_single')
        return super().maybe_single(table, columns, filters)


@pytest.fixture
def video(store):
    return Video.from_row(store.tables['studio_videos'][0])


@pytest.fixture
def engagement(store, notices):
    return EngagementManager(store, USER, notices=notices, server=NullServerAPI())


class TestLoad:
    """Tests for loading the user's engagement state."""

    def test_loads_user_rows_and_counts(self, store, engagement):
        store.tables[LIKES_TABLE].append({'user_id': USER, 'video_id': 'video-2'})
        store.tables[LIKES_TABLE].append({'user_id': 'someone', 'video_id': 'video-3'})
        store.tables[VIEWS_TABLE].append({'user_id': USER, 'video_id': 'video-4'})
        store.tables[SUBSCRIBERS_TABLE] += [
            {'user_id': USER, 'channel_id': 'channel-1'},
            {'user_id': 'someone', 'channel_id': 'channel-1'},
        ]
        videos = [Video.from_row(r) for r in store.tables['studio_videos'][:3]]

        assert engagement.load(videos)

        assert engagement.is_liked('video-2')
        assert not engagement.is_liked('video-3')
        assert 'video-4' in engagement.viewed
        assert engagement.is_subscribed('channel-1')
        assert engagement.subscriber_counts == {'channel-0': 0, 'channel-1': 2, 'channel-2': 0}

    def test_partial_failure_reported(self, store, engagement):
        store.fail_next('select')
        assert engagement.load() is False

    def test_anonymous_skips_user_tables(self, store):
        manager = EngagementManager(store, None)
        assert manager.load()
        assert store.calls == []


class TestLikes:
    """Tests for toggle_like."""

    def test_like_then_unlike_issues_matching_writes(self, store, engagement, video):
        assert engagement.toggle_like(video) is True
        assert video.likes_count == 1
        assert engagement.toggle_like(video) is False
        assert video.likes_count == 0

        assert store.mutations() == [
            ('insert', LIKES_TABLE),
            ('rpc', 'increment_video_likes'),
            ('delete', LIKES_TABLE),
            ('rpc', 'decrement_video_likes'),
        ]
        assert store.tables[LIKES_TABLE] == []
        assert store.tables['studio_videos'][0]['likes'] == 0

    def test_failed_write_reverts(self, store, engagement, video, notices):
        store.fail_next('insert')

        assert engagement.toggle_like(video) is False

        assert not engagement.is_liked(video.id)
        assert video.likes_count == 0
        assert ('rpc', 'increment_video_likes') not in store.calls
        assert notices.active()[0].message == 'Failed to update like'

    def test_duplicate_like_counts_as_liked(self, store, engagement, video):
        """A like already stored remotely is not counted a second time."""
        store.tables[LIKES_TABLE].append({'user_id': USER, 'video_id': video.id})
        video.likes_count = 1

        assert engagement.toggle_like(video) is True
        assert engagement.is_liked(video.id)
        assert video.likes_count == 1
        assert ('rpc', 'increment_video_likes') not in store.calls

    def test_rapid_toggles_apply_in_order(self):
        """A second toggle waits for the first write, so row and count stay in step."""
        store = GatedStore(make_store().tables, 'insert')
        engagement = EngagementManager(store, USER)
        video = Video.from_row(store.tables['studio_videos'][0])

        first = threading.Thread(target=engagement.toggle_like, args=(video,))
        first.start()
        assert store.entered.wait(5)
        second = threading.Thread(target=engagement.toggle_like, args=(video,))
        second.start()
        store.release.set()
        first.join(5)
        second.join(5)

        assert not engagement.is_liked(video.id)
        assert video.likes_count == 0
        assert store.tables[LIKES_TABLE] == []
        assert store.mutations() == [
            ('insert', LIKES_TABLE),
            ('rpc', 'increment_video_likes'),
            ('delete', LIKES_TABLE),
            ('rpc', 'decrement_video_likes'),
        ]

    def test_failed_counter_keeps_like(self, store, engagement, video, notices):
        store.fail_next('rpc')
        assert engagement.toggle_like(video) is True
        assert len(store.tables[LIKES_TABLE]) == 1
        assert notices.active() == []

    def test_signed_out_shows_hint(self, store, notices, video):
        manager = EngagementManager(store, None, notices=notices)
        assert manager.toggle_like(video) is False
        assert notices.active()[0].level == 'info'
        assert store.calls == []


class TestViews:
    """Tests for record_view."""

    def test_view_recorded_once(self, store, engagement, video):
        start = video.views

        assert engagement.record_view(video)
        assert not engagement.record_view(video)

        assert video.views == start + 1
        assert store.mutations().count(('insert', VIEWS_TABLE)) == 1
        assert store.tables['studio_videos'][0]['views'] == start + 1

    def test_remote_view_not_counted_again(self, store, engagement, video):
        store.tables[VIEWS_TABLE].append({'id': 'v1', 'user_id': USER, 'video_id': video.id})
        start = video.views

        assert not engagement.record_view(video)

        assert video.views == start
        assert ('insert', VIEWS_TABLE) not in store.calls
        assert video.id in engagement.viewed

    def test_failed_view_reverts(self, store, engagement, video, notices):
        store.fail_next('insert')
        start = video.views

        assert not engagement.record_view(video)

        assert video.views == start
        assert video.id not in engagement.viewed
        assert notices.active()[0].message == 'Failed to record view'
        # A later attempt can still succeed
        assert engagement.record_view(video)

    def test_concurrent_view_is_not_recorded_twice(self):
        """A view arriving while the first is still being written is dropped."""
        store = GatedStore(make_store().tables, 'maybe_single')
        engagement = EngagementManager(store, USER)
        video = Video.from_row(store.tables['studio_videos'][0])
        start = video.views

        writer = threading.Thread(target=engagement.record_view, args=(video,))
        writer.start()
        assert store.entered.wait(5)
        assert not engagement.record_view(video)
        store.release.set()
        writer.join(5)

        assert video.views == start + 1
        assert store.mutations().count(('insert', VIEWS_TABLE)) == 1
        assert store.mutations().count(('rpc', 'increment_video_views')) == 1

    def test_signed_out_views_are_not_recorded(self, store, video):
        assert not EngagementManager(store, None).record_view(video)
        assert store.calls == []


class TestSubscriptions:
    """Tests for toggle_subscribe."""

    def test_subscribe_and_unsubscribe_adjust_count(self, store, engagement):
        engagement.subscriber_counts['channel-1'] = 4

        assert engagement.toggle_subscribe('channel-1') is True
        assert engagement.subscriber_counts['channel-1'] == 5
        rows = store.tables[SUBSCRIBERS_TABLE]
        assert [(r['user_id'], r['channel_id']) for r in rows] == [(USER, 'channel-1')]

        assert engagement.toggle_subscribe('channel-1') is False
        assert engagement.subscriber_counts['channel-1'] == 4
        assert store.tables[SUBSCRIBERS_TABLE] == []

    def test_duplicate_subscribe_keeps_count(self, store, engagement):
        """A subscription already stored remotely is not counted a second time."""
        store.tables[SUBSCRIBERS_TABLE].append({'user_id': USER, 'channel_id': 'channel-1'})
        engagement.subscriber_counts['channel-1'] = 1

        assert engagement.toggle_subscribe('channel-1') is True
        assert engagement.is_subscribed('channel-1')
        assert engagement.subscriber_counts['channel-1'] == 1
        assert len(store.tables[SUBSCRIBERS_TABLE]) == 1

    def test_failed_subscribe_reverts(self, store, engagement, notices):
        store.fail_next('insert')

        assert engagement.toggle_subscribe('channel-2') is False

        assert not engagement.is_subscribed('channel-2')
        assert engagement.subscriber_counts['channel-2'] == 0
        assert notices.active()[0].message == 'Failed to update subscription'

    def test_failed_unsubscribe_reverts(self, store, engagement):
        engagement.toggle_subscribe('channel-2')
        store.fail_next('delete')

        assert engagement.toggle_subscribe('channel-2') is True
        assert engagement.subscriber_counts['channel-2'] == 1


class TestSharesAndComments:
    """Tests for share, fetch_comments and post_comment."""

    def test_share_returns_link_and_counts(self, store, engagement, video):
        link = engagement.share(video)

        assert link.endswith(video.id)
        assert video.shares_count == 1
        assert ('insert', SHARES_TABLE) in store.calls

    def test_failed_share_still_returns_link(self, store, engagement, video, notices):
        store.fail_next('insert')
        assert engagement.share(video).endswith(video.id)
        assert video.shares_count == 0
        assert notices.active()

    def test_post_comment_notifies_owner(self, store, engagement, video):
        comment = engagement.post_comment(video, '  Nice cut  ')

        assert comment.content == 'Nice cut'
        assert video.comments_count == 1
        created = engagement.server.created
        assert len(created) == 1
        assert created[0]['user_id'] == video.user_id
        assert created[0]['type'] == 'comment'
        assert created[0]['data']['comment_id'] == comment.id

    def test_own_video_does_not_notify(self, store, video):
        server = NullServerAPI()
        manager = EngagementManager(store, video.user_id, server=server)
        assert manager.post_comment(video, 'mine')
        assert server.created == []

    def test_flagged_comment_is_dropped(self, store, engagement, video, notices):
        engagement.server.moderate = lambda text: {'flagged': True}

        assert engagement.post_comment(video, 'something rude') is None
        assert store.tables[COMMENTS_TABLE] == []
        assert notices.active()[0].message == 'Comment was flagged'

    def test_blank_comment_ignored(self, store, engagement, video):
        assert engagement.post_comment(video, '   ') is None
        assert store.calls == []

    def test_fetch_comments_newest_first(self, store, engagement, video):
        engagement.post_comment(video, 'first')
        store.tables[COMMENTS_TABLE][0]['created_at'] = '2020-01-01T00:00:00+00:00'
        engagement.post_comment(video, 'second')

        comments = engagement.fetch_comments(video.id)
        assert [c.content for c in comments] == ['second', 'first']

    def test_fetch_comments_failure(self, store, engagement, notices):
        store.fail_next('select')
        assert engagement.fetch_comments('video-1') == []
        assert notices.active()[0].message == 'Failed to load comments'
