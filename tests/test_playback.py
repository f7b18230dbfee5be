"""
Tests for VisibilityTracker, SnapScroller, PlaybackController and PositionStore.
"""
import json
import time
import pytest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from studio.errors import MediaError
from studio.managers.carousel import SnapScroller
from studio.managers.playback import PlaybackController
from studio.managers.positions import PositionStore
from studio.managers.visibility import VisibilityTracker
from studio.media import VideoElement
from studio.models import INACTIVE_PAUSED, ACTIVE_PLAYING, ACTIVE_PAUSED_BY_USER


def attach_cards(controller, count, **kwargs):
    elements = []
    for i in range(count):
        element = VideoElement(f'video-{i}', duration=10.0, **kwargs)
        controller.attach(i, element)
        elements.append(element)
    return elements


class TestVisibilityTracker:
    """Tests for deriving the single active card."""

    def test_mobile_threshold(self):
        tracker = VisibilityTracker('mobile')
        assert tracker.update({0: 0.59}) is None
        assert tracker.update({0: 0.6}) == 0

    def test_desktop_needs_full_visibility(self):
        tracker = VisibilityTracker('desktop')
        assert tracker.update({0: 0.9}) is None
        assert tracker.update({0: 1.0}) == 0

    def test_most_visible_wins(self):
        tracker = VisibilityTracker('mobile')
        assert tracker.update({3: 0.65, 4: 0.8}) == 4

    def test_tie_goes_to_lower_index(self):
        tracker = VisibilityTracker('mobile')
        assert tracker.update({5: 0.7, 2: 0.7}) == 2

    def test_previous_kept_when_nothing_qualifies(self):
        tracker = VisibilityTracker('mobile')
        tracker.update({1: 1.0})
        assert tracker.update({1: 0.5, 2: 0.5}) == 1

    def test_complete_update_drops_stale_ratios(self):
        tracker = VisibilityTracker('mobile')
        tracker.update({0: 1.0})
        assert tracker.update({7: 0.9}, complete=True) == 7
        assert 0 not in tracker.ratios

    def test_on_change_fires_once_per_change(self):
        changes = []
        tracker = VisibilityTracker('mobile', on_change=changes.append)
        tracker.update({0: 1.0})
        tracker.update({0: 0.95})
        tracker.update({1: 1.0, 0: 0.0})
        assert changes == [0, 1]

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            VisibilityTracker('tablet')


class TestSnapScroller:
    """Tests for snap scrolling and the ratios it reports."""

    def test_settled_card_is_fully_visible(self):
        scroller = SnapScroller()
        scroller.max_index = 5
        scroller.scroll_y = 2.0
        ratios = scroller.visibility(6)
        assert ratios[2] == 1.0
        assert ratios[1] == 0.0
        assert ratios[3] == 0.0

    def test_halfway_split(self):
        scroller = SnapScroller()
        scroller.max_index = 5
        scroller.scroll_y = 1.3
        ratios = scroller.visibility(6)
        assert ratios[1] == pytest.approx(0.7)
        assert ratios[2] == pytest.approx(0.3)

    def test_step_eases_to_target(self):
        scroller = SnapScroller()
        scroller.max_index = 3
        scroller.step(1)
        for _ in range(200):
            scroller.update(1 / 60)
        assert scroller.settled
        assert scroller.scroll_y == 1.0

    def test_target_is_clamped(self):
        scroller = SnapScroller()
        scroller.max_index = 2
        scroller.set_target(9)
        assert scroller.target_index == 2
        scroller.step(-5)
        assert scroller.target_index == 0

    def test_scrolling_drives_active_card(self):
        """Scroller ratios fed to the tracker switch cards past 60%."""
        scroller = SnapScroller()
        scroller.max_index = 4
        tracker = VisibilityTracker('mobile')
        scroller.scroll_y = 0.3
        assert tracker.update(scroller.visibility(5), complete=True) == 0
        scroller.scroll_y = 0.7
        assert tracker.update(scroller.visibility(5), complete=True) == 1


class TestPlaybackController:
    """Tests for the per-card playback state machine."""

    def test_activation_plays_only_the_active_card(self):
        controller = PlaybackController('mobile')
        elements = attach_cards(controller, 3)

        assert controller.activate(1) == ACTIVE_PLAYING
        assert controller.playing_indices == [1]
        assert controller.state(0) == INACTIVE_PAUSED
        assert elements[1].playing

    def test_switching_resets_previous_card(self):
        controller = PlaybackController('mobile')
        elements = attach_cards(controller, 3)
        controller.activate(0)
        controller.tick(4.0)

        controller.activate(1)

        assert elements[0].paused
        assert elements[0].current_time == 0
        assert controller.state(0) == INACTIVE_PAUSED
        assert controller.playing_indices == [1]

    def test_at_most_one_playing_across_many_switches(self):
        controller = PlaybackController('mobile')
        attach_cards(controller, 5)
        for index in (0, 3, 1, 4, 2, 2, 0):
            controller.activate(index)
            controller.tick(0.5)
            assert len(controller.playing_indices) <= 1

    def test_tap_toggles_user_pause_without_changing_active(self):
        controller = PlaybackController('mobile')
        elements = attach_cards(controller, 2)
        controller.activate(0)

        assert controller.toggle_pause() == ACTIVE_PAUSED_BY_USER
        assert controller.active_index == 0
        assert not elements[0].playing

        assert controller.toggle_pause() == ACTIVE_PLAYING
        assert elements[0].playing

    def test_reactivating_same_card_keeps_user_pause(self):
        controller = PlaybackController('mobile')
        attach_cards(controller, 2)
        controller.activate(0)
        controller.toggle_pause()
        assert controller.activate(0) == ACTIVE_PAUSED_BY_USER

    def test_mobile_unmutes_when_allowed(self):
        controller = PlaybackController('mobile')
        elements = attach_cards(controller, 1)
        controller.activate(0)
        assert not elements[0].muted

    def test_mobile_falls_back_to_muted(self):
        """Blocked unmuted autoplay still plays, muted."""
        controller = PlaybackController('mobile')
        elements = attach_cards(controller, 1, allow_unmuted_autoplay=False)

        assert controller.activate(0) == ACTIVE_PLAYING
        assert elements[0].muted
        assert elements[0].playing
        assert not controller.is_audible

    def test_mute_toggle_after_fallback_unmutes(self):
        controller = PlaybackController('mobile')
        elements = attach_cards(controller, 1, allow_unmuted_autoplay=False)
        controller.activate(0)

        assert controller.toggle_mute()
        assert not elements[0].muted

    def test_desktop_stays_muted_until_toggled(self):
        controller = PlaybackController('desktop')
        elements = attach_cards(controller, 2)
        controller.activate(0)
        assert elements[0].muted

        controller.toggle_mute()
        assert not elements[0].muted
        controller.activate(1)
        assert not elements[1].muted

    def test_view_reported_on_play(self):
        views = []
        controller = PlaybackController('mobile', on_view=views.append)
        attach_cards(controller, 2)
        controller.activate(0)
        controller.activate(1)
        assert views == ['video-0', 'video-1']

    def test_failed_play_posts_notice(self, notices):
        class BrokenElement(VideoElement):
            def play(self):
                raise MediaError('decoder missing')

        views = []
        controller = PlaybackController('mobile', on_view=views.append, notices=notices)
        controller.attach(0, BrokenElement('video-0'))
        assert controller.activate(0) == ACTIVE_PAUSED_BY_USER
        assert views == []
        assert notices.active()[0].level == 'error'

    def test_activation_before_attach_starts_on_attach(self):
        controller = PlaybackController('mobile')
        controller.activate(2)
        element = VideoElement('video-2', duration=5.0)
        controller.attach(2, element)
        assert element.playing
        assert controller.state(2) == ACTIVE_PLAYING

    def test_loops_after_outro(self):
        controller = PlaybackController('mobile')
        elements = attach_cards(controller, 1)
        controller.activate(0)

        controller.tick(10.0)
        assert elements[0].ended
        assert controller.in_outro

        controller.tick(5.0)
        assert not controller.in_outro
        assert elements[0].playing
        assert elements[0].current_time == 0


class TestPositionStore:
    """Tests for per-video position persistence."""

    def test_position_restored_on_activation(self, temp_dir):
        positions = PositionStore(temp_dir / 'positions.json')
        controller = PlaybackController('mobile', positions=positions)
        elements = attach_cards(controller, 2)

        controller.activate(0)
        controller.tick(4.0)
        controller.activate(1)
        assert positions.get('video-0') == pytest.approx(4.0)

        controller.activate(0)
        assert elements[0].current_time == pytest.approx(4.0)

    def test_survives_reload(self, temp_dir):
        path = temp_dir / 'positions.json'
        PositionStore(path).save('video-1', 12.5)
        assert PositionStore(path).get('video-1') == 12.5

    def test_expired_positions_ignored(self, temp_dir):
        path = temp_dir / 'positions.json'
        path.write_text(json.dumps({'video-1': {'position': 3.0, 'updated': time.time() - 90000}}))
        assert PositionStore(path, expiry_hours=24).get('video-1') == 0.0

    def test_recovers_from_temp_file(self, temp_dir):
        path = temp_dir / 'positions.json'
        (temp_dir / 'positions.json.tmp').write_text(
            json.dumps({'video-2': {'position': 7.0, 'updated': time.time()}}))

        assert PositionStore(path).get('video-2') == 7.0
        assert path.exists()

    def test_corrupt_file_starts_empty(self, temp_dir):
        path = temp_dir / 'positions.json'
        path.write_text('{not json')
        assert PositionStore(path).get('video-1') == 0.0

    def test_clear_on_end(self, temp_dir):
        positions = PositionStore(temp_dir / 'positions.json')
        positions.save('video-0', 5.0)
        controller = PlaybackController('mobile', positions=positions)
        attach_cards(controller, 1)
        controller.activate(0)
        controller.tick(10.0)
        assert positions.get('video-0') == 0.0
