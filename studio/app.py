"""
Studio Application - Main application class.
"""
import os
import time
import signal
import logging
from typing import Optional

import numpy as np
import pygame

from .config import (
    SCREEN_WIDTH, SCREEN_HEIGHT, TARGET_FPS,
    SUPABASE_URL, SUPABASE_ANON_KEY, API_URL, STUDIO_EMAIL, STUDIO_PASSWORD,
    POSITIONS_PATH, THUMBS_DIR, MOCK_MODE, DESKTOP_MODE,
    HIGHLIGHT_ID, START_CATEGORY, CATEGORIES, SAMPLE_RATE, BACKGROUND_TRACK,
)
from .api import RestClient, AuthSession, MemoryStore, seed_demo, ServerAPI, NullServerAPI
from .errors import MediaError
from .feed import FeedLoader, load_sidebar
from .handlers import TouchHandler, RealtimeListener, realtime_url
from .managers import (
    SnapScroller, VisibilityTracker, PrefetchQueue, PrefetchTrigger, PositionStore,
    PlaybackController, EngagementManager, NoticeBoard, NotificationCenter,
)
from .media import VideoElement
from .models import Video
from .recorder import AudioMixer, Recorder, mixer_for_track, open_mic_capture, publish_recording
from .ui import ImageCache, Renderer, RenderContext
from .utils import run_async

logger = logging.getLogger(__name__)

MOCK_USER_ID = 'demo-viewer'

# Cards further than this from the active one release their elements
ELEMENT_RANGE = 2


def mock_capture(sample_rate: int = SAMPLE_RATE):
    """Capture source producing a soft tone in real time (mock mode)."""
    state = {'last': time.time(), 'frame': 0}

    def capture() -> Optional[np.ndarray]:
        now = time.time()
        n = int((now - state['last']) * sample_rate)
        if n <= 0:
            return None
        state['last'] = now
        t = (np.arange(n) + state['frame']) / sample_rate
        state['frame'] += n
        return (np.sin(2 * np.pi * 220 * t) * 0.3).astype(np.float32)

    return capture


class Studio:
    """Main reel viewer application."""

    def __init__(self, fullscreen: bool = False):
        pygame.init()
        pygame.display.set_caption('Studio')

        self._init_display(fullscreen)
        self._init_components()

    def _init_display(self, fullscreen: bool):
        flags = pygame.DOUBLEBUF
        if fullscreen:
            flags |= pygame.FULLSCREEN
        self.screen = pygame.display.set_mode((SCREEN_WIDTH, SCREEN_HEIGHT), flags)
        self.clock = pygame.time.Clock()
        pygame.mouse.set_visible(not fullscreen)
        logger.info(f'Display: {pygame.display.get_driver()} '
                    f'(requested: {os.environ.get("SDL_VIDEODRIVER", "default")})')

    def _init_components(self):
        self.mock_mode = MOCK_MODE
        self.mode = 'desktop' if DESKTOP_MODE else 'mobile'
        self.realtime: Optional[RealtimeListener] = None

        # Remote store (in-memory demo data in mock mode)
        if self.mock_mode:
            self.store = seed_demo(MemoryStore())
            self.server = NullServerAPI()
            self.user_id: Optional[str] = MOCK_USER_ID
        else:
            self.store = RestClient(SUPABASE_URL, SUPABASE_ANON_KEY)
            self.server = ServerAPI(API_URL)
            self.auth = AuthSession(self.store)
            if STUDIO_EMAIL and STUDIO_PASSWORD:
                self.auth.sign_in(STUDIO_EMAIL, STUDIO_PASSWORD)
            self.user_id = self.auth.user_id
            self.realtime = RealtimeListener(
                realtime_url(SUPABASE_URL, SUPABASE_ANON_KEY), access_token=self.auth.access_token,
            )

        self.notices = NoticeBoard()
        self.loader = FeedLoader(
            self.store, category=START_CATEGORY, highlight_id=HIGHLIGHT_ID,
            on_change=self._on_feed_change,
        )
        self.engagement = EngagementManager(self.store, self.user_id, self.notices, self.server)
        self.notifications = NotificationCenter(self.server, self.user_id, self.realtime)

        # Scrolling & playback
        self.scroller = SnapScroller()
        self.tracker = VisibilityTracker(self.mode, on_change=self._on_active_change)
        self.playback = PlaybackController(
            self.mode, PositionStore(POSITIONS_PATH), on_view=self._on_view, notices=self.notices,
        )
        preload = None if self.mock_mode else PrefetchQueue()
        self.prefetch = PrefetchTrigger(self.loader, preload)

        # UI
        self.image_cache = ImageCache(THUMBS_DIR)
        self.renderer = Renderer(self.screen, self.image_cache)
        self.touch = TouchHandler(SCREEN_HEIGHT)
        self.recorder = Recorder(self._open_capture(), mixer=self._open_mixer())

        self._feed_changed = False
        self._engagement_loaded = False
        self.user_gesture = False
        self.running = True

        signal.signal(signal.SIGTERM, self._handle_signal)
        signal.signal(signal.SIGINT, self._handle_signal)

    def _handle_signal(self, signum, frame):
        sig_name = 'SIGTERM' if signum == signal.SIGTERM else 'SIGINT'
        logger.info(f'Received {sig_name}, shutting down...')
        self.running = False

    # ============================================
    # CALLBACKS
    # ============================================

    def _on_feed_change(self):
        # Called from loader threads; consumed by the main loop
        self._feed_changed = True

    def _on_active_change(self, index: int):
        self.playback.activate(index)
        self.prefetch.on_active_index(index)
        upcoming = [self.loader.get(index + i) for i in range(1, 3)]
        self.image_cache.preload([v.thumbnail_url for v in upcoming if v], (SCREEN_WIDTH, SCREEN_HEIGHT))

    def _on_view(self, video_id: str):
        index = self.loader.index_of(video_id)
        video = self.loader.get(index) if index is not None else None
        if video is not None:
            run_async(self.engagement.record_view, video)

    @property
    def active_video(self) -> Optional[Video]:
        if self.tracker.active_index is None:
            return None
        return self.loader.get(self.tracker.active_index)

    # ============================================
    # MAIN LOOP
    # ============================================

    def start(self):
        logger.info('Starting Studio...')
        if self.mock_mode:
            logger.info('Running in MOCK MODE')
        if self.realtime is not None and self.user_id:
            self.realtime.start()
        self.notifications.start()
        run_async(self.loader.load_next_page)
        if self.mode == 'desktop':
            run_async(self._load_sidebar)

        logger.info('Entering main loop...')
        dt = 1.0 / TARGET_FPS
        while self.running:
            self._handle_events()
            self._update(dt)
            self._draw()
            pygame.display.flip()
            dt = self.clock.tick(TARGET_FPS) / 1000.0

        logger.info('Shutting down...')
        self.recorder.close()
        self.notifications.stop()
        if self.realtime is not None:
            self.realtime.stop()
        for index in list(self.playback.elements):
            self.playback.detach(index)
        pygame.quit()
        logger.info('Studio stopped')

    def _update(self, dt: float):
        if self._feed_changed:
            self._feed_changed = False
            self.scroller.max_index = max(0, len(self.loader) - 1 + (1 if self.loader.end_of_feed else 0))
            if not self._engagement_loaded and len(self.loader):
                self._engagement_loaded = True
                run_async(self.engagement.load, self.loader.items)

        self.scroller.update(dt)
        self.tracker.update(self.scroller.visibility(len(self.loader)), complete=True)
        self._sync_elements()
        self.playback.tick(dt)

        if self.touch.check_long_press():
            self._show_comments()

        if self.recorder.recording:
            try:
                if not self.recorder.poll():
                    self._finish_recording()
            except MediaError as e:
                self.notices.error(str(e))

    def _sync_elements(self):
        """Attach elements to cards near the active one and release the rest."""
        active = self.tracker.active_index
        if active is None:
            return
        for index in list(self.playback.elements):
            if abs(index - active) > ELEMENT_RANGE:
                self.playback.detach(index)
        for index in range(max(0, active - ELEMENT_RANGE), active + ELEMENT_RANGE + 1):
            video = self.loader.get(index)
            if video is None or index in self.playback.elements:
                continue
            element = VideoElement(video.id, video.video_url, video.duration,
                                   allow_unmuted_autoplay=self.mode == 'desktop')
            element.user_gesture = self.user_gesture
            self.playback.attach(index, element)

    def _draw(self):
        progress = {i: el.progress for i, el in self.playback.elements.items()}
        ctx = RenderContext(
            videos=self.loader.items,
            scroll_y=self.scroller.scroll_y,
            active_index=self.tracker.active_index,
            progress=progress,
            card_states=dict(self.playback.states),
            liked=set(self.engagement.liked),
            subscribed=set(self.engagement.subscribed),
            subscriber_counts=dict(self.engagement.subscriber_counts),
            sound_on=self.playback.is_audible,
            in_outro=self.playback.in_outro,
            end_of_feed=self.loader.end_of_feed,
            is_loading=self.loader.is_fetching,
            category=self.loader.category,
            sort=self.loader.sort,
            notices=self.notices.active(),
            unread_notifications=self.notifications.unread_count,
            recording_seconds=self.recorder.elapsed if self.recorder.recording else None,
        )
        self.renderer.draw(ctx)

    # ============================================
    # INPUT
    # ============================================

    def _handle_events(self):
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                self.running = False
            elif event.type == pygame.KEYDOWN:
                self._mark_gesture()
                self._handle_key(event.key)
            elif event.type == pygame.MOUSEBUTTONDOWN:
                self._mark_gesture()
                self.touch.on_down(event.pos)
            elif event.type == pygame.MOUSEMOTION and self.touch.dragging:
                drag = self.touch.on_move(event.pos)
                if self.touch.is_swiping:
                    self.scroller.drag_to(self.scroller.target_index + drag)
            elif event.type == pygame.MOUSEBUTTONUP:
                self._handle_touch_up(event.pos)
            elif event.type == pygame.MOUSEWHEEL:
                self.scroller.step(-1 if event.y > 0 else 1)

    def _mark_gesture(self):
        if self.user_gesture:
            return
        self.user_gesture = True
        for element in self.playback.elements.values():
            element.user_gesture = True

    def _handle_key(self, key):
        if key == pygame.K_ESCAPE:
            self.running = False
        elif key in (pygame.K_DOWN, pygame.K_j):
            self.scroller.step(1)
        elif key in (pygame.K_UP, pygame.K_k):
            self.scroller.step(-1)
        elif key == pygame.K_SPACE:
            self.playback.toggle_pause()
        elif key == pygame.K_m:
            self.playback.toggle_mute()
        elif key == pygame.K_l:
            self._with_active(self.engagement.toggle_like)
        elif key == pygame.K_s:
            self._with_active(lambda v: self.engagement.toggle_subscribe(v.channel_id))
        elif key == pygame.K_h:
            self._with_active(self._share)
        elif key == pygame.K_c:
            self._show_comments()
        elif key == pygame.K_r:
            self._toggle_recording()
        elif key == pygame.K_TAB:
            self._next_category()
        elif key == pygame.K_t:
            self._reload(sort='newest' if self.loader.sort == 'engagement' else 'engagement')
        elif key == pygame.K_n:
            run_async(self.notifications.mark_all_read)

    def _handle_touch_up(self, pos):
        action, velocity = self.touch.on_up(pos)
        if action == 'next':
            self.scroller.step(1)
        elif action == 'previous':
            self.scroller.step(-1)
        else:
            self.scroller.set_target(self.scroller.target_index)
            if action == 'tap':
                self.playback.toggle_pause()

    def _with_active(self, fn):
        video = self.active_video
        if video is not None:
            run_async(fn, video)

    # ============================================
    # ACTIONS
    # ============================================

    def _share(self, video: Video):
        link = self.engagement.share(video)
        self.notices.info(f'Link: {link}')

    def _show_comments(self):
        video = self.active_video
        if video is None:
            return

        def load():
            comments = self.engagement.fetch_comments(video.id, limit=1)
            if comments:
                self.notices.info(f'{video.comments_count} comments · "{comments[0].content[:40]}"')
            else:
                self.notices.info('No comments yet')

        run_async(load)

    def _open_capture(self):
        if self.mock_mode:
            return mock_capture()
        try:
            return open_mic_capture()
        except MediaError as e:
            logger.warning(f'Recording disabled: {e}')
            return None

    def _open_mixer(self) -> AudioMixer:
        try:
            return mixer_for_track(BACKGROUND_TRACK)
        except MediaError as e:
            logger.warning(f'{e}, recording mic only')
            self.notices.error('Background track unavailable')
            return AudioMixer()

    def _toggle_recording(self):
        if self.recorder.recording:
            self._finish_recording()
            return
        try:
            self.recorder.start()
            self.notices.info('Recording...')
        except MediaError as e:
            logger.warning(f'Recorder unavailable: {e}')
            self.notices.error('Microphone unavailable')

    def _finish_recording(self):
        blob = self.recorder.stop()
        video = self.active_video
        categories = [c for c in (video.categories if video else []) if c in CATEGORIES]

        def publish():
            row = publish_recording(self.store, blob, self.user_id, '', categories, server=self.server)
            if row:
                self.notices.info('Reel published')
            else:
                self.notices.error('Failed to publish reel')

        run_async(publish)

    def _load_sidebar(self):
        sidebar = load_sidebar(self.store)
        logger.info(f'Sidebar: {len(sidebar["trending"])} trending, '
                    f'{len(sidebar["most_viewed"])} most viewed, {len(sidebar["top_creators"])} creators')
        if sidebar['trending']:
            self.notices.info(f'Trending: {sidebar["trending"][0].title}')

    def _next_category(self):
        index = CATEGORIES.index(self.loader.category) if self.loader.category in CATEGORIES else 0
        self._reload(category=CATEGORIES[(index + 1) % len(CATEGORIES)])

    def _reload(self, category: Optional[str] = None, sort: Optional[str] = None):
        """Swap the feed filter: drop every card and start again from page 0."""
        for index in list(self.playback.elements):
            self.playback.detach(index)
        self.playback.active_index = None
        self.tracker.reset()
        self.scroller.scroll_y = 0.0
        self.scroller.target_index = 0
        self.scroller.max_index = 0
        self.scroller.settled = True
        self.loader.reset(category=category, sort=sort, highlight_id=None)
        if self.prefetch.queue is not None:
            self.prefetch.queue.clear()
        self.notices.info(f'{self.loader.category} · {self.loader.sort}')
        run_async(self.loader.load_next_page)
