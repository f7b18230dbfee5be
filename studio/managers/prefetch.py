"""
Prefetch - Warms video URLs ahead of the scroll position and pages ahead.

PrefetchQueue downloads only the leading bytes of each video (container
metadata) one URL at a time, with a short cooldown between URLs.
PrefetchTrigger decides when the feed should fetch its next page.
"""
import time
import logging
import threading
from collections import deque, OrderedDict
from typing import Optional, Callable, Deque

import requests

from ..config import (
    PRELOAD_QUEUE_MAX, PRELOAD_COOLDOWN, PRELOAD_BYTES,
    PREFETCH_WINDOW, PREFETCH_PAGE_CAP, PRELOAD_AHEAD,
)
from ..utils import run_async

logger = logging.getLogger(__name__)


def warm_url(session: requests.Session, url: str, max_bytes: int = PRELOAD_BYTES) -> int:
    """Fetch the first `max_bytes` of a URL. Returns the number of bytes read."""
    received = 0
    with session.get(url, headers={'Range': f'bytes=0-{max_bytes - 1}'},
                     stream=True, timeout=10) as resp:
        resp.raise_for_status()
        for chunk in resp.iter_content(chunk_size=64 * 1024):
            received += len(chunk)
            if received >= max_bytes:
                break
    return received


class PrefetchQueue:
    """Single-concurrency FIFO of video URLs to warm."""

    # Warmed URLs remembered for dedupe; oldest are forgotten first
    WARMED_MAX = 200

    def __init__(self, fetch: Optional[Callable[[str], object]] = None,
                 max_size: int = PRELOAD_QUEUE_MAX, cooldown: float = PRELOAD_COOLDOWN):
        self._session = requests.Session()
        self._fetch = fetch or (lambda url: warm_url(self._session, url))
        self.max_size = max_size
        self.cooldown = cooldown
        self._queue: Deque[str] = deque()
        self._lock = threading.Lock()
        self._warmed: OrderedDict = OrderedDict()
        self._in_flight: Optional[str] = None
        self._worker_running = False

    @property
    def pending(self) -> list:
        with self._lock:
            return list(self._queue)

    @property
    def in_flight(self) -> Optional[str]:
        return self._in_flight

    def is_warm(self, url: str) -> bool:
        with self._lock:
            return url in self._warmed

    def enqueue(self, url: str) -> bool:
        """Queue a URL. Skips blanks, duplicates and anything past the bound."""
        if not url:
            return False
        with self._lock:
            if url in self._warmed or url in self._queue or url == self._in_flight:
                return False
            if len(self._queue) >= self.max_size:
                logger.debug(f'Preload queue full, skipping {url[:60]}')
                return False
            self._queue.append(url)
            return True

    def clear(self):
        """Drop queued URLs and forget what was warmed (feed reset)."""
        with self._lock:
            self._queue.clear()
            self._warmed.clear()

    def process_next(self) -> Optional[str]:
        """Warm the next URL synchronously. Returns it, or None if the queue is empty."""
        with self._lock:
            if self._in_flight is not None or not self._queue:
                return None
            url = self._queue.popleft()
            self._in_flight = url

        try:
            self._fetch(url)
            with self._lock:
                self._warmed[url] = True
                while len(self._warmed) > self.WARMED_MAX:
                    self._warmed.popitem(last=False)
            logger.debug(f'Preloaded {url[:60]}')
        except Exception as e:
            logger.debug(f'Preload failed for {url[:60]}: {e}')
        finally:
            with self._lock:
                self._in_flight = None
        return url

    def start(self):
        """Drain the queue on a background thread (no-op if already draining)."""
        with self._lock:
            if self._worker_running or not self._queue:
                return
            self._worker_running = True
        threading.Thread(target=self._worker, daemon=True).start()

    def _worker(self):
        loaded = 0
        while True:
            with self._lock:
                if not self._queue:
                    self._worker_running = False
                    break
            if self.process_next() is not None:
                loaded += 1
            # Also waits out a URL another caller has in flight
            time.sleep(self.cooldown)
        logger.debug(f'Preload worker idle after {loaded} URLs')


class PrefetchTrigger:
    """Requests the next feed page when the active card nears the end."""

    def __init__(self, loader, queue: Optional[PrefetchQueue] = None,
                 window: int = PREFETCH_WINDOW, page_cap: int = PREFETCH_PAGE_CAP,
                 ahead: int = PRELOAD_AHEAD, background: Callable = run_async):
        self.loader = loader
        self.queue = queue
        self.window = window
        self.page_cap = page_cap
        self.ahead = ahead
        self._background = background

    def should_fetch_page(self, active_index: int) -> bool:
        loader = self.loader
        if not loader.has_next or loader.is_fetching:
            return False
        remaining = len(loader) - active_index
        if remaining > self.window:
            return False
        viewing_page = active_index // loader.page_size
        pages_ahead = loader.pages_loaded - viewing_page - 1
        return pages_ahead < self.page_cap

    def on_active_index(self, active_index: int) -> bool:
        """Call whenever the active card changes. Returns True if a page fetch started."""
        self._preload_ahead(active_index)
        if not self.should_fetch_page(active_index):
            return False
        logger.info(f'Prefetching page {self.loader.next_page} (active={active_index}, '
                    f'loaded={len(self.loader)})')
        self._background(self.loader.load_next_page)
        return True

    def _preload_ahead(self, active_index: int):
        if self.queue is None:
            return
        for offset in range(1, self.ahead + 1):
            video = self.loader.get(active_index + offset)
            if video is not None:
                self.queue.enqueue(video.video_url)
        self.queue.start()
