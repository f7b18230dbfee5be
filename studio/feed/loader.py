"""
Feed Loader - Paginated, enriched, deduplicated reel feed.

Pages are fetched by cursor (page number) with an inclusive row range.
The first items of page 0 are enriched before they are returned; the rest
of each page is enriched in the background and announced via `on_change`.
"""
import logging
import threading
from typing import Optional, List, Callable

from ..config import PAGE_SIZE, FAST_PATH_COUNT, MAX_CONSECUTIVE_ERRORS
from ..errors import RemoteError
from ..models import Video, FeedPage
from ..utils import run_async
from .enrichment import Enricher
from .ranking import rank_by_engagement, move_to_front

logger = logging.getLogger(__name__)

SORT_OPTIONS = ('newest', 'engagement')


class FeedLoader:
    """Infinite reel feed backed by the `studio_videos` table."""

    def __init__(self, store, enricher: Optional[Enricher] = None,
                 page_size: int = PAGE_SIZE, category: str = 'All', sort: str = 'newest',
                 highlight_id: Optional[str] = None,
                 background: Callable = run_async,
                 on_change: Optional[Callable[[], None]] = None):
        if sort not in SORT_OPTIONS:
            raise ValueError(f'Unknown sort: {sort}')
        self.store = store
        self.enricher = enricher or Enricher(store)
        self.page_size = page_size
        self.category = category
        self.sort = sort
        self.highlight_id = highlight_id
        self._background = background
        self.on_change = on_change

        self._lock = threading.Lock()
        self._items: List[Video] = []
        self._ids: set = set()
        self.pages: List[FeedPage] = []
        self.next_page: Optional[int] = 0
        self.error_count = 0
        self.is_fetching = False
        # Bumped on reset so late background work for an old feed is dropped
        self._generation = 0

    # ============================================
    # STATE
    # ============================================

    @property
    def items(self) -> List[Video]:
        with self._lock:
            return list(self._items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def get(self, index: int) -> Optional[Video]:
        with self._lock:
            if 0 <= index < len(self._items):
                return self._items[index]
            return None

    def index_of(self, video_id: str) -> Optional[int]:
        with self._lock:
            for i, video in enumerate(self._items):
                if video.id == video_id:
                    return i
            return None

    @property
    def has_next(self) -> bool:
        return self.next_page is not None

    @property
    def end_of_feed(self) -> bool:
        """True once no further pages will be requested."""
        return not self.has_next

    @property
    def pages_loaded(self) -> int:
        return len(self.pages)

    def reset(self, category: Optional[str] = None, sort: Optional[str] = None,
              highlight_id: Optional[str] = None):
        """Drop all pages (filter change) and start again from page 0."""
        if sort is not None and sort not in SORT_OPTIONS:
            raise ValueError(f'Unknown sort: {sort}')
        with self._lock:
            if category is not None:
                self.category = category
            if sort is not None:
                self.sort = sort
            self.highlight_id = highlight_id
            self._items = []
            self._ids = set()
            self.pages = []
            self.next_page = 0
            self.error_count = 0
            self.is_fetching = False
            self._generation += 1
        logger.info(f'Feed reset: category={self.category}, sort={self.sort}')

    # ============================================
    # PAGING
    # ============================================

    def load_next_page(self) -> List[Video]:
        """Fetch, enrich and append the next page. Returns the newly added videos."""
        with self._lock:
            if self.is_fetching or self.next_page is None:
                return []
            self.is_fetching = True
            page = self.next_page
            generation = self._generation

        try:
            rows = self._fetch_rows(page)
        except RemoteError as e:
            with self._lock:
                self.is_fetching = False
                if generation != self._generation:
                    return []
                self.error_count += 1
                logger.error(f'Feed page {page} failed ({self.error_count} in a row): {e}')
                if self.error_count > MAX_CONSECUTIVE_ERRORS:
                    logger.warning(f'Giving up on feed after {self.error_count} consecutive errors')
                    self.next_page = None
            self._notify()
            return []

        videos = [Video.from_row(r) for r in rows]
        background = self._enrich_in_order(videos, page)

        if self.sort == 'engagement':
            videos = rank_by_engagement(videos)
        if page == 0:
            videos = move_to_front(videos, self.highlight_id)

        with self._lock:
            self.is_fetching = False
            if generation != self._generation:
                logger.debug(f'Dropping page {page} from a reset feed')
                return []
            fresh = [v for v in videos if v.id not in self._ids]
            self._items.extend(fresh)
            self._ids.update(v.id for v in fresh)
            next_page = page + 1 if len(rows) == self.page_size else None
            self.pages.append(FeedPage(number=page, videos=fresh, next_page=next_page))
            self.next_page = next_page
            self.error_count = 0

        logger.info(f'Feed page {page}: {len(rows)} rows, {len(fresh)} new, '
                    f'total={len(self)}, has_next={self.has_next}')

        if background:
            self._background(self._enrich_background, background, generation)
        self._notify()
        return fresh

    def _fetch_rows(self, page: int) -> List[dict]:
        filters = {}
        if self.category and self.category != 'All':
            filters['categories'] = f'cs.{{{self.category}}}'
        start = page * self.page_size
        return self.store.select(
            'studio_videos', '*', filters=filters,
            order='created_at', desc=True,
            range_=(start, start + self.page_size - 1),
        )

    def _enrich_in_order(self, videos: List[Video], page: int) -> List[Video]:
        """Run the synchronous part of enrichment; return what is left for later."""
        if self.sort == 'engagement':
            # Ranking needs the counts, so the whole page is enriched up front
            self.enricher.enrich(videos)
            return []
        if page == 0:
            fast, rest = videos[:FAST_PATH_COUNT], videos[FAST_PATH_COUNT:]
            self.enricher.enrich(fast)
            return rest
        return videos

    def _enrich_background(self, videos: List[Video], generation: int):
        if generation != self._generation:
            return
        self.enricher.enrich(videos)
        if generation == self._generation:
            logger.debug(f'Background enrichment done for {len(videos)} videos')
            self._notify()

    def _notify(self):
        if self.on_change:
            try:
                self.on_change()
            except Exception as e:
                logger.warning(f'Feed change callback failed: {e}', exc_info=True)
