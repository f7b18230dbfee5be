"""
Image Cache - Downloads and caches reel posters and creator avatars.
"""
import time
import hashlib
import logging
import threading
from pathlib import Path
from typing import Optional, List, Dict, Tuple
from io import BytesIO

import pygame
import requests
from PIL import Image, UnidentifiedImageError

from .helpers import fit_cover
from ..config import COLORS, IMAGE_CACHE_MAX_SIZE

logger = logging.getLogger(__name__)

Size = Tuple[int, int]


class ImageCache:
    """Poster/avatar surfaces keyed by (url, size), with a disk cache and LRU eviction."""

    def __init__(self, cache_dir: Path, max_size: int = IMAGE_CACHE_MAX_SIZE):
        self.cache_dir = cache_dir
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.max_size = max_size
        self.cache: Dict[str, pygame.Surface] = {}
        self._access_times: Dict[str, float] = {}
        self.loading: set = set()
        self._loading_lock = threading.Lock()
        self._preload_queue: List[tuple] = []
        self._preload_lock = threading.Lock()
        self._preloading = False

    @staticmethod
    def _key(url: str, size: Size) -> str:
        return f'{url}_{size[0]}x{size[1]}'

    def _disk_path(self, url: str) -> Path:
        return self.cache_dir / (hashlib.sha1(url.encode()).hexdigest() + '.jpg')

    def get_placeholder(self, size: Size) -> pygame.Surface:
        cache_key = f'_placeholder_{size[0]}x{size[1]}'
        if cache_key not in self.cache:
            placeholder = pygame.Surface(size)
            placeholder.fill(COLORS['bg_elevated'])
            self.cache[cache_key] = placeholder
        return self.cache[cache_key]

    def preload(self, urls: List[Optional[str]], size: Size):
        """Queue posters for the upcoming cards and load them in the background."""
        with self._preload_lock:
            for url in urls:
                if url and self._key(url, size) not in self.cache:
                    self._preload_queue.append((url, size))
            if self._preloading or not self._preload_queue:
                return
            self._preloading = True
        threading.Thread(target=self._preload_worker, daemon=True).start()

    def _preload_worker(self):
        loaded = 0
        while True:
            with self._preload_lock:
                if not self._preload_queue:
                    self._preloading = False
                    logger.debug(f'Pre-loaded {loaded} posters')
                    return
                url, size = self._preload_queue.pop(0)
            if self._key(url, size) not in self.cache:
                self._fetch(url, size, self._key(url, size))
                loaded += 1

    def _evict_if_needed(self):
        if len(self.cache) <= self.max_size:
            return
        evictable = sorted(
            (key for key in self.cache if not key.startswith('_')),
            key=lambda k: self._access_times.get(k, 0),
        )
        for key in evictable[:len(self.cache) - self.max_size]:
            del self.cache[key]
            self._access_times.pop(key, None)
        logger.debug(f'Image cache trimmed to {len(self.cache)} entries')

    def get(self, url: Optional[str], size: Size) -> pygame.Surface:
        """Surface for a URL, or a placeholder while it downloads."""
        if not url:
            return self.get_placeholder(size)

        cache_key = self._key(url, size)
        if cache_key in self.cache:
            self._access_times[cache_key] = time.time()
            return self.cache[cache_key]

        self._evict_if_needed()

        if self._disk_path(url).exists():
            surface = self._load(self._disk_path(url).read_bytes(), size, cache_key)
            if surface is not None:
                return surface

        if url.startswith('http'):
            with self._loading_lock:
                if url not in self.loading:
                    self.loading.add(url)
                    threading.Thread(target=self._fetch, args=(url, size, cache_key), daemon=True).start()

        return self.get_placeholder(size)

    def _load(self, data: bytes, size: Size, cache_key: str) -> Optional[pygame.Surface]:
        try:
            img = fit_cover(Image.open(BytesIO(data)).convert('RGB'), size)
        except (UnidentifiedImageError, OSError, ValueError) as e:
            logger.debug(f'Unreadable image for {cache_key}: {e}')
            return None
        surface = pygame.image.fromstring(img.tobytes(), img.size, 'RGB')
        self.cache[cache_key] = surface
        self._access_times[cache_key] = time.time()
        return surface

    def _fetch(self, url: str, size: Size, cache_key: str):
        """Download in the background and keep a copy on disk."""
        try:
            disk = self._disk_path(url)
            if disk.exists():
                data = disk.read_bytes()
            else:
                resp = requests.get(url, timeout=10)
                resp.raise_for_status()
                data = resp.content
                disk.write_bytes(data)
            self._load(data, size, cache_key)
        except (requests.RequestException, OSError) as e:
            logger.warning(f'Error downloading image: {e}')
        finally:
            with self._loading_lock:
                self.loading.discard(url)
