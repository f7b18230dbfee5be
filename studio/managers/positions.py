"""
Position Store - Remembers where each reel was left off.

Positions live in a small JSON file. Writes go to a temp file that is then
renamed over the original; a temp file left behind by a crash is recovered
on load.
"""
import os
import json
import time
import logging
import threading
from pathlib import Path
from typing import Dict, Optional

from ..config import POSITION_EXPIRY_HOURS

logger = logging.getLogger(__name__)


class PositionStore:
    """Per-video playback positions with expiry."""

    def __init__(self, path: Optional[Path], expiry_hours: float = POSITION_EXPIRY_HOURS):
        self.path = Path(path) if path else None
        self.expiry_seconds = expiry_hours * 3600
        self._lock = threading.Lock()
        self._positions: Dict[str, dict] = {}
        self._load()

    @property
    def _temp_path(self) -> Path:
        return self.path.with_suffix('.json.tmp')

    def _load(self):
        if self.path is None:
            return
        for candidate in (self.path, self._temp_path):
            if not candidate.exists():
                continue
            try:
                data = json.loads(candidate.read_text())
            except (json.JSONDecodeError, IOError, OSError) as e:
                logger.warning(f'Unreadable positions file {candidate.name}: {e}')
                continue
            if isinstance(data, dict):
                self._positions = {k: v for k, v in data.items() if isinstance(v, dict)}
                if candidate == self._temp_path:
                    logger.info('Recovered positions from temp file')
                    self._flush()
                return

    def _flush(self):
        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._temp_path.write_text(json.dumps(self._positions, indent=2))
            os.replace(self._temp_path, self.path)
        except (IOError, OSError) as e:
            logger.warning(f'Error saving positions: {e}', exc_info=True)

    def get(self, video_id: str) -> float:
        """Saved position in seconds, 0.0 if none or expired."""
        with self._lock:
            entry = self._positions.get(video_id)
            if not entry:
                return 0.0
            if time.time() - entry.get('updated', 0) > self.expiry_seconds:
                logger.debug(f'Position expired for {video_id}')
                del self._positions[video_id]
                return 0.0
            return float(entry.get('position', 0.0))

    def save(self, video_id: str, position: float):
        with self._lock:
            if position <= 0:
                self._positions.pop(video_id, None)
            else:
                self._positions[video_id] = {'position': round(position, 2), 'updated': time.time()}
            self._flush()

    def clear(self, video_id: str):
        self.save(video_id, 0.0)
