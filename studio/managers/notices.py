"""
Notice Board - Transient toast messages.
"""
import logging
import threading
from typing import List

from ..config import NOTICE_DURATION
from ..models import Notice

logger = logging.getLogger(__name__)


class NoticeBoard:
    """Holds short-lived user-facing messages. Safe to post from any thread."""

    MAX_NOTICES = 3

    def __init__(self, duration: float = NOTICE_DURATION):
        self.duration = duration
        self._notices: List[Notice] = []
        self._lock = threading.Lock()

    def info(self, message: str):
        self._post(Notice(message, 'info', duration=self.duration))

    def error(self, message: str):
        self._post(Notice(message, 'error', duration=self.duration))

    def _post(self, notice: Notice):
        logger.info(f'Notice ({notice.level}): {notice.message}')
        with self._lock:
            self._notices.append(notice)
            del self._notices[:-self.MAX_NOTICES]

    def active(self) -> List[Notice]:
        """Non-expired notices, oldest first. Expired ones are dropped."""
        with self._lock:
            self._notices = [n for n in self._notices if not n.expired]
            return list(self._notices)

    def clear(self):
        with self._lock:
            self._notices.clear()
