"""
Notification Center - Unread notifications from the helper backend.

Realtime inserts are merged as they arrive; polling covers the times the
socket is down.
"""
import time
import logging
import threading
from typing import List, Optional, Callable

from ..config import NOTIFICATION_POLL_INTERVAL
from ..models import Notification

logger = logging.getLogger(__name__)


class NotificationCenter:
    """Newest-first list of notifications for the signed-in user."""

    def __init__(self, server, user_id: Optional[str], realtime=None,
                 poll_interval: float = NOTIFICATION_POLL_INTERVAL,
                 on_change: Optional[Callable[[], None]] = None):
        self.server = server
        self.user_id = user_id
        self.realtime = realtime
        self.poll_interval = poll_interval
        self.on_change = on_change
        self.items: List[Notification] = []
        self.running = False
        self._lock = threading.Lock()

    @property
    def unread_count(self) -> int:
        with self._lock:
            return sum(1 for n in self.items if not n.is_read)

    def start(self):
        """Subscribe to inserts and start the polling fallback."""
        if not self.user_id:
            return
        if self.realtime is not None:
            self.realtime.subscribe(
                f'notifications:{self.user_id}', 'notifications', self.on_insert,
                filter=f'user_id=eq.{self.user_id}',
            )
        self.running = True
        threading.Thread(target=self._poll_loop, daemon=True).start()

    def stop(self):
        self.running = False

    def _poll_loop(self):
        while self.running:
            self.refresh()
            time.sleep(self.poll_interval)

    def refresh(self) -> bool:
        """Replace the list with the server's unread notifications."""
        if not self.user_id:
            return False
        rows = self.server.list_notifications(self.user_id, unread_only=True)
        if rows is None:
            return False
        fresh = [Notification.from_row(r) for r in rows]
        fresh.sort(key=lambda n: n.created_at or '', reverse=True)
        with self._lock:
            changed = [n.id for n in fresh] != [n.id for n in self.items]
            self.items = fresh
        if changed:
            logger.debug(f'Notifications refreshed: {len(fresh)} unread')
            self._changed()
        return True

    def on_insert(self, record: dict):
        """Realtime INSERT on `notifications`."""
        notification = Notification.from_row(record)
        if notification.user_id != str(self.user_id):
            return
        with self._lock:
            if any(n.id == notification.id for n in self.items):
                return
            self.items.insert(0, notification)
        logger.info(f'New notification: {notification.type}')
        self._changed()

    def mark_read(self, ids: List[str]) -> bool:
        ids = [i for i in ids if i]
        if not ids:
            return True
        if not self.server.mark_read(ids):
            logger.warning(f'Could not mark {len(ids)} notifications read')
            return False
        wanted = set(ids)
        with self._lock:
            for n in self.items:
                if n.id in wanted:
                    n.is_read = True
        self._changed()
        return True

    def mark_all_read(self) -> bool:
        with self._lock:
            ids = [n.id for n in self.items if not n.is_read]
        return self.mark_read(ids)

    def _changed(self):
        if self.on_change:
            self.on_change()
