"""
Realtime Listener - Row change feed over the Phoenix websocket protocol.
"""
import json
import time
import logging
import threading
from itertools import count
from typing import Callable, Optional, Dict

import websocket

from ..config import REALTIME_HEARTBEAT_INTERVAL

logger = logging.getLogger(__name__)


def realtime_url(base_url: str, api_key: str) -> str:
    """https://x.supabase.co -> wss://x.supabase.co/realtime/v1/websocket?..."""
    ws_base = base_url.rstrip('/').replace('https://', 'wss://').replace('http://', 'ws://')
    return f'{ws_base}/realtime/v1/websocket?apikey={api_key}&vsn=1.0.0'


class Subscription:
    """One `postgres_changes` join: table + filter -> callback(record)."""

    def __init__(self, topic: str, table: str, callback: Callable[[dict], None],
                 filter: Optional[str] = None, event: str = 'INSERT', schema: str = 'public'):
        self.topic = f'realtime:{topic}'
        self.table = table
        self.callback = callback
        self.filter = filter
        self.event = event
        self.schema = schema

    def join_payload(self, access_token: Optional[str] = None) -> dict:
        change = {'event': self.event, 'schema': self.schema, 'table': self.table}
        if self.filter:
            change['filter'] = self.filter
        payload = {'config': {'postgres_changes': [change]}}
        if access_token:
            payload['access_token'] = access_token
        return payload


class RealtimeListener:
    """Listens for row changes and dispatches new records to subscribers."""

    def __init__(self, url: str, access_token: Optional[str] = None,
                 heartbeat_interval: float = REALTIME_HEARTBEAT_INTERVAL,
                 on_connect: Callable[[], None] = None):
        """
        Args:
            url: Realtime websocket URL (see realtime_url)
            access_token: User JWT so row-level security applies
            heartbeat_interval: Seconds between phoenix heartbeats
            on_connect: Callback when the socket (re)connects
        """
        self.url = url
        self.access_token = access_token
        self.heartbeat_interval = heartbeat_interval
        self.on_connect = on_connect
        self.ws: Optional[websocket.WebSocketApp] = None
        self.thread: Optional[threading.Thread] = None
        self.running = False
        self.connected = False
        self.subscriptions: Dict[str, Subscription] = {}
        self._refs = count(1)
        self._was_connected = False

    def subscribe(self, topic: str, table: str, callback: Callable[[dict], None],
                  filter: Optional[str] = None, event: str = 'INSERT') -> Subscription:
        sub = Subscription(topic, table, callback, filter=filter, event=event)
        self.subscriptions[sub.topic] = sub
        if self.connected:
            self._join(sub)
        return sub

    def unsubscribe(self, topic: str):
        sub = self.subscriptions.pop(f'realtime:{topic}', None)
        if sub and self.connected:
            self._send(sub.topic, 'phx_leave', {})

    def start(self):
        """Start listening in a background thread."""
        self.running = True
        self.thread = threading.Thread(target=self._run, daemon=True)
        self.thread.start()
        threading.Thread(target=self._heartbeat_loop, daemon=True).start()
        logger.info('Started realtime listener')

    def stop(self):
        self.running = False
        if self.ws:
            self.ws.close()
        logger.info('Stopped realtime listener')

    # ============================================
    # SOCKET
    # ============================================

    def _run(self):
        """Connect and reconnect while running."""
        while self.running:
            try:
                self.ws = websocket.WebSocketApp(
                    self.url,
                    on_open=self._on_open,
                    on_message=self._on_message,
                    on_error=self._on_error,
                    on_close=self._on_close,
                )
                self.ws.run_forever()
            except Exception as e:
                logger.warning(f'Realtime socket error: {e}')

            self.connected = False
            if self.running:
                time.sleep(2)

    def _heartbeat_loop(self):
        while self.running:
            time.sleep(self.heartbeat_interval)
            if self.connected:
                self._send('phoenix', 'heartbeat', {})

    def _send(self, topic: str, event: str, payload: dict):
        message = {'topic': topic, 'event': event, 'payload': payload, 'ref': str(next(self._refs))}
        try:
            self.ws.send(json.dumps(message))
        except (websocket.WebSocketException, OSError, AttributeError) as e:
            logger.debug(f'Realtime send failed ({event}): {e}')

    def _join(self, sub: Subscription):
        logger.debug(f'Joining {sub.topic} ({sub.table} {sub.filter or ""})')
        self._send(sub.topic, 'phx_join', sub.join_payload(self.access_token))

    def _on_open(self, ws):
        self.connected = True
        for sub in list(self.subscriptions.values()):
            self._join(sub)
        if self._was_connected:
            logger.info('Realtime reconnected')
            if self.on_connect:
                self.on_connect()
        else:
            logger.debug('Realtime connected')
            self._was_connected = True

    def _on_message(self, ws, message: str):
        try:
            self.handle_message(json.loads(message))
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning(f'Error parsing realtime message: {e}')

    def handle_message(self, data: dict) -> bool:
        """Dispatch one decoded frame. Returns True if a subscriber was called."""
        event = data.get('event')
        topic = data.get('topic')

        if event == 'phx_reply':
            status = (data.get('payload') or {}).get('status')
            if status != 'ok':
                logger.warning(f'Realtime reply on {topic}: {status}')
            return False
        if event in ('phx_error', 'phx_close'):
            logger.warning(f'Realtime channel {topic}: {event}')
            return False
        if event != 'postgres_changes':
            return False

        sub = self.subscriptions.get(topic)
        if sub is None:
            return False
        change = (data.get('payload') or {}).get('data') or {}
        if change.get('type') != sub.event:
            return False
        record = change.get('record')
        if not record:
            return False
        sub.callback(record)
        return True

    def _on_error(self, ws, error):
        if error:
            logger.debug(f'Realtime error: {error}')

    def _on_close(self, ws, close_status, close_msg):
        self.connected = False
        if self._was_connected:
            logger.debug('Realtime disconnected')
