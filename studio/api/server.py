"""
Server API Client - Bespoke helper endpoints (notifications, AI proxies).
"""
import logging
from typing import Optional, List

import requests

logger = logging.getLogger(__name__)


class ServerAPI:
    """JSON request/response client for the app's own backend."""

    def __init__(self, base_url: str, service_secret: Optional[str] = None):
        self.base_url = base_url.rstrip('/')
        self.session = requests.Session()
        self.session.headers['Content-Type'] = 'application/json'
        if service_secret:
            self.session.headers['x-service-secret'] = service_secret

    def list_notifications(self, user_id: str, unread_only: bool = True) -> Optional[List[dict]]:
        """Fetch notifications for a user. None on failure."""
        params = {'user_id': user_id}
        if unread_only:
            params['unread_only'] = 'true'
        try:
            resp = self.session.get(f'{self.base_url}/api/notifications/list', params=params, timeout=5)
            if not resp.ok:
                logger.debug(f'Notification list: {resp.status_code}')
                return None
            return resp.json().get('notifications', [])
        except (requests.RequestException, ValueError) as e:
            logger.debug(f'Notification list failed: {e}')
            return None

    def mark_read(self, ids: List[str]) -> bool:
        try:
            resp = self.session.post(
                f'{self.base_url}/api/notifications/mark-read',
                json={'ids': list(ids)},
                timeout=5
            )
            logger.debug(f'Mark read {len(ids)}: {resp.status_code}')
            return resp.ok
        except requests.RequestException:
            logger.error('Mark read error', exc_info=True)
            return False

    def create_notification(self, payload: dict) -> Optional[dict]:
        """Create a notification row (user_id and type are required)."""
        if not payload.get('user_id') or not payload.get('type'):
            logger.warning('Notification payload missing user_id or type')
            return None
        try:
            resp = self.session.post(
                f'{self.base_url}/api/notifications/create',
                json=payload,
                timeout=5
            )
            if not resp.ok:
                logger.warning(f'Create notification failed: {resp.status_code} {resp.text[:200]}')
                return None
            data = resp.json()
            return data.get('inserted') or data
        except (requests.RequestException, ValueError):
            logger.error('Create notification error', exc_info=True)
            return None

    def caption(self, text: str) -> Optional[str]:
        """Ask the captioning proxy for a caption suggestion."""
        try:
            resp = self.session.post(f'{self.base_url}/api/ai/caption', json={'text': text}, timeout=15)
            if not resp.ok:
                logger.warning(f'Caption failed: {resp.status_code}')
                return None
            return resp.json().get('caption')
        except (requests.RequestException, ValueError) as e:
            logger.warning(f'Caption error: {e}')
            return None

    def moderate(self, text: str) -> Optional[dict]:
        """Run text through the moderation proxy. Returns {'flagged': bool, ...}."""
        try:
            resp = self.session.post(f'{self.base_url}/api/ai/moderate', json={'text': text}, timeout=15)
            if not resp.ok:
                logger.warning(f'Moderation failed: {resp.status_code}')
                return None
            return resp.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning(f'Moderation error: {e}')
            return None


class NullServerAPI:
    """No-op helper backend for mock mode."""

    def __init__(self):
        self.created: List[dict] = []

    def list_notifications(self, user_id: str, unread_only: bool = True):
        return []

    def mark_read(self, ids) -> bool:
        return True

    def create_notification(self, payload: dict):
        self.created.append(payload)
        return payload

    def caption(self, text: str):
        return None

    def moderate(self, text: str):
        return {'flagged': False}
