"""
Remote Store Client - PostgREST/Supabase REST API over requests.

Rows come back as plain dicts. Every failure raises RemoteError so callers
can decide between rolling back, surfacing a notice or ignoring it.
"""
import logging
from typing import Optional, Dict, List, Tuple, Any

import requests

from ..errors import RemoteError

logger = logging.getLogger(__name__)

Filters = Optional[Dict[str, str]]


class RestClient:
    """Row-store client for a Supabase project (REST, RPC, storage)."""

    def __init__(self, base_url: str, api_key: str, access_token: Optional[str] = None,
                 timeout: float = 10):
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers['apikey'] = api_key
        self.session.headers['Content-Type'] = 'application/json'
        self.set_access_token(access_token)

    def set_access_token(self, token: Optional[str]):
        """Use a user's JWT (or fall back to the anon key) for row-level security."""
        self.session.headers['Authorization'] = f'Bearer {token or self.api_key}'

    # ============================================
    # TRANSPORT
    # ============================================

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f'{self.base_url}{path}'
        kwargs.setdefault('timeout', self.timeout)
        try:
            resp = self.session.request(method, url, **kwargs)
        except requests.RequestException as e:
            logger.debug(f'{method} {path} transport error: {e}')
            raise RemoteError(f'{method} {path} failed: {e}') from e

        if not resp.ok:
            code = None
            try:
                code = resp.json().get('code')
            except ValueError:
                pass
            logger.debug(f'{method} {path}: {resp.status_code} {resp.text[:200]}')
            raise RemoteError(
                f'{method} {path} failed: {resp.status_code}',
                status=resp.status_code, body=resp.text, code=code,
            )
        return resp

    @staticmethod
    def _json(resp: requests.Response) -> Any:
        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise RemoteError(f'Invalid JSON from {resp.url}', status=resp.status_code) from e

    # ============================================
    # ROWS
    # ============================================

    def select(self, table: str, columns: str = '*', filters: Filters = None,
               order: Optional[str] = None, desc: bool = True,
               range_: Optional[Tuple[int, int]] = None,
               limit: Optional[int] = None) -> List[dict]:
        """Select rows. `range_` is inclusive, like the JS client's `.range(from, to)`."""
        params = {'select': columns}
        params.update(filters or {})
        if order:
            params['order'] = f'{order}.{"desc" if desc else "asc"}'
        if range_ is not None:
            start, end = range_
            params['offset'] = str(start)
            params['limit'] = str(end - start + 1)
        elif limit is not None:
            params['limit'] = str(limit)

        resp = self._request('GET', f'/rest/v1/{table}', params=params)
        return self._json(resp) or []

    def maybe_single(self, table: str, columns: str = '*', filters: Filters = None) -> Optional[dict]:
        """First matching row or None."""
        rows = self.select(table, columns, filters=filters, limit=1)
        return rows[0] if rows else None

    def count(self, table: str, filters: Filters = None) -> int:
        """Exact row count without transferring rows."""
        params = {'select': '*'}
        params.update(filters or {})
        resp = self._request(
            'HEAD', f'/rest/v1/{table}', params=params,
            headers={'Prefer': 'count=exact'},
        )
        content_range = resp.headers.get('Content-Range', '')
        total = content_range.rsplit('/', 1)[-1]
        return int(total) if total.isdigit() else 0

    def insert(self, table: str, row: dict) -> Optional[dict]:
        resp = self._request(
            'POST', f'/rest/v1/{table}', json=row,
            headers={'Prefer': 'return=representation'},
        )
        data = self._json(resp)
        if isinstance(data, list):
            return data[0] if data else None
        return data

    def update(self, table: str, values: dict, filters: Dict[str, str]) -> List[dict]:
        resp = self._request(
            'PATCH', f'/rest/v1/{table}', params=filters, json=values,
            headers={'Prefer': 'return=representation'},
        )
        return self._json(resp) or []

    def delete(self, table: str, filters: Dict[str, str]) -> None:
        if not filters:
            raise ValueError('Refusing to delete without filters')
        self._request('DELETE', f'/rest/v1/{table}', params=filters)

    def rpc(self, name: str, params: Optional[dict] = None) -> Any:
        """Call a server-side function (e.g. increment_video_likes)."""
        resp = self._request('POST', f'/rest/v1/rpc/{name}', json=params or {})
        return self._json(resp)

    # ============================================
    # STORAGE
    # ============================================

    def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        """Upload an object and return its storage path."""
        self._request(
            'POST', f'/storage/v1/object/{bucket}/{path}', data=data,
            headers={'Content-Type': content_type, 'x-upsert': 'true'},
        )
        logger.info(f'Uploaded {len(data)} bytes to {bucket}/{path}')
        return path


class AuthSession:
    """Password sign-in against Supabase auth."""

    def __init__(self, client: RestClient):
        self.client = client
        self.access_token: Optional[str] = None
        self.user: Optional[dict] = None

    @property
    def user_id(self) -> Optional[str]:
        return self.user.get('id') if self.user else None

    def sign_in(self, email: str, password: str) -> bool:
        """Sign in and attach the token to the client. Returns True on success."""
        try:
            resp = self.client._request(
                'POST', '/auth/v1/token', params={'grant_type': 'password'},
                json={'email': email, 'password': password},
            )
            data = self.client._json(resp) or {}
        except RemoteError as e:
            logger.warning(f'Sign-in failed for {email}: {e}')
            return False

        self.access_token = data.get('access_token')
        self.user = data.get('user')
        if not self.access_token or not self.user:
            logger.warning('Sign-in response missing session')
            return False

        self.client.set_access_token(self.access_token)
        logger.info(f'Signed in as {self.user.get("email", self.user_id)}')
        return True

    def sign_out(self):
        self.access_token = None
        self.user = None
        self.client.set_access_token(None)
