"""
Memory Store - In-process stand-in for the remote row store.

Implements the RestClient surface (select/count/insert/update/delete/rpc/
upload) over lists of dicts, with the PostgREST filter subset the client
uses. Backs mock mode and the test suite; failures can be injected per
operation.
"""
import copy
import uuid
import random
import logging
import threading
from collections import defaultdict
from datetime import timedelta
from typing import Optional, Dict, List, Tuple, Any

from ..errors import RemoteError
from ..utils import parse_timestamp
from ..models import utcnow

logger = logging.getLogger(__name__)

# (table -> columns) that the real schema keeps unique
UNIQUE_KEYS = {
    'studio_video_likes': ('user_id', 'video_id'),
    'studio_video_views': ('user_id', 'video_id'),
    'studio_channel_subscribers': ('user_id', 'channel_id'),
}


def _coerce(value):
    """Comparable form of a stored value or filter operand."""
    ts = parse_timestamp(value) if isinstance(value, str) and len(value) >= 10 and value[4:5] == '-' else None
    if ts is not None:
        return ts
    try:
        return float(value)
    except (TypeError, ValueError):
        return str(value)


def _matches(row: dict, column: str, expr: str) -> bool:
    op, _, operand = expr.partition('.')
    value = row.get(column)

    if op == 'eq':
        return value is not None and str(value) == operand
    if op == 'neq':
        return value is None or str(value) != operand
    if op == 'is':
        return value is None if operand == 'null' else str(value).lower() == operand
    if op == 'in':
        options = [o.strip().strip('"') for o in operand.strip('()').split(',') if o.strip()]
        return value is not None and str(value) in options
    if op == 'cs':
        wanted = [o.strip().strip('"') for o in operand.strip('{}').split(',') if o.strip()]
        return isinstance(value, (list, tuple)) and all(w in value for w in wanted)
    if op in ('gt', 'gte', 'lt', 'lte'):
        if value is None:
            return False
        left, right = _coerce(value), _coerce(operand)
        try:
            if op == 'gt':
                return left > right
            if op == 'gte':
                return left >= right
            if op == 'lt':
                return left < right
            return left <= right
        except TypeError:
            return False
    raise ValueError(f'Unsupported filter operator: {op}')


class MemoryStore:
    """In-memory row store with the RestClient interface."""

    def __init__(self, tables: Optional[Dict[str, List[dict]]] = None):
        self.tables: Dict[str, List[dict]] = defaultdict(list)
        for name, rows in (tables or {}).items():
            self.tables[name] = [dict(r) for r in rows]
        self.calls: List[Tuple[str, str]] = []  # (operation, table or rpc name)
        self.uploads: Dict[str, bytes] = {}
        self._failures: Dict[str, int] = defaultdict(int)
        self._lock = threading.RLock()

    # ============================================
    # TEST HOOKS
    # ============================================

    def fail_next(self, operation: str, times: int = 1):
        """Make the next `times` calls of `operation` raise RemoteError."""
        with self._lock:
            self._failures[operation] += times

    def mutations(self) -> List[Tuple[str, str]]:
        """Calls that changed state, in order."""
        return [c for c in self.calls if c[0] in ('insert', 'update', 'delete', 'rpc', 'upload')]

    def _enter(self, operation: str, target: str):
        self.calls.append((operation, target))
        if self._failures[operation] > 0:
            self._failures[operation] -= 1
            raise RemoteError(f'{operation} {target} failed (injected)', status=503)

    def _filtered(self, table: str, filters: Optional[Dict[str, str]]) -> List[dict]:
        rows = self.tables[table]
        for column, expr in (filters or {}).items():
            rows = [r for r in rows if _matches(r, column, expr)]
        return rows

    # ============================================
    # ROWS
    # ============================================

    def select(self, table: str, columns: str = '*', filters=None, order: Optional[str] = None,
               desc: bool = True, range_: Optional[Tuple[int, int]] = None,
               limit: Optional[int] = None) -> List[dict]:
        with self._lock:
            self._enter('select', table)
            rows = self._filtered(table, filters)
            if order:
                present = [r for r in rows if r.get(order) is not None]
                missing = [r for r in rows if r.get(order) is None]
                present.sort(key=lambda r: _coerce(r[order]), reverse=desc)
                rows = present + missing
            if range_ is not None:
                rows = rows[range_[0]:range_[1] + 1]
            elif limit is not None:
                rows = rows[:limit]
            if columns and columns != '*':
                wanted = [c.strip() for c in columns.split(',')]
                rows = [{c: r.get(c) for c in wanted} for r in rows]
            return copy.deepcopy(rows)

    def maybe_single(self, table: str, columns: str = '*', filters=None) -> Optional[dict]:
        rows = self.select(table, columns, filters=filters, limit=1)
        return rows[0] if rows else None

    def count(self, table: str, filters=None) -> int:
        with self._lock:
            self._enter('count', table)
            return len(self._filtered(table, filters))

    def insert(self, table: str, row: dict) -> dict:
        with self._lock:
            self._enter('insert', table)
            keys = UNIQUE_KEYS.get(table)
            if keys and any(all(r.get(k) == row.get(k) for k in keys) for r in self.tables[table]):
                raise RemoteError(f'duplicate key value violates unique constraint on {table}',
                                  status=409, code='23505')
            stored = dict(row)
            stored.setdefault('id', str(uuid.uuid4()))
            stored.setdefault('created_at', utcnow().isoformat())
            self.tables[table].append(stored)
            return dict(stored)

    def update(self, table: str, values: dict, filters: Dict[str, str]) -> List[dict]:
        with self._lock:
            self._enter('update', table)
            rows = self._filtered(table, filters)
            for r in rows:
                r.update(values)
            return copy.deepcopy(rows)

    def delete(self, table: str, filters: Dict[str, str]) -> None:
        if not filters:
            raise ValueError('Refusing to delete without filters')
        with self._lock:
            self._enter('delete', table)
            doomed = {id(r) for r in self._filtered(table, filters)}
            self.tables[table] = [r for r in self.tables[table] if id(r) not in doomed]

    def rpc(self, name: str, params: Optional[dict] = None) -> Any:
        params = params or {}
        with self._lock:
            self._enter('rpc', name)
            counters = {
                'increment_video_likes': ('likes', 1),
                'decrement_video_likes': ('likes', -1),
                'increment_video_views': ('views', 1),
            }
            if name not in counters:
                raise RemoteError(f'function {name} does not exist', status=404, code='PGRST202')
            column, delta = counters[name]
            for r in self._filtered('studio_videos', {'id': f'eq.{params.get("video_id")}'}):
                r[column] = max(0, (r.get(column) or 0) + delta)
            return None

    def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        with self._lock:
            self._enter('upload', bucket)
            self.uploads[f'{bucket}/{path}'] = bytes(data)
            return path


def seed_demo(store: MemoryStore, video_count: int = 36, seed: int = 7) -> MemoryStore:
    """Fill a store with demo users, channels and reels for mock mode."""
    rng = random.Random(seed)
    now = utcnow()
    categories = ['Tech', 'Comedy', 'Sports', 'Music', 'Food', 'Art']
    for i in range(6):
        store.tables['users'].append({'id': f'user-{i}', 'username': f'creator{i}', 'avatar_url': None})
        store.tables['studio_channels'].append({
            'id': f'channel-{i}', 'user_id': f'user-{i}', 'name': f'Channel {i}',
            'description': f'Reels from creator{i}',
        })
    for i in range(video_count):
        owner = i % 6
        store.tables['studio_videos'].append({
            'id': f'video-{i}',
            'title': f'Reel #{i}',
            'video_url': f'demo/reel-{i}.mp4',
            'user_id': f'user-{owner}',
            'channel_id': f'channel-{owner}',
            'categories': [categories[i % len(categories)]],
            'created_at': (now - timedelta(hours=i * 5)).isoformat(),
            'duration': rng.choice([8.0, 12.0, 15.0, 21.0]),
            'views': rng.randint(40, 5000),
            'likes': 0,
        })
        # Engagement rows; enrichment counts these
        video = store.tables['studio_videos'][-1]
        for fan in rng.sample(range(60), rng.randint(0, 30)):
            store.tables['studio_video_likes'].append({'user_id': f'fan-{fan}', 'video_id': video['id']})
            video['likes'] += 1
        for fan in rng.sample(range(60), rng.randint(0, 6)):
            store.tables['studio_video_comments'].append({
                'id': f'comment-{i}-{fan}', 'user_id': f'fan-{fan}', 'video_id': video['id'],
                'comment': rng.choice(['Love this', 'So good', 'Again!', 'How did you make this?']),
                'created_at': (now - timedelta(minutes=fan)).isoformat(),
            })
        for fan in rng.sample(range(60), rng.randint(0, 4)):
            store.tables['studio_video_shares'].append({'user_id': f'fan-{fan}', 'video_id': video['id']})
    for i in range(6):
        for fan in rng.sample(range(60), rng.randint(2, 20)):
            store.tables['studio_channel_subscribers'].append({'user_id': f'fan-{fan}', 'channel_id': f'channel-{i}'})
    logger.info(f'Seeded demo store with {video_count} reels')
    return store
