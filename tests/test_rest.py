"""
Tests for RestClient, AuthSession and ServerAPI with a mocked requests session.
"""
import pytest
import requests
from pathlib import Path
from unittest.mock import MagicMock

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from studio.api.rest import RestClient, AuthSession
from studio.api.server import ServerAPI
from studio.errors import RemoteError


def response(status=200, payload=None, headers=None, content=b'x'):
    resp = MagicMock()
    resp.status_code = status
    resp.ok = status < 400
    resp.headers = headers or {}
    resp.content = content if payload is not None or status != 204 else b''
    resp.text = str(payload)
    if payload is None:
        resp.json.side_effect = ValueError('no json')
    else:
        resp.json.return_value = payload
    return resp


@pytest.fixture
def client():
    client = RestClient('https://abc.supabase.co/', 'anon-key')
    client.session = MagicMock()
    client.session.headers = {}
    return client


def sent(client):
    """(method, url, kwargs) of the last request."""
    args, kwargs = client.session.request.call_args
    return args[0], args[1], kwargs


class TestRestClient:
    """Tests for the PostgREST request shapes."""

    def test_select_with_filters_order_and_range(self, client):
        client.session.request.return_value = response(payload=[{'id': 'v1'}])

        rows = client.select(
            'studio_videos', filters={'categories': 'cs.{Tech}'},
            order='created_at', range_=(10, 19),
        )

        method, url, kwargs = sent(client)
        assert rows == [{'id': 'v1'}]
        assert method == 'GET'
        assert url == 'https://abc.supabase.co/rest/v1/studio_videos'
        assert kwargs['params'] == {
            'select': '*', 'categories': 'cs.{Tech}',
            'order': 'created_at.desc', 'offset': '10', 'limit': '10',
        }

    def test_maybe_single_empty(self, client):
        client.session.request.return_value = response(payload=[])
        assert client.maybe_single('studio_video_views', 'id', {'user_id': 'eq.u'}) is None
        assert sent(client)[2]['params']['limit'] == '1'

    def test_count_reads_content_range(self, client):
        client.session.request.return_value = response(headers={'Content-Range': '0-9/42'})

        assert client.count('studio_video_likes', {'video_id': 'eq.v1'}) == 42
        method, _, kwargs = sent(client)
        assert method == 'HEAD'
        assert kwargs['headers']['Prefer'] == 'count=exact'

    def test_count_without_total(self, client):
        client.session.request.return_value = response(headers={'Content-Range': '*/*'})
        assert client.count('studio_video_likes') == 0

    def test_insert_returns_row(self, client):
        client.session.request.return_value = response(201, payload=[{'id': 'c1'}])
        assert client.insert('studio_video_comments', {'comment': 'hi'}) == {'id': 'c1'}
        assert sent(client)[2]['headers']['Prefer'] == 'return=representation'

    def test_error_carries_status_and_code(self, client):
        client.session.request.return_value = response(409, payload={'code': '23505', 'message': 'dup'})

        with pytest.raises(RemoteError) as exc:
            client.insert('studio_video_likes', {'user_id': 'u', 'video_id': 'v'})
        assert exc.value.status == 409
        assert exc.value.code == '23505'

    def test_transport_error_wrapped(self, client):
        client.session.request.side_effect = requests.ConnectionError('offline')
        with pytest.raises(RemoteError) as exc:
            client.select('studio_videos')
        assert exc.value.status is None

    def test_rpc_empty_body(self, client):
        client.session.request.return_value = response(204)
        assert client.rpc('increment_video_views', {'video_id': 'v1'}) is None
        _, url, kwargs = sent(client)
        assert url.endswith('/rest/v1/rpc/increment_video_views')
        assert kwargs['json'] == {'video_id': 'v1'}

    def test_delete_requires_filters(self, client):
        with pytest.raises(ValueError):
            client.delete('studio_video_likes', {})
        client.session.request.assert_not_called()

    def test_upload_path(self, client):
        client.session.request.return_value = response(payload={'Key': 'k'})
        assert client.upload('studio-videos', 'u/reel.wav', b'RIFF', 'audio/wav') == 'u/reel.wav'
        _, url, kwargs = sent(client)
        assert url.endswith('/storage/v1/object/studio-videos/u/reel.wav')
        assert kwargs['headers']['Content-Type'] == 'audio/wav'


class TestAuthSession:
    """Tests for password sign-in."""

    def test_sign_in_attaches_token(self, client):
        client.session.request.return_value = response(payload={
            'access_token': 'jwt-1', 'user': {'id': 'user-1', 'email': 'a@b.c'},
        })
        auth = AuthSession(client)

        assert auth.sign_in('a@b.c', 'pw')
        assert auth.user_id == 'user-1'
        assert client.session.headers['Authorization'] == 'Bearer jwt-1'
        assert sent(client)[2]['params'] == {'grant_type': 'password'}

    def test_bad_credentials(self, client):
        client.session.request.return_value = response(400, payload={'error': 'invalid_grant'})
        auth = AuthSession(client)
        assert not auth.sign_in('a@b.c', 'wrong')
        assert auth.user_id is None

    def test_sign_out_restores_anon_key(self, client):
        auth = AuthSession(client)
        client.set_access_token('jwt-1')
        auth.sign_out()
        assert client.session.headers['Authorization'] == 'Bearer anon-key'


class TestServerAPI:
    """Tests for the helper backend client."""

    @pytest.fixture
    def server(self):
        server = ServerAPI('https://app.example/', service_secret='s3cret')
        server.session = MagicMock()
        return server

    def test_list_notifications(self, server):
        server.session.get.return_value = response(payload={'notifications': [{'id': 'n1'}]})

        assert server.list_notifications('user-1') == [{'id': 'n1'}]
        args, kwargs = server.session.get.call_args
        assert args[0] == 'https://app.example/api/notifications/list'
        assert kwargs['params'] == {'user_id': 'user-1', 'unread_only': 'true'}

    def test_list_failure_is_none(self, server):
        server.session.get.side_effect = requests.Timeout()
        assert server.list_notifications('user-1') is None

    def test_create_requires_user_and_type(self, server):
        assert server.create_notification({'type': 'comment'}) is None
        server.session.post.assert_not_called()

    def test_create_returns_inserted(self, server):
        server.session.post.return_value = response(payload={'inserted': {'id': 'n2'}})
        assert server.create_notification({'user_id': 'u', 'type': 'comment'}) == {'id': 'n2'}

    def test_moderation_verdict(self, server):
        server.session.post.return_value = response(payload={'flagged': True})
        assert server.moderate('text')['flagged']
        assert server.session.post.call_args[0][0].endswith('/api/ai/moderate')

    def test_secret_header_set(self):
        assert ServerAPI('https://app.example', 's3cret').session.headers['x-service-secret'] == 's3cret'
