import os
import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from chatapp.auth import create_access_token
from chatapp.core import Services
from chatapp.errors import DependencyError
from chatapp.main import create_app
from chatapp.models import make_engine


def auth(token: str) -> dict:
    return {'Authorization': f'Bearer {token}'}


async def register(client, prefix: str = 'user'):
    unique_id = uuid.uuid4().hex[:8]
    res = await client.post('/api/auth/register', json={
        'username': f'{prefix}_{unique_id}',
        'email': f'{prefix}_{unique_id}@example.com',
        'password': 'secret123',
    })
    assert res.status_code == 201, res.text
    body = res.json()
    return body['user'], body['access_token']


async def befriend(client, a, token_a, b, token_b):
    res = await client.post('/api/friends/request', json={'receiver_id': b['id']}, headers=auth(token_a))
    assert res.status_code == 201, res.text
    res = await client.post(f"/api/friends/request/{res.json()['id']}/accept", headers=auth(token_b))
    assert res.status_code == 200, res.text
    return res.json()


class TestAuthAPI:
    """Registration, login and presence"""

    @pytest.mark.asyncio
    async def test_register_and_login(self, client):
        user, token = await register(client, 'alice')
        assert user['is_online'] is True
        assert 'password' not in user and 'hashed_password' not in user

        res = await client.post('/api/auth/login', json={'email': user['email'], 'password': 'secret123'})
        assert res.status_code == 200, res.text
        data = res.json()
        assert data['token_type'] == 'bearer'
        assert data['user']['id'] == user['id']

        me = await client.get('/api/auth/me', headers=auth(data['access_token']))
        assert me.status_code == 200
        assert me.json()['username'] == user['username']

    @pytest.mark.asyncio
    async def test_duplicate_email_conflicts(self, client):
        user, _ = await register(client, 'alice')
        res = await client.post('/api/auth/register', json={
            'username': 'someone_else',
            'email': user['email'],
            'password': 'secret123',
        })
        assert res.status_code == 409
        assert res.json()['detail'] == 'User with this email already exists'

    @pytest.mark.asyncio
    async def test_invalid_payload_is_bad_request(self, client):
        res = await client.post('/api/auth/register', json={
            'username': 'ab', 'email': 'not-an-email', 'password': '1',
        })
        assert res.status_code == 400
        assert isinstance(res.json()['detail'], list)

    @pytest.mark.asyncio
    async def test_wrong_password(self, client):
        user, _ = await register(client, 'alice')
        res = await client.post('/api/auth/login', json={'email': user['email'], 'password': 'nope'})
        assert res.status_code == 401

    @pytest.mark.asyncio
    async def test_token_required(self, client):
        assert (await client.get('/api/auth/me')).status_code == 401
        res = await client.get('/api/auth/me', headers=auth('garbage'))
        assert res.status_code == 401

    @pytest.mark.asyncio
    async def test_logout_and_presence(self, client):
        _, token = await register(client, 'alice')

        res = await client.put('/api/auth/presence', json={'is_online': True}, headers=auth(token))
        assert res.status_code == 200
        assert res.json()['is_online'] is True

        res = await client.post('/api/auth/logout', headers=auth(token))
        assert res.status_code == 200
        me = await client.get('/api/auth/me', headers=auth(token))
        assert me.json()['is_online'] is False

    @pytest.mark.asyncio
    async def test_search_excludes_caller(self, client):
        alice, token = await register(client, 'searchme')
        bob, _ = await register(client, 'searchme')

        res = await client.get('/api/users/search', params={'q': 'searchme'}, headers=auth(token))
        assert res.status_code == 200
        ids = [u['id'] for u in res.json()]
        assert bob['id'] in ids
        assert alice['id'] not in ids


class TestFriendsAPI:

    @pytest.mark.asyncio
    async def test_request_accept_and_list(self, client):
        alice, ta = await register(client, 'alice')
        bob, tb = await register(client, 'bob')

        res = await client.post('/api/friends/request', json={'receiver_id': bob['id']}, headers=auth(ta))
        assert res.status_code == 201
        request_id = res.json()['id']
        assert res.json()['status'] == 'pending'

        pending = await client.get('/api/friends/requests/pending', headers=auth(tb))
        assert pending.status_code == 200
        assert pending.json()[0]['sender']['username'] == alice['username']

        # the sender cannot accept their own request
        res = await client.post(f'/api/friends/request/{request_id}/accept', headers=auth(ta))
        assert res.status_code == 404

        res = await client.post(f'/api/friends/request/{request_id}/accept', headers=auth(tb))
        assert res.status_code == 200
        assert res.json()['user_id1'] < res.json()['user_id2']

        friends = await client.get('/api/friends', headers=auth(ta))
        assert friends.status_code == 200
        assert [f['id'] for f in friends.json()] == [bob['id']]
        assert friends.json()[0]['friendship_created_at'] is not None

        res = await client.post('/api/friends/request', json={'receiver_id': alice['id']}, headers=auth(tb))
        assert res.status_code == 409

    @pytest.mark.asyncio
    async def test_reject(self, client):
        _, ta = await register(client, 'alice')
        bob, tb = await register(client, 'bob')
        res = await client.post('/api/friends/request', json={'receiver_id': bob['id']}, headers=auth(ta))
        request_id = res.json()['id']

        res = await client.post(f'/api/friends/request/{request_id}/reject', headers=auth(tb))
        assert res.status_code == 200
        assert res.json()['ok'] is True

        res = await client.post(f'/api/friends/request/{request_id}/accept', headers=auth(tb))
        assert res.status_code == 404

    @pytest.mark.asyncio
    async def test_self_and_unknown(self, client):
        alice, ta = await register(client, 'alice')
        res = await client.post('/api/friends/request', json={'receiver_id': alice['id']}, headers=auth(ta))
        assert res.status_code == 400
        res = await client.post('/api/friends/request', json={'receiver_id': 424242}, headers=auth(ta))
        assert res.status_code == 404

    @pytest.mark.asyncio
    async def test_out_of_range_ids_are_rejected(self, client):
        _, ta = await register(client, 'alice')
        for receiver_id in (2**70, 2**31, 0, -1):
            res = await client.post('/api/friends/request', json={'receiver_id': receiver_id}, headers=auth(ta))
            assert res.status_code == 400, res.text
        res = await client.post(f'/api/friends/request/{2**70}/accept', headers=auth(ta))
        assert res.status_code == 400
        res = await client.post(f'/api/friends/request/{2**70}/reject', headers=auth(ta))
        assert res.status_code == 400


class TestMessagesAPI:

    @pytest.mark.asyncio
    async def test_private_message_between_friends(self, client, notifier):
        alice, ta = await register(client, 'alice')
        bob, tb = await register(client, 'bob')

        res = await client.post('/api/messages', json={'message': 'hi', 'receiver_id': bob['id']}, headers=auth(ta))
        assert res.status_code == 403
        assert res.json()['detail'] == 'Can only send messages to friends'

        await befriend(client, alice, ta, bob, tb)
        res = await client.post('/api/messages', json={'message': 'hi', 'receiver_id': bob['id']}, headers=auth(ta))
        assert res.status_code == 201, res.text
        assert res.json()['is_private'] is True

        low, high = sorted((alice['id'], bob['id']))
        assert notifier.events[-1][0] == f'private-chat-{low}-{high}'

        history = await client.get(f"/api/messages/private/{alice['id']}", headers=auth(tb))
        assert history.status_code == 200
        assert [m['message'] for m in history.json()] == ['hi']

    @pytest.mark.asyncio
    async def test_public_message(self, client):
        alice, ta = await register(client, 'alice')
        res = await client.post('/api/messages', json={'message': 'hello'}, headers=auth(ta))
        assert res.status_code == 201

        listing = await client.get('/api/messages')
        assert [m['message'] for m in listing.json()] == ['hello']

        by_user = await client.get(f"/api/messages/user/{alice['username']}")
        assert by_user.json()[0]['username'] == alice['username']

    @pytest.mark.asyncio
    async def test_empty_message(self, client):
        _, ta = await register(client, 'alice')
        res = await client.post('/api/messages', json={'message': '   '}, headers=auth(ta))
        assert res.status_code == 400
        assert res.json()['detail'] == 'Either message or file must be provided'

    @pytest.mark.asyncio
    async def test_file_message(self, client, storage):
        alice, ta = await register(client, 'alice')
        bob, tb = await register(client, 'bob')
        await befriend(client, alice, ta, bob, tb)

        res = await client.post(
            '/api/messages/file',
            files={'file': ('notes.txt', b'some notes', 'text/plain')},
            data={'receiver_id': str(bob['id'])},
            headers=auth(ta),
        )
        assert res.status_code == 201, res.text
        body = res.json()
        assert body['file_type'] == 'document'
        assert body['file_name'] == 'notes.txt'
        assert body['file_size'] == len(b'some notes')
        assert body['message'] is None

        stored = os.path.join(storage.upload_dir, body['file_url'].rsplit('/', 1)[-1])
        assert os.path.exists(stored)

    @pytest.mark.asyncio
    async def test_file_to_stranger_writes_nothing(self, client, storage):
        _, ta = await register(client, 'alice')
        bob, _ = await register(client, 'bob')

        res = await client.post(
            '/api/messages/file',
            files={'file': ('notes.txt', b'some notes', 'text/plain')},
            data={'receiver_id': str(bob['id'])},
            headers=auth(ta),
        )
        assert res.status_code == 403
        assert os.listdir(storage.upload_dir) == []

    @pytest.mark.asyncio
    async def test_disallowed_file_type(self, client):
        _, ta = await register(client, 'alice')
        res = await client.post(
            '/api/messages/file',
            files={'file': ('run.exe', b'MZ', 'application/x-msdownload')},
            headers=auth(ta),
        )
        assert res.status_code == 400

    @pytest.mark.asyncio
    async def test_private_history_needs_friendship(self, client):
        _, ta = await register(client, 'alice')
        bob, _ = await register(client, 'bob')
        res = await client.get(f"/api/messages/private/{bob['id']}", headers=auth(ta))
        assert res.status_code == 403

    @pytest.mark.asyncio
    async def test_out_of_range_receiver(self, client, storage):
        _, ta = await register(client, 'alice')
        res = await client.post('/api/messages', json={'message': 'hi', 'receiver_id': 2**70}, headers=auth(ta))
        assert res.status_code == 400
        res = await client.get(f'/api/messages/private/{2**70}', headers=auth(ta))
        assert res.status_code == 400
        res = await client.post(
            '/api/messages/file',
            files={'file': ('notes.txt', b'some notes', 'text/plain')},
            data={'receiver_id': str(2**70)},
            headers=auth(ta),
        )
        assert res.status_code == 400
        assert os.listdir(storage.upload_dir) == []

    @pytest.mark.asyncio
    async def test_upload_discarded_when_message_not_stored(self, client, services, storage, monkeypatch):
        _, ta = await register(client, 'alice')

        async def failing_create(**values):
            raise DependencyError('disk full')

        monkeypatch.setattr(services.messages.messages, 'create', failing_create)
        res = await client.post(
            '/api/messages/file',
            files={'file': ('notes.txt', b'some notes', 'text/plain')},
            headers=auth(ta),
        )
        assert res.status_code == 500
        assert res.json() == {'detail': 'Dependency failure'}
        assert os.listdir(storage.upload_dir) == []


class TestPusherAuthAPI:

    @pytest.mark.asyncio
    async def test_participant_gets_blob(self, client):
        alice, ta = await register(client, 'alice')
        channel = f"private-chat-{alice['id']}-{alice['id'] + 1000}"
        res = await client.post('/api/pusher/auth',
                                data={'socket_id': '1234.5678', 'channel_name': channel},
                                headers=auth(ta))
        assert res.status_code == 200
        assert res.json()['identity'] == {'user_id': str(alice['id']), 'user_info': {'username': alice['username']}}

    @pytest.mark.asyncio
    async def test_outsider_denied(self, client):
        alice, ta = await register(client, 'alice')
        channel = f"private-chat-{alice['id'] + 1000}-{alice['id'] + 2000}"
        res = await client.post('/api/pusher/auth',
                                data={'socket_id': '1234.5678', 'channel_name': channel},
                                headers=auth(ta))
        assert res.status_code == 403
        assert res.json()['detail'] == 'Unauthorized channel access'


@pytest.mark.asyncio
async def test_healthz(client):
    res = await client.get('/healthz')
    assert res.status_code == 200
    assert res.json() == {'status': 'ok'}


class TestStorageFailureAPI:
    """Database outages surface as a generic 500 without driver details"""

    @pytest_asyncio.fixture
    async def broken_client(self, tmp_path, notifier, storage):
        # the parent directory does not exist, so every connection attempt fails
        engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'chat.db'}")
        services = Services(engine=engine, notifier=notifier, storage=storage)
        async with AsyncClient(transport=ASGITransport(app=create_app(services)), base_url='http://test') as ac:
            yield ac
        await engine.dispose()

    @pytest.mark.asyncio
    async def test_dependency_failure_is_generic(self, broken_client, notifier):
        headers = auth(create_access_token({'id': 1, 'username': 'ghost'}))

        responses = [
            await broken_client.post('/api/friends/request', json={'receiver_id': 2}, headers=headers),
            await broken_client.post('/api/messages', json={'message': 'hello'}, headers=headers),
            await broken_client.get('/api/friends', headers=headers),
            await broken_client.get('/api/messages'),
        ]
        for res in responses:
            assert res.status_code == 500
            assert res.json() == {'detail': 'Dependency failure'}
            assert 'unable to open' not in res.text
            assert 'sqlite' not in res.text.lower()
        assert notifier.events == []
