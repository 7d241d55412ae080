import asyncio
import os
import tempfile
import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Configure test environment before the app modules read it
_TMP = tempfile.mkdtemp(prefix='chatapp-tests-')
os.environ['BCRYPT_ROUNDS'] = '4'
os.environ.setdefault('UPLOAD_DIR', os.path.join(_TMP, 'uploads'))
os.environ.setdefault('DATABASE_URL', f"sqlite+aiosqlite:///{os.path.join(_TMP, 'import.db')}")

from chatapp.core import Services  # noqa: E402
from chatapp.file_storage import AttachmentStorage  # noqa: E402
from chatapp.main import create_app  # noqa: E402
from chatapp.models import Base, make_engine  # noqa: E402


class RecordingNotifier:
    """In-memory emitter: keeps every published event, can be told to fail or stall"""

    def __init__(self):
        self.events = []
        self.fail = False
        self.delay = 0

    async def publish(self, channel_name, event_name, payload):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError('pusher unavailable')
        self.events.append((channel_name, event_name, payload))

    async def authorize_subscription(self, channel_name, socket_id, identity):
        return {'auth': f'test:{socket_id}', 'channel': channel_name, 'identity': identity}


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'chat.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def storage(tmp_path):
    return AttachmentStorage(upload_dir=str(tmp_path / 'uploads'))


@pytest_asyncio.fixture
async def services(engine, notifier, storage):
    return Services(engine=engine, notifier=notifier, storage=storage)


@pytest_asyncio.fixture
async def client(services):
    app = create_app(services)
    async with AsyncClient(transport=ASGITransport(app=app), base_url='http://test') as ac:
        yield ac


@pytest.fixture
def make_user(services):
    """Register a user directly through the service layer; returns (user, token)"""

    async def _make(prefix: str = 'user'):
        unique_id = uuid.uuid4().hex[:8]
        return await services.users.register(
            username=f'{prefix}_{unique_id}',
            email=f'{prefix}_{unique_id}@example.com',
            password='secret123',
        )

    return _make


@pytest.fixture
def make_friends(services):
    """Run a full request/accept cycle between two existing users"""

    async def _befriend(user_a, user_b):
        fr = await services.friends.send_request(user_a.id, user_b.id)
        return await services.friends.accept_request(fr.id, user_b.id)

    return _befriend
