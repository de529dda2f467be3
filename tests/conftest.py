from datetime import datetime, timedelta

import mongomock
import pytest

from hive_server.messaging.presence import PresenceRegistry
from hive_server.messaging.repository import MessagingRepository, reset_messaging_repository
from hive_server.messaging.service import MessagingService
from hive_server.repository.group_repository import GroupRepository
from hive_server.repository.mongo_helper import MongoRepositorySingleton
from hive_server.repository.user_repository import UserRepository
from hive_server.security.authentication import AuthSecurity
from hive_server.websocket import event_emitter

TEST_SECRET = 'test-secret'

USERS = [
    {'_id': 'a1', 'name': 'Alice', 'avatar': 'alice.png', 'password': 'hashed', 'joined_groups': ['g1'],
     'is_online': False},
    {'_id': 'b1', 'name': 'Bob', 'avatar': 'bob.png', 'password': 'hashed', 'joined_groups': ['g1'],
     'is_online': False},
    {'_id': 'c1', 'name': 'Carol', 'avatar': None, 'password': 'hashed', 'joined_groups': ['g2'],
     'is_online': False},
]

GROUPS = [
    {'_id': 'g1', 'name': 'Hikers', 'owner': 'a1', 'admins': [],
     'members': [{'user': 'a1', 'role': 'member'}, {'user': 'b1', 'role': 'member'}]},
    {'_id': 'g2', 'name': 'Readers', 'owner': 'c1', 'admins': [],
     'members': [{'user': 'c1', 'role': 'member'}]},
]


class FakeClock:
    def __init__(self, start=datetime(2024, 1, 1, 12, 0, 0)):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class RecordingSocketIO:
    """Stands in for the Socket.IO server behind EventEmitter."""

    def __init__(self):
        self.events = []

    def emit(self, event, data, to=None, skip_sid=None):
        self.events.append({'event': event, 'data': data, 'to': to, 'skip_sid': skip_sid})

    def named(self, event):
        return [e for e in self.events if e['event'] == event]


def token_for(user_id):
    return AuthSecurity.encode_token({'user_id': user_id})


def auth_headers(user_id):
    return {'Authorization': f'Bearer {token_for(user_id)}'}


def named(packets, name):
    """Payloads of the packets named `name` (from a test client's get_received())."""
    return [pkt['args'][0] for pkt in packets if pkt['name'] == name]


@pytest.fixture(autouse=True)
def mongo_db():
    db = mongomock.MongoClient().hive_test
    MongoRepositorySingleton.use_db(db)
    reset_messaging_repository()
    try:
        yield db
    finally:
        MongoRepositorySingleton.reset()
        reset_messaging_repository()


@pytest.fixture(autouse=True)
def auth_config():
    AuthSecurity.configure(secret_key=TEST_SECRET)
    yield
    AuthSecurity.configure(secret_key=None)


@pytest.fixture
def seed(mongo_db):
    mongo_db['users'].insert_many([dict(u) for u in USERS])
    mongo_db['groups'].insert_many([dict(g) for g in GROUPS])
    return mongo_db


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def users(seed):
    return UserRepository(seed['users'])


@pytest.fixture
def groups(seed):
    return GroupRepository(seed['groups'])


@pytest.fixture
def store(seed, users, clock):
    return MessagingRepository(collection=seed['messages'], user_repo=users, clock=clock)


@pytest.fixture
def emitted():
    recorder = RecordingSocketIO()
    event_emitter.set_socketio(recorder)
    yield recorder
    event_emitter.set_socketio(None)


@pytest.fixture
def service(store, users, groups, clock, emitted):
    return MessagingService(repo=store, users=users, groups=groups, presence=PresenceRegistry(), clock=clock)


@pytest.fixture
def app(seed):
    from server import create_app
    app = create_app()
    app.config['TESTING'] = True
    yield app
    event_emitter.set_socketio(None)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def connect(app):
    """Factory for Socket.IO test clients, optionally authenticated as a user."""
    from hive_server.websocket.hub import socketio
    clients = []

    def _connect(user_id=None):
        sio_client = socketio.test_client(app)
        clients.append(sio_client)
        if user_id:
            sio_client.emit('authenticate', {'token': token_for(user_id)})
        return sio_client

    yield _connect
    for sio_client in clients:
        if sio_client.is_connected():
            sio_client.disconnect()
