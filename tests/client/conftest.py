import pytest

from chore_cycle.client.realtime import RealtimeChannel
from chore_cycle.client.session import Session
from chore_cycle.client.store import ChoreStore

from fakes import FakeChoreService, make_user


@pytest.fixture
def session():
    session = Session()
    session.start("token-me", make_user())
    return session


@pytest.fixture
def service():
    return FakeChoreService()


@pytest.fixture
def channel():
    return RealtimeChannel(base_delay=0, max_reconnect_attempts=3, handshake_timeout=1)


@pytest.fixture
def store(session, service, channel):
    store = ChoreStore(session, service, channel)
    store.attach()
    return store
