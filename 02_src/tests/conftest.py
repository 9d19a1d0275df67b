"""Pytest configuration and fixtures."""

import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from taskflow.models import User  # noqa: E402

TEAM = "team1"
OTHER_TEAM = "team2"


class FakeConnection:
    """In-memory IConnection that records what it is handed."""

    def __init__(self, user_id: str, team_id: str = TEAM, fail: bool = False):
        self.id = uuid.uuid4().hex
        self.user_id = user_id
        self.team_id = team_id
        self.fail = fail
        self.events = []

    def send(self, event) -> bool:
        if self.fail:
            raise ConnectionError("socket gone")
        self.events.append(event)
        return True

    def types(self) -> list[str]:
        return [event.type.value for event in self.events]


def make_user(user_id: str, team_id: str = TEAM, role: str = "member") -> User:
    return User(
        id=user_id,
        team_id=team_id,
        name=user_id.capitalize(),
        email=f"{user_id}@example.com",
        role=role,
        created_at=datetime.now(timezone.utc),
    )


@pytest_asyncio.fixture
async def storage():
    """Create in-memory storage for testing."""
    from taskflow.storage import Storage

    st = Storage(":memory:")
    await st.init()
    yield st
    await st.close()


@pytest_asyncio.fixture
async def users(storage):
    """Alice (admin), Bob and Carol in team1; Dave in team2."""
    seeded = {
        "alice": make_user("alice", role="admin"),
        "bob": make_user("bob"),
        "carol": make_user("carol"),
        "dave": make_user("dave", team_id=OTHER_TEAM),
    }
    for user in seeded.values():
        await storage.save_user(user)
    return seeded


@pytest.fixture
def presence():
    from taskflow.realtime import PresenceRegistry

    return PresenceRegistry()


@pytest.fixture
def broadcaster(presence):
    from taskflow.realtime import RoomBroadcaster

    return RoomBroadcaster(presence)


@pytest.fixture
def chat_service(storage, users):
    from taskflow.chat import ChatService

    return ChatService(storage)


@pytest.fixture
def claim_settings(storage):
    from taskflow.claims import ClaimSettingsStore

    return ClaimSettingsStore(storage)


@pytest.fixture
def work_queue(storage, broadcaster):
    from taskflow.claims import WorkQueue

    return WorkQueue(storage, broadcaster)


@pytest.fixture
def allocator(storage, users, claim_settings, broadcaster):
    from taskflow.claims import ClaimAllocator

    return ClaimAllocator(storage, claim_settings, broadcaster)


@pytest.fixture
def test_settings():
    from taskflow.config import Settings

    return Settings(jwt_secret="test-secret", typing_sweep_seconds=0.05)


@pytest_asyncio.fixture
async def application(test_settings):
    """A started Application on an in-memory database."""
    from taskflow.app import Application

    app = Application(db_path=":memory:", settings=test_settings)
    await app.start()
    yield app
    await app.stop()


def token_for(user: User, settings) -> str:
    from taskflow.auth import create_access_token

    return create_access_token(
        user.id, user.team_id, user.role, settings.jwt_secret, settings.jwt_algorithm
    )
