import pytest

from ledgertax.core import database
from ledgertax.core.database import after_commit, get_database


class FakeSession:
    def __init__(self, events):
        self.events = events
        self.info = {}

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    async def commit(self):
        self.events.append("commit")

    async def rollback(self):
        self.events.append("rollback")

    async def close(self):
        self.events.append("close")


@pytest.fixture
def events(monkeypatch):
    events = []
    monkeypatch.setattr(database, "AsyncSessionLocal", lambda: FakeSession(events))
    return events


@pytest.mark.asyncio
async def test_after_commit_callbacks_run_once_committed(events):
    sessions = get_database()
    session = await sessions.__anext__()
    after_commit(session, lambda: events.append("invalidate"))
    assert events == []

    with pytest.raises(StopAsyncIteration):
        await sessions.__anext__()

    assert events == ["commit", "invalidate", "close"]
    assert session.info == {}


@pytest.mark.asyncio
async def test_after_commit_callbacks_are_dropped_on_rollback(events):
    sessions = get_database()
    session = await sessions.__anext__()
    after_commit(session, lambda: events.append("invalidate"))

    with pytest.raises(RuntimeError):
        await sessions.athrow(RuntimeError("write failed"))

    assert events == ["rollback", "close"]
