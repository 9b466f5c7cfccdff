"""Shared pytest fixtures."""
import asyncio

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from api.config import get_settings
from engine.engine import PlaybackEngine
from engine.model import Event


def make_events(*timestamps: float) -> list[Event]:
    """Create position updates at the given timestamps, in the given order."""
    return [
        Event(kind="position", timestamp=float(ts), payload={"seq": i})
        for i, ts in enumerate(timestamps)
    ]


@pytest.fixture()
def engine() -> PlaybackEngine:
    """Engine loaded with the tie-break timeline [0, 5, 5, 10]."""
    return PlaybackEngine(make_events(0, 5, 5, 10))


@pytest.fixture(autouse=True)
def settings_env(monkeypatch):
    """Run the service headless: tests drive playback with /playback/advance."""
    monkeypatch.setenv("PLAYBACK_DRIVER_ENABLED", "false")
    monkeypatch.setenv("PLAYBACK_EVENTS_PAGE_LIMIT", "3")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest_asyncio.fixture()
async def client():
    from api import app as app_module

    app_module._session_lock = asyncio.Lock()

    async with AsyncClient(transport=ASGITransport(app=app_module.app), base_url="http://test") as ac:
        yield ac
    await app_module.close_session()
    app_module.store = type(app_module.store)()
