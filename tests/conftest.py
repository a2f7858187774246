"""Shared fixtures: an arena core backed by the in-memory tabular store."""

import os

# Must be set before arena.config is imported
os.environ.setdefault('LOG_TO_FILE', 'False')
os.environ.setdefault('RATE_LIMIT_BACKOFF', '0')

import pytest
import pytest_asyncio

from arena.config import Config
from arena.database.tabular import InMemoryTabularStore
from arena.main import ArenaCore
from arena.services.cache import TTLCache


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    monkeypatch.setattr(Config, 'RATE_LIMIT_BACKOFF', 0)


@pytest.fixture
def store():
    return InMemoryTabularStore()


@pytest_asyncio.fixture
async def core(store):
    # TTL 0 so every read sees the latest writes
    arena = ArenaCore(store, TTLCache(default_ttl=0))
    await arena.initialize()
    yield arena
    await arena.close()


@pytest_asyncio.fixture
async def seeded(core):
    """Three registered players and one upcoming tournament."""
    alice = await core.register_player('Alice', 'alice@example.com')
    bob = await core.register_player('Bob', 'bob@example.com')
    carol = await core.register_player('Carol')
    tournament = await core.create_tournament('Friday Night Cards')
    return {
        'core': core,
        'alice': alice['id'],
        'bob': bob['id'],
        'carol': carol['id'],
        'tournament': tournament['id'],
    }
