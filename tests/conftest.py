# tests/conftest.py
import asyncio
import os
from datetime import datetime, timedelta, timezone

import pytest

from slashbin.config import Settings
from slashbin.db import Stats
from slashbin.storage.store import ObjectStore
from slashbin.storage.layout import TRASH

START = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)

class FakeClock:
    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kw):
        self.now += timedelta(**kw)

class FakeIds:
    """Hands out a fixed sequence of ids, repeating the last one."""

    def __init__(self, ids):
        self.ids = list(ids)
        self.calls = 0

    def next(self, length=None):
        self.calls += 1
        return self.ids.pop(0) if len(self.ids) > 1 else self.ids[0]

class FakeWriter:
    def __init__(self, peer=("127.0.0.1", 50000)):
        self.data = bytearray()
        self.closed = False
        self.peer = peer

    def write(self, b):
        self.data += b

    async def drain(self):
        pass

    def close(self):
        self.closed = True

    def is_closing(self):
        return self.closed

    async def wait_closed(self):
        pass

    def get_extra_info(self, name, default=None):
        return self.peer if name == "peername" else default

def units(root) -> list[str]:
    return sorted(n for n in os.listdir(root) if n != TRASH)

@pytest.fixture
def settings(tmp_path):
    return Settings(
        upload_dir=str(tmp_path / "uploads"),
        stats_db=str(tmp_path / "data" / "stats.sqlite3"),
        public_url="http://paste.test",
        paste_host="127.0.0.1",
        paste_port=0,
        max_file_size=1024 * 1024,
        paste_size_cap=64 * 1024,
        default_expiry_days=7,
        max_expiry_days=14,
        id_length=4,
        id_max_attempts=8,
        max_collection_files=20,
        rate_limit=100,
        rate_window_seconds=3600,
        inactivity_ms=100,
        orphan_grace_seconds=3600,
    )

@pytest.fixture
def clock():
    return FakeClock()

@pytest.fixture
def stats(settings):
    s = Stats(settings.stats_db)
    asyncio.run(s.init())
    return s

@pytest.fixture
def store(settings, stats, clock):
    return ObjectStore(settings.upload_dir, settings, stats=stats, clock=clock)
