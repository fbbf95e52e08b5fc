import os
import aiosqlite
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable

from .utils.text import format_size

KEEP_DAYS = 30
RECENT_DAYS = 7

CREATE_SQL = '''
PRAGMA journal_mode=WAL;
CREATE TABLE IF NOT EXISTS totals (
  id INTEGER PRIMARY KEY CHECK (id = 1),
  uploads INTEGER NOT NULL DEFAULT 0,
  total_size INTEGER NOT NULL DEFAULT 0,
  last_updated TIMESTAMP
);
CREATE TABLE IF NOT EXISTS daily_stats (
  day TEXT PRIMARY KEY,          -- YYYY-MM-DD, UTC
  uploads INTEGER NOT NULL DEFAULT 0,
  total_size INTEGER NOT NULL DEFAULT 0
);
CREATE TABLE IF NOT EXISTS file_types (
  ext TEXT PRIMARY KEY,
  uploads INTEGER NOT NULL DEFAULT 0
);
INSERT OR IGNORE INTO totals(id, uploads, total_size) VALUES (1, 0, 0);
'''

@dataclass
class StatsSnapshot:
    uploads: int = 0
    total_size: int = 0
    recent_uploads: int = 0
    recent_size: int = 0
    file_types: dict[str, int] = field(default_factory=dict)
    last_updated: str | None = None

    @property
    def human_total_size(self) -> str:
        return format_size(self.total_size)

    @property
    def human_recent_size(self) -> str:
        return format_size(self.recent_size)

def _day(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%d")

class Stats:
    """Upload counters. Approximate by nature, never consulted for serving."""

    def __init__(self, path: str):
        self.path = path

    async def init(self):
        d = os.path.dirname(self.path)
        if d:
            os.makedirs(d, exist_ok=True)
        async with aiosqlite.connect(self.path) as db:
            await db.executescript(CREATE_SQL)
            await db.commit()

    async def _apply(self, db, uploads: list[tuple[int, str]], when: datetime):
        day = _day(when)
        size = sum(s for s, _ in uploads)
        await db.execute(
            "UPDATE totals SET uploads=uploads+?, total_size=total_size+?, last_updated=? WHERE id=1",
            (len(uploads), size, when.astimezone(timezone.utc).isoformat()),
        )
        await db.execute(
            "INSERT INTO daily_stats(day, uploads, total_size) VALUES (?, ?, ?) "
            "ON CONFLICT(day) DO UPDATE SET uploads=uploads+excluded.uploads, "
            "total_size=total_size+excluded.total_size",
            (day, len(uploads), size),
        )
        for _, ext in uploads:
            await db.execute(
                "INSERT INTO file_types(ext, uploads) VALUES (?, 1) "
                "ON CONFLICT(ext) DO UPDATE SET uploads=uploads+1",
                (ext or "unknown",),
            )

    async def record_uploads(self, uploads: list[tuple[int, str]], when: datetime | None = None):
        """Record ``(size, file_type)`` pairs in one transaction."""
        if not uploads:
            return
        when = when or datetime.now(timezone.utc)
        cutoff = _day(when - timedelta(days=KEEP_DAYS - 1))
        async with aiosqlite.connect(self.path) as db:
            await self._apply(db, uploads, when)
            await db.execute("DELETE FROM daily_stats WHERE day < ?", (cutoff,))
            await db.commit()

    async def record_upload(self, size: int, ftype: str, when: datetime | None = None):
        await self.record_uploads([(size, ftype)], when)

    async def snapshot(self, now: datetime | None = None) -> StatsSnapshot:
        now = now or datetime.now(timezone.utc)
        since = _day(now - timedelta(days=RECENT_DAYS - 1))
        async with aiosqlite.connect(self.path) as db:
            cur = await db.execute("SELECT uploads, total_size, last_updated FROM totals WHERE id=1")
            row = await cur.fetchone()
            uploads, total, last = row if row else (0, 0, None)
            cur = await db.execute(
                "SELECT COALESCE(SUM(uploads), 0), COALESCE(SUM(total_size), 0) "
                "FROM daily_stats WHERE day >= ?",
                (since,),
            )
            recent_uploads, recent_size = await cur.fetchone()
            cur = await db.execute("SELECT ext, uploads FROM file_types ORDER BY uploads DESC, ext")
            types = {ext: n for ext, n in await cur.fetchall()}
        return StatsSnapshot(
            uploads=uploads,
            total_size=total,
            recent_uploads=recent_uploads,
            recent_size=recent_size,
            file_types=types,
            last_updated=last,
        )

    async def rebuild(self, entries: Iterable[tuple[datetime, int, str]]):
        """Reset the counters from ``(created_at, size, file_type)`` of live uploads."""
        async with aiosqlite.connect(self.path) as db:
            await db.execute("DELETE FROM daily_stats")
            await db.execute("DELETE FROM file_types")
            await db.execute("UPDATE totals SET uploads=0, total_size=0, last_updated=NULL WHERE id=1")
            for created, size, ftype in entries:
                await self._apply(db, [(size, ftype)], created)
            await db.commit()
