# tests/test_stats.py
import asyncio
from datetime import timedelta

from slashbin.db import Stats

from conftest import START

run = asyncio.run

def test_fresh_database_is_empty(stats):
    snap = run(stats.snapshot(START))
    assert (snap.uploads, snap.total_size, snap.recent_uploads) == (0, 0, 0)
    assert snap.file_types == {}
    assert snap.human_total_size == "0 B"

def test_recent_window_is_seven_days(stats):
    run(stats.record_upload(1024, "txt", START - timedelta(days=10)))
    run(stats.record_upload(2048, "pdf", START - timedelta(days=6)))
    run(stats.record_upload(512, "txt", START))
    snap = run(stats.snapshot(START))
    assert snap.uploads == 3
    assert snap.total_size == 3584
    assert snap.recent_uploads == 2
    assert snap.recent_size == 2560
    assert snap.human_recent_size == "2.5 KB"
    assert snap.file_types == {"txt": 2, "pdf": 1}

def test_old_daily_buckets_are_pruned_but_totals_stay(stats, settings):
    run(stats.record_upload(10, "txt", START - timedelta(days=45)))
    run(stats.record_upload(20, "txt", START))

    async def days():
        import aiosqlite
        async with aiosqlite.connect(settings.stats_db) as db:
            cur = await db.execute("SELECT day FROM daily_stats ORDER BY day")
            return [r[0] for r in await cur.fetchall()]

    assert run(days()) == ["2025-03-01"]
    snap = run(stats.snapshot(START))
    assert (snap.uploads, snap.total_size) == (2, 30)

def test_batch_is_recorded_together(stats):
    run(stats.record_uploads([(1, "png"), (2, "png"), (3, "unknown")], START))
    run(stats.record_uploads([], START))
    snap = run(stats.snapshot(START))
    assert snap.uploads == 3
    assert snap.file_types == {"png": 2, "unknown": 1}

def test_rebuild_replaces_counters(stats):
    run(stats.record_upload(999, "exe", START))
    run(stats.rebuild([(START - timedelta(days=1), 5, "txt"), (START, 7, "md")]))
    snap = run(stats.snapshot(START))
    assert (snap.uploads, snap.total_size, snap.recent_uploads) == (2, 12, 2)
    assert snap.file_types == {"md": 1, "txt": 1}

def test_init_creates_parent_directory(tmp_path):
    s = Stats(str(tmp_path / "nested" / "deeper" / "stats.sqlite3"))
    run(s.init())
    run(s.init())
    assert (tmp_path / "nested" / "deeper" / "stats.sqlite3").exists()
