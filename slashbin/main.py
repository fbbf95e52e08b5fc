# slashbin/main.py
from __future__ import annotations
import argparse, asyncio, logging

from .config import settings, Settings
from .utils.logging import setup_logging
from .db import Stats
from .ids import IdGenerator
from .storage.store import ObjectStore
from .state.ratelimit import RateLimiter
from .paste.ingestor import PasteIngestor
from .scheduler import ExpirySweeper, sweep_rate_windows
from .utils.text import format_size

log = logging.getLogger("slashbin.main")

async def serve(cfg: Settings, rebuild_stats: bool = False):
    stats = Stats(cfg.stats_db)
    await stats.init()
    store = ObjectStore(cfg.upload_dir, cfg, ids=IdGenerator(cfg.id_length), stats=stats)
    if rebuild_stats:
        await store.rebuild_stats()

    limiter = RateLimiter(cfg.rate_limit, cfg.rate_window_seconds)
    ingestor = PasteIngestor(store, limiter, cfg)
    sweeper = ExpirySweeper(store, cfg.sweep_interval_seconds)

    server = await ingestor.start()
    sweeper.start()
    windows = asyncio.create_task(sweep_rate_windows(limiter, cfg.rate_sweep_seconds), name="rate-windows")

    snap = await stats.snapshot()
    log.info("Serving pastes for %s; %d uploads so far (%s)",
             cfg.public_url, snap.uploads, snap.human_total_size)
    log.info("Limits: paste %s, upload %s, expiry %d-%d days",
             format_size(cfg.paste_size_cap), format_size(cfg.max_file_size),
             cfg.default_expiry_days, cfg.max_expiry_days)
    try:
        async with server:
            await server.serve_forever()
    finally:
        windows.cancel()
        await sweeper.stop()
        await ingestor.stop()
        log.info("Paste server stopped")

def main(argv: list[str] | None = None):
    ap = argparse.ArgumentParser(prog="slashbin", description="Ephemeral paste and file store")
    ap.add_argument("--rebuild-stats", action="store_true", help="recount statistics from live uploads")
    ap.add_argument("--port", type=int, help="raw-socket paste port (default PASTE_PORT)")
    ap.add_argument("--log-level", help="DEBUG, INFO, WARNING... (default LOG_LEVEL)")
    args = ap.parse_args(argv)
    setup_logging(args.log_level or settings.log_level)
    if args.port is not None:
        settings.paste_port = args.port
    try:
        asyncio.run(serve(settings, rebuild_stats=args.rebuild_stats))
    except KeyboardInterrupt:
        log.info("Interrupted")

if __name__ == "__main__":
    main()
