import asyncio
import logging

from .state.ratelimit import RateLimiter
from .storage.store import ObjectStore

log = logging.getLogger(__name__)

class ExpirySweeper:
    """Deletes expired uploads at start-up and then every ``interval`` seconds."""

    def __init__(self, store: ObjectStore, interval: float = 3600.0):
        self.store = store
        self.interval = interval
        self._task: asyncio.Task | None = None

    async def run_once(self) -> int:
        log.info("Checking for expired files...")
        try:
            count = await self.store.evict_expired()
        except OSError:
            # upload root itself unreadable; try again next round
            log.exception("Expiry sweep failed")
            return 0
        log.info("Expiry sweep removed %d upload(s)", count)
        return count

    async def run(self):
        while True:
            await self.run_once()
            await asyncio.sleep(self.interval)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run(), name="expiry-sweeper")
        return self._task

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

async def sweep_rate_windows(limiter: RateLimiter, interval: float):
    while True:
        await asyncio.sleep(interval)
        dropped = limiter.sweep()
        if dropped:
            log.debug("Dropped %d idle rate-limit windows, %d left", dropped, len(limiter))
