# slashbin/paste/ingestor.py
"""Raw-socket paste channel (``cat file | nc host 9999``).

A TCP stream carries no framing, so a paste is considered complete when

* the client goes quiet for ``inactivity_ms`` after sending something,
* a chunk carries an EOT (0x04) or SUB (0x1A) byte, or
* the client closes its side of the connection.

Whichever comes first finalizes the session; the others become no-ops.
"""
from __future__ import annotations

import asyncio
import enum
import logging

from ..config import Settings
from ..errors import AdmissionDenied, SizeLimitExceeded, SlashbinError
from ..models import StoredObject
from ..state.ratelimit import RateLimiter
from ..storage.store import ObjectStore
from ..utils.text import strip_ansi, format_size

log = logging.getLogger(__name__)

PASTE_NAME = "paste.txt"
MARKERS = (0x04, 0x1A)
READ_CHUNK = 64 * 1024

class State(enum.Enum):
    AWAITING_FIRST_BYTE = "awaiting_first_byte"
    ACCUMULATING = "accumulating"
    FINALIZING = "finalizing"
    DONE = "done"
    REJECTED = "rejected"

def _marker_at(chunk: bytes) -> int | None:
    hits = [i for i in (chunk.find(bytes([m])) for m in MARKERS) if i >= 0]
    return min(hits) if hits else None

def _days(n: int) -> str:
    return f"{n} day" if n == 1 else f"{n} days"

class PasteSession:
    def __init__(self, store: ObjectStore, settings: Settings, writer: asyncio.StreamWriter, peer: str = "unknown"):
        self.store = store
        self.settings = settings
        self.writer = writer
        self.peer = peer
        self.state = State.AWAITING_FIRST_BYTE
        self.buffer = bytearray()
        self.result: StoredObject | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._finalizing: asyncio.Task | None = None

    @property
    def open(self) -> bool:
        return self.state in (State.AWAITING_FIRST_BYTE, State.ACCUMULATING)

    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _arm_timer(self):
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.settings.inactivity_ms / 1000, self._on_inactivity)

    def _on_inactivity(self):
        if self.open and self.buffer:
            self._start_finalize()

    def _start_finalize(self) -> asyncio.Task | None:
        # state flips before the first await, so a racing timer/EOF sees it
        if not self.open:
            return self._finalizing
        self.state = State.FINALIZING
        self._cancel_timer()
        self._finalizing = asyncio.create_task(self._finalize())
        self._finalizing.add_done_callback(self._finalized)
        return self._finalizing

    def _finalized(self, task: asyncio.Task):
        # runs whether or not a handler is still awaiting the task
        if not task.cancelled() and task.exception() is not None:
            log.error("Paste from %s failed while finalizing", self.peer, exc_info=task.exception())

    async def feed(self, chunk: bytes):
        if not self.open:
            return
        cut = _marker_at(chunk)
        if cut is not None:
            chunk = chunk[:cut]
        self.buffer += chunk
        if self.buffer:
            self.state = State.ACCUMULATING
        if len(self.buffer) > self.settings.paste_size_cap:
            log.warning("Paste from %s over %s, dropping it",
                        self.peer, format_size(self.settings.paste_size_cap))
            await self.reject("Data too large")
            return
        if cut is not None:
            await self.finalize()
        elif self.buffer:
            self._arm_timer()

    async def eof(self):
        if self.open and not self.buffer:
            self._cancel_timer()
            self.state = State.DONE
            await self._close()
            return
        await self.finalize()

    async def finalize(self):
        task = self._start_finalize()
        if task is not None:
            await task

    async def reject(self, reason: str):
        self._cancel_timer()
        self.buffer.clear()
        self.state = State.REJECTED
        await self._reply(f"Error: {reason}\n")

    def cancel(self):
        """Connection went away; nothing further may run for it."""
        self._cancel_timer()
        if self.open:
            self.buffer.clear()
            self.state = State.DONE

    async def wait(self):
        if self._finalizing is not None:
            await self._finalizing

    async def _finalize(self):
        data = strip_ansi(bytes(self.buffer))
        self.buffer.clear()
        if not data:
            self.state = State.DONE
            await self._reply("Error: Nothing to paste\n")
            return
        days = self.settings.default_expiry_days
        try:
            obj = await self.store.create_object(
                data, PASTE_NAME, days, max_size=self.settings.paste_size_cap,
            )
        except SizeLimitExceeded:
            self.state = State.REJECTED
            await self._reply("Error: Data too large\n")
            return
        except SlashbinError as e:
            log.error("Paste upload from %s failed: %s: %s", self.peer, e.kind, e)
            self.state = State.DONE
            await self._reply("Server error during upload\n")
            return
        self.result = obj
        self.state = State.DONE
        log.info("Paste from %s stored as %s (%s)", self.peer, obj.id, format_size(obj.size))
        url = f"{self.settings.public_url.rstrip('/')}/{obj.id}"
        await self._reply(f"{url} (expires in {_days(obj.ttl_days)})\n")

    async def _reply(self, line: str):
        try:
            self.writer.write(line.encode("utf-8"))
            await self.writer.drain()
        except ConnectionError as e:
            log.debug("Could not answer %s: %s", self.peer, e)
        await self._close()

    async def _close(self):
        if self.writer.is_closing():
            return
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except ConnectionError:
            pass

class PasteIngestor:
    def __init__(self, store: ObjectStore, limiter: RateLimiter, settings: Settings):
        self.store = store
        self.limiter = limiter
        self.settings = settings
        self.server: asyncio.AbstractServer | None = None

    async def handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        peer = writer.get_extra_info("peername")
        ip = peer[0] if peer else "unknown"
        log.info("Paste connection from %s", ip)
        session = PasteSession(self.store, self.settings, writer, ip)
        if not self.limiter.admit(ip):
            log.warning("Rate limit exceeded for %s", ip)
            await session.reject(AdmissionDenied.message)
            return session
        try:
            while session.open:
                chunk = await reader.read(READ_CHUNK)
                if not chunk:
                    await session.eof()
                    break
                await session.feed(chunk)
            await session.wait()
        except ConnectionError as e:
            log.warning("Paste connection from %s dropped: %s", ip, e)
            session.cancel()
            await session.wait()
        except asyncio.CancelledError:
            session.cancel()
            raise
        finally:
            if not writer.is_closing():
                writer.close()
        return session

    async def start(self) -> asyncio.AbstractServer:
        self.server = await asyncio.start_server(
            self.handle, self.settings.paste_host, self.settings.paste_port,
        )
        addrs = ", ".join(str(s.getsockname()) for s in self.server.sockets)
        log.info("Paste server listening on %s", addrs)
        return self.server

    async def stop(self):
        if self.server is not None:
            self.server.close()
            await self.server.wait_closed()
            self.server = None
