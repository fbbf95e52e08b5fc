# slashbin/storage/store.py
from __future__ import annotations

import asyncio
import json
import logging
import os
import secrets
import shutil
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable

from ..config import Settings
from ..db import Stats
from ..errors import (
    SizeLimitExceeded, IdSpaceExhausted, CorruptObject, NotFoundOrExpired, IOFailure,
)
from ..ids import IdGenerator, is_valid_id
from ..models import StoredObject, Collection, MemberFile
from ..utils.text import content_type, file_type, format_size
from .layout import (
    METADATA, CONTENT, TRASH,
    object_to_dict, collection_to_dict, from_dict, read_expiry, write_metadata,
)

log = logging.getLogger(__name__)

CHUNK = 64 * 1024

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def is_expired(expires_at: datetime, now: datetime) -> bool:
    """The only expiry test; reads and the sweeper both go through it."""
    return now >= expires_at

def clean_name(name: str | None) -> str:
    base = os.path.basename((name or "").replace("\\", "/")).strip()
    return base[:255] or "file"

def _read_json(path: str) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)

def _read_bytes(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()

def _write_bytes(path: str, data: bytes):
    with open(path, "wb") as f:
        f.write(data)
        f.flush()
        os.fsync(f.fileno())

def _last_write(path: str) -> float:
    # writing a file inside a directory leaves the directory mtime alone
    newest = os.stat(path).st_mtime
    with os.scandir(path) as it:
        for entry in it:
            newest = max(newest, entry.stat(follow_symlinks=False).st_mtime)
    return newest

def _finish(f):
    f.flush()
    os.fsync(f.fileno())
    f.close()

async def _chunks(data: Any):
    if hasattr(data, "__aiter__"):
        async for chunk in data:
            yield bytes(chunk)
    elif hasattr(data, "read"):
        while True:
            chunk = await asyncio.to_thread(data.read, CHUNK)
            if not chunk:
                break
            yield chunk
    else:
        for chunk in data:
            yield bytes(chunk)

class ObjectStore:
    """Objects and collections on disk, one directory per id (see ``layout``)."""

    def __init__(
        self,
        root: str,
        settings: Settings,
        ids: IdGenerator | None = None,
        stats: Stats | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.root = root
        self.settings = settings
        self.ids = ids or IdGenerator(settings.id_length)
        self.stats = stats
        self.clock = clock
        self._creating: set[str] = set()
        os.makedirs(os.path.join(root, TRASH), exist_ok=True)

    # ---- creation -------------------------------------------------------

    def clamp_ttl(self, ttl_days: Any = None) -> int:
        if ttl_days is None or ttl_days == "":
            days = self.settings.default_expiry_days
        else:
            try:
                days = int(ttl_days)
            except (TypeError, ValueError):
                days = self.settings.default_expiry_days
        return min(max(1, days), self.settings.max_expiry_days)

    def _reserve(self) -> tuple[str, str]:
        # mkdir is the atomic check-and-claim on the id namespace
        for _ in range(self.settings.id_max_attempts):
            unit_id = self.ids.next()
            unit_dir = os.path.join(self.root, unit_id)
            try:
                os.mkdir(unit_dir)
            except FileExistsError:
                log.debug("id %s already taken, drawing again", unit_id)
                continue
            self._creating.add(unit_id)
            return unit_id, unit_dir
        raise IdSpaceExhausted(f"no free id after {self.settings.id_max_attempts} attempts")

    def _rollback(self, unit_dir: str):
        shutil.rmtree(unit_dir, ignore_errors=True)
        if os.path.exists(unit_dir):
            log.error("Could not roll back partial upload %s", unit_dir)

    async def _write_content(self, path: str, data: Any, limit: int) -> int:
        if isinstance(data, (bytes, bytearray, memoryview)):
            if len(data) > limit:
                raise SizeLimitExceeded(limit)
            await asyncio.to_thread(_write_bytes, path, bytes(data))
            return len(data)
        size = 0
        f = await asyncio.to_thread(open, path, "wb")
        try:
            async for chunk in _chunks(data):
                size += len(chunk)
                if size > limit:
                    raise SizeLimitExceeded(limit)
                await asyncio.to_thread(f.write, chunk)
            await asyncio.to_thread(_finish, f)
        finally:
            f.close()
        return size

    async def _record(self, uploads: list[tuple[int, str]]):
        if not self.stats:
            return
        try:
            await self.stats.record_uploads(uploads, self.clock())
        except Exception as e:
            log.warning("Stats update failed: %s", e)

    async def create_object(
        self, data: Any, original_name: str | None, ttl_days: Any = None, max_size: int | None = None,
    ) -> StoredObject:
        limit = max_size or self.settings.max_file_size
        if isinstance(data, (bytes, bytearray, memoryview)) and len(data) > limit:
            raise SizeLimitExceeded(limit)
        name = clean_name(original_name)
        ttl = self.clamp_ttl(ttl_days)
        try:
            unit_id, unit_dir = await asyncio.to_thread(self._reserve)
        except OSError as e:
            raise IOFailure(str(e)) from e
        try:
            size = await self._write_content(os.path.join(unit_dir, CONTENT), data, limit)
            now = self.clock()
            obj = StoredObject(
                id=unit_id,
                original_name=name,
                size=size,
                content_type=content_type(name),
                created_at=now,
                expires_at=now + timedelta(days=ttl),
                ttl_days=ttl,
            )
            await asyncio.to_thread(write_metadata, unit_dir, object_to_dict(obj))
        except OSError as e:
            await asyncio.to_thread(self._rollback, unit_dir)
            raise IOFailure(str(e)) from e
        except BaseException:
            await asyncio.to_thread(self._rollback, unit_dir)
            raise
        finally:
            self._creating.discard(unit_id)
        log.info("Stored %s %r (%s), expires in %d days", unit_id, name, format_size(size), ttl)
        await self._record([(size, obj.file_type)])
        return obj

    def _member_id(self, used: set[str]) -> str:
        for _ in range(self.settings.id_max_attempts):
            mid = self.ids.next()
            if mid not in used and mid != CONTENT:
                used.add(mid)
                return mid
        raise IdSpaceExhausted("no free member id")

    async def create_collection(
        self, files: Iterable[tuple[Any, str | None]], ttl_days: Any = None, max_size: int | None = None,
    ) -> Collection:
        files = list(files)
        if not files:
            raise ValueError("a collection needs at least one file")
        if len(files) > self.settings.max_collection_files:
            raise ValueError(f"at most {self.settings.max_collection_files} files per collection")
        limit = max_size or self.settings.max_file_size
        for data, _ in files:
            if isinstance(data, (bytes, bytearray, memoryview)) and len(data) > limit:
                raise SizeLimitExceeded(limit)
        ttl = self.clamp_ttl(ttl_days)
        try:
            unit_id, unit_dir = await asyncio.to_thread(self._reserve)
        except OSError as e:
            raise IOFailure(str(e)) from e
        members: list[MemberFile] = []
        used: set[str] = set()
        try:
            for data, original_name in files:
                name = clean_name(original_name)
                mid = self._member_id(used)
                size = await self._write_content(os.path.join(unit_dir, mid), data, limit)
                members.append(MemberFile(id=mid, name=name, size=size, content_type=content_type(name)))
            now = self.clock()
            col = Collection(
                id=unit_id,
                created_at=now,
                expires_at=now + timedelta(days=ttl),
                ttl_days=ttl,
                members=members,
                total_size=sum(m.size for m in members),
            )
            await asyncio.to_thread(write_metadata, unit_dir, collection_to_dict(col))
        except OSError as e:
            await asyncio.to_thread(self._rollback, unit_dir)
            raise IOFailure(str(e)) from e
        except BaseException:
            await asyncio.to_thread(self._rollback, unit_dir)
            raise
        finally:
            self._creating.discard(unit_id)
        log.info("Stored collection %s: %d files (%s), expires in %d days",
                 unit_id, len(members), format_size(col.total_size), ttl)
        await self._record([(m.size, file_type(m.name)) for m in members])
        return col

    # ---- reading --------------------------------------------------------

    async def _load(self, unit_id: str) -> StoredObject | Collection:
        if not is_valid_id(unit_id):
            raise NotFoundOrExpired()
        unit_dir = os.path.join(self.root, unit_id)
        try:
            record = await asyncio.to_thread(_read_json, os.path.join(unit_dir, METADATA))
        except (FileNotFoundError, NotADirectoryError):
            raise NotFoundOrExpired() from None
        except ValueError as e:
            raise CorruptObject(f"{unit_id}: unreadable metadata ({e})") from e
        except OSError as e:
            raise IOFailure(str(e)) from e
        try:
            unit = from_dict(unit_id, record)
        except (KeyError, ValueError, TypeError) as e:
            raise CorruptObject(f"{unit_id}: malformed metadata ({e!r})") from e
        if is_expired(unit.expires_at, self.clock()):
            try:
                if await asyncio.to_thread(self._discard, unit_id):
                    log.info("Evicted expired upload %s on read", unit_id)
            except OSError:
                log.exception("Could not evict expired upload %s", unit_id)
            raise NotFoundOrExpired()
        return unit

    async def _content(self, unit_id: str, name: str, expected: int) -> bytes:
        unit_dir = os.path.join(self.root, unit_id)
        try:
            data = await asyncio.to_thread(_read_bytes, os.path.join(unit_dir, name))
        except FileNotFoundError:
            if await asyncio.to_thread(os.path.exists, os.path.join(unit_dir, METADATA)):
                raise CorruptObject(f"{unit_id}: metadata without content")
            # deleted between the metadata read and the content read
            raise NotFoundOrExpired()
        except OSError as e:
            raise IOFailure(str(e)) from e
        if len(data) != expected:
            raise CorruptObject(f"{unit_id}: expected {expected} bytes, found {len(data)}")
        return data

    async def stat(self, unit_id: str) -> StoredObject | Collection:
        return await self._load(unit_id)

    async def read_object(self, unit_id: str) -> tuple[StoredObject, bytes]:
        obj = await self._load(unit_id)
        if not isinstance(obj, StoredObject):
            raise NotFoundOrExpired()
        return obj, await self._content(unit_id, CONTENT, obj.size)

    async def read_collection(self, unit_id: str) -> Collection:
        col = await self._load(unit_id)
        if not isinstance(col, Collection):
            raise NotFoundOrExpired()
        return col

    async def read_member(self, collection_id: str, member_id: str) -> tuple[MemberFile, Collection, bytes]:
        col = await self.read_collection(collection_id)
        member = col.member(member_id)
        if member is None:
            raise NotFoundOrExpired()
        return member, col, await self._content(collection_id, member.id, member.size)

    # ---- eviction -------------------------------------------------------

    def _discard(self, unit_id: str) -> bool:
        # rename first so readers see the unit vanish at once, never half-deleted
        src = os.path.join(self.root, unit_id)
        dst = os.path.join(self.root, TRASH, f"{unit_id}-{secrets.token_hex(4)}")
        try:
            os.rename(src, dst)
        except FileNotFoundError:
            return False
        try:
            shutil.rmtree(dst)
        except OSError as e:
            log.warning("Left %s in trash for the next sweep: %s", dst, e)
        return True

    async def delete(self, unit_id: str) -> bool:
        if not is_valid_id(unit_id):
            return False
        try:
            return await asyncio.to_thread(self._discard, unit_id)
        except OSError as e:
            raise IOFailure(str(e)) from e

    def _purge_trash(self):
        with os.scandir(os.path.join(self.root, TRASH)) as it:
            entries = list(it)
        for entry in entries:
            try:
                if entry.is_dir(follow_symlinks=False):
                    shutil.rmtree(entry.path)
                else:
                    os.unlink(entry.path)
            except FileNotFoundError:
                pass
            except OSError:
                log.exception("Could not purge %s", entry.path)

    def _evict_expired(self) -> int:
        now = self.clock()
        grace = self.settings.orphan_grace_seconds
        count = 0
        self._purge_trash()
        with os.scandir(self.root) as it:
            entries = [e for e in it if e.name != TRASH]
        for entry in entries:
            try:
                if not entry.is_dir(follow_symlinks=False):
                    continue
                try:
                    expires = read_expiry(os.path.join(entry.path, METADATA))
                except FileNotFoundError:
                    if entry.name in self._creating:
                        continue
                    try:
                        age = time.time() - _last_write(entry.path)
                    except FileNotFoundError:
                        continue
                    if age > grace and self._discard(entry.name):
                        log.warning("Removed incomplete upload %s (%.0fs old)", entry.name, age)
                    continue
                if is_expired(expires, now) and self._discard(entry.name):
                    count += 1
                    log.info("Deleted expired upload: %s", entry.name)
            except Exception:
                log.exception("Error processing upload %s", entry.name)
        return count

    async def evict_expired(self) -> int:
        return await asyncio.to_thread(self._evict_expired)

    # ---- stats ----------------------------------------------------------

    def _live_uploads(self) -> list[tuple[datetime, int, str]]:
        now = self.clock()
        out = []
        with os.scandir(self.root) as it:
            entries = [e for e in it if e.name != TRASH and e.is_dir(follow_symlinks=False)]
        for entry in entries:
            try:
                unit = from_dict(entry.name, _read_json(os.path.join(entry.path, METADATA)))
            except FileNotFoundError:
                continue
            except (OSError, KeyError, ValueError, TypeError) as e:
                log.warning("Skipping %s while counting uploads: %s", entry.name, e)
                continue
            if is_expired(unit.expires_at, now):
                continue
            if isinstance(unit, Collection):
                out.extend((unit.created_at, m.size, file_type(m.name)) for m in unit.members)
            else:
                out.append((unit.created_at, unit.size, unit.file_type))
        return out

    async def rebuild_stats(self) -> int:
        """Recount statistics from what is live on disk; returns the upload count."""
        if not self.stats:
            return 0
        uploads = await asyncio.to_thread(self._live_uploads)
        await self.stats.rebuild(uploads)
        log.info("Rebuilt stats from %d live uploads", len(uploads))
        return len(uploads)
