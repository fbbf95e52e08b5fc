# slashbin/storage/layout.py
"""On-disk layout of the upload directory.

Every id owns one directory under the upload root::

    <root>/<id>/metadata.json   record (object or collection)
    <root>/<id>/content         bytes of a single object
    <root>/<id>/<member_id>     bytes of one collection member

``metadata.json`` is always written last and replaced atomically, so a
unit without it is either still being written or a crash leftover.
"""
from __future__ import annotations

import json
import os
from datetime import datetime, timezone

from ..models import StoredObject, Collection, MemberFile

METADATA = "metadata.json"
CONTENT = "content"
TRASH = ".trash"

def _iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")

def _parse(value: str) -> datetime:
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt

def object_to_dict(obj: StoredObject) -> dict:
    return {
        "id": obj.id,
        "isCollection": False,
        "originalName": obj.original_name,
        "size": obj.size,
        "contentType": obj.content_type,
        "uploadDate": _iso(obj.created_at),
        "expiryDate": _iso(obj.expires_at),
        "expiryDays": obj.ttl_days,
    }

def collection_to_dict(col: Collection) -> dict:
    return {
        "id": col.id,
        "isCollection": True,
        "files": [
            {"fileId": m.id, "name": m.name, "size": m.size, "contentType": m.content_type}
            for m in col.members
        ],
        "totalSize": col.total_size,
        "uploadDate": _iso(col.created_at),
        "expiryDate": _iso(col.expires_at),
        "expiryDays": col.ttl_days,
    }

def from_dict(unit_id: str, data: dict) -> StoredObject | Collection:
    """Raises KeyError/ValueError/TypeError on a malformed record."""
    created = _parse(data["uploadDate"])
    expires = _parse(data["expiryDate"])
    ttl = int(data["expiryDays"])
    if data.get("isCollection"):
        members = [
            MemberFile(
                id=f["fileId"],
                name=f["name"],
                size=int(f["size"]),
                content_type=f.get("contentType") or "application/octet-stream",
            )
            for f in data["files"]
        ]
        total = data.get("totalSize")
        return Collection(
            id=unit_id,
            created_at=created,
            expires_at=expires,
            ttl_days=ttl,
            members=members,
            total_size=int(total) if total is not None else sum(m.size for m in members),
        )
    return StoredObject(
        id=unit_id,
        original_name=data["originalName"],
        size=int(data["size"]),
        content_type=data.get("contentType") or "application/octet-stream",
        created_at=created,
        expires_at=expires,
        ttl_days=ttl,
    )

def read_expiry(path: str) -> datetime:
    """Expiry of the unit whose metadata lives at ``path`` (sweeper fast path)."""
    with open(path, "r", encoding="utf-8") as f:
        return _parse(json.load(f)["expiryDate"])

def write_metadata(unit_dir: str, record: dict) -> None:
    tmp = os.path.join(unit_dir, f".{METADATA}.tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(record, f, ensure_ascii=False)
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp, os.path.join(unit_dir, METADATA))
