from dataclasses import dataclass, field
from datetime import datetime

from .utils.text import quote_name, file_type

@dataclass
class StoredObject:
    id: str
    original_name: str
    size: int
    content_type: str
    created_at: datetime
    expires_at: datetime
    ttl_days: int

    @property
    def file_type(self) -> str:
        return file_type(self.original_name)

    @property
    def quoted_name(self) -> str:
        return quote_name(self.original_name)

@dataclass
class MemberFile:
    id: str
    name: str
    size: int
    content_type: str

    @property
    def quoted_name(self) -> str:
        return quote_name(self.name)

@dataclass
class Collection:
    id: str
    created_at: datetime
    expires_at: datetime
    ttl_days: int
    members: list[MemberFile] = field(default_factory=list)
    total_size: int = 0

    def member(self, member_id: str) -> MemberFile | None:
        for m in self.members:
            if m.id == member_id:
                return m
        return None
