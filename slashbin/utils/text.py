import mimetypes
import re
from urllib.parse import quote

# OSC strings (titles, hyperlinks), CSI sequences (colors, cursor moves)
# and the two-byte ESC forms
ANSI_RE = re.compile(
    rb"\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)"
    rb"|\x1b\[[0-?]*[ -/]*[@-~]"
    rb"|\x1b[@-Z\\-_]"
)

ICONS = {
    "pdf": "📄", "txt": "📄", "md": "📄",
    "doc": "📝", "docx": "📝",
    "xls": "📊", "xlsx": "📊", "ppt": "📊", "pptx": "📊",
    "jpg": "🖼️", "jpeg": "🖼️", "png": "🖼️", "gif": "🖼️", "bmp": "🖼️",
    "mp3": "🎵", "wav": "🎵", "ogg": "🎵",
    "mp4": "🎬", "avi": "🎬", "mov": "🎬", "mkv": "🎬",
    "zip": "📦", "rar": "📦", "7z": "📦", "tar": "📦", "gz": "📦",
    "html": "🌐", "css": "🌐", "js": "🌐",
    "exe": "⚙️", "dll": "⚙️",
    "sh": "📜", "bash": "📜",
}

def strip_ansi(data: bytes) -> bytes:
    return ANSI_RE.sub(b"", data)

def format_size(n: int) -> str:
    if n < 1024:
        return f"{n} B"
    if n < 1024 ** 2:
        return f"{n / 1024:.1f} KB"
    if n < 1024 ** 3:
        return f"{n / 1024 ** 2:.1f} MB"
    return f"{n / 1024 ** 3:.1f} GB"

def file_type(name: str | None) -> str:
    """Lower-case extension without the dot, ``unknown`` when there is none."""
    base = (name or "").rsplit("/", 1)[-1]
    if "." not in base.strip("."):
        return "unknown"
    return base.rsplit(".", 1)[1].lower() or "unknown"

def content_type(name: str | None) -> str:
    ct, _ = mimetypes.guess_type(name or "", strict=False)
    return ct or "application/octet-stream"

def quote_name(name: str) -> str:
    return quote(name or "", safe="")

def file_icon(name: str | None) -> str:
    return ICONS.get(file_type(name), "📄")
