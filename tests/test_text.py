# tests/test_text.py
import pytest

from slashbin.ids import IdGenerator, is_valid_id, ALPHABET
from slashbin.utils.text import strip_ansi, format_size, file_type, content_type, quote_name, file_icon

def test_strip_ansi():
    assert strip_ansi(b"\x1b[32mok\x1b[0m") == b"ok"
    assert strip_ansi(b"\x1b[38;5;196mred\x1b[m \x1b[2K\x1b[1Aup") == b"red up"
    assert strip_ansi(b"plain \xff\xfe bytes") == b"plain \xff\xfe bytes"

def test_strip_ansi_drops_whole_osc_strings():
    assert strip_ansi(b"\x1b]0;me@host: ~\x07ls -la\n") == b"ls -la\n"
    link = b"see \x1b]8;;https://example.org\x1b\\docs\x1b]8;;\x1b\\ here"
    assert strip_ansi(link) == b"see docs here"
    assert strip_ansi(b"\x1b]2;title\x07\x1b[1mbold\x1b[0m") == b"bold"

@pytest.mark.parametrize("n,text", [
    (0, "0 B"), (1023, "1023 B"), (1024, "1.0 KB"), (1536, "1.5 KB"),
    (10 * 1024 * 1024, "10.0 MB"), (3 * 1024 ** 3, "3.0 GB"),
])
def test_format_size(n, text):
    assert format_size(n) == text

@pytest.mark.parametrize("name,ext", [
    ("paste.txt", "txt"), ("Photo.JPG", "jpg"), ("a.tar.gz", "gz"),
    ("Makefile", "unknown"), (".bashrc", "unknown"), ("trailing.", "unknown"), (None, "unknown"),
])
def test_file_type(name, ext):
    assert file_type(name) == ext

def test_content_type_and_icons():
    assert content_type("paste.txt") == "text/plain"
    assert content_type("no-extension") == "application/octet-stream"
    assert file_icon("song.mp3") == "🎵"
    assert file_icon("mystery.xyz") == "📄"

def test_quote_name_escapes_separators():
    assert quote_name('a b/c"d.txt') == "a%20b%2Fc%22d.txt"

def test_ids_use_the_short_alphabet():
    gen = IdGenerator()
    ids = {gen.next() for _ in range(200)}
    assert all(len(i) == 4 and is_valid_id(i) for i in ids)
    assert len(ids) > 190
    assert len(gen.next(9)) == 9
    assert set(ALPHABET) == set("abcdefghijklmnopqrstuvwxyz0123456789")
    with pytest.raises(ValueError):
        IdGenerator(0)
