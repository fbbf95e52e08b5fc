# tests/test_logging.py
import logging

import pytest

from slashbin.utils.logging import setup_logging, FORMAT

@pytest.fixture
def fresh_root():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    quiet = {n: logging.getLogger(n).level for n in ("asyncio", "aiosqlite")}
    setup_logging.__dict__.pop("_configured", None)
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)
    for name, lvl in quiet.items():
        logging.getLogger(name).setLevel(lvl)
    setup_logging.__dict__.pop("_configured", None)

def test_configures_stdout_once(fresh_root):
    assert setup_logging("debug") == logging.DEBUG
    assert len(fresh_root.handlers) == 1
    handler = fresh_root.handlers[0]
    assert handler.formatter._fmt == FORMAT
    setup_logging("warning")
    assert fresh_root.handlers == [handler]
    assert fresh_root.level == logging.WARNING

def test_noisy_libraries_stay_at_warning(fresh_root):
    setup_logging("DEBUG")
    assert logging.getLogger("asyncio").level == logging.WARNING
    assert logging.getLogger("aiosqlite").level == logging.WARNING
    setup_logging("ERROR")
    assert logging.getLogger("asyncio").level == logging.ERROR

def test_unknown_level_falls_back_to_info(fresh_root, monkeypatch):
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    assert setup_logging("chatty") == logging.INFO
    assert setup_logging("basic_format") == logging.INFO
    assert setup_logging() == logging.INFO
