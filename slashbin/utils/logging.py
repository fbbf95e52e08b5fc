import logging, os, sys

FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
# asyncio reports every reset paste connection, aiosqlite every statement
QUIET = ("asyncio", "aiosqlite")

def setup_logging(level_name: str | None = None) -> int:
    level_name = (level_name or os.getenv("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, level_name, None)
    if not isinstance(level, int):
        level = logging.INFO
    root = logging.getLogger()
    root.setLevel(level)
    if not getattr(setup_logging, "_configured", False):
        h = logging.StreamHandler(sys.stdout)
        h.setFormatter(logging.Formatter(FORMAT))
        root.handlers[:] = [h]
        setup_logging._configured = True
    for name in QUIET:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
    return level
