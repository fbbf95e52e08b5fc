import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv(os.path.join(os.getcwd(), ".env"))

MIB = 1024 * 1024

@dataclass
class Settings:
    upload_dir: str = os.getenv("UPLOAD_DIR", "uploads")
    stats_db: str = os.getenv("STATS_DB", "data/stats.sqlite3")
    public_url: str = os.getenv("PUBLIC_URL", "http://localhost:3000")
    paste_host: str = os.getenv("PASTE_HOST", "0.0.0.0")
    paste_port: int = int(os.getenv("PASTE_PORT", "9999"))
    max_file_size: int = int(os.getenv("MAX_FILE_SIZE", str(100 * MIB)))
    paste_size_cap: int = int(os.getenv("PASTE_SIZE_CAP", str(10 * MIB)))
    default_expiry_days: int = int(os.getenv("DEFAULT_EXPIRY_DAYS", "7"))
    max_expiry_days: int = int(os.getenv("MAX_EXPIRY_DAYS", "14"))
    id_length: int = int(os.getenv("ID_LENGTH", "4"))
    id_max_attempts: int = int(os.getenv("ID_MAX_ATTEMPTS", "32"))
    max_collection_files: int = int(os.getenv("MAX_COLLECTION_FILES", "20"))
    rate_limit: int = int(os.getenv("RATE_LIMIT", "100"))
    rate_window_seconds: float = float(os.getenv("RATE_WINDOW_SECONDS", "3600"))
    rate_sweep_seconds: float = float(os.getenv("RATE_SWEEP_SECONDS", "3600"))
    inactivity_ms: int = int(os.getenv("INACTIVITY_MS", "100"))
    sweep_interval_seconds: float = float(os.getenv("SWEEP_INTERVAL_SECONDS", "3600"))
    orphan_grace_seconds: float = float(os.getenv("ORPHAN_GRACE_SECONDS", "3600"))
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

settings = Settings()
