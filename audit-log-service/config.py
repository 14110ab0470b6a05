# config.py
import os


def _split(value):
    return [v.strip() for v in (value or "").split(",") if v.strip()]


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///audit_log.db")

# CORS
ALLOWED_ORIGINS = _split(os.getenv("ALLOWED_ORIGINS", "*"))
ALLOWED_METHODS = [m.upper() for m in _split(os.getenv("ALLOWED_METHODS", "GET,POST,OPTIONS"))]
ALLOWED_HEADERS = _split(os.getenv("ALLOWED_HEADERS", "Content-Type"))

# Retention
RETENTION_HORIZON_DAYS = int(os.getenv("RETENTION_HORIZON_DAYS", "90"))
RETENTION_INTERVAL_SECONDS = int(os.getenv("RETENTION_INTERVAL_SECONDS", "86400"))
ENABLE_RETENTION_WORKER = os.getenv("ENABLE_RETENTION_WORKER", "1") == "1"

STATS_LIMIT = int(os.getenv("STATS_LIMIT", "10"))
STORE_TIMEOUT_SECONDS = int(os.getenv("STORE_TIMEOUT_SECONDS", "5"))

# off | hash | raw
EMAIL_COLLECTION = os.getenv("EMAIL_COLLECTION", "off").strip().lower()
EMAIL_COLLECTION_MODES = ("off", "hash", "raw")
if EMAIL_COLLECTION not in EMAIL_COLLECTION_MODES:
    raise ValueError(f"EMAIL_COLLECTION must be one of {EMAIL_COLLECTION_MODES}, got {EMAIL_COLLECTION!r}")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "console")

PORT = int(os.getenv("PORT", "5000"))
