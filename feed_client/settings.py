from __future__ import annotations

import os


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "y")


def _env_str(name: str, default: str, choices: tuple[str, ...] | None = None) -> str:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip()
    if choices is not None and value.lower() not in choices:
        return default
    return value.lower() if choices is not None else value


# Remote photo metadata endpoint
FEED_BASE_URL = _env_str("FEED_BASE_URL", "http://localhost:7071")
FEED_PHOTOS_PATH = _env_str("FEED_PHOTOS_PATH", "/api/photo")

FETCH_TIMEOUT_S = _env_float("FEED_FETCH_TIMEOUT_S", 10.0)
FETCH_RETRY_MAX = _env_int("FEED_FETCH_RETRY_MAX", 3)
FETCH_RETRY_BACKOFF_S = _env_float("FEED_FETCH_RETRY_BACKOFF_S", 0.5)
FETCH_RETRY_BACKOFF_MAX_S = _env_float("FEED_FETCH_RETRY_BACKOFF_MAX_S", 5.0)

POLL_INTERVAL_S = _env_float("FEED_POLL_INTERVAL_S", 30.0)

# Every detected face must score above this to pass the upload gate.
HAPPINESS_THRESHOLD = _env_float("FEED_HAPPINESS_THRESHOLD", 0.75)

DEDUP_POLICY = _env_str("FEED_DEDUP_POLICY", "watermark", choices=("watermark", "identity"))

LOG_LEVEL = _env_str("FEED_LOG_LEVEL", "INFO")
LOG_TO_FILE = _env_bool("FEED_LOG_TO_FILE", True)
