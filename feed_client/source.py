from __future__ import annotations

import asyncio
import json
import logging
import time
from pathlib import Path
from typing import Any, Iterable, List, Optional, Protocol, Sequence

import requests

from feed_core.record import Record, record_from_payload
from feed_client.settings import (
    FEED_BASE_URL,
    FEED_PHOTOS_PATH,
    FETCH_RETRY_BACKOFF_MAX_S,
    FETCH_RETRY_BACKOFF_S,
    FETCH_RETRY_MAX,
    FETCH_TIMEOUT_S,
)


log = logging.getLogger("feed_client.source")


class RecordSource(Protocol):
    """Anything that can return the complete, currently-known remote record set."""

    async def fetch_all(self) -> Sequence[Record]:
        ...


def call_with_retry(fn):
    attempts = max(1, int(FETCH_RETRY_MAX))
    backoff_s = max(0.0, float(FETCH_RETRY_BACKOFF_S))
    backoff_max_s = max(backoff_s, float(FETCH_RETRY_BACKOFF_MAX_S))
    delay = backoff_s
    last_exc = None
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except Exception as exc:
            last_exc = exc
            log.warning("Fetch attempt %d/%d failed: %s", attempt, attempts, exc)
            if attempt >= attempts:
                break
            if delay > 0:
                time.sleep(delay)
                delay = min(backoff_max_s, delay * 2)
    raise last_exc


def validate_batch_payload(body: Any) -> list:
    if isinstance(body, dict) and isinstance(body.get("items"), list):
        return body["items"]
    if isinstance(body, list):
        return body
    raise ValueError("expected a list of records or an object with an 'items' list")


def records_from_items(items: Iterable[Any]) -> List[Record]:
    records: List[Record] = []
    for item in items:
        try:
            records.append(record_from_payload(item))
        except ValueError:
            log.warning("Dropping non-object record entry: %r", item)
    return records


class HttpRecordSource:
    """Full-snapshot photo metadata fetch over HTTP.

    ``requests`` is blocking, so each fetch runs in a worker thread.
    """

    def __init__(
        self,
        base_url: str | None = None,
        path: str | None = None,
        timeout_s: float | None = None,
        headers: Optional[dict] = None,
    ) -> None:
        self.base_url = (base_url or FEED_BASE_URL).rstrip("/")
        self.path = path or FEED_PHOTOS_PATH
        self.timeout_s = FETCH_TIMEOUT_S if timeout_s is None else float(timeout_s)
        self.headers = dict(headers or {})

    @property
    def url(self) -> str:
        return f"{self.base_url}/{self.path.lstrip('/')}"

    def get_photos(self) -> Any:
        resp = requests.get(self.url, headers=self.headers, timeout=self.timeout_s)
        resp.raise_for_status()
        return resp.json()

    def fetch_all_blocking(self) -> List[Record]:
        try:
            body = call_with_retry(self.get_photos)
        except Exception as exc:
            raise RuntimeError(f"record fetch failed: {exc}") from exc
        try:
            items = validate_batch_payload(body)
        except ValueError as exc:
            raise RuntimeError(f"Invalid record payload: {exc}") from exc
        return records_from_items(items)

    async def fetch_all(self) -> List[Record]:
        return await asyncio.to_thread(self.fetch_all_blocking)


class FileRecordSource:
    """Reads the same payload shape as the HTTP source from a JSON file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def fetch_all_blocking(self) -> List[Record]:
        try:
            body = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise RuntimeError(f"record fetch failed: {exc}") from exc
        try:
            items = validate_batch_payload(body)
        except ValueError as exc:
            raise RuntimeError(f"Invalid record payload: {exc}") from exc
        return records_from_items(items)

    async def fetch_all(self) -> List[Record]:
        return await asyncio.to_thread(self.fetch_all_blocking)


class StaticRecordSource:
    def __init__(self, records: Iterable[Record] = ()) -> None:
        self.records: List[Record] = list(records)

    def add(self, record: Record) -> None:
        self.records.append(record)

    async def fetch_all(self) -> List[Record]:
        return list(self.records)
