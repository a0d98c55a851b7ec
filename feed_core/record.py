from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


_TIMESTAMP_KEYS = ("timestamp", "Timestamp")
_ID_KEYS = ("id", "Id", "name", "Name")


def _coerce_timestamp(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def is_valid_timestamp(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class Record:
    """One remote item. ``timestamp`` is both the sort key and the watermark key."""

    timestamp: Optional[int]
    record_id: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def is_valid(self) -> bool:
        return is_valid_timestamp(self.timestamp)


def record_from_payload(item: dict) -> Record:
    """Build a Record from one decoded JSON object.

    Bad or missing timestamps are kept as ``None`` so the view can skip them.
    """
    if not isinstance(item, dict):
        raise ValueError(f"record payload must be a dict (got {type(item).__name__})")

    payload = dict(item)
    raw_ts = None
    for key in _TIMESTAMP_KEYS:
        if key in payload:
            raw_ts = payload.pop(key)
            break

    record_id = None
    for key in _ID_KEYS:
        value = item.get(key)
        if value is not None and value != "":
            record_id = str(value)
            break

    return Record(timestamp=_coerce_timestamp(raw_ts), record_id=record_id, payload=payload)
