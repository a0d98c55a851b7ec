from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Iterator, List, Optional, Tuple

from sortedcontainers import SortedDict

from .record import is_valid_timestamp


log = logging.getLogger("feed_core.ordered_view")


class DedupPolicy(str, Enum):
    WATERMARK = "watermark"
    IDENTITY = "identity"


@dataclass
class ReconcileResult:
    action: str  # "loaded" | "prepended" | "merged" | "unchanged"
    inserted: int = 0
    skipped: int = 0
    watermark: Optional[int] = None
    # inserted records, in view order
    records: list = field(default_factory=list)


def identity_of(record) -> Tuple[str, Any]:
    record_id = getattr(record, "record_id", None)
    if record_id is not None:
        return ("id", record_id)
    return ("ts", record.timestamp)


class OrderedSyncView:
    """Newest-first view of remote records, folded in from full snapshots.

    This module is intentionally I/O-free. The remote side is assumed to return
    its whole known set on every fetch, so each ``reconcile`` only has to work
    out which records of the batch are new.

    Key behaviors:
      - first population loads the batch sorted descending by timestamp
      - later calls prepend only records newer than the front (the watermark)
      - records already present never move relative to each other
      - records without a usable integer timestamp are skipped, not fatal

    Entries are keyed by ``(-timestamp, rank)``. The rank only breaks ties
    between equal timestamps: the initial load hands out ranks in batch order,
    prepends hand out ranks below the current minimum, and identity merges hand
    out ranks above the current maximum.
    """

    def __init__(self, policy: DedupPolicy | str = DedupPolicy.WATERMARK):
        self.policy = DedupPolicy(policy)
        self._entries: SortedDict = SortedDict()
        self._identities: set = set()
        self._front_rank = 0
        self._back_rank = 0
        self._listeners: List[Callable[["OrderedSyncView", ReconcileResult], None]] = []

    # -- read side -----------------------------------------------------

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator:
        return iter(self._entries.values())

    def __getitem__(self, index):
        return self._entries.values()[index]

    @property
    def watermark(self) -> Optional[int]:
        if not self._entries:
            return None
        (neg_ts, _rank), _record = self._entries.peekitem(0)
        return -neg_ts

    def timestamps(self) -> List[int]:
        return [record.timestamp for record in self._entries.values()]

    def snapshot(self) -> list:
        return list(self._entries.values())

    def subscribe(self, callback: Callable[["OrderedSyncView", ReconcileResult], None]) -> None:
        if callback not in self._listeners:
            self._listeners.append(callback)

    def unsubscribe(self, callback) -> None:
        try:
            self._listeners.remove(callback)
        except ValueError:
            pass

    # -- write side ----------------------------------------------------

    def reconcile(self, batch: Iterable) -> ReconcileResult:
        """Fold a full remote snapshot into the view."""
        valid, skipped = self._partition(batch)

        if not self._entries:
            result = self._load(valid)
        elif self.policy is DedupPolicy.IDENTITY:
            result = self._merge_by_identity(valid)
        else:
            result = self._prepend_newer(valid)

        result.skipped = skipped
        result.watermark = self.watermark
        if result.inserted:
            self._notify(result)
        return result

    def _partition(self, batch: Iterable) -> Tuple[list, int]:
        valid = []
        skipped = 0
        for record in batch:
            if is_valid_timestamp(getattr(record, "timestamp", None)):
                valid.append(record)
            else:
                skipped += 1
        if skipped:
            log.warning("Skipped %d record(s) without a usable timestamp", skipped)
        return valid, skipped

    def _dedupe_batch(self, records: list) -> list:
        fresh = []
        seen_now = set()
        for record in records:
            key = identity_of(record)
            if key in seen_now:
                continue
            seen_now.add(key)
            fresh.append(record)
        return fresh

    def _unseen(self, records: list) -> list:
        return [r for r in self._dedupe_batch(records) if identity_of(r) not in self._identities]

    def _put(self, record, rank: int) -> None:
        self._entries[(-record.timestamp, rank)] = record
        self._identities.add(identity_of(record))

    def _load(self, valid: list) -> ReconcileResult:
        # A snapshot that repeats a record still inserts it once.
        valid = self._dedupe_batch(valid)

        # sorted() keeps batch order among equal timestamps, reverse included.
        ordered = sorted(valid, key=lambda r: r.timestamp, reverse=True)
        for record in ordered:
            self._put(record, self._back_rank)
            self._back_rank += 1

        if not ordered:
            return ReconcileResult("unchanged")
        log.info("Loaded %d record(s) into empty view", len(ordered))
        return ReconcileResult("loaded", inserted=len(ordered), records=ordered)

    def _prepend_newer(self, valid: list) -> ReconcileResult:
        latest = self.watermark
        newer = self._dedupe_batch([r for r in valid if r.timestamp > latest])
        newer.sort(key=lambda r: r.timestamp)

        # Ascending inserts at the front leave the subset newest-first.
        for record in newer:
            self._front_rank -= 1
            self._put(record, self._front_rank)

        if not newer:
            return ReconcileResult("unchanged")
        log.info("Prepended %d record(s) newer than watermark=%s", len(newer), latest)
        return ReconcileResult("prepended", inserted=len(newer), records=newer[::-1])

    def _merge_by_identity(self, valid: list) -> ReconcileResult:
        fresh = sorted(self._unseen(valid), key=lambda r: r.timestamp, reverse=True)
        for record in fresh:
            self._put(record, self._back_rank)
            self._back_rank += 1

        if not fresh:
            return ReconcileResult("unchanged")
        log.info("Merged %d record(s) by identity", len(fresh))
        return ReconcileResult("merged", inserted=len(fresh), records=fresh)

    def _notify(self, result: ReconcileResult) -> None:
        for callback in list(self._listeners):
            try:
                callback(self, result)
            except Exception:
                log.exception("View listener error (action=%s)", result.action)
