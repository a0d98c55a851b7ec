"""I/O-free record types and the ordered merge shared by every feed client."""

from .record import Record, record_from_payload
from .ordered_view import DedupPolicy, OrderedSyncView, ReconcileResult

__all__ = [
    "Record",
    "record_from_payload",
    "DedupPolicy",
    "OrderedSyncView",
    "ReconcileResult",
]
