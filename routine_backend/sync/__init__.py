from .channel import LocalSyncChannel, PersistOutcome, Subscription, parse_document
from .store import RecordStore, StoredRecord

__all__ = [
    "LocalSyncChannel",
    "PersistOutcome",
    "RecordStore",
    "StoredRecord",
    "Subscription",
    "parse_document",
]
