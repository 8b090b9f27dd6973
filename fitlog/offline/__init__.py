# =============================================================================
# fitlog/offline/__init__.py
# Offline-first data layer
# =============================================================================

from .cancellation import CancellationToken
from .connection_manager import ConnectionManager, ConnectionState, ConnectionStatus
from .local_database import EntityStore, ExerciseStore, LocalDatabase
from .offline_api import (
    BodyFatOfflineAPI,
    ExercisesOfflineAPI,
    OfflineEntityAPI,
    RecordList,
    WeightOfflineAPI,
    WorkoutsOfflineAPI,
    new_temp_id,
)
from .offline_queue import (
    DrainResult,
    EntryOutcome,
    OfflineQueue,
    QueueEntry,
    QueueEntryState,
    SyncEvent,
)
from .retry import RetryPolicy, is_retryable_status, retry_with_backoff
from .schema import SchemaMapping, get_mapping, is_temp_id
from .storage import StorageHandle
from .sync_engine import SyncEngine, SyncState

__all__ = [
    "CancellationToken",
    "ConnectionManager",
    "ConnectionState",
    "ConnectionStatus",
    "EntityStore",
    "ExerciseStore",
    "LocalDatabase",
    "BodyFatOfflineAPI",
    "ExercisesOfflineAPI",
    "OfflineEntityAPI",
    "RecordList",
    "WeightOfflineAPI",
    "WorkoutsOfflineAPI",
    "new_temp_id",
    "DrainResult",
    "EntryOutcome",
    "OfflineQueue",
    "QueueEntry",
    "QueueEntryState",
    "SyncEvent",
    "RetryPolicy",
    "is_retryable_status",
    "retry_with_backoff",
    "SchemaMapping",
    "get_mapping",
    "is_temp_id",
    "StorageHandle",
    "SyncEngine",
    "SyncState",
]
