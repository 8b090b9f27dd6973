# =============================================================================
# fitlog/offline/offline_queue.py
# Durable FIFO queue of mutating requests made while offline
# =============================================================================
"""
OfflineQueue - Records POST/PUT/DELETE requests issued while offline and
replays them once the API is reachable again.

Features:
- FIFO replay ordered by enqueue timestamp
- Explicit entry states (pending, succeeded, abandoned)
- Dead-letter table holding abandoned entries and their failure history
- Drain lease so two processes sharing a database never replay twice
- Temporary id reconciliation after an offline create is accepted
- Sync listeners notified when a drain completes
"""

from __future__ import annotations
import json
import os
import socket
import threading
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional
import logging

from fitlog.errors import LocalStoreError
from fitlog.offline.local_database import ENTITY_TABLES, LocalDatabase
from fitlog.offline.schema import get_mapping, replace_temp_ids

if TYPE_CHECKING:
    from fitlog.api.client import FitLogAPIClient
    from fitlog.offline.connection_manager import ConnectionManager

logger = logging.getLogger(__name__)

LEASE_NAME = "offline_queue"
DEFAULT_HEADERS = {"Content-Type": "application/json"}


class QueueEntryState(Enum):
    """Lifecycle of a queued request."""
    PENDING = "pending"         # Waiting for replay
    SUCCEEDED = "succeeded"     # Replayed and removed
    ABANDONED = "abandoned"     # Moved to the dead-letter table


@dataclass
class QueueEntry:
    """A queued HTTP request."""
    id: Optional[int]
    url: str
    method: str
    body: Any = None
    headers: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_HEADERS))
    type: str = "unknown"
    timestamp: int = 0
    retry_count: int = 0
    client_id: Optional[str] = None
    history: List[Dict[str, Any]] = field(default_factory=list)
    state: QueueEntryState = QueueEntryState.PENDING
    abandoned_at: Optional[str] = None

    @classmethod
    def from_row(cls, row, state: QueueEntryState = QueueEntryState.PENDING) -> QueueEntry:
        keys = row.keys()
        return cls(
            id=row["queue_id"] if "queue_id" in keys else row["id"],
            url=row["url"],
            method=row["method"],
            body=json.loads(row["body_json"]) if row["body_json"] else None,
            headers=json.loads(row["headers_json"]) if row["headers_json"] else {},
            type=row["type"],
            timestamp=row["timestamp"],
            retry_count=row["retry_count"] or 0,
            client_id=row["client_id"],
            history=json.loads(row["history_json"]) if row["history_json"] else [],
            state=state,
            abandoned_at=row["abandoned_at"] if "abandoned_at" in keys else None,
        )


@dataclass
class EntryOutcome:
    """What happened to one entry during a drain."""
    entry_id: int
    state: QueueEntryState
    error: Optional[str] = None
    server_id: Any = None


@dataclass
class DrainResult:
    """
    Summary of one drain.

    `failed` counts every failed replay, including the ones that crossed the
    retry ceiling and were also counted in `abandoned`.
    """
    success: int = 0
    failed: int = 0
    abandoned: int = 0
    skipped: bool = False
    outcomes: List[EntryOutcome] = field(default_factory=list)

    def to_dict(self) -> Dict[str, int]:
        return {"success": self.success, "failed": self.failed}


@dataclass
class SyncEvent:
    """Delivered to sync listeners after a drain."""
    type: str
    timestamp: datetime
    result: DrainResult


def _default_owner() -> str:
    return f"{socket.gethostname()}-{os.getpid()}-{uuid.uuid4().hex[:8]}"


class OfflineQueue:
    """
    Durable request queue backed by the offline_queue table.

    Usage:
        queue = OfflineQueue(db, client, connection)
        queue.enqueue(client.url_for("/workouts"), "POST", {"name": "Leg Day"}, type="workout")
        result = queue.drain()
    """

    MAX_RETRIES = 5
    LEASE_SECONDS = 60

    def __init__(
        self,
        db: LocalDatabase,
        client: FitLogAPIClient,
        connection: Optional[ConnectionManager] = None,
        max_retries: int = MAX_RETRIES,
        lease_seconds: float = LEASE_SECONDS,
        owner: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.db = db.initialize()
        self.client = client
        self.connection = connection
        self.max_retries = max_retries
        self.lease_seconds = lease_seconds
        self.owner = owner or _default_owner()
        self._clock = clock
        self._drain_lock = threading.Lock()
        self._sync_requesters: List[Callable[[], None]] = []
        self._listeners: List[Callable[[SyncEvent], None]] = []

    # =========================================================================
    # ENQUEUE
    # =========================================================================

    def enqueue(
        self,
        url: str,
        method: str,
        body: Any = None,
        headers: Optional[Dict[str, str]] = None,
        type: str = "unknown",
        client_id: Optional[str] = None,
    ) -> int:
        """
        Append a request to the queue.

        Args:
            url: Absolute request URL
            method: POST, PUT or DELETE
            body: JSON-serializable request body
            headers: Request headers (defaults to a JSON content type)
            type: Entity type (workout, exercise, weight, bodyfat)
            client_id: Temporary id of the record an offline create produced

        Returns:
            Queue entry id
        """
        timestamp = int(self._clock() * 1000)
        cursor = self.db.execute(
            """
            INSERT INTO offline_queue
                (url, method, body_json, headers_json, type, timestamp, retry_count, client_id)
            VALUES (?, ?, ?, ?, ?, ?, 0, ?)
            """,
            [
                url,
                method.upper(),
                json.dumps(body, default=str) if body is not None else None,
                json.dumps(headers or DEFAULT_HEADERS),
                type,
                timestamp,
                client_id,
            ],
        )
        entry_id = cursor.lastrowid
        logger.info(f"Request queued for offline sync: {method.upper()} {url} (entry {entry_id})")

        self._register_background_sync()
        return entry_id

    def register_background_sync(self, callback: Callable[[], None]) -> None:
        """Install a callback asked to schedule a drain after each enqueue."""
        if callback not in self._sync_requesters:
            self._sync_requesters.append(callback)

    def _register_background_sync(self) -> None:
        for callback in list(self._sync_requesters):
            try:
                callback()
                logger.debug("Background sync registered")
            except Exception as e:
                logger.error(f"Failed to register background sync: {e}")

    # =========================================================================
    # INSPECTION
    # =========================================================================

    def get_all_pending(self) -> List[QueueEntry]:
        """Pending entries, oldest first."""
        rows = self.db.query("SELECT * FROM offline_queue ORDER BY timestamp, id")
        return [QueueEntry.from_row(row) for row in rows]

    def get(self, entry_id: int) -> Optional[QueueEntry]:
        rows = self.db.query("SELECT * FROM offline_queue WHERE id = ?", [entry_id])
        return QueueEntry.from_row(rows[0]) if rows else None

    def count(self) -> int:
        """Number of pending entries."""
        rows = self.db.query("SELECT COUNT(*) AS c FROM offline_queue")
        return int(rows[0]["c"])

    def clear(self) -> None:
        """Drop every pending entry (logout/reset)."""
        self.db.execute("DELETE FROM offline_queue")
        logger.info("Offline queue cleared")

    def discard_for_client_id(self, client_id: str) -> int:
        """
        Drop pending requests that create or reference an unsynced record.

        Returns:
            Number of entries removed
        """
        doomed = []
        for entry in self.get_all_pending():
            path_parts = entry.url.rstrip("/").split("/")
            if entry.client_id == client_id or client_id in path_parts:
                doomed.append(entry.id)

        for entry_id in doomed:
            self.db.execute("DELETE FROM offline_queue WHERE id = ?", [entry_id])
        return len(doomed)

    def get_dead_letters(self) -> List[QueueEntry]:
        """Abandoned entries with their failure history, oldest first."""
        rows = self.db.query("SELECT * FROM dead_letter_queue ORDER BY id")
        return [QueueEntry.from_row(row, QueueEntryState.ABANDONED) for row in rows]

    def clear_dead_letters(self) -> None:
        self.db.execute("DELETE FROM dead_letter_queue")

    # =========================================================================
    # REPLAY
    # =========================================================================

    def drain(self) -> DrainResult:
        """
        Replay every pending entry in FIFO order.

        Returns a skipped result while offline, or when another drain (this
        process or another owner of the database) is already running.
        """
        if self.connection is not None and not self.connection.is_online:
            logger.debug("Cannot drain offline queue: offline")
            return DrainResult(skipped=True)

        if not self._drain_lock.acquire(blocking=False):
            logger.debug("Drain already running in this process")
            return DrainResult(skipped=True)

        try:
            if not self.db.acquire_lease(LEASE_NAME, self.owner, self.lease_seconds, self._clock()):
                logger.info("Offline queue is being drained by another owner, skipping")
                return DrainResult(skipped=True)

            try:
                return self._drain_pending()
            finally:
                self.db.release_lease(LEASE_NAME, self.owner)
        finally:
            self._drain_lock.release()

    # Alias
    process_queue = drain

    def _drain_pending(self) -> DrainResult:
        entries = self.get_all_pending()
        result = DrainResult()

        if not entries:
            logger.debug("No requests in offline queue")
            return result

        logger.info(f"Processing {len(entries)} queued requests")

        for entry in entries:
            outcome = self._replay(entry)
            result.outcomes.append(outcome)
            if outcome.state == QueueEntryState.SUCCEEDED:
                result.success += 1
            else:
                result.failed += 1
                if outcome.state == QueueEntryState.ABANDONED:
                    result.abandoned += 1

        logger.info(
            f"Queue drain complete: {result.success} success, "
            f"{result.failed} failed, {result.abandoned} abandoned"
        )
        self._notify_listeners(result)
        return result

    def retry_request(self, entry_id: int) -> bool:
        """
        Replay a single entry now.

        A failure here does not count towards the entry's retry ceiling.

        Returns:
            True if the request succeeded and left the queue
        """
        entry = self.get(entry_id)
        if entry is None:
            logger.error(f"Request not found in queue: {entry_id}")
            return False

        outcome = self._replay(entry, record_failure=False)
        return outcome.state == QueueEntryState.SUCCEEDED

    def _replay(self, entry: QueueEntry, record_failure: bool = True) -> EntryOutcome:
        url = self._rewrite_url(entry.url)
        body = self._rewrite_body(entry.body)

        try:
            response = self.client.request(entry.method, url, json=body, headers=entry.headers)
        except Exception as e:
            logger.error(f"Failed to process queued request {entry.id}: {e}")
            if not record_failure:
                return EntryOutcome(entry.id, QueueEntryState.PENDING, error=str(e))
            return self._record_failure(entry, e)

        self.db.execute("DELETE FROM offline_queue WHERE id = ?", [entry.id])
        logger.info(f"Successfully processed queued request {entry.id}")

        server_id = None
        if entry.method == "POST" and entry.client_id and isinstance(response, dict):
            server_id = self._reconcile(entry, response)
        elif entry.method == "PUT" and isinstance(response, dict):
            self._store_response(entry, response)
        return EntryOutcome(entry.id, QueueEntryState.SUCCEEDED, server_id=server_id)

    def _record_failure(self, entry: QueueEntry, error: Exception) -> EntryOutcome:
        entry.retry_count += 1
        entry.history.append({
            "attempt": entry.retry_count,
            "error": str(error),
            "status": getattr(error, "status", None),
            "at": datetime.now().isoformat(),
        })

        if entry.retry_count >= self.max_retries:
            self._abandon(entry)
            logger.warning(
                f"Max retries reached for request {entry.id}, moved to dead-letter queue"
            )
            return EntryOutcome(entry.id, QueueEntryState.ABANDONED, error=str(error))

        self.db.execute(
            "UPDATE offline_queue SET retry_count = ?, history_json = ? WHERE id = ?",
            [entry.retry_count, json.dumps(entry.history), entry.id],
        )
        return EntryOutcome(entry.id, QueueEntryState.PENDING, error=str(error))

    def _abandon(self, entry: QueueEntry) -> None:
        with self.db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO dead_letter_queue
                    (queue_id, url, method, body_json, headers_json, type,
                     timestamp, retry_count, client_id, history_json)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    entry.id,
                    entry.url,
                    entry.method,
                    json.dumps(entry.body, default=str) if entry.body is not None else None,
                    json.dumps(entry.headers),
                    entry.type,
                    entry.timestamp,
                    entry.retry_count,
                    entry.client_id,
                    json.dumps(entry.history),
                ],
            )
            conn.execute("DELETE FROM offline_queue WHERE id = ?", [entry.id])

    # =========================================================================
    # TEMPORARY ID RECONCILIATION
    # =========================================================================

    def _rewrite_url(self, url: str) -> str:
        if "temp-" not in url:
            return url
        mappings = self.db.get_id_mappings()
        parts = url.split("/")
        return "/".join(str(mappings.get(part, part)) for part in parts)

    def _rewrite_body(self, body: Any) -> Any:
        """Swap temporary ids inside a request body for their server ids."""
        if body is None:
            return None
        mappings = self.db.get_id_mappings()
        if not mappings:
            return body
        return replace_temp_ids(body, mappings)

    def _reconcile(self, entry: QueueEntry, response: Dict[str, Any]) -> Any:
        """Replace the temporary local record with the server's record."""
        if entry.type not in ENTITY_TABLES:
            return None

        mapping = get_mapping(entry.type)
        record = mapping.to_local(response) if mapping else dict(response)
        server_id = record.get("id")

        try:
            store = self.db.store(entry.type)
            store.replace(entry.client_id, record)
            if server_id is not None:
                self.db.save_id_mapping(entry.type, entry.client_id, server_id)
                if entry.type == "workout":
                    for exercise in self.db.exercises.get_by_workout_id(entry.client_id):
                        self.db.exercises.put({**exercise, "workout_id": server_id})
        except LocalStoreError as e:
            logger.warning(f"Could not reconcile {entry.client_id}: {e}")
            return None

        logger.info(f"Reconciled {entry.type} {entry.client_id} -> {server_id}")
        return server_id

    def _store_response(self, entry: QueueEntry, response: Dict[str, Any]) -> None:
        """Overwrite the pending local copy with the server's answer to a PUT."""
        mapping = get_mapping(entry.type) if entry.type in ENTITY_TABLES else None
        if mapping is None:
            return
        record = mapping.to_local(response)
        # Bulk answers ({"exercises": [...]}) carry no single id
        if record.get("id") is None:
            return
        try:
            self.db.store(entry.type).put(record)
        except LocalStoreError as e:
            logger.warning(f"Could not store replayed {entry.type} {record['id']}: {e}")

    # =========================================================================
    # LISTENERS
    # =========================================================================

    def add_sync_listener(self, callback: Callable[[SyncEvent], None]) -> None:
        """Call back after every drain that replayed at least one entry."""
        if callback not in self._listeners:
            self._listeners.append(callback)

    def remove_sync_listener(self, callback: Callable[[SyncEvent], None]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _notify_listeners(self, result: DrainResult) -> None:
        event = SyncEvent(type="SYNC_COMPLETE", timestamp=datetime.now(), result=result)
        for callback in list(self._listeners):
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Error in sync listener: {e}")

    def get_status_display(self) -> Dict[str, Any]:
        lease = self.db.get_lease(LEASE_NAME)
        return {
            "pending": self.count(),
            "dead_letters": len(self.get_dead_letters()),
            "lease_owner": lease["owner"] if lease else None,
        }
