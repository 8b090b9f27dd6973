# =============================================================================
# fitlog/offline/offline_api.py
# Offline-aware API wrappers, one per entity
# =============================================================================
"""
Offline-first access to the FitLog REST API.

Reads go to the network and fall back to the local cache. Writes made while
offline are applied to the local store optimistically and queued for
replay; writes made while online go straight to the API (with retry) and the
server's response is persisted locally.

Usage:
    workouts = WorkoutsOfflineAPI(client, db.workouts, queue, connection)
    records = workouts.get_all()
    if records.from_cache:
        st.warning(records.error)
"""

from __future__ import annotations
import threading
import time
from typing import Any, Callable, Dict, Iterable, List, Optional
import logging

from fitlog.api.client import FitLogAPIClient
from fitlog.errors import LocalStoreError, NetworkError, OperationCancelledError
from fitlog.offline.cancellation import CancellationToken
from fitlog.offline.connection_manager import ConnectionManager
from fitlog.offline.local_database import EntityStore, ExerciseStore, RecordId
from fitlog.offline.offline_queue import OfflineQueue
from fitlog.offline.retry import RetryPolicy
from fitlog.offline.schema import SchemaMapping, get_mapping, has_temp_ids, is_temp_id, replace_temp_ids
from fitlog import validation

logger = logging.getLogger(__name__)

_temp_id_lock = threading.Lock()
_last_temp_millis = 0


def new_temp_id(clock: Callable[[], float] = time.time) -> str:
    """
    Mint a "temp-<millis>" id.

    Ids are strictly increasing within the process so two records created in
    the same millisecond never share a key.
    """
    global _last_temp_millis
    with _temp_id_lock:
        millis = max(int(clock() * 1000), _last_temp_millis + 1)
        _last_temp_millis = millis
    return f"temp-{millis}"


class RecordList(list):
    """
    List of local records plus where they came from.

    Attributes:
        from_cache: True when the network failed and these are cached records
        error: Explanation shown next to cached data
    """

    def __init__(
        self,
        records: Iterable[Dict[str, Any]] = (),
        from_cache: bool = False,
        error: Optional[str] = None,
    ):
        super().__init__(records)
        self.from_cache = from_cache
        self.error = error


class OfflineEntityAPI:
    """Offline-first CRUD for one entity type."""

    entity: str = ""
    path: str = ""

    def __init__(
        self,
        client: FitLogAPIClient,
        store: EntityStore,
        queue: OfflineQueue,
        connection: ConnectionManager,
        retry_policy: Optional[RetryPolicy] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.client = client
        self.store = store
        self.queue = queue
        self.connection = connection
        self.retry_policy = retry_policy or RetryPolicy()
        self.mapping: SchemaMapping = get_mapping(self.entity)
        self._clock = clock

    @property
    def url(self) -> str:
        return self.client.url_for(self.path)

    def item_path(self, record_id: RecordId) -> str:
        return f"{self.path}/{record_id}"

    @property
    def is_online(self) -> bool:
        return self.connection.is_online

    def validate_create(self, record: Dict[str, Any]) -> None:
        """Raise ValidationError for an invalid new record."""

    def validate_update(self, changes: Dict[str, Any]) -> None:
        """Raise ValidationError for invalid changes."""

    def _run(self, operation: Callable[[], Any], token: Optional[CancellationToken] = None) -> Any:
        return self.retry_policy.run(operation, connection=self.connection, token=token)

    def _to_local(self, data: Any, fallback: Dict[str, Any]) -> Dict[str, Any]:
        if isinstance(data, dict):
            return self.mapping.to_local(data)
        return dict(fallback)

    def _resolve_ids(self, value: Any) -> Any:
        """Swap temporary ids the server has already replaced."""
        mappings = self.store.db.get_id_mappings()
        return replace_temp_ids(value, mappings) if mappings else value

    def _persist(self, record: Dict[str, Any]) -> None:
        try:
            self.store.put(record)
        except LocalStoreError as e:
            logger.warning(f"Failed to cache {self.entity}: {e}")

    # =========================================================================
    # READS
    # =========================================================================

    def read_cache(self) -> List[Dict[str, Any]]:
        """Cached records; store failures count as an empty cache."""
        try:
            return self.store.get_all()
        except LocalStoreError as e:
            logger.warning(f"Error reading {self.entity} cache: {e}")
            return []

    def fetch_all(self, token: Optional[CancellationToken] = None) -> List[Dict[str, Any]]:
        """GET the collection and map it to the local form (no caching)."""
        data = self._run(lambda: self.client.get(self.path), token)
        return [self.mapping.to_local(item) for item in (data or [])]

    def get_all(self, token: Optional[CancellationToken] = None) -> RecordList:
        """
        Fresh records from the network, or the cache when that fails.

        Raises:
            The network error when there is nothing cached to fall back to
        """
        cached = self.read_cache()

        if not self.is_online:
            if cached:
                logger.info(f"Offline: using {len(cached)} cached {self.entity} records")
                return RecordList(cached, from_cache=True, error="You are offline. Showing cached data.")
            raise NetworkError(f"Offline and no cached {self.entity} data", endpoint=self.url)

        try:
            records = self.fetch_all(token)
        except OperationCancelledError:
            raise
        except Exception as e:
            logger.error(f"Network request for {self.entity} failed: {e}")
            if cached:
                logger.info(f"Returning {len(cached)} cached {self.entity} records after network failure")
                return RecordList(
                    cached,
                    from_cache=True,
                    error=f"Could not reach the server, showing cached data ({e.__class__.__name__})",
                )
            raise

        if token is not None and token.cancelled:
            raise OperationCancelledError(f"{self.entity} fetch cancelled")

        try:
            self.store.sync(records)
            logger.debug(f"Synced {len(records)} {self.entity} records to local store")
        except LocalStoreError as e:
            logger.warning(f"Failed to sync {self.entity} to local store: {e}")
        return RecordList(records)

    def refresh_in_background(self) -> Optional[threading.Thread]:
        """Fire-and-forget fetch + sync; failures are only logged."""
        if not self.is_online:
            return None

        def refresh() -> None:
            try:
                records = self.fetch_all()
                self.store.sync(records)
                logger.info(f"Background sync of {self.entity} completed")
            except Exception as e:
                logger.warning(f"Background sync of {self.entity} failed: {e}")

        thread = threading.Thread(target=refresh, daemon=True, name=f"Refresh-{self.entity}")
        thread.start()
        return thread

    # =========================================================================
    # WRITES
    # =========================================================================

    def create(self, record: Dict[str, Any], token: Optional[CancellationToken] = None) -> Dict[str, Any]:
        """
        Create a record.

        Offline: stored under a temporary id with `_pending` set and queued.
        Online: POSTed with retry; the server's record is cached and returned.
        A record referencing another unsynced record is created the offline
        way so replay sends it after the referenced create.
        """
        self.validate_create(record)
        fields = self._resolve_ids({k: v for k, v in record.items() if k != "id"})

        if not self.is_online or has_temp_ids(fields):
            temp_id = new_temp_id(self._clock)
            optimistic = {**fields, "id": temp_id, "_pending": True}
            self.store.put(optimistic)
            self.queue.enqueue(
                self.url,
                "POST",
                self.mapping.to_wire(fields),
                type=self.entity,
                client_id=temp_id,
            )
            return optimistic

        body = self.mapping.to_wire(fields)
        data = self._run(lambda: self.client.post(self.path, json=body), token)
        created = self._to_local(data, fields)
        self._persist(created)
        return created

    def update(
        self,
        record_id: RecordId,
        changes: Dict[str, Any],
        token: Optional[CancellationToken] = None,
    ) -> Dict[str, Any]:
        """
        Update a record.

        Offline: merged into the cached record with `_pending` set and queued.
        Online: PUT with retry; the server's record is cached and returned.
        A record whose create is still queued, or whose changes reference
        one, is updated the offline way. A temporary id the server has
        already replaced is written under the server id.
        """
        self.validate_update(changes)
        changes = self._resolve_ids({k: v for k, v in changes.items() if k != "id"})
        server_id = self.store.db.resolve_id(self.entity, record_id)

        if not self.is_online or is_temp_id(server_id) or has_temp_ids(changes):
            existing = self.store.get(server_id) or self.store.get(record_id) or {}
            optimistic = {**existing, **changes, "id": server_id, "_pending": True}
            if server_id != record_id:
                self.store.delete(record_id)
            self.store.put(optimistic)
            self.queue.enqueue(
                self.client.url_for(self.item_path(server_id)),
                "PUT",
                self.mapping.to_wire(changes),
                type=self.entity,
            )
            return optimistic

        body = self.mapping.to_wire(changes)
        data = self._run(lambda: self.client.put(self.item_path(server_id), json=body), token)
        updated = self._to_local(data, {**changes, "id": server_id})
        if server_id != record_id:
            self.store.delete(record_id)
        self._persist(updated)
        return updated

    def delete(self, record_id: RecordId, token: Optional[CancellationToken] = None) -> Dict[str, Any]:
        """
        Delete a record.

        A record that only exists locally (unsynced temporary id) is removed
        together with its queued requests; nothing is sent to the server.
        """
        server_id = self.store.db.resolve_id(self.entity, record_id)
        if is_temp_id(server_id):
            self.store.delete(record_id)
            dropped = self.queue.discard_for_client_id(str(record_id))
            logger.info(f"Deleted unsynced {self.entity} {record_id} ({dropped} queued requests dropped)")
            return {"success": True}

        if not self.is_online:
            self.store.delete(server_id)
            if server_id != record_id:
                self.store.delete(record_id)
            self.queue.enqueue(
                self.client.url_for(self.item_path(server_id)),
                "DELETE",
                type=self.entity,
            )
            return {"success": True}

        self._run(lambda: self.client.delete(self.item_path(server_id)), token)
        self.store.delete(record_id)
        if server_id != record_id:
            self.store.delete(server_id)
        return {"success": True}


class WorkoutsOfflineAPI(OfflineEntityAPI):
    entity = "workout"
    path = "/workouts"

    def validate_create(self, record: Dict[str, Any]) -> None:
        validation.validate_workout_payload(record)

    def validate_update(self, changes: Dict[str, Any]) -> None:
        validation.validate_workout_payload(changes, partial=True)

    def get(self, record_id: RecordId, token: Optional[CancellationToken] = None) -> Optional[Dict[str, Any]]:
        """One workout from the network, falling back to the cached copy."""
        server_id = self.store.db.resolve_id(self.entity, record_id)
        if self.is_online and not is_temp_id(server_id):
            try:
                data = self._run(lambda: self.client.get(self.item_path(server_id)), token)
            except OperationCancelledError:
                raise
            except Exception as e:
                logger.warning(f"Fetching workout {server_id} failed, trying cache: {e}")
            else:
                if isinstance(data, dict):
                    workout = self.mapping.to_local(data)
                    self._persist(workout)
                    return workout

        try:
            cached = self.store.get(server_id) or self.store.get(record_id)
        except LocalStoreError as e:
            logger.warning(f"Error reading workout cache: {e}")
            cached = None
        if cached is None and not self.is_online:
            raise NetworkError(f"Offline and workout {record_id} is not cached")
        return cached


class ExercisesOfflineAPI(OfflineEntityAPI):
    entity = "exercise"
    path = "/exercises"

    store: ExerciseStore

    def validate_create(self, record: Dict[str, Any]) -> None:
        validation.validate_exercise_payload(record)

    def get_by_workout_id(self, workout_id: RecordId) -> List[Dict[str, Any]]:
        """Cached exercises of one workout."""
        try:
            return self.store.get_by_workout_id(workout_id)
        except LocalStoreError as e:
            logger.warning(f"Error reading exercise cache: {e}")
            return []

    def update(  # type: ignore[override]
        self,
        exercises: List[Dict[str, Any]],
        token: Optional[CancellationToken] = None,
    ) -> List[Dict[str, Any]]:
        """
        Bulk update: PUT /exercises with {"exercises": [...]}.

        Each exercise must carry its id.
        """
        for exercise in exercises:
            validation.validate_exercise_payload(exercise, partial=True)
        exercises = self._resolve_ids(exercises)
        body = {"exercises": [self.mapping.to_wire(e, include_id=True) for e in exercises]}

        if not self.is_online or has_temp_ids(exercises):
            optimistic = []
            for exercise in exercises:
                existing = self.store.get(exercise["id"]) or {}
                record = {**existing, **exercise, "_pending": True}
                self.store.put(record)
                optimistic.append(record)
            self.queue.enqueue(self.url, "PUT", body, type=self.entity)
            return optimistic

        data = self._run(lambda: self.client.put(self.path, json=body), token)
        if isinstance(data, dict):
            data = data.get("exercises", [])
        updated = [self.mapping.to_local(item) for item in (data or [])] or list(exercises)
        for record in updated:
            self._persist(record)
        return updated


class WeightOfflineAPI(OfflineEntityAPI):
    entity = "weight"
    path = "/weight"

    def validate_create(self, record: Dict[str, Any]) -> None:
        validation.validate_weight_payload(record)


class BodyFatOfflineAPI(OfflineEntityAPI):
    entity = "bodyfat"
    path = "/bodyfat"

    def validate_create(self, record: Dict[str, Any]) -> None:
        validation.validate_bodyfat_payload(record)
