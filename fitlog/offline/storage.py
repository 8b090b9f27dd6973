# =============================================================================
# fitlog/offline/storage.py
# Storage handle bundling the offline data layer
# =============================================================================
"""
StorageHandle - One constructible object owning the local database, API
client, connection manager, offline queue and sync engine.

Pass it to build_data_services() instead of reaching for module-level
singletons; tests build one per temporary database.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional
import logging

import requests

from fitlog.api.client import FitLogAPIClient, TokenProvider
from fitlog.config import FitLogSettings
from fitlog.offline.connection_manager import ConnectionManager
from fitlog.offline.local_database import LocalDatabase
from fitlog.offline.offline_api import (
    BodyFatOfflineAPI,
    ExercisesOfflineAPI,
    OfflineEntityAPI,
    WeightOfflineAPI,
    WorkoutsOfflineAPI,
)
from fitlog.offline.offline_queue import OfflineQueue, SyncEvent
from fitlog.offline.retry import RetryPolicy
from fitlog.offline.sync_engine import SyncEngine

logger = logging.getLogger(__name__)

API_CLASSES = {
    "workout": WorkoutsOfflineAPI,
    "exercise": ExercisesOfflineAPI,
    "weight": WeightOfflineAPI,
    "bodyfat": BodyFatOfflineAPI,
}


@dataclass
class StorageHandle:
    """Everything the data services need, wired together."""
    db: LocalDatabase
    client: FitLogAPIClient
    connection: ConnectionManager
    queue: OfflineQueue
    sync_engine: SyncEngine
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    _apis: Dict[str, OfflineEntityAPI] = field(default_factory=dict, repr=False)

    @classmethod
    def create(
        cls,
        settings: Optional[FitLogSettings] = None,
        token_provider: Optional[TokenProvider] = None,
        session: Optional[requests.Session] = None,
        connection: Optional[ConnectionManager] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> StorageHandle:
        """
        Build a handle from settings.

        Args:
            settings: Resolved settings (defaults when omitted)
            token_provider: Returns the current bearer token
            session: requests.Session to send requests with
            connection: Connection manager (probes settings.health_url by default)
            sleep: Sleep function used between retries
        """
        settings = settings or FitLogSettings()
        db = LocalDatabase(settings.db_path).initialize()
        client = FitLogAPIClient(
            settings.api_base_url,
            token_provider=token_provider,
            timeout=settings.request_timeout,
            session=session,
        )
        connection = connection or ConnectionManager(settings.health_url)
        queue = OfflineQueue(
            db,
            client,
            connection,
            max_retries=settings.queue_max_retries,
            lease_seconds=settings.drain_lease_seconds,
        )
        sync_engine = SyncEngine(queue, connection, interval=settings.sync_interval)
        sync_engine.initialize()

        policy_kwargs = {"sleep": sleep} if sleep is not None else {}
        retry_policy = RetryPolicy(
            max_retries=settings.max_retries,
            base_delay_ms=settings.retry_base_delay_ms,
            **policy_kwargs,
        )

        logger.info(f"Storage handle created for {settings.api_base_url} at {db.db_path}")
        return cls(
            db=db,
            client=client,
            connection=connection,
            queue=queue,
            sync_engine=sync_engine,
            retry_policy=retry_policy,
        )

    def api(self, entity: str) -> OfflineEntityAPI:
        """Offline-aware API wrapper for an entity type."""
        if entity not in self._apis:
            api_cls = API_CLASSES[entity]
            self._apis[entity] = api_cls(
                self.client,
                self.db.store(entity),
                self.queue,
                self.connection,
                retry_policy=self.retry_policy,
            )
        return self._apis[entity]

    @property
    def workouts_api(self) -> WorkoutsOfflineAPI:
        return self.api("workout")

    @property
    def exercises_api(self) -> ExercisesOfflineAPI:
        return self.api("exercise")

    @property
    def weight_api(self) -> WeightOfflineAPI:
        return self.api("weight")

    @property
    def bodyfat_api(self) -> BodyFatOfflineAPI:
        return self.api("bodyfat")

    def start_background(self) -> None:
        """Start connection monitoring, background sync and post-sync cache refreshes."""
        self.queue.add_sync_listener(self.refresh_after_sync)
        self.connection.check_connection()
        self.connection.start_monitoring()
        self.sync_engine.start()

    def refresh_after_sync(self, event: SyncEvent) -> None:
        """
        Re-read every entity from the server once the queue has fully drained,
        so caches pick up what the replayed writes changed server-side.

        Skipped while anything is still queued: a cache refresh would drop
        the optimistic records of those pending writes.
        """
        if event.result.success == 0 or event.result.failed or self.queue.count():
            return
        for entity in API_CLASSES:
            self.api(entity).refresh_in_background()

    def reset(self) -> None:
        """Forget all local data and pending writes (logout)."""
        self.db.clear_all_data()
        logger.info("Local storage reset")

    def close(self) -> None:
        self.sync_engine.stop()
        self.connection.stop_monitoring()
        self.client.close()
        self.db.close()
