# =============================================================================
# fitlog/services/data_service.py
# Data Service - cache-backed access to one entity type
# =============================================================================

from __future__ import annotations
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from .base_service import BaseService, FetchResult, ServiceResult
from fitlog.errors import LocalStoreError, NoDataAvailableError, OperationCancelledError
from fitlog.offline.cancellation import CancellationToken
from fitlog.offline.local_database import EntityStore, RecordId
from fitlog.offline.offline_api import (
    BodyFatOfflineAPI,
    ExercisesOfflineAPI,
    OfflineEntityAPI,
    WeightOfflineAPI,
    WorkoutsOfflineAPI,
)

if TYPE_CHECKING:
    from fitlog.offline.storage import StorageHandle

CACHE_FALLBACK_MESSAGE = "Using cached data. Unable to fetch latest data."


class DataService(BaseService):
    """
    Pairs an offline-aware API wrapper with its local store.

    Handles:
    - Fetching with a cache fallback of its own
    - Pass-through writes (offline behavior lives in the wrapper)
    - Direct cache edits for optimistic UI updates

    Usage:
        service = WorkoutDataService(storage.workouts_api, storage.db.workouts)
        result = service.get_all()
        show(result.data)
        if result.from_cache:
            st.warning(result.error)
    """

    def __init__(self, offline_api: OfflineEntityAPI, store: EntityStore):
        super().__init__()
        self.offline_api = offline_api
        self.store = store

    @property
    def entity(self) -> str:
        return self.offline_api.entity

    def get_cached(self) -> List[Dict[str, Any]]:
        """Cached records only; a broken cache reads as empty."""
        try:
            return self.store.get_all()
        except LocalStoreError as e:
            self.logger.warning(f"Could not read {self.entity} cache: {e}")
            return []

    def get_all(self, token: Optional[CancellationToken] = None) -> FetchResult:
        """
        Fetch records, falling back to the cache.

        Raises:
            NoDataAvailableError: The fetch failed and nothing is cached
            OperationCancelledError: The token was cancelled
        """
        cached = self.get_cached()

        try:
            data = self.offline_api.get_all(token=token)
        except OperationCancelledError:
            raise
        except Exception as e:
            self.logger.error(f"Failed to fetch {self.entity} data from API: {e}")
            cached = self.get_cached()
            if cached:
                return FetchResult(data=cached, from_cache=True, error=CACHE_FALLBACK_MESSAGE)
            raise NoDataAvailableError(entity=self.entity) from e

        return FetchResult(
            data=list(data),
            from_cache=getattr(data, "from_cache", False),
            cached_data=cached or None,
            error=getattr(data, "error", None),
        )

    def load(self, token: Optional[CancellationToken] = None) -> ServiceResult:
        """get_all for the state containers; failures come back as a falsy result."""
        return self.run_fetch(f"Loading {self.entity} data", self.get_all, token=token)

    def create(self, entry: Dict[str, Any]) -> Dict[str, Any]:
        return self.offline_api.create(entry)

    def update(self, record_id: RecordId, entry: Dict[str, Any]) -> Dict[str, Any]:
        return self.offline_api.update(record_id, entry)

    def delete(self, record_id: RecordId) -> Dict[str, Any]:
        return self.offline_api.delete(record_id)

    def update_cache(self, entry: Dict[str, Any]) -> None:
        """Write a record straight into the local store."""
        self.store.put(entry)

    def delete_from_cache(self, record_id: RecordId) -> None:
        self.store.delete(record_id)


class WorkoutDataService(DataService):
    offline_api: WorkoutsOfflineAPI

    def get_by_id(self, record_id: RecordId, token: Optional[CancellationToken] = None) -> Optional[Dict[str, Any]]:
        """Single workout, network first."""
        try:
            return self.offline_api.get(record_id, token=token)
        except Exception as e:
            self.logger.error(f"Failed to fetch workout {record_id}: {e}")
            raise


class ExerciseDataService(DataService):
    offline_api: ExercisesOfflineAPI

    def get_for_workout(self, workout_id: RecordId) -> List[Dict[str, Any]]:
        return self.offline_api.get_by_workout_id(workout_id)

    def update(self, exercises: List[Dict[str, Any]]) -> List[Dict[str, Any]]:  # type: ignore[override]
        """Bulk update."""
        return self.offline_api.update(exercises)


class WeightDataService(DataService):
    offline_api: WeightOfflineAPI


class BodyFatDataService(DataService):
    offline_api: BodyFatOfflineAPI


@dataclass
class DataServices:
    workouts: WorkoutDataService
    exercises: ExerciseDataService
    weight: WeightDataService
    bodyfat: BodyFatDataService


def build_data_services(storage: StorageHandle) -> DataServices:
    """Wire all four data services to one storage handle."""
    return DataServices(
        workouts=WorkoutDataService(storage.workouts_api, storage.db.workouts),
        exercises=ExerciseDataService(storage.exercises_api, storage.db.exercises),
        weight=WeightDataService(storage.weight_api, storage.db.weight),
        bodyfat=BodyFatDataService(storage.bodyfat_api, storage.db.bodyfat),
    )
