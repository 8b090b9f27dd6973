# =============================================================================
# fitlog/state/workouts_state.py
# Workouts held in session state for the UI
# =============================================================================

from __future__ import annotations
from typing import Any, Dict, List, MutableMapping, Optional

from fitlog.errors import LocalStoreError
from fitlog.logging import get_logger
from fitlog.offline.local_database import RecordId
from fitlog.services.data_service import WorkoutDataService
from .container import StateContainer

logger = get_logger(__name__)

LOAD_ERROR = "Failed to load workouts. Please try again later."


class WorkoutsState(StateContainer):
    """
    In-memory list of workouts for the UI.

    Usage:
        state = WorkoutsState(services.workouts)
        state.ensure_loaded()
        for workout in state.workouts:
            ...
    """

    prefix = "workouts"

    def __init__(
        self,
        service: WorkoutDataService,
        session: Optional[MutableMapping[str, Any]] = None,
    ):
        super().__init__(session)
        self.service = service

    @property
    def workouts(self) -> List[Dict[str, Any]]:
        return self.session["workouts"]

    def refresh(self) -> Optional[List[Dict[str, Any]]]:
        """
        Fetch workouts, bypassing the once-per-session guard.

        Cached workouts are shown first and replaced when the fetch returns.

        Returns:
            The workouts now in state, or None if the fetch was discarded
        """
        token = self._begin()
        self._set("loading", True)
        self._set("error", None)

        try:
            cached = self.service.get_cached()
            if cached and self._is_current(token):
                self.session["workouts"] = cached

            result = self.service.load(token=token)

            if not self._is_current(token):
                logger.debug("Discarding workouts fetched after unmount")
                return None

            if result:
                self.session["workouts"] = result.records
                self._set("error", result.cache_notice)
                self._set("initialized", True)
            else:
                logger.error(f"Failed to fetch workouts: {result.error}")
                self._set("error", LOAD_ERROR)
            return self.workouts
        finally:
            self._end(token)

    # =========================================================================
    # OPTIMISTIC HELPERS
    # =========================================================================

    def _mirror(self, action, *args) -> None:
        try:
            action(*args)
        except LocalStoreError as e:
            logger.warning(f"Could not mirror workout change into the local store: {e}")

    def add_workout(self, workout: Dict[str, Any]) -> None:
        self.session["workouts"] = [*self.workouts, workout]
        self._mirror(self.service.update_cache, workout)

    def update_workout(self, workout_id: RecordId, updated: Dict[str, Any]) -> None:
        updated = {**updated, "id": updated.get("id", workout_id)}
        self.session["workouts"] = [
            updated if w.get("id") == workout_id else w for w in self.workouts
        ]
        if updated["id"] != workout_id:
            self._mirror(self.service.delete_from_cache, workout_id)
        self._mirror(self.service.update_cache, updated)

    def remove_workout(self, workout_id: RecordId) -> None:
        self.session["workouts"] = [w for w in self.workouts if w.get("id") != workout_id]
        self._mirror(self.service.delete_from_cache, workout_id)
