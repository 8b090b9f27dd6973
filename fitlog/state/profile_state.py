# =============================================================================
# fitlog/state/profile_state.py
# Weight and body-fat series held in session state for the UI
# =============================================================================

from __future__ import annotations
from typing import Any, Dict, List, MutableMapping, Optional

import pandas as pd

from fitlog.errors import LocalStoreError
from fitlog.logging import get_logger
from fitlog.offline.local_database import RecordId
from fitlog.services.data_service import BodyFatDataService, WeightDataService
from .container import StateContainer

logger = get_logger(__name__)

LOAD_ERROR = "Failed to load profile data. Please try again later."


def _series_frame(records: List[Dict[str, Any]], value_column: str) -> pd.DataFrame:
    """Date-sorted frame with a datetime `date` column."""
    if not records:
        return pd.DataFrame(columns=["date", value_column])
    df = pd.DataFrame(records)
    if value_column not in df.columns:
        df[value_column] = pd.NA
    df["date"] = pd.to_datetime(df["date"], errors="coerce")
    df[value_column] = pd.to_numeric(df[value_column], errors="coerce")
    df = df.dropna(subset=["date"]).sort_values("date").reset_index(drop=True)
    return df


class ProfileDataState(StateContainer):
    """
    Weight and body-fat entries for the profile page.

    Both series load together; either failing sets the shared error.
    """

    prefix = "profile"

    def __init__(
        self,
        weight_service: WeightDataService,
        bodyfat_service: BodyFatDataService,
        session: Optional[MutableMapping[str, Any]] = None,
    ):
        super().__init__(session)
        self.weight_service = weight_service
        self.bodyfat_service = bodyfat_service

    @property
    def weight_data(self) -> List[Dict[str, Any]]:
        return self.session["weight_data"]

    @property
    def bodyfat_data(self) -> List[Dict[str, Any]]:
        return self.session["bodyfat_data"]

    def refresh(self) -> Optional[Dict[str, List[Dict[str, Any]]]]:
        """
        Fetch both series, bypassing the once-per-session guard.

        Returns:
            {"weight": [...], "bodyfat": [...]} or None if discarded
        """
        token = self._begin()
        self._set("loading", True)
        self._set("error", None)

        try:
            cached_weight = self.weight_service.get_cached()
            cached_bodyfat = self.bodyfat_service.get_cached()
            if self._is_current(token):
                if cached_weight:
                    self.session["weight_data"] = cached_weight
                if cached_bodyfat:
                    self.session["bodyfat_data"] = cached_bodyfat

            weight = self.weight_service.load(token=token)
            bodyfat = self.bodyfat_service.load(token=token) if weight else None

            if not self._is_current(token):
                logger.debug("Discarding profile data fetched after unmount")
                return None

            if weight and bodyfat:
                self.session["weight_data"] = weight.records
                self.session["bodyfat_data"] = bodyfat.records
                notices = [r.cache_notice for r in (weight, bodyfat) if r.cache_notice]
                self._set("error", notices[0] if notices else None)
                self._set("initialized", True)
            else:
                failed = bodyfat if weight else weight
                logger.error(f"Failed to fetch profile data: {failed.error if failed else 'unknown'}")
                self._set("error", LOAD_ERROR)
            return {"weight": self.weight_data, "bodyfat": self.bodyfat_data}
        finally:
            self._end(token)

    # =========================================================================
    # OPTIMISTIC HELPERS
    # =========================================================================

    @staticmethod
    def _mirror(action, *args) -> None:
        try:
            action(*args)
        except LocalStoreError as e:
            logger.warning(f"Could not mirror profile change into the local store: {e}")

    @staticmethod
    def _matches(entry: Dict[str, Any], key: RecordId) -> bool:
        return entry.get("id", entry.get("date")) == key

    def add_weight(self, entry: Dict[str, Any]) -> None:
        self.session["weight_data"] = [*self.weight_data, entry]
        self._mirror(self.weight_service.update_cache, entry)

    def update_weight(self, key: RecordId, entry: Dict[str, Any]) -> None:
        self.session["weight_data"] = [
            entry if self._matches(e, key) else e for e in self.weight_data
        ]
        self._mirror(self.weight_service.update_cache, entry)

    def remove_weight(self, key: RecordId) -> None:
        self.session["weight_data"] = [e for e in self.weight_data if not self._matches(e, key)]
        self._mirror(self.weight_service.delete_from_cache, key)

    def add_bodyfat(self, entry: Dict[str, Any]) -> None:
        self.session["bodyfat_data"] = [*self.bodyfat_data, entry]
        self._mirror(self.bodyfat_service.update_cache, entry)

    def update_bodyfat(self, key: RecordId, entry: Dict[str, Any]) -> None:
        self.session["bodyfat_data"] = [
            entry if self._matches(e, key) else e for e in self.bodyfat_data
        ]
        self._mirror(self.bodyfat_service.update_cache, entry)

    def remove_bodyfat(self, key: RecordId) -> None:
        self.session["bodyfat_data"] = [e for e in self.bodyfat_data if not self._matches(e, key)]
        self._mirror(self.bodyfat_service.delete_from_cache, key)

    def save_weight(self, entry: Dict[str, Any]) -> Dict[str, Any]:
        """Create through the data service, then append the saved entry."""
        saved = self.weight_service.create(entry)
        self.session["weight_data"] = [*self.weight_data, saved]
        return saved

    def save_bodyfat(self, entry: Dict[str, Any]) -> Dict[str, Any]:
        saved = self.bodyfat_service.create(entry)
        self.session["bodyfat_data"] = [*self.bodyfat_data, saved]
        return saved

    # =========================================================================
    # CHART DATA
    # =========================================================================

    def weight_frame(self) -> pd.DataFrame:
        return _series_frame(self.weight_data, "weight")

    def bodyfat_frame(self) -> pd.DataFrame:
        return _series_frame(self.bodyfat_data, "body_fat")
