# =============================================================================
# tests/unit/test_offline_api.py
# Unit Tests for the offline-aware API wrappers
# =============================================================================

import re

import pytest

from fitlog.errors import APIError, NetworkError, OperationCancelledError, ValidationError
from fitlog.offline.cancellation import CancellationToken
from fitlog.offline.offline_api import (
    BodyFatOfflineAPI,
    ExercisesOfflineAPI,
    WeightOfflineAPI,
    WorkoutsOfflineAPI,
    new_temp_id,
)

TEMP_ID = re.compile(r"^temp-\d+$")


@pytest.fixture
def workouts_api(db, api_client, queue, connection, retry_policy):
    return WorkoutsOfflineAPI(api_client, db.workouts, queue, connection, retry_policy=retry_policy)


@pytest.fixture
def exercises_api(db, api_client, queue, connection, retry_policy):
    return ExercisesOfflineAPI(api_client, db.exercises, queue, connection, retry_policy=retry_policy)


@pytest.fixture
def weight_api(db, api_client, queue, connection, retry_policy):
    return WeightOfflineAPI(api_client, db.weight, queue, connection, retry_policy=retry_policy)


@pytest.fixture
def bodyfat_api(db, api_client, queue, connection, retry_policy):
    return BodyFatOfflineAPI(api_client, db.bodyfat, queue, connection, retry_policy=retry_policy)


class TestTempIds:

    def test_format(self):
        assert TEMP_ID.match(new_temp_id())

    def test_strictly_increasing_with_frozen_clock(self):
        first = new_temp_id(lambda: 1.0)
        second = new_temp_id(lambda: 1.0)

        assert int(second.split("-")[1]) > int(first.split("-")[1])


class TestGetAll:

    def test_online_weight_fetch_is_mapped_and_cached(self, db, weight_api, api_client):
        api_client.get.return_value = [{"date": "2024-01-15T00:00:00Z", "value": 70}]

        records = weight_api.get_all()

        assert records == [{"date": "2024-01-15", "weight": 70}]
        assert not records.from_cache
        api_client.get.assert_called_once_with("/weight")
        assert db.weight.get_by_date("2024-01-15") == [{"date": "2024-01-15", "weight": 70}]

    def test_fetch_replaces_cache(self, db, workouts_api, api_client):
        db.workouts.put({"id": 99, "name": "Deleted on server"})
        api_client.get.return_value = [{"workout_id": 1, "name": "Leg Day"}]

        workouts_api.get_all()

        assert db.workouts.get_all() == [{"id": 1, "name": "Leg Day"}]

    def test_network_failure_falls_back_to_cache(self, db, workouts_api, api_client):
        db.workouts.put({"id": 1, "name": "A"})
        db.workouts.put({"id": 2, "name": "B"})
        api_client.get.side_effect = NetworkError("connection refused")

        records = workouts_api.get_all()

        assert [r["id"] for r in records] == [1, 2]
        assert records.from_cache is True
        assert records.error

    def test_network_failure_without_cache_raises(self, workouts_api, api_client):
        api_client.get.side_effect = NetworkError("connection refused")

        with pytest.raises(NetworkError):
            workouts_api.get_all()

    def test_offline_reads_cache_without_network(self, db, workouts_api, api_client, offline):
        db.workouts.put({"id": 1, "name": "A"})

        records = workouts_api.get_all()

        assert records.from_cache
        assert records.error == "You are offline. Showing cached data."
        api_client.get.assert_not_called()

    def test_offline_without_cache_raises(self, workouts_api, offline):
        with pytest.raises(NetworkError):
            workouts_api.get_all()

    def test_cancelled_fetch_leaves_cache_untouched(self, db, workouts_api, api_client):
        db.workouts.put({"id": 1, "name": "Cached"})
        token = CancellationToken()
        api_client.get.side_effect = lambda path: (token.cancel(), [{"workout_id": 2, "name": "New"}])[1]

        with pytest.raises(OperationCancelledError):
            workouts_api.get_all(token=token)

        assert db.workouts.get_all() == [{"id": 1, "name": "Cached"}]

    def test_refresh_in_background_syncs_store(self, db, workouts_api, api_client):
        api_client.get.return_value = [{"workout_id": 5, "name": "Pull"}]

        thread = workouts_api.refresh_in_background()
        thread.join(timeout=5)

        assert db.workouts.get(5) == {"id": 5, "name": "Pull"}

    def test_refresh_in_background_skipped_offline(self, workouts_api, offline):
        assert workouts_api.refresh_in_background() is None


class TestCreate:

    def test_offline_create_is_optimistic_and_queued(self, db, queue, workouts_api, api_client, offline):
        created = workouts_api.create({"name": "Leg Day"})

        assert TEMP_ID.match(created["id"])
        assert created["_pending"] is True
        assert db.workouts.get(created["id"])["_pending"] is True

        pending = queue.get_all_pending()
        assert len(pending) == 1
        assert pending[0].method == "POST"
        assert pending[0].type == "workout"
        assert pending[0].client_id == created["id"]
        assert pending[0].body == {"name": "Leg Day"}

        api_client.post.assert_not_called()
        api_client.request.assert_not_called()

    def test_online_create_persists_server_record(self, db, workouts_api, api_client):
        api_client.post.return_value = {"workout_id": 8, "name": "Leg Day", "user_id": "u1"}

        created = workouts_api.create({"name": "Leg Day"})

        api_client.post.assert_called_once_with("/workouts", json={"name": "Leg Day"})
        assert created == {"id": 8, "name": "Leg Day", "user_id": "u1"}
        assert db.workouts.get(8) == created

    def test_online_create_sends_server_id_of_reconciled_parent(self, db, queue, exercises_api, api_client):
        db.save_id_mapping("workout", "temp-1", 42)
        api_client.post.return_value = {
            "exercise_id": 7, "workout_id": 42, "name": "Squat", "sets": 3, "reps": 5,
        }

        created = exercises_api.create({"workout_id": "temp-1", "name": "Squat", "sets": 3, "reps": 5})

        assert api_client.post.call_args.kwargs["json"]["workout_id"] == 42
        assert created["workout_id"] == 42
        assert queue.count() == 0

    def test_online_create_with_unsynced_parent_is_queued(self, db, queue, exercises_api, api_client):
        created = exercises_api.create({"workout_id": "temp-1", "name": "Squat", "sets": 3, "reps": 5})

        api_client.post.assert_not_called()
        assert TEMP_ID.match(created["id"])
        assert created["_pending"] is True
        entry = queue.get_all_pending()[0]
        assert (entry.method, entry.client_id) == ("POST", created["id"])
        assert entry.body["workout_id"] == "temp-1"

    def test_online_create_error_propagates(self, db, workouts_api, api_client):
        api_client.post.side_effect = APIError("Bad request", status=400)

        with pytest.raises(APIError):
            workouts_api.create({"name": "Leg Day"})

        assert api_client.post.call_count == 1
        assert db.workouts.count() == 0

    def test_invalid_record_rejected_before_store(self, db, queue, workouts_api, offline):
        with pytest.raises(ValidationError):
            workouts_api.create({"name": "   "})

        assert db.workouts.count() == 0
        assert queue.count() == 0

    def test_offline_weight_create_maps_to_wire(self, queue, weight_api, offline):
        weight_api.create({"date": "2024-01-15", "weight": 70})

        assert queue.get_all_pending()[0].body == {"date": "2024-01-15", "value": 70}

    def test_bodyfat_validation(self, bodyfat_api, offline):
        with pytest.raises(ValidationError) as exc_info:
            bodyfat_api.create({"date": "2024-01-15", "body_fat": 90})

        assert exc_info.value.message == "Body fat percentage must be 70% or less"


class TestUpdateAndDelete:

    def test_offline_update_merges_and_queues_put(self, db, queue, workouts_api, offline):
        db.workouts.put({"id": 5, "name": "Old", "description": "Keep"})

        updated = workouts_api.update(5, {"name": "New"})

        assert updated == {"id": 5, "name": "New", "description": "Keep", "_pending": True}
        entry = queue.get_all_pending()[0]
        assert (entry.method, entry.url, entry.body) == ("PUT", "http://api.test/workouts/5", {"name": "New"})

    def test_online_update_resolves_reconciled_id(self, db, workouts_api, api_client):
        db.save_id_mapping("workout", "temp-1", 42)
        db.workouts.put({"id": 42, "name": "Old"})
        api_client.put.return_value = {"workout_id": 42, "name": "New"}

        updated = workouts_api.update("temp-1", {"name": "New"})

        api_client.put.assert_called_once_with("/workouts/42", json={"name": "New"})
        assert updated == {"id": 42, "name": "New"}
        assert db.workouts.get(42) == {"id": 42, "name": "New"}

    def test_delete_unsynced_record_drops_queued_requests(self, db, queue, workouts_api, api_client, offline):
        created = workouts_api.create({"name": "Leg Day"})
        workouts_api.update(created["id"], {"name": "Leg Day 2"})
        assert queue.count() == 2

        assert workouts_api.delete(created["id"]) == {"success": True}

        assert db.workouts.get(created["id"]) is None
        assert queue.count() == 0
        api_client.delete.assert_not_called()

    def test_offline_delete_queues_request(self, db, queue, workouts_api, offline):
        db.workouts.put({"id": 5, "name": "Old"})

        workouts_api.delete(5)

        assert db.workouts.get(5) is None
        entry = queue.get_all_pending()[0]
        assert (entry.method, entry.url) == ("DELETE", "http://api.test/workouts/5")

    def test_online_delete(self, db, workouts_api, api_client):
        db.workouts.put({"id": 5, "name": "Old"})
        api_client.delete.return_value = None

        assert workouts_api.delete(5) == {"success": True}
        api_client.delete.assert_called_once_with("/workouts/5")
        assert db.workouts.get(5) is None

    def test_offline_update_of_reconciled_record_keeps_one_copy(self, db, queue, workouts_api, offline):
        db.save_id_mapping("workout", "temp-1", 42)
        db.workouts.put({"id": 42, "name": "Leg Day", "description": "Keep"})

        updated = workouts_api.update("temp-1", {"name": "Leg Day 2"})

        assert updated == {"id": 42, "name": "Leg Day 2", "description": "Keep", "_pending": True}
        assert [w["id"] for w in db.workouts.get_all()] == [42]
        entry = queue.get_all_pending()[0]
        assert (entry.method, entry.url) == ("PUT", "http://api.test/workouts/42")

    def test_offline_delete_of_reconciled_record_removes_server_copy(self, db, queue, workouts_api, offline):
        db.save_id_mapping("workout", "temp-1", 42)
        db.workouts.put({"id": 42, "name": "Leg Day"})

        assert workouts_api.delete("temp-1") == {"success": True}

        assert db.workouts.get_all() == []
        entry = queue.get_all_pending()[0]
        assert (entry.method, entry.url) == ("DELETE", "http://api.test/workouts/42")

    def test_online_update_referencing_unsynced_record_is_queued(self, db, queue, exercises_api, api_client):
        db.exercises.put({"id": 3, "workout_id": 1, "name": "Squat", "sets": 3, "reps": 5})

        exercises_api.update([{"id": 3, "workout_id": "temp-1"}])

        api_client.put.assert_not_called()
        assert queue.get_all_pending()[0].body == {"exercises": [{"exercise_id": 3, "workout_id": "temp-1"}]}


class TestWorkoutGet:

    def test_network_first(self, db, workouts_api, api_client):
        api_client.get.return_value = {"workout_id": 3, "name": "Fresh"}

        assert workouts_api.get(3) == {"id": 3, "name": "Fresh"}
        assert db.workouts.get(3) == {"id": 3, "name": "Fresh"}

    def test_falls_back_to_cache(self, db, workouts_api, api_client):
        db.workouts.put({"id": 3, "name": "Cached"})
        api_client.get.side_effect = NetworkError("down")

        assert workouts_api.get(3) == {"id": 3, "name": "Cached"}

    def test_offline_uncached_raises(self, workouts_api, offline):
        with pytest.raises(NetworkError):
            workouts_api.get(3)


class TestExercises:

    def test_get_by_workout_id_reads_cache(self, db, exercises_api):
        db.exercises.put({"id": 1, "workout_id": 3, "name": "Squat"})

        assert exercises_api.get_by_workout_id(3) == [{"id": 1, "workout_id": 3, "name": "Squat"}]

    def test_bulk_update_online(self, db, exercises_api, api_client):
        api_client.put.return_value = {"exercises": [
            {"exercise_id": 1, "workout_id": 3, "name": "Squat", "sets": 4, "rest": 60},
        ]}

        updated = exercises_api.update([{"id": 1, "sets": 4, "rest_seconds": 60}])

        api_client.put.assert_called_once_with(
            "/exercises", json={"exercises": [{"exercise_id": 1, "sets": 4, "rest": 60}]}
        )
        assert updated[0]["rest_seconds"] == 60
        assert db.exercises.get(1)["sets"] == 4

    def test_bulk_update_offline(self, db, queue, exercises_api, offline):
        db.exercises.put({"id": 1, "workout_id": 3, "name": "Squat", "sets": 3})

        updated = exercises_api.update([{"id": 1, "sets": 5}])

        assert updated[0]["sets"] == 5
        assert updated[0]["_pending"] is True
        entry = queue.get_all_pending()[0]
        assert entry.body == {"exercises": [{"exercise_id": 1, "sets": 5}]}
