# =============================================================================
# tests/integration/test_offline_sync_flow.py
# Integration Tests for the offline write -> reconnect -> replay flow
# =============================================================================

import pytest

from fitlog.config import FitLogSettings
from fitlog.offline.connection_manager import ConnectionManager
from fitlog.offline.storage import StorageHandle
from fitlog.services.data_service import build_data_services
from fitlog.state import WorkoutsState


class FakeBackend:
    """Answers session.request calls the way the REST API would."""

    def __init__(self, make_response):
        self.make_response = make_response
        self.calls = []
        self.next_id = {"workout": 10, "exercise": 20}
        self.fail_next = 0

    def __call__(self, method, url, json=None, headers=None, timeout=None):
        self.calls.append((method, url, json))
        if self.fail_next:
            self.fail_next -= 1
            return self.make_response(503, {"error": "unavailable"}, reason="Service Unavailable")

        path = url.replace("http://api.test", "")
        if method == "POST" and path == "/workouts":
            return self.make_response(201, {"workout_id": self._mint("workout"), **json})
        if method == "POST" and path == "/exercises":
            return self.make_response(201, {"exercise_id": self._mint("exercise"), **json})
        if method == "PUT" and path.startswith("/workouts/"):
            return self.make_response(200, {"workout_id": int(path.rsplit("/", 1)[1]), **json})
        if method == "GET" and path == "/workouts":
            return self.make_response(200, [{"workout_id": 10, "name": "Legs"}])
        return self.make_response(404, {"error": "not found"}, reason="Not Found")

    def _mint(self, entity):
        value = self.next_id[entity]
        self.next_id[entity] += 1
        return value


class TestOfflineSyncFlow:
    """
    Tests the flow:
    1. Writes made offline land in the local store under temporary ids
    2. Reconnecting drains the queue in order
    3. Temporary ids are swapped for server ids in later requests
    4. The local store ends up keyed by server ids
    """

    @pytest.fixture
    def backend(self, make_response):
        return FakeBackend(make_response)

    @pytest.fixture
    def storage(self, tmp_path, mock_session, no_sleep, backend):
        mock_session.request.side_effect = backend
        connection = ConnectionManager(probe=lambda: True)
        connection.check_connection()
        handle = StorageHandle.create(
            FitLogSettings(api_base_url="http://api.test", db_path=str(tmp_path / "fitlog.db")),
            token_provider=lambda: "tok",
            session=mock_session,
            connection=connection,
            sleep=no_sleep,
        )
        yield handle
        handle.close()

    def test_offline_session_replays_with_server_ids(self, storage, backend):
        storage.connection.force_offline()

        workout = storage.workouts_api.create({"name": "Leg Day"})
        exercise = storage.exercises_api.create({
            "name": "Squat", "sets": 3, "reps": 10, "workout_id": workout["id"],
        })
        storage.workouts_api.update(workout["id"], {"name": "Legs"})

        assert workout["id"].startswith("temp-")
        assert backend.calls == []
        assert storage.queue.count() == 3

        storage.connection.force_online()

        assert [(m, u) for m, u, _ in backend.calls] == [
            ("POST", "http://api.test/workouts"),
            ("POST", "http://api.test/exercises"),
            ("PUT", "http://api.test/workouts/10"),
        ]
        assert backend.calls[1][2]["workout_id"] == 10
        assert storage.queue.count() == 0

        db = storage.db
        assert db.workouts.get(workout["id"]) is None
        assert db.workouts.get(10) == {"id": 10, "name": "Legs"}
        assert db.exercises.get(exercise["id"]) is None
        assert db.exercises.get(20)["workout_id"] == 10
        assert db.get_id_mappings() == {workout["id"]: 10, exercise["id"]: 20}

    def test_transient_failure_stays_queued_until_next_drain(self, storage, backend):
        storage.connection.force_offline()
        storage.workouts_api.create({"name": "Push"})
        backend.fail_next = 1

        storage.connection.force_online()

        assert storage.queue.count() == 1
        assert storage.queue.get_all_pending()[0].retry_count == 1

        result = storage.sync_engine.sync_now()

        assert result.to_dict() == {"success": 1, "failed": 0}
        assert storage.db.workouts.get(10)["name"] == "Push"

    def test_deleting_unsynced_workout_sends_nothing(self, storage, backend):
        storage.connection.force_offline()
        workout = storage.workouts_api.create({"name": "Mistake"})

        storage.workouts_api.delete(workout["id"])
        storage.connection.force_online()

        assert backend.calls == []
        assert storage.db.workouts.get_all() == []

    def test_state_container_reads_through_services(self, storage, backend):
        services = build_data_services(storage)
        state = WorkoutsState(services.workouts, session={})

        workouts = state.refresh()

        assert workouts == [{"id": 10, "name": "Legs"}]
        assert storage.db.workouts.get(10) == {"id": 10, "name": "Legs"}
        assert state.error is None

    def test_ids_held_from_before_reconnect_keep_working(self, storage, backend):
        storage.connection.force_offline()
        workout = storage.workouts_api.create({"name": "Leg Day"})
        storage.connection.force_online()

        storage.exercises_api.create({
            "name": "Squat", "sets": 3, "reps": 5, "workout_id": workout["id"],
        })
        storage.connection.force_offline()
        storage.workouts_api.update(workout["id"], {"name": "Leg Day 2"})

        assert backend.calls[1][:2] == ("POST", "http://api.test/exercises")
        assert backend.calls[1][2]["workout_id"] == 10
        assert [w["id"] for w in storage.db.workouts.get_all()] == [10]
        assert storage.queue.get_all_pending()[0].url == "http://api.test/workouts/10"
