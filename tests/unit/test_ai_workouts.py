# =============================================================================
# tests/unit/test_ai_workouts.py
# Unit Tests for AI workout generation and parsing
# =============================================================================

from unittest.mock import MagicMock

import pytest

from fitlog.api.ai_workouts import (
    AIWorkoutClient,
    GeneratedWorkout,
    normalize_structured_workout,
    parse_workout_text,
    save_generated_workout,
)
from fitlog.errors import APIError, NetworkError, ValidationError
from fitlog.offline.retry import RetryPolicy

PARAMS = {"age": 30, "experience_level": "beginner", "goal": "strength", "duration": 45}

SECTIONED_PLAN = """
Workout Name: Full Body Strength
Description: A balanced session.

1. Warm up (5 minutes):
- Jumping jacks: 2 minutes

2. Main set (3 sets of 10 reps):
- Goblet squat: 3 sets of 12 reps with 16 kg
- Push-ups
- Plank: 30-45 seconds hold

3. Cool down:
- Hamstring stretch: 30 seconds
"""


class TestParseWorkoutText:

    def test_name_and_description(self):
        workout = parse_workout_text(SECTIONED_PLAN)

        assert workout.name == "Full Body Strength"
        assert workout.description == "A balanced session."

    def test_warm_up_and_cool_down_are_skipped(self):
        names = [e["name"] for e in parse_workout_text(SECTIONED_PLAN).exercises]

        assert names == ["Goblet squat", "Push-ups", "Plank"]

    def test_details_override_section_defaults(self):
        squat = parse_workout_text(SECTIONED_PLAN).exercises[0]

        assert (squat["sets"], squat["reps"], squat["weight"]) == (3, 12, 16)

    def test_bare_line_uses_section_defaults(self):
        pushups = parse_workout_text(SECTIONED_PLAN).exercises[1]

        assert (pushups["sets"], pushups["reps"]) == (3, 10)

    def test_timed_exercise_keeps_duration_in_notes(self):
        plank = parse_workout_text(SECTIONED_PLAN).exercises[2]

        assert plank["description"].startswith("30-45 seconds")
        assert plank["sets"] == 3

    def test_compact_lines(self):
        workout = parse_workout_text("Squats - 3 x 12 - 60\nLunges - 4 x 8 - 90")

        assert workout.exercises[0] == {
            "name": "Squats",
            "sets": 3,
            "reps": 12,
            "weight": 0,
            "rest_seconds": 60,
            "muscle_group": "other",
            "description": "",
            "media_url": None,
        }
        assert workout.exercises[1]["rest_seconds"] == 90

    def test_repeat_header_sets_sets(self):
        text = "1. Circuit, repeat 4 times:\n- Burpees: 10 reps"
        exercise = parse_workout_text(text).exercises[0]

        assert (exercise["sets"], exercise["reps"]) == (4, 10)

    def test_rep_range_is_lower_bound(self):
        exercise = parse_workout_text("Exercises:\n- Curl: 3 sets of 8-12 reps").exercises[0]

        assert exercise["reps"] == 8
        assert "8-12 reps" in exercise["description"]

    @pytest.mark.parametrize("text", ["", None, "Just rest today."])
    def test_nothing_to_parse(self, text):
        workout = parse_workout_text(text)

        assert isinstance(workout, GeneratedWorkout)
        assert workout.exercises == []


class TestNormalizeStructuredWorkout:

    def test_wire_fields_mapped(self):
        workout = normalize_structured_workout({
            "name": "Push",
            "exercises": [
                {"name": "Bench", "sets": "4", "reps": "6-8", "kg": 60, "rest": "90s", "video": "v.mp4"},
                {"sets": 3},
            ],
        })

        assert workout.name == "Push"
        assert workout.description
        assert workout.exercises == [{
            "name": "Bench",
            "sets": 4,
            "reps": 6,
            "weight": 60,
            "rest_seconds": 90,
            "muscle_group": "other",
            "description": "",
            "media_url": "v.mp4",
        }]


class TestAIWorkoutClient:

    @pytest.fixture
    def ai(self, api_client, connection, no_sleep):
        return AIWorkoutClient(api_client, RetryPolicy(sleep=no_sleep), connection)

    def test_posts_wire_params(self, ai, api_client):
        api_client.post.return_value = {"workout": "Squats - 3 x 12 - 60"}

        workout = ai.generate_workout({**PARAMS, "request": " legs please "})

        api_client.post.assert_called_once_with("/ai/generate-workout", json={
            "age": 30,
            "experienceLevel": "beginner",
            "goal": "strength",
            "duration": 45,
            "request": "legs please",
        })
        assert workout.exercises[0]["name"] == "Squats"

    def test_structured_answer(self, ai, api_client):
        api_client.post.return_value = {"workout": {"name": "Legs", "exercises": [{"name": "Squat", "sets": 3}]}}

        assert ai.generate_workout(PARAMS).name == "Legs"

    def test_empty_answer_raises(self, ai, api_client):
        api_client.post.return_value = {"workout": ""}

        with pytest.raises(APIError):
            ai.generate_workout(PARAMS)

    def test_invalid_params_not_sent(self, ai, api_client):
        with pytest.raises(ValidationError):
            ai.generate_workout({**PARAMS, "age": 5})

        api_client.post.assert_not_called()

    def test_offline_raises(self, ai, api_client, offline):
        with pytest.raises(NetworkError):
            ai.generate_workout(PARAMS)

        api_client.post.assert_not_called()


class TestSaveGeneratedWorkout:

    def test_creates_workout_then_exercises(self):
        workouts_api = MagicMock()
        workouts_api.create.return_value = {"id": "temp-1", "name": "Plan"}
        exercises_api = MagicMock()
        exercises_api.create.side_effect = lambda record: {**record, "id": "temp-2"}
        workout = GeneratedWorkout("Plan", "Desc", [
            {"name": "Plank", "sets": 0, "reps": 0, "weight": 0, "description": "30 seconds"},
        ])

        saved = save_generated_workout(workout, workouts_api, exercises_api)

        workouts_api.create.assert_called_once_with({"name": "Plan", "description": "Desc"})
        record = exercises_api.create.call_args.args[0]
        assert record["workout_id"] == "temp-1"
        assert (record["sets"], record["reps"]) == (1, 1)
        assert saved["exercises"][0]["id"] == "temp-2"
