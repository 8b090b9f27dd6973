# =============================================================================
# tests/unit/test_validation.py
# Unit Tests for client-side validation
# =============================================================================

from datetime import date, timedelta

import pytest

from fitlog.errors import ValidationError
from fitlog import validation as v


class TestFieldValidators:

    @pytest.mark.parametrize("validator,value,message", [
        (v.validate_workout_name, "", "Workout name is required"),
        (v.validate_workout_name, "   ", "Workout name cannot be empty"),
        (v.validate_workout_name, "x" * 256, "Workout name must be 255 characters or less"),
        (v.validate_sets, 0, "Sets must be at least 1"),
        (v.validate_sets, 101, "Sets must be 100 or less"),
        (v.validate_reps, "abc", "Reps must be a number"),
        (v.validate_load, -5, "Weight cannot be negative"),
        (v.validate_body_weight, 501, "Weight must be 500 or less"),
        (v.validate_body_fat, 0.5, "Body fat percentage must be at least 1%"),
        (v.validate_age, 12, "Age must be at least 13"),
        (v.validate_duration, 200, "Duration must be 180 minutes or less"),
        (v.validate_experience_level, "expert",
         "Experience level must be beginner, intermediate, or advanced"),
        (v.validate_goal, " ", "Goal is required"),
        (v.validate_date, "", "Date is required"),
        (v.validate_date, "not a date", "Invalid date format"),
    ])
    def test_invalid_values(self, validator, value, message):
        result = validator(value)

        assert not result.is_valid
        assert result.error == message

    @pytest.mark.parametrize("validator,value", [
        (v.validate_workout_name, "Leg Day"),
        (v.validate_sets, "3"),
        (v.validate_reps, 12),
        (v.validate_load, 0),
        (v.validate_body_weight, 70.5),
        (v.validate_body_fat, 18),
        (v.validate_description, None),
        (v.validate_date, "2024-01-15"),
        (v.validate_experience_level, "beginner"),
    ])
    def test_valid_values(self, validator, value):
        assert validator(value).is_valid

    def test_future_date_rejected(self):
        tomorrow = (date.today() + timedelta(days=2)).isoformat()

        assert v.validate_date(tomorrow).error == "Date cannot be in the future"

    def test_long_description_rejected(self):
        assert not v.validate_description("x" * 1001).is_valid


class TestPayloadValidators:

    def test_raises_validation_error_with_field(self):
        with pytest.raises(ValidationError) as exc_info:
            v.validate_exercise_payload({"name": "Squat", "sets": 0, "reps": 10})

        assert exc_info.value.field == "sets"
        assert exc_info.value.message == "Sets must be at least 1"

    def test_partial_update_only_checks_given_fields(self):
        v.validate_workout_payload({"description": "New notes"}, partial=True)
        v.validate_exercise_payload({"reps": 8}, partial=True)

    def test_full_create_requires_name(self):
        with pytest.raises(ValidationError):
            v.validate_workout_payload({"description": "No name"})

    def test_weight_and_bodyfat_payloads(self):
        v.validate_weight_payload({"date": "2024-01-15", "weight": 70})
        v.validate_bodyfat_payload({"date": "2024-01-15", "body_fat": 15})

        with pytest.raises(ValidationError):
            v.validate_weight_payload({"date": "2024-01-15", "weight": 10})

    def test_ai_params(self):
        v.validate_ai_params({"age": 30, "experience_level": "advanced", "goal": "strength", "duration": 45})

        with pytest.raises(ValidationError) as exc_info:
            v.validate_ai_params({"age": 30, "experience_level": "advanced", "goal": "strength", "duration": 5})
        assert exc_info.value.field == "duration"
