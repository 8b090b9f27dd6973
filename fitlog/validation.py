# =============================================================================
# fitlog/validation.py
# Client-side input validation for FitLog payloads
# =============================================================================
"""
Mirrors the limits the API enforces so bad input is rejected before it is
written to the local store or queued for replay.

Field validators return a ValidationResult; the validate_*_payload helpers
raise ValidationError on the first failing field.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

import pandas as pd

from fitlog.errors import ValidationError

# Text length limits
WORKOUT_NAME_MAX = 255
EXERCISE_NAME_MAX = 255
DESCRIPTION_MAX = 1000

# Exercise limits
SETS_MIN, SETS_MAX = 1, 100
REPS_MIN, REPS_MAX = 1, 1000
LOAD_MIN, LOAD_MAX = 0, 10000

# Body metrics limits
BODY_WEIGHT_MIN, BODY_WEIGHT_MAX = 20, 500
BODY_FAT_MIN, BODY_FAT_MAX = 1, 70

# AI workout generation limits
AGE_MIN, AGE_MAX = 13, 120
DURATION_MIN, DURATION_MAX = 10, 180
EXPERIENCE_LEVELS = ("beginner", "intermediate", "advanced")


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    error: Optional[str] = None
    field: Optional[str] = None

    def raise_for_error(self, value: Any = None) -> None:
        if not self.is_valid:
            raise ValidationError(self.error or "Invalid value", field=self.field, value=value)


VALID = ValidationResult(True)


def _invalid(field: str, error: str) -> ValidationResult:
    return ValidationResult(False, error, field)


def _to_number(value: Any, integer: bool = False) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number:  # NaN
        return None
    return int(number) if integer else number


def _validate_text(value: Any, field: str, label: str, max_length: int) -> ValidationResult:
    if not value or not isinstance(value, str):
        return _invalid(field, f"{label} is required")
    trimmed = value.strip()
    if not trimmed:
        return _invalid(field, f"{label} cannot be empty")
    if len(trimmed) > max_length:
        return _invalid(field, f"{label} must be {max_length} characters or less")
    return VALID


def _validate_range(
    value: Any,
    field: str,
    label: str,
    minimum: float,
    maximum: float,
    integer: bool = False,
    unit: str = "",
) -> ValidationResult:
    number = _to_number(value, integer)
    if number is None:
        return _invalid(field, f"{label} must be a number")
    if number < minimum:
        return _invalid(field, f"{label} must be at least {minimum}{unit}")
    if number > maximum:
        return _invalid(field, f"{label} must be {maximum}{unit} or less")
    return VALID


def validate_workout_name(name: Any) -> ValidationResult:
    return _validate_text(name, "name", "Workout name", WORKOUT_NAME_MAX)


def validate_exercise_name(name: Any) -> ValidationResult:
    return _validate_text(name, "name", "Exercise name", EXERCISE_NAME_MAX)


def validate_description(description: Any) -> ValidationResult:
    """Optional field."""
    if not description:
        return VALID
    if not isinstance(description, str):
        return _invalid("description", "Description must be text")
    if len(description) > DESCRIPTION_MAX:
        return _invalid("description", f"Description must be {DESCRIPTION_MAX} characters or less")
    return VALID


def validate_sets(sets: Any) -> ValidationResult:
    return _validate_range(sets, "sets", "Sets", SETS_MIN, SETS_MAX, integer=True)


def validate_reps(reps: Any) -> ValidationResult:
    return _validate_range(reps, "reps", "Reps", REPS_MIN, REPS_MAX, integer=True)


def validate_load(weight: Any) -> ValidationResult:
    """Weight lifted in an exercise."""
    if _to_number(weight) is not None and _to_number(weight) < LOAD_MIN:
        return _invalid("weight", "Weight cannot be negative")
    return _validate_range(weight, "weight", "Weight", LOAD_MIN, LOAD_MAX)


def validate_body_weight(weight: Any) -> ValidationResult:
    return _validate_range(weight, "weight", "Weight", BODY_WEIGHT_MIN, BODY_WEIGHT_MAX)


def validate_body_fat(percentage: Any) -> ValidationResult:
    return _validate_range(
        percentage, "body_fat", "Body fat percentage", BODY_FAT_MIN, BODY_FAT_MAX, unit="%"
    )


def validate_date(value: Any) -> ValidationResult:
    """Required, parseable, and not in the future."""
    if value is None or value == "":
        return _invalid("date", "Date is required")
    parsed = pd.to_datetime(value, errors="coerce", utc=True)
    if pd.isna(parsed):
        return _invalid("date", "Invalid date format")
    if parsed > pd.Timestamp.now(tz="UTC"):
        return _invalid("date", "Date cannot be in the future")
    return VALID


def validate_age(age: Any) -> ValidationResult:
    return _validate_range(age, "age", "Age", AGE_MIN, AGE_MAX, integer=True)


def validate_experience_level(level: Any) -> ValidationResult:
    if level not in EXPERIENCE_LEVELS:
        return _invalid(
            "experience_level",
            "Experience level must be beginner, intermediate, or advanced",
        )
    return VALID


def validate_goal(goal: Any) -> ValidationResult:
    if not goal or not isinstance(goal, str) or not goal.strip():
        return _invalid("goal", "Goal is required")
    return VALID


def validate_duration(duration: Any) -> ValidationResult:
    return _validate_range(
        duration, "duration", "Duration", DURATION_MIN, DURATION_MAX, integer=True, unit=" minutes"
    )


# =============================================================================
# PAYLOADS
# =============================================================================

def _check(payload: Dict[str, Any], *checks) -> None:
    for key, validator in checks:
        validator(payload.get(key)).raise_for_error(payload.get(key))


def validate_workout_payload(payload: Dict[str, Any], partial: bool = False) -> None:
    if not partial or "name" in payload:
        _check(payload, ("name", validate_workout_name))
    _check(payload, ("description", validate_description))


def validate_exercise_payload(payload: Dict[str, Any], partial: bool = False) -> None:
    required = [
        ("name", validate_exercise_name),
        ("sets", validate_sets),
        ("reps", validate_reps),
    ]
    for key, validator in required:
        if not partial or key in payload:
            _check(payload, (key, validator))
    if payload.get("weight") is not None:
        _check(payload, ("weight", validate_load))
    _check(payload, ("description", validate_description))


def validate_weight_payload(payload: Dict[str, Any]) -> None:
    """Local form: {date, weight}."""
    _check(payload, ("date", validate_date), ("weight", validate_body_weight))


def validate_bodyfat_payload(payload: Dict[str, Any]) -> None:
    """Local form: {date, body_fat}."""
    _check(payload, ("date", validate_date), ("body_fat", validate_body_fat))


def validate_ai_params(params: Dict[str, Any]) -> None:
    _check(
        params,
        ("age", validate_age),
        ("experience_level", validate_experience_level),
        ("goal", validate_goal),
        ("duration", validate_duration),
    )
