"""
AI workout generation
Requests a plan from the API and turns the answer into a savable workout
"""
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from fitlog.api.client import FitLogAPIClient
from fitlog.errors import APIError, NetworkError
from fitlog.logging import get_logger
from fitlog.offline.retry import RetryPolicy
from fitlog.validation import validate_ai_params

logger = get_logger(__name__)

DEFAULT_NAME = "AI Generated Workout"
DEFAULT_DESCRIPTION = "Workout generated for your goals."
DEFAULT_MUSCLE_GROUP = "other"

# "1. Main set (3 sets of 10 reps):"
SECTION_HEADER = re.compile(r"^\d+\.\s*(.*)")
SETS_REPS = re.compile(r"(\d+)\s*sets(?:\s*of\s*(\d+(?:-\d+)?)\s*(?:reps|repetitions))?(.*)", re.I)
REPEAT = re.compile(r"repeat\s*(\d+)\s*times", re.I)
REPS_ONLY = re.compile(r"(\d+(?:-\d+)?)\s*(?:reps|repetitions)(.*)", re.I)
KG = re.compile(r"(\d+)\s*kg", re.I)
TIME = re.compile(r"(\d+)(?:-(\d+))?\s*(seconds|second|minutes|minute)(.*)", re.I)
EXERCISE_LINE = re.compile(r"^(-|\d+\.?)\s*(.*)")
# "Squats - 3 x 12 - 60"
COMPACT_LINE = re.compile(r"^(.+?)\s*-\s*(\d+)\s*x\s*(\d+)\s*-\s*(\d+)", re.I)
NON_EXERCISE_MARKERS = ("warm up", "warm-up", "cool down", "stretching")


@dataclass
class GeneratedWorkout:
    """A generated plan with exercises in the local exercise form."""
    name: str = DEFAULT_NAME
    description: str = DEFAULT_DESCRIPTION
    exercises: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "exercises": list(self.exercises),
        }


def _first_int(value: Any, default: int = 0) -> int:
    """Lower bound of "8-12" style ranges; plain numbers pass through."""
    if value is None:
        return default
    match = re.search(r"\d+", str(value))
    return int(match.group()) if match else default


def _exercise(
    name: str,
    sets: int = 0,
    reps: int = 0,
    weight: int = 0,
    rest_seconds: Optional[int] = None,
    notes: str = "",
    muscle_group: str = DEFAULT_MUSCLE_GROUP,
    media_url: Optional[str] = None,
) -> Dict[str, Any]:
    return {
        "name": name,
        "sets": sets,
        "reps": reps,
        "weight": weight,
        "rest_seconds": rest_seconds,
        "muscle_group": muscle_group,
        "description": notes,
        "media_url": media_url,
    }


def _parse_details(details: str, current_sets: Optional[int], current_reps: Optional[str]) -> Dict[str, Any]:
    sets: Optional[int] = None
    reps: Any = 0
    notes = ""

    match = SETS_REPS.search(details)
    if match:
        sets = int(match.group(1))
        reps = match.group(2) or 0
        notes = (match.group(3) or "").strip()
    else:
        match = REPS_ONLY.search(details)
        if match:
            reps = match.group(1)
            notes = (match.group(2) or "").strip()

    kg_match = KG.search(details)
    weight = int(kg_match.group(1)) if kg_match else 0

    time_match = TIME.search(details)
    if time_match:
        low, high, unit = time_match.group(1), time_match.group(2), time_match.group(3).lower()
        duration = f"{low}-{high}" if high else low
        reps = 0
        trailing = (time_match.group(4) or "").strip()
        notes = f"{duration} {unit} {trailing}".strip()
    elif isinstance(reps, str) and "-" in reps:
        notes = f"{reps} reps {notes}".strip()

    if sets is None:
        sets = current_sets if current_sets is not None else 0
    if not reps:
        reps = current_reps if current_reps is not None else 0

    return {"sets": sets, "reps": _first_int(reps), "weight": weight, "notes": notes}


def parse_workout_text(text: str) -> GeneratedWorkout:
    """
    Parse a free-text plan into a GeneratedWorkout.

    Understands two layouts:
    - "Squats - 3 x 12 - 60" lines (name, sets x reps, rest seconds)
    - numbered section headers ("2. Main set, 3 sets of 10 reps:") followed
      by "- Name: details" lines; headers set the default sets/reps and
      warm-up, cool-down and stretching lines end the current section
    """
    workout = GeneratedWorkout()
    if not text or not isinstance(text, str):
        return workout

    lines = [line.strip() for line in text.split("\n") if line.strip()]
    current_sets: Optional[int] = None
    current_reps: Optional[str] = None
    in_section = False

    for line in lines:
        compact = COMPACT_LINE.match(line)
        if compact and not line.startswith("-"):
            workout.exercises.append(_exercise(
                compact.group(1).strip(),
                sets=int(compact.group(2)),
                reps=int(compact.group(3)),
                rest_seconds=int(compact.group(4)),
            ))
            continue

        lowered = line.lower()
        if lowered.startswith("workout name:"):
            workout.name = line.split(":", 1)[1].strip() or workout.name
            continue
        if lowered.startswith("description:"):
            workout.description = line.split(":", 1)[1].strip() or workout.description
            continue

        header = SECTION_HEADER.match(line)
        if header:
            title = header.group(1).strip()
            match = SETS_REPS.search(title)
            if match:
                current_sets = int(match.group(1))
                current_reps = match.group(2)
            else:
                repeat = REPEAT.search(title)
                if repeat:
                    current_sets = int(repeat.group(1))
            in_section = not any(marker in title.lower() for marker in NON_EXERCISE_MARKERS)
            continue

        if any(marker in lowered for marker in NON_EXERCISE_MARKERS):
            in_section = False
            continue

        if lowered.startswith("exercises:"):
            in_section = True
            continue

        if not in_section:
            continue

        exercise_line = EXERCISE_LINE.match(line)
        if not exercise_line:
            continue

        name_part, _, details = exercise_line.group(2).partition(":")
        parsed = _parse_details(details.strip(), current_sets, current_reps) if details else {
            "sets": current_sets or 0,
            "reps": _first_int(current_reps),
            "weight": 0,
            "notes": "",
        }
        workout.exercises.append(_exercise(name_part.strip(), **parsed))

    return workout


def normalize_structured_workout(data: Dict[str, Any]) -> GeneratedWorkout:
    """Convert a structured {name, description, exercises} answer."""
    exercises = []
    for item in data.get("exercises") or []:
        if not isinstance(item, dict) or not item.get("name"):
            continue
        exercises.append(_exercise(
            str(item["name"]).strip(),
            sets=_first_int(item.get("sets")),
            reps=_first_int(item.get("reps")),
            weight=_first_int(item.get("kg", item.get("weight"))),
            rest_seconds=_first_int(item.get("rest"), default=0) or None,
            notes=str(item.get("notes") or ""),
            muscle_group=item.get("muscle_group") or DEFAULT_MUSCLE_GROUP,
            media_url=item.get("video") or item.get("media_URL"),
        ))
    return GeneratedWorkout(
        name=data.get("name") or DEFAULT_NAME,
        description=data.get("description") or DEFAULT_DESCRIPTION,
        exercises=exercises,
    )


class AIWorkoutClient:
    """
    Client for POST /ai/generate-workout.

    Usage:
        ai = AIWorkoutClient(client)
        plan = ai.generate_workout({"age": 30, "experience_level": "beginner",
                                    "goal": "strength", "duration": 45})
    """

    PATH = "/ai/generate-workout"

    def __init__(
        self,
        client: FitLogAPIClient,
        retry_policy: Optional[RetryPolicy] = None,
        connection=None,
    ):
        self.client = client
        self.retry_policy = retry_policy or RetryPolicy()
        self.connection = connection

    def generate_workout(self, params: Dict[str, Any]) -> GeneratedWorkout:
        """
        Generate a workout plan.

        Args:
            params: age, experience_level, goal, duration and an optional
                free-text request

        Raises:
            ValidationError: Invalid parameters
            NetworkError: Offline or unreachable
            APIError: The server rejected the request or answered nonsense
        """
        validate_ai_params(params)
        if self.connection is not None and not self.connection.is_online:
            raise NetworkError("AI workout generation needs a connection")

        body = {
            "age": int(params["age"]),
            "experienceLevel": params["experience_level"],
            "goal": params["goal"].strip(),
            "duration": int(params["duration"]),
            "request": (params.get("request") or "").strip(),
        }
        data = self.retry_policy.run(
            lambda: self.client.post(self.PATH, json=body),
            connection=self.connection,
        )

        workout = data.get("workout") if isinstance(data, dict) else None
        if isinstance(workout, dict):
            result = normalize_structured_workout(workout)
        elif isinstance(workout, str) and workout.strip():
            result = parse_workout_text(workout)
        else:
            raise APIError("AI service returned an empty workout", endpoint=self.PATH)

        logger.info(f"Generated workout '{result.name}' with {len(result.exercises)} exercises")
        return result


def save_generated_workout(workout: GeneratedWorkout, workouts_api, exercises_api) -> Dict[str, Any]:
    """
    Persist a generated plan through the offline-aware wrappers.

    Works offline too: the exercises reference the workout's temporary id,
    which the queue rewrites once the workout has been created server-side.

    Returns:
        The created workout record with its created exercises under "exercises"
    """
    created = workouts_api.create({"name": workout.name, "description": workout.description})
    workout_id = created["id"]

    saved = []
    for exercise in workout.exercises:
        record = {
            **exercise,
            "sets": max(_first_int(exercise.get("sets")), 1),
            "reps": max(_first_int(exercise.get("reps")), 1),
            "workout_id": workout_id,
        }
        saved.append(exercises_api.create(record))

    logger.info(f"Saved generated workout {workout_id} with {len(saved)} exercises")
    return {**created, "exercises": saved}
