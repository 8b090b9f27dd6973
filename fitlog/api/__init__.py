"""
FitLog API package
REST client and AI workout generation
"""
from .client import FitLogAPIClient
from .ai_workouts import AIWorkoutClient, GeneratedWorkout, parse_workout_text, save_generated_workout

__all__ = [
    "FitLogAPIClient",
    "AIWorkoutClient",
    "GeneratedWorkout",
    "parse_workout_text",
    "save_generated_workout",
]
