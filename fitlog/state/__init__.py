"""
FitLog state containers
Session-backed records for the UI with once-per-session loading
"""
from fitlog.offline.cancellation import CancellationToken

from .container import StateContainer
from .profile_state import ProfileDataState
from .session import SESSION_DEFAULTS, clear_session, init_state
from .workouts_state import WorkoutsState

__all__ = [
    "CancellationToken",
    "StateContainer",
    "ProfileDataState",
    "WorkoutsState",
    "SESSION_DEFAULTS",
    "clear_session",
    "init_state",
]
