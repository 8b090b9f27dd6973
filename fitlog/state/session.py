from typing import Any, MutableMapping, Optional

# Central registry for session-state keys used by the state containers.
SESSION_DEFAULTS = {
    "workouts": [],
    "workouts_loading": False,
    "workouts_error": None,
    "workouts_initialized": False,
    "weight_data": [],
    "bodyfat_data": [],
    "profile_loading": False,
    "profile_error": None,
    "profile_initialized": False,
}


def get_session(session: Optional[MutableMapping[str, Any]] = None) -> MutableMapping[str, Any]:
    """The given mapping, or Streamlit's session state when none is given."""
    if session is not None:
        return session
    import streamlit as st
    return st.session_state


def init_state(session: Optional[MutableMapping[str, Any]] = None) -> MutableMapping[str, Any]:
    """Fill in defaults for keys not yet present."""
    session = get_session(session)
    for k, v in SESSION_DEFAULTS.items():
        if k not in session:
            session[k] = list(v) if isinstance(v, list) else v
    return session


def clear_session(session: Optional[MutableMapping[str, Any]] = None) -> None:
    """Reset every container key to its default (logout)."""
    session = get_session(session)
    for k, v in SESSION_DEFAULTS.items():
        session[k] = list(v) if isinstance(v, list) else v
