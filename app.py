from __future__ import annotations
import os
from datetime import date
from typing import Optional

import streamlit as st

from fitlog.api import AIWorkoutClient, save_generated_workout
from fitlog.config import load_settings
from fitlog.errors import ErrorContext, FitLogError, handle_error
from fitlog.logging import get_logger, setup_logging
from fitlog.offline import StorageHandle
from fitlog.services import build_data_services
from fitlog.state import ProfileDataState, WorkoutsState, init_state
from fitlog.ui import bodyfat_chart, render_offline_indicator, weight_chart
from fitlog.ui.charts import RANGE_LABELS
from fitlog.validation import EXPERIENCE_LEVELS

logger = get_logger("fitlog.app")

# ============================================================================
# PAGE CONFIGURATION
# ============================================================================
st.set_page_config(
    page_title="FitLog",
    page_icon="🏋️",
    layout="wide",
)


@st.cache_resource
def get_storage(user_id: str, _auth_token: Optional[str]) -> StorageHandle:
    """One database, offline queue and sync thread per signed-in user."""
    setup_logging()
    settings = load_settings().for_user(user_id)
    # The sync thread has no access to st.session_state
    storage = StorageHandle.create(settings, token_provider=lambda: _auth_token)
    storage.start_background()
    return storage


# Set by the sign-in flow; FITLOG_USER_ID / FITLOG_API_TOKEN for local development.
user_id = st.session_state.get("user_id") or os.environ.get("FITLOG_USER_ID", "local")
auth_token = st.session_state.get("auth_token") or os.environ.get("FITLOG_API_TOKEN")
storage = get_storage(user_id, auth_token)
services = build_data_services(storage)
init_state(st.session_state)
workouts_state = WorkoutsState(services.workouts)
profile_state = ProfileDataState(services.weight, services.bodyfat)

st.title("🏋️ FitLog")
render_offline_indicator(storage)

tab_workouts, tab_profile, tab_ai = st.tabs(["Workouts", "Profile", "AI Generator"])

# ============================================================================
# WORKOUTS
# ============================================================================
with tab_workouts:
    workouts_state.ensure_loaded()
    if workouts_state.error:
        st.warning(workouts_state.error)

    with st.form("new_workout", clear_on_submit=True):
        name = st.text_input("Workout name")
        description = st.text_area("Description")
        if st.form_submit_button("Add workout", type="primary"):
            try:
                created = services.workouts.create({"name": name, "description": description})
                workouts_state.add_workout(created)
                st.success(f"Added {created['name']}")
            except FitLogError as e:
                handle_error(e)

    for workout in workouts_state.workouts:
        with st.expander(workout.get("name", "Workout")):
            if workout.get("description"):
                st.caption(workout["description"])
            exercises = services.exercises.get_for_workout(workout["id"])
            if exercises:
                st.dataframe(
                    [{k: e.get(k) for k in ("name", "sets", "reps", "weight")} for e in exercises],
                    use_container_width=True,
                )
            if st.button("Delete", key=f"delete_workout_{workout['id']}"):
                with ErrorContext(f"Deleting workout {workout['id']}", show_user_message=True) as ctx:
                    services.workouts.delete(workout["id"])
                if ctx.error is None:
                    workouts_state.remove_workout(workout["id"])
                    st.rerun()

    if st.button("🔄 Refresh", key="refresh_workouts"):
        workouts_state.refresh()
        st.rerun()

# ============================================================================
# PROFILE
# ============================================================================
with tab_profile:
    profile_state.ensure_loaded()
    if profile_state.error:
        st.warning(profile_state.error)

    range_key = st.selectbox(
        "Range",
        options=list(RANGE_LABELS),
        index=1,
        format_func=RANGE_LABELS.get,
    )

    col_weight, col_bodyfat = st.columns(2)
    with col_weight:
        st.plotly_chart(weight_chart(profile_state.weight_frame(), range_key), use_container_width=True)
        new_weight = st.number_input("Weight (kg)", min_value=0.0, step=0.1, key="new_weight")
        if st.button("Add weight", key="add_weight") and new_weight:
            try:
                profile_state.save_weight({"date": date.today().isoformat(), "weight": new_weight})
                st.rerun()
            except FitLogError as e:
                handle_error(e)

    with col_bodyfat:
        st.plotly_chart(bodyfat_chart(profile_state.bodyfat_frame(), range_key), use_container_width=True)
        new_bodyfat = st.number_input("Body fat (%)", min_value=0.0, step=0.1, key="new_bodyfat")
        if st.button("Add body fat", key="add_bodyfat") and new_bodyfat:
            try:
                profile_state.save_bodyfat({"date": date.today().isoformat(), "body_fat": new_bodyfat})
                st.rerun()
            except FitLogError as e:
                handle_error(e)

# ============================================================================
# AI GENERATOR
# ============================================================================
with tab_ai:
    ai = AIWorkoutClient(storage.client, storage.retry_policy, storage.connection)

    with st.form("ai_workout"):
        age = st.number_input("Age", min_value=13, max_value=120, value=30)
        level = st.selectbox("Experience level", options=list(EXPERIENCE_LEVELS))
        goal = st.text_input("Goal", value="strength")
        duration = st.slider("Duration (minutes)", min_value=10, max_value=180, value=45, step=5)
        request = st.text_area("Anything else?")
        generate = st.form_submit_button("Generate", type="primary")

    if generate:
        with st.spinner("Generating workout..."):
            try:
                st.session_state["generated_workout"] = ai.generate_workout({
                    "age": age,
                    "experience_level": level,
                    "goal": goal,
                    "duration": duration,
                    "request": request,
                })
            except FitLogError as e:
                handle_error(e)

    plan = st.session_state.get("generated_workout")
    if plan is not None:
        st.subheader(plan.name)
        st.caption(plan.description)
        st.dataframe(plan.exercises, use_container_width=True)
        if st.button("Save workout", key="save_generated"):
            with ErrorContext("Saving generated workout", show_user_message=True) as ctx:
                saved = save_generated_workout(plan, storage.workouts_api, storage.exercises_api)
            if ctx.error is None:
                workouts_state.add_workout({k: v for k, v in saved.items() if k != "exercises"})
                st.session_state.pop("generated_workout", None)
                st.success("Workout saved")
