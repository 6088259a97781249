"""Streamlit dashboard for the GuessNumber game service."""
import os

import streamlit as st
import pandas as pd
import requests
import plotly.express as px

# Configuration: prioritize Streamlit secrets, then env var, then localhost fallback
def get_backend_url():
    """Get backend URL from secrets, env var, or fallback to localhost."""
    try:
        if hasattr(st, "secrets") and "BACKEND_URL" in st.secrets:
            return st.secrets["BACKEND_URL"].rstrip("/")
    except FileNotFoundError:
        pass
    env_url = os.getenv("BACKEND_URL")
    if env_url:
        return env_url.rstrip("/")
    return "http://127.0.0.1:8000"

API_BASE_URL = get_backend_url()

st.set_page_config(
    page_title="GuessNumber",
    page_icon="🎯",
    layout="wide",
)

st.title("🎯 GuessNumber Dashboard")


def check_backend_health():
    """Check if backend is running (longer timeout for cloud cold starts)."""
    try:
        response = requests.get(f"{API_BASE_URL}/health", timeout=10)
        return response.status_code == 200 and response.json().get("status") == "ok"
    except requests.exceptions.RequestException:
        return False


def api_error(response):
    """Turn an error response into a readable message."""
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    detail = body.get("detail", body)
    kind = body.get("error")
    return f"{kind}: {detail}" if kind else str(detail)


def start_game(min_range=None, max_range=None):
    """Start a game; returns (session, error)."""
    payload = {}
    if min_range is not None:
        payload["min_range"] = min_range
    if max_range is not None:
        payload["max_range"] = max_range
    try:
        response = requests.post(f"{API_BASE_URL}/sessions", json=payload, timeout=5)
    except requests.exceptions.RequestException as e:
        return None, str(e)
    if response.status_code != 201:
        return None, api_error(response)
    return response.json(), None


def submit_guess(game_id: str, guess: int):
    """Submit a guess; returns (result, error)."""
    try:
        response = requests.post(
            f"{API_BASE_URL}/sessions/{game_id}/guesses",
            json={"guess": guess},
            timeout=5,
        )
    except requests.exceptions.RequestException as e:
        return None, str(e)
    if response.status_code != 200:
        return None, api_error(response)
    return response.json(), None


def get_session(game_id: str):
    try:
        response = requests.get(f"{API_BASE_URL}/sessions/{game_id}", timeout=5)
        if response.status_code == 200:
            return response.json()
        return None
    except requests.exceptions.RequestException:
        return None


def rate_match(game_id: str, rating: int):
    try:
        response = requests.post(
            f"{API_BASE_URL}/sessions/{game_id}/rating",
            json={"difficulty_rating": rating},
            timeout=5,
        )
    except requests.exceptions.RequestException as e:
        return str(e)
    if response.status_code != 200:
        return api_error(response)
    return None


def get_statistics():
    try:
        response = requests.get(f"{API_BASE_URL}/statistics", timeout=5)
        if response.status_code == 200:
            return response.json()
        return None
    except requests.exceptions.RequestException:
        return None


def get_best_scores(limit: int = 10):
    try:
        response = requests.get(f"{API_BASE_URL}/best-scores", params={"limit": limit}, timeout=5)
        if response.status_code == 200:
            return response.json()
        return []
    except requests.exceptions.RequestException:
        return []


def get_history(limit: int = 100):
    try:
        response = requests.get(f"{API_BASE_URL}/history", params={"limit": limit}, timeout=5)
        if response.status_code == 200:
            return response.json()
        return []
    except requests.exceptions.RequestException:
        return []


def run_cleanup(max_age_hours: float, admin_key: str):
    try:
        response = requests.post(
            f"{API_BASE_URL}/maintenance/cleanup",
            params={"max_age_hours": max_age_hours},
            headers={"X-ADMIN-KEY": admin_key},
            timeout=10,
        )
    except requests.exceptions.RequestException as e:
        return None, str(e)
    if response.status_code != 200:
        return None, api_error(response)
    return response.json()["removed"], None


# Sidebar
st.sidebar.header("Controls")

backend_ok = check_backend_health()
if backend_ok:
    st.sidebar.markdown("**Backend:** :green_circle: Connected")
else:
    st.sidebar.markdown("**Backend:** :red_circle: Unreachable")
    st.warning("Backend unreachable (may be waking up or misconfigured). Refresh the page to retry.")
st.sidebar.caption(f"`{API_BASE_URL}`")

st.sidebar.subheader("New Game")
use_custom_range = st.sidebar.checkbox("Custom range", value=False)
min_range = max_range = None
if use_custom_range:
    min_range = st.sidebar.number_input("Min", value=1, step=1)
    max_range = st.sidebar.number_input("Max", value=100, step=1)

if st.sidebar.button("Start Game", disabled=not backend_ok):
    session, error = start_game(
        int(min_range) if min_range is not None else None,
        int(max_range) if max_range is not None else None,
    )
    if error:
        st.sidebar.error(error)
    else:
        st.session_state["game_id"] = session["game_id"]
        st.session_state["last_result"] = None
        st.rerun()

st.sidebar.subheader("Maintenance")
max_age = st.sidebar.number_input("Max age (hours)", min_value=0.0, value=24.0, step=1.0)
admin_key = st.sidebar.text_input("Admin key", type="password")
if st.sidebar.button("Clean Up Stale Games", disabled=not backend_ok or not admin_key):
    removed, error = run_cleanup(max_age, admin_key)
    if error:
        st.sidebar.error(error)
    else:
        st.sidebar.success(f"Removed {removed} stale game(s).")

# Current game
game_id = st.session_state.get("game_id")
if game_id:
    session = get_session(game_id)
    if session is None:
        st.error(f"Game `{game_id}` is no longer available.")
        st.session_state.pop("game_id", None)
    else:
        st.subheader(f"Game `{game_id}`")
        st.caption(f"Guess a number between {session['min_range']} and {session['max_range']}.")

        col1, col2, col3 = st.columns(3)
        with col1:
            st.metric("Attempts", session["attempts"])
        with col2:
            st.metric("Wrong in a row", session["consecutive_incorrect_attempts"])
        with col3:
            st.metric("Hints used", session["hints_used"])

        last_result = st.session_state.get("last_result")
        if last_result:
            if last_result["feedback"] == "EQUAL":
                st.success(f"{last_result['message']} (attempt {last_result['attempt_order']})")
            else:
                st.info(f"{last_result['feedback']}: {last_result['message']}")
            if last_result.get("hint"):
                st.warning(f"Hint: {last_result['hint']['hint_text']}")

        if session["game_state"] == "in_progress":
            with st.form("guess_form", clear_on_submit=True):
                guess = st.number_input(
                    "Your guess",
                    min_value=session["min_range"],
                    max_value=session["max_range"],
                    step=1,
                )
                if st.form_submit_button("Guess"):
                    result, error = submit_guess(game_id, int(guess))
                    if error:
                        st.error(error)
                    else:
                        st.session_state["last_result"] = result
                        st.rerun()
        else:
            st.markdown(f"**Finished in:** `{session['total_time_elapsed']:.1f}s`")
            rating = st.slider("How hard was it?", min_value=1, max_value=5, value=3)
            if st.button("Rate Match"):
                error = rate_match(game_id, rating)
                if error:
                    st.error(error)
                else:
                    st.success("Thanks for rating!")

        if session["attempt_history"]:
            st.dataframe(
                pd.DataFrame(session["attempt_history"]),
                use_container_width=True,
                hide_index=True,
            )

    st.divider()

# Statistics
st.subheader("Statistics")
stats = get_statistics() if backend_ok else None
if stats is None:
    st.info("Statistics unavailable.")
else:
    col1, col2, col3, col4 = st.columns(4)
    with col1:
        st.metric("Total Games", stats["total_games"])
    with col2:
        st.metric("Completed", stats["completed_games"])
    with col3:
        avg_attempts = stats["avg_attempts"]
        st.metric("Avg Attempts", f"{avg_attempts:.2f}" if avg_attempts is not None else "-")
    with col4:
        avg_time = stats["avg_time_seconds"]
        st.metric("Avg Time", f"{avg_time:.1f}s" if avg_time is not None else "-")

col_left, col_right = st.columns(2)

with col_left:
    st.subheader("Best Scores")
    scores = get_best_scores() if backend_ok else []
    if scores:
        df_scores = pd.DataFrame(scores)
        st.dataframe(
            df_scores[["game_id", "attempts", "total_time_formatted", "difficulty_rating", "end_time"]],
            use_container_width=True,
            hide_index=True,
        )
    else:
        st.info("No finished games yet.")

with col_right:
    st.subheader("Attempts per Finished Game")
    history = get_history() if backend_ok else []
    if history:
        df_history = pd.DataFrame(history)
        attempt_counts = df_history["attempts"].value_counts().sort_index()
        fig_attempts = px.bar(
            x=attempt_counts.index,
            y=attempt_counts.values,
            labels={"x": "Attempts", "y": "Games"},
            title="Match Outcomes",
        )
        fig_attempts.update_layout(showlegend=False)
        st.plotly_chart(fig_attempts, use_container_width=True)
    else:
        st.info("Match history is empty.")

# Footer
st.sidebar.divider()
st.sidebar.caption("GuessNumber v0.1.0")
