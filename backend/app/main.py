"""FastAPI application for the GuessNumber game service."""
import logging
import os
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, Depends, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from .configuration import activate_configuration, get_active_configuration
from .db import ensure_schema, get_db
from .errors import GameError
from .schemas import (
    CreateSessionRequest,
    GuessRequest,
    RatingRequest,
    HealthResponse,
    SessionResponse,
    SessionDetailResponse,
    GuessResponse,
    HintIssueResponse,
    MatchHistoryResponse,
    StatisticsResponse,
    BestScoreEntry,
    CleanupResponse,
    ConfigurationRequest,
    ConfigurationResponse,
)
from .settings import ADMIN_KEY, LOG_LEVEL, STALE_SESSION_MAX_AGE_HOURS
from .store import GameSessionStore

logger = logging.getLogger(__name__)

_store: Optional[GameSessionStore] = None


def get_store() -> GameSessionStore:
    """Dependency that provides the process-wide game store."""
    global _store
    if _store is None:
        _store = GameSessionStore()
    return _store


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ensure_schema()
    store = get_store()
    logger.info(
        "GuessNumber API ready (range %d..%d, hint trigger %s)",
        store.config.min_range, store.config.max_range, store.config.hint_trigger_count,
    )
    yield


app = FastAPI(title="GuessNumber API", version="0.1.0", lifespan=lifespan)

# CORS configuration
_allowed_origins_env = os.getenv("ALLOWED_ORIGINS")
if _allowed_origins_env:
    allowed_origins = [origin.strip() for origin in _allowed_origins_env.split(",")]
else:
    allowed_origins = ["http://localhost:8501"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(GameError)
async def handle_game_error(request: Request, exc: GameError):
    """Rejected game actions become JSON errors naming the error kind."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc), "error": exc.kind},
    )


def require_admin_key(x_admin_key: Optional[str] = Header(None)):
    if not ADMIN_KEY or x_admin_key != ADMIN_KEY:
        raise HTTPException(status_code=403, detail="Invalid or missing admin key")


@app.get("/health", response_model=HealthResponse)
def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


# Game sessions

@app.post("/sessions", response_model=SessionResponse, status_code=201)
def create_session(
    body: Optional[CreateSessionRequest] = None,
    store: GameSessionStore = Depends(get_store),
):
    """Start a new game.  The secret number is never returned."""
    body = body or CreateSessionRequest()
    return store.create_session(
        min_range=body.min_range,
        max_range=body.max_range,
        secret_number=body.secret_number,
        game_id=body.game_id,
    )


@app.get("/sessions/{game_id}", response_model=SessionDetailResponse)
def get_session(game_id: str, store: GameSessionStore = Depends(get_store)):
    """Session state with its attempt and hint history."""
    return store.get_session_details(game_id)


@app.post("/sessions/{game_id}/guesses", response_model=GuessResponse)
def submit_guess(
    game_id: str,
    body: GuessRequest,
    store: GameSessionStore = Depends(get_store),
):
    """Submit a guess.  A wrong guess may come back with a hint once the
    streak of wrong guesses reaches the configured trigger."""
    result = store.submit_guess(game_id, body.guess, with_hint=True)
    session = result.session
    return GuessResponse(
        game_id=game_id,
        feedback=result.feedback,
        attempt_order=result.attempt_order,
        message=result.message,
        attempts=session.attempts,
        game_state=session.game_state,
        total_time_elapsed=session.total_time_elapsed,
        hint=result.hint,
    )


@app.post("/sessions/{game_id}/hints", response_model=HintIssueResponse)
def request_hint(game_id: str, store: GameSessionStore = Depends(get_store)):
    """Ask for a hint; only granted once the wrong-guess streak is long enough."""
    hint = store.maybe_issue_hint(game_id)
    return HintIssueResponse(game_id=game_id, issued=hint is not None, hint=hint)


@app.post("/sessions/{game_id}/rating", response_model=MatchHistoryResponse)
def rate_match(
    game_id: str,
    body: RatingRequest,
    store: GameSessionStore = Depends(get_store),
):
    return store.rate_match(game_id, body.difficulty_rating)


# Aggregates

@app.get("/statistics", response_model=StatisticsResponse)
def get_statistics(store: GameSessionStore = Depends(get_store)):
    return store.get_statistics()


@app.get("/best-scores", response_model=List[BestScoreEntry])
def best_scores(
    limit: Optional[int] = Query(None, ge=1, le=100),
    store: GameSessionStore = Depends(get_store),
):
    """Finished games, fewest attempts first, ties broken by elapsed time."""
    return store.best_scores(limit)


@app.get("/history", response_model=List[MatchHistoryResponse])
def match_history(
    limit: int = Query(50, ge=1, le=500),
    store: GameSessionStore = Depends(get_store),
):
    return store.match_history(limit)


# Maintenance and configuration

@app.post("/maintenance/cleanup", response_model=CleanupResponse)
def cleanup_stale(
    max_age_hours: float = Query(STALE_SESSION_MAX_AGE_HOURS, ge=0),
    store: GameSessionStore = Depends(get_store),
    _: None = Depends(require_admin_key),
):
    """Remove unfinished games older than ``max_age_hours``.

    Requires X-ADMIN-KEY header matching the ADMIN_KEY env var.
    """
    removed = store.cleanup_stale(max_age_hours)
    return CleanupResponse(removed=removed, max_age_hours=max_age_hours)


@app.get("/configuration", response_model=ConfigurationResponse)
def get_configuration(db: Session = Depends(get_db)):
    """The configuration new games are created with.  Read-only; the
    default row is seeded when the store loads at startup."""
    row = get_active_configuration(db)
    if row is None:
        raise HTTPException(status_code=404, detail="No active game configuration")
    return row


@app.put("/configuration", response_model=ConfigurationResponse)
def update_configuration(
    body: ConfigurationRequest,
    db: Session = Depends(get_db),
    store: GameSessionStore = Depends(get_store),
    _: None = Depends(require_admin_key),
):
    """Activate a new configuration.

    Requires X-ADMIN-KEY header matching the ADMIN_KEY env var.  Running
    games keep the range they were created with.
    """
    row = activate_configuration(
        db,
        min_range=body.min_range,
        max_range=body.max_range,
        custom_message_lower=body.custom_message_lower,
        custom_message_higher=body.custom_message_higher,
        custom_message_equal=body.custom_message_equal,
        hint_trigger_count=body.hint_trigger_count,
    )
    store.reload_configuration()
    return row
