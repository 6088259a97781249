"""Pydantic schemas for request/response validation."""
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict

from .rules import Feedback, GameState


class CreateSessionRequest(BaseModel):
    """Schema for starting a new game.  Omitted fields fall back to the
    active configuration (range) or a random draw (secret)."""
    game_id: Optional[str] = Field(None, min_length=1, max_length=36)
    min_range: Optional[int] = None
    max_range: Optional[int] = None
    secret_number: Optional[int] = None


class GuessRequest(BaseModel):
    guess: int


class RatingRequest(BaseModel):
    difficulty_rating: int = Field(..., ge=1, le=5)


class HealthResponse(BaseModel):
    """Response for health check."""
    status: str


class SessionResponse(BaseModel):
    """Public view of a game session.  Never carries the secret number."""
    model_config = ConfigDict(from_attributes=True)

    game_id: str
    attempts: int
    start_time: str
    end_time: Optional[str] = None
    game_state: GameState
    total_time_elapsed: Optional[float] = None
    min_range: int
    max_range: int
    consecutive_incorrect_attempts: int
    hints_used: int
    created_at: str
    updated_at: str


class SessionSnapshot(SessionResponse):
    """Full session state as returned by the store."""
    secret_number: int


class AttemptResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    attempt_order: int
    guess_number: int
    feedback: Feedback
    attempt_time: str


class HintResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    hint_text: str
    hint_type: Optional[str] = None
    used_at: str


class SessionDetailResponse(SessionResponse):
    """Session plus its attempt and hint history."""
    attempt_history: List[AttemptResponse] = []
    hint_history: List[HintResponse] = []
    last_attempt_order: Optional[int] = None


class SessionDetailSnapshot(SessionDetailResponse):
    secret_number: int


class GuessResult(BaseModel):
    """Outcome of one accepted guess."""
    feedback: Feedback
    attempt_order: int
    message: str
    session: SessionSnapshot
    hint: Optional[HintResponse] = None


class GuessResponse(BaseModel):
    game_id: str
    feedback: Feedback
    attempt_order: int
    message: str
    attempts: int
    game_state: GameState
    total_time_elapsed: Optional[float] = None
    hint: Optional[HintResponse] = None


class HintIssueResponse(BaseModel):
    game_id: str
    issued: bool
    hint: Optional[HintResponse] = None


class MatchHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    history_id: str
    game_id: str
    attempts: int
    total_time_elapsed: float
    difficulty_rating: Optional[int] = None
    saved_at: str


class StatisticsResponse(BaseModel):
    """Aggregate statistics.  Averages and min/max are null when there is
    nothing to aggregate; counts are never null."""
    total_games: int
    avg_attempts: Optional[float] = None
    avg_time_seconds: Optional[float] = None
    min_attempts: Optional[int] = None
    max_attempts: Optional[int] = None
    completed_games: int
    ongoing_games: int


class BestScoreEntry(BaseModel):
    game_id: str
    attempts: int
    total_time_elapsed: float
    total_time_formatted: Optional[str] = None
    end_time: str
    difficulty_rating: Optional[int] = None


class CleanupResponse(BaseModel):
    removed: int
    max_age_hours: float


class ConfigurationRequest(BaseModel):
    min_range: int
    max_range: int
    custom_message_lower: Optional[str] = Field(None, max_length=255)
    custom_message_higher: Optional[str] = Field(None, max_length=255)
    custom_message_equal: Optional[str] = Field(None, max_length=255)
    hint_trigger_count: Optional[int] = Field(None, ge=1)


class ConfigurationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    config_id: int
    min_range: int
    max_range: int
    custom_message_lower: Optional[str] = None
    custom_message_higher: Optional[str] = None
    custom_message_equal: Optional[str] = None
    hint_trigger_count: Optional[int] = None
    is_active: bool
    created_at: str
    updated_at: str
