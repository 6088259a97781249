"""SQLAlchemy ORM models."""
from sqlalchemy import (
    Column, Integer, String, Boolean, Float, Text, ForeignKey, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .db import Base


class GameSession(Base):
    """One game from creation until it is finished or swept."""
    __tablename__ = "game_sessions"

    game_id = Column(String(36), primary_key=True)
    secret_number = Column(Integer, nullable=False)
    attempts = Column(Integer, nullable=False, default=0)
    start_time = Column(String, index=True, nullable=False)
    end_time = Column(String, nullable=True)
    game_state = Column(String(20), index=True, nullable=False, default="in_progress")
    total_time_elapsed = Column(Float, nullable=True)  # seconds
    min_range = Column(Integer, nullable=False)
    max_range = Column(Integer, nullable=False)
    consecutive_incorrect_attempts = Column(Integer, nullable=False, default=0)
    hints_used = Column(Integer, nullable=False, default=0)
    created_at = Column(String, index=True, nullable=False)
    updated_at = Column(String, nullable=False)

    attempt_rows = relationship(
        "GameAttempt",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="GameAttempt.attempt_order",
    )
    hint_rows = relationship(
        "GameHint",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="GameHint.hint_id",
    )
    history = relationship(
        "MatchHistory",
        back_populates="session",
        cascade="all, delete-orphan",
        uselist=False,
    )


class GameAttempt(Base):
    """A single guess and the feedback it received."""
    __tablename__ = "game_attempts"
    __table_args__ = (
        UniqueConstraint("game_id", "attempt_order", name="uq_game_attempts_order"),
    )

    attempt_id = Column(Integer, primary_key=True, index=True)
    game_id = Column(
        String(36), ForeignKey("game_sessions.game_id", ondelete="CASCADE"),
        index=True, nullable=False,
    )
    guess_number = Column(Integer, nullable=False)
    feedback = Column(String(10), nullable=False)  # LOWER, HIGHER or EQUAL
    attempt_order = Column(Integer, nullable=False)
    attempt_time = Column(String, nullable=False)

    session = relationship("GameSession", back_populates="attempt_rows")


class MatchHistory(Base):
    """Archived outcome of a finished game."""
    __tablename__ = "match_history"

    history_id = Column(String(36), primary_key=True)
    game_id = Column(
        String(36), ForeignKey("game_sessions.game_id", ondelete="CASCADE"),
        unique=True, index=True, nullable=False,
    )
    attempts = Column(Integer, nullable=False)
    total_time_elapsed = Column(Float, nullable=False)
    difficulty_rating = Column(Integer, index=True, nullable=True)  # 1..5
    saved_at = Column(String, index=True, nullable=False)

    session = relationship("GameSession", back_populates="history")


class GameConfiguration(Base):
    """Range, feedback messages and hint trigger applied to new games."""
    __tablename__ = "game_configurations"

    config_id = Column(Integer, primary_key=True, index=True)
    min_range = Column(Integer, nullable=False, default=1)
    max_range = Column(Integer, nullable=False, default=100)
    custom_message_lower = Column(String(255), nullable=True)
    custom_message_higher = Column(String(255), nullable=True)
    custom_message_equal = Column(String(255), nullable=True)
    hint_trigger_count = Column(Integer, nullable=True)  # null disables hints
    is_active = Column(Boolean, index=True, nullable=False, default=True)
    created_at = Column(String, nullable=False)
    updated_at = Column(String, nullable=False)


class GameHint(Base):
    """A hint handed out during a game."""
    __tablename__ = "game_hints"

    hint_id = Column(Integer, primary_key=True, index=True)
    game_id = Column(
        String(36), ForeignKey("game_sessions.game_id", ondelete="CASCADE"),
        index=True, nullable=False,
    )
    hint_text = Column(Text, nullable=False)
    hint_type = Column(String(50), nullable=True)  # range, parity
    used_at = Column(String, nullable=False)

    session = relationship("GameSession", back_populates="hint_rows")
