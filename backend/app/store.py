"""Game session store: lifecycle, guesses, hints and derived statistics.

Every operation that mutates one game runs under that game's lock, so
concurrent guesses against the same session are applied one at a time,
while games never wait on each other.  Each operation opens its own
SQLAlchemy session and commits before returning.
"""
import logging
import random
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterator, List, Optional

from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from .configuration import GameConfig, load_configuration
from .db import SessionLocal
from .errors import (
    DuplicateSessionId,
    InvalidRange,
    InvalidRating,
    OutOfRange,
    RatingAlreadySet,
    SessionAlreadyFinished,
    SessionNotFinished,
    SessionNotFound,
)
from .hints import AlternatingHintPolicy, HintContext, HintPolicy
from .models import GameAttempt, GameHint, GameSession, MatchHistory
from .rules import (
    Feedback,
    GameState,
    elapsed_seconds,
    evaluate_guess,
    format_game_time,
    to_timestamp,
    utc_now,
)
from .schemas import (
    AttemptResponse,
    BestScoreEntry,
    GuessResult,
    HintResponse,
    MatchHistoryResponse,
    SessionDetailSnapshot,
    SessionSnapshot,
    StatisticsResponse,
)
from .settings import BEST_SCORES_LIMIT, STALE_SESSION_MAX_AGE_HOURS

logger = logging.getLogger(__name__)


class SessionLocks:
    """Reference-counted registry of per-game locks.

    The registry mutex is only held while looking up or releasing an entry,
    never while a game's own lock is held.  Entries disappear once nobody
    holds or waits on them.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._entries: Dict[str, list] = {}

    @contextmanager
    def hold(self, game_id: str) -> Iterator[None]:
        with self._guard:
            entry = self._entries.get(game_id)
            if entry is None:
                entry = self._entries[game_id] = [threading.Lock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._entries[game_id]

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)


def _load_session(db: Session, game_id: str) -> GameSession:
    session = db.get(GameSession, game_id)
    if session is None:
        raise SessionNotFound(game_id)
    return session


def _detail(session: GameSession) -> SessionDetailSnapshot:
    snapshot = SessionSnapshot.model_validate(session)
    attempts = [AttemptResponse.model_validate(a) for a in session.attempt_rows]
    return SessionDetailSnapshot(
        **snapshot.model_dump(),
        attempt_history=attempts,
        hint_history=[HintResponse.model_validate(h) for h in session.hint_rows],
        last_attempt_order=attempts[-1].attempt_order if attempts else None,
    )


class GameSessionStore:
    """Owns sessions, attempts, hints and match history."""

    def __init__(
        self,
        session_factory: sessionmaker = SessionLocal,
        clock: Callable[[], datetime] = utc_now,
        rng: Optional[random.Random] = None,
        hint_policy: Optional[HintPolicy] = None,
        config: Optional[GameConfig] = None,
    ):
        self._session_factory = session_factory
        self._clock = clock
        self._rng = rng or random.Random()
        self._locks = SessionLocks()
        self.hint_policy = hint_policy or AlternatingHintPolicy()
        self.config = config if config is not None else self.reload_configuration()

    def reload_configuration(self) -> GameConfig:
        """Re-read the active configuration.  Running games are unaffected."""
        with self._session_factory() as db:
            self.config = load_configuration(db)
        return self.config

    def _now(self) -> str:
        return to_timestamp(self._clock())

    # Lifecycle

    def create_session(
        self,
        min_range: Optional[int] = None,
        max_range: Optional[int] = None,
        secret_number: Optional[int] = None,
        game_id: Optional[str] = None,
    ) -> SessionSnapshot:
        config = self.config
        if min_range is None:
            min_range = config.min_range
        if max_range is None:
            max_range = config.max_range
        if min_range >= max_range:
            raise InvalidRange(min_range, max_range)

        if secret_number is None:
            secret_number = self._rng.randint(min_range, max_range)
        elif not min_range <= secret_number <= max_range:
            raise OutOfRange(secret_number, min_range, max_range)

        game_id = game_id or str(uuid.uuid4())
        now = self._now()

        with self._session_factory() as db:
            session = GameSession(
                game_id=game_id,
                secret_number=secret_number,
                attempts=0,
                start_time=now,
                game_state=GameState.IN_PROGRESS.value,
                min_range=min_range,
                max_range=max_range,
                consecutive_incorrect_attempts=0,
                hints_used=0,
                created_at=now,
                updated_at=now,
            )
            db.add(session)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                raise DuplicateSessionId(game_id) from None
            db.refresh(session)
            snapshot = SessionSnapshot.model_validate(session)

        logger.info("Created game %s with range %d..%d", game_id, min_range, max_range)
        return snapshot

    def get_session(self, game_id: str) -> SessionSnapshot:
        with self._session_factory() as db:
            return SessionSnapshot.model_validate(_load_session(db, game_id))

    def get_session_details(self, game_id: str) -> SessionDetailSnapshot:
        """Session with its attempts, hints and last attempt order."""
        with self._session_factory() as db:
            return _detail(_load_session(db, game_id))

    # Gameplay

    def submit_guess(self, game_id: str, guess: int, with_hint: bool = False) -> GuessResult:
        """Record a guess and return its feedback and attempt order.

        A correct guess finishes the game and archives it in match history
        within the same transaction.  Guesses on finished games are rejected
        without touching any counter.

        With ``with_hint`` a wrong guess also issues any hint that is due,
        under the same lock, so no other guess can land in between.
        """
        config = self.config
        with self._locks.hold(game_id), self._session_factory() as db:
            session = _load_session(db, game_id)
            if session.game_state == GameState.FINISHED.value:
                raise SessionAlreadyFinished(game_id)

            feedback = evaluate_guess(guess, session.secret_number)

            last = (
                db.query(GameAttempt)
                .filter(GameAttempt.game_id == game_id)
                .order_by(GameAttempt.attempt_order.desc())
                .first()
            )
            attempt_order = last.attempt_order + 1 if last else 1

            # Attempt times never run backwards within a game.
            attempt_time = max(
                self._now(),
                session.start_time,
                last.attempt_time if last else session.start_time,
            )

            db.add(GameAttempt(
                game_id=game_id,
                guess_number=guess,
                feedback=feedback.value,
                attempt_order=attempt_order,
                attempt_time=attempt_time,
            ))

            session.attempts += 1
            session.updated_at = attempt_time
            if feedback is Feedback.EQUAL:
                session.consecutive_incorrect_attempts = 0
                session.game_state = GameState.FINISHED.value
                session.end_time = attempt_time
                session.total_time_elapsed = elapsed_seconds(session.start_time, attempt_time)
                db.add(MatchHistory(
                    history_id=str(uuid.uuid4()),
                    game_id=game_id,
                    attempts=session.attempts,
                    total_time_elapsed=session.total_time_elapsed,
                    saved_at=attempt_time,
                ))
            else:
                session.consecutive_incorrect_attempts += 1

            db.commit()
            hint = None
            if with_hint and feedback is not Feedback.EQUAL:
                hint = self._issue_hint(db, session, config)
            db.refresh(session)
            result = GuessResult(
                feedback=feedback,
                attempt_order=attempt_order,
                message=config.message_for(feedback),
                session=SessionSnapshot.model_validate(session),
                hint=hint,
            )

        if feedback is Feedback.EQUAL:
            logger.info(
                "Game %s finished after %d attempts in %.3fs",
                game_id, result.session.attempts, result.session.total_time_elapsed,
            )
        else:
            logger.debug("Game %s attempt %d: %s", game_id, attempt_order, feedback.value)
        return result

    def maybe_issue_hint(self, game_id: str) -> Optional[HintResponse]:
        """Issue a hint if the wrong-guess streak has reached the trigger.

        Returns None when hints are disabled, the streak is too short, or the
        hint policy has nothing to say.  Issuing a hint does not reset the
        streak.
        """
        config = self.config
        with self._locks.hold(game_id), self._session_factory() as db:
            session = _load_session(db, game_id)
            if session.game_state == GameState.FINISHED.value:
                raise SessionAlreadyFinished(game_id)
            return self._issue_hint(db, session, config)

    def _issue_hint(
        self, db: Session, session: GameSession, config: GameConfig,
    ) -> Optional[HintResponse]:
        # Caller holds the game lock and has checked the game is in progress.
        if not config.hint_due(session.consecutive_incorrect_attempts):
            return None

        draft = self.hint_policy.build(HintContext(
            secret_number=session.secret_number,
            min_range=session.min_range,
            max_range=session.max_range,
            attempts=[(a.guess_number, a.feedback) for a in session.attempt_rows],
            hints_used=session.hints_used,
        ))
        if draft is None:
            return None

        now = self._now()
        hint = GameHint(
            game_id=session.game_id,
            hint_text=draft.hint_text,
            hint_type=draft.hint_type,
            used_at=now,
        )
        db.add(hint)
        session.hints_used += 1
        session.updated_at = now
        db.commit()
        db.refresh(hint)
        issued = HintResponse.model_validate(hint)
        logger.info("Issued %s hint for game %s", issued.hint_type, session.game_id)
        return issued

    # Match history

    def match_history(self, limit: int = 50) -> List[MatchHistoryResponse]:
        with self._session_factory() as db:
            records = (
                db.query(MatchHistory)
                .order_by(MatchHistory.saved_at.desc(), MatchHistory.history_id)
                .limit(max(limit, 0))
                .all()
            )
            return [MatchHistoryResponse.model_validate(r) for r in records]

    def rate_match(self, game_id: str, difficulty_rating: int) -> MatchHistoryResponse:
        """Attach a 1-5 difficulty rating to a finished match, once."""
        if not 1 <= difficulty_rating <= 5:
            raise InvalidRating(difficulty_rating)

        with self._locks.hold(game_id), self._session_factory() as db:
            session = _load_session(db, game_id)
            record = session.history
            if record is None:
                raise SessionNotFinished(game_id)
            if record.difficulty_rating is not None:
                raise RatingAlreadySet(game_id)
            record.difficulty_rating = difficulty_rating
            db.commit()
            db.refresh(record)
            return MatchHistoryResponse.model_validate(record)

    # Aggregates

    def get_statistics(self) -> StatisticsResponse:
        """Aggregate over every stored game.

        With no games the counts are 0 and the averages and min/max are None.
        ``avg_attempts`` ignores games without attempts and
        ``avg_time_seconds`` only covers finished games.
        """
        finished = GameSession.game_state == GameState.FINISHED.value
        in_progress = GameSession.game_state == GameState.IN_PROGRESS.value
        with self._session_factory() as db:
            (
                total, avg_attempts, avg_time, min_attempts, max_attempts,
                completed, ongoing,
            ) = db.query(
                func.count(GameSession.game_id),
                func.avg(case((GameSession.attempts > 0, GameSession.attempts))),
                func.avg(GameSession.total_time_elapsed),
                func.min(GameSession.attempts),
                func.max(GameSession.attempts),
                func.sum(case((finished, 1), else_=0)),
                func.sum(case((in_progress, 1), else_=0)),
            ).one()

        return StatisticsResponse(
            total_games=total or 0,
            avg_attempts=float(avg_attempts) if avg_attempts is not None else None,
            avg_time_seconds=float(avg_time) if avg_time is not None else None,
            min_attempts=min_attempts,
            max_attempts=max_attempts,
            completed_games=completed or 0,
            ongoing_games=ongoing or 0,
        )

    def best_scores(self, limit: Optional[int] = None) -> List[BestScoreEntry]:
        """Finished games ranked by fewest attempts, then fastest time."""
        if limit is None:
            limit = BEST_SCORES_LIMIT
        if limit <= 0:
            return []

        with self._session_factory() as db:
            rows = (
                db.query(GameSession, MatchHistory.difficulty_rating)
                .outerjoin(MatchHistory, MatchHistory.game_id == GameSession.game_id)
                .filter(GameSession.game_state == GameState.FINISHED.value)
                .order_by(
                    GameSession.attempts.asc(),
                    GameSession.total_time_elapsed.asc(),
                    GameSession.game_id.asc(),
                )
                .limit(limit)
                .all()
            )
            return [
                BestScoreEntry(
                    game_id=session.game_id,
                    attempts=session.attempts,
                    total_time_elapsed=session.total_time_elapsed,
                    total_time_formatted=format_game_time(session.total_time_elapsed),
                    end_time=session.end_time,
                    difficulty_rating=rating,
                )
                for session, rating in rows
            ]

    # Maintenance

    def cleanup_stale(self, max_age_hours: Optional[float] = None) -> int:
        """Delete in-progress games started more than ``max_age_hours`` ago.

        Attempts and hints go with them.  Each candidate is re-read under its
        own lock, so a game finished in the meantime is kept.
        """
        if max_age_hours is None:
            max_age_hours = STALE_SESSION_MAX_AGE_HOURS
        cutoff = to_timestamp(self._clock() - timedelta(hours=max_age_hours))

        with self._session_factory() as db:
            candidates = [
                game_id for (game_id,) in db.query(GameSession.game_id).filter(
                    GameSession.game_state == GameState.IN_PROGRESS.value,
                    GameSession.start_time < cutoff,
                ).all()
            ]

        removed = 0
        for game_id in candidates:
            with self._locks.hold(game_id), self._session_factory() as db:
                session = db.get(GameSession, game_id)
                if (
                    session is None
                    or session.game_state != GameState.IN_PROGRESS.value
                    or session.start_time >= cutoff
                ):
                    continue
                db.delete(session)
                db.commit()
                removed += 1

        logger.info(
            "Stale cleanup removed %d of %d candidate games older than %sh",
            removed, len(candidates), max_age_hours,
        )
        return removed
