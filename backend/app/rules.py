"""Pure game rules: guess evaluation, timestamps and derived values."""
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Optional, Tuple


class Feedback(str, Enum):
    """Direction the player should move next.

    LOWER means the guess was above the secret, HIGHER means it was below.
    """
    LOWER = "LOWER"
    HIGHER = "HIGHER"
    EQUAL = "EQUAL"


class GameState(str, Enum):
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"


def evaluate_guess(guess: int, secret_number: int) -> Feedback:
    """Compare a guess with the secret number."""
    if guess < secret_number:
        return Feedback.HIGHER
    if guess > secret_number:
        return Feedback.LOWER
    return Feedback.EQUAL


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_timestamp(moment: datetime) -> str:
    """Serialize a datetime as a fixed-width UTC ISO-8601 string.

    Fixed width keeps lexical and chronological order identical, which the
    stale-session sweep relies on when it compares in SQL.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def elapsed_seconds(start: str, end: str) -> float:
    return (parse_timestamp(end) - parse_timestamp(start)).total_seconds()


def format_game_time(seconds: Optional[float]) -> Optional[str]:
    """Render a duration as ``"{h}h {m}m {s}s"``; None stays None."""
    if seconds is None:
        return None
    total = int(seconds)
    return f"{total // 3600}h {(total % 3600) // 60}m {total % 60}s"


def known_bounds(
    min_range: int,
    max_range: int,
    attempts: Iterable[Tuple[int, str]],
) -> Tuple[int, int]:
    """Narrow ``[min_range, max_range]`` using (guess, feedback) pairs.

    A HIGHER answer means the secret is above the guess, LOWER means below.
    """
    low, high = min_range, max_range
    for guess, feedback in attempts:
        if feedback == Feedback.HIGHER.value:
            low = max(low, guess + 1)
        elif feedback == Feedback.LOWER.value:
            high = min(high, guess - 1)
    return low, high
