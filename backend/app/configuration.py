"""Game configuration: default seeding, active-row lookup and activation."""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from .errors import InvalidRange
from .models import GameConfiguration
from .rules import Feedback, to_timestamp, utc_now
from .settings import (
    DEFAULT_MIN_RANGE,
    DEFAULT_MAX_RANGE,
    DEFAULT_HINT_TRIGGER_COUNT,
    DEFAULT_MESSAGE_LOWER,
    DEFAULT_MESSAGE_HIGHER,
    DEFAULT_MESSAGE_EQUAL,
)

logger = logging.getLogger(__name__)

_DEFAULT_MESSAGES = {
    Feedback.LOWER: DEFAULT_MESSAGE_LOWER,
    Feedback.HIGHER: DEFAULT_MESSAGE_HIGHER,
    Feedback.EQUAL: DEFAULT_MESSAGE_EQUAL,
}


@dataclass(frozen=True)
class GameConfig:
    """Value copy of the active configuration row."""
    min_range: int = DEFAULT_MIN_RANGE
    max_range: int = DEFAULT_MAX_RANGE
    message_lower: Optional[str] = DEFAULT_MESSAGE_LOWER
    message_higher: Optional[str] = DEFAULT_MESSAGE_HIGHER
    message_equal: Optional[str] = DEFAULT_MESSAGE_EQUAL
    hint_trigger_count: Optional[int] = DEFAULT_HINT_TRIGGER_COUNT
    config_id: Optional[int] = None

    @classmethod
    def from_row(cls, row: GameConfiguration) -> "GameConfig":
        return cls(
            min_range=row.min_range,
            max_range=row.max_range,
            message_lower=row.custom_message_lower,
            message_higher=row.custom_message_higher,
            message_equal=row.custom_message_equal,
            hint_trigger_count=row.hint_trigger_count,
            config_id=row.config_id,
        )

    def message_for(self, feedback: Feedback) -> str:
        custom = {
            Feedback.LOWER: self.message_lower,
            Feedback.HIGHER: self.message_higher,
            Feedback.EQUAL: self.message_equal,
        }[feedback]
        return custom or _DEFAULT_MESSAGES[feedback]

    def hint_due(self, consecutive_incorrect: int) -> bool:
        if self.hint_trigger_count is None:
            return False
        return consecutive_incorrect >= self.hint_trigger_count


def seed_default_configuration(db: Session) -> GameConfiguration:
    """Insert the default configuration row and mark it active."""
    now = to_timestamp(utc_now())
    row = GameConfiguration(
        min_range=DEFAULT_MIN_RANGE,
        max_range=DEFAULT_MAX_RANGE,
        custom_message_lower=DEFAULT_MESSAGE_LOWER,
        custom_message_higher=DEFAULT_MESSAGE_HIGHER,
        custom_message_equal=DEFAULT_MESSAGE_EQUAL,
        hint_trigger_count=DEFAULT_HINT_TRIGGER_COUNT,
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info("Seeded default game configuration (config_id=%s)", row.config_id)
    return row


def get_active_configuration(db: Session) -> Optional[GameConfiguration]:
    """Return the active configuration row, or None.  Never writes."""
    return (
        db.query(GameConfiguration)
        .filter(GameConfiguration.is_active.is_(True))
        .order_by(GameConfiguration.config_id.desc())
        .first()
    )


def load_configuration(db: Session) -> GameConfig:
    """Snapshot the active configuration, seeding the default row first
    when there is none."""
    row = get_active_configuration(db)
    if row is None:
        row = seed_default_configuration(db)
    return GameConfig.from_row(row)


def activate_configuration(
    db: Session,
    min_range: int,
    max_range: int,
    custom_message_lower: Optional[str] = None,
    custom_message_higher: Optional[str] = None,
    custom_message_equal: Optional[str] = None,
    hint_trigger_count: Optional[int] = None,
) -> GameConfiguration:
    """Store a new configuration and make it the only active one.

    Existing games keep the range they were created with.
    """
    if min_range >= max_range:
        raise InvalidRange(min_range, max_range)

    now = to_timestamp(utc_now())
    db.query(GameConfiguration).filter(
        GameConfiguration.is_active.is_(True)
    ).update({"is_active": False, "updated_at": now}, synchronize_session=False)

    row = GameConfiguration(
        min_range=min_range,
        max_range=max_range,
        custom_message_lower=custom_message_lower,
        custom_message_higher=custom_message_higher,
        custom_message_equal=custom_message_equal,
        hint_trigger_count=hint_trigger_count,
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info(
        "Activated game configuration %s (range %s..%s, hint trigger %s)",
        row.config_id, min_range, max_range, hint_trigger_count,
    )
    return row
