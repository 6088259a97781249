"""Test game configuration seeding, activation and snapshotting."""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from backend.app.configuration import (
    GameConfig,
    activate_configuration,
    get_active_configuration,
    load_configuration,
)
from backend.app.db import Base
from backend.app.errors import InvalidRange
from backend.app.models import GameConfiguration
from backend.app.rules import Feedback
from backend.app.store import GameSessionStore


@pytest.fixture(scope="function")
def session_factory():
    """Create a fresh in-memory test database for each test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


def test_lookup_does_not_seed(session_factory):
    with session_factory() as db:
        assert get_active_configuration(db) is None
        assert db.query(GameConfiguration).count() == 0


def test_default_row_is_seeded_once(session_factory):
    with session_factory() as db:
        first = load_configuration(db)
        second = load_configuration(db)

        assert first.config_id == second.config_id
        assert db.query(GameConfiguration).count() == 1
        row = get_active_configuration(db)
        assert row.min_range == 1
        assert row.max_range == 100
        assert row.hint_trigger_count == 3
        assert row.custom_message_lower == "try a smaller number"
        assert row.custom_message_higher == "try a larger number"
        assert row.custom_message_equal == "correct"
        assert row.is_active is True


def test_activation_leaves_exactly_one_active(session_factory):
    with session_factory() as db:
        original = load_configuration(db)
        new = activate_configuration(db, min_range=1, max_range=10, hint_trigger_count=2)

        active = db.query(GameConfiguration).filter(GameConfiguration.is_active.is_(True)).all()
        assert [row.config_id for row in active] == [new.config_id]
        assert new.config_id != original.config_id
        assert load_configuration(db).max_range == 10


def test_activation_rejects_invalid_range(session_factory):
    with session_factory() as db:
        with pytest.raises(InvalidRange):
            activate_configuration(db, min_range=5, max_range=5)


def test_existing_sessions_keep_their_range(session_factory):
    store = GameSessionStore(session_factory=session_factory)
    before = store.create_session(secret_number=90, game_id="before")

    with session_factory() as db:
        activate_configuration(db, min_range=1, max_range=10)

    # Still the cached configuration until reloaded.
    assert store.config.max_range == 100
    store.reload_configuration()
    after = store.create_session(secret_number=5, game_id="after")

    assert store.get_session("before").max_range == before.max_range == 100
    assert after.max_range == 10
    assert store.submit_guess("before", 95).feedback is Feedback.LOWER


def test_missing_messages_fall_back_to_defaults():
    config = GameConfig(message_lower=None, message_higher="Go up!", message_equal="")

    assert config.message_for(Feedback.LOWER) == "try a smaller number"
    assert config.message_for(Feedback.HIGHER) == "Go up!"
    assert config.message_for(Feedback.EQUAL) == "correct"


def test_hint_due():
    assert GameConfig(hint_trigger_count=3).hint_due(3)
    assert not GameConfig(hint_trigger_count=3).hint_due(2)
    assert not GameConfig(hint_trigger_count=None).hint_due(100)
