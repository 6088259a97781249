"""Test the HTTP surface: game flow, errors, aggregates and configuration."""
import threading
from unittest import mock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from backend.app.main import app, get_store
from backend.app.db import Base, get_db
from backend.app.hints import HintDraft, HintPolicy
from backend.app.models import GameConfiguration
from backend.app.rules import GameState
from backend.app.store import GameSessionStore


@pytest.fixture(scope="function")
def test_db():
    """Create a fresh in-memory test database for each test."""
    # Use in-memory SQLite with StaticPool for test isolation
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    store = GameSessionStore(session_factory=TestingSessionLocal)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_store] = lambda: store
    yield store
    app.dependency_overrides.clear()
    engine.dispose()


@pytest.fixture
def client(test_db):
    """Test client with test database."""
    return TestClient(app)


def create_game(client, game_id="game-1", secret_number=50, min_range=1, max_range=100):
    """Helper to start a game with a known secret."""
    response = client.post("/sessions", json={
        "game_id": game_id,
        "min_range": min_range,
        "max_range": max_range,
        "secret_number": secret_number,
    })
    assert response.status_code == 201
    return response.json()


def guess(client, game_id, value):
    return client.post(f"/sessions/{game_id}/guesses", json={"guess": value})


def test_create_session_hides_secret(client):
    data = create_game(client)

    assert data["game_id"] == "game-1"
    assert data["game_state"] == "in_progress"
    assert data["attempts"] == 0
    assert "secret_number" not in data


def test_create_session_with_defaults(client):
    response = client.post("/sessions")
    assert response.status_code == 201
    data = response.json()

    assert data["min_range"] == 1
    assert data["max_range"] == 100
    assert len(data["game_id"]) == 36


def test_full_game_flow(client):
    """
    Test: secret=50, guesses 30, 70, 50.
    Expected: HIGHER, LOWER, EQUAL with the default messages; game finished.
    """
    create_game(client)

    first = guess(client, "game-1", 30).json()
    assert first["feedback"] == "HIGHER"
    assert first["message"] == "try a larger number"
    assert first["attempt_order"] == 1

    second = guess(client, "game-1", 70).json()
    assert second["feedback"] == "LOWER"
    assert second["message"] == "try a smaller number"

    final = guess(client, "game-1", 50)
    assert final.status_code == 200
    data = final.json()
    assert data["feedback"] == "EQUAL"
    assert data["message"] == "correct"
    assert data["attempt_order"] == 3
    assert data["game_state"] == "finished"
    assert data["total_time_elapsed"] is not None
    assert data["hint"] is None


def test_third_wrong_guess_comes_with_hint(client):
    create_game(client)

    assert guess(client, "game-1", 10).json()["hint"] is None
    assert guess(client, "game-1", 20).json()["hint"] is None
    hint = guess(client, "game-1", 90).json()["hint"]

    assert hint["hint_type"] == "range"
    assert hint["hint_text"] == "The number is between 21 and 55."


def test_winning_guess_waits_for_wrong_guess_and_its_hint(client, test_db):
    """A rival guess arriving while a hint is being built must queue behind
    the wrong guess instead of finishing the game under it."""
    create_game(client)
    guess(client, "game-1", 10)
    guess(client, "game-1", 20)

    outcome = {}
    rival = threading.Thread(
        target=lambda: outcome.update(result=test_db.submit_guess("game-1", 50))
    )

    class RivalArrivesMidHint(HintPolicy):
        def build(self, context):
            rival.start()
            rival.join(timeout=0.2)
            outcome["rival_blocked"] = rival.is_alive()
            return HintDraft(hint_text="Think smaller.", hint_type="custom")

    test_db.hint_policy = RivalArrivesMidHint()
    response = guess(client, "game-1", 90)
    rival.join(timeout=5)

    assert response.status_code == 200
    data = response.json()
    assert data["attempt_order"] == 3
    assert data["game_state"] == "in_progress"
    assert data["hint"]["hint_text"] == "Think smaller."

    assert outcome["rival_blocked"] is True
    assert outcome["result"].attempt_order == 4
    assert outcome["result"].session.game_state is GameState.FINISHED
    assert client.get("/sessions/game-1").json()["attempts"] == 4


def test_hint_endpoint(client):
    create_game(client)

    response = client.post("/sessions/game-1/hints")
    assert response.status_code == 200
    assert response.json() == {"game_id": "game-1", "issued": False, "hint": None}


def test_guess_after_finish_rejected(client):
    create_game(client)
    guess(client, "game-1", 50)

    response = guess(client, "game-1", 50)
    assert response.status_code == 409
    assert response.json()["error"] == "SessionAlreadyFinished"

    detail = client.get("/sessions/game-1").json()
    assert detail["attempts"] == 1


def test_unknown_session_returns_404(client):
    for response in (
        guess(client, "nope", 1),
        client.get("/sessions/nope"),
        client.post("/sessions/nope/hints"),
    ):
        assert response.status_code == 404
        assert response.json()["error"] == "SessionNotFound"


def test_invalid_create_requests(client):
    response = client.post("/sessions", json={"min_range": 10, "max_range": 5})
    assert response.status_code == 422
    assert response.json()["error"] == "InvalidRange"

    response = client.post("/sessions", json={"min_range": 1, "max_range": 5, "secret_number": 6})
    assert response.status_code == 422
    assert response.json()["error"] == "OutOfRange"

    create_game(client)
    response = client.post("/sessions", json={"game_id": "game-1"})
    assert response.status_code == 409
    assert response.json()["error"] == "DuplicateSessionId"


def test_session_detail_includes_history(client):
    create_game(client)
    guess(client, "game-1", 10)
    guess(client, "game-1", 60)

    response = client.get("/sessions/game-1")
    assert response.status_code == 200
    data = response.json()

    assert "secret_number" not in data
    assert data["last_attempt_order"] == 2
    assert [a["feedback"] for a in data["attempt_history"]] == ["HIGHER", "LOWER"]
    assert [a["guess_number"] for a in data["attempt_history"]] == [10, 60]
    assert data["hint_history"] == []


def test_statistics_empty(client):
    response = client.get("/statistics")
    assert response.status_code == 200
    assert response.json() == {
        "total_games": 0,
        "avg_attempts": None,
        "avg_time_seconds": None,
        "min_attempts": None,
        "max_attempts": None,
        "completed_games": 0,
        "ongoing_games": 0,
    }


def test_statistics_and_best_scores(client):
    create_game(client, "fast")
    guess(client, "fast", 50)
    create_game(client, "slow")
    guess(client, "slow", 1)
    guess(client, "slow", 50)
    create_game(client, "open")

    stats = client.get("/statistics").json()
    assert stats["total_games"] == 3
    assert stats["completed_games"] == 2
    assert stats["ongoing_games"] == 1
    assert stats["avg_attempts"] == 1.5

    scores = client.get("/best-scores").json()
    assert [s["game_id"] for s in scores] == ["fast", "slow"]
    assert scores[0]["total_time_formatted"].endswith("s")

    assert [s["game_id"] for s in client.get("/best-scores?limit=1").json()] == ["fast"]


def test_rating_flow(client):
    create_game(client)

    response = client.post("/sessions/game-1/rating", json={"difficulty_rating": 3})
    assert response.status_code == 409
    assert response.json()["error"] == "SessionNotFinished"

    guess(client, "game-1", 50)
    assert client.post("/sessions/game-1/rating", json={"difficulty_rating": 6}).status_code == 422

    response = client.post("/sessions/game-1/rating", json={"difficulty_rating": 4})
    assert response.status_code == 200
    assert response.json()["difficulty_rating"] == 4

    history = client.get("/history").json()
    assert len(history) == 1
    assert history[0]["difficulty_rating"] == 4


def test_cleanup_endpoint(client):
    create_game(client)
    headers = {"X-ADMIN-KEY": "admin-secret"}

    with mock.patch("backend.app.main.ADMIN_KEY", "admin-secret"):
        response = client.post("/maintenance/cleanup", headers=headers)
        assert response.json() == {"removed": 0, "max_age_hours": 24.0}

        response = client.post("/maintenance/cleanup?max_age_hours=-1", headers=headers)
        assert response.status_code == 422
    assert client.get("/sessions/game-1").status_code == 200


def test_cleanup_requires_admin_key(client):
    create_game(client, "live")

    with mock.patch("backend.app.main.ADMIN_KEY", "admin-secret"):
        response = client.post("/maintenance/cleanup?max_age_hours=0")
        assert response.status_code == 403
        response = client.post(
            "/maintenance/cleanup?max_age_hours=0", headers={"X-ADMIN-KEY": "wrong"}
        )
        assert response.status_code == 403

    # No key configured at all also refuses.
    with mock.patch("backend.app.main.ADMIN_KEY", ""):
        assert client.post("/maintenance/cleanup?max_age_hours=0").status_code == 403

    assert client.get("/sessions/live").status_code == 200


def test_get_default_configuration(client):
    response = client.get("/configuration")
    assert response.status_code == 200
    data = response.json()

    assert data["min_range"] == 1
    assert data["max_range"] == 100
    assert data["hint_trigger_count"] == 3
    assert data["is_active"] is True


def test_get_configuration_never_seeds(client):
    for db in app.dependency_overrides[get_db]():
        db.query(GameConfiguration).delete()
        db.commit()

    response = client.get("/configuration")
    assert response.status_code == 404

    for db in app.dependency_overrides[get_db]():
        assert db.query(GameConfiguration).count() == 0


def test_update_configuration_requires_admin_key(client):
    body = {"min_range": 1, "max_range": 10}

    with mock.patch("backend.app.main.ADMIN_KEY", "admin-secret"):
        assert client.put("/configuration", json=body).status_code == 403
        response = client.put("/configuration", json=body, headers={"X-ADMIN-KEY": "wrong"})
        assert response.status_code == 403


def test_update_configuration_applies_to_new_games(client):
    create_game(client, "before")
    body = {
        "min_range": 1,
        "max_range": 10,
        "custom_message_higher": "Go up!",
        "hint_trigger_count": 1,
    }

    with mock.patch("backend.app.main.ADMIN_KEY", "admin-secret"):
        response = client.put("/configuration", json=body, headers={"X-ADMIN-KEY": "admin-secret"})
    assert response.status_code == 200
    assert response.json()["max_range"] == 10

    new_game = client.post("/sessions", json={"game_id": "after", "secret_number": 7}).json()
    assert new_game["max_range"] == 10
    assert client.get("/sessions/before").json()["max_range"] == 100

    data = guess(client, "after", 3).json()
    assert data["message"] == "Go up!"
    assert data["hint"] is not None
