"""Tests for application settings."""
import importlib


def test_database_url_respects_env_var(monkeypatch):
    """DATABASE_URL uses the env var when set."""
    monkeypatch.setenv("DATABASE_URL", "sqlite:////var/data/guess_number.db")

    import backend.app.settings as settings
    importlib.reload(settings)

    assert settings.DATABASE_URL == "sqlite:////var/data/guess_number.db"


def test_database_url_defaults_to_local_sqlite(monkeypatch):
    """DATABASE_URL falls back to repo-root guess_number.db when env var is unset."""
    monkeypatch.delenv("DATABASE_URL", raising=False)

    import backend.app.settings as settings
    importlib.reload(settings)

    assert settings.DATABASE_URL.startswith("sqlite:///")
    assert settings.DATABASE_URL.endswith("guess_number.db")


def test_maintenance_settings_from_env(monkeypatch):
    monkeypatch.setenv("STALE_SESSION_MAX_AGE_HOURS", "48")
    monkeypatch.setenv("BEST_SCORES_LIMIT", "5")

    import backend.app.settings as settings
    importlib.reload(settings)

    assert settings.STALE_SESSION_MAX_AGE_HOURS == 48
    assert settings.BEST_SCORES_LIMIT == 5

    monkeypatch.delenv("STALE_SESSION_MAX_AGE_HOURS")
    monkeypatch.delenv("BEST_SCORES_LIMIT")
    importlib.reload(settings)
