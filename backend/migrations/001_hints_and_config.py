"""Migration: Add hint tracking and the game configuration table.

Brings a database created before hints existed up to date:
  * game_sessions gains consecutive_incorrect_attempts, hints_used, updated_at
  * game_hints and game_configurations are created
  * the default configuration row is seeded when no row is active

Idempotent; safe to run multiple times.

Run with: python -m backend.migrations.001_hints_and_config
"""
import sqlite3
import sys
from datetime import datetime, timezone
from pathlib import Path

# Database path at repo root
REPO_ROOT = Path(__file__).resolve().parent.parent.parent
DB_PATH = REPO_ROOT / "guess_number.db"

CREATE_GAME_HINTS = """
CREATE TABLE game_hints (
    hint_id INTEGER PRIMARY KEY,
    game_id VARCHAR(36) NOT NULL REFERENCES game_sessions (game_id) ON DELETE CASCADE,
    hint_text TEXT NOT NULL,
    hint_type VARCHAR(50),
    used_at VARCHAR NOT NULL
)
"""

CREATE_GAME_CONFIGURATIONS = """
CREATE TABLE game_configurations (
    config_id INTEGER PRIMARY KEY,
    min_range INTEGER NOT NULL DEFAULT 1,
    max_range INTEGER NOT NULL DEFAULT 100,
    custom_message_lower VARCHAR(255),
    custom_message_higher VARCHAR(255),
    custom_message_equal VARCHAR(255),
    hint_trigger_count INTEGER,
    is_active BOOLEAN NOT NULL DEFAULT 1,
    created_at VARCHAR NOT NULL,
    updated_at VARCHAR NOT NULL
)
"""

SESSION_COLUMNS = [
    ("consecutive_incorrect_attempts", "INTEGER NOT NULL DEFAULT 0"),
    ("hints_used", "INTEGER NOT NULL DEFAULT 0"),
    ("updated_at", "VARCHAR"),
]


def column_exists(cursor: sqlite3.Cursor, table_name: str, column_name: str) -> bool:
    """Check if a column exists in a table."""
    cursor.execute(f"PRAGMA table_info({table_name})")
    columns = [row[1] for row in cursor.fetchall()]
    return column_name in columns


def table_exists(cursor: sqlite3.Cursor, table_name: str) -> bool:
    """Check if a table exists."""
    cursor.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
        (table_name,),
    )
    return cursor.fetchone() is not None


def index_exists(cursor: sqlite3.Cursor, index_name: str) -> bool:
    """Check if an index exists."""
    cursor.execute(
        "SELECT name FROM sqlite_master WHERE type='index' AND name=?",
        (index_name,),
    )
    return cursor.fetchone() is not None


def migrate(db_path: Path | None = None):
    """Run the migration against the given DB file (defaults to DB_PATH)."""
    path = db_path or DB_PATH

    if not path.exists():
        print(f"Database not found at {path}")
        print("No migration needed - database will be created with the new schema on first run.")
        return

    conn = sqlite3.connect(str(path))
    cursor = conn.cursor()
    now = datetime.now(timezone.utc).isoformat(timespec="microseconds")

    try:
        # --- game_sessions ---
        if table_exists(cursor, "game_sessions"):
            for column, ddl in SESSION_COLUMNS:
                if not column_exists(cursor, "game_sessions", column):
                    print(f"Adding {column} column to game_sessions...")
                    cursor.execute(f"ALTER TABLE game_sessions ADD COLUMN {column} {ddl}")
                    print("  Done.")
                else:
                    print(f"Column {column} already exists in game_sessions, skipping.")

            # Older rows get their creation time as last update.
            cursor.execute(
                "UPDATE game_sessions SET updated_at = COALESCE(created_at, start_time) "
                "WHERE updated_at IS NULL"
            )
        else:
            print("Table game_sessions does not exist - will be created on app startup.")

        # --- game_hints ---
        if not table_exists(cursor, "game_hints"):
            print("Creating table game_hints...")
            cursor.execute(CREATE_GAME_HINTS)
            print("  Done.")
        else:
            print("Table game_hints already exists, skipping.")

        if not index_exists(cursor, "ix_game_hints_game_id"):
            print("Creating index ix_game_hints_game_id...")
            cursor.execute("CREATE INDEX ix_game_hints_game_id ON game_hints (game_id)")
            print("  Done.")
        else:
            print("Index ix_game_hints_game_id already exists, skipping.")

        # --- game_configurations ---
        if not table_exists(cursor, "game_configurations"):
            print("Creating table game_configurations...")
            cursor.execute(CREATE_GAME_CONFIGURATIONS)
            print("  Done.")
        else:
            print("Table game_configurations already exists, skipping.")

        if not index_exists(cursor, "ix_game_configurations_is_active"):
            print("Creating index ix_game_configurations_is_active...")
            cursor.execute(
                "CREATE INDEX ix_game_configurations_is_active "
                "ON game_configurations (is_active)"
            )
            print("  Done.")
        else:
            print("Index ix_game_configurations_is_active already exists, skipping.")

        cursor.execute("SELECT COUNT(*) FROM game_configurations WHERE is_active = 1")
        if cursor.fetchone()[0] == 0:
            print("Seeding default game configuration...")
            cursor.execute(
                "INSERT INTO game_configurations "
                "(min_range, max_range, custom_message_lower, custom_message_higher, "
                " custom_message_equal, hint_trigger_count, is_active, created_at, updated_at) "
                "VALUES (1, 100, ?, ?, ?, 3, 1, ?, ?)",
                ("try a smaller number", "try a larger number", "correct", now, now),
            )
            print("  Done.")
        else:
            print("Active game configuration already present, skipping seed.")

        conn.commit()
        print("\nMigration 001_hints_and_config completed successfully!")

    except Exception as e:
        conn.rollback()
        print(f"Migration failed: {e}")
        sys.exit(1)
    finally:
        conn.close()


if __name__ == "__main__":
    migrate()
