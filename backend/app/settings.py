"""Application settings."""
import os
from pathlib import Path

# Database file lives at repo root unless DATABASE_URL says otherwise
REPO_ROOT = Path(__file__).resolve().parent.parent.parent
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{REPO_ROOT / 'guess_number.db'}")

# Admin API key for privileged endpoints (must be set in production)
ADMIN_KEY = os.getenv("ADMIN_KEY", "")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Maintenance sweep: in-progress sessions older than this are removed
STALE_SESSION_MAX_AGE_HOURS = int(os.getenv("STALE_SESSION_MAX_AGE_HOURS", "24"))

BEST_SCORES_LIMIT = int(os.getenv("BEST_SCORES_LIMIT", "10"))

# Values of the configuration row seeded into an empty database
DEFAULT_MIN_RANGE = int(os.getenv("DEFAULT_MIN_RANGE", "1"))
DEFAULT_MAX_RANGE = int(os.getenv("DEFAULT_MAX_RANGE", "100"))
DEFAULT_HINT_TRIGGER_COUNT = 3
DEFAULT_MESSAGE_LOWER = "try a smaller number"
DEFAULT_MESSAGE_HIGHER = "try a larger number"
DEFAULT_MESSAGE_EQUAL = "correct"
