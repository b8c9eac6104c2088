"""Configuration management for the budget planner.

This module centralizes all configuration values including paths,
limits, remote endpoints and environment variable overrides.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from .settings import get_setting

# Base project root - assumes this file is in budget_planner/
_PROJECT_ROOT = Path(__file__).parent.parent.resolve()

# Data directories
DATA_DIR = Path(os.getenv("BUDGET_PLANNER_DATA_DIR", _PROJECT_ROOT / "data"))

# Local device storage
SNAPSHOTS_PATH = DATA_DIR / "saved_states.json"
SESSION_PATH = DATA_DIR / "session.json"

# Shared SQLite store used when the remote backend is "sqlite"
DB_PATH = Path(
    os.getenv("BUDGET_PLANNER_DB_PATH", DATA_DIR / "saved_states.db")
).resolve()

# Remote persistence
REMOTE_URL: Optional[str] = os.getenv("BUDGET_PLANNER_REMOTE_URL") or None
REMOTE_BACKEND = os.getenv("BUDGET_PLANNER_REMOTE_BACKEND", "http" if REMOTE_URL else "none").lower()
REMOTE_TIMEOUT = float(os.getenv("BUDGET_PLANNER_REMOTE_TIMEOUT", "10"))

# Identity
AUTH_URL: Optional[str] = os.getenv("BUDGET_PLANNER_AUTH_URL") or None
AUTH_API_KEY: Optional[str] = os.getenv("BUDGET_PLANNER_AUTH_API_KEY") or None
AUTH_USERNAME = os.getenv("BUDGET_PLANNER_USERNAME", "")
AUTH_PASSWORD = os.getenv("BUDGET_PLANNER_PASSWORD", "")

# Planner limits
MAX_ITERATIONS = int(get_setting('constants', 'max_iterations', default=100))
HOURS_PER_DAY = float(get_setting('constants', 'hours_per_day', default=8))
REGENERATE_THRESHOLD = int(os.getenv(
    "BUDGET_PLANNER_REGENERATE_THRESHOLD",
    get_setting('constants', 'regenerate_threshold', default=3),
))
RETENTION_DAYS = int(os.getenv(
    "BUDGET_PLANNER_RETENTION_DAYS",
    get_setting('constants', 'retention_days', default=30),
))
DEDUPE_POLICY = os.getenv(
    "BUDGET_PLANNER_DEDUPE_POLICY",
    get_setting('constants', 'dedupe_policy', default='none'),
)
MAX_CURRENCY_LENGTH = int(get_setting('constants', 'max_currency_length', default=5))

LOG_LEVEL = os.getenv("BUDGET_PLANNER_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def ensure_data_directories() -> None:
    """Create all required data directories if they don't exist."""
    for directory in [DATA_DIR, DB_PATH.parent]:
        directory.mkdir(parents=True, exist_ok=True)


def configure_logging(level: Optional[str] = None) -> None:
    """Apply the package-wide logging format."""
    logging.basicConfig(level=(level or LOG_LEVEL), format=LOG_FORMAT)
