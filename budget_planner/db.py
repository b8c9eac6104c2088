"""SQLite-backed saved-state store.

Mirrors the hosted ``saved_states`` table so a single-host deployment can
share snapshots between sessions without the HTTP service. Every query is
scoped to the owning user id.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional

import pandas as pd

from .config import DB_PATH, ensure_data_directories
from .errors import RemoteStoreError
from .models import PlannerState, SavedSnapshot

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
PRAGMA journal_mode=WAL;
PRAGMA synchronous=NORMAL;

CREATE TABLE IF NOT EXISTS saved_states (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL,
    date TEXT NOT NULL,
    data TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_saved_states_user_id ON saved_states (user_id);
CREATE INDEX IF NOT EXISTS idx_saved_states_created_at ON saved_states (created_at);
"""


def iso_utc(moment: Optional[datetime] = None) -> str:
    """UTC timestamp in the fixed format used for ``date`` comparisons."""
    moment = moment or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec='seconds')


class SqliteSnapshotStore:
    """Owner-scoped snapshot table in a local SQLite database."""

    source = 'remote'

    def __init__(self, db_path: Optional[Path] = None) -> None:
        self.db_path = Path(db_path) if db_path is not None else DB_PATH
        self._initialised = False

    def authorize(self, owner_id: str, token: Optional[str]) -> None:
        # Ownership is enforced by the user_id column; no token needed.
        return None

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        if self.db_path == DB_PATH:
            ensure_data_directories()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            conn = sqlite3.connect(str(self.db_path))
        except sqlite3.Error as e:
            raise RemoteStoreError(f"Cannot open saved-state database: {e}") from e
        try:
            if not self._initialised:
                conn.executescript(SCHEMA_SQL)
                conn.commit()
                self._initialised = True
            yield conn
        except sqlite3.Error as e:
            raise RemoteStoreError(f"Saved-state database error: {e}") from e
        finally:
            conn.close()

    def create(self, snapshot: SavedSnapshot) -> str:
        if not snapshot.owner_id:
            raise RemoteStoreError("Remote saves require an owner id")
        new_id = str(uuid.uuid4())
        now = iso_utc()
        with self.connect() as conn:
            conn.execute(
                "INSERT INTO saved_states (id, user_id, name, date, data, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    new_id,
                    snapshot.owner_id,
                    snapshot.name,
                    snapshot.timestamp or now,
                    json.dumps(snapshot.state.to_dict()),
                    now,
                    now,
                ),
            )
            conn.commit()
        logger.info("Saved state %s for user %s", new_id, snapshot.owner_id)
        return new_id

    def list(self, owner_id: Optional[str] = None) -> List[SavedSnapshot]:
        """Snapshots for ``owner_id`` ordered by date, newest first."""
        if not owner_id:
            return []
        with self.connect() as conn:
            frame = pd.read_sql_query(
                "SELECT id, user_id, name, date, data FROM saved_states "
                "WHERE user_id = ? ORDER BY date DESC",
                conn,
                params=[owner_id],
            )
        snapshots: List[SavedSnapshot] = []
        for row in frame.itertuples(index=False):
            try:
                state = PlannerState.from_dict(json.loads(row.data))
            except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping unreadable saved state %s: %s", row.id, e)
                continue
            snapshots.append(SavedSnapshot(
                id=row.id,
                name=row.name,
                timestamp=row.date,
                state=state,
                owner_id=row.user_id,
                remote_id=row.id,
                source=self.source,
            ))
        return snapshots

    def delete(self, snapshot_id: str, owner_id: Optional[str] = None) -> bool:
        if not owner_id:
            raise RemoteStoreError("Remote deletes require an owner id")
        with self.connect() as conn:
            cursor = conn.execute(
                "DELETE FROM saved_states WHERE id = ? AND user_id = ?",
                (snapshot_id, owner_id),
            )
            conn.commit()
            deleted = cursor.rowcount > 0
        logger.info("Deleted state %s for user %s (matched=%s)", snapshot_id, owner_id, deleted)
        return deleted

    def delete_older_than(self, cutoff: datetime, owner_id: Optional[str] = None) -> int:
        """Remove states of every owner dated before ``cutoff``."""
        with self.connect() as conn:
            cursor = conn.execute("DELETE FROM saved_states WHERE date < ?", (iso_utc(cutoff),))
            conn.commit()
            count = cursor.rowcount
        logger.info("Cleaned up %d old saved states", count)
        return count
