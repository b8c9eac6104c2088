"""Local device storage for saved planner snapshots.

The whole collection lives in a single JSON file that is read and written
wholesale. This backend is not owner-scoped: every snapshot saved on this
machine is visible to whoever runs the app.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import SNAPSHOTS_PATH, ensure_data_directories
from .models import SavedSnapshot

logger = logging.getLogger(__name__)

STORAGE_VERSION = 1


class LocalSnapshotStorage:
    """Handles the snapshot collection file."""

    source = 'local'

    def __init__(self, path: Optional[Path] = None):
        """Initialize local storage.

        Args:
            path: Optional custom location of the snapshot file.
                  Defaults to SNAPSHOTS_PATH from config.
        """
        self.path = Path(path) if path is not None else SNAPSHOTS_PATH

    def load_all(self) -> List[SavedSnapshot]:
        """Load every stored snapshot.

        Returns:
            Snapshots in file order. A missing or corrupted file loads as an
            empty collection; individual malformed entries are skipped.
        """
        if not self.path.exists():
            return []
        try:
            with self.path.open('r', encoding='utf-8') as handle:
                data = json.load(handle)
        except (json.JSONDecodeError, OSError) as e:
            logger.error("Could not read saved states from %s: %s", self.path, e)
            return []

        entries = data.get('states', []) if isinstance(data, dict) else data
        if not isinstance(entries, list):
            return []

        snapshots: List[SavedSnapshot] = []
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            try:
                snapshots.append(SavedSnapshot.from_dict(entry, source=self.source))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed saved state %r: %s", entry.get('id'), e)
        return snapshots

    def write_all(self, snapshots: List[SavedSnapshot]) -> None:
        """Replace the stored collection.

        Raises:
            OSError: If the file cannot be written
        """
        if self.path == SNAPSHOTS_PATH:
            ensure_data_directories()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload: Dict[str, Any] = {
            'version': STORAGE_VERSION,
            'saved_at': datetime.now(timezone.utc).isoformat(timespec='seconds'),
            'states': [s.to_dict() for s in snapshots],
        }
        try:
            with self.path.open('w', encoding='utf-8') as handle:
                json.dump(payload, handle, indent=2, sort_keys=True)
        except OSError as e:
            raise OSError(f"Failed to save states to {self.path}: {e}") from e

    # Backend interface ----------------------------------------------------

    def list(self, owner_id: Optional[str] = None) -> List[SavedSnapshot]:
        return self.load_all()

    def create(self, snapshot: SavedSnapshot) -> str:
        snapshots = self.load_all()
        snapshots.append(snapshot)
        self.write_all(snapshots)
        return snapshot.id

    def replace(self, snapshot: SavedSnapshot) -> None:
        """Overwrite the stored record with the same id."""
        snapshots = [snapshot if s.id == snapshot.id else s for s in self.load_all()]
        self.write_all(snapshots)

    def get(self, snapshot_id: str) -> Optional[SavedSnapshot]:
        return next((s for s in self.load_all() if s.id == snapshot_id), None)

    def delete(self, snapshot_id: str, owner_id: Optional[str] = None) -> bool:
        """Remove a snapshot; returns False (and writes nothing) for unknown ids."""
        snapshots = self.load_all()
        remaining = [s for s in snapshots if s.id != snapshot_id]
        if len(remaining) == len(snapshots):
            return False
        self.write_all(remaining)
        return True

    def delete_older_than(self, cutoff: datetime, owner_id: Optional[str] = None) -> int:
        # Local saves are kept until the user deletes them.
        return 0
