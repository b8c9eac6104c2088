"""Saving, loading and deleting named planner snapshots.

Snapshots always go to local device storage. When a signed-in session and a
remote backend are both available, they are mirrored to the remote store as
well. The two copies are not kept consistent: a failed remote write still
leaves the local save in place, and a failed remote delete does not undo the
local delete.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from .auth import AuthSession
from .config import (
    DB_PATH,
    DEDUPE_POLICY,
    REMOTE_BACKEND,
    REMOTE_URL,
    RETENTION_DAYS,
)
from .db import SqliteSnapshotStore, iso_utc
from .errors import Notice, OperationResult, RemoteStoreError
from .models import PlannerState, SavedSnapshot
from .settings import get_message
from .storage import LocalSnapshotStorage

logger = logging.getLogger(__name__)

DEDUPE_POLICIES = ('none', 'remote_id')


def merge_snapshots(
    local: List[SavedSnapshot],
    remote: List[SavedSnapshot],
    policy: str = 'none',
) -> List[SavedSnapshot]:
    """Combine local and remote listings.

    ``none`` concatenates both lists, so a mirrored save appears twice.
    ``remote_id`` drops remote entries that a local record already mirrors.
    """
    if policy not in DEDUPE_POLICIES:
        raise ValueError(f"Unknown dedupe policy '{policy}'")
    if policy == 'remote_id':
        mirrored = {s.remote_id for s in local if s.remote_id}
        remote = [s for s in remote if s.id not in mirrored]
    return list(local) + list(remote)


def build_remote_backend():
    """Remote backend selected by configuration, or None."""
    if REMOTE_BACKEND == 'http' and REMOTE_URL:
        from .remote_client import RemoteSnapshotClient
        return RemoteSnapshotClient(REMOTE_URL)
    if REMOTE_BACKEND == 'sqlite':
        return SqliteSnapshotStore(DB_PATH)
    return None


class SnapshotManager:
    """Save/load/delete/list across the local and remote backends."""

    def __init__(
        self,
        local: Optional[LocalSnapshotStorage] = None,
        remote=None,
        dedupe_policy: str = DEDUPE_POLICY,
        retention_days: int = RETENTION_DAYS,
    ) -> None:
        if dedupe_policy not in DEDUPE_POLICIES:
            raise ValueError(f"Unknown dedupe policy '{dedupe_policy}'")
        self.local = local or LocalSnapshotStorage()
        self.remote = remote
        self.dedupe_policy = dedupe_policy
        self.retention_days = retention_days

    # Helpers ----------------------------------------------------------------

    def _remote_owner(self, owner: Optional[AuthSession]) -> Optional[str]:
        """Owner id when remote calls are possible for this session."""
        if self.remote is None or owner is None or not owner.is_authenticated:
            return None
        self.remote.authorize(owner.user_id, owner.token)
        return owner.user_id

    @staticmethod
    def _remote_warning(error: Exception) -> Notice:
        return Notice('warning', get_message(
            'remote_unavailable', "⚠️ Remote storage unavailable: {error}", error=error,
        ))

    # Operations -------------------------------------------------------------

    def save(self, name: str, state: PlannerState, owner: Optional[AuthSession] = None) -> OperationResult[SavedSnapshot]:
        name = (name or '').strip()
        if not name:
            return OperationResult.failure("Please enter a name for this save")

        owner_id = self._remote_owner(owner)
        snapshot = SavedSnapshot(
            id=uuid.uuid4().hex,
            name=name,
            timestamp=iso_utc(),
            state=state,
            owner_id=owner_id,
        )
        try:
            self.local.create(snapshot)
        except OSError as e:
            logger.error("Local save of %r failed: %s", name, e)
            return OperationResult.failure(f"Failed to save state: {e}")

        result = OperationResult.success(snapshot, get_message('state_saved', name=name))
        if owner_id:
            try:
                snapshot.remote_id = self.remote.create(snapshot)
                self.local.replace(snapshot)
            except RemoteStoreError as e:
                logger.error("Remote save of %r failed: %s", name, e)
                result.notices.append(self._remote_warning(e))
            except OSError as e:
                logger.error("Could not record remote id for %s: %s", snapshot.id, e)
                result.warn(f"Saved remotely but the local record was not updated: {e}")
        logger.info("Saved state %s (%r)", snapshot.id, name)
        return result

    def list(self, owner: Optional[AuthSession] = None) -> OperationResult[List[SavedSnapshot]]:
        local = self.local.list()
        remote: List[SavedSnapshot] = []
        notices: List[Notice] = []
        owner_id = self._remote_owner(owner)
        if owner_id:
            try:
                remote = self.remote.list(owner_id)
            except RemoteStoreError as e:
                logger.error("Listing remote states failed: %s", e)
                notices.append(self._remote_warning(e))
        return OperationResult.success(merge_snapshots(local, remote, self.dedupe_policy), notices=notices)

    def load(self, snapshot_id: str, owner: Optional[AuthSession] = None) -> OperationResult[PlannerState]:
        listing = self.list(owner)
        match = next((s for s in listing.value or [] if s.id == snapshot_id), None)
        if match is None:
            return OperationResult.failure(
                get_message('state_not_found', id=snapshot_id), notices=listing.notices,
            )
        return OperationResult.success(
            match.state, get_message('state_loaded', name=match.name), notices=listing.notices,
        )

    def delete(self, snapshot_id: str, owner: Optional[AuthSession] = None) -> OperationResult[bool]:
        """Delete locally, then remotely when the snapshot is owned.

        Unknown ids fail without touching either store.
        """
        owner_id = self._remote_owner(owner)
        local_record = self.local.get(snapshot_id)

        remote_target: Optional[str] = None
        name = local_record.name if local_record else snapshot_id
        if local_record is not None:
            remote_target = local_record.remote_id if owner_id else None
        elif owner_id:
            try:
                remote_match = next(
                    (s for s in self.remote.list(owner_id) if s.id == snapshot_id), None,
                )
            except RemoteStoreError as e:
                logger.error("Looking up remote state %s failed: %s", snapshot_id, e)
                return OperationResult.failure(f"Failed to delete state: {e}", [self._remote_warning(e)])
            if remote_match is not None:
                remote_target = remote_match.id
                name = remote_match.name

        if local_record is None and remote_target is None:
            return OperationResult.failure(get_message('state_not_found', id=snapshot_id))

        result = OperationResult.success(True, get_message('state_deleted', name=name))
        if local_record is not None:
            try:
                self.local.delete(snapshot_id)
            except OSError as e:
                logger.error("Local delete of %s failed: %s", snapshot_id, e)
                return OperationResult.failure(f"Failed to delete state: {e}")

        if remote_target:
            try:
                self.remote.delete(remote_target, owner_id)
            except RemoteStoreError as e:
                logger.error("Remote delete of %s failed: %s", remote_target, e)
                if local_record is None:
                    return OperationResult.failure(f"Failed to delete state: {e}", [self._remote_warning(e)])
                result.notices.append(self._remote_warning(e))
        logger.info("Deleted state %s", snapshot_id)
        return result

    def cleanup(self, owner: Optional[AuthSession] = None, now: Optional[datetime] = None) -> OperationResult[int]:
        """Remove remote saves older than the retention window."""
        if self.remote is None:
            return OperationResult.success(0, "No remote storage configured")
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(days=self.retention_days)
        owner_id = self._remote_owner(owner)
        try:
            count = self.remote.delete_older_than(cutoff, owner_id)
        except RemoteStoreError as e:
            logger.error("Cleanup failed: %s", e)
            return OperationResult.failure("Failed to clean up saved states", [self._remote_warning(e)])
        logger.info("Cleaned up %d saved states older than %s", count, iso_utc(cutoff))
        return OperationResult.success(count, f"Cleaned up {count} old saved states")
