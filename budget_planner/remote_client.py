"""HTTP client for the hosted saved-states API.

Endpoints (relative to the configured base URL):

* ``POST   /api/states/save``     body ``{name, data, date}`` -> ``{id}``
* ``GET    /api/states/get``      -> list of states, newest first
* ``DELETE /api/states/delete``   query ``id``
* ``POST   /api/states/cleanup``  body ``{before}`` -> ``{count}``

Every request carries ``Authorization: Bearer <token>``; the service derives
the owner from that token.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import requests

from .config import REMOTE_TIMEOUT
from .db import iso_utc
from .errors import RemoteStoreError
from .models import PlannerState, SavedSnapshot

logger = logging.getLogger(__name__)


class RemoteSnapshotClient:
    """Thin wrapper over :mod:`requests` for the saved-states endpoints."""

    source = 'remote'

    def __init__(
        self,
        base_url: str,
        timeout: float = REMOTE_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self._tokens: Dict[str, str] = {}

    # Authorization --------------------------------------------------------

    def authorize(self, owner_id: str, token: Optional[str]) -> None:
        if token:
            self._tokens[owner_id] = token

    def _headers(self, owner_id: Optional[str]) -> Dict[str, str]:
        token = None
        if owner_id:
            token = self._tokens.get(owner_id)
        if not token:
            raise RemoteStoreError("Remote storage requires a signed-in user")
        return {
            'Authorization': f"Bearer {token}",
            'Content-Type': 'application/json',
        }

    def _request(self, method: str, path: str, owner_id: Optional[str], **kwargs: Any) -> Any:
        url = f"{self.base_url}{path}"
        headers = self._headers(owner_id)
        try:
            response = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
            response.raise_for_status()
        except requests.exceptions.Timeout as e:
            logger.error("%s %s timed out after %ss", method, url, self.timeout)
            raise RemoteStoreError(f"Request timed out after {self.timeout} seconds") from e
        except requests.exceptions.ConnectionError as e:
            logger.error("%s %s failed to connect: %s", method, url, e)
            raise RemoteStoreError("Unable to connect to the remote storage service") from e
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else 'unknown'
            logger.error("%s %s returned HTTP %s", method, url, status)
            raise RemoteStoreError(f"Remote storage returned HTTP {status}") from e
        except requests.exceptions.RequestException as e:
            logger.error("%s %s failed: %s", method, url, e)
            raise RemoteStoreError(str(e)) from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise RemoteStoreError("Invalid JSON response from remote storage") from e

    # Backend interface ----------------------------------------------------

    def create(self, snapshot: SavedSnapshot) -> str:
        body = {
            'name': snapshot.name,
            'date': snapshot.timestamp,
            'data': snapshot.state.to_dict(),
        }
        payload = self._request('POST', '/api/states/save', snapshot.owner_id, json=body)
        if not isinstance(payload, dict) or not payload.get('id'):
            raise RemoteStoreError("Remote storage did not return an id")
        return str(payload['id'])

    def list(self, owner_id: Optional[str] = None) -> List[SavedSnapshot]:
        if not owner_id:
            return []
        payload = self._request('GET', '/api/states/get', owner_id)
        if not isinstance(payload, list):
            raise RemoteStoreError("Unexpected saved-state listing from remote storage")
        snapshots = []
        for row in payload:
            snapshot = self._from_row(row, owner_id)
            if snapshot is not None:
                snapshots.append(snapshot)
        return snapshots

    def delete(self, snapshot_id: str, owner_id: Optional[str] = None) -> bool:
        self._request('DELETE', '/api/states/delete', owner_id, params={'id': snapshot_id})
        return True

    def delete_older_than(self, cutoff: datetime, owner_id: Optional[str] = None) -> int:
        payload = self._request('POST', '/api/states/cleanup', owner_id, json={'before': iso_utc(cutoff)})
        if isinstance(payload, dict):
            return int(payload.get('count', 0) or 0)
        return 0

    # Helpers ----------------------------------------------------------------

    def _from_row(self, row: Any, owner_id: str) -> Optional[SavedSnapshot]:
        if not isinstance(row, dict) or 'id' not in row:
            return None
        data = row.get('data') or {}
        try:
            state = PlannerState.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping unreadable remote state %s: %s", row.get('id'), e)
            return None
        return SavedSnapshot(
            id=str(row['id']),
            name=str(row.get('name', '')),
            timestamp=str(row.get('date', '')),
            state=state,
            owner_id=row.get('user_id', owner_id),
            remote_id=str(row['id']),
            source=self.source,
        )
