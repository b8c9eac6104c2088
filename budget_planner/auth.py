"""Minimal sign-in gate for remote persistence.

Two ways to check credentials are supported: an exact match against a
configured username/password pair, or delegation to a hosted identity service
using the password grant. A successful sign-in stores the session token on
this device; logging out removes it. Sessions never expire.
"""

from __future__ import annotations

import enum
import hmac
import json
import logging
import secrets
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import requests

from .config import (
    AUTH_API_KEY,
    AUTH_PASSWORD,
    AUTH_URL,
    AUTH_USERNAME,
    REMOTE_TIMEOUT,
    SESSION_PATH,
    ensure_data_directories,
)
from .errors import AuthenticationError

logger = logging.getLogger(__name__)


class AuthState(enum.Enum):
    ANONYMOUS = 'anonymous'
    AUTHENTICATED = 'authenticated'


@dataclass
class AuthSession:
    user_id: Optional[str] = None
    token: Optional[str] = None

    @property
    def state(self) -> AuthState:
        if self.user_id and self.token:
            return AuthState.AUTHENTICATED
        return AuthState.ANONYMOUS

    @property
    def is_authenticated(self) -> bool:
        return self.state is AuthState.AUTHENTICATED

    @classmethod
    def anonymous(cls) -> 'AuthSession':
        return cls()


# ---------------------------------------------------------------------------
# Credential checks
# ---------------------------------------------------------------------------


class StaticCredentialVerifier:
    """Accepts exactly one configured username/password pair."""

    def __init__(self, username: str = AUTH_USERNAME, password: str = AUTH_PASSWORD) -> None:
        self.username = username
        self.password = password

    def verify(self, username: str, password: str) -> Optional[Tuple[str, str]]:
        if not self.username or not self.password:
            logger.warning("Static sign-in is not configured; rejecting login")
            return None
        user_ok = hmac.compare_digest(username.encode('utf-8'), self.username.encode('utf-8'))
        pass_ok = hmac.compare_digest(password.encode('utf-8'), self.password.encode('utf-8'))
        if user_ok and pass_ok:
            return self.username, secrets.token_urlsafe(32)
        return None


class IdentityServiceVerifier:
    """Delegates the credential check to a hosted identity service."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = REMOTE_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def verify(self, username: str, password: str) -> Optional[Tuple[str, str]]:
        url = f"{self.base_url}/auth/v1/token"
        headers = {'Content-Type': 'application/json'}
        if self.api_key:
            headers['apikey'] = self.api_key
        try:
            response = self.session.post(
                url,
                params={'grant_type': 'password'},
                json={'email': username, 'password': password},
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error("Identity service unreachable: %s", e)
            raise AuthenticationError("Unable to reach the identity service") from e

        if response.status_code in (400, 401, 403):
            return None
        if not response.ok:
            logger.error("Identity service returned HTTP %s", response.status_code)
            raise AuthenticationError(f"Identity service returned HTTP {response.status_code}")

        try:
            payload = response.json()
            token = payload['access_token']
            user_id = payload['user']['id']
        except (ValueError, KeyError, TypeError) as e:
            raise AuthenticationError("Unexpected response from the identity service") from e
        return str(user_id), str(token)


def default_verifier():
    if AUTH_URL:
        return IdentityServiceVerifier(AUTH_URL, AUTH_API_KEY)
    return StaticCredentialVerifier()


# ---------------------------------------------------------------------------
# Gate
# ---------------------------------------------------------------------------


class AuthGate:
    """Tracks the signed-in user and persists the session token locally."""

    def __init__(self, verifier=None, session_path: Optional[Path] = None) -> None:
        self.verifier = verifier or default_verifier()
        self.session_path = Path(session_path) if session_path is not None else SESSION_PATH

    def login(self, username: str, password: str) -> Optional[AuthSession]:
        """Return an authenticated session, or None when the credentials don't match.

        Raises:
            AuthenticationError: If the identity service fails
        """
        if not username or not password:
            return None
        result = self.verifier.verify(username, password)
        if result is None:
            logger.info("Rejected sign-in for %r", username)
            return None
        user_id, token = result
        session = AuthSession(user_id=user_id, token=token)
        self._store(session)
        logger.info("User %s signed in", user_id)
        return session

    def logout(self) -> AuthSession:
        try:
            self.session_path.unlink()
        except FileNotFoundError:
            pass
        return AuthSession.anonymous()

    def restore(self) -> AuthSession:
        """Read a previously stored session; corrupt files are discarded."""
        if not self.session_path.exists():
            return AuthSession.anonymous()
        try:
            with self.session_path.open('r', encoding='utf-8') as handle:
                data = json.load(handle)
            session = AuthSession(user_id=data['user']['id'], token=data['token'])
        except (json.JSONDecodeError, OSError, KeyError, TypeError) as e:
            logger.error("Discarding unreadable session file %s: %s", self.session_path, e)
            self.logout()
            return AuthSession.anonymous()
        return session if session.is_authenticated else AuthSession.anonymous()

    def _store(self, session: AuthSession) -> None:
        if self.session_path == SESSION_PATH:
            ensure_data_directories()
        self.session_path.parent.mkdir(parents=True, exist_ok=True)
        with self.session_path.open('w', encoding='utf-8') as handle:
            json.dump({'user': {'id': session.user_id}, 'token': session.token}, handle)
