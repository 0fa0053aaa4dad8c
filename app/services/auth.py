"""Admin sessions backed by a configured bcrypt credential."""

from __future__ import annotations

import hmac
import logging
import secrets
import time
from dataclasses import dataclass
from typing import Callable

from bcrypt import checkpw, gensalt, hashpw

logger = logging.getLogger(__name__)

DEFAULT_ROUNDS = 12


def hash_password(password: str, *, rounds: int = DEFAULT_ROUNDS) -> str:
    """Return a bcrypt hash suitable for ``ADMIN_PASSWORD_HASH``."""

    return hashpw(password.encode("utf-8"), gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, encoded: str) -> bool:
    try:
        return checkpw(password.encode("utf-8"), encoded.encode("utf-8"))
    except ValueError:
        logger.error("Admin password hash is not a valid bcrypt hash")
        return False


@dataclass(slots=True)
class AdminSession:
    token: str
    email: str
    expires_at: float

    def to_payload(self) -> dict[str, object]:
        return {"token": self.token, "email": self.email, "expires_at": int(self.expires_at)}


class AdminSessionStore:
    """In-memory admin sessions: login creates one, logout or expiry ends it."""

    def __init__(
        self,
        admin_email: str | None,
        password_hash: str | None,
        *,
        ttl_seconds: int = 43_200,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._admin_email = (admin_email or "").strip().casefold()
        self._password_hash = password_hash or ""
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._sessions: dict[str, AdminSession] = {}

    @property
    def enabled(self) -> bool:
        return bool(self._admin_email and self._password_hash)

    def login(self, email: str, password: str) -> AdminSession | None:
        """Return a new session for valid credentials, otherwise ``None``."""

        self._prune()
        if not self.enabled:
            logger.warning("Admin login attempted but no credentials are configured")
            return None
        email_ok = hmac.compare_digest(
            (email or "").strip().casefold().encode("utf-8"),
            self._admin_email.encode("utf-8"),
        )
        password_ok = verify_password(password or "", self._password_hash)
        if not (email_ok and password_ok):
            logger.info("Rejected admin login for %s", email)
            return None

        session = AdminSession(
            token=secrets.token_urlsafe(32),
            email=self._admin_email,
            expires_at=self._clock() + self._ttl_seconds,
        )
        self._sessions[session.token] = session
        return session

    def authenticate(self, token: str | None) -> AdminSession | None:
        if not token:
            return None
        session = self._sessions.get(token)
        if session is None:
            return None
        if session.expires_at <= self._clock():
            self._sessions.pop(token, None)
            return None
        return session

    def logout(self, token: str | None) -> bool:
        if not token:
            return False
        return self._sessions.pop(token, None) is not None

    def _prune(self) -> None:
        now = self._clock()
        expired = [
            key for key, session in self._sessions.items() if session.expires_at <= now
        ]
        for key in expired:
            self._sessions.pop(key, None)
