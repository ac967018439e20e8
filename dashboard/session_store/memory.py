"""Access tokens kept in process memory. Used in development, tests and as the Redis fallback."""

import secrets
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional

from dashboard.app_types import AuthSession
from dashboard.session_store.base import SessionStore
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="session_store/memory")


def generate_token() -> str:
    """Generate a new opaque access token."""
    return secrets.token_urlsafe(32)


@dataclass
class _Entry:
    session: AuthSession
    issued: float  # monotonic
    expires: float  # monotonic


class InMemorySessionStore(SessionStore):
    """
    Sliding-expiry token store.

    Every successful lookup pushes the expiry ``ttl_seconds`` into the future,
    but never past ``issued + max_age_seconds`` when a max age is set. Expired
    entries are evicted lazily on lookup.
    """

    def __init__(self, ttl_seconds: int = 3600, max_age_seconds: int | None = None) -> None:
        self.ttl = ttl_seconds
        self.max_age = max_age_seconds
        self._entries: Dict[str, _Entry] = {}
        self._lock = threading.Lock()
        logger.debug("InMemorySessionStore ready (ttl=%ss, max_age=%s)", ttl_seconds, max_age_seconds)

    def _deadline(self, issued: float, now: float) -> float:
        deadline = now + self.ttl
        if self.max_age is not None:
            deadline = min(deadline, issued + self.max_age)
        return deadline

    def create_session(self, user_id: str, email: str) -> AuthSession:
        session = AuthSession(
            access_token=generate_token(),
            user_id=user_id,
            email=email,
            created_at=datetime.now(timezone.utc),
        )
        now = time.monotonic()
        with self._lock:
            self._entries[session.access_token] = _Entry(session, issued=now, expires=self._deadline(now, now))
        return session

    def get_session(self, access_token: str, *, touch: bool = True) -> Optional[AuthSession]:
        now = time.monotonic()
        with self._lock:
            entry = self._entries.get(access_token)
            if entry is None:
                return None
            if entry.expires < now:
                del self._entries[access_token]
                return None
            if touch:
                entry.expires = self._deadline(entry.issued, now)
            return entry.session

    def delete_session(self, access_token: str) -> None:
        with self._lock:
            self._entries.pop(access_token, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
