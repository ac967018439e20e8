"""Access tokens in Redis, so sessions survive restarts and are shared between workers."""

import json
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from redis.exceptions import RedisError

from dashboard.app_types import AuthSession
from dashboard.session_store.base import SessionStore
from dashboard.session_store.memory import generate_token
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="session_store/redis")

KEY_PREFIX = "dashboard:session:"


def _encode(session: AuthSession, issued: float) -> bytes:
    return json.dumps(
        {
            "access_token": session.access_token,
            "user_id": session.user_id,
            "email": session.email,
            "issued_at": session.created_at.isoformat(),
            "created_at": issued,
        }
    ).encode("utf-8")


def _decode(raw: bytes) -> Optional[tuple[AuthSession, float]]:
    try:
        doc: Dict[str, Any] = json.loads(raw.decode("utf-8"))
        session = AuthSession(
            access_token=doc["access_token"],
            user_id=doc["user_id"],
            email=doc["email"],
            created_at=datetime.fromisoformat(doc["issued_at"]),
        )
        return session, float(doc.get("created_at") or time.time())
    except (ValueError, KeyError, TypeError, UnicodeDecodeError) as exc:
        logger.error("Discarding unreadable session payload: %s", exc)
        return None


class RedisSessionStore(SessionStore):
    """
    One JSON value per token under ``prefix``, expiring via Redis TTL.

    Touching reads slide the TTL forward, capped so no token lives past
    ``max_age_seconds`` from issue. Connection errors on read or delete are
    logged and treated as "no session"; errors on create propagate so
    sign-in fails loudly.
    """

    def __init__(self, client, ttl_seconds: int = 3600, max_age_seconds: int | None = None,
                 prefix: str = KEY_PREFIX) -> None:
        self.client = client
        self.ttl = ttl_seconds
        self.max_age = max_age_seconds
        self.prefix = prefix
        logger.debug("RedisSessionStore ready (prefix=%s, ttl=%ss)", prefix, ttl_seconds)

    def _key(self, access_token: str) -> str:
        return self.prefix + access_token

    def _expiry_for(self, issued: float) -> int:
        """Seconds to keep the key alive from now; 0 once the max age has passed."""
        if self.max_age is None:
            return self.ttl
        left = int(issued + self.max_age - time.time())
        return max(0, min(self.ttl, left))

    def create_session(self, user_id: str, email: str) -> AuthSession:
        session = AuthSession(
            access_token=generate_token(),
            user_id=user_id,
            email=email,
            created_at=datetime.now(timezone.utc),
        )
        issued = time.time()
        try:
            self.client.setex(self._key(session.access_token), self._expiry_for(issued) or 1, _encode(session, issued))
        except RedisError:
            logger.exception("Could not store session for user %s", user_id)
            raise
        return session

    def get_session(self, access_token: str, *, touch: bool = True) -> Optional[AuthSession]:
        key = self._key(access_token)
        try:
            raw = self.client.get(key)
        except RedisError as exc:
            logger.error("Session lookup failed: %s", exc)
            return None
        decoded = _decode(raw) if raw else None
        if decoded is None:
            return None

        session, issued = decoded
        expiry = self._expiry_for(issued)
        if expiry <= 0:
            self.delete_session(access_token)
            return None
        if not touch:
            return session
        try:
            self.client.expire(key, expiry)
        except RedisError as exc:
            logger.warning("Could not extend session TTL: %s", exc)
        return session

    def delete_session(self, access_token: str) -> None:
        try:
            self.client.delete(self._key(access_token))
        except RedisError as exc:
            logger.error("Session delete failed: %s", exc)

    def clear(self) -> None:
        """Delete every key under ``prefix`` (test and maintenance helper)."""
        try:
            for key in self.client.scan_iter(f"{self.prefix}*"):
                self.client.delete(key)
        except RedisError as exc:
            logger.error("Session clear failed: %s", exc)
