"""Email/password accounts and the per-browser auth client that publishes session changes."""

from __future__ import annotations

import hashlib
import hmac
import secrets
import threading
import uuid
from datetime import datetime, timezone
from typing import Callable, List, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from dashboard.app_types import AuthEvent, AuthSession
from dashboard.session_store import SessionStore
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="auth")

PBKDF2_ITERATIONS = 240_000

AuthListener = Callable[[AuthEvent, Optional[AuthSession]], None]


class AuthError(Exception):
    """Sign-up or sign-in was rejected; the message is safe to show to the user."""


def hash_password(password: str, *, salt: Optional[bytes] = None, iterations: int = PBKDF2_ITERATIONS) -> str:
    """Return ``pbkdf2_sha256$<iterations>$<salt hex>$<digest hex>``."""
    salt = salt or secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
    return f"pbkdf2_sha256${iterations}${salt.hex()}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    try:
        algorithm, iterations, salt_hex, digest_hex = encoded.split("$")
    except ValueError:
        return False
    if algorithm != "pbkdf2_sha256":
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), bytes.fromhex(salt_hex), int(iterations))
    return hmac.compare_digest(digest.hex(), digest_hex)


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class AccountStore:
    """User accounts in the ``users`` table."""

    def __init__(self, engine: Engine, *, min_password_length: int = 6) -> None:
        self.engine = engine
        self.min_password_length = min_password_length

    def create_user(self, email: str, password: str) -> str:
        """Create an account and return its user id."""
        email = _normalize_email(email)
        if "@" not in email:
            raise AuthError("A valid email address is required")
        if len(password or "") < self.min_password_length:
            raise AuthError(f"Password should be at least {self.min_password_length} characters")
        user_id = str(uuid.uuid4())
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    text(
                        "INSERT INTO users (id, email, password_hash, created_at) "
                        "VALUES (:id, :email, :password_hash, :created_at)"
                    ),
                    {
                        "id": user_id,
                        "email": email,
                        "password_hash": hash_password(password),
                        "created_at": datetime.now(timezone.utc).isoformat(),
                    },
                )
        except IntegrityError as exc:
            raise AuthError("User already registered") from exc
        logger.info("Created account", extra={"user_id": user_id})
        return user_id

    def authenticate(self, email: str, password: str) -> Optional[tuple[str, str]]:
        """Return ``(user_id, email)`` when the credentials match, else None."""
        email = _normalize_email(email)
        with self.engine.connect() as conn:
            row = conn.execute(
                text("SELECT id, email, password_hash FROM users WHERE email = :email"),
                {"email": email},
            ).mappings().first()
        if row is None or not verify_password(password or "", row["password_hash"]):
            return None
        return row["id"], row["email"]


class AuthClient:
    """
    Auth handle for one browser.

    Holds at most one access token, mirrors it against the session store, and
    calls subscribed listeners with ``(AuthEvent, session)`` on every sign-in
    and sign-out. Listeners run on the thread that performed the transition.
    """

    def __init__(self, accounts: AccountStore, sessions: SessionStore, *, access_token: Optional[str] = None) -> None:
        self.accounts = accounts
        self.sessions = sessions
        self._access_token = access_token
        self._listeners: List[AuthListener] = []
        self._lock = threading.Lock()

    def _emit(self, event: AuthEvent, session: Optional[AuthSession]) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(event, session)

    def on_auth_state_change(self, listener: AuthListener) -> Callable[[], None]:
        """Subscribe to session changes; returns the unsubscribe callable."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def get_session(self, *, touch: bool = True) -> Optional[AuthSession]:
        """
        Return the current session, or None (an expired token signs the client out).

        User-driven checks ``touch`` the token; background checks must not.
        """
        if not self._access_token:
            return None
        session = self.sessions.get_session(self._access_token, touch=touch)
        if session is None:
            logger.info("Stored access token is no longer valid")
            self._access_token = None
            self._emit(AuthEvent.SIGNED_OUT, None)
        return session

    def sign_up(self, email: str, password: str) -> str:
        """Register a new account. Does not sign in; returns the new user id."""
        return self.accounts.create_user(email, password)

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        """Verify credentials, issue a token and notify listeners."""
        found = self.accounts.authenticate(email, password)
        if found is None:
            raise AuthError("Invalid login credentials")
        user_id, normalized_email = found
        if self._access_token:
            self.sessions.delete_session(self._access_token)
        session = self.sessions.create_session(user_id, normalized_email)
        self._access_token = session.access_token
        logger.info("Signed in", extra={"user_id": user_id})
        self._emit(AuthEvent.SIGNED_IN, session)
        return session

    def sign_out(self) -> None:
        """Revoke the current token (if any) and notify listeners."""
        token, self._access_token = self._access_token, None
        if token:
            self.sessions.delete_session(token)
        self._emit(AuthEvent.SIGNED_OUT, None)
