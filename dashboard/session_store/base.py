"""Shared protocol for auth-token storage backends."""

from typing import Optional, Protocol

from dashboard.app_types import AuthSession


class SessionStore(Protocol):
    """Protocol for session (access token) storage backends."""
    def create_session(self, user_id: str, email: str) -> AuthSession:
        """Issue and persist a new access token for a user."""

    def get_session(self, access_token: str, *, touch: bool = True) -> Optional[AuthSession]:
        """Fetch a session by token, returning None if missing or expired.

        ``touch`` slides the expiry forward; background checks pass False so
        they never keep an abandoned session alive.
        """

    def delete_session(self, access_token: str) -> None:
        """Delete a session without raising if it is absent."""

    def clear(self) -> None:
        """Clear all stored sessions."""
