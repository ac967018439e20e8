"""Session (access token) storage backends."""

from .base import SessionStore
from .memory import InMemorySessionStore
from .redis import RedisSessionStore

__all__ = [
    "SessionStore",
    "InMemorySessionStore",
    "RedisSessionStore",
]
