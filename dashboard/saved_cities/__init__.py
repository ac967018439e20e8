"""Saved-city persistence backends."""

from .base import SavedCityStore
from .memory import InMemorySavedCityStore
from .sql import SqlSavedCityStore

__all__ = [
    "SavedCityStore",
    "InMemorySavedCityStore",
    "SqlSavedCityStore",
]
