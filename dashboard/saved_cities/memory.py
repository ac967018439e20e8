"""In-memory saved-city store, intended for development and tests."""

import threading
from datetime import datetime
from typing import Any, List, Optional

from dashboard.app_types import SavedCity
from dashboard.saved_cities.base import SavedCityStore
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="saved_cities/in_memory_store")


class InMemorySavedCityStore(SavedCityStore):
    """Thread-safe dict-of-lists store keyed by user id."""

    def __init__(self) -> None:
        logger.debug("Initializing InMemorySavedCityStore")
        self._rows: dict[str, List[SavedCity]] = {}
        self._lock = threading.Lock()

    def list_cities(self, user_id: str) -> List[SavedCity]:
        with self._lock:
            return list(self._rows.get(user_id, []))

    def insert_city(self, user_id: str, city_name: str, country: Optional[str],
                    weather_data: dict[str, Any], last_updated: datetime) -> None:
        with self._lock:
            rows = [c for c in self._rows.get(user_id, []) if c.name != city_name]
            rows.append(SavedCity(name=city_name, country=country, last_updated=last_updated,
                                  weather_data=weather_data))
            self._rows[user_id] = rows

    def delete_city(self, user_id: str, city_name: str) -> int:
        with self._lock:
            rows = self._rows.get(user_id, [])
            kept = [c for c in rows if c.name != city_name]
            self._rows[user_id] = kept
            return len(rows) - len(kept)
