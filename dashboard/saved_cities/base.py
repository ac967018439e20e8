"""Shared protocol for saved-city persistence backends."""

from datetime import datetime
from typing import Any, List, Optional, Protocol

from dashboard.app_types import SavedCity


class SavedCityStore(Protocol):
    """Record store of saved cities, scoped by user id."""

    def list_cities(self, user_id: str) -> List[SavedCity]:
        """Return the user's saved cities in insertion order."""

    def insert_city(
        self,
        user_id: str,
        city_name: str,
        country: Optional[str],
        weather_data: dict[str, Any],
        last_updated: datetime,
    ) -> None:
        """Save a city for a user, replacing an existing entry with the same name."""

    def delete_city(self, user_id: str, city_name: str) -> int:
        """Delete every record of ``city_name`` for the user; return the number removed."""
