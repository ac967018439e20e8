"""SQL-backed saved-city store (SQLite by default, any SQLAlchemy URL works)."""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine

from dashboard.app_types import SavedCity
from dashboard.saved_cities.base import SavedCityStore
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="saved_cities/sql_store")


class SqlSavedCityStore(SavedCityStore):
    """Persist saved cities in the ``saved_cities`` table."""

    def __init__(self, engine: Engine) -> None:
        """Bind to a database engine whose schema is already initialized."""
        self.engine = engine

    @staticmethod
    def _parse_timestamp(value: Any) -> datetime:
        if isinstance(value, datetime):
            ts = value
        else:
            ts = datetime.fromisoformat(str(value))
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        return ts

    def _row_to_city(self, row: Mapping) -> SavedCity:
        raw = row["weather_data"]
        weather_data = json.loads(raw) if isinstance(raw, (str, bytes)) else (raw or {})
        return SavedCity(
            name=row["city_name"],
            country=row["country"],
            last_updated=self._parse_timestamp(row["last_updated"]),
            weather_data=weather_data,
        )

    def list_cities(self, user_id: str) -> List[SavedCity]:
        """Select the user's saved cities, oldest first."""
        query = text(
            "SELECT city_name, country, weather_data, last_updated "
            "FROM saved_cities WHERE user_id = :user_id ORDER BY last_updated"
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query, {"user_id": user_id}).mappings().all()
        logger.debug("Loaded %d saved cities", len(rows), extra={"user_id": user_id})
        return [self._row_to_city(row) for row in rows]

    def insert_city(
        self,
        user_id: str,
        city_name: str,
        country: Optional[str],
        weather_data: dict[str, Any],
        last_updated: datetime,
    ) -> None:
        """Insert a saved city; an existing (user, city) row is replaced in the same transaction."""
        with self.engine.begin() as conn:
            conn.execute(
                text("DELETE FROM saved_cities WHERE user_id = :user_id AND city_name = :city_name"),
                {"user_id": user_id, "city_name": city_name},
            )
            conn.execute(
                text(
                    "INSERT INTO saved_cities (id, user_id, city_name, country, weather_data, last_updated) "
                    "VALUES (:id, :user_id, :city_name, :country, :weather_data, :last_updated)"
                ),
                {
                    "id": str(uuid.uuid4()),
                    "user_id": user_id,
                    "city_name": city_name,
                    "country": country,
                    "weather_data": json.dumps(weather_data),
                    "last_updated": last_updated.isoformat(),
                },
            )
        logger.info("Saved city %s", city_name, extra={"user_id": user_id})

    def delete_city(self, user_id: str, city_name: str) -> int:
        """Delete the user's rows for ``city_name``."""
        with self.engine.begin() as conn:
            result = conn.execute(
                text("DELETE FROM saved_cities WHERE user_id = :user_id AND city_name = :city_name"),
                {"user_id": user_id, "city_name": city_name},
            )
        logger.info("Removed %d saved rows for %s", result.rowcount, city_name, extra={"user_id": user_id})
        return result.rowcount
