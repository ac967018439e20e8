"""Shared dataclasses and lightweight types used across modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional


class TemperatureUnit(str, Enum):
    """Display unit for temperatures. Snapshots are always stored in Celsius."""
    METRIC = "metric"
    IMPERIAL = "imperial"

    def toggled(self) -> "TemperatureUnit":
        return TemperatureUnit.IMPERIAL if self is TemperatureUnit.METRIC else TemperatureUnit.METRIC

    @property
    def symbol(self) -> str:
        return "°F" if self is TemperatureUnit.IMPERIAL else "°C"


class AuthEvent(str, Enum):
    """Auth-state transitions published by the session store."""
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"


@dataclass(frozen=True)
class AuthSession:
    """Authenticated identity: opaque token plus the user it belongs to."""
    access_token: str
    user_id: str
    email: str
    created_at: datetime


@dataclass
class WeatherSnapshot:
    """Current conditions for one city, as returned by the weather provider (metric units)."""
    city: str
    country: Optional[str]
    icon: Optional[str]
    description: Optional[str]
    temperature: float
    feels_like: Optional[float]
    humidity: Optional[float]
    pressure: Optional[float]
    wind_speed: Optional[float]
    fetched_at: datetime
    document: dict[str, Any] = field(repr=False, default_factory=dict)


@dataclass
class ForecastEntry:
    """One three-hour forecast sample."""
    time: datetime  # UTC
    temperature: float
    icon: Optional[str]
    description: Optional[str]


@dataclass
class ForecastSnapshot:
    """Three-hour-resolution forecast for one city, in provider order."""
    city: str
    entries: List[ForecastEntry]
    fetched_at: datetime
    document: dict[str, Any] = field(repr=False, default_factory=dict)


@dataclass
class SavedCity:
    """A user's bookmarked city with the weather document captured when saved."""
    name: str
    country: Optional[str]
    last_updated: datetime
    weather_data: dict[str, Any] = field(repr=False, default_factory=dict)


@dataclass
class AppState:
    """Everything the view layer renders; owned and mutated only by the controller."""
    session: Optional[AuthSession] = None
    active_city: Optional[str] = None
    weather: Optional[WeatherSnapshot] = None
    forecast: Optional[ForecastSnapshot] = None
    saved_cities: List[SavedCity] = field(default_factory=list)
    unit: TemperatureUnit = TemperatureUnit.METRIC
    loading: bool = False
    error: Optional[str] = None
    alert: Optional[str] = None

    @property
    def authenticated(self) -> bool:
        return self.session is not None

    def is_saved(self, city_name: str) -> bool:
        return any(saved.name == city_name for saved in self.saved_cities)
