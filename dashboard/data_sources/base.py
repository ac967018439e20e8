"""Interfaces and helpers for weather data sources."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Protocol

from dashboard.app_types import ForecastSnapshot, WeatherSnapshot


class WeatherProvider(Protocol):
    """Interface for anything that can provide current conditions and forecasts by city name."""

    def fetch_current_weather(self, city: str) -> WeatherSnapshot:
        """Return current conditions; raise on any non-success response."""
        ...

    def fetch_forecast(self, city: str) -> ForecastSnapshot:
        """Return the three-hour forecast; raise on any non-success response."""
        ...


@dataclass
class CallableWeatherProvider(WeatherProvider):
    """Wrap two callables so they can be swapped for different backends."""

    current: Callable[..., WeatherSnapshot]
    forecast: Callable[..., ForecastSnapshot]

    def fetch_current_weather(self, city: str) -> WeatherSnapshot:
        """Delegate to the configured current-conditions callable."""
        return self.current(city)

    def fetch_forecast(self, city: str) -> ForecastSnapshot:
        """Delegate to the configured forecast callable."""
        return self.forecast(city)
