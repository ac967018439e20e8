"""Weather data sources and the factory that picks one at startup."""

from .base import CallableWeatherProvider, WeatherProvider
from .factory import build_weather_provider
from .openweather_client import (
    fetch_current_weather,
    fetch_forecast,
    parse_forecast_document,
    parse_weather_document,
)

__all__ = [
    "build_weather_provider",
    "CallableWeatherProvider",
    "WeatherProvider",
    "fetch_current_weather",
    "fetch_forecast",
    "parse_forecast_document",
    "parse_weather_document",
]
