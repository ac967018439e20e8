"""Factory helpers for choosing a weather data source at startup."""

from __future__ import annotations

from dashboard import config
from dashboard.data_sources.base import CallableWeatherProvider, WeatherProvider
from dashboard.data_sources.openweather_client import fetch_current_weather, fetch_forecast
from utils.logging_utils import get_tagged_logger, mask_api_key

logger = get_tagged_logger(__name__, tag="data_sources/factory")


DEFAULT_SOURCE_NAME = "openweather"


def build_weather_provider(settings: config.Settings | None = None) -> WeatherProvider:
    """Instantiate the configured weather provider."""
    settings = settings or config.settings
    source = (settings.weather_source or DEFAULT_SOURCE_NAME).lower()

    if source == "openweather":
        logger.info(
            "Using OpenWeatherMap data source",
            extra={"base_url": settings.openweather_base_url, "api_key": mask_api_key(settings.openweather_api_key)},
        )
        return CallableWeatherProvider(
            current=lambda city: fetch_current_weather(
                city,
                api_key=settings.openweather_api_key,
                base_url=settings.openweather_base_url,
                timeout=settings.request_timeout_seconds,
            ),
            forecast=lambda city: fetch_forecast(
                city,
                api_key=settings.openweather_api_key,
                base_url=settings.openweather_base_url,
                timeout=settings.request_timeout_seconds,
            ),
        )

    raise ValueError(f"Unknown weather source '{source}'")
