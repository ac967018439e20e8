"""Helpers for fetching current conditions and forecasts from the OpenWeatherMap API."""
from __future__ import annotations

import datetime as dt
from typing import Any, List, Optional

import requests

from dashboard import config
from dashboard.app_types import ForecastEntry, ForecastSnapshot, WeatherSnapshot
from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag="openweather_client")

# Plain session: responses are never cached and failed requests are never retried.
session = requests.Session()

WEATHER_PATH = "/weather"
FORECAST_PATH = "/forecast"
# Snapshots are always Celsius; Fahrenheit is a display conversion only.
UNITS = "metric"


def _first_condition(doc: dict[str, Any]) -> dict[str, Any]:
    """Return ``weather[0]`` or an empty dict when the provider omits it."""
    conditions = doc.get("weather") or []
    return conditions[0] if conditions else {}


def _epoch_to_utc(value: Optional[int | float]) -> dt.datetime:
    if value is None:
        return dt.datetime.now(dt.timezone.utc)
    return dt.datetime.fromtimestamp(value, tz=dt.timezone.utc)


def _params(city: str, api_key: Optional[str]) -> dict[str, str]:
    if not api_key:
        logger.warning("No OpenWeatherMap API key configured; requests will be rejected")
    return {"q": city, "appid": api_key or "", "units": UNITS}


def _get(path: str, params: dict[str, str], *, base_url: str, timeout: float) -> dict[str, Any]:
    """GET ``base_url + path``; raises ``requests.HTTPError`` for any non-2xx response."""
    logger.debug("GET %s for %r", path, params.get("q"))
    resp = session.get(f"{base_url}{path}", params=params, timeout=timeout)
    resp.raise_for_status()
    return resp.json()


def parse_weather_document(doc: dict[str, Any]) -> WeatherSnapshot:
    """Map a ``/weather`` document onto a WeatherSnapshot, keeping the raw document."""
    main = doc.get("main") or {}
    condition = _first_condition(doc)
    return WeatherSnapshot(
        city=doc.get("name", ""),
        country=(doc.get("sys") or {}).get("country"),
        icon=condition.get("icon"),
        description=condition.get("description"),
        temperature=main.get("temp"),
        feels_like=main.get("feels_like"),
        humidity=main.get("humidity"),
        pressure=main.get("pressure"),
        wind_speed=(doc.get("wind") or {}).get("speed"),
        fetched_at=dt.datetime.now(dt.timezone.utc),
        document=doc,
    )


def parse_forecast_document(doc: dict[str, Any], city: str) -> ForecastSnapshot:
    """Map a ``/forecast`` document onto a ForecastSnapshot, preserving provider order."""
    entries: List[ForecastEntry] = []
    for item in doc.get("list") or []:
        condition = _first_condition(item)
        entries.append(
            ForecastEntry(
                time=_epoch_to_utc(item.get("dt")),
                temperature=(item.get("main") or {}).get("temp"),
                icon=condition.get("icon"),
                description=condition.get("description"),
            )
        )
    name = (doc.get("city") or {}).get("name") or city
    return ForecastSnapshot(
        city=name,
        entries=entries,
        fetched_at=dt.datetime.now(dt.timezone.utc),
        document=doc,
    )


def fetch_current_weather(
    city: str,
    *,
    api_key: Optional[str] = None,
    base_url: Optional[str] = None,
    timeout: Optional[float] = None,
) -> WeatherSnapshot:
    """Fetch current conditions for ``city``."""
    s = config.settings
    doc = _get(
        WEATHER_PATH,
        _params(city, api_key or s.openweather_api_key),
        base_url=base_url or s.openweather_base_url,
        timeout=timeout or s.request_timeout_seconds,
    )
    return parse_weather_document(doc)


def fetch_forecast(
    city: str,
    *,
    api_key: Optional[str] = None,
    base_url: Optional[str] = None,
    timeout: Optional[float] = None,
) -> ForecastSnapshot:
    """Fetch the 5-day / 3-hour forecast for ``city``."""
    s = config.settings
    doc = _get(
        FORECAST_PATH,
        _params(city, api_key or s.openweather_api_key),
        base_url=base_url or s.openweather_base_url,
        timeout=timeout or s.request_timeout_seconds,
    )
    return parse_forecast_document(doc, city)
