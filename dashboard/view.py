"""Render controller state into the JSON view model the browser displays."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from dashboard.app_types import AppState, ForecastEntry, TemperatureUnit
from dashboard.weather_service import format_temperature, icon_url


class CurrentConditions(BaseModel):
    """Display strings for the active city's current conditions."""
    city: str
    country: Optional[str] = None
    temperature: str
    feels_like: str
    description: Optional[str] = None
    icon_url: Optional[str] = None
    humidity: str = ""
    wind_speed: str = ""
    pressure: str = ""
    is_saved: bool = False


class DailyForecast(BaseModel):
    """One daily summary picked from the three-hour forecast."""
    day: str  # short weekday, e.g. "Mon"
    timestamp_utc: datetime
    temperature: str
    description: Optional[str] = None
    icon_url: Optional[str] = None


class SavedCityView(BaseModel):
    name: str
    country: Optional[str] = None
    last_updated: datetime


class DashboardView(BaseModel):
    """Everything the dashboard page shows."""
    authenticated: bool
    email: Optional[str] = None
    unit: TemperatureUnit
    active_city: Optional[str] = None
    loading: bool = False
    error: Optional[str] = None
    alert: Optional[str] = None
    current_conditions: Optional[CurrentConditions] = None
    forecast: List[DailyForecast] = []
    saved_cities: List[SavedCityView] = []


def _with_unit(value, unit: str) -> str:
    if value is None:
        return ""
    return f"{value}{unit}"


def render_current(state: AppState, icon_base_url: str) -> Optional[CurrentConditions]:
    weather = state.weather
    if weather is None:
        return None
    return CurrentConditions(
        city=weather.city,
        country=weather.country,
        temperature=format_temperature(weather.temperature, state.unit),
        feels_like=format_temperature(weather.feels_like, state.unit),
        description=weather.description,
        icon_url=icon_url(weather.icon, icon_base_url, scale="4x"),
        humidity=_with_unit(weather.humidity, "%"),
        wind_speed=_with_unit(weather.wind_speed, " m/s"),
        pressure=_with_unit(weather.pressure, " hPa"),
        is_saved=state.is_saved(weather.city),
    )


def render_forecast(days: List[ForecastEntry], unit: TemperatureUnit, icon_base_url: str) -> List[DailyForecast]:
    return [
        DailyForecast(
            day=entry.time.strftime("%a"),
            timestamp_utc=entry.time,
            temperature=format_temperature(entry.temperature, unit),
            description=entry.description,
            icon_url=icon_url(entry.icon, icon_base_url),
        )
        for entry in days
    ]


def render_dashboard(state: AppState, daily_forecast: List[ForecastEntry], *, icon_base_url: str) -> DashboardView:
    """Build the view model. Pure: reads state, never mutates it."""
    return DashboardView(
        authenticated=state.authenticated,
        email=state.session.email if state.session else None,
        unit=state.unit,
        active_city=state.active_city,
        loading=state.loading,
        error=state.error,
        alert=state.alert,
        current_conditions=render_current(state, icon_base_url),
        forecast=render_forecast(daily_forecast, state.unit, icon_base_url),
        saved_cities=[
            SavedCityView(name=c.name, country=c.country, last_updated=c.last_updated)
            for c in state.saved_cities
        ],
    )
