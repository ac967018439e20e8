"""Presentation helpers over weather snapshots: daily forecast picks and unit conversion."""
from __future__ import annotations

from typing import List, Optional, Sequence

from dashboard.app_types import ForecastEntry, TemperatureUnit

SAMPLES_PER_DAY = 8  # 24h / 3h
MAX_FORECAST_DAYS = 5


def extract_daily_forecast(
    entries: Sequence[ForecastEntry],
    *,
    stride: int = SAMPLES_PER_DAY,
    max_days: int = MAX_FORECAST_DAYS,
) -> List[ForecastEntry]:
    """
    Pick one entry per day from a three-hour forecast list.

    Takes every ``stride``-th entry (indices 0, 8, 16, ...) in provider order and
    stops after ``max_days``. Dates are not deduplicated beyond the stride.
    """
    return list(entries[::stride][:max_days])


def convert_temperature(celsius: float, unit: TemperatureUnit) -> float:
    """Convert a Celsius value to the display unit, rounded to one decimal place."""
    if unit is TemperatureUnit.IMPERIAL:
        return round(celsius * 9 / 5 + 32, 1)
    return round(celsius, 1)


def format_temperature(celsius: Optional[float], unit: TemperatureUnit) -> str:
    """Format a Celsius value for display, e.g. ``15.0°C`` or ``59.0°F``."""
    if celsius is None:
        return ""
    value = celsius * 9 / 5 + 32 if unit is TemperatureUnit.IMPERIAL else celsius
    return f"{value:.1f}{unit.symbol}"


def icon_url(icon: Optional[str], base_url: str, *, scale: str = "2x") -> Optional[str]:
    """Build the provider's icon URL for an icon code."""
    if not icon:
        return None
    return f"{base_url}/{icon}@{scale}.png"
