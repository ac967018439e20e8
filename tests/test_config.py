import os
import unittest

from pydantic import ValidationError

from dashboard.config import Settings


class _EnvOverride:
    """Set environment variables for the duration of a with-block."""

    def __init__(self, **values):
        self.values = values
        self.previous = {}

    def __enter__(self):
        for key, value in self.values.items():
            self.previous[key] = os.environ.get(key)
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value
        return self

    def __exit__(self, *exc):
        for key, value in self.previous.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value


class TestConfig(unittest.TestCase):
    def test_settings_defaults(self):
        with _EnvOverride(DASHBOARD_OPENWEATHER_BASE_URL=None, DASHBOARD_REFRESH_INTERVAL_SECONDS=None):
            s = Settings()
        self.assertEqual(s.openweather_base_url, "https://api.openweathermap.org/data/2.5")
        self.assertEqual(s.refresh_interval_seconds, 30.0)
        self.assertEqual(s.forecast_stride, 8)
        self.assertEqual(s.forecast_max_days, 5)
        self.assertEqual(s.weather_source, "openweather")

    def test_settings_env_override(self):
        with _EnvOverride(DASHBOARD_OPENWEATHER_API_KEY="k-123", DASHBOARD_REFRESH_INTERVAL_SECONDS="5"):
            s = Settings()
        self.assertEqual(s.openweather_api_key, "k-123")
        self.assertEqual(s.refresh_interval_seconds, 5.0)

    def test_base_urls_lose_trailing_slash(self):
        with _EnvOverride(
            DASHBOARD_OPENWEATHER_BASE_URL="https://owm.example/data/2.5/",
            DASHBOARD_OPENWEATHER_ICON_URL="https://owm.example/img/wn/",
        ):
            s = Settings()
        self.assertEqual(s.openweather_base_url, "https://owm.example/data/2.5")
        self.assertEqual(s.openweather_icon_url, "https://owm.example/img/wn")

    def test_provider_units_are_not_configurable(self):
        with _EnvOverride(DASHBOARD_WEATHER_UNITS="imperial"):
            s = Settings()
        self.assertNotIn("weather_units", s.model_dump())

    def test_forecast_stride_must_be_positive(self):
        with _EnvOverride(DASHBOARD_FORECAST_STRIDE="0"):
            with self.assertRaises(ValidationError):
                Settings()


if __name__ == "__main__":
    unittest.main()
