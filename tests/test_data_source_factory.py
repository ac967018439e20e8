import unittest

from dashboard.data_sources import openweather_client
from dashboard.data_sources.factory import DEFAULT_SOURCE_NAME, build_weather_provider
from dashboard.data_sources.base import CallableWeatherProvider


class DummySettings:
    def __init__(self, **kwargs):
        self.weather_source = DEFAULT_SOURCE_NAME
        self.openweather_api_key = "secret-key"
        self.openweather_base_url = "https://owm.test"
        self.request_timeout_seconds = 3
        for k, v in kwargs.items():
            setattr(self, k, v)


class _Resp:
    def raise_for_status(self):
        pass

    def json(self):
        return {"name": "Oslo", "main": {"temp": -2.0}}


class TestDataSourceFactory(unittest.TestCase):
    def test_build_openweather_default(self):
        provider = build_weather_provider(DummySettings())
        self.assertIsInstance(provider, CallableWeatherProvider)

    def test_unknown_source_raises(self):
        with self.assertRaises(ValueError):
            build_weather_provider(DummySettings(weather_source="unknown-source"))

    def test_provider_passes_configured_parameters(self):
        calls = []

        def fake_get(url, params=None, timeout=None):
            calls.append((url, params, timeout))
            return _Resp()

        orig = openweather_client.session
        try:
            openweather_client.session = type("S", (), {"get": staticmethod(fake_get)})()
            provider = build_weather_provider(DummySettings())
            snap = provider.fetch_current_weather("Oslo")
        finally:
            openweather_client.session = orig

        self.assertEqual(snap.temperature, -2.0)
        self.assertEqual(calls[0], ("https://owm.test/weather", {"q": "Oslo", "appid": "secret-key", "units": "metric"}, 3))

    def test_requests_always_ask_for_metric_units(self):
        calls = []

        def fake_get(url, params=None, timeout=None):
            calls.append(params)
            return _Resp()

        orig = openweather_client.session
        try:
            openweather_client.session = type("S", (), {"get": staticmethod(fake_get)})()
            # a stray unit setting must not reach the provider; snapshots are Celsius
            provider = build_weather_provider(DummySettings(weather_units="imperial"))
            provider.fetch_current_weather("Oslo")
            provider.fetch_forecast("Oslo")
        finally:
            openweather_client.session = orig

        self.assertEqual([p["units"] for p in calls], ["metric", "metric"])


if __name__ == "__main__":
    unittest.main()
