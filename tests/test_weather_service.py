import datetime as dt
import unittest

from dashboard.app_types import ForecastEntry, TemperatureUnit
from dashboard.weather_service import (
    convert_temperature,
    extract_daily_forecast,
    format_temperature,
    icon_url,
)


def _entries(n):
    start = dt.datetime(2024, 1, 1, tzinfo=dt.timezone.utc)
    return [
        ForecastEntry(time=start + dt.timedelta(hours=3 * i), temperature=float(i), icon="01d", description=str(i))
        for i in range(n)
    ]


class TestExtractDailyForecast(unittest.TestCase):
    def test_forty_entries_yield_five_days(self):
        entries = _entries(40)
        days = extract_daily_forecast(entries)
        self.assertEqual(len(days), 5)
        self.assertEqual([d.temperature for d in days], [0.0, 8.0, 16.0, 24.0, 32.0])

    def test_short_list_yields_fewer_days(self):
        days = extract_daily_forecast(_entries(10))
        self.assertEqual([d.temperature for d in days], [0.0, 8.0])

    def test_caps_at_max_days(self):
        days = extract_daily_forecast(_entries(60))
        self.assertEqual(len(days), 5)

    def test_empty(self):
        self.assertEqual(extract_daily_forecast([]), [])


class TestTemperatureConversion(unittest.TestCase):
    def test_metric_rounds_to_one_decimal(self):
        self.assertEqual(convert_temperature(15.04, TemperatureUnit.METRIC), 15.0)
        self.assertEqual(convert_temperature(-3.26, TemperatureUnit.METRIC), -3.3)

    def test_imperial(self):
        self.assertEqual(convert_temperature(15.0, TemperatureUnit.IMPERIAL), 59.0)
        self.assertEqual(convert_temperature(0.0, TemperatureUnit.IMPERIAL), 32.0)
        self.assertEqual(convert_temperature(-40.0, TemperatureUnit.IMPERIAL), -40.0)

    def test_conversion_within_display_precision(self):
        for celsius in (-12.37, 0.05, 15.0, 21.44, 37.8):
            f = convert_temperature(celsius, TemperatureUnit.IMPERIAL)
            self.assertLessEqual(abs(f - (celsius * 9 / 5 + 32)), 0.1)

    def test_format_temperature(self):
        self.assertEqual(format_temperature(15.0, TemperatureUnit.METRIC), "15.0°C")
        self.assertEqual(format_temperature(15.0, TemperatureUnit.IMPERIAL), "59.0°F")
        self.assertEqual(format_temperature(None, TemperatureUnit.METRIC), "")

    def test_icon_url(self):
        self.assertEqual(icon_url("04d", "https://openweathermap.org/img/wn"),
                         "https://openweathermap.org/img/wn/04d@2x.png")
        self.assertIsNone(icon_url(None, "https://openweathermap.org/img/wn"))


if __name__ == "__main__":
    unittest.main()
