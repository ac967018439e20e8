"""Application configuration pulled from environment variables via pydantic."""
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from utils.logging_utils import get_tagged_logger, mask_api_key
logger = get_tagged_logger(__name__, tag="config")


class Settings(BaseSettings):
    """Environment-driven configuration for the weather dashboard."""
    model_config = SettingsConfigDict(env_prefix="DASHBOARD_", extra="ignore")

    weather_source: str = "openweather"  # options: openweather
    openweather_api_key: str | None = None
    openweather_base_url: str = "https://api.openweathermap.org/data/2.5"
    openweather_icon_url: str = "https://openweathermap.org/img/wn"
    request_timeout_seconds: float = 10.0
    refresh_interval_seconds: float = 30.0
    forecast_stride: int = 8  # 24h / 3h samples per day
    forecast_max_days: int = 5
    database_url: str = "sqlite:///./dashboard.db"
    session_redis_url: str | None = None
    session_ttl_seconds: int = 3600
    session_sweep_interval_seconds: float = 60.0
    storage_dir: str = "./.dashboard_storage"
    min_password_length: int = 6

    @field_validator("openweather_base_url", "openweather_icon_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize base URLs to avoid double slashes."""
        return str(v).rstrip("/")

    @field_validator("forecast_stride", "forecast_max_days", mode="after")
    @classmethod
    def require_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v


settings = Settings()


if __name__ == "__main__":
    logger.logger.setLevel("DEBUG")
    logger.debug("Loaded settings: %s", settings.model_dump_json(indent=4, exclude={"openweather_api_key"}))
    logger.debug("OpenWeatherMap key: %s", mask_api_key(settings.openweather_api_key))
