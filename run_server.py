import os

import uvicorn

from dashboard.config import settings
from utils.logging_utils import get_tagged_logger, mask_api_key, setup_logging

logger = get_tagged_logger(__name__, tag="server")


def check_provider_key() -> None:
    """Warn early when no OpenWeatherMap key is configured; every search would fail."""
    if not settings.openweather_api_key:
        logger.warning("DASHBOARD_OPENWEATHER_API_KEY is not set; weather searches will return errors")
        return
    logger.info("OpenWeatherMap key configured (%s)", mask_api_key(settings.openweather_api_key))


if __name__ == "__main__":
    setup_logging(level=os.getenv("LOG_LEVEL", "INFO"))
    check_provider_key()

    uvicorn.run(
        "dashboard.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 8000)),
        reload=False,
    )
