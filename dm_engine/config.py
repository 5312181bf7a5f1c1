"""Engine configuration using environment variables."""
import logging
import os
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Engine settings loaded from environment variables."""

    # Logging
    LOG_LEVEL: str = os.getenv("DM_ENGINE_LOG_LEVEL", "WARNING")
    LOG_FORMAT: str = os.getenv(
        "DM_ENGINE_LOG_FORMAT",
        "%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    # Encounter defaults
    DEFAULT_TITLE: str = os.getenv("DM_ENGINE_DEFAULT_TITLE", "Encounter")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Attach a stream handler to the ``dm_engine`` logger hierarchy.

    Host applications that configure logging themselves don't need this.
    """
    settings = get_settings()
    logger = logging.getLogger("dm_engine")
    logger.setLevel((level or settings.LOG_LEVEL).upper())
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(settings.LOG_FORMAT))
        logger.addHandler(handler)
    return logger
