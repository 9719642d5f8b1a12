"""Core configuration and infrastructure helpers."""

from .config import ONE_YEAR, THIRTY_DAYS, Settings, load_settings
from .database import create_db_engine, get_session
from .log import configure_logging
from .time import epoch_seconds, utcnow

__all__ = [
    "ONE_YEAR",
    "THIRTY_DAYS",
    "Settings",
    "configure_logging",
    "create_db_engine",
    "epoch_seconds",
    "get_session",
    "load_settings",
    "utcnow",
]
