"""
Runtime configuration and logging setup.

Settings come from environment variables, optionally loaded from a ``.env``
file in the working directory:

    RADCALC_DATABASE_URL            sqlite URL of the local store
    RADCALC_HISTORY_RETENTION_DAYS  default horizon for ``history trim``
    RADCALC_LOG_LEVEL               loguru level name
    RADCALC_ECHO_SQL                log every SQL statement when true
"""
import os
import sys

from dotenv import load_dotenv
from loguru import logger
from pydantic import BaseModel, Field

DEFAULT_DATABASE_URL = "sqlite:///medical_calculator.db"
DEFAULT_RETENTION_DAYS = 90
LOG_FORMAT = "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>"


class Settings(BaseModel):
    """Resolved configuration for one process."""

    database_url: str = DEFAULT_DATABASE_URL
    history_retention_days: int = Field(DEFAULT_RETENTION_DAYS, gt=0)
    log_level: str = "INFO"
    echo_sql: bool = False


def _env_flag(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _retention_days(raw: str) -> int:
    try:
        days = int(raw.strip())
    except ValueError:
        days = 0
    if days <= 0:
        logger.warning(
            f"Ignoring RADCALC_HISTORY_RETENTION_DAYS={raw!r} (need a positive whole number), "
            f"using {DEFAULT_RETENTION_DAYS}"
        )
        return DEFAULT_RETENTION_DAYS
    return days


def get_settings() -> Settings:
    """Build settings from the environment (after loading ``.env``)."""
    load_dotenv()
    return Settings(
        database_url=os.getenv("RADCALC_DATABASE_URL", DEFAULT_DATABASE_URL),
        history_retention_days=_retention_days(os.getenv("RADCALC_HISTORY_RETENTION_DAYS", str(DEFAULT_RETENTION_DAYS))),
        log_level=os.getenv("RADCALC_LOG_LEVEL", "INFO").upper(),
        echo_sql=_env_flag(os.getenv("RADCALC_ECHO_SQL", "false")),
    )


def convert_to_async_url(database_url: str) -> str:
    """Convert sqlite:// URL to sqlite+aiosqlite:// for async operations."""
    if database_url.startswith("sqlite+aiosqlite://"):
        return database_url
    elif database_url.startswith("sqlite://"):
        return database_url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    else:
        raise ValueError(f"Unsupported database URL scheme: {database_url}")


def configure_logging(level: str = "INFO") -> None:
    """Replace loguru's default sink with a single stderr sink."""
    logger.remove()
    logger.add(sys.stderr, format=LOG_FORMAT, level=level)


__all__ = [
    "DEFAULT_DATABASE_URL",
    "Settings",
    "get_settings",
    "convert_to_async_url",
    "configure_logging",
]
