"""Logging setup shared by the API, the orchestrator and the CLI."""

import logging
import os
import sys

from pydantic import BaseModel

# Request-level chatter from the SDK, HTTP stack and server stays out of the turn logs
QUIET_LOGGERS = ("anthropic", "httpx", "httpcore", "uvicorn.access")


class LogConfig(BaseModel):
    """Root logger settings."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"
    quiet_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> "LogConfig":
        """Defaults overridden by LOG_LEVEL and LOG_FORMAT."""
        config = cls()
        config.level = os.getenv("LOG_LEVEL", config.level)
        config.format = os.getenv("LOG_FORMAT", config.format)
        return config


def setup_logging(config: LogConfig | None = None) -> None:
    """Configure the root logger to write to stdout."""
    config = config or LogConfig.from_env()

    logging.basicConfig(
        level=logging.getLevelName(config.level.upper()),
        format=config.format,
        datefmt=config.date_format,
        stream=sys.stdout,
        force=True,
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(config.quiet_level.upper())


def get_logger(name: str, level: str | None = None) -> logging.Logger:
    """Module logger at ``level``, or LOG_LEVEL (default INFO)."""
    logger = logging.getLogger(name)
    logger.setLevel((level or os.getenv("LOG_LEVEL", "INFO")).upper())
    return logger
