"""Logging configuration."""

import logging
import os
import sys

from pydantic import BaseModel, Field, field_validator

PACKAGE_LOGGER = "tool_agent"


class LogConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    format: str = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"
    date_format: str = "%H:%M:%S"
    quiet_loggers: list[str] = Field(default_factory=lambda: ["httpx", "httpcore", "mcp", "uvicorn.access"])

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Level must be a standard logging level name."""
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {v}")
        return level


def setup_logging(config: LogConfig | None = None) -> None:
    """Route log records to stderr.

    Stdout is left to the conversation: generated text is echoed there as it
    is produced.
    """
    config = config or LogConfig()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(config.format, datefmt=config.date_format))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(logging.WARNING)

    logging.getLogger(PACKAGE_LOGGER).setLevel(config.level)
    for name in config.quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str, level: str | None = None) -> logging.Logger:
    """Get a logger for a specific module.

    Module loggers inherit the package level set by ``setup_logging`` unless
    an explicit level is given.

    Args:
        name: Module name (typically __name__)
        level: Optional level for this logger only
    """
    logger = logging.getLogger(name)
    if level:
        logger.setLevel(level.upper())
    return logger
