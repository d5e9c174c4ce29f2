"""Structured logging configuration using structlog.

JSON lines in production, colored console output in development or when
LOG_FORMAT=text. Every entry carries the server name and environment, and
Slack tokens or API keys that reach a log value are masked.
"""

import logging
import re
import sys
from typing import Any, Optional

import structlog
from structlog.types import Processor

from app.config import Settings, get_settings
from core.api_keys import mask_token

# Loggers whose level follows LOG_LIBRARY_LEVEL instead of LOG_LEVEL
LIBRARY_LOGGERS = ("httpx", "httpcore", "redis", "uvicorn.access")
SLACK_LOGGER = "integrations.slack_client"

SECRET_PATTERN = re.compile(r"xox[a-z]-[A-Za-z0-9-]{20,}|smcp_[a-f0-9]{64}")


def _level(name: str, default: int = logging.INFO) -> int:
    return getattr(logging, name.upper(), default)


def redact_credentials(logger: Any, method_name: str, event_dict: dict) -> dict:
    """Mask Slack tokens and API keys in string values."""
    for key, value in event_dict.items():
        if isinstance(value, str) and SECRET_PATTERN.search(value):
            event_dict[key] = SECRET_PATTERN.sub(lambda m: mask_token(m.group(0)), value)
    return event_dict


def service_context(settings: Settings) -> Processor:
    """Processor stamping the server name and environment on every entry."""

    def add_service(logger: Any, method_name: str, event_dict: dict) -> dict:
        event_dict.setdefault("service", settings.MCP_SERVER_NAME)
        event_dict.setdefault("environment", settings.ENVIRONMENT)
        return event_dict

    return add_service


def setup_logging(settings: Optional[Settings] = None) -> None:
    """Configure structured logging for the entire application."""
    settings = settings or get_settings()

    # Shared processors, applied to every log entry
    shared_processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        service_context(settings),
        redact_credentials,
    ]

    if settings.is_development or settings.LOG_FORMAT == "text":
        renderer = structlog.dev.ConsoleRenderer(colors=settings.LOG_COLORS)
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(_level(settings.LOG_LEVEL))

    library_level = _level(settings.LOG_LIBRARY_LEVEL, logging.WARNING)
    for name in LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)
    logging.getLogger(SLACK_LOGGER).setLevel(_level(settings.LOG_SLACK_LEVEL))
