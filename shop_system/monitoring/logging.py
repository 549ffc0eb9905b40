"""
Structured logging configuration.

Uses structlog for JSON-formatted logs rendered through the standard library.
The domain layer never logs; the store, repository and services do.
"""
import logging
import sys
from typing import Any, Callable

import structlog
from pythonjsonlogger.json import JsonFormatter

from shop_system.config import Settings, get_settings


def app_context(settings: Settings) -> Callable[..., dict[str, Any]]:
    """
    Build a processor that adds application context to log events.

    Args:
        settings: Settings providing app_name and app_env

    Returns:
        structlog processor
    """

    def add_app_context(
        logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        event_dict["app_name"] = settings.app_name
        event_dict["app_env"] = settings.app_env
        return event_dict

    return add_app_context


def setup_logging(settings: Settings | None = None) -> None:
    """
    Configure structured logging.

    Sets up:
    - structlog processors (level filter, stack and exception info, app context)
    - JSON lines through python-json-logger, or console rendering when
      settings.log_json is off
    - A single stdout handler on the root logger

    In JSON mode structlog hands its event dict to the stdlib record as
    extras, so every key ends up as a top-level field of one JSON object.
    """
    settings = settings or get_settings()

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        app_context(settings),
    ]
    formatter: logging.Formatter
    if settings.log_json:
        # level, logger name and timestamp come from the formatter
        processors.append(structlog.stdlib.render_to_log_kwargs)
        formatter = JsonFormatter(
            "%(levelname)s %(name)s %(message)s",
            timestamp=True,
            rename_fields={"levelname": "level", "name": "logger"},
        )
    else:
        processors[2:2] = [
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
        ]
        processors.append(structlog.dev.ConsoleRenderer())
        formatter = logging.Formatter("%(message)s")

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.log_level))

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    logger = structlog.get_logger(__name__)
    logger.info(
        "logging_configured",
        log_level=settings.log_level,
        app_env=settings.app_env,
    )


def get_logger(name: str) -> Any:
    """
    Get a structured logger instance.

    Args:
        name: Logger name

    Returns:
        Any: Structured logger
    """
    return structlog.get_logger(name)
