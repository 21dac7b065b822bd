"""Centralized logging configuration using structlog."""

import logging
import os
import sys

import structlog
from structlog.typing import Processor

LOG_LEVEL_ENV = "TUNNEL_SESSION_LOG_LEVEL"

# requests/urllib3 log every control API round trip at DEBUG
_NOISY_LOGGERS = ("urllib3", "urllib3.connectionpool")


def setup_logging(
    level: str | None = None,
    json_format: bool = False,
    log_file: str | None = None,
    quiet_http: bool = True,
) -> None:
    """Configure structured logging for tunnel sessions.

    The package never calls this on import; host applications opt in.

    Args:
        level: Logging level name, falls back to $TUNNEL_SESSION_LOG_LEVEL then INFO
        json_format: If True, render events as JSON lines
        log_file: Optional file path to also write logs to
        quiet_http: Keep urllib3 connection chatter at WARNING
    """
    level_name = (level or os.environ.get(LOG_LEVEL_ENV) or "INFO").upper()
    log_level = getattr(logging, level_name)

    root_logger = logging.getLogger()
    root_logger.handlers = []
    root_logger.setLevel(log_level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(console_handler)

    if quiet_http:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        root_logger.addHandler(file_handler)


def get_logger(name: str, **initial_values: object) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger, optionally pre-bound with context.

    Args:
        name: Logger name (usually __name__)
        **initial_values: Key/value pairs bound to every event

    Returns:
        structlog logger
    """
    logger = structlog.get_logger(name)
    if initial_values:
        logger = logger.bind(**initial_values)
    return logger  # type: ignore[no-any-return]
