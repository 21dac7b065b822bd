"""Common utilities and shared functionality."""

from .exceptions import (
    AgentAPIError,
    BinaryNotFoundError,
    ConfigurationError,
    ProcessError,
    TunnelProtocolError,
    TunnelSessionError,
)
from .logging import get_logger, setup_logging
from .utils import (
    MAX_PORT,
    MIN_PORT,
    is_file_addr,
    join_api_url,
    mask_sensitive_data,
    sanitize_log_data,
    validate_non_empty_string,
    validate_port,
)

__all__ = [
    # Exceptions
    "TunnelSessionError",
    "ConfigurationError",
    "AgentAPIError",
    "TunnelProtocolError",
    "ProcessError",
    "BinaryNotFoundError",
    # Logging
    "get_logger",
    "setup_logging",
    # Utils
    "validate_port",
    "validate_non_empty_string",
    "is_file_addr",
    "join_api_url",
    "mask_sensitive_data",
    "sanitize_log_data",
    "MIN_PORT",
    "MAX_PORT",
]
