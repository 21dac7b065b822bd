"""Utility functions for tunnel sessions."""

from typing import Any

MIN_PORT = 1
MAX_PORT = 65535

FILE_ADDR_PREFIX = "file://"


def validate_port(port: int, port_name: str = "Port") -> None:
    """Validate port number range.

    Args:
        port: Port number to validate
        port_name: Name of the port for error messages

    Raises:
        ValueError: If port is not in valid range (1-65535)
    """
    if isinstance(port, bool) or not isinstance(port, int) or not (MIN_PORT <= port <= MAX_PORT):
        raise ValueError(f"{port_name} must be between {MIN_PORT} and {MAX_PORT}")


def validate_non_empty_string(value: str, field_name: str) -> str:
    """Validate that a string is not empty or only whitespace.

    Returns:
        Stripped string value

    Raises:
        ValueError: If string is empty or only whitespace
    """
    if not value or not value.strip():
        raise ValueError(f"{field_name} cannot be empty")
    return value.strip()


def is_file_addr(addr: str | None) -> bool:
    """Whether a tunnel address points at a local file server."""
    return bool(addr) and addr.startswith(FILE_ADDR_PREFIX)  # type: ignore[union-attr]


def join_api_url(api_url: str, path: str) -> str:
    """Join the control API base URL and a correlation URI or endpoint path."""
    return f"{api_url.rstrip('/')}/{path.lstrip('/')}"


def mask_sensitive_data(
    value: str | None, mask_char: str = "*", show_chars: int = 4
) -> str:
    """Mask sensitive data for logging while keeping a short suffix for debugging.

    Args:
        value: Sensitive string to mask (e.g., auth token, basic auth credential)
        mask_char: Character to use for masking
        show_chars: Number of characters to show at the end

    Returns:
        Masked string safe for logging
    """
    if not value:
        return "<None>"

    if len(value) <= show_chars:
        return mask_char * len(value)

    masked_length = len(value) - show_chars
    return mask_char * masked_length + value[-show_chars:]


def sanitize_log_data(data: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``data`` with credential-like fields masked.

    List values (e.g. ``basic_auth``) are masked element by element.
    """
    sensitive_fields = {
        "auth",
        "token",
        "password",
        "secret",
        "key",
        "oauth",
    }

    sanitized: dict[str, Any] = {}
    for key, value in data.items():
        if not any(field in key.lower() for field in sensitive_fields):
            sanitized[key] = value
        elif isinstance(value, list):
            sanitized[key] = [mask_sensitive_data(str(v)) for v in value]
        elif isinstance(value, dict):
            sanitized[key] = "<redacted>"
        else:
            sanitized[key] = mask_sensitive_data(str(value) if value else None)

    return sanitized
