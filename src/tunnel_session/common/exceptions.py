"""Custom exceptions for tunnel session management."""


class TunnelSessionError(Exception):
    """Base exception for all tunnel session errors."""

    pass


class ConfigurationError(TunnelSessionError):
    """Raised when a tunnel definition or config file is invalid."""

    pass


class AgentAPIError(TunnelSessionError):
    """Raised when a call to the agent's control API fails.

    Args:
        message: Human readable description of the failed operation
        url: Request URL
        status_code: HTTP status, None when the request never got a response
        body: Raw response body, if any
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        body: str | None = None,
    ):
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.body = body

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code is None:
            return f"{base} (url={self.url})"
        return f"{base} (url={self.url}, status={self.status_code}, body={self.body!r})"


class TunnelProtocolError(TunnelSessionError):
    """Raised when the agent answers successfully but the payload is incomplete."""

    pass


class ProcessError(TunnelSessionError):
    """Raised when agent process operations fail."""

    pass


class BinaryNotFoundError(TunnelSessionError):
    """Raised when the agent binary is not found or not executable."""

    pass
