"""tunnel-session - manage a local tunneling agent and its tunnels."""

__version__ = "0.1.0"

from .api import managed_tunnel, open_tunnel  # noqa: E402
from .common.exceptions import (  # noqa: E402
    AgentAPIError,
    BinaryNotFoundError,
    ConfigurationError,
    ProcessError,
    TunnelProtocolError,
    TunnelSessionError,
)
from .common.logging import get_logger, setup_logging  # noqa: E402
from .config import SessionConfig  # noqa: E402
from .control import ControlAPIClient  # noqa: E402
from .process import AgentProcess, ProcessHandle  # noqa: E402
from .session import TunnelSession  # noqa: E402
from .tunnels import (  # noqa: E402
    AgentVersion,
    BindTls,
    CapturedRequests,
    OAuth,
    Proto,
    Tunnel,
    TunnelCache,
    TunnelDefinition,
    TunnelDefinitionBuilder,
    TunnelDefinitionResolver,
    TunnelMetric,
    VersionInfo,
)

__all__ = [
    # Session
    "TunnelSession",
    "SessionConfig",
    "ControlAPIClient",
    "AgentProcess",
    "ProcessHandle",
    # High-level API
    "open_tunnel",
    "managed_tunnel",
    # Tunnels
    "TunnelDefinition",
    "TunnelDefinitionBuilder",
    "TunnelDefinitionResolver",
    "TunnelCache",
    "Tunnel",
    "TunnelMetric",
    "CapturedRequests",
    "VersionInfo",
    "AgentVersion",
    "BindTls",
    "OAuth",
    "Proto",
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
    "__version__",
]
