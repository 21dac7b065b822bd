"""Tunnel definitions, live tunnel models and the tunnel cache."""

from .builder import TunnelDefinitionBuilder
from .compat import is_dual_scheme, normalize
from .models import (
    AgentVersion,
    BindTls,
    CapturedRequest,
    CapturedRequests,
    OAuth,
    Proto,
    Tunnel,
    TunnelDefinition,
    TunnelForwardConfig,
    TunnelMetric,
    VersionInfo,
)
from .persisted import (
    PersistedConfig,
    PersistedTunnelDefinition,
    load_persisted_config,
    read_config_file,
)
from .registry import TunnelCache
from .resolver import DEFAULT_TUNNEL_NAME, TunnelDefinitionResolver

__all__ = [
    # Models
    "AgentVersion",
    "BindTls",
    "CapturedRequest",
    "CapturedRequests",
    "OAuth",
    "Proto",
    "Tunnel",
    "TunnelDefinition",
    "TunnelForwardConfig",
    "TunnelMetric",
    "VersionInfo",
    # Definitions
    "TunnelDefinitionBuilder",
    "TunnelDefinitionResolver",
    "DEFAULT_TUNNEL_NAME",
    "normalize",
    "is_dual_scheme",
    # Persisted config
    "PersistedConfig",
    "PersistedTunnelDefinition",
    "load_persisted_config",
    "read_config_file",
    # Cache
    "TunnelCache",
]
