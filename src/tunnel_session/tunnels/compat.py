"""Request shape differences between agent major versions.

V2 agents take ``bind_tls`` and a single ``auth`` credential. V3 agents only
understand ``schemes`` and a ``basic_auth`` list. The translation runs once,
when a builder populates defaults, and is destructive: the V2 fields are gone
from the result so a resolved definition can be reused as a template safely.
"""

from collections.abc import Callable
from typing import Any

from ..common.logging import get_logger
from .models import AgentVersion, BindTls, Proto, TunnelDefinition

logger = get_logger(__name__)

BIND_TLS_SCHEMES: dict[BindTls, list[str]] = {
    BindTls.TRUE: ["https"],
    BindTls.FALSE: ["http"],
    BindTls.BOTH: ["http", "https"],
}


def _normalize_v2(fields: dict[str, Any]) -> dict[str, Any]:
    if fields.get("bind_tls") is None:
        fields["bind_tls"] = BindTls.BOTH
    return fields


def _normalize_v3(fields: dict[str, Any]) -> dict[str, Any]:
    bind_tls = fields.get("bind_tls")
    if bind_tls is not None:
        fields["schemes"] = list(BIND_TLS_SCHEMES[BindTls.parse(bind_tls)])
        fields["bind_tls"] = None
        logger.debug("Translated bind_tls to schemes", schemes=fields["schemes"])

    auth = fields.get("auth")
    if auth is not None:
        fields["basic_auth"] = [auth]
        fields["auth"] = None

    return fields


_NORMALIZERS: dict[AgentVersion, Callable[[dict[str, Any]], dict[str, Any]]] = {
    AgentVersion.V2: _normalize_v2,
    AgentVersion.V3: _normalize_v3,
}


def normalize(fields: dict[str, Any], version: AgentVersion) -> dict[str, Any]:
    """Apply version-specific defaults to builder fields.

    Args:
        fields: Mutable builder state, keyed by TunnelDefinition field name
        version: Agent major version the definition targets

    Returns:
        The same mapping, normalized for ``version``
    """
    return _NORMALIZERS[version](fields)


def is_dual_scheme(definition: TunnelDefinition) -> bool:
    """Whether creating ``definition`` makes the agent open both http and https.

    In that case the agent only answers with the https tunnel.
    """
    if definition.proto != Proto.HTTP:
        return False
    if definition.bind_tls is not None:
        return definition.bind_tls == BindTls.BOTH
    if definition.schemes is not None:
        return sorted(definition.schemes) == ["http", "https"]
    return False
