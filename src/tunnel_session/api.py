"""High-level helpers for common tunneling tasks."""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from .common.logging import get_logger
from .session import TunnelSession
from .tunnels.builder import TunnelDefinitionBuilder
from .tunnels.models import Proto, Tunnel, TunnelDefinition

logger = get_logger(__name__)


def open_tunnel(
    session: TunnelSession,
    addr: str | int | None = None,
    proto: Proto | str | None = None,
    **fields: Any,
) -> Tunnel:
    """Open a tunnel from keyword arguments.

    Any ``TunnelDefinitionBuilder.with_<field>`` setter can be reached through
    ``fields``.

    Args:
        session: Session to open the tunnel on
        addr: Local port or address to forward to. Left unset, a persisted
            definition or the default "80" applies
        proto: Tunnel protocol. Left unset, a persisted definition or the
            default http applies
        **fields: Extra definition fields, e.g. ``subdomain="demo"``

    Returns:
        The connected tunnel

    Example:
        >>> tunnel = open_tunnel(session, 22, "tcp")
        >>> print(tunnel.public_url)
        tcp://0.tcp.example.io:12345
    """
    builder = TunnelDefinitionBuilder()
    if addr is not None:
        builder.with_addr(addr)
    if proto is not None:
        builder.with_proto(proto)
    for field, value in fields.items():
        setter = getattr(builder, f"with_{field}", None)
        if setter is None:
            raise TypeError(f"Unknown tunnel definition field: {field}")
        setter(value)

    return session.connect(builder.build())


@contextmanager
def managed_tunnel(
    session: TunnelSession, definition: TunnelDefinition | None = None
) -> Iterator[Tunnel]:
    """Context manager that disconnects the tunnel on exit.

    Example:
        >>> with managed_tunnel(session) as tunnel:
        ...     print(tunnel.public_url)
    """
    tunnel = session.connect(definition)
    try:
        yield tunnel
    finally:
        try:
            session.disconnect(tunnel.public_url)
        except Exception as e:
            logger.error(
                "Failed to disconnect managed tunnel",
                public_url=tunnel.public_url,
                error=str(e),
            )
