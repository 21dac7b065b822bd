"""Mutable builder for immutable ``TunnelDefinition`` records."""

import uuid
from collections.abc import Mapping
from typing import Any

from ..common.exceptions import ConfigurationError
from ..common.logging import get_logger
from ..common.utils import is_file_addr, validate_port
from . import compat
from .models import AgentVersion, BindTls, OAuth, Proto, TunnelDefinition
from .persisted import PersistedTunnelDefinition

logger = get_logger(__name__)

DEFAULT_PROTO = Proto.HTTP
DEFAULT_ADDR = "80"

# Fields a persisted definition may fill in. ``name`` is never copied.
_TEMPLATE_FIELDS = (
    "proto",
    "addr",
    "inspect",
    "bind_tls",
    "auth",
    "host_header",
    "subdomain",
    "hostname",
    "crt",
    "key",
    "client_cas",
    "remote_addr",
    "metadata",
    "schemes",
    "basic_auth",
    "oauth",
)


class TunnelDefinitionBuilder:
    """Builder for tunnel definitions sent to the agent.

    Conflicting fields (``bind_tls`` vs ``schemes``, ``auth`` vs ``basic_auth``)
    are rejected by the setter that introduces the conflict.

    Example:
        >>> definition = (
        ...     TunnelDefinitionBuilder(set_defaults=True)
        ...     .with_proto(Proto.TCP)
        ...     .with_addr(22)
        ...     .build()
        ... )
    """

    def __init__(self, set_defaults: bool = False) -> None:
        """Initialize an empty builder.

        Args:
            set_defaults: Populate proto, addr, name and version-specific fields
                in ``build()``
        """
        self.set_defaults = set_defaults
        self._agent_version: AgentVersion | None = None
        self._fields: dict[str, Any] = {}

    @classmethod
    def from_definition(cls, definition: TunnelDefinition) -> "TunnelDefinitionBuilder":
        """Copy an existing definition into a new builder that sets defaults."""
        builder = cls(set_defaults=True)
        if "agent_version" in definition.model_fields_set:
            builder._agent_version = definition.agent_version
        builder._fields = {
            name: value
            for name, value in definition.model_dump(exclude={"agent_version"}).items()
            if value is not None
        }
        # model_dump turns the OAuth block into a dict
        if definition.oauth is not None:
            builder._fields["oauth"] = definition.oauth
        return builder

    @property
    def name(self) -> str | None:
        return self._fields.get("name")

    @property
    def agent_version(self) -> AgentVersion | None:
        return self._agent_version

    def is_set(self, field: str) -> bool:
        """Whether ``field`` currently holds a value."""
        return self._fields.get(field) is not None

    def _set(self, field: str, value: Any) -> "TunnelDefinitionBuilder":
        if value is None:
            self._fields.pop(field, None)
        else:
            self._fields[field] = value
        return self

    def with_agent_version(self, agent_version: AgentVersion | str) -> "TunnelDefinitionBuilder":
        try:
            self._agent_version = AgentVersion(agent_version)
        except ValueError as e:
            raise ConfigurationError(f"Invalid agent version: {agent_version!r}") from e
        return self

    def with_name(self, name: str) -> "TunnelDefinitionBuilder":
        return self._set("name", name)

    def with_proto(self, proto: Proto | str) -> "TunnelDefinitionBuilder":
        """The tunnel protocol, defaults to http."""
        try:
            value = Proto(proto.lower() if isinstance(proto, str) else proto)
        except ValueError as e:
            raise ConfigurationError(f"Invalid tunnel proto: {proto!r}") from e
        return self._set("proto", value)

    def with_addr(self, addr: str | int) -> "TunnelDefinitionBuilder":
        """Local port, host:port, directory or ``file://`` URL, defaults to "80"."""
        if isinstance(addr, int):
            try:
                validate_port(addr, "Tunnel port")
            except ValueError as e:
                raise ConfigurationError(str(e)) from e
        return self._set("addr", str(addr))

    def with_inspect(self, inspect: bool) -> "TunnelDefinitionBuilder":
        return self._set("inspect", inspect)

    def without_inspect(self) -> "TunnelDefinitionBuilder":
        """Disable HTTP request inspection on the tunnel."""
        return self._set("inspect", False)

    def with_auth(self, auth: str) -> "TunnelDefinitionBuilder":
        """Single ``user:password`` basic auth credential."""
        if self.is_set("basic_auth"):
            raise ConfigurationError("Cannot set both 'auth' and 'basic_auth'.")
        return self._set("auth", auth)

    def with_basic_auth(self, basic_auth: list[str]) -> "TunnelDefinitionBuilder":
        """List of basic auth credentials."""
        if self.is_set("auth"):
            raise ConfigurationError("Cannot set both 'auth' and 'basic_auth'.")
        return self._set("basic_auth", list(basic_auth))

    def with_host_header(self, host_header: str) -> "TunnelDefinitionBuilder":
        """Rewrite the Host header to this value, or ``preserve`` to keep it."""
        return self._set("host_header", host_header)

    def with_bind_tls(self, bind_tls: BindTls | bool | str) -> "TunnelDefinitionBuilder":
        """Bind an https (true), http (false) or both endpoints."""
        if self.is_set("schemes"):
            raise ConfigurationError("Cannot set both 'schemes' and 'bind_tls'.")
        return self._set("bind_tls", BindTls.parse(bind_tls))

    def with_schemes(self, schemes: list[str]) -> "TunnelDefinitionBuilder":
        """Explicit list of schemes to bind."""
        if self.is_set("bind_tls"):
            raise ConfigurationError("Cannot set both 'schemes' and 'bind_tls'.")
        return self._set("schemes", list(schemes))

    def with_subdomain(self, subdomain: str) -> "TunnelDefinitionBuilder":
        return self._set("subdomain", subdomain)

    def with_hostname(self, hostname: str) -> "TunnelDefinitionBuilder":
        return self._set("hostname", hostname)

    def with_crt(self, crt: str) -> "TunnelDefinitionBuilder":
        return self._set("crt", crt)

    def with_key(self, key: str) -> "TunnelDefinitionBuilder":
        return self._set("key", key)

    def with_client_cas(self, client_cas: str) -> "TunnelDefinitionBuilder":
        return self._set("client_cas", client_cas)

    def with_remote_addr(self, remote_addr: str) -> "TunnelDefinitionBuilder":
        """Reserved TCP address to bind, e.g. ``1.tcp.example.io:12345``."""
        return self._set("remote_addr", remote_addr)

    def with_metadata(self, metadata: str) -> "TunnelDefinitionBuilder":
        return self._set("metadata", metadata)

    def with_oauth(self, oauth: OAuth | Mapping[str, Any]) -> "TunnelDefinitionBuilder":
        if not isinstance(oauth, OAuth):
            oauth = OAuth.model_validate(dict(oauth))
        return self._set("oauth", oauth)

    def with_tunnel_definition(
        self, template: PersistedTunnelDefinition | Mapping[str, Any]
    ) -> "TunnelDefinitionBuilder":
        """Fill every unset field from a persisted tunnel definition.

        Values already set on the builder win. Copied values go through the
        regular setters, so a template that conflicts with an explicit field
        raises ``ConfigurationError``.
        """
        if not isinstance(template, PersistedTunnelDefinition):
            template = PersistedTunnelDefinition.model_validate(dict(template))

        stored = template.set_fields()
        for field in _TEMPLATE_FIELDS:
            if field in stored and not self.is_set(field):
                getattr(self, f"with_{field}")(stored[field])
        return self

    def _default_name(self, proto: Proto, addr: str) -> str:
        if is_file_addr(addr):
            return f"{proto}-file-{uuid.uuid4()}"
        return f"{proto}-{addr}-{uuid.uuid4()}"

    def build(self) -> TunnelDefinition:
        """Build the immutable definition.

        Raises:
            ConfigurationError: If mutually exclusive fields are both set
        """
        version = self._agent_version or AgentVersion.V3
        fields = dict(self._fields)
        if self._agent_version is not None:
            fields["agent_version"] = self._agent_version

        if self.set_defaults:
            fields.setdefault("proto", DEFAULT_PROTO)
            fields.setdefault("addr", DEFAULT_ADDR)
            if fields.get("name") is None:
                fields["name"] = self._default_name(fields["proto"], fields["addr"])
            fields = compat.normalize(fields, version)

        return TunnelDefinition(
            **{name: value for name, value in fields.items() if value is not None}
        )
