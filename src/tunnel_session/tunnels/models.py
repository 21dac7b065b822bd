"""Tunnel models shared by the resolver, control API client and session.

``TunnelDefinition`` is the immutable request sent to the agent, ``Tunnel`` is
the live handle the agent hands back.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..common.exceptions import ConfigurationError


class Proto(str, Enum):
    """Tunnel protocol enumeration."""

    HTTP = "http"
    HTTPS = "https"
    TCP = "tcp"
    TLS = "tls"

    def __str__(self) -> str:
        return self.value


class BindTls(str, Enum):
    """Which endpoints the agent binds for an HTTP tunnel (V2 agents)."""

    TRUE = "true"
    FALSE = "false"
    BOTH = "both"

    @classmethod
    def parse(cls, value: Any) -> "BindTls":
        """Parse YAML-ish input (``True``, ``"both"``, ``"FALSE"``) into a BindTls."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError as e:
            raise ConfigurationError(f"Invalid bind_tls value: {value!r}") from e


class AgentVersion(str, Enum):
    """Major protocol version of the agent."""

    V2 = "v2"
    V3 = "v3"

    @classmethod
    def from_version_string(cls, version: str) -> "AgentVersion":
        """Map a full agent version such as ``"3.1.0"`` to its major version."""
        major = version.strip().lstrip("vV").split(".", 1)[0]
        if major == "2":
            return cls.V2
        if major == "3":
            return cls.V3
        raise ConfigurationError(f"Unsupported agent version: {version!r}")


class OAuth(BaseModel):
    """OAuth policy enforced on a tunnel endpoint."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    provider: str = Field(min_length=1, description="OAuth provider, e.g. google")
    scopes: list[str] | None = None
    allow_emails: list[str] | None = None
    allow_domains: list[str] | None = None


class TunnelDefinition(BaseModel):
    """Immutable tunnel definition, as accepted by ``POST /api/tunnels``.

    Build instances with ``TunnelDefinitionBuilder``; direct construction is
    supported but only checks the mutual-exclusion invariants.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", use_enum_values=False)

    agent_version: AgentVersion = Field(
        default=AgentVersion.V3, description="Agent major version, never sent"
    )
    name: str | None = None
    proto: Proto | None = None
    addr: str | None = None
    inspect: bool | None = None
    auth: str | None = None
    basic_auth: list[str] | None = None
    host_header: str | None = None
    bind_tls: BindTls | None = None
    schemes: list[str] | None = None
    subdomain: str | None = None
    hostname: str | None = None
    crt: str | None = None
    key: str | None = None
    client_cas: str | None = None
    remote_addr: str | None = None
    metadata: str | None = None
    oauth: OAuth | None = None

    @field_validator("addr", mode="before")
    @classmethod
    def coerce_addr(cls, v: Any) -> Any:
        """Accept bare port numbers."""
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @model_validator(mode="after")
    def check_exclusive_fields(self) -> "TunnelDefinition":
        if self.bind_tls is not None and self.schemes is not None:
            raise ConfigurationError("Cannot set both 'schemes' and 'bind_tls'.")
        if self.auth is not None and self.basic_auth is not None:
            raise ConfigurationError("Cannot set both 'auth' and 'basic_auth'.")
        return self

    def to_request_body(self) -> dict[str, Any]:
        """Serialize to the control API's JSON request body."""
        return self.model_dump(
            mode="json", exclude_none=True, exclude={"agent_version"}
        )


class TunnelForwardConfig(BaseModel):
    """The ``config`` block of a tunnel response."""

    model_config = ConfigDict(extra="ignore")

    addr: str
    inspect: bool = False


class TunnelMetric(BaseModel):
    """One metrics series (``conns`` or ``http``) reported by the agent."""

    model_config = ConfigDict(extra="allow")

    count: int = 0
    gauge: float = 0
    rate1: float = 0
    rate5: float = 0
    rate15: float = 0
    p50: float = 0
    p90: float = 0
    p95: float = 0
    p99: float = 0


class Tunnel(BaseModel):
    """A live tunnel as reported by the agent.

    ``metrics`` stays None until ``TunnelSession.refresh_metrics`` fills it in;
    each refresh replaces the previous snapshot.
    """

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    name: str
    uri: str
    public_url: str
    proto: str
    config: TunnelForwardConfig
    metrics: dict[str, TunnelMetric] | None = None

    @property
    def addr(self) -> str:
        """Local address traffic is forwarded to."""
        return self.config.addr

    def __str__(self) -> str:
        return f'<Tunnel: "{self.public_url}" -> "{self.config.addr}">'


class VersionInfo(BaseModel):
    """Agent and client library versions."""

    model_config = ConfigDict(frozen=True)

    agent_version: str
    client_version: str


class CapturedRequest(BaseModel):
    """A request the agent captured for inspection."""

    model_config = ConfigDict(extra="ignore")

    uri: str
    id: str
    tunnel_name: str | None = None
    remote_addr: str | None = None
    start: str | None = None
    duration: int | None = None
    request: dict[str, Any] = Field(default_factory=dict)
    response: dict[str, Any] | None = None


class CapturedRequests(BaseModel):
    """Response of ``GET /api/requests/http``."""

    model_config = ConfigDict(extra="ignore")

    uri: str | None = None
    requests: list[CapturedRequest] = Field(default_factory=list)
