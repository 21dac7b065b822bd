"""Session configuration model."""

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .tunnels.models import AgentVersion
from .tunnels.resolver import DEFAULT_TUNNEL_NAME

DEFAULT_CONFIG_PATH = Path("~/.config/ngrok/ngrok.yml")
DEFAULT_API_URL = "http://127.0.0.1:4040"

ENV_OVERRIDES = {
    "TUNNEL_SESSION_BINARY": "binary_path",
    "TUNNEL_SESSION_CONFIG": "config_path",
    "TUNNEL_SESSION_API_URL": "api_url",
    "TUNNEL_SESSION_AUTH_TOKEN": "auth_token",
}


class SessionConfig(BaseModel):
    """Settings shared by the agent process and the tunnel session."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        extra="forbid",
    )

    binary_path: str | None = Field(
        default=None, description="Agent binary, looked up on PATH if None"
    )
    config_path: Path = Field(
        default=DEFAULT_CONFIG_PATH,
        validate_default=True,
        description="Agent YAML config file",
    )
    api_url: str = Field(
        default=DEFAULT_API_URL, min_length=1, description="Control API base URL"
    )
    agent_version: AgentVersion = Field(
        default=AgentVersion.V3, description="Agent major version"
    )
    startup_timeout: float = Field(
        default=15.0, ge=0.1, le=120.0, description="Seconds to wait for the control API"
    )
    request_timeout: float = Field(
        default=10.0, gt=0, le=300.0, description="Per-request timeout in seconds"
    )
    default_tunnel_name: str = Field(
        default=DEFAULT_TUNNEL_NAME,
        min_length=1,
        description="Config key used when connect() gets no tunnel name",
    )
    auth_token: str | None = Field(
        default=None, description="Agent auth token applied on first start"
    )

    @field_validator("config_path")
    @classmethod
    def expand_config_path(cls, v: Path) -> Path:
        return v.expanduser()

    @field_validator("api_url")
    @classmethod
    def validate_api_url(cls, v: str) -> str:
        """Require an http(s) base URL without trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("api_url must start with http:// or https://")
        return v.rstrip("/")

    @classmethod
    def from_env(cls, **overrides: Any) -> "SessionConfig":
        """Build a config from ``TUNNEL_SESSION_*`` environment variables.

        Keyword arguments take precedence over the environment.
        """
        values: dict[str, Any] = {}
        for env_name, field_name in ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value:
                values[field_name] = value
        values.update(overrides)
        return cls(**values)
