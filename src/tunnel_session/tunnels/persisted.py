"""Schema and loader for the agent's persisted YAML configuration.

Only the ``tunnels`` section matters here. It is parsed once into
``PersistedConfig`` so the loosely typed YAML never leaks past this module.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..common.exceptions import ConfigurationError
from ..common.logging import get_logger
from .models import BindTls, OAuth, Proto

logger = get_logger(__name__)


class PersistedTunnelDefinition(BaseModel):
    """A named tunnel definition from the config file. Every field is optional."""

    model_config = ConfigDict(extra="ignore", frozen=True)

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

    @field_validator("proto", mode="before")
    @classmethod
    def lower_proto(cls, v: Any) -> Any:
        return v.lower() if isinstance(v, str) else v

    @field_validator("addr", mode="before")
    @classmethod
    def coerce_addr(cls, v: Any) -> Any:
        # YAML turns `addr: 8080` into an int
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("bind_tls", mode="before")
    @classmethod
    def coerce_bind_tls(cls, v: Any) -> Any:
        if v is None:
            return v
        return BindTls.parse(v)

    def set_fields(self) -> dict[str, Any]:
        """Fields present in the file, keyed by TunnelDefinition field name."""
        return {
            name: getattr(self, name)
            for name in self.model_fields_set
            if getattr(self, name) is not None
        }


class PersistedConfig(BaseModel):
    """The subset of the agent config file the resolver reads.

    Tunnel entries stay raw until ``definition`` is asked for one, so entries
    this client never uses (e.g. ``proto: labeled``) cannot break resolution.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    tunnels: dict[str, dict[str, Any]] = Field(default_factory=dict)

    @field_validator("tunnels", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        # a bare `tunnels:` key, or a bare tunnel name, parses as None
        if v is None:
            return {}
        if isinstance(v, dict):
            return {name: {} if entry is None else entry for name, entry in v.items()}
        return v

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "PersistedConfig":
        """Parse loosely typed config data.

        Raises:
            ConfigurationError: If the ``tunnels`` section is not a mapping of mappings
        """
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid tunnels section in config: {e}") from e

    def definition(self, name: str) -> PersistedTunnelDefinition | None:
        """Validate and return the named tunnel definition, None if absent.

        Raises:
            ConfigurationError: If that definition has invalid values
        """
        entry = self.tunnels.get(name)
        if entry is None:
            return None
        try:
            return PersistedTunnelDefinition.model_validate(entry)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid tunnel definition '{name}' in config: {e}") from e


def read_config_file(config_path: str | Path) -> dict[str, Any]:
    """Read the agent's YAML config file into a plain mapping.

    A missing file yields an empty mapping.

    Raises:
        ConfigurationError: If the file is not valid YAML or not a mapping
    """
    path = Path(config_path).expanduser()
    if not path.exists():
        logger.debug("Config file not found, using empty config", path=str(path))
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    return data


def load_persisted_config(config_path: str | Path) -> PersistedConfig:
    """Load and parse the ``tunnels`` section of the agent config file."""
    return PersistedConfig.from_mapping(read_config_file(config_path))
