"""Resolve caller tunnel requests against persisted tunnel definitions."""

from collections.abc import Callable
from pathlib import Path

from ..common.logging import get_logger
from .builder import TunnelDefinitionBuilder
from .models import AgentVersion, TunnelDefinition
from .persisted import PersistedConfig, load_persisted_config

logger = get_logger(__name__)

DEFAULT_TUNNEL_NAME = "tunnel-session-default"


class TunnelDefinitionResolver:
    """Merge a partial ``TunnelDefinition`` with the agent's config file.

    Precedence, highest first: fields set by the caller, fields from the
    matching named definition in the config file, system defaults.
    """

    def __init__(
        self,
        config_path: str | Path,
        default_name: str = DEFAULT_TUNNEL_NAME,
        loader: Callable[[str | Path], PersistedConfig] = load_persisted_config,
    ):
        """Initialize resolver.

        Args:
            config_path: Path to the agent's YAML config file
            default_name: Config key adopted when the caller gives no name
            loader: Callable parsing the config file, read on every resolve
        """
        self.config_path = Path(config_path).expanduser()
        self.default_name = default_name
        self._loader = loader

    def _load(self) -> PersistedConfig:
        if not self.config_path.exists():
            return PersistedConfig()
        return self._loader(self.config_path)

    def resolve(
        self,
        definition: TunnelDefinition | None = None,
        agent_version: AgentVersion | None = None,
    ) -> TunnelDefinition:
        """Produce a fully defaulted definition ready to send to the agent.

        Args:
            definition: Caller request, may be None or partial
            agent_version: Version to target when the request has none set

        Returns:
            Resolved definition

        Raises:
            ConfigurationError: If the merge produces conflicting fields or the
                config file is invalid
        """
        if definition is None:
            builder = TunnelDefinitionBuilder(set_defaults=True)
        else:
            builder = TunnelDefinitionBuilder.from_definition(definition)

        if builder.agent_version is None and agent_version is not None:
            builder.with_agent_version(agent_version)

        config = self._load()

        if builder.name is None and self.default_name in config.tunnels:
            builder.with_name(self.default_name)

        name = builder.name
        persisted = config.definition(name) if name is not None else None
        if persisted is not None:
            logger.debug("Applying persisted tunnel definition", name=name)
            builder.with_tunnel_definition(persisted)

        resolved = builder.build()
        logger.debug(
            "Resolved tunnel definition",
            name=resolved.name,
            proto=str(resolved.proto),
            addr=resolved.addr,
            agent_version=resolved.agent_version.value,
        )
        return resolved
