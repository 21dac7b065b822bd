"""Tunnel session manager: one agent process, many tunnels."""

from pathlib import Path
from types import TracebackType
from typing import Literal

from .common.logging import get_logger
from .common.utils import validate_non_empty_string
from .config import SessionConfig
from .control import ControlAPIClient
from .process import AgentProcess, ProcessHandle
from .tunnels.models import (
    AgentVersion,
    CapturedRequests,
    Tunnel,
    TunnelDefinition,
    VersionInfo,
)
from .tunnels.persisted import PersistedConfig
from .tunnels.registry import TunnelCache
from .tunnels.resolver import TunnelDefinitionResolver

logger = get_logger(__name__)


class TunnelSession:
    """Open, list and close tunnels on a locally running agent.

    The agent process is started on demand. Open tunnels are cached by public
    URL; the cache is an approximation of the agent's state that only
    ``list_tunnels`` fully reconciles. ``connect`` inserts and ``terminate``
    clears, but ``disconnect`` leaves the closed tunnel cached until the next
    listing.

    A single instance may be shared between threads. The cache is guarded by
    its own lock and no lock is held across a control API call.

    Example:
        >>> with TunnelSession() as session:
        ...     tunnel = session.connect(
        ...         TunnelDefinitionBuilder().with_addr(8000).build()
        ...     )
        ...     print(tunnel.public_url)
    """

    def __init__(
        self,
        config: SessionConfig | None = None,
        process: ProcessHandle | None = None,
        api_client: ControlAPIClient | None = None,
        resolver: TunnelDefinitionResolver | None = None,
    ):
        """Initialize the session.

        Args:
            config: Session configuration, defaults if None
            process: Agent process handle, an ``AgentProcess`` if None
            api_client: Control API client, built from ``config`` if None
            resolver: Tunnel definition resolver, reads ``config.config_path``
                through the process handle if None
        """
        self.config = config or SessionConfig()
        self.process: ProcessHandle = process or AgentProcess(self.config)
        self.api_client = api_client or ControlAPIClient(timeout=self.config.request_timeout)
        self.resolver = resolver or TunnelDefinitionResolver(
            self.config.config_path,
            default_name=self.config.default_tunnel_name,
            loader=self._load_persisted_config,
        )
        self._cache = TunnelCache()

    def _load_persisted_config(self, config_path: str | Path) -> PersistedConfig:
        return PersistedConfig.from_mapping(self.process.get_persisted_config(config_path))

    @property
    def tunnels(self) -> list[Tunnel]:
        """Snapshot of cached tunnels, without contacting the agent."""
        return self._cache.values()

    @property
    def cache(self) -> TunnelCache:
        return self._cache

    def _agent_version(self) -> AgentVersion:
        version = self.process.get_version()
        if not version:
            return self.config.agent_version
        return AgentVersion.from_version_string(version)

    def connect(self, definition: TunnelDefinition | None = None) -> Tunnel:
        """Open a tunnel, starting the agent first if needed.

        A definition without a name adopts the config file's default tunnel
        definition, if any. Http tunnels that bind both schemes return the
        plaintext http tunnel.

        Args:
            definition: Tunnel request, defaults to http on port 80

        Returns:
            The connected tunnel

        Raises:
            ConfigurationError: If the definition is invalid
            ProcessError: If the agent cannot be started
            AgentAPIError: If the control API call fails
        """
        self.process.ensure_started()

        resolved = self.resolver.resolve(definition, agent_version=self._agent_version())
        logger.info("Opening tunnel", name=resolved.name)

        tunnel = self.api_client.create_tunnel(self.process.api_url, resolved)
        self._cache.add(tunnel)
        logger.info("Tunnel connected", name=tunnel.name, public_url=tunnel.public_url)
        return tunnel

    def disconnect(self, public_url: str) -> None:
        """Close the tunnel with the given public URL, if open.

        Does nothing when the agent is not running or no such tunnel exists.
        The closed tunnel stays cached until the next ``list_tunnels``.

        Raises:
            AgentAPIError: If the control API call fails
        """
        if not self.process.is_running():
            logger.debug("Agent not running, nothing to disconnect", public_url=public_url)
            return

        tunnel = self._cache.get(public_url)
        if tunnel is None:
            self.list_tunnels()
            tunnel = self._cache.get(public_url)
            if tunnel is None:
                logger.debug("Tunnel not open, nothing to disconnect", public_url=public_url)
                return

        self.process.ensure_started()

        logger.info("Disconnecting tunnel", public_url=public_url)
        self.api_client.delete_tunnel(self.process.api_url, tunnel)

    def list_tunnels(self) -> list[Tunnel]:
        """List the agent's open tunnels and rebuild the cache from them.

        Raises:
            ProcessError: If the agent cannot be started
            AgentAPIError: If the control API call fails
        """
        self.process.ensure_started()

        tunnels = self.api_client.list_tunnels(self.process.api_url)
        return self._cache.replace_all(tunnels)

    def refresh_metrics(self, tunnel: Tunnel) -> None:
        """Replace ``tunnel.metrics`` with the agent's latest numbers.

        Raises:
            AgentAPIError: If the control API call fails
            TunnelProtocolError: If the agent reports no metrics; the tunnel's
                previous metrics are kept
        """
        tunnel.metrics = self.api_client.get_metrics(self.process.api_url, tunnel)

    def get_captured_requests(
        self, tunnel_name: str | None = None, limit: int | None = None
    ) -> CapturedRequests:
        """Requests the agent captured for inspection, optionally for one tunnel."""
        self.process.ensure_started()
        return self.api_client.list_requests(
            self.process.api_url, tunnel_name=tunnel_name, limit=limit
        )

    def terminate(self) -> None:
        """Signal the agent to stop and forget every cached tunnel.

        Does not wait for the process to exit.
        """
        logger.info("Terminating agent", cached_tunnels=len(self._cache))
        self.process.stop()
        self._cache.clear()

    def set_credential(self, token: str) -> None:
        """Save the agent auth token, enabling authenticated features."""
        self.process.set_credential(validate_non_empty_string(token, "Auth token"))

    def upgrade(self) -> None:
        """Update the agent binary, if an update is available."""
        self.process.self_update()

    def get_version_info(self) -> VersionInfo:
        """Agent and client library versions."""
        from . import __version__  # noqa: PLC0415

        return VersionInfo(
            agent_version=self.process.get_version(),
            client_version=__version__,
        )

    def __enter__(self) -> "TunnelSession":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> Literal[False]:
        """Terminate the agent on exit; never suppresses exceptions."""
        try:
            self.terminate()
        except Exception as e:
            logger.error("Error during context exit", error=str(e))
        return False
