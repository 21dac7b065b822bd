"""Agent process boundary and a subprocess-backed implementation."""

import shutil
import subprocess
import threading
import time
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import requests

from .common.exceptions import BinaryNotFoundError, ProcessError
from .common.logging import get_logger
from .common.utils import join_api_url, mask_sensitive_data
from .config import SessionConfig
from .tunnels.models import AgentVersion
from .tunnels.persisted import read_config_file

logger = get_logger(__name__)

AGENT_BINARY_NAME = "ngrok"


@runtime_checkable
class ProcessHandle(Protocol):
    """What ``TunnelSession`` needs from the process running the agent."""

    @property
    def api_url(self) -> str: ...

    def ensure_started(self) -> None: ...

    def is_running(self) -> bool: ...

    def stop(self) -> None: ...

    def get_version(self) -> str: ...

    def set_credential(self, token: str) -> None: ...

    def self_update(self) -> None: ...

    def get_persisted_config(self, config_path: str | Path) -> dict[str, Any]: ...


def find_agent_binary(name: str = AGENT_BINARY_NAME) -> str:
    """Find the agent binary on PATH.

    Raises:
        BinaryNotFoundError: If the binary cannot be found
    """
    binary_path = shutil.which(name)
    if binary_path is None:
        raise BinaryNotFoundError(
            f"Agent binary '{name}' not found in PATH. "
            "Install it or set SessionConfig.binary_path."
        )
    return binary_path


class AgentProcess:
    """Manages the agent binary's lifecycle.

    ``ensure_started`` is idempotent and serialized by a lock, so concurrent
    callers share one process. Readiness means the control API answers.
    """

    def __init__(self, config: SessionConfig | None = None):
        """Initialize AgentProcess.

        Args:
            config: Session configuration, defaults if None

        Raises:
            BinaryNotFoundError: If the binary is missing or not a file
        """
        self.config = config or SessionConfig()
        self.binary_path = self.config.binary_path or find_agent_binary()
        self._validate_binary()

        self._process: subprocess.Popen[str] | None = None
        self._start_lock = threading.Lock()
        self._version: str | None = None
        self._credential_applied = False
        logger.info(
            "AgentProcess initialized",
            binary_path=self.binary_path,
            config_path=str(self.config.config_path),
        )

    def _validate_binary(self) -> None:
        binary_path = Path(self.binary_path)
        if not binary_path.exists():
            raise BinaryNotFoundError(f"Binary not found: {self.binary_path}")
        if not binary_path.is_file():
            raise BinaryNotFoundError(f"Binary path is not a file: {self.binary_path}")

    @property
    def api_url(self) -> str:
        return self.config.api_url

    @property
    def pid(self) -> int | None:
        """Get process ID if running."""
        if self.is_running() and self._process:
            return self._process.pid
        return None

    def _config_args(self) -> list[str]:
        if self.config.config_path.exists():
            return ["--config", str(self.config.config_path)]
        return []

    def _run(self, *args: str, error_message: str) -> str:
        try:
            result = subprocess.run(
                [self.binary_path, *args],
                capture_output=True,
                text=True,
                check=True,
                timeout=self.config.startup_timeout,
            )
        except subprocess.CalledProcessError as e:
            raise ProcessError(f"{error_message}: {e.stderr or e.stdout}") from e
        except (OSError, subprocess.TimeoutExpired) as e:
            raise ProcessError(f"{error_message}: {e}") from e
        return result.stdout

    def is_running(self) -> bool:
        """Check if the agent process is alive."""
        if self._process is None:
            return False
        return self._process.poll() is None

    def ensure_started(self) -> None:
        """Start the agent unless it is already running, and wait until ready.

        Raises:
            ProcessError: If the process cannot start or never becomes ready
        """
        if self.is_running():
            return

        with self._start_lock:
            if self.is_running():
                return

            if self.config.auth_token and not self._credential_applied:
                self.set_credential(self.config.auth_token)

            command = [self.binary_path, "start", "--none", "--log=stdout", *self._config_args()]
            logger.info("Starting agent process", command=command)
            try:
                self._process = subprocess.Popen(
                    command,
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                    text=True,
                )
            except OSError as e:
                logger.error("Failed to start agent process", error=str(e))
                raise ProcessError(f"Failed to start agent process: {e}") from e

            if not self.wait_for_startup(self.config.startup_timeout):
                returncode = self._process.poll()
                self.stop()
                raise ProcessError(
                    f"Agent did not become ready within {self.config.startup_timeout}s"
                    + (f" (exit code {returncode})" if returncode is not None else "")
                )

            logger.info("Agent process ready", pid=self.pid, api_url=self.api_url)

    def wait_for_startup(self, timeout: float) -> bool:
        """Poll the control API until it answers or the process dies."""
        url = join_api_url(self.api_url, "/api/tunnels")
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if not self.is_running():
                return False
            try:
                response = requests.get(url, timeout=1.0)
                if 200 <= response.status_code < 300:
                    return True
            except requests.RequestException:
                pass
            time.sleep(0.1)
        return False

    def stop(self) -> None:
        """Ask the agent to terminate; does not wait for it to exit."""
        if self._process is None:
            return

        if self._process.poll() is None:
            logger.info("Stopping agent process", pid=self._process.pid)
            try:
                self._process.terminate()
            except OSError as e:
                logger.warning("Error signalling agent process", error=str(e))
        self._process = None

    def get_version(self) -> str:
        """Agent version string, e.g. ``"3.1.0"``."""
        if self._version is None:
            output = self._run("--version", error_message="Failed to read agent version")
            # "ngrok version 3.1.0"
            self._version = output.strip().split()[-1] if output.strip() else ""
        return self._version

    def set_credential(self, token: str) -> None:
        """Persist the agent auth token into the config file."""
        if self.config.agent_version == AgentVersion.V2:
            args = ["authtoken", token]
        else:
            args = ["config", "add-authtoken", token]

        logger.info("Setting agent auth token", token=mask_sensitive_data(token))
        self._run(*args, *self._config_args(), error_message="Failed to set auth token")
        self._credential_applied = True

    def self_update(self) -> None:
        """Run the agent's self-update."""
        logger.info("Updating agent binary", binary_path=self.binary_path)
        self._run("update", "--log=stdout", *self._config_args(), error_message="Failed to update agent")
        self._version = None

    def get_persisted_config(self, config_path: str | Path) -> dict[str, Any]:
        return read_config_file(config_path)
