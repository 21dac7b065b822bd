"""Shared pytest fixtures for tunnel session tests."""

import json
from pathlib import Path
from typing import Any
from unittest.mock import Mock

import pytest
import requests

from tunnel_session.config import SessionConfig
from tunnel_session.control import ControlAPIClient
from tunnel_session.session import TunnelSession
from tunnel_session.tunnels.persisted import read_config_file

API_URL = "http://127.0.0.1:4040"


class FakeProcess:
    """In-memory ProcessHandle that records every call."""

    def __init__(self, version: str = "3.1.0", running: bool = False):
        self.version = version
        self.running = running
        self.ensure_started_calls = 0
        self.stop_calls = 0
        self.credentials: list[str] = []
        self.update_calls = 0

    @property
    def api_url(self) -> str:
        return API_URL

    def ensure_started(self) -> None:
        self.ensure_started_calls += 1
        self.running = True

    def is_running(self) -> bool:
        return self.running

    def stop(self) -> None:
        self.stop_calls += 1
        self.running = False

    def get_version(self) -> str:
        return self.version

    def set_credential(self, token: str) -> None:
        self.credentials.append(token)

    def self_update(self) -> None:
        self.update_calls += 1

    def get_persisted_config(self, config_path: str | Path) -> dict[str, Any]:
        return read_config_file(config_path)


def _response(status_code: int = 200, payload: Any = None, text: str | None = None) -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    if text is not None:
        response._content = text.encode()
    elif payload is not None:
        response._content = json.dumps(payload).encode()
    else:
        response._content = b""
    return response


def _tunnel_payload(
    name: str = "my-tunnel",
    public_url: str = "https://abc.example.io",
    addr: str = "http://localhost:80",
    proto: str = "https",
    metrics: dict[str, Any] | None = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "name": name,
        "uri": f"/api/tunnels/{name}",
        "public_url": public_url,
        "proto": proto,
        "config": {"addr": addr, "inspect": True},
    }
    if metrics is not None:
        payload["metrics"] = metrics
    return payload


@pytest.fixture
def make_response():
    """Factory for real ``requests.Response`` objects.

    Returns:
        Callable: (status_code, payload=None, text=None) -> Response
    """
    return _response


@pytest.fixture
def tunnel_payload():
    """Factory for control API tunnel JSON payloads."""
    return _tunnel_payload


@pytest.fixture
def fake_process():
    """A ProcessHandle for a V3 agent that is not running yet."""
    return FakeProcess()


@pytest.fixture
def mock_http():
    """Mocked ``requests.Session``; set ``request.return_value``/``side_effect``."""
    return Mock(spec=requests.Session)


@pytest.fixture
def api_client(mock_http):
    return ControlAPIClient(session=mock_http, timeout=5.0)


@pytest.fixture
def config_path(tmp_path):
    """Path of a not-yet-written agent config file."""
    return tmp_path / "agent.yml"


@pytest.fixture
def write_config(config_path):
    """Write YAML text to the agent config file.

    Returns:
        Callable: (yaml_text) -> Path
    """

    def _write(content: str) -> Path:
        config_path.write_text(content)
        return config_path

    return _write


@pytest.fixture
def session(fake_process, api_client, config_path):
    """TunnelSession wired to a fake process and a mocked HTTP session."""
    config = SessionConfig(config_path=config_path, api_url=API_URL)
    return TunnelSession(config=config, process=fake_process, api_client=api_client)
