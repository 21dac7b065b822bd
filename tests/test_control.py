"""Tests for the control API client."""

import pytest
import requests

from tunnel_session.common.exceptions import AgentAPIError, TunnelProtocolError
from tunnel_session.control import HTTP_SIBLING_SUFFIX
from tunnel_session.tunnels.builder import TunnelDefinitionBuilder
from tunnel_session.tunnels.models import AgentVersion, Tunnel

API_URL = "http://127.0.0.1:4040"


def _call(mock_http, index=0):
    """(method, url, kwargs) of the index-th request made on the mocked session."""
    args, kwargs = mock_http.request.call_args_list[index]
    return args[0], args[1], kwargs


class TestCreateTunnel:
    def test_posts_resolved_definition(self, api_client, mock_http, make_response, tunnel_payload):
        mock_http.request.return_value = make_response(201, tunnel_payload(name="ssh"))
        definition = (
            TunnelDefinitionBuilder(set_defaults=True)
            .with_name("ssh")
            .with_proto("tcp")
            .with_addr(22)
            .build()
        )

        tunnel = api_client.create_tunnel(API_URL, definition)

        method, url, kwargs = _call(mock_http)
        assert method == "POST"
        assert url == f"{API_URL}/api/tunnels"
        assert kwargs["json"] == {"name": "ssh", "proto": "tcp", "addr": "22"}
        assert kwargs["timeout"] == 5.0
        assert tunnel.name == "ssh"
        assert mock_http.request.call_count == 1

    def test_dual_scheme_returns_http_sibling(
        self, api_client, mock_http, make_response, tunnel_payload
    ):
        https_tunnel = tunnel_payload(name="web", public_url="https://web.example.io")
        http_tunnel = tunnel_payload(
            name="web (http)", public_url="http://web.example.io", proto="http"
        )
        mock_http.request.side_effect = [
            make_response(201, https_tunnel),
            make_response(200, http_tunnel),
        ]
        definition = (
            TunnelDefinitionBuilder(set_defaults=True)
            .with_name("web")
            .with_agent_version(AgentVersion.V2)
            .build()
        )

        tunnel = api_client.create_tunnel(API_URL, definition)

        method, url, _ = _call(mock_http, 1)
        assert method == "GET"
        assert url == f"{API_URL}/api/tunnels/web{HTTP_SIBLING_SUFFIX}"
        assert tunnel.public_url == "http://web.example.io"
        assert tunnel.proto == "http"

    def test_v3_unset_bind_returns_created_tunnel(
        self, api_client, mock_http, make_response, tunnel_payload
    ):
        """Without an explicit bind mode the agent picks the schemes, no sibling lookup."""
        mock_http.request.return_value = make_response(
            201, tunnel_payload(name="web", public_url="https://web.example.io")
        )
        definition = TunnelDefinitionBuilder(set_defaults=True).with_name("web").build()

        tunnel = api_client.create_tunnel(API_URL, definition)

        assert mock_http.request.call_count == 1
        method, _, kwargs = _call(mock_http)
        assert method == "POST"
        assert "schemes" not in kwargs["json"]
        assert tunnel.public_url == "https://web.example.io"

    def test_http_error_carries_diagnostics(self, api_client, mock_http, make_response):
        mock_http.request.return_value = make_response(
            400, text='{"error_code": 102, "msg": "invalid tunnel configuration"}'
        )
        definition = TunnelDefinitionBuilder(set_defaults=True).with_name("bad").build()

        with pytest.raises(AgentAPIError) as exc_info:
            api_client.create_tunnel(API_URL, definition)

        error = exc_info.value
        assert error.url == f"{API_URL}/api/tunnels"
        assert error.status_code == 400
        assert "invalid tunnel configuration" in error.body
        assert "bad" in str(error)

    def test_transport_error_is_api_error(self, api_client, mock_http):
        mock_http.request.side_effect = requests.ConnectionError("refused")
        definition = TunnelDefinitionBuilder(set_defaults=True).build()

        with pytest.raises(AgentAPIError) as exc_info:
            api_client.create_tunnel(API_URL, definition)

        assert exc_info.value.status_code is None
        assert isinstance(exc_info.value.__cause__, requests.ConnectionError)

    def test_sibling_lookup_failure_is_api_error(
        self, api_client, mock_http, make_response, tunnel_payload
    ):
        mock_http.request.side_effect = [
            make_response(201, tunnel_payload(name="web")),
            make_response(404, text="not found"),
        ]
        definition = (
            TunnelDefinitionBuilder(set_defaults=True).with_bind_tls("both").build()
        )

        with pytest.raises(AgentAPIError) as exc_info:
            api_client.create_tunnel(API_URL, definition)

        assert exc_info.value.status_code == 404


class TestListAndGet:
    def test_list_tunnels(self, api_client, mock_http, make_response, tunnel_payload):
        mock_http.request.return_value = make_response(
            200,
            {
                "tunnels": [
                    tunnel_payload(name="a", public_url="https://a.example.io"),
                    tunnel_payload(name="b", public_url="https://b.example.io"),
                ],
                "uri": "/api/tunnels",
            },
        )

        tunnels = api_client.list_tunnels(API_URL)

        assert [t.name for t in tunnels] == ["a", "b"]
        method, url, _ = _call(mock_http)
        assert (method, url) == ("GET", f"{API_URL}/api/tunnels")

    def test_list_tunnels_error(self, api_client, mock_http, make_response):
        mock_http.request.return_value = make_response(502, text="bad gateway")

        with pytest.raises(AgentAPIError, match="GETing the tunnels"):
            api_client.list_tunnels(API_URL)

    def test_list_without_tunnels_key_is_protocol_error(
        self, api_client, mock_http, make_response
    ):
        mock_http.request.return_value = make_response(200, {"uri": "/api/tunnels"})

        with pytest.raises(TunnelProtocolError):
            api_client.list_tunnels(API_URL)

    def test_malformed_tunnel_is_protocol_error(self, api_client, mock_http, make_response):
        mock_http.request.return_value = make_response(200, {"name": "half"})

        with pytest.raises(TunnelProtocolError, match="Malformed tunnel"):
            api_client.get_tunnel(API_URL, "/api/tunnels/half")


class TestMetrics:
    def _tunnel(self, tunnel_payload) -> Tunnel:
        return Tunnel.model_validate(tunnel_payload(name="m"))

    def test_get_metrics(self, api_client, mock_http, make_response, tunnel_payload):
        payload = tunnel_payload(
            name="m",
            metrics={
                "conns": {"count": 3, "gauge": 1, "rate1": 0.5, "p50": 120.0},
                "http": {"count": 7},
            },
        )
        mock_http.request.return_value = make_response(200, payload)

        metrics = api_client.get_metrics(API_URL, self._tunnel(tunnel_payload))

        assert metrics["conns"].count == 3
        assert metrics["conns"].p50 == 120.0
        assert metrics["http"].count == 7
        method, url, _ = _call(mock_http)
        assert (method, url) == ("GET", f"{API_URL}/api/tunnels/m")

    @pytest.mark.parametrize("metrics", [None, {}])
    def test_missing_metrics_is_protocol_error(
        self, api_client, mock_http, make_response, tunnel_payload, metrics
    ):
        mock_http.request.return_value = make_response(
            200, tunnel_payload(name="m", metrics=metrics)
        )

        with pytest.raises(TunnelProtocolError, match='"metrics"'):
            api_client.get_metrics(API_URL, self._tunnel(tunnel_payload))

    def test_metrics_http_error_is_api_error(
        self, api_client, mock_http, make_response, tunnel_payload
    ):
        mock_http.request.return_value = make_response(500, text="boom")

        with pytest.raises(AgentAPIError):
            api_client.get_metrics(API_URL, self._tunnel(tunnel_payload))


class TestDeleteAndRequests:
    def test_delete_tunnel(self, api_client, mock_http, make_response, tunnel_payload):
        mock_http.request.return_value = make_response(204)
        tunnel = Tunnel.model_validate(tunnel_payload(name="gone"))

        api_client.delete_tunnel(API_URL, tunnel)

        method, url, _ = _call(mock_http)
        assert (method, url) == ("DELETE", f"{API_URL}/api/tunnels/gone")

    def test_delete_error(self, api_client, mock_http, make_response, tunnel_payload):
        mock_http.request.return_value = make_response(404, text="tunnel not found")
        tunnel = Tunnel.model_validate(tunnel_payload(name="gone"))

        with pytest.raises(AgentAPIError) as exc_info:
            api_client.delete_tunnel(API_URL, tunnel)

        assert exc_info.value.body == "tunnel not found"

    def test_list_requests_with_filters(self, api_client, mock_http, make_response):
        mock_http.request.return_value = make_response(
            200,
            {
                "uri": "/api/requests/http",
                "requests": [
                    {
                        "uri": "/api/requests/http/abc",
                        "id": "abc",
                        "tunnel_name": "web",
                        "duration": 1200,
                        "request": {"method": "GET", "uri": "/"},
                        "response": {"status_code": 200},
                    }
                ],
            },
        )

        captured = api_client.list_requests(API_URL, tunnel_name="web", limit=5)

        assert captured.requests[0].id == "abc"
        assert captured.requests[0].request["method"] == "GET"
        method, url, kwargs = _call(mock_http)
        assert (method, url) == ("GET", f"{API_URL}/api/requests/http")
        assert kwargs["params"] == {"tunnel_name": "web", "limit": 5}

    def test_clear_requests(self, api_client, mock_http, make_response):
        mock_http.request.return_value = make_response(204)

        api_client.clear_requests(API_URL)

        method, url, _ = _call(mock_http)
        assert (method, url) == ("DELETE", f"{API_URL}/api/requests/http")
