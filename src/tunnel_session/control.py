"""Client for the agent's local control API.

Every call is a single blocking round trip. Failures surface as
``AgentAPIError`` (transport or non-2xx) or ``TunnelProtocolError`` (2xx with
an unusable payload); nothing is retried here.
"""

from typing import Any

import requests
from pydantic import ValidationError

from .common.exceptions import AgentAPIError, TunnelProtocolError
from .common.logging import get_logger
from .common.utils import join_api_url, sanitize_log_data
from .tunnels.compat import is_dual_scheme
from .tunnels.models import (
    CapturedRequests,
    Tunnel,
    TunnelDefinition,
    TunnelMetric,
)

logger = get_logger(__name__)

TUNNELS_PATH = "/api/tunnels"
REQUESTS_PATH = "/api/requests/http"

# URL-encoded " (http)", the suffix the agent gives the plaintext sibling tunnel
HTTP_SIBLING_SUFFIX = "%20%28http%29"


class ControlAPIClient:
    """Issues create/list/get/delete calls against the agent's control API."""

    def __init__(
        self,
        session: requests.Session | None = None,
        timeout: float = 10.0,
    ):
        """Initialize the client.

        Args:
            session: requests session to use, a new one if None
            timeout: Per-request timeout in seconds
        """
        self._session = session or requests.Session()
        self.timeout = timeout
        self.headers = {"Content-Type": "application/json"}

    def _request(
        self,
        method: str,
        url: str,
        error_message: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        try:
            response = self._session.request(
                method,
                url,
                json=json,
                params=params,
                headers=self.headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error("Control API request failed", method=method, url=url, error=str(e))
            raise AgentAPIError(error_message, url=url) from e

        if not 200 <= response.status_code < 300:
            logger.error(
                "Control API returned an error",
                method=method,
                url=url,
                status_code=response.status_code,
                body=response.text,
            )
            raise AgentAPIError(
                error_message,
                url=url,
                status_code=response.status_code,
                body=response.text,
            )

        if response.status_code == 204 or not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise TunnelProtocolError(f"{error_message} Response is not JSON.") from e

    @staticmethod
    def _parse_tunnel(data: Any) -> Tunnel:
        try:
            return Tunnel.model_validate(data)
        except ValidationError as e:
            raise TunnelProtocolError(f"Malformed tunnel in control API response: {e}") from e

    def create_tunnel(self, api_url: str, definition: TunnelDefinition) -> Tunnel:
        """Open a tunnel for a resolved definition.

        When an http definition binds both schemes the agent opens two tunnels
        but only returns the https one; the plaintext sibling is fetched and
        returned instead.

        Args:
            api_url: Control API base URL
            definition: Fully resolved tunnel definition

        Returns:
            The created tunnel

        Raises:
            AgentAPIError: If either request fails
        """
        url = join_api_url(api_url, TUNNELS_PATH)
        body = definition.to_request_body()
        logger.info("Creating tunnel", url=url, **sanitize_log_data(body))

        data = self._request(
            "POST",
            url,
            f"An error occurred when POSTing to create the tunnel {definition.name}.",
            json=body,
        )
        tunnel = self._parse_tunnel(data)

        if is_dual_scheme(definition):
            logger.debug("Fetching plaintext sibling tunnel", name=tunnel.name)
            tunnel = self.get_tunnel(api_url, tunnel.uri + HTTP_SIBLING_SUFFIX)

        return tunnel

    def list_tunnels(self, api_url: str) -> list[Tunnel]:
        """List every tunnel the agent has open."""
        url = join_api_url(api_url, TUNNELS_PATH)
        data = self._request("GET", url, "An error occurred when GETing the tunnels.")

        if not isinstance(data, dict) or not isinstance(data.get("tunnels"), list):
            raise TunnelProtocolError("The control API did not return a 'tunnels' list")

        return [self._parse_tunnel(item) for item in data["tunnels"]]

    def get_tunnel(self, api_url: str, uri: str) -> Tunnel:
        """Fetch a single tunnel by correlation URI."""
        url = join_api_url(api_url, uri)
        data = self._request("GET", url, f"An error occurred when GETing the tunnel {uri}.")
        return self._parse_tunnel(data)

    def get_metrics(self, api_url: str, tunnel: Tunnel) -> dict[str, TunnelMetric]:
        """Fetch the latest metrics for a tunnel.

        Raises:
            AgentAPIError: If the request fails
            TunnelProtocolError: If the response has no (or empty) metrics
        """
        url = join_api_url(api_url, tunnel.uri)
        data = self._request(
            "GET", url, f"An error occurred when GETing metrics for {tunnel.public_url}."
        )

        metrics = data.get("metrics") if isinstance(data, dict) else None
        if not metrics:
            raise TunnelProtocolError(
                'The control API did not return "metrics" in the response'
            )

        try:
            return {
                name: TunnelMetric.model_validate(values)
                for name, values in metrics.items()
            }
        except (AttributeError, ValidationError) as e:
            raise TunnelProtocolError(f"Malformed metrics in response: {e}") from e

    def delete_tunnel(self, api_url: str, tunnel: Tunnel) -> None:
        """Close a tunnel."""
        url = join_api_url(api_url, tunnel.uri)
        logger.info("Deleting tunnel", url=url, public_url=tunnel.public_url)
        self._request(
            "DELETE",
            url,
            f"An error occurred when DELETEing the tunnel {tunnel.public_url}.",
        )

    def list_requests(
        self,
        api_url: str,
        tunnel_name: str | None = None,
        limit: int | None = None,
    ) -> CapturedRequests:
        """List requests the agent captured for inspection.

        Args:
            api_url: Control API base URL
            tunnel_name: Only return requests seen by this tunnel
            limit: Maximum number of requests to return
        """
        url = join_api_url(api_url, REQUESTS_PATH)
        params: dict[str, Any] = {}
        if tunnel_name is not None:
            params["tunnel_name"] = tunnel_name
        if limit is not None:
            params["limit"] = limit

        data = self._request(
            "GET",
            url,
            "An error occurred when GETing captured requests.",
            params=params or None,
        )
        try:
            return CapturedRequests.model_validate(data or {})
        except ValidationError as e:
            raise TunnelProtocolError(f"Malformed captured requests: {e}") from e

    def clear_requests(self, api_url: str) -> None:
        """Drop every captured request from the agent's inspection buffer."""
        url = join_api_url(api_url, REQUESTS_PATH)
        self._request("DELETE", url, "An error occurred when DELETEing captured requests.")
