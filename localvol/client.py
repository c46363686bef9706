"""REST API client for the localvol controller."""

from typing import Any, Dict, Optional
from urllib.parse import urljoin

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from localvol.exceptions import APIConnectionError, APIError, APITimeout


class LocalVolClient:
    """REST API client for the localvol controller.

    Provides the volume operations of the provisioning API plus the identity
    probe.
    """

    def __init__(
        self,
        api_endpoint: str,
        timeout: int = 120,
        retry_count: int = 3,
        verify_ssl: bool = True,
    ):
        """Initialize the API client.

        Args:
            api_endpoint: localvol API URL (e.g., http://127.0.0.1:8080)
            timeout: HTTP request timeout in seconds
            retry_count: Number of retries for failed GET requests
            verify_ssl: Whether to verify SSL certificates
        """
        self.base_url = api_endpoint.rstrip("/")
        self.timeout = timeout
        self.retry_count = retry_count
        self.verify_ssl = verify_ssl

        self.session = requests.Session()

        # Only GET is retried; a repeated POST would re-run a provisioning call.
        retry_strategy = Retry(
            total=retry_count,
            backoff_factor=1,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET"],
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def _make_request(
        self,
        method: str,
        path: str,
        json_data: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """Make an HTTP request and return the envelope ``data``.

        Raises:
            APIConnectionError: Connection failed
            APITimeout: Request timed out
            APIError: API returned an error
        """
        url = urljoin(self.base_url, path)

        try:
            response = self.session.request(
                method=method,
                url=url,
                json=json_data,
                headers=headers,
                timeout=self.timeout,
                verify=self.verify_ssl,
            )
        except requests.exceptions.Timeout as e:
            raise APITimeout(f"API request timed out after {self.timeout}s: {e}")
        except requests.exceptions.ConnectionError as e:
            raise APIConnectionError(f"Failed to connect to localvol API: {e}")
        except requests.exceptions.RequestException as e:
            raise APIError(f"API request failed: {e}")

        if response.status_code >= 400:
            try:
                error_data = response.json()
                error_msg = error_data.get("error", {}).get("message") or error_data.get("detail") or response.text
            except ValueError:
                error_msg = response.text
                error_data = None
            raise APIError(
                f"API request failed: {error_msg}",
                status_code=response.status_code,
                response_data=error_data,
            )

        if response.status_code == 204:
            return {}
        return response.json().get("data", {})

    def _timeout_header(self, deadline: Optional[float]) -> Optional[Dict[str, str]]:
        if deadline is None:
            return None
        return {"X-Request-Timeout": str(deadline)}

    # Volume operations

    def create_volume(
        self,
        name: str,
        required_bytes: Any,
        parameters: Dict[str, str],
        node: Optional[str] = None,
        topology_key: Optional[str] = None,
        block: bool = False,
        deadline: Optional[float] = None,
    ) -> Dict[str, Any]:
        """Create a volume.

        Args:
            name: Volume name (becomes the volume id)
            required_bytes: Size in bytes or as a quantity ("10Gi")
            parameters: Storage class parameters
            node: Preferred node for WaitForFirstConsumer storage classes
            topology_key: Topology segment key naming the node
            block: Request raw block access
            deadline: Call deadline in seconds

        Returns:
            Volume dictionary
        """
        data: Dict[str, Any] = {
            "name": name,
            "required_bytes": required_bytes,
            "parameters": parameters,
            "volume_capabilities": [{"block": block}],
        }
        if node:
            data["accessibility_requirements"] = {"preferred": [{topology_key: node}]}
        response = self._make_request("POST", "/v1/volumes", json_data=data, headers=self._timeout_header(deadline))
        return response.get("volume", {})

    def expand_volume(
        self, volume_id: str, required_bytes: Any, block: bool = False, deadline: Optional[float] = None
    ) -> Dict[str, Any]:
        """Expand a volume. Returns capacity_bytes and node_expansion_required."""
        data = {"required_bytes": required_bytes, "volume_capability": {"block": block}}
        response = self._make_request(
            "POST", f"/v1/volumes/{volume_id}/expand", json_data=data, headers=self._timeout_header(deadline)
        )
        return response.get("expansion", {})

    def delete_volume(self, volume_id: str) -> None:
        self._make_request("DELETE", f"/v1/volumes/{volume_id}")

    def publish_volume(self, volume_id: str, node_id: str) -> Dict[str, str]:
        response = self._make_request("POST", f"/v1/volumes/{volume_id}/publish", json_data={"node_id": node_id})
        return response.get("publish_context", {})

    def get_capabilities(self) -> Dict[str, Any]:
        return self._make_request("GET", "/v1/capabilities")

    def probe(self) -> bool:
        return bool(self._make_request("GET", "/v1/identity/probe").get("ready"))
