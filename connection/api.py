"""
Authenticated service API clients

Clients are bound lazily to the connection's current tokens. Creating or
looking up a client never performs network I/O.
"""
import logging
from typing import Any, Callable, Dict, Optional

import httpx

from sso.errors import UnauthenticatedError

logger = logging.getLogger(__name__)

KAFKA_MGMT_PATH = "/api/kafkas_mgmt/v1"
SERVICE_ACCOUNTS_PATH = "/api/kafkas_mgmt/v1/service_accounts"
SERVICE_REGISTRY_MGMT_PATH = "/api/serviceregistry_mgmt/v1"
KAFKA_ADMIN_PATH = "/rest"


class ServiceClient:
    """HTTP client for one service API, authorized with a bearer token"""

    def __init__(self, http_client: httpx.AsyncClient, base_url: str, access_token: str):
        self.http_client = http_client
        self.base_url = base_url.rstrip("/")
        self.access_token = access_token

    def url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}" if path else self.base_url

    async def request(self, method: str, path: str = "", **kwargs: Any) -> httpx.Response:
        """
        Send a request relative to the service base URL.

        Args:
            method: HTTP method
            path: Path below the service base URL
            **kwargs: Passed to httpx.AsyncClient.request

        Returns:
            The raw response; status handling is left to the caller
        """
        headers: Dict[str, str] = dict(kwargs.pop("headers", None) or {})
        headers["Authorization"] = f"Bearer {self.access_token}"
        headers.setdefault("Accept", "application/json")
        return await self.http_client.request(method, self.url(path), headers=headers, **kwargs)

    async def get(self, path: str = "", **kwargs: Any) -> httpx.Response:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str = "", **kwargs: Any) -> httpx.Response:
        return await self.request("POST", path, **kwargs)

    async def patch(self, path: str = "", **kwargs: Any) -> httpx.Response:
        return await self.request("PATCH", path, **kwargs)

    async def delete(self, path: str = "", **kwargs: Any) -> httpx.Response:
        return await self.request("DELETE", path, **kwargs)


class APIClientSet:
    """Service clients bound to a connection's tokens

    Management APIs use the primary realm token on the API gateway; the Kafka
    admin API uses the secondary realm token on the instance's own host.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_url: str,
        primary_token: Callable[[], str],
        secondary_token: Callable[[], str],
    ):
        self._http_client = http_client
        self._api_url = api_url.rstrip("/")
        self._primary_token = primary_token
        self._secondary_token = secondary_token

    def _require(self, realm: str, token_source: Callable[[], str]) -> str:
        token = token_source()
        if not token:
            raise UnauthenticatedError(f"not logged in to the {realm} realm, run 'rhoas login'")
        return token

    def _gateway_client(self, path: str) -> ServiceClient:
        token = self._require("primary", self._primary_token)
        return ServiceClient(self._http_client, f"{self._api_url}{path}", token)

    @property
    def kafka_mgmt(self) -> ServiceClient:
        return self._gateway_client(KAFKA_MGMT_PATH)

    @property
    def service_accounts(self) -> ServiceClient:
        return self._gateway_client(SERVICE_ACCOUNTS_PATH)

    @property
    def service_registry_mgmt(self) -> ServiceClient:
        return self._gateway_client(SERVICE_REGISTRY_MGMT_PATH)

    def kafka_admin(self, bootstrap_host: str, scheme: Optional[str] = None) -> ServiceClient:
        """
        Get the admin API client of a Kafka instance.

        Args:
            bootstrap_host: Instance bootstrap host, optionally with port
            scheme: URL scheme, defaults to https

        Raises:
            UnauthenticatedError: If there is no secondary realm token
        """
        token = self._require("secondary", self._secondary_token)
        host = bootstrap_host.split(":", 1)[0]
        base_url = f"{scheme or 'https'}://admin-server-{host}{KAFKA_ADMIN_PATH}"
        logger.debug(f"Kafka admin API URL: {base_url}")
        return ServiceClient(self._http_client, base_url, token)
