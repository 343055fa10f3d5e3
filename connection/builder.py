"""Fluent construction of a Connection"""

import logging
from typing import Callable, List, Optional

import httpx

import settings
from config.models import Config, TokenPair
from config.store import ConfigError, ConfigStore
from sso.errors import RefreshError, TokenRefreshError, UnauthenticatedError
from .connection import DEFAULT_CONFIG, Connection, ConnectionConfig

logger = logging.getLogger(__name__)

TransportWrapper = Callable[[httpx.AsyncBaseTransport], httpx.AsyncBaseTransport]


class ConnectionBuilder:
    """Collects connection settings, then builds and refreshes a Connection"""

    def __init__(self):
        self._access_token = ""
        self._refresh_token = ""
        self._secondary_access_token = ""
        self._secondary_refresh_token = ""
        self._client_id = ""
        self._scopes: List[str] = []
        self._api_url = ""
        self._auth_url = ""
        self._secondary_auth_url = ""
        self._insecure = False
        self._transport: Optional[httpx.AsyncBaseTransport] = None
        self._transport_wrapper: Optional[TransportWrapper] = None
        self._store: Optional[ConfigStore] = None
        self._connection_config = DEFAULT_CONFIG
        self._timeout: Optional[float] = None

    def with_access_token(self, token: str) -> "ConnectionBuilder":
        self._access_token = token
        return self

    def with_refresh_token(self, token: str) -> "ConnectionBuilder":
        self._refresh_token = token
        return self

    def with_secondary_access_token(self, token: str) -> "ConnectionBuilder":
        self._secondary_access_token = token
        return self

    def with_secondary_refresh_token(self, token: str) -> "ConnectionBuilder":
        self._secondary_refresh_token = token
        return self

    def with_client_id(self, client_id: str) -> "ConnectionBuilder":
        self._client_id = client_id
        return self

    def with_scopes(self, *scopes: str) -> "ConnectionBuilder":
        self._scopes = list(scopes)
        return self

    def with_api_url(self, url: str) -> "ConnectionBuilder":
        self._api_url = url
        return self

    def with_auth_url(self, url: str) -> "ConnectionBuilder":
        self._auth_url = url
        return self

    def with_secondary_auth_url(self, url: str) -> "ConnectionBuilder":
        self._secondary_auth_url = url
        return self

    def with_insecure(self, insecure: bool) -> "ConnectionBuilder":
        self._insecure = insecure
        return self

    def with_transport(self, transport: httpx.AsyncBaseTransport) -> "ConnectionBuilder":
        """Use a specific base transport instead of the default HTTP transport"""
        self._transport = transport
        return self

    def with_transport_wrapper(self, wrapper: TransportWrapper) -> "ConnectionBuilder":
        """Wrap the base transport, e.g. to log requests"""
        self._transport_wrapper = wrapper
        return self

    def with_config_store(self, store: ConfigStore) -> "ConnectionBuilder":
        """Save refreshed tokens to this store"""
        self._store = store
        return self

    def with_connection_config(self, connection_config: ConnectionConfig) -> "ConnectionBuilder":
        self._connection_config = connection_config
        return self

    def with_timeout(self, timeout: float) -> "ConnectionBuilder":
        self._timeout = timeout
        return self

    def with_config(self, cfg: Config) -> "ConnectionBuilder":
        """Take tokens and endpoints from a loaded config"""
        return (
            self.with_access_token(cfg.primary.access_token)
            .with_refresh_token(cfg.primary.refresh_token)
            .with_secondary_access_token(cfg.secondary.access_token)
            .with_secondary_refresh_token(cfg.secondary.refresh_token)
            .with_client_id(cfg.client_id)
            .with_scopes(*cfg.scopes)
            .with_api_url(cfg.api_url)
            .with_auth_url(cfg.auth_url)
            .with_secondary_auth_url(cfg.secondary_auth_url)
            .with_insecure(cfg.insecure)
        )

    def _build_credentials(self) -> Config:
        if not self._client_id:
            raise ConfigError("missing client ID")
        if not self._auth_url:
            raise ConfigError("missing auth URL")

        return Config(
            primary=TokenPair(self._access_token, self._refresh_token),
            secondary=TokenPair(self._secondary_access_token, self._secondary_refresh_token),
            auth_url=self._auth_url,
            secondary_auth_url=self._secondary_auth_url,
            api_url=self._api_url or settings.PRODUCTION_API_URL,
            client_id=self._client_id,
            scopes=list(self._scopes) if self._scopes else list(settings.DEFAULT_SCOPES),
            insecure=self._insecure,
        )

    def _build_client(self) -> httpx.AsyncClient:
        transport = self._transport or httpx.AsyncHTTPTransport(verify=not self._insecure)
        if self._transport_wrapper is not None:
            transport = self._transport_wrapper(transport)
        timeout = self._timeout if self._timeout is not None else settings.HTTP_TIMEOUT
        return httpx.AsyncClient(transport=transport, timeout=timeout)

    async def build(self) -> Connection:
        """
        Build the connection and refresh its tokens once.

        Returns:
            A Connection with refreshed tokens

        Raises:
            ConfigError: If the client ID or auth URL is missing
            UnauthenticatedError: If a required realm has no tokens
            TokenRefreshError: If refreshing failed; its connection attribute
                holds the built connection
        """
        credentials = self._build_credentials()

        if self._insecure:
            logger.warning("TLS certificate verification is disabled")

        connection = Connection(
            credentials,
            http_client=self._build_client(),
            store=self._store,
            connection_config=self._connection_config,
        )

        try:
            if self._connection_config.require_auth:
                connection.require("primary")
            if self._connection_config.require_secondary_auth:
                connection.require("secondary")
        except UnauthenticatedError:
            await connection.aclose()
            raise

        try:
            await connection.refresh_tokens()
        except RefreshError as e:
            raise TokenRefreshError(e, connection) from e

        return connection
