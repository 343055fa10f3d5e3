"""Per-process command dependencies"""

import logging
import webbrowser
from typing import Callable, Optional

import httpx
from rich.console import Console

import settings
from config.models import Config
from config.store import ConfigStore
from connection import DEFAULT_CONFIG, Connection, ConnectionBuilder, ConnectionConfig
from sso.errors import TokenRefreshError
from utils.http_logging import LoggingTransport

logger = logging.getLogger(__name__)


class Factory:
    """Builds the objects commands need

    Created once in main and passed to every command.
    """

    def __init__(
        self,
        console: Console,
        store: Optional[ConfigStore] = None,
        debug: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        open_url: Callable[[str], bool] = webbrowser.open,
    ):
        """
        Args:
            console: Console for user-facing output
            store: Config file store, defaults to the standard location
            debug: Log HTTP traffic through LoggingTransport
            transport: Base HTTP transport, defaults to a real network transport
            open_url: Browser opener for the login flow
        """
        self.console = console
        self.store = store or ConfigStore()
        self.debug = debug
        self.transport = transport
        self.open_url = open_url

    def _wrap(self, transport: httpx.AsyncBaseTransport) -> httpx.AsyncBaseTransport:
        return LoggingTransport(transport) if self.debug else transport

    def http_client(self, insecure: bool = False) -> httpx.AsyncClient:
        """HTTP client for the login flow, honouring the insecure flag"""
        transport = self.transport or httpx.AsyncHTTPTransport(verify=not insecure)
        return httpx.AsyncClient(transport=self._wrap(transport), timeout=settings.HTTP_TIMEOUT)

    def builder(self, cfg: Config) -> ConnectionBuilder:
        """Connection builder preloaded with cfg, using default endpoints for unset fields"""
        builder = (
            ConnectionBuilder()
            .with_config(cfg)
            .with_client_id(cfg.client_id or settings.DEFAULT_CLIENT_ID)
            .with_auth_url(cfg.auth_url or settings.PRODUCTION_AUTH_URL)
            .with_api_url(cfg.api_url or settings.PRODUCTION_API_URL)
        )
        if self.transport is not None:
            builder.with_transport(self.transport)
        if self.debug:
            builder.with_transport_wrapper(LoggingTransport)
        return builder

    async def connection(self, connection_config: ConnectionConfig = DEFAULT_CONFIG) -> Connection:
        """
        Build a connection from the stored config.

        A refresh failure for a realm the command does not require is logged
        and the connection is returned anyway.

        Raises:
            ConfigError: If the config file cannot be read
            UnauthenticatedError: If a required realm has no tokens
            TokenRefreshError: If a required realm could not be refreshed
        """
        cfg = self.store.load()
        builder = (
            self.builder(cfg)
            .with_config_store(self.store)
            .with_connection_config(connection_config)
        )

        try:
            return await builder.build()
        except TokenRefreshError as e:
            required = (
                (e.realm == "primary" and connection_config.require_auth)
                or (e.realm == "secondary" and connection_config.require_secondary_auth)
            )
            if required:
                await e.connection.aclose()
                raise
            logger.warning(f"Ignoring token refresh failure for the {e.realm} realm: {e.cause}")
            return e.connection
