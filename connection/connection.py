"""
Authenticated connection to the platform APIs

A Connection owns one snapshot of the CLI credentials and one HTTP client for
the lifetime of a command. It keeps tokens fresh and ends provider sessions on
logout.
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import httpx

from config.models import Config, TokenPair
from config.store import ConfigStore
from sso.errors import LogoutError, ProviderDiscoveryError, RefreshError, UnauthenticatedError
from sso.provider import ProviderMetadata, discover_provider
from sso.token_exchange import end_session, refresh_access_token
from .api import APIClientSet

logger = logging.getLogger(__name__)

REALMS = ("primary", "secondary")


@dataclass(frozen=True)
class ConnectionConfig:
    """Realms a command needs tokens for

    Attributes:
        require_auth: Fail if the primary realm has no tokens
        require_secondary_auth: Fail if the secondary realm has no tokens
    """
    require_auth: bool = True
    require_secondary_auth: bool = False


DEFAULT_CONFIG_SKIP_SECONDARY_AUTH = ConnectionConfig(require_auth=True, require_secondary_auth=False)
DEFAULT_CONFIG_REQUIRE_SECONDARY_AUTH = ConnectionConfig(require_auth=True, require_secondary_auth=True)
DEFAULT_CONFIG = DEFAULT_CONFIG_SKIP_SECONDARY_AUTH


class Connection:
    """Credentials plus the HTTP client used to act on them"""

    def __init__(
        self,
        credentials: Config,
        http_client: httpx.AsyncClient,
        store: Optional[ConfigStore] = None,
        connection_config: ConnectionConfig = DEFAULT_CONFIG,
    ):
        self.credentials = credentials
        self.http_client = http_client
        self.store = store
        self.connection_config = connection_config
        self._metadata: Dict[str, ProviderMetadata] = {}

    @property
    def primary(self) -> TokenPair:
        return self.credentials.primary

    @property
    def secondary(self) -> TokenPair:
        return self.credentials.secondary

    def _auth_url(self, realm: str) -> str:
        if realm == "primary":
            return self.credentials.auth_url
        return self.credentials.secondary_auth_url

    def require(self, realm: str) -> None:
        """Fail fast if a realm has neither an access nor a refresh token

        Raises:
            UnauthenticatedError: If the realm's token pair is empty
        """
        if self.credentials.token_pair(realm).is_empty():
            raise UnauthenticatedError(f"not logged in to the {realm} realm, run 'rhoas login'")

    def api(self) -> APIClientSet:
        """Get the service clients bound to the current access tokens"""
        return APIClientSet(
            self.http_client,
            self.credentials.api_url,
            primary_token=lambda: self.credentials.primary.access_token,
            secondary_token=lambda: self.credentials.secondary.access_token,
        )

    async def _provider(self, auth_url: str) -> ProviderMetadata:
        metadata = self._metadata.get(auth_url)
        if metadata is None:
            metadata = await discover_provider(self.http_client, auth_url)
            self._metadata[auth_url] = metadata
        return metadata

    async def refresh_tokens(self) -> None:
        """
        Refresh every realm that has a refresh token.

        Realms are refreshed independently; a failure in one does not stop
        the other. Rotated refresh tokens replace the stored ones, and the
        result is saved when a config store is attached.

        Raises:
            RefreshError: The first realm failure, after all realms were attempted
        """
        errors: List[RefreshError] = []
        refreshed = False

        for realm in REALMS:
            pair = self.credentials.token_pair(realm)
            if not pair.refresh_token:
                logger.debug(f"No {realm} refresh token, skipping refresh")
                continue
            try:
                await self._refresh_realm(realm, pair)
                refreshed = True
            except RefreshError as e:
                logger.warning(f"Unable to refresh {realm} realm tokens: {e}")
                errors.append(e)

        if refreshed:
            self._persist()

        if errors:
            raise errors[0]

    async def _refresh_realm(self, realm: str, pair: TokenPair) -> None:
        auth_url = self._auth_url(realm)
        if not auth_url:
            raise RefreshError(f"no auth URL configured for the {realm} realm", realm=realm)

        try:
            metadata = await self._provider(auth_url)
        except ProviderDiscoveryError as e:
            raise RefreshError(str(e), realm=realm) from e

        try:
            tokens = await refresh_access_token(
                self.http_client,
                metadata.token_endpoint,
                self.credentials.client_id,
                pair.refresh_token,
                self.credentials.scopes,
            )
        except RefreshError as e:
            e.realm = realm
            raise

        if tokens.refresh_token != pair.refresh_token:
            logger.debug(f"Provider rotated the {realm} refresh token")
        pair.access_token = tokens.access_token
        pair.refresh_token = tokens.refresh_token
        logger.debug(f"Refreshed {realm} realm tokens")

    async def logout(self) -> None:
        """
        End the provider session of every realm and clear both token pairs.

        Raises:
            LogoutError: If any session could not be ended; token pairs are left unchanged
        """
        for realm in REALMS:
            pair = self.credentials.token_pair(realm)
            if not pair.refresh_token:
                continue

            auth_url = self._auth_url(realm)
            if not auth_url:
                raise LogoutError(f"no auth URL configured for the {realm} realm")

            try:
                metadata = await self._provider(auth_url)
            except ProviderDiscoveryError as e:
                raise LogoutError(f"unable to log out of the {realm} realm: {e}") from e

            if not metadata.end_session_endpoint:
                logger.debug(f"Provider of the {realm} realm has no end session endpoint")
                continue

            await end_session(
                self.http_client,
                metadata.end_session_endpoint,
                self.credentials.client_id,
                pair.refresh_token,
            )
            logger.debug(f"Ended {realm} realm session")

        self.credentials.primary.clear()
        self.credentials.secondary.clear()
        self._persist()

    def _persist(self) -> None:
        """Write the token pairs into the stored config, keeping its other fields"""
        if self.store is None:
            return
        stored = self.store.load()
        stored.primary = TokenPair(self.primary.access_token, self.primary.refresh_token)
        stored.secondary = TokenPair(self.secondary.access_token, self.secondary.refresh_token)
        self.store.save(stored)

    async def aclose(self) -> None:
        await self.http_client.aclose()

    async def __aenter__(self) -> "Connection":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
