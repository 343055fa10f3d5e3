"""
Interactive Authorization Code login

Runs the browser-based login for the primary realm and, optionally, the
secondary realm. Realms are authorized one after the other; each gets its own
CSRF state, PKCE pair and short-lived local callback server.
"""
import asyncio
import logging
import webbrowser
from dataclasses import dataclass
from typing import Callable, List, Optional

import httpx
from rich.console import Console

import settings
from config.models import Config
from .authorization import build_authorization_url, create_state, generate_pkce
from .callback_server import CallbackServer, LoginResult, LoginSession, RedirectCallbackHandler
from .provider import IDTokenVerifier, discover_provider

logger = logging.getLogger(__name__)


@dataclass
class SSOConfig:
    """Login target for one realm

    Attributes:
        auth_url: Realm issuer URL
        redirect_path: Local callback path the provider redirects to
    """
    auth_url: str
    redirect_path: str = settings.SSO_CALLBACK_PATH


class AuthorizationCodeGrant:
    """Authorization Code Grant with PKCE against one or two realms"""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        credentials: Config,
        console: Console,
        client_id: str = settings.DEFAULT_CLIENT_ID,
        scopes: Optional[List[str]] = None,
        print_url: bool = False,
        open_url: Callable[[str], bool] = webbrowser.open,
        login_timeout: Optional[float] = None,
        insecure: bool = False,
    ):
        """
        Args:
            http_client: Client for discovery, token and JWKS requests
            credentials: Config receiving the tokens of each authorized realm
            console: Console for user-facing instructions
            client_id: OpenID client identifier
            scopes: Requested scopes
            print_url: Print the authorization URL instead of opening a browser
            open_url: Browser opener, returns False when no browser is available
            login_timeout: Seconds to wait for each realm's redirect
            insecure: Whether TLS verification is disabled on http_client
        """
        self.http_client = http_client
        self.credentials = credentials
        self.console = console
        self.client_id = client_id
        self.scopes = list(scopes) if scopes else list(settings.DEFAULT_SCOPES)
        self.print_url = print_url
        self.open_url = open_url
        self.login_timeout = login_timeout if login_timeout is not None else settings.LOGIN_TIMEOUT
        self.insecure = insecure
        self._write_lock = asyncio.Lock()

    async def execute(self, primary: SSOConfig, secondary: Optional[SSOConfig] = None) -> None:
        """
        Log in to the primary realm, then to the secondary realm if given.

        On success the token pairs of every attempted realm are populated and
        the endpoint, client and scope fields of the credentials are updated.
        The caller is responsible for saving them.

        Raises:
            LoginError: If a realm attempt fails; a primary failure skips the secondary realm
            ProviderDiscoveryError: If a realm's OpenID configuration cannot be loaded
        """
        await self._login_realm("primary", primary)
        self.credentials.auth_url = primary.auth_url

        if secondary is not None:
            await self._login_realm("secondary", secondary)
            self.credentials.secondary_auth_url = secondary.auth_url

        self.credentials.client_id = self.client_id
        self.credentials.scopes = list(self.scopes)
        self.credentials.insecure = self.insecure

    async def _login_realm(self, realm: str, sso_config: SSOConfig) -> LoginResult:
        logger.info(f"Starting {realm} realm login against {sso_config.auth_url}")

        metadata = await discover_provider(self.http_client, sso_config.auth_url)
        verifier = IDTokenVerifier(self.http_client, metadata, self.client_id)

        session = LoginSession(
            realm=realm,
            auth_url=sso_config.auth_url,
            redirect_path=sso_config.redirect_path,
            state=create_state(),
            pkce=generate_pkce(),
        )
        handler = RedirectCallbackHandler(
            session=session,
            http_client=self.http_client,
            metadata=metadata,
            verifier=verifier,
            client_id=self.client_id,
            credentials=self.credentials,
            write_lock=self._write_lock,
        )
        server = CallbackServer(handler, sso_config.redirect_path)

        try:
            await server.start()
            session.redirect_uri = server.redirect_uri

            auth_url = build_authorization_url(
                metadata.authorization_endpoint,
                self.client_id,
                self.scopes,
                session.redirect_uri,
                session.state,
                session.pkce.challenge,
            )
            self._present_url(auth_url)

            result = await server.wait(self.login_timeout)
        finally:
            await server.stop()

        host = httpx.URL(sso_config.auth_url).host
        self.console.print(f"[green]✓[/green] Logged in to {host} as [bold]{result.username}[/bold]")
        return result

    def _present_url(self, auth_url: str):
        """Open the authorization URL in a browser, or print it"""
        if self.print_url:
            self.console.print("Open the following URL in your browser to log in:\n")
            self.console.print(auth_url, markup=False, highlight=False, soft_wrap=True)
            self.console.print()
            return

        try:
            opened = self.open_url(auth_url)
        except webbrowser.Error as e:
            logger.warning(f"Could not open browser: {e}")
            opened = False

        if opened:
            self.console.print("Opening browser for login...")
            logger.debug(f"Opened authorization URL: {auth_url}")
        else:
            self.console.print("[yellow]Could not open browser automatically[/yellow]")
            self.console.print("Please open this URL manually:\n")
            self.console.print(auth_url, markup=False, highlight=False, soft_wrap=True)
            self.console.print()


def login_with_offline_token(
    credentials: Config,
    token: str,
    auth_url: str,
    secondary_auth_url: str = "",
    client_id: str = settings.DEFAULT_CLIENT_ID,
    scopes: Optional[List[str]] = None,
    insecure: bool = False,
) -> None:
    """
    Seed the credentials with an offline token instead of logging in.

    The token becomes the primary refresh token; the primary access token and
    the secondary pair are cleared. No request is made here; tokens are
    obtained on the next refresh.

    Offline tokens are issued to a different client than the interactive
    flow, so the default client id is swapped for the offline token client.
    """
    if client_id == settings.DEFAULT_CLIENT_ID:
        client_id = settings.DEFAULT_OFFLINE_TOKEN_CLIENT_ID

    credentials.primary.access_token = ""
    credentials.primary.refresh_token = token
    credentials.secondary.clear()

    credentials.auth_url = auth_url
    credentials.secondary_auth_url = secondary_auth_url
    credentials.client_id = client_id
    credentials.scopes = list(scopes) if scopes else list(settings.DEFAULT_SCOPES)
    credentials.insecure = insecure
    logger.debug(f"Seeded offline token for client {client_id}")
