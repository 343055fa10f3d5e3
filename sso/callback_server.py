"""
Local OAuth redirect handling

One CallbackServer with one RedirectCallbackHandler exists per realm login
attempt. The handler drives a single redirect through state validation, code
exchange and ID token verification, and reports the outcome through the
session's completion future.
"""
import asyncio
import html
import logging
import secrets
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import httpx
from aiohttp import web

import settings
from config.models import Config
from .authorization import PKCEPair
from .errors import (
    AuthorizationDeniedError,
    ExchangeError,
    InvalidStateError,
    LoginError,
    LoginTimeoutError,
    VerificationError,
)
from .provider import IDTokenVerifier, ProviderMetadata
from .token import USERNAME_CLAIM, get_username
from .token_exchange import TokenResponse, exchange_code_for_tokens

logger = logging.getLogger(__name__)

REDIRECT_PAGE_TEMPLATE = """<!DOCTYPE html>
<html>
    <head>
        <meta charset="utf-8">
        <title>{title}</title>
    </head>
    <body style="font-family: sans-serif; text-align: center; padding: 50px;">
        <h1>{title}</h1>
        <p>{body}</p>
        <p>You can now close this window and return to the terminal.</p>
    </body>
</html>
"""


class CallbackState(Enum):
    WAITING_FOR_REDIRECT = "waiting_for_redirect"
    VALIDATING_STATE = "validating_state"
    EXCHANGING_CODE = "exchanging_code"
    VERIFYING_ID_TOKEN = "verifying_id_token"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class LoginResult:
    """Outcome of a successful realm login"""
    tokens: TokenResponse
    username: str


@dataclass
class LoginSession:
    """Transient state of one realm login attempt

    Attributes:
        realm: Token pair slot being authorized ("primary" or "secondary")
        auth_url: Realm issuer URL
        redirect_path: Local callback path for this realm
        state: CSRF state embedded in the authorization URL
        pkce: PKCE pair for the code exchange
        started_at: Monotonic start time of the attempt
        redirect_uri: Callback URL, known once the listener is bound
        completion: Resolved with a LoginResult or failed with a LoginError
        rejection: First redirect turned away for a bad state, reported if
            no valid redirect arrives before the timeout
    """
    realm: str
    auth_url: str
    redirect_path: str
    state: str
    pkce: PKCEPair
    started_at: float = field(default_factory=time.monotonic)
    redirect_uri: str = ""
    completion: asyncio.Future = field(default_factory=lambda: asyncio.get_running_loop().create_future())
    rejection: Optional[LoginError] = None

    def complete(self, result: LoginResult) -> None:
        if not self.completion.done():
            self.completion.set_result(result)

    def reject(self, error: LoginError) -> None:
        """Remember a turned-away redirect without ending the attempt"""
        if error.realm is None:
            error.realm = self.realm
        if self.rejection is None:
            self.rejection = error

    def fail(self, error: LoginError) -> None:
        if error.realm is None:
            error.realm = self.realm
        if not self.completion.done():
            self.completion.set_exception(error)

    def elapsed(self) -> float:
        return time.monotonic() - self.started_at


class RedirectCallbackHandler:
    """Handles the provider redirect for one realm login attempt"""

    def __init__(
        self,
        session: LoginSession,
        http_client: httpx.AsyncClient,
        metadata: ProviderMetadata,
        verifier: IDTokenVerifier,
        client_id: str,
        credentials: Config,
        write_lock: asyncio.Lock,
    ):
        self.session = session
        self.http_client = http_client
        self.metadata = metadata
        self.verifier = verifier
        self.client_id = client_id
        self.credentials = credentials
        self.write_lock = write_lock
        self.state = CallbackState.WAITING_FOR_REDIRECT
        self._lock = asyncio.Lock()

    async def handle(self, request: web.Request) -> web.StreamResponse:
        """Handle OAuth redirect request"""
        async with self._lock:
            if self.state is not CallbackState.WAITING_FOR_REDIRECT or self.session.completion.done():
                logger.debug(f"Ignoring redirect for {self.session.realm} realm in state {self.state.value}")
                return web.Response(text="login attempt already finished", status=400)

            logger.info(f"Redirected to callback URL: {request.url.with_query(None)}")

            try:
                return await self._process(request)
            except LoginError as e:
                return await self._fail(request, 500, str(e), e)
            except Exception as e:
                logger.exception("Unexpected error in redirect handler")
                return await self._fail(request, 500, f"Internal error: {e}", LoginError(f"internal error: {e}"))

    async def _process(self, request: web.Request) -> web.StreamResponse:
        self.state = CallbackState.VALIDATING_STATE
        state = request.query.get("state", "")
        if not secrets.compare_digest(state.encode(), self.session.state.encode()):
            # Stray or forged requests must not end the attempt
            self.state = CallbackState.WAITING_FOR_REDIRECT
            logger.warning(f"Rejected redirect for {self.session.realm} realm: state did not match")
            self.session.reject(InvalidStateError("state did not match"))
            return await self._send(request, web.Response(text="state did not match", status=400))

        error = request.query.get("error")
        if error:
            description = request.query.get("error_description", "")
            message = f"{error}: {description}" if description else error
            return await self._fail(
                request, 400, f"Authorization failed: {message}",
                AuthorizationDeniedError(f"authorization failed: {message}"),
            )

        code = request.query.get("code")
        if not code:
            return await self._fail(
                request, 400, "Missing code parameter",
                ExchangeError("no authorization code in redirect"),
            )

        self.state = CallbackState.EXCHANGING_CODE
        try:
            tokens = await exchange_code_for_tokens(
                self.http_client,
                self.metadata.token_endpoint,
                self.client_id,
                code,
                self.session.pkce.verifier,
                self.session.redirect_uri,
            )
        except ExchangeError as e:
            return await self._fail(request, 500, f"Failed to exchange token: {e}", e)

        self.state = CallbackState.VERIFYING_ID_TOKEN
        if not tokens.id_token:
            return await self._fail(
                request, 500, "No id_token field in oauth2 token.",
                VerificationError("no id_token field in token response"),
            )
        try:
            claims = await self.verifier.verify(tokens.id_token, tokens.access_token)
        except VerificationError as e:
            return await self._fail(request, 500, f"Failed to verify ID Token: {e}", e)

        username = claims.get(USERNAME_CLAIM)
        if not username:
            username, found = get_username(tokens.access_token)
            if not found:
                username = "unknown"

        if self.session.completion.done():
            # Timed out or cancelled while exchanging; the caller has moved on
            self.state = CallbackState.FAILED
            logger.warning(f"Discarding {self.session.realm} realm tokens, login attempt already finished")
            return await self._send(request, web.Response(text="login attempt already finished", status=400))

        async with self.write_lock:
            pair = self.credentials.token_pair(self.session.realm)
            pair.access_token = tokens.access_token
            pair.refresh_token = tokens.refresh_token

        self.state = CallbackState.COMPLETED
        logger.debug(f"Login to {self.session.realm} realm completed in {self.session.elapsed():.1f}s")

        response = web.Response(
            text=self._render_page(str(username)),
            content_type="text/html",
            charset="utf-8",
        )
        try:
            return await self._send(request, response)
        finally:
            # Verified tokens count even if the browser left before the page arrived
            self.session.complete(LoginResult(tokens=tokens, username=str(username)))

    def _render_page(self, username: str) -> str:
        host = httpx.URL(self.session.auth_url).host
        body = (
            f"You have successfully logged in to {html.escape(host)} "
            f"as <b>{html.escape(username)}</b>."
        )
        return REDIRECT_PAGE_TEMPLATE.format(title="Login successful", body=body)

    async def _fail(
        self, request: web.Request, status: int, text: str, error: LoginError
    ) -> web.StreamResponse:
        """Respond with a plain-text error and fail the attempt"""
        self.state = CallbackState.FAILED
        logger.error(f"Login to {self.session.realm} realm failed: {error}")

        try:
            return await self._send(request, web.Response(text=text, status=status))
        finally:
            self.session.fail(error)

    async def _send(self, request: web.Request, response: web.Response) -> web.Response:
        """Write the full response before the attempt is signalled

        A browser that disconnected early only loses the page.
        """
        try:
            await response.prepare(request)
            await response.write_eof()
        except ConnectionError as e:
            logger.warning(f"Could not send the {self.session.realm} realm redirect response: {e}")
        return response


class CallbackServer:
    """Local HTTP listener for one realm's redirect, on an ephemeral port"""

    def __init__(self, handler: RedirectCallbackHandler, path: str, host: Optional[str] = None):
        self.handler = handler
        self.path = path
        self.host = host or settings.CALLBACK_BIND_HOST
        self.port: Optional[int] = None
        self.app = web.Application()
        self.runner: Optional[web.AppRunner] = None

        self.app.router.add_get(path, handler.handle)

    @property
    def redirect_uri(self) -> str:
        if self.port is None:
            raise RuntimeError("callback server is not started")
        return f"http://localhost:{self.port}{self.path}"

    async def start(self) -> None:
        """Start the callback server"""
        self.runner = web.AppRunner(self.app, access_log=None)
        await self.runner.setup()

        site = web.TCPSite(self.runner, host=self.host, port=0)
        try:
            await site.start()
        except OSError:
            await self.stop()
            raise

        self.port = self.runner.addresses[0][1]
        logger.debug(f"OAuth callback server listening on {self.host}:{self.port}")

    async def wait(self, timeout: float) -> LoginResult:
        """
        Wait for the redirect to complete the login attempt.

        Args:
            timeout: Maximum time to wait in seconds

        Returns:
            LoginResult of the handled redirect

        Raises:
            InvalidStateError: If only redirects with a wrong state arrived in time
            LoginTimeoutError: If no redirect completed the attempt in time
            LoginError: If the redirect failed the attempt
        """
        session = self.handler.session
        try:
            return await asyncio.wait_for(session.completion, timeout=timeout)
        except asyncio.TimeoutError:
            if session.rejection is not None:
                raise session.rejection from None
            raise LoginTimeoutError(
                f"timed out after {timeout:.0f}s waiting for the login redirect", realm=session.realm
            ) from None

    async def stop(self) -> None:
        """Stop the callback server"""
        if self.runner is not None:
            runner, self.runner = self.runner, None
            await runner.cleanup()
            logger.debug(f"OAuth callback server on port {self.port} stopped")
