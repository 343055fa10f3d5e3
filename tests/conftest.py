"""Test fixtures for the rhoas CLI.

FakeIdentityProvider serves discovery, JWKS, token and logout endpoints for
one or more realms through httpx.MockTransport and signs real RS256 tokens.
FakeBrowser plays the user: it reads the authorization URL the login flow
opens and follows the redirect to the local callback server over loopback.
"""

import asyncio
import base64
import hashlib
import itertools
import json
import time
from typing import Dict, List, Optional, Set
from urllib.parse import parse_qs, urlencode, urlparse

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwk, jwt

from config.models import Config
from config.store import ConfigStore

PRIMARY_ISSUER = "https://sso.example.com/auth/realms/redhat-external"
SECONDARY_ISSUER = "https://identity.example.com/auth/realms/rhoas"
API_URL = "https://api.example.com"
CLIENT_ID = "rhoas-cli-prod"


def _generate_key():
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return private_pem, public_pem


# Key generation is slow, share one key pair across the session
PRIVATE_PEM, PUBLIC_PEM = _generate_key()


class FakeRealm:
    """One OpenID realm of the fake identity provider"""

    def __init__(self, issuer: str, username: str = "test-user", kid: str = "test-key"):
        self.issuer = issuer
        self.username = username
        self.kid = kid
        self.rotate_refresh_tokens = False
        self.logout_transport_error = False
        self.logout_status: Optional[int] = None
        self.id_token_audience: Optional[str] = None
        self.omit_id_token = False
        self.include_end_session = True
        self.requests: List[httpx.Request] = []
        self.codes: Dict[str, dict] = {}
        self.valid_refresh_tokens: Set[str] = set()
        self.logged_out: List[str] = []
        self._counter = itertools.count(1)

    @property
    def token_endpoint(self) -> str:
        return f"{self.issuer}/protocol/openid-connect/token"

    @property
    def authorization_endpoint(self) -> str:
        return f"{self.issuer}/protocol/openid-connect/auth"

    @property
    def jwks_uri(self) -> str:
        return f"{self.issuer}/protocol/openid-connect/certs"

    @property
    def end_session_endpoint(self) -> str:
        return f"{self.issuer}/protocol/openid-connect/logout"

    def discovery_document(self) -> dict:
        document = {
            "issuer": self.issuer,
            "authorization_endpoint": self.authorization_endpoint,
            "token_endpoint": self.token_endpoint,
            "jwks_uri": self.jwks_uri,
        }
        if self.include_end_session:
            document["end_session_endpoint"] = self.end_session_endpoint
        return document

    def jwks(self) -> dict:
        key = jwk.construct(PUBLIC_PEM, "RS256").to_dict()
        key["kid"] = self.kid
        key["use"] = "sig"
        return {"keys": [key]}

    def issue_refresh_token(self) -> str:
        token = f"refresh-{self.issuer.rsplit('/', 1)[-1]}-{next(self._counter)}"
        self.valid_refresh_tokens.add(token)
        return token

    def authorize(self, params: Dict[str, str]) -> str:
        """Issue a code for an authorization request"""
        code = f"code-{next(self._counter)}"
        self.codes[code] = {
            "client_id": params["client_id"],
            "redirect_uri": params["redirect_uri"],
            "code_challenge": params["code_challenge"],
        }
        return code

    def access_token(self, client_id: str) -> str:
        now = int(time.time())
        claims = {
            "iss": self.issuer,
            "sub": "user-id",
            "azp": client_id,
            "preferred_username": self.username,
            "iat": now,
            "exp": now + 300,
            "jti": f"at-{next(self._counter)}",
        }
        return jwt.encode(claims, PRIVATE_PEM, algorithm="RS256", headers={"kid": self.kid})

    def id_token(self, client_id: str, access_token: str) -> str:
        now = int(time.time())
        claims = {
            "iss": self.issuer,
            "sub": "user-id",
            "aud": self.id_token_audience or client_id,
            "preferred_username": self.username,
            "iat": now,
            "exp": now + 300,
        }
        return jwt.encode(
            claims, PRIVATE_PEM, algorithm="RS256", headers={"kid": self.kid}, access_token=access_token
        )

    def token_response(self, client_id: str, refresh_token: str, with_id_token: bool) -> dict:
        access_token = self.access_token(client_id)
        body = {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_type": "Bearer",
            "expires_in": 300,
        }
        if with_id_token and not self.omit_id_token:
            body["id_token"] = self.id_token(client_id, access_token)
        return body

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url.copy_with(query=None))

        if request.method == "GET" and url == f"{self.issuer}/.well-known/openid-configuration":
            return httpx.Response(200, json=self.discovery_document())
        if request.method == "GET" and url == self.jwks_uri:
            return httpx.Response(200, json=self.jwks())
        if request.method == "POST" and url == self.token_endpoint:
            return self._handle_token(_form(request))
        if request.method == "POST" and url == self.end_session_endpoint:
            if self.logout_transport_error:
                raise httpx.ConnectError("connection refused", request=request)
            if self.logout_status is not None:
                return httpx.Response(self.logout_status, json={"error": "invalid_grant"})
            form = _form(request)
            self.logged_out.append(form["refresh_token"])
            self.valid_refresh_tokens.discard(form["refresh_token"])
            return httpx.Response(204)

        return httpx.Response(404, json={"error": "not_found"})

    def _handle_token(self, form: Dict[str, str]) -> httpx.Response:
        grant_type = form.get("grant_type")

        if grant_type == "authorization_code":
            issued = self.codes.pop(form.get("code", ""), None)
            if issued is None:
                return _invalid_grant("Code not valid")
            if form.get("redirect_uri") != issued["redirect_uri"]:
                return _invalid_grant("Incorrect redirect_uri")
            challenge = base64.urlsafe_b64encode(
                hashlib.sha256(form.get("code_verifier", "").encode()).digest()
            ).decode().rstrip("=")
            if challenge != issued["code_challenge"]:
                return _invalid_grant("PKCE verification failed")
            body = self.token_response(form["client_id"], self.issue_refresh_token(), with_id_token=True)
            return httpx.Response(200, json=body)

        if grant_type == "refresh_token":
            refresh_token = form.get("refresh_token", "")
            if refresh_token not in self.valid_refresh_tokens:
                return _invalid_grant("Invalid refresh token")
            if self.rotate_refresh_tokens:
                self.valid_refresh_tokens.discard(refresh_token)
                refresh_token = self.issue_refresh_token()
            body = self.token_response(form["client_id"], refresh_token, with_id_token=False)
            return httpx.Response(200, json=body)

        return httpx.Response(400, json={"error": "unsupported_grant_type"})

    def token_requests(self) -> List[Dict[str, str]]:
        return [
            _form(r) for r in self.requests
            if r.method == "POST" and str(r.url) == self.token_endpoint
        ]


class FakeIdentityProvider:
    """Routes mocked HTTP requests to the realm owning the URL"""

    def __init__(self):
        self.realms = {
            "primary": FakeRealm(PRIMARY_ISSUER),
            "secondary": FakeRealm(SECONDARY_ISSUER, kid="secondary-key"),
        }
        self.api_requests: List[httpx.Request] = []

    @property
    def primary(self) -> FakeRealm:
        return self.realms["primary"]

    @property
    def secondary(self) -> FakeRealm:
        return self.realms["secondary"]

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        for realm in self.realms.values():
            if url.startswith(realm.issuer + "/"):
                return realm.handle(request)
        if url.startswith(API_URL):
            self.api_requests.append(request)
            return httpx.Response(200, json={"items": []})
        return httpx.Response(404)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def total_requests(self) -> int:
        return sum(len(realm.requests) for realm in self.realms.values()) + len(self.api_requests)


def _form(request: httpx.Request) -> Dict[str, str]:
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


def _invalid_grant(description: str) -> httpx.Response:
    return httpx.Response(400, json={"error": "invalid_grant", "error_description": description})


class FakeBrowser:
    """Follows authorization URLs to the local callback server

    Realms are told apart by their callback path. Paths listed in ignore
    are never visited, as if the user closed the browser tab.
    """

    def __init__(self, provider: FakeIdentityProvider):
        self.provider = provider
        self.opened: List[str] = []
        self.responses: List[httpx.Response] = []
        self.ignore: Set[str] = set()
        self.state_override: Optional[str] = None
        self.extra_params: Dict[str, str] = {}
        self.tasks: List[asyncio.Task] = []

    def open(self, url: str) -> bool:
        self.opened.append(url)
        task = asyncio.get_running_loop().create_task(self.visit(url))
        self.tasks.append(task)
        return True

    async def settle(self):
        """Wait until every visited redirect got its response"""
        await asyncio.gather(*self.tasks)

    def _realm_for(self, url: str) -> FakeRealm:
        for realm in self.provider.realms.values():
            if url.startswith(realm.authorization_endpoint):
                return realm
        raise AssertionError(f"unexpected authorization URL {url}")

    async def visit(self, url: str) -> Optional[httpx.Response]:
        params = {k: v[0] for k, v in parse_qs(urlparse(url).query).items()}
        redirect_uri = params["redirect_uri"]
        if urlparse(redirect_uri).path in self.ignore:
            return None

        code = self._realm_for(url).authorize(params)
        query = {"code": code, "state": self.state_override or params["state"]}
        query.update(self.extra_params)
        callback_url = redirect_uri.replace("localhost", "127.0.0.1") + "?" + urlencode(query)

        async with httpx.AsyncClient(trust_env=False) as client:
            response = await client.get(callback_url)
        self.responses.append(response)
        return response


@pytest.fixture
def provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
async def browser(provider):
    browser = FakeBrowser(provider)
    yield browser
    await browser.settle()


@pytest.fixture
async def http_client(provider):
    async with httpx.AsyncClient(transport=provider.transport()) as client:
        yield client


@pytest.fixture
def config_store(tmp_path) -> ConfigStore:
    return ConfigStore(str(tmp_path / "rhoas" / "config.json"))


@pytest.fixture
def logged_in_config(provider) -> Config:
    """Config holding valid refresh tokens for both realms"""
    cfg = Config(
        auth_url=PRIMARY_ISSUER,
        secondary_auth_url=SECONDARY_ISSUER,
        api_url=API_URL,
        client_id=CLIENT_ID,
        scopes=["openid"],
    )
    cfg.primary.access_token = provider.primary.access_token(CLIENT_ID)
    cfg.primary.refresh_token = provider.primary.issue_refresh_token()
    cfg.secondary.access_token = provider.secondary.access_token(CLIENT_ID)
    cfg.secondary.refresh_token = provider.secondary.issue_refresh_token()
    return cfg


def config_snapshot(cfg: Config) -> str:
    return json.dumps(cfg.to_dict(), sort_keys=True)
