"""
OAuth token endpoint calls: code exchange, refresh and session logout
"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from .errors import ExchangeError, LogoutError, RefreshError

logger = logging.getLogger(__name__)

FORM_HEADERS = {"Content-Type": "application/x-www-form-urlencoded"}


class TokenResponse:
    """OAuth token response"""

    def __init__(
        self,
        access_token: str,
        refresh_token: str = "",
        id_token: Optional[str] = None,
        expires_in: Optional[int] = None,
        token_type: str = "Bearer",
    ):
        self.access_token = access_token
        self.refresh_token = refresh_token
        self.id_token = id_token
        self.expires_in = expires_in
        self.token_type = token_type

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenResponse":
        """Load from a token endpoint JSON body"""
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token") or "",
            id_token=data.get("id_token"),
            expires_in=data.get("expires_in"),
            token_type=data.get("token_type", "Bearer"),
        )


def _error_detail(response: httpx.Response) -> str:
    """Describe a failed token endpoint response"""
    try:
        body = response.json()
    except ValueError:
        return f"{response.status_code} - {response.text}"
    if isinstance(body, dict) and "error" in body:
        description = body.get("error_description")
        if description:
            return f"{response.status_code} - {body['error']}: {description}"
        return f"{response.status_code} - {body['error']}"
    return f"{response.status_code} - {response.text}"


async def exchange_code_for_tokens(
    http_client: httpx.AsyncClient,
    token_endpoint: str,
    client_id: str,
    code: str,
    code_verifier: str,
    redirect_uri: str,
) -> TokenResponse:
    """
    Exchange authorization code for access and refresh tokens.

    Args:
        http_client: Client using the configured transport
        token_endpoint: Realm token endpoint
        client_id: OpenID client identifier
        code: Authorization code from callback
        code_verifier: PKCE code verifier
        redirect_uri: Redirect URI used in the authorization request

    Returns:
        TokenResponse

    Raises:
        ExchangeError: If the provider rejects the code or is unreachable
    """
    try:
        response = await http_client.post(
            token_endpoint,
            data={
                "grant_type": "authorization_code",
                "client_id": client_id,
                "code": code,
                "code_verifier": code_verifier,
                "redirect_uri": redirect_uri,
            },
            headers=FORM_HEADERS,
        )
    except httpx.HTTPError as e:
        raise ExchangeError(f"token exchange request failed: {e}") from e

    if response.status_code != 200:
        raise ExchangeError(f"token exchange failed: {_error_detail(response)}")

    try:
        return TokenResponse.from_dict(response.json())
    except (ValueError, KeyError, TypeError) as e:
        raise ExchangeError(f"invalid token exchange response: {e}") from e


async def refresh_access_token(
    http_client: httpx.AsyncClient,
    token_endpoint: str,
    client_id: str,
    refresh_token: str,
    scopes: Optional[List[str]] = None,
) -> TokenResponse:
    """
    Refresh access token using refresh token.

    When the provider does not rotate the refresh token, the one passed in
    is kept on the returned response.

    Raises:
        RefreshError: If the refresh token is rejected or the provider is unreachable
    """
    data = {
        "grant_type": "refresh_token",
        "client_id": client_id,
        "refresh_token": refresh_token,
    }
    if scopes:
        data["scope"] = " ".join(scopes)

    try:
        response = await http_client.post(token_endpoint, data=data, headers=FORM_HEADERS)
    except httpx.HTTPError as e:
        raise RefreshError(f"token refresh request failed: {e}") from e

    if response.status_code != 200:
        raise RefreshError(f"token refresh failed: {_error_detail(response)}")

    try:
        tokens = TokenResponse.from_dict(response.json())
    except (ValueError, KeyError, TypeError) as e:
        raise RefreshError(f"invalid token refresh response: {e}") from e

    if not tokens.refresh_token:
        tokens.refresh_token = refresh_token
    return tokens


async def end_session(
    http_client: httpx.AsyncClient,
    end_session_endpoint: str,
    client_id: str,
    refresh_token: str,
) -> None:
    """
    End the provider session bound to a refresh token.

    Raises:
        LogoutError: If the provider cannot be reached or refuses the logout
    """
    try:
        response = await http_client.post(
            end_session_endpoint,
            data={
                "client_id": client_id,
                "refresh_token": refresh_token,
            },
            headers=FORM_HEADERS,
        )
    except httpx.HTTPError as e:
        raise LogoutError(f"logout request failed: {e}") from e

    if response.status_code not in (200, 204):
        raise LogoutError(f"logout failed: {_error_detail(response)}")
