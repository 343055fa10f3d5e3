"""
Authorization request parameters: PKCE pair, CSRF state and the
authorization URL sent to the browser
"""
import base64
import hashlib
import secrets
from typing import List, NamedTuple
from urllib.parse import urlencode

# 32 random bytes encode to a 43 character verifier, the RFC 7636 minimum
VERIFIER_BYTES = 32
STATE_BYTES = 32


class PKCEPair(NamedTuple):
    """PKCE code verifier and its S256 challenge"""
    verifier: str
    challenge: str


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def generate_pkce() -> PKCEPair:
    """Generate a fresh verifier and its S256 challenge for one realm attempt"""
    verifier = _b64url(secrets.token_bytes(VERIFIER_BYTES))
    challenge = _b64url(hashlib.sha256(verifier.encode("ascii")).digest())
    return PKCEPair(verifier=verifier, challenge=challenge)


def create_state() -> str:
    """Generate the CSRF state a redirect must echo back"""
    return _b64url(secrets.token_bytes(STATE_BYTES))


def build_authorization_url(
    authorization_endpoint: str,
    client_id: str,
    scopes: List[str],
    redirect_uri: str,
    state: str,
    code_challenge: str,
) -> str:
    """
    Build the provider authorization URL for one realm.

    Args:
        authorization_endpoint: Provider authorization endpoint
        client_id: OpenID client identifier
        scopes: Requested scopes
        redirect_uri: Local callback URL
        state: CSRF state
        code_challenge: PKCE S256 challenge

    Returns:
        Full authorization URL
    """
    params = {
        "response_type": "code",
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "scope": " ".join(scopes),
        "state": state,
        "code_challenge": code_challenge,
        "code_challenge_method": "S256",
    }

    separator = "&" if "?" in authorization_endpoint else "?"
    return f"{authorization_endpoint}{separator}{urlencode(params)}"
