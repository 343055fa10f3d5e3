"""
JWT token parsing and username extraction

Tokens are decoded without signature verification. This is for display and
expiry checks only; ID tokens are verified against the provider's key set
during login.
"""
import base64
import json
import time
from typing import Any, Dict, Optional, Tuple

from .errors import MalformedTokenError

USERNAME_CLAIM = "preferred_username"


def parse_token(token: str) -> Dict[str, Any]:
    """
    Decode the claims of a JWT without verification.

    Args:
        token: Raw JWT

    Returns:
        Decoded claims

    Raises:
        MalformedTokenError: If the token is not header.payload.signature
            with a base64url encoded JSON object payload
    """
    if not token:
        raise MalformedTokenError("token is empty")

    parts = token.split(".")
    if len(parts) != 3:
        raise MalformedTokenError(f"expected 3 token segments, got {len(parts)}")

    # JWT uses base64url without padding
    payload = parts[1] + "=" * (-len(parts[1]) % 4)

    try:
        claims = json.loads(base64.urlsafe_b64decode(payload.encode()).decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as e:
        raise MalformedTokenError(f"unable to decode token claims: {e}") from e

    if not isinstance(claims, dict):
        raise MalformedTokenError("token claims are not a JSON object")

    return claims


def extract_claim(claims: Dict[str, Any], name: str) -> Tuple[Any, bool]:
    """
    Look up a claim.

    Returns:
        Tuple of (value, found)
    """
    if name in claims:
        return claims[name], True
    return None, False


def get_username(token: str) -> Tuple[Optional[str], bool]:
    """
    Extract the username from a raw token.

    A missing or malformed token only degrades output, so it is reported
    as not found instead of raising.

    Returns:
        Tuple of (username, found)
    """
    try:
        claims = parse_token(token)
    except MalformedTokenError:
        return None, False

    value, found = extract_claim(claims, USERNAME_CLAIM)
    if not found or value is None:
        return None, False
    return str(value), True


def get_expiry(token: str) -> Optional[float]:
    """Get the exp claim of a raw token as a UNIX timestamp, if present"""
    try:
        claims = parse_token(token)
    except MalformedTokenError:
        return None

    exp = claims.get("exp")
    if isinstance(exp, (int, float)):
        return float(exp)
    return None


def is_expired(token: str, leeway: float = 5.0) -> bool:
    """
    Check whether a raw token is expired.

    Tokens without an exp claim never expire; unparseable tokens are
    treated as expired.
    """
    if not token:
        return True
    try:
        parse_token(token)
    except MalformedTokenError:
        return True

    exp = get_expiry(token)
    if exp is None:
        return False
    return time.time() >= exp - leeway
