"""OpenID provider discovery and ID token verification"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx
from jose import JWTError, jwt
from jose.exceptions import ExpiredSignatureError, JWTClaimsError

from .errors import ProviderDiscoveryError, VerificationError

logger = logging.getLogger(__name__)

DISCOVERY_PATH = "/.well-known/openid-configuration"
DEFAULT_ID_TOKEN_ALGORITHMS = ["RS256"]


@dataclass
class ProviderMetadata:
    """Endpoints published by an OpenID provider

    Attributes:
        issuer: Issuer identifier, equal to the realm auth URL
        authorization_endpoint: Browser-facing authorization endpoint
        token_endpoint: Token endpoint for code exchange and refresh
        jwks_uri: URL of the provider's published key set
        end_session_endpoint: Logout endpoint, if the provider supports it
    """
    issuer: str
    authorization_endpoint: str
    token_endpoint: str
    jwks_uri: str
    end_session_endpoint: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProviderMetadata":
        return cls(
            issuer=data["issuer"],
            authorization_endpoint=data["authorization_endpoint"],
            token_endpoint=data["token_endpoint"],
            jwks_uri=data["jwks_uri"],
            end_session_endpoint=data.get("end_session_endpoint"),
        )


async def discover_provider(http_client: httpx.AsyncClient, auth_url: str) -> ProviderMetadata:
    """Fetch the OpenID configuration of the realm at auth_url

    Args:
        http_client: Client using the configured transport
        auth_url: Realm issuer URL

    Returns:
        Provider metadata

    Raises:
        ProviderDiscoveryError: If the document cannot be fetched, is
            incomplete, or was issued for a different issuer
    """
    discovery_url = auth_url.rstrip("/") + DISCOVERY_PATH
    logger.debug(f"Fetching OpenID configuration from {discovery_url}")

    try:
        response = await http_client.get(discovery_url)
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPStatusError as e:
        raise ProviderDiscoveryError(
            f"unable to fetch OpenID configuration from {discovery_url}: HTTP {e.response.status_code}"
        ) from e
    except httpx.HTTPError as e:
        raise ProviderDiscoveryError(f"unable to fetch OpenID configuration from {discovery_url}: {e}") from e
    except ValueError as e:
        raise ProviderDiscoveryError(f"invalid OpenID configuration from {discovery_url}: {e}") from e

    try:
        metadata = ProviderMetadata.from_dict(data)
    except (KeyError, TypeError) as e:
        raise ProviderDiscoveryError(f"OpenID configuration from {discovery_url} is missing {e}") from e

    if metadata.issuer.rstrip("/") != auth_url.rstrip("/"):
        raise ProviderDiscoveryError(
            f"issuer did not match the issuer returned by provider, expected {auth_url!r} got {metadata.issuer!r}"
        )

    return metadata


class IDTokenVerifier:
    """Verifies ID tokens against the provider's published key set"""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        metadata: ProviderMetadata,
        client_id: str,
        algorithms: Optional[List[str]] = None,
    ):
        self.http_client = http_client
        self.metadata = metadata
        self.client_id = client_id
        self.algorithms = algorithms or DEFAULT_ID_TOKEN_ALGORITHMS
        self._jwks: Optional[Dict[str, Any]] = None

    async def _fetch_jwks(self) -> Dict[str, Any]:
        response = await self.http_client.get(self.metadata.jwks_uri)
        response.raise_for_status()
        return response.json()

    async def _get_jwks(self, force_refresh: bool = False) -> Dict[str, Any]:
        if self._jwks is None or force_refresh:
            logger.debug(f"Fetching JWKS from {self.metadata.jwks_uri}")
            self._jwks = await self._fetch_jwks()
        return self._jwks

    async def _find_key(self, kid: Optional[str]) -> Dict[str, Any]:
        jwks = await self._get_jwks()
        keys = jwks.get("keys", [])
        if kid is None and len(keys) == 1:
            return keys[0]

        for k in keys:
            if k.get("kid") == kid:
                return k

        # Keys may have been rotated since the last fetch
        jwks = await self._get_jwks(force_refresh=True)
        for k in jwks.get("keys", []):
            if k.get("kid") == kid:
                return k

        raise VerificationError(f"unable to find key with ID: {kid}")

    async def verify(self, id_token: str, access_token: Optional[str] = None) -> Dict[str, Any]:
        """Verify an ID token and return its claims

        Checks the signature, issuer, audience and expiry, and the at_hash
        claim when an access token is given.

        Raises:
            VerificationError: If the token cannot be verified
        """
        try:
            header = jwt.get_unverified_header(id_token)
            key = await self._find_key(header.get("kid"))
            return jwt.decode(
                id_token,
                key,
                algorithms=self.algorithms,
                audience=self.client_id,
                issuer=self.metadata.issuer,
                access_token=access_token,
            )
        except ExpiredSignatureError as e:
            raise VerificationError("ID token has expired") from e
        except JWTClaimsError as e:
            raise VerificationError(f"invalid ID token claims: {e}") from e
        except JWTError as e:
            raise VerificationError(f"invalid ID token: {e}") from e
        except httpx.HTTPError as e:
            logger.error(f"Failed to fetch JWKS: {e}")
            raise VerificationError("unable to verify ID token (JWKS fetch failed)") from e
        except ValueError as e:
            raise VerificationError(f"invalid JWKS response: {e}") from e
