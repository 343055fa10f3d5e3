"""SSO login, token handling and provider integration"""

from .authorization import PKCEPair, build_authorization_url, create_state, generate_pkce
from .callback_server import (
    CallbackServer,
    CallbackState,
    LoginResult,
    LoginSession,
    RedirectCallbackHandler,
)
from .errors import (
    AuthorizationDeniedError,
    ExchangeError,
    InvalidStateError,
    LoginError,
    LoginTimeoutError,
    LogoutError,
    MalformedTokenError,
    ProviderDiscoveryError,
    RefreshError,
    SSOError,
    TokenRefreshError,
    UnauthenticatedError,
    VerificationError,
)
from .login import AuthorizationCodeGrant, SSOConfig, login_with_offline_token
from .provider import IDTokenVerifier, ProviderMetadata, discover_provider
from .token import extract_claim, get_expiry, get_username, is_expired, parse_token
from .token_exchange import TokenResponse, end_session, exchange_code_for_tokens, refresh_access_token

__all__ = [
    "PKCEPair",
    "build_authorization_url",
    "create_state",
    "generate_pkce",
    "CallbackServer",
    "CallbackState",
    "LoginResult",
    "LoginSession",
    "RedirectCallbackHandler",
    "AuthorizationDeniedError",
    "ExchangeError",
    "InvalidStateError",
    "LoginError",
    "LoginTimeoutError",
    "LogoutError",
    "MalformedTokenError",
    "ProviderDiscoveryError",
    "RefreshError",
    "SSOError",
    "TokenRefreshError",
    "UnauthenticatedError",
    "VerificationError",
    "AuthorizationCodeGrant",
    "SSOConfig",
    "login_with_offline_token",
    "IDTokenVerifier",
    "ProviderMetadata",
    "discover_provider",
    "extract_claim",
    "get_expiry",
    "get_username",
    "is_expired",
    "parse_token",
    "TokenResponse",
    "end_session",
    "exchange_code_for_tokens",
    "refresh_access_token",
]
