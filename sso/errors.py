"""Errors raised by the SSO login and connection code"""

from typing import Any, Optional


class SSOError(Exception):
    """Base class for authentication errors"""


class MalformedTokenError(SSOError):
    """Token is not a decodable JWT"""


class ProviderDiscoveryError(SSOError):
    """Provider metadata or key set could not be fetched"""


class LoginError(SSOError):
    """A realm login attempt failed"""

    def __init__(self, message: str, realm: Optional[str] = None):
        super().__init__(message)
        self.realm = realm


class InvalidStateError(LoginError):
    """The redirect carried a state that does not match the issued CSRF state"""


class AuthorizationDeniedError(LoginError):
    """The provider redirected back with an error instead of a code"""


class ExchangeError(LoginError):
    """The authorization code could not be exchanged for tokens"""


class VerificationError(LoginError):
    """The ID token signature or claims are invalid"""


class LoginTimeoutError(LoginError):
    """No redirect arrived before the login timeout"""


class UnauthenticatedError(SSOError):
    """No usable tokens for the realm an operation requires"""


class RefreshError(SSOError):
    """A refresh token was rejected or could not be used"""

    def __init__(self, message: str, realm: Optional[str] = None):
        super().__init__(message)
        self.realm = realm


class TokenRefreshError(RefreshError):
    """Token refresh failed while building a connection

    The connection is still usable for operations that do not need the
    realm that failed to refresh.
    """

    def __init__(self, cause: RefreshError, connection: Any):
        super().__init__(f"unable to refresh tokens: {cause}", realm=cause.realm)
        self.cause = cause
        self.connection = connection


class LogoutError(SSOError):
    """The provider session could not be ended"""
