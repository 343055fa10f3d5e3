"""Connection to the platform APIs and its builder"""

from .api import APIClientSet, ServiceClient
from .builder import ConnectionBuilder
from .connection import (
    DEFAULT_CONFIG,
    DEFAULT_CONFIG_REQUIRE_SECONDARY_AUTH,
    DEFAULT_CONFIG_SKIP_SECONDARY_AUTH,
    Connection,
    ConnectionConfig,
)

__all__ = [
    "APIClientSet",
    "ServiceClient",
    "ConnectionBuilder",
    "DEFAULT_CONFIG",
    "DEFAULT_CONFIG_REQUIRE_SECONDARY_AUTH",
    "DEFAULT_CONFIG_SKIP_SECONDARY_AUTH",
    "Connection",
    "ConnectionConfig",
]
