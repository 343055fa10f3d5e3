"""Configuration management package for the rhoas CLI"""

from .loader import ConfigLoader, get_config_loader
from .models import (
    Config,
    TokenPair,
    ServicesConfig,
    KafkaConfig,
    ServiceRegistryConfig,
)
from .store import ConfigError, ConfigStore

__all__ = [
    "ConfigLoader",
    "get_config_loader",
    "Config",
    "TokenPair",
    "ServicesConfig",
    "KafkaConfig",
    "ServiceRegistryConfig",
    "ConfigError",
    "ConfigStore",
]
