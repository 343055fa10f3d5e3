"""Data models for the persisted CLI config"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class TokenPair:
    """Access and refresh token for one realm

    Either both fields are empty (unauthenticated) or the access token is
    present. The refresh token may outlive the access token.

    Attributes:
        access_token: Bearer token for API authentication
        refresh_token: Offline or refresh token used to renew the access token
    """
    access_token: str = ""
    refresh_token: str = ""

    def is_empty(self) -> bool:
        return not self.access_token and not self.refresh_token

    def clear(self) -> None:
        self.access_token = ""
        self.refresh_token = ""


@dataclass
class KafkaConfig:
    """Currently selected Kafka instance"""
    cluster_id: str = ""


@dataclass
class ServiceRegistryConfig:
    """Currently selected Service Registry instance"""
    instance_id: str = ""
    name: str = ""


@dataclass
class ServicesConfig:
    """Optional per-service sections, each None until a service is selected"""
    kafka: Optional[KafkaConfig] = None
    service_registry: Optional[ServiceRegistryConfig] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.kafka is not None:
            data["kafka"] = {"clusterId": self.kafka.cluster_id}
        if self.service_registry is not None:
            data["serviceregistry"] = {
                "instanceId": self.service_registry.instance_id,
                "name": self.service_registry.name,
            }
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ServicesConfig":
        data = data or {}
        kafka = data.get("kafka")
        registry = data.get("serviceregistry")
        return cls(
            kafka=KafkaConfig(cluster_id=kafka.get("clusterId", "")) if kafka else None,
            service_registry=ServiceRegistryConfig(
                instance_id=registry.get("instanceId", ""),
                name=registry.get("name", ""),
            ) if registry else None,
        )


@dataclass
class Config:
    """Credentials and endpoints persisted between CLI invocations

    Attributes:
        primary: Token pair for the main identity provider
        secondary: Token pair for the secondary SSO realm
        auth_url: Issuer URL of the main identity provider
        secondary_auth_url: Issuer URL of the secondary SSO realm
        api_url: URL of the API gateway
        client_id: OpenID client identifier
        scopes: Requested OpenID scopes
        insecure: Disables TLS certificate and host name verification
        services: Selected service instances
    """
    primary: TokenPair = field(default_factory=TokenPair)
    secondary: TokenPair = field(default_factory=TokenPair)
    auth_url: str = ""
    secondary_auth_url: str = ""
    api_url: str = ""
    client_id: str = ""
    scopes: List[str] = field(default_factory=list)
    insecure: bool = False
    services: ServicesConfig = field(default_factory=ServicesConfig)

    def token_pair(self, realm: str) -> TokenPair:
        """Get the token pair slot for a realm ("primary" or "secondary")"""
        if realm == "primary":
            return self.primary
        if realm == "secondary":
            return self.secondary
        raise ValueError(f"Unknown realm: {realm}")

    def has_kafka(self) -> bool:
        return self.services.kafka is not None and self.services.kafka.cluster_id != ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the on-disk dictionary layout"""
        return {
            "access_token": self.primary.access_token,
            "refresh_token": self.primary.refresh_token,
            "secondary_auth_url": self.secondary_auth_url,
            "secondary_access_token": self.secondary.access_token,
            "secondary_refresh_token": self.secondary.refresh_token,
            "api_url": self.api_url,
            "auth_url": self.auth_url,
            "client_id": self.client_id,
            "insecure": self.insecure,
            "scopes": list(self.scopes),
            "services": self.services.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Load from the on-disk dictionary layout"""
        return cls(
            primary=TokenPair(
                access_token=data.get("access_token") or "",
                refresh_token=data.get("refresh_token") or "",
            ),
            secondary=TokenPair(
                access_token=data.get("secondary_access_token") or "",
                refresh_token=data.get("secondary_refresh_token") or "",
            ),
            auth_url=data.get("auth_url") or "",
            secondary_auth_url=data.get("secondary_auth_url") or "",
            api_url=data.get("api_url") or "",
            client_id=data.get("client_id") or "",
            scopes=list(data.get("scopes") or []),
            insecure=bool(data.get("insecure", False)),
            services=ServicesConfig.from_dict(data.get("services")),
        )
