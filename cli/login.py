"""Login command"""

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import httpx

import settings
from connection import DEFAULT_CONFIG_SKIP_SECONDARY_AUTH
from sso import AuthorizationCodeGrant, SSOConfig, TokenRefreshError, get_username, login_with_offline_token
from .factory import Factory

logger = logging.getLogger(__name__)

PRODUCTION_ALIASES = ("production", "prod", "prd")
STAGING_ALIASES = ("staging", "stage", "stg")


def _alias_map(production_url: str, staging_url: str) -> Dict[str, str]:
    aliases = {alias: production_url for alias in PRODUCTION_ALIASES}
    aliases.update({alias: staging_url for alias in STAGING_ALIASES})
    return aliases


API_GATEWAY_ALIASES = _alias_map(settings.PRODUCTION_API_URL, settings.STAGING_API_URL)
# Staging API gateways trust the production identity provider
AUTH_URL_ALIASES = _alias_map(settings.PRODUCTION_AUTH_URL, settings.PRODUCTION_AUTH_URL)
SECONDARY_AUTH_URL_ALIASES = _alias_map(
    settings.PRODUCTION_SECONDARY_AUTH_URL, settings.STAGING_SECONDARY_AUTH_URL
)


@dataclass
class LoginOptions:
    """Flags of the login command"""
    api_gateway: str = "production"
    auth_url: str = "production"
    secondary_auth_url: str = "production"
    client_id: str = settings.DEFAULT_CLIENT_ID
    scopes: List[str] = field(default_factory=lambda: list(settings.DEFAULT_SCOPES))
    insecure: bool = False
    print_sso_url: bool = False
    offline_token: Optional[str] = None


def get_url_from_alias(url_or_alias: str, aliases: Dict[str, str]) -> str:
    """
    Resolve an environment alias to its URL, or validate a literal URL.

    Raises:
        ValueError: If the value is neither an alias nor an http(s) URL
    """
    url = aliases.get(url_or_alias.lower())
    if url is not None:
        return url

    try:
        parsed = httpx.URL(url_or_alias)
    except httpx.InvalidURL as e:
        raise ValueError(f"invalid URL {url_or_alias!r}: {e}") from e

    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise ValueError(f"invalid URL {url_or_alias!r}: scheme must be http or https")

    return url_or_alias


def is_ssh_session() -> bool:
    return any(os.getenv(var) for var in ("SSH_CLIENT", "SSH_TTY", "SSH_CONNECTION"))


async def run_login(factory: Factory, opts: LoginOptions) -> None:
    """
    Log in and save the resulting credentials.

    The config file is only written once every realm logged in and the
    new tokens were refreshed successfully.
    """
    console = factory.console

    api_url = get_url_from_alias(opts.api_gateway, API_GATEWAY_ALIASES)
    auth_url = get_url_from_alias(opts.auth_url, AUTH_URL_ALIASES)
    secondary_auth_url = get_url_from_alias(opts.secondary_auth_url, SECONDARY_AUTH_URL_ALIASES)

    if opts.insecure:
        console.print("[yellow]WARNING:[/yellow] TLS certificate verification is disabled")

    cfg = factory.store.load()

    if opts.offline_token:
        login_with_offline_token(
            cfg,
            opts.offline_token,
            auth_url=auth_url,
            secondary_auth_url=secondary_auth_url,
            client_id=opts.client_id,
            scopes=opts.scopes,
            insecure=opts.insecure,
        )
    else:
        if is_ssh_session() and not opts.print_sso_url:
            console.print(
                "[dim]It looks like you are in an SSH session. If no browser opens, "
                "run the command again with --print-sso-url.[/dim]"
            )

        async with factory.http_client(opts.insecure) as http_client:
            grant = AuthorizationCodeGrant(
                http_client,
                cfg,
                console,
                client_id=opts.client_id,
                scopes=opts.scopes,
                print_url=opts.print_sso_url,
                open_url=factory.open_url,
                insecure=opts.insecure,
            )
            await grant.execute(
                SSOConfig(auth_url, settings.SSO_CALLBACK_PATH),
                SSOConfig(secondary_auth_url, settings.SECONDARY_SSO_CALLBACK_PATH),
            )

    cfg.api_url = api_url

    builder = factory.builder(cfg).with_connection_config(DEFAULT_CONFIG_SKIP_SECONDARY_AUTH)
    try:
        connection = await builder.build()
    except TokenRefreshError as e:
        await e.connection.aclose()
        raise

    async with connection:
        cfg.primary = connection.primary
        cfg.secondary = connection.secondary

    factory.store.save(cfg)
    logger.debug(f"Saved credentials to {factory.store.location()}")

    username, found = get_username(cfg.primary.access_token)
    if found:
        console.print(f"[green]✓[/green] You are now logged in as [bold]{username}[/bold]")
    else:
        console.print("[green]✓[/green] You are now logged in")
