"""Tests for Connection token refresh, logout and API clients."""

import httpx
import pytest

from config.models import Config
from connection import Connection
from sso.errors import LogoutError, RefreshError, UnauthenticatedError

from conftest import API_URL, CLIENT_ID, PRIMARY_ISSUER, SECONDARY_ISSUER, config_snapshot


@pytest.fixture
async def connection(provider, logged_in_config):
    client = httpx.AsyncClient(transport=provider.transport())
    async with Connection(logged_in_config, client) as conn:
        yield conn


async def test_refresh_both_realms(connection, provider):
    old_primary = connection.primary.access_token
    old_secondary = connection.secondary.access_token

    await connection.refresh_tokens()

    assert connection.primary.access_token != old_primary
    assert connection.secondary.access_token != old_secondary
    assert len(provider.primary.token_requests()) == 1
    assert len(provider.secondary.token_requests()) == 1
    [form] = provider.primary.token_requests()
    assert form["grant_type"] == "refresh_token"
    assert form["client_id"] == CLIENT_ID


async def test_refresh_without_rotation_is_repeatable(connection, provider):
    refresh_token = connection.primary.refresh_token

    await connection.refresh_tokens()
    await connection.refresh_tokens()

    assert connection.primary.refresh_token == refresh_token
    forms = provider.primary.token_requests()
    assert [f["refresh_token"] for f in forms] == [refresh_token, refresh_token]


async def test_refresh_uses_rotated_token(connection, provider):
    provider.primary.rotate_refresh_tokens = True
    original = connection.primary.refresh_token

    await connection.refresh_tokens()
    rotated = connection.primary.refresh_token
    await connection.refresh_tokens()

    assert rotated != original
    forms = provider.primary.token_requests()
    assert [f["refresh_token"] for f in forms] == [original, rotated]
    assert connection.primary.refresh_token not in (original, rotated)


async def test_refresh_failure_in_one_realm_does_not_stop_the_other(connection, provider):
    provider.primary.valid_refresh_tokens.clear()
    old_secondary = connection.secondary.access_token

    with pytest.raises(RefreshError, match="invalid_grant") as exc_info:
        await connection.refresh_tokens()

    assert exc_info.value.realm == "primary"
    assert connection.secondary.access_token != old_secondary


async def test_refresh_reports_first_error(connection, provider):
    provider.primary.valid_refresh_tokens.clear()
    provider.secondary.valid_refresh_tokens.clear()

    with pytest.raises(RefreshError) as exc_info:
        await connection.refresh_tokens()

    assert exc_info.value.realm == "primary"
    assert len(provider.secondary.token_requests()) == 1


async def test_refresh_skips_realms_without_refresh_token(provider):
    cfg = Config(auth_url=PRIMARY_ISSUER, client_id=CLIENT_ID)
    async with Connection(cfg, httpx.AsyncClient(transport=provider.transport())) as conn:
        await conn.refresh_tokens()

    assert provider.total_requests() == 0


async def test_refresh_caches_discovery(connection, provider):
    await connection.refresh_tokens()
    await connection.refresh_tokens()

    discovery = [r for r in provider.primary.requests if r.url.path.endswith("openid-configuration")]
    assert len(discovery) == 1


async def test_refresh_without_auth_url(provider):
    cfg = Config(client_id=CLIENT_ID)
    cfg.secondary.refresh_token = "token"
    async with Connection(cfg, httpx.AsyncClient(transport=provider.transport())) as conn:
        with pytest.raises(RefreshError, match="no auth URL") as exc_info:
            await conn.refresh_tokens()

    assert exc_info.value.realm == "secondary"


async def test_refresh_persists_tokens(provider, logged_in_config, config_store):
    stored = Config(api_url=API_URL)
    config_store.save(stored)
    client = httpx.AsyncClient(transport=provider.transport())

    async with Connection(logged_in_config, client, store=config_store) as conn:
        await conn.refresh_tokens()

    saved = config_store.load()
    assert saved.primary.access_token == logged_in_config.primary.access_token
    assert saved.secondary.refresh_token == logged_in_config.secondary.refresh_token
    assert saved.api_url == API_URL


async def test_logout_clears_tokens(connection, provider):
    primary_refresh = connection.primary.refresh_token
    secondary_refresh = connection.secondary.refresh_token

    await connection.logout()

    assert connection.primary.is_empty()
    assert connection.secondary.is_empty()
    assert provider.primary.logged_out == [primary_refresh]
    assert provider.secondary.logged_out == [secondary_refresh]


async def test_logout_transport_failure_leaves_tokens(connection, provider):
    provider.secondary.logout_transport_error = True
    before = config_snapshot(connection.credentials)

    with pytest.raises(LogoutError):
        await connection.logout()

    assert config_snapshot(connection.credentials) == before


async def test_logout_rejected_by_provider_leaves_tokens(connection, provider):
    provider.primary.logout_status = 400
    before = config_snapshot(connection.credentials)

    with pytest.raises(LogoutError, match="invalid_grant"):
        await connection.logout()

    assert config_snapshot(connection.credentials) == before


async def test_logout_without_end_session_endpoint(connection, provider):
    provider.primary.include_end_session = False
    provider.secondary.include_end_session = False

    await connection.logout()

    assert connection.primary.is_empty()
    assert connection.secondary.is_empty()


async def test_logout_persists(provider, logged_in_config, config_store):
    config_store.save(logged_in_config)
    client = httpx.AsyncClient(transport=provider.transport())

    async with Connection(logged_in_config, client, store=config_store) as conn:
        await conn.logout()

    saved = config_store.load()
    assert saved.primary.is_empty()
    assert saved.secondary.is_empty()
    assert saved.auth_url == PRIMARY_ISSUER
    assert saved.secondary_auth_url == SECONDARY_ISSUER


async def test_api_clients_use_current_tokens(connection, provider):
    api = connection.api()
    await connection.refresh_tokens()

    response = await api.kafka_mgmt.get("kafkas")

    assert response.status_code == 200
    [request] = provider.api_requests
    assert str(request.url) == f"{API_URL}/api/kafkas_mgmt/v1/kafkas"
    assert request.headers["Authorization"] == f"Bearer {connection.primary.access_token}"


async def test_api_clients_do_no_io(connection, provider):
    api = connection.api()
    api.kafka_mgmt
    api.service_accounts
    api.service_registry_mgmt
    admin = api.kafka_admin("my-kafka.example.com:443")

    assert admin.base_url == "https://admin-server-my-kafka.example.com/rest"
    assert admin.access_token == connection.secondary.access_token
    assert provider.total_requests() == 0


async def test_api_requires_tokens(provider):
    cfg = Config(auth_url=PRIMARY_ISSUER, api_url=API_URL, client_id=CLIENT_ID)
    async with Connection(cfg, httpx.AsyncClient(transport=provider.transport())) as conn:
        api = conn.api()
        with pytest.raises(UnauthenticatedError):
            api.kafka_mgmt
        with pytest.raises(UnauthenticatedError):
            api.kafka_admin("my-kafka.example.com")
        with pytest.raises(UnauthenticatedError):
            conn.require("primary")

    assert provider.total_requests() == 0
