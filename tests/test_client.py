#!/usr/bin/env python3
"""Tests for the JSON-RPC clients.

Tests cover:
    - Request body and endpoint for MyGeotab and MyAdmin calls
    - Re-authentication on session expiry
    - Retry behavior for rate limits, server errors and record errors
    - Circuit breaker integration
"""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.fleet_onboard.api.admin_client import MyAdminClient
from src.fleet_onboard.api.auth import MyAdminCredentials, MyGeotabCredentials
from src.fleet_onboard.api.client import MyGeotabClient
from src.fleet_onboard.api.exceptions import (
    CircuitOpenError,
    RateLimitError,
    ServerError,
    SessionExpiredError,
    TimeoutError,
    ValidationError,
)


@pytest.fixture
def credentials():
    return MyGeotabCredentials(
        database="acme",
        user_name="ops@acme.com",
        session_id="s1",
        server="my5.geotab.com",
    )


@pytest.fixture
def session_manager(credentials):
    manager = MagicMock()
    manager.database = "acme"
    manager.get_credentials = AsyncMock(return_value=credentials)
    manager.refresh = AsyncMock(return_value=credentials)
    return manager


@pytest.fixture
def client(session_manager):
    client = MyGeotabClient(session_manager, max_retries=3)
    client._post = AsyncMock()
    return client


@pytest.fixture
def no_sleep():
    with patch("src.fleet_onboard.api.client.asyncio.sleep", new=AsyncMock()) as sleep:
        yield sleep


class TestMyGeotabClient:
    """Tests for MyGeotabClient request building."""

    @pytest.mark.asyncio
    async def test_get_builds_request(self, client):
        client._post.return_value = [{"id": "b1"}]

        result = await client.get("Device", search={"serialNumber": "G9AB0001"})

        assert result == [{"id": "b1"}]
        url, method, body = client._post.await_args.args
        assert url == "https://my5.geotab.com/apiv1"
        assert method == "Get"
        assert body == {
            "method": "Get",
            "params": {
                "typeName": "Device",
                "search": {"serialNumber": "G9AB0001"},
                "credentials": {
                    "database": "acme",
                    "userName": "ops@acme.com",
                    "sessionId": "s1",
                },
            },
        }

    @pytest.mark.asyncio
    async def test_add_returns_id(self, client):
        client._post.return_value = "b42"

        assert await client.add("Device", {"serialNumber": "G9AB0001"}) == "b42"
        assert client._post.await_args.args[2]["params"]["entity"] == {"serialNumber": "G9AB0001"}

    @pytest.mark.asyncio
    async def test_get_none_result_is_empty_list(self, client):
        client._post.return_value = None
        assert await client.get("Device") == []

    def test_database_property(self, client):
        assert client.database == "acme"

    @pytest.mark.asyncio
    async def test_post_requires_context_manager(self, session_manager):
        client = MyGeotabClient(session_manager)
        with pytest.raises(RuntimeError):
            await client._post("https://my.geotab.com/apiv1", "Get", {})


class TestRetry:
    """Tests for _call_with_retry."""

    @pytest.mark.asyncio
    async def test_session_expired_refreshes_once(self, client, session_manager, credentials):
        client._post.side_effect = [SessionExpiredError(), [{"id": "b1"}]]

        result = await client.get("Device")

        assert result == [{"id": "b1"}]
        session_manager.refresh.assert_awaited_once_with(stale=credentials)

    @pytest.mark.asyncio
    async def test_session_expired_twice_raises(self, client, session_manager):
        client._post.side_effect = [SessionExpiredError(), SessionExpiredError()]

        with pytest.raises(SessionExpiredError):
            await client.get("Device")
        assert session_manager.refresh.await_count == 1

    @pytest.mark.asyncio
    async def test_server_error_retries_with_backoff(self, client, no_sleep):
        client._post.side_effect = [ServerError(), ServerError(), [{"id": "b1"}]]

        assert await client.get("Device") == [{"id": "b1"}]
        assert [c.args[0] for c in no_sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_server_error_exhausts_retries(self, client, no_sleep):
        client._post.side_effect = ServerError()

        with pytest.raises(ServerError):
            await client.get("Device")
        assert client._post.await_count == 3

    @pytest.mark.asyncio
    async def test_rate_limit_waits_retry_after(self, client, no_sleep):
        client._post.side_effect = [RateLimitError(retry_after=7), "ok"]

        assert await client.call("GetVersion") == "ok"
        no_sleep.assert_awaited_once_with(7)

    @pytest.mark.asyncio
    async def test_record_error_is_not_retried(self, client):
        client._post.side_effect = ValidationError("bad entity", method="Set")

        with pytest.raises(ValidationError):
            await client.set("Device", {"id": "b1"})
        assert client._post.await_count == 1

    @pytest.mark.asyncio
    async def test_timed_out_add_is_sent_once(self, client, no_sleep):
        client._post.side_effect = [TimeoutError("Add timed out"), "b42"]

        with pytest.raises(TimeoutError):
            await client.add("Device", {"serialNumber": "G9AB0001"})
        assert client._post.await_count == 1
        no_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [ServerError(), RateLimitError(retry_after=7)])
    async def test_mutations_are_not_retried(self, client, no_sleep, error):
        client._post.side_effect = [error, None]

        with pytest.raises(type(error)):
            await client.set("Device", {"id": "b1"})
        assert client._post.await_count == 1

    @pytest.mark.asyncio
    async def test_create_database_is_not_retried(self, client, no_sleep):
        client._post.side_effect = [ServerError(), "my5/acme_fleet"]

        with pytest.raises(ServerError):
            await client.create_database("acme_fleet", "admin@acme.com", "pw", {})
        assert client._post.await_count == 1

    @pytest.mark.asyncio
    async def test_snapshot_get_can_opt_out_of_retry(self, client, no_sleep):
        client._post.side_effect = [ServerError(), [{"id": "b1"}]]

        with pytest.raises(ServerError):
            await client.get("Device", retry=False)
        assert client._post.await_count == 1
        assert "retry" not in client._post.await_args.args[2]["params"]

    @pytest.mark.asyncio
    async def test_add_reauthenticates_on_expired_session(self, client, session_manager):
        client._post.side_effect = [SessionExpiredError(), "b42"]

        assert await client.add("Device", {"serialNumber": "G9AB0001"}) == "b42"
        assert client._post.await_count == 2
        session_manager.refresh.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_circuit_opens_after_repeated_outages(self, session_manager, no_sleep):
        client = MyGeotabClient(session_manager, max_retries=1, circuit_failure_threshold=2)
        client._post = AsyncMock(side_effect=ServerError())

        for _ in range(2):
            with pytest.raises(ServerError):
                await client.get("Device")

        with pytest.raises(CircuitOpenError):
            await client.get("Device")
        assert client._post.await_count == 2
        assert client.circuit_status["state"] == "open"


class TestMyAdminClient:
    """Tests for MyAdminClient request building."""

    @pytest.mark.asyncio
    async def test_invoke_builds_request(self):
        manager = MagicMock()
        manager.url = "https://myadminapi.geotab.com/v2/MyAdminApi.ashx"
        manager.get_credentials = AsyncMock(
            return_value=MyAdminCredentials(api_key="k1", session_id="s1", user_name="ops")
        )
        client = MyAdminClient(manager)
        client._post = AsyncMock(return_value=[])

        result = await client.get_current_device_databases("RES001", next_id=1000)

        assert result == []
        url, method, body = client._post.await_args.args
        assert url == manager.url
        assert method == "GetCurrentDeviceDatabases"
        assert body == {
            "id": -1,
            "method": "GetCurrentDeviceDatabases",
            "params": {
                "apiKey": "k1",
                "sessionId": "s1",
                "forAccount": "RES001",
                "nextId": 1000,
            },
        }

    @pytest.mark.asyncio
    async def test_registry_page_is_not_retried(self, no_sleep):
        manager = MagicMock()
        manager.url = "https://myadminapi.geotab.com/v2/MyAdminApi.ashx"
        manager.get_credentials = AsyncMock(
            return_value=MyAdminCredentials(api_key="k1", session_id="s1", user_name="ops")
        )
        client = MyAdminClient(manager)
        client._post = AsyncMock(side_effect=[ServerError(), []])

        with pytest.raises(ServerError):
            await client.get_current_device_databases("RES001")
        assert client._post.await_count == 1
        no_sleep.assert_not_awaited()
