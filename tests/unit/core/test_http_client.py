"""Unit tests for the shared HTTP client pool."""

import httpx
import pytest

from localevents.core import http_client
from localevents.core.http_client import (
    HEALTH_ERROR_THRESHOLD,
    build_timeout,
    close_all_clients,
    get_shared_client,
    record_client_error,
    record_client_success,
)

pytestmark = pytest.mark.unit


class TestSharedHTTPClient:
    """Shared client management."""

    async def test_get_shared_client_reuses_existing_client(self):
        await close_all_clients()

        client1 = await get_shared_client("test_client")
        client2 = await get_shared_client("test_client")

        assert isinstance(client1, httpx.AsyncClient)
        assert client1 is client2

        await close_all_clients()

    async def test_close_all_clients_closes_and_forgets(self):
        await close_all_clients()
        client = await get_shared_client("test_client")

        await close_all_clients()

        assert client.is_closed
        assert await get_shared_client("test_client") is not client
        await close_all_clients()

    async def test_unhealthy_client_is_recreated(self):
        await close_all_clients()
        client = await get_shared_client("flaky")

        for _ in range(HEALTH_ERROR_THRESHOLD):
            await record_client_error("flaky")
        replacement = await get_shared_client("flaky")

        assert replacement is not client
        assert client.is_closed
        await close_all_clients()

    async def test_record_client_success_resets_error_count(self):
        await close_all_clients()
        await get_shared_client("flaky")

        await record_client_error("flaky")
        await record_client_success("flaky")

        assert http_client._client_health["flaky"]["error_count"] == 0
        await close_all_clients()


def test_build_timeout():
    timeout = build_timeout(5.0)

    assert timeout.connect == 5.0
    assert timeout.write == 5.0
    assert timeout.read == 30.0
