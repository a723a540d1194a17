"""Shared fixtures: a fake ClasseViva server behind httpx.MockTransport."""

from unittest.mock import MagicMock

import httpx
import pytest
import pytest_asyncio

from classeviva_client.restapi import client

from .fakes import FakeApi, login_payload


@pytest.fixture
def api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def log() -> MagicMock:
    """Injected log sink; assertions inspect its calls."""
    return MagicMock()


@pytest.fixture
def cache_path(tmp_path):
    return tmp_path / "cvv.json"


@pytest_asyncio.fixture
async def api_client(api: FakeApi, log: MagicMock, cache_path) -> client.ClassevivaClient:
    """Client with credentials, wired to the fake server."""
    instance = client.ClassevivaClient(
        username="S42",
        password="secret",
        cache_file=cache_path,
        transport=httpx.MockTransport(api.handler),
        log=log,
    )
    yield instance
    await instance.aclose()


@pytest_asyncio.fixture
async def logged_in(
    api: FakeApi,
    log: MagicMock,
    api_client: client.ClassevivaClient,
) -> client.ClassevivaClient:
    """Client after a successful network login; request log and mock reset."""
    api.add_json("POST", "/rest/v1/auth/login/", login_payload())
    await api_client.login()
    api.requests.clear()
    log.reset_mock()
    return api_client
