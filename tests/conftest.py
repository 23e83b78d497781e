"""
Shared fixtures for the KvDB SDK tests.
"""

import pytest

from kvdb_sdk import ClientSettings, DbClient

from tests.fakes import FakeKvService


@pytest.fixture
def settings() -> ClientSettings:
    """Settings pointing at a non-routable test host."""
    return ClientSettings(
        api_key="test-key",
        host="kvdb.test",
        port=80,
        use_ssl=False,
        default_timeout=2.0,
    )


@pytest.fixture
def service() -> FakeKvService:
    """Fresh in-memory service."""
    return FakeKvService()


@pytest.fixture
async def db(settings, service):
    """Connected DbClient backed by the fake service."""
    async with DbClient(settings, transport=service) as client:
        yield client
