"""Pytest configuration and shared fixtures for testing."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from dryrepo.configuration.config import get_settings
from dryrepo.domain.ports.store import QueryHandlePort, StorePort


@pytest.fixture(autouse=True)
def fresh_settings():
    """Re-read settings for every test so environment overrides apply."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def mock_query():
    """Create a mock query handle."""
    query = MagicMock(spec=QueryHandlePort)
    query.execute_for_list = AsyncMock(return_value=[])
    query.execute_for_single = AsyncMock(return_value=None)
    query.execute_for_update_count = AsyncMock(return_value=0)
    return query


@pytest.fixture
def mock_store(mock_query):
    """Create a mock store whose queries resolve to mock_query."""
    store = AsyncMock(spec=StorePort)
    store.persist = AsyncMock(return_value=None)
    store.merge = AsyncMock()
    store.remove = AsyncMock(return_value=None)
    store.find_by_key = AsyncMock(return_value=None)
    store.resolve_named_query = MagicMock(return_value=mock_query)
    store.resolve_query_from_text = MagicMock(return_value=mock_query)
    return store
