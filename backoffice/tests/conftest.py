import pytest
from django.core.cache import cache

from backoffice.data_access import InMemoryDataAccess


@pytest.fixture
def store():
    return InMemoryDataAccess()


@pytest.fixture(autouse=True)
def clear_cache():
    cache.clear()
    yield
    cache.clear()
