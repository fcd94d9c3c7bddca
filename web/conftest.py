import pytest
from django.core.cache import cache


@pytest.fixture(autouse=True)
def local_catalog(settings):
    settings.USE_HTTP_CATALOG = False
    settings.ORDERS_STORE = "orm"
    cache.clear()
    yield
    cache.clear()
