from datetime import datetime, timedelta, timezone

import pytest

from apps.orders.adapters import (
    InMemoryAlertLog,
    InMemoryCartStore,
    InMemoryCatalog,
    InMemoryOrderStore,
    KeyValueStore,
)
from apps.orders.cart import CartService
from apps.orders.checkout import CheckoutService
from apps.orders.domain import MenuItem
from apps.orders.lifecycle import OrderLifecycleService
from apps.orders.wait_time import WaitTimeMonitor

T0 = datetime(2026, 3, 2, 11, 30, tzinfo=timezone.utc)

MENU = [
    MenuItem("nasi-goreng", "s-1", "Warung Bu Sri", "Nasi Goreng", 15000, 10),
    MenuItem("es-teh", "s-1", "Warung Bu Sri", "Es Teh", 5000, 20),
    MenuItem("bakso", "s-2", "Bakso Pak Kumis", "Bakso", 20000, 2),
]


class FakeClock:
    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return KeyValueStore()


@pytest.fixture
def catalog(store):
    cat = InMemoryCatalog(store)
    for item in MENU:
        cat.put(item)
    return cat


@pytest.fixture
def carts(store):
    return InMemoryCartStore(store)


@pytest.fixture
def orders(store):
    return InMemoryOrderStore(store)


@pytest.fixture
def cart_service(carts, catalog):
    return CartService(carts, catalog)


@pytest.fixture
def checkout_service(catalog, carts, orders, store, clock):
    return CheckoutService(catalog, carts, orders, atomic=store.atomic, clock=clock)


@pytest.fixture
def lifecycle(orders, catalog, store, clock):
    return OrderLifecycleService(orders, catalog, atomic=store.atomic, clock=clock)


@pytest.fixture
def monitor(store):
    return WaitTimeMonitor(InMemoryAlertLog(store))
