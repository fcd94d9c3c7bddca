"""Service provider helpers wiring the ordering services with their ports.

``settings.ORDERS_STORE`` selects where carts, orders and (by default)
menus live:

- ``"orm"`` (default): Django ORM repositories, each seller group and
  each cancellation wrapped in ``transaction.atomic``.
- ``"memory"``: a process-wide in-memory key-value store, for local
  development without a database.

With ``settings.USE_HTTP_CATALOG`` the catalog is the remote catalog
service instead, reached through ``HttpCatalogClient``.
"""

from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from .adapters import (
    InMemoryAlertLog,
    InMemoryCartStore,
    InMemoryCatalog,
    InMemoryOrderStore,
    KeyValueStore,
)
from .cart import CartService
from .checkout import CheckoutService
from .http_adapters import HttpCatalogClient
from .lifecycle import OrderLifecycleService
from .repository import CartRepository, DelayAlertRepository, MenuRepository, OrderRepository
from .wait_time import WaitTimeMonitor

_memory_store = KeyValueStore()


def get_memory_store() -> KeyValueStore:
    return _memory_store


def _use_memory() -> bool:
    return getattr(settings, "ORDERS_STORE", "orm") == "memory"


def _atomic():
    return _memory_store.atomic if _use_memory() else transaction.atomic


def get_catalog():
    if getattr(settings, "USE_HTTP_CATALOG", False):
        return HttpCatalogClient()
    if _use_memory():
        return InMemoryCatalog(_memory_store)
    return MenuRepository()


def get_cart_store():
    return InMemoryCartStore(_memory_store) if _use_memory() else CartRepository()


def get_order_store():
    return InMemoryOrderStore(_memory_store) if _use_memory() else OrderRepository()


def get_alert_log():
    return InMemoryAlertLog(_memory_store) if _use_memory() else DelayAlertRepository()


def get_cart_service() -> CartService:
    return CartService(carts=get_cart_store(), catalog=get_catalog())


def get_checkout_service() -> CheckoutService:
    return CheckoutService(
        catalog=get_catalog(),
        carts=get_cart_store(),
        orders=get_order_store(),
        atomic=_atomic(),
        clock=timezone.now,
    )


def get_lifecycle_service() -> OrderLifecycleService:
    return OrderLifecycleService(
        orders=get_order_store(),
        catalog=get_catalog(),
        atomic=_atomic(),
        clock=timezone.now,
        auto_confirm_after=timedelta(seconds=getattr(settings, "ORDER_AUTO_CONFIRM_SECONDS", 30)),
    )


def get_wait_time_monitor() -> WaitTimeMonitor:
    return WaitTimeMonitor(
        alerts=get_alert_log(),
        base_minutes=getattr(settings, "WAIT_BASE_MINUTES", 10),
        per_item_minutes=getattr(settings, "WAIT_PER_ITEM_MINUTES", 3),
    )
