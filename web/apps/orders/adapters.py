"""In-process adapters for the ordering ports.

These adapters keep every collection (menus, carts, orders, alerts) in a
single ``KeyValueStore`` guarded by one re-entrant lock, the same shape
as the browser key-value store the storefront runs on. They are used by
unit tests and by local development (``ORDERS_STORE = "memory"``).
"""

import logging
import threading
from collections import Counter
from dataclasses import replace
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from .domain import (
    AlertLogPort,
    CartLine,
    CartPort,
    CatalogPort,
    MenuItem,
    Order,
    OrderLine,
    OrderStatus,
    OrderStorePort,
)
from .errors import InsufficientStockError, NotFoundError

logger = logging.getLogger("orders.store")


class KeyValueStore:
    """Named collections of records sharing one lock.

    ``atomic()`` returns the lock itself so a caller can group several
    adapter calls into one critical section; adapters take the same lock
    for each individual call.
    """

    def __init__(self):
        self.lock = threading.RLock()
        self._collections: dict[str, dict] = {}

    def collection(self, name: str) -> dict:
        with self.lock:
            return self._collections.setdefault(name, {})

    def atomic(self):
        return self.lock


class InMemoryCatalog(CatalogPort):
    """Catalog backed by the ``menus`` collection."""

    transactional = False

    def __init__(self, store: KeyValueStore):
        self.store = store

    @property
    def _menus(self) -> dict:
        return self.store.collection("menus")

    def put(self, item: MenuItem) -> None:
        if item.stock < 0:
            raise ValueError("stock cannot be negative")
        with self.store.lock:
            self._menus[item.id] = item

    def get(self, menu_id: str) -> MenuItem:
        with self.store.lock:
            item = self._menus.get(menu_id)
        if item is None:
            raise NotFoundError(f"Menu item {menu_id} does not exist.")
        return item

    def reserve(self, order_id: str, lines: Sequence[OrderLine]) -> None:
        wanted = Counter()
        for line in lines:
            wanted[line.menu_id] += line.quantity
        with self.store.lock:
            menus = self._menus
            for menu_id, qty in wanted.items():
                item = menus.get(menu_id)
                if item is None:
                    raise NotFoundError(f"Menu item {menu_id} does not exist.")
                if item.stock < qty:
                    raise InsufficientStockError(item.id, item.name, qty, item.stock)
            for menu_id, qty in wanted.items():
                menus[menu_id] = replace(menus[menu_id], stock=menus[menu_id].stock - qty)

    def release(self, order_id: str, lines: Sequence[OrderLine]) -> None:
        with self.store.lock:
            menus = self._menus
            for line in lines:
                item = menus.get(line.menu_id)
                if item is None:
                    logger.warning(
                        "stock not restored, menu item gone",
                        extra={"order_id": order_id, "menu_id": line.menu_id},
                    )
                    continue
                menus[line.menu_id] = replace(item, stock=item.stock + line.quantity)


class InMemoryCartStore(CartPort):
    """Cart lines keyed by (buyer_id, menu_id) in insertion order."""

    transactional = False

    def __init__(self, store: KeyValueStore):
        self.store = store

    @property
    def _lines(self) -> dict:
        return self.store.collection("cart")

    def lines(self, buyer_id: str, for_update: bool = False) -> List[CartLine]:
        # The store lock held by the caller's atomic() already serializes checkouts.
        with self.store.lock:
            return [replace(line) for (buyer, _), line in self._lines.items() if buyer == buyer_id]

    def get(self, buyer_id: str, menu_id: str) -> Optional[CartLine]:
        with self.store.lock:
            line = self._lines.get((buyer_id, menu_id))
            return replace(line) if line else None

    def save(self, line: CartLine) -> None:
        with self.store.lock:
            self._lines[(line.buyer_id, line.menu_id)] = replace(line)

    def remove(self, buyer_id: str, menu_ids: Iterable[str]) -> None:
        with self.store.lock:
            for menu_id in menu_ids:
                self._lines.pop((buyer_id, menu_id), None)

    def clear(self, buyer_id: str) -> None:
        with self.store.lock:
            for key in [k for k in self._lines if k[0] == buyer_id]:
                del self._lines[key]


class InMemoryOrderStore(OrderStorePort):
    """Orders keyed by id; ``transition`` is a locked compare-and-swap."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    @property
    def _orders(self) -> dict:
        return self.store.collection("orders")

    def add(self, order: Order) -> None:
        with self.store.lock:
            self._orders[order.id] = replace(order)

    def get(self, order_id: str) -> Order:
        with self.store.lock:
            order = self._orders.get(order_id)
            if order is None:
                raise NotFoundError(f"Order {order_id} does not exist.")
            return replace(order)

    def transition(
        self, order_id: str, expected: OrderStatus, new: OrderStatus, at: datetime
    ) -> bool:
        with self.store.lock:
            order = self._orders.get(order_id)
            if order is None:
                raise NotFoundError(f"Order {order_id} does not exist.")
            if order.status != expected:
                return False
            changes = {"status": new}
            if new == OrderStatus.COMPLETED:
                changes["completed_at"] = at
            elif new == OrderStatus.CANCELLED:
                changes["cancelled_at"] = at
            self._orders[order_id] = replace(order, **changes)
            return True

    def with_status(self, statuses: Iterable[OrderStatus]) -> List[Order]:
        wanted = set(statuses)
        with self.store.lock:
            return [replace(o) for o in self._orders.values() if o.status in wanted]


class InMemoryAlertLog(AlertLogPort):
    def __init__(self, store: KeyValueStore):
        self.store = store

    def record(self, order_id: str, at: datetime, percentage: float) -> bool:
        with self.store.lock:
            alerts = self.store.collection("delay_alerts")
            if order_id in alerts:
                return False
            alerts[order_id] = (at, percentage)
            return True
