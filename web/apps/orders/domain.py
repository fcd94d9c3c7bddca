"""Domain models, ports and the order status table.

This module contains the dataclasses used as DTOs across the ordering
engine (menu items, cart lines, orders), the status enumeration together
with its transition table, and the protocol definitions (ports) for the
stores the services depend on: catalog, cart, orders and delay alerts.
"""

from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional, Protocol, Sequence

from .errors import TerminalStateError


# ---- Enums ----
class OrderStatus(str, Enum):
    """Fulfillment states of an order.

    The forward path is PENDING -> CONFIRMED -> PREPARING -> READY ->
    COMPLETED. CANCELLED is reachable from PENDING or CONFIRMED only.
    """

    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    CASH = "cash"
    QRIS = "qris"


# ---- Transition table ----
NEXT_STATUS = {
    OrderStatus.PENDING: OrderStatus.CONFIRMED,
    OrderStatus.CONFIRMED: OrderStatus.PREPARING,
    OrderStatus.PREPARING: OrderStatus.READY,
    OrderStatus.READY: OrderStatus.COMPLETED,
}
CANCELLABLE = frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED})
TERMINAL = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})
# Statuses whose wait time is watched for delays.
MONITORED = frozenset({OrderStatus.CONFIRMED, OrderStatus.PREPARING})


def next_status(status: OrderStatus) -> OrderStatus:
    """Return the status that follows ``status`` on the forward path.

    Raises:
        TerminalStateError: If ``status`` is COMPLETED or CANCELLED.
    """
    if status in TERMINAL:
        raise TerminalStateError(f"The order is already {status.value}.")
    return NEXT_STATUS[status]


# ---- Entities / DTOs ----
@dataclass(frozen=True)
class MenuItem:
    """A menu item as seen by the engine.

    Attributes:
        id: Menu identifier.
        seller_id: Owner of the item.
        store_name: Display name of the seller's store.
        name: Display name of the item.
        price: Unit price in minor currency units (positive).
        stock: Units currently available (never negative).
    """

    id: str
    seller_id: str
    store_name: str
    name: str
    price: int
    stock: int


@dataclass
class CartLine:
    """One buyer's pending selection of a menu item.

    ``unit_price``, ``menu_name`` and ``store_name`` are snapshots taken
    when the item was added to the cart.
    """

    buyer_id: str
    menu_id: str
    seller_id: str
    store_name: str
    menu_name: str
    unit_price: int
    quantity: int
    notes: str = ""

    @property
    def subtotal(self) -> int:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class OrderLine:
    """A single, immutable line of a placed order."""

    menu_id: str
    menu_name: str
    unit_price: int
    quantity: int
    notes: str = ""

    @property
    def subtotal(self) -> int:
        return self.unit_price * self.quantity


@dataclass
class Order:
    """Container for order data.

    Attributes:
        id: Order identifier (uuid4 string).
        buyer_id: Buyer who placed the order.
        seller_id: Seller who fulfills the order.
        store_name: Seller's store display name.
        lines: Order lines; immutable once the order is created.
        payment_method: ``cash`` or ``qris``.
        status: Current OrderStatus.
        created_at: Creation timestamp (timezone-aware).
        completed_at: Set when the order reaches COMPLETED.
        cancelled_at: Set when the order is CANCELLED.

    ``total_amount`` is derived from the lines so it can never drift from
    their sum.
    """

    id: str
    buyer_id: str
    seller_id: str
    store_name: str
    lines: tuple[OrderLine, ...]
    payment_method: PaymentMethod
    status: OrderStatus = OrderStatus.PENDING
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @property
    def total_amount(self) -> int:
        return sum(line.subtotal for line in self.lines)

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)


@dataclass
class SellerGroup:
    """The subset of a cart belonging to a single seller."""

    seller_id: str
    store_name: str
    lines: List[CartLine] = field(default_factory=list)

    @property
    def subtotal(self) -> int:
        return sum(line.subtotal for line in self.lines)


# ---- Ports (DIP) ----
class CatalogPort(Protocol):
    """Port describing catalog operations used by the domain.

    ``reserve`` and ``release`` are the only stock mutators; implementers
    must apply each call as a single atomic read-modify-write so stock can
    never go negative under concurrent checkouts.

    Attributes:
        transactional: True when the catalog writes participate in the
            caller's unit of work (a rollback undoes a reservation). When
            False the caller compensates failed work with ``release``.
    """

    transactional: bool

    def get(self, menu_id: str) -> MenuItem:
        """Return the menu item or raise ``NotFoundError``."""
        raise NotImplementedError()

    def reserve(self, order_id: str, lines: Sequence[OrderLine]) -> None:
        """Decrement stock for every line, all or nothing.

        Raises:
            InsufficientStockError: If any line exceeds the current stock.
                No stock is changed in that case.
            NotFoundError: If a referenced menu item does not exist.
        """
        raise NotImplementedError()

    def release(self, order_id: str, lines: Sequence[OrderLine]) -> None:
        """Increment stock by the exact quantities of ``lines``."""
        raise NotImplementedError()


class CartPort(Protocol):
    """Port describing cart storage; every call is scoped to one buyer.

    Attributes:
        transactional: True when cart writes participate in the caller's
            unit of work. When False the caller puts back lines it removed
            for work that later failed.
    """

    transactional: bool

    def lines(self, buyer_id: str, for_update: bool = False) -> List[CartLine]:
        """Return the buyer's lines in insertion order.

        With ``for_update`` the lines stay locked against other checkouts
        until the caller's unit of work ends.
        """
        raise NotImplementedError()

    def get(self, buyer_id: str, menu_id: str) -> Optional[CartLine]:
        raise NotImplementedError()

    def save(self, line: CartLine) -> None:
        """Insert or replace the line for (buyer_id, menu_id)."""
        raise NotImplementedError()

    def remove(self, buyer_id: str, menu_ids: Iterable[str]) -> None:
        raise NotImplementedError()

    def clear(self, buyer_id: str) -> None:
        raise NotImplementedError()


class OrderStorePort(Protocol):
    """Port describing order persistence."""

    def add(self, order: Order) -> None:
        raise NotImplementedError()

    def get(self, order_id: str) -> Order:
        """Return the order or raise ``NotFoundError``."""
        raise NotImplementedError()

    def transition(
        self, order_id: str, expected: OrderStatus, new: OrderStatus, at: datetime
    ) -> bool:
        """Move an order from ``expected`` to ``new`` if it is still ``expected``.

        This is the serialization point for status changes: of several
        concurrent callers with the same ``expected`` status exactly one
        gets True. ``at`` is stored as ``completed_at`` / ``cancelled_at``
        when ``new`` is COMPLETED / CANCELLED.

        Returns:
            True if the swap was applied, False if the status had changed.
        """
        raise NotImplementedError()

    def with_status(self, statuses: Iterable[OrderStatus]) -> List[Order]:
        raise NotImplementedError()


class AlertLogPort(Protocol):
    """Port recording which orders already raised a delay alert."""

    def record(self, order_id: str, at: datetime, percentage: float) -> bool:
        """Record an alert; return False if one already exists for the order."""
        raise NotImplementedError()


class UnitOfWork(Protocol):
    """Callable returning a context manager that scopes an atomic unit."""

    def __call__(self) -> AbstractContextManager: ...
