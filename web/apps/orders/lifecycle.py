"""Order state machine: advance, complete and cancel orders.

Every status change goes through ``OrderStorePort.transition``, a
compare-and-swap on the expected prior status. Cancellation restores
stock only when its swap wins, which makes repeated or concurrent
cancellations of the same order restore stock exactly once.
"""

import logging
from contextlib import nullcontext
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from .domain import (
    CANCELLABLE,
    CatalogPort,
    Order,
    OrderStatus,
    OrderStorePort,
    UnitOfWork,
    next_status,
)
from .errors import InvalidStateError, NotOwnerError

logger = logging.getLogger("orders.lifecycle")

# Pending orders are confirmed automatically after this delay.
DEFAULT_AUTO_CONFIRM_AFTER = timedelta(seconds=30)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_due_for_auto_advance(
    order: Order, now: datetime, after: timedelta = DEFAULT_AUTO_CONFIRM_AFTER
) -> bool:
    """Return True when a pending order has waited long enough to be confirmed.

    Only the PENDING -> CONFIRMED step is timer driven; later steps need
    an explicit seller action.
    """
    return order.status == OrderStatus.PENDING and now - order.created_at >= after


class OrderLifecycleService:
    """Domain service applying the order transition table.

    Args:
        orders: OrderStorePort holding the orders.
        catalog: CatalogPort used to restore stock on cancellation.
        atomic: Factory for the unit of work wrapping a cancellation.
        clock: Returns the current timezone-aware time.
        auto_confirm_after: Age at which pending orders become due for
            automatic confirmation.
    """

    def __init__(
        self,
        orders: OrderStorePort,
        catalog: CatalogPort,
        atomic: Optional[UnitOfWork] = None,
        clock: Callable[[], datetime] = _utcnow,
        auto_confirm_after: timedelta = DEFAULT_AUTO_CONFIRM_AFTER,
    ):
        self.orders = orders
        self.catalog = catalog
        self.atomic = atomic or nullcontext
        self.clock = clock
        self.auto_confirm_after = auto_confirm_after

    def get(self, order_id: str) -> Order:
        return self.orders.get(order_id)

    def advance(self, order_id: str, requester_id: str) -> Order:
        """Move an order one step forward on the fulfillment path.

        Only the order's seller may advance it. READY -> COMPLETED also
        records ``completed_at``. Stock is never touched.

        Raises:
            NotFoundError: If the order does not exist.
            NotOwnerError: If the requester is not the order's seller.
            TerminalStateError: If the order is completed or cancelled.
            InvalidStateError: If the order changed status concurrently.
        """
        order = self.orders.get(order_id)
        if requester_id != order.seller_id:
            raise NotOwnerError()
        return self._step(order, next_status(order.status))

    def complete(self, order_id: str, requester_id: str) -> Order:
        """Mark a READY order as picked up.

        Either the buyer or the seller may complete the order.

        Raises:
            NotFoundError: If the order does not exist.
            NotOwnerError: If the requester is neither buyer nor seller.
            InvalidStateError: If the order is not READY.
        """
        order = self.orders.get(order_id)
        if requester_id not in (order.buyer_id, order.seller_id):
            raise NotOwnerError()
        if order.status != OrderStatus.READY:
            raise InvalidStateError(
                f"Only ready orders can be picked up; this order is {order.status.value}."
            )
        return self._step(order, OrderStatus.COMPLETED)

    def cancel(self, order_id: str, requester_id: str) -> Order:
        """Cancel a PENDING or CONFIRMED order and restore its stock.

        The buyer or the seller may cancel. Stock is incremented by the
        exact quantities stored on the order lines, once, and only by the
        caller whose status swap succeeds.

        Raises:
            NotFoundError: If the order does not exist.
            NotOwnerError: If the requester is neither buyer nor seller.
            InvalidStateError: If the order can no longer be cancelled,
                including when another request cancelled it first.
        """
        order = self.orders.get(order_id)
        if requester_id not in (order.buyer_id, order.seller_id):
            raise NotOwnerError()
        if order.status not in CANCELLABLE:
            raise InvalidStateError(
                f"A {order.status.value} order can no longer be cancelled."
            )

        now = self.clock()
        with self.atomic():
            if not self.orders.transition(order.id, order.status, OrderStatus.CANCELLED, now):
                raise InvalidStateError("The order was updated by someone else; reload and retry.")
            self.catalog.release(order.id, order.lines)

        logger.info(
            "order cancelled",
            extra={"order_id": order.id, "requester_id": requester_id, "from_status": order.status.value},
        )
        order.status = OrderStatus.CANCELLED
        order.cancelled_at = now
        return order

    def is_due_for_auto_advance(self, order: Order, now: Optional[datetime] = None) -> bool:
        return is_due_for_auto_advance(order, now or self.clock(), self.auto_confirm_after)

    def auto_advance_due(self, now: Optional[datetime] = None) -> List[Order]:
        """Confirm every pending order that is due, as the system actor.

        Meant to be called periodically by an external scheduler. Orders
        that change status in the meantime (e.g. cancelled by the buyer)
        are skipped.

        Returns:
            The orders that were confirmed by this call.
        """
        now = now or self.clock()
        advanced = []
        for order in self.orders.with_status([OrderStatus.PENDING]):
            if not is_due_for_auto_advance(order, now, self.auto_confirm_after):
                continue
            if self.orders.transition(order.id, OrderStatus.PENDING, OrderStatus.CONFIRMED, now):
                order.status = OrderStatus.CONFIRMED
                advanced.append(order)
                logger.info("order auto-confirmed", extra={"order_id": order.id})
        return advanced

    def _step(self, order: Order, target: OrderStatus) -> Order:
        now = self.clock()
        if not self.orders.transition(order.id, order.status, target, now):
            raise InvalidStateError("The order was updated by someone else; reload and retry.")
        logger.info(
            "order advanced",
            extra={"order_id": order.id, "from_status": order.status.value, "to_status": target.value},
        )
        order.status = target
        if target == OrderStatus.COMPLETED:
            order.completed_at = now
        return order
