"""Checkout: turn a buyer's cart into one order per seller.

The service validates the request, groups the cart by seller and commits
each group independently: a group whose stock check fails is reported
and left in the cart, while sibling groups still become orders.
"""

import logging
import uuid
from contextlib import nullcontext
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional

from .cart import aggregate
from .domain import (
    CartLine,
    CartPort,
    CatalogPort,
    Order,
    OrderLine,
    OrderStatus,
    OrderStorePort,
    PaymentMethod,
    SellerGroup,
    UnitOfWork,
)
from .errors import EmptyCartError, MissingPaymentMethodError, OrderError

logger = logging.getLogger("orders.checkout")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class GroupFailure:
    """A seller group that could not be turned into an order."""

    seller_id: str
    store_name: str
    error: OrderError


@dataclass
class CheckoutResult:
    orders: List[Order] = field(default_factory=list)
    failures: List[GroupFailure] = field(default_factory=list)


def _parse_payment_method(value) -> PaymentMethod:
    if isinstance(value, PaymentMethod):
        return value
    if not value:
        raise MissingPaymentMethodError()
    try:
        return PaymentMethod(str(value).lower())
    except ValueError:
        raise MissingPaymentMethodError(
            f"Unsupported payment method {value!r}; choose cash or qris."
        ) from None


class CheckoutService:
    """Domain service responsible for checking out carts.

    Args:
        catalog: CatalogPort used to re-read and decrement stock.
        carts: CartPort holding buyers' cart lines.
        orders: OrderStorePort receiving the new orders.
        atomic: Factory for the unit of work wrapping each seller group.
            Defaults to a no-op context.
        clock: Returns the current timezone-aware time.
    """

    def __init__(
        self,
        catalog: CatalogPort,
        carts: CartPort,
        orders: OrderStorePort,
        atomic: Optional[UnitOfWork] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.catalog = catalog
        self.carts = carts
        self.orders = orders
        self.atomic = atomic or nullcontext
        self.clock = clock

    def checkout(self, buyer_id: str, payment_method) -> List[Order]:
        """Check out the buyer's cart and return the created orders.

        Raises:
            EmptyCartError: If the buyer's cart has no lines.
            MissingPaymentMethodError: If no valid payment method is given.
            OrderError: The first group failure, when no group committed.
        """
        return self.checkout_detailed(buyer_id, payment_method).orders

    def checkout_detailed(self, buyer_id: str, payment_method) -> CheckoutResult:
        """Check out the buyer's cart, reporting per-seller failures.

        Each seller group is committed on its own, inside one unit of
        work: the group's lines are re-read and removed from the cart,
        stock is decremented at commit time and the order is stored as
        PENDING. Lines taken by a concurrent checkout of the same cart
        are not ordered twice; a group with nothing left is skipped. A
        group failing with an ``OrderError`` keeps its lines in the cart.
        When every group fails, the first failure is raised.

        Returns:
            CheckoutResult with the created orders and the failed groups.
        """
        groups = aggregate(self.carts.lines(buyer_id))
        if not groups:
            raise EmptyCartError()
        method = _parse_payment_method(payment_method)

        result = CheckoutResult()
        for group in groups:
            try:
                order = self._commit_group(buyer_id, group, method)
            except OrderError as e:
                logger.warning(
                    "checkout group rejected",
                    extra={"buyer_id": buyer_id, "seller_id": group.seller_id, "code": e.code},
                )
                result.failures.append(GroupFailure(group.seller_id, group.store_name, e))
                continue
            if order is not None:
                result.orders.append(order)

        if not result.orders:
            if result.failures:
                raise result.failures[0].error
            raise EmptyCartError()
        return result

    def _commit_group(
        self, buyer_id: str, group: SellerGroup, method: PaymentMethod
    ) -> Optional[Order]:
        claimed: List[CartLine] = []
        order = None
        reserved = False
        try:
            with self.atomic():
                # Lines are taken out of the cart before any stock moves, so a
                # checkout that overlaps this one cannot order them again.
                claimed = [
                    line
                    for line in self.carts.lines(buyer_id, for_update=True)
                    if line.seller_id == group.seller_id and line.quantity > 0
                ]
                if not claimed:
                    logger.info(
                        "checkout group already taken",
                        extra={"buyer_id": buyer_id, "seller_id": group.seller_id},
                    )
                    return None
                self.carts.remove(buyer_id, [line.menu_id for line in claimed])
                order = self._build_order(buyer_id, group, claimed, method)
                self.catalog.reserve(order.id, order.lines)
                reserved = True
                self.orders.add(order)
        except Exception:
            # A rolled back transaction already undid transactional writes.
            if reserved and not self.catalog.transactional:
                self.catalog.release(order.id, order.lines)
            if claimed and not self.carts.transactional:
                self._put_back(buyer_id, claimed)
            raise

        logger.info(
            "order created",
            extra={
                "order_id": order.id,
                "buyer_id": buyer_id,
                "seller_id": order.seller_id,
                "total_amount": order.total_amount,
            },
        )
        return order

    def _build_order(
        self, buyer_id: str, group: SellerGroup, lines: List[CartLine], method: PaymentMethod
    ) -> Order:
        return Order(
            id=str(uuid.uuid4()),
            buyer_id=buyer_id,
            seller_id=group.seller_id,
            store_name=group.store_name,
            lines=tuple(
                OrderLine(
                    menu_id=line.menu_id,
                    menu_name=line.menu_name,
                    unit_price=line.unit_price,
                    quantity=line.quantity,
                    notes=line.notes,
                )
                for line in lines
            ),
            payment_method=method,
            status=OrderStatus.PENDING,
            created_at=self.clock(),
        )

    def _put_back(self, buyer_id: str, lines: List[CartLine]) -> None:
        """Return claimed lines to the cart, merging with lines added since."""
        with self.atomic():
            for line in lines:
                current = self.carts.get(buyer_id, line.menu_id)
                if current is not None:
                    line.quantity += current.quantity
                self.carts.save(line)
