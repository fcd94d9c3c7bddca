"""Repository layer persisting the ordering ports with the Django ORM.

Stock and status changes are expressed as conditional ``UPDATE``
statements (``WHERE stock >= q`` / ``WHERE status = expected``) so the
database applies each check-and-write atomically; the repositories
return domain dataclasses and never leak ORM objects to the services.
"""

import logging
from collections import Counter
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.db.models import F

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
    PaymentMethod,
)
from .errors import InsufficientStockError, NotFoundError
from .models import CartLineModel, DelayAlertModel, MenuItemModel, OrderLineModel, OrderModel

logger = logging.getLogger("orders.store")


def _to_menu(obj: MenuItemModel) -> MenuItem:
    return MenuItem(
        id=obj.id,
        seller_id=obj.seller_id,
        store_name=obj.store_name,
        name=obj.name,
        price=obj.price,
        stock=obj.stock,
    )


def _to_cart_line(obj: CartLineModel) -> CartLine:
    return CartLine(
        buyer_id=obj.buyer_id,
        menu_id=obj.menu_id,
        seller_id=obj.seller_id,
        store_name=obj.store_name,
        menu_name=obj.menu_name,
        unit_price=obj.unit_price,
        quantity=obj.quantity,
        notes=obj.notes,
    )


def _to_order(obj: OrderModel) -> Order:
    return Order(
        id=str(obj.id),
        buyer_id=obj.buyer_id,
        seller_id=obj.seller_id,
        store_name=obj.store_name,
        lines=tuple(
            OrderLine(
                menu_id=ln.menu_id,
                menu_name=ln.menu_name,
                unit_price=ln.unit_price,
                quantity=ln.quantity,
                notes=ln.notes,
            )
            for ln in obj.lines.all()
        ),
        payment_method=PaymentMethod(obj.payment_method),
        status=OrderStatus(obj.status),
        created_at=obj.created_at,
        completed_at=obj.completed_at,
        cancelled_at=obj.cancelled_at,
    )


class MenuRepository(CatalogPort):
    """Catalog persisted in the ``menu_items`` table.

    Writes join the caller's transaction, so a rolled back checkout also
    rolls back its stock reservation.
    """

    transactional = True

    def put(self, item: MenuItem) -> None:
        MenuItemModel.objects.update_or_create(
            id=item.id,
            defaults={
                "seller_id": item.seller_id,
                "store_name": item.store_name,
                "name": item.name,
                "price": item.price,
                "stock": item.stock,
            },
        )

    def get(self, menu_id: str) -> MenuItem:
        try:
            return _to_menu(MenuItemModel.objects.get(pk=menu_id))
        except MenuItemModel.DoesNotExist:
            raise NotFoundError(f"Menu item {menu_id} does not exist.") from None

    @transaction.atomic
    def reserve(self, order_id: str, lines: Sequence[OrderLine]) -> None:
        """Decrement stock with one guarded ``UPDATE`` per item.

        The ``stock >= q`` filter makes the check and the decrement a
        single statement; if any item fails the surrounding atomic block
        rolls back the decrements already applied.
        """
        wanted = Counter()
        for line in lines:
            wanted[line.menu_id] += line.quantity
        for menu_id, qty in wanted.items():
            updated = (
                MenuItemModel.objects.filter(pk=menu_id, stock__gte=qty)
                .update(stock=F("stock") - qty)
            )
            if updated:
                continue
            obj = MenuItemModel.objects.filter(pk=menu_id).first()
            if obj is None:
                raise NotFoundError(f"Menu item {menu_id} does not exist.")
            raise InsufficientStockError(obj.id, obj.name, qty, obj.stock)

    def release(self, order_id: str, lines: Sequence[OrderLine]) -> None:
        for line in lines:
            updated = MenuItemModel.objects.filter(pk=line.menu_id).update(
                stock=F("stock") + line.quantity
            )
            if not updated:
                logger.warning(
                    "stock not restored, menu item gone",
                    extra={"order_id": order_id, "menu_id": line.menu_id},
                )


class CartRepository(CartPort):
    """Cart lines persisted in the ``cart_lines`` table."""

    transactional = True

    def lines(self, buyer_id: str, for_update: bool = False) -> List[CartLine]:
        qs = CartLineModel.objects.filter(buyer_id=buyer_id)
        if for_update:
            # Must run inside transaction.atomic; a concurrent checkout blocks here.
            qs = qs.select_for_update()
        return [_to_cart_line(o) for o in qs]

    def get(self, buyer_id: str, menu_id: str) -> Optional[CartLine]:
        obj = CartLineModel.objects.filter(buyer_id=buyer_id, menu_id=menu_id).first()
        return _to_cart_line(obj) if obj else None

    def save(self, line: CartLine) -> None:
        CartLineModel.objects.update_or_create(
            buyer_id=line.buyer_id,
            menu_id=line.menu_id,
            defaults={
                "seller_id": line.seller_id,
                "store_name": line.store_name,
                "menu_name": line.menu_name,
                "unit_price": line.unit_price,
                "quantity": line.quantity,
                "notes": line.notes,
            },
        )

    def remove(self, buyer_id: str, menu_ids: Iterable[str]) -> None:
        CartLineModel.objects.filter(buyer_id=buyer_id, menu_id__in=list(menu_ids)).delete()

    def clear(self, buyer_id: str) -> None:
        CartLineModel.objects.filter(buyer_id=buyer_id).delete()


class OrderRepository(OrderStorePort):
    """Orders persisted in the ``orders`` / ``order_lines`` tables."""

    @transaction.atomic
    def add(self, order: Order) -> None:
        obj = OrderModel.objects.create(
            id=order.id,
            buyer_id=order.buyer_id,
            seller_id=order.seller_id,
            store_name=order.store_name,
            status=order.status.value,
            payment_method=order.payment_method.value,
            total_amount=order.total_amount,
            created_at=order.created_at,
        )
        OrderLineModel.objects.bulk_create(
            [
                OrderLineModel(
                    order=obj,
                    position=i,
                    menu_id=line.menu_id,
                    menu_name=line.menu_name,
                    unit_price=line.unit_price,
                    quantity=line.quantity,
                    notes=line.notes,
                )
                for i, line in enumerate(order.lines)
            ]
        )

    def get(self, order_id: str) -> Order:
        try:
            obj = OrderModel.objects.prefetch_related("lines").get(pk=order_id)
        except (OrderModel.DoesNotExist, ValidationError, ValueError):
            raise NotFoundError(f"Order {order_id} does not exist.") from None
        return _to_order(obj)

    def transition(
        self, order_id: str, expected: OrderStatus, new: OrderStatus, at: datetime
    ) -> bool:
        fields = {"status": new.value}
        if new == OrderStatus.COMPLETED:
            fields["completed_at"] = at
        elif new == OrderStatus.CANCELLED:
            fields["cancelled_at"] = at
        return OrderModel.objects.filter(pk=order_id, status=expected.value).update(**fields) == 1

    def with_status(self, statuses: Iterable[OrderStatus]) -> List[Order]:
        qs = OrderModel.objects.filter(status__in=[s.value for s in statuses]).prefetch_related("lines")
        return [_to_order(o) for o in qs]


class DelayAlertRepository(AlertLogPort):
    """Alert log relying on the unique ``order_id`` column for dedup."""

    def record(self, order_id: str, at: datetime, percentage: float) -> bool:
        try:
            # Savepoint: a duplicate only rolls back this insert.
            with transaction.atomic():
                DelayAlertModel.objects.create(order_id=order_id, triggered_at=at, percentage=percentage)
        except IntegrityError:
            return False
        return True
