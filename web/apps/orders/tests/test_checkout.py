"""Unit tests for CheckoutService.

The in-memory adapters are used so stock, cart and orders can be checked
after every scenario: happy fan-out, validation failures and per-seller
stock failures.
"""

import threading

import pytest

from apps.orders.adapters import InMemoryCartStore, InMemoryCatalog
from apps.orders.cart import CartService
from apps.orders.checkout import CheckoutService
from apps.orders.domain import MenuItem, OrderLine, OrderStatus, PaymentMethod
from apps.orders.errors import (
    EmptyCartError,
    InsufficientStockError,
    MissingPaymentMethodError,
)


def _stock(catalog, menu_id):
    return catalog.get(menu_id).stock


def test_checkout_creates_one_order_per_seller(cart_service, checkout_service, catalog, carts, clock):
    cart_service.add("b-1", "nasi-goreng", 2)
    cart_service.add("b-1", "bakso", 1)
    cart_service.add("b-1", "es-teh", 3)

    orders = checkout_service.checkout("b-1", "cash")

    assert [o.seller_id for o in orders] == ["s-1", "s-2"]
    first, second = orders
    assert first.total_amount == 2 * 15000 + 3 * 5000
    assert second.total_amount == 20000
    assert [ln.menu_id for ln in first.lines] == ["nasi-goreng", "es-teh"]
    for order in orders:
        assert order.status == OrderStatus.PENDING
        assert order.payment_method == PaymentMethod.CASH
        assert order.buyer_id == "b-1"
        assert order.created_at == clock.now
    assert first.id != second.id

    assert _stock(catalog, "nasi-goreng") == 8
    assert _stock(catalog, "es-teh") == 17
    assert _stock(catalog, "bakso") == 1
    assert carts.lines("b-1") == []


def test_checkout_persists_orders(cart_service, checkout_service, orders):
    cart_service.add("b-1", "es-teh", 1)
    (order,) = checkout_service.checkout("b-1", "qris")
    stored = orders.get(order.id)
    assert stored.payment_method == PaymentMethod.QRIS
    assert stored.total_amount == 5000


def test_checkout_empty_cart(checkout_service):
    with pytest.raises(EmptyCartError) as e:
        checkout_service.checkout("b-1", "cash")
    assert e.value.code == "EMPTY_CART"


@pytest.mark.parametrize("method", [None, "", "card"])
def test_checkout_requires_payment_method(cart_service, checkout_service, catalog, carts, orders, method):
    cart_service.add("b-1", "es-teh", 2)
    with pytest.raises(MissingPaymentMethodError):
        checkout_service.checkout("b-1", method)
    assert _stock(catalog, "es-teh") == 20
    assert len(carts.lines("b-1")) == 1
    assert orders.with_status(list(OrderStatus)) == []


def test_insufficient_stock_single_seller_changes_nothing(cart_service, checkout_service, catalog, carts):
    cart_service.add("b-1", "bakso", 3)
    with pytest.raises(InsufficientStockError) as e:
        checkout_service.checkout("b-1", "cash")
    assert e.value.menu_name == "Bakso"
    assert e.value.requested == 3
    assert e.value.available == 2
    assert "Bakso" in e.value.message
    assert _stock(catalog, "bakso") == 2
    assert carts.lines("b-1")[0].quantity == 3


def test_failing_group_does_not_block_siblings(cart_service, checkout_service, catalog, carts):
    cart_service.add("b-1", "nasi-goreng", 1)
    cart_service.add("b-1", "bakso", 5)

    result = checkout_service.checkout_detailed("b-1", "cash")

    assert [o.seller_id for o in result.orders] == ["s-1"]
    assert [f.seller_id for f in result.failures] == ["s-2"]
    assert result.failures[0].error.code == "INSUFFICIENT_STOCK"
    assert [ln.menu_id for ln in carts.lines("b-1")] == ["bakso"]
    assert _stock(catalog, "nasi-goreng") == 9
    assert _stock(catalog, "bakso") == 2


def test_group_is_all_or_nothing(cart_service, checkout_service, catalog):
    cart_service.add("b-1", "nasi-goreng", 2)
    cart_service.add("b-1", "es-teh", 1)
    catalog.reserve("other", [OrderLine("es-teh", "Es Teh", 5000, 20)])

    with pytest.raises(InsufficientStockError):
        checkout_service.checkout("b-1", "cash")
    assert _stock(catalog, "nasi-goreng") == 10


def test_stock_never_negative_across_buyers(cart_service, checkout_service, catalog):
    cart_service.add("b-1", "bakso", 2)
    cart_service.add("b-2", "bakso", 1)
    checkout_service.checkout("b-1", "cash")
    with pytest.raises(InsufficientStockError):
        checkout_service.checkout("b-2", "cash")
    assert _stock(catalog, "bakso") == 0


def test_failed_persist_releases_non_transactional_reservation(cart_service, catalog, carts, store, clock):
    class BrokenOrders:
        def add(self, order):
            raise RuntimeError("disk full")

    service = CheckoutService(catalog, carts, BrokenOrders(), atomic=store.atomic, clock=clock)
    cart_service.add("b-1", "bakso", 2)

    with pytest.raises(RuntimeError):
        service.checkout("b-1", "cash")
    assert _stock(catalog, "bakso") == 2
    assert len(carts.lines("b-1")) == 1


def test_checkout_uses_clock(cart_service, checkout_service, clock):
    clock.advance(minutes=5)
    cart_service.add("b-1", "es-teh", 1)
    (order,) = checkout_service.checkout("b-1", "cash")
    assert order.created_at == clock.now


class ReentrantCatalog(InMemoryCatalog):
    """Runs a second checkout of the same cart while the first is reserving."""

    def __init__(self, store):
        super().__init__(store)
        self.service = None
        self.started = False
        self.nested = []

    def reserve(self, order_id, lines):
        if self.service is not None and not self.started:
            self.started = True
            try:
                self.nested.append(self.service.checkout("b-1", "cash"))
            except EmptyCartError as e:
                self.nested.append(e)
        super().reserve(order_id, lines)


def test_overlapping_checkouts_order_the_cart_once(store, carts, orders, clock):
    catalog = ReentrantCatalog(store)
    catalog.put(MenuItem("nasi-goreng", "s-1", "Warung Bu Sri", "Nasi Goreng", 15000, 10))
    CartService(carts, catalog).add("b-1", "nasi-goreng", 2)
    service = CheckoutService(catalog, carts, orders, atomic=store.atomic, clock=clock)
    catalog.service = service

    placed = service.checkout("b-1", "cash")

    assert len(placed) == 1
    assert isinstance(catalog.nested[0], EmptyCartError)
    assert len(orders.with_status([OrderStatus.PENDING])) == 1
    assert _stock(catalog, "nasi-goreng") == 8
    assert carts.lines("b-1") == []


def test_concurrent_checkouts_of_one_cart(cart_service, checkout_service, catalog, orders):
    cart_service.add("b-1", "nasi-goreng", 2)
    cart_service.add("b-1", "bakso", 1)
    barrier = threading.Barrier(2)
    placed = []

    def run():
        barrier.wait()
        try:
            placed.extend(checkout_service.checkout("b-1", "cash"))
        except EmptyCartError:
            pass

    threads = [threading.Thread(target=run) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(o.seller_id for o in placed) == ["s-1", "s-2"]
    assert len(orders.with_status([OrderStatus.PENDING])) == 2
    assert _stock(catalog, "nasi-goreng") == 8
    assert _stock(catalog, "bakso") == 1


class GrowingCart(InMemoryCartStore):
    """Adds one more es-teh right after checkout takes its first look at the cart."""

    def lines(self, buyer_id, for_update=False):
        snapshot = super().lines(buyer_id, for_update)
        if not for_update:
            line = self.get(buyer_id, "es-teh")
            line.quantity += 1
            self.save(line)
        return snapshot


def test_units_added_during_checkout_are_ordered(store, catalog, orders, clock):
    carts = GrowingCart(store)
    CartService(carts, catalog).add("b-1", "es-teh", 2)
    service = CheckoutService(catalog, carts, orders, atomic=store.atomic, clock=clock)

    (order,) = service.checkout("b-1", "cash")

    assert order.lines[0].quantity == 3
    assert order.total_amount == 15000
    assert _stock(catalog, "es-teh") == 17
    assert carts.lines("b-1") == []
