import pytest

from apps.orders.domain import MenuItem
from apps.orders.models import CartLineModel, MenuItemModel, OrderModel
from apps.orders.repository import MenuRepository

CHECKOUT_URL = "/api/checkout/"


@pytest.fixture
def menu(db):
    repo = MenuRepository()
    repo.put(MenuItem("ayam", "s-1", "Ayam Geprek", "Ayam Geprek", 17000, 4))
    repo.put(MenuItem("kopi", "s-2", "Kopi Kampus", "Kopi Susu", 12000, 1))
    return repo


def _fill_cart(client, buyer="b-1", **quantities):
    for menu_id, qty in quantities.items():
        r = client.post(
            f"/api/cart/{buyer}/lines/",
            data={"menu_id": menu_id, "quantity": qty},
            content_type="application/json",
        )
        assert r.status_code == 201


def _checkout(client, payload, **headers):
    return client.post(CHECKOUT_URL, data=payload, content_type="application/json", **headers)


def test_checkout_creates_an_order_per_seller(client, menu):
    _fill_cart(client, ayam=2, kopi=1)
    r = _checkout(client, {"buyer_id": "b-1", "payment_method": "QRIS"})
    assert r.status_code == 201
    body = r.json()
    assert body["failures"] == []
    assert [o["seller_id"] for o in body["orders"]] == ["s-1", "s-2"]
    first = body["orders"][0]
    assert first["status"] == "pending"
    assert first["payment_method"] == "qris"
    assert first["total_amount"] == 34000
    assert first["items"][0] == {
        "menu_id": "ayam",
        "menu_name": "Ayam Geprek",
        "unit_price": 17000,
        "quantity": 2,
        "notes": "",
    }
    assert MenuItemModel.objects.get(pk="ayam").stock == 2
    assert CartLineModel.objects.filter(buyer_id="b-1").count() == 0


def test_checkout_empty_cart_422(client, menu):
    r = _checkout(client, {"buyer_id": "b-1", "payment_method": "cash"})
    assert r.status_code == 422
    assert r.json()["detail"] == "EMPTY_CART"


def test_checkout_without_payment_method_400(client, menu):
    _fill_cart(client, ayam=1)
    r = _checkout(client, {"buyer_id": "b-1"})
    assert r.status_code == 400
    assert r.json()["detail"] == "MISSING_PAYMENT_METHOD"
    assert CartLineModel.objects.count() == 1


def test_checkout_invalid_buyer_id_400(client, menu):
    r = _checkout(client, {"buyer_id": "", "payment_method": "cash"})
    assert r.status_code == 400


def test_checkout_insufficient_stock_names_the_item(client, menu):
    _fill_cart(client, kopi=1)
    MenuItemModel.objects.filter(pk="kopi").update(stock=0)

    r = _checkout(client, {"buyer_id": "b-1", "payment_method": "cash"})

    assert r.status_code == 422
    body = r.json()
    assert body["detail"] == "INSUFFICIENT_STOCK"
    assert body["menu_name"] == "Kopi Susu"
    assert "Kopi Susu" in body["message"]
    assert OrderModel.objects.count() == 0
    assert CartLineModel.objects.count() == 1


def test_checkout_partial_success_reports_failures(client, menu):
    _fill_cart(client, ayam=1, kopi=1)
    MenuItemModel.objects.filter(pk="kopi").update(stock=0)

    r = _checkout(client, {"buyer_id": "b-1", "payment_method": "cash"})

    assert r.status_code == 201
    body = r.json()
    assert len(body["orders"]) == 1
    assert body["failures"] == [
        {
            "seller_id": "s-2",
            "store_name": "Kopi Kampus",
            "detail": "INSUFFICIENT_STOCK",
            "message": body["failures"][0]["message"],
            "menu_id": "kopi",
            "menu_name": "Kopi Susu",
        }
    ]
    assert list(CartLineModel.objects.values_list("menu_id", flat=True)) == ["kopi"]


def test_payload_too_large_413(client, settings):
    from gateway import middleware

    big = {"buyer_id": "b-1", "payment_method": "cash", "pad": "x" * (middleware.MAX_API_BYTES + 1)}
    r = _checkout(client, big)
    assert r.status_code == 413
    assert r.json()["detail"] == "PAYLOAD_TOO_LARGE"
