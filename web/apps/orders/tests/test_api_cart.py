import pytest

from apps.orders.domain import MenuItem
from apps.orders.repository import MenuRepository

BASE = "/api/cart/b-1/"


@pytest.fixture
def menu(db):
    repo = MenuRepository()
    repo.put(MenuItem("gado", "s-1", "Warung Gado", "Gado-gado", 12000, 5))
    repo.put(MenuItem("jus", "s-2", "Jus Segar", "Jus Alpukat", 10000, 5))
    return repo


def _add(client, menu_id, quantity=1, **extra):
    return client.post(
        BASE + "lines/",
        data={"menu_id": menu_id, "quantity": quantity, **extra},
        content_type="application/json",
    )


def test_add_line_and_read_cart(client, menu):
    r = _add(client, "gado", 2, notes="no peanuts")
    assert r.status_code == 201
    assert r.json()["subtotal"] == 24000
    _add(client, "jus")
    _add(client, "gado")

    body = client.get(BASE).json()
    assert [ln["menu_id"] for ln in body["lines"]] == ["gado", "jus"]
    assert body["lines"][0]["quantity"] == 3
    assert [g["seller_id"] for g in body["groups"]] == ["s-1", "s-2"]
    assert body["total_amount"] == 3 * 12000 + 10000


def test_add_validation_errors(client, menu):
    assert _add(client, "gado", 0).status_code == 400
    assert _add(client, "bad id!").status_code == 400


def test_add_unknown_menu(client, menu):
    r = _add(client, "ghost")
    assert r.status_code == 404
    assert r.json()["detail"] == "NOT_FOUND"


def test_patch_quantity_and_remove_by_zero(client, menu):
    _add(client, "gado", 1)
    r = client.patch(BASE + "lines/gado/", data={"quantity": 4}, content_type="application/json")
    assert r.status_code == 200
    assert r.json()["quantity"] == 4

    r = client.patch(BASE + "lines/gado/", data={"quantity": 0}, content_type="application/json")
    assert r.status_code == 204
    assert client.get(BASE).json()["lines"] == []


def test_delete_line_and_clear(client, menu):
    _add(client, "gado")
    _add(client, "jus")
    assert client.delete(BASE + "lines/gado/").status_code == 204
    assert client.delete(BASE + "lines/gado/").status_code == 404
    assert client.delete(BASE).status_code == 204
    assert client.get(BASE).json()["lines"] == []


def test_patch_maps_domain_errors_to_their_status(client, menu, monkeypatch):
    from apps.orders.cart import CartService
    from apps.orders.errors import InsufficientStockError

    r = client.patch(BASE + "lines/gado/", data={"quantity": 2}, content_type="application/json")
    assert r.status_code == 404
    assert r.json()["detail"] == "NOT_FOUND"

    def short(self, buyer_id, menu_id, quantity):
        raise InsufficientStockError(menu_id, "Gado-gado", quantity, 5)

    monkeypatch.setattr(CartService, "update_quantity", short)
    _add(client, "gado")
    r = client.patch(BASE + "lines/gado/", data={"quantity": 9}, content_type="application/json")
    assert r.status_code == 422
    assert r.json()["detail"] == "INSUFFICIENT_STOCK"
