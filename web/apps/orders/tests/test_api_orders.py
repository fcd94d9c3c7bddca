"""API tests for reading orders and driving them through their lifecycle."""

import uuid
from datetime import timedelta

import pytest

from apps.orders.domain import MenuItem
from apps.orders.models import MenuItemModel, OrderModel
from apps.orders.repository import MenuRepository


@pytest.fixture
def order_id(client, db):
    MenuRepository().put(MenuItem("rawon", "s-1", "Rawon Bu Ida", "Rawon", 20000, 3))
    client.post(
        "/api/cart/b-1/lines/",
        data={"menu_id": "rawon", "quantity": 2},
        content_type="application/json",
    )
    r = client.post(
        "/api/checkout/",
        data={"buyer_id": "b-1", "payment_method": "cash"},
        content_type="application/json",
    )
    assert r.status_code == 201
    return r.json()["orders"][0]["id"]


def _act(client, oid, action, requester):
    return client.post(
        f"/api/orders/{oid}/{action}/",
        data={"requester_id": requester},
        content_type="application/json",
    )


def test_ping(client):
    r = client.get("/api/orders/ping/")
    assert r.status_code == 200
    assert r.json() == {"ok": True}


def test_request_id_is_echoed(client):
    r = client.get("/api/orders/ping/", HTTP_X_REQUEST_ID="req-abc")
    assert r.headers["X-Request-ID"] == "req-abc"
    generated = client.get("/api/orders/ping/").headers["X-Request-ID"]
    assert uuid.UUID(generated)


def test_get_order(client, order_id):
    r = client.get(f"/api/orders/{order_id}/")
    assert r.status_code == 200
    body = r.json()
    assert body["id"] == order_id
    assert body["status"] == "pending"
    assert body["total_amount"] == 40000
    assert body["completed_at"] is None


@pytest.mark.django_db
def test_get_unknown_order_404(client):
    r = client.get(f"/api/orders/{uuid.uuid4()}/")
    assert r.status_code == 404
    assert r.json()["detail"] == "NOT_FOUND"


def test_full_lifecycle(client, order_id):
    statuses = [_act(client, order_id, "advance", "s-1").json()["status"] for _ in range(3)]
    assert statuses == ["confirmed", "preparing", "ready"]

    r = _act(client, order_id, "complete", "b-1")
    assert r.status_code == 200
    assert r.json()["status"] == "completed"
    assert r.json()["completed_at"] is not None

    r = _act(client, order_id, "advance", "s-1")
    assert r.status_code == 409
    assert r.json()["detail"] == "TERMINAL_STATE"


def test_buyer_cannot_advance(client, order_id):
    r = _act(client, order_id, "advance", "b-1")
    assert r.status_code == 403
    assert r.json() == {"detail": "NOT_OWNER", "message": "You are not permitted to perform this action."}


def test_complete_before_ready_409(client, order_id):
    r = _act(client, order_id, "complete", "s-1")
    assert r.status_code == 409
    assert r.json()["detail"] == "INVALID_STATE"


def test_cancel_restores_stock_once(client, order_id):
    assert MenuItemModel.objects.get(pk="rawon").stock == 1

    r1 = _act(client, order_id, "cancel", "b-1")
    r2 = _act(client, order_id, "cancel", "b-1")

    assert r1.status_code == 200
    assert r1.json()["status"] == "cancelled"
    assert r1.json()["cancelled_at"] is not None
    assert r2.status_code == 409
    assert MenuItemModel.objects.get(pk="rawon").stock == 3


def test_stranger_cannot_cancel(client, order_id):
    r = _act(client, order_id, "cancel", "someone-else")
    assert r.status_code == 403
    assert MenuItemModel.objects.get(pk="rawon").stock == 1


def test_cancel_after_preparing_409(client, order_id):
    _act(client, order_id, "advance", "s-1")
    _act(client, order_id, "advance", "s-1")
    r = _act(client, order_id, "cancel", "b-1")
    assert r.status_code == 409
    assert r.json()["detail"] == "INVALID_STATE"


def test_transition_requires_requester(client, order_id):
    r = client.post(f"/api/orders/{order_id}/cancel/", data={}, content_type="application/json")
    assert r.status_code == 400


def test_wait_status(client, order_id):
    _act(client, order_id, "advance", "s-1")
    OrderModel.objects.filter(pk=order_id).update(
        created_at=OrderModel.objects.get(pk=order_id).created_at - timedelta(minutes=20)
    )

    r = client.get(f"/api/orders/{order_id}/wait-status/")

    assert r.status_code == 200
    body = r.json()
    assert body["order_status"] == "confirmed"
    assert body["estimated_minutes"] == 16
    assert body["wait_status"] == "slightly-delayed"
    assert body["monitored"] is True
