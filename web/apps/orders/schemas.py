"""Pydantic schemas for the cart, checkout and order APIs.

Input schemas validate and normalize request bodies; output schemas map
domain dataclasses to the JSON returned by the views.
"""

import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .domain import CartLine, Order, SellerGroup
from .wait_time import WaitReport


ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def _check_id(v: str) -> str:
    v2 = v.strip()
    if not ID_RE.match(v2):
        raise ValueError("Invalid identifier format")
    return v2


# ---- Input ----
class AddCartLineDTO(BaseModel):
    """Add a menu item to a cart.

    Attributes:
        menu_id: Menu item identifier.
        quantity: Positive number of units to add (merged with an
            existing line for the same item).
        notes: Optional free-text instructions for the kitchen.
    """

    menu_id: str = Field(min_length=1, max_length=64)
    quantity: int = Field(default=1, gt=0)
    notes: str = Field(default="", max_length=255)

    @field_validator("menu_id")
    @classmethod
    def validate_menu_id(cls, v: str) -> str:
        return _check_id(v)


class UpdateCartLineDTO(BaseModel):
    """Set a cart line's quantity; zero or less removes the line."""

    quantity: int


class CheckoutDTO(BaseModel):
    """Schema for checking out a buyer's cart.

    ``payment_method`` is optional here on purpose: a missing or unknown
    method is reported by the checkout service with its own error code.
    """

    buyer_id: str = Field(min_length=1, max_length=64)
    payment_method: Optional[str] = None

    @field_validator("buyer_id")
    @classmethod
    def validate_buyer_id(cls, v: str) -> str:
        return _check_id(v)

    @field_validator("payment_method")
    @classmethod
    def normalize_payment_method(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().lower() if v else None


class TransitionDTO(BaseModel):
    requester_id: str = Field(min_length=1, max_length=64)

    @field_validator("requester_id")
    @classmethod
    def validate_requester_id(cls, v: str) -> str:
        return _check_id(v)


# ---- Output ----
class CartLineOut(BaseModel):
    menu_id: str
    menu_name: str
    seller_id: str
    store_name: str
    unit_price: int
    quantity: int
    notes: str = ""
    subtotal: int

    @classmethod
    def from_domain(cls, line: CartLine) -> "CartLineOut":
        return cls(
            menu_id=line.menu_id,
            menu_name=line.menu_name,
            seller_id=line.seller_id,
            store_name=line.store_name,
            unit_price=line.unit_price,
            quantity=line.quantity,
            notes=line.notes,
            subtotal=line.subtotal,
        )


class SellerGroupOut(BaseModel):
    seller_id: str
    store_name: str
    subtotal: int
    lines: list[CartLineOut]

    @classmethod
    def from_domain(cls, group: SellerGroup) -> "SellerGroupOut":
        return cls(
            seller_id=group.seller_id,
            store_name=group.store_name,
            subtotal=group.subtotal,
            lines=[CartLineOut.from_domain(ln) for ln in group.lines],
        )


class OrderLineOut(BaseModel):
    menu_id: str
    menu_name: str
    unit_price: int
    quantity: int
    notes: str = ""


class OrderReadDTO(BaseModel):
    """Output schema for an order."""

    id: str
    buyer_id: str
    seller_id: str
    store_name: str
    status: str
    payment_method: str
    total_amount: int
    items: list[OrderLineOut]
    created_at: datetime
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, order: Order) -> "OrderReadDTO":
        return cls(
            id=order.id,
            buyer_id=order.buyer_id,
            seller_id=order.seller_id,
            store_name=order.store_name,
            status=order.status.value,
            payment_method=order.payment_method.value,
            total_amount=order.total_amount,
            items=[
                OrderLineOut(
                    menu_id=ln.menu_id,
                    menu_name=ln.menu_name,
                    unit_price=ln.unit_price,
                    quantity=ln.quantity,
                    notes=ln.notes,
                )
                for ln in order.lines
            ],
            created_at=order.created_at,
            completed_at=order.completed_at,
            cancelled_at=order.cancelled_at,
        )


class WaitStatusOut(BaseModel):
    order_id: str
    order_status: str
    estimated_minutes: int
    elapsed_minutes: float
    percentage: float
    wait_status: str
    monitored: bool

    @classmethod
    def from_report(cls, report: WaitReport, order: Order) -> "WaitStatusOut":
        return cls(
            order_id=report.order_id,
            order_status=order.status.value,
            estimated_minutes=report.estimated_minutes,
            elapsed_minutes=round(report.elapsed_minutes, 2),
            percentage=round(report.percentage, 2),
            wait_status=report.status.value,
            monitored=report.monitored,
        )
