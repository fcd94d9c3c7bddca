"""Catalog service API built with FastAPI.

This module exposes endpoints to read and upsert menu items and to
reserve or release stock for an order. Validation is performed with
Pydantic models, while persistence and the locked stock updates are
delegated to the SQLAlchemy-backed repository in ``repo.CatalogRepo``.
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import List

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, Field, constr
from pythonjsonlogger.json import JsonFormatter
from sqlalchemy import text

from repo import CatalogRepo, InsufficientStock, MenuNotFound, engine, init_db

MenuId = constr(pattern=r"^[A-Za-z0-9_-]{1,64}$")

logger = logging.getLogger("catalog")
if not logger.handlers:
    h = logging.StreamHandler()
    h.setFormatter(JsonFormatter("%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s"))
    logger.addHandler(h)
    logger.setLevel(logging.INFO)


def _wait_for_db(timeout: float = 30.0) -> None:
    deadline = time.time() + timeout
    while True:
        try:
            with engine.connect() as conn:
                conn.execute(text("select 1"))
            return
        except Exception:
            if time.time() > deadline:
                raise
            time.sleep(1)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    _wait_for_db()
    init_db()
    yield


app = FastAPI(title="Catalog Service", lifespan=lifespan)


class MenuIn(BaseModel):
    """Menu item fields a seller may set.

    Attributes:
        seller_id: Owner of the item.
        store_name: Display name of the seller's store.
        name: Display name of the item.
        price: Positive unit price in minor currency units.
        stock: Non-negative number of units available.
    """

    seller_id: MenuId
    store_name: str = Field(min_length=1, max_length=120)
    name: str = Field(min_length=1, max_length=120)
    price: int = Field(gt=0)
    stock: int = Field(ge=0)


class MenuOut(MenuIn):
    id: str


class Item(BaseModel):
    menu_id: MenuId
    quantity: int = Field(gt=0)


class StockRequest(BaseModel):
    """Request body for reserve/release.

    Attributes:
        order_id: Order the movement belongs to; a second call with the
            same order id is acknowledged without changing stock.
        items: Menu items and quantities.
    """

    order_id: str = Field(min_length=1, max_length=64)
    items: List[Item] = Field(min_length=1)


@app.get("/health")
def health():
    return {"ok": True}


@app.get("/menus/{menu_id}", response_model=MenuOut)
def get_menu(menu_id: str):
    menu = CatalogRepo().get(menu_id)
    if menu is None:
        raise HTTPException(status_code=404, detail={"code": "NOT_FOUND", "menu_id": menu_id})
    return menu


@app.put("/menus/{menu_id}", response_model=MenuOut)
def put_menu(menu_id: MenuId, body: MenuIn):
    return CatalogRepo().upsert(menu_id, **body.model_dump())


@app.post("/reserve")
def reserve(req: StockRequest):
    """Reserve stock for all items of an order, all or nothing.

    Raises:
        HTTPException: 404 when a menu item does not exist, 422 with the
            offending item when stock is insufficient.
    """
    items = [(it.menu_id, it.quantity) for it in req.items]
    try:
        applied = CatalogRepo().reserve(req.order_id, items)
    except MenuNotFound as e:
        raise HTTPException(status_code=404, detail={"code": "NOT_FOUND", "menu_id": e.menu_id})
    except InsufficientStock as e:
        raise HTTPException(
            status_code=422,
            detail={
                "code": "INSUFFICIENT_STOCK",
                "menu_id": e.menu_id,
                "menu_name": e.menu_name,
                "requested": e.requested,
                "available": e.available,
            },
        )
    return {"reserved": True, "replayed": not applied}


@app.post("/release")
def release(req: StockRequest):
    items = [(it.menu_id, it.quantity) for it in req.items]
    applied = CatalogRepo().release(req.order_id, items)
    return {"released": True, "replayed": not applied}


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = rid
    try:
        response = await call_next(request)
    finally:
        logger.info("request handled", extra={"request_id": rid, "path": request.url.path, "method": request.method})
    response.headers["X-Request-ID"] = rid
    return response
