"""HTTP views for the cart, checkout and order lifecycle.

Views are kept intentionally small: they validate requests (via Pydantic),
delegate to the domain services obtained from ``providers`` and map the
outcome to an HTTP response. Domain errors carry a stable ``code`` that is
returned as ``detail`` together with a human readable ``message``.

Idempotency: when an ``Idempotency-Key`` header is sent to the checkout
endpoint, the first request is processed and its response stored;
retries with the same payload replay the stored response (header
``Idempotent-Replay: true``), and reusing the key with a different
payload returns HTTP 409.
"""

import logging

import httpx
from django.utils import timezone
from pydantic import ValidationError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from . import providers
from .errors import InsufficientStockError, NotFoundError, OrderError
from .http_adapters import CircuitOpenError
from .idempotency import IdempotencyConflict, discard, finalize, get_or_create_idempotent
from .schemas import (
    AddCartLineDTO,
    CartLineOut,
    CheckoutDTO,
    OrderReadDTO,
    SellerGroupOut,
    TransitionDTO,
    UpdateCartLineDTO,
    WaitStatusOut,
)

logger = logging.getLogger("orders.api")

ERROR_STATUS = {
    "EMPTY_CART": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "MISSING_PAYMENT_METHOD": status.HTTP_400_BAD_REQUEST,
    "INSUFFICIENT_STOCK": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "INVALID_STATE": status.HTTP_409_CONFLICT,
    "TERMINAL_STATE": status.HTTP_409_CONFLICT,
    "NOT_OWNER": status.HTTP_403_FORBIDDEN,
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
}

UPSTREAM_ERRORS = (httpx.HTTPError, CircuitOpenError)


def _error_body(e: OrderError) -> dict:
    body = {"detail": e.code, "message": e.message}
    if isinstance(e, InsufficientStockError):
        body["menu_id"] = e.menu_id
        body["menu_name"] = e.menu_name
    return body


def _error_response(e: OrderError) -> Response:
    return Response(_error_body(e), status=ERROR_STATUS.get(e.code, status.HTTP_400_BAD_REQUEST))


def _upstream_unavailable(e: Exception) -> Response:
    logger.error("catalog unavailable", extra={"error": repr(e)})
    return Response({"detail": "UPSTREAM_UNAVAILABLE"}, status=status.HTTP_503_SERVICE_UNAVAILABLE)


def _invalid(e: ValidationError) -> Response:
    return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)


class OrdersPingView(APIView):
    """Liveness endpoint for health checks and smoke tests."""

    def get(self, request):
        return Response({"ok": True})


class CartView(APIView):
    """Read or clear a buyer's cart."""

    def get(self, request, buyer_id: str):
        """Return the cart lines and their per-seller groups.

        Returns:
            Response: 200 with ``lines``, ``groups`` and ``total_amount``.
        """
        service = providers.get_cart_service()
        lines = service.lines(buyer_id)
        groups = service.groups(buyer_id)
        return Response(
            {
                "buyer_id": buyer_id,
                "lines": [CartLineOut.from_domain(ln).model_dump() for ln in lines],
                "groups": [SellerGroupOut.from_domain(g).model_dump() for g in groups],
                "total_amount": sum(g.subtotal for g in groups),
            }
        )

    def delete(self, request, buyer_id: str):
        providers.get_cart_service().clear(buyer_id)
        return Response(status=status.HTTP_204_NO_CONTENT)


class CartLinesView(APIView):
    def post(self, request, buyer_id: str):
        """Add a menu item to the cart (quantities merge per item).

        Returns:
            Response: 201 with the resulting line, 400 on validation
            errors, 404 when the menu item does not exist.
        """
        try:
            dto = AddCartLineDTO.model_validate(request.data)
        except ValidationError as e:
            return _invalid(e)
        try:
            line = providers.get_cart_service().add(buyer_id, dto.menu_id, dto.quantity, dto.notes)
        except OrderError as e:
            return _error_response(e)
        except UPSTREAM_ERRORS as e:
            return _upstream_unavailable(e)
        return Response(CartLineOut.from_domain(line).model_dump(), status=status.HTTP_201_CREATED)


class CartLineDetailView(APIView):
    def patch(self, request, buyer_id: str, menu_id: str):
        try:
            dto = UpdateCartLineDTO.model_validate(request.data)
        except ValidationError as e:
            return _invalid(e)
        try:
            line = providers.get_cart_service().update_quantity(buyer_id, menu_id, dto.quantity)
        except OrderError as e:
            return _error_response(e)
        if line is None:
            return Response(status=status.HTTP_204_NO_CONTENT)
        return Response(CartLineOut.from_domain(line).model_dump())

    def delete(self, request, buyer_id: str, menu_id: str):
        try:
            providers.get_cart_service().remove(buyer_id, menu_id)
        except OrderError as e:
            return _error_response(e)
        return Response(status=status.HTTP_204_NO_CONTENT)


class CheckoutView(APIView):
    """Turn a buyer's cart into one order per seller."""

    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "checkout"

    def post(self, request):
        """Check out the buyer's cart.

        Returns:
            Response: One of the following responses.
            - 201 with {orders, failures} when at least one seller group
              became an order; ``failures`` lists groups left in the cart.
            - 200/4xx replay of the stored response for a retried
              ``Idempotency-Key`` with the same payload.
            - 409 IDEMPOTENCY_CONFLICT when the key is reused with a
              different payload.
            - 400 for validation errors or MISSING_PAYMENT_METHOD.
            - 422 EMPTY_CART, or INSUFFICIENT_STOCK when no group could
              be committed.
            - 503 UPSTREAM_UNAVAILABLE when the catalog service is down.
            - 503 CHECKOUT_FAILED on an unexpected error; the
              ``Idempotency-Key`` is released so a retry is processed.
        """
        idem_key = request.headers.get("Idempotency-Key")

        try:
            dto = CheckoutDTO.model_validate(request.data)
        except ValidationError as e:
            return _invalid(e)

        rec = None
        if idem_key:
            try:
                existing, rec = get_or_create_idempotent(idem_key, request.data)
            except IdempotencyConflict:
                return Response({"detail": "IDEMPOTENCY_CONFLICT"}, status=status.HTTP_409_CONFLICT)
            if existing:
                if not rec.response_status:
                    return Response({"detail": "REQUEST_IN_PROGRESS"}, status=status.HTTP_409_CONFLICT)
                resp = Response(rec.response_body, status=rec.response_status)
                resp["Idempotent-Replay"] = "true"
                return resp

        try:
            result = providers.get_checkout_service().checkout_detailed(dto.buyer_id, dto.payment_method)
        except OrderError as e:
            body, code = _error_body(e), ERROR_STATUS.get(e.code, status.HTTP_400_BAD_REQUEST)
        except UPSTREAM_ERRORS as e:
            body, code = {"detail": "UPSTREAM_UNAVAILABLE"}, status.HTTP_503_SERVICE_UNAVAILABLE
            logger.error("catalog unavailable during checkout", extra={"error": repr(e)})
        except Exception:
            logger.exception("checkout failed", extra={"buyer_id": dto.buyer_id})
            if rec:
                # Release the key so a retry is processed instead of reported in progress.
                discard(rec)
            return Response({"detail": "CHECKOUT_FAILED"}, status=status.HTTP_503_SERVICE_UNAVAILABLE)
        else:
            body = {
                "orders": [OrderReadDTO.from_domain(o).model_dump(mode="json") for o in result.orders],
                "failures": [
                    {"seller_id": f.seller_id, "store_name": f.store_name, **_error_body(f.error)}
                    for f in result.failures
                ],
            }
            code = status.HTTP_201_CREATED

        if rec:
            finalize(rec, code, body)
        return Response(body, status=code)


class RetrieveOrderView(APIView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "orders_detail"

    def get(self, request, oid):
        try:
            order = providers.get_lifecycle_service().get(str(oid))
        except NotFoundError as e:
            return _error_response(e)
        return Response(OrderReadDTO.from_domain(order).model_dump(mode="json"))


class OrderTransitionView(APIView):
    """Apply a lifecycle action (``cancel``, ``advance`` or ``complete``)."""

    action = None

    def post(self, request, oid):
        try:
            dto = TransitionDTO.model_validate(request.data)
        except ValidationError as e:
            return _invalid(e)

        service = providers.get_lifecycle_service()
        handler = getattr(service, self.action)
        try:
            order = handler(str(oid), dto.requester_id)
        except OrderError as e:
            return _error_response(e)
        except UPSTREAM_ERRORS as e:
            return _upstream_unavailable(e)
        return Response(OrderReadDTO.from_domain(order).model_dump(mode="json"))


class WaitStatusView(APIView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "orders_detail"

    def get(self, request, oid):
        try:
            order = providers.get_lifecycle_service().get(str(oid))
        except NotFoundError as e:
            return _error_response(e)
        report = providers.get_wait_time_monitor().wait_status(order, timezone.now())
        return Response(WaitStatusOut.from_report(report, order).model_dump())
