"""HTTP catalog client with retries, a circuit breaker and context headers.

This module implements ``CatalogPort`` against the standalone catalog
service using ``httpx``. It adds:

- Request correlation: propagates ``X-Request-ID`` from the ContextVar set
    by the gateway middleware.
- A circuit breaker so an unhealthy catalog service is not hammered, with
    a single HALF_OPEN probe after the reset timeout.
- Retries with exponential backoff for transport errors and 5xx. Reserve
    and release are keyed by order id on the service side, so a retried
    call is applied at most once.
"""

import threading
import time
from enum import Enum
from typing import Optional, Sequence

import httpx
from django.conf import settings

from gateway.middleware import REQUEST_ID_CTX

from .domain import CatalogPort, MenuItem, OrderLine
from .errors import InsufficientStockError, NotFoundError


# ---------------- Circuit Breaker ---------------- #

class CircuitState(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class CircuitOpenError(RuntimeError):
    """Raised when a call is refused because the breaker is open."""


class CircuitBreaker:
    """Thread-safe circuit breaker.

    Transitions:
    - CLOSED -> OPEN after ``fail_threshold`` consecutive failures.
    - OPEN -> HALF_OPEN once ``reset_timeout`` seconds have passed.
    - HALF_OPEN -> CLOSED on a successful probe, back to OPEN on failure.
      Only one probe may be in flight at a time.
    """

    def __init__(self, name: str, fail_threshold: int, reset_timeout: float, clock=time.monotonic):
        self.name = name
        self.fail_threshold = fail_threshold
        self.reset_timeout = reset_timeout
        self._clock = clock
        self._lock = threading.RLock()
        self._failures = 0
        self._state = CircuitState.CLOSED
        self._opened_at = 0.0
        self._probing = False

    @property
    def state(self) -> CircuitState:
        with self._lock:
            if self._state == CircuitState.OPEN and self._clock() - self._opened_at >= self.reset_timeout:
                self._state = CircuitState.HALF_OPEN
                self._probing = False
            return self._state

    def before_call(self) -> CircuitState:
        """Admit a call or refuse it.

        Raises:
            CircuitOpenError: If the circuit is OPEN, or HALF_OPEN with a
                probe already in flight.
        """
        with self._lock:
            st = self.state
            if st == CircuitState.OPEN:
                raise CircuitOpenError(f"{self.name}: circuit open")
            if st == CircuitState.HALF_OPEN:
                if self._probing:
                    raise CircuitOpenError(f"{self.name}: probe in flight")
                self._probing = True
            return st

    def on_success(self):
        with self._lock:
            self._failures = 0
            self._state = CircuitState.CLOSED
            self._probing = False

    def on_failure(self):
        with self._lock:
            self._failures += 1
            if self._state == CircuitState.HALF_OPEN or (
                self._failures >= self.fail_threshold and self._state != CircuitState.OPEN
            ):
                self._state = CircuitState.OPEN
                self._opened_at = self._clock()
            self._probing = False

    def on_finish(self):
        with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                self._probing = False


_catalog_cb = CircuitBreaker(
    "catalog",
    getattr(settings, "HTTP_CIRCUIT_FAIL_THRESHOLD", 5),
    getattr(settings, "HTTP_CIRCUIT_RESET_TIMEOUT", 30.0),
)


# ---------------- Helpers ---------------- #

def _request_headers(extra: Optional[dict] = None) -> dict:
    headers: dict[str, str] = {}
    rid = REQUEST_ID_CTX.get()
    if rid and rid != "-":
        headers["X-Request-ID"] = rid
    if extra:
        headers.update(extra)
    return headers


def _retry_policy():
    """Return (max_retries, backoff_base_seconds, max_sleep_seconds)."""
    return (
        getattr(settings, "HTTP_RETRY_MAX", 3),
        getattr(settings, "HTTP_RETRY_BACKOFF_BASE", 0.15),
        getattr(settings, "HTTP_RETRY_MAX_SLEEP", 0.5),
    )


def _should_retry(resp: Optional[httpx.Response], exc: Optional[Exception]) -> bool:
    # Retry only on transport errors or 5xx
    if exc is not None:
        return True
    return resp is not None and 500 <= resp.status_code < 600


def _items_payload(order_id: str, lines: Sequence[OrderLine]) -> dict:
    return {
        "order_id": order_id,
        "items": [{"menu_id": ln.menu_id, "quantity": ln.quantity} for ln in lines],
    }


# ---------------- Catalog Adapter ---------------- #

class HttpCatalogClient(CatalogPort):
    """``CatalogPort`` backed by the catalog service.

    Business responses (404, 422) are mapped to domain errors and do not
    count as circuit failures; transport errors and 5xx are retried and,
    once retries are exhausted, raised as ``httpx`` exceptions.
    """

    transactional = False

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = base_url or settings.CATALOG_BASE_URL
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECS

    def get(self, menu_id: str) -> MenuItem:
        resp = self._send("GET", f"/menus/{menu_id}", ok=(200, 404))
        if resp.status_code == 404:
            raise NotFoundError(f"Menu item {menu_id} does not exist.")
        return MenuItem(**resp.json())

    def reserve(self, order_id: str, lines: Sequence[OrderLine]) -> None:
        resp = self._send("POST", "/reserve", json=_items_payload(order_id, lines), ok=(200, 404, 422))
        if resp.status_code == 200:
            return
        detail = resp.json().get("detail")
        if not isinstance(detail, dict):
            # Request validation errors come back as a list.
            resp.raise_for_status()
        if resp.status_code == 404:
            raise NotFoundError(f"Menu item {detail.get('menu_id')} does not exist.")
        raise InsufficientStockError(
            detail.get("menu_id", ""),
            detail.get("menu_name", ""),
            detail.get("requested", 0),
            detail.get("available", 0),
        )

    def release(self, order_id: str, lines: Sequence[OrderLine]) -> None:
        self._send("POST", "/release", json=_items_payload(order_id, lines), ok=(200,))

    def _send(self, method: str, path: str, json: dict | None = None, ok=(200,)) -> httpx.Response:
        """Perform one logical call with retry and circuit breaker handling.

        Args:
            method: ``GET`` or ``POST``.
            path: Path relative to ``base_url``.
            json: Request body for POST calls.
            ok: Status codes returned to the caller as business outcomes.

        Returns:
            httpx.Response: A response whose status is in ``ok``.

        Raises:
            CircuitOpenError: If the breaker refuses the call.
            httpx.RequestError: For transport errors after retries.
            httpx.HTTPStatusError: For other non-2xx responses.
        """
        max_retries, backoff, max_sleep = _retry_policy()
        url = f"{self.base_url}{path}"
        tries = 0

        state = _catalog_cb.before_call()
        headers = _request_headers({"X-Circuit-State": state.value, "X-Retry-Count": "0"})

        try:
            with httpx.Client(timeout=self.timeout) as client:
                while True:
                    resp = None
                    exc = None
                    try:
                        if method == "GET":
                            resp = client.get(url, headers=headers)
                        else:
                            resp = client.post(url, json=json, headers=headers)
                        if resp.status_code in ok:
                            _catalog_cb.on_success()
                            return resp
                        if not _should_retry(resp, None):
                            _catalog_cb.on_success()  # the service answered; not a circuit failure
                            resp.raise_for_status()
                    except httpx.RequestError as e:
                        exc = e

                    tries += 1
                    if tries > max_retries:
                        _catalog_cb.on_failure()
                        if exc:
                            raise exc
                        resp.raise_for_status()

                    headers["X-Retry-Count"] = str(tries)
                    time.sleep(min(backoff * (2 ** (tries - 1)), max_sleep))
        finally:
            _catalog_cb.on_finish()
