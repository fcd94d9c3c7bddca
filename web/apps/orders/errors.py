"""Typed domain errors for the ordering engine.

Every error carries a stable ``code`` (used by the HTTP layer to pick a
status and by clients to branch on) and a human message describing the
corrective action. They subclass ``ValueError`` so callers that only care
about "the request was rejected" can catch a single type.
"""


class OrderError(ValueError):
    """Base class for all ordering errors.

    Attributes:
        code: Stable machine-readable error code.
        message: Human readable explanation for buyers/sellers.
    """

    code = "ORDER_ERROR"
    default_message = "The request could not be processed."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class EmptyCartError(OrderError):
    code = "EMPTY_CART"
    default_message = "Your cart is empty. Add items before checking out."


class MissingPaymentMethodError(OrderError):
    code = "MISSING_PAYMENT_METHOD"
    default_message = "Select a payment method (cash or qris) before checking out."


class InsufficientStockError(OrderError):
    """Raised when a line asks for more units than the item has in stock.

    Attributes:
        menu_id: Identifier of the offending menu item.
        menu_name: Display name of the offending menu item.
        requested: Quantity requested by the line.
        available: Stock observed at commit time.
    """

    code = "INSUFFICIENT_STOCK"

    def __init__(self, menu_id: str, menu_name: str, requested: int, available: int):
        self.menu_id = menu_id
        self.menu_name = menu_name
        self.requested = requested
        self.available = available
        super().__init__(
            f"Not enough stock for {menu_name}: requested {requested}, only {available} left."
        )


class InvalidStateError(OrderError):
    code = "INVALID_STATE"
    default_message = "This action is not allowed for the order in its current status."


class TerminalStateError(OrderError):
    code = "TERMINAL_STATE"
    default_message = "The order is already completed or cancelled."


class NotOwnerError(OrderError):
    code = "NOT_OWNER"
    default_message = "You are not permitted to perform this action."


class NotFoundError(OrderError):
    code = "NOT_FOUND"
    default_message = "The requested resource does not exist."
