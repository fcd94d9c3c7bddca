"""Cart operations and the per-seller cart aggregator."""

import logging
from typing import Iterable, List

from .domain import CartLine, CartPort, CatalogPort, SellerGroup
from .errors import NotFoundError

logger = logging.getLogger("orders.cart")


def aggregate(lines: Iterable[CartLine]) -> List[SellerGroup]:
    """Group cart lines by seller and compute per-seller subtotals.

    Groups come out in order of the first line seen for each seller.
    Lines with a non-positive quantity are removal requests, not
    aggregation input, and are skipped.

    Args:
        lines: A buyer's cart lines.

    Returns:
        List of SellerGroup, one per distinct seller.
    """
    groups: dict[str, SellerGroup] = {}
    for line in lines:
        if line.quantity <= 0:
            continue
        group = groups.get(line.seller_id)
        if group is None:
            group = groups[line.seller_id] = SellerGroup(line.seller_id, line.store_name)
        group.lines.append(line)
    return list(groups.values())


class CartService:
    """Buyer-facing cart operations on top of the cart and catalog ports."""

    def __init__(self, carts: CartPort, catalog: CatalogPort):
        self.carts = carts
        self.catalog = catalog

    def add(self, buyer_id: str, menu_id: str, quantity: int = 1, notes: str = "") -> CartLine:
        """Add ``quantity`` units of a menu item to the buyer's cart.

        If the buyer already has a line for the item the quantities are
        merged; price, names and store are snapshotted from the catalog on
        first add.

        Raises:
            ValueError: If ``quantity`` is not positive.
            NotFoundError: If the menu item does not exist.
        """
        if quantity <= 0:
            raise ValueError("quantity must be positive")
        line = self.carts.get(buyer_id, menu_id)
        if line is None:
            item = self.catalog.get(menu_id)
            line = CartLine(
                buyer_id=buyer_id,
                menu_id=item.id,
                seller_id=item.seller_id,
                store_name=item.store_name,
                menu_name=item.name,
                unit_price=item.price,
                quantity=quantity,
                notes=notes,
            )
        else:
            line.quantity += quantity
            if notes:
                line.notes = notes
        self.carts.save(line)
        return line

    def update_quantity(self, buyer_id: str, menu_id: str, quantity: int) -> CartLine | None:
        """Set a line's quantity; zero or less removes the line.

        Returns:
            The updated line, or None when the line was removed.

        Raises:
            NotFoundError: If the buyer has no line for ``menu_id``.
        """
        line = self.carts.get(buyer_id, menu_id)
        if line is None:
            raise NotFoundError("This item is not in your cart.")
        if quantity <= 0:
            self.carts.remove(buyer_id, [menu_id])
            return None
        line.quantity = quantity
        self.carts.save(line)
        return line

    def remove(self, buyer_id: str, menu_id: str) -> None:
        if self.carts.get(buyer_id, menu_id) is None:
            raise NotFoundError("This item is not in your cart.")
        self.carts.remove(buyer_id, [menu_id])

    def clear(self, buyer_id: str) -> None:
        self.carts.clear(buyer_id)
        logger.info("cart cleared", extra={"buyer_id": buyer_id})

    def lines(self, buyer_id: str) -> List[CartLine]:
        return self.carts.lines(buyer_id)

    def groups(self, buyer_id: str) -> List[SellerGroup]:
        return aggregate(self.carts.lines(buyer_id))
