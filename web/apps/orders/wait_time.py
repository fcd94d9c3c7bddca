"""Wait-time estimates and delay alerts for orders in the kitchen."""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, List

from .domain import MONITORED, AlertLogPort, Order

logger = logging.getLogger("orders.wait_time")

BASE_MINUTES = 10
PER_ITEM_MINUTES = 3


class WaitStatus(str, Enum):
    ON_TIME = "on-time"
    SLIGHTLY_DELAYED = "slightly-delayed"
    DELAYED = "delayed"


@dataclass(frozen=True)
class WaitReport:
    order_id: str
    estimated_minutes: int
    elapsed_minutes: float
    percentage: float
    status: WaitStatus
    monitored: bool


@dataclass(frozen=True)
class DelayAlert:
    order_id: str
    buyer_id: str
    seller_id: str
    store_name: str
    percentage: float
    triggered_at: datetime


def estimated_minutes(
    order: Order, base_minutes: int = BASE_MINUTES, per_item_minutes: int = PER_ITEM_MINUTES
) -> int:
    """Estimated preparation time: a fixed base plus a per-unit allowance."""
    return base_minutes + order.item_count * per_item_minutes


def classify(elapsed: float, estimated: float) -> tuple[float, WaitStatus]:
    """Return (percentage, status) for ``elapsed`` out of ``estimated`` minutes.

    Up to 100% is on time, up to 150% slightly delayed, beyond that delayed.
    """
    percentage = elapsed / estimated * 100
    if percentage <= 100:
        return percentage, WaitStatus.ON_TIME
    if percentage <= 150:
        return percentage, WaitStatus.SLIGHTLY_DELAYED
    return percentage, WaitStatus.DELAYED


class WaitTimeMonitor:
    """Computes wait reports and raises at most one delay alert per order.

    Args:
        alerts: AlertLogPort remembering which orders already alerted.
        base_minutes: Fixed part of the estimate.
        per_item_minutes: Minutes added per ordered unit.
    """

    def __init__(
        self,
        alerts: AlertLogPort,
        base_minutes: int = BASE_MINUTES,
        per_item_minutes: int = PER_ITEM_MINUTES,
    ):
        self.alerts = alerts
        self.base_minutes = base_minutes
        self.per_item_minutes = per_item_minutes

    def estimated_minutes(self, order: Order) -> int:
        return estimated_minutes(order, self.base_minutes, self.per_item_minutes)

    def wait_status(self, order: Order, now: datetime) -> WaitReport:
        estimated = self.estimated_minutes(order)
        elapsed = (now - order.created_at).total_seconds() / 60
        percentage, status = classify(elapsed, estimated)
        return WaitReport(
            order_id=order.id,
            estimated_minutes=estimated,
            elapsed_minutes=elapsed,
            percentage=percentage,
            status=status,
            monitored=order.status in MONITORED,
        )

    def scan(self, orders: Iterable[Order], now: datetime) -> List[DelayAlert]:
        """Return alerts for monitored orders that newly crossed the delayed threshold.

        Orders that are pending, ready or terminal are ignored. An order
        that already alerted, in this or an earlier scan, is not
        reported again.
        """
        raised = []
        for order in orders:
            if order.status not in MONITORED:
                continue
            report = self.wait_status(order, now)
            if report.status != WaitStatus.DELAYED:
                continue
            if not self.alerts.record(order.id, now, report.percentage):
                continue
            logger.warning(
                "order delayed",
                extra={"order_id": order.id, "seller_id": order.seller_id, "percentage": round(report.percentage, 1)},
            )
            raised.append(
                DelayAlert(
                    order_id=order.id,
                    buyer_id=order.buyer_id,
                    seller_id=order.seller_id,
                    store_name=order.store_name,
                    percentage=report.percentage,
                    triggered_at=now,
                )
            )
        return raised
