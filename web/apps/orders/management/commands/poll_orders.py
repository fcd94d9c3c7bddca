"""Periodic order maintenance, meant to be run by cron or a scheduler.

Confirms pending orders whose auto-confirm delay has elapsed, then scans
orders in the kitchen for delays. Delay alerts are logged and printed;
each order alerts at most once across runs.
"""

from django.core.management.base import BaseCommand
from django.utils import timezone

from apps.orders import providers
from apps.orders.domain import MONITORED


class Command(BaseCommand):
    help = "Auto-confirm due pending orders and report newly delayed orders."

    def add_arguments(self, parser):
        parser.add_argument(
            "--skip-auto-confirm",
            action="store_true",
            help="Only scan for delays; leave pending orders untouched.",
        )

    def handle(self, *args, **options):
        now = timezone.now()
        confirmed = []
        if not options["skip_auto_confirm"]:
            confirmed = providers.get_lifecycle_service().auto_advance_due(now)

        orders = providers.get_order_store().with_status(MONITORED)
        alerts = providers.get_wait_time_monitor().scan(orders, now)

        for alert in alerts:
            self.stdout.write(
                f"DELAYED order={alert.order_id} store={alert.store_name} "
                f"at {alert.percentage:.0f}% of estimate"
            )
        self.stdout.write(self.style.SUCCESS(f"confirmed={len(confirmed)} delayed={len(alerts)}"))
