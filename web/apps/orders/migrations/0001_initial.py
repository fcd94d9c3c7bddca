import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="MenuItemModel",
            fields=[
                ("id", models.CharField(max_length=64, primary_key=True, serialize=False)),
                ("seller_id", models.CharField(db_index=True, max_length=64)),
                ("store_name", models.CharField(max_length=120)),
                ("name", models.CharField(max_length=120)),
                ("price", models.PositiveIntegerField()),
                ("stock", models.PositiveIntegerField(default=0)),
            ],
            options={
                "db_table": "menu_items",
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("stock__gte", 0)), name="menu_items_stock_non_negative"),
                    models.CheckConstraint(condition=models.Q(("price__gt", 0)), name="menu_items_price_positive"),
                ],
            },
        ),
        migrations.CreateModel(
            name="CartLineModel",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("buyer_id", models.CharField(max_length=64)),
                ("menu_id", models.CharField(max_length=64)),
                ("seller_id", models.CharField(max_length=64)),
                ("store_name", models.CharField(max_length=120)),
                ("menu_name", models.CharField(max_length=120)),
                ("unit_price", models.PositiveIntegerField()),
                ("quantity", models.PositiveIntegerField()),
                ("notes", models.CharField(blank=True, default="", max_length=255)),
                ("added_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "db_table": "cart_lines",
                "ordering": ["id"],
                "constraints": [
                    models.UniqueConstraint(fields=("buyer_id", "menu_id"), name="cart_lines_buyer_menu_unique"),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderModel",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("buyer_id", models.CharField(db_index=True, max_length=64)),
                ("seller_id", models.CharField(db_index=True, max_length=64)),
                ("store_name", models.CharField(max_length=120)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("confirmed", "Confirmed"),
                            ("preparing", "Preparing"),
                            ("ready", "Ready"),
                            ("completed", "Completed"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=16,
                    ),
                ),
                ("payment_method", models.CharField(choices=[("cash", "Cash"), ("qris", "Qris")], max_length=8)),
                ("total_amount", models.PositiveIntegerField()),
                ("created_at", models.DateTimeField()),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "db_table": "orders",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="OrderLineModel",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("position", models.PositiveSmallIntegerField()),
                ("menu_id", models.CharField(max_length=64)),
                ("menu_name", models.CharField(max_length=120)),
                ("unit_price", models.PositiveIntegerField()),
                ("quantity", models.PositiveIntegerField()),
                ("notes", models.CharField(blank=True, default="", max_length=255)),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="lines",
                        to="orders.ordermodel",
                    ),
                ),
            ],
            options={
                "db_table": "order_lines",
                "ordering": ["position"],
            },
        ),
        migrations.CreateModel(
            name="DelayAlertModel",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("order_id", models.UUIDField(unique=True)),
                ("percentage", models.FloatField()),
                ("triggered_at", models.DateTimeField()),
            ],
            options={
                "db_table": "delay_alerts",
            },
        ),
        migrations.CreateModel(
            name="IdempotencyKey",
            fields=[
                ("key", models.CharField(max_length=200, primary_key=True, serialize=False)),
                ("request_hash", models.CharField(max_length=64)),
                ("response_status", models.PositiveSmallIntegerField(default=0)),
                ("response_body", models.JSONField(default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "db_table": "idempotency_keys",
            },
        ),
    ]
