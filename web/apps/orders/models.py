import uuid
from django.db import models


class MenuItemModel(models.Model):
    id = models.CharField(primary_key=True, max_length=64)
    seller_id = models.CharField(max_length=64, db_index=True)
    store_name = models.CharField(max_length=120)
    name = models.CharField(max_length=120)
    price = models.PositiveIntegerField()
    stock = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "menu_items"
        constraints = [
            models.CheckConstraint(condition=models.Q(stock__gte=0), name="menu_items_stock_non_negative"),
            models.CheckConstraint(condition=models.Q(price__gt=0), name="menu_items_price_positive"),
        ]


class CartLineModel(models.Model):
    buyer_id = models.CharField(max_length=64)
    menu_id = models.CharField(max_length=64)
    seller_id = models.CharField(max_length=64)
    store_name = models.CharField(max_length=120)
    menu_name = models.CharField(max_length=120)
    unit_price = models.PositiveIntegerField()
    quantity = models.PositiveIntegerField()
    notes = models.CharField(max_length=255, blank=True, default="")
    added_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "cart_lines"
        # id keeps insertion order for deterministic seller grouping
        ordering = ["id"]
        constraints = [
            models.UniqueConstraint(fields=["buyer_id", "menu_id"], name="cart_lines_buyer_menu_unique"),
        ]


class OrderModel(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    class Status(models.TextChoices):
        PENDING = "pending"
        CONFIRMED = "confirmed"
        PREPARING = "preparing"
        READY = "ready"
        COMPLETED = "completed"
        CANCELLED = "cancelled"

    class PaymentMethod(models.TextChoices):
        CASH = "cash"
        QRIS = "qris"

    buyer_id = models.CharField(max_length=64, db_index=True)
    seller_id = models.CharField(max_length=64, db_index=True)
    store_name = models.CharField(max_length=120)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PENDING, db_index=True)
    payment_method = models.CharField(max_length=8, choices=PaymentMethod.choices)
    total_amount = models.PositiveIntegerField()
    created_at = models.DateTimeField()
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]


class OrderLineModel(models.Model):
    order = models.ForeignKey(OrderModel, related_name="lines", on_delete=models.CASCADE)
    position = models.PositiveSmallIntegerField()
    menu_id = models.CharField(max_length=64)
    menu_name = models.CharField(max_length=120)
    unit_price = models.PositiveIntegerField()
    quantity = models.PositiveIntegerField()
    notes = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        db_table = "order_lines"
        ordering = ["position"]


class DelayAlertModel(models.Model):
    order_id = models.UUIDField(unique=True)
    percentage = models.FloatField()
    triggered_at = models.DateTimeField()

    class Meta:
        db_table = "delay_alerts"


class IdempotencyKey(models.Model):
    key = models.CharField(primary_key=True, max_length=200)
    request_hash = models.CharField(max_length=64)
    response_status = models.PositiveSmallIntegerField(default=0)
    response_body = models.JSONField(default=dict)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "idempotency_keys"
