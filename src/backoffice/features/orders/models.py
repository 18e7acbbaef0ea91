from enum import Enum

from tortoise import fields
from ...common.models import TimestampMixin, generate_ksuid


class OrderStatus(str, Enum):
    PENDING = "pending"
    IN_PRODUCTION = "in_production"
    READY = "ready"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"
    CASH = "cash"
    PIX = "pix"
    INSTALLMENT = "installment"


class Order(TimestampMixin):
    id = fields.IntField(primary_key=True)
    public_id = fields.CharField(
        max_length=27, unique=True, default=generate_ksuid, db_index=True
    )

    customer: fields.ForeignKeyRelation["User"] = fields.ForeignKeyField(
        "models.User", related_name="orders", on_delete=fields.RESTRICT
    )
    status = fields.CharField(max_length=50, default=OrderStatus.PENDING.value)
    payment_method = fields.CharField(max_length=50)
    total_price = fields.FloatField()
    discount = fields.FloatField(default=0.0)

    def __str__(self):
        return f"Order {self.public_id} - {self.total_price:.2f} ({self.status})"

    class Meta:
        table = "orders"
        ordering = ["-created_at"]
