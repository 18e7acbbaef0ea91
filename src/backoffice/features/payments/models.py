"""Payment ledger entries: money in from sales and debt payments, money out as expenses."""

from enum import Enum

from tortoise import fields
from ...common.models import TimestampMixin, generate_ksuid


class PaymentType(str, Enum):
    SALE = "sale"
    DEBT_PAYMENT = "debt_payment"
    EXPENSE = "expense"


class Payment(TimestampMixin):
    id = fields.IntField(primary_key=True)
    public_id = fields.CharField(
        max_length=27, unique=True, default=generate_ksuid, db_index=True
    )

    amount = fields.FloatField()
    type = fields.CharEnumField(PaymentType, max_length=20)
    payment_method = fields.CharField(max_length=50)
    category = fields.CharField(max_length=100, null=True, description="Expense category, e.g. rent")
    description = fields.TextField(null=True)
    payment_date = fields.DatetimeField()

    order: fields.ForeignKeyNullableRelation["Order"] = fields.ForeignKeyField(
        "models.Order", related_name="payments", on_delete=fields.SET_NULL, null=True
    )
    customer: fields.ForeignKeyNullableRelation["User"] = fields.ForeignKeyField(
        "models.User", related_name="payments", on_delete=fields.SET_NULL, null=True
    )

    def __str__(self):
        return f"{self.type.value} {self.amount:.2f} on {self.payment_date:%Y-%m-%d}"

    class Meta:
        table = "payments"
        ordering = ["-payment_date"]
