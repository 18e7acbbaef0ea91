"""Data models for the product catalogue: Category and Product."""

from tortoise import fields
from ...common.models import TimestampMixin, generate_ksuid


class Category(TimestampMixin):
    id = fields.IntField(primary_key=True)
    public_id = fields.CharField(
        max_length=27, unique=True, default=generate_ksuid, db_index=True
    )
    name = fields.CharField(max_length=100, unique=True)
    description = fields.TextField(null=True)

    products: fields.ReverseRelation["Product"]

    def __str__(self):
        return self.name

    class Meta:
        table = "categories"


class Product(TimestampMixin):
    id = fields.IntField(primary_key=True)
    public_id = fields.CharField(
        max_length=27, unique=True, default=generate_ksuid, db_index=True
    )
    name = fields.CharField(max_length=255)
    # Both nullable: stock/price are filled in by purchasing and may be missing
    stock = fields.IntField(null=True, default=0)
    price = fields.FloatField(null=True, default=0.0, description="Current unit price")
    deleted_at = fields.DatetimeField(null=True, default=None)  # For soft delete

    category: fields.ForeignKeyRelation[Category] = fields.ForeignKeyField(
        "models.Category",
        related_name="products",
        on_delete=fields.SET_NULL,
        null=True,
    )

    def __str__(self):
        return f"{self.name} (Stock: {self.stock or 0}, Price: ${self.price or 0.0:.2f})"

    class Meta:
        table = "products"
