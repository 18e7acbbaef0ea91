"""Report entity and its lifecycle enums."""

from enum import Enum

from tortoise import fields
from ...common.models import TimestampMixin, generate_ksuid


class ReportType(str, Enum):
    SALES = "sales"
    INVENTORY = "inventory"
    CUSTOMERS = "customers"
    ORDERS = "orders"
    FINANCIAL = "financial"


class ReportFormat(str, Enum):
    JSON = "json"
    PDF = "pdf"
    EXCEL = "excel"


class ReportStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return not _TRANSITIONS[self]

    def can_transition_to(self, target: "ReportStatus") -> bool:
        return target in _TRANSITIONS[self]


# One-directional: no retries and no way back once terminal
_TRANSITIONS: dict[ReportStatus, frozenset[ReportStatus]] = {
    ReportStatus.PENDING: frozenset({ReportStatus.PROCESSING}),
    ReportStatus.PROCESSING: frozenset({ReportStatus.COMPLETED, ReportStatus.ERROR}),
    ReportStatus.COMPLETED: frozenset(),
    ReportStatus.ERROR: frozenset(),
}


class Report(TimestampMixin):
    id = fields.IntField(primary_key=True)
    public_id = fields.CharField(
        max_length=27, unique=True, default=generate_ksuid, db_index=True
    )
    name = fields.CharField(max_length=255)
    type = fields.CharEnumField(ReportType, max_length=20)
    format = fields.CharEnumField(ReportFormat, max_length=10, default=ReportFormat.JSON)
    status = fields.CharEnumField(ReportStatus, max_length=20, default=ReportStatus.PENDING)

    filters = fields.JSONField(default=dict)
    data = fields.JSONField(null=True)  # Only set once status is completed
    error_message = fields.TextField(null=True)  # Only set once status is error

    created_by: fields.ForeignKeyRelation["User"] = fields.ForeignKeyField(
        "models.User", related_name="reports", on_delete=fields.CASCADE
    )

    def __str__(self):
        return f"Report {self.public_id} '{self.name}' ({self.type.value}, {self.status.value})"

    class Meta:
        table = "reports"
        ordering = ["-created_at"]
