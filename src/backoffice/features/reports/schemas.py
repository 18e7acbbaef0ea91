"""Report API Schemas

This module defines the Pydantic models used by the report engine and its
HTTP endpoints. It includes schemas for:

1. Report filters and creation requests
2. The per-type report payloads (sales, inventory, customers, orders, financial)
3. Report responses and paginated listings

The report payload is a closed union: exactly one data model per report type,
looked up through ``REPORT_DATA_MODELS``. Stored payloads carry no type tag of
their own; the owning report's ``type`` selects the model that parses them."""
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional, Type, Union
import datetime

from .models import Report, ReportFormat, ReportStatus, ReportType


# 1. Filters and requests
class ReportFilters(BaseModel):
    start_date: Optional[datetime.date] = Field(None, description="Inclusive start of the report period (YYYY-MM-DD)")
    end_date: Optional[datetime.date] = Field(None, description="Inclusive end of the report period (YYYY-MM-DD)")
    status: Optional[List[str]] = Field(None, description="Order statuses to include (orders reports)")
    payment_method: Optional[List[str]] = Field(None, description="Payment methods to include (sales reports)")
    product_category: Optional[List[str]] = Field(None, description="Category names to include (inventory reports)")
    min_value: Optional[float] = Field(None, description="Minimum order total")
    max_value: Optional[float] = Field(None, description="Maximum order total")

    def to_storage(self) -> Dict[str, Any]:
        """JSON-safe dict with unset filters dropped, as persisted on the report."""
        return self.model_dump(mode="json", exclude_none=True)


class ReportCreate(BaseModel):
    name: str = Field(..., min_length=3, max_length=255)
    type: ReportType
    filters: ReportFilters = Field(default_factory=ReportFilters)
    format: ReportFormat = ReportFormat.JSON


# 2. Report payloads
class ReportPayload(BaseModel):
    # Payloads carry no type tag; rejecting unknown keys keeps each one matching a single variant
    model_config = ConfigDict(extra="forbid")


class PeriodValue(BaseModel):
    period: str = Field(..., description="Calendar month as YYYY-MM")
    value: float
    count: int


class SalesReportData(ReportPayload):
    total_sales: float = 0.0
    count: int = 0
    average_sale: float = 0.0
    by_period: List[PeriodValue] = Field(default_factory=list)
    by_payment_method: Dict[str, float] = Field(default_factory=dict)


class CategoryValue(BaseModel):
    category: str
    count: int
    value: float


class LowStockEntry(BaseModel):
    product_id: str
    name: str
    stock: int


class InventoryReportData(ReportPayload):
    total_items: int = 0
    total_value: float = 0.0
    by_category: List[CategoryValue] = Field(default_factory=list)
    low_stock: List[LowStockEntry] = Field(default_factory=list)


class CustomersReportData(ReportPayload):
    total_customers: int = 0
    new_customers: int = 0
    recurring: int = 0
    average_purchase: float = 0.0
    by_location: Dict[str, int] = Field(default_factory=dict)


class OrdersReportData(ReportPayload):
    total_orders: int = 0
    total_value: float = 0.0
    average_value: float = 0.0
    by_status: Dict[str, int] = Field(default_factory=dict)
    by_period: List[PeriodValue] = Field(default_factory=list)


class FinancialPeriod(BaseModel):
    period: str
    revenue: float
    expenses: float
    profit: float


class FinancialReportData(ReportPayload):
    revenue: float = 0.0
    expenses: float = 0.0
    profit: float = 0.0
    by_category: Dict[str, float] = Field(default_factory=dict)
    by_period: List[FinancialPeriod] = Field(default_factory=list)


ReportData = Union[
    SalesReportData,
    InventoryReportData,
    CustomersReportData,
    OrdersReportData,
    FinancialReportData,
]

REPORT_DATA_MODELS: Dict[ReportType, Type[ReportPayload]] = {
    ReportType.SALES: SalesReportData,
    ReportType.INVENTORY: InventoryReportData,
    ReportType.CUSTOMERS: CustomersReportData,
    ReportType.ORDERS: OrdersReportData,
    ReportType.FINANCIAL: FinancialReportData,
}


def parse_report_data(report_type: Union[ReportType, str], raw: Any) -> Optional[ReportData]:
    """Turn a stored payload back into the data model for ``report_type``."""
    if raw is None:
        return None
    model = REPORT_DATA_MODELS[ReportType(report_type)]
    if isinstance(raw, model):
        return raw
    return model.model_validate(raw)


# 3. Responses
class ReportResponse(BaseModel):
    public_id: str
    name: str
    type: ReportType
    format: ReportFormat
    status: ReportStatus
    filters: ReportFilters
    data: Optional[ReportData] = None
    error_message: Optional[str] = None
    created_by: str = Field(..., description="Public id of the user who requested the report")
    created_at: datetime.datetime
    updated_at: datetime.datetime

    @classmethod
    def from_report(cls, report: Report) -> "ReportResponse":
        """Build a response from a report whose ``created_by`` relation is loaded."""
        return cls(
            public_id=report.public_id,
            name=report.name,
            type=report.type,
            format=report.format,
            status=report.status,
            filters=ReportFilters.model_validate(report.filters or {}),
            data=parse_report_data(report.type, report.data),
            error_message=report.error_message,
            created_by=report.created_by.public_id,
            created_at=report.created_at,
            updated_at=report.updated_at,
        )


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class ReportListResponse(BaseModel):
    reports: List[ReportResponse]
    pagination: Pagination
