"""
Report aggregators.

One async function per report type turns validated filters into that type's
payload by querying the collaborator sources. Aggregators are pure with
respect to the report store: they never touch reports or the cache, and any
exception they raise is recorded on the report by the engine.

Averages and ratios are 0 when the denominator is 0, so an empty store
yields a zero-valued payload of the right shape.
"""

from typing import Awaitable, Callable, Dict, Iterable, Tuple

from ...core.config import LOW_STOCK_PAGE_SIZE, LOW_STOCK_THRESHOLD
from ..auth.models import UserRole
from ..payments.models import PaymentType
from .models import ReportType
from .schemas import (
    CategoryValue, CustomersReportData, FinancialPeriod, FinancialReportData,
    InventoryReportData, LowStockEntry, OrdersReportData, PeriodValue,
    ReportData, ReportFilters, SalesReportData,
)
from .sources import (
    OrderCriteria, PaymentCriteria, PeriodTotal, ProductCriteria,
    ReportSources, UserCriteria,
)


Aggregator = Callable[[ReportFilters, ReportSources], Awaitable[ReportData]]


def safe_ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator else 0.0


def _chronological(periods: Iterable[PeriodTotal]) -> list[PeriodTotal]:
    return sorted(periods, key=lambda p: (p.year, p.month))


async def aggregate_sales(filters: ReportFilters, sources: ReportSources) -> SalesReportData:
    """Revenue over time and per payment method.

    Honors the date range, payment methods and the order total bounds.
    """
    criteria = OrderCriteria(
        start_date=filters.start_date,
        end_date=filters.end_date,
        payment_methods=filters.payment_method or None,
        min_total=filters.min_value,
        max_total=filters.max_value,
    )
    periods = _chronological(await sources.orders.sum_by_period(criteria))
    methods = await sources.orders.group_by("payment_method", criteria)

    total_sales = sum(p.total for p in periods)
    count = sum(p.count for p in periods)
    return SalesReportData(
        total_sales=total_sales,
        count=count,
        average_sale=safe_ratio(total_sales, count),
        by_period=[PeriodValue(period=p.period, value=p.total, count=p.count) for p in periods],
        by_payment_method={g.key: g.total for g in methods if g.key is not None},
    )


async def aggregate_inventory(
    filters: ReportFilters,
    sources: ReportSources,
    *,
    low_stock_threshold: int = LOW_STOCK_THRESHOLD,
    low_stock_limit: int = LOW_STOCK_PAGE_SIZE,
) -> InventoryReportData:
    categories = await sources.products.sum_by_category(
        ProductCriteria(categories=filters.product_category or None)
    )
    # Low stock is a store-wide alert list, independent of the category filter
    low_stock = await sources.products.list_low_stock(
        threshold=low_stock_threshold, page=1, page_size=low_stock_limit
    )

    return InventoryReportData(
        total_items=sum(c.count for c in categories),
        total_value=sum(c.value for c in categories),
        by_category=[
            CategoryValue(category=c.category, count=c.count, value=c.value)
            for c in sorted(categories, key=lambda c: c.value, reverse=True)
        ],
        low_stock=[
            LowStockEntry(product_id=p.product_id, name=p.name, stock=p.stock)
            for p in low_stock
        ],
    )


async def aggregate_customers(filters: ReportFilters, sources: ReportSources) -> CustomersReportData:
    """Customer base figures.

    Counts are scoped to customers who signed up inside the date range.
    Recurring customers are counted over all orders placed by customers, and
    the average purchase over all orders.
    """
    customers = UserCriteria(
        role=UserRole.CUSTOMER.value,
        start_date=filters.start_date,
        end_date=filters.end_date,
    )
    total_customers = await sources.users.count(customers)
    signups = await sources.users.count_by_period(customers)
    by_location = await sources.users.count_by_field("state", customers)

    per_customer = await sources.orders.group_by(
        "customer_id", OrderCriteria(customer_role=UserRole.CUSTOMER.value)
    )
    overall = await sources.orders.totals(OrderCriteria())

    return CustomersReportData(
        total_customers=total_customers,
        new_customers=sum(p.count for p in signups),
        recurring=sum(1 for g in per_customer if g.key is not None and g.count > 1),
        average_purchase=safe_ratio(overall.total, overall.count),
        by_location=by_location,
    )


async def aggregate_orders(filters: ReportFilters, sources: ReportSources) -> OrdersReportData:
    criteria = OrderCriteria(
        start_date=filters.start_date,
        end_date=filters.end_date,
        statuses=filters.status or None,
        min_total=filters.min_value,
        max_total=filters.max_value,
    )
    statuses = await sources.orders.group_by("status", criteria)
    periods = _chronological(await sources.orders.sum_by_period(criteria))

    total_orders = sum(g.count for g in statuses)
    total_value = sum(g.total for g in statuses)
    return OrdersReportData(
        total_orders=total_orders,
        total_value=total_value,
        average_value=safe_ratio(total_value, total_orders),
        by_status={g.key: g.count for g in statuses if g.key is not None},
        by_period=[PeriodValue(period=p.period, value=p.total, count=p.count) for p in periods],
    )


async def aggregate_financial(filters: ReportFilters, sources: ReportSources) -> FinancialReportData:
    """Revenue (sale payments) against expenses, merged per calendar month."""
    revenue_periods = await sources.payments.sum_by_period(
        PaymentCriteria(type=PaymentType.SALE, start_date=filters.start_date, end_date=filters.end_date)
    )
    expense_criteria = PaymentCriteria(
        type=PaymentType.EXPENSE, start_date=filters.start_date, end_date=filters.end_date
    )
    expense_periods = await sources.payments.sum_by_period(expense_criteria)
    by_category = await sources.payments.sum_by_field("category", expense_criteria)

    merged: Dict[Tuple[int, int], list[float]] = {}
    for p in revenue_periods:
        merged.setdefault((p.year, p.month), [0.0, 0.0])[0] += p.total
    for p in expense_periods:
        merged.setdefault((p.year, p.month), [0.0, 0.0])[1] += p.total

    revenue = sum(p.total for p in revenue_periods)
    expenses = sum(p.total for p in expense_periods)
    return FinancialReportData(
        revenue=revenue,
        expenses=expenses,
        profit=revenue - expenses,
        by_category=dict(sorted(by_category.items(), key=lambda item: item[1], reverse=True)),
        by_period=[
            FinancialPeriod(
                period=f"{year:04d}-{month:02d}",
                revenue=period_revenue,
                expenses=period_expenses,
                profit=period_revenue - period_expenses,
            )
            for (year, month), (period_revenue, period_expenses) in sorted(merged.items())
        ],
    )


AGGREGATORS: Dict[ReportType, Aggregator] = {
    ReportType.SALES: aggregate_sales,
    ReportType.INVENTORY: aggregate_inventory,
    ReportType.CUSTOMERS: aggregate_customers,
    ReportType.ORDERS: aggregate_orders,
    ReportType.FINANCIAL: aggregate_financial,
}
