"""
Read-only data sources for the report aggregators.

Each collaborator store is reached through a small Protocol so aggregators
only depend on grouped totals, never on the ORM. The Tortoise-backed
implementations below pull the needed columns with ``.values(...)`` and
group in Python, which keeps the queries portable across the supported
databases.

Date ranges are inclusive on both ends: ``end_date`` covers the whole day.
Period buckets are calendar months, returned in ascending (year, month)
order.
"""

import datetime
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from tortoise import timezone
from tortoise.queryset import QuerySet

from ..auth.models import User, UserRole
from ..inventory.models import Product
from ..orders.models import Order
from ..payments.models import Payment, PaymentType


UNCATEGORIZED = "Uncategorized"


# Rows returned by the sources
@dataclass(frozen=True)
class PeriodTotal:
    year: int
    month: int
    total: float = 0.0
    count: int = 0

    @property
    def period(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


@dataclass(frozen=True)
class GroupTotal:
    key: Optional[str]
    total: float = 0.0
    count: int = 0


@dataclass(frozen=True)
class CategoryTotal:
    category: str
    count: int
    value: float


@dataclass(frozen=True)
class LowStockProduct:
    product_id: str
    name: str
    stock: int


# Query criteria. None means "no constraint" for every field.
@dataclass(frozen=True)
class OrderCriteria:
    start_date: Optional[datetime.date] = None
    end_date: Optional[datetime.date] = None
    statuses: Optional[Sequence[str]] = None
    payment_methods: Optional[Sequence[str]] = None
    min_total: Optional[float] = None
    max_total: Optional[float] = None
    customer_role: Optional[str] = None


@dataclass(frozen=True)
class UserCriteria:
    role: Optional[str] = UserRole.CUSTOMER.value
    start_date: Optional[datetime.date] = None
    end_date: Optional[datetime.date] = None


@dataclass(frozen=True)
class PaymentCriteria:
    type: Optional[PaymentType] = None
    start_date: Optional[datetime.date] = None
    end_date: Optional[datetime.date] = None


@dataclass(frozen=True)
class ProductCriteria:
    categories: Optional[Sequence[str]] = None


class OrdersSource(Protocol):
    async def sum_by_period(self, criteria: OrderCriteria) -> List[PeriodTotal]: ...

    async def group_by(self, field: str, criteria: OrderCriteria) -> List[GroupTotal]: ...

    async def totals(self, criteria: OrderCriteria) -> GroupTotal: ...


class UsersSource(Protocol):
    async def count(self, criteria: UserCriteria) -> int: ...

    async def count_by_period(self, criteria: UserCriteria) -> List[PeriodTotal]: ...

    async def count_by_field(self, field: str, criteria: UserCriteria) -> Dict[str, int]: ...


class PaymentsSource(Protocol):
    async def sum_by_period(self, criteria: PaymentCriteria) -> List[PeriodTotal]: ...

    async def sum_by_field(self, field: str, criteria: PaymentCriteria) -> Dict[str, float]: ...


class ProductsSource(Protocol):
    async def sum_by_category(self, criteria: ProductCriteria) -> List[CategoryTotal]: ...

    async def list_low_stock(self, threshold: int, page: int = 1, page_size: int = 10) -> List[LowStockProduct]: ...


# Helpers shared by the Tortoise implementations
def _apply_date_range(
    query: QuerySet,
    column: str,
    start_date: Optional[datetime.date],
    end_date: Optional[datetime.date],
) -> QuerySet:
    if start_date:
        start = timezone.make_aware(datetime.datetime.combine(start_date, datetime.time.min))
        query = query.filter(**{f"{column}__gte": start})
    if end_date:
        next_day = end_date + datetime.timedelta(days=1)
        end = timezone.make_aware(datetime.datetime.combine(next_day, datetime.time.min))
        query = query.filter(**{f"{column}__lt": end})
    return query


def _bucket_by_month(rows: Iterable[Dict[str, Any]], date_column: str, amount_column: Optional[str] = None) -> List[PeriodTotal]:
    buckets: Dict[Tuple[int, int], List[float]] = {}
    for row in rows:
        moment = row[date_column]
        if moment is None:
            continue
        bucket = buckets.setdefault((moment.year, moment.month), [0.0, 0])
        if amount_column is not None:
            bucket[0] += row[amount_column] or 0.0
        bucket[1] += 1
    return [
        PeriodTotal(year=year, month=month, total=total, count=int(count))
        for (year, month), (total, count) in sorted(buckets.items())
    ]


def _group_key(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    if isinstance(value, Enum):
        return value.value
    return str(value)


def _check_field(field_name: str, allowed: Sequence[str]) -> None:
    if field_name not in allowed:
        raise ValueError(f"Cannot group by '{field_name}'; expected one of {', '.join(allowed)}")


class TortoiseOrdersSource:
    GROUPABLE_FIELDS = ("status", "payment_method", "customer_id")

    def _query(self, criteria: OrderCriteria) -> QuerySet:
        query = _apply_date_range(Order.all(), "created_at", criteria.start_date, criteria.end_date)
        if criteria.statuses:
            query = query.filter(status__in=list(criteria.statuses))
        if criteria.payment_methods:
            query = query.filter(payment_method__in=list(criteria.payment_methods))
        if criteria.min_total is not None:
            query = query.filter(total_price__gte=criteria.min_total)
        if criteria.max_total is not None:
            query = query.filter(total_price__lte=criteria.max_total)
        if criteria.customer_role:
            query = query.filter(customer__role=criteria.customer_role)
        return query

    async def sum_by_period(self, criteria: OrderCriteria) -> List[PeriodTotal]:
        rows = await self._query(criteria).values("created_at", "total_price")
        return _bucket_by_month(rows, "created_at", "total_price")

    async def group_by(self, field: str, criteria: OrderCriteria) -> List[GroupTotal]:
        _check_field(field, self.GROUPABLE_FIELDS)
        rows = await self._query(criteria).values(field, "total_price")

        groups: Dict[Optional[str], List[float]] = {}
        for row in rows:
            group = groups.setdefault(_group_key(row[field]), [0.0, 0])
            group[0] += row["total_price"] or 0.0
            group[1] += 1
        return [
            GroupTotal(key=key, total=total, count=int(count))
            for key, (total, count) in groups.items()
        ]

    async def totals(self, criteria: OrderCriteria) -> GroupTotal:
        amounts = await self._query(criteria).values_list("total_price", flat=True)
        return GroupTotal(key=None, total=float(sum(a or 0.0 for a in amounts)), count=len(amounts))


class TortoiseUsersSource:
    GROUPABLE_FIELDS = ("role", "state")

    def _query(self, criteria: UserCriteria) -> QuerySet:
        query = _apply_date_range(User.all(), "created_at", criteria.start_date, criteria.end_date)
        if criteria.role:
            query = query.filter(role=criteria.role)
        return query

    async def count(self, criteria: UserCriteria) -> int:
        return await self._query(criteria).count()

    async def count_by_period(self, criteria: UserCriteria) -> List[PeriodTotal]:
        rows = await self._query(criteria).values("created_at")
        return _bucket_by_month(rows, "created_at")

    async def count_by_field(self, field: str, criteria: UserCriteria) -> Dict[str, int]:
        _check_field(field, self.GROUPABLE_FIELDS)
        values = await self._query(criteria).values_list(field, flat=True)
        counts = Counter(key for key in map(_group_key, values) if key is not None)
        return dict(counts.most_common())


class TortoisePaymentsSource:
    GROUPABLE_FIELDS = ("category", "type", "payment_method")

    def _query(self, criteria: PaymentCriteria) -> QuerySet:
        query = _apply_date_range(Payment.all(), "payment_date", criteria.start_date, criteria.end_date)
        if criteria.type:
            query = query.filter(type=criteria.type)
        return query

    async def sum_by_period(self, criteria: PaymentCriteria) -> List[PeriodTotal]:
        rows = await self._query(criteria).values("payment_date", "amount")
        return _bucket_by_month(rows, "payment_date", "amount")

    async def sum_by_field(self, field: str, criteria: PaymentCriteria) -> Dict[str, float]:
        """Amount per distinct value of ``field``, largest first. Rows without a value are skipped."""
        _check_field(field, self.GROUPABLE_FIELDS)
        rows = await self._query(criteria).values(field, "amount")

        sums: Dict[str, float] = {}
        for row in rows:
            key = _group_key(row[field])
            if key is None:
                continue
            sums[key] = sums.get(key, 0.0) + (row["amount"] or 0.0)
        return dict(sorted(sums.items(), key=lambda item: item[1], reverse=True))


class TortoiseProductsSource:
    def _query(self) -> QuerySet:
        return Product.filter(deleted_at__isnull=True)

    async def sum_by_category(self, criteria: ProductCriteria) -> List[CategoryTotal]:
        """Product count and stock value (stock * price) per category, highest value first."""
        query = self._query()
        if criteria.categories:
            query = query.filter(category__name__in=list(criteria.categories))
        rows = await query.values("category__name", "stock", "price")

        totals: Dict[str, List[float]] = {}
        for row in rows:
            category = row["category__name"] or UNCATEGORIZED
            entry = totals.setdefault(category, [0, 0.0])
            entry[0] += 1
            entry[1] += (row["stock"] or 0) * (row["price"] or 0.0)

        categories = [
            CategoryTotal(category=name, count=int(count), value=float(value))
            for name, (count, value) in totals.items()
        ]
        categories.sort(key=lambda c: (-c.value, c.category))
        return categories

    async def list_low_stock(self, threshold: int, page: int = 1, page_size: int = 10) -> List[LowStockProduct]:
        """Products with stock strictly below ``threshold``, lowest stock first."""
        offset = (max(page, 1) - 1) * page_size
        rows = await (
            self._query()
            .filter(stock__lt=threshold)
            .order_by("stock", "name")
            .offset(offset)
            .limit(page_size)
            .values("public_id", "name", "stock")
        )
        return [
            LowStockProduct(product_id=row["public_id"], name=row["name"], stock=row["stock"] or 0)
            for row in rows
        ]


@dataclass
class ReportSources:
    orders: OrdersSource = field(default_factory=TortoiseOrdersSource)
    users: UsersSource = field(default_factory=TortoiseUsersSource)
    payments: PaymentsSource = field(default_factory=TortoisePaymentsSource)
    products: ProductsSource = field(default_factory=TortoiseProductsSource)

    @classmethod
    def default(cls) -> "ReportSources":
        """Sources backed by the application database."""
        return cls()
