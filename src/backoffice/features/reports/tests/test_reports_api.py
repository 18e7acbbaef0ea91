import datetime

import httpx
import pytest
from fastapi import status

from backoffice.features.auth.models import User
from backoffice.features.orders.models import Order
from backoffice.features.reports.engine import ReportEngine
from backoffice.features.reports.models import Report, ReportType
from backoffice.features.reports.schemas import ReportFilters

REPORTS_URL = "/api/v1/reports/"


async def _seed_orders(customer: User):
    utc = datetime.timezone.utc
    for total, method, when in [
        (400.0, "credit", datetime.datetime(2023, 1, 10, 12, tzinfo=utc)),
        (600.0, "credit", datetime.datetime(2023, 1, 20, 12, tzinfo=utc)),
        (1500.0, "cash", datetime.datetime(2023, 2, 5, 12, tzinfo=utc)),
    ]:
        await Order.create(
            customer=customer, total_price=total, payment_method=method,
            status="delivered", created_at=when,
        )


@pytest.mark.asyncio
async def test_reports_require_authentication(client: httpx.AsyncClient):
    response = await client.get(REPORTS_URL)
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.asyncio
async def test_customers_cannot_request_reports(client: httpx.AsyncClient, customer_headers):
    response = await client.post(
        REPORTS_URL, json={"name": "My sales", "type": "sales"}, headers=customer_headers
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert await Report.all().count() == 0


@pytest.mark.asyncio
async def test_create_report_and_poll_until_completed(
    client: httpx.AsyncClient,
    employee_headers,
    customer_user: User,
    report_engine: ReportEngine,
):
    await _seed_orders(customer_user)

    response = await client.post(
        REPORTS_URL,
        json={
            "name": "Sales Q1 2023",
            "type": "sales",
            "filters": {"start_date": "2023-01-01", "end_date": "2023-03-31"},
        },
        headers=employee_headers,
    )
    assert response.status_code == status.HTTP_201_CREATED
    created = response.json()
    assert created["status"] == "pending"
    assert created["data"] is None
    assert created["format"] == "json"
    assert created["filters"]["start_date"] == "2023-01-01"

    await report_engine.dispatcher.join()

    response = await client.get(f"{REPORTS_URL}{created['public_id']}", headers=employee_headers)
    assert response.status_code == status.HTTP_200_OK
    report = response.json()
    assert report["status"] == "completed"
    assert report["error_message"] is None
    assert report["data"] == {
        "total_sales": 2500.0,
        "count": 3,
        "average_sale": 2500.0 / 3,
        "by_period": [
            {"period": "2023-01", "value": 1000.0, "count": 2},
            {"period": "2023-02", "value": 1500.0, "count": 1},
        ],
        "by_payment_method": {"credit": 1000.0, "cash": 1500.0},
    }


@pytest.mark.asyncio
async def test_admins_can_request_reports(client: httpx.AsyncClient, admin_headers, admin_user: User):
    response = await client.post(
        REPORTS_URL, json={"name": "Inventory snapshot", "type": "inventory"}, headers=admin_headers
    )
    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["created_by"] == admin_user.public_id


@pytest.mark.asyncio
async def test_invalid_date_range_is_rejected(client: httpx.AsyncClient, employee_headers):
    response = await client.post(
        REPORTS_URL,
        json={
            "name": "Backwards",
            "type": "orders",
            "filters": {"start_date": "2023-02-01", "end_date": "2023-01-01"},
        },
        headers=employee_headers,
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert await Report.all().count() == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"name": "ab", "type": "sales"},
        {"name": "Unknown type", "type": "weather"},
        {"name": "Bad format", "type": "sales", "format": "csv"},
    ],
)
async def test_malformed_requests_fail_validation(client: httpx.AsyncClient, employee_headers, payload):
    response = await client.post(REPORTS_URL, json=payload, headers=employee_headers)
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


@pytest.mark.asyncio
async def test_list_reports_is_paginated_and_scoped_to_the_caller(
    client: httpx.AsyncClient, employee_headers, admin_headers, report_engine: ReportEngine
):
    for i in range(3):
        response = await client.post(
            REPORTS_URL, json={"name": f"Employee report {i}", "type": "orders"}, headers=employee_headers
        )
        assert response.status_code == status.HTTP_201_CREATED
    await client.post(REPORTS_URL, json={"name": "Admin report", "type": "orders"}, headers=admin_headers)
    await report_engine.dispatcher.join()

    response = await client.get(REPORTS_URL, params={"page": 1, "limit": 2}, headers=employee_headers)
    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["pagination"] == {"page": 1, "limit": 2, "total": 3, "total_pages": 2}
    assert [r["name"] for r in body["reports"]] == ["Employee report 2", "Employee report 1"]

    response = await client.get(REPORTS_URL, params={"page": 2, "limit": 2}, headers=employee_headers)
    assert [r["name"] for r in response.json()["reports"]] == ["Employee report 0"]


@pytest.mark.asyncio
async def test_customers_can_list_their_own_reports(client: httpx.AsyncClient, customer_headers):
    response = await client.get(REPORTS_URL, headers=customer_headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {
        "reports": [],
        "pagination": {"page": 1, "limit": 10, "total": 0, "total_pages": 0},
    }


@pytest.mark.asyncio
async def test_unknown_report_is_404(client: httpx.AsyncClient, employee_headers):
    response = await client.get(f"{REPORTS_URL}nope", headers=employee_headers)
    assert response.status_code == status.HTTP_404_NOT_FOUND
    response = await client.get(f"{REPORTS_URL}nope/download", headers=employee_headers)
    assert response.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.asyncio
async def test_download_lifecycle(
    client: httpx.AsyncClient, employee_headers, employee_user: User, report_engine: ReportEngine
):
    # Stored directly so no computation is in flight
    pending = await report_engine.store.create(
        name="Not yet", report_type=ReportType.SALES, filters=ReportFilters(), owner=employee_user,
    )
    response = await client.get(f"{REPORTS_URL}{pending.public_id}/download", headers=employee_headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"]["status"] == "pending"

    response = await client.post(
        REPORTS_URL, json={"name": "Financials", "type": "financial"}, headers=employee_headers
    )
    report_id = response.json()["public_id"]
    await report_engine.dispatcher.join()

    response = await client.get(f"{REPORTS_URL}{report_id}/download", headers=employee_headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {
        "revenue": 0.0, "expenses": 0.0, "profit": 0.0, "by_category": {}, "by_period": [],
    }

    response = await client.get(
        f"{REPORTS_URL}{report_id}/download", params={"format": "pdf"}, headers=employee_headers
    )
    assert response.status_code == status.HTTP_501_NOT_IMPLEMENTED


@pytest.mark.asyncio
async def test_dashboard_statistics_are_not_stored(
    client: httpx.AsyncClient, customer_headers, customer_user: User, report_engine: ReportEngine
):
    await _seed_orders(customer_user)

    response = await client.get(
        f"{REPORTS_URL}dashboard/orders",
        params={"start_date": "2023-01-01", "end_date": "2023-01-31", "status": ["delivered"]},
        headers=customer_headers,
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {
        "total_orders": 2,
        "total_value": 1000.0,
        "average_value": 500.0,
        "by_status": {"delivered": 2},
        "by_period": [{"period": "2023-01", "value": 1000.0, "count": 2}],
    }
    assert await Report.all().count() == 0
    assert len(report_engine.cache) == 0


@pytest.mark.asyncio
async def test_dashboard_rejects_bad_input(client: httpx.AsyncClient, customer_headers):
    response = await client.get(f"{REPORTS_URL}dashboard/weather", headers=customer_headers)
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    response = await client.get(
        f"{REPORTS_URL}dashboard/sales",
        params={"min_value": 50, "max_value": 5},
        headers=customer_headers,
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
