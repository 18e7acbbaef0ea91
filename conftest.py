"""
Root conftest for the pytest test suite.

This file contains the main fixtures that are used across the entire test suite.

Each test runs against a fresh, isolated in-memory SQLite database. The API is
exercised in-process through httpx's ASGI transport, on the same event loop as
the database and the report dispatcher, so background report tasks can be
awaited from the test.

Key Fixtures:
- `initialize_test_db`: (autouse) Creates a fresh DB schema and the fixture users.
- `admin_user`, `employee_user`, `customer_user`: The seeded users.
- `report_engine`: An engine with its own cache and dispatcher; pending report
  tasks are drained before the database is torn down.
- `app_for_testing`: The FastAPI app wired to `report_engine`.
- `client`: A non-authenticated httpx.AsyncClient.
- `admin_headers`, `employee_headers`, `customer_headers`: Bearer auth headers.
"""

from typing import Any, AsyncGenerator, Generator

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI
from tortoise import Tortoise

from backoffice.core.config import MODEL_MODULES
from backoffice.features.auth.models import User, UserRole
from backoffice.features.auth.security import get_password_hash
from backoffice.features.reports.dependencies import create_report_engine, get_report_engine
from backoffice.features.reports.engine import ReportEngine

# Import the app
from backoffice.main import app as actual_app

TEST_PASSWORD = "password123"
# bcrypt is slow on purpose; hash once for every seeded user
_TEST_PASSWORD_HASH = get_password_hash(TEST_PASSWORD)

ADMIN_USERNAME = "adminfixture"
EMPLOYEE_USERNAME = "employeefixture"
CUSTOMER_USERNAME = "customerfixture"

SEED_USERS = [
    (ADMIN_USERNAME, UserRole.ADMIN, None),
    (EMPLOYEE_USERNAME, UserRole.EMPLOYEE, None),
    (CUSTOMER_USERNAME, UserRole.CUSTOMER, "SP"),
]


@pytest_asyncio.fixture(scope="function", autouse=True)
async def initialize_test_db() -> AsyncGenerator[None, None]:
    """
    Initializes the database for each test function.

    This async, autouse fixture creates a fresh in-memory database and schema
    for each test and tears it down afterwards.
    """
    test_db_config = {
        "connections": {"default": "sqlite://:memory:"},
        "apps": {
            "models": {
                "models": MODEL_MODULES,
                "default_connection": "default",
            }
        },
    }
    await Tortoise.init(config=test_db_config)
    await Tortoise.generate_schemas()
    for username, role, state in SEED_USERS:
        await User.create(
            username=username,
            email=f"{username}@example.com",
            hashed_password=_TEST_PASSWORD_HASH,
            role=role.value,
            state=state,
        )

    yield

    await Tortoise.close_connections()


@pytest_asyncio.fixture
async def admin_user() -> User:
    return await User.get(username=ADMIN_USERNAME)


@pytest_asyncio.fixture
async def employee_user() -> User:
    return await User.get(username=EMPLOYEE_USERNAME)


@pytest_asyncio.fixture
async def customer_user() -> User:
    return await User.get(username=CUSTOMER_USERNAME)


@pytest_asyncio.fixture(scope="function")
async def report_engine() -> AsyncGenerator[ReportEngine, None]:
    """
    Provides a report engine backed by the test database, with a small
    private cache. Waits for every dispatched report before teardown.
    """
    engine = create_report_engine(cache_max_entries=10)
    yield engine
    await engine.dispatcher.join()


@pytest.fixture(scope="function")
def app_for_testing(report_engine: ReportEngine) -> Generator[FastAPI, Any, None]:
    """
    Provides the FastAPI application with the report engine dependency
    pointed at `report_engine`. The production lifespan never runs under
    the ASGI transport, so the test DB fixture owns the connection.
    """
    actual_app.dependency_overrides[get_report_engine] = lambda: report_engine
    yield actual_app
    actual_app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def client(app_for_testing: FastAPI) -> AsyncGenerator[httpx.AsyncClient, None]:
    """
    Provides a non-authenticated async client.
    """
    transport = httpx.ASGITransport(app=app_for_testing)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def _auth_headers(client: httpx.AsyncClient, username: str) -> dict[str, str]:
    response = await client.post(
        "/api/v1/auth/token", data={"username": username, "password": TEST_PASSWORD}
    )
    if response.status_code != 200:
        raise Exception(f"Authentication failed for {username}: {response.text}")
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest_asyncio.fixture
async def admin_headers(client: httpx.AsyncClient) -> dict[str, str]:
    return await _auth_headers(client, ADMIN_USERNAME)


@pytest_asyncio.fixture
async def employee_headers(client: httpx.AsyncClient) -> dict[str, str]:
    return await _auth_headers(client, EMPLOYEE_USERNAME)


@pytest_asyncio.fixture
async def customer_headers(client: httpx.AsyncClient) -> dict[str, str]:
    return await _auth_headers(client, CUSTOMER_USERNAME)
