import datetime

import httpx
import pytest
from fastapi import HTTPException, status
from jose import jwt

from backoffice.core.config import ALGORITHM, SECRET_KEY
from backoffice.features.auth.models import User, UserRole
from backoffice.features.auth.security import (
    create_access_token, get_password_hash, require_roles, verify_password,
)


# test password hashing and verification
def test_password_hashing():
    password = "test_password"
    hashed = get_password_hash(password)
    assert verify_password(password, hashed) is True
    assert verify_password("wrong_password", hashed) is False
    assert hashed != password


# test password hashing uses a fresh salt each time
def test_password_hash_is_salted():
    hashed1 = get_password_hash("test_password")
    hashed2 = get_password_hash("test_password")
    assert hashed1 != hashed2
    assert verify_password("test_password", hashed2) is True


def test_access_token_carries_subject_and_expiry():
    token = create_access_token({"sub": "employeefixture"}, expires_delta=datetime.timedelta(minutes=5))
    payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    assert payload["sub"] == "employeefixture"
    assert payload["exp"] > datetime.datetime.now(datetime.timezone.utc).timestamp()


@pytest.mark.asyncio
async def test_require_roles_lets_staff_through(employee_user: User, customer_user: User):
    check_staff = require_roles(UserRole.ADMIN, UserRole.EMPLOYEE)

    assert await check_staff(employee_user) is employee_user
    with pytest.raises(HTTPException) as exc_info:
        await check_staff(customer_user)
    assert exc_info.value.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.asyncio
async def test_login_with_wrong_password_is_rejected(client: httpx.AsyncClient):
    response = await client.post(
        "/api/v1/auth/token", data={"username": "adminfixture", "password": "nope"}
    )
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.asyncio
async def test_inactive_user_cannot_log_in(client: httpx.AsyncClient, employee_user: User):
    employee_user.is_active = False
    await employee_user.save()

    response = await client.post(
        "/api/v1/auth/token", data={"username": "employeefixture", "password": "password123"}
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.asyncio
async def test_me_returns_the_current_user(client: httpx.AsyncClient, customer_headers, customer_user: User):
    response = await client.get("/api/v1/auth/me", headers=customer_headers)
    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["public_id"] == customer_user.public_id
    assert body["role"] == "customer"
    assert body["state"] == "SP"


@pytest.mark.asyncio
async def test_me_rejects_a_forged_token(client: httpx.AsyncClient):
    forged = jwt.encode({"sub": "adminfixture"}, "not-the-secret", algorithm=ALGORITHM)
    response = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {forged}"})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
