"""Pydantic schemas for authentication, defining the structure for request and response data."""

from pydantic import BaseModel, ConfigDict, Field, EmailStr
from typing import Optional
import datetime


class UserResponse(BaseModel):
    public_id: str = Field(
        ..., description="Public unique identifier for the user (KSUID)"
    )
    username: str = Field(..., description="Username")
    email: EmailStr = Field(..., description="User email address")
    role: str = Field(..., description="User role (customer, employee or admin)")
    state: Optional[str] = Field(None, description="State/region of the user")
    is_active: bool = Field(..., description="Whether the user account is active")
    created_at: datetime.datetime = Field(
        ..., description="Timestamp of when the user was created"
    )

    model_config = ConfigDict(
        from_attributes=True,
        protected_namespaces=(),
    )


class Token(BaseModel):
    access_token: str
    token_type: str
