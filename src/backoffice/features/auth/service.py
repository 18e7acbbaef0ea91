"""Business logic for authentication, such as user creation and retrieval."""
from typing import Optional
from . import models


async def get_user_by_username(username: str) -> Optional[models.User]:
    """Retrieves a user by their username.

    Args:
        username: The username of the user to retrieve.

    Returns:
        The User object if found, otherwise None.
    """
    return await models.User.get_or_none(username=username)


async def get_user_by_email(email: str) -> Optional[models.User]:
    """Retrieves a user by their email address."""
    return await models.User.get_or_none(email=email)


async def create_user(
    username: str,
    email: str,
    hashed_password: str,
    role: models.UserRole = models.UserRole.CUSTOMER,
    state: Optional[str] = None,
) -> models.User:
    """Creates a new user in the database.

    Args:
        username: Unique login name.
        email: Unique email address.
        hashed_password: The bcrypt hash of the user's password.
        role: One of the UserRole values.
        state: Optional state/region (customers only).

    Returns:
        The newly created User object.
    """
    return await models.User.create(
        username=username,
        email=email,
        hashed_password=hashed_password,
        role=role.value,
        state=state,
    )
