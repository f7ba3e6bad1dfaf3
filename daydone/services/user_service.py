"""User service for adding and listing the people who log hours."""

import logging

from daydone.core import db_client
from daydone.core.logging import span
from daydone.domain.user import User, UserCreate


logger = logging.getLogger(__name__)


async def add_user(*, name: str, email: str = "") -> User:
    """Add a user.

    Args:
        name: Display name; trimmed and required
        email: Contact email (optional)

    Returns:
        The created user

    Raises:
        pydantic.ValidationError: If the name is blank or the email is malformed
        db_client.DatabaseError: If database operation fails
    """
    with span("user_service.add_user"):
        payload = UserCreate(name=name, email=email)

        record = await db_client.create_record(
            collection=db_client.RecordKind.USERS,
            data=payload.model_dump(),
        )
        logger.info("Added user %s (%s)", payload.name, record["id"])

        return User(**record)


async def list_users() -> list[User]:
    """List all users in the order they were added."""
    with span("user_service.list_users"):
        records = await db_client.list_all_records(collection=db_client.RecordKind.USERS, sort="id")
        return [User(**record) for record in records]


async def get_user(*, user_id: str) -> User:
    """Fetch a user by id.

    Raises:
        db_client.RecordNotFoundError: If the user does not exist
    """
    record = await db_client.get_record(collection=db_client.RecordKind.USERS, record_id=user_id)
    return User(**record)
