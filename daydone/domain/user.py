"""User domain models."""

import re

from pydantic import BaseModel, Field, field_validator


# Constants for validation
MAX_NAME_LENGTH = 50


class User(BaseModel):
    """User data transfer object."""

    id: str = Field(..., description="Unique user ID from the record store")
    name: str = Field(..., description="Display name of the user")
    email: str = Field(default="", description="Contact email")
    created: str | None = Field(default=None, description="Creation timestamp (ISO format)")
    updated: str | None = Field(default=None, description="Last update timestamp (ISO format)")


class UserCreate(BaseModel):
    """Payload for adding a user."""

    name: str = Field(..., description="Display name of the user")
    email: str = Field(default="", description="Contact email")

    @field_validator("name")
    @classmethod
    def validate_name_usable(cls, v: str) -> str:
        """Validate name is non-empty after trimming and not too long."""
        v = v.strip()

        if not v:
            raise ValueError("Name cannot be empty")

        if len(v) > MAX_NAME_LENGTH:
            raise ValueError(f"Name too long (max {MAX_NAME_LENGTH} characters)")

        return v

    @field_validator("email")
    @classmethod
    def validate_email_shape(cls, v: str) -> str:
        """Accept an empty email or something that looks like one."""
        v = v.strip()
        if v and not re.match(r"^[^@\s]+@[^@\s]+$", v):
            raise ValueError("Email must look like name@example.com")
        return v
