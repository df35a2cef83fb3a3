"""
User account model.

Emails are stored lower-cased and usernames are unique. Passwords are only
ever stored as bcrypt hashes (see ``billboard.utils.security``).
"""

import re
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


# Letters, digits, underscore and hyphen
USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{3,50}$")


class User(BaseModel):
    """
    Registered advertiser.

    Attributes:
        id: MongoDB ObjectId as string (aliased from _id).
        email: Unique login email, lower-cased.
        username: Unique public handle.
        hashed_password: bcrypt hash of the password.
        stripe_customer_id: Stripe customer created for saved payment methods.
        created_at: UTC timestamp of registration.
        last_login: UTC timestamp of the most recent successful login.
    """

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    id: str | None = Field(default=None, alias="_id")
    email: EmailStr
    username: str
    hashed_password: str
    stripe_customer_id: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    last_login: datetime | None = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.lower()

    @field_validator("username")
    @classmethod
    def validate_username(cls, value: str) -> str:
        if not USERNAME_PATTERN.match(value):
            raise ValueError(
                "Username must be 3-50 characters: letters, digits, underscore or hyphen"
            )
        return value
