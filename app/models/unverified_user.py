# app/models/unverified_user.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field


class UnverifiedUser(SQLModel, table=True):
    """
    Pending signup awaiting email confirmation.

    Several pending rows may share a username; uniqueness is only enforced
    when a row is promoted to a User. Rows are never updated: they are
    inserted on signup and deleted when their token is consumed.
    """

    __tablename__ = "unverified_users"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    username: str = Field(index=True)
    email: str
    password_hash: str

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_type=DateTime(timezone=True),
    )

    verification_token: str = Field(unique=True, index=True)
    verification_token_expires_at: datetime = Field(
        sa_type=DateTime(timezone=True),
    )
