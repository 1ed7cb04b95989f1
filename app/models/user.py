# app/models/user.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field


# Settings columns, in the order they appear in the embedded settings record
SETTING_FIELDS: tuple[str, ...] = (
    "theme",
    "text_size",
    "text_boldness",
    "font",
    "line_spacing",
    "background_color",
    "text_color",
    "button_color",
)

# Applied when an account is confirmed (or created through Google sign-in)
DEFAULT_SETTINGS: dict[str, str] = {
    "theme": "LightMode",
    "text_size": "medium",
    "text_boldness": "normal",
    "font": "Arial",
    "line_spacing": "1",
    "background_color": "#ffffff",
    "text_color": "#000000",
    "button_color": "#5c0707",
}


class User(SQLModel, table=True):
    """
    Confirmed (ACTIVE) forum account.

    Identity:
      - id: assigned at creation, never changes
      - username: unique across all confirmed accounts

    Settings:
      - one column per display preference; read together as the
        `settings` record and changed one field at a time

    Password reset:
      - reset_token / reset_token_expires_at are only set while a reset
        request is outstanding and are cleared together when consumed
    """

    __tablename__ = "users"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    username: str = Field(
        unique=True,
        index=True,
        description="Unique handle used to log in",
    )

    email: str = Field(description="Contact address, not required to be unique")

    password_hash: str = Field(description="pbkdf2 hash, never the plaintext")

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_type=DateTime(timezone=True),
    )

    theme: str | None = None
    text_size: str | None = None
    text_boldness: str | None = None
    font: str | None = None
    line_spacing: str | None = None
    background_color: str | None = None
    text_color: str | None = None
    button_color: str | None = None

    reset_token: str | None = Field(default=None, index=True)
    reset_token_expires_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),
    )

    google_id: str | None = Field(
        default=None,
        index=True,
        description="Set only for accounts created through Google sign-in",
    )
