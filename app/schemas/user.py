# app/schemas/user.py
import re
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, create_model, field_validator
from pydantic.alias_generators import to_camel

if TYPE_CHECKING:
    from app.models.user import User

# Same check the signup form applies client-side
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def as_utc(value: datetime) -> datetime:
    """Convert to UTC; naive datetimes are taken to already be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class CamelModel(BaseModel):
    """
    Base for request/response bodies.

    Wire names are camelCase (textSize, newPassword, emailRecipient);
    Python code uses snake_case. Unknown request fields are ignored.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# -------- Requests --------


class EmailVerificationRequest(CamelModel):
    """Signup payload. `createdAt` is also accepted as `creationDateTime`."""

    username: str = Field(min_length=1)
    email: str
    password: str = Field(min_length=1)
    created_at: datetime = Field(
        validation_alias=AliasChoices("createdAt", "creationDateTime", "created_at"),
    )

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        if not EMAIL_PATTERN.match(v):
            raise ValueError("invalid email address")
        return v

    @field_validator("created_at")
    @classmethod
    def normalize_created_at(cls, v: datetime) -> datetime:
        return as_utc(v)


class AddUserRequest(CamelModel):
    token: str = Field(min_length=1)


class LoginRequest(CamelModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class SendPasswordResetRequest(CamelModel):
    username: str = Field(min_length=1)


class ResetPasswordRequest(CamelModel):
    token: str = Field(min_length=1)
    new_password: str = Field(min_length=1)


class SettingUpdateRequest(CamelModel):
    """Base for the per-setting change payloads built below."""

    username: str = Field(min_length=1)


def setting_update_request(field: str) -> type[SettingUpdateRequest]:
    """
    Build the body model for changing one setting, e.g. for "text_size":
    {"username": "...", "textSize": "..."}.
    """
    model_name = "Update" + to_camel(field)[:1].upper() + to_camel(field)[1:] + "Request"
    return create_model(
        model_name,
        __base__=SettingUpdateRequest,
        **{field: (str, Field(min_length=1))},
    )


# -------- Responses --------


class UserSettingsRead(CamelModel):
    theme: str | None = None
    text_size: str | None = None
    text_boldness: str | None = None
    font: str | None = None
    line_spacing: str | None = None
    background_color: str | None = None
    text_color: str | None = None
    button_color: str | None = None

    @classmethod
    def from_user(cls, user: "User") -> "UserSettingsRead":
        return cls(**{name: getattr(user, name) for name in cls.model_fields})


class UserRead(CamelModel):
    """
    Outward view of an account.

    The password hash and reset token are deliberately absent.
    """

    id: uuid.UUID
    username: str
    email: str
    created_at: datetime
    google_id: str | None = None
    settings: UserSettingsRead

    # sqlite hands timestamps back without their offset
    @field_validator("created_at")
    @classmethod
    def attach_utc(cls, v: datetime) -> datetime:
        return as_utc(v)

    @classmethod
    def from_user(cls, user: "User") -> "UserRead":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            created_at=user.created_at,
            google_id=user.google_id,
            settings=UserSettingsRead.from_user(user),
        )


class EmailSentResponse(CamelModel):
    message: str
    email_recipient: str


class AuthResponse(CamelModel):
    message: str
    token: str
    user: UserRead


class UserResponse(CamelModel):
    message: str
    user: UserRead


class SettingsResponse(CamelModel):
    settings: UserSettingsRead
