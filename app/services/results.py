# app/services/results.py
"""
Tagged results for account operations.

Expected business outcomes (taken username, bad token, wrong password) are
returned as a Failure instead of being raised. Routers check the variant
with isinstance and pick a status code from the failure kind.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar, Union

T = TypeVar("T")


class AccountErrorKind(str, Enum):
    USERNAME_TAKEN = "username_taken"
    USERNAME_NOT_FOUND = "username_not_found"
    INCORRECT_PASSWORD = "incorrect_password"
    TOKEN_INVALID = "token_invalid"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Failure:
    kind: AccountErrorKind
    message: str


AccountResult = Union[Ok[T], Failure]


# Canonical failures, worded for direct display
USERNAME_TAKEN = Failure(AccountErrorKind.USERNAME_TAKEN, "Username is already taken")
USERNAME_NOT_FOUND = Failure(AccountErrorKind.USERNAME_NOT_FOUND, "Username does not exist")
INCORRECT_PASSWORD = Failure(AccountErrorKind.INCORRECT_PASSWORD, "Incorrect password")
VERIFICATION_TOKEN_INVALID = Failure(
    AccountErrorKind.TOKEN_INVALID,
    "Email verification token is invalid or has expired",
)
RESET_TOKEN_INVALID = Failure(
    AccountErrorKind.TOKEN_INVALID,
    "Password reset token is invalid or has expired",
)
