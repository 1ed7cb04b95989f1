# app/core/errors.py
"""
Recognized infrastructure failures.

Anything raised as an AppError carries a message that is safe to show to
the client. Other exceptions are reported with a generic message only.
"""


class AppError(Exception):
    """Base class for failures whose message may be surfaced in a 500."""


class StoreError(AppError):
    """The credential store could not be read or written."""


class PasswordHashingError(AppError):
    """The hashing backend failed to produce a hash."""


class MailDeliveryError(AppError):
    """The mail relay rejected or could not accept a message."""


class OAuthError(AppError):
    """A Google OAuth exchange failed or returned an unusable payload."""
