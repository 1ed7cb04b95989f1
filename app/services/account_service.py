# app/services/account_service.py
import logging
import secrets
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session

from app.core.email_client import EmailClient
from app.core.errors import PasswordHashingError, StoreError
from app.core.security import (
    EMAIL_VERIFICATION_TTL,
    PASSWORD_RESET_TTL,
    hash_password,
    issue_token,
    verify_password,
)
from app.models.unverified_user import UnverifiedUser
from app.models.user import DEFAULT_SETTINGS, User
from app.repositories.unverified_user_repo import UnverifiedUserRepository
from app.repositories.user_repo import UserRepository
from app.schemas.user import UserSettingsRead
from app.services.results import (
    AccountResult,
    INCORRECT_PASSWORD,
    Ok,
    RESET_TOKEN_INVALID,
    USERNAME_NOT_FOUND,
    USERNAME_TAKEN,
    VERIFICATION_TOKEN_INVALID,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@contextmanager
def _store_errors(session: Session, message: str):
    """Roll back and re-raise database failures as StoreError(message)."""
    try:
        yield
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception(message)
        raise StoreError(message) from exc


def _google_username(email: str) -> str:
    local_part = email.split("@", 1)[0]
    return f"{local_part}_{secrets.randbelow(10**6):06d}"


class AccountService:
    """
    Account lifecycle: signup, email verification, login, password reset,
    display settings and Google sign-in.

    Responsibilities:
      - hash passwords and issue one-time tokens
      - orchestrate repository operations
      - send verification / reset emails

    Expected outcomes are returned as `Ok` or a `Failure` from
    app.services.results. Infrastructure failures raise an AppError
    subclass (StoreError, PasswordHashingError, MailDeliveryError).

    States per account: NONE -> PENDING_VERIFICATION (UnverifiedUser row)
    -> ACTIVE (User row). A pending password reset lives on the User row
    and does not block login.
    """

    def __init__(
        self,
        user_repo: UserRepository,
        pending_repo: UnverifiedUserRepository,
        email_client: EmailClient,
        client_url: str,
    ):
        self.user_repo = user_repo
        self.pending_repo = pending_repo
        self.email_client = email_client
        self.client_url = client_url.rstrip("/")

    # -------- Signup --------

    def request_signup(
        self,
        session: Session,
        username: str,
        email: str,
        password: str,
        created_at: datetime,
    ) -> AccountResult[str]:
        """
        Record a pending signup and email its verification token.

        Only confirmed accounts are checked for the username; several
        pending signups for one username may coexist.

        Returns:
            Ok(email address the token was sent to) or USERNAME_TAKEN.
        """
        message = "Error when creating an unverified user"
        with _store_errors(session, message):
            if self.user_repo.get_by_username(session, username) is not None:
                return USERNAME_TAKEN

        token = issue_token()
        pending = UnverifiedUser(
            username=username,
            email=email,
            password_hash=hash_password(password),
            created_at=created_at,
            verification_token=token,
            verification_token_expires_at=_utcnow() + EMAIL_VERIFICATION_TTL,
        )
        with _store_errors(session, message):
            self.pending_repo.create(session, pending)

        self.email_client.send_email(
            to_email=email,
            subject="Verify your Fake Stack Overflow account",
            text_body=(
                f"Hi {username},\n\n"
                f"Enter this verification code to finish creating your account:\n\n"
                f"{token}\n\n"
                f"The code expires in 24 hours."
            ),
        )
        logger.info("Pending signup recorded for %s", username)
        return Ok(email)

    def confirm_signup(self, session: Session, token: str) -> AccountResult[User]:
        """
        Promote the pending signup holding `token` to an active account.

        The pending row is deleted even if promotion then fails because the
        username was confirmed by another signup in the meantime.
        """
        with _store_errors(session, "Error when creating a user"):
            consumed = self.pending_repo.consume_token(session, token, _utcnow())
            if consumed is None:
                return VERIFICATION_TOKEN_INVALID

            user = User(
                username=consumed.username,
                email=consumed.email,
                password_hash=consumed.password_hash,
                created_at=consumed.created_at,
                **DEFAULT_SETTINGS,
            )
            try:
                user = self.user_repo.create(session, user)
            except IntegrityError:
                session.rollback()
                logger.warning(
                    "Verified signup for %s lost: username already taken",
                    consumed.username,
                )
                return USERNAME_TAKEN

        logger.info("Account %s confirmed", user.username)
        return Ok(user)

    # -------- Login --------

    def login(self, session: Session, username: str, password: str) -> AccountResult[User]:
        with _store_errors(session, "Error logging in user"):
            user = self.user_repo.get_by_username(session, username)
        if user is None:
            return USERNAME_NOT_FOUND

        try:
            matches = verify_password(password, user.password_hash)
        except (TypeError, ValueError) as exc:
            logger.exception("Stored password hash for %s is unreadable", username)
            raise PasswordHashingError("Error logging in user") from exc

        if not matches:
            return INCORRECT_PASSWORD
        return Ok(user)

    # -------- Password reset --------

    def request_password_reset(self, session: Session, username: str) -> AccountResult[str]:
        """
        Issue a reset token for `username` and email a reset link.

        A newer request replaces the previous token; only the latest one
        can be used.
        """
        token = issue_token()
        with _store_errors(session, "Error sending password reset email"):
            user = self.user_repo.set_reset_token(
                session, username, token, _utcnow() + PASSWORD_RESET_TTL
            )
        if user is None:
            return USERNAME_NOT_FOUND

        link = f"{self.client_url}/reset-password/{token}"
        self.email_client.send_email(
            to_email=user.email,
            subject="Reset your Fake Stack Overflow password",
            text_body=(
                f"Hi {user.username},\n\n"
                f"Use this link to reset your password: {link}\n\n"
                f"The link expires in 1 hour. If you did not ask for a reset, "
                f"you can ignore this email."
            ),
        )
        logger.info("Password reset requested for %s", username)
        return Ok(user.email)

    def confirm_password_reset(
        self, session: Session, token: str, new_password: str
    ) -> AccountResult[User]:
        password_hash = hash_password(new_password)
        with _store_errors(session, "Error resetting password"):
            user = self.user_repo.consume_reset_token(
                session, token, _utcnow(), password_hash
            )
        if user is None:
            return RESET_TOKEN_INVALID
        logger.info("Password reset completed for %s", user.username)
        return Ok(user)

    # -------- Settings --------

    def change_setting(
        self, session: Session, username: str, field: str, value: str
    ) -> AccountResult[User]:
        """Set one display setting. `value` is stored as given."""
        with _store_errors(session, "Error when updating settings"):
            user = self.user_repo.update_setting(session, username, field, value)
        if user is None:
            return USERNAME_NOT_FOUND
        return Ok(user)

    def get_settings(self, session: Session, username: str) -> UserSettingsRead | None:
        with _store_errors(session, "Error retrieving user settings"):
            user = self.user_repo.get_by_username(session, username)
        if user is None:
            return None
        return UserSettingsRead.from_user(user)

    # -------- Google sign-in --------

    def find_or_create_google_user(
        self, session: Session, google_id: str, email: str
    ) -> AccountResult[User]:
        """
        Return the account linked to `google_id`, creating it on first sign-in.

        New accounts get a generated username (email local part plus six
        random digits) and a random password nobody knows.
        """
        with _store_errors(session, "Error when retrieving or creating a Google user"):
            user = self.user_repo.get_by_google_id(session, google_id)
            if user is not None:
                return Ok(user)

            user = User(
                username=_google_username(email),
                email=email,
                password_hash=hash_password(issue_token()),
                google_id=google_id,
                **DEFAULT_SETTINGS,
            )
            try:
                user = self.user_repo.create(session, user)
            except IntegrityError:
                session.rollback()
                return USERNAME_TAKEN

        logger.info("Created account %s from Google sign-in", user.username)
        return Ok(user)
