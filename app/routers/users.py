# app/routers/users.py
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlmodel import Session

from app.core.audit import log_auth_event
from app.core.auth import create_access_token, require_auth
from app.core.errors import AppError
from app.database import get_session
from app.dependencies import get_account_service
from app.models.user import User
from app.schemas.user import (
    AddUserRequest,
    AuthResponse,
    EmailSentResponse,
    EmailVerificationRequest,
    LoginRequest,
    ResetPasswordRequest,
    SendPasswordResetRequest,
    SettingsResponse,
    UserRead,
    UserResponse,
    setting_update_request,
)
from app.services.account_service import AccountService
from app.services.results import AccountErrorKind, Failure

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/user", tags=["Users"])
settings_router = APIRouter(tags=["Settings"])


def _server_error(action: str, exc: Exception) -> HTTPException:
    """
    500 for anything the service raised.

    Recognized failures (AppError) keep their message; anything else only
    names the action.
    """
    if isinstance(exc, AppError):
        logger.error("Error when %s: %s", action, exc)
        detail = f"Error when {action}: {exc}"
    else:
        logger.exception("Unexpected error when %s", action)
        detail = f"Error when {action}"
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)


def _failure_error(
    failure: Failure,
    statuses: dict[AccountErrorKind, int],
    action: str,
) -> HTTPException:
    """Map a Failure to its status code; kinds not listed become a 500."""
    code = statuses.get(failure.kind)
    if code is None:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error when {action}: {failure.message}",
        )
    return HTTPException(status_code=code, detail=failure.message)


def _session_token(user: User, action: str) -> str:
    try:
        return create_access_token(user.id)
    except Exception as exc:
        raise _server_error(action, exc)


# -------- Signup --------


@router.post("/emailVerification", response_model=EmailSentResponse)
def email_verification(
    payload: EmailVerificationRequest,
    request: Request,
    session: Session = Depends(get_session),
    service: AccountService = Depends(get_account_service),
):
    """
    Start a signup: store it as pending and email a verification token.

    Errors:
      - 409 if the username belongs to a confirmed account
    """
    action = "sending email verification"
    try:
        result = service.request_signup(
            session,
            username=payload.username,
            email=payload.email,
            password=payload.password,
            created_at=payload.created_at,
        )
    except Exception as exc:
        raise _server_error(action, exc)

    if isinstance(result, Failure):
        log_auth_event("signup_request", request, payload.username, status=result.kind.value)
        raise _failure_error(
            result, {AccountErrorKind.USERNAME_TAKEN: status.HTTP_409_CONFLICT}, action
        )

    log_auth_event("signup_request", request, payload.username)
    return EmailSentResponse(
        message="Email verification successfully sent",
        email_recipient=result.value,
    )


@router.post("/addUser", response_model=AuthResponse)
def add_user(
    payload: AddUserRequest,
    request: Request,
    session: Session = Depends(get_session),
    service: AccountService = Depends(get_account_service),
):
    """
    Finish a signup with its verification token and log the user in.

    Errors:
      - 400 if the token is unknown, used or expired
      - 409 if the username was confirmed by another signup first
    """
    action = "saving user"
    try:
        result = service.confirm_signup(session, payload.token)
    except Exception as exc:
        raise _server_error(action, exc)

    if isinstance(result, Failure):
        log_auth_event("signup_confirm", request, status=result.kind.value)
        raise _failure_error(
            result,
            {
                AccountErrorKind.TOKEN_INVALID: status.HTTP_400_BAD_REQUEST,
                AccountErrorKind.USERNAME_TAKEN: status.HTTP_409_CONFLICT,
            },
            action,
        )

    user = result.value
    token = _session_token(user, action)
    log_auth_event("signup_confirm", request, user.username)
    return AuthResponse(
        message="User created successfully",
        token=token,
        user=UserRead.from_user(user),
    )


# -------- Login --------


@router.post("/loginUser", response_model=AuthResponse)
def login_user(
    payload: LoginRequest,
    request: Request,
    session: Session = Depends(get_session),
    service: AccountService = Depends(get_account_service),
):
    """
    Check a username/password pair and return a session token.

    Errors:
      - 401 if the username does not exist or the password is wrong
    """
    action = "logging in"
    try:
        result = service.login(session, payload.username, payload.password)
    except Exception as exc:
        raise _server_error(action, exc)

    if isinstance(result, Failure):
        log_auth_event("login", request, payload.username, status=result.kind.value)
        raise _failure_error(
            result,
            {
                AccountErrorKind.USERNAME_NOT_FOUND: status.HTTP_401_UNAUTHORIZED,
                AccountErrorKind.INCORRECT_PASSWORD: status.HTTP_401_UNAUTHORIZED,
            },
            action,
        )

    user = result.value
    token = _session_token(user, action)
    log_auth_event("login", request, user.username)
    return AuthResponse(message="Login successful", token=token, user=UserRead.from_user(user))


@router.get("/me", response_model=UserRead)
def read_me(current_user: User = Depends(require_auth)):
    """
    Return the authenticated user's profile.

    Auth:
      - Requires a valid session token (Authorization: Bearer <token>).
    """
    return UserRead.from_user(current_user)


# -------- Password reset --------


@router.post("/sendPasswordReset", response_model=EmailSentResponse)
def send_password_reset(
    payload: SendPasswordResetRequest,
    request: Request,
    session: Session = Depends(get_session),
    service: AccountService = Depends(get_account_service),
):
    """
    Email a password reset link to the account's address.

    Errors:
      - 404 if the username does not exist
    """
    action = "sending password reset"
    try:
        result = service.request_password_reset(session, payload.username)
    except Exception as exc:
        raise _server_error(action, exc)

    if isinstance(result, Failure):
        log_auth_event("password_reset_request", request, payload.username, status=result.kind.value)
        raise _failure_error(
            result, {AccountErrorKind.USERNAME_NOT_FOUND: status.HTTP_404_NOT_FOUND}, action
        )

    log_auth_event("password_reset_request", request, payload.username)
    return EmailSentResponse(
        message="Password reset email successfully sent",
        email_recipient=result.value,
    )


@router.post("/resetPassword", response_model=UserResponse)
def reset_password(
    payload: ResetPasswordRequest,
    request: Request,
    session: Session = Depends(get_session),
    service: AccountService = Depends(get_account_service),
):
    """
    Set a new password using a reset token.

    Errors:
      - 401 if the token is unknown, used or expired
    """
    action = "resetting password"
    try:
        result = service.confirm_password_reset(session, payload.token, payload.new_password)
    except Exception as exc:
        raise _server_error(action, exc)

    if isinstance(result, Failure):
        log_auth_event("password_reset_confirm", request, status=result.kind.value)
        raise _failure_error(
            result, {AccountErrorKind.TOKEN_INVALID: status.HTTP_401_UNAUTHORIZED}, action
        )

    log_auth_event("password_reset_confirm", request, result.value.username)
    return UserResponse(message="Password reset successfully", user=UserRead.from_user(result.value))


# -------- Settings --------

# (settings column, path, label used in messages)
SETTING_ROUTES: tuple[tuple[str, str, str], ...] = (
    ("theme", "/changeTheme", "Theme"),
    ("font", "/changeFont", "Font"),
    ("text_size", "/changeTextSize", "Text size"),
    ("text_boldness", "/changeTextBoldness", "Text boldness"),
    ("line_spacing", "/changeLineSpacing", "Line spacing"),
    ("background_color", "/changeBackgroundColor", "Background color"),
    ("text_color", "/changeTextColor", "Text color"),
    ("button_color", "/changeButtonColor", "Button color"),
)


def _add_setting_route(field: str, path: str, label: str) -> None:
    """Register POST /user/<path> changing the single settings column `field`."""
    body_model = setting_update_request(field)
    action = f"updating {label.lower()}"

    def change_setting(
        payload: body_model,  # type: ignore[valid-type]
        session: Session = Depends(get_session),
        service: AccountService = Depends(get_account_service),
    ) -> UserResponse:
        try:
            result = service.change_setting(
                session, payload.username, field, getattr(payload, field)
            )
        except Exception as exc:
            raise _server_error(action, exc)

        # No status is mapped for settings failures: an unknown user is a 500
        if isinstance(result, Failure):
            raise _failure_error(result, {}, action)

        return UserResponse(
            message=f"{label} update successful",
            user=UserRead.from_user(result.value),
        )

    change_setting.__doc__ = f"Save the user's {label.lower()} setting."
    router.add_api_route(
        path,
        change_setting,
        methods=["POST"],
        response_model=UserResponse,
        name=f"change_{field}",
    )


for _field, _path, _label in SETTING_ROUTES:
    _add_setting_route(_field, _path, _label)


@settings_router.get("/getUserSettings/{username}", response_model=SettingsResponse)
def get_user_settings(
    username: str,
    session: Session = Depends(get_session),
    service: AccountService = Depends(get_account_service),
):
    """
    Return the saved display settings for `username`.

    Errors:
      - 404 if the user does not exist
    """
    try:
        user_settings = service.get_settings(session, username)
    except Exception:
        logger.exception("Error retrieving settings for %s", username)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error retrieving user settings",
        )

    if user_settings is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return SettingsResponse(settings=user_settings)
