# app/routers/google_auth.py
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlmodel import Session

from app.core.audit import log_auth_event
from app.core.auth import create_access_token
from app.core.google_oauth import GoogleOAuthClient
from app.database import get_session
from app.dependencies import get_account_service, get_google_oauth_client
from app.schemas.user import AuthResponse, UserRead
from app.services.account_service import AccountService
from app.services.results import Failure

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Google Auth"])


@router.get("/auth/google/callback", response_model=AuthResponse)
def google_oauth_callback(
    request: Request,
    code: str | None = None,
    session: Session = Depends(get_session),
    service: AccountService = Depends(get_account_service),
    oauth_client: GoogleOAuthClient = Depends(get_google_oauth_client),
):
    """
    Finish Google sign-in.

    Exchanges the authorization `code`, finds or creates the linked account
    and returns a session token for it. Every failure past validation is a
    plain 500.
    """
    if not code:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid request")

    try:
        identity = oauth_client.authenticate(code)
        result = service.find_or_create_google_user(
            session, identity.google_id, identity.email
        )
        if isinstance(result, Failure):
            raise RuntimeError(result.message)
        user = result.value
        token = create_access_token(user.id)
    except Exception:
        logger.exception("Google sign-in failed")
        log_auth_event("google_signin", request, status="failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal Server Error",
        )

    log_auth_event("google_signin", request, user.username)
    return AuthResponse(
        message="Authentication with Google successful",
        token=token,
        user=UserRead.from_user(user),
    )
