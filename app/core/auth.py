# app/core/auth.py
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlmodel import Session

from app.core.config import get_settings
from app.database import get_session
from app.models.user import User
from app.repositories.user_repo import UserRepository

settings = get_settings()

# HTTP Bearer scheme:
# - auto_error=False => a missing Authorization header does not raise 403;
#   require_auth answers 401 instead.
bearer_scheme = HTTPBearer(auto_error=False)

user_repo = UserRepository()


def create_access_token(user_id: uuid.UUID) -> str:
    """
    Mint a session token for `user_id`.

    The token is an HS256 JWT carrying `userId` and an `exp` claim
    ACCESS_TOKEN_EXPIRE_MINUTES from now.
    """
    expires_at = datetime.now(timezone.utc) + timedelta(
        minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES
    )
    return jwt.encode(
        {"userId": str(user_id), "exp": expires_at},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALG,
    )


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and verify a session token.

    Verification:
      - signature (JWT_SECRET)
      - expiration time (exp)

    Raises:
        HTTPException(401): if token is invalid/expired.
    """
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALG],
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> User | None:
    """
    Resolve the current user from a session token.

    Flow:
      1. If no Authorization header => return None.
      2. Decode JWT => extract 'userId'.
      3. Load the user; a token for a deleted account is rejected.

    Raises:
        HTTPException(401): if the token is malformed, expired, or its
        user no longer exists.
    """
    if credentials is None:
        return None

    payload = decode_access_token(credentials.credentials)
    try:
        user_id = uuid.UUID(str(payload.get("userId")))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )

    user = user_repo.get_by_id(session, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return user


def require_auth(user: User | None = Depends(get_current_user)) -> User:
    """
    Enforce authentication.

    Raises:
        HTTPException(401): if no token was presented.
    """
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return user
