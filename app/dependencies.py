# app/dependencies.py
"""Shared FastAPI dependencies for process-wide clients and services."""

from fastapi import Depends, Request

from app.core.config import get_settings
from app.core.email_client import EmailClient
from app.core.google_oauth import GoogleOAuthClient
from app.repositories.unverified_user_repo import UnverifiedUserRepository
from app.repositories.user_repo import UserRepository
from app.services.account_service import AccountService

settings = get_settings()

user_repo = UserRepository()
pending_repo = UnverifiedUserRepository()


def get_email_client(request: Request) -> EmailClient:
    """Mail client built at startup (see app.main.lifespan)."""
    return request.app.state.email_client


def get_google_oauth_client(request: Request) -> GoogleOAuthClient:
    return request.app.state.google_oauth_client


def get_account_service(
    email_client: EmailClient = Depends(get_email_client),
) -> AccountService:
    return AccountService(user_repo, pending_repo, email_client, settings.CLIENT_URL)
