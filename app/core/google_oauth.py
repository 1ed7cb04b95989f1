# app/core/google_oauth.py
"""Google OAuth endpoints used for sign-in and for Gmail access tokens."""

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from app.core.config import Settings
from app.core.errors import OAuthError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GoogleIdentity:
    google_id: str
    email: str


class GoogleOAuthClient:
    """Thin wrapper around Google's token and userinfo endpoints."""

    GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
    GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

    def __init__(self, settings: Settings, timeout: float = 10.0):
        self.client_id = settings.GOOGLE_CLIENT_ID
        self.client_secret = settings.GOOGLE_CLIENT_SECRET
        self.redirect_uri = settings.google_redirect_uri
        self.timeout = timeout

    def _post_token(self, data: dict[str, str]) -> dict[str, Any]:
        if not (self.client_id and self.client_secret):
            raise OAuthError("Google OAuth is not configured")
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(
                    self.GOOGLE_TOKEN_URL,
                    data={
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        **data,
                    },
                )
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                "Google token endpoint returned %s", e.response.status_code
            )
            raise OAuthError("Google token exchange failed") from e
        except httpx.RequestError as e:
            logger.error("Google token endpoint unreachable: %s", e)
            raise OAuthError("Google token exchange failed") from e

    def exchange_code(self, code: str) -> str:
        """Exchange an authorization code for an access token."""
        tokens = self._post_token(
            {
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": self.redirect_uri,
            }
        )
        access_token = tokens.get("access_token")
        if not access_token:
            raise OAuthError("No access token received from Google")
        return access_token

    def refresh_access_token(self, refresh_token: str) -> tuple[str, int]:
        """
        Trade a long-lived refresh token for an access token.

        Returns (access_token, expires_in_seconds).
        """
        tokens = self._post_token(
            {"refresh_token": refresh_token, "grant_type": "refresh_token"}
        )
        access_token = tokens.get("access_token")
        if not access_token:
            raise OAuthError("No access token received from Google")
        return access_token, int(tokens.get("expires_in", 3600))

    def get_identity(self, access_token: str) -> GoogleIdentity:
        """Fetch the Google account id and email behind an access token."""
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.get(
                    self.GOOGLE_USERINFO_URL,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            logger.error("Google userinfo request failed: %s", e)
            raise OAuthError("Google userinfo request failed") from e

        if not data or not data.get("id") or not data.get("email"):
            raise OAuthError("Invalid Google OAuth response")
        return GoogleIdentity(google_id=str(data["id"]), email=data["email"])

    def authenticate(self, code: str) -> GoogleIdentity:
        """Complete the OAuth flow: exchange the code, then read the identity."""
        return self.get_identity(self.exchange_code(code))
