# app/core/email_client.py
from __future__ import annotations

"""
Email client utilities.

Responsibilities:
  - Send plain-text (optionally HTML) mail to a single recipient.
  - Support both TLS (STARTTLS) and SSL connections.
  - Authenticate with a password or, for Gmail, with XOAUTH2.

The client is built once at startup from Settings and handed to the
services that need it; nothing here reads the environment.

Typical .env configuration (Gmail example with App Password):

    SMTP_HOST=smtp.gmail.com
    SMTP_PORT=465
    SMTP_USERNAME=forum@gmail.com
    SMTP_PASSWORD=app-password
    SMTP_FROM_NAME=Fake Stack Overflow
    SMTP_USE_TLS=false
    SMTP_USE_SSL=true

Gmail with OAuth2 instead of an App Password: leave SMTP_PASSWORD empty and
set GMAIL_REFRESH_TOKEN, GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET.
"""

import logging
import smtplib
import time
from email.message import EmailMessage
from typing import Protocol

from app.core.config import Settings
from app.core.errors import MailDeliveryError
from app.core.google_oauth import GoogleOAuthClient

logger = logging.getLogger(__name__)

# Refresh the Gmail access token this many seconds before it expires
TOKEN_REFRESH_MARGIN = 60


class EmailClient(Protocol):
    def send_email(
        self,
        to_email: str,
        subject: str,
        text_body: str,
        html_body: str | None = None,
    ) -> None: ...


class LoggingEmailClient:
    """
    Development fallback used when SMTP is not configured.

    Messages are written to the log instead of being delivered. Bodies
    carry live tokens, so they only appear at DEBUG.
    """

    def send_email(
        self,
        to_email: str,
        subject: str,
        text_body: str,
        html_body: str | None = None,
    ) -> None:
        logger.info("Email to %s not delivered (SMTP not configured): %s", to_email, subject)
        logger.debug("Undelivered email body for %s:\n%s", to_email, text_body)


class SmtpEmailClient:
    """
    SMTP-backed email client.

    Priority:
      - If use_ssl is True → use smtplib.SMTP_SSL (e.g., Gmail on 465).
      - Else → use smtplib.SMTP + optional STARTTLS if use_tls is True.

    NOTE:
      - You should NOT enable both TLS and SSL at the same time.
    """

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str | None = None,
        from_email: str | None = None,
        from_name: str | None = None,
        use_tls: bool = True,
        use_ssl: bool = False,
        oauth_client: GoogleOAuthClient | None = None,
        refresh_token: str | None = None,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_email = from_email or username
        self.from_name = from_name
        self.use_tls = use_tls
        self.use_ssl = use_ssl
        self.oauth_client = oauth_client
        self.refresh_token = refresh_token
        self._access_token: str | None = None
        self._access_token_expires_at = 0.0

    @property
    def uses_oauth(self) -> bool:
        return self.oauth_client is not None and self.refresh_token is not None

    def refresh_credentials(self) -> None:
        """Fetch a fresh Gmail access token (no-op for password auth)."""
        if not self.uses_oauth:
            return
        token, expires_in = self.oauth_client.refresh_access_token(self.refresh_token)
        self._access_token = token
        self._access_token_expires_at = time.monotonic() + expires_in
        logger.info("Gmail access token refreshed, valid for %ss", expires_in)

    def _current_access_token(self) -> str:
        if (
            self._access_token is None
            or time.monotonic() >= self._access_token_expires_at - TOKEN_REFRESH_MARGIN
        ):
            self.refresh_credentials()
        return self._access_token  # type: ignore[return-value]

    def _connect(self) -> smtplib.SMTP:
        if self.use_ssl:
            # Direct SSL connection (commonly port 465)
            server: smtplib.SMTP = smtplib.SMTP_SSL(self.host, self.port, timeout=30)
        else:
            # Plain connection, optionally upgraded via STARTTLS (commonly port 587)
            server = smtplib.SMTP(self.host, self.port, timeout=30)
            if self.use_tls:
                server.starttls()
        return server

    def _login(self, server: smtplib.SMTP) -> None:
        if self.uses_oauth:
            auth_string = (
                f"user={self.username}\x01auth=Bearer {self._current_access_token()}\x01\x01"
            )
            server.ehlo()
            server.auth("XOAUTH2", lambda challenge=None: auth_string)
        else:
            server.login(self.username, self.password or "")

    def _build_message(
        self, to_email: str, subject: str, text_body: str, html_body: str | None
    ) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = (
            f"{self.from_name} <{self.from_email}>" if self.from_name else self.from_email
        )
        msg["To"] = to_email
        msg["Subject"] = subject

        # Always add a plain-text part
        msg.set_content(text_body)

        # Optional HTML alternative
        if html_body:
            msg.add_alternative(html_body, subtype="html")
        return msg

    def send_email(
        self,
        to_email: str,
        subject: str,
        text_body: str,
        html_body: str | None = None,
    ) -> None:
        """
        Send an email to a single recipient.

        Raises
        ------
        MailDeliveryError:
            If the SMTP connection, authentication or send fails.
        """
        msg = self._build_message(to_email, subject, text_body, html_body)
        try:
            server = self._connect()
        except (smtplib.SMTPException, OSError) as exc:
            logger.exception("Could not connect to SMTP server %s:%s", self.host, self.port)
            raise MailDeliveryError("Error sending email") from exc

        try:
            self._login(server)
            server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.exception("Sending email to %s failed", to_email)
            raise MailDeliveryError("Error sending email") from exc
        finally:
            try:
                server.quit()
            except (smtplib.SMTPException, OSError):
                # Connection is being torn down anyway.
                pass


def build_email_client(settings: Settings) -> EmailClient:
    """
    Create the process-wide email client from settings.

    Called once at startup. When Gmail OAuth is configured the first access
    token is fetched here, so a bad refresh token fails the boot rather than
    the first signup.
    """
    if not settings.SMTP_HOST or not settings.SMTP_USERNAME:
        logger.warning("SMTP is not configured; outgoing mail will only be logged.")
        return LoggingEmailClient()

    oauth_client = None
    if settings.GMAIL_REFRESH_TOKEN and not settings.SMTP_PASSWORD:
        oauth_client = GoogleOAuthClient(settings)

    client = SmtpEmailClient(
        host=settings.SMTP_HOST,
        port=settings.SMTP_PORT,
        username=settings.SMTP_USERNAME,
        password=settings.SMTP_PASSWORD,
        from_email=settings.SMTP_FROM_EMAIL,
        from_name=settings.SMTP_FROM_NAME,
        use_tls=settings.SMTP_USE_TLS,
        use_ssl=settings.SMTP_USE_SSL,
        oauth_client=oauth_client,
        refresh_token=settings.GMAIL_REFRESH_TOKEN if oauth_client else None,
    )
    client.refresh_credentials()
    return client
