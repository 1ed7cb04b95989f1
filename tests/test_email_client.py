import logging
import smtplib

import pytest

from app.core import email_client as email_module
from app.core.config import Settings
from app.core.email_client import LoggingEmailClient, SmtpEmailClient, build_email_client
from app.core.errors import MailDeliveryError


class FakeSMTP:
    """Minimal smtplib.SMTP double recording what the client does."""

    instances: list["FakeSMTP"] = []
    fail_on_send = False

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.calls: list[tuple] = []
        self.sent = []
        FakeSMTP.instances.append(self)

    def starttls(self):
        self.calls.append(("starttls",))

    def ehlo(self):
        self.calls.append(("ehlo",))

    def login(self, user, password):
        self.calls.append(("login", user, password))

    def auth(self, mechanism, authobject):
        self.calls.append(("auth", mechanism, authobject()))

    def send_message(self, msg):
        if FakeSMTP.fail_on_send:
            raise smtplib.SMTPRecipientsRefused({})
        self.sent.append(msg)

    def quit(self):
        self.calls.append(("quit",))


class FakeTokenSource:
    def __init__(self):
        self.refreshes = 0

    def refresh_access_token(self, refresh_token):
        self.refreshes += 1
        return f"access-{self.refreshes}", 3600


@pytest.fixture(autouse=True)
def fake_smtp(monkeypatch):
    FakeSMTP.instances = []
    FakeSMTP.fail_on_send = False
    monkeypatch.setattr(email_module.smtplib, "SMTP", FakeSMTP)
    monkeypatch.setattr(email_module.smtplib, "SMTP_SSL", FakeSMTP)
    return FakeSMTP


def test_password_login_with_starttls():
    client = SmtpEmailClient(
        host="smtp.example.com",
        port=587,
        username="forum@example.com",
        password="secret",
        from_name="Forum",
    )

    client.send_email("bob@example.com", "Hello", "plain body")

    server = FakeSMTP.instances[0]
    assert ("starttls",) in server.calls
    assert ("login", "forum@example.com", "secret") in server.calls
    msg = server.sent[0]
    assert msg["To"] == "bob@example.com"
    assert msg["From"] == "Forum <forum@example.com>"
    assert "plain body" in msg.get_content()
    assert server.calls[-1] == ("quit",)


def test_xoauth2_login_uses_refreshed_token():
    tokens = FakeTokenSource()
    client = SmtpEmailClient(
        host="smtp.gmail.com",
        port=465,
        username="forum@gmail.com",
        use_tls=False,
        use_ssl=True,
        oauth_client=tokens,
        refresh_token="rt",
    )
    client.refresh_credentials()

    client.send_email("bob@example.com", "Hello", "body")
    client.send_email("bob@example.com", "Again", "body")

    auth_calls = [c for s in FakeSMTP.instances for c in s.calls if c[0] == "auth"]
    assert auth_calls[0][1] == "XOAUTH2"
    assert "auth=Bearer access-1" in auth_calls[0][2]
    # Still valid, so no second refresh
    assert tokens.refreshes == 1


def test_send_failure_raises_mail_delivery_error():
    FakeSMTP.fail_on_send = True
    client = SmtpEmailClient(host="smtp.example.com", port=587, username="u", password="p")

    with pytest.raises(MailDeliveryError):
        client.send_email("bob@example.com", "Hello", "body")
    assert FakeSMTP.instances[0].calls[-1] == ("quit",)


def test_build_without_smtp_host_logs_instead():
    client = build_email_client(Settings(JWT_SECRET="test-secret"))

    assert isinstance(client, LoggingEmailClient)


def test_build_with_password_uses_smtp():
    client = build_email_client(
        Settings(
            JWT_SECRET="test-secret",
            SMTP_HOST="smtp.example.com",
            SMTP_USERNAME="forum@example.com",
            SMTP_PASSWORD="secret",
        )
    )

    assert isinstance(client, SmtpEmailClient)
    assert not client.uses_oauth


def test_logging_client_keeps_body_out_of_info(caplog):
    token = "0123456789abcdef0123456789abcdef01234567"

    with caplog.at_level(logging.DEBUG, logger="app.core.email_client"):
        LoggingEmailClient().send_email("bob@example.com", "Verify", f"code: {token}")

    info = [r for r in caplog.records if r.levelno >= logging.INFO]
    debug = [r for r in caplog.records if r.levelno == logging.DEBUG]
    assert info and all(token not in r.getMessage() for r in info)
    assert any(token in r.getMessage() for r in debug)
