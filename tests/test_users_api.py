import logging
import re
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt
from sqlmodel import Session, select

from app.core.config import get_settings
from app.core.errors import MailDeliveryError
from app.models.user import DEFAULT_SETTINGS, User

settings = get_settings()

SIGNUP = {
    "username": "bob",
    "email": "bob@example.com",
    "password": "pw123",
    "createdAt": "2024-05-01T12:00:00Z",
}


def _token_from_mail(email_client) -> str:
    return re.search(r"\b[0-9a-f]{40}\b", email_client.last["text"]).group(0)


def _register(client, email_client, **overrides) -> dict:
    body = {**SIGNUP, **overrides}
    resp = client.post("/user/emailVerification", json=body)
    assert resp.status_code == 200, resp.text
    resp = client.post("/user/addUser", json={"token": _token_from_mail(email_client)})
    assert resp.status_code == 200, resp.text
    return resp.json()


def _assert_no_secrets(user: dict):
    assert "passwordHash" not in user
    assert "password" not in user
    assert "resetToken" not in user


# -------- Signup --------


def test_email_verification_sends_token(client, email_client):
    resp = client.post("/user/emailVerification", json=SIGNUP)

    assert resp.status_code == 200
    assert resp.json() == {
        "message": "Email verification successfully sent",
        "emailRecipient": "bob@example.com",
    }
    assert email_client.last["to"] == "bob@example.com"


def test_email_verification_accepts_creation_date_time_alias(client):
    body = {k: v for k, v in SIGNUP.items() if k != "createdAt"}
    body["creationDateTime"] = "2024-05-01T12:00:00Z"

    resp = client.post("/user/emailVerification", json=body)

    assert resp.status_code == 200


@pytest.mark.parametrize(
    "body",
    [
        {k: v for k, v in SIGNUP.items() if k != "password"},
        {**SIGNUP, "username": ""},
        {**SIGNUP, "email": "not-an-email"},
        {**SIGNUP, "createdAt": "yesterday"},
    ],
)
def test_email_verification_rejects_malformed_body(client, email_client, body):
    resp = client.post("/user/emailVerification", json=body)

    assert resp.status_code == 400
    assert resp.json() == {"detail": "Invalid request"}
    assert email_client.sent == []


def test_add_user_returns_session_token_and_user(client, email_client):
    body = _register(client, email_client)

    assert body["message"] == "User created successfully"
    user = body["user"]
    assert user["username"] == "bob"
    assert user["email"] == "bob@example.com"
    assert user["settings"]["textSize"] == DEFAULT_SETTINGS["text_size"]
    assert user["settings"]["buttonColor"] == DEFAULT_SETTINGS["button_color"]
    _assert_no_secrets(user)

    claims = jwt.decode(body["token"], settings.JWT_SECRET, algorithms=[settings.JWT_ALG])
    assert claims["userId"] == user["id"]


def test_add_user_with_used_token(client, email_client):
    client.post("/user/emailVerification", json=SIGNUP)
    token = _token_from_mail(email_client)
    client.post("/user/addUser", json={"token": token})

    resp = client.post("/user/addUser", json={"token": token})

    assert resp.status_code == 400
    assert resp.json()["detail"] == "Email verification token is invalid or has expired"


def test_add_user_when_username_confirmed_meanwhile(client, email_client):
    client.post("/user/emailVerification", json=SIGNUP)
    first = _token_from_mail(email_client)
    client.post("/user/emailVerification", json={**SIGNUP, "email": "bob2@example.com"})
    second = _token_from_mail(email_client)

    assert client.post("/user/addUser", json={"token": first}).status_code == 200
    resp = client.post("/user/addUser", json={"token": second})

    assert resp.status_code == 409
    assert resp.json()["detail"] == "Username is already taken"


def test_email_verification_for_taken_username(client, email_client):
    _register(client, email_client)

    resp = client.post("/user/emailVerification", json=SIGNUP)

    assert resp.status_code == 409
    assert resp.json()["detail"] == "Username is already taken"


def test_email_verification_mail_failure_is_500(client, email_client):
    def broken_send(*args, **kwargs):
        raise MailDeliveryError("Error sending email")

    email_client.send_email = broken_send

    resp = client.post("/user/emailVerification", json=SIGNUP)

    assert resp.status_code == 500
    assert resp.json()["detail"] == "Error when sending email verification: Error sending email"


# -------- Login --------


def test_login(client, email_client):
    _register(client, email_client)

    resp = client.post("/user/loginUser", json={"username": "bob", "password": "pw123"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Login successful"
    assert body["token"]
    _assert_no_secrets(body["user"])


@pytest.mark.parametrize(
    "creds, detail",
    [
        ({"username": "bob", "password": "wrong"}, "Incorrect password"),
        ({"username": "nobody", "password": "pw123"}, "Username does not exist"),
    ],
)
def test_login_failures_are_401(client, email_client, creds, detail):
    _register(client, email_client)

    resp = client.post("/user/loginUser", json=creds)

    assert resp.status_code == 401
    assert resp.json()["detail"] == detail


def test_login_requires_password(client):
    resp = client.post("/user/loginUser", json={"username": "bob"})

    assert resp.status_code == 400


# -------- Session token --------


def test_me_with_valid_token(client, email_client):
    token = _register(client, email_client)["token"]

    resp = client.get("/user/me", headers={"Authorization": f"Bearer {token}"})

    assert resp.status_code == 200
    assert resp.json()["username"] == "bob"
    _assert_no_secrets(resp.json())


def test_me_without_token(client):
    resp = client.get("/user/me")

    assert resp.status_code == 401
    assert resp.json()["detail"] == "Authentication required"


def test_me_with_tampered_token(client, email_client):
    token = _register(client, email_client)["token"]
    forged = jwt.encode(jwt.get_unverified_claims(token), "not-the-secret", algorithm="HS256")

    resp = client.get("/user/me", headers={"Authorization": f"Bearer {forged}"})

    assert resp.status_code == 401


def test_me_with_expired_token(client, email_client):
    user_id = _register(client, email_client)["user"]["id"]
    expired = jwt.encode(
        {"userId": user_id, "exp": datetime.now(timezone.utc) - timedelta(seconds=5)},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALG,
    )

    resp = client.get("/user/me", headers={"Authorization": f"Bearer {expired}"})

    assert resp.status_code == 401


def test_me_for_unknown_user(client):
    token = jwt.encode(
        {
            "userId": str(uuid.uuid4()),
            "exp": datetime.now(timezone.utc) + timedelta(minutes=5),
        },
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALG,
    )

    resp = client.get("/user/me", headers={"Authorization": f"Bearer {token}"})

    assert resp.status_code == 401
    assert resp.json()["detail"] == "User not found"


# -------- Password reset --------


def test_password_reset_round_trip(client, email_client):
    _register(client, email_client)

    resp = client.post("/user/sendPasswordReset", json={"username": "bob"})
    assert resp.status_code == 200
    assert resp.json() == {
        "message": "Password reset email successfully sent",
        "emailRecipient": "bob@example.com",
    }
    token = re.search(r"/reset-password/([0-9a-f]+)", email_client.last["text"]).group(1)

    resp = client.post("/user/resetPassword", json={"token": token, "newPassword": "fresh"})
    assert resp.status_code == 200
    assert resp.json()["message"] == "Password reset successfully"
    _assert_no_secrets(resp.json()["user"])

    resp = client.post("/user/resetPassword", json={"token": token, "newPassword": "again"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Password reset token is invalid or has expired"

    login = client.post("/user/loginUser", json={"username": "bob", "password": "fresh"})
    assert login.status_code == 200


def test_expired_reset_token_is_401(client, email_client, engine):
    _register(client, email_client)
    client.post("/user/sendPasswordReset", json={"username": "bob"})
    with Session(engine) as session:
        user = session.exec(select(User).where(User.username == "bob")).one()
        user.reset_token_expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
        token = user.reset_token
        session.add(user)
        session.commit()

    resp = client.post("/user/resetPassword", json={"token": token, "newPassword": "fresh"})

    assert resp.status_code == 401


def test_send_password_reset_for_unknown_user(client):
    resp = client.post("/user/sendPasswordReset", json={"username": "nobody"})

    assert resp.status_code == 404
    assert resp.json()["detail"] == "Username does not exist"


# -------- Settings --------


@pytest.mark.parametrize(
    "path, key, value",
    [
        ("/user/changeTheme", "theme", "DarkMode"),
        ("/user/changeFont", "font", "Verdana"),
        ("/user/changeTextSize", "textSize", "large"),
        ("/user/changeTextBoldness", "textBoldness", "bold"),
        ("/user/changeLineSpacing", "lineSpacing", "1.5"),
        ("/user/changeBackgroundColor", "backgroundColor", "#222222"),
        ("/user/changeTextColor", "textColor", "#eeeeee"),
        ("/user/changeButtonColor", "buttonColor", "#0000ff"),
    ],
)
def test_change_setting_routes(client, email_client, path, key, value):
    _register(client, email_client)

    resp = client.post(path, json={"username": "bob", key: value})

    assert resp.status_code == 200, resp.text
    assert resp.json()["message"].endswith("update successful")
    assert resp.json()["user"]["settings"][key] == value

    saved = client.get("/getUserSettings/bob").json()["settings"]
    assert saved[key] == value


def test_change_setting_missing_value(client, email_client):
    _register(client, email_client)

    resp = client.post("/user/changeTheme", json={"username": "bob"})

    assert resp.status_code == 400


def test_change_setting_for_unknown_user(client):
    resp = client.post("/user/changeFont", json={"username": "nobody", "font": "Arial"})

    assert resp.status_code == 500
    assert resp.json()["detail"].startswith("Error when updating font")


def test_get_user_settings(client, email_client):
    _register(client, email_client)

    resp = client.get("/getUserSettings/bob")

    assert resp.status_code == 200
    assert resp.json()["settings"] == {
        "theme": "LightMode",
        "textSize": "medium",
        "textBoldness": "normal",
        "font": "Arial",
        "lineSpacing": "1",
        "backgroundColor": "#ffffff",
        "textColor": "#000000",
        "buttonColor": "#5c0707",
    }


def test_get_user_settings_unknown_user(client):
    resp = client.get("/getUserSettings/nobody")

    assert resp.status_code == 404
    assert resp.json()["detail"] == "User not found"


def test_health_check(client):
    assert client.get("/").json()["status"] == "ok"


# -------- Logging and timestamps --------


@pytest.mark.parametrize(
    "path, body, secret",
    [
        ("/user/resetPassword", {"newPassword": "BrandNewPw!"}, "BrandNewPw!"),
        (
            "/user/emailVerification",
            {k: v for k, v in {**SIGNUP, "password": "Hunter2Secret"}.items() if k != "createdAt"},
            "Hunter2Secret",
        ),
        ("/user/loginUser", {"password": "LoginSecret9"}, "LoginSecret9"),
    ],
)
def test_rejected_body_does_not_log_password(client, caplog, path, body, secret):
    with caplog.at_level(logging.DEBUG):
        resp = client.post(path, json=body)

    assert resp.status_code == 400
    assert any("Rejected request" in r.getMessage() for r in caplog.records)
    for record in caplog.records:
        assert secret not in record.getMessage()


def test_created_at_offset_is_kept_as_utc(client, email_client):
    user = _register(client, email_client, createdAt="2024-05-01T12:00:00+05:00")["user"]

    assert user["createdAt"] == "2024-05-01T07:00:00Z"

    login = client.post("/user/loginUser", json={"username": "bob", "password": "pw123"})
    assert login.json()["user"]["createdAt"] == "2024-05-01T07:00:00Z"
