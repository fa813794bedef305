# tests/test_identity.py

"""
Tests for the Firebase Auth identity provider, token handling and SMTP delivery.
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from firebase_admin import auth as fb_auth

from backend.app.config import Settings
from backend.app.core.auth import _extract_bearer_token, _token_to_principal
from backend.app.core.errors import Unauthenticated
from backend.app.repositories.identity import FirebaseIdentityProvider
from backend.app.services.notifications import send_email


def _record(uid, email):
    return SimpleNamespace(uid=uid, email=email, display_name=uid.upper(), photo_url=None, email_verified=True)


def test_get_users_batches_and_reports_not_found():
    calls = []

    def fake_get_users(identifiers, app=None):
        calls.append(len(identifiers))
        found = [_record(f"u{i.email.split('@')[0]}", i.email) for i in identifiers if i.email.startswith("1")]
        missing = [i for i in identifiers if not i.email.startswith("1")]
        return SimpleNamespace(users=found, not_found=missing)

    emails = [f"{n}@example.com" for n in range(150)]
    with patch.object(fb_auth, "get_users", side_effect=fake_get_users):
        result = FirebaseIdentityProvider().get_users({"email": e} for e in emails)

    assert calls == [100, 50]
    assert len(result.found) + len(result.not_found) == 150
    assert result.by_email()["1@example.com"].uid == "u1"
    assert {"email": "0@example.com"} in result.not_found


def test_get_user_missing_returns_none():
    with patch.object(fb_auth, "get_user", side_effect=fb_auth.UserNotFoundError("no user")):
        assert FirebaseIdentityProvider().get_user("ghost") is None


@pytest.mark.parametrize("error,message", [
    (fb_auth.ExpiredIdTokenError("expired", cause=None), "Token expired"),
    (fb_auth.RevokedIdTokenError("revoked"), "Session revoked"),
    (fb_auth.InvalidIdTokenError("bad"), "Invalid authentication token"),
    (ValueError("malformed"), "Invalid authentication token"),
])
def test_verify_id_token_errors(error, message):
    with patch.object(fb_auth, "verify_id_token", side_effect=error):
        with pytest.raises(Unauthenticated, match=message):
            FirebaseIdentityProvider().verify_id_token("token")


def test_verify_id_token_checks_revocation():
    with patch.object(fb_auth, "verify_id_token", return_value={"uid": "u1"}) as verify:
        assert FirebaseIdentityProvider().verify_id_token("token") == {"uid": "u1"}
    assert verify.call_args.kwargs["check_revoked"] is True


def test_bearer_token_extraction():
    def request(header):
        return SimpleNamespace(headers={"Authorization": header} if header else {})

    assert _extract_bearer_token(request("Bearer abc")) == "abc"
    assert _extract_bearer_token(request("bearer abc")) == "abc"
    assert _extract_bearer_token(request("Basic abc")) is None
    assert _extract_bearer_token(request(None)) is None


def test_token_to_principal():
    principal = _token_to_principal({"user_id": "u1", "email": "A@B.com", "email_verified": True, "name": "A"})
    assert principal.uid == "u1"
    assert principal.normalized_email == "a@b.com"
    assert principal.email_verified is True
    with pytest.raises(Unauthenticated):
        _token_to_principal({"email": "a@b.com"})


def test_send_email_over_ssl():
    config = Settings(smtp_host="smtp.test", smtp_port=465, smtp_user="mailer", smtp_password="pw",
                      smtp_from="planner@example.com", smtp_use_starttls=False)
    server = MagicMock()
    with patch("smtplib.SMTP_SSL") as smtp_ssl:
        smtp_ssl.return_value.__enter__.return_value = server
        asyncio.run(send_email("a@b.com", "Hello", "<p>Hi</p>", reply_to="r@b.com", config=config))

    assert smtp_ssl.call_args.args[:2] == ("smtp.test", 465)
    server.login.assert_called_once_with("mailer", "pw")
    msg = server.send_message.call_args.args[0]
    assert msg["To"] == "a@b.com"
    assert msg["Reply-To"] == "r@b.com"
    assert "planner@example.com" in msg["From"]


def test_send_email_requires_configuration():
    with pytest.raises(RuntimeError):
        asyncio.run(send_email("a@b.com", "Hello", "<p>Hi</p>", config=Settings(smtp_user=None)))
