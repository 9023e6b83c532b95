import asyncio
import smtplib
from datetime import timedelta

import pytest
from jose import ExpiredSignatureError, JWTError

from natours.auth.jwt_manager import jwt_manager
from natours.auth.password import password_manager
from natours.auth.service import (
    CREDENTIALS_MISMATCH,
    AuthService,
    is_locked,
    is_role_allowed,
    password_changed_after,
)
from natours.core.errors import AppError
from natours.core.timeutils import utcnow
from natours.models import User
from natours.services.email_service import email_service

from conftest import PASSWORD


def test_password_is_hashed_and_verifiable(make_user):
    user = make_user()
    assert user.password != PASSWORD
    assert password_manager.verify_password(PASSWORD, user.password)
    assert not password_manager.verify_password("wrong-password", user.password)
    assert user.password_confirm is None
    assert user.password_changed_at is None


def test_verify_password_rejects_malformed_hash():
    assert not password_manager.verify_password(PASSWORD, "not-a-bcrypt-hash")


def test_role_gate():
    assert is_role_allowed(("admin", "lead-guide"), "admin")
    assert not is_role_allowed(("admin", "lead-guide"), "user")


def test_is_locked_requires_counter_and_future_deadline():
    now = utcnow()
    assert not is_locked(User(failed_login_attempts=0, lockout_until=None), now)
    assert is_locked(User(failed_login_attempts=5, lockout_until=now + timedelta(minutes=1)), now)
    assert not is_locked(User(failed_login_attempts=5, lockout_until=now - timedelta(seconds=1)), now)


def test_password_changed_after_compares_whole_seconds():
    now = utcnow()
    user = User(password_changed_at=now)
    assert password_changed_after(user, int(now.timestamp()) - 10)
    assert not password_changed_after(user, int(now.timestamp()))
    assert not password_changed_after(User(password_changed_at=None), 0)


def test_access_token_round_trip():
    token = jwt_manager.create_access_token(42)
    payload = jwt_manager.decode_access_token(token)
    assert payload["id"] == 42
    assert payload["exp"] > payload["iat"]


def test_expired_and_tampered_tokens_raise_distinct_errors():
    expired = jwt_manager.create_access_token(1, issued_at=utcnow() - timedelta(days=365))
    with pytest.raises(ExpiredSignatureError):
        jwt_manager.decode_access_token(expired)

    tampered = jwt_manager.create_access_token(1)[:-2] + "xx"
    with pytest.raises(JWTError):
        jwt_manager.decode_access_token(tampered)


def test_reset_token_stores_only_the_hash():
    token, token_hash, expires_at = jwt_manager.create_reset_token()
    assert len(token) == 64
    assert token_hash == jwt_manager.hash_reset_token(token)
    assert token_hash != token
    assert timedelta(minutes=9) < expires_at - utcnow() <= timedelta(minutes=10)


def test_login_requires_both_fields(db):
    with pytest.raises(AppError) as exc_info:
        AuthService(db).login("someone@example.com", None)
    assert exc_info.value.status_code == 400
    assert exc_info.value.message == "Please provide both email & password"


def test_login_with_unknown_email(db):
    with pytest.raises(AppError) as exc_info:
        AuthService(db).login("nobody@example.com", PASSWORD)
    assert exc_info.value.status_code == 401
    assert exc_info.value.message == CREDENTIALS_MISMATCH


def test_lockout_after_five_failures_and_recovery(db, make_user):
    user = make_user(email="lock@example.com")
    service = AuthService(db)

    for attempt in range(1, 6):
        with pytest.raises(AppError) as exc_info:
            service.login("lock@example.com", "wrong-password")
        assert exc_info.value.message == CREDENTIALS_MISMATCH
        db.refresh(user)
        assert user.failed_login_attempts == attempt

    assert user.lockout_until is not None

    # Correct credentials are refused while locked
    with pytest.raises(AppError) as exc_info:
        service.login("lock@example.com", PASSWORD)
    assert exc_info.value.status_code == 401
    assert exc_info.value.message.startswith("Account is locked due to multiple failed login attempts")
    db.refresh(user)
    assert user.failed_login_attempts == 5

    # Once the window has passed the correct password works and resets the counters
    user.lockout_until = utcnow() - timedelta(seconds=1)
    db.commit()

    logged_in = service.login("LOCK@example.com", PASSWORD)
    assert logged_in.id == user.id
    db.refresh(user)
    assert user.failed_login_attempts == 0
    assert user.lockout_until is None


def test_lockout_bookkeeping_does_not_touch_password(db, make_user):
    user = make_user(email="keep@example.com")
    original_hash = user.password

    with pytest.raises(AppError):
        AuthService(db).login("keep@example.com", "wrong-password")

    db.refresh(user)
    assert user.password == original_hash
    assert user.password_changed_at is None


def test_update_password_stamps_change_time(db, make_user):
    user = make_user()
    AuthService(db).update_password(user, PASSWORD, "new-password", "new-password")

    db.refresh(user)
    assert user.password_changed_at is not None
    assert password_manager.verify_password("new-password", user.password)


def test_update_password_requires_current_password(db, make_user):
    user = make_user()
    with pytest.raises(AppError) as exc_info:
        AuthService(db).update_password(user, "not-my-password", "new-password", "new-password")
    assert exc_info.value.status_code == 401


def test_update_password_validates_confirmation(db, make_user):
    user = make_user()
    with pytest.raises(AppError) as exc_info:
        AuthService(db).update_password(user, PASSWORD, "new-password", "other-password")
    assert exc_info.value.status_code == 400
    assert exc_info.value.message.endswith("Passwords do not match")


@pytest.mark.parametrize(
    "failure",
    [
        smtplib.SMTPException("connection refused"),
        OSError("network unreachable"),
        RuntimeError("transport down"),
        UnicodeEncodeError("ascii", "\u00e9", 0, 1, "ordinal not in range"),
    ],
)
def test_forgot_password_clears_token_when_email_fails(db, make_user, monkeypatch, failure):
    user = make_user(email="forgot@example.com")

    async def failing_send_email(to, subject, text):
        raise failure

    monkeypatch.setattr(email_service, "send_email", failing_send_email)

    with pytest.raises(AppError) as exc_info:
        asyncio.run(AuthService(db).forgot_password("forgot@example.com", lambda token: token))
    assert exc_info.value.status_code == 500
    assert exc_info.value.message == "There was an error sending the email. Try again later!"

    db.refresh(user)
    assert user.password_reset_token is None
    assert user.password_reset_expires is None
