"""Authentication flows: signup, login with lockout, token checks, password reset.

A user record moves between three states:

* active: can authenticate;
* locked: ``failed_login_attempts`` reached the limit and ``lockout_until``
  is still in the future, so every login is refused;
* password-reset-pending: a hashed reset token with an unexpired
  ``password_reset_expires`` is stored.

Counter updates are plain read-modify-write saves; concurrent logins for
one account may lose increments.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from natours.auth.jwt_manager import jwt_manager
from natours.auth.password import password_manager
from natours.core.config import settings
from natours.core.errors import AppError
from natours.core.timeutils import as_utc, utcnow
from natours.models import User
from natours.services.email_service import email_service
from natours.services.user_repository import UserRepository

logger = logging.getLogger(__name__)

CREDENTIALS_MISMATCH = "Username or password does not match. Provide correct credentials"


def is_locked(user: User, now: Optional[datetime] = None) -> bool:
    lockout_until = as_utc(user.lockout_until)
    if lockout_until is None:
        return False
    return user.failed_login_attempts >= settings.max_login_attempts and lockout_until > (now or utcnow())


def password_changed_after(user: User, issued_at: int) -> bool:
    """True when the password was changed after a token with ``iat`` was issued."""
    changed_at = as_utc(user.password_changed_at)
    if changed_at is None:
        return False
    return int(changed_at.timestamp()) > issued_at


def is_role_allowed(allowed_roles, role: str) -> bool:
    return role in allowed_roles


class AuthService:
    def __init__(self, db: Session):
        self.db = db
        self.users = UserRepository(db)

    def _find_by_email(self, email: str) -> Optional[User]:
        return self.users.find_one(User.email == email.strip().lower())

    def issue_token(self, user: User) -> str:
        return jwt_manager.create_access_token(user.id)

    # ------------------------------------------------------------ signup / login

    def signup(self, data: Dict[str, Any]) -> User:
        user = self.users.create(data)
        logger.info(f"User {user.id} signed up with role {user.role}")
        return user

    def login(self, email: Optional[str], password: Optional[str]) -> User:
        if not email or not password:
            raise AppError("Please provide both email & password", 400)

        user = self._find_by_email(email)
        if user is None:
            raise AppError(CREDENTIALS_MISMATCH, 401)

        now = utcnow()
        if is_locked(user, now):
            unlock_time = as_utc(user.lockout_until).strftime("%H:%M:%S UTC")
            raise AppError(
                f"Account is locked due to multiple failed login attempts. Try again after {unlock_time}.",
                401,
            )

        if not password_manager.verify_password(password, user.password):
            user.failed_login_attempts = (user.failed_login_attempts or 0) + 1
            if user.failed_login_attempts >= settings.max_login_attempts:
                user.lockout_until = now + timedelta(minutes=settings.lockout_duration_minutes)
                logger.warning(f"User {user.id} locked out until {user.lockout_until.isoformat()}")
            self.users.save(user, validate=False)
            raise AppError(CREDENTIALS_MISMATCH, 401)

        user.failed_login_attempts = 0
        user.lockout_until = None
        self.users.save(user, validate=False)
        return user

    # ------------------------------------------------------------ tokens

    def authenticate_token(self, token: Optional[str]) -> User:
        """Resolve the user behind a bearer token.

        jose's ``ExpiredSignatureError`` / ``JWTError`` propagate for expired
        or tampered tokens.
        """
        if not token:
            raise AppError("Please login to continue.", 401)

        payload = jwt_manager.decode_access_token(token)

        user = self.users.find_by_id(payload.get("id"))
        if user is None:
            raise AppError("User with the matching token no longer exists", 401)

        if password_changed_after(user, payload.get("iat", 0)):
            raise AppError(
                "User password was changed recently, after the issue of the current token", 401
            )
        return user

    # ------------------------------------------------------------ passwords

    async def forgot_password(self, email: str, build_reset_url: Callable[[str], str]) -> None:
        user = self._find_by_email(email)
        if user is None:
            raise AppError("Please provide the email address which you signed up", 404)

        reset_token, token_hash, expires_at = jwt_manager.create_reset_token()
        user.password_reset_token = token_hash
        user.password_reset_expires = expires_at
        self.users.save(user, validate=False)

        reset_url = build_reset_url(reset_token)
        message = (
            f"Forgot your password? Submit a PATCH request with your new password and "
            f"passwordConfirm to: {reset_url}.\n"
            f"If you didn't forget your password, please ignore this email!"
        )

        try:
            await email_service.send_email(
                to=user.email,
                subject=f"Your password reset token (valid for {settings.password_reset_expire_minutes} min)",
                text=message,
            )
        except Exception as e:
            # Any delivery failure leaves no usable reset token behind
            logger.error(f"Could not send password reset email to user {user.id}: {e}")
            user.password_reset_token = None
            user.password_reset_expires = None
            self.users.save(user, validate=False)
            raise AppError("There was an error sending the email. Try again later!", 500) from e

    def reset_password(self, token: str, password: str, password_confirm: str) -> User:
        token_hash = jwt_manager.hash_reset_token(token)
        user = self.users.find_one(
            User.password_reset_token == token_hash,
            User.password_reset_expires > utcnow(),
        )
        if user is None:
            raise AppError("Invalid token or the reset token has expired.", 400)

        self.users.set_password(user, password, password_confirm)
        user.password_reset_token = None
        user.password_reset_expires = None
        user.failed_login_attempts = 0
        user.lockout_until = None
        return self.users.save(user, validate=True)

    def update_password(self, user: User, current_password: str, password: str, password_confirm: str) -> User:
        if not password_manager.verify_password(current_password, user.password):
            raise AppError("Entered password does not match with the current one", 401)

        self.users.set_password(user, password, password_confirm)
        return self.users.save(user, validate=True)
