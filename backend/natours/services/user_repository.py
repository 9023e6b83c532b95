import logging
from datetime import timedelta
from typing import Any, Dict

from sqlalchemy import inspect
from sqlalchemy.orm import Query

from natours.api.schemas import UserOut
from natours.auth.password import password_manager, MAX_PASSWORD_BYTES
from natours.core.errors import AppError
from natours.core.timeutils import utcnow
from natours.models import ROLES, User
from .repository import Repository
from .review_repository import ReviewRepository

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6

# Stamped slightly in the past so a token issued right after the save
# is never considered older than the password change
PASSWORD_CHANGE_SKEW = timedelta(seconds=1)


def _invalid(message: str) -> AppError:
    return AppError(f"Invalid input given. Please handle the following. {message}", 400)


class UserRepository(Repository):
    model = User
    schema = UserOut
    label = "user"
    unique_fields = ("email",)

    def __init__(self, db):
        super().__init__(db)
        self._reviewed_tour_ids = set()

    def apply_default_scope(self, query: Query) -> Query:
        return query.filter(User.active == True)  # noqa: E712

    def build(self, data: Dict[str, Any]) -> User:
        data = dict(data)
        password_confirm = data.pop("password_confirm", None)
        user = User(**data)
        user.password_confirm = password_confirm
        return user

    def assign(self, user: User, data: Dict[str, Any]) -> None:
        data = dict(data)
        if "password_confirm" in data:
            user.password_confirm = data.pop("password_confirm")
        super().assign(user, data)

    def set_password(self, user: User, password: str, password_confirm: str) -> None:
        user.password = password
        user.password_confirm = password_confirm

    def _validate_password(self, user: User) -> None:
        password = user.password or ""
        if len(password) < MIN_PASSWORD_LENGTH:
            raise _invalid("Password length should at least be 6 char long")
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise _invalid(f"Password must be at most {MAX_PASSWORD_BYTES} bytes long")
        if user.password_confirm is None:
            raise _invalid("Please confirm your password")
        if user.password_confirm != password:
            raise _invalid("Passwords do not match")

    def before_save(self, user: User, is_new: bool, validate: bool) -> None:
        if user.email:
            user.email = user.email.strip().lower()

        if validate and user.role is not None and user.role not in ROLES:
            raise _invalid(f"Role must be one of: {', '.join(ROLES)}")

        password_changed = is_new or inspect(user).attrs.password.history.has_changes()
        if not password_changed:
            return

        if validate:
            self._validate_password(user)
        user.password = password_manager.hash_password(user.password)
        user.password_confirm = None

        if not is_new:
            user.password_changed_at = utcnow() - PASSWORD_CHANGE_SKEW
            logger.info(f"Password changed for user {user.id}")

    def before_delete(self, user: User) -> None:
        # The user's reviews are removed with it by the ORM cascade
        self._reviewed_tour_ids = {review.tour_id for review in user.reviews}

    def after_delete(self, user: User) -> None:
        reviews = ReviewRepository(self.db)
        for tour_id in self._reviewed_tour_ids:
            reviews.update_tour_ratings(tour_id)
        self._reviewed_tour_ids = set()
