from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from natours.auth.service import AuthService, is_role_allowed
from natours.core.database import get_db
from natours.core.errors import AppError
from natours.models import User

# Security scheme for FastAPI; missing credentials are reported by protect()
security = HTTPBearer(auto_error=False)


def protect(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Dependency resolving the authenticated user from the bearer token."""
    token = credentials.credentials if credentials else None
    return AuthService(db).authenticate_token(token)


def restrict_to(*roles: str):
    """Factory function to create a role allow-list dependency."""
    def role_dependency(current_user: User = Depends(protect)) -> User:
        if not is_role_allowed(roles, current_user.role):
            raise AppError("You do not have enough permission to perform this action", 403)
        return current_user
    return role_dependency
