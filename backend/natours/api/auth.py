from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from natours.api.schemas import (
    ForgotPasswordRequest,
    LoginRequest,
    ResetPasswordRequest,
    SignupRequest,
    UpdatePasswordRequest,
)
from natours.auth.middleware import protect
from natours.auth.service import AuthService
from natours.core.config import settings
from natours.core.database import get_db
from natours.models import User
from natours.services.user_repository import UserRepository

router = APIRouter(prefix="/users", tags=["authentication"])


def send_token(db: Session, user: User, status_code: int) -> JSONResponse:
    """Issue a token and return it both as an HTTP-only cookie and in the body."""
    token = AuthService(db).issue_token(user)

    response = JSONResponse(
        status_code=status_code,
        content={
            "status": "success",
            "token": token,
            "data": UserRepository(db).serialize(user),
        },
    )

    max_age = settings.jwt_cookie_expire_days * 24 * 3600
    response.set_cookie(
        key=settings.jwt_cookie_name,
        value=token,
        max_age=max_age,
        expires=datetime.now(timezone.utc) + timedelta(seconds=max_age),
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
    return response


@router.post("/signup", status_code=status.HTTP_201_CREATED)
def signup(request: SignupRequest, db: Session = Depends(get_db)):
    """Register a new user and log them in."""
    user = AuthService(db).signup(request.model_dump())
    return send_token(db, user, status.HTTP_201_CREATED)


@router.post("/login")
def login(request: LoginRequest, db: Session = Depends(get_db)):
    """Authenticate with email and password."""
    user = AuthService(db).login(request.email, request.password)
    return send_token(db, user, status.HTTP_200_OK)


@router.post("/forgotPassword")
async def forgot_password(body: ForgotPasswordRequest, request: Request, db: Session = Depends(get_db)):
    """Email a single-use password reset link."""
    await AuthService(db).forgot_password(
        body.email,
        lambda token: str(request.url_for("reset_password", token=token)),
    )
    return {"status": "success", "message": "Token sent to the email"}


@router.patch("/resetPassword/{token}")
def reset_password(token: str, body: ResetPasswordRequest, db: Session = Depends(get_db)):
    """Set a new password using a reset token."""
    user = AuthService(db).reset_password(token, body.password, body.password_confirm)
    return send_token(db, user, status.HTTP_200_OK)


@router.patch("/updatePassword")
def update_password(
    body: UpdatePasswordRequest,
    current_user: User = Depends(protect),
    db: Session = Depends(get_db),
):
    """Change the password of the logged in user."""
    user = AuthService(db).update_password(
        current_user, body.curr_password, body.password, body.password_confirm
    )
    return send_token(db, user, status.HTTP_200_OK)
