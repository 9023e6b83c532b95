from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from natours.api.schemas import UpdateMeRequest, UserAdminUpdate
from natours.auth.middleware import protect, restrict_to
from natours.core.database import get_db
from natours.core.errors import AppError
from natours.models import User
from natours.services import handler_factory
from natours.services.user_repository import UserRepository

router = APIRouter(prefix="/users", tags=["users"])

UPDATABLE_SELF_FIELDS = {"name", "email", "photo"}


@router.get("/me")
def get_me(current_user: User = Depends(protect), db: Session = Depends(get_db)):
    """Get the logged in user's profile."""
    return handler_factory.get_one(UserRepository(db), current_user.id)


@router.patch("/updateMe")
def update_me(
    body: UpdateMeRequest,
    current_user: User = Depends(protect),
    db: Session = Depends(get_db),
):
    """Update the logged in user's name, email or photo."""
    if body.password is not None or body.password_confirm is not None:
        raise AppError(
            "You can not use this route to update password. Please use updatePassword route for password update",
            400,
        )

    data = body.model_dump(exclude_unset=True, exclude_none=True, include=UPDATABLE_SELF_FIELDS)
    return handler_factory.update_one(UserRepository(db), current_user.id, data)


@router.delete("/deleteMe", status_code=status.HTTP_204_NO_CONTENT)
def delete_me(current_user: User = Depends(protect), db: Session = Depends(get_db)):
    """Deactivate the logged in user's account."""
    current_user.active = False
    UserRepository(db).save(current_user, validate=False)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Administration

@router.get("")
def get_all_users(
    request: Request,
    current_user: User = Depends(restrict_to("admin")),
    db: Session = Depends(get_db),
):
    """List users."""
    return handler_factory.get_all(UserRepository(db), request.query_params)


@router.get("/{user_id}")
def get_user(
    user_id: int,
    current_user: User = Depends(restrict_to("admin")),
    db: Session = Depends(get_db),
):
    return handler_factory.get_one(UserRepository(db), user_id)


@router.patch("/{user_id}")
def update_user(
    user_id: int,
    body: UserAdminUpdate,
    current_user: User = Depends(restrict_to("admin")),
    db: Session = Depends(get_db),
):
    """Update a user's profile or role. Passwords cannot be changed here."""
    return handler_factory.update_one(UserRepository(db), user_id, body.model_dump(exclude_unset=True, exclude_none=True))


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: int,
    current_user: User = Depends(restrict_to("admin")),
    db: Session = Depends(get_db),
):
    handler_factory.delete_one(UserRepository(db), user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
