"""User profile endpoints"""
from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from typing_api.api.auth import change_password_limit
from typing_api.api.deps import authenticate_token
from typing_api.database import get_db
from typing_api.errors import Forbidden, NoProfilePicture, PasswordNotSet
from typing_api.models.user import User
from typing_api.schemas.auth import ChangePasswordRequest
from typing_api.schemas.user import UpdateProfileRequest, UserEnvelope
from typing_api.services import user_service
from typing_api.utils.auth import create_user_response
from typing_api.utils.logger import logger

router = APIRouter(prefix="/api/users", tags=["users"])


def _self_only(action: str):
    def _dep(user_id: int, user: User = Depends(authenticate_token)) -> User:
        if user.id != user_id:
            logger.warning(
                f"User {user.id} tried to {action} of user {user_id}",
                extra={"user_id": user.id, "code": Forbidden.code},
            )
            raise Forbidden(f"You can only {action}")
        return user

    _dep.__name__ = f"self_only_{action.replace(' ', '_')}"
    return _dep


@router.patch("/{user_id}", response_model=UserEnvelope)
def update_profile(
    user_id: int,
    user: User = Depends(_self_only("update your own profile")),
    body: UpdateProfileRequest = Body(...),
    db: Session = Depends(get_db),
):
    """
    Update username and/or profile picture

    Only fields present in the body are changed
    """
    updated = user_service.update_user_profile(db, user.id, body.model_dump(exclude_unset=True))
    return {
        "success": True,
        "message": "Profile updated successfully",
        "data": {"user": create_user_response(updated)},
    }


@router.delete("/{user_id}/avatar", response_model=UserEnvelope)
def delete_avatar(
    user_id: int,
    user: User = Depends(_self_only("delete your own profile picture")),
    db: Session = Depends(get_db),
):
    """Clear the profile picture"""
    if not user.profile_picture:
        raise NoProfilePicture()

    updated = user_service.update_user_profile(db, user.id, {"profile_picture": None})
    logger.info(f"Avatar deleted for user: {updated.username}", extra={"user_id": updated.id})
    return {
        "success": True,
        "message": "Profile picture deleted successfully",
        "data": {"user": create_user_response(updated)},
    }


@router.post("/{user_id}/password")
def change_password(
    user_id: int,
    user: User = Depends(_self_only("change your own password")),
    _: None = Depends(change_password_limit),
    body: ChangePasswordRequest = Body(...),
    db: Session = Depends(get_db),
):
    """Change password (password accounts only)"""
    if user.google_id:
        raise PasswordNotSet()

    user_service.change_password(db, user.id, body.current_password, body.new_password)
    logger.info(f"Password changed for user: {user.username}", extra={"user_id": user.id})
    return {"success": True, "message": "Password changed successfully"}
