"""Auth request schemas"""
import re
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, Field

from typing_api.utils.auth import validate_username


def _check_username(value: str) -> str:
    result = validate_username(value)
    if not result["valid"]:
        raise ValueError(result["errors"][0])
    return value


def _check_password_shape(value: str) -> str:
    """Structural rules only; weak-pattern scoring happens in the service"""
    if len(value) < 8:
        raise ValueError("Password must be at least 8 characters long")
    if not re.search(r"[A-Z]", value):
        raise ValueError("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", value):
        raise ValueError("Password must contain at least one lowercase letter")
    if not re.search(r"[0-9]", value):
        raise ValueError("Password must contain at least one number")
    return value


Username = Annotated[str, AfterValidator(_check_username)]
NewPassword = Annotated[str, AfterValidator(_check_password_shape)]


class RegisterRequest(BaseModel):
    username: Username
    password: NewPassword

    class Config:
        extra = "forbid"


class LoginRequest(BaseModel):
    username: Username
    password: str = Field(..., min_length=1)

    class Config:
        extra = "forbid"


class GoogleAuthRequest(BaseModel):
    id_token: str = Field(..., alias="idToken", min_length=1, description="Google ID token")

    class Config:
        extra = "forbid"
        populate_by_name = True


class GoogleUserInfoRequest(BaseModel):
    """Profile already fetched by the client from Google's userinfo endpoint.

    Nothing here is signed; see the google-userinfo route.
    """

    id: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    name: str = Field(..., min_length=1)
    picture: Optional[str] = None

    class Config:
        extra = "forbid"


class RefreshTokenRequest(BaseModel):
    refresh_token: str = Field(..., alias="refreshToken", min_length=1)

    class Config:
        extra = "forbid"
        populate_by_name = True


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., alias="currentPassword", min_length=1)
    new_password: NewPassword = Field(..., alias="newPassword")

    class Config:
        extra = "forbid"
        populate_by_name = True
