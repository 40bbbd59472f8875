"""User schemas"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class UserResponse(BaseModel):
    """Client-facing user view (never carries the password hash)"""

    id: int
    username: str
    google_id: Optional[str] = None
    profile_picture: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class UserStats(BaseModel):
    total_tests: int = 0
    average_wpm: float = 0
    average_accuracy: float = 0
    best_wpm: float = 0
    best_accuracy: float = 0
    total_time_spent: int = 0


class UserData(BaseModel):
    user: UserResponse


class UserEnvelope(BaseModel):
    """Profile change result"""

    success: bool = True
    message: str
    data: UserData


class MeData(BaseModel):
    user: UserResponse
    stats: UserStats


class MeResponse(BaseModel):
    success: bool = True
    data: MeData


class UpdateProfileRequest(BaseModel):
    username: Optional[str] = Field(None, min_length=3, max_length=20, pattern=r"^[a-zA-Z0-9_]+$")
    profile_picture: Optional[str] = Field(None, pattern=r"^https?://\S+$")

    class Config:
        extra = "forbid"
