"""Pydantic schemas for request/response validation"""
from typing_api.schemas.auth import (
    ChangePasswordRequest,
    GoogleAuthRequest,
    GoogleUserInfoRequest,
    LoginRequest,
    RefreshTokenRequest,
    RegisterRequest,
)
from typing_api.schemas.test_result import (
    TestResultCreate,
    TestResultListResponse,
    TestResultPage,
    TestResultResponse,
    TypingStats,
    TypingStatsResponse,
)
from typing_api.schemas.user import MeResponse, UpdateProfileRequest, UserEnvelope, UserResponse, UserStats

__all__ = [
    "ChangePasswordRequest",
    "GoogleAuthRequest",
    "GoogleUserInfoRequest",
    "LoginRequest",
    "RefreshTokenRequest",
    "RegisterRequest",
    "TestResultCreate",
    "TestResultListResponse",
    "TestResultPage",
    "TestResultResponse",
    "TypingStats",
    "TypingStatsResponse",
    "MeResponse",
    "UpdateProfileRequest",
    "UserEnvelope",
    "UserResponse",
    "UserStats",
]
