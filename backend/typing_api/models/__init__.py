"""Database models"""
from typing_api.models.test_result import TestResult
from typing_api.models.user import User

__all__ = ["TestResult", "User"]
