"""Typing test result endpoints"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Request, status
from sqlalchemy.orm import Session

from typing_api.api.deps import authenticate_token, optional_auth
from typing_api.database import get_db
from typing_api.errors import Forbidden, ResourceNotFound
from typing_api.middleware.monitoring import record_test_result
from typing_api.models.user import User
from typing_api.schemas.test_result import (
    Difficulty,
    TestResultCreate,
    TestResultListResponse,
    TestResultResponse,
    TypingStatsResponse,
)
from typing_api.services import test_results_service
from typing_api.utils.auth import hash_for_logging
from typing_api.utils.logger import logger

router = APIRouter(prefix="/api/tests", tags=["tests"])

USERNAME_PATTERN = r"^[a-zA-Z0-9_]+$"


def _serialize(result) -> dict:
    return TestResultResponse.model_validate(result).model_dump(mode="json")


@router.post("", status_code=status.HTTP_201_CREATED)
def create_test_result(
    body: TestResultCreate,
    request: Request,
    user: Optional[User] = Depends(optional_auth),
    db: Session = Depends(get_db),
):
    """
    Save a finished typing test

    Works anonymously; a valid token only adds the user to the audit log
    """
    context = request.state.security_context
    result = test_results_service.create_test_result(db, body)
    record_test_result(result.difficulty)

    logger.info(
        f"Test result {result.id} stored",
        extra={
            "username": result.username,
            "user_id": user.id if user else None,
            "ip_hash": hash_for_logging(context.ip_address),
        },
    )
    return {"success": True, "message": "Test result saved successfully", "data": _serialize(result)}


@router.get("", response_model=TestResultListResponse)
def list_test_results(
    username: str = Query(..., min_length=3, max_length=20, pattern=USERNAME_PATTERN),
    limit: int = Query(50, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    difficulty: Optional[Difficulty] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    db: Session = Depends(get_db),
):
    """
    List a user's results, newest first

    Query parameters:
    - username: whose results to list
    - limit / offset: pagination
    - difficulty, start_date, end_date: optional filters
    """
    page = test_results_service.get_test_results(
        db,
        username,
        limit=limit,
        offset=offset,
        difficulty=difficulty,
        start_date=start_date,
        end_date=end_date,
    )
    return {
        "success": True,
        "data": {
            "data": [_serialize(result) for result in page["data"]],
            "pagination": page["pagination"],
        },
    }


@router.get("/stats/{username}", response_model=TypingStatsResponse)
def user_stats(
    username: str = Path(..., min_length=3, max_length=20),
    db: Session = Depends(get_db),
):
    """Aggregate stats with improvement trend and difficulty breakdown"""
    stats = test_results_service.get_user_stats(db, username)
    if stats is None:
        raise ResourceNotFound("No test results found for this user")
    return {"success": True, "data": stats}


@router.get("/leaderboard")
def leaderboard(
    difficulty: Optional[Difficulty] = None,
    limit: int = Query(10, ge=1),
    db: Session = Depends(get_db),
):
    """Top results across all users (limit at most 50)"""
    results = test_results_service.get_leaderboard(db, difficulty=difficulty, limit=limit)
    return {"success": True, "data": [_serialize(result) for result in results]}


@router.delete("")
def delete_test_results(
    username: str = Query(..., min_length=3, max_length=20),
    user: User = Depends(authenticate_token),
    db: Session = Depends(get_db),
):
    """Delete every result of the authenticated user"""
    if user.username != username:
        raise Forbidden("You can only delete your own test results")

    deleted = test_results_service.delete_user_results(db, username)
    return {
        "success": True,
        "data": {
            "deleted": deleted,
            "message": f"Deleted {deleted} test results for user {username}",
        },
    }
