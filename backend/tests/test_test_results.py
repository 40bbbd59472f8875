"""Tests for /api/tests endpoints and the results service"""
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from conftest import OTHER_PASSWORD, bearer, register
from typing_api.errors import ValidationFailed
from typing_api.models.test_result import TestResult
from typing_api.services import test_results_service, user_service

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0)


def result_payload(**overrides) -> dict:
    payload = {
        "username": "typist_one",
        "wpm": 72.5,
        "cpm": 362.5,
        "accuracy": 96.4,
        "total_time": 60,
        "difficulty": "medium",
        "total_characters": 380,
        "correct_characters": 366,
        "incorrect_characters": 14,
        "test_text": "the quick brown fox",
    }
    payload.update(overrides)
    return payload


def seed(db: Session, username: str, wpms, difficulty: str = "easy", accuracy: float = 95.0, start: datetime = BASE_TIME):
    """Insert results one minute apart, oldest first"""
    for index, wpm in enumerate(wpms):
        db.add(TestResult(
            username=username, wpm=wpm, cpm=wpm * 5, accuracy=accuracy, total_time=30,
            difficulty=difficulty, total_characters=200, correct_characters=190, incorrect_characters=10,
            created_at=start + timedelta(minutes=index),
        ))
    db.commit()


# ----- create -----

def test_create_result_anonymously(client: TestClient):
    response = client.post("/api/tests", json=result_payload())
    assert response.status_code == 201

    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Test result saved successfully"
    assert body["data"]["id"] > 0
    assert body["data"]["wpm"] == 72.5
    assert body["data"]["difficulty"] == "medium"
    assert body["data"]["created_at"]


def test_create_result_with_token(client: TestClient, auth_headers: dict):
    response = client.post("/api/tests", json=result_payload(), headers=auth_headers)
    assert response.status_code == 201


def test_create_result_ignores_bad_token(client: TestClient):
    response = client.post("/api/tests", json=result_payload(), headers=bearer("garbage"))
    assert response.status_code == 201


def test_create_result_when_user_lookup_fails(client: TestClient, auth_headers: dict, monkeypatch):
    def locked(db, user_id):
        raise OperationalError("SELECT users", {}, Exception("database is locked"))

    monkeypatch.setattr(user_service, "find_user_by_id", locked)

    response = client.post("/api/tests", json=result_payload(), headers=auth_headers)
    assert response.status_code == 201


@pytest.mark.parametrize(
    "overrides",
    [
        {"wpm": 501},
        {"accuracy": 100.5},
        {"total_time": 0},
        {"difficulty": "extreme"},
        {"username": "x"},
    ],
)
def test_create_result_validation(client: TestClient, overrides: dict):
    response = client.post("/api/tests", json=result_payload(**overrides))
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


# ----- list -----

def test_list_results_paginated_newest_first(client: TestClient, db: Session):
    seed(db, "typist_one", [40, 50, 60])

    response = client.get("/api/tests", params={"username": "typist_one", "limit": 2})
    assert response.status_code == 200

    page = response.json()["data"]
    assert [r["wpm"] for r in page["data"]] == [60, 50]
    assert page["pagination"] == {"total": 3, "limit": 2, "offset": 0, "hasMore": True}

    page = client.get("/api/tests", params={"username": "typist_one", "limit": 2, "offset": 2}).json()["data"]
    assert [r["wpm"] for r in page["data"]] == [40]
    assert page["pagination"]["hasMore"] is False


def test_list_results_filters(client: TestClient, db: Session):
    seed(db, "typist_one", [40, 50], difficulty="easy")
    seed(db, "typist_one", [90], difficulty="hard")

    hard = client.get("/api/tests", params={"username": "typist_one", "difficulty": "hard"}).json()["data"]
    assert [r["wpm"] for r in hard["data"]] == [90]

    window = client.get(
        "/api/tests",
        params={"username": "typist_one", "start_date": (BASE_TIME + timedelta(seconds=30)).isoformat()},
    ).json()["data"]
    assert window["pagination"]["total"] == 1


def test_list_results_requires_username(client: TestClient):
    assert client.get("/api/tests").status_code == 400


def test_list_results_limit_bounds(client: TestClient):
    assert client.get("/api/tests", params={"username": "typist_one", "limit": 1001}).status_code == 400


# ----- stats -----

def test_stats_not_found(client: TestClient):
    response = client.get("/api/tests/stats/nobody_here")
    assert response.status_code == 404
    assert response.json()["error"] == "No test results found for this user"


def test_stats_with_improvement_trend(client: TestClient, db: Session):
    seed(db, "typist_one", [40, 40], difficulty="easy")
    seed(db, "typist_one", [60] * 10, difficulty="hard", start=BASE_TIME + timedelta(hours=1))

    stats = client.get("/api/tests/stats/typist_one").json()["data"]
    assert stats["username"] == "typist_one"
    assert stats["total_tests"] == 12
    assert stats["best_wpm"] == 60
    assert stats["total_time_spent"] == 360
    assert stats["improvement_trend"] == {"wpm_change": 20.0, "accuracy_change": 0.0}
    assert stats["difficulty_breakdown"] == {"easy": 2, "medium": 0, "hard": 10}


def test_stats_trend_needs_ten_tests(db: Session):
    seed(db, "typist_one", [30, 90, 90])
    stats = test_results_service.get_user_stats(db, "typist_one")
    assert stats["improvement_trend"] == {"wpm_change": 0.0, "accuracy_change": 0.0}
    assert stats["average_wpm"] == 70.0


# ----- leaderboard -----

def test_leaderboard_order(client: TestClient, db: Session):
    seed(db, "typist_one", [80], accuracy=90)
    seed(db, "someone_else", [80], accuracy=99)
    seed(db, "slowpoke", [20])

    data = client.get("/api/tests/leaderboard", params={"limit": 2}).json()["data"]
    assert [(r["username"], r["accuracy"]) for r in data] == [("someone_else", 99), ("typist_one", 90)]


def test_leaderboard_difficulty_filter(client: TestClient, db: Session):
    seed(db, "typist_one", [80], difficulty="easy")
    seed(db, "someone_else", [70], difficulty="hard")

    data = client.get("/api/tests/leaderboard", params={"difficulty": "hard"}).json()["data"]
    assert [r["username"] for r in data] == ["someone_else"]


def test_leaderboard_limit_cap(client: TestClient):
    response = client.get("/api/tests/leaderboard", params={"limit": 51})
    assert response.status_code == 400
    assert response.json()["error"] == "Limit cannot exceed 50"


def test_leaderboard_limit_cap_in_service(db: Session):
    with pytest.raises(ValidationFailed):
        test_results_service.get_leaderboard(db, limit=100)


# ----- delete -----

def test_delete_own_results(client: TestClient, db: Session, auth_headers: dict):
    seed(db, "typist_one", [40, 50])
    seed(db, "someone_else", [60])

    response = client.delete("/api/tests", params={"username": "typist_one"}, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["data"] == {"deleted": 2, "message": "Deleted 2 test results for user typist_one"}
    assert db.query(TestResult).count() == 1


def test_delete_requires_auth(client: TestClient):
    assert client.delete("/api/tests", params={"username": "typist_one"}).status_code == 401


def test_delete_other_users_results(client: TestClient, db: Session, registered_user: dict):
    other = register(client, "someone_else", OTHER_PASSWORD)
    seed(db, "typist_one", [40])

    response = client.delete("/api/tests", params={"username": "typist_one"}, headers=bearer(other["accessToken"]))
    assert response.status_code == 403
    assert db.query(TestResult).count() == 1
