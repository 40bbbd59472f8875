"""Tests for password, token and validation helpers"""
import time
from types import SimpleNamespace

import pytest
from jose import jwt

from typing_api.errors import AuthInternalError, TokenExpired, TokenInvalid
from typing_api.utils.auth import (
    compare_password,
    create_user_response,
    extract_token_from_header,
    generate_access_token,
    generate_refresh_token,
    generate_token_pair,
    hash_for_logging,
    hash_password,
    is_access_token_near_expiry,
    sanitize_input,
    validate_google_token_payload,
    validate_password,
    validate_username,
    verify_access_token,
    verify_refresh_token,
)

USER = SimpleNamespace(id=7, username="typist")


# ----- passwords -----

def test_hash_password_round_trip():
    hashed = hash_password("Typist2024!x")
    assert hashed != "Typist2024!x"
    assert hashed.startswith("$2")
    assert compare_password("Typist2024!x", hashed) is True
    assert compare_password("typist2024!x", hashed) is False


def test_hash_password_uses_fresh_salt():
    assert hash_password("Typist2024!x") != hash_password("Typist2024!x")


def test_compare_password_malformed_hash_raises():
    with pytest.raises(AuthInternalError):
        compare_password("anything", "not-a-bcrypt-hash")


def test_validate_password_strong():
    result = validate_password("Typist2024!x")
    assert result["valid"] is True
    assert result["errors"] == []
    # 12 chars (10 + 10), upper, lower, digit, special (4 x 15)
    assert result["score"] == 80


def test_validate_password_missing_classes():
    result = validate_password("short")
    assert result["valid"] is False
    assert "Password must be at least 8 characters long" in result["errors"]
    assert "Password must contain at least one uppercase letter" in result["errors"]
    assert "Password must contain at least one number" in result["errors"]


@pytest.mark.parametrize("password", ["Password1", "Aaaa1234bc", "Qwerty12Zz", "Letmein99X"])
def test_validate_password_weak_patterns(password):
    result = validate_password(password)
    assert result["valid"] is False
    assert "Password contains common patterns that make it vulnerable" in result["errors"]


@pytest.mark.parametrize(
    "password,error",
    [
        ("short1A", "Password must be at least 8 characters long"),
        ("alllowercase1", "Password must contain at least one uppercase letter"),
        ("ALLUPPER1", "Password must contain at least one lowercase letter"),
        ("NoDigitsHere", "Password must contain at least one number"),
        ("Password123", "Password contains common patterns that make it vulnerable"),
    ],
)
def test_validate_password_rejects(password, error):
    result = validate_password(password)
    assert result["valid"] is False
    assert error in result["errors"]


def test_validate_password_accepts_strong_example():
    result = validate_password("Str0ngP@ssw0rd!")
    assert result["valid"] is True
    assert result["errors"] == []


def test_validate_password_score_clamped():
    assert validate_password("")["score"] == 0
    assert 0 <= validate_password("A" * 40 + "b1!")["score"] <= 100


@pytest.mark.parametrize(
    "username,valid",
    [
        ("typist", True),
        ("fast_fingers_99", True),
        ("ab", False),
        ("a" * 21, False),
        ("bad-name", False),
        ("ADMIN", False),
        ("Undefined", False),
    ],
)
def test_validate_username(username, valid):
    assert validate_username(username)["valid"] is valid


def test_sanitize_input():
    assert sanitize_input('  <b>"hi"</b> ') == "bhi/b"
    assert sanitize_input(None) == ""
    assert sanitize_input(42) == ""
    assert len(sanitize_input("x" * 5000)) == 1000


# ----- tokens -----

def test_access_token_claims():
    token = generate_access_token(USER)
    payload = verify_access_token(token)

    assert payload["sub"] == "7"
    assert payload["userId"] == 7
    assert payload["username"] == "typist"
    assert payload["type"] == "access"
    assert payload["iss"] == "typing-speed-test-api"
    assert payload["aud"] == "typing-speed-test-app"
    assert payload["exp"] - payload["iat"] == 900


def test_token_ids_are_unique():
    first = verify_access_token(generate_access_token(USER))
    second = verify_access_token(generate_access_token(USER))
    assert first["jti"] != second["jti"]


def test_token_pair_types():
    pair = generate_token_pair(USER)
    assert verify_access_token(pair.access_token)["type"] == "access"
    assert verify_refresh_token(pair.refresh_token)["type"] == "refresh"


def test_access_and_refresh_tokens_not_interchangeable():
    with pytest.raises(TokenInvalid):
        verify_refresh_token(generate_access_token(USER))
    with pytest.raises(TokenInvalid):
        verify_access_token(generate_refresh_token(USER))


def test_expired_token():
    with pytest.raises(TokenExpired) as exc_info:
        verify_access_token(generate_access_token(USER, expires_in=-10))
    assert exc_info.value.code == "AUTH_TOKEN_EXPIRED"

    with pytest.raises(TokenExpired) as exc_info:
        verify_refresh_token(generate_refresh_token(USER, expires_in=-10))
    assert exc_info.value.message == "Refresh token has expired"


def test_tampered_token():
    token = generate_access_token(USER)
    with pytest.raises(TokenInvalid):
        verify_access_token(token[:-4] + ("aaaa" if not token.endswith("aaaa") else "bbbb"))


def test_token_with_wrong_audience():
    now = int(time.time())
    token = jwt.encode(
        {"sub": "7", "userId": 7, "type": "access", "iat": now, "exp": now + 60,
         "iss": "typing-speed-test-api", "aud": "someone-else"},
        "test-access-secret",
        algorithm="HS256",
    )
    with pytest.raises(TokenInvalid):
        verify_access_token(token)


def test_near_expiry():
    assert is_access_token_near_expiry(generate_access_token(USER)) is False
    assert is_access_token_near_expiry(generate_access_token(USER, expires_in=60)) is True
    assert is_access_token_near_expiry("garbage") is True


@pytest.mark.parametrize(
    "header,expected",
    [
        ("Bearer abc.def.ghi", "abc.def.ghi"),
        ("bearer abc", None),
        ("Bearer ", None),
        ("Basic dXNlcjpwYXNz", None),
        (None, None),
        ("", None),
    ],
)
def test_extract_token_from_header(header, expected):
    assert extract_token_from_header(header) == expected


# ----- helpers -----

def test_create_user_response_drops_password_hash():
    orm_user = SimpleNamespace(
        id=1, username="typist", password_hash="$2b$secret", google_id=None,
        profile_picture=None, created_at=None, updated_at=None,
    )
    assert "password_hash" not in create_user_response(orm_user)

    view = create_user_response({"id": 1, "username": "typist", "password_hash": "$2b$secret"})
    assert view == {"id": 1, "username": "typist"}


def test_hash_for_logging():
    digest = hash_for_logging("203.0.113.9")
    assert len(digest) == 12
    assert digest == hash_for_logging("203.0.113.9")
    assert digest != hash_for_logging("203.0.113.10")
    assert "203.0.113.9" not in digest


def test_validate_google_token_payload(google_payload):
    assert validate_google_token_payload(google_payload) is True
    assert validate_google_token_payload({**google_payload, "email_verified": False}) is False
    assert validate_google_token_payload({k: v for k, v in google_payload.items() if k != "name"}) is False
    assert validate_google_token_payload(None) is False
