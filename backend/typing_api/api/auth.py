"""Authentication endpoints"""
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, Request, status
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token as google_id_token
from sqlalchemy.orm import Session

from typing_api.api.deps import authenticate_token
from typing_api.config import settings
from typing_api.database import get_db
from typing_api.errors import ApiError, InvalidCredentials, OAuthInvalidToken, OAuthNotConfigured, UserNotFound
from typing_api.middleware.monitoring import record_auth_failure, record_tokens_issued
from typing_api.middleware.rate_limit import create_rate_limit
from typing_api.models.user import User
from typing_api.schemas.auth import (
    ChangePasswordRequest,
    GoogleAuthRequest,
    GoogleUserInfoRequest,
    LoginRequest,
    RefreshTokenRequest,
    RegisterRequest,
)
from typing_api.schemas.user import MeResponse
from typing_api.services import user_service
from typing_api.utils.auth import (
    create_security_context,
    create_user_response,
    generate_token_pair,
    hash_for_logging,
    validate_google_token_payload,
    verify_refresh_token,
)
from typing_api.utils.logger import logger

router = APIRouter(prefix="/api/auth", tags=["auth"])

TOKEN_TYPE = "Bearer"

register_limit = create_rate_limit(
    settings.AUTH_RATE_WINDOW_SECONDS,
    settings.AUTH_RATE_MAX,
    "Too many registration attempts. Please try again later.",
    scope="register",
)
login_limit = create_rate_limit(
    settings.AUTH_RATE_WINDOW_SECONDS,
    settings.AUTH_RATE_MAX,
    "Too many login attempts. Please try again later.",
    scope="login",
)
google_limit = create_rate_limit(
    settings.AUTH_RATE_WINDOW_SECONDS,
    settings.AUTH_RATE_MAX,
    "Too many Google OAuth attempts. Please try again later.",
    scope="google",
)
refresh_limit = create_rate_limit(
    settings.AUTH_RATE_WINDOW_SECONDS,
    settings.AUTH_RATE_MAX,
    "Too many token refresh attempts. Please try again later.",
    scope="refresh",
)
change_password_limit = create_rate_limit(
    settings.AUTH_RATE_WINDOW_SECONDS,
    settings.PASSWORD_CHANGE_RATE_MAX,
    "Too many password change attempts. Please try again later.",
    scope="change_password",
)


def expires_in_label(seconds: int) -> str:
    """Human label for a token lifetime, e.g. 900 -> "15m" """
    for unit, size in (("d", 86400), ("h", 3600), ("m", 60)):
        if seconds >= size and seconds % size == 0:
            return f"{seconds // size}{unit}"
    return f"{seconds}s"


def _token_payload(user: User, request: Request, method: str) -> Dict[str, Any]:
    pair = generate_token_pair(user, create_security_context(request))
    record_tokens_issued(method)
    return {
        "accessToken": pair.access_token,
        "refreshToken": pair.refresh_token,
        "tokenType": TOKEN_TYPE,
        "expiresIn": expires_in_label(settings.JWT_ACCESS_EXPIRE_SECONDS),
    }


def _session_response(user: User, request: Request, method: str, message: str) -> Dict[str, Any]:
    return {
        "success": True,
        "message": message,
        "data": {"user": create_user_response(user), **_token_payload(user, request, method)},
    }


def verify_google_id_token(token: str) -> Dict[str, Any]:
    """Check signature, audience and expiry of a Google ID token.

    Raises ValueError when Google's libraries reject the token.
    """
    return google_id_token.verify_oauth2_token(token, google_requests.Request(), settings.GOOGLE_CLIENT_ID)


@router.post("/register", status_code=status.HTTP_201_CREATED, dependencies=[Depends(register_limit)])
def register(body: RegisterRequest, request: Request, db: Session = Depends(get_db)):
    """
    Register with username and password

    Returns the new user and a token pair
    """
    ip_hash = hash_for_logging(create_security_context(request).ip_address)
    logger.info(f"Registration attempt for username: {body.username}", extra={"ip_hash": ip_hash})

    user = user_service.create_user(db, body.username, body.password)

    logger.info(
        f"User registered: {user.username}",
        extra={"user_id": user.id, "ip_hash": ip_hash, "action": "register"},
    )
    return _session_response(user, request, "register", "Registration successful")


@router.post("/login", dependencies=[Depends(login_limit)])
def login(body: LoginRequest, request: Request, db: Session = Depends(get_db)):
    """
    Log in with username and password

    Unknown usernames and wrong passwords get the same 401
    """
    ip_hash = hash_for_logging(create_security_context(request).ip_address)

    user = user_service.authenticate_user(db, body.username, body.password)
    if user is None:
        record_auth_failure(InvalidCredentials.code)
        logger.warning(
            f"Failed login attempt for username: {body.username}",
            extra={"ip_hash": ip_hash, "code": InvalidCredentials.code},
        )
        raise InvalidCredentials()

    logger.info(f"User logged in: {user.username}", extra={"user_id": user.id, "ip_hash": ip_hash, "action": "login"})
    return _session_response(user, request, "login", "Login successful")


@router.post("/google", dependencies=[Depends(google_limit)])
def google_auth(body: GoogleAuthRequest, request: Request, db: Session = Depends(get_db)):
    """
    Sign in with a Google ID token

    The token is verified against Google's keys and ``GOOGLE_CLIENT_ID``
    """
    ip_hash = hash_for_logging(create_security_context(request).ip_address)

    if not settings.GOOGLE_CLIENT_ID:
        logger.error("Google OAuth not configured: GOOGLE_CLIENT_ID missing")
        raise OAuthNotConfigured()

    try:
        payload = verify_google_id_token(body.id_token)
    except ValueError as exc:
        record_auth_failure(OAuthInvalidToken.code)
        logger.warning(f"Google token rejected: {exc}", extra={"ip_hash": ip_hash})
        raise OAuthInvalidToken("Invalid or expired Google token") from exc

    if not validate_google_token_payload(payload):
        record_auth_failure(OAuthInvalidToken.code)
        logger.warning("Invalid Google token payload", extra={"ip_hash": ip_hash})
        raise OAuthInvalidToken()

    user = user_service.find_or_create_google_user(
        db,
        google_id=payload["sub"],
        email=payload["email"],
        name=payload["name"],
        picture=payload.get("picture"),
    )

    logger.info(f"Google OAuth successful for user: {user.username}", extra={"user_id": user.id, "ip_hash": ip_hash})
    return _session_response(user, request, "google", "Google authentication successful")


@router.post("/google-userinfo", dependencies=[Depends(google_limit)])
def google_userinfo(body: GoogleUserInfoRequest, request: Request, db: Session = Depends(get_db)):
    """
    Sign in with profile data the client fetched from Google

    Weaker than ``/google``: nothing in the body is signed, so whoever knows a
    Google account id can sign in as the linked user. Kept for clients that
    only hold an OAuth access token.
    """
    ip_hash = hash_for_logging(create_security_context(request).ip_address)
    logger.info("Google OAuth userinfo attempt", extra={"ip_hash": ip_hash})

    user = user_service.find_or_create_google_user(
        db,
        google_id=body.id,
        email=body.email,
        name=body.name,
        picture=body.picture,
    )

    logger.info(f"Google OAuth userinfo successful for user: {user.username}", extra={"user_id": user.id})
    return _session_response(user, request, "google_userinfo", "Google authentication successful")


@router.post("/refresh", dependencies=[Depends(refresh_limit)])
def refresh(body: RefreshTokenRequest, request: Request, db: Session = Depends(get_db)):
    """
    Exchange a refresh token for a new token pair

    The old refresh token stays valid until it expires
    """
    ip_hash = hash_for_logging(create_security_context(request).ip_address)

    try:
        payload = verify_refresh_token(body.refresh_token)
    except ApiError as exc:
        record_auth_failure(exc.code)
        logger.warning(f"Token refresh rejected: {exc}", extra={"ip_hash": ip_hash})
        raise

    user = user_service.find_user_by_id(db, payload.get("userId", payload.get("sub")))
    if user is None:
        record_auth_failure(UserNotFound.code)
        logger.warning("Refresh token user not found", extra={"ip_hash": ip_hash})
        raise UserNotFound()

    logger.info(f"Token refreshed for user: {user.username}", extra={"user_id": user.id})
    return {
        "success": True,
        "message": "Token refreshed successfully",
        "data": _token_payload(user, request, "refresh"),
    }


@router.get("/me", response_model=MeResponse)
def me(user: User = Depends(authenticate_token), db: Session = Depends(get_db)):
    """Current user and their aggregate typing stats"""
    return {
        "success": True,
        "data": {
            "user": create_user_response(user),
            "stats": user_service.get_user_stats(db, user.id),
        },
    }


@router.post("/logout")
def logout(user: User = Depends(authenticate_token)):
    """
    Log out

    Tokens are stateless; the client discards them
    """
    logger.info(f"User logged out: {user.username}", extra={"user_id": user.id, "action": "logout"})
    return {"success": True, "message": "Logged out successfully"}


@router.post("/change-password")
def change_password(
    user: User = Depends(authenticate_token),
    _: None = Depends(change_password_limit),
    body: ChangePasswordRequest = Body(...),
    db: Session = Depends(get_db),
):
    """Change password after re-verifying the current one"""
    user_service.change_password(db, user.id, body.current_password, body.new_password)
    logger.info(f"Password changed for user: {user.username}", extra={"user_id": user.id})
    return {"success": True, "message": "Password changed successfully"}
