"""API dependencies for authentication and authorization.

Three gates, all reading ``Authorization: Bearer <access token>``:

* :func:`authenticate_token` - required; raises a typed 401 on any failure.
* :func:`optional_auth` - never fails; resolves to the user or ``None``.
* :func:`require_admin` - required auth plus the admin allow-list.

Every gate stores the per-request :class:`SecurityContext` on
``request.state.security_context``; a resolved user lands on
``request.state.user``. A successful authentication schedules a best-effort
last-activity touch as a background task. It runs after the response is sent,
and only when the handler returns normally: a request that ends in an error
response (a 400 from change-password, say) skips the touch.
"""
from typing import Optional

from fastapi import BackgroundTasks, Depends, Request
from fastapi.security import APIKeyHeader
from sqlalchemy.orm import Session

from typing_api.config import settings
from typing_api.database import get_db
from typing_api.errors import AuthInternalError, ApiError, InsufficientPrivileges, TokenMissing, UserNotFound
from typing_api.middleware.monitoring import record_auth_failure
from typing_api.models.user import User
from typing_api.services import user_service
from typing_api.utils.auth import create_security_context, extract_token_from_header, verify_access_token
from typing_api.utils.logger import logger

# Raw header; the "Bearer " prefix is checked by extract_token_from_header
_authorization_header = APIKeyHeader(name="Authorization", auto_error=False)


def _resolve_user(token: str, db: Session) -> User:
    payload = verify_access_token(token)
    user = user_service.find_user_by_id(db, payload.get("userId", payload.get("sub")))
    if user is None:
        raise UserNotFound()
    return user


def authenticate_token(
    request: Request,
    background_tasks: BackgroundTasks,
    authorization: Optional[str] = Depends(_authorization_header),
    db: Session = Depends(get_db),
) -> User:
    """Require a valid access token for an existing user.

    Raises:
        TokenMissing: no ``Bearer`` token.
        TokenExpired / TokenInvalid: verification failed.
        UserNotFound: token subject no longer exists.
        AuthInternalError: anything unexpected.
    """
    try:
        token = extract_token_from_header(authorization)
        if not token:
            raise TokenMissing()
        user = _resolve_user(token, db)
    except ApiError as exc:
        record_auth_failure(exc.code)
        raise
    except Exception as exc:
        logger.error(f"Authentication error: {exc}", extra={"path": request.url.path}, exc_info=True)
        raise AuthInternalError("Authentication failed") from exc

    request.state.user = user
    request.state.security_context = create_security_context(request)
    background_tasks.add_task(user_service.update_last_login, user.id)
    return user


def optional_auth(
    request: Request,
    background_tasks: BackgroundTasks,
    authorization: Optional[str] = Depends(_authorization_header),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """Attach the user when a valid token is present; continue anonymously otherwise"""
    request.state.security_context = create_security_context(request)
    request.state.user = None

    token = extract_token_from_header(authorization)
    if not token:
        return None

    try:
        user = _resolve_user(token, db)
    except ApiError as exc:
        logger.warning(f"Ignoring invalid optional auth token: {exc.message}", extra={"code": exc.code})
        return None
    except Exception as exc:
        logger.error(f"Optional authentication error: {exc}", extra={"path": request.url.path}, exc_info=True)
        return None

    request.state.user = user
    background_tasks.add_task(user_service.update_last_login, user.id)
    return user


def require_admin(user: User = Depends(authenticate_token)) -> User:
    """Authenticated user whose username is on the admin allow-list.

    Stand-in for a real role model: membership is decided by username only.
    """
    if user.username.lower() not in settings.admin_usernames_list:
        record_auth_failure(InsufficientPrivileges.code)
        raise InsufficientPrivileges()
    return user
