"""Credential and token utilities.

Password hashing (bcrypt), HS256 access/refresh token issuance and
verification, input validation helpers and the sanitized user view.
"""
import hashlib
import re
import secrets
import time
import uuid
from typing import Any, Dict, List, NamedTuple, Optional

import bcrypt
from fastapi import Request
from jose import ExpiredSignatureError, JWTError, jwt

from typing_api.config import settings
from typing_api.errors import AuthInternalError, TokenExpired, TokenInvalid, TokenVerificationFailed
from typing_api.utils.logger import logger

ACCESS = "access"
REFRESH = "refresh"

RESERVED_USERNAMES = ("admin", "root", "api", "test", "null", "undefined", "system")
USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]+$")

_SPECIAL_CHARS = re.compile(r"[!@#$%^&*(),.?\":{}|<>]")
_WEAK_PATTERNS = (
    re.compile(r"123456|password|qwerty|abc123|admin|letmein", re.IGNORECASE),
    re.compile(r"(.)\1{2,}"),
    re.compile(r"^[a-zA-Z]+$|^[0-9]+$"),
)
_UNSAFE_INPUT_CHARS = re.compile(r"[<>\"']")
MAX_INPUT_LENGTH = 1000

# bcrypt only considers the first 72 bytes of a password
_BCRYPT_MAX_BYTES = 72

NEAR_EXPIRY_SECONDS = 5 * 60


class SecurityContext(NamedTuple):
    """Per-request audit data. Never persisted, never used for authorization."""
    ip_address: str
    user_agent: str
    timestamp: int   # milliseconds since epoch


class TokenPair(NamedTuple):
    access_token: str
    refresh_token: str


# ---------------------------------------------------------------------------
# Signing secrets
# ---------------------------------------------------------------------------

_secrets: Dict[str, str] = {}


def _load_secret(kind: str) -> str:
    """Return the signing secret for ``kind``, generating one if unset.

    A generated secret lives for the process only: every token it signed
    becomes invalid on restart.
    """
    if kind in _secrets:
        return _secrets[kind]

    configured = settings.JWT_SECRET if kind == ACCESS else settings.JWT_REFRESH_SECRET
    if configured:
        _secrets[kind] = configured
    else:
        env_name = "JWT_SECRET" if kind == ACCESS else "JWT_REFRESH_SECRET"
        logger.warning(
            f"{env_name} not set; generated a random {kind} signing secret for this process. "
            "All tokens will be invalidated on restart."
        )
        _secrets[kind] = secrets.token_hex(64)
    return _secrets[kind]


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------

def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    """Hash a password with bcrypt using the configured cost factor"""
    try:
        salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
        return bcrypt.hashpw(_password_bytes(password), salt).decode("utf-8")
    except (TypeError, ValueError) as exc:
        logger.error(f"Error hashing password: {exc}")
        raise AuthInternalError("Failed to hash password") from exc


def compare_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored bcrypt hash.

    A mismatch returns False; only a malformed hash raises.
    """
    try:
        return bcrypt.checkpw(_password_bytes(password), password_hash.encode("utf-8"))
    except (TypeError, ValueError) as exc:
        logger.error(f"Error comparing password: {exc}")
        raise AuthInternalError("Failed to verify password") from exc


_dummy_hash: Optional[str] = None


def dummy_password_check(password: str) -> None:
    """Burn one bcrypt comparison so unknown usernames cost as much as known ones"""
    global _dummy_hash
    if _dummy_hash is None:
        _dummy_hash = hash_password("dummy-password")
    compare_password(password, _dummy_hash)


def validate_password(password: str) -> Dict[str, Any]:
    """Score a password and list the reasons it is rejected.

    Returns ``{"valid": bool, "errors": [...], "score": 0..100}``.
    """
    errors: List[str] = []
    score = 0

    if len(password) < 8:
        errors.append("Password must be at least 8 characters long")
    else:
        score += 10
    if len(password) >= 12:
        score += 10

    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    else:
        score += 15

    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    else:
        score += 15

    if not re.search(r"[0-9]", password):
        errors.append("Password must contain at least one number")
    else:
        score += 15

    if _SPECIAL_CHARS.search(password):
        score += 15

    if len(password) > 16:
        score += 10

    if any(pattern.search(password) for pattern in _WEAK_PATTERNS):
        errors.append("Password contains common patterns that make it vulnerable")
        score -= 20

    return {
        "valid": not errors,
        "errors": errors,
        "score": max(0, min(100, score)),
    }


def validate_username(username: str) -> Dict[str, Any]:
    """Check length, charset and the reserved-name list"""
    errors: List[str] = []
    username = username or ""

    if len(username) < 3:
        errors.append("Username must be at least 3 characters long")
    if len(username) > 20:
        errors.append("Username must be no more than 20 characters long")
    if not USERNAME_PATTERN.match(username):
        errors.append("Username can only contain letters, numbers, and underscores")
    if username.lower() in RESERVED_USERNAMES:
        errors.append("This username is reserved and cannot be used")

    return {"valid": not errors, "errors": errors}


def sanitize_input(value: Any) -> str:
    """Strip ``< > " '``, trim, and cap at 1000 characters.

    Not an HTML or SQL sanitizer; queries are parameterized.
    """
    if not isinstance(value, str):
        return ""
    return _UNSAFE_INPUT_CHARS.sub("", value).strip()[:MAX_INPUT_LENGTH]


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------

def _generate_token(user: Any, token_type: str, expires_in: Optional[int]) -> str:
    if expires_in is None:
        expires_in = (
            settings.JWT_ACCESS_EXPIRE_SECONDS if token_type == ACCESS else settings.JWT_REFRESH_EXPIRE_SECONDS
        )
    now = int(time.time())
    payload: Dict[str, Any] = {
        "sub": str(user.id),
        "userId": user.id,
        "username": user.username,
        "type": token_type,
        "jti": str(uuid.uuid4()),
        "iat": now,
        "exp": now + expires_in,
        "iss": settings.JWT_ISSUER,
        "aud": settings.JWT_AUDIENCE,
    }
    return jwt.encode(payload, _load_secret(token_type), algorithm=settings.JWT_ALGORITHM)


def generate_access_token(user: Any, context: Optional[SecurityContext] = None, expires_in: Optional[int] = None) -> str:
    """Sign a short-lived access token for ``user``"""
    return _generate_token(user, ACCESS, expires_in)


def generate_refresh_token(user: Any, context: Optional[SecurityContext] = None, expires_in: Optional[int] = None) -> str:
    """Sign a long-lived refresh token for ``user`` with the refresh secret"""
    return _generate_token(user, REFRESH, expires_in)


def generate_token_pair(user: Any, context: Optional[SecurityContext] = None) -> TokenPair:
    return TokenPair(
        access_token=generate_access_token(user, context),
        refresh_token=generate_refresh_token(user, context),
    )


def _verify_token(token: str, token_type: str) -> Dict[str, Any]:
    label = "authentication token" if token_type == ACCESS else "refresh token"
    try:
        payload = jwt.decode(
            token,
            _load_secret(token_type),
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            issuer=settings.JWT_ISSUER,
        )
    except ExpiredSignatureError as exc:
        raise TokenExpired(f"{label.capitalize()} has expired") from exc
    except JWTError as exc:
        raise TokenInvalid(f"Invalid {label}") from exc
    except Exception as exc:
        logger.error(f"{token_type} token verification error: {exc}")
        raise TokenVerificationFailed(f"Failed to verify {label}") from exc

    if payload.get("type") != token_type:
        raise TokenInvalid(f"Invalid {label}")
    return payload


def verify_access_token(token: str) -> Dict[str, Any]:
    """Verify signature, issuer, audience, expiry and the ``access`` type claim.

    Raises:
        TokenExpired: signature valid but the token is past ``exp``.
        TokenInvalid: bad signature/issuer/audience, malformed, or wrong type.
        TokenVerificationFailed: anything else.
    """
    return _verify_token(token, ACCESS)


def verify_refresh_token(token: str) -> Dict[str, Any]:
    """Same checks as :func:`verify_access_token` against the refresh secret"""
    return _verify_token(token, REFRESH)


def is_access_token_near_expiry(token: str) -> bool:
    """True when under five minutes remain, or the token cannot be verified"""
    try:
        payload = verify_access_token(token)
    except (TokenExpired, TokenInvalid, TokenVerificationFailed):
        return True
    exp = payload.get("exp")
    if not exp:
        return False
    return exp - int(time.time()) < NEAR_EXPIRY_SECONDS


def extract_token_from_header(auth_header: Optional[str]) -> Optional[str]:
    """Return the token of an exact ``Bearer <token>`` header, else None"""
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    token = auth_header[len("Bearer "):]
    return token or None


# ---------------------------------------------------------------------------
# Request / response helpers
# ---------------------------------------------------------------------------

_USER_FIELDS = ("id", "username", "google_id", "profile_picture", "created_at", "updated_at")


def create_user_response(user: Any) -> Dict[str, Any]:
    """The only user representation ever sent to a client: no password hash"""
    if isinstance(user, dict):
        view = dict(user)
    else:
        view = {field: getattr(user, field, None) for field in _USER_FIELDS}
    view.pop("password_hash", None)
    for key in ("created_at", "updated_at"):
        if hasattr(view.get(key), "isoformat"):
            view[key] = view[key].isoformat()
    return view


def hash_for_logging(value: str) -> str:
    """Short salted digest so raw IPs never reach the logs"""
    digest = hashlib.sha256(f"{value}{settings.LOG_HASH_SALT}".encode("utf-8")).hexdigest()
    return digest[:12]


def client_ip(request: Request) -> str:
    """Best-effort client IP: first X-Forwarded-For entry, then the socket peer"""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def create_security_context(request: Request) -> SecurityContext:
    return SecurityContext(
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent") or "unknown",
        timestamp=int(time.time() * 1000),
    )


def validate_google_token_payload(payload: Any) -> bool:
    """Accept only a complete payload whose email Google has verified"""
    if not isinstance(payload, dict):
        return False
    return bool(
        isinstance(payload.get("sub"), str)
        and isinstance(payload.get("email"), str)
        and payload.get("email_verified") is True
        and isinstance(payload.get("name"), str)
        and payload.get("aud")
        and payload.get("iss")
        and payload.get("exp")
        and payload.get("iat")
    )
