"""User persistence and authentication queries"""
import re
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from typing_api.database import SessionLocal
from typing_api.errors import (
    GoogleAccountExists,
    IncorrectPassword,
    PasswordNotSet,
    ResourceNotFound,
    UsernameGenerationFailed,
    UsernameTaken,
    ValidationFailed,
)
from typing_api.models.test_result import TestResult
from typing_api.models.user import User
from typing_api.utils.auth import (
    RESERVED_USERNAMES,
    compare_password,
    dummy_password_check,
    hash_password,
    sanitize_input,
    validate_password,
    validate_username,
)
from typing_api.utils.logger import logger

MAX_USERNAME_ATTEMPTS = 1000
# Leaves room for a numeric suffix up to "1000" within the 20 character limit
_USERNAME_BASE_LENGTH = 16
_PROFILE_FIELDS = ("username", "profile_picture")


def _find_by_username(db: Session, username: str) -> Optional[User]:
    return db.query(User).filter(func.lower(User.username) == username.lower()).first()


def username_exists(db: Session, username: str, exclude_user_id: Optional[int] = None) -> bool:
    """Case-insensitive username lookup"""
    query = db.query(User.id).filter(func.lower(User.username) == username.lower())
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    return query.first() is not None


def google_id_exists(db: Session, google_id: str) -> bool:
    return db.query(User.id).filter(User.google_id == google_id).first() is not None


def create_user(db: Session, username: str, password: Optional[str], google_id: Optional[str] = None) -> User:
    """Validate and insert a new user.

    Password strength is only enforced for password accounts; Google accounts
    are created without one.

    Raises:
        ValidationFailed: bad username or weak password.
        UsernameTaken: username exists, compared case-insensitively.
        GoogleAccountExists: ``google_id`` is already linked.
    """
    sanitized = sanitize_input(username)

    username_check = validate_username(sanitized)
    if not username_check["valid"]:
        raise ValidationFailed(
            f"Invalid username: {', '.join(username_check['errors'])}",
            details=username_check["errors"],
        )

    if not google_id:
        if not password:
            raise ValidationFailed("Password is required for username registration")
        password_check = validate_password(password)
        if not password_check["valid"]:
            raise ValidationFailed(
                f"Invalid password: {', '.join(password_check['errors'])}",
                details=password_check["errors"],
            )

    if username_exists(db, sanitized):
        raise UsernameTaken()

    if google_id and google_id_exists(db, google_id):
        raise GoogleAccountExists()

    user = User(
        username=sanitized,
        password_hash=hash_password(password) if password else None,
        google_id=google_id or None,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        # Lost a race against a concurrent registration
        db.rollback()
        raise UsernameTaken() from exc
    db.refresh(user)

    logger.info(f"User created: {sanitized}", extra={"user_id": user.id, "action": "create_user"})
    return user


def authenticate_user(db: Session, username: str, password: str) -> Optional[User]:
    """Return the user for a correct username/password pair, else None.

    Unknown usernames and password-less accounts still pay for one bcrypt
    comparison so response time does not reveal whether the account exists.
    """
    if not username or not password:
        return None

    user = _find_by_username(db, sanitize_input(username))
    if user is None or not user.password_hash:
        dummy_password_check(password)
        return None

    if not compare_password(password, user.password_hash):
        return None

    return user


def find_user_by_id(db: Session, user_id: Any) -> Optional[User]:
    try:
        user_id = int(user_id)
    except (TypeError, ValueError):
        return None
    if user_id <= 0:
        return None
    return db.get(User, user_id)


def find_user_by_username(db: Session, username: str) -> Optional[User]:
    if not username:
        return None
    return _find_by_username(db, sanitize_input(username))


def _username_base(email: str, name: str) -> str:
    candidate = email.split("@")[0] or re.sub(r"\s+", "", name).lower()
    base = re.sub(r"[^a-zA-Z0-9_]", "", sanitize_input(candidate))
    if len(base) < 3:
        base = f"{base}_user"
    return base[:_USERNAME_BASE_LENGTH]


def _username_available(db: Session, username: str) -> bool:
    return username.lower() not in RESERVED_USERNAMES and not username_exists(db, username)


def find_or_create_google_user(
    db: Session,
    google_id: str,
    email: str,
    name: str,
    picture: Optional[str] = None,
) -> User:
    """Return the user linked to ``google_id``, creating one on first sign-in.

    New usernames derive from the email local part (else the name); clashes
    get a numeric suffix, giving up after 1000 attempts.
    """
    if not google_id or not email or not name:
        raise ValidationFailed("Invalid Google user data")

    existing = db.query(User).filter(User.google_id == google_id).first()
    if existing:
        logger.info(f"Existing Google user found: {existing.username}", extra={"user_id": existing.id})
        return existing

    base = _username_base(email, name)
    candidate = base
    counter = 1
    while not _username_available(db, candidate):
        candidate = f"{base}{counter}"
        counter += 1
        if counter > MAX_USERNAME_ATTEMPTS:
            raise UsernameGenerationFailed()

    user = User(username=candidate, google_id=google_id, profile_picture=picture)
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # Concurrent first sign-in with the same Google account
        db.rollback()
        existing = db.query(User).filter(User.google_id == google_id).first()
        if existing:
            return existing
        raise
    db.refresh(user)

    logger.info(f"New Google user created: {candidate}", extra={"user_id": user.id, "action": "create_google_user"})
    return user


def update_last_login(user_id: int, session_factory: Callable[[], Session] = SessionLocal) -> None:
    """Touch ``updated_at`` for ``user_id``.

    Runs after the response in its own session. Failures are logged and dropped.
    """
    db = session_factory()
    try:
        db.query(User).filter(User.id == user_id).update({User.updated_at: datetime.utcnow()})
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(f"Failed to update last login: {exc}", extra={"user_id": user_id})
    finally:
        db.close()


def change_password(db: Session, user_id: int, current_password: str, new_password: str) -> bool:
    """Re-verify the current password, then store a hash of the new one"""
    password_check = validate_password(new_password)
    if not password_check["valid"]:
        raise ValidationFailed(
            f"Invalid new password: {', '.join(password_check['errors'])}",
            details=password_check["errors"],
        )

    user = find_user_by_id(db, user_id)
    if user is None:
        raise ResourceNotFound("User not found")
    if not user.password_hash:
        raise PasswordNotSet()
    if not compare_password(current_password, user.password_hash):
        raise IncorrectPassword()

    user.password_hash = hash_password(new_password)
    user.updated_at = datetime.utcnow()
    db.commit()

    logger.info("Password changed", extra={"user_id": user_id, "action": "change_password"})
    return True


def update_user_profile(db: Session, user_id: int, updates: Dict[str, Any]) -> User:
    """Apply the provided profile fields; only keys present in ``updates`` change"""
    user = find_user_by_id(db, user_id)
    if user is None:
        raise ResourceNotFound("User not found")

    fields = {key: value for key, value in updates.items() if key in _PROFILE_FIELDS}
    if not fields:
        return user

    new_username = fields.get("username")
    renaming = bool(new_username) and new_username != user.username
    if renaming:
        check = validate_username(new_username)
        if not check["valid"]:
            raise ValidationFailed(f"Invalid username: {', '.join(check['errors'])}", details=check["errors"])
        if username_exists(db, new_username, exclude_user_id=user.id):
            raise UsernameTaken("Username is already taken")

    try:
        if renaming:
            old_username = user.username
            user.username = new_username
            db.flush()
            # Results are keyed by username; a no-op where the FK cascade already ran
            db.query(TestResult).filter(TestResult.username == old_username).update(
                {TestResult.username: new_username}, synchronize_session=False
            )

        if "profile_picture" in fields:
            user.profile_picture = fields["profile_picture"]

        user.updated_at = datetime.utcnow()
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise UsernameTaken("Username is already taken") from exc
    db.refresh(user)

    logger.info("Profile updated", extra={"user_id": user_id, "action": "update_profile"})
    return user


def get_user_stats(db: Session, user_id: int) -> Dict[str, Any]:
    """Aggregate typing statistics, computed by the database"""
    username = select(User.username).where(User.id == user_id).scalar_subquery()
    row = (
        db.query(
            func.count(TestResult.id),
            func.coalesce(func.avg(TestResult.wpm), 0),
            func.coalesce(func.avg(TestResult.accuracy), 0),
            func.coalesce(func.max(TestResult.wpm), 0),
            func.coalesce(func.max(TestResult.accuracy), 0),
            func.coalesce(func.sum(TestResult.total_time), 0),
        )
        .filter(TestResult.username == username)
        .one()
    )
    return {
        "total_tests": int(row[0]),
        "average_wpm": float(row[1]),
        "average_accuracy": float(row[2]),
        "best_wpm": float(row[3]),
        "best_accuracy": float(row[4]),
        "total_time_spent": int(row[5]),
    }
