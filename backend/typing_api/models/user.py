"""User model"""
from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String

from typing_api.database import Base


class User(Base):
    """A registered typist.

    A user authenticates either with a password (``password_hash`` set) or
    through a linked Google account (``google_id`` set). Usernames are unique
    case-insensitively; the service layer compares on ``lower(username)``.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    username = Column(String(20), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=True)   # null for Google-only accounts
    google_id = Column(String(255), unique=True, nullable=True, index=True)
    profile_picture = Column(String(2048), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
