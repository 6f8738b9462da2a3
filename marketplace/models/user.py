"""
Marketplace Backend — User and Token Models
============================================

What:  ORM models for `users`, `tokens` and `email_verification_tokens`.
Why:   Accounts authenticate with opaque bearer tokens; only the sha256 hash
       of a token is ever persisted.
"""

import enum
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    LargeBinary,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, enum.Enum):
    CLIENT = "client"
    PROVIDER = "provider"


class TokenScope(str, enum.Enum):
    ACTIVATION = "activation"
    AUTHENTICATION = "authentication"
    PASSWORD_RESET = "password-reset"


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str] = mapped_column(String(500), nullable=False)
    last_name: Mapped[str] = mapped_column(String(500), nullable=False)
    phone_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    password_hash: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    activated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Stored as plain text so the column stays portable across dialects
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (UniqueConstraint("email", name="users_email_key"),)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"


class Token(Base):
    """
    A hashed bearer token belonging to a user.

    Lookups always go through the hash; the plaintext is handed to the
    client once, when the token is created.
    """

    __tablename__ = "tokens"

    hash: Mapped[bytes] = mapped_column(LargeBinary(32), primary_key=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    expiry: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    scope: Mapped[str] = mapped_column(String(32), nullable=False)


class EmailVerificationToken(Base):
    __tablename__ = "email_verification_tokens"

    hash: Mapped[bytes] = mapped_column(LargeBinary(32), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    expiry: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
