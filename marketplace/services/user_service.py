"""
Marketplace Backend — User Service
===================================

What:  User validation rules, password hashing, registration and the lookups
       used by authentication (by email, by bearer token).
Why:   Accounts are the identity every other write is gated on; the rules
       for what a valid account looks like belong in one place.
How:   bcrypt (cost from settings, 12 by default) runs in a worker thread so
       hashing never blocks the event loop. Building a User either returns a
       fully populated row or raises FailedValidationError; a missing password
       hash is reported as a validation error, not an assertion.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

import bcrypt
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.database import is_unique_violation
from marketplace.exceptions import (
    DuplicateRecordError,
    FailedValidationError,
    InvalidCredentialsError,
    NotFoundError,
)
from marketplace.models import Role, Token, User
from marketplace.schemas.auth import RegisterRequest
from marketplace.services.token_service import hash_token
from marketplace.validator import (
    EMAIL_RX,
    PHONE_RX,
    Validator,
    byte_length,
    matches,
    permitted_value,
)

logger = logging.getLogger(__name__)


# ── Validation Rules ──────────────────────────────────────────────────────


def validate_email(v: Validator, email: str) -> None:
    v.check(email != "", "email", "must be provided")
    v.check(matches(email, EMAIL_RX), "email", "must be a valid email address")
    v.check(byte_length(email) <= 255, "email", "must not be more than 255 bytes long")


def validate_password_plaintext(v: Validator, password: str) -> None:
    v.check(password != "", "password", "must be provided")
    v.check(byte_length(password) >= 8, "password", "must be at least 8 bytes long")
    v.check(byte_length(password) <= 72, "password", "must not be more than 72 bytes long")


def validate_phone_number(v: Validator, phone_number: Optional[str], required: bool = True) -> None:
    if not phone_number:
        v.check(not required, "phone_number", "must be provided")
        return
    v.check(matches(phone_number, PHONE_RX), "phone_number", "must be a valid 10 digit phone number")


def validate_user(v: Validator, draft: RegisterRequest) -> None:
    v.check(draft.first_name != "", "first_name", "must be provided")
    v.check(byte_length(draft.first_name) <= 500, "first_name", "must not be more than 500 bytes long")

    v.check(draft.last_name != "", "last_name", "must be provided")
    v.check(byte_length(draft.last_name) <= 500, "last_name", "must not be more than 500 bytes long")

    validate_email(v, draft.email)
    validate_password_plaintext(v, draft.password)
    validate_phone_number(v, draft.phone_number, required=False)

    v.check(draft.role != "", "role", "must be provided")
    v.check(
        permitted_value(draft.role, *(r.value for r in Role)),
        "role",
        "invalid role value",
    )


# ── Passwords ─────────────────────────────────────────────────────────────


def hash_password(plaintext: str, rounds: int) -> bytes:
    return bcrypt.hashpw(plaintext.encode("utf-8"), bcrypt.gensalt(rounds=rounds))


def password_matches(plaintext: str, password_hash: bytes) -> bool:
    return bcrypt.checkpw(plaintext.encode("utf-8"), password_hash)


class UserService:
    def __init__(self, bcrypt_rounds: int = 12):
        self.bcrypt_rounds = bcrypt_rounds

    async def build_user(self, draft: RegisterRequest) -> User:
        """
        Validate the draft and hash its password.

        Raises:
            FailedValidationError with every field problem, including a
            password that could not be hashed.
        """
        v = Validator()
        validate_user(v, draft)
        v.raise_if_invalid()

        password_hash: Optional[bytes] = None
        try:
            password_hash = await asyncio.to_thread(
                hash_password, draft.password, self.bcrypt_rounds
            )
        except ValueError as e:
            logger.warning("Password hashing rejected input: %s", e)
        v.check(bool(password_hash), "password", "could not be processed")
        v.raise_if_invalid()

        return User(
            email=draft.email,
            first_name=draft.first_name,
            last_name=draft.last_name,
            phone_number=draft.phone_number or None,
            password_hash=password_hash,
            activated=False,
            role=draft.role,
        )

    async def register(self, db: AsyncSession, draft: RegisterRequest) -> User:
        user = await self.build_user(draft)
        db.add(user)
        try:
            await db.flush()
        except IntegrityError as e:
            if is_unique_violation(e):
                raise DuplicateRecordError(
                    "email", "a user with this email address already exists"
                ) from e
            raise
        logger.info("Registered user %d (%s)", user.id, user.role)
        return user

    async def get_by_email(self, db: AsyncSession, email: str) -> User:
        result = await db.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError(resource="user")
        return user

    async def authenticate(self, db: AsyncSession, email: str, password: str) -> User:
        """
        Raises:
            InvalidCredentialsError for an unknown email or a wrong password;
            the two cases are indistinguishable to the client.
        """
        try:
            user = await self.get_by_email(db, email)
        except NotFoundError:
            raise InvalidCredentialsError(context={"email": email}) from None

        ok = await asyncio.to_thread(password_matches, password, user.password_hash)
        if not ok:
            raise InvalidCredentialsError(context={"user_id": user.id})
        return user

    async def get_for_token(self, db: AsyncSession, scope: str, plaintext: str) -> User:
        """Resolve an unexpired token of `scope` to its user."""
        result = await db.execute(
            select(User)
            .join(Token, Token.user_id == User.id)
            .where(
                Token.hash == hash_token(plaintext),
                Token.scope == scope,
                Token.expiry > datetime.now(timezone.utc),
            )
        )
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError(resource="token")
        return user

    async def activate_by_email(self, db: AsyncSession, email: str) -> bool:
        """Marks the account registered with `email` as activated, if there is one."""
        result = await db.execute(
            update(User).where(User.email == email, User.activated.is_(False)).values(activated=True)
        )
        return bool(result.rowcount)
