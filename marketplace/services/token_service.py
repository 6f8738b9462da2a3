"""
Marketplace Backend — Token Service
====================================

What:  Creates, validates and revokes opaque bearer tokens and email
       verification codes.
Why:   A leaked database must not leak usable credentials, so only the
       32-byte sha256 digest of a token is stored.
How:   Plaintexts are base32 (no padding) of cryptographically random bytes:
         authentication / email verification: 16 bytes → 26 characters
         activation / password-reset:          4 bytes → 6 characters
       The plaintext is returned once, by the call that creates it.
"""

import base64
import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.exceptions import NotFoundError
from marketplace.models import EmailVerificationToken, Token, TokenScope
from marketplace.validator import Validator

LONG_TOKEN_LENGTH = 26
SHORT_TOKEN_LENGTH = 6


@dataclass
class GeneratedToken:
    plaintext: str
    hash: bytes
    expiry: datetime
    scope: Optional[str] = None
    user_id: Optional[int] = None
    email: Optional[str] = None


def hash_token(plaintext: str) -> bytes:
    return hashlib.sha256(plaintext.encode("utf-8")).digest()


def _encode(random_bytes: bytes) -> str:
    return base64.b32encode(random_bytes).decode("ascii").rstrip("=")


def token_length(scope: str) -> int:
    return LONG_TOKEN_LENGTH if scope == TokenScope.AUTHENTICATION.value else SHORT_TOKEN_LENGTH


def generate_token(user_id: int, ttl: timedelta, scope: str) -> GeneratedToken:
    if scope == TokenScope.AUTHENTICATION.value:
        plaintext = _encode(secrets.token_bytes(16))
    else:
        plaintext = _encode(secrets.token_bytes(4))[:SHORT_TOKEN_LENGTH]
    return GeneratedToken(
        plaintext=plaintext,
        hash=hash_token(plaintext),
        expiry=datetime.now(timezone.utc) + ttl,
        scope=scope,
        user_id=user_id,
    )


def generate_verification_token(email: str, ttl: timedelta) -> GeneratedToken:
    plaintext = _encode(secrets.token_bytes(16))
    return GeneratedToken(
        plaintext=plaintext,
        hash=hash_token(plaintext),
        expiry=datetime.now(timezone.utc) + ttl,
        email=email,
    )


def validate_token_plaintext(v: Validator, plaintext: str, length: int = LONG_TOKEN_LENGTH) -> None:
    v.check(plaintext != "", "token", "must be provided")
    v.check(len(plaintext) == length, "token", f"must be {length} bytes long")


class TokenService:
    """Persists user tokens. Stateless; every call receives the session."""

    async def new(
        self, db: AsyncSession, user_id: int, ttl: timedelta, scope: str
    ) -> GeneratedToken:
        token = generate_token(user_id, ttl, scope)
        db.add(Token(hash=token.hash, user_id=user_id, expiry=token.expiry, scope=scope))
        await db.flush()
        return token


class EmailVerificationService:
    """Short-lived codes proving ownership of an email address."""

    async def new(self, db: AsyncSession, email: str, ttl: timedelta) -> GeneratedToken:
        token = generate_verification_token(email, ttl)
        db.add(EmailVerificationToken(hash=token.hash, email=email, expiry=token.expiry))
        await db.flush()
        return token

    async def verify(self, db: AsyncSession, plaintext: str) -> str:
        """
        Returns the email the code was issued for.

        Raises:
            NotFoundError if the code is unknown or expired.
        """
        result = await db.execute(
            select(EmailVerificationToken.email).where(
                EmailVerificationToken.hash == hash_token(plaintext),
                EmailVerificationToken.expiry > datetime.now(timezone.utc),
            )
        )
        email = result.scalar_one_or_none()
        if email is None:
            raise NotFoundError(resource="email verification token")
        return email

    async def delete_all_for_email(self, db: AsyncSession, email: str) -> None:
        await db.execute(
            delete(EmailVerificationToken).where(EmailVerificationToken.email == email)
        )
