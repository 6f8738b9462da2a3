"""
Marketplace Backend — Token Service Tests
==========================================

What we test:
    ✅ Token shapes per scope (26-char auth/verification, 6-char others)
    ✅ Only the sha256 hash is persisted
    ✅ Lookup honours scope and expiry
    ✅ Email verification codes resolve to their email, then expire
"""

import re
from datetime import timedelta

import pytest

from marketplace.exceptions import NotFoundError
from marketplace.models import TokenScope
from marketplace.schemas.auth import RegisterRequest
from marketplace.services.token_service import (
    generate_token,
    generate_verification_token,
    hash_token,
    token_length,
    validate_token_plaintext,
)
from marketplace.validator import Validator


async def _register(context, email="ada@example.com"):
    async with context.session_factory() as session, session.begin():
        return await context.users.register(
            session,
            RegisterRequest(
                first_name="Ada",
                last_name="Lovelace",
                email=email,
                password="pa55word!",
                role="client",
            ),
        )


class TestGeneration:
    def test_authentication_tokens_are_26_chars_base32(self):
        token = generate_token(1, timedelta(hours=24), TokenScope.AUTHENTICATION.value)
        assert len(token.plaintext) == 26
        assert re.fullmatch(r"[A-Z2-7]{26}", token.plaintext)
        assert token.hash == hash_token(token.plaintext)

    def test_short_scopes_get_six_chars(self):
        token = generate_token(1, timedelta(minutes=5), TokenScope.ACTIVATION.value)
        assert len(token.plaintext) == 6
        assert token_length(TokenScope.PASSWORD_RESET.value) == 6

    def test_verification_tokens_match_authentication_length(self):
        token = generate_verification_token("ada@example.com", timedelta(minutes=5))
        assert len(token.plaintext) == 26
        assert token.email == "ada@example.com"

    def test_tokens_are_unique(self):
        tokens = {generate_token(1, timedelta(hours=1), "authentication").plaintext for _ in range(50)}
        assert len(tokens) == 50

    def test_plaintext_shape_validation(self):
        v = Validator()
        validate_token_plaintext(v, "")
        assert v.errors == {"token": "must be provided"}

        v = Validator()
        validate_token_plaintext(v, "ABC")
        assert v.errors == {"token": "must be 26 bytes long"}


class TestAuthenticationTokens:
    @pytest.mark.asyncio
    async def test_round_trip_through_database(self, context):
        user = await _register(context)
        async with context.session_factory() as session, session.begin():
            token = await context.tokens.new(
                session, user.id, timedelta(hours=1), TokenScope.AUTHENTICATION.value
            )

        async with context.session_factory() as session:
            found = await context.users.get_for_token(
                session, TokenScope.AUTHENTICATION.value, token.plaintext
            )
        assert found.id == user.id

    @pytest.mark.asyncio
    async def test_wrong_scope_is_not_found(self, context):
        user = await _register(context)
        async with context.session_factory() as session, session.begin():
            token = await context.tokens.new(
                session, user.id, timedelta(hours=1), TokenScope.AUTHENTICATION.value
            )

        async with context.session_factory() as session:
            with pytest.raises(NotFoundError):
                await context.users.get_for_token(
                    session, TokenScope.ACTIVATION.value, token.plaintext
                )

    @pytest.mark.asyncio
    async def test_expired_token_is_not_found(self, context):
        user = await _register(context)
        async with context.session_factory() as session, session.begin():
            token = await context.tokens.new(
                session, user.id, timedelta(seconds=-1), TokenScope.AUTHENTICATION.value
            )

        async with context.session_factory() as session:
            with pytest.raises(NotFoundError):
                await context.users.get_for_token(
                    session, TokenScope.AUTHENTICATION.value, token.plaintext
                )


class TestEmailVerification:
    @pytest.mark.asyncio
    async def test_verify_returns_email(self, context):
        async with context.session_factory() as session, session.begin():
            token = await context.verifications.new(session, "bob@example.com", timedelta(minutes=5))

        async with context.session_factory() as session:
            assert await context.verifications.verify(session, token.plaintext) == "bob@example.com"

    @pytest.mark.asyncio
    async def test_expired_or_unknown_code(self, context):
        async with context.session_factory() as session, session.begin():
            token = await context.verifications.new(session, "bob@example.com", timedelta(seconds=-1))

        async with context.session_factory() as session:
            with pytest.raises(NotFoundError):
                await context.verifications.verify(session, token.plaintext)
            with pytest.raises(NotFoundError):
                await context.verifications.verify(session, "A" * 26)
