"""
Marketplace Backend — Authentication Routes
============================================

What:  Registration, login (bearer token issue) and email verification.
Who:   Public endpoints; nothing here requires an existing token.

Email Delivery:
    Welcome and verification emails go through the background task pool,
    so a slow SMTP server never delays the response. A failed delivery is
    reported as a task outcome in the log; the request has already succeeded.
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.context import AppContext
from marketplace.dependencies import get_context, get_db_session
from marketplace.exceptions import FailedValidationError, NotFoundError
from marketplace.models import TokenScope
from marketplace.schemas.auth import (
    AuthToken,
    AuthTokenEnvelope,
    LoginRequest,
    RegisterRequest,
    UserEnvelope,
    UserResponse,
    VerificationData,
    VerificationEnvelope,
    VerificationRequest,
    VerifyTokenRequest,
)
from marketplace.services.token_service import validate_token_plaintext
from marketplace.services.user_service import validate_email, validate_password_plaintext
from marketplace.validator import Validator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    response_model=UserEnvelope,
    summary="Register a client or provider account",
)
async def register_user(
    draft: RegisterRequest,
    db: AsyncSession = Depends(get_db_session),
    ctx: AppContext = Depends(get_context),
) -> UserEnvelope:
    user = await ctx.users.register(db, draft)
    await db.commit()

    ctx.task_pool.submit(
        "welcome_email",
        ctx.mailer.send,
        user.email,
        "user_welcome",
        {"user_id": user.id, "first_name": user.first_name},
        user_id=user.id,
    )

    return UserEnvelope(user=UserResponse.model_validate(user))


@router.post(
    "/login",
    status_code=status.HTTP_201_CREATED,
    response_model=AuthTokenEnvelope,
    summary="Exchange email and password for a bearer token",
)
async def create_authentication_token(
    body: LoginRequest,
    db: AsyncSession = Depends(get_db_session),
    ctx: AppContext = Depends(get_context),
) -> AuthTokenEnvelope:
    v = Validator()
    validate_email(v, body.email)
    validate_password_plaintext(v, body.password)
    v.raise_if_invalid()

    user = await ctx.users.authenticate(db, body.email, body.password)
    token = await ctx.tokens.new(
        db, user.id, ctx.settings.auth_token_ttl, TokenScope.AUTHENTICATION.value
    )
    logger.info("Issued authentication token for user %d", user.id)

    return AuthTokenEnvelope(
        authentication_token=AuthToken(token=token.plaintext, expiry=token.expiry)
    )


@router.post(
    "/request-verification",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=VerificationEnvelope,
    summary="Email a short-lived verification code",
)
async def request_email_verification(
    body: VerificationRequest,
    db: AsyncSession = Depends(get_db_session),
    ctx: AppContext = Depends(get_context),
) -> VerificationEnvelope:
    v = Validator()
    validate_email(v, body.email)
    v.raise_if_invalid()

    ttl = ctx.settings.verification_token_ttl
    token = await ctx.verifications.new(db, body.email, ttl)
    await db.commit()

    ctx.task_pool.submit(
        "verification_email",
        ctx.mailer.send,
        body.email,
        "email_verification",
        {"token": token.plaintext, "ttl_minutes": int(ttl.total_seconds() // 60)},
        email=body.email,
    )

    return VerificationEnvelope(
        data=VerificationData(
            message="a verification code has been sent to your email address",
            email=body.email,
        )
    )


@router.post(
    "/verify-token",
    response_model=VerificationEnvelope,
    summary="Confirm an emailed verification code",
)
async def verify_email_token(
    body: VerifyTokenRequest,
    db: AsyncSession = Depends(get_db_session),
    ctx: AppContext = Depends(get_context),
) -> VerificationEnvelope:
    v = Validator()
    validate_token_plaintext(v, body.token)
    v.raise_if_invalid()

    try:
        email = await ctx.verifications.verify(db, body.token)
    except NotFoundError:
        raise FailedValidationError({"token": "invalid or expired verification token"}) from None

    await ctx.verifications.delete_all_for_email(db, email)
    if await ctx.users.activate_by_email(db, email):
        logger.info("Activated account for verified email %s", email)

    return VerificationEnvelope(
        data=VerificationData(message="email verification successful", email=email)
    )
