"""
Marketplace Backend — Request Dependencies
===========================================

What:  FastAPI dependencies for the application context, the request-scoped
       database session and the authentication boundary.

Auth Chain:
    get_current_user      Bearer token → User (401 on anything wrong)
    require_role(role)    User → User with that role (403 otherwise)
    get_current_provider  provider User → their Provider (403 if none yet)

Every route behind get_current_user answers with `Vary: Authorization`, so
caches never share one user's response with another.
"""

import logging
from typing import AsyncGenerator, Awaitable, Callable, Optional

from fastapi import Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.context import AppContext
from marketplace.exceptions import AuthenticationError, NotFoundError, PermissionDeniedError
from marketplace.models import Provider, Role, TokenScope, User
from marketplace.services.token_service import token_length, validate_token_plaintext
from marketplace.validator import Validator

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_context(request: Request) -> AppContext:
    return request.app.state.context


async def get_db_session(
    ctx: AppContext = Depends(get_context),
) -> AsyncGenerator[AsyncSession, None]:
    """
    One session per request.

    Commits when the handler returns normally and rolls back when it raises,
    so a handler that fails halfway leaves nothing behind.
    """
    async with ctx.session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_current_user(
    request: Request,
    response: Response,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db_session),
    ctx: AppContext = Depends(get_context),
) -> User:
    response.headers["Vary"] = "Authorization"

    if not request.headers.get("Authorization"):
        raise AuthenticationError("you must be authenticated to access this resource")
    if credentials is None:
        raise AuthenticationError(context={"reason": "not a bearer token"})

    token = credentials.credentials
    v = Validator()
    validate_token_plaintext(v, token, token_length(TokenScope.AUTHENTICATION.value))
    if not v.valid():
        raise AuthenticationError(context={"reason": "malformed token"})

    try:
        return await ctx.users.get_for_token(db, TokenScope.AUTHENTICATION.value, token)
    except NotFoundError:
        raise AuthenticationError(context={"reason": "unknown or expired token"}) from None


def require_role(role: Role) -> Callable[..., Awaitable[User]]:
    """Dependency factory: the authenticated user, provided they have `role`."""

    async def dependency(user: User = Depends(get_current_user)) -> User:
        if user.role != role.value:
            raise PermissionDeniedError(
                context={"user_id": user.id, "role": user.role, "required": role.value}
            )
        return user

    return dependency


require_provider_role = require_role(Role.PROVIDER)


async def get_current_provider(
    user: User = Depends(require_provider_role),
    db: AsyncSession = Depends(get_db_session),
    ctx: AppContext = Depends(get_context),
) -> Provider:
    try:
        return await ctx.providers.get_by_user_id(db, user.id)
    except NotFoundError:
        raise PermissionDeniedError(
            "you must setup a provider profile", context={"user_id": user.id}
        ) from None
