import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.context import AppContext
from marketplace.dependencies import get_context, get_current_provider, get_db_session
from marketplace.models import Provider
from marketplace.schemas.catalog import (
    CategoriesEnvelope,
    CategoryEnvelope,
    CategoryRequest,
    CategoryResponse,
)
from marketplace.services.category_service import validate_category
from marketplace.validator import Validator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/categories", tags=["Categories"])


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=CategoryEnvelope,
    summary="Create a category for the signed-in provider",
)
async def create_category(
    body: CategoryRequest,
    provider: Provider = Depends(get_current_provider),
    db: AsyncSession = Depends(get_db_session),
    ctx: AppContext = Depends(get_context),
) -> CategoryEnvelope:
    v = Validator()
    validate_category(v, body.category)
    v.raise_if_invalid()

    category = await ctx.categories.create(db, provider.id, body.category)
    return CategoryEnvelope(category=CategoryResponse.from_model(category))


@router.get("", response_model=CategoriesEnvelope, summary="List the provider's categories by name")
async def list_categories(
    provider: Provider = Depends(get_current_provider),
    db: AsyncSession = Depends(get_db_session),
    ctx: AppContext = Depends(get_context),
) -> CategoriesEnvelope:
    categories = await ctx.categories.list_for_provider(db, provider.id)
    return CategoriesEnvelope(categories=[CategoryResponse.from_model(c) for c in categories])
