import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.database import is_unique_violation
from marketplace.exceptions import DuplicateRecordError
from marketplace.models import Category
from marketplace.validator import CATEGORY_RX, Validator, byte_length, matches

logger = logging.getLogger(__name__)


def validate_category(v: Validator, name: str) -> None:
    v.check(name != "", "category", "must be provided")
    v.check(byte_length(name) >= 3, "category", "must be at least 3 bytes long")
    v.check(byte_length(name) <= 50, "category", "must not be more than 50 bytes long")
    v.check(matches(name, CATEGORY_RX), "category", "must contain only letters, numbers and spaces")


class CategoryService:
    async def create(self, db: AsyncSession, provider_id: int, name: str) -> Category:
        """
        Raises:
            DuplicateRecordError when the provider already has a category with
            this name.
        """
        category = Category(provider_id=provider_id, name=name)
        db.add(category)
        try:
            await db.flush()
        except IntegrityError as e:
            if is_unique_violation(e):
                raise DuplicateRecordError(
                    "category",
                    "a category with this name already exists",
                    context={"provider_id": provider_id, "name": name},
                ) from e
            raise
        logger.info("Created category %d for provider %d", category.id, provider_id)
        return category

    async def list_for_provider(self, db: AsyncSession, provider_id: int) -> List[Category]:
        result = await db.execute(
            select(Category)
            .where(Category.provider_id == provider_id)
            .order_by(Category.name, Category.id)
        )
        return list(result.scalars().all())
