from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from marketplace.exceptions import NotFoundError
from marketplace.forms import StaffForm
from marketplace.models import Staff
from marketplace.services.service_catalog import validate_id_list
from marketplace.services.uploads import validate_image
from marketplace.services.user_service import validate_email, validate_phone_number
from marketplace.validator import Validator, byte_length


def validate_staff(v: Validator, form: StaffForm, max_image_bytes: int = 5 * 1024 * 1024) -> None:
    v.check(form.name != "", "name", "must be provided")
    v.check(byte_length(form.name) <= 100, "name", "must not be more than 100 bytes long")
    validate_phone_number(v, form.phone_number)
    validate_email(v, form.email)
    validate_id_list(v, "services", form.services, "service")
    if form.profile_picture is not None:
        validate_image(v, "profile_picture", form.profile_picture, max_image_bytes)


class StaffService:
    async def get(self, db: AsyncSession, provider_id: int, staff_id: int) -> Staff:
        result = await db.execute(
            select(Staff)
            .options(selectinload(Staff.service_links))
            .where(Staff.id == staff_id, Staff.provider_id == provider_id)
        )
        staff = result.scalar_one_or_none()
        if staff is None:
            raise NotFoundError(resource="staff", resource_id=staff_id)
        return staff

    async def list_for_provider(self, db: AsyncSession, provider_id: int) -> List[Staff]:
        """Owner first, then by name."""
        result = await db.execute(
            select(Staff)
            .options(selectinload(Staff.service_links))
            .where(Staff.provider_id == provider_id)
            .order_by(Staff.is_owner.desc(), Staff.name, Staff.id)
        )
        return list(result.scalars().all())
