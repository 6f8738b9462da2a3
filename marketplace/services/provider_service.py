"""
Marketplace Backend — Provider Service
=======================================

What:  Provider validation rules and read paths, plus the single-table
       writes a provider owner makes on their own profile (business hours).
Who:   Route handlers call it with the request-scoped session; the write
       orchestrator reuses the validation rules.

Ordering:
    images          newest first (uploaded_at DESC, id DESC)
    business hours  by day of week (Sunday = 0 first)
"""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.database import is_unique_violation
from marketplace.exceptions import DuplicateRecordError, NotFoundError
from marketplace.models import Provider, ProviderBusinessHour, ProviderImage
from marketplace.schemas.provider import BusinessHourRequest, ProviderCreateRequest
from marketplace.services.user_service import validate_email, validate_phone_number
from marketplace.validator import Validator, byte_length

logger = logging.getLogger(__name__)


# ── Validation Rules ──────────────────────────────────────────────────────


def validate_coordinates(v: Validator, latitude: Optional[float], longitude: Optional[float]) -> None:
    if latitude is not None:
        v.check(-90 <= latitude <= 90, "latitude", "must be between -90 and 90")
    if longitude is not None:
        v.check(-180 <= longitude <= 180, "longitude", "must be between -180 and 180")
    v.check(
        not (latitude is not None and longitude is None),
        "longitude",
        "must be provided together with latitude",
    )
    v.check(
        not (longitude is not None and latitude is None),
        "latitude",
        "must be provided together with longitude",
    )


def validate_provider(v: Validator, draft: ProviderCreateRequest) -> None:
    v.check(draft.name != "", "name", "must be provided")
    v.check(byte_length(draft.name) <= 100, "name", "must not be more than 100 bytes long")
    validate_email(v, draft.email)
    validate_phone_number(v, draft.phone_number)
    v.check(byte_length(draft.description) <= 1000, "description", "must not be more than 1000 bytes long")
    if draft.address is not None:
        v.check(draft.address != "", "address", "must not be empty")
        v.check(byte_length(draft.address) <= 255, "address", "must not be more than 255 bytes long")
    validate_coordinates(v, draft.latitude, draft.longitude)


def validate_business_hour(v: Validator, draft: BusinessHourRequest) -> None:
    v.check(draft.day_of_week is not None, "day_of_week", "must be provided")
    if draft.day_of_week is not None:
        v.check(
            0 <= draft.day_of_week <= 6,
            "day_of_week",
            "must be between 0 (Sunday) and 6 (Saturday)",
        )

    if draft.is_closed:
        v.check(draft.open_time is None, "open_time", "must be empty when closed")
        v.check(draft.close_time is None, "close_time", "must be empty when closed")
        return

    v.check(draft.open_time is not None, "open_time", "must be provided when open")
    v.check(draft.close_time is not None, "close_time", "must be provided when open")
    if draft.open_time is not None and draft.close_time is not None:
        v.check(draft.open_time < draft.close_time, "close_time", "must be after open_time")


class ProviderService:
    """Stateless; every call receives the session it should use."""

    async def get(self, db: AsyncSession, provider_id: int) -> Provider:
        provider = await db.get(Provider, provider_id)
        if provider is None:
            raise NotFoundError(resource="provider", resource_id=provider_id)
        return provider

    async def get_by_user_id(self, db: AsyncSession, user_id: int) -> Provider:
        result = await db.execute(select(Provider).where(Provider.user_id == user_id))
        provider = result.scalar_one_or_none()
        if provider is None:
            raise NotFoundError(resource="provider", context={"user_id": user_id})
        return provider

    async def list_images(self, db: AsyncSession, provider_id: int) -> List[ProviderImage]:
        result = await db.execute(
            select(ProviderImage)
            .where(ProviderImage.provider_id == provider_id)
            .order_by(ProviderImage.uploaded_at.desc(), ProviderImage.id.desc())
        )
        return list(result.scalars().all())

    # ── Business Hours ────────────────────────────────────────────────────

    async def list_business_hours(self, db: AsyncSession, provider_id: int) -> List[ProviderBusinessHour]:
        result = await db.execute(
            select(ProviderBusinessHour)
            .where(ProviderBusinessHour.provider_id == provider_id)
            .order_by(ProviderBusinessHour.day_of_week)
        )
        return list(result.scalars().all())

    async def create_business_hour(
        self, db: AsyncSession, provider_id: int, draft: BusinessHourRequest
    ) -> ProviderBusinessHour:
        hour = ProviderBusinessHour(
            provider_id=provider_id,
            day_of_week=draft.day_of_week,
            is_closed=draft.is_closed,
            open_time=None if draft.is_closed else draft.open_time,
            close_time=None if draft.is_closed else draft.close_time,
        )
        db.add(hour)
        await self._flush_hours(db, provider_id, draft.day_of_week)
        return hour

    async def update_business_hour(
        self, db: AsyncSession, provider_id: int, hour_id: int, draft: BusinessHourRequest
    ) -> ProviderBusinessHour:
        result = await db.execute(
            select(ProviderBusinessHour).where(
                ProviderBusinessHour.id == hour_id,
                ProviderBusinessHour.provider_id == provider_id,
            )
        )
        hour = result.scalar_one_or_none()
        if hour is None:
            raise NotFoundError(resource="business hour", resource_id=hour_id)

        hour.day_of_week = draft.day_of_week
        hour.is_closed = draft.is_closed
        hour.open_time = None if draft.is_closed else draft.open_time
        hour.close_time = None if draft.is_closed else draft.close_time
        await self._flush_hours(db, provider_id, draft.day_of_week)
        return hour

    async def _flush_hours(self, db: AsyncSession, provider_id: int, day_of_week: Optional[int]) -> None:
        try:
            await db.flush()
        except IntegrityError as e:
            if is_unique_violation(e):
                raise DuplicateRecordError(
                    "day_of_week",
                    "business hours already exist for this day",
                    context={"provider_id": provider_id, "day_of_week": day_of_week},
                ) from e
            raise
