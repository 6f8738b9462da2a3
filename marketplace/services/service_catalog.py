"""
Marketplace Backend — Service Catalog
======================================

What:  Validation rules and read paths for a provider's services.
Why:   Creation goes through the write orchestrator (it spans several tables
       and an object store); this module owns what a valid service looks like
       and how services are read back with their links and images.

Validation Highlights:
    price     > 0 and finite ("0" rejected, "0.01" accepted)
    duration  compact time span, strictly positive ("45m", "1h30m"; "abc" rejected)
    categories / staff  non-empty, no duplicates, positive IDs
    images    at most max_service_images, each an allowed type and size
"""

from typing import List, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from marketplace.exceptions import NotFoundError
from marketplace.forms import ServiceForm
from marketplace.models import Service
from marketplace.services.uploads import validate_images
from marketplace.validator import MAX_ID, Validator, byte_length, has_duplicates, parse_duration


def validate_id_list(v: Validator, key: str, ids: Sequence[int], label: str) -> None:
    v.check(len(ids) > 0, key, f"must include at least one {label}")
    v.check(not has_duplicates(ids), key, "must not contain duplicate values")
    v.check(all(i > 0 for i in ids), key, "must contain only positive IDs")
    v.check(all(i <= MAX_ID for i in ids), key, f"must contain only IDs up to {MAX_ID}")


def validate_duration(v: Validator, duration: str) -> None:
    v.check(duration != "", "duration", "must be provided")
    if not duration:
        return
    v.check(byte_length(duration) <= 32, "duration", "must not be more than 32 bytes long")
    try:
        parsed = parse_duration(duration)
    except ValueError:
        v.add_error("duration", "must be a valid duration (e.g. '30m', '1h')")
        return
    v.check(parsed.total_seconds() > 0, "duration", "must be greater than zero")


def validate_service(
    v: Validator,
    form: ServiceForm,
    max_images: int = 5,
    max_image_bytes: int = 5 * 1024 * 1024,
) -> None:
    v.check(form.name != "", "name", "must be provided")
    v.check(byte_length(form.name) <= 100, "name", "must not be more than 100 bytes long")

    v.check(form.description != "", "description", "must be provided")
    v.check(byte_length(form.description) <= 1000, "description", "must not be more than 1000 bytes long")

    v.check(form.price is not None, "price", "must be provided")
    if form.price is not None:
        v.check(form.price > 0, "price", "must be greater than zero")

    v.check(form.type_id is not None, "type_id", "must be provided")
    if form.type_id is not None:
        v.check(form.type_id > 0, "type_id", "must be a positive integer")
        v.check(form.type_id <= MAX_ID, "type_id", f"must not be greater than {MAX_ID}")

    validate_duration(v, form.duration)
    validate_id_list(v, "categories", form.categories, "category")
    validate_id_list(v, "staff", form.staff, "staff member")
    validate_images(v, "images", form.images, max_image_bytes, max_images)


class ServiceCatalog:
    def _query(self):
        return select(Service).options(
            selectinload(Service.category_links),
            selectinload(Service.staff_links),
            selectinload(Service.images),
        )

    async def get(self, db: AsyncSession, provider_id: int, service_id: int) -> Service:
        result = await db.execute(
            self._query().where(Service.id == service_id, Service.provider_id == provider_id)
        )
        service = result.scalar_one_or_none()
        if service is None:
            raise NotFoundError(resource="service", resource_id=service_id)
        return service

    async def list_for_provider(self, db: AsyncSession, provider_id: int) -> List[Service]:
        result = await db.execute(
            self._query()
            .where(Service.provider_id == provider_id)
            .order_by(Service.name, Service.id)
        )
        return list(result.scalars().all())
