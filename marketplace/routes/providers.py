"""
Marketplace Backend — Provider Routes
======================================

What:  Provider profile creation and editing, gallery images, and weekly
       business hours.
Who:   Provider-role users; GET /providers/{id} is open to any signed-in user.

Route Order:
    The static paths (/providers/images, /providers/business-hours) are
    declared before /providers/{provider_id} so they are never captured by
    the path parameter.
"""

import logging

from fastapi import APIRouter, Depends, Path, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.context import AppContext
from marketplace.dependencies import (
    get_context,
    get_current_provider,
    get_current_user,
    get_db_session,
    require_provider_role,
)
from marketplace.forms import decode_gallery_form, decode_provider_update_form
from marketplace.models import Provider, User
from marketplace.schemas.provider import (
    BusinessHourEnvelope,
    BusinessHourRequest,
    BusinessHourResponse,
    BusinessHoursEnvelope,
    ProviderCreateRequest,
    ProviderEnvelope,
    ProviderImageResponse,
    ProviderImagesEnvelope,
    ProviderResponse,
)
from marketplace.services.provider_service import validate_business_hour, validate_provider
from marketplace.services.uploads import validate_image, validate_images
from marketplace.validator import MAX_ID, Validator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/providers", tags=["Providers"])


# ══════════════════════════════════════════════════════════════════════════
# Profile
# ══════════════════════════════════════════════════════════════════════════


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=ProviderEnvelope,
    summary="Create the provider profile for the signed-in user",
)
async def create_provider(
    draft: ProviderCreateRequest,
    user: User = Depends(require_provider_role),
    ctx: AppContext = Depends(get_context),
) -> ProviderEnvelope:
    """Creates the provider and its owner staff member in one transaction."""
    v = Validator()
    validate_provider(v, draft)
    v.raise_if_invalid()

    provider = await ctx.orchestrator.create_provider(draft, user)
    return ProviderEnvelope(provider=ProviderResponse.model_validate(provider))


@router.patch(
    "",
    response_model=ProviderEnvelope,
    summary="Update profile fields, logo or cover photo (multipart)",
)
async def update_provider(
    request: Request,
    provider: Provider = Depends(get_current_provider),
    ctx: AppContext = Depends(get_context),
) -> ProviderEnvelope:
    settings = ctx.settings
    v = Validator()
    form = await decode_provider_update_form(request, v, settings.max_form_bytes)

    # The profile must still be valid once the changes are applied
    merged = ProviderCreateRequest(
        name=provider.name,
        email=provider.email,
        phone_number=provider.phone_number,
        description=provider.description,
        address=provider.address,
        latitude=provider.latitude,
        longitude=provider.longitude,
    ).model_copy(update=form.changes())
    validate_provider(v, merged)
    if form.logo is not None:
        validate_image(v, "logo", form.logo, settings.max_image_bytes)
    if form.cover_photo is not None:
        validate_image(v, "cover_photo", form.cover_photo, settings.max_image_bytes)
    v.raise_if_invalid()

    updated = await ctx.orchestrator.update_provider(provider.id, form)
    return ProviderEnvelope(provider=ProviderResponse.model_validate(updated))


# ══════════════════════════════════════════════════════════════════════════
# Gallery
# ══════════════════════════════════════════════════════════════════════════


@router.post(
    "/images",
    status_code=status.HTTP_201_CREATED,
    response_model=ProviderImagesEnvelope,
    summary="Upload gallery images (multipart field 'images')",
)
async def upload_provider_images(
    request: Request,
    provider: Provider = Depends(get_current_provider),
    ctx: AppContext = Depends(get_context),
) -> ProviderImagesEnvelope:
    settings = ctx.settings
    v = Validator()
    form = await decode_gallery_form(request, v, settings.max_form_bytes)
    validate_images(v, "images", form.images, settings.max_image_bytes, settings.max_service_images)
    v.raise_if_invalid()

    rows = await ctx.orchestrator.add_provider_images(provider.id, form.images)
    return ProviderImagesEnvelope(images=[ProviderImageResponse.model_validate(r) for r in rows])


@router.get("/images", response_model=ProviderImagesEnvelope, summary="List gallery images, newest first")
async def list_provider_images(
    provider: Provider = Depends(get_current_provider),
    db: AsyncSession = Depends(get_db_session),
    ctx: AppContext = Depends(get_context),
) -> ProviderImagesEnvelope:
    rows = await ctx.providers.list_images(db, provider.id)
    return ProviderImagesEnvelope(images=[ProviderImageResponse.model_validate(r) for r in rows])


# ══════════════════════════════════════════════════════════════════════════
# Business Hours
# ══════════════════════════════════════════════════════════════════════════


@router.post(
    "/business-hours",
    status_code=status.HTTP_201_CREATED,
    response_model=BusinessHourEnvelope,
    summary="Set the opening hours for one day of the week",
)
async def create_business_hour(
    draft: BusinessHourRequest,
    provider: Provider = Depends(get_current_provider),
    db: AsyncSession = Depends(get_db_session),
    ctx: AppContext = Depends(get_context),
) -> BusinessHourEnvelope:
    v = Validator()
    validate_business_hour(v, draft)
    v.raise_if_invalid()

    hour = await ctx.providers.create_business_hour(db, provider.id, draft)
    return BusinessHourEnvelope(business_hour=BusinessHourResponse.model_validate(hour))


@router.get("/business-hours", response_model=BusinessHoursEnvelope, summary="List business hours by day")
async def list_business_hours(
    provider: Provider = Depends(get_current_provider),
    db: AsyncSession = Depends(get_db_session),
    ctx: AppContext = Depends(get_context),
) -> BusinessHoursEnvelope:
    hours = await ctx.providers.list_business_hours(db, provider.id)
    return BusinessHoursEnvelope(
        business_hours=[BusinessHourResponse.model_validate(h) for h in hours]
    )


@router.put(
    "/business-hours/{hour_id}",
    response_model=BusinessHourEnvelope,
    summary="Replace the hours of one business-hour entry",
)
async def update_business_hour(
    draft: BusinessHourRequest,
    hour_id: int = Path(ge=1, le=MAX_ID),
    provider: Provider = Depends(get_current_provider),
    db: AsyncSession = Depends(get_db_session),
    ctx: AppContext = Depends(get_context),
) -> BusinessHourEnvelope:
    v = Validator()
    validate_business_hour(v, draft)
    v.raise_if_invalid()

    hour = await ctx.providers.update_business_hour(db, provider.id, hour_id, draft)
    return BusinessHourEnvelope(business_hour=BusinessHourResponse.model_validate(hour))


# ══════════════════════════════════════════════════════════════════════════
# Public Profile
# ══════════════════════════════════════════════════════════════════════════


@router.get("/{provider_id}", response_model=ProviderEnvelope, summary="Show a provider profile")
async def get_provider(
    provider_id: int = Path(ge=1, le=MAX_ID),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    ctx: AppContext = Depends(get_context),
) -> ProviderEnvelope:
    provider = await ctx.providers.get(db, provider_id)
    return ProviderEnvelope(provider=ProviderResponse.model_validate(provider))
