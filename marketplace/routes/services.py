"""
Marketplace Backend — Service Routes
=====================================

What:  Create (multipart, with up to max_service_images images) and list a
       provider's services.

Request Flow (POST /services):
    decode_service_form → validate_service → WriteOrchestrator.create_service
    → 201 {"service": {..., "categories": [...], "staff": [...], "images": [...]}}

    Category and staff IDs must belong to the signed-in provider; an ID from
    another provider is reported exactly like one that does not exist.
"""

import logging

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.context import AppContext
from marketplace.dependencies import get_context, get_current_provider, get_db_session
from marketplace.forms import decode_service_form
from marketplace.models import Provider
from marketplace.schemas.catalog import ServiceEnvelope, ServiceResponse, ServicesEnvelope
from marketplace.services.service_catalog import validate_service
from marketplace.validator import Validator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/services", tags=["Services"])


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=ServiceEnvelope,
    summary="Create a service with categories, staff and images (multipart)",
)
async def create_service(
    request: Request,
    provider: Provider = Depends(get_current_provider),
    ctx: AppContext = Depends(get_context),
) -> ServiceEnvelope:
    settings = ctx.settings
    v = Validator()
    form = await decode_service_form(request, v, settings.max_form_bytes)
    validate_service(
        v,
        form,
        max_images=settings.max_service_images,
        max_image_bytes=settings.max_image_bytes,
    )
    v.raise_if_invalid()

    service = await ctx.orchestrator.create_service(provider.id, form)
    return ServiceEnvelope(service=ServiceResponse.from_model(service))


@router.get("", response_model=ServicesEnvelope, summary="List the provider's services by name")
async def list_services(
    provider: Provider = Depends(get_current_provider),
    db: AsyncSession = Depends(get_db_session),
    ctx: AppContext = Depends(get_context),
) -> ServicesEnvelope:
    services = await ctx.catalog.list_for_provider(db, provider.id)
    return ServicesEnvelope(services=[ServiceResponse.from_model(s) for s in services])
