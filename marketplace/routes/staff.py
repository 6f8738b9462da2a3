import logging

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.context import AppContext
from marketplace.dependencies import get_context, get_current_provider, get_db_session
from marketplace.forms import decode_staff_form
from marketplace.models import Provider
from marketplace.schemas.catalog import StaffEnvelope, StaffListEnvelope, StaffResponse
from marketplace.services.staff_service import validate_staff
from marketplace.validator import Validator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/staff", tags=["Staff"])


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=StaffEnvelope,
    summary="Add a staff member linked to existing services (multipart)",
)
async def create_staff(
    request: Request,
    provider: Provider = Depends(get_current_provider),
    ctx: AppContext = Depends(get_context),
) -> StaffEnvelope:
    settings = ctx.settings
    v = Validator()
    form = await decode_staff_form(request, v, settings.max_form_bytes)
    validate_staff(v, form, max_image_bytes=settings.max_image_bytes)
    v.raise_if_invalid()

    staff = await ctx.orchestrator.create_staff(provider.id, form)
    return StaffEnvelope(staff=StaffResponse.from_model(staff))


@router.get("", response_model=StaffListEnvelope, summary="List staff, owner first")
async def list_staff(
    provider: Provider = Depends(get_current_provider),
    db: AsyncSession = Depends(get_db_session),
    ctx: AppContext = Depends(get_context),
) -> StaffListEnvelope:
    members = await ctx.staff.list_for_provider(db, provider.id)
    return StaffListEnvelope(staff=[StaffResponse.from_model(m) for m in members])
