"""
Marketplace Backend — Typed Multipart Decoders
===============================================

What:  One explicit decoding function per multipart endpoint (provider update,
       provider gallery, service, staff), each producing a typed dataclass.
Why:   Every field is converted on purpose: a value that does not parse
       ("abc" for a price) becomes a field error instead of being silently
       skipped.
How:   read_multipart() enforces the content type and the total size limit,
       then each decoder pulls its fields out of the form, recording
       conversion problems on the request's Validator. File parts are read
       into ImageUpload values while the form (and its temp files) is open.

Form Conventions:
    - ID lists are repeated fields (categories=1&categories=2); a single
      comma-separated value ("1,2") is accepted too.
    - A file input left empty by the browser (no filename) counts as absent.
"""

import math
from dataclasses import dataclass, field
from typing import List, Optional

from starlette.datastructures import FormData, UploadFile
from starlette.requests import Request

from marketplace.exceptions import BadRequestError
from marketplace.services.uploads import ImageUpload
from marketplace.validator import Validator


@dataclass
class ServiceForm:
    name: str = ""
    description: str = ""
    duration: str = ""
    price: Optional[float] = None
    type_id: Optional[int] = None
    categories: List[int] = field(default_factory=list)
    staff: List[int] = field(default_factory=list)
    images: List[ImageUpload] = field(default_factory=list)


@dataclass
class StaffForm:
    name: str = ""
    phone_number: str = ""
    email: str = ""
    services: List[int] = field(default_factory=list)
    profile_picture: Optional[ImageUpload] = None


@dataclass
class ProviderUpdateForm:
    """Only the fields present in the form are changed."""

    name: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    description: Optional[str] = None
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    logo: Optional[ImageUpload] = None
    cover_photo: Optional[ImageUpload] = None

    def changes(self) -> dict:
        fields = ("name", "email", "phone_number", "description", "address", "latitude", "longitude")
        return {name: getattr(self, name) for name in fields if getattr(self, name) is not None}


@dataclass
class GalleryForm:
    images: List[ImageUpload] = field(default_factory=list)


# ── Field Helpers ─────────────────────────────────────────────────────────


def _text(form: FormData, key: str) -> Optional[str]:
    value = form.get(key)
    if value is None or isinstance(value, UploadFile):
        return None
    return value.strip()


def _int(v: Validator, form: FormData, key: str) -> Optional[int]:
    raw = _text(form, key)
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        v.add_error(key, "must be an integer")
        return None


def _float(v: Validator, form: FormData, key: str, message: str) -> Optional[float]:
    raw = _text(form, key)
    if raw is None or raw == "":
        return None
    try:
        value = float(raw)
    except ValueError:
        v.add_error(key, message)
        return None
    if not math.isfinite(value):
        v.add_error(key, message)
        return None
    return value


def _int_list(v: Validator, form: FormData, key: str) -> List[int]:
    values: List[int] = []
    for item in form.getlist(key):
        if isinstance(item, UploadFile):
            v.add_error(key, "must be a list of IDs")
            continue
        for part in item.split(","):
            part = part.strip()
            if not part:
                continue
            try:
                values.append(int(part))
            except ValueError:
                v.add_error(key, "must contain only integer IDs")
    return values


async def _files(form: FormData, key: str) -> List[ImageUpload]:
    uploads: List[ImageUpload] = []
    for item in form.getlist(key):
        if not isinstance(item, UploadFile) or not item.filename:
            continue
        uploads.append(ImageUpload(filename=item.filename, content=await item.read()))
    return uploads


async def _file(form: FormData, key: str) -> Optional[ImageUpload]:
    files = await _files(form, key)
    return files[0] if files else None


# ── Request Guards ────────────────────────────────────────────────────────


def _check_multipart(request: Request, max_bytes: int) -> None:
    content_type = request.headers.get("content-type", "")
    if not content_type.startswith("multipart/form-data"):
        raise BadRequestError("request body must be multipart/form-data")

    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit() and int(content_length) > max_bytes:
        raise BadRequestError(f"multipart form must not be larger than {max_bytes} bytes")


def _check_total(uploads: List[ImageUpload], max_bytes: int) -> None:
    # Chunked requests carry no Content-Length; count what was actually read
    if sum(u.size for u in uploads) > max_bytes:
        raise BadRequestError(f"multipart form must not be larger than {max_bytes} bytes")


# ── Decoders ──────────────────────────────────────────────────────────────


async def decode_service_form(request: Request, v: Validator, max_bytes: int) -> ServiceForm:
    _check_multipart(request, max_bytes)
    async with request.form() as form:
        decoded = ServiceForm(
            name=_text(form, "name") or "",
            description=_text(form, "description") or "",
            duration=_text(form, "duration") or "",
            price=_float(v, form, "price", "must be a valid number"),
            type_id=_int(v, form, "type_id"),
            categories=_int_list(v, form, "categories"),
            staff=_int_list(v, form, "staff"),
            images=await _files(form, "images"),
        )
    _check_total(decoded.images, max_bytes)
    return decoded


async def decode_staff_form(request: Request, v: Validator, max_bytes: int) -> StaffForm:
    _check_multipart(request, max_bytes)
    async with request.form() as form:
        decoded = StaffForm(
            name=_text(form, "name") or "",
            phone_number=_text(form, "phone_number") or "",
            email=_text(form, "email") or "",
            services=_int_list(v, form, "services"),
            profile_picture=await _file(form, "profile_picture"),
        )
    if decoded.profile_picture is not None:
        _check_total([decoded.profile_picture], max_bytes)
    return decoded


async def decode_provider_update_form(
    request: Request, v: Validator, max_bytes: int
) -> ProviderUpdateForm:
    _check_multipart(request, max_bytes)
    async with request.form() as form:
        decoded = ProviderUpdateForm(
            name=_text(form, "name"),
            email=_text(form, "email"),
            phone_number=_text(form, "phone_number"),
            description=_text(form, "description"),
            address=_text(form, "address"),
            latitude=_float(v, form, "latitude", "must be a valid coordinate"),
            longitude=_float(v, form, "longitude", "must be a valid coordinate"),
            logo=await _file(form, "logo"),
            cover_photo=await _file(form, "cover_photo"),
        )
    _check_total([u for u in (decoded.logo, decoded.cover_photo) if u is not None], max_bytes)
    return decoded


async def decode_gallery_form(request: Request, v: Validator, max_bytes: int) -> GalleryForm:
    _check_multipart(request, max_bytes)
    async with request.form() as form:
        decoded = GalleryForm(images=await _files(form, "images"))
    _check_total(decoded.images, max_bytes)
    v.check(len(decoded.images) > 0, "images", "must include at least one image")
    return decoded
