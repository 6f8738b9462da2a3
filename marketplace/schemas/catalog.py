"""
Marketplace Backend — Catalog Schemas
======================================

What:  Request/response models for categories, services and staff.
Why:   Services and staff are created from multipart forms (they carry
       images), so only their responses are modelled here; the typed form
       decoders live in marketplace/forms.py.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from marketplace.models import Category, Service, Staff
from marketplace.schemas.auth import StrictBody


class CategoryRequest(StrictBody):
    category: str = Field(default="", description="3-50 letters, numbers or spaces")


class CategoryResponse(BaseModel):
    id: int
    name: str

    @classmethod
    def from_model(cls, category: Category) -> "CategoryResponse":
        return cls(id=category.id, name=category.name)


class CategoryEnvelope(BaseModel):
    category: CategoryResponse


class CategoriesEnvelope(BaseModel):
    categories: List[CategoryResponse]


class ServiceImageResponse(BaseModel):
    image_url: str
    is_primary: bool
    position: int

    model_config = {"from_attributes": True}


class ServiceResponse(BaseModel):
    id: int
    type_id: int
    name: str
    description: str
    duration: str
    price: float
    categories: List[int] = Field(description="Category IDs")
    staff: List[int] = Field(description="Staff IDs")
    images: List[ServiceImageResponse]
    created_at: datetime

    @classmethod
    def from_model(cls, service: Service) -> "ServiceResponse":
        return cls(
            id=service.id,
            type_id=service.type_id,
            name=service.name,
            description=service.description,
            duration=service.duration,
            price=service.price,
            categories=service.category_ids,
            staff=service.staff_ids,
            images=[ServiceImageResponse.model_validate(i) for i in service.images],
            created_at=service.created_at,
        )


class ServiceEnvelope(BaseModel):
    service: ServiceResponse


class ServicesEnvelope(BaseModel):
    services: List[ServiceResponse]


class StaffResponse(BaseModel):
    id: int
    name: str
    phone_number: Optional[str] = None
    email: str
    profile_picture: Optional[str] = None
    is_owner: bool
    services: List[int] = Field(description="Service IDs")

    @classmethod
    def from_model(cls, staff: Staff) -> "StaffResponse":
        return cls(
            id=staff.id,
            name=staff.name,
            phone_number=staff.phone_number,
            email=staff.email,
            profile_picture=staff.profile_picture,
            is_owner=staff.is_owner,
            services=staff.service_ids,
        )


class StaffEnvelope(BaseModel):
    staff: StaffResponse


class StaffListEnvelope(BaseModel):
    staff: List[StaffResponse]
