from datetime import datetime, time
from typing import List, Optional

from pydantic import BaseModel, Field

from marketplace.schemas.auth import StrictBody


class ProviderCreateRequest(StrictBody):
    name: str = ""
    email: str = ""
    phone_number: str = ""
    description: str = ""
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class ProviderResponse(BaseModel):
    id: int
    name: str
    email: str
    phone_number: str
    description: str
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    logo_url: Optional[str] = None
    cover_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ProviderEnvelope(BaseModel):
    provider: ProviderResponse


class ProviderImageResponse(BaseModel):
    id: int
    image_url: str
    uploaded_at: datetime

    model_config = {"from_attributes": True}


class ProviderImagesEnvelope(BaseModel):
    images: List[ProviderImageResponse]


class BusinessHourRequest(StrictBody):
    day_of_week: Optional[int] = Field(default=None, description="0 = Sunday ... 6 = Saturday")
    is_closed: bool = False
    open_time: Optional[time] = Field(default=None, description="HH:MM:SS")
    close_time: Optional[time] = Field(default=None, description="HH:MM:SS")


class BusinessHourResponse(BaseModel):
    id: int
    day_of_week: int
    is_closed: bool
    open_time: Optional[time] = None
    close_time: Optional[time] = None

    model_config = {"from_attributes": True}


class BusinessHourEnvelope(BaseModel):
    business_hour: BusinessHourResponse


class BusinessHoursEnvelope(BaseModel):
    business_hours: List[BusinessHourResponse]
