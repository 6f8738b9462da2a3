"""
Marketplace Backend — Auth Request/Response Schemas
====================================================

What:  Pydantic models for the /auth endpoints.
Why:   Request models only enforce JSON shape (types, no unknown fields);
       business rules live in the Validator so that every endpoint reports
       field errors in the same first-error-wins format.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class StrictBody(BaseModel):
    """Base for JSON request bodies: unknown fields are a client error."""

    model_config = ConfigDict(extra="forbid")


# ══════════════════════════════════════════════════════════════════════════
# Requests
# ══════════════════════════════════════════════════════════════════════════


class RegisterRequest(StrictBody):
    first_name: str = Field(default="", description="Given name")
    last_name: str = Field(default="", description="Family name")
    email: str = Field(default="", description="Login email, unique across users")
    phone_number: Optional[str] = Field(default=None, description="10 digit phone number")
    password: str = Field(default="", description="8 to 72 bytes")
    role: str = Field(default="", description="'client' or 'provider'")


class LoginRequest(StrictBody):
    email: str = ""
    password: str = ""


class VerificationRequest(StrictBody):
    email: str = ""


class VerifyTokenRequest(StrictBody):
    token: str = ""


# ══════════════════════════════════════════════════════════════════════════
# Responses
# ══════════════════════════════════════════════════════════════════════════


class UserResponse(BaseModel):
    id: int
    email: str
    first_name: str
    last_name: str
    phone_number: Optional[str] = None
    activated: bool
    role: str
    created_at: datetime

    model_config = {"from_attributes": True}


class UserEnvelope(BaseModel):
    user: UserResponse


class AuthToken(BaseModel):
    token: str = Field(description="Opaque bearer token; shown once")
    expiry: datetime


class AuthTokenEnvelope(BaseModel):
    authentication_token: AuthToken


class VerificationData(BaseModel):
    message: str
    email: str


class VerificationEnvelope(BaseModel):
    data: VerificationData
