"""
ORM models. Importing this package registers every table on Base.metadata,
which Alembic and the test suite rely on.
"""

from marketplace.models.user import EmailVerificationToken, Role, Token, TokenScope, User
from marketplace.models.provider import Provider, ProviderBusinessHour, ProviderImage
from marketplace.models.category import Category
from marketplace.models.service import Service, ServiceCategory, ServiceImage
from marketplace.models.staff import Staff, StaffService

__all__ = [
    "Category",
    "EmailVerificationToken",
    "Provider",
    "ProviderBusinessHour",
    "ProviderImage",
    "Role",
    "Service",
    "ServiceCategory",
    "ServiceImage",
    "Staff",
    "StaffService",
    "Token",
    "TokenScope",
    "User",
]
