from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    ForeignKeyConstraint,
    Index,
    Integer,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from marketplace.database import Base
from marketplace.models.user import utcnow


class Staff(Base):
    """
    A person who can be assigned to services of one provider.

    Exactly one row per provider has is_owner set; it is created together
    with the provider and mirrors the owning user's contact details.
    """

    __tablename__ = "staff"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    provider_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("providers.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    profile_picture: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    is_owner: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    service_links: Mapped[List["StaffService"]] = relationship(
        viewonly=True, order_by="StaffService.service_id"
    )

    __table_args__ = (
        UniqueConstraint("id", "provider_id", name="staff_id_provider_key"),
        Index(
            "uq_staff_owner_per_provider",
            "provider_id",
            unique=True,
            postgresql_where=text("is_owner"),
            sqlite_where=text("is_owner"),
        ),
    )

    @property
    def service_ids(self) -> List[int]:
        return [link.service_id for link in self.service_links]

    def __repr__(self) -> str:
        return f"<Staff(id={self.id}, provider_id={self.provider_id}, owner={self.is_owner})>"


class StaffService(Base):
    __tablename__ = "staff_services"

    staff_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    service_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    provider_id: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        ForeignKeyConstraint(
            ["staff_id", "provider_id"],
            ["staff.id", "staff.provider_id"],
            ondelete="CASCADE",
            name="fk_staff_services_staff",
        ),
        ForeignKeyConstraint(
            ["service_id", "provider_id"],
            ["services.id", "services.provider_id"],
            ondelete="CASCADE",
            name="fk_staff_services_service",
        ),
    )
