"""
Marketplace Backend — Service Models
=====================================

What:  ORM models for `services`, `service_categories` and `service_images`.
Why:   A service is priced, timed, tagged with categories, staffed by staff
       members and illustrated by ordered images.

Scoped Foreign Keys:
    Association rows carry provider_id and reference (id, provider_id) pairs,
    so a category or staff member that belongs to another provider fails the
    same way a missing one does: with a foreign-key violation that rolls the
    whole insert back.

    Relationships here are view-only; association rows are written explicitly
    by the write orchestrator in the order the client submitted them.
"""

from datetime import datetime
from typing import List

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    ForeignKeyConstraint,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from marketplace.database import Base
from marketplace.models.user import utcnow


class Service(Base):
    __tablename__ = "services"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    provider_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("providers.id", ondelete="CASCADE"), nullable=False
    )
    type_id: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    # Kept in the compact form the client sent ("30m", "1h30m")
    duration: Mapped[str] = mapped_column(String(32), nullable=False)
    price: Mapped[float] = mapped_column(Float, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    category_links: Mapped[List["ServiceCategory"]] = relationship(
        viewonly=True, order_by="ServiceCategory.category_id"
    )
    staff_links: Mapped[List["StaffService"]] = relationship(
        viewonly=True, order_by="StaffService.staff_id"
    )
    images: Mapped[List["ServiceImage"]] = relationship(
        viewonly=True, order_by="ServiceImage.position"
    )

    __table_args__ = (
        UniqueConstraint("provider_id", "name", name="services_provider_name_key"),
        UniqueConstraint("id", "provider_id", name="services_id_provider_key"),
        CheckConstraint("price > 0", name="ck_services_price_positive"),
    )

    @property
    def category_ids(self) -> List[int]:
        return [link.category_id for link in self.category_links]

    @property
    def staff_ids(self) -> List[int]:
        return [link.staff_id for link in self.staff_links]

    def __repr__(self) -> str:
        return f"<Service(id={self.id}, provider_id={self.provider_id}, name='{self.name}')>"


class ServiceCategory(Base):
    __tablename__ = "service_categories"

    service_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    category_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    provider_id: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        ForeignKeyConstraint(
            ["service_id", "provider_id"],
            ["services.id", "services.provider_id"],
            ondelete="CASCADE",
            name="fk_service_categories_service",
        ),
        ForeignKeyConstraint(
            ["category_id", "provider_id"],
            ["categories.id", "categories.provider_id"],
            ondelete="CASCADE",
            name="fk_service_categories_category",
        ),
    )


class ServiceImage(Base):
    """
    One uploaded image of a service.

    position is the index the client submitted the image at; the image at
    position 0 is the primary one, whatever order the uploads finished in.
    """

    __tablename__ = "service_images"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    service_id: Mapped[int] = mapped_column(Integer, nullable=False)
    provider_id: Mapped[int] = mapped_column(Integer, nullable=False)
    image_url: Mapped[str] = mapped_column(String(512), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        ForeignKeyConstraint(
            ["service_id", "provider_id"],
            ["services.id", "services.provider_id"],
            ondelete="CASCADE",
            name="fk_service_images_service",
        ),
        UniqueConstraint("service_id", "position", name="service_images_service_position_key"),
    )
