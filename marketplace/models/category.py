from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.database import Base


class Category(Base):
    """A provider-scoped label attached to services (e.g. "Haircut")."""

    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    provider_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("providers.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(50), nullable=False)

    __table_args__ = (
        UniqueConstraint("provider_id", "name", name="categories_provider_name_key"),
        # Target of the scoped foreign key from service_categories
        UniqueConstraint("id", "provider_id", name="categories_id_provider_key"),
    )

    def __repr__(self) -> str:
        return f"<Category(id={self.id}, provider_id={self.provider_id}, name='{self.name}')>"
