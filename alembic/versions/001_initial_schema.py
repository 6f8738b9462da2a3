"""Create marketplace schema

Revision ID: 001
Revises: None
Create Date: 2026-10-18 00:00:00.000000+00:00

What:  Creates users, tokens, providers and everything a provider owns.
How:   Child tables that must stay inside one provider's scope (category,
       staff and image links) carry provider_id and use composite foreign
       keys onto (id, provider_id), so an ID from another provider fails the
       same way as an ID that does not exist.

Rollback: downgrade() drops every table (destructive, all data lost).
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_at(name: str = "created_at") -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())


def upgrade() -> None:
    # ── Accounts ──────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(500), nullable=False),
        sa.Column("last_name", sa.String(500), nullable=False),
        sa.Column("phone_number", sa.String(20), nullable=True),
        sa.Column("password_hash", sa.LargeBinary(), nullable=False),
        sa.Column("activated", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("role", sa.String(20), nullable=False),
        _created_at(),
        sa.UniqueConstraint("email", name="users_email_key"),
    )

    op.create_table(
        "tokens",
        sa.Column("hash", sa.LargeBinary(32), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("expiry", sa.DateTime(timezone=True), nullable=False),
        sa.Column("scope", sa.String(32), nullable=False),
    )
    op.create_index("ix_tokens_user_id", "tokens", ["user_id"])

    op.create_table(
        "email_verification_tokens",
        sa.Column("hash", sa.LargeBinary(32), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("expiry", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_email_verification_tokens_email", "email_verification_tokens", ["email"])

    # ── Providers ─────────────────────────────────────────────────────────
    op.create_table(
        "providers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("type_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone_number", sa.String(20), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("address", sa.String(255), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("logo_url", sa.String(512), nullable=True),
        sa.Column("cover_url", sa.String(512), nullable=True),
        _created_at(),
        _created_at("updated_at"),
        # One provider profile per user
        sa.UniqueConstraint("user_id", name="providers_user_id_key"),
    )

    op.create_table(
        "provider_images",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "provider_id",
            sa.Integer(),
            sa.ForeignKey("providers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("image_url", sa.String(512), nullable=False),
        _created_at("uploaded_at"),
    )
    op.create_index(
        "idx_provider_images_provider_uploaded", "provider_images", ["provider_id", "uploaded_at"]
    )

    op.create_table(
        "provider_business_hours",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "provider_id",
            sa.Integer(),
            sa.ForeignKey("providers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("is_closed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("open_time", sa.Time(), nullable=True),
        sa.Column("close_time", sa.Time(), nullable=True),
        sa.UniqueConstraint(
            "provider_id", "day_of_week", name="provider_business_hours_provider_day_key"
        ),
        sa.CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_business_hours_day"),
        sa.CheckConstraint(
            "(is_closed AND open_time IS NULL AND close_time IS NULL) OR "
            "(NOT is_closed AND open_time IS NOT NULL AND close_time IS NOT NULL "
            "AND open_time < close_time)",
            name="ck_business_hours_times",
        ),
    )

    # ── Catalog ───────────────────────────────────────────────────────────
    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "provider_id",
            sa.Integer(),
            sa.ForeignKey("providers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(50), nullable=False),
        sa.UniqueConstraint("provider_id", "name", name="categories_provider_name_key"),
        sa.UniqueConstraint("id", "provider_id", name="categories_id_provider_key"),
    )

    op.create_table(
        "services",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "provider_id",
            sa.Integer(),
            sa.ForeignKey("providers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("type_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("duration", sa.String(32), nullable=False),
        sa.Column("price", sa.Float(), nullable=False),
        _created_at(),
        sa.UniqueConstraint("provider_id", "name", name="services_provider_name_key"),
        sa.UniqueConstraint("id", "provider_id", name="services_id_provider_key"),
        sa.CheckConstraint("price > 0", name="ck_services_price_positive"),
    )

    op.create_table(
        "staff",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "provider_id",
            sa.Integer(),
            sa.ForeignKey("providers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("phone_number", sa.String(20), nullable=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("profile_picture", sa.String(512), nullable=True),
        sa.Column("is_owner", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
        sa.UniqueConstraint("id", "provider_id", name="staff_id_provider_key"),
    )
    # Exactly one owner row per provider
    op.create_index(
        "uq_staff_owner_per_provider",
        "staff",
        ["provider_id"],
        unique=True,
        postgresql_where=sa.text("is_owner"),
        sqlite_where=sa.text("is_owner"),
    )

    # ── Association Tables ────────────────────────────────────────────────
    op.create_table(
        "service_categories",
        sa.Column("service_id", sa.Integer(), primary_key=True),
        sa.Column("category_id", sa.Integer(), primary_key=True),
        sa.Column("provider_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["service_id", "provider_id"],
            ["services.id", "services.provider_id"],
            ondelete="CASCADE",
            name="fk_service_categories_service",
        ),
        sa.ForeignKeyConstraint(
            ["category_id", "provider_id"],
            ["categories.id", "categories.provider_id"],
            ondelete="CASCADE",
            name="fk_service_categories_category",
        ),
    )

    op.create_table(
        "staff_services",
        sa.Column("staff_id", sa.Integer(), primary_key=True),
        sa.Column("service_id", sa.Integer(), primary_key=True),
        sa.Column("provider_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["staff_id", "provider_id"],
            ["staff.id", "staff.provider_id"],
            ondelete="CASCADE",
            name="fk_staff_services_staff",
        ),
        sa.ForeignKeyConstraint(
            ["service_id", "provider_id"],
            ["services.id", "services.provider_id"],
            ondelete="CASCADE",
            name="fk_staff_services_service",
        ),
    )

    op.create_table(
        "service_images",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("service_id", sa.Integer(), nullable=False),
        sa.Column("provider_id", sa.Integer(), nullable=False),
        sa.Column("image_url", sa.String(512), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at("uploaded_at"),
        sa.ForeignKeyConstraint(
            ["service_id", "provider_id"],
            ["services.id", "services.provider_id"],
            ondelete="CASCADE",
            name="fk_service_images_service",
        ),
        sa.UniqueConstraint("service_id", "position", name="service_images_service_position_key"),
    )


def downgrade() -> None:
    """Drop every table, children first."""
    op.drop_table("service_images")
    op.drop_table("staff_services")
    op.drop_table("service_categories")
    op.drop_index("uq_staff_owner_per_provider", table_name="staff")
    op.drop_table("staff")
    op.drop_table("services")
    op.drop_table("categories")
    op.drop_table("provider_business_hours")
    op.drop_table("provider_images")
    op.drop_table("providers")
    op.drop_index("ix_email_verification_tokens_email", table_name="email_verification_tokens")
    op.drop_table("email_verification_tokens")
    op.drop_index("ix_tokens_user_id", table_name="tokens")
    op.drop_table("tokens")
    op.drop_table("users")
