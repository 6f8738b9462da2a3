"""
Marketplace Backend — Transactional Write Orchestrator
=======================================================

What:  Runs every multi-table write as one database transaction, and cleans
       up with compensating deletes when a post-commit step (uploading images
       to the object store) fails.
Why:   A provider without its owner staff row, or a service linked to half
       of its categories, must never be visible. Images cannot take part in a
       database transaction, so they are uploaded after commit and undone by
       compensation instead.
How:   Each operation opens its own session and transaction (not the
       request's), flushes each group of rows so constraint violations can
       be attributed to the group that caused them, and commits only when
       every group succeeded.

Orchestration Flow (create_service):
    ┌──────────────────── transaction ─────────────────────┐
    │ INSERT service → INSERT category links → INSERT staff │──commit──┐
    └───────────────────────────────────────────────────────┘          │
                       ┌───────────────────────────────────────────────┘
                       ▼
    upload image 0 ─▶ INSERT image row (primary)  ┐
    upload image 1 ─▶ INSERT image row            ├─ gather (barrier)
    ...                                            ┘
    any failure ─▶ DELETE service (cascades links + image rows)
                ─▶ delete uploaded objects (best effort)
                ─▶ raise the failure of the lowest failing index

Failure Semantics:
    - Constraint violations inside the transaction roll everything back and
      surface as one typed error (DuplicateRecordError, ReferenceNotFoundError).
    - Post-commit failures trigger compensation, never a retry.
    - Compensation failures are logged with the IDs involved and never
      replace the original error.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketplace.database import is_foreign_key_violation, is_unique_violation
from marketplace.exceptions import (
    DatabaseError,
    DuplicateRecordError,
    MarketplaceError,
    NotFoundError,
    ReferenceNotFoundError,
)
from marketplace.forms import ProviderUpdateForm, ServiceForm, StaffForm
from marketplace.models import (
    Provider,
    ProviderImage,
    Service,
    ServiceCategory,
    ServiceImage,
    Staff,
    StaffService,
    User,
)
from marketplace.schemas.provider import ProviderCreateRequest
from marketplace.services.service_catalog import ServiceCatalog
from marketplace.services.staff_service import StaffService as StaffReader
from marketplace.services.storage import StorageGateway
from marketplace.services.uploads import ImageUpload, build_object_key

logger = logging.getLogger(__name__)

FieldMessage = Tuple[str, str]


class WriteOrchestrator:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        storage: StorageGateway,
        catalog: Optional[ServiceCatalog] = None,
        staff_reader: Optional[StaffReader] = None,
    ):
        self._session_factory = session_factory
        self._storage = storage
        self._catalog = catalog or ServiceCatalog()
        self._staff_reader = staff_reader or StaffReader()

    # ══════════════════════════════════════════════════════════════════════
    # Transaction helpers
    # ══════════════════════════════════════════════════════════════════════

    @asynccontextmanager
    async def _transaction(self, operation: str, **context: Any) -> AsyncIterator[AsyncSession]:
        """
        Yield a session inside BEGIN ... COMMIT.

        Any exception rolls the transaction back. Domain errors pass through;
        driver errors (timeouts, lost connections, unclassified constraint
        violations) become DatabaseError with the operation and IDs as context.
        """
        async with self._session_factory() as session:
            try:
                async with session.begin():
                    yield session
            except MarketplaceError:
                raise
            except (SQLAlchemyError, asyncio.TimeoutError) as e:
                logger.error("Transaction %s failed %s: %s", operation, context, e)
                raise DatabaseError(context={"operation": operation, **context}) from e

    async def _flush(
        self,
        session: AsyncSession,
        *,
        duplicate: Optional[FieldMessage] = None,
        missing: Optional[FieldMessage] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Flush pending rows, translating the expected constraint violations."""
        try:
            await session.flush()
        except IntegrityError as e:
            if duplicate is not None and is_unique_violation(e):
                raise DuplicateRecordError(*duplicate, context=context) from e
            if missing is not None and is_foreign_key_violation(e):
                raise ReferenceNotFoundError(*missing, context=context) from e
            raise

    # ══════════════════════════════════════════════════════════════════════
    # Providers
    # ══════════════════════════════════════════════════════════════════════

    async def create_provider(self, draft: ProviderCreateRequest, user: User) -> Provider:
        """
        Insert the provider and its owner staff row atomically.

        Raises:
            DuplicateRecordError if the user already has a provider profile;
            nothing is written in that case.
        """
        ctx = {"user_id": user.id}
        async with self._transaction("create_provider", **ctx) as session:
            provider = Provider(
                user_id=user.id,
                type_id=1,
                name=draft.name,
                email=draft.email,
                phone_number=draft.phone_number,
                description=draft.description,
                address=draft.address,
                latitude=draft.latitude,
                longitude=draft.longitude,
            )
            session.add(provider)
            await self._flush(
                session,
                duplicate=("provider", "this user already has a provider profile"),
                context=ctx,
            )

            session.add(
                Staff(
                    provider_id=provider.id,
                    name=user.full_name,
                    phone_number=user.phone_number,
                    email=user.email,
                    is_owner=True,
                )
            )
            await self._flush(session, context={**ctx, "provider_id": provider.id})

        logger.info("Created provider %d with owner staff for user %d", provider.id, user.id)
        return provider

    async def update_provider(self, provider_id: int, form: ProviderUpdateForm) -> Provider:
        """
        Upload any new logo/cover first, then apply every change in one
        transaction. If the transaction fails the new objects are deleted;
        once it commits, the replaced objects are deleted.
        """
        ctx = {"provider_id": provider_id}
        media = [("logo_url", form.logo, "providers/logos"), ("cover_url", form.cover_photo, "providers/covers")]
        uploaded: Dict[str, str] = {}
        replaced: List[str] = []

        try:
            for column, image, prefix in media:
                if image is None:
                    continue
                key = build_object_key(prefix, image)
                await self._storage.upload(key, image.content, image.content_type)
                uploaded[column] = key

            async with self._transaction("update_provider", **ctx) as session:
                provider = await session.get(Provider, provider_id)
                if provider is None:
                    raise NotFoundError(resource="provider", resource_id=provider_id)
                for column, value in form.changes().items():
                    setattr(provider, column, value)
                for column, key in uploaded.items():
                    previous = getattr(provider, column)
                    if previous:
                        replaced.append(previous)
                    setattr(provider, column, key)
                await self._flush(session, context=ctx)
        except Exception:
            if uploaded:
                await self._delete_objects(list(uploaded.values()), "update_provider", ctx)
            raise

        if replaced:
            await self._delete_objects(replaced, "update_provider.replaced", ctx)
        return provider

    async def add_provider_images(self, provider_id: int, images: Sequence[ImageUpload]) -> List[ProviderImage]:
        """Upload gallery images concurrently, then record them in one batch insert."""
        ctx = {"provider_id": provider_id}
        keys: List[Optional[str]] = [None] * len(images)

        async def upload(index: int, image: ImageUpload) -> None:
            key = build_object_key("providers/gallery", image)
            await self._storage.upload(key, image.content, image.content_type)
            keys[index] = key

        results = await asyncio.gather(
            *(upload(i, image) for i, image in enumerate(images)), return_exceptions=True
        )
        failure = self._first_failure(results)
        stored = [k for k in keys if k]
        if failure is not None:
            await self._delete_objects(stored, "add_provider_images", ctx)
            raise failure

        try:
            async with self._transaction("add_provider_images", **ctx) as session:
                rows = [ProviderImage(provider_id=provider_id, image_url=key) for key in stored]
                session.add_all(rows)
                await self._flush(session, context=ctx)
        except Exception:
            await self._delete_objects(stored, "add_provider_images", ctx)
            raise

        logger.info("Added %d gallery images to provider %d", len(rows), provider_id)
        return rows

    # ══════════════════════════════════════════════════════════════════════
    # Services
    # ══════════════════════════════════════════════════════════════════════

    async def create_service(self, provider_id: int, form: ServiceForm) -> Service:
        """
        Insert a service with its category and staff links, then upload its
        images.

        Raises:
            DuplicateRecordError    the provider already has a service with this name
            ReferenceNotFoundError  a category or staff ID is not in the provider's scope
            StorageError / DatabaseError from the image phase, after compensation
        """
        ctx: Dict[str, Any] = {"provider_id": provider_id}
        async with self._transaction("create_service", **ctx) as session:
            service = Service(
                provider_id=provider_id,
                type_id=form.type_id,
                name=form.name,
                description=form.description,
                duration=form.duration,
                price=form.price,
            )
            session.add(service)
            await self._flush(
                session,
                duplicate=("name", "a service with this name already exists"),
                context=ctx,
            )
            ctx["service_id"] = service.id

            session.add_all(
                ServiceCategory(service_id=service.id, category_id=category_id, provider_id=provider_id)
                for category_id in form.categories
            )
            await self._flush(
                session,
                missing=("category", "one or more provided categories were not found"),
                context={**ctx, "categories": form.categories},
            )

            session.add_all(
                StaffService(staff_id=staff_id, service_id=service.id, provider_id=provider_id)
                for staff_id in form.staff
            )
            await self._flush(
                session,
                missing=("staff", "one or more selected staff members do not exist"),
                context={**ctx, "staff": form.staff},
            )

        logger.info("Created service %d for provider %d", service.id, provider_id)

        if form.images:
            await self._attach_service_images(provider_id, service.id, form.images)

        async with self._session_factory() as session:
            return await self._catalog.get(session, provider_id, service.id)

    async def _attach_service_images(
        self, provider_id: int, service_id: int, images: Sequence[ImageUpload]
    ) -> None:
        ctx = {"provider_id": provider_id, "service_id": service_id}
        keys: List[Optional[str]] = [None] * len(images)

        async def worker(index: int, image: ImageUpload) -> None:
            key = build_object_key("services", image)
            await self._storage.upload(key, image.content, image.content_type)
            keys[index] = key
            async with self._transaction("attach_service_image", **ctx, position=index) as session:
                session.add(
                    ServiceImage(
                        service_id=service_id,
                        provider_id=provider_id,
                        image_url=key,
                        position=index,
                        # Primary is positional, not first-to-finish
                        is_primary=index == 0,
                    )
                )

        results = await asyncio.gather(
            *(worker(i, image) for i, image in enumerate(images)), return_exceptions=True
        )
        failure = self._first_failure(results)
        if failure is None:
            return

        logger.error("Image upload for service %d failed, compensating: %s", service_id, failure)
        await self._compensate(
            "create_service",
            delete(Service).where(Service.id == service_id, Service.provider_id == provider_id),
            [k for k in keys if k],
            ctx,
        )
        raise failure

    # ══════════════════════════════════════════════════════════════════════
    # Staff
    # ══════════════════════════════════════════════════════════════════════

    async def create_staff(self, provider_id: int, form: StaffForm) -> Staff:
        """
        Insert a staff member with their service links, then upload the
        optional profile picture (compensating on failure).

        Raises:
            ReferenceNotFoundError if a service ID is not in the provider's scope
        """
        ctx: Dict[str, Any] = {"provider_id": provider_id}
        async with self._transaction("create_staff", **ctx) as session:
            staff = Staff(
                provider_id=provider_id,
                name=form.name,
                phone_number=form.phone_number,
                email=form.email,
                is_owner=False,
            )
            session.add(staff)
            await self._flush(session, context=ctx)
            ctx["staff_id"] = staff.id

            session.add_all(
                StaffService(staff_id=staff.id, service_id=service_id, provider_id=provider_id)
                for service_id in form.services
            )
            await self._flush(
                session,
                missing=("services", "one or more services not found"),
                context={**ctx, "services": form.services},
            )

        logger.info("Created staff %d for provider %d", staff.id, provider_id)

        if form.profile_picture is not None:
            await self._attach_profile_picture(provider_id, staff.id, form.profile_picture)

        async with self._session_factory() as session:
            return await self._staff_reader.get(session, provider_id, staff.id)

    async def _attach_profile_picture(self, provider_id: int, staff_id: int, image: ImageUpload) -> None:
        ctx = {"provider_id": provider_id, "staff_id": staff_id}
        key = build_object_key("staff", image)
        uploaded = False
        try:
            await self._storage.upload(key, image.content, image.content_type)
            uploaded = True
            async with self._transaction("attach_profile_picture", **ctx) as session:
                await session.execute(
                    update(Staff)
                    .where(Staff.id == staff_id, Staff.provider_id == provider_id)
                    .values(profile_picture=key)
                )
        except Exception as e:
            logger.error("Profile picture for staff %d failed, compensating: %s", staff_id, e)
            await self._compensate(
                "create_staff",
                delete(Staff).where(Staff.id == staff_id, Staff.provider_id == provider_id),
                [key] if uploaded else [],
                ctx,
            )
            raise

    # ══════════════════════════════════════════════════════════════════════
    # Compensation
    # ══════════════════════════════════════════════════════════════════════

    @staticmethod
    def _first_failure(results: Sequence[Any]) -> Optional[BaseException]:
        """The error of the lowest failing index, so reports are deterministic."""
        for result in results:
            if isinstance(result, BaseException):
                return result
        return None

    async def _compensate(
        self,
        operation: str,
        statement: Any,
        keys: Sequence[str],
        context: Dict[str, Any],
    ) -> None:
        """Best-effort undo of a committed write; failures are logged, never raised."""
        try:
            async with self._transaction(f"{operation}.compensate", **context) as session:
                await session.execute(statement)
            logger.warning("Compensating delete applied for %s %s", operation, context)
        except Exception as e:
            logger.error(
                "Compensating delete failed for %s %s; row left behind: %s",
                operation,
                context,
                e,
                exc_info=True,
            )
        await self._delete_objects(keys, operation, context)

    async def _delete_objects(self, keys: Sequence[str], operation: str, context: Dict[str, Any]) -> None:
        if not keys:
            return
        try:
            await self._storage.delete(list(keys))
        except Exception as e:
            logger.error(
                "Failed to delete %d stored objects for %s %s; orphaned keys=%s: %s",
                len(keys),
                operation,
                context,
                list(keys),
                e,
            )
