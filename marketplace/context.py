"""
Marketplace Backend — Application Context
==========================================

What:  The one object holding every process-wide collaborator: settings,
       database engine and session factory, storage gateway, mailer,
       background task pool, write orchestrator and entity services.
Why:   Handlers receive their collaborators through FastAPI dependencies
       (dependencies.get_context) instead of importing module globals, so a
       test can build an app around fakes without patching imports.
How:   build_context() runs once in the lifespan; aclose() drains background
       work and disposes the engine on shutdown.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from marketplace.config import Settings
from marketplace.database import create_engine, create_session_factory
from marketplace.services.category_service import CategoryService
from marketplace.services.mailer import Mailer
from marketplace.services.orchestrator import WriteOrchestrator
from marketplace.services.provider_service import ProviderService
from marketplace.services.service_catalog import ServiceCatalog
from marketplace.services.staff_service import StaffService
from marketplace.services.storage import StorageGateway, build_storage
from marketplace.services.task_pool import BackgroundTaskPool
from marketplace.services.token_service import EmailVerificationService, TokenService
from marketplace.services.user_service import UserService

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    storage: StorageGateway
    mailer: Any
    task_pool: BackgroundTaskPool
    orchestrator: WriteOrchestrator
    users: UserService
    tokens: TokenService
    verifications: EmailVerificationService
    providers: ProviderService
    categories: CategoryService
    catalog: ServiceCatalog
    staff: StaffService
    started_at: float = field(default_factory=time.monotonic)

    async def aclose(self) -> None:
        """Wait for background work (bounded by the grace period), then release resources."""
        outcomes = await self.task_pool.drain(timeout=self.settings.shutdown_grace_period)
        if outcomes:
            logger.info("Drained %d background tasks", len(outcomes))
        await self.storage.close()
        await self.engine.dispose()
        logger.info("Database engine disposed")


def build_context(
    settings: Settings,
    storage: Optional[StorageGateway] = None,
    mailer: Optional[Any] = None,
    engine: Optional[AsyncEngine] = None,
) -> AppContext:
    """
    Assemble every collaborator from settings.

    Args:
        storage, mailer, engine: optional replacements (tests pass recording
            fakes); anything omitted is built from settings.
    """
    engine = engine or create_engine(settings)
    session_factory = create_session_factory(engine)
    storage = storage or build_storage(settings)
    catalog = ServiceCatalog()
    staff = StaffService()

    return AppContext(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        storage=storage,
        mailer=mailer or Mailer.from_settings(settings),
        task_pool=BackgroundTaskPool(max_workers=settings.background_workers),
        orchestrator=WriteOrchestrator(session_factory, storage, catalog=catalog, staff_reader=staff),
        users=UserService(bcrypt_rounds=settings.bcrypt_rounds),
        tokens=TokenService(),
        verifications=EmailVerificationService(),
        providers=ProviderService(),
        categories=CategoryService(),
        catalog=catalog,
        staff=staff,
    )
