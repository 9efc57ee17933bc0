"""Module repository -- async CRUD for the ``modules`` table.

Provides ModuleRepository with the session_factory callable pattern. Handles
serialization between Pydantic schemas and the SQLAlchemy model. Sync
bookkeeping writes (``record_push``, ``clear_mirror_id``) set ``updated_at``
explicitly so they never look like content edits.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timezone

import structlog
from sqlalchemy import select, text, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.currentprompt.catalog.models import ModuleModel
from src.currentprompt.catalog.schemas import (
    ModuleCreate,
    ModuleRead,
    ModuleStatus,
    ModuleUpdate,
)

logger = structlog.get_logger(__name__)


# ── Serialization Helpers ───────────────────────────────────────────────────


def _model_to_module(model: ModuleModel) -> ModuleRead:
    """Convert ModuleModel to ModuleRead schema."""
    return ModuleRead(
        id=str(model.id),
        slug=model.slug,
        title=model.title,
        category=model.category,
        tags=list(model.tags or []),
        summary=model.summary,
        source_url=model.source_url,
        source_label=model.source_label,
        latest_version=model.latest_version or 1,
        status=ModuleStatus(model.status),
        enrichment=model.enrichment or {},
        mirror_id=model.mirror_id,
        created_at=model.created_at,
        updated_at=model.updated_at,
        synced_at=model.synced_at,
    )


# ── Repository ──────────────────────────────────────────────────────────────


class ModuleRepository:
    """Async CRUD operations for catalog modules.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    async def ping(self) -> None:
        """Run a trivial query; raises if the database is unreachable."""
        async for session in self._session_factory():
            await session.execute(text("SELECT 1"))

    async def get_by_slug(self, slug: str) -> ModuleRead | None:
        """Get a module by slug.

        Returns:
            ModuleRead if found, None otherwise.
        """
        async for session in self._session_factory():
            stmt = select(ModuleModel).where(ModuleModel.slug == slug)
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()
            if model is None:
                return None
            return _model_to_module(model)

    async def get_by_mirror_id(self, mirror_id: str) -> ModuleRead | None:
        """Get a module by its Webflow item id."""
        async for session in self._session_factory():
            stmt = select(ModuleModel).where(ModuleModel.mirror_id == mirror_id)
            result = await session.execute(stmt)
            model = result.scalars().first()
            if model is None:
                return None
            return _model_to_module(model)

    async def list_slugs(self, status: ModuleStatus | None = None) -> list[str]:
        """List module slugs, optionally narrowed to one status."""
        async for session in self._session_factory():
            stmt = select(ModuleModel.slug).order_by(ModuleModel.slug)
            if status is not None:
                stmt = stmt.where(ModuleModel.status == status.value)
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def create_module(self, data: ModuleCreate) -> ModuleRead:
        """Create a new module.

        Args:
            data: ModuleCreate schema. ``updated_at`` is written as given
                when set, otherwise the database clock is used.

        Returns:
            ModuleRead with all persisted fields.
        """
        async for session in self._session_factory():
            model = ModuleModel(
                slug=data.slug,
                title=data.title,
                category=data.category,
                tags=list(data.tags),
                summary=data.summary,
                source_url=data.source_url,
                source_label=data.source_label,
                latest_version=data.latest_version,
                status=data.status.value,
                enrichment=data.enrichment,
                mirror_id=data.mirror_id,
                synced_at=data.synced_at,
            )
            if data.updated_at is not None:
                model.updated_at = data.updated_at
            session.add(model)
            await session.commit()
            await session.refresh(model)
            logger.info("catalog.module_created", slug=data.slug, status=data.status.value)
            return _model_to_module(model)

    async def update_module(self, slug: str, data: ModuleUpdate) -> ModuleRead:
        """Update an existing module by slug.

        Writes ``ModuleUpdate.changes()``. ``updated_at`` is taken from the
        payload when given, otherwise set to now.

        Raises:
            ValueError: If the module does not exist.
        """
        async for session in self._session_factory():
            stmt = select(ModuleModel).where(ModuleModel.slug == slug)
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()

            if model is None:
                raise ValueError(f"Module not found: slug={slug}")

            for key, value in data.changes().items():
                if key == "status":
                    value = ModuleStatus(value).value
                setattr(model, key, value)

            if data.updated_at is None:
                model.updated_at = datetime.now(timezone.utc)
            await session.commit()
            await session.refresh(model)
            return _model_to_module(model)

    async def record_push(
        self,
        slug: str,
        mirror_id: str,
        updated_at: datetime,
        synced_at: datetime,
    ) -> None:
        """Store the mirror id and align ``updated_at`` after a push."""
        async for session in self._session_factory():
            stmt = (
                update(ModuleModel)
                .where(ModuleModel.slug == slug)
                .values(mirror_id=mirror_id, updated_at=updated_at, synced_at=synced_at)
            )
            await session.execute(stmt)
            await session.commit()

    async def clear_mirror_id(self, slug: str) -> None:
        """Unlink a module from its mirror item without touching content."""
        async for session in self._session_factory():
            stmt = (
                update(ModuleModel)
                .where(ModuleModel.slug == slug)
                .values(mirror_id=None, updated_at=ModuleModel.updated_at)
            )
            await session.execute(stmt)
            await session.commit()
            logger.info("catalog.mirror_id_cleared", slug=slug)
