"""PostgreSQL primary store -- wraps ModuleRepository behind PrimaryStore.

Connection-level database errors are retried with the shared tenacity policy.
Lookups that still fail report ``unreachable``; writes raise WriteFailure.
"""

from __future__ import annotations

from datetime import datetime

import structlog
from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError

from src.currentprompt.catalog.repository import ModuleRepository
from src.currentprompt.catalog.schemas import (
    ModuleCreate,
    ModuleRead,
    ModuleStatus,
    ModuleUpdate,
)
from src.currentprompt.config import SyncConfig
from src.currentprompt.sync.adapter import PrimaryStore
from src.currentprompt.sync.errors import FatalSyncError, StoreUnavailable, WriteFailure
from src.currentprompt.sync.retry import build_retrying
from src.currentprompt.sync.schemas import StoreLookup

logger = structlog.get_logger(__name__)

_DB_ERRORS = (SQLAlchemyError, OSError)


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, (OperationalError, InterfaceError, OSError))


class PostgresPrimaryStore(PrimaryStore):
    """Primary store backed by the ``modules`` table.

    Args:
        repository: ModuleRepository for database operations.
        config: Sync configuration (retry policy).
    """

    name = "primary"

    def __init__(self, repository: ModuleRepository, config: SyncConfig) -> None:
        self._repo = repository
        self._config = config

    async def _call(self, fn, *args, **kwargs):
        retrying = build_retrying(self._config, _is_retryable)
        return await retrying(fn, *args, **kwargs)

    async def verify(self) -> None:
        try:
            await self._call(self._repo.ping)
        except _DB_ERRORS as exc:
            raise FatalSyncError(f"Primary store unreachable: {exc}") from exc

    async def find_by_slug(self, slug: str) -> StoreLookup[ModuleRead]:
        try:
            module = await self._call(self._repo.get_by_slug, slug)
        except _DB_ERRORS as exc:
            logger.warning("postgres_store.lookup_failed", slug=slug, error=str(exc))
            return StoreLookup.unreachable(str(exc))
        return StoreLookup.present(module) if module else StoreLookup.absent()

    async def find_by_mirror_id(self, mirror_id: str) -> StoreLookup[ModuleRead]:
        try:
            module = await self._call(self._repo.get_by_mirror_id, mirror_id)
        except _DB_ERRORS as exc:
            logger.warning(
                "postgres_store.lookup_failed", mirror_id=mirror_id, error=str(exc)
            )
            return StoreLookup.unreachable(str(exc))
        return StoreLookup.present(module) if module else StoreLookup.absent()

    async def list_published_slugs(self) -> list[str]:
        try:
            return await self._call(self._repo.list_slugs, ModuleStatus.PUBLISHED)
        except _DB_ERRORS as exc:
            raise StoreUnavailable(self.name, str(exc)) from exc

    async def create_module(self, data: ModuleCreate) -> ModuleRead:
        try:
            module = await self._call(self._repo.create_module, data)
        except _DB_ERRORS as exc:
            raise WriteFailure(self.name, "create", str(exc)) from exc
        logger.info("postgres_store.module_created", slug=module.slug, module_id=module.id)
        return module

    async def update_module(self, slug: str, data: ModuleUpdate) -> ModuleRead:
        try:
            return await self._call(self._repo.update_module, slug, data)
        except (ValueError, *_DB_ERRORS) as exc:
            raise WriteFailure(self.name, "update", str(exc)) from exc

    async def record_push(
        self, slug: str, mirror_id: str, updated_at: datetime, synced_at: datetime
    ) -> None:
        try:
            await self._call(self._repo.record_push, slug, mirror_id, updated_at, synced_at)
        except _DB_ERRORS as exc:
            raise WriteFailure(self.name, "record_push", str(exc)) from exc

    async def clear_mirror_id(self, slug: str) -> None:
        try:
            await self._call(self._repo.clear_mirror_id, slug)
        except _DB_ERRORS as exc:
            raise WriteFailure(self.name, "clear_mirror_id", str(exc)) from exc
