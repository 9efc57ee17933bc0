"""PullSyncer -- one-way copy of a mirror item into the primary store."""

from __future__ import annotations

from datetime import datetime, timezone

import structlog

from src.currentprompt.catalog.schemas import ModuleCreate, ModuleRead, ModuleUpdate
from src.currentprompt.config import SyncConfig
from src.currentprompt.sync.adapter import PrimaryStore
from src.currentprompt.sync.field_mapping import ReferenceIndex, to_primary_fields
from src.currentprompt.sync.schemas import MirrorModuleItem

logger = structlog.get_logger(__name__)


class PullSyncer:
    """Creates or updates the primary record from a mirror item.

    New records get ``config.pull_default_status``. Existing records keep
    their primary-only fields (status, enrichment, created_at). In both
    cases ``updated_at`` is aligned to the item's ``last_updated``.

    Args:
        primary: The primary store.
        config: Sync configuration.
    """

    def __init__(self, primary: PrimaryStore, config: SyncConfig) -> None:
        self._primary = primary
        self._config = config

    async def pull(
        self,
        item: MirrorModuleItem,
        references: ReferenceIndex,
        existing: ModuleRead | None = None,
    ) -> ModuleRead:
        fields = to_primary_fields(item, references)
        now = datetime.now(timezone.utc)

        if existing is None:
            module = await self._primary.create_module(
                ModuleCreate(
                    **fields.model_dump(),
                    status=self._config.pull_default_status,
                    mirror_id=item.id,
                    updated_at=item.last_updated,
                    synced_at=now,
                )
            )
            logger.info(
                "sync.pull_complete",
                slug=module.slug,
                mirror_id=item.id,
                created=True,
                status=module.status.value,
            )
            return module

        module = await self._primary.update_module(
            existing.slug,
            ModuleUpdate(
                **fields.model_dump(exclude={"slug"}),
                mirror_id=item.id,
                updated_at=item.last_updated,
                synced_at=now,
            ),
        )
        logger.info("sync.pull_complete", slug=module.slug, mirror_id=item.id, created=False)
        return module
