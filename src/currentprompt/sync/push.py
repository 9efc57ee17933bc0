"""PushSyncer -- one-way copy of a published module into the mirror."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Protocol

import structlog

from src.currentprompt.catalog.schemas import ModuleRead, ModuleStatus, ModuleUpdate
from src.currentprompt.config import SyncConfig
from src.currentprompt.sync.adapter import MirrorStore, PrimaryStore
from src.currentprompt.sync.errors import EnrichmentError
from src.currentprompt.sync.field_mapping import ReferenceIndex, to_mirror_fields
from src.currentprompt.sync.schemas import MirrorModuleItem

logger = structlog.get_logger(__name__)


class Enricher(Protocol):
    """Hook that produces enrichment fields for a module before first push.

    Returns the enrichment document (summaries, SEO keywords, quality score,
    ...) to store on the module.
    """

    async def __call__(self, module: ModuleRead) -> dict[str, Any]: ...


class PushSyncer:
    """Copies a primary module to the mirror and links the two records.

    Args:
        primary: The primary store (mirror id write-back).
        mirror: The mirror store.
        config: Sync configuration.
        enricher: Optional enrichment hook, run once before a module's
            first push when it has no enrichment yet.
    """

    def __init__(
        self,
        primary: PrimaryStore,
        mirror: MirrorStore,
        config: SyncConfig,
        enricher: Enricher | None = None,
    ) -> None:
        self._primary = primary
        self._mirror = mirror
        self._config = config
        self._enricher = enricher

    async def push(
        self,
        module: ModuleRead,
        references: ReferenceIndex,
        existing: MirrorModuleItem | None = None,
    ) -> MirrorModuleItem:
        """Create or update the mirror item for ``module``.

        Args:
            module: The primary record to copy.
            references: Category/tag reference index.
            existing: Mirror item already located for this slug, if any.

        Returns:
            The mirror item as stored by Webflow.

        Raises:
            MappingError: Before any write, if a reference does not resolve.
            EnrichmentError: If the enrichment hook fails.
            WriteFailure: If a store write fails after retries.
        """
        fields = to_mirror_fields(module, references, self._config.storage_base_url)

        if self._enricher is not None and module.mirror_id is None and not module.enrichment:
            module = await self._enrich(module)

        # Prefer the item already located; a stored mirror_id may be stale
        target_id = existing.id if existing else module.mirror_id
        item: MirrorModuleItem | None = None
        if target_id:
            item = await self._mirror.update_item(target_id, fields)
            if item is None:
                logger.info("sync.push_recreate", slug=module.slug, stale_id=target_id)
        if item is None:
            item = await self._mirror.create_item(fields)

        if self._config.auto_publish and module.status == ModuleStatus.PUBLISHED:
            await self._mirror.publish_items([item.id])

        await self._primary.record_push(
            module.slug,
            mirror_id=item.id,
            updated_at=item.last_updated,
            synced_at=datetime.now(timezone.utc),
        )
        logger.info(
            "sync.push_complete",
            slug=module.slug,
            mirror_id=item.id,
            created=item.id != target_id,
        )
        return item

    async def _enrich(self, module: ModuleRead) -> ModuleRead:
        try:
            enrichment = await self._enricher(module)
        except Exception as exc:
            raise EnrichmentError(f"Enrichment failed for '{module.slug}': {exc}") from exc
        logger.info("sync.module_enriched", slug=module.slug, fields=sorted(enrichment))
        return await self._primary.update_module(
            module.slug, ModuleUpdate(enrichment=enrichment)
        )
