"""RecordLocator -- finds one module in both stores."""

from __future__ import annotations

import structlog
from pydantic import BaseModel

from src.currentprompt.catalog.schemas import ModuleRead
from src.currentprompt.sync.adapter import MirrorStore, PrimaryStore
from src.currentprompt.sync.errors import LookupFailure
from src.currentprompt.sync.schemas import MirrorModuleItem

logger = structlog.get_logger(__name__)


class LocatedRecords(BaseModel):
    """A module's record in each store; None means confirmed absent."""

    slug: str
    primary: ModuleRead | None = None
    mirror: MirrorModuleItem | None = None


class RecordLocator:
    """Resolves presence and last-modified time of a slug in both stores.

    The mirror is looked up by the primary record's ``mirror_id`` first. A
    stale id (or no id at all) falls back to a slug lookup. An unreachable
    store raises LookupFailure; it is never reported as absent.

    Args:
        primary: The primary store.
        mirror: The mirror store.
    """

    def __init__(self, primary: PrimaryStore, mirror: MirrorStore) -> None:
        self._primary = primary
        self._mirror = mirror

    async def locate(self, slug: str) -> LocatedRecords:
        primary_lookup = await self._primary.find_by_slug(slug)
        if primary_lookup.is_unreachable:
            raise LookupFailure(self._primary.name, slug, primary_lookup.error or "")
        primary = primary_lookup.record

        mirror: MirrorModuleItem | None = None
        if primary is not None and primary.mirror_id:
            by_id = await self._mirror.get_item(primary.mirror_id)
            if by_id.is_unreachable:
                raise LookupFailure(self._mirror.name, slug, by_id.error or "")
            if by_id.is_present:
                mirror = by_id.record
            else:
                logger.info(
                    "sync.stale_mirror_id", slug=slug, mirror_id=primary.mirror_id
                )

        if mirror is None:
            by_slug = await self._mirror.find_item_by_slug(slug)
            if by_slug.is_unreachable:
                raise LookupFailure(self._mirror.name, slug, by_slug.error or "")
            mirror = by_slug.record

        return LocatedRecords(slug=slug, primary=primary, mirror=mirror)
