"""Store adapter abstract base classes -- the narrow interfaces the engine uses.

The reconciliation engine never talks to PostgreSQL or Webflow directly. It
only sees a PrimaryStore (system of record) and a MirrorStore (public derived
copy). Lookups return a three-valued StoreLookup so that an unreachable store
is never mistaken for a missing record.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from src.currentprompt.catalog.schemas import ModuleCreate, ModuleRead, ModuleUpdate
from src.currentprompt.sync.schemas import (
    CategoryReference,
    MirrorFieldSet,
    MirrorModuleItem,
    StoreLookup,
    TagReference,
)


class PrimaryStore(ABC):
    """Interface to the primary store (system of record).

    Methods:
        verify: Preflight check; raises FatalSyncError when unusable.
        find_by_slug: Look up a module by slug.
        find_by_mirror_id: Look up a module by its mirror item id.
        list_published_slugs: Slugs of all published modules.
        create_module: Insert a module pulled from the mirror.
        update_module: Update mapped fields of an existing module.
        record_push: Write back mirror id and aligned timestamps after a push.
        clear_mirror_id: Unlink a module from its mirror item.
    """

    name = "primary"

    @abstractmethod
    async def verify(self) -> None:
        """Raise FatalSyncError if the store cannot be used."""
        ...

    @abstractmethod
    async def find_by_slug(self, slug: str) -> StoreLookup[ModuleRead]:
        """Look up a module by slug."""
        ...

    @abstractmethod
    async def find_by_mirror_id(self, mirror_id: str) -> StoreLookup[ModuleRead]:
        """Look up a module by its mirror item id."""
        ...

    @abstractmethod
    async def list_published_slugs(self) -> list[str]:
        """Return slugs of published modules. Raises StoreUnavailable."""
        ...

    @abstractmethod
    async def create_module(self, data: ModuleCreate) -> ModuleRead:
        """Create a module. Raises WriteFailure."""
        ...

    @abstractmethod
    async def update_module(self, slug: str, data: ModuleUpdate) -> ModuleRead:
        """Update a module. Raises WriteFailure."""
        ...

    @abstractmethod
    async def record_push(
        self, slug: str, mirror_id: str, updated_at: datetime, synced_at: datetime
    ) -> None:
        """Store the mirror id and align updated_at after a push."""
        ...

    @abstractmethod
    async def clear_mirror_id(self, slug: str) -> None:
        """Unlink a module from its mirror item; content stays untouched."""
        ...


class MirrorStore(ABC):
    """Interface to the mirror store (public CMS collection).

    Methods:
        verify: Preflight check; raises FatalSyncError/MirrorAuthError.
        get_item: Look up a module item by id.
        find_item_by_slug: Look up a module item by slug.
        list_items: All module items.
        list_categories / list_tags: Reference collection items.
        create_item / update_item / delete_item: Item writes.
        publish_items: Publish items to the live site.
    """

    name = "mirror"

    @abstractmethod
    async def verify(self) -> None:
        """Raise FatalSyncError if the store cannot be used."""
        ...

    @abstractmethod
    async def get_item(self, item_id: str) -> StoreLookup[MirrorModuleItem]:
        """Look up a module item by id."""
        ...

    @abstractmethod
    async def find_item_by_slug(self, slug: str) -> StoreLookup[MirrorModuleItem]:
        """Look up a module item by slug."""
        ...

    @abstractmethod
    async def list_items(self) -> list[MirrorModuleItem]:
        """Return all module items. Raises StoreUnavailable."""
        ...

    @abstractmethod
    async def list_categories(self) -> list[CategoryReference]:
        """Return the category reference collection. Raises StoreUnavailable."""
        ...

    @abstractmethod
    async def list_tags(self) -> list[TagReference]:
        """Return the tag reference collection. Raises StoreUnavailable."""
        ...

    @abstractmethod
    async def create_item(self, fields: MirrorFieldSet) -> MirrorModuleItem:
        """Create a module item. Raises WriteFailure."""
        ...

    @abstractmethod
    async def update_item(
        self, item_id: str, fields: MirrorFieldSet
    ) -> MirrorModuleItem | None:
        """Update a module item. Returns None when the id no longer exists."""
        ...

    @abstractmethod
    async def delete_item(self, item_id: str) -> bool:
        """Delete a module item. Returns False when it was already gone."""
        ...

    @abstractmethod
    async def publish_items(self, item_ids: list[str]) -> None:
        """Publish items to the live site. Raises WriteFailure."""
        ...
