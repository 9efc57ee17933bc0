"""Shared fixtures for catalog sync tests.

Provides:
- InMemoryPrimaryStore / InMemoryMirrorStore: PrimaryStore and MirrorStore
  test doubles with switches for unreachable lookups, failing writes and
  fatal preflight
- Builders for ModuleRead and MirrorModuleItem
- A SyncConfig with zero backoff and an orchestrator wired to the doubles
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from src.currentprompt.catalog.schemas import (
    ModuleCreate,
    ModuleRead,
    ModuleStatus,
    ModuleUpdate,
)
from src.currentprompt.config import SyncConfig
from src.currentprompt.sync.adapter import MirrorStore, PrimaryStore
from src.currentprompt.sync.engine import SyncOrchestrator
from src.currentprompt.sync.errors import FatalSyncError, MirrorAuthError, WriteFailure
from src.currentprompt.sync.schemas import (
    CategoryReference,
    MirrorFieldSet,
    MirrorModuleItem,
    StoreLookup,
    TagReference,
)

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


# ── Builders ─────────────────────────────────────────────────────────────────


def make_module(slug: str = "intro-to-rag", **overrides: Any) -> ModuleRead:
    """Create a ModuleRead with sensible defaults."""
    defaults: dict[str, Any] = {
        "id": str(uuid.uuid4()),
        "slug": slug,
        "title": slug.replace("-", " ").title(),
        "category": "Prompting",
        "tags": ["llm"],
        "summary": f"Summary of {slug}",
        "source_url": "https://example.com/source",
        "source_label": "Example",
        "latest_version": 1,
        "status": ModuleStatus.PUBLISHED,
        "created_at": T0,
        "updated_at": T0,
    }
    defaults.update(overrides)
    return ModuleRead(**defaults)


def make_item(
    slug: str = "intro-to-rag",
    item_id: str | None = None,
    last_updated: datetime = T0,
    **field_overrides: Any,
) -> MirrorModuleItem:
    """Create a MirrorModuleItem referencing the default category/tag ids."""
    fields: dict[str, Any] = {
        "name": slug.replace("-", " ").title(),
        "slug": slug,
        "summary": f"Summary of {slug}",
        "category": "cat-prompting",
        "tags": ["tag-llm"],
        "latest_version": 1,
    }
    fields.update(field_overrides)
    return MirrorModuleItem(
        id=item_id or f"wf-{slug}",
        last_updated=last_updated,
        created_on=last_updated,
        field_data=MirrorFieldSet(**fields),
    )


# ── In-Memory Test Doubles ───────────────────────────────────────────────────


class InMemoryPrimaryStore(PrimaryStore):
    """In-memory PrimaryStore for testing without a database."""

    def __init__(self) -> None:
        self.modules: dict[str, ModuleRead] = {}
        self.writes: list[tuple[str, str]] = []
        self.unreachable_slugs: set[str] = set()
        self.fatal = False

    def add(self, module: ModuleRead) -> ModuleRead:
        self.modules[module.slug] = module
        return module

    async def verify(self) -> None:
        if self.fatal:
            raise FatalSyncError("Primary store unreachable: connection refused")

    async def find_by_slug(self, slug: str) -> StoreLookup[ModuleRead]:
        if slug in self.unreachable_slugs:
            return StoreLookup.unreachable("connection reset")
        module = self.modules.get(slug)
        return StoreLookup.present(module) if module else StoreLookup.absent()

    async def find_by_mirror_id(self, mirror_id: str) -> StoreLookup[ModuleRead]:
        for module in self.modules.values():
            if module.mirror_id == mirror_id:
                return StoreLookup.present(module)
        return StoreLookup.absent()

    async def list_published_slugs(self) -> list[str]:
        return sorted(
            slug for slug, m in self.modules.items() if m.status == ModuleStatus.PUBLISHED
        )

    async def create_module(self, data: ModuleCreate) -> ModuleRead:
        self.writes.append(("create", data.slug))
        now = datetime.now(timezone.utc)
        module = ModuleRead(
            id=str(uuid.uuid4()),
            **data.model_dump(exclude={"updated_at"}),
            created_at=now,
            updated_at=data.updated_at or now,
        )
        self.modules[module.slug] = module
        return module

    async def update_module(self, slug: str, data: ModuleUpdate) -> ModuleRead:
        if slug not in self.modules:
            raise WriteFailure(self.name, "update", f"Module not found: slug={slug}")
        self.writes.append(("update", slug))
        changes = data.changes()
        changes.setdefault("updated_at", datetime.now(timezone.utc))
        module = self.modules[slug].model_copy(update=changes)
        self.modules[slug] = module
        return module

    async def record_push(
        self, slug: str, mirror_id: str, updated_at: datetime, synced_at: datetime
    ) -> None:
        self.writes.append(("record_push", slug))
        self.modules[slug] = self.modules[slug].model_copy(
            update={"mirror_id": mirror_id, "updated_at": updated_at, "synced_at": synced_at}
        )

    async def clear_mirror_id(self, slug: str) -> None:
        self.writes.append(("clear_mirror_id", slug))
        self.modules[slug] = self.modules[slug].model_copy(update={"mirror_id": None})


class InMemoryMirrorStore(MirrorStore):
    """In-memory MirrorStore with Webflow-like ids and timestamps."""

    def __init__(
        self,
        categories: list[CategoryReference] | None = None,
        tags: list[TagReference] | None = None,
    ) -> None:
        self.items: dict[str, MirrorModuleItem] = {}
        self.categories = categories if categories is not None else []
        self.tags = tags if tags is not None else []
        self.writes: list[tuple[str, str]] = []
        self.published: list[str] = []
        self.unreachable_slugs: set[str] = set()
        self.failing_slugs: set[str] = set()
        self.auth_error = False
        self._counter = 0

    def add(self, item: MirrorModuleItem) -> MirrorModuleItem:
        self.items[item.id] = item
        return item

    def by_slug(self, slug: str) -> MirrorModuleItem | None:
        return next((i for i in self.items.values() if i.slug == slug), None)

    async def verify(self) -> None:
        if self.auth_error:
            raise MirrorAuthError("Webflow rejected credentials (401): invalid token")

    async def get_item(self, item_id: str) -> StoreLookup[MirrorModuleItem]:
        item = self.items.get(item_id)
        if item is not None and item.slug in self.unreachable_slugs:
            return StoreLookup.unreachable("timeout")
        return StoreLookup.present(item) if item else StoreLookup.absent()

    async def find_item_by_slug(self, slug: str) -> StoreLookup[MirrorModuleItem]:
        if slug in self.unreachable_slugs:
            return StoreLookup.unreachable("timeout")
        item = self.by_slug(slug)
        return StoreLookup.present(item) if item else StoreLookup.absent()

    async def list_items(self) -> list[MirrorModuleItem]:
        return list(self.items.values())

    async def list_categories(self) -> list[CategoryReference]:
        return list(self.categories)

    async def list_tags(self) -> list[TagReference]:
        return list(self.tags)

    def _store(self, item_id: str, fields: MirrorFieldSet) -> MirrorModuleItem:
        now = datetime.now(timezone.utc)
        item = MirrorModuleItem(
            id=item_id,
            last_updated=now,
            created_on=now,
            is_draft=fields.is_draft,
            is_archived=fields.is_archived,
            field_data=fields,
        )
        self.items[item_id] = item
        return item

    async def create_item(self, fields: MirrorFieldSet) -> MirrorModuleItem:
        if fields.slug in self.failing_slugs:
            raise WriteFailure(self.name, "create", "503 Service Unavailable")
        self._counter += 1
        self.writes.append(("create", fields.slug))
        return self._store(f"wf-new-{self._counter}", fields)

    async def update_item(
        self, item_id: str, fields: MirrorFieldSet
    ) -> MirrorModuleItem | None:
        if fields.slug in self.failing_slugs:
            raise WriteFailure(self.name, "update", "503 Service Unavailable")
        if item_id not in self.items:
            return None
        self.writes.append(("update", fields.slug))
        return self._store(item_id, fields)

    async def delete_item(self, item_id: str) -> bool:
        self.writes.append(("delete", item_id))
        return self.items.pop(item_id, None) is not None

    async def publish_items(self, item_ids: list[str]) -> None:
        self.published.extend(item_ids)


# ── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture
def sync_config() -> SyncConfig:
    """SyncConfig with zero backoff so retry tests run instantly."""
    return SyncConfig(
        tie_tolerance_seconds=5.0,
        max_retries=3,
        retry_backoff_min=0,
        retry_backoff_max=0,
        storage_base_url="https://storage.example.com",
    )


@pytest.fixture
def primary_store() -> InMemoryPrimaryStore:
    return InMemoryPrimaryStore()


@pytest.fixture
def mirror_store() -> InMemoryMirrorStore:
    return InMemoryMirrorStore(
        categories=[
            CategoryReference(id="cat-prompting", name="Prompting", slug="prompting"),
            CategoryReference(id="cat-agents", name="Agents", slug="agents"),
        ],
        tags=[
            TagReference(id="tag-llm", name="LLM", slug="llm"),
            TagReference(id="tag-rag", name="RAG", slug="rag"),
            TagReference(id="tag-evals", name="Evals", slug="evals"),
        ],
    )


@pytest.fixture
def orchestrator(primary_store, mirror_store, sync_config) -> SyncOrchestrator:
    return SyncOrchestrator(primary_store, mirror_store, sync_config)


@pytest.fixture
def an_hour_ago() -> datetime:
    return datetime.now(timezone.utc) - timedelta(hours=1)
