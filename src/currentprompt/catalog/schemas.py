"""Pydantic schemas for catalog modules held in the primary store.

Defines:
- ModuleStatus: publication lifecycle of a module
- ModuleRead: full persisted module record
- ModuleCreate / ModuleUpdate: write payloads for the repository
- ModuleFields: the subset of module fields that travels through the mirror

Enrichment output (summaries, SEO keywords, quality score, schema.org JSON,
image prompt) is kept as an opaque JSON document on the module.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


# Nullable content fields that an update may clear
CLEARABLE_FIELDS = frozenset({"summary", "source_url", "source_label"})


class ModuleStatus(str, Enum):
    """Publication lifecycle of a catalog module."""

    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class ModuleFields(BaseModel):
    """Module fields that have a counterpart in the mirror collection."""

    slug: str
    title: str
    category: str
    tags: list[str] = Field(default_factory=list)
    summary: str | None = None
    source_url: str | None = None
    source_label: str | None = None
    latest_version: int = 1


class ModuleRead(ModuleFields):
    """Schema for reading a module (includes all persisted fields)."""

    id: str
    status: ModuleStatus = ModuleStatus.DRAFT
    enrichment: dict[str, Any] = Field(default_factory=dict)
    mirror_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime
    synced_at: datetime | None = None


class ModuleCreate(ModuleFields):
    """Schema for creating a module.

    ``updated_at`` is optional: when omitted the database clock is used.
    """

    status: ModuleStatus = ModuleStatus.DRAFT
    enrichment: dict[str, Any] = Field(default_factory=dict)
    mirror_id: str | None = None
    updated_at: datetime | None = None
    synced_at: datetime | None = None


class ModuleUpdate(BaseModel):
    """Schema for updating a module (all fields optional).

    Only explicitly set fields are written. An explicit None clears the
    nullable content fields (``CLEARABLE_FIELDS``) and is ignored for the
    rest, so ``mirror_id`` is never cleared through an update.
    """

    title: str | None = None
    category: str | None = None
    tags: list[str] | None = None
    summary: str | None = None
    source_url: str | None = None
    source_label: str | None = None
    latest_version: int | None = None
    status: ModuleStatus | None = None
    enrichment: dict[str, Any] | None = None
    mirror_id: str | None = None
    updated_at: datetime | None = None
    synced_at: datetime | None = None

    def changes(self) -> dict[str, Any]:
        """Explicitly set fields to write, keyed by column name."""
        return {
            key: value
            for key, value in self.model_dump(exclude_unset=True).items()
            if value is not None or key in CLEARABLE_FIELDS
        }
