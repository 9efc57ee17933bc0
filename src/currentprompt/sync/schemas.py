"""Pydantic schemas for the reconciliation engine.

Defines:
- Enums: SyncAction, SyncOutcome, BatchState, LookupStatus
- StoreLookup: three-valued result of querying one store
- Mirror collection items tagged by ``kind``: MirrorModuleItem,
  CategoryReference, TagReference, plus MirrorFieldSet, the explicit field
  schema of a module item
- SyncDecision, SyncItemResult, FailureEntry, BatchResult, SyncStatus
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, computed_field


# ── Enums ───────────────────────────────────────────────────────────────────


class SyncAction(str, Enum):
    """Direction of a one-way copy between the two stores."""

    PUSH = "push"
    PULL = "pull"
    NONE = "none"
    DELETE = "delete"


class SyncOutcome(str, Enum):
    """What happened to one module during a pass."""

    SYNCED = "synced"
    NOOP = "noop"
    CONFLICT = "conflict"
    FAILED = "failed"


class BatchState(str, Enum):
    """Lifecycle of a single reconciliation run. Never persisted."""

    PENDING = "pending"
    RESOLVING = "resolving"
    EXECUTING = "executing"
    DONE = "done"
    CANCELLED = "cancelled"


class LookupStatus(str, Enum):
    """Three-valued result of querying a store for one record."""

    PRESENT = "present"
    ABSENT = "absent"
    UNREACHABLE = "unreachable"


T = TypeVar("T")

# Nullable content fields in the Webflow modules collection
CLEARABLE_FIELD_DATA = frozenset({"summary", "source-url", "source-label"})


class StoreLookup(BaseModel, Generic[T]):
    """Result of looking up a single record in one store.

    ``UNREACHABLE`` is distinct from ``ABSENT``: a store that cannot be
    queried says nothing about whether the record exists.
    """

    status: LookupStatus
    record: T | None = None
    error: str | None = None

    model_config = {"frozen": True}

    @classmethod
    def present(cls, record: T) -> StoreLookup[T]:
        return cls(status=LookupStatus.PRESENT, record=record)

    @classmethod
    def absent(cls) -> StoreLookup[T]:
        return cls(status=LookupStatus.ABSENT)

    @classmethod
    def unreachable(cls, error: str) -> StoreLookup[T]:
        return cls(status=LookupStatus.UNREACHABLE, error=error)

    @property
    def is_present(self) -> bool:
        return self.status == LookupStatus.PRESENT

    @property
    def is_unreachable(self) -> bool:
        return self.status == LookupStatus.UNREACHABLE


# ── Mirror collections ─────────────────────────────────────────────────────


class MirrorFieldSet(BaseModel):
    """Field data of a Webflow module item.

    Field names follow the Webflow collection schema (hyphenated slugs) via
    aliases. ``category`` and ``tags`` hold reference item ids, not names.
    ``is_draft``/``is_archived`` are item-level flags, not field data.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str
    slug: str
    summary: str | None = None
    category: str | None = None
    tags: list[str] = Field(default_factory=list)
    latest_version: int = Field(default=1, alias="latest-version")
    source_url: str | None = Field(default=None, alias="source-url")
    source_label: str | None = Field(default=None, alias="source-label")
    primary_id: str | None = Field(default=None, alias="primary-id")
    download_link_full: str | None = Field(default=None, alias="download-link-full")
    download_link_summary: str | None = Field(default=None, alias="download-link-summary")
    download_link_bundle: str | None = Field(default=None, alias="download-link-bundle")
    is_draft: bool = Field(default=False, exclude=True)
    is_archived: bool = Field(default=False, exclude=True)

    def to_field_data(self) -> dict[str, Any]:
        """Serialize to the Webflow ``fieldData`` object.

        Content fields are always sent, as null when empty, so a value
        cleared in the primary store is also cleared in Webflow. Other
        unset optionals are omitted.
        """
        data = self.model_dump(by_alias=True)
        return {
            key: value
            for key, value in data.items()
            if value is not None or key in CLEARABLE_FIELD_DATA
        }


class MirrorModuleItem(BaseModel):
    """A module item in the Webflow modules collection."""

    kind: Literal["module"] = "module"
    id: str
    last_updated: datetime
    created_on: datetime | None = None
    is_draft: bool = False
    is_archived: bool = False
    field_data: MirrorFieldSet

    @property
    def slug(self) -> str:
        return self.field_data.slug

    @property
    def updated_at(self) -> datetime:
        return self.last_updated


class CategoryReference(BaseModel):
    """An item of the Webflow categories reference collection."""

    kind: Literal["category"] = "category"
    id: str
    name: str
    slug: str


class TagReference(BaseModel):
    """An item of the Webflow tags reference collection."""

    kind: Literal["tag"] = "tag"
    id: str
    name: str
    slug: str


# ── Decisions and results ──────────────────────────────────────────────────


class SyncDecision(BaseModel):
    """Ephemeral per-module decision, recomputed on every pass."""

    slug: str
    action: SyncAction
    reason: str

    model_config = {"frozen": True}


class SyncItemResult(BaseModel):
    """Outcome of reconciling one module."""

    slug: str
    action: SyncAction
    outcome: SyncOutcome
    reason: str = ""
    error_kind: str | None = None
    error: str | None = None
    mirror_id: str | None = None


class FailureEntry(BaseModel):
    """A failed module as reported to batch callers."""

    slug: str
    action: SyncAction
    error_kind: str | None = None
    error: str | None = None


class BatchResult(BaseModel):
    """Aggregate result of a reconciliation run (one or many modules)."""

    state: BatchState = BatchState.PENDING
    results: list[SyncItemResult] = Field(default_factory=list)
    cancelled: bool = False
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: datetime | None = None

    def _count(self, outcome: SyncOutcome) -> int:
        return sum(1 for r in self.results if r.outcome == outcome)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def processed(self) -> int:
        return len(self.results)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def succeeded(self) -> int:
        return self._count(SyncOutcome.SYNCED)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def failed(self) -> int:
        return self._count(SyncOutcome.FAILED)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def noop(self) -> int:
        return self._count(SyncOutcome.NOOP)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def conflicts(self) -> int:
        return self._count(SyncOutcome.CONFLICT)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def pushed(self) -> int:
        return sum(
            1
            for r in self.results
            if r.action == SyncAction.PUSH and r.outcome == SyncOutcome.SYNCED
        )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def pulled(self) -> int:
        return sum(
            1
            for r in self.results
            if r.action == SyncAction.PULL and r.outcome == SyncOutcome.SYNCED
        )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def failures(self) -> list[FailureEntry]:
        return [
            FailureEntry(
                slug=r.slug,
                action=r.action,
                error_kind=r.error_kind,
                error=r.error,
            )
            for r in self.results
            if r.outcome == SyncOutcome.FAILED
        ]

    def summary(self) -> str:
        """One-line human-readable summary of the run."""
        text = (
            f"processed={self.processed} succeeded={self.succeeded} "
            f"failed={self.failed} noop={self.noop} conflicts={self.conflicts} "
            f"(pushed={self.pushed} pulled={self.pulled})"
        )
        if self.cancelled:
            text += " [cancelled]"
        return text


class SyncStatus(BaseModel):
    """Read-only projection of lookup + direction for one module."""

    slug: str
    in_primary: bool
    in_mirror: bool
    primary_updated_at: datetime | None = None
    mirror_updated_at: datetime | None = None
    needs_sync: bool
    direction: SyncAction
    reason: str = ""
