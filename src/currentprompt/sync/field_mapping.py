"""Field mapping between primary modules and Webflow module items.

Defines:
- ReferenceIndex: name/slug <-> reference item id lookup for the category
  and tag collections
- download_links(): public storage URLs for a module version
- to_mirror_fields(): ModuleRead -> MirrorFieldSet (push)
- to_primary_fields(): MirrorModuleItem -> ModuleFields (pull)

One-sided fields:
- push only: primary-id, download links, is_draft/is_archived (derived
  from status)
- primary only: status, enrichment, created_at
"""

from __future__ import annotations

from collections.abc import Iterable

from src.currentprompt.catalog.schemas import ModuleFields, ModuleRead, ModuleStatus
from src.currentprompt.sync.adapter import MirrorStore
from src.currentprompt.sync.errors import MappingError
from src.currentprompt.sync.schemas import (
    CategoryReference,
    MirrorFieldSet,
    MirrorModuleItem,
    TagReference,
)

# File names under each module version in public storage
DOWNLOAD_FILES: dict[str, str] = {
    "full": "full.md",
    "summary": "summary.md",
    "bundle": "bundle.zip",
}


def _key(value: str) -> str:
    return value.strip().casefold()


# ── Reference Index ────────────────────────────────────────────────────────


class _ReferenceTable:
    def __init__(self, field: str, references: Iterable[CategoryReference | TagReference]) -> None:
        self.field = field
        self._by_key: dict[str, str] = {}
        self._by_id: dict[str, str] = {}
        for ref in references:
            self._by_id[ref.id] = ref.name
            for candidate in (ref.name, ref.slug):
                if candidate:
                    self._by_key.setdefault(_key(candidate), ref.id)

    def __len__(self) -> int:
        return len(self._by_id)

    def id_for(self, name: str) -> str:
        ref_id = self._by_key.get(_key(name)) if name and name.strip() else None
        if ref_id is None:
            raise MappingError(self.field, name)
        return ref_id

    def name_for(self, ref_id: str) -> str:
        try:
            return self._by_id[ref_id]
        except KeyError:
            raise MappingError(self.field, ref_id) from None


class ReferenceIndex:
    """Category and tag lookup in both directions.

    Names match case-insensitively after trimming; a reference's slug is
    accepted as an alias for its name.
    """

    def __init__(
        self,
        categories: Iterable[CategoryReference] = (),
        tags: Iterable[TagReference] = (),
    ) -> None:
        self._categories = _ReferenceTable("category", categories)
        self._tags = _ReferenceTable("tag", tags)

    @classmethod
    async def load(cls, mirror: MirrorStore) -> ReferenceIndex:
        """Read both reference collections from the mirror store."""
        return cls(await mirror.list_categories(), await mirror.list_tags())

    @property
    def category_count(self) -> int:
        return len(self._categories)

    @property
    def tag_count(self) -> int:
        return len(self._tags)

    def category_id(self, name: str) -> str:
        return self._categories.id_for(name)

    def category_name(self, ref_id: str) -> str:
        return self._categories.name_for(ref_id)

    def tag_id(self, name: str) -> str:
        return self._tags.id_for(name)

    def tag_name(self, ref_id: str) -> str:
        return self._tags.name_for(ref_id)


def _unique(values: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


# ── Conversions ────────────────────────────────────────────────────────────


def download_links(storage_base_url: str, slug: str, version: int) -> dict[str, str]:
    """Public storage URLs for each downloadable file of a module version."""
    base = storage_base_url.rstrip("/")
    return {
        kind: f"{base}/storage/v1/object/public/modules/{slug}/v{version}/{filename}"
        for kind, filename in DOWNLOAD_FILES.items()
    }


def to_mirror_fields(
    module: ModuleRead,
    references: ReferenceIndex,
    storage_base_url: str = "",
) -> MirrorFieldSet:
    """Convert a primary module to the mirror field set.

    Raises:
        MappingError: If the category or any tag has no reference item.
    """
    category_id = references.category_id(module.category)
    tag_ids = _unique(references.tag_id(tag) for tag in module.tags)

    links = (
        download_links(storage_base_url, module.slug, module.latest_version)
        if storage_base_url
        else {}
    )

    return MirrorFieldSet(
        name=module.title,
        slug=module.slug,
        summary=module.summary,
        category=category_id,
        tags=tag_ids,
        latest_version=module.latest_version,
        source_url=module.source_url,
        source_label=module.source_label,
        primary_id=module.id,
        download_link_full=links.get("full"),
        download_link_summary=links.get("summary"),
        download_link_bundle=links.get("bundle"),
        is_draft=module.status != ModuleStatus.PUBLISHED,
        is_archived=module.status == ModuleStatus.ARCHIVED,
    )


def to_primary_fields(item: MirrorModuleItem, references: ReferenceIndex) -> ModuleFields:
    """Convert a mirror item to the primary fields it carries.

    Raises:
        MappingError: If the category or a tag id is not in the reference index.
    """
    fields = item.field_data
    if not fields.category:
        raise MappingError("category", "")

    return ModuleFields(
        slug=fields.slug,
        title=fields.name,
        category=references.category_name(fields.category),
        tags=_unique(references.tag_name(ref_id) for ref_id in fields.tags),
        summary=fields.summary,
        source_url=fields.source_url,
        source_label=fields.source_label,
        latest_version=fields.latest_version,
    )
