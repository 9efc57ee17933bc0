"""Exception hierarchy for the reconciliation engine.

Per-module errors (``ModuleSyncError`` subclasses) are caught at the module
boundary by the orchestrator and recorded in the batch result. A
``FatalSyncError`` aborts the whole run before (or instead of) touching
further modules.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for all reconciliation errors."""


# ── Per-module errors ──────────────────────────────────────────────────────


class ModuleSyncError(SyncError):
    """An error confined to a single module's reconciliation."""


class LookupFailure(ModuleSyncError):
    """A store could not be queried; presence/absence is unknown."""

    def __init__(self, store: str, slug: str, detail: str = "") -> None:
        self.store = store
        self.slug = slug
        self.detail = detail
        message = f"{store} store unreachable while looking up '{slug}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class MappingError(ModuleSyncError):
    """A category or tag has no counterpart reference on the other side."""

    def __init__(self, field: str, value: str) -> None:
        self.field = field
        self.value = value
        super().__init__(f"No reference counterpart for {field} '{value}'")


class WriteFailure(ModuleSyncError):
    """A create/update/delete call failed after retries."""

    def __init__(self, store: str, operation: str, detail: str = "") -> None:
        self.store = store
        self.operation = operation
        self.detail = detail
        message = f"{store} {operation} failed"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class EnrichmentError(ModuleSyncError):
    """The enrichment hook failed before a module's first push."""


# ── Batch-level errors ─────────────────────────────────────────────────────


class StoreUnavailable(SyncError):
    """A listing query failed after retries."""

    def __init__(self, store: str, detail: str = "") -> None:
        self.store = store
        self.detail = detail
        super().__init__(f"{store} store unavailable" + (f": {detail}" if detail else ""))


class FatalSyncError(SyncError):
    """A condition that makes every module fail; aborts the batch."""


class MirrorAuthError(FatalSyncError):
    """Webflow rejected the API token (401/403)."""
