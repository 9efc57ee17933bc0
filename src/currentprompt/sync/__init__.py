"""Catalog reconciliation between the primary store and the Webflow mirror.

Provides store interfaces with concrete implementations:
- PostgresPrimaryStore: the ``modules`` table via ModuleRepository
- WebflowMirrorStore: Webflow CMS collections via the Data API v2

and the engine built on them:
- RecordLocator: finds a slug in both stores
- resolve_direction: push/pull/none decision with a tie tolerance
- to_mirror_fields / to_primary_fields: field mapping with reference lookup
- PushSyncer / PullSyncer: one-way copies
- SyncOrchestrator: sync_one, sync_all, get_sync_status, delete_from_mirror
- WebhookIngestor: Webflow webhook events -> sync_one
"""

from src.currentprompt.sync.adapter import MirrorStore, PrimaryStore
from src.currentprompt.sync.engine import SyncOrchestrator
from src.currentprompt.sync.errors import (
    EnrichmentError,
    FatalSyncError,
    LookupFailure,
    MappingError,
    MirrorAuthError,
    StoreUnavailable,
    SyncError,
    WriteFailure,
)
from src.currentprompt.sync.field_mapping import (
    ReferenceIndex,
    to_mirror_fields,
    to_primary_fields,
)
from src.currentprompt.sync.locator import RecordLocator
from src.currentprompt.sync.postgres import PostgresPrimaryStore
from src.currentprompt.sync.pull import PullSyncer
from src.currentprompt.sync.push import PushSyncer
from src.currentprompt.sync.resolver import resolve_direction
from src.currentprompt.sync.webflow import WebflowMirrorStore
from src.currentprompt.sync.webhooks import WebhookIngestor

__all__ = [
    "PrimaryStore",
    "MirrorStore",
    "PostgresPrimaryStore",
    "WebflowMirrorStore",
    "RecordLocator",
    "resolve_direction",
    "ReferenceIndex",
    "to_mirror_fields",
    "to_primary_fields",
    "PushSyncer",
    "PullSyncer",
    "SyncOrchestrator",
    "WebhookIngestor",
    "SyncError",
    "LookupFailure",
    "MappingError",
    "WriteFailure",
    "EnrichmentError",
    "StoreUnavailable",
    "FatalSyncError",
    "MirrorAuthError",
]
