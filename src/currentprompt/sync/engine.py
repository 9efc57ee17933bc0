"""Reconciliation orchestrator -- locate, resolve, dispatch for each module.

Each run walks a short-lived state machine (pending -> resolving -> executing
-> done, or cancelled) that is never persisted. Every run starts with a
preflight: both stores are verified and the category/tag reference index is
loaded. Preflight failures raise FatalSyncError and no module is touched.

Per-module errors (LookupFailure, MappingError, WriteFailure,
EnrichmentError) are recorded on the BatchResult and never abort the run.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import structlog

from src.currentprompt.catalog.schemas import ModuleStatus
from src.currentprompt.config import SyncConfig
from src.currentprompt.core.monitoring import record_sync_result, track_sync_batch
from src.currentprompt.sync.adapter import MirrorStore, PrimaryStore
from src.currentprompt.sync.errors import FatalSyncError, ModuleSyncError, StoreUnavailable
from src.currentprompt.sync.field_mapping import ReferenceIndex
from src.currentprompt.sync.locator import LocatedRecords, RecordLocator
from src.currentprompt.sync.pull import PullSyncer
from src.currentprompt.sync.push import Enricher, PushSyncer
from src.currentprompt.sync.resolver import resolve_direction
from src.currentprompt.sync.schemas import (
    BatchResult,
    BatchState,
    SyncAction,
    SyncDecision,
    SyncItemResult,
    SyncOutcome,
    SyncStatus,
)

logger = structlog.get_logger(__name__)


class SyncOrchestrator:
    """Runs reconciliation passes between the primary and mirror stores.

    Args:
        primary: The primary store (system of record).
        mirror: The mirror store.
        config: Immutable sync configuration built at startup.
        enricher: Optional enrichment hook for first pushes.
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
        self._locator = RecordLocator(primary, mirror)
        self._pusher = PushSyncer(primary, mirror, config, enricher)
        self._puller = PullSyncer(primary, config)

    # ── Public operations ───────────────────────────────────────────────

    async def sync_one(self, slug: str) -> BatchResult:
        """Reconcile a single module.

        Raises:
            FatalSyncError: If preflight fails.
        """
        result = BatchResult()
        async with track_sync_batch("one") as tracker:
            references = await self._preflight()
            result.state = BatchState.EXECUTING
            result.results.append(await self._reconcile(slug, references))
            self._finish(result, BatchState.DONE)
            tracker["state"] = result.state.value
        return result

    async def sync_all(self, cancel_event: asyncio.Event | None = None) -> BatchResult:
        """Reconcile every module in either store.

        The universe is the union of published primary slugs and all mirror
        item slugs, processed in sorted order. Setting ``cancel_event``
        stops the run at the next module boundary.

        Raises:
            FatalSyncError: If preflight fails or a store cannot be listed.
        """
        result = BatchResult()
        async with track_sync_batch("all") as tracker:
            references = await self._preflight()

            result.state = BatchState.RESOLVING
            slugs = await self._universe()

            result.state = BatchState.EXECUTING
            logger.info(
                "sync.batch_started",
                modules=len(slugs),
                concurrency=self._config.max_concurrency,
            )

            if self._config.max_concurrency <= 1:
                for slug in slugs:
                    if cancel_event is not None and cancel_event.is_set():
                        break
                    result.results.append(await self._reconcile(slug, references))
            else:
                result.results.extend(
                    await self._reconcile_concurrently(slugs, references, cancel_event)
                )

            cancelled = len(result.results) < len(slugs)
            result.cancelled = cancelled
            self._finish(result, BatchState.CANCELLED if cancelled else BatchState.DONE)
            tracker["state"] = result.state.value

        logger.info(
            "sync.batch_complete",
            processed=result.processed,
            succeeded=result.succeeded,
            failed=result.failed,
            noop=result.noop,
            conflicts=result.conflicts,
            cancelled=result.cancelled,
        )
        return result

    async def get_sync_status(self, slug: str) -> SyncStatus:
        """Read-only projection of one module's sync state.

        Raises:
            LookupFailure: If either store cannot be queried.
        """
        located = await self._locator.locate(slug)
        decision = resolve_direction(
            slug, located.primary, located.mirror, self._config.tie_tolerance
        )
        return SyncStatus(
            slug=slug,
            in_primary=located.primary is not None,
            in_mirror=located.mirror is not None,
            primary_updated_at=located.primary.updated_at if located.primary else None,
            mirror_updated_at=located.mirror.last_updated if located.mirror else None,
            needs_sync=decision.action != SyncAction.NONE,
            direction=decision.action,
            reason=decision.reason,
        )

    async def delete_from_mirror(self, slug: str) -> BatchResult:
        """Delete a module's mirror item and unlink the primary record.

        The primary record is kept. A published module is pushed again by
        the next pass unless its status changes first.
        """
        result = BatchResult(state=BatchState.EXECUTING)
        try:
            located = await self._locator.locate(slug)
            if located.mirror is None:
                if located.primary is not None and located.primary.mirror_id:
                    await self._primary.clear_mirror_id(slug)
                item = SyncItemResult(
                    slug=slug,
                    action=SyncAction.DELETE,
                    outcome=SyncOutcome.NOOP,
                    reason="not in mirror",
                )
            else:
                await self._mirror.delete_item(located.mirror.id)
                if located.primary is not None and located.primary.mirror_id:
                    await self._primary.clear_mirror_id(slug)
                item = SyncItemResult(
                    slug=slug,
                    action=SyncAction.DELETE,
                    outcome=SyncOutcome.SYNCED,
                    reason="deleted from mirror",
                    mirror_id=located.mirror.id,
                )
                logger.info("sync.mirror_deleted", slug=slug, mirror_id=located.mirror.id)
        except ModuleSyncError as exc:
            item = self._failure(slug, SyncAction.DELETE, exc)

        record_sync_result(item.action.value, item.outcome.value)
        result.results.append(item)
        self._finish(result, BatchState.DONE)
        return result

    # ── Internals ───────────────────────────────────────────────────────

    async def _preflight(self) -> ReferenceIndex:
        try:
            await self._primary.verify()
            await self._mirror.verify()
            references = await ReferenceIndex.load(self._mirror)
        except StoreUnavailable as exc:
            raise FatalSyncError(f"Reference collections unreadable: {exc}") from exc
        except FatalSyncError as exc:
            logger.error("sync.preflight_failed", error=str(exc), error_kind=type(exc).__name__)
            raise
        logger.debug(
            "sync.preflight_ok",
            categories=references.category_count,
            tags=references.tag_count,
        )
        return references

    async def _universe(self) -> list[str]:
        try:
            published = await self._primary.list_published_slugs()
            mirrored = [item.slug for item in await self._mirror.list_items()]
        except StoreUnavailable as exc:
            raise FatalSyncError(f"Cannot list modules: {exc}") from exc
        return sorted(set(published) | set(mirrored))

    async def _reconcile_concurrently(
        self,
        slugs: list[str],
        references: ReferenceIndex,
        cancel_event: asyncio.Event | None,
    ) -> list[SyncItemResult]:
        semaphore = asyncio.Semaphore(self._config.max_concurrency)

        async def worker(slug: str) -> SyncItemResult | None:
            async with semaphore:
                if cancel_event is not None and cancel_event.is_set():
                    return None
                return await self._reconcile(slug, references)

        tasks = [asyncio.create_task(worker(slug)) for slug in slugs]
        try:
            outcomes = await asyncio.gather(*tasks)
        except BaseException:
            # A fatal error in one worker stops the others before they write
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return [outcome for outcome in outcomes if outcome is not None]

    async def _reconcile(self, slug: str, references: ReferenceIndex) -> SyncItemResult:
        """Locate, resolve and execute one module; never raises ModuleSyncError."""
        action = SyncAction.NONE
        try:
            located = await self._locator.locate(slug)
            decision = resolve_direction(
                slug, located.primary, located.mirror, self._config.tie_tolerance
            )
            action = decision.action
            item = await self._execute(decision, located, references)
        except ModuleSyncError as exc:
            item = self._failure(slug, action, exc)

        record_sync_result(item.action.value, item.outcome.value)
        return item

    async def _execute(
        self,
        decision: SyncDecision,
        located: LocatedRecords,
        references: ReferenceIndex,
    ) -> SyncItemResult:
        slug = decision.slug

        if decision.action == SyncAction.PUSH:
            module = located.primary
            if module.status != ModuleStatus.PUBLISHED:
                logger.info(
                    "sync.push_skipped_unpublished",
                    slug=slug,
                    status=module.status.value,
                )
                return SyncItemResult(
                    slug=slug,
                    action=SyncAction.PUSH,
                    outcome=SyncOutcome.CONFLICT,
                    reason=f"{decision.reason}; module is {module.status.value}, not published",
                    mirror_id=module.mirror_id,
                )
            item = await self._pusher.push(module, references, located.mirror)
            return SyncItemResult(
                slug=slug,
                action=SyncAction.PUSH,
                outcome=SyncOutcome.SYNCED,
                reason=decision.reason,
                mirror_id=item.id,
            )

        if decision.action == SyncAction.PULL:
            module = await self._puller.pull(located.mirror, references, located.primary)
            return SyncItemResult(
                slug=slug,
                action=SyncAction.PULL,
                outcome=SyncOutcome.SYNCED,
                reason=decision.reason,
                mirror_id=module.mirror_id,
            )

        primary, mirror = located.primary, located.mirror
        if primary is not None and mirror is not None and primary.mirror_id != mirror.id:
            # Found by slug only; link without touching content timestamps
            await self._primary.record_push(
                slug,
                mirror_id=mirror.id,
                updated_at=primary.updated_at,
                synced_at=datetime.now(timezone.utc),
            )
            logger.info("sync.mirror_id_linked", slug=slug, mirror_id=mirror.id)

        return SyncItemResult(
            slug=slug,
            action=SyncAction.NONE,
            outcome=SyncOutcome.NOOP,
            reason=decision.reason,
            mirror_id=mirror.id if mirror else None,
        )

    @staticmethod
    def _failure(slug: str, action: SyncAction, exc: ModuleSyncError) -> SyncItemResult:
        logger.warning(
            "sync.module_failed",
            slug=slug,
            action=action.value,
            error_kind=type(exc).__name__,
            error=str(exc),
        )
        return SyncItemResult(
            slug=slug,
            action=action,
            outcome=SyncOutcome.FAILED,
            error_kind=type(exc).__name__,
            error=str(exc),
        )

    @staticmethod
    def _finish(result: BatchResult, state: BatchState) -> None:
        result.state = state
        result.completed_at = datetime.now(timezone.utc)
