"""Webflow webhook ingestion -- validate, resolve slug, reconcile one module.

Supported trigger types:
- collection_item_created / collection_item_changed / collection_item_published
- legacy ``publish`` and ``update``

Delete and unpublish events are acknowledged without action; removing a
module stays an explicit operation. Anything malformed, unrecognized or
unresolvable is logged and acknowledged as a no-op.

Signatures (when a secret is configured):
- v2: ``x-webflow-signature`` = hex HMAC-SHA256 of ``"{timestamp}:{body}"``,
  with ``x-webflow-timestamp``
- legacy: base64 HMAC-SHA256 of the raw body
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
from collections.abc import Mapping
from typing import Any

import structlog
from pydantic import BaseModel

from src.currentprompt.core.monitoring import webhook_events_total
from src.currentprompt.sync.adapter import MirrorStore, PrimaryStore
from src.currentprompt.sync.engine import SyncOrchestrator
from src.currentprompt.sync.errors import FatalSyncError
from src.currentprompt.sync.schemas import BatchResult

logger = structlog.get_logger(__name__)

SYNC_TRIGGERS = frozenset(
    {
        "collection_item_created",
        "collection_item_changed",
        "collection_item_published",
        "publish",
        "update",
    }
)

IGNORED_TRIGGERS = frozenset(
    {
        "collection_item_deleted",
        "collection_item_unpublished",
        "delete",
    }
)


class WebhookResult(BaseModel):
    """Outcome of ingesting one webhook event."""

    accepted: bool
    trigger_type: str | None = None
    item_id: str | None = None
    slug: str | None = None
    dispatched: bool = False
    reason: str = ""


def verify_signature(body: bytes, headers: Mapping[str, str], secret: str) -> bool:
    """Check a Webflow webhook signature against the shared secret."""
    normalized = {key.lower(): value for key, value in headers.items()}
    signature = normalized.get("x-webflow-signature")
    if not signature:
        return False

    key = secret.encode()
    timestamp = normalized.get("x-webflow-timestamp")
    if timestamp:
        expected = hmac.new(key, timestamp.encode() + b":" + body, hashlib.sha256).hexdigest()
        if hmac.compare_digest(expected, signature):
            return True

    legacy = base64.b64encode(hmac.new(key, body, hashlib.sha256).digest()).decode()
    return hmac.compare_digest(legacy, signature)


def _text(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _extract(event: dict[str, Any]) -> tuple[str | None, str | None]:
    """Return (item_id, slug) from a v2 or legacy event body.

    Values that are not non-empty strings are treated as missing.
    """
    payload = event.get("payload")
    if isinstance(payload, dict):
        field_data = payload.get("fieldData")
        slug = field_data.get("slug") if isinstance(field_data, dict) else None
        return _text(payload.get("id")) or _text(payload.get("itemId")), _text(slug)
    return _text(event.get("itemId")) or _text(event.get("_id")), _text(event.get("slug"))


class WebhookIngestor:
    """Turns Webflow webhook events into single-module reconciliations.

    ``ingest`` validates and resolves the event; ``dispatch`` runs the sync.
    The HTTP layer acknowledges first and dispatches in the background.

    Args:
        orchestrator: The sync orchestrator.
        primary: Primary store, for mirror id -> slug resolution.
        mirror: Mirror store, for item id -> slug resolution.
        secret: Webhook signing secret; empty disables verification.
    """

    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        primary: PrimaryStore,
        mirror: MirrorStore,
        secret: str = "",
    ) -> None:
        self._orchestrator = orchestrator
        self._primary = primary
        self._mirror = mirror
        self._secret = secret
        if not secret:
            logger.warning("webhook.signature_verification_disabled")

    async def ingest(self, body: bytes, headers: Mapping[str, str]) -> WebhookResult:
        """Validate an event and resolve the slug it refers to.

        Returns:
            WebhookResult; ``accepted`` is False only for a bad signature.
            ``slug`` is set when a reconciliation should be dispatched.
        """
        if self._secret and not verify_signature(body, headers, self._secret):
            logger.warning("webhook.invalid_signature")
            webhook_events_total.labels(trigger_type="unknown", result="rejected").inc()
            return WebhookResult(accepted=False, reason="invalid signature")

        try:
            event = json.loads(body)
        except ValueError:
            return self._noop(None, None, "malformed body")
        if not isinstance(event, dict):
            return self._noop(None, None, "malformed body")

        trigger_type = event.get("triggerType")
        if not isinstance(trigger_type, str):
            return self._noop(None, None, "missing or malformed trigger type")
        if trigger_type in IGNORED_TRIGGERS:
            return self._noop(trigger_type, None, "deletion is not propagated")
        if trigger_type not in SYNC_TRIGGERS:
            return self._noop(trigger_type, None, "unrecognized trigger type")

        item_id, slug = _extract(event)
        if slug is None and item_id:
            slug = await self._resolve_slug(item_id)
        if slug is None:
            return self._noop(trigger_type, item_id, "item could not be resolved to a slug")

        logger.info(
            "webhook.event_accepted",
            trigger_type=trigger_type,
            item_id=item_id,
            slug=slug,
        )
        webhook_events_total.labels(trigger_type=trigger_type, result="dispatched").inc()
        return WebhookResult(
            accepted=True,
            trigger_type=trigger_type,
            item_id=item_id,
            slug=slug,
            dispatched=True,
            reason="reconciliation dispatched",
        )

    async def dispatch(self, slug: str) -> BatchResult | None:
        """Run ``sync_one`` for a webhook-resolved slug.

        Fatal errors are logged, not raised: the event was already
        acknowledged and the next scheduled pass retries.
        """
        try:
            result = await self._orchestrator.sync_one(slug)
        except FatalSyncError as exc:
            logger.error("webhook.sync_aborted", slug=slug, error=str(exc))
            return None
        logger.info("webhook.sync_complete", slug=slug, summary=result.summary())
        return result

    async def handle(self, body: bytes, headers: Mapping[str, str]) -> WebhookResult:
        """Ingest and, when resolvable, reconcile inline."""
        result = await self.ingest(body, headers)
        if result.slug:
            await self.dispatch(result.slug)
        return result

    async def _resolve_slug(self, item_id: str) -> str | None:
        by_primary = await self._primary.find_by_mirror_id(item_id)
        if by_primary.is_present:
            return by_primary.record.slug
        by_mirror = await self._mirror.get_item(item_id)
        if by_mirror.is_present:
            return by_mirror.record.slug
        return None

    @staticmethod
    def _noop(trigger_type: str | None, item_id: str | None, reason: str) -> WebhookResult:
        logger.info(
            "webhook.event_ignored",
            trigger_type=trigger_type,
            item_id=item_id,
            reason=reason,
        )
        webhook_events_total.labels(
            trigger_type=trigger_type or "unknown", result="ignored"
        ).inc()
        return WebhookResult(
            accepted=True,
            trigger_type=trigger_type,
            item_id=item_id,
            reason=reason,
        )
