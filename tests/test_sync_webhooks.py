"""Tests for Webflow webhook signature checks and event ingestion."""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from src.currentprompt.sync.errors import MirrorAuthError
from src.currentprompt.sync.webhooks import WebhookIngestor, verify_signature
from tests.conftest import T0, make_item, make_module

SECRET = "whsec-test"


def _v2_headers(body: bytes, secret: str = SECRET, timestamp: str = "1767225600000") -> dict:
    digest = hmac.new(
        secret.encode(), timestamp.encode() + b":" + body, hashlib.sha256
    ).hexdigest()
    return {"X-Webflow-Timestamp": timestamp, "X-Webflow-Signature": digest}


def _legacy_headers(body: bytes, secret: str = SECRET) -> dict:
    digest = hmac.new(secret.encode(), body, hashlib.sha256).digest()
    return {"x-webflow-signature": base64.b64encode(digest).decode()}


def _event(trigger_type: str, **payload) -> bytes:
    return json.dumps({"triggerType": trigger_type, "payload": payload}).encode()


# ── Signatures ───────────────────────────────────────────────────────────────


class TestVerifySignature:
    def test_v2_signature(self):
        body = b'{"triggerType":"collection_item_changed"}'
        assert verify_signature(body, _v2_headers(body), SECRET) is True

    def test_legacy_signature(self):
        body = b'{"triggerType":"publish"}'
        assert verify_signature(body, _legacy_headers(body), SECRET) is True

    def test_wrong_secret(self):
        body = b'{"triggerType":"publish"}'
        assert verify_signature(body, _v2_headers(body, secret="other"), SECRET) is False

    def test_tampered_body(self):
        body = b'{"triggerType":"publish"}'
        headers = _v2_headers(body)
        assert verify_signature(body + b" ", headers, SECRET) is False

    def test_missing_signature(self):
        assert verify_signature(b"{}", {}, SECRET) is False


# ── Ingestion ────────────────────────────────────────────────────────────────


@pytest.fixture
def ingestor(orchestrator, primary_store, mirror_store) -> WebhookIngestor:
    return WebhookIngestor(orchestrator, primary_store, mirror_store, secret=SECRET)


@pytest.fixture
def open_ingestor(orchestrator, primary_store, mirror_store) -> WebhookIngestor:
    return WebhookIngestor(orchestrator, primary_store, mirror_store)


class TestIngest:
    async def test_bad_signature_is_rejected(self, ingestor):
        body = _event("collection_item_changed", id="wf-1", fieldData={"slug": "alpha"})
        result = await ingestor.ingest(body, {"x-webflow-signature": "nope"})
        assert result.accepted is False
        assert result.slug is None

    async def test_v2_payload_slug(self, ingestor):
        body = _event("collection_item_changed", id="wf-1", fieldData={"slug": "alpha"})
        result = await ingestor.ingest(body, _v2_headers(body))
        assert result.accepted is True
        assert result.dispatched is True
        assert result.slug == "alpha"
        assert result.item_id == "wf-1"

    async def test_no_secret_skips_verification(self, open_ingestor):
        body = _event("collection_item_created", id="wf-1", fieldData={"slug": "alpha"})
        result = await open_ingestor.ingest(body, {})
        assert result.slug == "alpha"

    async def test_legacy_item_id_resolved_via_primary(self, open_ingestor, primary_store):
        primary_store.add(make_module("alpha", mirror_id="wf-legacy"))
        body = json.dumps({"triggerType": "publish", "itemId": "wf-legacy"}).encode()

        result = await open_ingestor.ingest(body, {})

        assert result.slug == "alpha"

    async def test_item_id_resolved_via_mirror(self, open_ingestor, mirror_store):
        mirror_store.add(make_item("from-webflow", item_id="wf-9"))
        body = _event("collection_item_published", id="wf-9")

        result = await open_ingestor.ingest(body, {})

        assert result.slug == "from-webflow"

    async def test_non_string_slug_falls_back_to_item_lookup(self, open_ingestor, mirror_store):
        mirror_store.add(make_item("from-webflow", item_id="wf-9"))
        body = _event("collection_item_changed", id="wf-9", fieldData={"slug": ["oops"]})

        result = await open_ingestor.ingest(body, {})

        assert result.slug == "from-webflow"

    @pytest.mark.parametrize(
        "body",
        [
            b"not json",
            b"[1, 2, 3]",
            json.dumps({"triggerType": "site_publish"}).encode(),
            json.dumps({"triggerType": "collection_item_deleted", "payload": {"id": "wf-1"}}).encode(),
            json.dumps({"triggerType": "collection_item_unpublished", "payload": {"id": "wf-1"}}).encode(),
            json.dumps({"triggerType": "collection_item_changed", "payload": {"id": "wf-unknown"}}).encode(),
            json.dumps({"triggerType": ["collection_item_changed"]}).encode(),
            json.dumps({"triggerType": {"type": "publish"}}).encode(),
            json.dumps({"payload": {"id": "wf-1"}}).encode(),
            json.dumps(
                {
                    "triggerType": "collection_item_changed",
                    "payload": {"id": 42, "fieldData": {"slug": {"en": "alpha"}}},
                }
            ).encode(),
            json.dumps({"triggerType": "publish", "itemId": ["wf-1"], "slug": 7}).encode(),
        ],
    )
    async def test_unactionable_events_are_acknowledged(self, open_ingestor, body):
        result = await open_ingestor.ingest(body, {})
        assert result.accepted is True
        assert result.dispatched is False
        assert result.slug is None
        assert result.reason


class TestDispatch:
    async def test_handle_pulls_changed_item(self, open_ingestor, primary_store, mirror_store):
        primary_store.add(make_module("alpha", mirror_id="wf-1", updated_at=T0))
        mirror_store.add(
            make_item(
                "alpha",
                item_id="wf-1",
                last_updated=T0 + timedelta(minutes=5),
                name="Renamed In Webflow",
            )
        )
        body = _event("collection_item_changed", id="wf-1", fieldData={"slug": "alpha"})

        result = await open_ingestor.handle(body, {})

        assert result.dispatched is True
        assert primary_store.modules["alpha"].title == "Renamed In Webflow"

    async def test_dispatch_returns_batch_result(self, open_ingestor, primary_store):
        primary_store.add(make_module("alpha"))
        result = await open_ingestor.dispatch("alpha")
        assert result is not None
        assert result.pushed == 1

    async def test_dispatch_swallows_fatal_errors(self, primary_store, mirror_store):
        orchestrator = AsyncMock()
        orchestrator.sync_one.side_effect = MirrorAuthError("Webflow rejected credentials")
        ingestor = WebhookIngestor(orchestrator, primary_store, mirror_store)

        assert await ingestor.dispatch("alpha") is None
        orchestrator.sync_one.assert_awaited_once_with("alpha")
