"""Tests for WebflowMirrorStore against an httpx.MockTransport."""

from __future__ import annotations

import json
from collections.abc import Callable

import httpx
import pytest

from src.currentprompt.sync.errors import (
    FatalSyncError,
    MirrorAuthError,
    StoreUnavailable,
    WriteFailure,
)
from src.currentprompt.sync.schemas import MirrorFieldSet
from src.currentprompt.sync.webflow import WebflowMirrorStore, parse_module_item

BASE = "https://api.webflow.com/v2"
ITEMS = "/v2/collections/col-modules/items"


def _raw_item(item_id: str, slug: str, **field_data) -> dict:
    return {
        "id": item_id,
        "lastUpdated": "2026-03-01T12:00:00.000Z",
        "createdOn": "2026-02-01T12:00:00.000Z",
        "isDraft": False,
        "isArchived": False,
        "fieldData": {"name": slug.title(), "slug": slug, **field_data},
    }


@pytest.fixture
def make_store(sync_config):
    clients: list[httpx.AsyncClient] = []

    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> WebflowMirrorStore:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=BASE)
        clients.append(client)
        return WebflowMirrorStore(
            token="test-token",
            collection_id="col-modules",
            categories_collection_id="col-categories",
            tags_collection_id="col-tags",
            config=sync_config,
            client=client,
        )

    return factory


# ── Parsing ──────────────────────────────────────────────────────────────────


def test_parse_module_item_reads_hyphenated_fields():
    item = parse_module_item(
        _raw_item("wf-1", "alpha", **{"latest-version": 3, "download-link-full": None})
    )
    assert item.id == "wf-1"
    assert item.slug == "alpha"
    assert item.field_data.latest_version == 3
    assert item.field_data.download_link_full is None
    assert item.last_updated.tzinfo is not None


# ── Reads ────────────────────────────────────────────────────────────────────


class TestReads:
    async def test_list_items_paginates(self, make_store):
        offsets: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            offset = int(request.url.params["offset"])
            offsets.append(request.url.params["offset"])
            total = 150
            count = min(100, total - offset)
            items = [_raw_item(f"wf-{offset + n}", f"m-{offset + n}") for n in range(count)]
            return httpx.Response(
                200, json={"items": items, "pagination": {"total": total, "offset": offset}}
            )

        items = await make_store(handler).list_items()

        assert len(items) == 150
        assert offsets == ["0", "100"]

    async def test_get_item_404_is_absent(self, make_store):
        store = make_store(lambda request: httpx.Response(404, json={"message": "not found"}))
        lookup = await store.get_item("wf-gone")
        assert lookup.is_present is False
        assert lookup.is_unreachable is False

    async def test_get_item_retries_then_unreachable(self, make_store):
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(500, json={"message": "internal"})

        lookup = await make_store(handler).get_item("wf-1")

        assert lookup.is_unreachable is True
        assert len(calls) == 3

    async def test_rate_limit_is_retried(self, make_store):
        responses = iter(
            [
                httpx.Response(429, json={"message": "rate limited"}),
                httpx.Response(200, json=_raw_item("wf-1", "alpha")),
            ]
        )
        lookup = await make_store(lambda request: next(responses)).get_item("wf-1")
        assert lookup.is_present is True
        assert lookup.record.slug == "alpha"

    async def test_find_by_slug_requires_exact_match(self, make_store):
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.params["slug"])
            items = [_raw_item("wf-2", "alpha-2"), _raw_item("wf-1", "alpha")]
            return httpx.Response(200, json={"items": items, "pagination": {"total": 2}})

        lookup = await make_store(handler).find_item_by_slug("alpha")

        assert seen == ["alpha"]
        assert lookup.record.id == "wf-1"

    async def test_list_failure_is_store_unavailable(self, make_store):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(StoreUnavailable):
            await make_store(handler).list_items()

    async def test_reference_collections(self, make_store):
        def handler(request: httpx.Request) -> httpx.Response:
            if "col-categories" in request.url.path:
                items = [{"id": "cat-1", "fieldData": {"name": "Prompting", "slug": "prompting"}}]
            else:
                items = [{"id": "tag-1", "fieldData": {"name": "LLM", "slug": "llm"}}]
            return httpx.Response(200, json={"items": items, "pagination": {"total": 1}})

        store = make_store(handler)
        categories = await store.list_categories()
        tags = await store.list_tags()

        assert categories[0].id == "cat-1"
        assert categories[0].name == "Prompting"
        assert tags[0].slug == "llm"

    async def test_unconfigured_reference_collection_is_empty(self, sync_config):
        store = WebflowMirrorStore("t", "col-modules", "", "", sync_config)
        assert await store.list_tags() == []
        await store.aclose()


# ── Auth ─────────────────────────────────────────────────────────────────────


class TestAuth:
    async def test_verify_401_is_auth_error(self, make_store):
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(401, json={"message": "invalid token"})

        with pytest.raises(MirrorAuthError, match="401"):
            await make_store(handler).verify()
        assert len(calls) == 1

    async def test_verify_missing_collection_is_fatal(self, make_store):
        store = make_store(lambda request: httpx.Response(400, json={"message": "bad id"}))
        with pytest.raises(FatalSyncError):
            await store.verify()

    async def test_auth_error_is_not_a_write_failure(self, make_store):
        store = make_store(lambda request: httpx.Response(403, json={"message": "scope"}))
        with pytest.raises(MirrorAuthError):
            await store.create_item(MirrorFieldSet(name="Alpha", slug="alpha"))


# ── Writes ───────────────────────────────────────────────────────────────────


class TestWrites:
    async def test_create_sends_field_data(self, make_store):
        captured: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["method"] = request.method
            captured["path"] = request.url.path
            captured["auth"] = request.headers.get("authorization")
            captured["body"] = json.loads(request.content)
            return httpx.Response(202, json=_raw_item("wf-new", "alpha"))

        fields = MirrorFieldSet(
            name="Alpha",
            slug="alpha",
            category="cat-1",
            tags=["tag-1"],
            latest_version=2,
            primary_id="uuid-1",
            is_draft=False,
        )
        item = await make_store(handler).create_item(fields)

        assert item.id == "wf-new"
        assert captured["method"] == "POST"
        assert captured["path"] == ITEMS
        body = captured["body"]
        assert body["isDraft"] is False
        assert body["isArchived"] is False
        assert body["fieldData"]["latest-version"] == 2
        assert body["fieldData"]["primary-id"] == "uuid-1"
        assert "is_draft" not in body["fieldData"]
        assert body["fieldData"]["summary"] is None
        assert "download-link-full" not in body["fieldData"]

    async def test_update_stale_id_returns_none(self, make_store):
        store = make_store(lambda request: httpx.Response(404, json={"message": "gone"}))
        assert await store.update_item("wf-gone", MirrorFieldSet(name="A", slug="a")) is None

    async def test_create_exhausts_retries(self, make_store):
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(503, text="upstream unavailable")

        with pytest.raises(WriteFailure) as exc_info:
            await make_store(handler).create_item(MirrorFieldSet(name="A", slug="a"))

        assert len(calls) == 3
        assert exc_info.value.store == "mirror"
        assert exc_info.value.operation == "create"

    async def test_validation_error_is_not_retried(self, make_store):
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(400, json={"message": "Validation Error"})

        with pytest.raises(WriteFailure, match="Validation Error"):
            await make_store(handler).create_item(MirrorFieldSet(name="A", slug="a"))
        assert len(calls) == 1

    async def test_publish_items(self, make_store):
        captured: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["path"] = request.url.path
            captured["body"] = json.loads(request.content)
            return httpx.Response(202, json={"publishedItemIds": ["wf-1"]})

        await make_store(handler).publish_items(["wf-1"])

        assert captured["path"] == f"{ITEMS}/publish"
        assert captured["body"] == {"itemIds": ["wf-1"]}

    async def test_delete_missing_item(self, make_store):
        store = make_store(lambda request: httpx.Response(404, json={"message": "gone"}))
        assert await store.delete_item("wf-gone") is False

    async def test_delete_existing_item(self, make_store):
        store = make_store(lambda request: httpx.Response(204))
        assert await store.delete_item("wf-1") is True
