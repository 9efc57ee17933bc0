"""Webflow CMS mirror store -- Data API v2 client via httpx.

Implements MirrorStore against three Webflow collections: the modules
collection plus the category and tag reference collections.

Key implementation details:
- Bearer token auth, JSON bodies, per-request timeout
- 401/403 raise MirrorAuthError (fatal for the whole run)
- 429, 5xx and transport errors are retried with tenacity exponential backoff,
  then surface as WriteFailure (writes) or unreachable/StoreUnavailable (reads)
- 404 on item get/update/delete is a normal outcome (absent or stale id)
- List endpoints are paginated with limit/offset
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from src.currentprompt.config import SyncConfig
from src.currentprompt.sync.adapter import MirrorStore
from src.currentprompt.sync.errors import (
    FatalSyncError,
    MirrorAuthError,
    StoreUnavailable,
    WriteFailure,
)
from src.currentprompt.sync.retry import build_retrying
from src.currentprompt.sync.schemas import (
    CategoryReference,
    MirrorFieldSet,
    MirrorModuleItem,
    StoreLookup,
    TagReference,
)

logger = structlog.get_logger(__name__)

WEBFLOW_API_BASE = "https://api.webflow.com/v2"
PAGE_SIZE = 100


class WebflowAPIError(Exception):
    """Unexpected HTTP status from the Webflow API."""

    def __init__(self, status_code: int, detail: str = "") -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Webflow API returned {status_code}: {detail}".rstrip(": "))

    @property
    def retryable(self) -> bool:
        return self.status_code == 429 or self.status_code >= 500


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, WebflowAPIError):
        return exc.retryable
    return isinstance(exc, httpx.TransportError)


# ── Response parsing ───────────────────────────────────────────────────────


def parse_module_item(raw: dict[str, Any]) -> MirrorModuleItem:
    """Convert a Webflow item payload into a MirrorModuleItem."""
    field_data = {k: v for k, v in (raw.get("fieldData") or {}).items() if v is not None}
    return MirrorModuleItem(
        id=raw["id"],
        last_updated=raw.get("lastUpdated") or raw.get("createdOn"),
        created_on=raw.get("createdOn"),
        is_draft=bool(raw.get("isDraft", False)),
        is_archived=bool(raw.get("isArchived", False)),
        field_data=MirrorFieldSet.model_validate(field_data),
    )


def _parse_reference(raw: dict[str, Any], model: type) -> Any:
    field_data = raw.get("fieldData") or {}
    return model(
        id=raw["id"],
        name=field_data.get("name") or "",
        slug=field_data.get("slug") or "",
    )


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        return str(body.get("message") or body.get("msg") or body)[:200]
    return str(body)[:200]


# ── Store ──────────────────────────────────────────────────────────────────


class WebflowMirrorStore(MirrorStore):
    """Webflow CMS collections as the mirror store.

    Args:
        token: Webflow API token (site token with CMS read/write scope).
        collection_id: Modules collection id.
        categories_collection_id: Category reference collection id.
        tags_collection_id: Tag reference collection id.
        config: Sync configuration (retry policy).
        base_url: API base URL.
        timeout: Per-request timeout in seconds.
        client: Optional preconfigured httpx.AsyncClient (tests inject one
            backed by httpx.MockTransport). Caller keeps ownership.
    """

    name = "mirror"

    def __init__(
        self,
        token: str,
        collection_id: str,
        categories_collection_id: str,
        tags_collection_id: str,
        config: SyncConfig,
        *,
        base_url: str = WEBFLOW_API_BASE,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._collection_id = collection_id
        self._categories_collection_id = categories_collection_id
        self._tags_collection_id = tags_collection_id
        self._config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={
                "Authorization": f"Bearer {token}",
                "accept": "application/json",
            },
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this store created it."""
        if self._owns_client:
            await self._client.aclose()

    # ── Transport ───────────────────────────────────────────────────────

    async def _send(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        allow_404: bool = False,
    ) -> httpx.Response | None:
        response = await self._client.request(method, path, params=params, json=json)
        if response.status_code in (401, 403):
            raise MirrorAuthError(
                f"Webflow rejected credentials ({response.status_code}): "
                f"{_error_detail(response)}"
            )
        if response.status_code == 404 and allow_404:
            return None
        if response.status_code >= 400:
            raise WebflowAPIError(response.status_code, _error_detail(response))
        return response

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        allow_404: bool = False,
    ) -> httpx.Response | None:
        """Send a request with retry on transient failures.

        Returns:
            The response, or None for a 404 when ``allow_404`` is set.

        Raises:
            MirrorAuthError: On 401/403 (never retried).
            WebflowAPIError: On other error statuses, after retries if transient.
            httpx.TransportError: On connection errors/timeouts after retries.
        """
        retrying = build_retrying(self._config, _is_retryable)
        return await retrying(
            self._send, method, path, params=params, json=json, allow_404=allow_404
        )

    async def _list_all(self, collection_id: str, params: dict[str, Any] | None = None) -> list[dict]:
        items: list[dict] = []
        offset = 0
        while True:
            page_params = {"limit": PAGE_SIZE, "offset": offset, **(params or {})}
            response = await self._request(
                "GET", f"/collections/{collection_id}/items", params=page_params
            )
            body = response.json()
            page = body.get("items") or []
            items.extend(page)
            total = (body.get("pagination") or {}).get("total", len(items))
            offset += len(page)
            if not page or offset >= total:
                return items

    # ── MirrorStore ─────────────────────────────────────────────────────

    async def verify(self) -> None:
        """Check the token and that the modules collection exists."""
        try:
            await self._request("GET", f"/collections/{self._collection_id}")
        except MirrorAuthError:
            raise
        except (WebflowAPIError, httpx.HTTPError) as exc:
            raise FatalSyncError(f"Webflow modules collection unavailable: {exc}") from exc

    async def get_item(self, item_id: str) -> StoreLookup[MirrorModuleItem]:
        try:
            response = await self._request(
                "GET",
                f"/collections/{self._collection_id}/items/{item_id}",
                allow_404=True,
            )
        except (WebflowAPIError, httpx.HTTPError) as exc:
            logger.warning("webflow.lookup_failed", item_id=item_id, error=str(exc))
            return StoreLookup.unreachable(str(exc))
        if response is None:
            return StoreLookup.absent()
        try:
            return StoreLookup.present(parse_module_item(response.json()))
        except (ValidationError, KeyError) as exc:
            return StoreLookup.unreachable(f"Malformed item {item_id}: {exc}")

    async def find_item_by_slug(self, slug: str) -> StoreLookup[MirrorModuleItem]:
        try:
            raw_items = await self._list_all(self._collection_id, {"slug": slug})
        except (WebflowAPIError, httpx.HTTPError) as exc:
            logger.warning("webflow.lookup_failed", slug=slug, error=str(exc))
            return StoreLookup.unreachable(str(exc))
        for raw in raw_items:
            if (raw.get("fieldData") or {}).get("slug") == slug:
                try:
                    return StoreLookup.present(parse_module_item(raw))
                except (ValidationError, KeyError) as exc:
                    return StoreLookup.unreachable(f"Malformed item for '{slug}': {exc}")
        return StoreLookup.absent()

    async def list_items(self) -> list[MirrorModuleItem]:
        try:
            raw_items = await self._list_all(self._collection_id)
        except (WebflowAPIError, httpx.HTTPError) as exc:
            raise StoreUnavailable(self.name, str(exc)) from exc

        items: list[MirrorModuleItem] = []
        for raw in raw_items:
            try:
                items.append(parse_module_item(raw))
            except (ValidationError, KeyError) as exc:
                logger.warning("webflow.item_skipped", item_id=raw.get("id"), error=str(exc))
        return items

    async def list_categories(self) -> list[CategoryReference]:
        return await self._list_references(self._categories_collection_id, CategoryReference)

    async def list_tags(self) -> list[TagReference]:
        return await self._list_references(self._tags_collection_id, TagReference)

    async def _list_references(self, collection_id: str, model: type) -> list[Any]:
        if not collection_id:
            return []
        try:
            raw_items = await self._list_all(collection_id)
        except (WebflowAPIError, httpx.HTTPError) as exc:
            raise StoreUnavailable(self.name, str(exc)) from exc
        return [_parse_reference(raw, model) for raw in raw_items if raw.get("id")]

    async def create_item(self, fields: MirrorFieldSet) -> MirrorModuleItem:
        try:
            response = await self._request(
                "POST",
                f"/collections/{self._collection_id}/items",
                json=self._item_payload(fields),
            )
            item = parse_module_item(response.json())
        except (WebflowAPIError, httpx.HTTPError, ValidationError, KeyError) as exc:
            raise WriteFailure(self.name, "create", str(exc)) from exc
        logger.info("webflow.item_created", item_id=item.id, slug=fields.slug)
        return item

    async def update_item(
        self, item_id: str, fields: MirrorFieldSet
    ) -> MirrorModuleItem | None:
        try:
            response = await self._request(
                "PATCH",
                f"/collections/{self._collection_id}/items/{item_id}",
                json=self._item_payload(fields),
                allow_404=True,
            )
            if response is None:
                logger.info("webflow.item_missing", item_id=item_id, slug=fields.slug)
                return None
            item = parse_module_item(response.json())
        except (WebflowAPIError, httpx.HTTPError, ValidationError, KeyError) as exc:
            raise WriteFailure(self.name, "update", str(exc)) from exc
        logger.info("webflow.item_updated", item_id=item.id, slug=fields.slug)
        return item

    async def delete_item(self, item_id: str) -> bool:
        try:
            response = await self._request(
                "DELETE",
                f"/collections/{self._collection_id}/items/{item_id}",
                allow_404=True,
            )
        except (WebflowAPIError, httpx.HTTPError) as exc:
            raise WriteFailure(self.name, "delete", str(exc)) from exc
        deleted = response is not None
        logger.info("webflow.item_deleted", item_id=item_id, existed=deleted)
        return deleted

    async def publish_items(self, item_ids: list[str]) -> None:
        if not item_ids:
            return
        try:
            await self._request(
                "POST",
                f"/collections/{self._collection_id}/items/publish",
                json={"itemIds": item_ids},
            )
        except (WebflowAPIError, httpx.HTTPError) as exc:
            raise WriteFailure(self.name, "publish", str(exc)) from exc
        logger.info("webflow.items_published", count=len(item_ids))

    @staticmethod
    def _item_payload(fields: MirrorFieldSet) -> dict[str, Any]:
        return {
            "isArchived": fields.is_archived,
            "isDraft": fields.is_draft,
            "fieldData": fields.to_field_data(),
        }
