"""Webflow webhook endpoints.

The event is validated and resolved inline; the reconciliation runs as a
background task after the response is sent, so Webflow gets a fast 200.
"""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request, status

from src.currentprompt.sync.webhooks import WebhookIngestor, WebhookResult

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def _get_webhook_ingestor(request: Request) -> WebhookIngestor:
    """Retrieve WebhookIngestor from app.state, 503 if not available."""
    ingestor = getattr(request.app.state, "webhook_ingestor", None)
    if ingestor is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Webhook ingestion not initialized",
        )
    return ingestor


@router.post("/webflow", response_model=WebhookResult)
async def receive_webflow_event(
    request: Request, background_tasks: BackgroundTasks
) -> WebhookResult:
    """Receive a Webflow CMS event and schedule a single-module sync."""
    ingestor = _get_webhook_ingestor(request)
    body = await request.body()
    result = await ingestor.ingest(body, request.headers)
    if not result.accepted:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid signature",
        )
    if result.slug:
        background_tasks.add_task(ingestor.dispatch, result.slug)
    return result


@router.post("/webflow/test")
async def webflow_webhook_check() -> dict:
    """Connectivity check for webhook configuration."""
    return {"success": True, "message": "Webhook endpoint reachable"}
