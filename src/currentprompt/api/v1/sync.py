"""REST API endpoints for catalog reconciliation.

Thin wrappers around SyncOrchestrator. FatalSyncError (bad credentials,
unreachable store) maps to 503; per-module failures are part of the
BatchResult body and still return 200.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request, status

from src.currentprompt.sync.engine import SyncOrchestrator
from src.currentprompt.sync.errors import FatalSyncError, LookupFailure
from src.currentprompt.sync.schemas import BatchResult, SyncStatus

router = APIRouter(prefix="/sync", tags=["sync"])


# ── Dependency Injection Helper ──────────────────────────────────────────────


def _get_sync_orchestrator(request: Request) -> SyncOrchestrator:
    """Retrieve SyncOrchestrator from app.state, 503 if not available."""
    orchestrator = getattr(request.app.state, "sync_orchestrator", None)
    if orchestrator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Catalog sync not initialized",
        )
    return orchestrator


def _unavailable(exc: Exception) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=str(exc),
    )


# ── Endpoints ────────────────────────────────────────────────────────────────


@router.post("/modules", response_model=BatchResult)
async def sync_all_modules(request: Request) -> BatchResult:
    """Reconcile every module in either store."""
    orchestrator = _get_sync_orchestrator(request)
    try:
        return await orchestrator.sync_all()
    except FatalSyncError as exc:
        raise _unavailable(exc) from exc


@router.post("/modules/{slug}", response_model=BatchResult)
async def sync_module(slug: str, request: Request) -> BatchResult:
    """Reconcile a single module."""
    orchestrator = _get_sync_orchestrator(request)
    try:
        return await orchestrator.sync_one(slug)
    except FatalSyncError as exc:
        raise _unavailable(exc) from exc


@router.get("/modules/{slug}/status", response_model=SyncStatus)
async def get_module_sync_status(slug: str, request: Request) -> SyncStatus:
    """Read-only sync projection; unknown slugs report direction ``none``."""
    orchestrator = _get_sync_orchestrator(request)
    try:
        return await orchestrator.get_sync_status(slug)
    except (LookupFailure, FatalSyncError) as exc:
        raise _unavailable(exc) from exc


@router.delete("/modules/{slug}/mirror", response_model=BatchResult)
async def delete_module_from_mirror(slug: str, request: Request) -> BatchResult:
    """Delete the module's Webflow item; the primary record is kept."""
    orchestrator = _get_sync_orchestrator(request)
    try:
        return await orchestrator.delete_from_mirror(slug)
    except FatalSyncError as exc:
        raise _unavailable(exc) from exc
