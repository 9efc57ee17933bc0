"""V1 API router -- aggregates all v1 endpoint routers."""

from __future__ import annotations

from fastapi import APIRouter

from src.currentprompt.api.v1 import sync, webhooks

router = APIRouter(prefix="/api/v1")

router.include_router(sync.router)
router.include_router(webhooks.router)
