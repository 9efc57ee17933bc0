#!/usr/bin/env python3
"""Run one catalog reconciliation pass between PostgreSQL and Webflow.

Intended for cron. Ctrl-C stops the pass at the next module boundary.

Usage:
    python scripts/sync_catalog.py
    python scripts/sync_catalog.py --slug prompt-engineering-basics
    python scripts/sync_catalog.py --json

Exit code 0 if every module succeeded or needed nothing, 1 if any module
failed, 2 if the run was aborted (bad credentials, unreachable store).
"""

from __future__ import annotations

import argparse
import asyncio
import os
import signal
import sys

# Ensure project root is on sys.path so we can import src modules
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from dotenv import load_dotenv  # noqa: E402

# Load .env from project root
load_dotenv(os.path.join(os.path.dirname(__file__), "..", ".env"))


async def run(slug: str | None, as_json: bool) -> int:
    """Build the stores from settings and run sync_one or sync_all."""
    import structlog

    from src.currentprompt.api.middleware.logging import configure_structlog
    from src.currentprompt.catalog.repository import ModuleRepository
    from src.currentprompt.config import SyncConfig, get_settings
    from src.currentprompt.core.database import close_db, get_session
    from src.currentprompt.sync.engine import SyncOrchestrator
    from src.currentprompt.sync.errors import FatalSyncError
    from src.currentprompt.sync.postgres import PostgresPrimaryStore
    from src.currentprompt.sync.webflow import WebflowMirrorStore

    configure_structlog()
    log = structlog.get_logger("sync_catalog")

    settings = get_settings()
    if not settings.webflow_configured():
        log.error("sync.webflow_not_configured")
        return 2

    config = SyncConfig.from_settings(settings)
    primary = PostgresPrimaryStore(ModuleRepository(session_factory=get_session), config)
    mirror = WebflowMirrorStore(
        token=settings.WEBFLOW_API_TOKEN,
        collection_id=settings.WEBFLOW_COLLECTION_ID,
        categories_collection_id=settings.WEBFLOW_CATEGORIES_COLLECTION_ID,
        tags_collection_id=settings.WEBFLOW_TAGS_COLLECTION_ID,
        config=config,
        timeout=settings.WEBFLOW_TIMEOUT_SECONDS,
    )
    orchestrator = SyncOrchestrator(primary, mirror, config)

    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
        loop.add_signal_handler(signal.SIGTERM, cancel_event.set)
    except NotImplementedError:
        pass  # Windows event loops

    try:
        if slug:
            result = await orchestrator.sync_one(slug)
        else:
            result = await orchestrator.sync_all(cancel_event)
    except FatalSyncError as exc:
        log.error("sync.aborted", error=str(exc), error_kind=type(exc).__name__)
        return 2
    finally:
        await mirror.aclose()
        await close_db()

    if as_json:
        print(result.model_dump_json(indent=2))
    else:
        print(result.summary())
        for failure in result.failures:
            print(f"  FAILED {failure.slug} [{failure.action.value}] {failure.error_kind}: {failure.error}")

    return 1 if result.failed else 0


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Reconcile catalog modules between PostgreSQL and Webflow CMS"
    )
    parser.add_argument("--slug", help="Reconcile a single module instead of the whole catalog")
    parser.add_argument("--json", action="store_true", help="Print the batch result as JSON")
    args = parser.parse_args()

    sys.exit(asyncio.run(run(args.slug, args.json)))


if __name__ == "__main__":
    main()
