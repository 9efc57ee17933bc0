"""Direction resolution -- pure decision of which store wins for a module.

Decision table, first match wins:

1. primary present, mirror absent            -> push
2. mirror present, primary absent            -> pull
3. primary newer by more than the tolerance  -> push
4. mirror newer by more than the tolerance   -> pull
5. both present within the tolerance         -> none
6. both absent                               -> none

Eligibility (only published modules are pushed) is not decided here.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol

from src.currentprompt.sync.schemas import SyncAction, SyncDecision

DEFAULT_TOLERANCE = timedelta(seconds=5)


class Timestamped(Protocol):
    @property
    def updated_at(self) -> datetime: ...


def as_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def resolve_direction(
    slug: str,
    primary: Timestamped | None,
    mirror: Timestamped | None,
    tolerance: timedelta = DEFAULT_TOLERANCE,
) -> SyncDecision:
    """Decide the sync direction for one module.

    Args:
        slug: Module slug, carried into the decision.
        primary: Primary-store record or None when absent.
        mirror: Mirror-store record or None when absent.
        tolerance: Timestamps closer than this are treated as equal.

    Returns:
        SyncDecision with action push, pull or none and a reason.
    """
    if primary is not None and mirror is None:
        return SyncDecision(slug=slug, action=SyncAction.PUSH, reason="missing in mirror")
    if mirror is not None and primary is None:
        return SyncDecision(slug=slug, action=SyncAction.PULL, reason="missing in primary")
    if primary is None or mirror is None:
        return SyncDecision(slug=slug, action=SyncAction.NONE, reason="absent in both stores")

    skew = as_utc(primary.updated_at) - as_utc(mirror.updated_at)
    seconds = abs(skew.total_seconds())
    if skew > tolerance:
        return SyncDecision(
            slug=slug, action=SyncAction.PUSH, reason=f"primary newer by {seconds:.1f}s"
        )
    if -skew > tolerance:
        return SyncDecision(
            slug=slug, action=SyncAction.PULL, reason=f"mirror newer by {seconds:.1f}s"
        )
    return SyncDecision(slug=slug, action=SyncAction.NONE, reason="in sync")
